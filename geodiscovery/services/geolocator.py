import asyncio
import logging
import time

from ..core.config import settings
from ..core.errors import GeolocationUnavailable
from ..core.metrics import GEOLOCATION_FAILURES
from ..data.base import Coordinate, GeolocationProvider
from ..data.geolocation_client import geolocation_client

logger = logging.getLogger(__name__)


class Geolocator:
    """
    Session-scoped access to the user's position.

    The first successful lookup is cached; later calls reuse it unless the
    caller asks for a refresh. `loading` is true while a lookup is pending so
    the shell can show a spinner. Failures raise `GeolocationUnavailable`;
    `try_request_location` turns them into None for the degraded path.
    """

    def __init__(self, provider: GeolocationProvider | None = None, timeout: float | None = None):
        self.provider = provider or geolocation_client()
        self.timeout = timeout if timeout is not None else settings.GEO_TIMEOUT_SECONDS
        self.loading = False
        self._cached: Coordinate | None = None
        self._cached_at: float | None = None
        self._task: asyncio.Task | None = None

    @property
    def cached(self) -> Coordinate | None:
        return self._cached

    def cache_age(self) -> float | None:
        if self._cached_at is None:
            return None
        return time.monotonic() - self._cached_at

    async def request_location(self, refresh: bool = False, max_age: float | None = None) -> Coordinate:
        if max_age is not None and (self.cache_age() or 0.0) > max_age:
            refresh = True
        if self._cached is not None and not refresh:
            return self._cached

        # Concurrent callers share one pending lookup
        if self._task is None or self._task.done():
            self._task = asyncio.ensure_future(self._locate())
            self.loading = True
        return await asyncio.shield(self._task)

    async def try_request_location(self, refresh: bool = False, max_age: float | None = None) -> Coordinate | None:
        try:
            return await self.request_location(refresh=refresh, max_age=max_age)
        except GeolocationUnavailable as exc:
            logger.info("continuing without user location", extra={"reason": exc.reason})
            return None

    async def _locate(self) -> Coordinate:
        self.loading = True
        try:
            try:
                coordinate = await asyncio.wait_for(self.provider.locate(), timeout=self.timeout)
            except asyncio.TimeoutError as exc:
                raise GeolocationUnavailable(GeolocationUnavailable.TIMEOUT, f"no fix after {self.timeout}s") from exc
            except GeolocationUnavailable:
                raise
            except Exception as exc:
                raise GeolocationUnavailable(GeolocationUnavailable.UNSUPPORTED, str(exc) or type(exc).__name__) from exc
        except GeolocationUnavailable as exc:
            GEOLOCATION_FAILURES.labels(reason=exc.reason).inc()
            raise
        finally:
            self.loading = False

        self._cached = coordinate
        self._cached_at = time.monotonic()
        return coordinate

    def cancel(self) -> None:
        """Abandon a pending lookup (view teardown). Cached position is kept."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
        self.loading = False
