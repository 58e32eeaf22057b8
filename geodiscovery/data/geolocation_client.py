from .base import Coordinate, GeolocationProvider
from ..core.config import settings
from ..core.errors import GeolocationUnavailable, InvalidCoordinate
from ..core.utils import as_float
import httpx

class StaticGeolocation(GeolocationProvider):
    """
    Fixed position, e.g. from configuration or a browser-supplied coordinate.
    Without one the platform is treated as lacking geolocation support.
    """
    def __init__(self, coordinate: Coordinate | None = None):
        self.coordinate = coordinate

    async def locate(self) -> Coordinate:
        if self.coordinate is None:
            raise GeolocationUnavailable(GeolocationUnavailable.UNSUPPORTED, "no position configured")
        return self.coordinate

class HttpGeolocation(GeolocationProvider):
    """
    IP-based lookup against a JSON endpoint returning `latitude`/`longitude`.
    Transport problems are mapped onto the typed geolocation failures.
    """
    def __init__(self, base_url: str, timeout: float | None = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout if timeout is not None else settings.GEO_TIMEOUT_SECONDS

    async def locate(self) -> Coordinate:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                r = await client.get(f"{self.base_url}/json")
        except httpx.TimeoutException as exc:
            raise GeolocationUnavailable(GeolocationUnavailable.TIMEOUT, str(exc)) from exc
        except httpx.HTTPError as exc:
            raise GeolocationUnavailable(GeolocationUnavailable.UNSUPPORTED, str(exc)) from exc

        if r.status_code in (401, 403):
            raise GeolocationUnavailable(GeolocationUnavailable.PERMISSION_DENIED, f"HTTP {r.status_code}")
        if r.status_code >= 400:
            raise GeolocationUnavailable(GeolocationUnavailable.UNSUPPORTED, f"HTTP {r.status_code}")

        try:
            j = r.json()
        except ValueError as exc:
            raise GeolocationUnavailable(GeolocationUnavailable.UNSUPPORTED, "response is not JSON") from exc
        if not isinstance(j, dict):
            raise GeolocationUnavailable(GeolocationUnavailable.UNSUPPORTED, "response is not an object")
        lat, lon = as_float(j.get("latitude")), as_float(j.get("longitude"))
        if lat is None or lon is None:
            raise GeolocationUnavailable(GeolocationUnavailable.UNSUPPORTED, "response without coordinates")
        try:
            return Coordinate(lat, lon)
        except InvalidCoordinate as exc:
            raise GeolocationUnavailable(GeolocationUnavailable.UNSUPPORTED, str(exc)) from exc

def geolocation_client() -> GeolocationProvider:
    """
    Factory picks static or http based on env flags.
    """
    if settings.GEO_PROVIDER == "http" and settings.GEO_BASE_URL:
        return HttpGeolocation(settings.GEO_BASE_URL)
    lat, lon = as_float(settings.GEO_STATIC_LAT), as_float(settings.GEO_STATIC_LON)
    if lat is not None and lon is not None:
        return StaticGeolocation(Coordinate(lat, lon))
    return StaticGeolocation()
