import asyncio
import logging
from typing import Callable, Dict, List, Optional, Set

from ..core.config import settings
from ..data.base import Coordinate, LocatedEntity, RankedEntity
from ..map.surface import HeadlessSurface, MapSurface
from .aggregator import EntityAggregator
from .filter_engine import FilterCriteria, apply_filters, rank, rank_by_distance
from .geolocator import Geolocator
from .map_controller import MapController, MapState

logger = logging.getLogger(__name__)

SORT_NEAREST = "nearest"
SORT_FARTHEST = "farthest"


class Debouncer:
    """Runs the latest scheduled callback once the caller has been quiet for `delay` seconds."""
    def __init__(self, delay: float):
        self.delay = delay
        self._handle: Optional[asyncio.TimerHandle] = None

    def schedule(self, callback: Callable[[], None]) -> None:
        self.cancel()
        loop = asyncio.get_running_loop()

        def fire():
            self._handle = None
            callback()

        self._handle = loop.call_later(self.delay, fire)

    @property
    def pending(self) -> bool:
        return self._handle is not None and not self._handle.cancelled()

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None


class DiscoverySession:
    """
    Everything one mounted map/list view needs: the fetch cycle, the user's
    position, the active filters and the map controller.

    Orchestrates:
      geolocate → fetch (concurrently) → rank → filter → sort → reconcile markers

    Only the most recent fetch may write results; anything that resolves after
    a newer fetch started, or after `close()`, is discarded.
    """
    def __init__(
        self,
        aggregator: Optional[EntityAggregator] = None,
        geolocator: Optional[Geolocator] = None,
        surface: Optional[MapSurface] = None,
        on_results: Optional[Callable[[List[RankedEntity]], None]] = None,
        debounce_ms: Optional[int] = None,
        debounce_min_entities: Optional[int] = None,
    ):
        self.aggregator = aggregator or EntityAggregator()
        self.geolocator = geolocator or Geolocator()
        self.map = MapController(surface or HeadlessSurface((settings.MAP_WIDTH_PX, settings.MAP_HEIGHT_PX)))
        self.on_results = on_results

        ms = debounce_ms if debounce_ms is not None else settings.FILTER_DEBOUNCE_MS
        self._debouncer = Debouncer(ms / 1000.0)
        self._pending_user_initiated = False
        self._debounce_min = (debounce_min_entities if debounce_min_entities is not None
                              else settings.FILTER_DEBOUNCE_MIN_ENTITIES)

        self.entities: List[LocatedEntity] = []
        self.results: List[RankedEntity] = []
        self.failures: Dict[str, str] = {}
        self.criteria = FilterCriteria()
        self.sort: Optional[str] = None
        self.user_location: Optional[Coordinate] = None
        self.loading = False

        self._mounted = False
        self._generation = 0
        self._tasks: Set[asyncio.Task] = set()

    @property
    def mounted(self) -> bool:
        return self._mounted

    @property
    def distance_enabled(self) -> bool:
        """Distance sort/filter controls only make sense with a known position."""
        return self.user_location is not None

    # ----- lifecycle -----

    async def mount(self) -> None:
        self._mounted = True
        await self.map.initialize()
        await asyncio.gather(self.refresh(), self.locate())

    def close(self) -> None:
        if not self._mounted and self.map.state is MapState.DESTROYED:
            return
        self._mounted = False
        self._debouncer.cancel()
        self._pending_user_initiated = False
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()
        self.geolocator.cancel()
        self.map.destroy()

    def _track(self, coro) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    # ----- data -----

    async def refresh(self) -> bool:
        """Re-fetch every source. Returns False when the result arrived stale and was dropped."""
        self._generation += 1
        generation = self._generation
        self.loading = True
        task = self._track(self.aggregator.fetch())
        try:
            result = await task
        except asyncio.CancelledError:
            if task.cancelled() and not self._mounted:
                return False
            raise
        finally:
            if generation == self._generation:
                self.loading = False

        if not self._mounted or generation != self._generation:
            logger.debug("discarding stale fetch result", extra={"generation": generation})
            return False

        self.entities = result.entities
        self.failures = result.failures
        self._recompute(user_initiated=False)
        return True

    async def locate(self, refresh: bool = False) -> Optional[Coordinate]:
        max_age = settings.GEO_MAX_AGE_SECONDS if refresh else None
        task = self._track(self.geolocator.try_request_location(max_age=max_age))
        try:
            coordinate = await task
        except asyncio.CancelledError:
            if task.cancelled() and not self._mounted:
                return None
            raise
        if not self._mounted:
            return None

        self.user_location = coordinate
        if coordinate is not None and self.map.state is MapState.READY:
            self.map.show_user_location(coordinate)
        self._recompute(user_initiated=False)
        return coordinate

    # ----- filters -----

    def set_criteria(self, criteria: FilterCriteria, user_initiated: bool = True) -> None:
        self.criteria = criteria
        self._schedule(user_initiated)

    def set_sort(self, sort: Optional[str]) -> None:
        if sort not in (None, SORT_NEAREST, SORT_FARTHEST):
            raise ValueError(f"unknown sort order: {sort!r}")
        self.sort = sort
        self._schedule(user_initiated=False)

    def flush(self) -> None:
        """Apply a pending debounced filter change right away."""
        if self._debouncer.pending:
            self._debouncer.cancel()
            self._apply_pending()

    def _schedule(self, user_initiated: bool) -> None:
        if not self._mounted:
            return
        # A burst refits if any change in it was user-initiated
        self._pending_user_initiated = self._pending_user_initiated or user_initiated
        if len(self.entities) < self._debounce_min or self._debouncer.delay <= 0:
            self._debouncer.cancel()
            self._apply_pending()
            return
        self._debouncer.schedule(self._apply_pending)

    def _apply_pending(self) -> None:
        user_initiated, self._pending_user_initiated = self._pending_user_initiated, False
        self._recompute(user_initiated)

    def _recompute(self, user_initiated: bool) -> None:
        if not self._mounted:
            return
        ranked = rank(self.entities, self.user_location)
        results = apply_filters(ranked, self.criteria)
        if self.sort is not None and self.distance_enabled:
            results = rank_by_distance(results, ascending=self.sort == SORT_NEAREST)
        self.results = results
        self.map.update_entities(results, user_initiated=user_initiated)
        if self.on_results:
            self.on_results(results)
