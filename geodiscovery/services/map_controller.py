"""
Map Controller: owns one map surface and its marker set for the lifetime of
a single mounted view.

    UNINITIALIZED --initialize()--> INITIALIZING --surface ready--> READY
          \\                              \\                          |
           +------------------------------+--------destroy()-------> DESTROYED

Marker changes go through `reconcile`, a pure diff between the markers on
the surface and the entities that should be there, so untouched markers keep
their click handlers and open popups across re-filters.

Viewport policy: the first non-empty entity set is fitted automatically.
After that the user's pan/zoom is left alone unless an update is flagged
`user_initiated` or `refit()` is called.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from functools import partial
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from ..core.catalog import MARKER_COLORS, USER_LOCATION_COLOR
from ..core.config import settings
from ..core.errors import MapNotReady
from ..core.geo import bounds_of, fit_viewport
from ..data.base import Coordinate, EntityKind, LocatedEntity, MarkerCategory, RankedEntity
from ..map.surface import MapSurface, MarkerHandle

logger = logging.getLogger(__name__)

USER_MARKER_KEY = "user:location"


class MapState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    DESTROYED = "destroyed"


@dataclass
class MapViewState:
    center: Coordinate
    zoom: int
    has_fitted_initial_bounds: bool = False
    active_markers: Dict[str, MarkerHandle] = field(default_factory=dict)


@dataclass(frozen=True)
class ReconcilePlan:
    add: Tuple[LocatedEntity, ...] = ()
    remove: Tuple[str, ...] = ()

    @property
    def is_noop(self) -> bool:
        return not self.add and not self.remove


@dataclass(frozen=True)
class NavigationIntent:
    kind: EntityKind
    id: str
    path: str


def _entity(item: Union[LocatedEntity, RankedEntity]) -> LocatedEntity:
    return item.entity if isinstance(item, RankedEntity) else item


def reconcile(
    active: Mapping[str, MarkerHandle],
    entities: Iterable[Union[LocatedEntity, RankedEntity]],
) -> ReconcilePlan:
    """
    Diff the markers currently on the map against the wanted entity set.

    A marker stays when its entity is still present with the same position,
    category and popup text. A moved, re-categorised or re-described entity is
    removed and re-added.
    """
    wanted: Dict[str, LocatedEntity] = {}
    for item in entities:
        e = _entity(item)
        wanted.setdefault(e.key, e)

    remove: List[str] = []
    for key, handle in active.items():
        e = wanted.get(key)
        if (
            e is None
            or handle.coordinate != e.coordinate
            or handle.color != MARKER_COLORS[e.category]
            or handle.popup != popup_text(e)
        ):
            remove.append(key)

    removed = set(remove)
    add = [e for key, e in wanted.items() if key not in active or key in removed]
    return ReconcilePlan(add=tuple(add), remove=tuple(remove))


def detail_route(entity: LocatedEntity) -> str:
    if entity.kind is EntityKind.LISTING:
        return f"/property/{entity.id}"
    if entity.kind is EntityKind.DEVELOPER_PROJECT:
        return f"/developer/{entity.owner_id or entity.id}"
    prefix = {
        MarkerCategory.APPRAISER: "appraiser",
        MarkerCategory.FINANCING: "financing",
    }.get(entity.category, "office")
    return f"/{prefix}/{entity.owner_id or entity.id}"


def popup_text(entity: LocatedEntity) -> str:
    lines = [entity.title or entity.display_name]
    if entity.price is not None:
        price = f"{entity.price:,.0f} SAR"
        if entity.category is MarkerCategory.RENT:
            price += " / monthly"
        lines.append(price)
    place = " - ".join(p for p in (entity.city, entity.neighborhood) if p)
    if place:
        lines.append(place)
    return "\n".join(line for line in lines if line)


class MapController:
    def __init__(
        self,
        surface: MapSurface,
        on_selection: Optional[Callable[[Optional[LocatedEntity]], None]] = None,
        on_navigate: Optional[Callable[[NavigationIntent], None]] = None,
        padding_px: Optional[int] = None,
        max_zoom: Optional[int] = None,
    ):
        self._surface = surface
        self._state = MapState.UNINITIALIZED
        self._view = MapViewState(
            center=Coordinate(settings.MAP_DEFAULT_LAT, settings.MAP_DEFAULT_LON),
            zoom=settings.MAP_DEFAULT_ZOOM,
        )
        self._padding = padding_px if padding_px is not None else settings.MAP_FIT_PADDING_PX
        self._max_zoom = max_zoom if max_zoom is not None else settings.MAP_MAX_ZOOM
        self._entities: Dict[str, LocatedEntity] = {}
        self._pending: Optional[Tuple[list, bool]] = None
        self._selected: Optional[str] = None
        self._user_marker: Optional[MarkerHandle] = None
        self._selection_listeners: List[Callable[[Optional[LocatedEntity]], None]] = []
        self._navigation_listeners: List[Callable[[NavigationIntent], None]] = []
        if on_selection:
            self._selection_listeners.append(on_selection)
        if on_navigate:
            self._navigation_listeners.append(on_navigate)

    # ----- read-only views -----

    @property
    def state(self) -> MapState:
        return self._state

    @property
    def selected(self) -> Optional[LocatedEntity]:
        return self._entities.get(self._selected) if self._selected else None

    @property
    def marker_keys(self) -> frozenset:
        return frozenset(self._view.active_markers)

    @property
    def center(self) -> Coordinate:
        return self._view.center

    @property
    def zoom(self) -> int:
        return self._view.zoom

    @property
    def has_fitted_initial_bounds(self) -> bool:
        return self._view.has_fitted_initial_bounds

    def subscribe_selection(self, listener: Callable[[Optional[LocatedEntity]], None]) -> None:
        self._selection_listeners.append(listener)

    def subscribe_navigation(self, listener: Callable[[NavigationIntent], None]) -> None:
        self._navigation_listeners.append(listener)

    # ----- lifecycle -----

    async def initialize(self) -> None:
        if self._state is MapState.DESTROYED:
            raise MapNotReady("map has been destroyed")
        if self._state is not MapState.UNINITIALIZED:
            return
        self._state = MapState.INITIALIZING
        self._surface.attach_base_layer(settings.MAP_TILE_URL, settings.MAP_TILE_ATTRIBUTION, self._max_zoom)
        self._surface.set_view(self._view.center, self._view.zoom)

        await self._surface.ready()
        if self._state is MapState.DESTROYED:
            # Torn down while the canvas was still sizing
            return
        self._state = MapState.READY
        logger.debug("map ready", extra={"state": self._state.value})

        if self._pending is not None:
            entities, user_initiated = self._pending
            self._pending = None
            self._apply(entities, user_initiated)

    def destroy(self) -> None:
        """Release every marker and the surface. Safe to call more than once."""
        if self._state is MapState.DESTROYED:
            return
        for handle in self._view.active_markers.values():
            self._surface.remove_marker(handle)
        self._view.active_markers.clear()
        if self._user_marker is not None:
            self._surface.remove_marker(self._user_marker)
            self._user_marker = None
        self._surface.destroy()
        self._state = MapState.DESTROYED
        self._entities.clear()
        self._pending = None
        self._selected = None
        self._selection_listeners.clear()
        self._navigation_listeners.clear()

    # ----- entity set -----

    def update_entities(
        self,
        entities: Iterable[Union[LocatedEntity, RankedEntity]],
        user_initiated: bool = False,
    ) -> Optional[ReconcilePlan]:
        """
        Bring the marker set in line with `entities`. Before READY the set is
        held and applied once the surface can render; after teardown it is
        dropped. Returns the applied plan, or None when nothing was applied.
        """
        items = list(entities)
        if self._state is MapState.DESTROYED:
            logger.debug("ignoring entity update after teardown", extra={"count": len(items)})
            return None
        if self._state is not MapState.READY:
            # A deliberate filter action must still fit once the map shows up
            held_user = bool(self._pending and self._pending[1])
            self._pending = (items, user_initiated or held_user)
            return None
        return self._apply(items, user_initiated)

    def _apply(self, items: list, user_initiated: bool) -> ReconcilePlan:
        active = self._view.active_markers
        plan = reconcile(active, items)

        for key in plan.remove:
            self._surface.remove_marker(active.pop(key))
        for e in plan.add:
            active[e.key] = self._surface.add_marker(
                e.key, e.coordinate, MARKER_COLORS[e.category], popup_text(e),
                partial(self._on_marker_click, e.key),
            )

        self._entities = {}
        for item in items:
            e = _entity(item)
            self._entities.setdefault(e.key, e)

        if self._selected is not None and self._selected not in self._entities:
            self._selected = None
            self._emit_selection(None)

        if self._entities:
            if not self._view.has_fitted_initial_bounds:
                self._fit()
                self._view.has_fitted_initial_bounds = True
            elif user_initiated:
                self._fit()

        if not plan.is_noop:
            logger.debug("markers reconciled", extra={"count": len(active)})
        return plan

    def refit(self) -> None:
        """Fit the viewport to the current entities (explicit user action)."""
        self._require_ready()
        if self._entities:
            self._fit()

    def _fit(self) -> None:
        bounds = bounds_of(e.coordinate for e in self._entities.values())
        if bounds is None:
            return
        width, height = self._surface.size
        viewport = fit_viewport(bounds, width, height, self._padding, self._max_zoom)
        self._view.center, self._view.zoom = viewport.center, viewport.zoom
        self._surface.set_view(viewport.center, viewport.zoom)

    # ----- selection & navigation -----

    def select(self, key: str) -> LocatedEntity:
        self._require_ready()
        entity = self._entities.get(key)
        if entity is None:
            raise KeyError(key)
        if self._selected != key:
            self._selected = key
            self._emit_selection(entity)
        return entity

    def clear_selection(self) -> None:
        if self._selected is not None:
            self._selected = None
            self._emit_selection(None)

    def open_details(self, key: str) -> NavigationIntent:
        entity = self._entities.get(key)
        if entity is None:
            raise KeyError(key)
        intent = NavigationIntent(kind=entity.kind, id=entity.id, path=detail_route(entity))
        for listener in list(self._navigation_listeners):
            listener(intent)
        return intent

    def _on_marker_click(self, key: str) -> None:
        if self._state is MapState.READY and key in self._entities:
            self.select(key)

    def _emit_selection(self, entity: Optional[LocatedEntity]) -> None:
        for listener in list(self._selection_listeners):
            listener(entity)

    # ----- user position -----

    def show_user_location(self, coordinate: Coordinate) -> None:
        self._require_ready()
        if self._user_marker is not None:
            if self._user_marker.coordinate == coordinate:
                return
            self._surface.remove_marker(self._user_marker)
        self._user_marker = self._surface.add_marker(
            USER_MARKER_KEY, coordinate, USER_LOCATION_COLOR, "Your location", lambda: None,
        )

    def _require_ready(self) -> None:
        if self._state is not MapState.READY:
            raise MapNotReady(f"map is {self._state.value}")
