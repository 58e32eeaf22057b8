import asyncio
import itertools
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Protocol, Tuple

from ..data.base import Coordinate

# ----- Data shapes -----

@dataclass
class MarkerHandle:
    key: str                     # entity key the marker represents
    coordinate: Coordinate
    color: str
    marker_id: int = 0           # surface-assigned identity
    popup: str = ""

# ----- Protocol (interface) -----

class MapSurface(Protocol):
    """
    The rendering side of one mounted map: tiles, canvas and marker objects.
    Only the Map Controller talks to it.
    """
    size: Tuple[int, int]
    def attach_base_layer(self, tile_url: str, attribution: str, max_zoom: int) -> None: ...
    async def ready(self) -> None: ...
    def add_marker(self, key: str, coordinate: Coordinate, color: str,
                   popup: str, on_click: Callable[[], None]) -> MarkerHandle: ...
    def remove_marker(self, handle: MarkerHandle) -> None: ...
    def set_view(self, center: Coordinate, zoom: int) -> None: ...
    def destroy(self) -> None: ...

# ----- In-memory implementation -----

@dataclass
class SurfaceOp:
    name: str          # add | remove | view | destroy | tiles
    detail: object = None

class HeadlessSurface(MapSurface):
    """
    Surface without a renderer. It keeps the marker set and viewport in
    memory and records every operation, which is what the HTTP shell needs
    to describe a map to the browser and what tests assert on.

    With `auto_ready=False` the surface only becomes ready once
    `mark_ready()` is called, mimicking a canvas that is still being sized.
    """
    def __init__(self, size: Tuple[int, int] = (1024, 600), auto_ready: bool = True):
        self.size = size
        self.tile_url: Optional[str] = None
        self.markers: Dict[int, MarkerHandle] = {}
        self.click_handlers: Dict[int, Callable[[], None]] = {}
        self.center: Optional[Coordinate] = None
        self.zoom: Optional[int] = None
        self.ops: List[SurfaceOp] = []
        self.destroy_calls = 0
        self._ids = itertools.count(1)
        self._auto_ready = auto_ready
        self._ready: Optional[asyncio.Event] = None

    def _event(self) -> asyncio.Event:
        if self._ready is None:
            self._ready = asyncio.Event()
            if self._auto_ready:
                self._ready.set()
        return self._ready

    def attach_base_layer(self, tile_url: str, attribution: str, max_zoom: int) -> None:
        self.tile_url = tile_url
        self.ops.append(SurfaceOp("tiles", tile_url))

    async def ready(self) -> None:
        await self._event().wait()

    def mark_ready(self) -> None:
        self._event().set()

    def add_marker(self, key, coordinate, color, popup, on_click) -> MarkerHandle:
        handle = MarkerHandle(key=key, coordinate=coordinate, color=color,
                              marker_id=next(self._ids), popup=popup)
        self.markers[handle.marker_id] = handle
        self.click_handlers[handle.marker_id] = on_click
        self.ops.append(SurfaceOp("add", key))
        return handle

    def remove_marker(self, handle: MarkerHandle) -> None:
        self.markers.pop(handle.marker_id, None)
        self.click_handlers.pop(handle.marker_id, None)
        self.ops.append(SurfaceOp("remove", handle.key))

    def set_view(self, center: Coordinate, zoom: int) -> None:
        self.center, self.zoom = center, zoom
        self.ops.append(SurfaceOp("view", (center, zoom)))

    def destroy(self) -> None:
        self.destroy_calls += 1
        self.markers.clear()
        self.click_handlers.clear()
        self.ops.append(SurfaceOp("destroy"))

    def click(self, key: str) -> None:
        """Simulate a user click on the marker for `key`."""
        for marker_id, handle in self.markers.items():
            if handle.key == key:
                self.click_handlers[marker_id]()
                return
        raise KeyError(key)

    def count(self, op_name: str) -> int:
        return sum(1 for op in self.ops if op.name == op_name)
