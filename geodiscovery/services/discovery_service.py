import json
import logging

from ..core.cache import cache
from ..core.catalog import LEGEND, MARKER_COLORS, city_label, property_type_label
from ..core.config import settings
from ..core.utils import weak_etag
from ..data.base import Coordinate, RankedEntity
from ..map.surface import HeadlessSurface
from .aggregator import EntityAggregator
from .filter_engine import FilterCriteria, apply_filters, rank, rank_by_distance
from .geolocator import Geolocator
from .map_controller import MapController, detail_route, popup_text
from .session import SORT_FARTHEST, SORT_NEAREST

logger = logging.getLogger(__name__)


def criteria_key(criteria: FilterCriteria) -> dict:
    """JSON-safe, order-independent view of the criteria for cache keys."""
    return {
        "listing_type": criteria.listing_type,
        "city": criteria.city,
        "property_type": criteria.property_type,
        "price": [criteria.price.min, criteria.price.max],
        "area": [criteria.area.min, criteria.area.max],
        "bedrooms": criteria.bedrooms,
        "bathrooms": criteria.bathrooms,
        "amenities": sorted(criteria.amenities),
        "max_distance_km": criteria.max_distance_km,
        "query": criteria.query,
        "categories": sorted(c.value for c in criteria.categories),
    }


def entity_item(ranked: RankedEntity) -> dict:
    e = ranked.entity
    return {
        "key": e.key,
        "kind": e.kind.value,
        "id": e.id,
        "category": e.category.value,
        "color": MARKER_COLORS[e.category],
        "title": e.title,
        "display_name": e.display_name,
        "city": e.city,
        "city_label": city_label(e.city) if e.city else None,
        "neighborhood": e.neighborhood,
        "image_url": e.image_url,
        "listing_type": e.listing_type,
        "property_type": e.property_type,
        "property_type_label": property_type_label(e.property_type) if e.property_type else None,
        "price": e.price,
        "area": e.area,
        "bedrooms": e.bedrooms,
        "bathrooms": e.bathrooms,
        "amenities": sorted(e.amenities),
        "latitude": e.coordinate.latitude,
        "longitude": e.coordinate.longitude,
        "distance_km": round(ranked.distance_km, 3) if ranked.distance_km is not None else None,
        "detail_route": detail_route(e),
        "popup": popup_text(e),
    }


def legend_items() -> list[dict]:
    return [
        {"category": category.value, "color": color, "label_en": en, "label_ar": ar}
        for category, (color, en, ar) in LEGEND.items()
    ]


class DiscoveryService:
    """
    Orchestrates one discovery query for the HTTP shell:
      user position → aggregate sources → rank → filter → sort → viewport

    The browser supplies its own position when it has one; otherwise the
    configured server-side provider is tried, and a failure there only turns
    distance features off. Responses are cached per normalised query and
    carry a weak ETag.
    """
    def __init__(self, aggregator: EntityAggregator | None = None, geolocator: Geolocator | None = None):
        self.aggregator = aggregator or EntityAggregator()
        self.geolocator = geolocator or Geolocator()

    async def search(
        self,
        criteria: FilterCriteria,
        user_location: Coordinate | None = None,
        sort: str | None = None,
    ) -> tuple[dict, bool, str]:
        if sort not in (None, SORT_NEAREST, SORT_FARTHEST):
            raise ValueError(f"unknown sort order: {sort!r}")

        if user_location is None:
            user_location = await self.geolocator.try_request_location()
        if user_location is not None:
            # Quantised to about 11 m, the cache key granularity
            user_location = Coordinate(round(user_location.latitude, 4), round(user_location.longitude, 4))

        key_parts = {
            "criteria": criteria_key(criteria),
            "at": [user_location.latitude, user_location.longitude] if user_location else None,
            "sort": sort,
        }
        cache_key = "entities:" + json.dumps(key_parts, sort_keys=True, separators=(',',':'))
        cached = cache.get(cache_key)
        if cached:
            logger.debug("discovery payload served from cache")
            payload = json.loads(cached)
            etag = weak_etag(json.dumps(payload, separators=(',',':')).encode("utf-8"))
            return payload, True, etag

        result = await self.aggregator.fetch()
        ranked = rank(result.entities, user_location)
        matches = apply_filters(ranked, criteria)
        if sort is not None and user_location is not None:
            matches = rank_by_distance(matches, ascending=sort == SORT_NEAREST)

        center, zoom = await self._viewport(matches)
        payload = {
            "count": len(matches),
            "items": [entity_item(r) for r in matches],
            "user_location": (
                {"latitude": user_location.latitude, "longitude": user_location.longitude}
                if user_location else None
            ),
            "distance_enabled": user_location is not None,
            "failed_sources": result.failures,
            "viewport": {"center": {"latitude": center.latitude, "longitude": center.longitude}, "zoom": zoom},
            "cached": False,
        }

        # Partial results stay uncached
        if not result.failures:
            cache.set(cache_key, json.dumps(payload, separators=(',',':')))
        etag = weak_etag(json.dumps(payload, separators=(',',':')).encode("utf-8"))
        return payload, False, etag

    async def _viewport(self, matches: list[RankedEntity]) -> tuple[Coordinate, int]:
        """Run the result set through a headless map to get the initial fitted view."""
        controller = MapController(HeadlessSurface((settings.MAP_WIDTH_PX, settings.MAP_HEIGHT_PX)))
        await controller.initialize()
        try:
            controller.update_entities(matches)
            return controller.center, controller.zoom
        finally:
            controller.destroy()
