from typing import Any, Dict, List
from .base import ListingSource
from .http_feed import FeedHttp, feed_http
from ..core.catalog import CITIES, CITY_CENTERS
from ..core.config import settings
from ..core.utils import fnv1a_32, seeded_rand

_MOCK_TYPES = ["apartment", "villa", "duplex", "townhouse", "land", "office", "shop", "building"]
_MOCK_AMENITIES = ["parking", "pool", "gym", "garden", "elevator", "security", "ac", "furnished"]

class MockListings(ListingSource):
    """
    Synthetic listings scattered around a few major cities. Deterministic,
    and shaped like rows of the backend's `properties` table, including the
    occasional row without coordinates or area.
    """
    def __init__(self, count: int = 60):
        self.count = count

    async def located_listings(self, limit: int, approved_only: bool) -> List[Dict[str, Any]]:
        cities = list(CITY_CENTERS)
        out: List[Dict[str, Any]] = []
        for i in range(self.count):
            seed = fnv1a_32(f"listing-{i}")
            r = seeded_rand(seed, 8)
            slug = cities[int(r[0] * len(cities)) % len(cities)]
            lat0, lon0 = CITY_CENTERS[slug]
            listing_type = "sale" if r[1] < 0.6 else "rent"
            price = int(350_000 + r[2] * 4_650_000) if listing_type == "sale" else int(2_000 + r[2] * 18_000)
            row = {
                "id": f"lst-{i:04d}",
                "user_id": f"usr-{i % 7:03d}",
                "title": f"{_MOCK_TYPES[i % len(_MOCK_TYPES)].title()} #{i}",
                "price": price,
                "listing_type": listing_type,
                "property_type": _MOCK_TYPES[i % len(_MOCK_TYPES)],
                "city": CITIES[slug][1],
                "neighborhood": f"District {1 + int(r[3] * 20)}",
                "bedrooms": 1 + int(r[4] * 6),
                "bathrooms": 1 + int(r[5] * 4),
                "area": None if i % 11 == 0 else int(60 + r[6] * 900),
                "amenities": [a for j, a in enumerate(_MOCK_AMENITIES) if seeded_rand(seed + j, 1)[0] > 0.6],
                "images": [],
                "is_approved": i % 9 != 0,
                "latitude": None if i % 13 == 0 else round(lat0 + (r[7] - 0.5) * 0.3, 6),
                "longitude": round(lon0 + (seeded_rand(seed + 99, 1)[0] - 0.5) * 0.3, 6),
            }
            if approved_only and not row["is_approved"]:
                continue
            out.append(row)
        return out[:limit]

class HttpListings(ListingSource):
    def __init__(self, feed: FeedHttp):
        self.feed = feed

    async def located_listings(self, limit: int, approved_only: bool) -> List[Dict[str, Any]]:
        params = {
            "select": "*",
            "latitude": "not.is.null",
            "longitude": "not.is.null",
            "limit": limit,
        }
        if approved_only:
            params["is_approved"] = "eq.true"
        return await self.feed.select("properties", params)

def listings_client() -> ListingSource:
    if settings.FEED_PROVIDER == "http" and settings.FEED_BASE_URL:
        return HttpListings(feed_http())
    return MockListings()
