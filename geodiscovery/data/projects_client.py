from typing import Any, Dict, List
from .base import DeveloperProjectSource
from .http_feed import FeedHttp, feed_http
from ..core.catalog import CITIES, CITY_CENTERS
from ..core.config import settings
from ..core.utils import fnv1a_32, seeded_rand

class MockProjects(DeveloperProjectSource):
    """
    Synthetic developer projects with price/area brackets (`*_from`/`*_to`).
    """
    def __init__(self, count: int = 10):
        self.count = count

    async def located_projects(self) -> List[Dict[str, Any]]:
        cities = list(CITY_CENTERS)
        out: List[Dict[str, Any]] = []
        for i in range(self.count):
            r = seeded_rand(fnv1a_32(f"project-{i}"), 5)
            slug = cities[int(r[0] * len(cities)) % len(cities)]
            lat0, lon0 = CITY_CENTERS[slug]
            price_from = int(600_000 + r[1] * 2_000_000)
            area_from = int(120 + r[2] * 300)
            out.append({
                "id": f"prj-{i:04d}",
                "user_id": f"usr-dev-{i % 3:03d}",
                "title": f"Project {i}",
                "project_type": "residential" if i % 2 == 0 else "mixed_use",
                "city": CITIES[slug][1],
                "price_from": price_from,
                "price_to": price_from * 2,
                "area_from": area_from,
                "area_to": area_from + 200,
                "amenities": ["parking", "security"] + (["pool"] if i % 3 == 0 else []),
                "images": [],
                "latitude": round(lat0 + (r[3] - 0.5) * 0.25, 6),
                "longitude": round(lon0 + (r[4] - 0.5) * 0.25, 6),
            })
        return out

class HttpProjects(DeveloperProjectSource):
    def __init__(self, feed: FeedHttp):
        self.feed = feed

    async def located_projects(self) -> List[Dict[str, Any]]:
        return await self.feed.select("developer_projects", {
            "select": "*",
            "latitude": "not.is.null",
            "longitude": "not.is.null",
            "order": "created_at.desc",
        })

def projects_client() -> DeveloperProjectSource:
    if settings.FEED_PROVIDER == "http" and settings.FEED_BASE_URL:
        return HttpProjects(feed_http())
    return MockProjects()
