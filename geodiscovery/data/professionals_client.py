from typing import Any, Dict, List
from .base import ProfessionalSource
from .http_feed import FeedHttp, feed_http
from ..core.catalog import CITIES, CITY_CENTERS
from ..core.config import settings
from ..core.utils import fnv1a_32, seeded_rand

# Account types that appear on the map as professionals
LOCATED_ACCOUNT_TYPES = ("real_estate_office", "appraiser", "financing_provider")

class MockProfessionals(ProfessionalSource):
    """
    Synthetic public profiles for offices, appraisers and financing providers.
    Names are deliberately left blank on some rows so enrichment has work to do.
    """
    def __init__(self, count: int = 18):
        self.count = count

    async def located_professionals(self) -> List[Dict[str, Any]]:
        cities = list(CITY_CENTERS)
        out: List[Dict[str, Any]] = []
        for i in range(self.count):
            r = seeded_rand(fnv1a_32(f"pro-{i}"), 3)
            slug = cities[int(r[0] * len(cities)) % len(cities)]
            lat0, lon0 = CITY_CENTERS[slug]
            out.append({
                "id": f"pro-{i:04d}",
                "user_id": f"usr-pro-{i:03d}",
                "account_type": LOCATED_ACCOUNT_TYPES[i % len(LOCATED_ACCOUNT_TYPES)],
                "full_name": None if i % 4 == 0 else f"Professional {i}",
                "company_name": None,
                "city": CITIES[slug][1],
                "avatar_url": None,
                "latitude": round(lat0 + (r[1] - 0.5) * 0.2, 6),
                "longitude": round(lon0 + (r[2] - 0.5) * 0.2, 6),
            })
        return out

class HttpProfessionals(ProfessionalSource):
    def __init__(self, feed: FeedHttp):
        self.feed = feed

    async def located_professionals(self) -> List[Dict[str, Any]]:
        return await self.feed.select("profiles_public", {
            "select": "*",
            "account_type": f"in.({','.join(LOCATED_ACCOUNT_TYPES)})",
            "latitude": "not.is.null",
            "longitude": "not.is.null",
        })

def professionals_client() -> ProfessionalSource:
    if settings.FEED_PROVIDER == "http" and settings.FEED_BASE_URL:
        return HttpProfessionals(feed_http())
    return MockProfessionals()
