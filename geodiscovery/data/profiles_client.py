from typing import Dict, List
from .base import ProfileDirectory
from .http_feed import FeedHttp, feed_http
from ..core.config import settings

class MockProfiles(ProfileDirectory):
    """
    Resolves owner ids to a readable name. Ids it has never seen stay unresolved.
    """
    def __init__(self, names: Dict[str, str] | None = None):
        self.names = names

    async def display_names(self, owner_ids: List[str]) -> Dict[str, str]:
        if self.names is not None:
            return {oid: self.names[oid] for oid in owner_ids if oid in self.names}
        out = {}
        for oid in owner_ids:
            if oid.startswith("usr-dev-"):
                out[oid] = f"Developer {oid.rsplit('-', 1)[-1]}"
            elif oid.startswith("usr-pro-"):
                out[oid] = f"Company {oid.rsplit('-', 1)[-1]}"
        return out

class HttpProfiles(ProfileDirectory):
    def __init__(self, feed: FeedHttp):
        self.feed = feed

    async def display_names(self, owner_ids: List[str]) -> Dict[str, str]:
        if not owner_ids:
            return {}
        rows = await self.feed.select("profiles", {
            "select": "user_id,full_name,company_name",
            "user_id": f"in.({','.join(owner_ids)})",
        })
        out = {}
        for row in rows:
            name = row.get("company_name") or row.get("full_name")
            if row.get("user_id") and name:
                out[row["user_id"]] = name
        return out

def profiles_client() -> ProfileDirectory:
    if settings.FEED_PROVIDER == "http" and settings.FEED_BASE_URL:
        return HttpProfiles(feed_http())
    return MockProfiles()
