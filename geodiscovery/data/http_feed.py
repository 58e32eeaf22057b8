from typing import Any, Dict, List
import httpx
from ..core.config import settings

class FeedHttp:
    """
    Minimal read-only client for the managed backend's PostgREST endpoint.
    Every source shares it; each call opens a short-lived AsyncClient.
    """
    def __init__(self, base_url: str, api_key: str | None = None, timeout: float | None = None):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout if timeout is not None else settings.FEED_TIMEOUT_SECONDS

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["apikey"] = self.api_key
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def select(self, table: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            r = await client.get(f"{self.base_url}/{table}", params=params, headers=self._headers())
            r.raise_for_status()
            rows = r.json()
            if not isinstance(rows, list):
                raise ValueError(f"unexpected payload from {table}: {type(rows).__name__}")
            return rows

def feed_http() -> FeedHttp:
    return FeedHttp(settings.FEED_BASE_URL or "", settings.FEED_API_KEY)
