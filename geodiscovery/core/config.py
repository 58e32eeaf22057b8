import os
from pydantic import BaseModel

class Settings(BaseModel):
    # Basic
    ENV: str = os.getenv("ENV", "dev")
    CACHE_TTL_SECONDS: int = int(os.getenv("CACHE_TTL_SECONDS", "60"))

    # Entity feed (listings, professionals, developer projects)
    FEED_PROVIDER: str = os.getenv("FEED_PROVIDER", "mock")        # mock | http
    FEED_BASE_URL: str | None = os.getenv("FEED_BASE_URL")          # e.g. https://<project>.supabase.co/rest/v1
    FEED_API_KEY: str | None = os.getenv("FEED_API_KEY")
    FEED_TIMEOUT_SECONDS: float = float(os.getenv("FEED_TIMEOUT_SECONDS", "15"))
    LISTINGS_LIMIT: int = int(os.getenv("LISTINGS_LIMIT", "200"))
    LISTINGS_APPROVED_ONLY: bool = os.getenv("LISTINGS_APPROVED_ONLY", "true").lower() == "true"

    # Geolocation
    GEO_PROVIDER: str = os.getenv("GEO_PROVIDER", "static")        # static | http
    GEO_BASE_URL: str | None = os.getenv("GEO_BASE_URL")
    GEO_STATIC_LAT: str | None = os.getenv("GEO_STATIC_LAT")
    GEO_STATIC_LON: str | None = os.getenv("GEO_STATIC_LON")
    GEO_TIMEOUT_SECONDS: float = float(os.getenv("GEO_TIMEOUT_SECONDS", "10"))
    GEO_MAX_AGE_SECONDS: float = float(os.getenv("GEO_MAX_AGE_SECONDS", "30"))

    # Map (defaults centre on Riyadh)
    MAP_TILE_URL: str = os.getenv("MAP_TILE_URL", "https://{s}.tile.openstreetmap.org/{z}/{x}/{y}.png")
    MAP_TILE_ATTRIBUTION: str = os.getenv("MAP_TILE_ATTRIBUTION", "&copy; OpenStreetMap contributors")
    MAP_DEFAULT_LAT: float = float(os.getenv("MAP_DEFAULT_LAT", "24.7136"))
    MAP_DEFAULT_LON: float = float(os.getenv("MAP_DEFAULT_LON", "46.6753"))
    MAP_DEFAULT_ZOOM: int = int(os.getenv("MAP_DEFAULT_ZOOM", "6"))
    MAP_MAX_ZOOM: int = int(os.getenv("MAP_MAX_ZOOM", "19"))
    MAP_FIT_PADDING_PX: int = int(os.getenv("MAP_FIT_PADDING_PX", "50"))
    MAP_WIDTH_PX: int = int(os.getenv("MAP_WIDTH_PX", "1024"))
    MAP_HEIGHT_PX: int = int(os.getenv("MAP_HEIGHT_PX", "600"))

    # Filtering
    FILTER_DEBOUNCE_MS: int = int(os.getenv("FILTER_DEBOUNCE_MS", "200"))
    FILTER_DEBOUNCE_MIN_ENTITIES: int = int(os.getenv("FILTER_DEBOUNCE_MIN_ENTITIES", "500"))

    # Security
    API_KEY: str | None = os.getenv("API_KEY")
    RATE_LIMIT_RPM: int = int(os.getenv("RATE_LIMIT_RPM", "120"))

    # CORS
    ALLOW_ORIGINS: str = os.getenv("ALLOW_ORIGINS", "*")

    # Cache
    USE_REDIS: bool = os.getenv("USE_REDIS", "false").lower() == "true"
    REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")

    # Metrics
    PROMETHEUS_ENABLED: bool = os.getenv("PROMETHEUS_ENABLED", "true").lower() == "true"

settings = Settings()
