from fastapi import APIRouter, Depends, Header, HTTPException, Query, Response
from ..schemas import LegendItem, SearchResponse
from ..services.discovery_service import DiscoveryService, legend_items
from ..services.filter_engine import FilterCriteria, Range
from ..services.session import SORT_FARTHEST, SORT_NEAREST
from ..core.errors import InvalidCoordinate
from ..core.security import require_api_key, rate_limit
from ..data.base import Coordinate

router = APIRouter()

def service_dep() -> DiscoveryService:
    # Clients are cheap to build; a fresh service per request keeps handlers stateless.
    return DiscoveryService()

def _split(value: str | None) -> list[str]:
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]

@router.get("/entities", response_model=SearchResponse)
async def get_entities(
    response: Response,
    listing_type: str | None = Query(default=None, description="sale | rent | all"),
    city: str | None = None,
    property_type: str | None = None,
    min_price: float | None = Query(default=None, ge=0),
    max_price: float | None = Query(default=None, ge=0),
    min_area: float | None = Query(default=None, ge=0),
    max_area: float | None = Query(default=None, ge=0),
    bedrooms: int | None = Query(default=None, ge=0),
    bathrooms: int | None = Query(default=None, ge=0),
    amenities: str | None = Query(default=None, description="comma-separated; all must match"),
    categories: str | None = Query(default=None, description="comma-separated marker categories"),
    max_distance_km: float | None = Query(default=None, gt=0),
    q: str | None = None,
    lat: float | None = None,
    lon: float | None = None,
    sort: str | None = Query(default=None, description=f"{SORT_NEAREST} | {SORT_FARTHEST}"),
    if_none_match: str | None = Header(default=None, convert_underscores=False),
    _auth = Depends(require_api_key),     # API key guard
    _lim  = Depends(rate_limit),          # Rate limiting
    svc: DiscoveryService = Depends(service_dep),
):
    if (lat is None) != (lon is None):
        raise HTTPException(status_code=422, detail="lat and lon must be given together")
    user_location = None
    if lat is not None:
        try:
            user_location = Coordinate(lat, lon)
        except InvalidCoordinate as exc:
            raise HTTPException(status_code=422, detail=str(exc))

    if sort not in (None, SORT_NEAREST, SORT_FARTHEST):
        raise HTTPException(status_code=422, detail=f"sort must be {SORT_NEAREST} or {SORT_FARTHEST}")

    try:
        criteria = FilterCriteria(
            listing_type=listing_type,
            city=city,
            property_type=property_type,
            price=Range(min_price, max_price),
            area=Range(min_area, max_area),
            bedrooms=bedrooms,
            bathrooms=bathrooms,
            amenities=frozenset(_split(amenities)),
            max_distance_km=max_distance_km,
            query=q,
            categories=frozenset(_split(categories)),
        )
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))

    payload, from_cache, etag = await svc.search(criteria, user_location=user_location, sort=sort)
    if if_none_match and if_none_match == etag:
        return Response(status_code=304, headers={"ETag": etag})
    payload["cached"] = from_cache
    payload["etag"] = etag
    response.headers["ETag"] = etag
    return payload

@router.get("/legend", response_model=list[LegendItem])
def get_legend(_auth = Depends(require_api_key)):
    return legend_items()
