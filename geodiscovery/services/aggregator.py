import asyncio
import logging
import time
from dataclasses import replace
from typing import Any, Awaitable, Dict, List, Optional

from ..core.config import settings
from ..core.errors import InvalidCoordinate, SourceFetchFailed
from ..core.metrics import SOURCE_FAILURES, SOURCE_LATENCY
from ..core.utils import as_float, as_int
from ..data.base import (
    AggregateResult, Coordinate, DeveloperProjectSource, EntityKind, ListingSource,
    LocatedEntity, MarkerCategory, ProfessionalSource, ProfileDirectory,
)
from ..data.listings_client import listings_client
from ..data.professionals_client import professionals_client
from ..data.profiles_client import profiles_client
from ..data.projects_client import projects_client

logger = logging.getLogger(__name__)

LISTINGS = "listings"
PROFESSIONALS = "professionals"
DEVELOPER_PROJECTS = "developer_projects"

PROFESSIONAL_CATEGORIES = {
    "real_estate_office": MarkerCategory.OFFICE,
    "appraiser": MarkerCategory.APPRAISER,
    "financing_provider": MarkerCategory.FINANCING,
}

# ----- Normalisation: source row -> LocatedEntity (or None to drop) -----

def _coordinate(row: Dict[str, Any]) -> Optional[Coordinate]:
    lat, lon = as_float(row.get("latitude")), as_float(row.get("longitude"))
    if lat is None or lon is None:
        return None
    try:
        return Coordinate(lat, lon)
    except InvalidCoordinate:
        logger.debug("dropping row %s with invalid coordinate", row.get("id"))
        return None

def _first(values: Any) -> Optional[str]:
    if isinstance(values, (list, tuple)) and values:
        return values[0]
    return None

def _amenities(values: Any) -> frozenset:
    if not isinstance(values, (list, tuple, set, frozenset)):
        return frozenset()
    return frozenset(str(v) for v in values if v)

def normalize_listing(row: Dict[str, Any]) -> Optional[LocatedEntity]:
    coordinate = _coordinate(row)
    if coordinate is None or row.get("id") is None:
        return None
    listing_type = row.get("listing_type")
    return LocatedEntity(
        kind=EntityKind.LISTING,
        id=str(row["id"]),
        coordinate=coordinate,
        category=MarkerCategory.SALE if listing_type == "sale" else MarkerCategory.RENT,
        title=row.get("title") or "",
        city=row.get("city"),
        neighborhood=row.get("neighborhood"),
        image_url=_first(row.get("images")),
        owner_id=row.get("user_id"),
        listing_type=listing_type,
        property_type=row.get("property_type"),
        price=as_float(row.get("price")),
        area=as_float(row.get("area")),
        bedrooms=as_int(row.get("bedrooms")),
        bathrooms=as_int(row.get("bathrooms")),
        amenities=_amenities(row.get("amenities")),
    )

def normalize_professional(row: Dict[str, Any]) -> Optional[LocatedEntity]:
    category = PROFESSIONAL_CATEGORIES.get(str(row.get("account_type") or ""))
    coordinate = _coordinate(row)
    entity_id = row.get("id") or row.get("user_id")
    if category is None or coordinate is None or entity_id is None:
        return None
    name = row.get("company_name") or row.get("full_name") or ""
    return LocatedEntity(
        kind=EntityKind.PROFESSIONAL,
        id=str(entity_id),
        coordinate=coordinate,
        category=category,
        title=name,
        display_name=name,
        city=row.get("city"),
        image_url=row.get("company_logo") or row.get("avatar_url"),
        owner_id=row.get("user_id"),
    )

def normalize_project(row: Dict[str, Any]) -> Optional[LocatedEntity]:
    coordinate = _coordinate(row)
    if coordinate is None or row.get("id") is None:
        return None
    # Projects advertise brackets; the lower bound is what range filters see
    return LocatedEntity(
        kind=EntityKind.DEVELOPER_PROJECT,
        id=str(row["id"]),
        coordinate=coordinate,
        category=MarkerCategory.DEVELOPER,
        title=row.get("title") or "",
        city=row.get("city"),
        image_url=_first(row.get("images")),
        owner_id=row.get("user_id"),
        property_type=row.get("project_type"),
        price=as_float(row.get("price_from")),
        area=as_float(row.get("area_from")),
        amenities=_amenities(row.get("amenities")),
    )

NORMALIZERS = {
    LISTINGS: normalize_listing,
    PROFESSIONALS: normalize_professional,
    DEVELOPER_PROJECTS: normalize_project,
}


class EntityAggregator:
    """
    Fetches the three located-entity sources concurrently and merges them into
    one list of `LocatedEntity`. A failing source is logged and skipped; the
    others still make it into the result.
    """
    def __init__(
        self,
        listings: ListingSource | None = None,
        professionals: ProfessionalSource | None = None,
        projects: DeveloperProjectSource | None = None,
        profiles: ProfileDirectory | None = None,
        listings_limit: int | None = None,
        approved_only: bool | None = None,
    ):
        self.listings = listings or listings_client()
        self.professionals = professionals or professionals_client()
        self.projects = projects or projects_client()
        self.profiles = profiles or profiles_client()
        self.listings_limit = listings_limit if listings_limit is not None else settings.LISTINGS_LIMIT
        self.approved_only = approved_only if approved_only is not None else settings.LISTINGS_APPROVED_ONLY

    async def fetch_entities(self) -> List[LocatedEntity]:
        return (await self.fetch()).entities

    async def fetch(self) -> AggregateResult:
        sources = {
            LISTINGS: self.listings.located_listings(self.listings_limit, self.approved_only),
            PROFESSIONALS: self.professionals.located_professionals(),
            DEVELOPER_PROJECTS: self.projects.located_projects(),
        }
        results = await asyncio.gather(
            *(self._fetch_source(name, call) for name, call in sources.items()),
            return_exceptions=True,
        )

        entities: List[LocatedEntity] = []
        failures: Dict[str, str] = {}
        for name, result in zip(sources, results):
            if isinstance(result, SourceFetchFailed):
                SOURCE_FAILURES.labels(source=name).inc()
                logger.warning("entity source failed, continuing without it",
                               extra={"source": name, "reason": result.detail})
                failures[name] = result.detail or "error"
                continue
            if isinstance(result, BaseException):
                raise result
            entities.extend(result)

        entities = await self._enrich_display_names(entities)
        logger.info("aggregated located entities", extra={"count": len(entities), "failures": failures or None})
        return AggregateResult(entities=entities, failures=failures)

    async def _fetch_source(self, name: str, call: Awaitable[List[Dict[str, Any]]]) -> List[LocatedEntity]:
        start = time.perf_counter()
        try:
            rows = list(await call or [])
        except Exception as exc:
            raise SourceFetchFailed(name, str(exc) or type(exc).__name__) from exc
        finally:
            SOURCE_LATENCY.labels(source=name).observe(time.perf_counter() - start)
        return self._normalize(name, rows)

    def _normalize(self, name: str, rows: List[Any]) -> List[LocatedEntity]:
        normalize = NORMALIZERS[name]
        kept: List[LocatedEntity] = []
        for row in rows:
            if not isinstance(row, dict):
                continue
            try:
                entity = normalize(row)
            except Exception as exc:
                # A malformed row is skipped on its own
                logger.warning("skipping malformed row",
                               extra={"source": name, "reason": f"{type(exc).__name__}: {exc}"})
                continue
            if entity is not None:
                kept.append(entity)
        if len(kept) != len(rows):
            logger.debug("dropped unusable rows", extra={"source": name, "count": len(rows) - len(kept)})
        return kept

    async def _enrich_display_names(self, entities: List[LocatedEntity]) -> List[LocatedEntity]:
        """Best-effort owner-name join; failure leaves names blank, never drops entities."""
        wanted = sorted({
            e.owner_id for e in entities
            if e.owner_id and e.kind is not EntityKind.LISTING and not e.display_name
        })
        if not wanted:
            return entities
        try:
            names = await self.profiles.display_names(wanted)
        except Exception as exc:
            logger.warning("display name lookup failed", extra={"source": "profiles", "reason": str(exc)})
            names = {}

        out = []
        for e in entities:
            if e.owner_id in names and not e.display_name:
                name = names[e.owner_id]
                e = replace(e, display_name=name, title=e.title or name)
            out.append(e)
        return out
