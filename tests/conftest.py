"""Shared pytest fixtures for the test suite.

Fixture overview
----------------
riyadh / jeddah      : reference coordinates used across distance tests
make_entity          : factory for LocatedEntity with sensible defaults
listing_rows         : a handful of raw `properties` rows
professional_rows    : raw `profiles_public` rows (one per account type)
project_rows         : raw `developer_projects` rows
row_source           : in-memory feed class (rows or a raised error)
aggregator           : EntityAggregator wired to in-memory sources
clean_cache          : (autouse) empties the in-process response cache
"""

from __future__ import annotations

import pytest

from geodiscovery.core.cache import cache
from geodiscovery.data.base import Coordinate, EntityKind, LocatedEntity, MarkerCategory
from geodiscovery.data.profiles_client import MockProfiles
from geodiscovery.services.aggregator import EntityAggregator


# ── In-memory sources ────────────────────────────────────────────────────────


class RowSource:
    """Serves fixed rows for any of the three entity feeds, or raises `error`."""

    def __init__(self, rows=None, error: Exception | None = None):
        self.rows = list(rows or [])
        self.error = error
        self.calls = 0

    async def _serve(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.rows)

    async def located_listings(self, limit: int, approved_only: bool):
        rows = await self._serve()
        if approved_only:
            rows = [r for r in rows if r.get("is_approved", True)]
        return rows[:limit]

    async def located_professionals(self):
        return await self._serve()

    async def located_projects(self):
        return await self._serve()


class FailingProfiles:
    async def display_names(self, owner_ids):
        raise RuntimeError("profiles down")


@pytest.fixture
def row_source():
    """The RowSource class, for tests that need their own sources."""
    return RowSource


@pytest.fixture
def failing_profiles() -> FailingProfiles:
    return FailingProfiles()


# ── Domain primitives ────────────────────────────────────────────────────────


@pytest.fixture
def riyadh() -> Coordinate:
    return Coordinate(24.7136, 46.6753)


@pytest.fixture
def jeddah() -> Coordinate:
    return Coordinate(21.5433, 39.1728)


@pytest.fixture
def make_entity():
    """Build a listing (by default) at the given position; any field may be overridden."""
    def _make(id: str = "1", lat: float = 24.7, lon: float = 46.7, **overrides) -> LocatedEntity:
        fields = dict(
            kind=EntityKind.LISTING,
            id=id,
            coordinate=Coordinate(lat, lon),
            category=MarkerCategory.SALE,
            title=f"Listing {id}",
            city="الرياض",
            listing_type="sale",
            property_type="apartment",
            price=1_000_000.0,
            area=150.0,
            bedrooms=3,
            bathrooms=2,
        )
        fields.update(overrides)
        return LocatedEntity(**fields)
    return _make


# ── Raw feed rows ────────────────────────────────────────────────────────────


@pytest.fixture
def listing_rows() -> list[dict]:
    return [
        {"id": "p1", "user_id": "u1", "title": "Villa in Malqa", "listing_type": "sale",
         "property_type": "villa", "city": "الرياض", "neighborhood": "Al Malqa", "price": 2_500_000,
         "area": 400, "bedrooms": 5, "bathrooms": 4, "amenities": ["pool", "parking"],
         "images": ["https://img/p1.jpg"], "is_approved": True, "latitude": 24.80, "longitude": 46.62},
        {"id": "p2", "user_id": "u2", "title": "Flat in Rawdah", "listing_type": "rent",
         "property_type": "apartment", "city": "جدة", "neighborhood": "Al Rawdah", "price": 45_000,
         "area": None, "bedrooms": 2, "bathrooms": 1, "amenities": [], "images": [],
         "is_approved": True, "latitude": 21.56, "longitude": 39.15},
        {"id": "p3", "title": "No position", "listing_type": "sale", "price": 900_000,
         "is_approved": True, "latitude": None, "longitude": 46.7},
        {"id": "p4", "title": "Pending review", "listing_type": "sale", "price": 700_000,
         "is_approved": False, "latitude": 24.7, "longitude": 46.7},
    ]


@pytest.fixture
def professional_rows() -> list[dict]:
    return [
        {"id": "o1", "user_id": "usr-pro-001", "account_type": "real_estate_office",
         "company_name": "Nakheel Realty", "city": "Riyadh", "latitude": 24.70, "longitude": 46.68},
        {"id": "a1", "user_id": "usr-pro-002", "account_type": "appraiser",
         "full_name": None, "city": "Jeddah", "latitude": 21.50, "longitude": 39.20},
        {"id": "f1", "user_id": "usr-pro-003", "account_type": "financing_provider",
         "company_name": "Rajhi Finance", "city": "Dammam", "latitude": 26.42, "longitude": 50.09},
        {"id": "x1", "user_id": "usr-pro-004", "account_type": "individual",
         "full_name": "Not on the map", "latitude": 24.0, "longitude": 46.0},
    ]


@pytest.fixture
def project_rows() -> list[dict]:
    return [
        {"id": "d1", "user_id": "usr-dev-001", "title": "Sedra", "project_type": "villa",
         "city": "الرياض", "price_from": 1_200_000, "price_to": 3_000_000, "area_from": 250,
         "area_to": 600, "images": [], "latitude": 24.85, "longitude": 46.70},
    ]


@pytest.fixture
def aggregator(listing_rows, professional_rows, project_rows) -> EntityAggregator:
    return EntityAggregator(
        listings=RowSource(listing_rows),
        professionals=RowSource(professional_rows),
        projects=RowSource(project_rows),
        profiles=MockProfiles(),
        listings_limit=200,
        approved_only=True,
    )


@pytest.fixture(autouse=True)
def clean_cache():
    cache.clear()
    yield
    cache.clear()
