"""
Unit tests for the filter engine.

Tests:
- Unconstrained criteria are the identity
- Each constraint kind, and their conjunction
- Missing-data and empty-range policies
- Distance ranking and stable sorting
"""

from __future__ import annotations

import pytest

from geodiscovery.core.errors import InvalidFilterRange
from geodiscovery.data.base import Coordinate, EntityKind, MarkerCategory, RankedEntity
from geodiscovery.services.filter_engine import (
    FilterCriteria,
    Range,
    apply_filters,
    build_predicates,
    rank,
    rank_by_distance,
)


@pytest.fixture
def catalogue(make_entity):
    return [
        make_entity("1", price=500_000.0, area=120.0, bedrooms=2, amenities=frozenset({"parking"})),
        make_entity("2", price=1_500_000.0, area=None, bedrooms=4, property_type="villa",
                    amenities=frozenset({"parking", "pool"})),
        make_entity("3", lat=21.54, lon=39.17, category=MarkerCategory.RENT, listing_type="rent",
                    city="Jeddah", price=40_000.0, area=90.0, bedrooms=1, neighborhood="Al Rawdah"),
        make_entity("o1", kind=EntityKind.PROFESSIONAL, category=MarkerCategory.OFFICE, title="Nakheel",
                    display_name="Nakheel Realty", listing_type=None, property_type=None, price=None,
                    area=None, bedrooms=None, bathrooms=None),
    ]


def _ids(items):
    return [getattr(i, "entity", i).id for i in items]


class TestRange:
    """Tests for Range."""

    def test_inactive_by_default(self) -> None:
        assert not Range().active

    def test_inclusive_bounds(self) -> None:
        r = Range(100, 200)
        assert r.contains(100) and r.contains(200)
        assert not r.contains(99.9)

    def test_open_sides(self) -> None:
        assert Range(min=10).contains(10_000)
        assert Range(max=10).contains(-5)

    def test_missing_value_never_contained(self) -> None:
        assert not Range(0, 10).contains(None)

    def test_validate_rejects_inverted(self) -> None:
        with pytest.raises(InvalidFilterRange):
            Range(10, 5).validate()


class TestCriteria:
    """Tests for FilterCriteria normalisation."""

    def test_all_and_blank_mean_unconstrained(self) -> None:
        c = FilterCriteria(listing_type="all", city="", property_type="  ALL ", query="")
        assert c.listing_type is None and c.city is None and c.property_type is None and c.query is None
        assert c.is_unconstrained

    def test_categories_coerced(self) -> None:
        c = FilterCriteria(categories={"sale", "office"})
        assert c.categories == frozenset({MarkerCategory.SALE, MarkerCategory.OFFICE})

    def test_unknown_category_rejected(self) -> None:
        with pytest.raises(ValueError):
            FilterCriteria(categories={"castle"})

    def test_active_constraints_produce_predicates(self) -> None:
        c = FilterCriteria(listing_type="sale", price=Range(max=10), bedrooms=3)
        assert len(build_predicates(c)) == 3


class TestApplyFilters:
    """Tests for apply_filters."""

    def test_unconstrained_is_identity(self, catalogue) -> None:
        out = apply_filters(catalogue, FilterCriteria())
        assert out == catalogue
        assert out is not catalogue

    def test_result_is_subset_in_input_order(self, catalogue) -> None:
        out = apply_filters(catalogue, FilterCriteria(city="riyadh"))
        assert _ids(out) == ["1", "2", "o1"]

    def test_city_matches_any_label(self, catalogue) -> None:
        assert _ids(apply_filters(catalogue, FilterCriteria(city="جدة"))) == ["3"]
        assert _ids(apply_filters(catalogue, FilterCriteria(city="jeddah"))) == ["3"]

    def test_listing_type(self, catalogue) -> None:
        assert _ids(apply_filters(catalogue, FilterCriteria(listing_type="rent"))) == ["3"]

    def test_price_range(self, catalogue) -> None:
        out = apply_filters(catalogue, FilterCriteria(price=Range(100_000, 1_000_000)))
        assert _ids(out) == ["1"]

    def test_missing_area_passes_without_area_filter(self, catalogue) -> None:
        out = apply_filters(catalogue, FilterCriteria(property_type="villa"))
        assert _ids(out) == ["2"]

    def test_missing_area_fails_active_area_filter(self, catalogue) -> None:
        out = apply_filters(catalogue, FilterCriteria(area=Range(0, 10_000)))
        assert "2" not in _ids(out)
        assert _ids(out) == ["1", "3"]

    def test_inverted_range_matches_nothing(self, catalogue) -> None:
        assert apply_filters(catalogue, FilterCriteria(price=Range(2_000_000, 1))) == []

    def test_exact_bedrooms(self, catalogue) -> None:
        assert _ids(apply_filters(catalogue, FilterCriteria(bedrooms=4))) == ["2"]

    def test_amenities_all_required(self, catalogue) -> None:
        assert _ids(apply_filters(catalogue, FilterCriteria(amenities={"parking"}))) == ["1", "2"]
        assert _ids(apply_filters(catalogue, FilterCriteria(amenities={"parking", "pool"}))) == ["2"]

    def test_query_matches_title_neighborhood_and_name(self, catalogue) -> None:
        assert _ids(apply_filters(catalogue, FilterCriteria(query="rawdah"))) == ["3"]
        assert _ids(apply_filters(catalogue, FilterCriteria(query="NAKHEEL realty"))) == ["o1"]

    def test_categories(self, catalogue) -> None:
        out = apply_filters(catalogue, FilterCriteria(categories={"office", "rent"}))
        assert _ids(out) == ["3", "o1"]

    def test_conjunction(self, catalogue) -> None:
        c = FilterCriteria(listing_type="sale", price=Range(min=1_000_000), amenities={"pool"})
        assert _ids(apply_filters(catalogue, c)) == ["2"]

    def test_every_result_satisfies_every_predicate(self, catalogue, riyadh) -> None:
        ranked = rank(catalogue, riyadh)
        c = FilterCriteria(city="riyadh", max_distance_km=50, price=Range(max=2_000_000))
        preds = build_predicates(c)
        for item in apply_filters(ranked, c):
            assert all(p(item.entity, item.distance_km) for p in preds)


class TestDistanceFiltering:
    """Tests for distance ranking and the max-distance constraint."""

    def test_rank_without_location_has_no_distances(self, catalogue) -> None:
        assert all(r.distance_km is None for r in rank(catalogue, None))

    def test_rank_with_location(self, catalogue, riyadh) -> None:
        ranked = rank(catalogue, riyadh)
        assert ranked[0].distance_km < 10
        assert ranked[2].distance_km == pytest.approx(848, abs=6)

    def test_max_distance(self, catalogue, riyadh) -> None:
        out = apply_filters(rank(catalogue, riyadh), FilterCriteria(max_distance_km=100))
        assert _ids(out) == ["1", "2", "o1"]

    def test_max_distance_skipped_without_location(self, catalogue) -> None:
        out = apply_filters(rank(catalogue, None), FilterCriteria(max_distance_km=1))
        assert len(out) == len(catalogue)


class TestRankByDistance:
    """Tests for rank_by_distance."""

    def test_ascending(self, make_entity, riyadh) -> None:
        far = make_entity("far", lat=21.54, lon=39.17)
        near = make_entity("near", lat=24.72, lon=46.68)
        mid = make_entity("mid", lat=24.0, lon=46.0)
        out = rank_by_distance(rank([far, near, mid], riyadh))
        assert _ids(out) == ["near", "mid", "far"]

    def test_descending(self, make_entity, riyadh) -> None:
        far = make_entity("far", lat=21.54, lon=39.17)
        near = make_entity("near", lat=24.72, lon=46.68)
        out = rank_by_distance(rank([near, far], riyadh), ascending=False)
        assert _ids(out) == ["far", "near"]

    def test_stable_for_equal_distances(self, make_entity) -> None:
        items = [RankedEntity(make_entity(str(i)), 5.0) for i in range(5)]
        assert _ids(rank_by_distance(items)) == ["0", "1", "2", "3", "4"]
        assert _ids(rank_by_distance(items, ascending=False)) == ["0", "1", "2", "3", "4"]

    def test_unknown_distances_last(self, make_entity) -> None:
        items = [
            RankedEntity(make_entity("a"), None),
            RankedEntity(make_entity("b"), 3.0),
            RankedEntity(make_entity("c"), None),
            RankedEntity(make_entity("d"), 1.0),
        ]
        assert _ids(rank_by_distance(items)) == ["d", "b", "a", "c"]
        assert _ids(rank_by_distance(items, ascending=False)) == ["b", "d", "a", "c"]
