"""
Compound filtering and distance ranking over located entities.

Each criterion compiles to an independent predicate; only active criteria
produce one, and `all()` short-circuits on the first failure. Everything here
is synchronous and cheap enough to run on every slider movement.

Missing data policy: an entity that lacks a measured field (area, price,
rooms...) passes when no constraint on that field is active, and fails when
one is. Distance is the exception: an unknown distance means the user position
is unknown, so the distance constraint is skipped instead.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional, Sequence, TypeVar, Union

from ..core.catalog import city_slug
from ..core.errors import InvalidFilterRange
from ..core.geo import distance_km
from ..core.utils import normalize_text
from ..data.base import Coordinate, LocatedEntity, MarkerCategory, RankedEntity

logger = logging.getLogger(__name__)

Item = Union[LocatedEntity, RankedEntity]
T = TypeVar("T", LocatedEntity, RankedEntity)
Predicate = Callable[[LocatedEntity, Optional[float]], bool]

# Values UI selects send for "no constraint"
_UNCONSTRAINED = {"", "all"}


@dataclass(frozen=True)
class Range:
    """Inclusive [min, max]; either side may be open."""
    min: Optional[float] = None
    max: Optional[float] = None

    @property
    def active(self) -> bool:
        return self.min is not None or self.max is not None

    def validate(self) -> None:
        if self.min is not None and self.max is not None and self.min > self.max:
            raise InvalidFilterRange(f"min {self.min} > max {self.max}")

    def contains(self, value: Optional[float]) -> bool:
        if value is None:
            return False
        if self.min is not None and value < self.min:
            return False
        if self.max is not None and value > self.max:
            return False
        return True


def _clean(value):
    if isinstance(value, str) and value.strip().lower() in _UNCONSTRAINED:
        return None
    return value


@dataclass(frozen=True)
class FilterCriteria:
    listing_type: Optional[str] = None
    city: Optional[str] = None
    property_type: Optional[str] = None
    price: Range = field(default_factory=Range)
    area: Range = field(default_factory=Range)
    bedrooms: Optional[int] = None
    bathrooms: Optional[int] = None
    amenities: frozenset = field(default_factory=frozenset)
    max_distance_km: Optional[float] = None
    query: Optional[str] = None
    categories: frozenset = field(default_factory=frozenset)

    def __post_init__(self):
        # Frozen: normalise through object.__setattr__
        for name in ("listing_type", "city", "property_type", "query"):
            object.__setattr__(self, name, _clean(getattr(self, name)))
        object.__setattr__(self, "amenities", frozenset(a for a in (self.amenities or ()) if a))
        object.__setattr__(self, "categories", frozenset(MarkerCategory(c) for c in (self.categories or ())))

    @property
    def is_unconstrained(self) -> bool:
        return not build_predicates(self)


def build_predicates(criteria: FilterCriteria) -> List[Predicate]:
    preds: List[Predicate] = []

    if criteria.categories:
        cats = criteria.categories
        preds.append(lambda e, d: e.category in cats)
    if criteria.listing_type is not None:
        lt = criteria.listing_type
        preds.append(lambda e, d: e.listing_type == lt)
    if criteria.city is not None:
        wanted_city = city_slug(criteria.city)
        preds.append(lambda e, d: city_slug(e.city) == wanted_city)
    if criteria.property_type is not None:
        pt = criteria.property_type
        preds.append(lambda e, d: e.property_type == pt)

    for name in ("price", "area"):
        rng: Range = getattr(criteria, name)
        if not rng.active:
            continue
        try:
            rng.validate()
        except InvalidFilterRange as exc:
            # Reachable by dragging slider handles past each other: match nothing
            logger.debug("empty %s range: %s", name, exc)
            preds.append(lambda e, d: False)
            continue
        preds.append(lambda e, d, rng=rng, name=name: rng.contains(getattr(e, name)))

    if criteria.bedrooms is not None:
        beds = criteria.bedrooms
        preds.append(lambda e, d: e.bedrooms == beds)
    if criteria.bathrooms is not None:
        baths = criteria.bathrooms
        preds.append(lambda e, d: e.bathrooms == baths)
    if criteria.amenities:
        wanted = criteria.amenities
        preds.append(lambda e, d: wanted <= e.amenities)
    if criteria.max_distance_km is not None:
        limit = criteria.max_distance_km
        preds.append(lambda e, d: d is None or d <= limit)
    if criteria.query is not None:
        q = normalize_text(criteria.query)
        preds.append(lambda e, d: any(
            q in normalize_text(text) for text in (e.title, e.neighborhood, e.display_name) if text
        ))
    return preds


def _unwrap(item: Item) -> tuple[LocatedEntity, Optional[float]]:
    if isinstance(item, RankedEntity):
        return item.entity, item.distance_km
    return item, None


def apply_filters(entities: Sequence[T], criteria: FilterCriteria) -> List[T]:
    """Entities satisfying every active criterion, in input order."""
    preds = build_predicates(criteria)
    if not preds:
        return list(entities)
    out = []
    for item in entities:
        entity, distance = _unwrap(item)
        if all(p(entity, distance) for p in preds):
            out.append(item)
    return out


def rank(entities: Iterable[LocatedEntity], user_location: Optional[Coordinate]) -> List[RankedEntity]:
    """Attach the distance to the user, or None for every entity when the position is unknown."""
    if user_location is None:
        return [RankedEntity(e) for e in entities]
    return [RankedEntity(e, distance_km(user_location, e.coordinate)) for e in entities]


def rank_by_distance(entities: Sequence[T], ascending: bool = True) -> List[T]:
    """
    Stable sort by distance. Unknown distances go last, keeping their
    relative input order, whichever direction is requested.
    """
    def key(item: Item):
        _, d = _unwrap(item)
        if d is None:
            return (1, 0.0)
        return (0, d if ascending else -d)

    return sorted(entities, key=key)
