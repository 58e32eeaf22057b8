import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol

from ..core.errors import InvalidCoordinate

# ----- Data shapes (thin & explicit) -----

@dataclass(frozen=True)
class Coordinate:
    latitude: float
    longitude: float

    def __post_init__(self):
        lat, lon = self.latitude, self.longitude
        if not (isinstance(lat, (int, float)) and isinstance(lon, (int, float))):
            raise InvalidCoordinate(f"non-numeric coordinate: {lat!r}, {lon!r}")
        if not (math.isfinite(lat) and math.isfinite(lon)):
            raise InvalidCoordinate(f"non-finite coordinate: {lat!r}, {lon!r}")
        if not -90.0 <= lat <= 90.0:
            raise InvalidCoordinate(f"latitude out of range: {lat!r}")
        if not -180.0 <= lon <= 180.0:
            raise InvalidCoordinate(f"longitude out of range: {lon!r}")

class EntityKind(str, Enum):
    LISTING = "listing"
    PROFESSIONAL = "professional"
    DEVELOPER_PROJECT = "developer_project"

class MarkerCategory(str, Enum):
    SALE = "sale"
    RENT = "rent"
    OFFICE = "office"
    APPRAISER = "appraiser"
    FINANCING = "financing"
    DEVELOPER = "developer"

@dataclass(frozen=True)
class LocatedEntity:
    kind: EntityKind
    id: str
    coordinate: Coordinate
    category: MarkerCategory
    # Display fields
    title: str = ""
    display_name: str = ""     # resolved owner / company name (best effort)
    city: Optional[str] = None
    neighborhood: Optional[str] = None
    image_url: Optional[str] = None
    owner_id: Optional[str] = None
    # Filterable attributes; None means "not measured"
    listing_type: Optional[str] = None
    property_type: Optional[str] = None
    price: Optional[float] = None
    area: Optional[float] = None
    bedrooms: Optional[int] = None
    bathrooms: Optional[int] = None
    amenities: frozenset = field(default_factory=frozenset)

    @property
    def key(self) -> str:
        """Identity across kinds; ids are only unique within one source."""
        return f"{self.kind.value}:{self.id}"

@dataclass(frozen=True)
class RankedEntity:
    entity: LocatedEntity
    distance_km: Optional[float] = None   # None when the user position is unknown

    @property
    def key(self) -> str:
        return self.entity.key

@dataclass
class AggregateResult:
    entities: List[LocatedEntity]
    failures: Dict[str, str] = field(default_factory=dict)   # source -> error text

# ----- Protocols (interfaces) -----
# Sources return raw rows in their own schema; the aggregator normalises them.

class ListingSource(Protocol):
    async def located_listings(self, limit: int, approved_only: bool) -> List[Dict[str, Any]]: ...

class ProfessionalSource(Protocol):
    async def located_professionals(self) -> List[Dict[str, Any]]: ...

class DeveloperProjectSource(Protocol):
    async def located_projects(self) -> List[Dict[str, Any]]: ...

class ProfileDirectory(Protocol):
    async def display_names(self, owner_ids: List[str]) -> Dict[str, str]: ...

class GeolocationProvider(Protocol):
    async def locate(self) -> Coordinate: ...
