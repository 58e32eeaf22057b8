from pydantic import BaseModel, Field, model_validator

class CoordinateOut(BaseModel):
    latitude: float
    longitude: float

class EntityOut(BaseModel):
    key: str
    kind: str
    id: str
    category: str
    color: str
    title: str
    display_name: str = ""
    city: str | None = None
    city_label: str | None = None
    neighborhood: str | None = None
    image_url: str | None = None
    listing_type: str | None = None
    property_type: str | None = None
    property_type_label: str | None = None
    price: float | None = None
    area: float | None = None
    bedrooms: int | None = None
    bathrooms: int | None = None
    amenities: list[str] = []
    latitude: float
    longitude: float
    distance_km: float | None = None
    detail_route: str
    popup: str = ""

class ViewportOut(BaseModel):
    center: CoordinateOut
    zoom: int

class SearchResponse(BaseModel):
    count: int
    items: list[EntityOut]
    user_location: CoordinateOut | None = None
    distance_enabled: bool = False
    failed_sources: dict[str, str] = {}
    viewport: ViewportOut
    cached: bool = False
    etag: str | None = None

class LegendItem(BaseModel):
    category: str
    color: str
    label_en: str
    label_ar: str

class AmortizationRequest(BaseModel):
    principal: float | None = None
    property_price: float | None = None
    down_payment: float = 0
    annual_rate_percent: float = Field(ge=0)
    term_years: float = Field(gt=0)

    @model_validator(mode="after")
    def _principal_or_price(self):
        if self.principal is None and self.property_price is None:
            raise ValueError("either principal or property_price is required")
        return self

class AmortizationResponse(BaseModel):
    principal: float
    monthly_payment: float
    total_payment: float
    total_interest: float
    number_of_payments: int
    down_payment_percent: int | None = None
