"""
Static lookup tables shared by the filter engine, the map and the API:
marker legend, property types and the city catalogue.

Cities are stored under a slug with Arabic and English labels; feed rows and
user input may use any of the three, so matching goes through `city_slug`.
"""

from __future__ import annotations

from .utils import normalize_text
from ..data.base import MarkerCategory

# Category -> (colour, English label, Arabic label)
LEGEND = {
    MarkerCategory.SALE: ("#22c55e", "Properties for sale", "عقارات للبيع"),
    MarkerCategory.RENT: ("#3b82f6", "Properties for rent", "عقارات للإيجار"),
    MarkerCategory.FINANCING: ("#ef4444", "Financing providers", "جهات تمويلية"),
    MarkerCategory.APPRAISER: ("#eab308", "Real-estate appraisers", "مقيمون عقاريون"),
    MarkerCategory.OFFICE: ("#c0c0c0", "Real-estate offices", "مكاتب عقارية"),
    MarkerCategory.DEVELOPER: ("#8b5cf6", "Development projects", "مشاريع تطوير"),
}

MARKER_COLORS = {category: entry[0] for category, entry in LEGEND.items()}

USER_LOCATION_COLOR = "#3b82f6"

PROPERTY_TYPES = {
    "apartment": ("Apartment", "شقة"),
    "villa": ("Villa", "فيلا"),
    "townhouse": ("Townhouse", "تاون هوس"),
    "duplex": ("Duplex", "دوبلكس"),
    "studio": ("Studio", "ستديو"),
    "room": ("Room", "غرفة"),
    "ground_floor": ("Ground Floor", "دور أرضي"),
    "upper_floor": ("Upper Floor", "دور علوي"),
    "hotel_apartments": ("Hotel Apartments", "شقق فندقية"),
    "building": ("Building", "عمارة"),
    "tower": ("Tower", "برج"),
    "land": ("Land", "أرض"),
    "raw_land": ("Raw Land", "أرض خام"),
    "plot": ("Plot", "مخطط"),
    "farm": ("Farm", "مزرعة"),
    "chalet": ("Chalet", "شاليه"),
    "rest_house": ("Rest House", "استراحة"),
    "warehouse": ("Warehouse", "مستودع"),
    "office": ("Office", "مكتب"),
    "shop": ("Shop", "محل"),
}

# slug -> (English, Arabic); the main cities of each region
CITIES = {
    "riyadh": ("Riyadh", "الرياض"),
    "al_kharj": ("Al Kharj", "الخرج"),
    "makkah": ("Makkah", "مكة المكرمة"),
    "jeddah": ("Jeddah", "جدة"),
    "taif": ("Taif", "الطائف"),
    "madinah": ("Madinah", "المدينة المنورة"),
    "yanbu": ("Yanbu", "ينبع"),
    "dammam": ("Dammam", "الدمام"),
    "khobar": ("Khobar", "الخبر"),
    "dhahran": ("Dhahran", "الظهران"),
    "al_ahsa": ("Al Ahsa", "الأحساء"),
    "jubail": ("Jubail", "الجبيل"),
    "buraidah": ("Buraidah", "بريدة"),
    "unayzah": ("Unayzah", "عنيزة"),
    "abha": ("Abha", "أبها"),
    "khamis_mushait": ("Khamis Mushait", "خميس مشيط"),
    "tabuk": ("Tabuk", "تبوك"),
    "hail": ("Hail", "حائل"),
    "arar": ("Arar", "عرعر"),
    "jazan": ("Jazan", "جازان"),
    "najran": ("Najran", "نجران"),
    "al_baha": ("Al Baha", "الباحة"),
    "sakaka": ("Sakaka", "سكاكا"),
}

# Approximate city centres, used to seed demo data and as map fallbacks
CITY_CENTERS = {
    "riyadh": (24.7136, 46.6753),
    "jeddah": (21.5433, 39.1728),
    "makkah": (21.3891, 39.8579),
    "madinah": (24.5247, 39.5692),
    "dammam": (26.4207, 50.0888),
    "khobar": (26.2172, 50.1971),
    "taif": (21.2703, 40.4158),
    "abha": (18.2164, 42.5053),
    "tabuk": (28.3835, 36.5662),
}

_CITY_ALIASES = {}
for _slug, (_en, _ar) in CITIES.items():
    for _alias in (_slug, _en, _ar):
        _CITY_ALIASES[normalize_text(_alias)] = _slug


def city_slug(value: str | None) -> str | None:
    """Canonical key for a city given its slug or either label; unknown names pass through normalized."""
    if not value:
        return None
    norm = normalize_text(value)
    return _CITY_ALIASES.get(norm, norm)


def city_label(value: str, language: str = "ar") -> str:
    slug = city_slug(value)
    if slug not in CITIES:
        return value
    en, ar = CITIES[slug]
    return ar if language == "ar" else en


def property_type_label(value: str, language: str = "ar") -> str:
    if value not in PROPERTY_TYPES:
        return value
    en, ar = PROPERTY_TYPES[value]
    return ar if language == "ar" else en
