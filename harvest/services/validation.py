"""
Field validation for farmer records: Cameroonian phone numbers, "City, Region"
locations, spoken languages and GPS coordinates.

Every function is pure and raises BadRequestError with a user-facing message.
"""
import enum
import re

from harvest.services.errors import BadRequestError


class Region(str, enum.Enum):
    ADAMAWA = "Adamawa"
    CENTRE = "Centre"
    EAST = "East"
    FAR_NORTH = "Far North"
    LITTORAL = "Littoral"
    NORTH = "North"
    NORTHWEST = "Northwest"
    SOUTH = "South"
    SOUTHWEST = "Southwest"
    WEST = "West"


class Language(str, enum.Enum):
    ENGLISH = "English"
    FRENCH = "French"
    PIDGIN_ENGLISH = "Pidgin English"
    FULFULDE = "Fulfulde"
    EWONDO = "Ewondo"
    DUALA = "Duala"
    BAMILEKE = "Bamileke"
    OTHER = "Other"


_REGIONS_BY_KEY: dict[str, Region] = {r.value.casefold(): r for r in Region}
_LANGUAGES_BY_KEY: dict[str, Language] = {lang.value.casefold(): lang for lang in Language}

_VALID_REGIONS = ", ".join(r.value for r in Region)
_VALID_LANGUAGES = ", ".join(lang.value for lang in Language)

# Optional +237 / 237 country prefix, then a 2 or 6 and eight more digits.
_PHONE_PATTERN = re.compile(r"^(?:\+?237)?[26]\d{8}$")
_WHITESPACE = re.compile(r"\s+")

# Letters (accents included) in words joined by spaces, hyphens or apostrophes.
_CITY_PATTERN = re.compile(r"^[^\W\d_]+(?:[\s'-]+[^\W\d_]+)*$")

# Approximate bounding box of Cameroon.
CAMEROON_LAT_RANGE = (1.65, 13.05)
CAMEROON_LON_RANGE = (8.38, 16.19)


def validate_phone_number(raw: str | None) -> str:
    """Validate a phone number and return it in canonical ``+237XXXXXXXXX`` form."""
    if raw is None or not raw.strip():
        raise BadRequestError("Phone number is required")

    cleaned = _WHITESPACE.sub("", raw)
    if not _PHONE_PATTERN.match(cleaned):
        raise BadRequestError(
            "Invalid phone number format. Use: +237XXXXXXXXX, 237XXXXXXXXX, or 6/2XXXXXXXX"
        )
    return normalize_phone_number(cleaned)


def normalize_phone_number(phone: str) -> str:
    cleaned = _WHITESPACE.sub("", phone)
    if cleaned.startswith("+237"):
        return cleaned
    if cleaned.startswith("237"):
        return "+" + cleaned
    return "+237" + cleaned


def validate_location(raw: str | None) -> tuple[str, Region]:
    """Split ``"City, Region"`` into its parts, checking the region is a Cameroonian one."""
    if raw is None or not raw.strip():
        raise BadRequestError("Location is required")

    parts = raw.split(",")
    if len(parts) != 2:
        raise BadRequestError(
            'Invalid location format. Use: City, Region (e.g., "Yaoundé, Centre")'
        )

    city = parts[0].strip()
    region_name = _WHITESPACE.sub(" ", parts[1].strip())

    if len(city) < 2 or not _CITY_PATTERN.match(city):
        raise BadRequestError(
            'Invalid location format. Use: City, Region (e.g., "Yaoundé, Centre")'
        )

    region = _REGIONS_BY_KEY.get(region_name.casefold())
    if region is None:
        raise BadRequestError(f"Invalid Cameroon region. Valid regions: {_VALID_REGIONS}")

    return city, region


def format_location(city: str, region: Region) -> str:
    return f"{city}, {region.value}"


def validate_language(raw: str | None) -> Language | None:
    """Languages are optional; blank input is treated as absent."""
    if raw is None or not raw.strip():
        return None

    language = _LANGUAGES_BY_KEY.get(raw.strip().casefold())
    if language is None:
        raise BadRequestError(f"Invalid language. Valid languages: {_VALID_LANGUAGES}")
    return language


def validate_coordinates(latitude: float | None, longitude: float | None) -> None:
    if latitude is None and longitude is None:
        return
    if latitude is None or longitude is None:
        raise BadRequestError("Both latitude and longitude are required for coordinates")

    if not -90 <= latitude <= 90:
        raise BadRequestError("Invalid latitude. Must be between -90 and 90 degrees")
    if not -180 <= longitude <= 180:
        raise BadRequestError("Invalid longitude. Must be between -180 and 180 degrees")

    lat_min, lat_max = CAMEROON_LAT_RANGE
    lon_min, lon_max = CAMEROON_LON_RANGE
    if not (lat_min <= latitude <= lat_max and lon_min <= longitude <= lon_max):
        raise BadRequestError("Coordinates must be within Cameroon")
