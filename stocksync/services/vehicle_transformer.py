"""
Map one provider stock record onto the flat vehicles schema.

transform() is pure and deterministic: same payload in, same MappedVehicle
out. Sync timestamps are stamped by the caller when the record is written.
"""

import logging
import re
from dataclasses import dataclass, field, asdict
from datetime import date
from urllib.parse import urlsplit

from stocksync.services.description_reflow import reflow, with_attention_grabber
from stocksync.services.provider_schema import ProviderVehicle

logger = logging.getLogger(__name__)

DEFAULT_CAR_IMAGE = "https://images.pexels.com/photos/3802510/pexels-photo-3802510.jpeg"

TRUSTED_IMAGE_DOMAINS = (
    "autotrader.co.uk",
    "at-cdn.co.uk",
    "autotradercdn.com",
    "images.pexels.com",
)

IMAGE_RESIZE_TOKEN = "{resize}"
IMAGE_RESIZE_TARGET = "w1024h768"

CATEGORIES = ("Saloon", "Hatchback", "Estate", "Van", "Coupe", "Convertible", "4x4")
DEFAULT_CATEGORY = "Saloon"

# First substring match wins
BODY_TYPE_CATEGORIES = [
    ("suv", "4x4"),
    ("4x4", "4x4"),
    ("estate", "Estate"),
    ("tourer", "Estate"),
    ("hatchback", "Hatchback"),
    ("saloon", "Saloon"),
    ("sedan", "Saloon"),
    ("coupe", "Coupe"),
    ("convertible", "Convertible"),
    ("cabriolet", "Convertible"),
    ("roadster", "Convertible"),
    ("mpv", "Van"),
    ("minibus", "Van"),
    ("van", "Van"),
    ("pickup", "Van"),
    ("sports", "Coupe"),
    ("luxury", "Saloon"),
]

DEFAULT_FUEL_TYPE = "Petrol"
DEFAULT_TRANSMISSION = "Manual"
DEFAULT_COLOUR = "Black"
UNKNOWN = "Unknown"

_ENGINE_IN_DERIVATIVE_RE = re.compile(r"\b(\d\.\d)\s?L?\b")


@dataclass
class MappedVehicle:
    provider_id: str
    provider_advertiser_id: str
    make: str
    model: str
    year: int | None
    price: float
    mileage: int
    fuel_type: str
    transmission: str
    category: str
    colour: str
    engine: str | None
    style: str | None
    doors: int | None
    road_tax: str | None
    registration: str | None
    vin: str | None
    description: str
    cover_image_url: str
    gallery_images: list[str] = field(default_factory=list)
    provider_data: dict = field(default_factory=dict)

    def record_fields(self) -> dict:
        """Column values for the vehicles table."""
        return asdict(self)


@dataclass
class ValidationResult:
    valid: bool
    errors: list[str]


# --- Field normalisation ---

def map_body_type_to_category(body_type: str | None) -> str:
    if not body_type:
        return DEFAULT_CATEGORY
    body = body_type.lower()
    for needle, category in BODY_TYPE_CATEGORIES:
        if needle in body:
            return category
    return DEFAULT_CATEGORY


def normalize_fuel_type(fuel_type: str | None) -> str:
    if not fuel_type or not fuel_type.strip():
        return DEFAULT_FUEL_TYPE
    fuel = fuel_type.strip().lower()
    if "plug-in" in fuel or "phev" in fuel:
        return "Plug-in Hybrid"
    if "hybrid" in fuel:
        return "Hybrid"
    if "electric" in fuel or fuel in ("ev", "bev"):
        return "Electric"
    if "diesel" in fuel:
        return "Diesel"
    if "petrol" in fuel or "gasoline" in fuel:
        return "Petrol"
    return fuel_type.strip()


def normalize_transmission(transmission: str | None) -> str:
    if not transmission or not transmission.strip():
        return DEFAULT_TRANSMISSION
    trans = transmission.strip().lower()
    if "semi" in trans:
        return "Semi-Automatic"
    if "auto" in trans or "cvt" in trans or "dsg" in trans:
        return "Automatic"
    if "manual" in trans:
        return "Manual"
    return transmission.strip()


def extract_engine(details) -> str | None:
    if details.badge_engine_size_litres:
        return f"{details.badge_engine_size_litres:.1f}L"
    if details.engine_capacity_cc:
        return f"{details.engine_capacity_cc / 1000:.1f}L"
    if details.derivative:
        match = _ENGINE_IN_DERIVATIVE_RE.search(details.derivative)
        if match:
            return f"{match.group(1)}L"
    return None


def _resolve_year(details) -> int | None:
    if details.year_of_manufacture:
        return details.year_of_manufacture
    if details.first_registration_date:
        try:
            return int(details.first_registration_date[:4])
        except ValueError:
            return None
    return None


def _resolve_price(vehicle: ProviderVehicle) -> float:
    retail = vehicle.adverts.retail_adverts
    candidates = []
    if retail:
        candidates += [retail.total_price, retail.supplied_price]
    candidates.append(vehicle.adverts.forecourt_price)
    for money in candidates:
        if money is not None and money.amount:
            return float(money.amount)
    return 0.0


def resolve_provider_id(vehicle: ProviderVehicle, advertiser_id: str, index: int = 0) -> str:
    """stockId, then externalStockId, registration, VIN, then a synthetic id."""
    for candidate in (
        vehicle.metadata.stock_id,
        vehicle.metadata.external_stock_id,
        vehicle.vehicle.registration,
        vehicle.vehicle.vin,
    ):
        if candidate and candidate.strip():
            return candidate.strip()
    return f"{advertiser_id}-{index}"


# --- Description ---

def generate_description(make: str, model: str, year: int | None, derivative: str | None,
                         transmission: str, fuel_type: str, mileage: int) -> str:
    title = " ".join(str(p) for p in (year, make, model, derivative) if p)
    features = [transmission, fuel_type]
    if mileage:
        features.append(f"{mileage:,} Miles")
    return f"{title} - {', '.join(features)}. Excellent condition, well maintained, ready to drive."


def build_description(vehicle: ProviderVehicle, make: str, model: str, year: int | None,
                      transmission: str, fuel_type: str, mileage: int) -> str:
    retail = vehicle.adverts.retail_adverts
    raw = ""
    grabber = None
    if retail:
        raw = "\n\n".join(p for p in (retail.description, retail.description2) if p and p.strip())
        grabber = retail.attention_grabber

    body = reflow(raw)
    if not body:
        body = generate_description(make, model, year, vehicle.vehicle.derivative,
                                    transmission, fuel_type, mileage)
    return with_attention_grabber(body, grabber)


# --- Images ---

def is_trusted_image_url(url: str) -> bool:
    host = (urlsplit(url).hostname or "").lower()
    return any(host == d or host.endswith("." + d) for d in TRUSTED_IMAGE_DOMAINS)


def resolve_image_url(url: str | None) -> str:
    """Return a safe https image URL, or the default placeholder."""
    if not isinstance(url, str) or not url.strip():
        return DEFAULT_CAR_IMAGE

    candidate = url.strip().replace(IMAGE_RESIZE_TOKEN, IMAGE_RESIZE_TARGET)
    if not candidate.lower().startswith("https://"):
        logger.warning("Image URL is not HTTPS, using default: %.50s", candidate)
        return DEFAULT_CAR_IMAGE

    try:
        parts = urlsplit(candidate)
        parts.port  # raises ValueError on a malformed port
    except ValueError:
        logger.warning("Malformed image URL, using default: %.50s", candidate)
        return DEFAULT_CAR_IMAGE
    if not parts.hostname or any(ch.isspace() for ch in candidate):
        logger.warning("Malformed image URL, using default: %.50s", candidate)
        return DEFAULT_CAR_IMAGE

    if not is_trusted_image_url(candidate):
        logger.warning("Image URL is not from a trusted domain: %.50s", candidate)
    return candidate


def resolve_images(vehicle: ProviderVehicle) -> tuple[str, list[str]]:
    """Cover image and gallery. The gallery never holds the placeholder."""
    gallery: list[str] = []
    for image in vehicle.media.images:
        url = resolve_image_url(image.href)
        if url != DEFAULT_CAR_IMAGE and url not in gallery:
            gallery.append(url)

    trusted = [url for url in gallery if is_trusted_image_url(url)]
    if trusted:
        cover = trusted[0]
    elif gallery:
        cover = gallery[0]
    else:
        cover = DEFAULT_CAR_IMAGE
    return cover, gallery


# --- Public API ---

def transform(raw: dict | ProviderVehicle, advertiser_id: str, index: int = 0) -> MappedVehicle:
    """Flatten one provider stock record into the local schema."""
    vehicle = raw if isinstance(raw, ProviderVehicle) else ProviderVehicle.model_validate(raw)
    details = vehicle.vehicle

    make = (details.make or "").strip() or UNKNOWN
    model = (details.model or "").strip() or UNKNOWN
    year = _resolve_year(details)
    mileage = details.odometer_reading_miles or 0
    fuel_type = normalize_fuel_type(details.fuel_type)
    transmission = normalize_transmission(details.transmission_type)
    cover, gallery = resolve_images(vehicle)

    return MappedVehicle(
        provider_id=resolve_provider_id(vehicle, advertiser_id, index),
        provider_advertiser_id=advertiser_id,
        make=make,
        model=model,
        year=year,
        price=_resolve_price(vehicle),
        mileage=mileage,
        fuel_type=fuel_type,
        transmission=transmission,
        category=map_body_type_to_category(details.body_type),
        colour=(details.colour or "").strip() or DEFAULT_COLOUR,
        engine=extract_engine(details),
        style=details.derivative or None,
        doors=details.doors,
        road_tax=(details.road_tax or "").strip() or None,
        registration=details.registration or None,
        vin=details.vin or None,
        description=build_description(vehicle, make, model, year, transmission, fuel_type, mileage),
        cover_image_url=cover,
        gallery_images=gallery,
        provider_data=vehicle.model_dump(mode="json", by_alias=True, exclude_none=True),
    )


def validate_mapped(mapped: MappedVehicle, current_year: int | None = None) -> ValidationResult:
    """Check the fields the website cannot render without."""
    current_year = current_year or date.today().year
    errors = []

    if not mapped.make or mapped.make == UNKNOWN:
        errors.append("Make is required")
    if not mapped.model or mapped.model == UNKNOWN:
        errors.append("Model is required")
    if not mapped.year or mapped.year < 1900 or mapped.year > current_year + 1:
        errors.append("Invalid year")
    if not mapped.price or mapped.price <= 0:
        errors.append("Price must be greater than 0")
    if not mapped.provider_id:
        errors.append("Provider ID is required")

    return ValidationResult(valid=not errors, errors=errors)
