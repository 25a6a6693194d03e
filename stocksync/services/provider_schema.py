"""Pydantic models for the provider's nested stock payload.

Every group and field is optional: the provider omits whatever an advertiser
never filled in, and the transformer applies fallbacks over these known
shapes. Unknown fields are kept so the raw payload survives a round trip into
Vehicle.provider_data.
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _ProviderModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
        coerce_numbers_to_str=True,
        protected_namespaces=(),
    )


class Money(_ProviderModel):
    amount: float | None = None


class VehicleDetails(_ProviderModel):
    registration: str | None = None
    vin: str | None = None
    make: str | None = None
    model: str | None = None
    derivative: str | None = None
    year_of_manufacture: int | None = None
    first_registration_date: str | None = None
    odometer_reading_miles: int | None = None
    fuel_type: str | None = None
    transmission_type: str | None = None
    body_type: str | None = None
    colour: str | None = None
    doors: int | None = None
    road_tax: str | None = None
    engine_capacity_cc: int | None = Field(default=None, alias="engineCapacityCC")
    badge_engine_size_litres: float | None = None


class Image(_ProviderModel):
    href: str | None = None


class Media(_ProviderModel):
    images: list[Image] = Field(default_factory=list)


class RetailAdvert(_ProviderModel):
    total_price: Money | None = None
    supplied_price: Money | None = None
    attention_grabber: str | None = None
    description: str | None = None
    description2: str | None = None


class Adverts(_ProviderModel):
    forecourt_price: Money | None = None
    retail_adverts: RetailAdvert | None = None


class Metadata(_ProviderModel):
    stock_id: str | None = None
    external_stock_id: str | None = None
    last_updated: str | None = None
    lifecycle_state: str | None = None


class Advertiser(_ProviderModel):
    advertiser_id: str | None = None


class ProviderVehicle(_ProviderModel):
    """One entry of /stock results, or the body of /stock/vehicle/{id}."""

    vehicle: VehicleDetails = Field(default_factory=VehicleDetails)
    media: Media = Field(default_factory=Media)
    adverts: Adverts = Field(default_factory=Adverts)
    metadata: Metadata = Field(default_factory=Metadata)
    advertiser: Advertiser | None = None


class StockPage(_ProviderModel):
    results: list[dict] = Field(default_factory=list)
    total_results: int = 0
