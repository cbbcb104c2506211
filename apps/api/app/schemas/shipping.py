from datetime import datetime

from pydantic import Field

from app.schemas.base import CamelModel


class Recipient(CamelModel):
    name: str
    address: str
    city: str
    zip_code: str
    country: str


class ShipmentItem(CamelModel):
    description: str
    quantity: int = Field(gt=0)
    weight: float | None = None
    value: float | None = None


class ShipmentData(CamelModel):
    """Carrier-agnostic shipment request mapped by each carrier integration."""

    recipient: Recipient
    items: list[ShipmentItem] = Field(min_length=1)


class ShipmentResult(CamelModel):
    tracking_number: str = Field(min_length=1)
    label_url: str | None = None


class TrackingEvent(CamelModel):
    timestamp: datetime | None = None
    description: str | None = None
    location: str | None = None


class TrackingInfo(CamelModel):
    tracking_number: str
    status: str
    current_location: str | None = None
    estimated_delivery: datetime | None = None
    events: list[TrackingEvent] = Field(default_factory=list)
    tracking_url: str | None = None
