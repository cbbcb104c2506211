import uuid
from datetime import datetime

from pydantic import ConfigDict, Field, field_validator

from app.models.delivery_event import DeliveryEventType
from app.models.delivery_note import DeliveryStatus
from app.schemas.base import CamelModel

HTTP_URL_PATTERN = r"^https?://\S+$"


class DeliveryItemCreate(CamelModel):
    product_id: str = Field(min_length=1, max_length=64)
    description: str = Field(min_length=1, max_length=500)
    quantity: int = Field(gt=0, strict=True)
    unit: str = Field(default="pcs", min_length=1, max_length=32)


class DeliveryNoteCreate(CamelModel):
    order_id: str = Field(min_length=1, max_length=64)
    customer_id: str = Field(min_length=1, max_length=64)
    delivery_address_id: str = Field(min_length=1, max_length=64)
    items: list[DeliveryItemCreate] = Field(min_length=1)

    @field_validator("order_id", "customer_id", "delivery_address_id")
    @classmethod
    def strip_identifier(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value


class DispatchRequest(CamelModel):
    carrier_id: uuid.UUID


class ConfirmRequest(CamelModel):
    proof_of_delivery_url: str | None = Field(
        default=None, max_length=1024, pattern=HTTP_URL_PATTERN
    )


class DeliveryNoteFilters(CamelModel):
    status: DeliveryStatus | None = None
    customer_id: str | None = None
    order_id: str | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None


class DeliveryItemResponse(CamelModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    product_id: str
    description: str
    quantity: int
    unit: str


class DeliveryEventResponse(CamelModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    event_type: DeliveryEventType
    timestamp: datetime
    metadata: dict | None = Field(default=None, validation_alias="event_metadata")


class CarrierSummary(CamelModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str


class DeliveryNoteResponse(CamelModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    delivery_number: str
    order_id: str
    customer_id: str
    delivery_address_id: str
    status: DeliveryStatus
    carrier_id: uuid.UUID | None = None
    carrier: CarrierSummary | None = None
    tracking_number: str | None = None
    shipped_at: datetime | None = None
    delivered_at: datetime | None = None
    proof_of_delivery_url: str | None = None
    tenant_id: str
    created_at: datetime
    updated_at: datetime
    items: list[DeliveryItemResponse] = Field(default_factory=list)
    events: list[DeliveryEventResponse] = Field(default_factory=list)
