from datetime import datetime

from pydantic import Field, field_validator

from app.schemas.base import CamelModel


class DeliveryCreatedEvent(CamelModel):
    delivery_note_id: str
    order_id: str
    customer_id: str
    tenant_id: str


class DispatchedItem(CamelModel):
    product_id: str
    description: str
    quantity: int
    unit: str


class DeliveryDispatchedEvent(CamelModel):
    delivery_note_id: str
    order_id: str
    items: list[DispatchedItem]
    tenant_id: str


class DeliveryConfirmedEvent(CamelModel):
    delivery_note_id: str
    order_id: str
    customer_id: str
    proof_of_delivery_url: str | None = None
    tenant_id: str


class EventEnvelope(CamelModel):
    event_type: str
    data: dict
    timestamp: datetime


class OrderFulfilledItem(CamelModel):
    product_id: str = Field(min_length=1)
    description: str | None = None
    name: str | None = None
    quantity: int = Field(gt=0)
    unit: str | None = None


class OrderFulfilledEvent(CamelModel):
    """Payload of the upstream ``order.fulfilled`` event."""

    order_id: str = Field(min_length=1)
    customer_id: str = Field(min_length=1)
    delivery_address_id: str = Field(min_length=1)
    tenant_id: str = Field(min_length=1)
    items: list[OrderFulfilledItem] = Field(min_length=1)

    @field_validator("items")
    @classmethod
    def require_item_description(cls, items: list[OrderFulfilledItem]) -> list[OrderFulfilledItem]:
        for item in items:
            if not (item.description or item.name):
                raise ValueError(f"item {item.product_id} has neither description nor name")
        return items
