import logging

from app.events.bus import EventBusProtocol, PublishResult
from app.models.delivery_note import DeliveryNote
from app.observability import log_event
from app.schemas.events import (
    DeliveryConfirmedEvent,
    DeliveryCreatedEvent,
    DeliveryDispatchedEvent,
    DispatchedItem,
)

DELIVERY_CREATED = "delivery.created"
DELIVERY_DISPATCHED = "delivery.dispatched"
DELIVERY_CONFIRMED = "delivery.confirmed"


class DeliveryEventPublisher:
    """Builds the downstream delivery events and hands them to the bus."""

    def __init__(self, bus: EventBusProtocol) -> None:
        self.bus = bus

    def delivery_created(self, note: DeliveryNote) -> PublishResult:
        event = DeliveryCreatedEvent(
            delivery_note_id=str(note.id),
            order_id=note.order_id,
            customer_id=note.customer_id,
            tenant_id=note.tenant_id,
        )
        return self.bus.publish(DELIVERY_CREATED, event.model_dump(by_alias=True, mode="json"))

    def delivery_dispatched(self, note: DeliveryNote) -> PublishResult:
        event = DeliveryDispatchedEvent(
            delivery_note_id=str(note.id),
            order_id=note.order_id,
            items=[
                DispatchedItem(
                    product_id=item.product_id,
                    description=item.description,
                    quantity=item.quantity,
                    unit=item.unit,
                )
                for item in note.items
            ],
            tenant_id=note.tenant_id,
        )
        return self.bus.publish(DELIVERY_DISPATCHED, event.model_dump(by_alias=True, mode="json"))

    def delivery_confirmed(self, note: DeliveryNote) -> PublishResult:
        event = DeliveryConfirmedEvent(
            delivery_note_id=str(note.id),
            order_id=note.order_id,
            customer_id=note.customer_id,
            proof_of_delivery_url=note.proof_of_delivery_url,
            tenant_id=note.tenant_id,
        )
        return self.bus.publish(DELIVERY_CONFIRMED, event.model_dump(by_alias=True, mode="json"))


def report_publish_result(result: PublishResult, note: DeliveryNote) -> None:
    """Publishing is best effort; a failed publish is logged and otherwise ignored."""
    if result.ok:
        return
    log_event(
        f"event_publish_failed event_type={result.event_type} error={result.error}",
        level=logging.WARNING,
        delivery_note_id=str(note.id),
        tenant_id=note.tenant_id,
    )
