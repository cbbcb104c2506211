import asyncio
import json
import logging
from contextlib import AbstractContextManager
from typing import Callable

from nats.aio.msg import Msg
from sqlalchemy.orm import Session

from app.db.session import session_scope
from app.events.bus import EventBus
from app.events.publisher import DeliveryEventPublisher
from app.models.delivery_note import DeliveryNote
from app.observability import log_event, metrics_store
from app.schemas.delivery_note import DeliveryItemCreate, DeliveryNoteCreate
from app.schemas.events import OrderFulfilledEvent
from app.services.delivery_notes_service import create_delivery_note

logger = logging.getLogger(__name__)

SessionScope = Callable[[], AbstractContextManager[Session]]


def parse_order_fulfilled(raw: bytes) -> OrderFulfilledEvent:
    body = json.loads(raw)
    # Producers wrap the payload as {eventType, data, timestamp}
    data = body.get("data", body) if isinstance(body, dict) else body
    return OrderFulfilledEvent.model_validate(data)


def to_delivery_note_create(event: OrderFulfilledEvent) -> DeliveryNoteCreate:
    return DeliveryNoteCreate(
        order_id=event.order_id,
        customer_id=event.customer_id,
        delivery_address_id=event.delivery_address_id,
        items=[
            DeliveryItemCreate(
                product_id=item.product_id,
                description=item.description or item.name,
                quantity=item.quantity,
                unit=item.unit or "pcs",
            )
            for item in event.items
        ],
    )


class OrderFulfilledConsumer:
    """Creates a delivery note for every ``order.fulfilled`` event.

    Messages are acknowledged only once the note is committed. A message that
    cannot be processed is terminated so the broker does not redeliver it.
    """

    def __init__(
        self,
        bus: EventBus,
        publisher: DeliveryEventPublisher | None = None,
        *,
        subject: str,
        durable: str,
        stream: str,
        session_factory: SessionScope = session_scope,
    ) -> None:
        self.bus = bus
        self.publisher = publisher
        self.subject = subject
        self.durable = durable
        self.stream = stream
        self._session_scope = session_factory

    def start(self) -> bool:
        if not self.bus.is_connected:
            logger.warning("Event bus not connected, %s consumer not started", self.subject)
            return False
        self.bus.ensure_stream(self.stream, [self.subject])
        self.bus.subscribe(self.subject, durable=self.durable, stream=self.stream, handler=self.handle)
        logger.info("Consuming %s as %s", self.subject, self.durable)
        return True

    def process(self, raw: bytes) -> DeliveryNote:
        event = parse_order_fulfilled(raw)
        with self._session_scope() as db:
            note = create_delivery_note(
                db, to_delivery_note_create(event), event.tenant_id, publisher=self.publisher
            )
        log_event(
            f"order_fulfilled_processed order_id={event.order_id}",
            delivery_note_id=str(note.id),
            tenant_id=event.tenant_id,
        )
        return note

    async def handle(self, msg: Msg) -> None:
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self.process, msg.data)
        except ValueError as err:
            metrics_store.increment("order_fulfilled_rejected_total")
            logger.warning("Dropping malformed %s message: %s", self.subject, err)
            await msg.term()
            return
        except Exception:
            metrics_store.increment("order_fulfilled_failed_total")
            logger.exception("Failed to process %s message", self.subject)
            await msg.term()
            return
        metrics_store.increment("order_fulfilled_processed_total")
        await msg.ack()
