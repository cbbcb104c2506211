import asyncio
import json
from contextlib import contextmanager

import pytest

from app.db.session import SessionLocal
from app.events.consumer import (
    OrderFulfilledConsumer,
    parse_order_fulfilled,
    to_delivery_note_create,
)
from app.models.delivery_note import DeliveryStatus
from app.observability import metrics_store
from app.services.delivery_notes_service import list_delivery_notes

TENANT_A = "tenant-a"


def _order_event(**overrides) -> dict:
    event = {
        "orderId": "O-100",
        "customerId": "C-7",
        "deliveryAddressId": "A-3",
        "tenantId": TENANT_A,
        "items": [
            {"productId": "P1", "description": "Widget", "quantity": 2, "unit": "box"},
            {"productId": "P2", "name": "Gadget", "quantity": 1},
        ],
    }
    event.update(overrides)
    return event


class _FakeMsg:
    def __init__(self, body) -> None:
        self.data = body if isinstance(body, bytes) else json.dumps(body).encode()
        self.acked = False
        self.termed = False

    async def ack(self):
        self.acked = True

    async def term(self):
        self.termed = True


class _FakeSubscribingBus:
    def __init__(self, connected: bool = True) -> None:
        self.is_connected = connected
        self.streams: list[tuple[str, list[str]]] = []
        self.subscriptions: list[dict] = []

    def ensure_stream(self, name, subjects):
        self.streams.append((name, subjects))

    def subscribe(self, subject, *, durable, stream, handler):
        self.subscriptions.append(
            {"subject": subject, "durable": durable, "stream": stream, "handler": handler}
        )


@contextmanager
def _session_scope():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def consumer(publisher) -> OrderFulfilledConsumer:
    return OrderFulfilledConsumer(
        _FakeSubscribingBus(),
        publisher,
        subject="order.fulfilled",
        durable="delivery-service",
        stream="ORDER_EVENTS",
        session_factory=_session_scope,
    )


def test_parse_order_fulfilled_unwraps_envelope():
    raw = json.dumps({"eventType": "order.fulfilled", "data": _order_event()}).encode()

    event = parse_order_fulfilled(raw)

    assert event.order_id == "O-100"
    assert len(event.items) == 2


def test_parse_order_fulfilled_accepts_bare_payload():
    event = parse_order_fulfilled(json.dumps(_order_event()).encode())

    assert event.tenant_id == TENANT_A


def test_item_name_is_used_when_description_missing():
    payload = to_delivery_note_create(parse_order_fulfilled(json.dumps(_order_event()).encode()))

    assert [item.description for item in payload.items] == ["Widget", "Gadget"]
    assert [item.unit for item in payload.items] == ["box", "pcs"]


@pytest.mark.parametrize(
    "body",
    [
        b"not json",
        _order_event(items=[]),
        _order_event(orderId=""),
        _order_event(items=[{"productId": "P1", "quantity": 1}]),
    ],
)
def test_parse_order_fulfilled_rejects_invalid_payloads(body):
    raw = body if isinstance(body, bytes) else json.dumps(body).encode()

    with pytest.raises(ValueError):
        parse_order_fulfilled(raw)


def test_handle_creates_note_and_acks(consumer, db_session, event_bus):
    msg = _FakeMsg(_order_event())

    asyncio.run(consumer.handle(msg))

    assert msg.acked is True
    assert msg.termed is False
    notes = list_delivery_notes(db_session, TENANT_A)
    assert len(notes) == 1
    assert notes[0].order_id == "O-100"
    assert notes[0].status == DeliveryStatus.PENDING
    assert len(notes[0].items) == 2
    assert len(event_bus.of_type("delivery.created")) == 1
    assert metrics_store.snapshot().counters.get("order_fulfilled_processed_total") == 1


def test_handle_terminates_malformed_message(consumer, db_session):
    msg = _FakeMsg(b"{broken")

    asyncio.run(consumer.handle(msg))

    assert msg.termed is True
    assert msg.acked is False
    assert list_delivery_notes(db_session, TENANT_A) == []
    assert metrics_store.snapshot().counters.get("order_fulfilled_rejected_total") == 1


def test_handle_terminates_when_processing_fails(consumer, monkeypatch):
    def _fail(_raw):
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(consumer, "process", _fail)
    msg = _FakeMsg(_order_event())

    asyncio.run(consumer.handle(msg))

    assert msg.termed is True
    assert msg.acked is False
    assert metrics_store.snapshot().counters.get("order_fulfilled_failed_total") == 1


def test_start_subscribes_with_durable_consumer(consumer):
    assert consumer.start() is True

    bus = consumer.bus
    assert bus.streams == [("ORDER_EVENTS", ["order.fulfilled"])]
    subscription = bus.subscriptions[0]
    assert subscription["durable"] == "delivery-service"
    assert subscription["handler"] == consumer.handle


def test_start_skips_when_bus_disconnected(publisher):
    consumer = OrderFulfilledConsumer(
        _FakeSubscribingBus(connected=False),
        publisher,
        subject="order.fulfilled",
        durable="delivery-service",
        stream="ORDER_EVENTS",
    )

    assert consumer.start() is False
    assert consumer.bus.subscriptions == []
