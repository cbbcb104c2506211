import logging

from app.events.bus import PublishResult
from app.events.publisher import report_publish_result

TENANT_A = "tenant-a"


def test_delivery_created_payload(make_delivery_note, event_bus):
    note = make_delivery_note()

    assert event_bus.of_type("delivery.created") == [
        {
            "deliveryNoteId": str(note.id),
            "orderId": "O1",
            "customerId": "C1",
            "tenantId": TENANT_A,
        }
    ]


def test_delivery_confirmed_payload_without_proof(db_session, orchestrator, make_delivery_note, event_bus):
    note = make_delivery_note()
    orchestrator.confirm(db_session, note.id, TENANT_A)

    payload = event_bus.of_type("delivery.confirmed")[0]

    assert payload["deliveryNoteId"] == str(note.id)
    assert payload["proofOfDeliveryUrl"] is None
    assert payload["tenantId"] == TENANT_A


def test_publish_through_disconnected_bus_returns_failure(make_delivery_note, publisher, event_bus):
    note = make_delivery_note()
    event_bus.connected = False

    result = publisher.delivery_dispatched(note)

    assert result.ok is False
    assert result.event_type == "delivery.dispatched"


def test_report_publish_result_logs_failures(make_delivery_note, caplog):
    note = make_delivery_note()

    with caplog.at_level(logging.WARNING, logger="delivery.service"):
        report_publish_result(PublishResult(ok=True, event_type="delivery.created"), note)
        report_publish_result(
            PublishResult(ok=False, event_type="delivery.created", error="timeout"), note
        )

    failures = [
        record for record in caplog.records if record.getMessage().startswith("event_publish_failed")
    ]
    assert [record.getMessage() for record in failures] == [
        "event_publish_failed event_type=delivery.created error=timeout"
    ]
    assert failures[0].delivery_note_id == str(note.id)
