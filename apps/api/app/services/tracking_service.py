import logging
from dataclasses import dataclass

from sqlalchemy.orm import Session

from app.integrations.carriers import CarrierClientFactory, create_carrier_client
from app.models.delivery_event import DeliveryEventType
from app.models.delivery_note import DeliveryNote, DeliveryStatus
from app.observability import log_event, metrics_store
from app.services.delivery_notes_service import (
    append_delivery_event,
    list_trackable_delivery_notes,
)
from app.services.dispatch_service import DeliveryOrchestrator

# Checked in order against the lower-cased carrier status
_STATUS_KEYWORDS: tuple[tuple[str, DeliveryStatus], ...] = (
    ("delivered", DeliveryStatus.DELIVERED),
    ("in transit", DeliveryStatus.IN_TRANSIT),
    ("returned", DeliveryStatus.RETURNED),
)


@dataclass(frozen=True)
class TrackingRunResult:
    processed: int = 0
    updated: int = 0
    failed: int = 0


def map_carrier_status(carrier_status: str, current: DeliveryStatus) -> DeliveryStatus:
    """Translate a free-text carrier status; unknown text keeps ``current``."""
    text = (carrier_status or "").lower()
    for keyword, status in _STATUS_KEYWORDS:
        if keyword in text:
            return status
    return current


def _reconcile_note(
    db: Session,
    note: DeliveryNote,
    orchestrator: DeliveryOrchestrator,
    carrier_factory: CarrierClientFactory,
) -> bool:
    info = carrier_factory(note.carrier).get_tracking_info(note.tracking_number)
    new_status = map_carrier_status(info.status, note.status)

    snapshot = {
        "source": "tracking_poll",
        "trackingInfo": info.model_dump(by_alias=True, mode="json"),
    }

    changed = new_status != note.status
    if changed:
        orchestrator.update_status(db, note.id, note.tenant_id, new_status, dict(snapshot))

    # Snapshots are always recorded as IN_TRANSIT, whatever the mapped status
    append_delivery_event(db, note, DeliveryEventType.IN_TRANSIT, snapshot)
    db.commit()
    return changed


def reconcile_tracking(
    db: Session,
    orchestrator: DeliveryOrchestrator,
    carrier_factory: CarrierClientFactory = create_carrier_client,
    limit: int = 100,
) -> TrackingRunResult:
    notes = list_trackable_delivery_notes(db, limit=limit)
    processed = updated = failed = 0

    for note in notes:
        # Rollback expires the instance, keep what the log line needs
        note_id, tenant_id, tracking_number = str(note.id), note.tenant_id, note.tracking_number
        try:
            if _reconcile_note(db, note, orchestrator, carrier_factory):
                updated += 1
            processed += 1
        except Exception:
            db.rollback()
            failed += 1
            metrics_store.increment("tracking_note_failed_total")
            log_event(
                "tracking_update_failed",
                level=logging.ERROR,
                delivery_note_id=note_id,
                tenant_id=tenant_id,
                tracking_number=tracking_number,
                exc_info=True,
            )

    metrics_store.increment("tracking_run_total")
    log_event(f"tracking_run_complete processed={processed} updated={updated} failed={failed}")
    return TrackingRunResult(processed=processed, updated=updated, failed=failed)
