import logging
import secrets
import uuid
from datetime import date, datetime, timezone

from sqlalchemy import Select, select
from sqlalchemy.orm import Session, joinedload, selectinload

from app.events.publisher import DeliveryEventPublisher, report_publish_result
from app.models.delivery_event import DeliveryEvent, DeliveryEventType, now_utc
from app.models.delivery_note import DeliveryItem, DeliveryNote, DeliveryStatus
from app.observability import log_event, metrics_store
from app.schemas.delivery_note import DeliveryNoteCreate, DeliveryNoteFilters
from app.services.errors import NotFoundError
from app.services.identifiers import parse_id
from app.services.state_machine import (
    TERMINAL_STATUSES,
    TRACKABLE_STATUSES,
    event_type_for_status,
    is_forward_transition,
)

DEFAULT_PAGE_SIZE = 50


def generate_delivery_number(today: date | None = None) -> str:
    today = today or now_utc().date()
    return f"DN-{today:%Y%m%d}-{secrets.randbelow(1_000_000):06d}"


def _generate_unique_delivery_number(db: Session) -> str:
    while True:
        delivery_number = generate_delivery_number()
        exists = db.scalar(
            select(DeliveryNote.id).where(DeliveryNote.delivery_number == delivery_number)
        )
        if not exists:
            return delivery_number


def _note_query() -> Select:
    # Conditional UPDATEs bypass the identity map, so always refresh loaded rows
    return (
        select(DeliveryNote)
        .options(
            selectinload(DeliveryNote.items),
            selectinload(DeliveryNote.events),
            joinedload(DeliveryNote.carrier),
        )
        .execution_options(populate_existing=True)
    )


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc)


def append_delivery_event(
    db: Session,
    note: DeliveryNote,
    event_type: DeliveryEventType,
    metadata: dict | None = None,
) -> DeliveryEvent:
    event = DeliveryEvent(
        delivery_note_id=note.id,
        event_type=event_type,
        event_metadata=metadata,
        tenant_id=note.tenant_id,
    )
    db.add(event)
    return event


def create_delivery_note(
    db: Session,
    payload: DeliveryNoteCreate,
    tenant_id: str,
    publisher: DeliveryEventPublisher | None = None,
) -> DeliveryNote:
    note = DeliveryNote(
        delivery_number=_generate_unique_delivery_number(db),
        order_id=payload.order_id,
        customer_id=payload.customer_id,
        delivery_address_id=payload.delivery_address_id,
        status=DeliveryStatus.PENDING,
        tenant_id=tenant_id,
        items=[
            DeliveryItem(
                position=position,
                product_id=item.product_id,
                description=item.description,
                quantity=item.quantity,
                unit=item.unit,
                tenant_id=tenant_id,
            )
            for position, item in enumerate(payload.items)
        ],
    )
    db.add(note)
    db.flush()

    append_delivery_event(db, note, DeliveryEventType.CREATED)
    db.commit()

    metrics_store.increment("delivery_note_created_total")
    log_event(
        f"delivery_note_created delivery_number={note.delivery_number} order_id={note.order_id}",
        delivery_note_id=str(note.id),
        tenant_id=tenant_id,
    )

    created = require_delivery_note(db, note.id, tenant_id)
    if publisher is not None:
        report_publish_result(publisher.delivery_created(created), created)
    return created


def get_delivery_note(
    db: Session, delivery_id: uuid.UUID | str, tenant_id: str
) -> DeliveryNote | None:
    note_id = parse_id(delivery_id)
    if note_id is None:
        return None
    return db.scalar(
        _note_query().where(DeliveryNote.id == note_id, DeliveryNote.tenant_id == tenant_id)
    )


def require_delivery_note(db: Session, delivery_id: uuid.UUID | str, tenant_id: str) -> DeliveryNote:
    note = get_delivery_note(db, delivery_id, tenant_id)
    if note is None:
        raise NotFoundError("Delivery note not found")
    return note


def list_delivery_notes(
    db: Session,
    tenant_id: str,
    filters: DeliveryNoteFilters | None = None,
    skip: int = 0,
    take: int = DEFAULT_PAGE_SIZE,
) -> list[DeliveryNote]:
    query = _note_query().where(DeliveryNote.tenant_id == tenant_id)
    if filters is not None:
        if filters.status:
            query = query.where(DeliveryNote.status == filters.status)
        if filters.customer_id:
            query = query.where(DeliveryNote.customer_id == filters.customer_id)
        if filters.order_id:
            query = query.where(DeliveryNote.order_id == filters.order_id)
        if filters.date_from:
            query = query.where(DeliveryNote.created_at >= _as_utc(filters.date_from))
        if filters.date_to:
            query = query.where(DeliveryNote.created_at <= _as_utc(filters.date_to))

    query = query.order_by(DeliveryNote.created_at.desc()).offset(skip).limit(take)
    return list(db.scalars(query).unique())


def update_tracking_number(
    db: Session, delivery_id: uuid.UUID | str, tenant_id: str, tracking_number: str
) -> DeliveryNote:
    note = require_delivery_note(db, delivery_id, tenant_id)
    note.tracking_number = tracking_number
    db.commit()
    return require_delivery_note(db, note.id, tenant_id)


def update_status(
    db: Session,
    delivery_id: uuid.UUID | str,
    tenant_id: str,
    status: DeliveryStatus,
    metadata: dict | None = None,
) -> DeliveryNote:
    """Set ``status`` and append the matching event.

    Any transition is accepted, including moves out of a terminal state; those
    are logged so operators can spot carriers reporting out of order.
    """
    note = require_delivery_note(db, delivery_id, tenant_id)
    previous_status = note.status

    if previous_status != status and not is_forward_transition(previous_status, status):
        log_event(
            f"delivery_status_unusual_transition from={previous_status.value} to={status.value} "
            f"terminal={previous_status in TERMINAL_STATUSES}",
            level=logging.WARNING,
            delivery_note_id=str(note.id),
            tenant_id=tenant_id,
        )

    note.status = status
    if status == DeliveryStatus.DELIVERED and note.delivered_at is None:
        note.delivered_at = now_utc()
    append_delivery_event(db, note, event_type_for_status(status), metadata)
    db.commit()

    log_event(
        f"delivery_status_updated from={previous_status.value} to={status.value}",
        delivery_note_id=str(note.id),
        tenant_id=tenant_id,
    )
    return require_delivery_note(db, note.id, tenant_id)


def list_trackable_delivery_notes(db: Session, limit: int = 100) -> list[DeliveryNote]:
    """Notes the tracking worker polls. Spans all tenants."""
    query = (
        _note_query()
        .where(
            DeliveryNote.status.in_(TRACKABLE_STATUSES),
            DeliveryNote.tracking_number.is_not(None),
            DeliveryNote.carrier_id.is_not(None),
        )
        .order_by(DeliveryNote.shipped_at.asc())
        .limit(limit)
    )
    return list(db.scalars(query).unique())
