import uuid

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.carrier import Carrier
from app.observability import log_event
from app.schemas.carrier import CarrierCreate, CarrierUpdate
from app.services.errors import NotFoundError
from app.services.identifiers import parse_id

TRACKING_NUMBER_PLACEHOLDER = "{trackingNumber}"

_NON_NULLABLE_FIELDS = {"name", "api_endpoint", "tracking_url_template", "active"}


def create_carrier(db: Session, payload: CarrierCreate, tenant_id: str) -> Carrier:
    carrier = Carrier(
        name=payload.name,
        api_endpoint=payload.api_endpoint,
        tracking_url_template=payload.tracking_url_template,
        api_key=payload.api_key,
        api_secret=payload.api_secret,
        active=payload.active,
        provider=payload.provider,
        tenant_id=tenant_id,
    )
    db.add(carrier)
    db.commit()
    db.refresh(carrier)
    log_event(f"carrier_created name={carrier.name}", carrier_id=str(carrier.id), tenant_id=tenant_id)
    return carrier


def get_carrier(db: Session, carrier_id: uuid.UUID | str, tenant_id: str) -> Carrier | None:
    parsed = parse_id(carrier_id)
    if parsed is None:
        return None
    return db.scalar(select(Carrier).where(Carrier.id == parsed, Carrier.tenant_id == tenant_id))


def require_carrier(db: Session, carrier_id: uuid.UUID | str, tenant_id: str) -> Carrier:
    carrier = get_carrier(db, carrier_id, tenant_id)
    if carrier is None:
        raise NotFoundError("Carrier not found")
    return carrier


def list_carriers(db: Session, tenant_id: str, active_only: bool = False) -> list[Carrier]:
    query = select(Carrier).where(Carrier.tenant_id == tenant_id)
    if active_only:
        query = query.where(Carrier.active.is_(True))
    return list(db.scalars(query.order_by(Carrier.name.asc())))


def update_carrier(
    db: Session, carrier_id: uuid.UUID | str, tenant_id: str, payload: CarrierUpdate
) -> Carrier:
    carrier = require_carrier(db, carrier_id, tenant_id)
    for field, value in payload.model_dump(exclude_unset=True).items():
        if value is None and field in _NON_NULLABLE_FIELDS:
            continue
        setattr(carrier, field, value)
    db.commit()
    db.refresh(carrier)
    log_event("carrier_updated", carrier_id=str(carrier.id), tenant_id=tenant_id)
    return carrier


def delete_carrier(db: Session, carrier_id: uuid.UUID | str, tenant_id: str) -> None:
    carrier = require_carrier(db, carrier_id, tenant_id)
    db.delete(carrier)
    db.commit()
    log_event("carrier_deleted", carrier_id=str(carrier.id), tenant_id=tenant_id)


def tracking_url(carrier: Carrier, tracking_number: str) -> str:
    return carrier.tracking_url_template.replace(TRACKING_NUMBER_PLACEHOLDER, tracking_number)
