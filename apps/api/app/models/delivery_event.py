import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, DateTime, Enum, ForeignKey, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


class DeliveryEventType(str, enum.Enum):
    CREATED = "CREATED"
    DISPATCHED = "DISPATCHED"
    IN_TRANSIT = "IN_TRANSIT"
    DELIVERED = "DELIVERED"
    RETURNED = "RETURNED"
    CANCELED = "CANCELED"


class DeliveryEvent(Base):
    """Audit record of a delivery note transition. Rows are only ever inserted."""

    __tablename__ = "delivery_events"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    delivery_note_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("delivery_notes.id", ondelete="CASCADE"), nullable=False, index=True
    )
    event_type: Mapped[DeliveryEventType] = mapped_column(
        Enum(DeliveryEventType, name="delivery_event_type"), nullable=False
    )
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now_utc, server_default=func.now()
    )
    # "metadata" is reserved on declarative classes
    event_metadata: Mapped[dict | None] = mapped_column("metadata", JSON, nullable=True)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    delivery_note = relationship("DeliveryNote", back_populates="events")
