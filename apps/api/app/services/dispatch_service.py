import logging
import uuid

from sqlalchemy import update
from sqlalchemy.orm import Session

from app.events.publisher import DeliveryEventPublisher, report_publish_result
from app.integrations.carriers import CarrierClientFactory, create_carrier_client
from app.integrations.errors import UpstreamServiceError
from app.integrations.inventory_client import InventoryClientProtocol, StockMovement
from app.integrations.registry_client import RecipientResolver
from app.models.delivery_event import DeliveryEventType, now_utc
from app.models.delivery_note import DeliveryNote, DeliveryStatus
from app.observability import log_event, metrics_store, observe_timing
from app.schemas.shipping import ShipmentData, ShipmentItem, TrackingInfo
from app.services import delivery_notes_service
from app.services.carriers_service import get_carrier, tracking_url
from app.services.delivery_notes_service import append_delivery_event, require_delivery_note
from app.services.errors import DeliveryValidationError, InvalidStateError, NotFoundError


class DeliveryOrchestrator:
    """Drives a delivery note through dispatch and confirmation.

    A carrier failure during dispatch aborts the whole operation and leaves the
    note untouched. Once the carrier has accepted the shipment, the note is
    committed as DISPATCHED before inventory is touched; a failed stock
    deduction is logged and does not undo the dispatch.
    """

    def __init__(
        self,
        inventory: InventoryClientProtocol,
        recipients: RecipientResolver,
        publisher: DeliveryEventPublisher,
        carrier_factory: CarrierClientFactory = create_carrier_client,
    ) -> None:
        self.inventory = inventory
        self.recipients = recipients
        self.publisher = publisher
        self.carrier_factory = carrier_factory

    def dispatch(
        self,
        db: Session,
        delivery_id: uuid.UUID | str,
        carrier_id: uuid.UUID | str,
        tenant_id: str,
    ) -> DeliveryNote:
        note = require_delivery_note(db, delivery_id, tenant_id)
        if note.status != DeliveryStatus.PENDING:
            raise InvalidStateError(f"Cannot dispatch delivery in status: {note.status.value}")

        carrier = get_carrier(db, carrier_id, tenant_id)
        if carrier is None:
            raise NotFoundError("Carrier not found")
        if not carrier.active:
            raise InvalidStateError("Carrier is inactive")

        shipment = ShipmentData(
            recipient=self.recipients.resolve(note.customer_id, note.delivery_address_id, tenant_id),
            items=[
                ShipmentItem(description=item.description, quantity=item.quantity)
                for item in note.items
            ],
        )
        client = self.carrier_factory(carrier)
        with observe_timing("carrier_create_shipment_s"):
            result = client.create_shipment(shipment)

        shipped_at = now_utc()
        claimed = db.execute(
            update(DeliveryNote)
            .where(
                DeliveryNote.id == note.id,
                DeliveryNote.tenant_id == tenant_id,
                DeliveryNote.status == DeliveryStatus.PENDING,
            )
            .values(
                status=DeliveryStatus.DISPATCHED,
                tracking_number=result.tracking_number,
                carrier_id=carrier.id,
                shipped_at=shipped_at,
                updated_at=shipped_at,
            )
            .execution_options(synchronize_session=False)
        )
        if claimed.rowcount == 0:
            db.rollback()
            log_event(
                "dispatch_lost_race carrier shipment created for a note dispatched concurrently",
                level=logging.ERROR,
                delivery_note_id=str(note.id),
                tenant_id=tenant_id,
                carrier_id=str(carrier.id),
                tracking_number=result.tracking_number,
            )
            raise InvalidStateError("Delivery was dispatched concurrently")

        append_delivery_event(
            db,
            note,
            DeliveryEventType.DISPATCHED,
            {"carrierId": str(carrier.id), "trackingNumber": result.tracking_number},
        )
        db.commit()
        metrics_store.increment("dispatch_total")
        log_event(
            "delivery_dispatched",
            delivery_note_id=str(note.id),
            tenant_id=tenant_id,
            carrier_id=str(carrier.id),
            tracking_number=result.tracking_number,
        )

        self._deduct_inventory(note, tenant_id)

        dispatched = require_delivery_note(db, note.id, tenant_id)
        report_publish_result(self.publisher.delivery_dispatched(dispatched), dispatched)
        return dispatched

    def confirm(
        self,
        db: Session,
        delivery_id: uuid.UUID | str,
        tenant_id: str,
        proof_of_delivery_url: str | None = None,
    ) -> DeliveryNote:
        note = require_delivery_note(db, delivery_id, tenant_id)
        if note.status == DeliveryStatus.DELIVERED:
            raise InvalidStateError("Delivery already confirmed")

        delivered_at = now_utc()
        values = {
            "status": DeliveryStatus.DELIVERED,
            "delivered_at": delivered_at,
            "updated_at": delivered_at,
        }
        if proof_of_delivery_url:
            values["proof_of_delivery_url"] = proof_of_delivery_url

        claimed = db.execute(
            update(DeliveryNote)
            .where(
                DeliveryNote.id == note.id,
                DeliveryNote.tenant_id == tenant_id,
                DeliveryNote.status != DeliveryStatus.DELIVERED,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if claimed.rowcount == 0:
            db.rollback()
            raise InvalidStateError("Delivery already confirmed")

        metadata = {"proofOfDeliveryUrl": proof_of_delivery_url} if proof_of_delivery_url else None
        append_delivery_event(db, note, DeliveryEventType.DELIVERED, metadata)
        db.commit()
        metrics_store.increment("confirm_total")
        log_event("delivery_confirmed", delivery_note_id=str(note.id), tenant_id=tenant_id)

        confirmed = require_delivery_note(db, note.id, tenant_id)
        report_publish_result(self.publisher.delivery_confirmed(confirmed), confirmed)
        return confirmed

    def update_status(
        self,
        db: Session,
        delivery_id: uuid.UUID | str,
        tenant_id: str,
        status: DeliveryStatus,
        metadata: dict | None = None,
    ) -> DeliveryNote:
        return delivery_notes_service.update_status(db, delivery_id, tenant_id, status, metadata)

    def get_tracking_info(
        self, db: Session, delivery_id: uuid.UUID | str, tenant_id: str
    ) -> TrackingInfo:
        note = require_delivery_note(db, delivery_id, tenant_id)
        if not note.tracking_number or note.carrier is None:
            raise DeliveryValidationError("Delivery note has no tracking number or carrier")
        info = self.carrier_factory(note.carrier).get_tracking_info(note.tracking_number)
        return info.model_copy(
            update={"tracking_url": tracking_url(note.carrier, note.tracking_number)}
        )

    def _deduct_inventory(self, note: DeliveryNote, tenant_id: str) -> None:
        movements = [
            StockMovement(product_id=item.product_id, quantity=item.quantity) for item in note.items
        ]
        try:
            self.inventory.deduct(movements, tenant_id)
        except UpstreamServiceError as err:
            # The shipment already exists at the carrier; stock is reconciled out of band
            metrics_store.increment("inventory_deduct_failed_total")
            log_event(
                f"inventory_deduct_failed error={err}",
                level=logging.WARNING,
                delivery_note_id=str(note.id),
                tenant_id=tenant_id,
            )
