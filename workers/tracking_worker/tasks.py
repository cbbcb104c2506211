"""Tracking worker tasks."""

from __future__ import annotations

from app.db.session import session_scope
from app.events.bus import EventBusProtocol
from app.events.publisher import DeliveryEventPublisher
from app.integrations.carriers import CarrierClientFactory, create_carrier_client
from app.integrations.inventory_client import get_inventory_client
from app.integrations.registry_client import get_recipient_resolver
from app.services.dispatch_service import DeliveryOrchestrator
from app.services.tracking_service import TrackingRunResult, reconcile_tracking


def build_orchestrator(bus: EventBusProtocol) -> DeliveryOrchestrator:
    return DeliveryOrchestrator(
        inventory=get_inventory_client(),
        recipients=get_recipient_resolver(),
        publisher=DeliveryEventPublisher(bus),
    )


def tracking_tick(
    batch_size: int = 100,
    *,
    orchestrator: DeliveryOrchestrator,
    session_factory=session_scope,
    carrier_factory: CarrierClientFactory = create_carrier_client,
) -> TrackingRunResult:
    """Run a single reconciliation pass in its own session.

    Useful for cron-style scheduling as well as the long-running worker.
    """
    with session_factory() as db:
        return reconcile_tracking(db, orchestrator, carrier_factory, limit=batch_size)
