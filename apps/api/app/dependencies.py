from fastapi import Depends, Request

from app.events.bus import EventBusProtocol
from app.events.publisher import DeliveryEventPublisher
from app.integrations.carriers import CarrierClientFactory, create_carrier_client
from app.integrations.inventory_client import InventoryClientProtocol, get_inventory_client
from app.integrations.registry_client import RecipientResolver, get_recipient_resolver
from app.services.dispatch_service import DeliveryOrchestrator


def get_event_bus(request: Request) -> EventBusProtocol:
    return request.app.state.event_bus


def get_event_publisher(bus: EventBusProtocol = Depends(get_event_bus)) -> DeliveryEventPublisher:
    return DeliveryEventPublisher(bus)


def get_carrier_factory() -> CarrierClientFactory:
    return create_carrier_client


def get_orchestrator(
    inventory: InventoryClientProtocol = Depends(get_inventory_client),
    recipients: RecipientResolver = Depends(get_recipient_resolver),
    publisher: DeliveryEventPublisher = Depends(get_event_publisher),
    carrier_factory: CarrierClientFactory = Depends(get_carrier_factory),
) -> DeliveryOrchestrator:
    return DeliveryOrchestrator(
        inventory=inventory,
        recipients=recipients,
        publisher=publisher,
        carrier_factory=carrier_factory,
    )
