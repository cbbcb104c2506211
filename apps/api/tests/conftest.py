import os

os.environ.setdefault("DELIVERY_DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("DELIVERY_NATS_ENABLED", "false")
os.environ.setdefault("DELIVERY_TESTING", "true")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

import app.models  # noqa: F401,E402
from app.db.base import Base  # noqa: E402
from app.db.session import SessionLocal, get_db  # noqa: E402
from app.db.session import engine as app_engine  # noqa: E402
from app.dependencies import get_carrier_factory, get_event_bus  # noqa: E402
from app.events.bus import PublishResult  # noqa: E402
from app.events.publisher import DeliveryEventPublisher  # noqa: E402
from app.integrations.inventory_client import get_inventory_client  # noqa: E402
from app.integrations.registry_client import (  # noqa: E402
    PlaceholderRecipientResolver,
    get_recipient_resolver,
)
from app.main import app  # noqa: E402
from app.models.carrier import CarrierProvider  # noqa: E402
from app.observability import metrics_store  # noqa: E402
from app.schemas.carrier import CarrierCreate  # noqa: E402
from app.schemas.delivery_note import DeliveryItemCreate, DeliveryNoteCreate  # noqa: E402
from app.schemas.shipping import ShipmentResult, TrackingInfo  # noqa: E402
from app.services.carriers_service import create_carrier  # noqa: E402
from app.services.delivery_notes_service import create_delivery_note  # noqa: E402
from app.services.dispatch_service import DeliveryOrchestrator  # noqa: E402

TENANT_A = "tenant-a"
TENANT_B = "tenant-b"


class FakeEventBus:
    def __init__(self, connected: bool = True) -> None:
        self.connected = connected
        self.published: list[tuple[str, dict]] = []

    @property
    def is_connected(self) -> bool:
        return self.connected

    def publish(self, event_type: str, payload: dict) -> PublishResult:
        if not self.connected:
            return PublishResult(ok=False, event_type=event_type, error="event bus not connected")
        self.published.append((event_type, payload))
        return PublishResult(ok=True, event_type=event_type)

    def of_type(self, event_type: str) -> list[dict]:
        return [payload for published_type, payload in self.published if published_type == event_type]


class FakeInventory:
    def __init__(self) -> None:
        self.error: Exception | None = None
        self.deducted: list[tuple[list, str]] = []
        self.restored: list[tuple[list, str]] = []

    def deduct(self, items, tenant_id: str) -> None:
        self.deducted.append((items, tenant_id))
        if self.error is not None:
            raise self.error

    def restore(self, items, tenant_id: str) -> None:
        self.restored.append((items, tenant_id))


class FakeCarrierClient:
    def __init__(self) -> None:
        self.tracking_number = "1Z999"
        self.tracking_status = "In Transit"
        self.shipment_error: Exception | None = None
        self.tracking_error: Exception | None = None
        self.shipments: list = []
        self.tracking_requests: list[str] = []

    def create_shipment(self, data) -> ShipmentResult:
        self.shipments.append(data)
        if self.shipment_error is not None:
            raise self.shipment_error
        return ShipmentResult(
            tracking_number=self.tracking_number, label_url="https://labels.example/1.pdf"
        )

    def get_tracking_info(self, tracking_number: str) -> TrackingInfo:
        self.tracking_requests.append(tracking_number)
        if self.tracking_error is not None:
            raise self.tracking_error
        return TrackingInfo(
            tracking_number=tracking_number,
            status=self.tracking_status,
            current_location="Hub A",
        )


class FakeCarrierFactory:
    def __init__(self, client: FakeCarrierClient) -> None:
        self.client = client
        self.carriers: list = []

    def __call__(self, carrier):
        self.carriers.append(carrier)
        return self.client


@pytest.fixture(autouse=True)
def reset_db():
    Base.metadata.drop_all(bind=app_engine)
    Base.metadata.create_all(bind=app_engine)
    yield


@pytest.fixture(autouse=True)
def reset_metrics_store():
    metrics_store.reset()
    yield


@pytest.fixture
def db_session():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def event_bus() -> FakeEventBus:
    return FakeEventBus()


@pytest.fixture
def publisher(event_bus) -> DeliveryEventPublisher:
    return DeliveryEventPublisher(event_bus)


@pytest.fixture
def inventory() -> FakeInventory:
    return FakeInventory()


@pytest.fixture
def carrier_client() -> FakeCarrierClient:
    return FakeCarrierClient()


@pytest.fixture
def carrier_factory(carrier_client) -> FakeCarrierFactory:
    return FakeCarrierFactory(carrier_client)


@pytest.fixture
def orchestrator(inventory, publisher, carrier_factory) -> DeliveryOrchestrator:
    return DeliveryOrchestrator(
        inventory=inventory,
        recipients=PlaceholderRecipientResolver(),
        publisher=publisher,
        carrier_factory=carrier_factory,
    )


@pytest.fixture
def make_delivery_note(db_session, publisher):
    def _make(tenant_id: str = TENANT_A, order_id: str = "O1", customer_id: str = "C1", items=None):
        payload = DeliveryNoteCreate(
            order_id=order_id,
            customer_id=customer_id,
            delivery_address_id="A1",
            items=items
            or [DeliveryItemCreate(product_id="P1", description="Widget", quantity=2, unit="pcs")],
        )
        return create_delivery_note(db_session, payload, tenant_id, publisher=publisher)

    return _make


@pytest.fixture
def make_carrier(db_session):
    def _make(
        name: str = "DHL Express",
        tenant_id: str = TENANT_A,
        active: bool = True,
        provider: CarrierProvider | None = None,
    ):
        payload = CarrierCreate(
            name=name,
            api_endpoint="https://carrier.example/api",
            tracking_url_template="https://carrier.example/track/{trackingNumber}",
            api_key="key",
            api_secret="secret",
            active=active,
            provider=provider,
        )
        return create_carrier(db_session, payload, tenant_id)

    return _make


@pytest.fixture
def client(event_bus, inventory, carrier_factory):
    def override_get_db():
        db = SessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_event_bus] = lambda: event_bus
    app.dependency_overrides[get_inventory_client] = lambda: inventory
    app.dependency_overrides[get_recipient_resolver] = PlaceholderRecipientResolver
    app.dependency_overrides[get_carrier_factory] = lambda: carrier_factory
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def tenant_headers() -> dict[str, dict[str, str]]:
    return {
        "a": {"X-Tenant-ID": TENANT_A},
        "b": {"X-Tenant-ID": TENANT_B},
    }
