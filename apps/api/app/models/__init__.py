# Import SQLAlchemy models so they register on Base.metadata
from app.models.carrier import Carrier, CarrierProvider  # noqa: F401
from app.models.delivery_event import DeliveryEvent, DeliveryEventType  # noqa: F401
from app.models.delivery_note import DeliveryItem, DeliveryNote, DeliveryStatus  # noqa: F401
