from app.integrations.carriers.base import CarrierClient
from app.integrations.carriers.dhl import DhlCarrierClient
from app.integrations.carriers.factory import (
    CarrierClientFactory,
    client_class_for,
    create_carrier_client,
)
from app.integrations.carriers.generic import GenericCarrierClient
from app.integrations.carriers.gls import GlsCarrierClient
from app.integrations.carriers.retry import retry_with_backoff
from app.integrations.carriers.ups import UpsCarrierClient

__all__ = [
    "CarrierClient",
    "CarrierClientFactory",
    "DhlCarrierClient",
    "GenericCarrierClient",
    "GlsCarrierClient",
    "UpsCarrierClient",
    "client_class_for",
    "create_carrier_client",
    "retry_with_backoff",
]
