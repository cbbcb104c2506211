from typing import Callable

from app.integrations.carriers.base import CarrierClient
from app.integrations.carriers.dhl import DhlCarrierClient
from app.integrations.carriers.generic import GenericCarrierClient
from app.integrations.carriers.gls import GlsCarrierClient
from app.integrations.carriers.ups import UpsCarrierClient
from app.models.carrier import Carrier, CarrierProvider

CarrierClientFactory = Callable[[Carrier], CarrierClient]

_PROVIDER_CLIENTS: dict[CarrierProvider, type[CarrierClient]] = {
    CarrierProvider.DHL: DhlCarrierClient,
    CarrierProvider.UPS: UpsCarrierClient,
    CarrierProvider.GLS: GlsCarrierClient,
    CarrierProvider.GENERIC: GenericCarrierClient,
}

# Checked in order; "dhl" wins over "ups" for a name containing both.
_NAME_KEYWORDS: tuple[tuple[str, type[CarrierClient]], ...] = (
    ("dhl", DhlCarrierClient),
    ("ups", UpsCarrierClient),
    ("gls", GlsCarrierClient),
)


def client_class_for(carrier: Carrier) -> type[CarrierClient]:
    if carrier.provider is not None:
        return _PROVIDER_CLIENTS[CarrierProvider(carrier.provider)]

    name = (carrier.name or "").lower()
    for keyword, client_class in _NAME_KEYWORDS:
        if keyword in name:
            return client_class
    return GenericCarrierClient


def create_carrier_client(carrier: Carrier) -> CarrierClient:
    return client_class_for(carrier)(carrier)
