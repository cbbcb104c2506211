import pytest

from app.integrations.carriers import (
    DhlCarrierClient,
    GenericCarrierClient,
    GlsCarrierClient,
    UpsCarrierClient,
    client_class_for,
    create_carrier_client,
)
from app.models.carrier import Carrier, CarrierProvider


def _carrier(name: str, provider: CarrierProvider | None = None) -> Carrier:
    return Carrier(
        name=name,
        api_endpoint="https://carrier.example/api/",
        tracking_url_template="https://carrier.example/track/{trackingNumber}",
        tenant_id="tenant-a",
        provider=provider,
    )


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("DHL Express", DhlCarrierClient),
        ("ups ground", UpsCarrierClient),
        ("GLS Germany", GlsCarrierClient),
        ("Local Courier", GenericCarrierClient),
        ("DHL via UPS partner", DhlCarrierClient),
    ],
)
def test_client_selected_from_carrier_name(name, expected):
    assert client_class_for(_carrier(name)) is expected


def test_explicit_provider_overrides_name_match():
    carrier = _carrier("DHL Express", provider=CarrierProvider.GLS)

    assert client_class_for(carrier) is GlsCarrierClient


def test_create_carrier_client_applies_configured_defaults():
    client = create_carrier_client(_carrier("UPS"))

    assert isinstance(client, UpsCarrierClient)
    assert client.base_url == "https://carrier.example/api"
    assert client.max_attempts == 3
    assert client.initial_backoff_s == 1.0
    assert client.timeout_s == 30.0
    assert client.service_name == "carrier:ups"
