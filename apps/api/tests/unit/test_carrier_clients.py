import httpx
import pytest

from app.integrations.carriers.dhl import DhlCarrierClient
from app.integrations.carriers.generic import GenericCarrierClient
from app.integrations.carriers.gls import GlsCarrierClient
from app.integrations.carriers.ups import UpsCarrierClient
from app.integrations.errors import RetryExhaustedError, UpstreamBadGatewayError
from app.observability import metrics_store
from app.schemas.shipping import Recipient, ShipmentData, ShipmentItem


class _Response:
    def __init__(self, status_code: int, payload):
        self.status_code = status_code
        self._payload = payload

    def json(self):
        return self._payload


class _ClientStub:
    def __init__(self, sequence, calls, **kwargs):
        self._sequence = sequence
        self._calls = calls
        self.kwargs = kwargs

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False

    def request(self, method, path, json=None):
        self._calls.append(
            {"method": method, "path": path, "json": json, "headers": self.kwargs.get("headers")}
        )
        value = self._sequence.pop(0)
        if isinstance(value, Exception):
            raise value
        return value


@pytest.fixture
def http_stub(monkeypatch):
    calls: list[dict] = []
    sequence: list = []

    def _factory(**kwargs):
        return _ClientStub(sequence, calls, **kwargs)

    monkeypatch.setattr("app.integrations.carriers.base.httpx.Client", _factory)
    return sequence, calls


@pytest.fixture
def shipment() -> ShipmentData:
    return ShipmentData(
        recipient=Recipient(
            name="Jane Doe",
            address="Main St 1",
            city="Berlin",
            zip_code="10115",
            country="DE",
        ),
        items=[ShipmentItem(description="Widget", quantity=2)],
    )


def _client(client_class, make_carrier, **kwargs):
    carrier = make_carrier()
    return client_class(carrier, max_attempts=3, initial_backoff_s=1.0, sleep=lambda _s: None, **kwargs)


def test_dhl_create_shipment_sends_recipient_and_packages(http_stub, make_carrier, shipment):
    sequence, calls = http_stub
    sequence.append(_Response(201, {"trackingNumber": "JD0001", "labelUrl": "https://l/1.pdf"}))

    result = _client(DhlCarrierClient, make_carrier).create_shipment(shipment)

    assert result.tracking_number == "JD0001"
    assert result.label_url == "https://l/1.pdf"
    call = calls[0]
    assert call["method"] == "POST"
    assert call["path"] == "/shipments"
    assert call["json"]["service"] == "standard"
    assert call["json"]["recipient"]["postalCode"] == "10115"
    assert call["json"]["packages"] == [
        {"description": "Widget", "quantity": 2, "weight": 1, "value": 0}
    ]
    assert call["headers"]["Authorization"] == "Bearer key"
    assert call["headers"]["X-API-Secret"] == "secret"


def test_dhl_tracking_parses_events(http_stub, make_carrier):
    sequence, calls = http_stub
    sequence.append(
        _Response(
            200,
            {
                "status": "In Transit",
                "currentLocation": "Leipzig Hub",
                "estimatedDelivery": "2026-10-20T12:00:00Z",
                "events": [
                    {
                        "timestamp": "2026-10-18T08:00:00Z",
                        "description": "Picked up",
                        "location": "Berlin",
                    }
                ],
            },
        )
    )

    info = _client(DhlCarrierClient, make_carrier).get_tracking_info("JD0001")

    assert calls[0]["path"] == "/tracking/JD0001"
    assert info.status == "In Transit"
    assert info.current_location == "Leipzig Hub"
    assert info.estimated_delivery is not None
    assert info.estimated_delivery.day == 20
    assert info.events[0].description == "Picked up"


def test_ups_create_shipment_uses_pascal_case_body(http_stub, make_carrier, shipment):
    sequence, calls = http_stub
    sequence.append(_Response(200, {"TrackingNumber": "1Z999", "LabelUrl": None}))

    result = _client(UpsCarrierClient, make_carrier).create_shipment(shipment)

    assert result.tracking_number == "1Z999"
    body = calls[0]["json"]
    assert body["Service"] == "UPS Ground"
    assert body["ShipTo"]["Address"]["AddressLine"] == ["Main St 1"]
    assert body["ShipTo"]["Address"]["CountryCode"] == "DE"
    assert body["Package"] == [{"Description": "Widget", "Weight": 1, "Value": "0"}]


def test_ups_tracking_reads_nested_track_response(http_stub, make_carrier):
    sequence, calls = http_stub
    sequence.append(
        _Response(
            200,
            {
                "TrackResponse": {
                    "Shipment": [
                        {
                            "Package": [
                                {
                                    "Delivery": {
                                        "Date": "20261020",
                                        "DeliveryLocation": {"LocationDescription": "Delivered"},
                                    },
                                    "Activity": [
                                        {
                                            "Date": "20261018",
                                            "Time": "081500",
                                            "Description": "Origin scan",
                                            "Location": {"Address": {"City": "Berlin"}},
                                        }
                                    ],
                                }
                            ]
                        }
                    ]
                }
            },
        )
    )

    info = _client(UpsCarrierClient, make_carrier).get_tracking_info("1Z999")

    assert calls[0]["path"] == "/track/1Z999"
    assert info.status == "Delivered"
    assert info.estimated_delivery is not None
    assert info.events[0].location == "Berlin"
    assert info.events[0].timestamp is not None
    assert info.events[0].timestamp.hour == 8


def test_ups_tracking_defaults_status_when_missing(http_stub, make_carrier):
    sequence, _calls = http_stub
    sequence.append(_Response(200, {"TrackResponse": {"Shipment": []}}))

    info = _client(UpsCarrierClient, make_carrier).get_tracking_info("1Z999")

    assert info.status == "In Transit"
    assert info.events == []


def test_gls_create_shipment_and_tracking(http_stub, make_carrier, shipment):
    sequence, calls = http_stub
    sequence.append(_Response(200, {"tracking": "GLS42", "label": "https://l/gls.pdf"}))
    sequence.append(
        _Response(
            200,
            {
                "status": "Delivered",
                "location": "Hamburg",
                "history": [{"date": "2026-10-18 09:00:00", "description": "Delivered"}],
            },
        )
    )
    client = _client(GlsCarrierClient, make_carrier)

    result = client.create_shipment(shipment)
    info = client.get_tracking_info("GLS42")

    assert result.tracking_number == "GLS42"
    assert calls[0]["json"]["recipient"]["zip"] == "10115"
    assert calls[0]["json"]["parcels"][0]["quantity"] == 2
    assert info.status == "Delivered"
    assert info.current_location == "Hamburg"
    assert len(info.events) == 1


def test_generic_client_accepts_field_aliases(http_stub, make_carrier, shipment):
    sequence, _calls = http_stub
    sequence.append(_Response(200, {"tracking": "GEN1", "label": "https://l/g.pdf"}))
    sequence.append(_Response(200, {"history": [{"date": "2026-10-18", "status": "Scanned"}]}))
    client = _client(GenericCarrierClient, make_carrier)

    result = client.create_shipment(shipment)
    info = client.get_tracking_info("GEN1")

    assert result.tracking_number == "GEN1"
    assert result.label_url == "https://l/g.pdf"
    assert info.status == "In Transit"
    assert info.events[0].description == "Scanned"


def test_server_errors_are_retried_until_success(http_stub, make_carrier, shipment):
    sequence, calls = http_stub
    sequence.extend(
        [
            _Response(503, {}),
            httpx.ReadTimeout("timeout"),
            _Response(200, {"trackingNumber": "JD0002"}),
        ]
    )

    result = _client(DhlCarrierClient, make_carrier).create_shipment(shipment)

    assert result.tracking_number == "JD0002"
    assert len(calls) == 3
    assert metrics_store.snapshot().counters.get("carrier_retry_total") == 2


def test_retry_exhausted_after_max_attempts(http_stub, make_carrier, shipment):
    sequence, calls = http_stub
    sequence.extend([_Response(500, {}), _Response(502, {}), _Response(503, {})])

    with pytest.raises(RetryExhaustedError) as exc_info:
        _client(DhlCarrierClient, make_carrier).create_shipment(shipment)

    assert len(calls) == 3
    assert exc_info.value.attempts == 3
    assert exc_info.value.retryable is True
    assert metrics_store.snapshot().counters.get("carrier_failure_total") == 1


def test_client_errors_are_mapped_to_bad_gateway_inside_exhaustion(http_stub, make_carrier):
    sequence, _calls = http_stub
    sequence.extend([_Response(404, {})])

    client = DhlCarrierClient(make_carrier(), max_attempts=1, sleep=lambda _s: None)
    with pytest.raises(RetryExhaustedError) as exc_info:
        client.get_tracking_info("missing")

    assert isinstance(exc_info.value.last_error, UpstreamBadGatewayError)


def test_malformed_payload_is_bad_gateway(http_stub, make_carrier, shipment):
    sequence, _calls = http_stub
    sequence.append(_Response(200, {"unexpected": True}))

    client = DhlCarrierClient(make_carrier(), max_attempts=1, sleep=lambda _s: None)
    with pytest.raises(RetryExhaustedError) as exc_info:
        client.create_shipment(shipment)

    assert isinstance(exc_info.value.last_error, UpstreamBadGatewayError)
    assert "Malformed create_shipment response" in str(exc_info.value.last_error)


def test_non_object_tracking_event_is_retried_then_exhausted(http_stub, make_carrier):
    sequence, calls = http_stub
    sequence.extend(
        [_Response(200, {"status": "In Transit", "events": ["garbage"]}) for _ in range(3)]
    )

    with pytest.raises(RetryExhaustedError) as exc_info:
        _client(DhlCarrierClient, make_carrier).get_tracking_info("1Z999")

    assert len(calls) == 3
    assert isinstance(exc_info.value.last_error, UpstreamBadGatewayError)
    assert "Malformed get_tracking_info response" in str(exc_info.value.last_error)


def test_ups_non_object_shipment_is_bad_gateway(http_stub, make_carrier):
    sequence, _calls = http_stub
    sequence.append(_Response(200, {"TrackResponse": {"Shipment": ["garbage"]}}))

    client = UpsCarrierClient(make_carrier(), max_attempts=1, sleep=lambda _s: None)
    with pytest.raises(RetryExhaustedError) as exc_info:
        client.get_tracking_info("1Z999")

    assert isinstance(exc_info.value.last_error, UpstreamBadGatewayError)
