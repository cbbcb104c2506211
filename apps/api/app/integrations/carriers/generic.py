from app.integrations.carriers.base import CarrierClient, parse_timestamp
from app.schemas.shipping import ShipmentData, ShipmentResult, TrackingEvent, TrackingInfo

DEFAULT_STATUS = "In Transit"


class GenericCarrierClient(CarrierClient):
    """Fallback integration for carriers without a dedicated client.

    Accepts the common aliases carrier APIs use for the same field
    (``tracking``/``trackingNumber``, ``history``/``events`` and so on).
    """

    slug = "generic"

    def create_shipment(self, data: ShipmentData) -> ShipmentResult:
        body = {
            "recipient": {
                "name": data.recipient.name,
                "address": data.recipient.address,
                "city": data.recipient.city,
                "zipCode": data.recipient.zip_code,
                "country": data.recipient.country,
            },
            "items": [item.model_dump(exclude_none=True) for item in data.items],
        }

        def attempt() -> ShipmentResult:
            payload = self._request("POST", "/shipments", json=body)
            return ShipmentResult(
                tracking_number=payload.get("trackingNumber") or payload["tracking"],
                label_url=payload.get("labelUrl") or payload.get("label"),
            )

        return self._call("create_shipment", attempt)

    def get_tracking_info(self, tracking_number: str) -> TrackingInfo:
        def attempt() -> TrackingInfo:
            payload = self._request("GET", f"/tracking/{tracking_number}")
            raw_events = payload.get("events") or payload.get("history") or []
            return TrackingInfo(
                tracking_number=tracking_number,
                status=payload.get("status") or DEFAULT_STATUS,
                current_location=payload.get("location") or payload.get("currentLocation"),
                estimated_delivery=parse_timestamp(payload.get("estimatedDelivery")),
                events=[
                    TrackingEvent(
                        timestamp=parse_timestamp(
                            event.get("timestamp") or event.get("date") or event.get("time")
                        ),
                        description=event.get("description") or event.get("status"),
                        location=event.get("location"),
                    )
                    for event in raw_events
                ],
            )

        return self._call("get_tracking_info", attempt)
