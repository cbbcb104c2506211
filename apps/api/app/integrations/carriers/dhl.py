from app.integrations.carriers.base import CarrierClient, parse_timestamp
from app.schemas.shipping import ShipmentData, ShipmentResult, TrackingEvent, TrackingInfo


class DhlCarrierClient(CarrierClient):
    slug = "dhl"

    def create_shipment(self, data: ShipmentData) -> ShipmentResult:
        body = {
            "service": "standard",
            "recipient": {
                "name": data.recipient.name,
                "address": data.recipient.address,
                "city": data.recipient.city,
                "postalCode": data.recipient.zip_code,
                "country": data.recipient.country,
            },
            "packages": [
                {
                    "description": item.description,
                    "quantity": item.quantity,
                    "weight": item.weight or 1,
                    "value": item.value or 0,
                }
                for item in data.items
            ],
        }

        def attempt() -> ShipmentResult:
            payload = self._request("POST", "/shipments", json=body)
            return ShipmentResult(
                tracking_number=payload["trackingNumber"],
                label_url=payload.get("labelUrl"),
            )

        return self._call("create_shipment", attempt)

    def get_tracking_info(self, tracking_number: str) -> TrackingInfo:
        def attempt() -> TrackingInfo:
            payload = self._request("GET", f"/tracking/{tracking_number}")
            return TrackingInfo(
                tracking_number=tracking_number,
                status=payload["status"],
                current_location=payload.get("currentLocation"),
                estimated_delivery=parse_timestamp(payload.get("estimatedDelivery")),
                events=[
                    TrackingEvent(
                        timestamp=parse_timestamp(event.get("timestamp")),
                        description=event.get("description"),
                        location=event.get("location"),
                    )
                    for event in payload["events"]
                ],
            )

        return self._call("get_tracking_info", attempt)
