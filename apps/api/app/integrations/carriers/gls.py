from app.integrations.carriers.base import CarrierClient, parse_timestamp
from app.schemas.shipping import ShipmentData, ShipmentResult, TrackingEvent, TrackingInfo


class GlsCarrierClient(CarrierClient):
    slug = "gls"

    def create_shipment(self, data: ShipmentData) -> ShipmentResult:
        body = {
            "service": "standard",
            "recipient": {
                "name": data.recipient.name,
                "street": data.recipient.address,
                "city": data.recipient.city,
                "zip": data.recipient.zip_code,
                "country": data.recipient.country,
            },
            "parcels": [
                {
                    "description": item.description,
                    "quantity": item.quantity,
                    "weight": item.weight or 1,
                }
                for item in data.items
            ],
        }

        def attempt() -> ShipmentResult:
            payload = self._request("POST", "/shipments", json=body)
            return ShipmentResult(tracking_number=payload["tracking"], label_url=payload.get("label"))

        return self._call("create_shipment", attempt)

    def get_tracking_info(self, tracking_number: str) -> TrackingInfo:
        def attempt() -> TrackingInfo:
            payload = self._request("GET", f"/tracking/{tracking_number}")
            return TrackingInfo(
                tracking_number=tracking_number,
                status=payload["status"],
                current_location=payload.get("location"),
                estimated_delivery=parse_timestamp(payload.get("eta")),
                events=[
                    TrackingEvent(
                        timestamp=parse_timestamp(entry.get("date")),
                        description=entry.get("description"),
                        location=entry.get("location"),
                    )
                    for entry in payload.get("history") or []
                ],
            )

        return self._call("get_tracking_info", attempt)
