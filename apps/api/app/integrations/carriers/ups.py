from typing import Any

from app.integrations.carriers.base import CarrierClient, parse_timestamp
from app.schemas.shipping import ShipmentData, ShipmentResult, TrackingEvent, TrackingInfo

DEFAULT_STATUS = "In Transit"


def _first(values: Any) -> dict:
    if isinstance(values, list) and values:
        return values[0] or {}
    return {}


class UpsCarrierClient(CarrierClient):
    slug = "ups"

    def create_shipment(self, data: ShipmentData) -> ShipmentResult:
        body = {
            "Service": "UPS Ground",
            "ShipTo": {
                "Name": data.recipient.name,
                "Address": {
                    "AddressLine": [data.recipient.address],
                    "City": data.recipient.city,
                    "PostalCode": data.recipient.zip_code,
                    "CountryCode": data.recipient.country,
                },
            },
            "Package": [
                {
                    "Description": item.description,
                    "Weight": item.weight or 1,
                    "Value": str(item.value) if item.value is not None else "0",
                }
                for item in data.items
            ],
        }

        def attempt() -> ShipmentResult:
            payload = self._request("POST", "/shipments", json=body)
            return ShipmentResult(
                tracking_number=payload["TrackingNumber"],
                label_url=payload.get("LabelUrl"),
            )

        return self._call("create_shipment", attempt)

    def get_tracking_info(self, tracking_number: str) -> TrackingInfo:
        def attempt() -> TrackingInfo:
            payload = self._request("GET", f"/track/{tracking_number}")
            shipment = _first((payload.get("TrackResponse") or {}).get("Shipment"))
            package = _first(shipment.get("Package"))
            delivery = package.get("Delivery") or {}
            location = delivery.get("DeliveryLocation") or {}

            events = []
            for activity in package.get("Activity") or []:
                date = activity.get("Date") or ""
                time_of_day = activity.get("Time") or ""
                address = (activity.get("Location") or {}).get("Address") or {}
                events.append(
                    TrackingEvent(
                        timestamp=parse_timestamp(f"{date} {time_of_day}".strip()),
                        description=activity.get("Description"),
                        location=address.get("City"),
                    )
                )

            return TrackingInfo(
                tracking_number=tracking_number,
                status=location.get("LocationDescription") or DEFAULT_STATUS,
                estimated_delivery=parse_timestamp(delivery.get("Date")),
                events=events,
            )

        return self._call("get_tracking_info", attempt)
