from typing import Protocol

import httpx

from app.config import settings
from app.integrations.errors import (
    UpstreamBadGatewayError,
    UpstreamTimeoutError,
    UpstreamUnavailableError,
)
from app.schemas.shipping import Recipient


class RecipientResolver(Protocol):
    def resolve(self, customer_id: str, delivery_address_id: str, tenant_id: str) -> Recipient: ...


class RegistryClient:
    """Resolves a customer's delivery address through the registry service."""

    service = "registry"

    def __init__(self, base_url: str, timeout_s: float) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s

    def resolve(self, customer_id: str, delivery_address_id: str, tenant_id: str) -> Recipient:
        url = f"{self.base_url}/api/customers/{customer_id}/addresses/{delivery_address_id}"
        try:
            with httpx.Client(timeout=self.timeout_s) as client:
                response = client.get(url, headers={"x-tenant-id": tenant_id})
        except httpx.TimeoutException as err:
            raise UpstreamTimeoutError(self.service) from err
        except httpx.TransportError as err:
            raise UpstreamUnavailableError(self.service, str(err)) from err

        if response.status_code >= 500:
            raise UpstreamUnavailableError(
                self.service, f"Registry service returned {response.status_code}"
            )
        if response.status_code >= 400:
            raise UpstreamBadGatewayError(
                self.service, f"Registry service returned {response.status_code}"
            )

        try:
            payload = response.json()
            data = payload.get("data", payload)
            return Recipient(
                name=data["name"],
                address=data["street"],
                city=data["city"],
                zip_code=data["postalCode"],
                country=data["country"],
            )
        except (ValueError, KeyError, TypeError, AttributeError) as err:
            raise UpstreamBadGatewayError(
                self.service, "Registry service returned malformed address"
            ) from err


class PlaceholderRecipientResolver:
    """Used when no registry service is configured; every shipment gets the same recipient."""

    def resolve(self, customer_id: str, delivery_address_id: str, tenant_id: str) -> Recipient:
        return Recipient(
            name="Customer Name",
            address="Address Line 1",
            city="City",
            zip_code="12345",
            country="Country",
        )


def get_recipient_resolver() -> RecipientResolver:
    if not settings.registry_service_url.strip():
        return PlaceholderRecipientResolver()
    return RegistryClient(settings.registry_service_url, timeout_s=settings.registry_timeout_s)
