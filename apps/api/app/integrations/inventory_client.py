from typing import Protocol

import httpx
from pydantic import BaseModel, Field

from app.config import settings
from app.integrations.errors import (
    UpstreamBadGatewayError,
    UpstreamTimeoutError,
    UpstreamUnavailableError,
)


class StockMovement(BaseModel):
    product_id: str
    quantity: int = Field(gt=0)


class InventoryClientProtocol(Protocol):
    def deduct(self, items: list[StockMovement], tenant_id: str) -> None: ...

    def restore(self, items: list[StockMovement], tenant_id: str) -> None: ...


class InventoryClient:
    """Stock deduction and restoration against the inventory service."""

    service = "inventory"

    def __init__(self, base_url: str, timeout_s: float) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s

    def deduct(self, items: list[StockMovement], tenant_id: str) -> None:
        self._post("/api/inventory/deduct", items, tenant_id)

    def restore(self, items: list[StockMovement], tenant_id: str) -> None:
        self._post("/api/inventory/restore", items, tenant_id)

    def _post(self, path: str, items: list[StockMovement], tenant_id: str) -> None:
        if not self.base_url:
            raise UpstreamUnavailableError(self.service, "Inventory service URL is not configured")

        body = {
            "items": [
                {"productId": item.product_id, "quantity": item.quantity, "tenantId": tenant_id}
                for item in items
            ]
        }
        try:
            with httpx.Client(timeout=self.timeout_s) as client:
                response = client.post(
                    f"{self.base_url}{path}",
                    json=body,
                    headers={"x-tenant-id": tenant_id},
                )
        except httpx.TimeoutException as err:
            raise UpstreamTimeoutError(self.service) from err
        except httpx.TransportError as err:
            raise UpstreamUnavailableError(self.service, str(err)) from err

        if response.status_code >= 500:
            raise UpstreamUnavailableError(
                self.service, f"Inventory service returned {response.status_code}"
            )
        if response.status_code >= 400:
            raise UpstreamBadGatewayError(
                self.service, f"Inventory service returned {response.status_code}"
            )


def get_inventory_client() -> InventoryClientProtocol:
    return InventoryClient(settings.inventory_service_url, timeout_s=settings.inventory_timeout_s)
