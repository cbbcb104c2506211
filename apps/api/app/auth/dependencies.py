from dataclasses import dataclass

from fastapi import Header

from app.services.errors import TenantRequiredError


@dataclass
class TenantContext:
    tenant_id: str


def get_tenant_context(x_tenant_id: str | None = Header(default=None)) -> TenantContext:
    """Every delivery and carrier operation is scoped by the caller's tenant."""
    tenant_id = (x_tenant_id or "").strip()
    if not tenant_id:
        raise TenantRequiredError("Tenant ID required")
    return TenantContext(tenant_id=tenant_id)
