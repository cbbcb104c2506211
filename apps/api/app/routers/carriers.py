from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.auth.dependencies import TenantContext, get_tenant_context
from app.db.session import get_db
from app.schemas.base import ApiResponse
from app.schemas.carrier import CarrierCreate, CarrierResponse, CarrierUpdate
from app.services.carriers_service import (
    create_carrier,
    delete_carrier,
    list_carriers,
    require_carrier,
    update_carrier,
)

router = APIRouter(prefix="/api/carriers", tags=["carriers"])


@router.post("", response_model=ApiResponse[CarrierResponse], status_code=status.HTTP_201_CREATED)
def create_carrier_endpoint(
    payload: CarrierCreate,
    tenant: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
) -> ApiResponse[CarrierResponse]:
    carrier = create_carrier(db, payload, tenant.tenant_id)
    return ApiResponse(data=CarrierResponse.model_validate(carrier))


@router.get("", response_model=ApiResponse[list[CarrierResponse]])
def list_carriers_endpoint(
    active_only: bool = Query(default=False, alias="activeOnly"),
    tenant: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
) -> ApiResponse[list[CarrierResponse]]:
    carriers = list_carriers(db, tenant.tenant_id, active_only=active_only)
    return ApiResponse(data=[CarrierResponse.model_validate(carrier) for carrier in carriers])


@router.get("/{carrier_id}", response_model=ApiResponse[CarrierResponse])
def get_carrier_endpoint(
    carrier_id: str,
    tenant: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
) -> ApiResponse[CarrierResponse]:
    carrier = require_carrier(db, carrier_id, tenant.tenant_id)
    return ApiResponse(data=CarrierResponse.model_validate(carrier))


@router.put("/{carrier_id}", response_model=ApiResponse[CarrierResponse])
def update_carrier_endpoint(
    carrier_id: str,
    payload: CarrierUpdate,
    tenant: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
) -> ApiResponse[CarrierResponse]:
    carrier = update_carrier(db, carrier_id, tenant.tenant_id, payload)
    return ApiResponse(data=CarrierResponse.model_validate(carrier))


@router.delete("/{carrier_id}", response_model=ApiResponse[dict])
def delete_carrier_endpoint(
    carrier_id: str,
    tenant: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
) -> ApiResponse[dict]:
    delete_carrier(db, carrier_id, tenant.tenant_id)
    return ApiResponse(data={"id": carrier_id, "deleted": True})
