from datetime import datetime

from fastapi import APIRouter, Body, Depends, Query, status
from sqlalchemy.orm import Session

from app.auth.dependencies import TenantContext, get_tenant_context
from app.db.session import get_db
from app.dependencies import get_event_publisher, get_orchestrator
from app.events.publisher import DeliveryEventPublisher
from app.models.delivery_note import DeliveryStatus
from app.observability import observe_timing
from app.schemas.base import ApiResponse
from app.schemas.delivery_note import (
    ConfirmRequest,
    DeliveryNoteCreate,
    DeliveryNoteFilters,
    DeliveryNoteResponse,
    DispatchRequest,
)
from app.schemas.shipping import TrackingInfo
from app.services.delivery_notes_service import (
    create_delivery_note,
    list_delivery_notes,
    require_delivery_note,
)
from app.services.dispatch_service import DeliveryOrchestrator

router = APIRouter(prefix="/api/delivery-notes", tags=["delivery-notes"])


@router.post(
    "",
    response_model=ApiResponse[DeliveryNoteResponse],
    status_code=status.HTTP_201_CREATED,
)
def create_delivery_note_endpoint(
    payload: DeliveryNoteCreate,
    tenant: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
    publisher: DeliveryEventPublisher = Depends(get_event_publisher),
) -> ApiResponse[DeliveryNoteResponse]:
    note = create_delivery_note(db, payload, tenant.tenant_id, publisher=publisher)
    return ApiResponse(data=DeliveryNoteResponse.model_validate(note))


@router.get("", response_model=ApiResponse[list[DeliveryNoteResponse]])
def list_delivery_notes_endpoint(
    status_filter: DeliveryStatus | None = Query(default=None, alias="status"),
    customer_id: str | None = Query(default=None, alias="customerId"),
    order_id: str | None = Query(default=None, alias="orderId"),
    date_from: datetime | None = Query(default=None, alias="dateFrom"),
    date_to: datetime | None = Query(default=None, alias="dateTo"),
    skip: int = Query(default=0, ge=0),
    take: int = Query(default=50, ge=1, le=200),
    tenant: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
) -> ApiResponse[list[DeliveryNoteResponse]]:
    filters = DeliveryNoteFilters(
        status=status_filter,
        customer_id=customer_id,
        order_id=order_id,
        date_from=date_from,
        date_to=date_to,
    )
    notes = list_delivery_notes(db, tenant.tenant_id, filters, skip=skip, take=take)
    return ApiResponse(data=[DeliveryNoteResponse.model_validate(note) for note in notes])


@router.get("/{delivery_id}", response_model=ApiResponse[DeliveryNoteResponse])
def get_delivery_note_endpoint(
    delivery_id: str,
    tenant: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
) -> ApiResponse[DeliveryNoteResponse]:
    note = require_delivery_note(db, delivery_id, tenant.tenant_id)
    return ApiResponse(data=DeliveryNoteResponse.model_validate(note))


@router.put("/{delivery_id}/dispatch", response_model=ApiResponse[DeliveryNoteResponse])
def dispatch_delivery_note_endpoint(
    delivery_id: str,
    payload: DispatchRequest,
    tenant: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
    orchestrator: DeliveryOrchestrator = Depends(get_orchestrator),
) -> ApiResponse[DeliveryNoteResponse]:
    with observe_timing("dispatch_request_s"):
        note = orchestrator.dispatch(db, delivery_id, payload.carrier_id, tenant.tenant_id)
    return ApiResponse(data=DeliveryNoteResponse.model_validate(note))


@router.post("/{delivery_id}/confirm", response_model=ApiResponse[DeliveryNoteResponse])
def confirm_delivery_note_endpoint(
    delivery_id: str,
    payload: ConfirmRequest | None = Body(default=None),
    tenant: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
    orchestrator: DeliveryOrchestrator = Depends(get_orchestrator),
) -> ApiResponse[DeliveryNoteResponse]:
    proof_url = payload.proof_of_delivery_url if payload else None
    note = orchestrator.confirm(db, delivery_id, tenant.tenant_id, proof_url)
    return ApiResponse(data=DeliveryNoteResponse.model_validate(note))


@router.get("/{delivery_id}/tracking", response_model=ApiResponse[TrackingInfo])
def delivery_tracking_endpoint(
    delivery_id: str,
    tenant: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
    orchestrator: DeliveryOrchestrator = Depends(get_orchestrator),
) -> ApiResponse[TrackingInfo]:
    with observe_timing("carrier_tracking_request_s"):
        info = orchestrator.get_tracking_info(db, delivery_id, tenant.tenant_id)
    return ApiResponse(data=info)
