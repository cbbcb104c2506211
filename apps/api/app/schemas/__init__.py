from app.schemas.base import ApiResponse, CamelModel, ErrorDetail, ErrorResponse
from app.schemas.carrier import CarrierCreate, CarrierResponse, CarrierUpdate
from app.schemas.delivery_note import (
    ConfirmRequest,
    DeliveryEventResponse,
    DeliveryItemCreate,
    DeliveryItemResponse,
    DeliveryNoteCreate,
    DeliveryNoteFilters,
    DeliveryNoteResponse,
    DispatchRequest,
)
from app.schemas.shipping import (
    Recipient,
    ShipmentData,
    ShipmentItem,
    ShipmentResult,
    TrackingEvent,
    TrackingInfo,
)

__all__ = [
    "ApiResponse",
    "CamelModel",
    "CarrierCreate",
    "CarrierResponse",
    "CarrierUpdate",
    "ConfirmRequest",
    "DeliveryEventResponse",
    "DeliveryItemCreate",
    "DeliveryItemResponse",
    "DeliveryNoteCreate",
    "DeliveryNoteFilters",
    "DeliveryNoteResponse",
    "DispatchRequest",
    "ErrorDetail",
    "ErrorResponse",
    "Recipient",
    "ShipmentData",
    "ShipmentItem",
    "ShipmentResult",
    "TrackingEvent",
    "TrackingInfo",
]
