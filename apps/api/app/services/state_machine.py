from app.models.delivery_event import DeliveryEventType
from app.models.delivery_note import DeliveryStatus

DELIVERY_STATE_TRANSITIONS: dict[DeliveryStatus, set[DeliveryStatus]] = {
    DeliveryStatus.PENDING: {
        DeliveryStatus.DISPATCHED,
        DeliveryStatus.RETURNED,
        DeliveryStatus.CANCELED,
    },
    DeliveryStatus.DISPATCHED: {
        DeliveryStatus.IN_TRANSIT,
        DeliveryStatus.DELIVERED,
        DeliveryStatus.RETURNED,
        DeliveryStatus.CANCELED,
    },
    DeliveryStatus.IN_TRANSIT: {
        DeliveryStatus.DELIVERED,
        DeliveryStatus.RETURNED,
        DeliveryStatus.CANCELED,
    },
    DeliveryStatus.DELIVERED: set(),
    DeliveryStatus.RETURNED: set(),
    DeliveryStatus.CANCELED: set(),
}

TERMINAL_STATUSES = frozenset(
    status for status, allowed in DELIVERY_STATE_TRANSITIONS.items() if not allowed
)

TRACKABLE_STATUSES = (DeliveryStatus.DISPATCHED, DeliveryStatus.IN_TRANSIT)


def is_forward_transition(current: DeliveryStatus, next_status: DeliveryStatus) -> bool:
    return next_status in DELIVERY_STATE_TRANSITIONS.get(current, set())


def event_type_for_status(status_value: DeliveryStatus) -> DeliveryEventType:
    # A note in PENDING has only ever been created
    if status_value == DeliveryStatus.PENDING:
        return DeliveryEventType.CREATED
    return DeliveryEventType[status_value.value]
