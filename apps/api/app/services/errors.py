class DeliveryServiceError(Exception):
    """Base class for errors surfaced to callers with a stable code."""

    code = "DELIVERY_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(DeliveryServiceError):
    code = "NOT_FOUND"


class InvalidStateError(DeliveryServiceError):
    code = "INVALID_STATE"


class DeliveryValidationError(DeliveryServiceError):
    code = "VALIDATION_ERROR"


class TenantRequiredError(DeliveryServiceError):
    code = "TENANT_REQUIRED"
