from app.integrations.errors import (
    RetryExhaustedError,
    UpstreamBadGatewayError,
    UpstreamServiceError,
    UpstreamTimeoutError,
    UpstreamUnavailableError,
)

__all__ = [
    "UpstreamServiceError",
    "UpstreamTimeoutError",
    "UpstreamUnavailableError",
    "UpstreamBadGatewayError",
    "RetryExhaustedError",
]
