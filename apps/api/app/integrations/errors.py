from dataclasses import dataclass


@dataclass
class UpstreamServiceError(Exception):
    service: str
    code: str
    message: str
    retryable: bool = False

    def __str__(self) -> str:
        return f"{self.service}:{self.code}:{self.message}"


class UpstreamTimeoutError(UpstreamServiceError):
    def __init__(self, service: str, message: str = "Upstream timeout") -> None:
        super().__init__(service=service, code="TIMEOUT", message=message, retryable=True)


class UpstreamUnavailableError(UpstreamServiceError):
    def __init__(self, service: str, message: str = "Upstream unavailable") -> None:
        super().__init__(service=service, code="UNAVAILABLE", message=message, retryable=True)


class UpstreamBadGatewayError(UpstreamServiceError):
    def __init__(self, service: str, message: str = "Unexpected upstream response") -> None:
        super().__init__(service=service, code="BAD_GATEWAY", message=message, retryable=False)


class RetryExhaustedError(UpstreamServiceError):
    """Raised by carrier integrations once every attempt has failed."""

    def __init__(self, service: str, attempts: int, last_error: Exception) -> None:
        super().__init__(
            service=service,
            code="RETRY_EXHAUSTED",
            message=f"Giving up after {attempts} attempts: {last_error}",
            retryable=True,
        )
        self.attempts = attempts
        self.last_error = last_error
