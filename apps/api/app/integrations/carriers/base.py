import logging
import time
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Callable, TypeVar

import httpx

from app.config import settings
from app.integrations.carriers.retry import retry_with_backoff
from app.integrations.errors import (
    RetryExhaustedError,
    UpstreamBadGatewayError,
    UpstreamServiceError,
    UpstreamTimeoutError,
    UpstreamUnavailableError,
)
from app.models.carrier import Carrier
from app.observability import log_event, metrics_store
from app.schemas.shipping import ShipmentData, ShipmentResult, TrackingInfo

T = TypeVar("T")

_TIMESTAMP_FORMATS = ("%Y%m%d %H%M%S", "%Y%m%d", "%Y-%m-%d %H:%M:%S", "%d.%m.%Y %H:%M")


def parse_timestamp(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    text = str(value).strip()
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        pass
    for fmt in _TIMESTAMP_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None


class CarrierClient(ABC):
    """Uniform interface over a carrier's shipment and tracking HTTP API.

    Every outbound call goes through :func:`retry_with_backoff`. Transport and
    HTTP failures are mapped to ``UpstreamServiceError`` subclasses per attempt;
    once all attempts fail a ``RetryExhaustedError`` is raised.
    """

    slug = "carrier"

    def __init__(
        self,
        carrier: Carrier,
        *,
        timeout_s: float | None = None,
        max_attempts: int | None = None,
        initial_backoff_s: float | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.carrier = carrier
        self.base_url = carrier.api_endpoint.rstrip("/")
        self.timeout_s = timeout_s if timeout_s is not None else settings.carrier_timeout_s
        self.max_attempts = (
            max_attempts if max_attempts is not None else settings.carrier_max_attempts
        )
        self.initial_backoff_s = (
            initial_backoff_s
            if initial_backoff_s is not None
            else settings.carrier_initial_backoff_s
        )
        self._sleep = sleep

    @property
    def service_name(self) -> str:
        return f"carrier:{self.slug}"

    @abstractmethod
    def create_shipment(self, data: ShipmentData) -> ShipmentResult: ...

    @abstractmethod
    def get_tracking_info(self, tracking_number: str) -> TrackingInfo: ...

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.carrier.api_key:
            headers["Authorization"] = f"Bearer {self.carrier.api_key}"
            if self.carrier.api_secret:
                headers["X-API-Secret"] = self.carrier.api_secret
        return headers

    def _request(self, method: str, path: str, json: dict | None = None) -> Any:
        try:
            with httpx.Client(
                base_url=self.base_url,
                headers=self._headers(),
                timeout=self.timeout_s,
            ) as client:
                response = client.request(method, path, json=json)
        except httpx.TimeoutException as err:
            raise UpstreamTimeoutError(self.service_name) from err
        except httpx.TransportError as err:
            raise UpstreamUnavailableError(self.service_name, str(err)) from err

        if response.status_code >= 500:
            raise UpstreamUnavailableError(
                self.service_name, f"Carrier API returned {response.status_code}"
            )
        if response.status_code >= 400:
            raise UpstreamBadGatewayError(
                self.service_name, f"Carrier API returned {response.status_code}"
            )

        try:
            payload = response.json()
        except ValueError as err:
            raise UpstreamBadGatewayError(
                self.service_name, "Carrier API returned malformed JSON"
            ) from err
        if not isinstance(payload, dict):
            raise UpstreamBadGatewayError(self.service_name, "Carrier API returned malformed payload")
        return payload

    def _call(self, operation: str, fn: Callable[[], T]) -> T:
        def attempt() -> T:
            try:
                return fn()
            except UpstreamServiceError:
                raise
            except (AttributeError, KeyError, IndexError, TypeError, ValueError) as err:
                raise UpstreamBadGatewayError(
                    self.service_name, f"Malformed {operation} response"
                ) from err

        def on_retry(attempt_number: int, err: BaseException) -> None:
            metrics_store.increment("carrier_retry_total")
            log_event(
                f"carrier_{operation}_retry attempt={attempt_number} error={err}",
                level=logging.WARNING,
                carrier_id=str(self.carrier.id),
            )

        metrics_store.increment("carrier_calls_total")
        try:
            return retry_with_backoff(
                attempt,
                max_attempts=self.max_attempts,
                initial_delay_s=self.initial_backoff_s,
                retry_on=(UpstreamServiceError,),
                sleep=self._sleep,
                on_retry=on_retry,
            )
        except UpstreamServiceError as err:
            metrics_store.increment("carrier_failure_total")
            raise RetryExhaustedError(self.service_name, self.max_attempts, err) from err
