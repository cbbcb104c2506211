import asyncio
import logging
import threading
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Coroutine, Protocol, TypeVar

import nats
from nats.aio.client import Client as NATS
from nats.aio.msg import Msg
from nats.errors import Error as NatsError
from nats.js import JetStreamContext
from nats.js.errors import BadRequestError

from app.config import settings
from app.observability import metrics_store
from app.schemas.events import EventEnvelope

logger = logging.getLogger(__name__)

T = TypeVar("T")

MessageHandler = Callable[[Msg], Awaitable[None]]
Connector = Callable[..., Awaitable[NATS]]

BUS_ERRORS = (NatsError, OSError, asyncio.TimeoutError, FutureTimeoutError)


@dataclass(frozen=True)
class PublishResult:
    ok: bool
    event_type: str
    error: str | None = None


class EventBusProtocol(Protocol):
    @property
    def is_connected(self) -> bool: ...

    def publish(self, event_type: str, payload: dict[str, Any]) -> PublishResult: ...


def build_envelope(event_type: str, payload: dict[str, Any]) -> bytes:
    envelope = EventEnvelope(
        event_type=event_type,
        data=payload,
        timestamp=datetime.now(timezone.utc),
    )
    return envelope.model_dump_json(by_alias=True).encode()


class EventBus:
    """JetStream connection shared by the publisher and the order consumer.

    The bus runs its own asyncio loop on a daemon thread so synchronous request
    handlers and the tracking worker can publish without an event loop of their
    own. Connection failures leave the bus disconnected; ``publish`` then
    reports ``ok=False`` instead of raising.
    """

    def __init__(
        self,
        url: str,
        *,
        stream: str,
        stream_subjects: list[str],
        connect_timeout_s: float = 2.0,
        publish_timeout_s: float = 5.0,
        connector: Connector = nats.connect,
    ) -> None:
        self.url = url
        self.stream = stream
        self.stream_subjects = stream_subjects
        self.connect_timeout_s = connect_timeout_s
        self.publish_timeout_s = publish_timeout_s
        self._connector = connector
        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None
        self._nc: NATS | None = None
        self._js: JetStreamContext | None = None

    @property
    def is_connected(self) -> bool:
        return self._js is not None and self._nc is not None and self._nc.is_connected

    def connect(self) -> bool:
        if self.is_connected:
            return True
        self._start_loop()
        try:
            self._run(self._connect(), timeout=self.connect_timeout_s * 3)
        except BUS_ERRORS as err:
            logger.warning("Event bus unavailable at %s, running without events: %s", self.url, err)
            self._nc = None
            self._js = None
            return False
        logger.info("Connected to event bus at %s", self.url)
        return True

    def ensure_stream(self, name: str, subjects: list[str]) -> None:
        self._run(self._ensure_stream(name, subjects), timeout=self.connect_timeout_s * 3)

    def subscribe(self, subject: str, *, durable: str, stream: str, handler: MessageHandler) -> None:
        if not self.is_connected:
            raise RuntimeError("Event bus is not connected")
        self._run(self._subscribe(subject, durable, stream, handler), timeout=self.connect_timeout_s * 3)

    def publish(self, event_type: str, payload: dict[str, Any]) -> PublishResult:
        if not self.is_connected:
            metrics_store.increment("event_publish_failed_total")
            return PublishResult(ok=False, event_type=event_type, error="event bus not connected")

        data = build_envelope(event_type, payload)
        try:
            self._run(self._js.publish(event_type, data, stream=self.stream), timeout=self.publish_timeout_s)
        except BUS_ERRORS as err:
            metrics_store.increment("event_publish_failed_total")
            return PublishResult(ok=False, event_type=event_type, error=str(err) or type(err).__name__)

        metrics_store.increment("event_published_total")
        return PublishResult(ok=True, event_type=event_type)

    def close(self) -> None:
        if self._loop is None:
            return
        if self._nc is not None:
            try:
                self._run(self._nc.drain(), timeout=self.connect_timeout_s * 3)
            except BUS_ERRORS as err:
                logger.warning("Event bus did not drain cleanly: %s", err)
        self._nc = None
        self._js = None

        self._loop.call_soon_threadsafe(self._loop.stop)
        if self._thread is not None:
            self._thread.join(timeout=5)
        self._loop.close()
        self._loop = None
        self._thread = None
        logger.info("Event bus closed")

    async def _connect(self) -> None:
        self._nc = await self._connector(
            servers=[self.url],
            name="delivery-service",
            connect_timeout=self.connect_timeout_s,
        )
        self._js = self._nc.jetstream()
        await self._ensure_stream(self.stream, self.stream_subjects)

    async def _ensure_stream(self, name: str, subjects: list[str]) -> None:
        try:
            await self._js.add_stream(name=name, subjects=subjects)
        except BadRequestError as err:
            # Stream already exists with a different configuration
            logger.info("Using existing stream %s: %s", name, err)

    async def _subscribe(
        self, subject: str, durable: str, stream: str, handler: MessageHandler
    ) -> None:
        await self._js.subscribe(
            subject,
            durable=durable,
            stream=stream,
            cb=handler,
            manual_ack=True,
        )

    def _start_loop(self) -> None:
        if self._loop is not None:
            return
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(
            target=self._loop.run_forever, name="event-bus", daemon=True
        )
        self._thread.start()

    def _run(self, coro: Coroutine[Any, Any, T], *, timeout: float) -> T:
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        try:
            return future.result(timeout=timeout)
        except FutureTimeoutError:
            future.cancel()
            raise


def build_event_bus() -> EventBus:
    return EventBus(
        settings.nats_url,
        stream=settings.delivery_events_stream,
        stream_subjects=["delivery.>"],
        connect_timeout_s=settings.nats_connect_timeout_s,
    )
