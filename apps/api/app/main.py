import logging
import time
from contextlib import asynccontextmanager
from uuid import uuid4

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.config import allowed_origins, ensure_secure_runtime_settings, settings
from app.db.migration_check import prepare_schema
from app.db.session import engine
from app.events.bus import BUS_ERRORS, EventBus, build_event_bus
from app.events.consumer import OrderFulfilledConsumer
from app.events.publisher import DeliveryEventPublisher
from app.integrations.errors import UpstreamServiceError
from app.observability import configure_logging, log_event, metrics_store, set_request_id
from app.routers.carriers import router as carriers_router
from app.routers.delivery_notes import router as delivery_notes_router
from app.routers.health import router as health_router
from app.routers.metrics import router as metrics_router
from app.schemas.base import ErrorDetail, ErrorResponse
from app.services.errors import (
    DeliveryServiceError,
    DeliveryValidationError,
    InvalidStateError,
    NotFoundError,
    TenantRequiredError,
)

logger = logging.getLogger(__name__)

_ERROR_STATUS_CODES: dict[type[DeliveryServiceError], int] = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    InvalidStateError: status.HTTP_409_CONFLICT,
    DeliveryValidationError: status.HTTP_400_BAD_REQUEST,
    TenantRequiredError: status.HTTP_401_UNAUTHORIZED,
}


def _start_order_consumer(bus: EventBus) -> None:
    consumer = OrderFulfilledConsumer(
        bus,
        DeliveryEventPublisher(bus),
        subject=settings.order_fulfilled_subject,
        durable=settings.order_fulfilled_durable,
        stream=settings.order_events_stream,
    )
    try:
        consumer.start()
    except BUS_ERRORS as err:
        logger.warning("Order consumer not started: %s", err)


@asynccontextmanager
async def lifespan(app_: FastAPI):
    if not settings.testing:
        configure_logging()
    ensure_secure_runtime_settings()
    prepare_schema(engine)

    bus = build_event_bus()
    app_.state.event_bus = bus
    if settings.nats_enabled and await run_in_threadpool(bus.connect):
        await run_in_threadpool(_start_order_consumer, bus)
    try:
        yield
    finally:
        await run_in_threadpool(bus.close)


app = FastAPI(
    title=settings.app_name,
    version="0.1.0",
    description="Delivery notes, carrier dispatch and tracking reconciliation",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def error_response(
    status_code: int, code: str, message: str, details: list[dict] | None = None
) -> JSONResponse:
    body = ErrorResponse(error=ErrorDetail(code=code, message=message, details=details))
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


@app.exception_handler(DeliveryServiceError)
async def delivery_error_handler(_request: Request, exc: DeliveryServiceError) -> JSONResponse:
    status_code = _ERROR_STATUS_CODES.get(type(exc), status.HTTP_400_BAD_REQUEST)
    return error_response(status_code, exc.code, exc.message)


@app.exception_handler(UpstreamServiceError)
async def upstream_error_handler(_request: Request, exc: UpstreamServiceError) -> JSONResponse:
    metrics_store.increment("upstream_error_total")
    log_event(f"upstream_error {exc}", level=logging.WARNING)
    status_code = (
        status.HTTP_503_SERVICE_UNAVAILABLE if exc.retryable else status.HTTP_502_BAD_GATEWAY
    )
    return error_response(status_code, f"UPSTREAM_{exc.code}", exc.message)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        {
            "loc": list(error.get("loc", ())),
            "msg": error.get("msg", ""),
            "type": error.get("type", ""),
        }
        for error in exc.errors()
    ]
    return error_response(
        status.HTTP_400_BAD_REQUEST, "VALIDATION_ERROR", "Request validation failed", details
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return error_response(exc.status_code, f"HTTP_{exc.status_code}", str(exc.detail))


@app.middleware("http")
async def request_context_middleware(request: Request, call_next) -> Response:
    request_id = request.headers.get("X-Request-ID") or str(uuid4())
    set_request_id(request_id)

    start = time.perf_counter()
    response = await call_next(request)
    elapsed = time.perf_counter() - start

    response.headers["X-Request-ID"] = request_id
    metrics_store.increment("http_requests_total")
    metrics_store.observe("http_request_duration_seconds", elapsed)
    log_event(
        f"http_request method={request.method} path={request.url.path} status={response.status_code}",
        delivery_note_id=request.path_params.get("delivery_id"),
        tenant_id=request.headers.get("X-Tenant-ID"),
    )
    return response


app.include_router(health_router)
app.include_router(delivery_notes_router)
app.include_router(carriers_router)
app.include_router(metrics_router)
