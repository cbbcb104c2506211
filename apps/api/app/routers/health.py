from fastapi import APIRouter, Request, Response, status

from app.config import settings
from app.db.session import SessionLocal
from app.schemas.health import HealthResponse, ReadinessDependency, ReadinessResponse
from app.services.readiness_service import (
    database_dependency_status,
    event_bus_dependency_status,
    safe_dependency_status,
)

router = APIRouter(tags=["health"])


@router.get("/health", summary="Health check", response_model=HealthResponse)
def health() -> HealthResponse:
    return HealthResponse(status="ok")


@router.get(
    "/ready",
    summary="Readiness check",
    response_model=ReadinessResponse,
    responses={status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ReadinessResponse}},
)
def readiness(request: Request, response: Response) -> ReadinessResponse:
    dependencies: list[ReadinessDependency] = []

    database_status = safe_dependency_status(
        "database", lambda: database_dependency_status(SessionLocal)
    )
    dependencies.append(ReadinessDependency(name="database", status=database_status))

    if settings.nats_enabled:
        bus = getattr(request.app.state, "event_bus", None)
        bus_status = safe_dependency_status("event_bus", lambda: event_bus_dependency_status(bus))
        dependencies.append(ReadinessDependency(name="event_bus", status=bus_status))

    readiness_status = "ok" if all(dep.status == "ok" for dep in dependencies) else "degraded"
    if readiness_status != "ok":
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return ReadinessResponse(status=readiness_status, dependencies=dependencies)
