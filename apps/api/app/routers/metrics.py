from fastapi import APIRouter

from app.observability import metrics_store
from app.schemas.metrics import MetricsResponse

router = APIRouter(prefix="/metrics", tags=["metrics"])


@router.get("", summary="Observability metrics", response_model=MetricsResponse)
def metrics_endpoint() -> MetricsResponse:
    snapshot = metrics_store.snapshot()
    return MetricsResponse(
        counters=snapshot.counters or {},
        timings=snapshot.timings or {},
    )
