"""Tracking worker for periodic carrier status reconciliation."""

from __future__ import annotations

import logging
import os
import signal
import threading
from dataclasses import dataclass
from typing import Callable

from app.config import settings as app_settings
from app.events.bus import build_event_bus
from app.observability import configure_logging, metrics_store
from app.services.tracking_service import TrackingRunResult
from workers.tracking_worker.tasks import build_orchestrator, tracking_tick

logger = logging.getLogger(__name__)

_TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class TrackingWorkerSettings:
    interval_s: int
    batch_size: int
    run_on_start: bool


def load_settings(env: dict[str, str] | None = None) -> TrackingWorkerSettings:
    source = env if env is not None else os.environ
    interval_s = int(
        source.get("DELIVERY_TRACKING_WORKER_INTERVAL_S", str(app_settings.tracking_interval_s))
    )
    batch_size = int(
        source.get("DELIVERY_TRACKING_WORKER_BATCH_SIZE", str(app_settings.tracking_batch_size))
    )
    run_on_start = (
        source.get("DELIVERY_TRACKING_WORKER_RUN_ON_START", "true").strip().lower() in _TRUE_VALUES
    )

    if interval_s < 1:
        raise ValueError("DELIVERY_TRACKING_WORKER_INTERVAL_S must be >= 1")
    if batch_size < 1:
        raise ValueError("DELIVERY_TRACKING_WORKER_BATCH_SIZE must be >= 1")

    return TrackingWorkerSettings(
        interval_s=interval_s,
        batch_size=batch_size,
        run_on_start=run_on_start,
    )


class TrackingWorker:
    """Runs ``run_tracking`` on a fixed interval until stopped.

    A run that is triggered while the previous one is still active is skipped,
    so two reconciliations never poll the same notes at once.
    """

    def __init__(
        self,
        settings: TrackingWorkerSettings,
        run_tracking: Callable[[int], TrackingRunResult],
    ) -> None:
        self.settings = settings
        self._run_tracking = run_tracking
        self._stop = threading.Event()
        self._running = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._running.locked()

    def run_once(self) -> TrackingRunResult | None:
        if not self._running.acquire(blocking=False):
            metrics_store.increment("tracking_run_skipped_total")
            logger.warning("Previous tracking run still active, skipping this run")
            return None
        try:
            return self._run_tracking(self.settings.batch_size)
        except Exception:
            metrics_store.increment("tracking_run_failed_total")
            logger.exception("Tracking run failed")
            return None
        finally:
            self._running.release()

    def run_forever(self) -> None:
        if not self.settings.run_on_start:
            self._stop.wait(self.settings.interval_s)
        while not self._stop.is_set():
            self.run_once()
            self._stop.wait(self.settings.interval_s)
        logger.info("Tracking worker stopped")

    def stop(self) -> None:
        self._stop.set()


def main() -> None:
    configure_logging()
    worker_settings = load_settings()

    bus = build_event_bus()
    if app_settings.nats_enabled:
        bus.connect()
    orchestrator = build_orchestrator(bus)

    worker = TrackingWorker(
        worker_settings,
        lambda batch_size: tracking_tick(batch_size, orchestrator=orchestrator),
    )
    signal.signal(signal.SIGTERM, lambda *_: worker.stop())
    signal.signal(signal.SIGINT, lambda *_: worker.stop())
    try:
        worker.run_forever()
    finally:
        bus.close()


if __name__ == "__main__":
    main()
