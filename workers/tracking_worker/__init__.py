"""Tracking worker module exports."""

from .worker import TrackingWorker, TrackingWorkerSettings, load_settings, main

__all__ = [
    "TrackingWorker",
    "TrackingWorkerSettings",
    "load_settings",
    "main",
]
