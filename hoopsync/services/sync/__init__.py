"""Sync layer: provider adapters, sync units, orchestrator, metrics recorder."""
from hoopsync.services.sync.metrics_recorder import MetricsRecorder, SyncAlert, SyncMetrics
from hoopsync.services.sync.orchestrator import SyncOrchestrator
from hoopsync.services.sync.units import (
    Outcome,
    SchedulerState,
    SyncUnit,
    TickResult,
    UnitName,
    UnitOutcome,
)

__all__ = [
    "MetricsRecorder",
    "SyncAlert",
    "SyncMetrics",
    "SyncOrchestrator",
    "Outcome",
    "SchedulerState",
    "SyncUnit",
    "TickResult",
    "UnitName",
    "UnitOutcome",
]
