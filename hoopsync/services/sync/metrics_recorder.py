"""
In-process sync metrics: totals, consecutive failures, durations, alerts.

The recorder is the source of truth for sync health. Prometheus counters
are updated alongside for scraping. Skipped units are never recorded.
"""
import copy
import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Deque, Dict, List, Optional

from hoopsync.core.metrics import record_sync_outcome
from hoopsync.services.sync.units import Outcome, UnitOutcome

logger = logging.getLogger(__name__)

MAX_EVENTS = 100
SLOW_SYNC_THRESHOLD = timedelta(minutes=5)
CONSECUTIVE_FAILURE_ALERT = 3
ALERT_RETENTION = timedelta(hours=24)


class AlertType:
    SYNC_FAILURE = "sync_failure"
    SLOW_SYNC = "slow_sync"
    CONSECUTIVE_FAILURES = "consecutive_failures"


class AlertSeverity:
    WARNING = "warning"
    CRITICAL = "critical"


@dataclass(frozen=True)
class SyncEvent:
    unit: str
    success: bool
    duration_seconds: float
    timestamp: datetime
    records: int = 0


@dataclass(frozen=True)
class SyncAlert:
    type: str
    severity: str
    unit: str
    message: str
    details: str
    timestamp: datetime

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "severity": self.severity,
            "unit": self.unit,
            "message": self.message,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class SyncMetrics:
    """Counters for all units (``unit`` = "global") or a single unit."""
    unit: str = "global"
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    total_syncs: int = 0
    successful_syncs: int = 0
    failed_syncs: int = 0
    consecutive_failures: int = 0
    last_successful_sync: Optional[datetime] = None
    last_attempt: Optional[datetime] = None
    total_records_processed: int = 0
    average_duration_seconds: float = 0.0
    min_duration_seconds: float = 0.0
    max_duration_seconds: float = 0.0
    events: Deque[SyncEvent] = field(default_factory=lambda: deque(maxlen=MAX_EVENTS))
    by_unit: Dict[str, "SyncMetrics"] = field(default_factory=dict)

    @property
    def success_rate(self) -> float:
        """Percentage of successful syncs (0-100), 0 when nothing ran."""
        if self.total_syncs == 0:
            return 0.0
        return self.successful_syncs / self.total_syncs * 100

    def apply(self, event: SyncEvent) -> None:
        self.events.append(event)
        self.total_syncs += 1
        self.last_attempt = event.timestamp

        if event.success:
            self.successful_syncs += 1
            self.consecutive_failures = 0
            self.last_successful_sync = event.timestamp
            self.total_records_processed += event.records
        else:
            self.failed_syncs += 1
            self.consecutive_failures += 1

        self.average_duration_seconds = sum(e.duration_seconds for e in self.events) / len(self.events)
        if self.min_duration_seconds == 0 or event.duration_seconds < self.min_duration_seconds:
            self.min_duration_seconds = event.duration_seconds
        self.max_duration_seconds = max(self.max_duration_seconds, event.duration_seconds)

    def to_dict(self) -> dict:
        return {
            "unit": self.unit,
            "started_at": self.started_at.isoformat(),
            "total_syncs": self.total_syncs,
            "successful_syncs": self.successful_syncs,
            "failed_syncs": self.failed_syncs,
            "consecutive_failures": self.consecutive_failures,
            "success_rate": round(self.success_rate, 2),
            "last_successful_sync": self.last_successful_sync.isoformat() if self.last_successful_sync else None,
            "last_attempt": self.last_attempt.isoformat() if self.last_attempt else None,
            "total_records_processed": self.total_records_processed,
            "average_duration_seconds": round(self.average_duration_seconds, 3),
            "min_duration_seconds": round(self.min_duration_seconds, 3),
            "max_duration_seconds": round(self.max_duration_seconds, 3),
            "by_unit": {name: m.to_dict() for name, m in self.by_unit.items()},
        }


class MetricsRecorder:
    """
    Thread-safe recorder of sync outcomes.

    Snapshots are deep copies; mutating them never affects the recorder.
    """

    def __init__(self, clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc)):
        self._clock = clock
        self._lock = threading.Lock()
        self._global = SyncMetrics(started_at=clock())
        self._by_unit: Dict[str, SyncMetrics] = {}
        self._alerts: List[SyncAlert] = []

    def record(self, outcome: UnitOutcome) -> None:
        """Record a finished unit. Skipped outcomes are ignored."""
        if outcome.outcome == Outcome.SKIPPED:
            return

        event = SyncEvent(
            unit=outcome.unit,
            success=outcome.outcome == Outcome.SUCCESS,
            duration_seconds=outcome.duration_seconds,
            timestamp=self._clock(),
            records=outcome.records,
        )

        with self._lock:
            self._global.apply(event)
            unit_metrics = self._by_unit.setdefault(
                event.unit, SyncMetrics(unit=event.unit, started_at=event.timestamp)
            )
            unit_metrics.apply(event)
            self._check_alerts(event, unit_metrics)

        record_sync_outcome(event.unit, outcome.outcome, event.duration_seconds, event.records)

    def snapshot(self) -> SyncMetrics:
        with self._lock:
            metrics = copy.deepcopy(self._global)
            metrics.by_unit = copy.deepcopy(self._by_unit)
            return metrics

    def snapshot_for(self, unit: str) -> SyncMetrics:
        with self._lock:
            metrics = self._by_unit.get(unit)
            return copy.deepcopy(metrics) if metrics else SyncMetrics(unit=unit, started_at=self._clock())

    def alerts(self) -> List[SyncAlert]:
        """Alerts from the last 24 hours, oldest first."""
        cutoff = self._clock() - ALERT_RETENTION
        with self._lock:
            self._alerts = [a for a in self._alerts if a.timestamp >= cutoff]
            return list(self._alerts)

    def reset(self) -> None:
        with self._lock:
            self._global = SyncMetrics(started_at=self._clock())
            self._by_unit.clear()
            self._alerts.clear()
        logger.info("Sync metrics reset")

    def _check_alerts(self, event: SyncEvent, unit_metrics: SyncMetrics) -> None:
        if not event.success:
            self._add_alert(
                AlertType.SYNC_FAILURE, AlertSeverity.WARNING, event,
                f"Sync failed for {event.unit}",
                f"Duration: {event.duration_seconds:.2f}s",
            )

        if event.duration_seconds > SLOW_SYNC_THRESHOLD.total_seconds():
            self._add_alert(
                AlertType.SLOW_SYNC, AlertSeverity.WARNING, event,
                f"Slow sync detected for {event.unit}",
                f"Duration: {event.duration_seconds / 60:.2f} minutes",
            )

        if unit_metrics.consecutive_failures >= CONSECUTIVE_FAILURE_ALERT:
            self._add_alert(
                AlertType.CONSECUTIVE_FAILURES, AlertSeverity.CRITICAL, event,
                f"Multiple consecutive failures for {event.unit}",
                f"{unit_metrics.consecutive_failures} failures in a row",
            )

    def _add_alert(self, alert_type: str, severity: str, event: SyncEvent, message: str, details: str) -> None:
        alert = SyncAlert(
            type=alert_type,
            severity=severity,
            unit=event.unit,
            message=message,
            details=details,
            timestamp=event.timestamp,
        )
        self._alerts.append(alert)
        log = logger.error if severity == AlertSeverity.CRITICAL else logger.warning
        log(f"Sync alert: {message} ({details})", extra={"alert_type": alert_type, "unit": event.unit})
