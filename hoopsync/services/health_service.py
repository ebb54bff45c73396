"""
Health evaluation from cache statistics and sync metrics.

Each component reports healthy, degraded, or unhealthy with the reasons;
the overall status is the worst component status.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional

from hoopsync.core.config import Settings, settings as default_settings
from hoopsync.services.cache import CacheStatistics
from hoopsync.services.sync.metrics_recorder import SyncMetrics


class HealthStatus:
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"

    _RANK = {HEALTHY: 0, DEGRADED: 1, UNHEALTHY: 2}

    @classmethod
    def worst(cls, statuses: List[str]) -> str:
        return max(statuses, key=lambda s: cls._RANK[s], default=cls.HEALTHY)


@dataclass
class ComponentHealth:
    name: str
    status: str = HealthStatus.HEALTHY
    reasons: List[str] = field(default_factory=list)
    data: Dict = field(default_factory=dict)

    def mark(self, status: str, reason: str) -> None:
        self.status = HealthStatus.worst([self.status, status])
        self.reasons.append(reason)

    def to_dict(self) -> dict:
        return {"status": self.status, "reasons": self.reasons, "data": self.data}


class HealthEvaluator:
    """
    Usage:
        evaluator = HealthEvaluator()
        report = evaluator.evaluate(cache.statistics(), recorder.snapshot())
    """

    def __init__(
        self,
        config: Optional[Settings] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.config = config or default_settings
        self._clock = clock

    def evaluate_cache(self, stats: CacheStatistics) -> ComponentHealth:
        health = ComponentHealth("cache", data=stats.to_dict())
        if (
            stats.total_requests > self.config.HEALTH_MIN_CACHE_REQUESTS
            and stats.hit_rate < self.config.HEALTH_MIN_CACHE_HIT_RATE
        ):
            health.mark(
                HealthStatus.DEGRADED,
                f"Low cache hit rate: {stats.hit_rate:.1%} over {stats.total_requests} requests",
            )
        return health

    def evaluate_sync(self, metrics: SyncMetrics) -> ComponentHealth:
        health = ComponentHealth("sync", data=metrics.to_dict())

        if metrics.consecutive_failures > self.config.HEALTH_MAX_CONSECUTIVE_FAILURES:
            health.mark(
                HealthStatus.UNHEALTHY,
                f"{metrics.consecutive_failures} consecutive sync failures",
            )

        if metrics.total_syncs > 10 and metrics.success_rate < 50:
            health.mark(
                HealthStatus.DEGRADED,
                f"Low sync success rate: {metrics.success_rate:.1f}%",
            )

        if metrics.last_attempt is not None:
            max_gap = timedelta(hours=self.config.HEALTH_MAX_HOURS_WITHOUT_SUCCESS)
            reference = metrics.last_successful_sync or metrics.started_at
            if self._clock() - reference > max_gap:
                health.mark(
                    HealthStatus.DEGRADED,
                    f"No successful sync in {self.config.HEALTH_MAX_HOURS_WITHOUT_SUCCESS}h",
                )

        return health

    def evaluate(self, cache_stats: CacheStatistics, sync_metrics: SyncMetrics) -> dict:
        components = [self.evaluate_cache(cache_stats), self.evaluate_sync(sync_metrics)]
        return {
            "status": HealthStatus.worst([c.status for c in components]),
            "timestamp": self._clock().isoformat(),
            "components": {c.name: c.to_dict() for c in components},
        }
