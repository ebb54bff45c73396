"""Health and metrics routes.

Provides endpoints for:
- Overall health (worst of cache and sync component status)
- Sync metrics, recent alerts, unit cadence, and circuit states
- Cache statistics
- Prometheus exposition
"""
import logging
from typing import Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from hoopsync.core.config import settings
from hoopsync.services.runtime import SyncRuntime, get_runtime

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(runtime: SyncRuntime = Depends(get_runtime)) -> Dict:
    """
    Health check endpoint.

    Always answers 200; the ``status`` field carries healthy, degraded, or
    unhealthy.
    """
    report = runtime.health_report()
    report["version"] = settings.APP_VERSION
    return report


@router.get("/health/sync")
async def sync_health(
    unit: Optional[str] = Query(None, description="Limit metrics to one sync unit"),
    runtime: SyncRuntime = Depends(get_runtime),
) -> Dict:
    """
    Sync metrics dashboard.

    Returns:
        - metrics: global (or per-unit) counters, durations, and success rate
        - alerts: alerts from the last 24 hours
        - units: cadence state of each sync unit
        - circuit_breakers: state per provider
    """
    if unit is not None and unit not in runtime.orchestrator.units:
        raise HTTPException(status_code=404, detail=f"Unknown sync unit: {unit}")

    metrics = runtime.recorder.snapshot_for(unit) if unit else runtime.recorder.snapshot()
    return {
        "metrics": metrics.to_dict(),
        "alerts": [alert.to_dict() for alert in runtime.recorder.alerts()],
        "units": [u.to_dict() for u in runtime.orchestrator.units_snapshot()],
        "circuit_breakers": runtime.breaker_states(),
    }


@router.get("/health/cache")
async def cache_health(runtime: SyncRuntime = Depends(get_runtime)) -> Dict:
    stats = runtime.cache.statistics()
    health = runtime.health.evaluate_cache(stats)
    return {"status": health.status, "reasons": health.reasons, "statistics": stats.to_dict()}


@router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
