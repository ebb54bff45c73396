"""Sync API routes for scheduler status and manual triggers."""
import logging
from typing import Dict

from fastapi import APIRouter, Depends, HTTPException

from hoopsync.core.scheduler import get_scheduler
from hoopsync.services.runtime import SyncRuntime, get_runtime
from hoopsync.services.sync.units import UnitName

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sync", tags=["sync"])


@router.get("/status")
async def get_sync_status(runtime: SyncRuntime = Depends(get_runtime)) -> Dict:
    """
    Scheduler and unit status.

    ``scheduler`` is null when the background scheduler is not running in
    this process.
    """
    scheduler = get_scheduler()
    return {
        "scheduler": scheduler.get_status() if scheduler else None,
        "units": [unit.to_dict() for unit in runtime.orchestrator.units_snapshot()],
    }


@router.post("/trigger/{unit}")
async def trigger_unit(unit: str, runtime: SyncRuntime = Depends(get_runtime)) -> Dict:
    """
    Run one sync unit now.

    The unit still takes its lock, so a run already in progress elsewhere
    makes this a skip.
    """
    if unit not in UnitName.ORDER:
        raise HTTPException(status_code=404, detail=f"Unknown sync unit: {unit}")

    logger.info(f"Manual sync trigger for {unit}")
    outcome = await runtime.orchestrator.run_unit(unit)
    return {
        "unit": outcome.unit,
        "outcome": outcome.outcome,
        "records": outcome.records,
        "duration_seconds": round(outcome.duration_seconds, 3),
        "error": outcome.error,
    }
