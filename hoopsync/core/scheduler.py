"""
Background scheduling for the sync engine.

- AdaptiveScheduler: the sync loop. Ticks the orchestrator, then sleeps for an
  interval chosen from the tick result (live games, in season, offseason).
- AutomationScheduler: process host. Runs the adaptive loop as a task and
  periodic housekeeping jobs on APScheduler.

Scheduler: APScheduler (lightweight, FastAPI-compatible)
"""
import asyncio
import logging
from datetime import date
from typing import Awaitable, Callable, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from hoopsync.core.config import Settings, settings as default_settings
from hoopsync.core.metrics import scheduler_ticks_total, update_scheduler_metrics
from hoopsync.services.runtime import SyncRuntime, get_runtime
from hoopsync.services.sync.units import SchedulerState, TickResult, utcnow
from hoopsync.utils.timezone import is_in_season

logger = logging.getLogger(__name__)

Tick = Callable[[SchedulerState], Awaitable[TickResult]]


class LoopStatus:
    IDLE = "idle"
    RUNNING = "running"
    SLEEPING = "sleeping"
    STOPPED = "stopped"


class AdaptiveScheduler:
    """
    Drives sync ticks at an adaptive interval.

    idle -> running -> sleeping -> running ... -> stopped. Every wait is on the
    stop event with a timeout, so ``stop()`` ends a sleep immediately.
    """

    def __init__(
        self,
        tick: Tick,
        config: Optional[Settings] = None,
        in_season: Callable[[Optional[date]], bool] = is_in_season,
    ):
        self._tick = tick
        self.config = config or default_settings
        self._in_season = in_season
        self._stop_event = asyncio.Event()
        self.state = SchedulerState()
        self.status = LoopStatus.IDLE
        self.last_result: Optional[TickResult] = None

    def compute_interval(self, has_live_games: bool, today: Optional[date] = None) -> float:
        if has_live_games:
            return self.config.LIVE_SYNC_INTERVAL_SECONDS
        if not self._in_season(today):
            return self.config.OFFSEASON_SYNC_INTERVAL_SECONDS
        return self.config.NORMAL_SYNC_INTERVAL_SECONDS

    async def run(self) -> None:
        logger.info(
            f"Adaptive sync loop starting in {self.config.SYNC_STARTUP_DELAY_SECONDS:.0f}s"
        )
        update_scheduler_metrics(running=True)
        try:
            if await self._sleep(self.config.SYNC_STARTUP_DELAY_SECONDS):
                return
            while not self._stop_event.is_set():
                interval = await self.tick_once()
                logger.info(f"Next sync tick in {interval:.0f}s")
                if await self._sleep(interval):
                    return
        finally:
            self.status = LoopStatus.STOPPED
            update_scheduler_metrics(running=False)
            logger.info("Adaptive sync loop stopped")

    async def tick_once(self) -> float:
        """Run one bounded tick and return the interval to sleep after it."""
        self.status = LoopStatus.RUNNING
        try:
            result = await asyncio.wait_for(
                self._tick(self.state), timeout=self.config.TICK_TIMEOUT_SECONDS
            )
        except asyncio.TimeoutError:
            logger.error(f"Sync tick exceeded {self.config.TICK_TIMEOUT_SECONDS:.0f}s and was cancelled")
            scheduler_ticks_total.labels(result="timeout").inc()
            interval = self.config.ERROR_COOLDOWN_SECONDS
        except Exception as e:
            logger.exception(f"Sync tick failed: {e}")
            scheduler_ticks_total.labels(result="error").inc()
            interval = self.config.ERROR_COOLDOWN_SECONDS
        else:
            self.last_result = result
            self.state.has_live_games = result.has_live_games
            interval = self.compute_interval(result.has_live_games)
            scheduler_ticks_total.labels(result="ok").inc()

        self.state.tick_count += 1
        self.state.last_tick_at = utcnow()
        self.state.last_interval_seconds = interval
        update_scheduler_metrics(running=True, interval_seconds=interval)
        return interval

    def stop(self) -> None:
        self._stop_event.set()

    async def _sleep(self, seconds: float) -> bool:
        """Wait up to ``seconds``; True when woken by ``stop()``."""
        self.status = LoopStatus.SLEEPING
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
            return True
        except asyncio.TimeoutError:
            return False

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "tick_count": self.state.tick_count,
            "has_live_games": self.state.has_live_games,
            "last_interval_seconds": self.state.last_interval_seconds,
            "last_tick_at": self.state.last_tick_at.isoformat() if self.state.last_tick_at else None,
        }


class AutomationScheduler:
    """
    Main scheduler for background work.

    Owns the adaptive sync loop task and the APScheduler jobs around it.
    """

    LOOP_STOP_TIMEOUT = 30.0

    def __init__(self, runtime: Optional[SyncRuntime] = None, config: Optional[Settings] = None):
        self.config = config or default_settings
        self._runtime = runtime
        self.scheduler: Optional[AsyncIOScheduler] = None
        self.adaptive: Optional[AdaptiveScheduler] = None
        self._loop_task: Optional[asyncio.Task] = None
        self.running = False

    @property
    def runtime(self) -> SyncRuntime:
        if self._runtime is None:
            self._runtime = get_runtime()
        return self._runtime

    async def start(self):
        """Start the scheduler."""
        if self.running:
            logger.warning("Scheduler already running")
            return

        logger.info("Starting automation scheduler...")

        self.scheduler = AsyncIOScheduler(
            timezone="UTC",
            job_defaults={
                "coalesce": True,  # Combine missed runs into one
                "max_instances": 1,  # Only one instance of each job
                "misfire_grace_time": 300,  # 5 minutes grace for misfires
            },
        )
        self._schedule_cache_stats_log()
        self.scheduler.start()

        if self.config.SYNC_ENABLED:
            self.adaptive = AdaptiveScheduler(self.runtime.orchestrator.run_tick, config=self.config)
            self._loop_task = asyncio.create_task(self.adaptive.run(), name="adaptive-sync-loop")
        else:
            logger.warning("SYNC_ENABLED is false, adaptive sync loop not started")

        self.running = True
        logger.info("Scheduler started with %d jobs", len(self.scheduler.get_jobs()))
        self._log_scheduled_jobs()

    async def stop(self):
        """Stop the sync loop, then the job scheduler."""
        if not self.running:
            return

        logger.info("Stopping scheduler...")
        if self.adaptive is not None:
            self.adaptive.stop()
        if self._loop_task is not None:
            try:
                await asyncio.wait_for(self._loop_task, timeout=self.LOOP_STOP_TIMEOUT)
            except asyncio.TimeoutError:
                logger.warning("Sync loop did not stop in time; it was cancelled")
            self._loop_task = None

        self.scheduler.shutdown(wait=True)
        self.running = False
        logger.info("Scheduler stopped")

    def get_status(self) -> dict:
        jobs = self.scheduler.get_jobs() if self.scheduler else []
        return {
            "running": self.running,
            "loop": self.adaptive.to_dict() if self.adaptive else None,
            "units": [unit.to_dict() for unit in self.runtime.orchestrator.units_snapshot()],
            "jobs": [
                {
                    "id": job.id,
                    "name": job.name,
                    "next_run_time": job.next_run_time.isoformat() if job.next_run_time else None,
                }
                for job in jobs
            ],
        }

    def _schedule_cache_stats_log(self):
        """
        Schedule: Log cache statistics.

        Frequency: Every CACHE_STATS_LOG_MINUTES
        Purpose: Hit rate and size visibility in the logs between scrapes
        """
        if self.scheduler is None:
            return

        self.scheduler.add_job(
            self.log_cache_statistics,
            trigger=IntervalTrigger(minutes=self.config.CACHE_STATS_LOG_MINUTES),
            id="cache_stats_log",
            name="Log Cache Statistics",
        )
        logger.info(f"Scheduled: Cache statistics log (every {self.config.CACHE_STATS_LOG_MINUTES} minutes)")

    async def log_cache_statistics(self):
        stats = self.runtime.cache.statistics()
        logger.info(
            f"Cache: {stats.current_entries} entries, hit rate {stats.hit_rate:.1%} "
            f"({stats.hits}/{stats.total_requests}), {stats.evictions} evictions, "
            f"{stats.backend_errors} backend errors",
            extra={"cache": stats.to_dict()},
        )

    def _log_scheduled_jobs(self):
        """Log all scheduled jobs for visibility."""
        jobs = self.scheduler.get_jobs()

        logger.info("=" * 60)
        logger.info("SCHEDULED JOBS")
        logger.info("=" * 60)

        for job in jobs:
            next_run = job.next_run_time
            next_run_str = next_run.strftime("%Y-%m-%d %H:%M UTC") if next_run else "Pending"
            logger.info(f"  • {job.name}")
            logger.info(f"    ID: {job.id}")
            logger.info(f"    Next run: {next_run_str}")

        if self.adaptive is not None:
            logger.info("  • Adaptive sync loop")
            logger.info(
                f"    Intervals: live {self.config.LIVE_SYNC_INTERVAL_SECONDS:.0f}s, "
                f"normal {self.config.NORMAL_SYNC_INTERVAL_SECONDS:.0f}s, "
                f"offseason {self.config.OFFSEASON_SYNC_INTERVAL_SECONDS:.0f}s"
            )

        logger.info("=" * 60)


# Global scheduler instance
_scheduler: Optional[AutomationScheduler] = None


async def start_scheduler(runtime: Optional[SyncRuntime] = None) -> AutomationScheduler:
    """Start the global scheduler."""
    global _scheduler
    if _scheduler is None:
        _scheduler = AutomationScheduler(runtime)
        await _scheduler.start()
    return _scheduler


async def stop_scheduler():
    """Stop the global scheduler."""
    global _scheduler
    if _scheduler is not None:
        await _scheduler.stop()
        _scheduler = None


def get_scheduler() -> Optional[AutomationScheduler]:
    """Get the global scheduler instance."""
    return _scheduler
