#!/usr/bin/env python3
"""
Background runner for the hoopsync sync scheduler.

Runs the adaptive sync loop as a standalone service, without the HTTP app.
It can be run via systemd, supervisor, or directly.

Usage:
    python run_scheduler.py                      # Run in foreground
    python run_scheduler.py --once               # Run a single tick and exit
    python run_scheduler.py --trigger games:today
    python run_scheduler.py --list-units
"""
import argparse
import asyncio
import signal
import sys

from hoopsync.core.config import settings
from hoopsync.core.database import init_db
from hoopsync.core.logging import configure_logging, get_logger
from hoopsync.core.scheduler import AutomationScheduler
from hoopsync.services.runtime import close_runtime, get_runtime
from hoopsync.services.sync.units import SchedulerState, UnitName

configure_logging(level=settings.LOG_LEVEL, json_output=settings.LOG_JSON)
logger = get_logger(__name__)


class SchedulerRunner:
    """Runner for the automation scheduler."""

    def __init__(self):
        self.scheduler: AutomationScheduler = None
        self._shutdown = asyncio.Event()

    async def start(self):
        """Start the scheduler and run until a shutdown signal."""
        logger.info("Starting scheduler runner...")

        self.scheduler = AutomationScheduler()
        await self.scheduler.start()

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, self._set_shutdown)

        logger.info("Scheduler is now running, press Ctrl+C to stop")
        await self._shutdown.wait()

        await self.scheduler.stop()
        await close_runtime()
        logger.info("Scheduler runner stopped")

    def _set_shutdown(self):
        logger.info("Shutdown signal received")
        self._shutdown.set()


async def run_single_tick() -> bool:
    """Run every due unit once and print the outcomes."""
    runtime = get_runtime()
    try:
        result = await runtime.orchestrator.run_tick(SchedulerState())
    finally:
        await close_runtime()

    print("=" * 60)
    print(f"SYNC TICK {result.tick_id} ({result.duration_seconds:.1f}s)")
    print("=" * 60)
    for outcome in result.outcomes:
        line = f"  {outcome.unit:<18} {outcome.outcome:<8} {outcome.records:>5} records"
        if outcome.error:
            line += f"  ({outcome.error})"
        print(line)
    print(f"Live games: {result.has_live_games}")
    return not result.failed_units


async def run_trigger_unit(unit: str) -> bool:
    """Run one sync unit now."""
    if unit not in UnitName.ORDER:
        print(f"Unknown sync unit '{unit}'. Known units: {', '.join(UnitName.ORDER)}")
        return False

    runtime = get_runtime()
    try:
        print(f"Triggering sync unit: {unit}")
        outcome = await runtime.orchestrator.run_unit(unit)
    finally:
        await close_runtime()

    print(f"{outcome.unit}: {outcome.outcome}, {outcome.records} records in {outcome.duration_seconds:.2f}s")
    if outcome.error:
        print(f"Error: {outcome.error}")
    return not outcome.failed


def list_units() -> None:
    print("=" * 60)
    print("SYNC UNITS (run order)")
    print("=" * 60)
    intervals = {
        UnitName.GAMES_YESTERDAY: settings.YESTERDAY_SYNC_INTERVAL_MINUTES,
        UnitName.GAMES_FUTURE: settings.FUTURE_SYNC_INTERVAL_MINUTES,
        UnitName.PLAYER_STATS: settings.PLAYER_STATS_SYNC_INTERVAL_MINUTES,
    }
    for name in UnitName.ORDER:
        minutes = intervals.get(name)
        cadence = f"every {minutes} minutes" if minutes else "every tick"
        print(f"  • {name:<18} {cadence}")
    print()
    print(
        f"Tick interval: live {settings.LIVE_SYNC_INTERVAL_SECONDS:.0f}s, "
        f"normal {settings.NORMAL_SYNC_INTERVAL_SECONDS:.0f}s, "
        f"offseason {settings.OFFSEASON_SYNC_INTERVAL_SECONDS:.0f}s"
    )
    print("=" * 60)


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Run the hoopsync sync scheduler")
    parser.add_argument("--once", action="store_true", help="Run a single sync tick and exit")
    parser.add_argument("--trigger", type=str, metavar="UNIT", help="Run one sync unit by name and exit")
    parser.add_argument("--list-units", action="store_true", help="List sync units and their cadence")
    args = parser.parse_args()

    if args.list_units:
        list_units()
        return 0

    init_db()

    if args.trigger:
        return 0 if asyncio.run(run_trigger_unit(args.trigger)) else 1

    if args.once:
        return 0 if asyncio.run(run_single_tick()) else 1

    runner = SchedulerRunner()
    try:
        asyncio.run(runner.start())
    except KeyboardInterrupt:
        logger.info("Received interrupt, shutting down...")
    return 0


if __name__ == "__main__":
    sys.exit(main())
