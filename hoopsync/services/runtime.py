"""
Process-wide wiring of the sync engine components.

One ``SyncRuntime`` per process holds the cache, lock coordinator, metrics
recorder, resilient provider wrappers, and the orchestrator built on them.
The scheduler, the health routes, and the CLI runner all read from it.
"""
import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from hoopsync.core.config import Settings, settings as default_settings
from hoopsync.core.database import SessionLocal
from hoopsync.core.redis_client import close_redis_client
from hoopsync.services.cache import CacheService, build_cache_service
from hoopsync.services.core import ResilientClient, ResilientProvider, build_resilient_client
from hoopsync.services.game_query_service import GameQueryService
from hoopsync.services.health_service import HealthEvaluator
from hoopsync.services.locking import LockCoordinator, build_lock_coordinator
from hoopsync.services.sync.adapters import BallDontLieAdapter, EspnAdapter
from hoopsync.services.sync.adapters.base import BaseProviderAdapter
from hoopsync.services.sync.metrics_recorder import MetricsRecorder
from hoopsync.services.sync.orchestrator import SyncOrchestrator

logger = logging.getLogger(__name__)


@dataclass
class SyncRuntime:
    cache: CacheService
    locks: LockCoordinator
    recorder: MetricsRecorder
    orchestrator: SyncOrchestrator
    queries: GameQueryService
    health: HealthEvaluator
    clients: List[ResilientClient] = field(default_factory=list)
    adapters: List[BaseProviderAdapter] = field(default_factory=list)

    def health_report(self) -> dict:
        return self.health.evaluate(self.cache.statistics(), self.recorder.snapshot())

    def breaker_states(self) -> dict:
        return {client.provider: client.state for client in self.clients}

    async def close(self) -> None:
        for adapter in self.adapters:
            await adapter.close()
        await self.cache.close()
        await close_redis_client()
        logger.info("Sync runtime closed")


def build_runtime(
    config: Optional[Settings] = None,
    session_factory: Callable[[], Session] = SessionLocal,
) -> SyncRuntime:
    """Create every component from settings."""
    config = config or default_settings

    espn = EspnAdapter(base_url=config.ESPN_BASE_URL, timeout=config.PROVIDER_TIMEOUT_SECONDS)
    balldontlie = BallDontLieAdapter(
        api_key=config.BALLDONTLIE_API_KEY,
        base_url=config.BALLDONTLIE_BASE_URL,
        timeout=config.PROVIDER_TIMEOUT_SECONDS,
    )
    espn_client = build_resilient_client(espn.name, config)
    balldontlie_client = build_resilient_client(balldontlie.name, config)

    cache = build_cache_service(config)
    locks = build_lock_coordinator(config)
    recorder = MetricsRecorder()

    orchestrator = SyncOrchestrator(
        team_provider=ResilientProvider(balldontlie, balldontlie_client),
        schedule_provider=ResilientProvider(espn, espn_client),
        cache=cache,
        locks=locks,
        recorder=recorder,
        session_factory=session_factory,
        config=config,
    )

    logger.info(
        f"Sync runtime built (cache: {config.CACHE_BACKEND}, locks: {config.LOCK_BACKEND})"
    )
    return SyncRuntime(
        cache=cache,
        locks=locks,
        recorder=recorder,
        orchestrator=orchestrator,
        queries=GameQueryService(cache, session_factory=session_factory),
        health=HealthEvaluator(config),
        clients=[espn_client, balldontlie_client],
        adapters=[espn, balldontlie],
    )


_runtime: Optional[SyncRuntime] = None


def get_runtime() -> SyncRuntime:
    """Get the process-wide runtime, building it on first use."""
    global _runtime
    if _runtime is None:
        _runtime = build_runtime()
    return _runtime


async def close_runtime() -> None:
    global _runtime
    if _runtime is not None:
        await _runtime.close()
        _runtime = None
