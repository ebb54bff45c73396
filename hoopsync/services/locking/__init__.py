"""
Distributed lock coordination.
"""
from typing import Optional

from hoopsync.core.config import Settings, settings as default_settings
from hoopsync.services.locking.coordinator import (
    LockHandle,
    LockCoordinator,
    LocalLockCoordinator,
    RedisLockCoordinator,
)


def build_lock_coordinator(config: Optional[Settings] = None) -> LockCoordinator:
    """Create the coordinator for the configured ``LOCK_BACKEND``."""
    config = config or default_settings
    if config.LOCK_BACKEND == "redis":
        from hoopsync.core.redis_client import get_redis_client
        return RedisLockCoordinator(
            get_redis_client(config.REDIS_URL),
            retry_interval_seconds=config.LOCK_RETRY_INTERVAL_SECONDS,
        )
    return LocalLockCoordinator(retry_interval_seconds=config.LOCK_RETRY_INTERVAL_SECONDS)


__all__ = [
    "LockHandle",
    "LockCoordinator",
    "LocalLockCoordinator",
    "RedisLockCoordinator",
    "build_lock_coordinator",
]
