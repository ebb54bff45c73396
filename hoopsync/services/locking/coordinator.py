"""
Lock coordinators that keep sync units from running concurrently across
instances.

A lock is a lease: the holder gets an opaque token and the claim expires on
its own after ``lease_seconds``, so a crashed holder never blocks forever.
Only the token holder can release.
"""
import asyncio
import logging
import threading
import time
import uuid
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import AsyncIterator, Callable, Dict, Optional, Tuple

from redis.asyncio import Redis
from redis.exceptions import RedisError

from hoopsync.core.exceptions import LockUnavailable
from hoopsync.core.metrics import lock_acquisitions_total

logger = logging.getLogger(__name__)

# Compare-and-delete: only the holder's token frees the key
RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""


@dataclass
class LockHandle:
    """Proof of holding ``resource`` until ``expires_at``."""
    resource: str
    token: str
    expires_at: datetime
    acquired_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    waited_seconds: float = 0.0
    coordinated: bool = True

    @property
    def is_expired(self) -> bool:
        return datetime.now(timezone.utc) >= self.expires_at


class LockCoordinator(ABC):
    """Acquire/release contract shared by the Redis and in-process coordinators."""

    backend_name = "abstract"

    def __init__(self, retry_interval_seconds: float = 0.5):
        self.retry_interval_seconds = retry_interval_seconds

    @abstractmethod
    async def _try_claim(self, resource: str, token: str, lease_seconds: float) -> Optional[bool]:
        """
        Claim ``resource`` if it is free or expired.

        Returns True when claimed, False when held by someone else, and None
        when the backend could not be asked.
        """

    @abstractmethod
    async def _release(self, handle: LockHandle) -> bool:
        """Free the resource if ``handle.token`` still owns it."""

    async def acquire(
        self,
        resource: str,
        lease_seconds: float,
        max_wait_seconds: float,
    ) -> Optional[LockHandle]:
        """
        Poll for ``resource`` until claimed or ``max_wait_seconds`` elapse.

        Returns None when the lock stayed held for the whole wait.
        """
        loop = asyncio.get_running_loop()
        started = loop.time()
        deadline = started + max_wait_seconds
        token = uuid.uuid4().hex

        while True:
            claimed = await self._try_claim(resource, token, lease_seconds)
            waited = loop.time() - started

            if claimed is None:
                lock_acquisitions_total.labels(result="uncoordinated").inc()
                logger.warning(
                    f"Lock backend unavailable, proceeding without coordination for {resource}",
                    extra={"resource": resource, "backend": self.backend_name},
                )
                return self._handle(resource, token, lease_seconds, waited, coordinated=False)

            if claimed:
                lock_acquisitions_total.labels(result="acquired").inc()
                logger.debug(f"Acquired lock {resource} after {waited:.2f}s")
                return self._handle(resource, token, lease_seconds, waited)

            remaining = deadline - loop.time()
            if remaining <= 0:
                lock_acquisitions_total.labels(result="unavailable").inc()
                logger.info(f"Lock {resource} held elsewhere after waiting {waited:.2f}s")
                return None

            await asyncio.sleep(min(self.retry_interval_seconds, remaining))

    async def release(self, handle: LockHandle) -> bool:
        """Release ``handle``; returns False if it no longer owned the lock."""
        if not handle.coordinated:
            return False
        released = await self._release(handle)
        if not released:
            logger.warning(
                f"Lock {handle.resource} was no longer held at release (lease expired?)",
                extra={"resource": handle.resource},
            )
        return released

    @asynccontextmanager
    async def hold(
        self,
        resource: str,
        lease_seconds: float,
        max_wait_seconds: float,
    ) -> AsyncIterator[LockHandle]:
        """
        Hold ``resource`` for the duration of the block.

        Raises:
            LockUnavailable: another holder kept the lock for the whole wait
        """
        handle = await self.acquire(resource, lease_seconds, max_wait_seconds)
        if handle is None:
            raise LockUnavailable(resource)
        try:
            yield handle
        finally:
            await self.release(handle)

    @staticmethod
    def _handle(
        resource: str,
        token: str,
        lease_seconds: float,
        waited: float,
        coordinated: bool = True,
    ) -> LockHandle:
        now = datetime.now(timezone.utc)
        return LockHandle(
            resource=resource,
            token=token,
            expires_at=now + timedelta(seconds=lease_seconds),
            acquired_at=now,
            waited_seconds=waited,
            coordinated=coordinated,
        )


class LocalLockCoordinator(LockCoordinator):
    """In-process coordinator for single-instance deployments and tests."""

    backend_name = "local"

    def __init__(self, retry_interval_seconds: float = 0.5, clock: Callable[[], float] = time.monotonic):
        super().__init__(retry_interval_seconds)
        self._clock = clock
        self._claims: Dict[str, Tuple[str, float]] = {}
        self._lock = threading.Lock()

    async def _try_claim(self, resource: str, token: str, lease_seconds: float) -> Optional[bool]:
        now = self._clock()
        with self._lock:
            current = self._claims.get(resource)
            if current is not None and current[1] > now:
                return False
            self._claims[resource] = (token, now + lease_seconds)
            return True

    async def _release(self, handle: LockHandle) -> bool:
        with self._lock:
            current = self._claims.get(handle.resource)
            if current is None or current[0] != handle.token:
                return False
            del self._claims[handle.resource]
            return True

    def is_held(self, resource: str) -> bool:
        with self._lock:
            current = self._claims.get(resource)
            return current is not None and current[1] > self._clock()


class RedisLockCoordinator(LockCoordinator):
    """Cross-instance coordinator using ``SET NX PX`` and a compare-and-delete release."""

    backend_name = "redis"

    def __init__(self, client: Redis, retry_interval_seconds: float = 0.5):
        super().__init__(retry_interval_seconds)
        self.client = client

    async def _try_claim(self, resource: str, token: str, lease_seconds: float) -> Optional[bool]:
        try:
            claimed = await self.client.set(
                resource,
                token,
                px=max(int(lease_seconds * 1000), 1),
                nx=True,
            )
        except (RedisError, OSError) as e:
            logger.warning(f"Redis lock claim failed for {resource}: {e}")
            return None
        return bool(claimed)

    async def _release(self, handle: LockHandle) -> bool:
        try:
            result = await self.client.eval(RELEASE_SCRIPT, 1, handle.resource, handle.token)
        except (RedisError, OSError) as e:
            logger.warning(f"Redis lock release failed for {handle.resource}: {e}")
            return False
        return bool(result)
