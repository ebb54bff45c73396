"""
Error taxonomy for the synchronization engine.

- TransientProviderError: retryable (network, timeout, 5xx, 429)
- PermanentProviderError: not retryable (404, other 4xx, malformed payload)
- CircuitOpenError: provider circuit is open, call failed fast
- LockUnavailable: another instance holds the lock (a deliberate skip)
- PersistenceError: the store rejected a write; fatal to the unit only
- CacheBackendUnavailable: raised by cache backends, never past CacheService
- UnitTimeout: a unit outran its lock lease and was cancelled
"""
from typing import Optional


class HoopSyncError(Exception):
    """Base class for all engine errors."""


class ProviderError(HoopSyncError):
    """An external data provider call failed."""

    def __init__(self, provider: str, message: str, status_code: Optional[int] = None):
        super().__init__(f"[{provider}] {message}")
        self.provider = provider
        self.status_code = status_code


class TransientProviderError(ProviderError):
    """Retryable provider failure."""


class PermanentProviderError(ProviderError):
    """Non-retryable provider failure."""


class CircuitOpenError(ProviderError):
    """The provider's circuit breaker is open; the provider was not contacted."""


class LockUnavailable(HoopSyncError):
    """The named lock is held by another instance."""

    def __init__(self, resource: str):
        super().__init__(f"Lock '{resource}' is held by another instance")
        self.resource = resource


class PersistenceError(HoopSyncError):
    """A store write failed."""


class CacheBackendUnavailable(HoopSyncError):
    """The cache backend could not serve the request."""


class UnitTimeout(HoopSyncError):
    """A sync unit ran past the share of its lock lease it may use."""

    def __init__(self, unit: str, budget_seconds: float):
        super().__init__(f"Sync unit '{unit}' exceeded {budget_seconds:.1f}s of its lock lease")
        self.unit = unit
        self.budget_seconds = budget_seconds
