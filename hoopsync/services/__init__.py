"""
Service layer.

- cache: cache backends and the statistics-tracking cache service
- locking: distributed lock coordination
- core: provider resilience (retry, timeout, circuit breaker)
- sync: provider adapters, sync units, orchestrator, metrics recorder
"""
