"""
Prometheus metrics for hoopsync.

This module defines all Prometheus metrics used for monitoring and observability.
The in-process recorders (cache statistics, sync metrics) remain the source of
truth for health decisions; these series mirror them for scraping.

Metrics exposed:
- Sync unit outcome counters and duration histogram
- Cache request/eviction counters
- Provider circuit breaker state gauges
- Scheduler status and interval gauges
"""
from prometheus_client import Counter, Gauge, Histogram

# Sync Metrics
sync_unit_runs_total = Counter(
    "sync_unit_runs_total",
    "Total sync unit executions by outcome",
    ["unit", "outcome"]
)

sync_unit_duration_seconds = Histogram(
    "sync_unit_duration_seconds",
    "Sync unit execution time in seconds",
    ["unit"]
)

sync_records_processed_total = Counter(
    "sync_records_processed_total",
    "Total records upserted by sync units",
    ["unit"]
)

sync_live_games = Gauge(
    "sync_live_games",
    "Number of live games seen by the most recent today's-games sync"
)

# Cache Metrics
cache_requests_total = Counter(
    "cache_requests_total",
    "Total cache lookups by result",
    ["result"]
)

cache_evictions_total = Counter(
    "cache_evictions_total",
    "Total cache entries evicted to stay within the size budget"
)

cache_backend_errors_total = Counter(
    "cache_backend_errors_total",
    "Total cache backend failures degraded to pass-through",
    ["operation"]
)

# Lock Metrics
lock_acquisitions_total = Counter(
    "lock_acquisitions_total",
    "Total lock acquisition attempts by result",
    ["result"]
)

# Circuit Breaker Metrics
circuit_breaker_state = Gauge(
    "circuit_breaker_state",
    "Circuit breaker state (0=closed, 1=open, 2=half_open)",
    ["service"]
)

circuit_breaker_failures_total = Counter(
    "circuit_breaker_failures_total",
    "Total circuit breaker failures",
    ["service"]
)

provider_retries_total = Counter(
    "provider_retries_total",
    "Total provider call retries",
    ["service"]
)

# Scheduler Metrics
scheduler_running = Gauge(
    "scheduler_running",
    "Whether the adaptive sync loop is running (1=running, 0=stopped)"
)

scheduler_interval_seconds = Gauge(
    "scheduler_interval_seconds",
    "Sleep interval chosen after the most recent tick"
)

scheduler_ticks_total = Counter(
    "scheduler_ticks_total",
    "Total scheduler ticks by result",
    ["result"]
)

CIRCUIT_STATE_VALUES = {
    "closed": 0,
    "open": 1,
    "half-open": 2,
}


def record_circuit_state(service: str, state_name: str) -> None:
    """Set the circuit gauge for a provider from a pybreaker state name."""
    circuit_breaker_state.labels(service=service).set(CIRCUIT_STATE_VALUES.get(state_name, 0))


def record_sync_outcome(unit: str, outcome: str, duration_seconds: float, records: int = 0) -> None:
    """Record one finished sync unit."""
    sync_unit_runs_total.labels(unit=unit, outcome=outcome).inc()
    sync_unit_duration_seconds.labels(unit=unit).observe(duration_seconds)
    if records:
        sync_records_processed_total.labels(unit=unit).inc(records)


def update_scheduler_metrics(running: bool, interval_seconds: float | None = None) -> None:
    """Update scheduler status gauges."""
    scheduler_running.set(1 if running else 0)
    if interval_seconds is not None:
        scheduler_interval_seconds.set(interval_seconds)
