"""
Circuit breakers for external provider calls.

Uses the pybreaker library. Each ResilientClient owns the breaker for its
provider.

Circuit Breaker States:
- closed: Requests pass through normally
- open: Requests fail immediately (after fail_max consecutive failures)
- half-open: One trial request is allowed to test if the provider recovered
"""
import logging
from typing import Iterable, Optional

from pybreaker import CircuitBreaker, CircuitBreakerListener

from hoopsync.core.metrics import circuit_breaker_failures_total, record_circuit_state

logger = logging.getLogger(__name__)

DEFAULT_FAIL_MAX = 5
DEFAULT_RESET_TIMEOUT = 30


class BreakerStateListener(CircuitBreakerListener):
    """Logs transitions and mirrors them into prometheus."""

    def state_change(self, cb, old_state, new_state):
        old_name = getattr(old_state, "name", None)
        new_name = getattr(new_state, "name", str(new_state))
        record_circuit_state(cb.name, new_name)
        if new_name == "open":
            logger.warning(
                f"Circuit breaker '{cb.name}' OPEN after {cb.fail_counter} failures, "
                f"failing fast for {cb.reset_timeout}s",
                extra={"service": cb.name, "old_state": old_name, "new_state": new_name},
            )
        else:
            logger.info(
                f"Circuit breaker '{cb.name}' {old_name} -> {new_name}",
                extra={"service": cb.name, "old_state": old_name, "new_state": new_name},
            )

    def failure(self, cb, exc):
        circuit_breaker_failures_total.labels(service=cb.name).inc()


def create_breaker(
    name: str,
    fail_max: int = DEFAULT_FAIL_MAX,
    reset_timeout: float = DEFAULT_RESET_TIMEOUT,
    exclude: Optional[Iterable[type]] = None,
) -> CircuitBreaker:
    """Create a breaker with the state listener attached; failures raise the original error."""
    breaker = CircuitBreaker(
        fail_max=fail_max,
        reset_timeout=reset_timeout,
        exclude=list(exclude or []),
        listeners=[BreakerStateListener()],
        name=name,
        throw_new_error_on_trip=False,
    )
    record_circuit_state(name, breaker.current_state)
    return breaker


def reset_breaker(breaker: CircuitBreaker) -> None:
    """
    Manually reset a circuit breaker to closed state.

    Only reset once the provider is known to have recovered.
    """
    breaker.close()
    logger.warning(f"Circuit breaker '{breaker.name}' manually reset to CLOSED state")
