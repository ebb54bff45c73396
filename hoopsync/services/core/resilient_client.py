"""
Resilient provider calls: per-attempt timeout, retry with exponential backoff
(tenacity), and a circuit breaker (pybreaker).

Composition, outermost first:

    retry -> circuit breaker -> timeout -> provider operation

Every attempt counts toward the breaker. Once the breaker opens, the next
attempt fails fast with ``CircuitOpenError`` and retrying stops.

Usage:
    client = ResilientClient("espn")
    espn = ResilientProvider(EspnAdapter(), client)
    games = await espn.fetch_games_by_date(date.today())
"""
import asyncio
import inspect
import logging
from functools import wraps
from typing import Any, Awaitable, Callable, Optional, TypeVar

import httpx
from pybreaker import CircuitBreaker, CircuitBreakerError
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from hoopsync.core.config import settings
from hoopsync.core.exceptions import (
    CircuitOpenError,
    PermanentProviderError,
    ProviderError,
    TransientProviderError,
)
from hoopsync.core.metrics import provider_retries_total
from hoopsync.services.core.circuit_breaker import create_breaker, reset_breaker

logger = logging.getLogger(__name__)

T = TypeVar("T")


def classify_error(provider: str, error: BaseException) -> ProviderError:
    """
    Map a raw failure to the provider error taxonomy.

    Network errors, timeouts, 5xx and 429 are transient. Other 4xx and
    malformed payloads are permanent.
    """
    if isinstance(error, ProviderError):
        return error
    if isinstance(error, (asyncio.TimeoutError, httpx.TimeoutException)):
        return TransientProviderError(provider, f"timeout: {error!r}")
    if isinstance(error, httpx.HTTPStatusError):
        status = error.response.status_code
        message = f"HTTP {status} from {error.request.url}"
        if status >= 500 or status == 429:
            return TransientProviderError(provider, message, status_code=status)
        return PermanentProviderError(provider, message, status_code=status)
    if isinstance(error, httpx.TransportError):
        return TransientProviderError(provider, f"network error: {error!r}")
    if isinstance(error, (ValueError, KeyError, TypeError)):
        return PermanentProviderError(provider, f"malformed payload: {error!r}")
    return TransientProviderError(provider, f"unexpected error: {error!r}")


class ResilientClient:
    """Wraps calls to one provider with timeout, retry, and circuit breaking."""

    def __init__(
        self,
        provider: str,
        *,
        attempts: Optional[int] = None,
        base_delay: Optional[float] = None,
        max_delay: Optional[float] = None,
        timeout: Optional[float] = None,
        fail_max: Optional[int] = None,
        reset_timeout: Optional[float] = None,
        breaker: Optional[CircuitBreaker] = None,
    ):
        self.provider = provider
        self.attempts = attempts if attempts is not None else settings.PROVIDER_RETRY_ATTEMPTS
        self.base_delay = base_delay if base_delay is not None else settings.PROVIDER_RETRY_BASE_DELAY
        self.max_delay = max_delay if max_delay is not None else settings.PROVIDER_RETRY_MAX_DELAY
        self.timeout = timeout if timeout is not None else settings.PROVIDER_TIMEOUT_SECONDS
        self.breaker = breaker or create_breaker(
            provider,
            fail_max=fail_max if fail_max is not None else settings.CIRCUIT_FAIL_MAX,
            reset_timeout=reset_timeout if reset_timeout is not None else settings.CIRCUIT_RESET_TIMEOUT,
            exclude=[PermanentProviderError, asyncio.CancelledError],
        )
        self._trial_in_flight = False

    @property
    def state(self) -> str:
        """Breaker state: 'closed', 'open', or 'half-open'."""
        return self.breaker.current_state

    def reset(self) -> None:
        reset_breaker(self.breaker)
        self._trial_in_flight = False

    async def fetch(self, operation: Callable[..., Awaitable[T]], *args, **kwargs) -> T:
        """
        Call ``operation(*args, **kwargs)`` through retry and circuit breaker.

        Raises:
            TransientProviderError: retries exhausted
            PermanentProviderError: non-retryable failure, raised on first occurrence
            CircuitOpenError: the circuit was open, the provider was not called
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.attempts),
            wait=wait_exponential(multiplier=self.base_delay, max=self.max_delay),
            retry=retry_if_exception_type(TransientProviderError),
            before_sleep=self._log_retry,
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                return await self._attempt(operation, *args, **kwargs)

    async def _attempt(self, operation: Callable[..., Awaitable[T]], *args, **kwargs) -> T:
        if self._trial_in_flight:
            raise CircuitOpenError(self.provider, "circuit half-open, trial call in progress")

        try:
            with self.breaker.calling():
                is_trial = self.breaker.current_state == "half-open"
                if is_trial:
                    self._trial_in_flight = True
                    logger.info(f"Circuit breaker '{self.provider}' allowing trial call")
                try:
                    return await self._call_with_timeout(operation, *args, **kwargs)
                finally:
                    if is_trial:
                        self._trial_in_flight = False
        except CircuitBreakerError as e:
            raise CircuitOpenError(self.provider, f"circuit open: {e}") from e

    async def _call_with_timeout(self, operation: Callable[..., Awaitable[T]], *args, **kwargs) -> T:
        try:
            return await asyncio.wait_for(operation(*args, **kwargs), timeout=self.timeout)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            classified = classify_error(self.provider, e)
            if classified is e:
                raise
            raise classified from e

    def _log_retry(self, retry_state: RetryCallState) -> None:
        provider_retries_total.labels(service=self.provider).inc()
        error = retry_state.outcome.exception() if retry_state.outcome else None
        delay = retry_state.next_action.sleep if retry_state.next_action else 0
        logger.warning(
            f"Retrying {self.provider} call in {delay:.1f}s "
            f"(attempt {retry_state.attempt_number}/{self.attempts}): {error}",
            extra={"service": self.provider, "attempt": retry_state.attempt_number},
        )


class ResilientProvider:
    """
    Wraps every ``fetch_*`` coroutine method of ``provider`` with ``client.fetch``.

    Call sites use the wrapped object exactly like the raw provider and carry
    no retry logic of their own.
    """

    def __init__(self, provider: Any, client: ResilientClient):
        self._provider = provider
        self.client = client

    def __getattr__(self, name: str) -> Any:
        attr = getattr(self._provider, name)
        if not name.startswith("fetch_") or not inspect.iscoroutinefunction(attr):
            return attr

        @wraps(attr)
        async def call(*args, **kwargs):
            return await self.client.fetch(attr, *args, **kwargs)

        return call
