"""Provider resilience: circuit breakers and the retrying client."""
from typing import Optional

from hoopsync.core.config import Settings, settings as default_settings
from hoopsync.services.core.circuit_breaker import (
    create_breaker,
    reset_breaker,
)
from hoopsync.services.core.resilient_client import (
    ResilientClient,
    ResilientProvider,
    classify_error,
)


def build_resilient_client(provider: str, config: Optional[Settings] = None) -> ResilientClient:
    """Create a client whose retry, timeout, and breaker settings come from ``config``."""
    config = config or default_settings
    return ResilientClient(
        provider,
        attempts=config.PROVIDER_RETRY_ATTEMPTS,
        base_delay=config.PROVIDER_RETRY_BASE_DELAY,
        max_delay=config.PROVIDER_RETRY_MAX_DELAY,
        timeout=config.PROVIDER_TIMEOUT_SECONDS,
        fail_max=config.CIRCUIT_FAIL_MAX,
        reset_timeout=config.CIRCUIT_RESET_TIMEOUT,
    )


__all__ = [
    "create_breaker",
    "reset_breaker",
    "ResilientClient",
    "ResilientProvider",
    "build_resilient_client",
    "classify_error",
]
