"""Read-only operational routes: health, sync status, metrics."""
from hoopsync.api.routes import health, sync

__all__ = ["health", "sync"]
