"""hoopsync: sports data synchronization and caching engine."""

__version__ = "1.0.0"
