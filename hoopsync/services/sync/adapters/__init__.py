"""Provider adapters and the records they produce."""
from hoopsync.services.sync.adapters.base import (
    BaseProviderAdapter,
    GameRecord,
    PlayerStatLine,
    ScheduleProvider,
    TeamProvider,
    TeamRecord,
)
from hoopsync.services.sync.adapters.balldontlie_adapter import BallDontLieAdapter
from hoopsync.services.sync.adapters.espn_adapter import EspnAdapter

__all__ = [
    "BaseProviderAdapter",
    "GameRecord",
    "PlayerStatLine",
    "ScheduleProvider",
    "TeamProvider",
    "TeamRecord",
    "BallDontLieAdapter",
    "EspnAdapter",
]
