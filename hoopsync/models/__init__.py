"""Store models."""
from hoopsync.models.models import Base, GameStatus, Team, Game, Player, PlayerGameStats

__all__ = [
    "Base",
    "GameStatus",
    "Team",
    "Game",
    "Player",
    "PlayerGameStats",
]
