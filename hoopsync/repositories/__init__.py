"""
Repository layer for the local store.

Usage:
    from hoopsync.repositories import TeamRepository, GameRepository
    from hoopsync.core.database import SessionLocal

    db = SessionLocal()
    team_count = TeamRepository(db).count_all()
    db.close()
"""

from hoopsync.repositories.base import BaseRepository
from hoopsync.repositories.team_repository import TeamRepository
from hoopsync.repositories.game_repository import GameRepository
from hoopsync.repositories.player_repository import PlayerRepository, PlayerGameStatsRepository

__all__ = [
    "BaseRepository",
    "TeamRepository",
    "GameRepository",
    "PlayerRepository",
    "PlayerGameStatsRepository",
]
