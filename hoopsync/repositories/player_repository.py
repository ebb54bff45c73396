"""
Player and player game stats repositories.
"""
from typing import List

from hoopsync.models import Player, PlayerGameStats
from hoopsync.repositories.base import BaseRepository


class PlayerRepository(BaseRepository[Player]):
    """Repository for player data access."""

    def __init__(self, db):
        super().__init__(Player, db)

    def find_by_team(self, team_id: str) -> List[Player]:
        return self.where(Player.team_id == team_id, Player.active.is_(True))


class PlayerGameStatsRepository(BaseRepository[PlayerGameStats]):
    """Repository for per-game box-score lines."""

    def __init__(self, db):
        super().__init__(PlayerGameStats, db)

    def find_by_player(self, player_id: str) -> List[PlayerGameStats]:
        return self.where(PlayerGameStats.player_id == player_id)

    @staticmethod
    def build_external_id(game_external_id: str, player_external_id: str) -> str:
        return f"{game_external_id}:{player_external_id}"
