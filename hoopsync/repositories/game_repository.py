"""
Game Repository.

Usage:
    repo = GameRepository(db)
    games = repo.query_by_date_range(date(2024, 1, 1), date(2024, 1, 7))
    live = repo.count_live_on(date.today())
"""
from datetime import date
from typing import List

from sqlalchemy import or_

from hoopsync.models import Game, GameStatus
from hoopsync.repositories.base import BaseRepository


class GameRepository(BaseRepository[Game]):
    """Repository for game data access."""

    def __init__(self, db):
        super().__init__(Game, db)

    # ========================================================================
    # Date-based Queries
    # ========================================================================

    def query_by_date_range(self, start: date, end: date) -> List[Game]:
        """Games whose ``game_date`` lies in [start, end] inclusive."""
        return self.in_date_range("game_date", start, end)

    def find_by_date(self, game_date: date) -> List[Game]:
        return self.query_by_date_range(game_date, game_date)

    def find_final_on(self, game_date: date) -> List[Game]:
        return self.where(Game.game_date == game_date, Game.status == GameStatus.FINAL)

    def count_live_on(self, game_date: date) -> int:
        return self.count(Game.game_date == game_date, Game.status == GameStatus.LIVE)

    # ========================================================================
    # Team-based Queries
    # ========================================================================

    def find_by_team(self, team_id: str, limit: int = 20) -> List[Game]:
        """Most recent games involving the team, newest first."""
        return (
            self.query()
            .filter(or_(Game.home_team_id == team_id, Game.visitor_team_id == team_id))
            .order_by(Game.game_date.desc())
            .limit(limit)
            .all()
        )
