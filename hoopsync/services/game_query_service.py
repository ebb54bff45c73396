"""
Cached read paths over the local store.

Reads are cache-aside: on a miss the value is rebuilt from the store and
cached with the TTL for its key family. Providers are never called here.
"""
import logging
from datetime import date
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from hoopsync.core.database import SessionLocal
from hoopsync.models import Game, Player, PlayerGameStats, Team
from hoopsync.repositories import (
    GameRepository,
    PlayerGameStatsRepository,
    PlayerRepository,
    TeamRepository,
)
from hoopsync.services.cache import CacheDurations, CacheKeys, CacheService, game_ttl_for_date
from hoopsync.utils.timezone import eastern_today

logger = logging.getLogger(__name__)


def serialize_team(team: Team) -> dict:
    return {
        "id": team.id,
        "external_id": team.external_id,
        "abbreviation": team.abbreviation,
        "name": team.name,
        "full_name": team.full_name,
        "city": team.city,
        "conference": team.conference,
        "division": team.division,
    }


def serialize_game(game: Game) -> dict:
    return {
        "id": game.id,
        "external_id": game.external_id,
        "game_date": game.game_date.isoformat(),
        "start_time": game.start_time.isoformat() if game.start_time else None,
        "home_team_id": game.home_team_id,
        "visitor_team_id": game.visitor_team_id,
        "home_team_score": game.home_team_score,
        "visitor_team_score": game.visitor_team_score,
        "status": game.status,
        "period": game.period,
        "time_remaining": game.time_remaining,
        "postseason": game.postseason,
        "season": game.season,
    }


def serialize_player(player: Player) -> dict:
    return {
        "id": player.id,
        "external_id": player.external_id,
        "name": player.name,
        "position": player.position,
        "jersey": player.jersey,
        "team_id": player.team_id,
    }


def serialize_stat_line(line: PlayerGameStats) -> dict:
    return {
        "id": line.id,
        "game_id": line.game_id,
        "player_id": line.player_id,
        "team_id": line.team_id,
        "minutes": line.minutes,
        "points": line.points,
        "rebounds": line.rebounds,
        "assists": line.assists,
        "steals": line.steals,
        "blocks": line.blocks,
        "turnovers": line.turnovers,
        "did_not_play": line.did_not_play,
    }


class GameQueryService:
    """
    Usage:
        queries = GameQueryService(cache)
        games = await queries.get_today_games()
    """

    def __init__(
        self,
        cache: CacheService,
        session_factory: Callable[[], Session] = SessionLocal,
        today: Callable[[], date] = eastern_today,
    ):
        self.cache = cache
        self.session_factory = session_factory
        self._today = today

    async def get_games_by_date(self, game_date: date) -> List[dict]:
        today = self._today()
        key = CacheKeys.TODAY_GAMES if game_date == today else CacheKeys.games_by_date(game_date)

        async def load():
            return self._read(lambda db: [serialize_game(g) for g in GameRepository(db).find_by_date(game_date)])

        return await self.cache.get_or_set(key, load, ttl=game_ttl_for_date(game_date, today))

    async def get_today_games(self) -> List[dict]:
        return await self.get_games_by_date(self._today())

    async def get_games_by_team(self, team_id: str, limit: int = 20) -> List[dict]:
        async def load():
            return self._read(lambda db: [serialize_game(g) for g in GameRepository(db).find_by_team(team_id, limit)])

        return await self.cache.get_or_set(CacheKeys.games_by_team(team_id), load, ttl=CacheDurations.GAMES_BY_DATE)

    async def get_all_teams(self) -> List[dict]:
        async def load():
            return self._read(lambda db: [serialize_team(t) for t in TeamRepository(db).find_all_ordered()])

        return await self.cache.get_or_set(CacheKeys.ALL_TEAMS, load, ttl=CacheDurations.ALL_TEAMS)

    async def get_team(self, team_id: str) -> Optional[dict]:
        async def load():
            def read(db):
                team = TeamRepository(db).find_by_id(team_id)
                return serialize_team(team) if team else None
            return self._read(read)

        return await self.cache.get_or_set(CacheKeys.team(team_id), load, ttl=CacheDurations.SINGLE_TEAM)

    async def get_team_players(self, team_id: str) -> List[dict]:
        async def load():
            return self._read(lambda db: [serialize_player(p) for p in PlayerRepository(db).find_by_team(team_id)])

        return await self.cache.get_or_set(CacheKeys.players_by_team(team_id), load, ttl=CacheDurations.PLAYER)

    async def get_player_stats(self, player_id: str) -> List[dict]:
        async def load():
            return self._read(
                lambda db: [serialize_stat_line(s) for s in PlayerGameStatsRepository(db).find_by_player(player_id)]
            )

        return await self.cache.get_or_set(CacheKeys.player_stats(player_id), load, ttl=CacheDurations.PLAYER_STATS)

    def _read(self, query: Callable[[Session], object]):
        db = self.session_factory()
        try:
            return query(db)
        finally:
            db.close()
