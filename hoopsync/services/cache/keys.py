"""
Cache key builders and TTL policy.

Keys are partitioned by prefix so a whole family can be invalidated with one
``invalidate_pattern`` call.
"""
from datetime import date
from typing import Union

GAMES_PREFIX = "games:"
TEAMS_PREFIX = "teams:"
PLAYERS_PREFIX = "players:"
STATS_PREFIX = "stats:"


class CacheKeys:
    """Builders for every cache key the engine reads or invalidates."""

    ALL_TEAMS = "teams:all"
    TODAY_GAMES = "games:today"

    @staticmethod
    def team(team_id: Union[str, int]) -> str:
        return f"teams:id:{team_id}"

    @staticmethod
    def games_by_date(game_date: date) -> str:
        return f"games:date:{game_date.isoformat()}"

    @staticmethod
    def games_by_team(team_id: Union[str, int]) -> str:
        return f"games:team:{team_id}"

    @staticmethod
    def players_by_team(team_id: Union[str, int]) -> str:
        return f"players:team:{team_id}"

    @staticmethod
    def player_stats(player_id: Union[str, int]) -> str:
        return f"stats:player:{player_id}"


class CacheDurations:
    """TTLs in seconds."""

    TODAY_GAMES = 5 * 60
    GAMES_BY_DATE = 15 * 60
    PAST_GAMES = 60 * 60
    FUTURE_GAMES = 30 * 60
    LIVE_GAMES = 2 * 60
    ALL_TEAMS = 24 * 60 * 60
    SINGLE_TEAM = 2 * 60 * 60
    PLAYER = 60 * 60
    PLAYER_STATS = 15 * 60
    DEFAULT = 15 * 60


def game_ttl_for_date(game_date: date, today: date) -> int:
    """TTL for a games-by-date entry relative to ``today``."""
    if game_date == today:
        return CacheDurations.TODAY_GAMES
    if game_date < today:
        return CacheDurations.PAST_GAMES
    return CacheDurations.FUTURE_GAMES
