"""Tests for GameQueryService cache-aside reads."""
from datetime import timedelta

import pytest

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))
from conftest import TODAY, make_game, make_stat_line

from hoopsync.services.cache import CacheKeys
from hoopsync.services.game_query_service import GameQueryService
from hoopsync.services.sync.units import UnitName


@pytest.fixture
def queries(cache, session_factory) -> GameQueryService:
    return GameQueryService(cache, session_factory=session_factory, today=lambda: TODAY)


class TestGameQueries:

    @pytest.mark.asyncio
    async def test_today_games_cached_under_today_key(self, queries, orchestrator, schedule_provider, seeded_teams, cache):
        """Should read today's games from the store and cache them."""
        schedule_provider.games[TODAY] = [make_game("401", "BOS", "NYK"), make_game("402", "LAL", "GSW")]
        await orchestrator.run_unit(UnitName.GAMES_TODAY)

        games = await queries.get_today_games()

        assert {g["external_id"] for g in games} == {"401", "402"}
        assert await cache.get(CacheKeys.TODAY_GAMES) == games

    @pytest.mark.asyncio
    async def test_second_read_is_a_hit(self, queries, seeded_teams, cache):
        """Should serve the second read from cache."""
        await queries.get_games_by_date(TODAY - timedelta(days=3))
        await queries.get_games_by_date(TODAY - timedelta(days=3))

        stats = cache.statistics()
        assert stats.hits == 1
        assert stats.misses == 1

    @pytest.mark.asyncio
    async def test_sync_invalidates_cached_read(self, queries, orchestrator, schedule_provider, seeded_teams):
        """Should see fresh games after a sync invalidates the key."""
        assert await queries.get_today_games() == []

        schedule_provider.games[TODAY] = [make_game("401", "BOS", "NYK")]
        await orchestrator.run_unit(UnitName.GAMES_TODAY)

        assert [g["external_id"] for g in await queries.get_today_games()] == ["401"]

    @pytest.mark.asyncio
    async def test_games_by_team(self, queries, orchestrator, schedule_provider, seeded_teams):
        """Should return games involving the team."""
        schedule_provider.games[TODAY] = [make_game("401", "BOS", "NYK"), make_game("402", "LAL", "GSW")]
        await orchestrator.run_unit(UnitName.GAMES_TODAY)

        games = await queries.get_games_by_team(seeded_teams["GSW"])

        assert [g["external_id"] for g in games] == ["402"]


class TestTeamQueries:

    @pytest.mark.asyncio
    async def test_all_teams_ordered(self, queries, seeded_teams):
        """Should list every team ordered by full name."""
        teams = await queries.get_all_teams()

        assert len(teams) == 30
        assert teams[0]["full_name"] == "Atlanta Hawks"

    @pytest.mark.asyncio
    async def test_missing_team_is_not_cached(self, queries, cache):
        """Should return None for an unknown team and leave the key unset."""
        assert await queries.get_team("missing") is None
        assert await cache.get(CacheKeys.team("missing")) is None

    @pytest.mark.asyncio
    async def test_single_team(self, queries, seeded_teams):
        """Should return one team by local id."""
        team = await queries.get_team(seeded_teams["BOS"])

        assert team["abbreviation"] == "BOS"


class TestPlayerStatsQueries:

    @pytest.mark.asyncio
    async def test_unknown_player_has_no_lines(self, queries):
        """Should return an empty list for a player without lines."""
        assert await queries.get_player_stats("nobody") == []

    @pytest.mark.asyncio
    async def test_roster_refreshes_after_player_stats_sync(
        self, queries, orchestrator, schedule_provider, seeded_teams
    ):
        """Should list players stored by the box-score sync once its invalidation runs."""
        assert await queries.get_team_players(seeded_teams["BOS"]) == []

        schedule_provider.games[TODAY] = [
            make_game("401", "BOS", "NYK", status="final", home_score=100, visitor_score=90),
        ]
        schedule_provider.stat_lines["401"] = [
            make_stat_line("p1", "Jayson Tatum", "BOS"),
            make_stat_line("p2", "Jalen Brunson", "NYK"),
        ]
        await orchestrator.run_unit(UnitName.GAMES_TODAY)
        await orchestrator.run_unit(UnitName.PLAYER_STATS)

        roster = await queries.get_team_players(seeded_teams["BOS"])
        assert [p["name"] for p in roster] == ["Jayson Tatum"]

        lines = await queries.get_player_stats(roster[0]["id"])
        assert len(lines) == 1
        assert lines[0]["points"] == 20
