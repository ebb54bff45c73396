"""Tests for provider adapters using httpx.MockTransport."""
from datetime import date, datetime

import httpx
import pytest

from hoopsync.models import GameStatus
from hoopsync.services.sync.adapters import BallDontLieAdapter, EspnAdapter
from hoopsync.services.sync.adapters.espn_adapter import determine_status, normalize_abbreviation

GAME_DATE = date(2025, 1, 27)


def espn_event(event_id, home, away, state, home_score="0", away_score="0", clock="0.0", period=0):
    return {
        "id": event_id,
        "date": "2025-01-28T00:30Z",
        "season": {"year": 2025, "type": 2},
        "status": {
            "period": period,
            "displayClock": clock,
            "type": {"state": state, "name": "STATUS", "description": ""},
        },
        "competitions": [{
            "competitors": [
                {"homeAway": "home", "score": home_score, "team": {"abbreviation": home}},
                {"homeAway": "away", "score": away_score, "team": {"abbreviation": away}},
            ],
        }],
    }


def mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


# ─────────────────────────────────────────────────────────────────────────────
# ESPN scoreboard
# ─────────────────────────────────────────────────────────────────────────────

class TestEspnGames:
    """Scoreboard parsing."""

    @pytest.mark.asyncio
    async def test_parses_events(self):
        """Should normalize abbreviations, statuses, and scores."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["dates"] = request.url.params["dates"]
            return httpx.Response(200, json={"events": [
                espn_event("401", "GS", "LAL", "in", "55", "60", clock="4:12", period=3),
                espn_event("402", "BOS", "NY", "pre", "0", "0"),
                espn_event("403", "MIA", "UTAH", "post", "101", "99", period=4),
            ]})

        adapter = EspnAdapter(base_url="https://espn.test/nba", client=mock_client(handler))
        games = await adapter.fetch_games_by_date(GAME_DATE)
        await adapter.close()

        assert seen == {"path": "/nba/scoreboard", "dates": "20250127"}
        live, scheduled, final = games

        assert live.home_team_abbreviation == "GSW"
        assert live.status == GameStatus.LIVE
        assert live.home_team_score == 55
        assert live.period == 3
        assert live.time_remaining == "4:12"
        assert live.game_date == GAME_DATE
        assert live.start_time == datetime(2025, 1, 28, 0, 30)

        assert scheduled.visitor_team_abbreviation == "NYK"
        assert scheduled.status == GameStatus.SCHEDULED
        assert scheduled.home_team_score is None
        assert scheduled.visitor_team_score is None

        assert final.visitor_team_abbreviation == "UTA"
        assert final.status == GameStatus.FINAL
        assert final.time_remaining is None
        assert final.season == 2025

    @pytest.mark.asyncio
    async def test_skips_event_without_competitors(self):
        """Should skip events missing a home or away team."""
        def handler(request):
            return httpx.Response(200, json={"events": [{"id": "9", "competitions": []}]})

        adapter = EspnAdapter(base_url="https://espn.test", client=mock_client(handler))

        assert await adapter.fetch_games_by_date(GAME_DATE) == []

    @pytest.mark.asyncio
    async def test_missing_events_is_malformed(self):
        """Should raise ValueError when the payload has no events."""
        adapter = EspnAdapter(
            base_url="https://espn.test",
            client=mock_client(lambda request: httpx.Response(200, json={"leagues": []})),
        )

        with pytest.raises(ValueError):
            await adapter.fetch_games_by_date(GAME_DATE)

    @pytest.mark.asyncio
    async def test_http_error_is_raised(self):
        """Should surface HTTP errors for the resilient client to classify."""
        adapter = EspnAdapter(
            base_url="https://espn.test",
            client=mock_client(lambda request: httpx.Response(503)),
        )

        with pytest.raises(httpx.HTTPStatusError):
            await adapter.fetch_games_by_date(GAME_DATE)


class TestEspnStatus:
    """Status mapping helpers."""

    def test_postponed_from_description(self):
        """Should detect postponed games from the status name."""
        status = {"type": {"state": "pre", "name": "STATUS_POSTPONED"}}
        assert determine_status(status, None, None, None) == GameStatus.POSTPONED

    def test_final_inferred_without_state(self):
        """Should infer final for a scored game that started long ago."""
        start = datetime(2025, 1, 27, 0, 0)
        now = datetime(2025, 1, 27, 5, 0)
        assert determine_status({}, start, 100, 98, now=now) == GameStatus.FINAL

    def test_unknown_without_scores_is_scheduled(self):
        """Should default to scheduled without a state or scores."""
        assert determine_status({}, None, None, None) == GameStatus.SCHEDULED

    def test_normalize_abbreviation(self):
        """Should map ESPN aliases and pass through the rest."""
        assert normalize_abbreviation("wsh") == "WAS"
        assert normalize_abbreviation("BOS") == "BOS"
        assert normalize_abbreviation(None) == ""


# ─────────────────────────────────────────────────────────────────────────────
# ESPN box scores
# ─────────────────────────────────────────────────────────────────────────────

class TestEspnBoxScore:
    """Summary parsing."""

    @pytest.mark.asyncio
    async def test_parses_player_lines(self):
        """Should map labeled stats onto player lines."""
        payload = {"boxscore": {"players": [{
            "team": {"abbreviation": "GS"},
            "statistics": [{
                "labels": ["MIN", "PTS", "REB", "AST", "STL", "BLK", "TO"],
                "athletes": [
                    {
                        "athlete": {"id": "3975", "displayName": "Stephen Curry",
                                    "jersey": "30", "position": {"abbreviation": "PG"}},
                        "stats": ["36", "31", "5", "8", "2", "0", "3"],
                    },
                    {
                        "athlete": {"id": "1111", "displayName": "Bench Player"},
                        "stats": [],
                        "didNotPlay": True,
                    },
                    {"athlete": {}, "stats": ["1"]},
                ],
            }],
        }]}}

        def handler(request):
            assert request.url.params["event"] == "401"
            return httpx.Response(200, json=payload)

        adapter = EspnAdapter(base_url="https://espn.test", client=mock_client(handler))
        curry, bench = await adapter.fetch_player_game_stats("401")

        assert curry.team_abbreviation == "GSW"
        assert curry.points == 31
        assert curry.minutes == 36.0
        assert curry.turnovers == 3
        assert curry.position == "PG"
        assert curry.did_not_play is False

        assert bench.did_not_play is True
        assert bench.points is None

    @pytest.mark.asyncio
    async def test_missing_boxscore_is_malformed(self):
        """Should raise ValueError when the summary has no box score."""
        adapter = EspnAdapter(
            base_url="https://espn.test",
            client=mock_client(lambda request: httpx.Response(200, json={"header": {}})),
        )

        with pytest.raises(ValueError):
            await adapter.fetch_player_game_stats("401")


# ─────────────────────────────────────────────────────────────────────────────
# balldontlie teams
# ─────────────────────────────────────────────────────────────────────────────

class TestBallDontLieTeams:
    """Team list parsing."""

    @pytest.mark.asyncio
    async def test_keeps_only_active_conferences(self):
        """Should drop defunct franchises and send the API key."""
        seen = {}

        def handler(request):
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, json={"data": [
                {"id": 2, "abbreviation": "BOS", "name": "Celtics", "full_name": "Boston Celtics",
                 "city": "Boston", "conference": "East", "division": "Atlantic"},
                {"id": 38, "abbreviation": "AND", "name": "Packers", "full_name": "Anderson Packers",
                 "city": "Anderson", "conference": " ", "division": None},
            ]})

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler), headers={"Authorization": "key-1"})
        adapter = BallDontLieAdapter(api_key="key-1", base_url="https://bdl.test/v1", client=client)

        teams = await adapter.fetch_teams()

        assert [t.abbreviation for t in teams] == ["BOS"]
        assert teams[0].external_id == "2"
        assert teams[0].full_name == "Boston Celtics"
        assert seen["auth"] == "key-1"

    @pytest.mark.asyncio
    async def test_missing_data_is_malformed(self):
        """Should raise ValueError when the payload has no data."""
        adapter = BallDontLieAdapter(
            api_key="",
            base_url="https://bdl.test/v1",
            client=mock_client(lambda request: httpx.Response(200, json={"meta": {}})),
        )

        with pytest.raises(ValueError):
            await adapter.fetch_teams()
