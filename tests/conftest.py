"""Shared pytest fixtures for hoopsync tests."""
from datetime import date, datetime, timedelta
from typing import Callable, Dict, Generator, List, Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from hoopsync.core.config import Settings
from hoopsync.core.exceptions import TransientProviderError
from hoopsync.models import GameStatus
from hoopsync.models.models import Base
from hoopsync.services.cache import CacheService, MemoryCacheBackend
from hoopsync.services.locking import LocalLockCoordinator
from hoopsync.services.sync.adapters.base import GameRecord, PlayerStatLine, TeamRecord
from hoopsync.services.sync.metrics_recorder import MetricsRecorder
from hoopsync.services.sync.orchestrator import SyncOrchestrator

TODAY = date(2025, 1, 27)

NBA_TEAMS = [
    ("ATL", "Hawks", "Atlanta", "East"), ("BOS", "Celtics", "Boston", "East"),
    ("BKN", "Nets", "Brooklyn", "East"), ("CHA", "Hornets", "Charlotte", "East"),
    ("CHI", "Bulls", "Chicago", "East"), ("CLE", "Cavaliers", "Cleveland", "East"),
    ("DAL", "Mavericks", "Dallas", "West"), ("DEN", "Nuggets", "Denver", "West"),
    ("DET", "Pistons", "Detroit", "East"), ("GSW", "Warriors", "Golden State", "West"),
    ("HOU", "Rockets", "Houston", "West"), ("IND", "Pacers", "Indiana", "East"),
    ("LAC", "Clippers", "LA", "West"), ("LAL", "Lakers", "Los Angeles", "West"),
    ("MEM", "Grizzlies", "Memphis", "West"), ("MIA", "Heat", "Miami", "East"),
    ("MIL", "Bucks", "Milwaukee", "East"), ("MIN", "Timberwolves", "Minnesota", "West"),
    ("NOP", "Pelicans", "New Orleans", "West"), ("NYK", "Knicks", "New York", "East"),
    ("OKC", "Thunder", "Oklahoma City", "West"), ("ORL", "Magic", "Orlando", "East"),
    ("PHI", "76ers", "Philadelphia", "East"), ("PHX", "Suns", "Phoenix", "West"),
    ("POR", "Trail Blazers", "Portland", "West"), ("SAC", "Kings", "Sacramento", "West"),
    ("SAS", "Spurs", "San Antonio", "West"), ("TOR", "Raptors", "Toronto", "East"),
    ("UTA", "Jazz", "Utah", "West"), ("WAS", "Wizards", "Washington", "East"),
]


def make_team_records(count: int = 30) -> List[TeamRecord]:
    return [
        TeamRecord(
            external_id=str(index + 1),
            abbreviation=abbreviation,
            name=name,
            full_name=f"{city} {name}",
            city=city,
            conference=conference,
        )
        for index, (abbreviation, name, city, conference) in enumerate(NBA_TEAMS[:count])
    ]


def make_game(
    external_id: str,
    home: str,
    visitor: str,
    game_date: date = TODAY,
    status: str = GameStatus.SCHEDULED,
    home_score: Optional[int] = None,
    visitor_score: Optional[int] = None,
) -> GameRecord:
    return GameRecord(
        external_id=external_id,
        game_date=game_date,
        home_team_abbreviation=home,
        visitor_team_abbreviation=visitor,
        status=status,
        season=2025,
        start_time=datetime.combine(game_date, datetime.min.time()) + timedelta(hours=24),
        home_team_score=home_score,
        visitor_team_score=visitor_score,
        period=2 if status == GameStatus.LIVE else None,
        time_remaining="5:32" if status == GameStatus.LIVE else None,
    )


def make_stat_line(player_id: str, name: str, team: str, points: int = 20) -> PlayerStatLine:
    return PlayerStatLine(
        player_external_id=player_id,
        player_name=name,
        team_abbreviation=team,
        position="G",
        jersey="0",
        minutes=34.5,
        points=points,
        rebounds=5,
        assists=7,
        steals=1,
        blocks=0,
        turnovers=3,
    )


class FakeTeamProvider:
    """Team provider returning canned records and counting calls."""

    def __init__(self, teams: Optional[List[TeamRecord]] = None, error: Optional[Exception] = None):
        self.teams = teams if teams is not None else make_team_records()
        self.error = error
        self.calls = 0

    async def fetch_teams(self) -> List[TeamRecord]:
        self.calls += 1
        if self.error:
            raise self.error
        return list(self.teams)


class FakeScheduleProvider:
    """Schedule provider keyed by date, with optional per-date failures."""

    def __init__(self):
        self.games: Dict[date, List[GameRecord]] = {}
        self.failing_dates: Dict[date, Exception] = {}
        self.stat_lines: Dict[str, List[PlayerStatLine]] = {}
        self.game_calls: List[date] = []
        self.stats_calls: List[str] = []

    async def fetch_games_by_date(self, game_date: date) -> List[GameRecord]:
        self.game_calls.append(game_date)
        if game_date in self.failing_dates:
            raise self.failing_dates[game_date]
        return list(self.games.get(game_date, []))

    async def fetch_player_game_stats(self, game_external_id: str) -> List[PlayerStatLine]:
        self.stats_calls.append(game_external_id)
        if game_external_id not in self.stat_lines:
            raise TransientProviderError("fake", f"no box score for {game_external_id}")
        return list(self.stat_lines[game_external_id])


class FakeClock:
    """Monotonic clock the test advances by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(scope="function")
def session_factory() -> Generator[Callable[[], Session], None, None]:
    """Session factory over a fresh in-memory database shared by every session."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(bind=engine, autocommit=False, autoflush=False)

    yield factory

    engine.dispose()


@pytest.fixture(scope="function")
def db_session(session_factory) -> Generator[Session, None, None]:
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        ENVIRONMENT="test",
        SYNC_LOCK_LEASE_SECONDS=60,
        SYNC_LOCK_MAX_WAIT_SECONDS=0.05,
        LOCK_RETRY_INTERVAL_SECONDS=0.01,
        PROVIDER_DAY_DELAY_SECONDS=0,
        FUTURE_SYNC_DAYS=3,
        SYNC_STARTUP_DELAY_SECONDS=0,
        TICK_TIMEOUT_SECONDS=5,
        ERROR_COOLDOWN_SECONDS=300,
    )


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache() -> CacheService:
    return CacheService(MemoryCacheBackend(max_bytes=1_000_000))


@pytest.fixture
def locks() -> LocalLockCoordinator:
    return LocalLockCoordinator(retry_interval_seconds=0.01)


@pytest.fixture
def recorder() -> MetricsRecorder:
    return MetricsRecorder()


@pytest.fixture
def team_provider() -> FakeTeamProvider:
    return FakeTeamProvider()


@pytest.fixture
def schedule_provider() -> FakeScheduleProvider:
    return FakeScheduleProvider()


@pytest.fixture
def orchestrator(
    team_provider, schedule_provider, cache, locks, recorder, session_factory, test_settings
) -> SyncOrchestrator:
    return SyncOrchestrator(
        team_provider=team_provider,
        schedule_provider=schedule_provider,
        cache=cache,
        locks=locks,
        recorder=recorder,
        session_factory=session_factory,
        config=test_settings,
        today=lambda: TODAY,
    )


@pytest.fixture
def runtime(orchestrator, cache, locks, recorder, session_factory, test_settings):
    """Runtime over the in-memory store and fake providers."""
    from hoopsync.services.core import ResilientClient
    from hoopsync.services.game_query_service import GameQueryService
    from hoopsync.services.health_service import HealthEvaluator
    from hoopsync.services.runtime import SyncRuntime

    return SyncRuntime(
        cache=cache,
        locks=locks,
        recorder=recorder,
        orchestrator=orchestrator,
        queries=GameQueryService(cache, session_factory=session_factory, today=lambda: TODAY),
        health=HealthEvaluator(test_settings),
        clients=[ResilientClient("espn"), ResilientClient("balldontlie")],
    )


@pytest.fixture
def seeded_teams(db_session: Session) -> Dict[str, str]:
    """All 30 teams in the store; returns abbreviation -> local id."""
    from hoopsync.repositories import TeamRepository

    repo = TeamRepository(db_session)
    for team in make_team_records():
        repo.upsert_by_external_id(
            team.external_id,
            abbreviation=team.abbreviation,
            name=team.name,
            full_name=team.full_name,
            city=team.city,
            conference=team.conference,
        )
    repo.save()
    return repo.abbreviation_index()
