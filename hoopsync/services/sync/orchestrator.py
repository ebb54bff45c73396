"""Sync orchestrator: runs sync units in priority order under per-unit locks.

Units (fixed order within a tick):
- teams: full team list, only while the store holds fewer than expected
- games:yesterday: yesterday's games (first tick, then every 3 hours)
- games:today: today's games, every tick; yields the live-games signal
- games:future:7d: the next seven days (first tick, then hourly)
- player_stats: box scores for yesterday's and today's final games (hourly)

Per unit: pending -> fetching -> reconciling -> persisted, or
pending -> fetching -> failed, or pending -> skipped (lock held elsewhere).
A unit's failure is recorded and contained; it never aborts the others.
The store is written first, then the affected cache keys are invalidated.
"""
import asyncio
import logging
import time
import uuid
from contextlib import contextmanager
from datetime import date, datetime, timedelta
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from hoopsync.core.config import Settings, settings as default_settings
from hoopsync.core.database import SessionLocal
from hoopsync.core.exceptions import (
    HoopSyncError,
    LockUnavailable,
    PersistenceError,
    ProviderError,
    UnitTimeout,
)
from hoopsync.core.logging import correlation_scope
from hoopsync.core.metrics import sync_live_games
from hoopsync.models import PlayerGameStats
from hoopsync.repositories import (
    GameRepository,
    PlayerGameStatsRepository,
    PlayerRepository,
    TeamRepository,
)
from hoopsync.services.cache import CacheKeys, CacheService
from hoopsync.services.cache.keys import PLAYERS_PREFIX, TEAMS_PREFIX
from hoopsync.services.locking import LockCoordinator
from hoopsync.services.sync.adapters.base import GameRecord, ScheduleProvider, TeamProvider
from hoopsync.services.sync.metrics_recorder import MetricsRecorder
from hoopsync.services.sync.units import (
    Outcome,
    SchedulerState,
    SyncUnit,
    TickResult,
    UnitName,
    UnitOutcome,
    utcnow,
)
from hoopsync.utils.timezone import eastern_today

logger = logging.getLogger(__name__)

LOCK_PREFIX = "lock:sync:"


class SyncOrchestrator:
    """
    Runs sync units and reports their outcomes.

    All sync operations go through this orchestrator; the scheduler only
    calls ``run_tick`` and reads the aggregate ``TickResult``.
    """

    def __init__(
        self,
        team_provider: TeamProvider,
        schedule_provider: ScheduleProvider,
        cache: CacheService,
        locks: LockCoordinator,
        recorder: MetricsRecorder,
        session_factory: Callable[[], Session] = SessionLocal,
        config: Optional[Settings] = None,
        today: Callable[[], date] = eastern_today,
    ):
        """
        Args:
            team_provider: Source of the team list (already resilient-wrapped)
            schedule_provider: Source of games and box scores (already resilient-wrapped)
            cache: Cache whose keys are invalidated after each write
            locks: Coordinator guarding each unit across instances
            recorder: Receives every non-skipped outcome
            session_factory: Creates one store session per unit
            today: Returns today's date on the league calendar
        """
        self.team_provider = team_provider
        self.schedule_provider = schedule_provider
        self.cache = cache
        self.locks = locks
        self.recorder = recorder
        self.session_factory = session_factory
        self.config = config or default_settings
        self._today = today

        self.units: Dict[str, SyncUnit] = {
            UnitName.TEAMS: SyncUnit(UnitName.TEAMS),
            UnitName.GAMES_YESTERDAY: SyncUnit(
                UnitName.GAMES_YESTERDAY,
                interval=timedelta(minutes=self.config.YESTERDAY_SYNC_INTERVAL_MINUTES),
            ),
            UnitName.GAMES_TODAY: SyncUnit(UnitName.GAMES_TODAY),
            UnitName.GAMES_FUTURE: SyncUnit(
                UnitName.GAMES_FUTURE,
                interval=timedelta(minutes=self.config.FUTURE_SYNC_INTERVAL_MINUTES),
            ),
            UnitName.PLAYER_STATS: SyncUnit(
                UnitName.PLAYER_STATS,
                interval=timedelta(minutes=self.config.PLAYER_STATS_SYNC_INTERVAL_MINUTES),
            ),
        }
        self._handlers = {
            UnitName.TEAMS: self._sync_teams,
            UnitName.GAMES_YESTERDAY: self._sync_yesterday,
            UnitName.GAMES_TODAY: self._sync_today,
            UnitName.GAMES_FUTURE: self._sync_future,
            UnitName.PLAYER_STATS: self._sync_player_stats,
        }

    # ========================================================================
    # Tick and unit entry points
    # ========================================================================

    async def run_tick(self, state: SchedulerState) -> TickResult:
        """
        Run every due unit in priority order.

        The live-games signal comes from a successful ``games:today`` run;
        otherwise the previous tick's signal carries over.
        """
        tick_id = uuid.uuid4().hex[:12]
        with correlation_scope(tick_id):
            started_at = utcnow()
            has_live_games = state.has_live_games
            outcomes: List[UnitOutcome] = []

            logger.info(f"Sync tick {state.tick_count + 1} starting", extra={"tick_id": tick_id})

            for name in UnitName.ORDER:
                unit = self.units[name]
                if not unit.is_due(started_at):
                    logger.debug(f"Sync unit {name} not due (last run {unit.last_run_at})")
                    continue

                outcome = await self.run_unit(name)
                outcomes.append(outcome)

                if name == UnitName.GAMES_TODAY and outcome.succeeded:
                    has_live_games = bool(outcome.live_games)

            result = TickResult(
                tick_id=tick_id,
                outcomes=outcomes,
                has_live_games=has_live_games,
                started_at=started_at,
                finished_at=utcnow(),
            )
            logger.info(
                f"Sync tick finished in {result.duration_seconds:.1f}s: "
                f"{len(outcomes)} units run, {len(result.failed_units)} failed, "
                f"{len(result.skipped_units)} skipped, live games: {has_live_games}",
                extra={"tick_id": tick_id, "failed_units": result.failed_units},
            )
            return result

    async def run_unit(self, name: str) -> UnitOutcome:
        """
        Run one unit under its lock and record the outcome.

        Never raises for unit failures; cancellation propagates.
        """
        if name not in self._handlers:
            raise ValueError(f"Unknown sync unit: {name}")

        unit = self.units[name]
        started_at = utcnow()
        started = time.monotonic()
        outcome: UnitOutcome

        try:
            async with self.locks.hold(
                f"{LOCK_PREFIX}{name}",
                lease_seconds=self.config.SYNC_LOCK_LEASE_SECONDS,
                max_wait_seconds=self.config.SYNC_LOCK_MAX_WAIT_SECONDS,
            ):
                logger.debug(f"Sync unit {name}: fetching")
                records, live_games = await self._run_within_lease(name)
            outcome = UnitOutcome(
                unit=name,
                outcome=Outcome.SUCCESS,
                records=records,
                live_games=live_games,
                duration_seconds=time.monotonic() - started,
                started_at=started_at,
            )
            logger.info(
                f"Sync unit {name} persisted {records} records in {outcome.duration_seconds:.2f}s",
                extra={"unit": name, "records": records},
            )
        except LockUnavailable:
            outcome = UnitOutcome(
                unit=name,
                outcome=Outcome.SKIPPED,
                duration_seconds=time.monotonic() - started,
                started_at=started_at,
            )
            logger.info(f"Sync unit {name} skipped: lock held by another instance", extra={"unit": name})
        except HoopSyncError as e:
            outcome = self._failure(name, started, started_at, e)
            logger.error(f"Sync unit {name} failed: {e}", extra={"unit": name, "error_type": type(e).__name__})
        except Exception as e:
            outcome = self._failure(name, started, started_at, e)
            logger.exception(f"Sync unit {name} failed unexpectedly: {e}", extra={"unit": name})

        unit.record(outcome.outcome, utcnow())
        self.recorder.record(outcome)
        return outcome

    def units_snapshot(self) -> List[SyncUnit]:
        return [self.units[name].snapshot() for name in UnitName.ORDER]

    async def _run_within_lease(self, name: str) -> Tuple[int, Optional[int]]:
        """Run the unit handler, cancelling it before the lock lease can lapse."""
        budget = self.config.SYNC_LOCK_LEASE_SECONDS * self.config.SYNC_LOCK_LEASE_WORK_FRACTION
        try:
            return await asyncio.wait_for(self._handlers[name](), timeout=budget)
        except asyncio.TimeoutError as e:
            raise UnitTimeout(name, budget) from e

    @staticmethod
    def _failure(name: str, started: float, started_at: datetime, error: Exception) -> UnitOutcome:
        return UnitOutcome(
            unit=name,
            outcome=Outcome.FAILURE,
            duration_seconds=time.monotonic() - started,
            error=str(error),
            started_at=started_at,
        )

    @contextmanager
    def _session(self) -> Iterator[Session]:
        db = self.session_factory()
        try:
            yield db
        except SQLAlchemyError as e:
            db.rollback()
            raise PersistenceError(f"Store write failed: {e}") from e
        finally:
            db.close()

    # ========================================================================
    # Units
    # ========================================================================

    async def _sync_teams(self) -> Tuple[int, None]:
        with self._session() as db:
            existing = TeamRepository(db).count_all()
        if existing >= self.config.EXPECTED_TEAM_COUNT:
            logger.info(f"Teams already synced ({existing} in store)")
            return 0, None

        teams = await self.team_provider.fetch_teams()
        logger.debug(f"Sync unit teams: reconciling {len(teams)} teams")
        with self._session() as db:
            repo = TeamRepository(db)
            for team in teams:
                repo.upsert_by_external_id(
                    team.external_id,
                    abbreviation=team.abbreviation,
                    name=team.name,
                    full_name=team.full_name,
                    city=team.city,
                    conference=team.conference,
                    division=team.division,
                )
            repo.save()
            logger.info(f"Teams synced: {existing} -> {repo.count_all()} in store")

        await self.cache.invalidate_pattern(TEAMS_PREFIX)
        return len(teams), None

    async def _sync_yesterday(self) -> Tuple[int, None]:
        today = self._today()
        records, _ = await self._sync_games_for_date(today - timedelta(days=1), today)
        return records, None

    async def _sync_today(self) -> Tuple[int, int]:
        today = self._today()
        records, live_games = await self._sync_games_for_date(today, today)
        sync_live_games.set(live_games)
        if live_games:
            logger.info(f"{live_games} live games in progress")
        return records, live_games

    async def _sync_future(self) -> Tuple[int, None]:
        """
        Sync each day of the upcoming window.

        One failing day does not stop the others; the unit fails only when
        every day failed.
        """
        today = self._today()
        days = self.config.FUTURE_SYNC_DAYS
        total = 0
        last_error: Optional[Exception] = None
        failures = 0

        for offset in range(1, days + 1):
            game_date = today + timedelta(days=offset)
            try:
                records, _ = await self._sync_games_for_date(game_date, today)
                total += records
            except (ProviderError, PersistenceError) as e:
                failures += 1
                last_error = e
                logger.warning(f"Future games sync failed for {game_date.isoformat()}: {e}")
            if offset < days and self.config.PROVIDER_DAY_DELAY_SECONDS:
                await asyncio.sleep(self.config.PROVIDER_DAY_DELAY_SECONDS)

        if failures == days and last_error is not None:
            raise last_error
        return total, None

    async def _sync_games_for_date(self, game_date: date, today: date) -> Tuple[int, int]:
        """Fetch, reconcile, and persist one day's games; returns (persisted, live on that day)."""
        games = await self.schedule_provider.fetch_games_by_date(game_date)

        with self._session() as db:
            team_index = TeamRepository(db).abbreviation_index()
            repo = GameRepository(db)
            affected_teams = set()
            persisted = 0

            logger.debug(f"Reconciling {len(games)} games for {game_date.isoformat()}")
            for game in games:
                home_id = team_index.get(game.home_team_abbreviation)
                visitor_id = team_index.get(game.visitor_team_abbreviation)
                if home_id is None or visitor_id is None:
                    logger.warning(
                        f"Skipping game {game.external_id}: unknown team "
                        f"{game.visitor_team_abbreviation} @ {game.home_team_abbreviation}"
                    )
                    continue
                repo.upsert_by_external_id(game.external_id, **self._game_fields(game, home_id, visitor_id))
                affected_teams.update((home_id, visitor_id))
                persisted += 1

            repo.save()
            live_games = repo.count_live_on(game_date)

        await self._invalidate_games(game_date, today, affected_teams)
        return persisted, live_games

    async def _sync_player_stats(self) -> Tuple[int, None]:
        """
        Fetch box scores for yesterday's and today's final games.

        Games that already have stat lines are not fetched again. The unit
        fails only when every fetched game failed.
        """
        today = self._today()
        with self._session() as db:
            games_repo = GameRepository(db)
            stats_repo = PlayerGameStatsRepository(db)
            pending = [
                (game.id, game.external_id)
                for day in (today - timedelta(days=1), today)
                for game in games_repo.find_final_on(day)
                if stats_repo.count(PlayerGameStats.game_id == game.id) == 0
            ]

        if not pending:
            logger.info("No final games awaiting player stats")
            return 0, None

        total = 0
        failures = 0
        last_error: Optional[Exception] = None
        touched_players = set()

        for game_id, game_external_id in pending:
            try:
                lines = await self.schedule_provider.fetch_player_game_stats(game_external_id)
                with self._session() as db:
                    total += self._persist_stat_lines(db, game_id, game_external_id, lines, touched_players)
            except (ProviderError, PersistenceError) as e:
                failures += 1
                last_error = e
                logger.warning(f"Player stats sync failed for game {game_external_id}: {e}")

        if failures == len(pending) and last_error is not None:
            raise last_error

        for player_id in touched_players:
            await self.cache.invalidate(CacheKeys.player_stats(player_id))
        await self.cache.invalidate_pattern(PLAYERS_PREFIX)
        return total, None

    @staticmethod
    def _persist_stat_lines(db: Session, game_id: str, game_external_id: str, lines: Iterable, touched_players: set) -> int:
        team_index = TeamRepository(db).abbreviation_index()
        players = PlayerRepository(db)
        stats = PlayerGameStatsRepository(db)
        count = 0

        for line in lines:
            team_id = team_index.get(line.team_abbreviation)
            player_id = players.upsert_by_external_id(
                line.player_external_id,
                name=line.player_name,
                position=line.position,
                jersey=line.jersey,
                team_id=team_id,
                active=True,
            )
            players.flush()
            stats.upsert_by_external_id(
                PlayerGameStatsRepository.build_external_id(game_external_id, line.player_external_id),
                player_id=player_id,
                game_id=game_id,
                team_id=team_id,
                minutes=line.minutes,
                points=line.points,
                rebounds=line.rebounds,
                assists=line.assists,
                steals=line.steals,
                blocks=line.blocks,
                turnovers=line.turnovers,
                did_not_play=line.did_not_play,
            )
            touched_players.add(player_id)
            count += 1

        stats.save()
        return count

    # ========================================================================
    # Helpers
    # ========================================================================

    @staticmethod
    def _game_fields(game: GameRecord, home_id: str, visitor_id: str) -> dict:
        return {
            "game_date": game.game_date,
            "start_time": game.start_time,
            "home_team_id": home_id,
            "visitor_team_id": visitor_id,
            "home_team_score": game.home_team_score,
            "visitor_team_score": game.visitor_team_score,
            "status": game.status,
            "period": game.period,
            "time_remaining": game.time_remaining,
            "postseason": game.postseason,
            "season": game.season,
        }

    async def _invalidate_games(self, game_date: date, today: date, team_ids: Iterable[str]) -> None:
        await self.cache.invalidate(CacheKeys.games_by_date(game_date))
        if game_date == today:
            await self.cache.invalidate(CacheKeys.TODAY_GAMES)
        for team_id in team_ids:
            await self.cache.invalidate(CacheKeys.games_by_team(team_id))
