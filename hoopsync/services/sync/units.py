"""
Sync unit bookkeeping: names, per-unit cadence state, and results.
"""
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import List, Optional


class UnitName:
    """Sync units in the fixed order they run within a tick."""
    TEAMS = "teams"
    GAMES_YESTERDAY = "games:yesterday"
    GAMES_TODAY = "games:today"
    GAMES_FUTURE = "games:future:7d"
    PLAYER_STATS = "player_stats"

    ORDER = (TEAMS, GAMES_YESTERDAY, GAMES_TODAY, GAMES_FUTURE, PLAYER_STATS)


class Outcome:
    SUCCESS = "success"
    FAILURE = "failure"
    SKIPPED = "skipped"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SyncUnit:
    """
    One named sync job and its cadence.

    ``interval`` of None means the unit runs every tick. A failed run does not
    advance ``last_run_at``, so the unit is retried on the next tick. A skipped
    run does, since another instance did the work.
    """
    name: str
    interval: Optional[timedelta] = None
    last_run_at: Optional[datetime] = None
    last_attempt_at: Optional[datetime] = None
    last_outcome: Optional[str] = None

    def is_due(self, now: datetime) -> bool:
        if self.interval is None or self.last_run_at is None:
            return True
        return now - self.last_run_at >= self.interval

    def record(self, outcome: str, now: datetime) -> None:
        self.last_attempt_at = now
        self.last_outcome = outcome
        if outcome in (Outcome.SUCCESS, Outcome.SKIPPED):
            self.last_run_at = now

    def snapshot(self) -> "SyncUnit":
        return replace(self)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "interval_seconds": self.interval.total_seconds() if self.interval else None,
            "last_run_at": self.last_run_at.isoformat() if self.last_run_at else None,
            "last_attempt_at": self.last_attempt_at.isoformat() if self.last_attempt_at else None,
            "last_outcome": self.last_outcome,
        }


@dataclass
class UnitOutcome:
    """Result of one sync unit invocation."""
    unit: str
    outcome: str
    records: int = 0
    duration_seconds: float = 0.0
    error: Optional[str] = None
    live_games: Optional[int] = None
    started_at: datetime = field(default_factory=utcnow)

    @property
    def succeeded(self) -> bool:
        return self.outcome == Outcome.SUCCESS

    @property
    def failed(self) -> bool:
        return self.outcome == Outcome.FAILURE

    @property
    def skipped(self) -> bool:
        return self.outcome == Outcome.SKIPPED


@dataclass
class SchedulerState:
    """State the scheduler threads through consecutive ticks."""
    tick_count: int = 0
    has_live_games: bool = False
    last_interval_seconds: Optional[float] = None
    last_tick_at: Optional[datetime] = None


@dataclass
class TickResult:
    """Aggregate of every unit that ran in one tick."""
    tick_id: str
    outcomes: List[UnitOutcome]
    has_live_games: bool
    started_at: datetime
    finished_at: datetime

    @property
    def duration_seconds(self) -> float:
        return (self.finished_at - self.started_at).total_seconds()

    @property
    def failed_units(self) -> List[str]:
        return [o.unit for o in self.outcomes if o.failed]

    @property
    def skipped_units(self) -> List[str]:
        return [o.unit for o in self.outcomes if o.skipped]

    def outcome_for(self, unit: str) -> Optional[UnitOutcome]:
        for outcome in self.outcomes:
            if outcome.unit == unit:
                return outcome
        return None
