"""
ESPN adapter for games by date and per-game box scores.

ESPN API Endpoints:
- Scoreboard: {base}/scoreboard?dates=YYYYMMDD
- Game summary (box score): {base}/summary?event={event_id}

ESPN team abbreviations differ from the league's for a few teams; they are
normalized so games can be matched to locally stored teams.
"""
import logging
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import httpx

from hoopsync.core.config import settings
from hoopsync.models import GameStatus
from hoopsync.services.sync.adapters.base import (
    BaseProviderAdapter,
    GameRecord,
    PlayerStatLine,
)

logger = logging.getLogger(__name__)

ESPN_ABBREVIATION_ALIASES = {
    "GS": "GSW",
    "NY": "NYK",
    "NO": "NOP",
    "SA": "SAS",
    "UTAH": "UTA",
    "WSH": "WAS",
}

ESPN_STATE_MAP = {
    "pre": GameStatus.SCHEDULED,
    "in": GameStatus.LIVE,
    "post": GameStatus.FINAL,
}

# A game with both scores that started this long ago is over
FINAL_AFTER = timedelta(hours=2)


def normalize_abbreviation(abbreviation: Optional[str]) -> str:
    abbreviation = (abbreviation or "").upper()
    return ESPN_ABBREVIATION_ALIASES.get(abbreviation, abbreviation)


def parse_espn_datetime(value: Optional[str]) -> Optional[datetime]:
    """Parse an ESPN ISO timestamp ("2025-01-28T00:30Z") to naive UTC."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def season_for(game_date: date) -> int:
    """Season year as ESPN labels it (the 2024-25 season is 2025)."""
    return game_date.year + 1 if game_date.month >= 10 else game_date.year


def determine_status(
    status: Dict[str, Any],
    start_time: Optional[datetime],
    home_score: Optional[int],
    visitor_score: Optional[int],
    now: Optional[datetime] = None,
) -> str:
    """
    Map an ESPN status block to a ``GameStatus`` value.

    Postponed and canceled games are recognized from the status name. When
    ESPN sends no state, a game with both scores that started more than two
    hours ago is final.
    """
    status_type = status.get("type") or {}
    description = f"{status_type.get('name', '')} {status_type.get('description', '')}".lower()

    if "postponed" in description or "delayed" in description:
        return GameStatus.POSTPONED
    if "cancel" in description:
        return GameStatus.CANCELLED

    state = (status_type.get("state") or "").lower()
    if state in ESPN_STATE_MAP:
        return ESPN_STATE_MAP[state]

    now = now or datetime.utcnow()
    if (
        home_score is not None
        and visitor_score is not None
        and start_time is not None
        and start_time < now - FINAL_AFTER
    ):
        return GameStatus.FINAL
    return GameStatus.SCHEDULED


def _int_or_none(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


def _parse_minutes(value: Any) -> Optional[float]:
    """ESPN sends minutes as "34" or "34:12"."""
    if value in (None, "", "--"):
        return None
    text = str(value)
    if ":" in text:
        minutes, seconds = text.split(":", 1)
        try:
            return round(int(minutes) + int(seconds) / 60, 2)
        except ValueError:
            return None
    try:
        return float(text)
    except ValueError:
        return None


class EspnAdapter(BaseProviderAdapter):
    """
    ESPN scoreboard and game summary adapter.

    Usage:
        adapter = EspnAdapter()
        games = await adapter.fetch_games_by_date(date(2025, 1, 27))
        lines = await adapter.fetch_player_game_stats("401705123")
    """

    name = "espn"

    def __init__(
        self,
        base_url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
    ):
        super().__init__(base_url or settings.ESPN_BASE_URL, client=client, timeout=timeout)

    # ==================== GAMES ====================

    async def fetch_games_by_date(self, game_date: date) -> List[GameRecord]:
        payload = await self._get_json("scoreboard", params={"dates": game_date.strftime("%Y%m%d")})
        events = payload.get("events")
        if events is None:
            raise ValueError("espn: scoreboard payload has no 'events'")

        games = []
        for event in events:
            record = self._parse_event(event, game_date)
            if record is not None:
                games.append(record)

        logger.info(f"Fetched {len(games)} games from ESPN for {game_date.isoformat()}")
        return games

    def _parse_event(self, event: Dict[str, Any], game_date: date) -> Optional[GameRecord]:
        competitions = event.get("competitions") or []
        if not competitions:
            logger.warning(f"ESPN event {event.get('id')} has no competitions, skipping")
            return None

        competitors = {c.get("homeAway"): c for c in competitions[0].get("competitors", [])}
        home, away = competitors.get("home"), competitors.get("away")
        if home is None or away is None:
            logger.warning(f"ESPN event {event.get('id')} is missing a home or away team, skipping")
            return None

        start_time = parse_espn_datetime(event.get("date"))
        home_score = _int_or_none(home.get("score"))
        visitor_score = _int_or_none(away.get("score"))
        status = event.get("status") or competitions[0].get("status") or {}
        game_status = determine_status(status, start_time, home_score, visitor_score)

        if game_status == GameStatus.SCHEDULED:
            # ESPN reports "0" for games that have not started
            home_score = visitor_score = None

        season = event.get("season") or {}
        return GameRecord(
            external_id=str(event["id"]),
            game_date=game_date,
            home_team_abbreviation=normalize_abbreviation((home.get("team") or {}).get("abbreviation")),
            visitor_team_abbreviation=normalize_abbreviation((away.get("team") or {}).get("abbreviation")),
            status=game_status,
            season=_int_or_none(season.get("year")) or season_for(game_date),
            start_time=start_time,
            home_team_score=home_score,
            visitor_team_score=visitor_score,
            period=_int_or_none(status.get("period")) or None,
            time_remaining=status.get("displayClock") if game_status == GameStatus.LIVE else None,
            postseason=season.get("type") == 3,
        )

    # ==================== BOX SCORES ====================

    async def fetch_player_game_stats(self, game_external_id: str) -> List[PlayerStatLine]:
        payload = await self._get_json("summary", params={"event": game_external_id})
        boxscore = payload.get("boxscore")
        if boxscore is None:
            raise ValueError(f"espn: summary for {game_external_id} has no 'boxscore'")

        lines = []
        for team_block in boxscore.get("players", []):
            team_abbreviation = normalize_abbreviation((team_block.get("team") or {}).get("abbreviation"))
            for group in team_block.get("statistics", []):
                labels = group.get("labels") or group.get("names") or []
                for entry in group.get("athletes", []):
                    line = self._parse_athlete(entry, labels, team_abbreviation)
                    if line is not None:
                        lines.append(line)

        logger.info(f"Fetched {len(lines)} player lines from ESPN for game {game_external_id}")
        return lines

    @staticmethod
    def _parse_athlete(entry: Dict[str, Any], labels: List[str], team_abbreviation: str) -> Optional[PlayerStatLine]:
        athlete = entry.get("athlete") or {}
        if not athlete.get("id"):
            return None

        stats = dict(zip(labels, entry.get("stats") or []))
        did_not_play = bool(entry.get("didNotPlay")) or not stats
        return PlayerStatLine(
            player_external_id=str(athlete["id"]),
            player_name=athlete.get("displayName") or athlete.get("fullName") or "",
            team_abbreviation=team_abbreviation,
            position=(athlete.get("position") or {}).get("abbreviation"),
            jersey=athlete.get("jersey"),
            minutes=_parse_minutes(stats.get("MIN")),
            points=_int_or_none(stats.get("PTS")),
            rebounds=_int_or_none(stats.get("REB")),
            assists=_int_or_none(stats.get("AST")),
            steals=_int_or_none(stats.get("STL")),
            blocks=_int_or_none(stats.get("BLK")),
            turnovers=_int_or_none(stats.get("TO")),
            did_not_play=did_not_play,
        )
