"""
Provider records and the shared HTTP plumbing for provider adapters.

Adapters only fetch and normalize. They raise raw httpx errors or
``ValueError`` for malformed payloads; ``ResilientClient`` classifies those
into transient and permanent failures.
"""
import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Protocol

import httpx

from hoopsync.core.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TeamRecord:
    external_id: str
    abbreviation: str
    name: str
    full_name: str
    city: Optional[str] = None
    conference: Optional[str] = None
    division: Optional[str] = None


@dataclass(frozen=True)
class GameRecord:
    external_id: str
    game_date: date
    home_team_abbreviation: str
    visitor_team_abbreviation: str
    status: str
    season: int
    start_time: Optional[datetime] = None
    home_team_score: Optional[int] = None
    visitor_team_score: Optional[int] = None
    period: Optional[int] = None
    time_remaining: Optional[str] = None
    postseason: bool = False


@dataclass(frozen=True)
class PlayerStatLine:
    player_external_id: str
    player_name: str
    team_abbreviation: str
    position: Optional[str] = None
    jersey: Optional[str] = None
    minutes: Optional[float] = None
    points: Optional[int] = None
    rebounds: Optional[int] = None
    assists: Optional[int] = None
    steals: Optional[int] = None
    blocks: Optional[int] = None
    turnovers: Optional[int] = None
    did_not_play: bool = False


class TeamProvider(Protocol):
    async def fetch_teams(self) -> List[TeamRecord]: ...


class ScheduleProvider(Protocol):
    async def fetch_games_by_date(self, game_date: date) -> List[GameRecord]: ...

    async def fetch_player_game_stats(self, game_external_id: str) -> List[PlayerStatLine]: ...


class BaseProviderAdapter:
    """
    Owns a lazily created ``httpx.AsyncClient`` for one provider.

    Attributes:
        name: Provider name used for breakers, metrics, and logs
        base_url: Provider API root
        timeout: HTTP timeout in seconds for each request
    """

    name = "provider"

    def __init__(
        self,
        base_url: str,
        headers: Optional[Dict[str, str]] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout if timeout is not None else settings.PROVIDER_TIMEOUT_SECONDS
        self._headers = {"Accept": "application/json", **(headers or {})}
        self._client = client

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                limits=httpx.Limits(max_keepalive_connections=5, max_connections=10),
                headers=self._headers,
            )
        return self._client

    async def _get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        client = await self._get_client()
        response = await client.get(f"{self.base_url}/{path.lstrip('/')}", params=params)
        response.raise_for_status()
        payload = response.json()
        if not isinstance(payload, dict):
            raise ValueError(f"{self.name}: expected a JSON object from {path}")
        return payload

    async def close(self):
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
