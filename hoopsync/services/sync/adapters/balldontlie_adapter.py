"""
balldontlie adapter for the team list.

The ``/teams`` endpoint also returns defunct franchises; only teams with an
East or West conference are kept.
"""
import logging
from typing import List, Optional

import httpx

from hoopsync.core.config import settings
from hoopsync.services.sync.adapters.base import BaseProviderAdapter, TeamRecord

logger = logging.getLogger(__name__)

ACTIVE_CONFERENCES = {"East", "West"}


class BallDontLieAdapter(BaseProviderAdapter):
    """
    Usage:
        adapter = BallDontLieAdapter(api_key="...")
        teams = await adapter.fetch_teams()
    """

    name = "balldontlie"

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
    ):
        api_key = api_key if api_key is not None else settings.BALLDONTLIE_API_KEY
        headers = {"Authorization": api_key} if api_key else {}
        super().__init__(base_url or settings.BALLDONTLIE_BASE_URL, headers=headers, client=client, timeout=timeout)

    async def fetch_teams(self) -> List[TeamRecord]:
        payload = await self._get_json("teams")
        data = payload.get("data")
        if data is None:
            raise ValueError("balldontlie: teams payload has no 'data'")

        teams = []
        for item in data:
            if (item.get("conference") or "").strip() not in ACTIVE_CONFERENCES:
                continue
            teams.append(TeamRecord(
                external_id=str(item["id"]),
                abbreviation=item["abbreviation"].upper(),
                name=item.get("name") or item["abbreviation"],
                full_name=item.get("full_name") or item.get("name") or item["abbreviation"],
                city=item.get("city"),
                conference=item.get("conference"),
                division=item.get("division"),
            ))

        logger.info(f"Fetched {len(teams)} teams from balldontlie")
        return teams
