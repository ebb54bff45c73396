"""
Team Repository.

Usage:
    repo = TeamRepository(db)
    index = repo.abbreviation_index()
    team_id = index.get("BOS")
"""
from typing import Dict, List

from hoopsync.models import Team
from hoopsync.repositories.base import BaseRepository


class TeamRepository(BaseRepository[Team]):
    """Repository for team data access."""

    def __init__(self, db):
        super().__init__(Team, db)

    def find_all_ordered(self) -> List[Team]:
        """All teams ordered by full name."""
        return self.find_ordered("full_name")

    def abbreviation_index(self) -> Dict[str, str]:
        """
        Map abbreviation -> local team id.

        Schedule and box-score providers do not share team identifiers with
        the team provider, so their records are matched by abbreviation.
        """
        rows = self.db.query(Team.abbreviation, Team.id).all()
        return {abbreviation: team_id for abbreviation, team_id in rows}
