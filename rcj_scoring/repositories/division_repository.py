"""
Division Repository - RCJ Scoring Engine
rcj_scoring/repositories/division_repository.py

Data access layer for divisions and their round configuration.
"""

from typing import Any, Callable, List, Mapping, Optional

import structlog

from rcj_scoring.core.exceptions import EntityNotFoundException, ValidationFailureException
from rcj_scoring.models.division import Division
from rcj_scoring.models.enumerations import League
from rcj_scoring.repositories.base import BaseRepository
from rcj_scoring.services.fetch_coordinator import Fetch
from rcj_scoring.stores.base import StoreSession

logger = structlog.get_logger(__name__)


class DivisionRepository(BaseRepository):
    """Repository for Division reads and creation."""

    @staticmethod
    def build_division(row: Mapping[str, Any]) -> Division:
        return Division(
            id=row["id"],
            name=row["name"],
            league=League(row["league"]),
            competition_rounds=row["competition_rounds"],
            final_rounds=row["final_rounds"],
            interview_template_id=row.get("interview_template_id"),
            performance_template_id=row.get("performance_template_id"),
        )

    def load_division(self, division_id: str) -> Fetch:
        """Fetch resolving one division; raises NotFound from its worker."""

        def query(session: StoreSession) -> Division:
            row = session.select_division(division_id)
            if row is None:
                raise EntityNotFoundException("Division", division_id)
            return self.build_division(row)

        return self.read(query, name="division")

    def load_divisions(self, league: Optional[League] = None) -> Fetch:
        """Fetch for all divisions (optionally one league), ordered by name."""
        league_value = league.value if league else None

        def query(session: StoreSession) -> List[Division]:
            return [self.build_division(r) for r in session.select_divisions(league_value)]

        return self.read(query, name="divisions")

    async def fetch_division(self, division_id: str) -> Division:
        return await self.run_fetch(self.load_division(division_id))

    async def fetch_divisions(self, league: Optional[League] = None) -> List[Division]:
        return await self.run_fetch(self.load_divisions(league))

    async def create_division(self, mutator: Callable[[Division], None]) -> Division:
        """Insert a division built by `mutator`; returns the re-fetched row."""

        def work(session: StoreSession) -> str:
            division = Division()
            mutator(division)
            if not division.name:
                raise ValidationFailureException("A division name is required", field="name")
            for template_id in (division.interview_template_id, division.performance_template_id):
                if template_id:
                    self.require(session.select_templates([template_id]), "Template", template_id)
            return session.insert_division(
                {
                    "name": division.name,
                    "league": division.league.value,
                    "competition_rounds": division.competition_rounds,
                    "final_rounds": division.final_rounds,
                    "interview_template_id": division.interview_template_id,
                    "performance_template_id": division.performance_template_id,
                }
            )

        division_id = await self.transact(work, "create_division")
        logger.info("division_created", division_id=division_id)
        return await self.fetch_division(division_id)
