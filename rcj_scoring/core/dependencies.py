"""
Dependencies - RCJ Scoring Engine
rcj_scoring/core/dependencies.py

Explicit wiring of the store handle, repositories and services. The engine
is built once at process start and closed on shutdown; nothing here is a
module-level mutable handle.
"""

from dataclasses import dataclass
from typing import Callable, List, Optional

import structlog

from rcj_scoring.config import Settings, get_settings
from rcj_scoring.models.division import Division
from rcj_scoring.models.ladder import DivisionLadder, LadderEntry
from rcj_scoring.models.score_sheet import ScoreSheet
from rcj_scoring.models.team import Institution, Team
from rcj_scoring.models.template import ScoreSheetTemplate
from rcj_scoring.repositories.division_repository import DivisionRepository
from rcj_scoring.repositories.score_sheet_repository import Mutator, ScoreSheetRepository
from rcj_scoring.repositories.team_repository import TeamRepository
from rcj_scoring.repositories.template_repository import TemplateRepository
from rcj_scoring.scoring.aggregation import AggregationEngine
from rcj_scoring.services.fetch_coordinator import FetchCoordinator
from rcj_scoring.services.ladder_service import LadderService
from rcj_scoring.stores.base import ScoreStore
from rcj_scoring.stores.memory_store import MemoryScoreStore
from rcj_scoring.stores.snowflake_store import SnowflakeScoreStore

logger = structlog.get_logger(__name__)


def create_store(settings: Settings) -> ScoreStore:
    """Build the store handle selected by STORE_BACKEND."""
    if settings.STORE_BACKEND == "memory":
        return MemoryScoreStore()
    return SnowflakeScoreStore(settings)


@dataclass
class ScoringEngine:
    """The scoring core as seen by request handlers and report writers."""
    settings: Settings
    store: ScoreStore
    score_sheets: ScoreSheetRepository
    templates: TemplateRepository
    divisions: DivisionRepository
    teams: TeamRepository
    ladders: LadderService

    # Score sheets
    async def fetch_score_sheet(self, sheet_id: str) -> ScoreSheet:
        return await self.score_sheets.fetch(sheet_id)

    async def create_score_sheet(self, mutator: Mutator) -> ScoreSheet:
        return await self.score_sheets.create(mutator)

    async def update_score_sheet(self, sheet_id: str, mutator: Mutator) -> ScoreSheet:
        return await self.score_sheets.update(sheet_id, mutator)

    async def fetch_score_sheet_summary(
        self, team_id: Optional[str] = None, author_id: Optional[str] = None
    ) -> List[ScoreSheet]:
        return await self.score_sheets.fetch_summary(team_id, author_id)

    # Ladder
    async def fetch_dance_ladder(self, division_id: Optional[str] = None) -> List[LadderEntry]:
        return await self.ladders.fetch_dance_ladder(division_id)

    async def fetch_dance_ladders(self, division_id: Optional[str] = None) -> List[DivisionLadder]:
        return await self.ladders.fetch_dance_ladders(division_id)

    # Templates, divisions, teams
    async def fetch_score_sheet_templates(self, ids=None) -> List[ScoreSheetTemplate]:
        return await self.templates.fetch_templates(ids)

    async def create_score_sheet_template(
        self, mutator: Callable[[ScoreSheetTemplate], None]
    ) -> ScoreSheetTemplate:
        return await self.templates.create_template(mutator)

    async def fetch_division(self, division_id: str) -> Division:
        return await self.divisions.fetch_division(division_id)

    async def fetch_divisions(self) -> List[Division]:
        return await self.divisions.fetch_divisions()

    async def create_division(self, mutator: Callable[[Division], None]) -> Division:
        return await self.divisions.create_division(mutator)

    async def fetch_team(self, team_id: str) -> Team:
        return await self.teams.fetch_team(team_id)

    async def fetch_teams(self, division_id=None, import_ids=None, populate_members=True) -> List[Team]:
        return await self.teams.fetch_teams(division_id, import_ids, populate_members)

    async def create_team(self, mutator: Callable[[Team], None]) -> Team:
        return await self.teams.create_team(mutator)

    async def update_team(self, team_id: str, mutator: Callable[[Team], None]) -> Team:
        return await self.teams.update_team(team_id, mutator)

    async def fetch_institutions(self) -> List[Institution]:
        return await self.teams.fetch_institutions()

    def close(self) -> None:
        self.store.close()
        logger.info("scoring_engine_closed")


def create_engine(
    settings: Optional[Settings] = None,
    store: Optional[ScoreStore] = None,
) -> ScoringEngine:
    """
    Build a ScoringEngine.

    Args:
        settings: defaults to get_settings()
        store: an existing store handle; defaults to create_store(settings)
    """
    settings = settings or get_settings()
    store = store or create_store(settings)
    coordinator = FetchCoordinator()
    aggregation = AggregationEngine(settings.STRICT_SECTION_COUNT)

    score_sheets = ScoreSheetRepository(store, settings, coordinator, aggregation)
    divisions = DivisionRepository(store, settings, coordinator)
    teams = TeamRepository(store, settings, coordinator)
    engine = ScoringEngine(
        settings=settings,
        store=store,
        score_sheets=score_sheets,
        templates=TemplateRepository(store, settings, coordinator),
        divisions=divisions,
        teams=teams,
        ladders=LadderService(divisions, teams, score_sheets, settings, coordinator, aggregation),
    )
    logger.info("scoring_engine_created", backend=settings.STORE_BACKEND)
    return engine
