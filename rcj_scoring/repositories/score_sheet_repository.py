"""
Score Sheet Repository - RCJ Scoring Engine
rcj_scoring/repositories/score_sheet_repository.py

Atomic fetch/create/update of the score sheet aggregate (header + ordered
sections).

Create inserts the header and every section row in one transaction. Update
re-reads the sheet inside its transaction, lets the caller mutate it, then
writes back only team, timings, comments and section values by row id;
section rows are never added or removed after creation.
"""

from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

import structlog

from rcj_scoring.config import Settings
from rcj_scoring.core.exceptions import (
    EntityNotFoundException,
    ForeignKeyViolationException,
    ValidationFailureException,
)
from rcj_scoring.models.enumerations import TemplateType
from rcj_scoring.models.score_sheet import Author, ScoreSheet, ScoreSheetSection, Timing
from rcj_scoring.models.team import Institution, Team
from rcj_scoring.repositories.base import BaseRepository
from rcj_scoring.scoring.aggregation import AggregationEngine
from rcj_scoring.scoring.utils import ZERO, to_storage
from rcj_scoring.services.fetch_coordinator import Fetch, FetchCoordinator
from rcj_scoring.stores.base import ScoreStore, StoreSession

logger = structlog.get_logger(__name__)

Mutator = Callable[[ScoreSheet], None]


class ScoreSheetRepository(BaseRepository):
    """Repository for score sheets and their section values."""

    def __init__(
        self,
        store: ScoreStore,
        settings: Settings,
        coordinator: Optional[FetchCoordinator] = None,
        aggregation: Optional[AggregationEngine] = None,
    ):
        super().__init__(store, settings, coordinator)
        self.aggregation = aggregation or AggregationEngine(settings.STRICT_SECTION_COUNT)

    # -------------------------
    # Row mapping
    # -------------------------
    @staticmethod
    def build_score_sheet(
        header: Mapping[str, Any], section_rows: Sequence[Mapping[str, Any]]
    ) -> ScoreSheet:
        """Assemble a ScoreSheet from its header row and section rows."""
        return ScoreSheet(
            id=header["id"],
            division_id=header["division_id"],
            team=Team(
                id=header["team_id"],
                name=header["team_name"],
                institution=Institution(
                    id=header["institution_id"], name=header["institution_name"]
                ),
                division_id=header["division_id"],
            ),
            template_id=header["template_id"],
            type=TemplateType(header["type"]),
            author=Author(
                id=header["author_id"],
                name=header["author_name"] or "",
                username=header.get("author_username") or "",
            ),
            round=header["round"],
            comments=header.get("comments") or "",
            timings=[Timing(**t) for t in header.get("timings") or []],
            created_at=header.get("created_at"),
            sections=[
                ScoreSheetSection(
                    id=row["id"],
                    section_id=row["section_id"],
                    title=row["title"] or "",
                    description=row.get("description") or "",
                    max_value=row["max_value"],
                    multiplier=row["multiplier"],
                    value=row["value"],
                )
                for row in section_rows
            ],
        )

    @staticmethod
    def build_summary(row: Mapping[str, Any], total) -> ScoreSheet:
        return ScoreSheet(
            id=row["id"],
            division_id=row["division_id"],
            team=Team(
                id=row["team_id"],
                name=row["team_name"],
                institution=Institution(id=row["institution_id"], name=row["institution_name"]),
                division_id=row["division_id"],
            ),
            template_id=row["template_id"],
            type=TemplateType(row["type"]),
            author=Author(id=row["author_id"], name=row["author_name"] or ""),
            round=row["round"],
            created_at=row.get("created_at"),
            total=total,
        )

    @staticmethod
    def _header_row(sheet: ScoreSheet) -> Dict[str, Any]:
        if sheet.team is None or not sheet.team.id:
            raise ValidationFailureException("A team is required", field="team")
        if not sheet.template_id:
            raise ValidationFailureException("A template is required", field="template_id")
        if not sheet.division_id:
            raise ValidationFailureException("A division is required", field="division_id")
        if sheet.author is None or not sheet.author.id:
            raise ValidationFailureException("An author is required", field="author")
        return {
            "division_id": sheet.division_id,
            "team_id": sheet.team.id,
            "template_id": sheet.template_id,
            "author_id": sheet.author.id,
            "timings": [t.model_dump() for t in sheet.timings],
            "comments": sheet.comments,
            "round": sheet.round,
        }

    def _check_references(
        self, session: StoreSession, header: Mapping[str, Any], section_ids: Sequence[str]
    ) -> None:
        """Every row the new sheet points at must exist before anything is written."""
        template_id = header["template_id"]
        self.require(session.select_team(header["team_id"]), "Team", header["team_id"])
        self.require(
            session.select_division(header["division_id"]), "Division", header["division_id"]
        )
        self.require(session.select_templates([template_id]), "Template", template_id)
        self.require(session.select_user(header["author_id"]), "Author", header["author_id"])

        known = {row["id"] for row in session.select_template_sections([template_id])}
        for section_id in section_ids:
            if section_id not in known:
                raise ForeignKeyViolationException(
                    f"Section {section_id} is not part of template {template_id}"
                )

    def _fetch_in(self, session: StoreSession, sheet_id: str) -> Tuple[ScoreSheet, int]:
        """Sequential read inside an open transaction; returns (sheet, version)."""
        header = session.select_score_sheet(sheet_id)
        if header is None:
            raise EntityNotFoundException("ScoreSheet", sheet_id)
        sections = session.select_score_sheet_sections(sheet_id)
        return self.build_score_sheet(header, sections), int(header["version"])

    # -------------------------
    # Operations
    # -------------------------
    async def fetch(self, sheet_id: str) -> ScoreSheet:
        """
        Fetch a score sheet with its sections.

        The header and section queries run concurrently, each on its own
        session.

        Raises:
            EntityNotFoundException: no sheet with this id
        """
        header, sections = await self.coordinator.gather(
            self.read(lambda s: s.select_score_sheet(sheet_id), name="score_sheet_header"),
            self.read(lambda s: s.select_score_sheet_sections(sheet_id), name="score_sheet_sections"),
        )
        if header is None:
            raise EntityNotFoundException("ScoreSheet", sheet_id)

        logger.debug("score_sheet_fetched", score_sheet_id=sheet_id, sections=len(sections))
        return self.build_score_sheet(header, sections)

    async def create(self, mutator: Mutator) -> ScoreSheet:
        """
        Create a score sheet and all of its section rows atomically.

        Args:
            mutator: populates a blank ScoreSheet; re-run from scratch on
                every retry

        Returns:
            The persisted sheet, re-fetched after commit

        Raises:
            ForeignKeyViolationException: an unknown team, division, template
                or author, or a section outside the template; nothing is written
        """

        def work(session: StoreSession) -> str:
            sheet = ScoreSheet()
            mutator(sheet)
            header = self._header_row(sheet)
            self._check_references(session, header, [s.section_id for s in sheet.sections])
            sheet_id = session.insert_score_sheet(header)
            session.insert_score_sheet_sections(
                sheet_id,
                [{"section_id": s.section_id, "value": to_storage(s.value)} for s in sheet.sections],
            )
            return sheet_id

        sheet_id = await self.transact(work, "create_score_sheet")
        created = await self.fetch(sheet_id)

        logger.info(
            "score_sheet_created",
            score_sheet_id=sheet_id,
            team_id=created.team.id if created.team else None,
            round=created.round,
            sections=len(created.sections),
        )
        return created

    async def update(self, sheet_id: str, mutator: Mutator) -> ScoreSheet:
        """
        Update header fields and section values of an existing sheet.

        Raises:
            EntityNotFoundException: no sheet with this id (before any write)
        """

        def work(session: StoreSession) -> None:
            sheet, version = self._fetch_in(session, sheet_id)
            team_id = sheet.team.id
            mutator(sheet)

            if sheet.team is None or not sheet.team.id:
                raise ValidationFailureException("A team is required", field="team")
            if sheet.team.id != team_id:
                self.require(session.select_team(sheet.team.id), "Team", sheet.team.id)
            session.update_score_sheet(
                sheet_id,
                {
                    "team_id": sheet.team.id,
                    "timings": [t.model_dump() for t in sheet.timings],
                    "comments": sheet.comments,
                },
                version,
            )

            for section in sheet.sections:
                updated = 0
                if section.id:
                    updated = session.update_score_sheet_section_value(
                        sheet_id, section.id, to_storage(section.value)
                    )
                if not updated:
                    logger.warning(
                        "score_sheet_section_unmatched",
                        score_sheet_id=sheet_id,
                        section_row_id=section.id,
                    )

        await self.transact(work, "update_score_sheet")
        updated = await self.fetch(sheet_id)

        logger.info("score_sheet_updated", score_sheet_id=sheet_id)
        return updated

    async def fetch_summary(
        self, team_id: Optional[str] = None, author_id: Optional[str] = None
    ) -> List[ScoreSheet]:
        """
        Lightweight listing of sheets with their weighted totals, by round.

        Args:
            team_id: Optional filter by team
            author_id: Optional filter by author
        """
        headers, section_rows = await self.coordinator.gather(
            self.read(
                lambda s: s.select_score_sheet_summaries(team_id, author_id),
                name="score_sheet_summaries",
            ),
            self.read(
                lambda s: s.select_section_values(team_id=team_id, author_id=author_id),
                name="section_values",
            ),
        )
        totals = self.aggregation.sheet_totals(section_rows)
        return [self.build_summary(row, totals.get(row["id"], ZERO)) for row in headers]

    # -------------------------
    # Ladder inputs
    # -------------------------
    def ladder_sheets(self, division_id: Optional[str] = None) -> Fetch:
        return self.read(lambda s: s.select_ladder_sheets(division_id), name="ladder_sheets")

    def section_values(self, division_id: Optional[str] = None) -> Fetch:
        return self.read(
            lambda s: s.select_section_values(division_id=division_id), name="section_values"
        )
