"""
Template Repository - RCJ Scoring Engine
rcj_scoring/repositories/template_repository.py

Data access layer for score sheet templates and their sections.
"""

from collections import defaultdict
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

import structlog

from rcj_scoring.core.exceptions import EntityNotFoundException, ValidationFailureException
from rcj_scoring.models.enumerations import TemplateType
from rcj_scoring.models.template import ScoreSheetTemplate, TemplateSection
from rcj_scoring.repositories.base import BaseRepository
from rcj_scoring.stores.base import StoreSession

logger = structlog.get_logger(__name__)


class TemplateRepository(BaseRepository):
    """Repository for score sheet templates."""

    @staticmethod
    def build_templates(
        template_rows: Sequence[Mapping[str, Any]],
        section_rows: Sequence[Mapping[str, Any]],
    ) -> List[ScoreSheetTemplate]:
        sections: Dict[str, List[TemplateSection]] = defaultdict(list)
        for row in section_rows:
            sections[row["template_id"]].append(
                TemplateSection(
                    id=row["id"],
                    title=row["title"] or "",
                    description=row.get("description") or "",
                    max_value=row["max_value"],
                    multiplier=row["multiplier"],
                    display_order=row["display_order"],
                )
            )
        return [
            ScoreSheetTemplate(
                id=row["id"],
                name=row["name"],
                type=TemplateType(row["type"]),
                timings=list(row.get("timings") or []),
                sections=sorted(sections.get(row["id"], []), key=lambda s: s.display_order),
            )
            for row in template_rows
        ]

    async def fetch_templates(self, ids: Optional[Sequence[str]] = None) -> List[ScoreSheetTemplate]:
        """
        Fetch templates, optionally restricted to ids, with their sections.

        Template rows and section rows are read concurrently.
        """
        template_rows, section_rows = await self.coordinator.gather(
            self.read(lambda s: s.select_templates(ids), name="templates"),
            self.read(lambda s: s.select_template_sections(ids), name="template_sections"),
        )
        return self.build_templates(template_rows, section_rows)

    async def fetch_template(self, template_id: str) -> ScoreSheetTemplate:
        templates = await self.fetch_templates([template_id])
        if not templates:
            raise EntityNotFoundException("ScoreSheetTemplate", template_id)
        return templates[0]

    async def create_template(
        self, mutator: Callable[[ScoreSheetTemplate], None]
    ) -> ScoreSheetTemplate:
        """
        Insert a template and its sections in one transaction.

        Returns:
            The persisted template, re-fetched after commit
        """

        def work(session: StoreSession) -> str:
            template = ScoreSheetTemplate()
            mutator(template)
            if not template.name:
                raise ValidationFailureException("A template name is required", field="name")

            template_id = session.insert_template(
                {"name": template.name, "type": template.type.value, "timings": template.timings}
            )
            session.insert_template_sections(
                template_id,
                [
                    {
                        "title": s.title,
                        "description": s.description,
                        "max_value": s.max_value,
                        "multiplier": s.multiplier,
                        "display_order": s.display_order,
                    }
                    for s in template.sections
                ],
            )
            return template_id

        template_id = await self.transact(work, "create_score_sheet_template")
        logger.info("score_sheet_template_created", template_id=template_id)
        return await self.fetch_template(template_id)
