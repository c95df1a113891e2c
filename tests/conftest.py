# tests/conftest.py

"""
Pytest Fixtures - Shared engine, store and seed data for all tests

SEED DATA REFERENCE:
- Templates: "Dance Interview" (Research x1, Presentation x2)
             "Dance Performance" (Choreography x3, Technical x2.5, Costume x1)
- Divisions: "Dance Primary" (OnStage, 2 competition rounds, 1 final round)
             "Soccer Lightweight" (Soccer)
- Teams:     "Robo Rangers", "Circuit Breakers", "Aardvark Bots" in Dance Primary
             "Goal Getters" in Soccer Lightweight
- Author:    "Jane Judge"
"""

import asyncio
from decimal import Decimal
from types import SimpleNamespace

import pytest

from rcj_scoring.config import Settings
from rcj_scoring.core.dependencies import create_engine
from rcj_scoring.models import (
    Author,
    Gender,
    Institution,
    League,
    Member,
    ScoreSheetSection,
    TemplateSection,
    TemplateType,
)
from rcj_scoring.stores.memory_store import MemoryScoreStore


def assign(**fields):
    """Mutator that sets the given attributes."""

    def mutate(obj):
        for name, value in fields.items():
            setattr(obj, name, value)

    return mutate


# =============================================================================
# ENGINE FIXTURES
# =============================================================================

@pytest.fixture
def test_settings():
    """Memory-backed settings with no retry backoff."""
    return Settings(
        _env_file=None,
        STORE_BACKEND="memory",
        TX_MAX_RETRIES=5,
        TX_RETRY_BACKOFF_SECONDS=0,
    )


@pytest.fixture
def store():
    return MemoryScoreStore()


@pytest.fixture
def engine(store, test_settings):
    engine = create_engine(test_settings, store=store)
    yield engine
    engine.close()


@pytest.fixture
def run():
    """Run a coroutine to completion on a fresh event loop."""
    return asyncio.run


# =============================================================================
# SEED DATA
# =============================================================================

@pytest.fixture
def seeded(engine, store):
    """Templates, divisions, teams and an author created through the engine."""

    async def seed():
        interview = await engine.create_score_sheet_template(
            assign(
                name="Dance Interview",
                type=TemplateType.INTERVIEW,
                sections=[
                    TemplateSection(title="Research", max_value=20, multiplier=Decimal("1"), display_order=0),
                    TemplateSection(title="Presentation", max_value=10, multiplier=Decimal("2"), display_order=1),
                ],
            )
        )
        performance = await engine.create_score_sheet_template(
            assign(
                name="Dance Performance",
                type=TemplateType.PERFORMANCE,
                timings=["Start", "End"],
                sections=[
                    TemplateSection(title="Technical", max_value=10, multiplier=Decimal("2.5"), display_order=1),
                    TemplateSection(title="Choreography", max_value=10, multiplier=Decimal("3"), display_order=0),
                    TemplateSection(title="Costume", max_value=5, multiplier=Decimal("1"), display_order=2),
                ],
            )
        )
        division = await engine.create_division(
            assign(
                name="Dance Primary",
                league=League.ONSTAGE,
                competition_rounds=2,
                final_rounds=1,
                interview_template_id=interview.id,
                performance_template_id=performance.id,
            )
        )
        soccer = await engine.create_division(
            assign(name="Soccer Lightweight", league=League.SOCCER, competition_rounds=3)
        )
        team_a = await engine.create_team(
            assign(
                name="Robo Rangers",
                institution=Institution(name="Hillside School"),
                division_id=division.id,
                import_id="IMP-001",
                members=[
                    Member(name="Ana", gender=Gender.FEMALE),
                    Member(name="Ben", gender=Gender.MALE),
                ],
            )
        )
        team_b = await engine.create_team(
            assign(
                name="Circuit Breakers",
                institution=Institution(name="Bayview College"),
                division_id=division.id,
                import_id="IMP-002",
            )
        )
        team_c = await engine.create_team(
            assign(
                name="Aardvark Bots",
                institution=team_a.institution,
                division_id=division.id,
            )
        )
        soccer_team = await engine.create_team(
            assign(
                name="Goal Getters",
                institution=Institution(name="Bayview College"),
                division_id=soccer.id,
            )
        )
        return SimpleNamespace(
            interview=interview,
            performance=performance,
            division=division,
            soccer=soccer,
            team_a=team_a,
            team_b=team_b,
            team_c=team_c,
            soccer_team=soccer_team,
        )

    data = asyncio.run(seed())
    data.author_id = store.add_user("Jane Judge", "jane")
    data.second_author_id = store.add_user("Sam Scorer", "sam")
    return data


@pytest.fixture
def create_sheet(engine, seeded):
    """
    Create a sheet synchronously.

    Values are matched to the template's sections in display order; fewer
    values than sections leaves the remaining sections without a row.
    """

    def _create(team, round_number, values, template=None, author_id=None, comments=""):
        if template is None:
            template = seeded.interview if round_number == 0 else seeded.performance

        def mutate(sheet):
            sheet.team = team
            sheet.template_id = template.id
            sheet.division_id = team.division_id
            sheet.author = Author(id=author_id or seeded.author_id)
            sheet.round = round_number
            sheet.comments = comments
            sheet.sections = [
                ScoreSheetSection(section_id=section.id, value=Decimal(str(value)))
                for section, value in zip(template.sections, values)
            ]

        return asyncio.run(engine.create_score_sheet(mutate))

    return _create
