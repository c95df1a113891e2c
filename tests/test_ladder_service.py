"""
Ladder Ranking Service Tests - RCJ Scoring Engine
tests/test_ladder_service.py

End-to-end ladder computation over seeded score sheets.

Seeded weights: interview = Research x1 + Presentation x2,
performance = Choreography x3 + Technical x2.5 + Costume x1.
"""

from decimal import Decimal

import pytest

from rcj_scoring.core.dependencies import create_engine
from rcj_scoring.core.exceptions import EntityNotFoundException, InvariantViolationException
from rcj_scoring.models import League


@pytest.fixture
def scored(seeded, create_sheet):
    """
    Robo Rangers:     interview 31, rounds 43 / 49.5, final 52 and 48 (avg 50)
    Circuit Breakers: interview 20, round 1 60, no finals
    Aardvark Bots:    no sheets
    """
    create_sheet(seeded.team_a, 0, [15, 8])
    create_sheet(seeded.team_a, 1, [8, 6, 4])
    create_sheet(seeded.team_a, 2, [9, 7, 5])
    create_sheet(seeded.team_a, 3, [9, 8, 5])
    create_sheet(seeded.team_a, 3, [8, 8, 4], author_id=seeded.second_author_id)
    create_sheet(seeded.team_b, 0, [10, 5])
    create_sheet(seeded.team_b, 1, [10, 10, 5])
    create_sheet(seeded.soccer_team, 1, [10, 10, 5])
    return seeded


class TestDivisionLadder:

    def test_composite_totals(self, engine, scored, run):
        ladder = run(engine.fetch_dance_ladder(scored.division.id))
        by_name = {e.team.name: e for e in ladder}

        rangers = by_name["Robo Rangers"]
        assert rangers.interview_score == Decimal("31")
        assert rangers.best_round == Decimal("49.5")
        assert rangers.round_total == Decimal("80.5")
        assert rangers.best_final == Decimal("50")
        assert rangers.final_total == Decimal("81")
        assert [(r.round, r.sample_count) for r in rangers.rounds] == [(0, 1), (1, 1), (2, 1), (3, 2)]

        breakers = by_name["Circuit Breakers"]
        assert breakers.round_total == Decimal("80")
        assert breakers.final_total == Decimal("0")

    def test_ascending_order(self, engine, scored, run):
        ladder = run(engine.fetch_dance_ladder(scored.division.id))
        assert [e.team.name for e in ladder] == ["Aardvark Bots", "Circuit Breakers", "Robo Rangers"]

    def test_team_without_sheets_is_all_zero(self, engine, scored, run):
        ladder = run(engine.fetch_dance_ladder(scored.division.id))
        aardvark = ladder[0]
        assert aardvark.rounds == []
        assert aardvark.interview_score == aardvark.round_total == aardvark.final_total == Decimal("0")

    def test_unscored_teams_tie_break_by_name(self, engine, seeded, run):
        ladder = run(engine.fetch_dance_ladder(seeded.division.id))
        assert [e.team.name for e in ladder] == ["Aardvark Bots", "Circuit Breakers", "Robo Rangers"]

    def test_ranking_is_reproducible(self, engine, scored, run):
        first = run(engine.fetch_dance_ladder(scored.division.id))
        second = run(engine.fetch_dance_ladder(scored.division.id))
        assert [e.team.id for e in first] == [e.team.id for e in second]

    def test_unknown_division(self, engine, seeded, run):
        with pytest.raises(EntityNotFoundException) as exc_info:
            run(engine.fetch_dance_ladder("missing"))
        assert exc_info.value.entity_type == "Division"

    def test_display_rounding(self, engine, scored, run):
        ladder = run(engine.fetch_dance_ladder(scored.division.id))
        row = ladder[-1].to_display(places=1)
        assert row["round_total"] == 80.5
        assert row["institution"] == "Hillside School"
        assert row["rounds"][-1] == {"round": 3, "average": 50.0, "count": 2}


class TestAllDivisions:

    def test_only_dance_league_divisions(self, engine, scored, run):
        ladders = run(engine.fetch_dance_ladders())
        assert [ladder.division.name for ladder in ladders] == ["Dance Primary"]
        assert all(ladder.division.league is League.ONSTAGE for ladder in ladders)

    def test_divisions_ordered_by_name(self, engine, seeded, run):
        def mutate(division):
            division.name = "Dance Junior"
            division.league = League.ONSTAGE
            division.competition_rounds = 1

        run(engine.create_division(mutate))
        ladders = run(engine.fetch_dance_ladders())
        assert [ladder.division.name for ladder in ladders] == ["Dance Junior", "Dance Primary"]
        assert ladders[0].ladder == []

    def test_flat_ladder_concatenates_divisions(self, engine, scored, run):
        flat = run(engine.fetch_dance_ladder())
        nested = run(engine.fetch_dance_ladders())
        assert [e.team.id for e in flat] == [e.team.id for ladder in nested for e in ladder.ladder]


class TestSectionCountMismatch:

    def test_missing_section_counts_as_zero(self, engine, seeded, create_sheet, run):
        create_sheet(seeded.team_a, 1, [8, 6])
        ladder = run(engine.fetch_dance_ladder(seeded.division.id))
        rangers = next(e for e in ladder if e.team.name == "Robo Rangers")
        assert rangers.best_round == Decimal("39")

    def test_strict_mode_raises(self, store, test_settings, seeded, create_sheet, run):
        create_sheet(seeded.team_a, 1, [8, 6])
        strict = create_engine(
            test_settings.model_copy(update={"STRICT_SECTION_COUNT": True}), store=store
        )
        with pytest.raises(InvariantViolationException):
            run(strict.fetch_dance_ladder(seeded.division.id))


class TestPrintLadder:

    def test_render_table(self, engine, scored, run):
        from rcj_scoring.scripts.print_ladder import render

        ladders = run(engine.fetch_dance_ladders())
        ascending = render(ladders, places=2, descending=False).splitlines()
        descending = render(ladders, places=2, descending=True).splitlines()

        assert ascending[1] == "Dance Primary (OnStage)"
        assert ascending[4].startswith("Aardvark Bots")
        assert descending[4].startswith("Robo Rangers")
        assert "80.5" in descending[4]
