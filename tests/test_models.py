# tests/test_models.py

"""
Model Validation Tests - Pydantic models for sheets, templates, divisions and ladders
"""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from rcj_scoring.models import (
    Division,
    Gender,
    Institution,
    LadderEntry,
    League,
    RoundAverage,
    ScoreSheet,
    ScoreSheetSection,
    Team,
    TemplateSection,
    TemplateType,
)



# ENUMERATION TESTS


class TestEnumerations:
    """Stored string values of the enumerations."""

    def test_template_types(self):
        assert [t.value for t in TemplateType] == ["Interview", "Performance"]

    def test_leagues(self):
        assert {league.value for league in League} == {"Soccer", "Rescue", "OnStage"}

    def test_unspecified_gender(self):
        assert Gender("Not Specified") is Gender.UNSPECIFIED



# SCORE SHEET TESTS


class TestScoreSheet:

    def test_negative_section_value_rejected(self):
        with pytest.raises(ValidationError):
            ScoreSheetSection(section_id="t1", value=Decimal("-1"))

    def test_assignment_is_validated(self):
        section = ScoreSheetSection(section_id="t1", value=3)
        with pytest.raises(ValidationError):
            section.value = Decimal("-0.5")

    def test_value_accepts_strings(self):
        assert ScoreSheetSection(value="7.25").value == Decimal("7.25")

    def test_negative_round_rejected(self):
        with pytest.raises(ValidationError):
            ScoreSheet(round=-1)

    def test_blank_sheet_defaults(self):
        sheet = ScoreSheet()
        assert sheet.sections == []
        assert sheet.timings == []
        assert sheet.total is None



# TEMPLATE AND DIVISION TESTS


class TestTemplateSection:

    def test_default_multiplier(self):
        assert TemplateSection(title="Costume").multiplier == Decimal("1")

    def test_negative_max_value_rejected(self):
        with pytest.raises(ValidationError):
            TemplateSection(title="Costume", max_value=-5)


class TestDivision:

    def test_negative_rounds_rejected(self):
        with pytest.raises(ValidationError):
            Division(name="Dance", competition_rounds=-1)

    def test_league_from_string(self):
        assert Division(name="Dance", league="OnStage").league is League.ONSTAGE



# LADDER TESTS


class TestLadderEntry:

    def test_defaults_are_zero(self):
        entry = LadderEntry(team=Team(name="Robo Rangers"))
        assert entry.final_total == entry.round_total == Decimal("0")

    def test_to_display(self):
        entry = LadderEntry(
            team=Team(id="t1", name="Robo Rangers", institution=Institution(name="Hillside School")),
            rounds=[RoundAverage(round=1, average=Decimal("43.333333"), sample_count=3)],
            round_total=Decimal("74.335"),
        )
        row = entry.to_display(places=2)
        assert row["team"] == "Robo Rangers"
        assert row["round_total"] == 74.34
        assert row["rounds"] == [{"round": 1, "average": 43.33, "count": 3}]
        assert row["final_total"] == 0.0

    def test_to_display_without_institution(self):
        assert LadderEntry(team=Team(name="Solo")).to_display()["institution"] == ""
