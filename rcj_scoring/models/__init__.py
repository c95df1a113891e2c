from rcj_scoring.models.division import Division
from rcj_scoring.models.enumerations import Gender, League, RoundKind, TemplateType
from rcj_scoring.models.ladder import DivisionLadder, LadderEntry, RoundAverage
from rcj_scoring.models.score_sheet import Author, ScoreSheet, ScoreSheetSection, Timing
from rcj_scoring.models.team import Institution, Member, Team
from rcj_scoring.models.template import ScoreSheetTemplate, TemplateSection

__all__ = [
    "Author",
    "Division",
    "DivisionLadder",
    "Gender",
    "Institution",
    "LadderEntry",
    "League",
    "Member",
    "RoundAverage",
    "RoundKind",
    "ScoreSheet",
    "ScoreSheetSection",
    "ScoreSheetTemplate",
    "Team",
    "TemplateSection",
    "TemplateType",
    "Timing",
]
