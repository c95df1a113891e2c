from decimal import Decimal
from typing import Any, Dict, List

from pydantic import BaseModel, Field

from rcj_scoring.models.division import Division
from rcj_scoring.models.team import Team
from rcj_scoring.scoring.utils import to_display


class RoundAverage(BaseModel):
    round: int
    average: Decimal
    sample_count: int


class LadderEntry(BaseModel):
    """
    Derived ranking row for one team; computed on demand, never stored.

    All totals are exact Decimals; `to_display` is the only place they
    become floats.
    """

    team: Team
    rounds: List[RoundAverage] = Field(default_factory=list)
    interview_score: Decimal = Decimal("0")
    best_round: Decimal = Decimal("0")
    best_final: Decimal = Decimal("0")
    round_total: Decimal = Decimal("0")
    final_total: Decimal = Decimal("0")

    def to_display(self, places: int = 2) -> Dict[str, Any]:
        return {
            "team_id": self.team.id,
            "team": self.team.name,
            "institution": self.team.institution.name if self.team.institution else "",
            "rounds": [
                {
                    "round": r.round,
                    "average": to_display(r.average, places),
                    "count": r.sample_count,
                }
                for r in self.rounds
            ],
            "interview_score": to_display(self.interview_score, places),
            "best_round": to_display(self.best_round, places),
            "best_final": to_display(self.best_final, places),
            "round_total": to_display(self.round_total, places),
            "final_total": to_display(self.final_total, places),
        }


class DivisionLadder(BaseModel):
    division: Division
    ladder: List[LadderEntry] = Field(default_factory=list)
