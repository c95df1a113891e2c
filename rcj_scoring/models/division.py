from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from rcj_scoring.models.enumerations import League


class Division(BaseModel):
    """
    A competition division and its round partitioning.

    Round 0 is the interview, rounds 1..competition_rounds are performance
    rounds and anything above competition_rounds is a final round.
    """

    model_config = ConfigDict(validate_assignment=True)

    id: Optional[str] = None
    name: str = ""
    league: League = League.ONSTAGE
    competition_rounds: int = Field(default=0, ge=0)
    final_rounds: int = Field(default=0, ge=0)
    interview_template_id: Optional[str] = None
    performance_template_id: Optional[str] = None
