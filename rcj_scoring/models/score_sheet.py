from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from rcj_scoring.models.enumerations import TemplateType
from rcj_scoring.models.team import Team


class Timing(BaseModel):
    """Named timing entry, persisted as an opaque name/value pair."""

    name: str
    value: str = ""


class Author(BaseModel):
    id: Optional[str] = None
    name: str = ""
    username: str = ""


class ScoreSheetSection(BaseModel):
    """
    One scored value of a sheet.

    `section_id` references the template section; title, description,
    max_value and multiplier are read from that template section on fetch
    and are never written back.
    """

    model_config = ConfigDict(validate_assignment=True)

    id: Optional[str] = None
    section_id: Optional[str] = None
    title: str = ""
    description: str = ""
    max_value: int = 0
    multiplier: Decimal = Decimal("1")
    value: Decimal = Field(default=Decimal("0"), ge=0)


class ScoreSheet(BaseModel):
    """One author's evaluation of one team for one round against one template."""

    model_config = ConfigDict(validate_assignment=True)

    id: Optional[str] = None
    division_id: Optional[str] = None
    team: Optional[Team] = None
    template_id: Optional[str] = None
    type: Optional[TemplateType] = None
    author: Optional[Author] = None
    round: int = Field(default=0, ge=0)
    comments: str = ""
    timings: List[Timing] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    sections: List[ScoreSheetSection] = Field(default_factory=list)

    # Only populated by summary listings
    total: Optional[Decimal] = None
