from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from rcj_scoring.models.enumerations import TemplateType


class TemplateSection(BaseModel):
    """A scoring criterion: its maximum value and weighting multiplier."""

    model_config = ConfigDict(validate_assignment=True)

    id: Optional[str] = None
    title: str = ""
    description: str = ""
    max_value: int = Field(default=0, ge=0)
    multiplier: Decimal = Field(default=Decimal("1"), ge=0)
    display_order: int = 0


class ScoreSheetTemplate(BaseModel):
    """
    Ordered criteria a score sheet is scored against.

    Treated as immutable once a score sheet references it.
    """

    model_config = ConfigDict(validate_assignment=True)

    id: Optional[str] = None
    name: str = ""
    type: TemplateType = TemplateType.PERFORMANCE
    timings: List[str] = Field(default_factory=list)
    sections: List[TemplateSection] = Field(default_factory=list)
