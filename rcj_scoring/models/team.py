from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from rcj_scoring.models.enumerations import Gender


class Institution(BaseModel):
    id: Optional[str] = None
    name: str = ""


class Member(BaseModel):
    id: Optional[str] = None
    name: str = ""
    gender: Gender = Gender.UNSPECIFIED


class Team(BaseModel):
    """
    A competing team.

    `import_id` is the external dedup key carried over from registration
    imports; it is never generated here.
    """

    model_config = ConfigDict(validate_assignment=True)

    id: Optional[str] = None
    name: str = ""
    institution: Optional[Institution] = None
    division_id: Optional[str] = None
    import_id: Optional[str] = None
    members: List[Member] = Field(default_factory=list)
