from enum import Enum


class TemplateType(str, Enum):
    INTERVIEW = "Interview"
    PERFORMANCE = "Performance"


class League(str, Enum):
    SOCCER = "Soccer"
    RESCUE = "Rescue"
    ONSTAGE = "OnStage"


class Gender(str, Enum):
    MALE = "Male"
    FEMALE = "Female"
    UNSPECIFIED = "Not Specified"


class RoundKind(str, Enum):
    INTERVIEW = "interview"      # round 0
    COMPETITION = "competition"  # 1..competition_rounds
    FINAL = "final"              # > competition_rounds
