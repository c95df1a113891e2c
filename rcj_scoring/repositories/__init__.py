"""
Repositories Package - RCJ Scoring Engine
rcj_scoring/repositories/__init__.py

Data access layer over the score store.
"""

from rcj_scoring.repositories.base import BaseRepository
from rcj_scoring.repositories.division_repository import DivisionRepository
from rcj_scoring.repositories.score_sheet_repository import ScoreSheetRepository
from rcj_scoring.repositories.team_repository import TeamRepository
from rcj_scoring.repositories.template_repository import TemplateRepository

__all__ = [
    "BaseRepository",
    "DivisionRepository",
    "ScoreSheetRepository",
    "TeamRepository",
    "TemplateRepository",
]
