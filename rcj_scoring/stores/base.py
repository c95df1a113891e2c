"""
Store Contract - RCJ Scoring Engine
rcj_scoring/stores/base.py

The narrow read/write contract the repositories consume. Every method is a
named query shape; rows are plain dicts with lowercase keys.

Score sheet rows carry a `version` counter. `update_score_sheet` only
matches the version the caller read, so a concurrent committed edit surfaces
as SerializationConflictException and the enclosing transaction is retried.
"""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from decimal import Decimal
from typing import Any, Dict, Generator, List, Optional, Sequence


class StoreSession(ABC):
    """A connection (autocommit reads) or an open transaction."""

    # -------------------------
    # Score sheets
    # -------------------------
    @abstractmethod
    def select_score_sheet(self, sheet_id: str) -> Optional[Dict[str, Any]]:
        """Header joined with template, team, institution and author, or None."""

    @abstractmethod
    def select_score_sheet_sections(self, sheet_id: str) -> List[Dict[str, Any]]:
        """Section rows joined with their template section, by display_order."""

    @abstractmethod
    def insert_score_sheet(self, row: Dict[str, Any]) -> str:
        """Insert a header row and return its generated id."""

    @abstractmethod
    def insert_score_sheet_sections(self, sheet_id: str, rows: Sequence[Dict[str, Any]]) -> int:
        """Bulk insert section rows (section_id, value) for a sheet."""

    @abstractmethod
    def update_score_sheet(
        self, sheet_id: str, fields: Dict[str, Any], expected_version: int
    ) -> int:
        """Update team_id / timings / comments guarded by the read version."""

    @abstractmethod
    def update_score_sheet_section_value(
        self, sheet_id: str, section_row_id: str, value: Decimal
    ) -> int:
        """Set the value of one section row belonging to sheet_id."""

    @abstractmethod
    def select_score_sheet_summaries(
        self, team_id: Optional[str] = None, author_id: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """Listing projection, ordered by round."""

    @abstractmethod
    def select_ladder_sheets(self, division_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """id, team_id, division_id, round and template_section_count per sheet."""

    @abstractmethod
    def select_section_values(
        self,
        division_id: Optional[str] = None,
        team_id: Optional[str] = None,
        author_id: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """score_sheet_id, value and multiplier for every matching section row."""

    # -------------------------
    # Divisions
    # -------------------------
    @abstractmethod
    def select_division(self, division_id: str) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    def select_divisions(self, league: Optional[str] = None) -> List[Dict[str, Any]]:
        pass

    @abstractmethod
    def insert_division(self, row: Dict[str, Any]) -> str:
        pass

    # -------------------------
    # Teams
    # -------------------------
    @abstractmethod
    def select_team(self, team_id: str) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    def select_teams(
        self,
        division_id: Optional[str] = None,
        import_ids: Optional[Sequence[str]] = None,
        league: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        pass

    @abstractmethod
    def select_team_members(
        self, team_id: Optional[str] = None, division_id: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        pass

    @abstractmethod
    def insert_institution(self, name: str) -> str:
        pass

    @abstractmethod
    def insert_team(self, row: Dict[str, Any]) -> str:
        pass

    @abstractmethod
    def insert_team_members(self, team_id: str, rows: Sequence[Dict[str, Any]]) -> int:
        pass

    @abstractmethod
    def update_team(self, team_id: str, row: Dict[str, Any]) -> int:
        """Set name, institution_id and division_id of a team."""

    @abstractmethod
    def update_team_member(self, team_id: str, member_id: str, row: Dict[str, Any]) -> int:
        """
        Set name and gender of one member of team_id.

        A member that no longer exists raises SerializationConflictException.
        """

    @abstractmethod
    def delete_team_members(self, team_id: str, member_ids: Sequence[str]) -> int:
        pass

    @abstractmethod
    def select_institutions(self, ids: Optional[Sequence[str]] = None) -> List[Dict[str, Any]]:
        """Institution rows ordered by name."""

    # -------------------------
    # Users
    # -------------------------
    @abstractmethod
    def select_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        """id, name and username of an author, or None."""

    # -------------------------
    # Templates
    # -------------------------
    @abstractmethod
    def select_templates(self, ids: Optional[Sequence[str]] = None) -> List[Dict[str, Any]]:
        pass

    @abstractmethod
    def select_template_sections(
        self, template_ids: Optional[Sequence[str]] = None
    ) -> List[Dict[str, Any]]:
        """Template section rows ordered by display_order."""

    @abstractmethod
    def insert_template(self, row: Dict[str, Any]) -> str:
        pass

    @abstractmethod
    def insert_template_sections(self, template_id: str, rows: Sequence[Dict[str, Any]]) -> int:
        pass


class ScoreStore(ABC):
    """
    Store handle. Created once at process start and closed on shutdown.

    Each session or transaction holds its own connection for its whole
    lifetime and releases it on every exit path.
    """

    @abstractmethod
    @contextmanager
    def session(self) -> Generator[StoreSession, None, None]:
        """Autocommit session for reads."""

    @abstractmethod
    @contextmanager
    def transaction(self) -> Generator[StoreSession, None, None]:
        """Serializable transaction: commit on clean exit, roll back on any exception."""

    def close(self) -> None:
        pass
