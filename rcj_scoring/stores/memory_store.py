"""
In-Memory Store - RCJ Scoring Engine
rcj_scoring/stores/memory_store.py

Process-local implementation of the store contract, used by the test suite
and local demos.

Transactions read and write a private snapshot and record every write in a
journal. Commit replays the journal against the latest committed tables
under the store lock and publishes the result. A version check, or a write
to a row a concurrent commit removed, fails the replay with
SerializationConflictException, so the first committer wins and the loser
is retried. A foreign key check that fails raises
ForeignKeyViolationException, which is not retried. Either way the commit
is discarded.
"""

import copy
import threading
from collections import Counter
from contextlib import contextmanager
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Generator, List, Optional, Sequence, Tuple
from uuid import uuid4

import structlog

from rcj_scoring.core.exceptions import (
    ForeignKeyViolationException,
    RepositoryException,
    SerializationConflictException,
)
from rcj_scoring.stores.base import ScoreStore, StoreSession

logger = structlog.get_logger(__name__)

TABLES = (
    "users",
    "institutions",
    "divisions",
    "teams",
    "team_members",
    "score_sheet_templates",
    "score_sheet_template_sections",
    "score_sheets",
    "score_sheet_sections",
)

Tables = Dict[str, Dict[str, Dict[str, Any]]]


def _matches(row: Dict[str, Any], **filters: Any) -> bool:
    return all(value is None or row[key] == value for key, value in filters.items())


class MemorySession(StoreSession):
    """Query shapes over a set of in-memory tables."""

    def __init__(
        self,
        tables: Tables,
        journal: Optional[List[Tuple[str, tuple]]] = None,
        readonly: bool = False,
    ):
        self._tables = tables
        self._journal = journal
        self._readonly = readonly

    # -------------------------
    # Journal plumbing
    # -------------------------
    def _write(self, op: str, *args: Any) -> None:
        if self._readonly:
            raise RepositoryException("Writes require a transaction")
        args = copy.deepcopy(args)
        getattr(self, op)(*args)
        if self._journal is not None:
            self._journal.append((op, args))

    def replay(self, journal: List[Tuple[str, tuple]]) -> None:
        for op, args in journal:
            getattr(self, op)(*copy.deepcopy(args))

    def _require(self, table: str, row_id: Optional[str], label: str) -> Dict[str, Any]:
        row = self._tables[table].get(row_id) if row_id is not None else None
        if row is None:
            raise ForeignKeyViolationException(f"{label} {row_id} does not exist")
        return row

    # -------------------------
    # Score sheets
    # -------------------------
    def select_score_sheet(self, sheet_id: str) -> Optional[Dict[str, Any]]:
        sheet = self._tables["score_sheets"].get(sheet_id)
        if sheet is None:
            return None
        template = self._tables["score_sheet_templates"][sheet["template_id"]]
        team = self._tables["teams"][sheet["team_id"]]
        institution = self._tables["institutions"][team["institution_id"]]
        author = self._tables["users"][sheet["author_id"]]
        return {
            "id": sheet["id"],
            "template_id": sheet["template_id"],
            "type": template["type"],
            "comments": sheet["comments"],
            "timings": copy.deepcopy(sheet["timings"]),
            "team_id": team["id"],
            "team_name": team["name"],
            "institution_id": institution["id"],
            "institution_name": institution["name"],
            "division_id": sheet["division_id"],
            "round": sheet["round"],
            "author_id": author["id"],
            "author_name": author["name"],
            "author_username": author["username"],
            "created_at": sheet["created_at"],
            "version": sheet["version"],
        }

    def select_score_sheet_sections(self, sheet_id: str) -> List[Dict[str, Any]]:
        template_sections = self._tables["score_sheet_template_sections"]
        rows = []
        for row in self._tables["score_sheet_sections"].values():
            if row["score_sheet_id"] != sheet_id:
                continue
            section = template_sections[row["section_id"]]
            rows.append(
                {
                    "id": row["id"],
                    "section_id": row["section_id"],
                    "title": section["title"],
                    "description": section["description"],
                    "max_value": section["max_value"],
                    "multiplier": section["multiplier"],
                    "display_order": section["display_order"],
                    "value": row["value"],
                }
            )
        return sorted(rows, key=lambda r: r["display_order"])

    def insert_score_sheet(self, row: Dict[str, Any]) -> str:
        sheet_id = str(uuid4())
        self._write(
            "_insert_score_sheet",
            sheet_id,
            dict(row, created_at=datetime.now(timezone.utc)),
        )
        return sheet_id

    def _insert_score_sheet(self, sheet_id: str, row: Dict[str, Any]) -> None:
        self._require("divisions", row.get("division_id"), "Division")
        self._require("teams", row.get("team_id"), "Team")
        self._require("score_sheet_templates", row.get("template_id"), "Template")
        self._require("users", row.get("author_id"), "Author")
        self._tables["score_sheets"][sheet_id] = {
            "id": sheet_id,
            "division_id": row["division_id"],
            "team_id": row["team_id"],
            "template_id": row["template_id"],
            "author_id": row["author_id"],
            "timings": row.get("timings", []),
            "comments": row.get("comments", ""),
            "round": row.get("round", 0),
            "created_at": row["created_at"],
            "version": 1,
        }

    def insert_score_sheet_sections(self, sheet_id: str, rows: Sequence[Dict[str, Any]]) -> int:
        rows_with_ids = [
            {"id": str(uuid4()), "section_id": r["section_id"], "value": r["value"]}
            for r in rows
        ]
        self._write("_insert_score_sheet_sections", sheet_id, rows_with_ids)
        return len(rows_with_ids)

    def _insert_score_sheet_sections(self, sheet_id: str, rows: List[Dict[str, Any]]) -> None:
        self._require("score_sheets", sheet_id, "Score sheet")
        for row in rows:
            self._require("score_sheet_template_sections", row["section_id"], "Template section")
        for row in rows:
            self._tables["score_sheet_sections"][row["id"]] = dict(row, score_sheet_id=sheet_id)

    def update_score_sheet(
        self, sheet_id: str, fields: Dict[str, Any], expected_version: int
    ) -> int:
        self._write("_update_score_sheet", sheet_id, dict(fields), expected_version)
        return 1

    def _update_score_sheet(
        self, sheet_id: str, fields: Dict[str, Any], expected_version: int
    ) -> None:
        row = self._tables["score_sheets"].get(sheet_id)
        if row is None or row["version"] != expected_version:
            raise SerializationConflictException(
                f"Score sheet {sheet_id} changed after version {expected_version}"
            )
        if "team_id" in fields:
            self._require("teams", fields["team_id"], "Team")
        row.update(fields)
        row["version"] = expected_version + 1

    def update_score_sheet_section_value(
        self, sheet_id: str, section_row_id: str, value: Decimal
    ) -> int:
        row = self._tables["score_sheet_sections"].get(section_row_id)
        if row is None or row["score_sheet_id"] != sheet_id:
            return 0
        self._write("_update_score_sheet_section_value", section_row_id, value)
        return 1

    def _update_score_sheet_section_value(self, section_row_id: str, value: Decimal) -> None:
        self._tables["score_sheet_sections"][section_row_id]["value"] = value

    def select_score_sheet_summaries(
        self, team_id: Optional[str] = None, author_id: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        rows = []
        for sheet in self._tables["score_sheets"].values():
            if not _matches(sheet, team_id=team_id, author_id=author_id):
                continue
            template = self._tables["score_sheet_templates"][sheet["template_id"]]
            division = self._tables["divisions"][sheet["division_id"]]
            author = self._tables["users"][sheet["author_id"]]
            team = self._tables["teams"][sheet["team_id"]]
            institution = self._tables["institutions"][team["institution_id"]]
            rows.append(
                {
                    "id": sheet["id"],
                    "division_id": division["id"],
                    "division_name": division["name"],
                    "template_id": template["id"],
                    "template_name": template["name"],
                    "type": template["type"],
                    "round": sheet["round"],
                    "author_id": author["id"],
                    "author_name": author["name"],
                    "team_id": team["id"],
                    "team_name": team["name"],
                    "institution_id": institution["id"],
                    "institution_name": institution["name"],
                    "created_at": sheet["created_at"],
                }
            )
        return sorted(rows, key=lambda r: (r["round"], r["created_at"]))

    def select_ladder_sheets(self, division_id: Optional[str] = None) -> List[Dict[str, Any]]:
        section_counts = Counter(
            s["template_id"] for s in self._tables["score_sheet_template_sections"].values()
        )
        return [
            {
                "id": sheet["id"],
                "team_id": sheet["team_id"],
                "division_id": sheet["division_id"],
                "round": sheet["round"],
                "template_section_count": section_counts.get(sheet["template_id"], 0),
            }
            for sheet in self._tables["score_sheets"].values()
            if _matches(sheet, division_id=division_id)
        ]

    def select_section_values(
        self,
        division_id: Optional[str] = None,
        team_id: Optional[str] = None,
        author_id: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        sheets = self._tables["score_sheets"]
        template_sections = self._tables["score_sheet_template_sections"]
        rows = []
        for row in self._tables["score_sheet_sections"].values():
            sheet = sheets[row["score_sheet_id"]]
            if not _matches(sheet, division_id=division_id, team_id=team_id, author_id=author_id):
                continue
            rows.append(
                {
                    "score_sheet_id": sheet["id"],
                    "value": row["value"],
                    "multiplier": template_sections[row["section_id"]]["multiplier"],
                }
            )
        return rows

    # -------------------------
    # Divisions
    # -------------------------
    def select_division(self, division_id: str) -> Optional[Dict[str, Any]]:
        row = self._tables["divisions"].get(division_id)
        return dict(row) if row else None

    def select_divisions(self, league: Optional[str] = None) -> List[Dict[str, Any]]:
        rows = [dict(r) for r in self._tables["divisions"].values() if _matches(r, league=league)]
        return sorted(rows, key=lambda r: r["name"])

    def insert_division(self, row: Dict[str, Any]) -> str:
        division_id = str(uuid4())
        self._write("_insert_division", division_id, row)
        return division_id

    def _insert_division(self, division_id: str, row: Dict[str, Any]) -> None:
        for key in ("interview_template_id", "performance_template_id"):
            if row.get(key) is not None:
                self._require("score_sheet_templates", row[key], "Template")
        self._tables["divisions"][division_id] = {
            "id": division_id,
            "name": row["name"],
            "league": row["league"],
            "competition_rounds": row.get("competition_rounds", 0),
            "final_rounds": row.get("final_rounds", 0),
            "interview_template_id": row.get("interview_template_id"),
            "performance_template_id": row.get("performance_template_id"),
        }

    # -------------------------
    # Teams
    # -------------------------
    def _team_row(self, team: Dict[str, Any]) -> Dict[str, Any]:
        institution = self._tables["institutions"][team["institution_id"]]
        return {
            "id": team["id"],
            "name": team["name"],
            "institution_id": institution["id"],
            "institution_name": institution["name"],
            "import_id": team["import_id"],
            "division_id": team["division_id"],
        }

    def select_team(self, team_id: str) -> Optional[Dict[str, Any]]:
        team = self._tables["teams"].get(team_id)
        return self._team_row(team) if team else None

    def select_teams(
        self,
        division_id: Optional[str] = None,
        import_ids: Optional[Sequence[str]] = None,
        league: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        divisions = self._tables["divisions"]
        rows = []
        for team in self._tables["teams"].values():
            if not _matches(team, division_id=division_id):
                continue
            if import_ids and team["import_id"] not in import_ids:
                continue
            if league is not None and divisions[team["division_id"]]["league"] != league:
                continue
            rows.append(self._team_row(team))
        return rows

    def select_team_members(
        self, team_id: Optional[str] = None, division_id: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        teams = self._tables["teams"]
        return [
            dict(member)
            for member in self._tables["team_members"].values()
            if _matches(member, team_id=team_id)
            and _matches(teams[member["team_id"]], division_id=division_id)
        ]

    def insert_institution(self, name: str) -> str:
        institution_id = str(uuid4())
        self._write("_insert_institution", institution_id, name)
        return institution_id

    def _insert_institution(self, institution_id: str, name: str) -> None:
        self._tables["institutions"][institution_id] = {"id": institution_id, "name": name}

    def insert_team(self, row: Dict[str, Any]) -> str:
        team_id = str(uuid4())
        self._write("_insert_team", team_id, row)
        return team_id

    def _insert_team(self, team_id: str, row: Dict[str, Any]) -> None:
        self._require("institutions", row.get("institution_id"), "Institution")
        self._require("divisions", row.get("division_id"), "Division")
        self._tables["teams"][team_id] = {
            "id": team_id,
            "name": row["name"],
            "institution_id": row["institution_id"],
            "division_id": row["division_id"],
            "import_id": row.get("import_id"),
        }

    def insert_team_members(self, team_id: str, rows: Sequence[Dict[str, Any]]) -> int:
        rows_with_ids = [dict(r, id=str(uuid4())) for r in rows]
        self._write("_insert_team_members", team_id, rows_with_ids)
        return len(rows_with_ids)

    def _insert_team_members(self, team_id: str, rows: List[Dict[str, Any]]) -> None:
        self._require("teams", team_id, "Team")
        for row in rows:
            self._tables["team_members"][row["id"]] = {
                "id": row["id"],
                "name": row["name"],
                "gender": row["gender"],
                "team_id": team_id,
            }

    def update_team(self, team_id: str, row: Dict[str, Any]) -> int:
        self._write("_update_team", team_id, dict(row))
        return 1

    def _update_team(self, team_id: str, row: Dict[str, Any]) -> None:
        team = self._require("teams", team_id, "Team")
        self._require("institutions", row.get("institution_id"), "Institution")
        self._require("divisions", row.get("division_id"), "Division")
        team.update(
            name=row["name"],
            institution_id=row["institution_id"],
            division_id=row["division_id"],
        )

    def update_team_member(self, team_id: str, member_id: str, row: Dict[str, Any]) -> int:
        self._write("_update_team_member", team_id, member_id, dict(row))
        return 1

    def _update_team_member(self, team_id: str, member_id: str, row: Dict[str, Any]) -> None:
        member = self._tables["team_members"].get(member_id)
        if member is None or member["team_id"] != team_id:
            raise SerializationConflictException(f"Team member {member_id} was removed")
        member.update(name=row["name"], gender=row["gender"])

    def delete_team_members(self, team_id: str, member_ids: Sequence[str]) -> int:
        if not member_ids:
            return 0
        count = sum(
            1
            for member_id in member_ids
            if self._tables["team_members"].get(member_id, {}).get("team_id") == team_id
        )
        self._write("_delete_team_members", team_id, list(member_ids))
        return count

    def _delete_team_members(self, team_id: str, member_ids: List[str]) -> None:
        members = self._tables["team_members"]
        for member_id in member_ids:
            if member_id in members and members[member_id]["team_id"] == team_id:
                del members[member_id]

    def select_institutions(self, ids: Optional[Sequence[str]] = None) -> List[Dict[str, Any]]:
        rows = [
            dict(i) for i in self._tables["institutions"].values() if not ids or i["id"] in ids
        ]
        return sorted(rows, key=lambda r: r["name"])

    # -------------------------
    # Users
    # -------------------------
    def select_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        row = self._tables["users"].get(user_id)
        return dict(row) if row else None

    # -------------------------
    # Templates
    # -------------------------
    def select_templates(self, ids: Optional[Sequence[str]] = None) -> List[Dict[str, Any]]:
        return [
            copy.deepcopy(t)
            for t in self._tables["score_sheet_templates"].values()
            if not ids or t["id"] in ids
        ]

    def select_template_sections(
        self, template_ids: Optional[Sequence[str]] = None
    ) -> List[Dict[str, Any]]:
        rows = [
            dict(s)
            for s in self._tables["score_sheet_template_sections"].values()
            if not template_ids or s["template_id"] in template_ids
        ]
        return sorted(rows, key=lambda r: r["display_order"])

    def insert_template(self, row: Dict[str, Any]) -> str:
        template_id = str(uuid4())
        self._write("_insert_template", template_id, row)
        return template_id

    def _insert_template(self, template_id: str, row: Dict[str, Any]) -> None:
        self._tables["score_sheet_templates"][template_id] = {
            "id": template_id,
            "name": row["name"],
            "type": row["type"],
            "timings": list(row.get("timings", [])),
        }

    def insert_template_sections(self, template_id: str, rows: Sequence[Dict[str, Any]]) -> int:
        rows_with_ids = [dict(r, id=str(uuid4())) for r in rows]
        self._write("_insert_template_sections", template_id, rows_with_ids)
        return len(rows_with_ids)

    def _insert_template_sections(self, template_id: str, rows: List[Dict[str, Any]]) -> None:
        self._require("score_sheet_templates", template_id, "Template")
        for row in rows:
            self._tables["score_sheet_template_sections"][row["id"]] = {
                "id": row["id"],
                "template_id": template_id,
                "title": row["title"],
                "description": row.get("description", ""),
                "max_value": row.get("max_value", 0),
                "multiplier": row.get("multiplier", Decimal("1")),
                "display_order": row.get("display_order", 0),
            }


class MemoryScoreStore(ScoreStore):
    """Thread-safe in-process store with snapshot transactions."""

    def __init__(self):
        self._lock = threading.Lock()
        self._tables: Tables = {name: {} for name in TABLES}

    @contextmanager
    def session(self) -> Generator[StoreSession, None, None]:
        # committed tables are replaced, never mutated, so the reference is a snapshot
        with self._lock:
            tables = self._tables
        yield MemorySession(tables, readonly=True)

    @contextmanager
    def transaction(self) -> Generator[StoreSession, None, None]:
        with self._lock:
            snapshot = copy.deepcopy(self._tables)
        journal: List[Tuple[str, tuple]] = []
        try:
            yield MemorySession(snapshot, journal=journal)
        except BaseException:
            logger.debug("memory_transaction_rolled_back", statements=len(journal))
            raise
        self._commit(journal)

    def _commit(self, journal: List[Tuple[str, tuple]]) -> None:
        with self._lock:
            staged = copy.deepcopy(self._tables)
            MemorySession(staged).replay(journal)
            self._tables = staged

    def add_user(self, name: str, username: Optional[str] = None) -> str:
        """Register an author; users are owned by the authentication layer."""
        user_id = str(uuid4())
        with self._lock:
            staged = copy.deepcopy(self._tables)
            staged["users"][user_id] = {
                "id": user_id,
                "name": name,
                "username": username or name.lower().replace(" ", "."),
            }
            self._tables = staged
        return user_id

    def row_count(self, table: str) -> int:
        with self._lock:
            return len(self._tables[table])
