"""
Snowflake Store - RCJ Scoring Engine
rcj_scoring/stores/snowflake_store.py

Snowflake implementation of the store contract.

Tables follow the competition schema (score_sheets, score_sheet_sections,
score_sheet_templates, score_sheet_template_sections, divisions, teams,
team_members, institutions, users). score_sheets carries an integer
VERSION column that every header update bumps.

Snowflake does not enforce FOREIGN KEY constraints, so the repositories
check every referenced row inside the writing transaction.
"""

import json
import threading
from contextlib import contextmanager
from functools import partial
from typing import Any, Callable, Dict, Generator, List, Optional, Sequence, Tuple
from uuid import uuid4

import snowflake.connector
import structlog
from snowflake.connector import DictCursor
from snowflake.connector.errors import Error, InterfaceError, OperationalError

from rcj_scoring.config import Settings
from rcj_scoring.core.exceptions import (
    ForeignKeyViolationException,
    RepositoryException,
    SerializationConflictException,
    StoreUnavailableException,
)
from rcj_scoring.stores.base import ScoreStore, StoreSession

logger = structlog.get_logger(__name__)

SERIALIZATION_FAILURE = "40001"


def get_snowflake_connection(settings: Settings) -> snowflake.connector.SnowflakeConnection:
    """Open a new Snowflake connection from settings."""
    return snowflake.connector.connect(
        account=settings.SNOWFLAKE_ACCOUNT,
        user=settings.SNOWFLAKE_USER,
        password=settings.SNOWFLAKE_PASSWORD.get_secret_value() if settings.SNOWFLAKE_PASSWORD else None,
        warehouse=settings.SNOWFLAKE_WAREHOUSE,
        database=settings.SNOWFLAKE_DATABASE,
        schema=settings.SNOWFLAKE_SCHEMA,
        role=settings.SNOWFLAKE_ROLE,
    )


def translate_error(error: Exception) -> RepositoryException:
    """Map a connector error onto the repository exception taxonomy."""
    if isinstance(error, RepositoryException):
        return error
    message = str(error)
    upper = message.upper()
    if getattr(error, "sqlstate", None) == SERIALIZATION_FAILURE or "DEADLOCK" in upper:
        return SerializationConflictException(message)
    if isinstance(error, (InterfaceError, OperationalError)):
        return StoreUnavailableException(message)
    if "FOREIGN KEY" in upper:
        return ForeignKeyViolationException(message)
    return RepositoryException(f"Database error: {message}")


def row_to_dict(row: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Convert Snowflake row (uppercase keys) to lowercase dict."""
    if row is None:
        return {}
    return {k.lower(): v for k, v in row.items()}


def build_where(filters: Dict[str, Any]) -> Tuple[str, List[Any]]:
    """
    Build a WHERE clause from column -> value, skipping None.

    List values become IN clauses; an empty list matches everything.
    """
    clauses = []
    params: List[Any] = []
    for column, value in filters.items():
        if value is None:
            continue
        if isinstance(value, (list, tuple, set)):
            if not value:
                continue
            clauses.append(f"{column} IN ({', '.join(['%s'] * len(value))})")
            params.extend(value)
        else:
            clauses.append(f"{column} = %s")
            params.append(value)
    if not clauses:
        return "", params
    return "WHERE " + " AND ".join(clauses), params


def _load_timings(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, str):
        return json.loads(value)
    return list(value)


class SnowflakeSession(StoreSession):
    """Store queries over a single Snowflake cursor."""

    def __init__(self, cursor):
        self.cursor = cursor

    def execute(self, sql: str, params: Sequence[Any] = ()) -> int:
        try:
            self.cursor.execute(sql, tuple(params))
        except Error as e:
            raise translate_error(e) from e
        return self.cursor.rowcount

    def executemany(self, sql: str, rows: Sequence[Sequence[Any]]) -> int:
        if not rows:
            return 0
        try:
            self.cursor.executemany(sql, [tuple(r) for r in rows])
        except Error as e:
            raise translate_error(e) from e
        return len(rows)

    def fetch_all(self, sql: str, params: Sequence[Any] = ()) -> List[Dict[str, Any]]:
        self.execute(sql, params)
        return [row_to_dict(r) for r in self.cursor.fetchall()]

    def fetch_one(self, sql: str, params: Sequence[Any] = ()) -> Optional[Dict[str, Any]]:
        self.execute(sql, params)
        row = self.cursor.fetchone()
        return row_to_dict(row) if row else None

    # -------------------------
    # Score sheets
    # -------------------------
    def select_score_sheet(self, sheet_id: str) -> Optional[Dict[str, Any]]:
        sql = """
            SELECT ss.id, ss.template AS template_id, t.type, ss.comments, ss.timings,
                   tm.id AS team_id, tm.name AS team_name,
                   i.id AS institution_id, i.name AS institution_name,
                   ss.division AS division_id, ss.round,
                   u.id AS author_id, u.name AS author_name, u.username AS author_username,
                   ss.created_at, ss.version
            FROM score_sheets ss
            JOIN score_sheet_templates t ON t.id = ss.template
            JOIN teams tm ON tm.id = ss.team
            JOIN institutions i ON i.id = tm.institution
            JOIN users u ON u.id = ss.author
            WHERE ss.id = %s
        """
        row = self.fetch_one(sql, (sheet_id,))
        if row:
            row["timings"] = _load_timings(row.get("timings"))
        return row

    def select_score_sheet_sections(self, sheet_id: str) -> List[Dict[str, Any]]:
        sql = """
            SELECT s.id, ts.id AS section_id, ts.title, ts.description, ts.max_value,
                   ts.multiplier, ts.display_order, s.value
            FROM score_sheet_sections s
            JOIN score_sheet_template_sections ts ON ts.id = s.section
            WHERE s.score_sheet = %s
            ORDER BY ts.display_order
        """
        return self.fetch_all(sql, (sheet_id,))

    def insert_score_sheet(self, row: Dict[str, Any]) -> str:
        sheet_id = str(uuid4())
        sql = """
            INSERT INTO score_sheets (
                id, division, team, template, timings, author, comments, round,
                created_at, version
            ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, CURRENT_TIMESTAMP(), 1)
        """
        self.execute(
            sql,
            (
                sheet_id,
                row["division_id"],
                row["team_id"],
                row["template_id"],
                json.dumps(row.get("timings", [])),
                row["author_id"],
                row.get("comments", ""),
                row.get("round", 0),
            ),
        )
        return sheet_id

    def insert_score_sheet_sections(self, sheet_id: str, rows: Sequence[Dict[str, Any]]) -> int:
        sql = """
            INSERT INTO score_sheet_sections (id, section, value, score_sheet)
            VALUES (%s, %s, %s, %s)
        """
        return self.executemany(
            sql, [(str(uuid4()), r["section_id"], r["value"], sheet_id) for r in rows]
        )

    def update_score_sheet(
        self, sheet_id: str, fields: Dict[str, Any], expected_version: int
    ) -> int:
        columns = {"team_id": "team", "timings": "timings", "comments": "comments"}
        set_clauses = []
        params: List[Any] = []
        for key, value in fields.items():
            set_clauses.append(f"{columns[key]} = %s")
            params.append(json.dumps(value) if key == "timings" else value)
        set_clauses.append("version = version + 1")
        params.extend([sheet_id, expected_version])

        sql = f"""
            UPDATE score_sheets
            SET {', '.join(set_clauses)}
            WHERE id = %s AND version = %s
        """
        count = self.execute(sql, params)
        if count == 0:
            raise SerializationConflictException(
                f"Score sheet {sheet_id} changed after version {expected_version}"
            )
        return count

    def update_score_sheet_section_value(self, sheet_id: str, section_row_id: str, value) -> int:
        sql = "UPDATE score_sheet_sections SET value = %s WHERE id = %s AND score_sheet = %s"
        return self.execute(sql, (value, section_row_id, sheet_id))

    def select_score_sheet_summaries(
        self, team_id: Optional[str] = None, author_id: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        where, params = build_where({"ss.team": team_id, "ss.author": author_id})
        sql = f"""
            SELECT ss.id, d.id AS division_id, d.name AS division_name,
                   t.id AS template_id, t.name AS template_name, t.type, ss.round,
                   u.id AS author_id, u.name AS author_name,
                   tm.id AS team_id, tm.name AS team_name,
                   i.id AS institution_id, i.name AS institution_name, ss.created_at
            FROM score_sheets ss
            JOIN score_sheet_templates t ON t.id = ss.template
            JOIN divisions d ON d.id = ss.division
            JOIN users u ON u.id = ss.author
            JOIN teams tm ON tm.id = ss.team
            JOIN institutions i ON i.id = tm.institution
            {where}
            ORDER BY ss.round ASC, ss.created_at ASC
        """
        return self.fetch_all(sql, params)

    def select_ladder_sheets(self, division_id: Optional[str] = None) -> List[Dict[str, Any]]:
        where, params = build_where({"ss.division": division_id})
        sql = f"""
            SELECT ss.id, ss.team AS team_id, ss.division AS division_id, ss.round,
                   COALESCE(tc.section_count, 0) AS template_section_count
            FROM score_sheets ss
            LEFT JOIN (
                SELECT score_sheet_template, COUNT(*) AS section_count
                FROM score_sheet_template_sections
                GROUP BY score_sheet_template
            ) tc ON tc.score_sheet_template = ss.template
            {where}
        """
        return self.fetch_all(sql, params)

    def select_section_values(
        self,
        division_id: Optional[str] = None,
        team_id: Optional[str] = None,
        author_id: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        where, params = build_where(
            {"ss.division": division_id, "ss.team": team_id, "ss.author": author_id}
        )
        sql = f"""
            SELECT s.score_sheet AS score_sheet_id, s.value, ts.multiplier
            FROM score_sheet_sections s
            JOIN score_sheets ss ON ss.id = s.score_sheet
            JOIN score_sheet_template_sections ts ON ts.id = s.section
            {where}
        """
        return self.fetch_all(sql, params)

    # -------------------------
    # Divisions
    # -------------------------
    _DIVISION_COLUMNS = """
        id, name, league, competition_rounds, final_rounds,
        interview_template AS interview_template_id,
        performance_template AS performance_template_id
    """

    def select_division(self, division_id: str) -> Optional[Dict[str, Any]]:
        sql = f"SELECT {self._DIVISION_COLUMNS} FROM divisions WHERE id = %s"
        return self.fetch_one(sql, (division_id,))

    def select_divisions(self, league: Optional[str] = None) -> List[Dict[str, Any]]:
        where, params = build_where({"league": league})
        sql = f"SELECT {self._DIVISION_COLUMNS} FROM divisions {where} ORDER BY name"
        return self.fetch_all(sql, params)

    def insert_division(self, row: Dict[str, Any]) -> str:
        division_id = str(uuid4())
        sql = """
            INSERT INTO divisions (
                id, name, league, competition_rounds, final_rounds,
                interview_template, performance_template
            ) VALUES (%s, %s, %s, %s, %s, %s, %s)
        """
        self.execute(
            sql,
            (
                division_id,
                row["name"],
                row["league"],
                row.get("competition_rounds", 0),
                row.get("final_rounds", 0),
                row.get("interview_template_id"),
                row.get("performance_template_id"),
            ),
        )
        return division_id

    # -------------------------
    # Teams
    # -------------------------
    _TEAM_SELECT = """
        SELECT tm.id, tm.name, i.id AS institution_id, i.name AS institution_name,
               tm.import_id, tm.division AS division_id
        FROM teams tm
        JOIN institutions i ON i.id = tm.institution
        JOIN divisions d ON d.id = tm.division
    """

    def select_team(self, team_id: str) -> Optional[Dict[str, Any]]:
        return self.fetch_one(f"{self._TEAM_SELECT} WHERE tm.id = %s", (team_id,))

    def select_teams(
        self,
        division_id: Optional[str] = None,
        import_ids: Optional[Sequence[str]] = None,
        league: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        where, params = build_where(
            {
                "tm.division": division_id,
                "tm.import_id": list(import_ids) if import_ids else None,
                "d.league": league,
            }
        )
        return self.fetch_all(f"{self._TEAM_SELECT} {where}", params)

    def select_team_members(
        self, team_id: Optional[str] = None, division_id: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        where, params = build_where({"m.team": team_id, "tm.division": division_id})
        sql = f"""
            SELECT m.id, m.name, m.gender, m.team AS team_id
            FROM team_members m
            JOIN teams tm ON tm.id = m.team
            {where}
        """
        return self.fetch_all(sql, params)

    def insert_institution(self, name: str) -> str:
        institution_id = str(uuid4())
        self.execute("INSERT INTO institutions (id, name) VALUES (%s, %s)", (institution_id, name))
        return institution_id

    def insert_team(self, row: Dict[str, Any]) -> str:
        team_id = str(uuid4())
        sql = """
            INSERT INTO teams (id, name, institution, division, import_id)
            VALUES (%s, %s, %s, %s, %s)
        """
        self.execute(
            sql,
            (team_id, row["name"], row["institution_id"], row["division_id"], row.get("import_id")),
        )
        return team_id

    def insert_team_members(self, team_id: str, rows: Sequence[Dict[str, Any]]) -> int:
        sql = "INSERT INTO team_members (id, name, gender, team) VALUES (%s, %s, %s, %s)"
        return self.executemany(
            sql, [(str(uuid4()), r["name"], r["gender"], team_id) for r in rows]
        )

    def update_team(self, team_id: str, row: Dict[str, Any]) -> int:
        sql = "UPDATE teams SET name = %s, institution = %s, division = %s WHERE id = %s"
        return self.execute(
            sql, (row["name"], row["institution_id"], row["division_id"], team_id)
        )

    def update_team_member(self, team_id: str, member_id: str, row: Dict[str, Any]) -> int:
        sql = "UPDATE team_members SET name = %s, gender = %s WHERE id = %s AND team = %s"
        count = self.execute(sql, (row["name"], row["gender"], member_id, team_id))
        if count == 0:
            raise SerializationConflictException(f"Team member {member_id} was removed")
        return count

    def delete_team_members(self, team_id: str, member_ids: Sequence[str]) -> int:
        if not member_ids:
            return 0
        placeholders = ", ".join(["%s"] * len(member_ids))
        sql = f"DELETE FROM team_members WHERE team = %s AND id IN ({placeholders})"
        return self.execute(sql, [team_id, *member_ids])

    def select_institutions(self, ids: Optional[Sequence[str]] = None) -> List[Dict[str, Any]]:
        where, params = build_where({"id": list(ids) if ids else None})
        return self.fetch_all(f"SELECT id, name FROM institutions {where} ORDER BY name", params)

    # -------------------------
    # Users
    # -------------------------
    def select_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        return self.fetch_one("SELECT id, name, username FROM users WHERE id = %s", (user_id,))

    # -------------------------
    # Templates
    # -------------------------
    def select_templates(self, ids: Optional[Sequence[str]] = None) -> List[Dict[str, Any]]:
        where, params = build_where({"id": list(ids) if ids else None})
        rows = self.fetch_all(f"SELECT id, name, type, timings FROM score_sheet_templates {where}", params)
        for row in rows:
            row["timings"] = _load_timings(row.get("timings"))
        return rows

    def select_template_sections(
        self, template_ids: Optional[Sequence[str]] = None
    ) -> List[Dict[str, Any]]:
        where, params = build_where(
            {"score_sheet_template": list(template_ids) if template_ids else None}
        )
        sql = f"""
            SELECT id, score_sheet_template AS template_id, title, description,
                   max_value, multiplier, display_order
            FROM score_sheet_template_sections
            {where}
            ORDER BY display_order
        """
        return self.fetch_all(sql, params)

    def insert_template(self, row: Dict[str, Any]) -> str:
        template_id = str(uuid4())
        sql = "INSERT INTO score_sheet_templates (id, name, type, timings) VALUES (%s, %s, %s, %s)"
        self.execute(
            sql, (template_id, row["name"], row["type"], json.dumps(list(row.get("timings", []))))
        )
        return template_id

    def insert_template_sections(self, template_id: str, rows: Sequence[Dict[str, Any]]) -> int:
        sql = """
            INSERT INTO score_sheet_template_sections (
                id, title, score_sheet_template, description, max_value, multiplier, display_order
            ) VALUES (%s, %s, %s, %s, %s, %s, %s)
        """
        return self.executemany(
            sql,
            [
                (
                    str(uuid4()),
                    r["title"],
                    template_id,
                    r.get("description", ""),
                    r.get("max_value", 0),
                    r.get("multiplier", 1),
                    r.get("display_order", 0),
                )
                for r in rows
            ],
        )


class SnowflakeScoreStore(ScoreStore):
    """
    Snowflake-backed store.

    Connections are opened per session and bounded by STORE_MAX_CONNECTIONS.
    """

    def __init__(
        self,
        settings: Settings,
        connect: Optional[Callable[[], Any]] = None,
    ):
        self._connect = connect or partial(get_snowflake_connection, settings)
        self._slots = threading.BoundedSemaphore(settings.STORE_MAX_CONNECTIONS)

    @contextmanager
    def get_connection(self) -> Generator[Any, None, None]:
        """Context manager for Snowflake connections."""
        with self._slots:
            try:
                conn = self._connect()
            except Error as e:
                raise StoreUnavailableException(f"Failed to connect to Snowflake: {e}") from e
            try:
                yield conn
            finally:
                conn.close()

    @contextmanager
    def session(self) -> Generator[StoreSession, None, None]:
        with self.get_connection() as conn:
            cursor = conn.cursor(DictCursor)
            try:
                yield SnowflakeSession(cursor)
            finally:
                cursor.close()

    @contextmanager
    def transaction(self) -> Generator[StoreSession, None, None]:
        with self.get_connection() as conn:
            cursor = conn.cursor(DictCursor)
            try:
                session = SnowflakeSession(cursor)
                session.execute("BEGIN TRANSACTION")
                yield session
                try:
                    conn.commit()
                except Error as e:
                    raise translate_error(e) from e
            except BaseException:
                self._rollback(conn)
                raise
            finally:
                cursor.close()

    def _rollback(self, conn) -> None:
        try:
            conn.rollback()
        except Error as e:
            # the original failure is what the caller needs to see
            logger.warning("snowflake_rollback_failed", error=str(e))
