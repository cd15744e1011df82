"""
Project storage backend (SQLite).

Stands in for the hosted row store: one row per project holding the whole
blob (form fields + JSON snapshots of board, schedule, budget, WBS, risks),
plus one notes row per owner. Rows are scoped by owner id; the caller
supplies it (authentication happens upstream).

Concurrent sessions are not reconciled: the last save wins.
"""
import json
import logging
import sqlite3
import uuid
from pathlib import Path
from typing import List, Optional, Dict, Any

from .clock import Clock, SYSTEM_CLOCK
from .schema import ProjectRecord, PROJECT_FIELDS, JSON_FIELDS

logger = logging.getLogger(__name__)


class PersistenceError(Exception):
    """Raised when a project or note cannot be read or written."""
    pass


def _connect(db_path: str) -> sqlite3.Connection:
    """Open a connection with FK enforcement and WAL mode."""
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    conn.execute("PRAGMA journal_mode = WAL")
    return conn


class ProjectStore:
    """SQLite-backed store for projects and notes."""

    def __init__(self, db_path: str = None, clock: Optional[Clock] = None):
        """Initialize store and create tables if needed."""
        if db_path is None:
            db_path = str(Path.home() / ".local" / "share" / "pmx" / "pmx.db")
        self.db_path = db_path
        self.clock = clock or SYSTEM_CLOCK
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _init_schema(self):
        """Create tables if they don't exist."""
        with _connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS projects (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    project_name TEXT DEFAULT '',
                    budget TEXT DEFAULT '',
                    duration TEXT DEFAULT '',
                    project_type TEXT DEFAULT '',
                    objective TEXT DEFAULT '',
                    constraints TEXT DEFAULT '',
                    charter TEXT DEFAULT '',
                    wbs TEXT DEFAULT '[]',           -- JSON list
                    risks TEXT DEFAULT '[]',         -- JSON list
                    kanban TEXT DEFAULT '{}',        -- JSON {todo, inprogress, done}
                    schedule TEXT DEFAULT '[]',      -- JSON list
                    budget_items TEXT DEFAULT '[]',  -- JSON list
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS notes (
                    user_id TEXT PRIMARY KEY,
                    content TEXT NOT NULL DEFAULT '',
                    updated_at TEXT NOT NULL
                )
            """)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_projects_owner ON projects(user_id, updated_at)"
            )
            conn.commit()

    def _now(self) -> str:
        return self.clock.utc_now().isoformat()

    # ── Projects ─────────────────────────────────────────────────────────────

    def save(self, owner_id: str, project_id: Optional[str], fields: Dict[str, Any]) -> ProjectRecord:
        """Create (project_id None) or update a project with a whole-blob write.

        Unknown keys in fields are ignored. Returns the stored record,
        including the assigned id on first save.
        """
        values = {k: v for k, v in (fields or {}).items() if k in PROJECT_FIELDS}
        for key in JSON_FIELDS:
            if key in values:
                values[key] = json.dumps(values[key], ensure_ascii=False)
        for key in values:
            if values[key] is None:
                values[key] = ""
        now = self._now()

        try:
            with _connect(self.db_path) as conn:
                if project_id:
                    assignments = ", ".join(f"{k} = ?" for k in values)
                    sql = "UPDATE projects SET "
                    sql += f"{assignments}, updated_at = ?" if assignments else "updated_at = ?"
                    cur = conn.execute(
                        sql + " WHERE id = ? AND user_id = ?",
                        (*values.values(), now, project_id, owner_id),
                    )
                    if cur.rowcount == 0:
                        raise PersistenceError(f"Project {project_id} not found")
                else:
                    project_id = str(uuid.uuid4())
                    columns = ["id", "user_id", *values.keys(), "created_at", "updated_at"]
                    placeholders = ", ".join("?" for _ in columns)
                    conn.execute(
                        f"INSERT INTO projects ({', '.join(columns)}) VALUES ({placeholders})",
                        (project_id, owner_id, *values.values(), now, now),
                    )
                conn.commit()
                row = conn.execute("SELECT * FROM projects WHERE id = ?", (project_id,)).fetchone()
        except sqlite3.Error as e:
            logger.error(f"Error saving project {project_id}: {e}")
            raise PersistenceError(str(e)) from e

        logger.info(f"Saved project {project_id} for {owner_id}")
        return self._row_to_record(row)

    def get(self, owner_id: str, project_id: str) -> Optional[ProjectRecord]:
        try:
            with _connect(self.db_path) as conn:
                row = conn.execute(
                    "SELECT * FROM projects WHERE id = ? AND user_id = ?",
                    (project_id, owner_id),
                ).fetchone()
        except sqlite3.Error as e:
            logger.error(f"Error retrieving project {project_id}: {e}")
            raise PersistenceError(str(e)) from e
        return self._row_to_record(row) if row else None

    def list(self, owner_id: str, limit: int = 500) -> List[ProjectRecord]:
        """All projects for owner_id, most recently updated first."""
        try:
            with _connect(self.db_path) as conn:
                rows = conn.execute(
                    "SELECT * FROM projects WHERE user_id = ? ORDER BY updated_at DESC LIMIT ?",
                    (owner_id, limit),
                ).fetchall()
        except sqlite3.Error as e:
            logger.error(f"Error listing projects for {owner_id}: {e}")
            raise PersistenceError(str(e)) from e
        return [self._row_to_record(row) for row in rows]

    def delete(self, owner_id: str, project_id: str) -> bool:
        """Delete a project. False if it did not exist."""
        try:
            with _connect(self.db_path) as conn:
                cur = conn.execute(
                    "DELETE FROM projects WHERE id = ? AND user_id = ?",
                    (project_id, owner_id),
                )
                conn.commit()
                return cur.rowcount > 0
        except sqlite3.Error as e:
            logger.error(f"Error deleting project {project_id}: {e}")
            raise PersistenceError(str(e)) from e

    # ── Notes ────────────────────────────────────────────────────────────────

    def fetch_note(self, owner_id: str) -> str:
        """The owner's scratchpad text, or "" if none saved yet."""
        try:
            with _connect(self.db_path) as conn:
                row = conn.execute(
                    "SELECT content FROM notes WHERE user_id = ?", (owner_id,)
                ).fetchone()
        except sqlite3.Error as e:
            logger.error(f"Error fetching note for {owner_id}: {e}")
            return ""
        return row["content"] if row else ""

    def save_note(self, owner_id: str, content: str) -> None:
        try:
            with _connect(self.db_path) as conn:
                conn.execute("""
                    INSERT INTO notes (user_id, content, updated_at)
                    VALUES (?, ?, ?)
                    ON CONFLICT(user_id) DO UPDATE SET content=excluded.content, updated_at=excluded.updated_at
                """, (owner_id, content or "", self._now()))
                conn.commit()
        except sqlite3.Error as e:
            logger.error(f"Error saving note for {owner_id}: {e}")
            raise PersistenceError(str(e)) from e

    def _row_to_record(self, row: sqlite3.Row) -> ProjectRecord:
        """Convert a database row to a ProjectRecord."""
        data = dict(row)
        for key in JSON_FIELDS:
            raw = data.get(key)
            try:
                data[key] = json.loads(raw) if raw else None
            except (json.JSONDecodeError, TypeError):
                logger.warning(f"Corrupt {key} column on project {data.get('id')}")
                data[key] = None
        return ProjectRecord.from_dict(data)
