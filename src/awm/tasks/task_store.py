# src/awm/tasks/task_store.py

from __future__ import annotations

import contextlib
import json
import logging
import sqlite3
import time
from dataclasses import replace
from pathlib import Path
from typing import Any

from ..core.errors import StaleWriteError
from .task_models import (
    HISTORY_CAP,
    AgentConfig,
    DefaultMode,
    Outcome,
    StatusUpdate,
    Task,
    TaskKind,
    TaskStatus,
)

logger = logging.getLogger(__name__)


class TaskStore:
    """
    SQLite state store for tasks, agent configs and the status history.

    One row per task / agent, so every save is an atomic per-key statement.
    Each row carries a `version` stamp:
    - save of a never-saved object (version 0) inserts with version 1
    - any other save is `UPDATE ... WHERE version = ?` and bumps the stamp
    - a save whose stamp moved raises StaleWriteError

    Thread-safety:
    - each method opens its own SQLite connection
    - nothing is cached between calls, every read sees the latest commit
    """

    def __init__(self, db_path: str | Path = "awm.sqlite3", *, history_cap: int = HISTORY_CAP) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._history_cap = max(1, int(history_cap))

        try:
            self._ensure_schema()
        except sqlite3.DatabaseError:
            logger.exception("State db %s is unreadable; starting from an empty state", self._db_path)
            self._quarantine()
            self._ensure_schema()

        try:
            total = self.count_tasks()
        except sqlite3.Error:
            total = -1
        logger.info("TaskStore ready db=%s tasks=%s", self._db_path, total)

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")

    def _quarantine(self) -> None:
        """Move an unreadable db (and its WAL side files) out of the way."""
        suffix = f".corrupt-{int(time.time())}"
        for path in (
            self._db_path,
            self._db_path.with_name(self._db_path.name + "-wal"),
            self._db_path.with_name(self._db_path.name + "-shm"),
        ):
            if path.exists():
                target = path.with_name(path.name + suffix)
                path.replace(target)
                logger.warning("Moved %s -> %s", path, target)

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    kind TEXT NOT NULL DEFAULT 'default',
                    owner TEXT NOT NULL,
                    status TEXT NOT NULL DEFAULT 'active',
                    helpers TEXT NOT NULL DEFAULT '[]',
                    instruction TEXT,
                    cadence TEXT,
                    status_interval TEXT,
                    last_update INTEGER NOT NULL,
                    last_outcome TEXT,
                    created_at INTEGER NOT NULL,
                    completed_at INTEGER,
                    metadata TEXT NOT NULL DEFAULT '{}',
                    version INTEGER NOT NULL DEFAULT 1
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS agents (
                    agent_id TEXT PRIMARY KEY,
                    default_task_name TEXT,
                    default_instruction TEXT,
                    active_task_id TEXT,
                    recurring_task_ids TEXT NOT NULL DEFAULT '[]',
                    last_check_in INTEGER,
                    idle_threshold TEXT,
                    version INTEGER NOT NULL DEFAULT 1
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS history (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    task_id TEXT NOT NULL,
                    agent_id TEXT NOT NULL,
                    timestamp INTEGER NOT NULL,
                    message TEXT NOT NULL,
                    outcome TEXT
                )
                """
            )

            # Migrations (safe): add missing columns.
            cur.execute("PRAGMA table_info(tasks)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE tasks ADD COLUMN {name} {decl}")
                logger.info("TaskStore migration: added tasks.%s", name)

            add_col("metadata", "TEXT NOT NULL DEFAULT '{}'")
            add_col("version", "INTEGER NOT NULL DEFAULT 1")

            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_status ON tasks(status)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_owner ON tasks(owner)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_history_task ON history(task_id)")

            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _to_json(value: Any, fallback: str) -> str:
        if not value:
            return fallback
        try:
            return json.dumps(value, ensure_ascii=False)
        except (TypeError, ValueError):
            logger.exception("Failed to JSON-encode %r; storing %s.", type(value).__name__, fallback)
            return fallback

    @staticmethod
    def _str_to_list(s: str | None) -> list[str]:
        if not s:
            return []
        try:
            val = json.loads(s)
        except ValueError:
            return []
        return [str(v) for v in val] if isinstance(val, list) else []

    @staticmethod
    def _str_to_dict(s: str | None) -> dict[str, Any]:
        if not s:
            return {}
        try:
            val = json.loads(s)
        except ValueError:
            return {}
        return val if isinstance(val, dict) else {}

    def _row_to_task(self, row: sqlite3.Row) -> Task:
        return Task(
            id=str(row["id"]),
            name=str(row["name"] or ""),
            kind=TaskKind.from_db(row["kind"]),
            owner=str(row["owner"] or ""),
            status=TaskStatus.from_db(row["status"]),
            last_update=int(row["last_update"] or 0),
            created_at=int(row["created_at"] or 0),
            helpers=self._str_to_list(row["helpers"]),
            instruction=row["instruction"],
            cadence=row["cadence"],
            status_interval=row["status_interval"],
            last_outcome=row["last_outcome"],
            completed_at=int(row["completed_at"]) if row["completed_at"] is not None else None,
            metadata=self._str_to_dict(row["metadata"]),
            version=int(row["version"] or 1),
        )

    def _row_to_agent(self, row: sqlite3.Row) -> AgentConfig:
        default_mode = None
        if row["default_task_name"] is not None:
            default_mode = DefaultMode(
                task_name=str(row["default_task_name"]),
                instruction=str(row["default_instruction"] or ""),
            )
        return AgentConfig(
            agent_id=str(row["agent_id"]),
            default_mode=default_mode,
            active_task_id=row["active_task_id"],
            recurring_task_ids=self._str_to_list(row["recurring_task_ids"]),
            last_check_in=int(row["last_check_in"]) if row["last_check_in"] is not None else None,
            idle_threshold=row["idle_threshold"],
            version=int(row["version"] or 1),
        )

    @staticmethod
    def _row_to_update(row: sqlite3.Row) -> StatusUpdate:
        return StatusUpdate(
            task_id=str(row["task_id"]),
            agent_id=str(row["agent_id"]),
            timestamp=int(row["timestamp"] or 0),
            message=str(row["message"] or ""),
            outcome=Outcome.from_db(row["outcome"]),
        )

    def _select_tasks(self, where: str = "", params: tuple[Any, ...] = ()) -> list[Task]:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(f"SELECT * FROM tasks {where} ORDER BY created_at ASC, id ASC", params)
            return [self._row_to_task(r) for r in cur.fetchall()]
        finally:
            conn.close()

    # ---- tasks ----

    def count_tasks(self) -> int:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT COUNT(*) FROM tasks")
            (n,) = cur.fetchone()
            return int(n)
        finally:
            conn.close()

    def get_task(self, task_id: str) -> Task | None:
        if not task_id:
            return None
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT * FROM tasks WHERE id = ?", (task_id,))
            row = cur.fetchone()
            return self._row_to_task(row) if row else None
        finally:
            conn.close()

    def get_all_tasks(self) -> list[Task]:
        return self._select_tasks()

    def get_active_tasks(self) -> list[Task]:
        return self._select_tasks("WHERE status = ?", (TaskStatus.ACTIVE.value,))

    def get_tasks_by_owner(self, agent_id: str) -> list[Task]:
        return self._select_tasks("WHERE owner = ?", (agent_id,))

    def save_task(self, task: Task) -> Task:
        """Insert or update a task; returns the saved copy carrying the new version stamp."""
        values = (
            task.name,
            task.kind.value,
            task.owner,
            task.status.value,
            self._to_json(task.helpers, "[]"),
            task.instruction,
            task.cadence,
            task.status_interval,
            int(task.last_update),
            task.last_outcome,
            int(task.created_at),
            task.completed_at,
            self._to_json(task.metadata, "{}"),
        )

        conn = self._get_conn()
        try:
            cur = conn.cursor()
            if task.version == 0:
                try:
                    cur.execute(
                        """
                        INSERT INTO tasks(
                            name, kind, owner, status, helpers,
                            instruction, cadence, status_interval,
                            last_update, last_outcome, created_at, completed_at,
                            metadata, id, version
                        )
                        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 1)
                        """,
                        (*values, task.id),
                    )
                except sqlite3.IntegrityError as e:
                    raise StaleWriteError("task", task.id, task.version) from e
            else:
                cur.execute(
                    """
                    UPDATE tasks
                    SET name = ?, kind = ?, owner = ?, status = ?, helpers = ?,
                        instruction = ?, cadence = ?, status_interval = ?,
                        last_update = ?, last_outcome = ?, created_at = ?, completed_at = ?,
                        metadata = ?, version = version + 1
                    WHERE id = ? AND version = ?
                    """,
                    (*values, task.id, int(task.version)),
                )
                if cur.rowcount != 1:
                    raise StaleWriteError("task", task.id, task.version)
            conn.commit()
        finally:
            conn.close()

        saved = replace(task, version=task.version + 1)
        logger.debug("Task saved id=%s status=%s version=%s", saved.id, saved.status.value, saved.version)
        return saved

    def delete_task(self, task_id: str) -> bool:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("DELETE FROM tasks WHERE id = ?", (task_id,))
            conn.commit()
            return cur.rowcount == 1
        finally:
            conn.close()

    # ---- agents ----

    def get_agent(self, agent_id: str) -> AgentConfig | None:
        if not agent_id:
            return None
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT * FROM agents WHERE agent_id = ?", (agent_id,))
            row = cur.fetchone()
            return self._row_to_agent(row) if row else None
        finally:
            conn.close()

    def get_all_agents(self) -> list[AgentConfig]:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT * FROM agents ORDER BY agent_id ASC")
            return [self._row_to_agent(r) for r in cur.fetchall()]
        finally:
            conn.close()

    def save_agent(self, agent: AgentConfig) -> AgentConfig:
        """Insert or update an agent config; same version-stamp rules as save_task."""
        mode = agent.default_mode
        # Keep ids unique while preserving encounter order.
        recurring = list(dict.fromkeys(agent.recurring_task_ids))
        values = (
            mode.task_name if mode else None,
            mode.instruction if mode else None,
            agent.active_task_id,
            json.dumps(recurring),
            agent.last_check_in,
            agent.idle_threshold,
        )

        conn = self._get_conn()
        try:
            cur = conn.cursor()
            if agent.version == 0:
                try:
                    cur.execute(
                        """
                        INSERT INTO agents(
                            default_task_name, default_instruction, active_task_id,
                            recurring_task_ids, last_check_in, idle_threshold,
                            agent_id, version
                        )
                        VALUES (?, ?, ?, ?, ?, ?, ?, 1)
                        """,
                        (*values, agent.agent_id),
                    )
                except sqlite3.IntegrityError as e:
                    raise StaleWriteError("agent", agent.agent_id, agent.version) from e
            else:
                cur.execute(
                    """
                    UPDATE agents
                    SET default_task_name = ?, default_instruction = ?, active_task_id = ?,
                        recurring_task_ids = ?, last_check_in = ?, idle_threshold = ?,
                        version = version + 1
                    WHERE agent_id = ? AND version = ?
                    """,
                    (*values, agent.agent_id, int(agent.version)),
                )
                if cur.rowcount != 1:
                    raise StaleWriteError("agent", agent.agent_id, agent.version)
            conn.commit()
        finally:
            conn.close()

        return replace(agent, recurring_task_ids=recurring, version=agent.version + 1)

    # ---- history ----

    def append_history(self, entry: StatusUpdate) -> None:
        """Append one entry and evict the oldest beyond the cap."""
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                INSERT INTO history(task_id, agent_id, timestamp, message, outcome)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    entry.task_id,
                    entry.agent_id,
                    int(entry.timestamp),
                    entry.message,
                    entry.outcome.value if entry.outcome else None,
                ),
            )
            cur.execute(
                """
                DELETE FROM history
                WHERE id <= (SELECT id FROM history ORDER BY id DESC LIMIT 1 OFFSET ?)
                """,
                (self._history_cap,),
            )
            conn.commit()
        finally:
            conn.close()

    def get_history(self, task_id: str | None = None, limit: int = 50) -> list[StatusUpdate]:
        """Most recent `limit` entries (optionally for one task), oldest first."""
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            if task_id:
                cur.execute(
                    "SELECT * FROM history WHERE task_id = ? ORDER BY id DESC LIMIT ?",
                    (task_id, int(limit)),
                )
            else:
                cur.execute("SELECT * FROM history ORDER BY id DESC LIMIT ?", (int(limit),))
            rows = cur.fetchall()
        finally:
            conn.close()
        return [self._row_to_update(r) for r in reversed(rows)]

    def count_history(self) -> int:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT COUNT(*) FROM history")
            (n,) = cur.fetchone()
            return int(n)
        finally:
            conn.close()
