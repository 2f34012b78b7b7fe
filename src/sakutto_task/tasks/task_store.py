# src/sakutto_task/tasks/task_store.py

from __future__ import annotations

import contextlib
import json
import logging
import sqlite3
import time
from collections.abc import Iterable, Iterator
from datetime import date
from pathlib import Path

from ..errors import StoreUnavailableError
from .task_models import (
    NO_EXCLUSIONS,
    Completion,
    CustomUnit,
    Exclusion,
    ExclusionKind,
    ExclusionSet,
    NotificationSetting,
    PushSubscription,
    RecurrenceKind,
    RecurrenceRule,
    Task,
)

logger = logging.getLogger(__name__)

TaskWithRule = tuple[Task, RecurrenceRule | None]

_TASK_WITH_RULE_SELECT = """
    SELECT
        t.*,
        tr.type AS recurrence_type,
        tr.custom_days,
        tr.custom_unit,
        tr.weekdays AS recurrence_weekdays
    FROM tasks t
    LEFT JOIN task_recurrences tr ON tr.task_id = t.id
"""


class TaskStore:
    """
    SQLite store for tasks and everything hanging off them.

    Tables:
    - tasks, task_recurrences (0..1 per task), task_exclusions, task_completions
      (all three cascade-deleted with the task)
    - notification_settings (one per owner), push_subscriptions (many per owner)

    The schema is migration-safe: tables are created if missing and missing
    columns are added with ALTER TABLE.

    Thread-safety:
    - each method opens its own SQLite connection

    Any sqlite3.Error is re-raised as StoreUnavailableError.
    """

    def __init__(self, db_path: str | Path = "tasks.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        logger.info("TaskStore ready db=%s total=%s", self._db_path, self.count_tasks())

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
        conn.execute("PRAGMA foreign_keys=ON")

    @contextlib.contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """Open a connection, commit on success, always close."""
        try:
            conn = self._get_conn()
        except sqlite3.Error as exc:
            raise StoreUnavailableError(f"cannot open task store {self._db_path}: {exc}") from exc
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as exc:
            with contextlib.suppress(sqlite3.Error):
                conn.rollback()
            raise StoreUnavailableError(f"task store query failed: {exc}") from exc
        finally:
            conn.close()

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            cur = conn.cursor()

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    owner_id TEXT NOT NULL,
                    title TEXT NOT NULL,
                    due_date TEXT NOT NULL,
                    notification_enabled INTEGER NOT NULL DEFAULT 0,
                    notification_time TEXT,
                    created_at REAL NOT NULL,
                    updated_at REAL NOT NULL
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS task_recurrences (
                    task_id INTEGER PRIMARY KEY REFERENCES tasks(id) ON DELETE CASCADE,
                    type TEXT NOT NULL,
                    custom_days INTEGER,
                    custom_unit TEXT,
                    weekdays TEXT NOT NULL DEFAULT '[]'
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS task_exclusions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    task_id INTEGER NOT NULL REFERENCES tasks(id) ON DELETE CASCADE,
                    kind TEXT NOT NULL,
                    excluded_date TEXT NOT NULL,
                    created_at REAL NOT NULL
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS task_completions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    task_id INTEGER NOT NULL REFERENCES tasks(id) ON DELETE CASCADE,
                    completed_date TEXT NOT NULL,
                    completed INTEGER NOT NULL DEFAULT 0,
                    created_at REAL NOT NULL,
                    updated_at REAL NOT NULL,
                    UNIQUE(task_id, completed_date)
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS notification_settings (
                    owner_id TEXT PRIMARY KEY,
                    email TEXT,
                    email_enabled INTEGER NOT NULL DEFAULT 0,
                    push_enabled INTEGER NOT NULL DEFAULT 0,
                    updated_at REAL NOT NULL
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS push_subscriptions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    owner_id TEXT NOT NULL,
                    endpoint TEXT NOT NULL UNIQUE,
                    p256dh TEXT NOT NULL,
                    auth TEXT NOT NULL,
                    created_at REAL NOT NULL,
                    updated_at REAL NOT NULL
                )
                """
            )

            # Migrations (safe): add missing columns.
            cur.execute("PRAGMA table_info(task_recurrences)")
            cols = {row["name"] for row in cur.fetchall()}
            if "custom_unit" not in cols:
                cur.execute("ALTER TABLE task_recurrences ADD COLUMN custom_unit TEXT")
                logger.info("TaskStore migration: added column task_recurrences.custom_unit")

            cur.execute("PRAGMA table_info(tasks)")
            cols = {row["name"] for row in cur.fetchall()}
            if "notification_enabled" not in cols:
                cur.execute(
                    "ALTER TABLE tasks ADD COLUMN notification_enabled INTEGER NOT NULL DEFAULT 0"
                )
                logger.info("TaskStore migration: added column tasks.notification_enabled")

            # Older databases may hold several "after" rows per task; only the newest counts.
            cur.execute(
                """
                DELETE FROM task_exclusions
                WHERE kind = 'after'
                  AND id NOT IN (
                    SELECT MAX(id) FROM task_exclusions WHERE kind = 'after' GROUP BY task_id
                  )
                """
            )
            cur.execute(
                """
                DELETE FROM task_exclusions
                WHERE kind = 'single'
                  AND id NOT IN (
                    SELECT MIN(id) FROM task_exclusions
                    WHERE kind = 'single'
                    GROUP BY task_id, excluded_date
                  )
                """
            )

            cur.execute(
                "CREATE UNIQUE INDEX IF NOT EXISTS idx_exclusions_single "
                "ON task_exclusions(task_id, excluded_date) WHERE kind = 'single'"
            )
            cur.execute(
                "CREATE UNIQUE INDEX IF NOT EXISTS idx_exclusions_after "
                "ON task_exclusions(task_id) WHERE kind = 'after'"
            )
            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_owner ON tasks(owner_id, created_at)")
            cur.execute(
                "CREATE INDEX IF NOT EXISTS idx_tasks_notification "
                "ON tasks(notification_enabled, notification_time)"
            )
            cur.execute("CREATE INDEX IF NOT EXISTS idx_push_owner ON push_subscriptions(owner_id)")

    @staticmethod
    def _weekdays_to_str(weekdays: Iterable[int]) -> str:
        return json.dumps(sorted({int(w) for w in weekdays}))

    @staticmethod
    def _str_to_weekdays(s: str | None) -> frozenset[int]:
        if not s:
            return frozenset()
        try:
            val = json.loads(s)
        except ValueError:
            logger.warning("Unreadable weekdays value %r; treating as empty.", s)
            return frozenset()
        if not isinstance(val, list):
            return frozenset()
        return frozenset(int(v) for v in val if isinstance(v, int) and 0 <= v <= 6)

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> Task:
        return Task(
            id=int(row["id"]),
            owner_id=str(row["owner_id"]),
            title=str(row["title"] or ""),
            due_date=date.fromisoformat(row["due_date"]),
            notification_enabled=bool(row["notification_enabled"]),
            notification_time=row["notification_time"],
            created_at=float(row["created_at"] or 0.0),
            updated_at=float(row["updated_at"] or 0.0),
        )

    def _row_to_rule(self, row: sqlite3.Row, *, prefix: str = "") -> RecurrenceRule | None:
        kind = RecurrenceKind.from_db(row[f"{prefix}type"] if prefix else row["type"])
        if kind is None:
            return None
        weekdays_col = "recurrence_weekdays" if prefix else "weekdays"
        custom_days = row["custom_days"]
        return RecurrenceRule(
            kind=kind,
            custom_count=int(custom_days) if custom_days is not None else None,
            custom_unit=CustomUnit.from_db(row["custom_unit"]),
            weekdays=self._str_to_weekdays(row[weekdays_col]),
        )

    def _row_to_task_with_rule(self, row: sqlite3.Row) -> TaskWithRule:
        task = self._row_to_task(row)
        if row["recurrence_type"] is None:
            return task, None
        return task, self._row_to_rule(row, prefix="recurrence_")

    @staticmethod
    def _row_to_subscription(row: sqlite3.Row) -> PushSubscription:
        return PushSubscription(
            id=int(row["id"]),
            owner_id=str(row["owner_id"]),
            endpoint=str(row["endpoint"]),
            p256dh=str(row["p256dh"]),
            auth=str(row["auth"]),
        )

    # ---- tasks ----

    def count_tasks(self) -> int:
        with self._connect() as conn:
            (n,) = conn.execute("SELECT COUNT(*) FROM tasks").fetchone()
            return int(n)

    def add_task(
        self,
        *,
        owner_id: str,
        title: str,
        due_date: date,
        notification_enabled: bool = False,
        notification_time: str | None = None,
    ) -> int:
        now = time.time()
        with self._connect() as conn:
            cur = conn.execute(
                """
                INSERT INTO tasks(
                    owner_id, title, due_date,
                    notification_enabled, notification_time,
                    created_at, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    owner_id,
                    title,
                    due_date.isoformat(),
                    int(bool(notification_enabled)),
                    notification_time,
                    now,
                    now,
                ),
            )
            rowid = cur.lastrowid
            if rowid is None:
                raise StoreUnavailableError("SQLite did not return lastrowid for tasks insert")
            task_id = int(rowid)
        logger.debug("Task added id=%s owner=%s due=%s", task_id, owner_id, due_date)
        return task_id

    def update_task(
        self,
        task_id: int,
        *,
        title: str,
        due_date: date,
        notification_enabled: bool,
        notification_time: str | None,
    ) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                UPDATE tasks
                SET title = ?,
                    due_date = ?,
                    notification_enabled = ?,
                    notification_time = ?,
                    updated_at = ?
                WHERE id = ?
                """,
                (
                    title,
                    due_date.isoformat(),
                    int(bool(notification_enabled)),
                    notification_time,
                    time.time(),
                    int(task_id),
                ),
            )

    def get_task(self, task_id: int) -> Task | None:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM tasks WHERE id = ?", (int(task_id),)).fetchone()
            return self._row_to_task(row) if row else None

    def delete_task(self, task_id: int) -> None:
        """Delete a task; its rule, exclusions and completions go with it (cascade)."""
        with self._connect() as conn:
            conn.execute("DELETE FROM tasks WHERE id = ?", (int(task_id),))
        logger.debug("Task deleted id=%s", task_id)

    def list_tasks_for_owner(self, owner_id: str) -> list[TaskWithRule]:
        with self._connect() as conn:
            rows = conn.execute(
                _TASK_WITH_RULE_SELECT
                + """
                WHERE t.owner_id = ?
                ORDER BY t.created_at ASC, t.id ASC
                """,
                (owner_id,),
            ).fetchall()
            return [self._row_to_task_with_rule(r) for r in rows]

    def list_notification_candidates(self, time_str: str) -> list[TaskWithRule]:
        """Tasks with notifications enabled whose stored time is exactly `time_str`."""
        with self._connect() as conn:
            rows = conn.execute(
                _TASK_WITH_RULE_SELECT
                + """
                WHERE t.notification_enabled = 1
                  AND t.notification_time = ?
                ORDER BY t.created_at ASC, t.id ASC
                """,
                (time_str,),
            ).fetchall()
            return [self._row_to_task_with_rule(r) for r in rows]

    def search_tasks(self, owner_id: str, query: str) -> list[TaskWithRule]:
        """Case-insensitive substring match on the title."""
        escaped = query.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        with self._connect() as conn:
            rows = conn.execute(
                _TASK_WITH_RULE_SELECT
                + """
                WHERE t.owner_id = ?
                  AND t.title LIKE ? ESCAPE '\\'
                ORDER BY t.due_date ASC, t.id ASC
                """,
                (owner_id, f"%{escaped}%"),
            ).fetchall()
            return [self._row_to_task_with_rule(r) for r in rows]

    # ---- recurrence ----

    def set_recurrence(self, task_id: int, rule: RecurrenceRule) -> None:
        """Replace the task's recurrence rule. A unit of "days" is stored as NULL."""
        unit = None if rule.custom_unit in (None, CustomUnit.DAYS) else rule.custom_unit.value
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO task_recurrences(task_id, type, custom_days, custom_unit, weekdays)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(task_id) DO UPDATE SET
                    type = excluded.type,
                    custom_days = excluded.custom_days,
                    custom_unit = excluded.custom_unit,
                    weekdays = excluded.weekdays
                """,
                (
                    int(task_id),
                    rule.kind.value,
                    rule.custom_count,
                    unit,
                    self._weekdays_to_str(rule.weekdays),
                ),
            )

    def get_recurrence(self, task_id: int) -> RecurrenceRule | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM task_recurrences WHERE task_id = ?", (int(task_id),)
            ).fetchone()
            return self._row_to_rule(row) if row else None

    def delete_recurrence(self, task_id: int) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM task_recurrences WHERE task_id = ?", (int(task_id),))

    # ---- exclusions ----

    def add_single_exclusion(self, task_id: int, d: date) -> None:
        """Hide one occurrence. Adding the same date twice is a no-op."""
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO task_exclusions(task_id, kind, excluded_date, created_at)
                VALUES (?, 'single', ?, ?)
                ON CONFLICT(task_id, excluded_date) WHERE kind = 'single' DO NOTHING
                """,
                (int(task_id), d.isoformat(), time.time()),
            )
        logger.debug("Single exclusion task_id=%s date=%s", task_id, d)

    def replace_after_exclusion(self, task_id: int, d: date) -> None:
        """
        Hide every occurrence on or after `d`.

        Last write wins: the cutoff is replaced even when the new date is later
        than the stored one. Done as one upsert on (task_id, kind='after').
        """
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO task_exclusions(task_id, kind, excluded_date, created_at)
                VALUES (?, 'after', ?, ?)
                ON CONFLICT(task_id) WHERE kind = 'after' DO UPDATE SET
                    excluded_date = excluded.excluded_date,
                    created_at = excluded.created_at
                """,
                (int(task_id), d.isoformat(), time.time()),
            )
        logger.debug("After exclusion task_id=%s date=%s", task_id, d)

    def list_exclusions(self, task_id: int) -> ExclusionSet:
        return self.list_exclusions_for_tasks([task_id]).get(int(task_id), NO_EXCLUSIONS)

    def list_exclusions_for_tasks(self, task_ids: Iterable[int]) -> dict[int, ExclusionSet]:
        ids = sorted({int(t) for t in task_ids})
        if not ids:
            return {}

        placeholders = ",".join("?" for _ in ids)
        with self._connect() as conn:
            rows = conn.execute(
                f"""
                SELECT task_id, kind, excluded_date
                FROM task_exclusions
                WHERE task_id IN ({placeholders})
                ORDER BY id ASC
                """,
                ids,
            ).fetchall()

        grouped: dict[int, list[Exclusion]] = {}
        for r in rows:
            try:
                kind = ExclusionKind(r["kind"])
            except ValueError:
                logger.warning("Ignoring exclusion with unknown kind=%r task_id=%s", r["kind"], r["task_id"])
                continue
            grouped.setdefault(int(r["task_id"]), []).append(
                Exclusion(
                    task_id=int(r["task_id"]),
                    kind=kind,
                    excluded_date=date.fromisoformat(r["excluded_date"]),
                )
            )
        return {tid: ExclusionSet.from_rows(exs) for tid, exs in grouped.items()}

    def delete_all_exclusions(self, task_id: int) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM task_exclusions WHERE task_id = ?", (int(task_id),))

    # ---- completions ----

    def set_completion(self, task_id: int, d: date, completed: bool) -> None:
        now = time.time()
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO task_completions(task_id, completed_date, completed, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(task_id, completed_date) DO UPDATE SET
                    completed = excluded.completed,
                    updated_at = excluded.updated_at
                """,
                (int(task_id), d.isoformat(), int(bool(completed)), now, now),
            )

    def get_completion(self, task_id: int, d: date) -> Completion | None:
        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT task_id, completed_date, completed
                FROM task_completions
                WHERE task_id = ? AND completed_date = ?
                """,
                (int(task_id), d.isoformat()),
            ).fetchone()
        if row is None:
            return None
        return Completion(
            task_id=int(row["task_id"]),
            completed_date=date.fromisoformat(row["completed_date"]),
            completed=bool(row["completed"]),
        )

    def completions_for_date(self, task_ids: Iterable[int], d: date) -> dict[int, bool]:
        ids = sorted({int(t) for t in task_ids})
        if not ids:
            return {}

        placeholders = ",".join("?" for _ in ids)
        with self._connect() as conn:
            rows = conn.execute(
                f"""
                SELECT task_id, completed
                FROM task_completions
                WHERE completed_date = ?
                  AND task_id IN ({placeholders})
                """,
                (d.isoformat(), *ids),
            ).fetchall()
        return {int(r["task_id"]): bool(r["completed"]) for r in rows}

    def delete_completions(self, task_id: int) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM task_completions WHERE task_id = ?", (int(task_id),))

    # ---- notification settings ----

    def get_notification_setting(self, owner_id: str) -> NotificationSetting | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM notification_settings WHERE owner_id = ?", (owner_id,)
            ).fetchone()
        if row is None:
            return None
        return NotificationSetting(
            owner_id=str(row["owner_id"]),
            email=row["email"],
            email_enabled=bool(row["email_enabled"]),
            push_enabled=bool(row["push_enabled"]),
        )

    def upsert_notification_setting(self, setting: NotificationSetting) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO notification_settings(owner_id, email, email_enabled, push_enabled, updated_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(owner_id) DO UPDATE SET
                    email = excluded.email,
                    email_enabled = excluded.email_enabled,
                    push_enabled = excluded.push_enabled,
                    updated_at = excluded.updated_at
                """,
                (
                    setting.owner_id,
                    setting.email,
                    int(setting.email_enabled),
                    int(setting.push_enabled),
                    time.time(),
                ),
            )

    # ---- push subscriptions ----

    def upsert_push_subscription(self, *, owner_id: str, endpoint: str, p256dh: str, auth: str) -> int:
        """Insert or refresh a subscription. The endpoint is the identity; the owner may change."""
        now = time.time()
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO push_subscriptions(owner_id, endpoint, p256dh, auth, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(endpoint) DO UPDATE SET
                    owner_id = excluded.owner_id,
                    p256dh = excluded.p256dh,
                    auth = excluded.auth,
                    updated_at = excluded.updated_at
                """,
                (owner_id, endpoint, p256dh, auth, now, now),
            )
            (sub_id,) = conn.execute(
                "SELECT id FROM push_subscriptions WHERE endpoint = ?", (endpoint,)
            ).fetchone()
        return int(sub_id)

    def list_push_subscriptions(self, owner_id: str) -> list[PushSubscription]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM push_subscriptions WHERE owner_id = ? ORDER BY id ASC",
                (owner_id,),
            ).fetchall()
            return [self._row_to_subscription(r) for r in rows]

    def delete_push_subscription(self, endpoint: str, *, owner_id: str | None = None) -> bool:
        with self._connect() as conn:
            if owner_id is None:
                cur = conn.execute("DELETE FROM push_subscriptions WHERE endpoint = ?", (endpoint,))
            else:
                cur = conn.execute(
                    "DELETE FROM push_subscriptions WHERE endpoint = ? AND owner_id = ?",
                    (endpoint, owner_id),
                )
            return cur.rowcount > 0
