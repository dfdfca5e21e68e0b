"""PostgreSQL-backed storage with automatic table migration."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from typing import Any

from todo_api.errors import NotFoundError, StorageUnavailableError
from todo_api.models import Subtask, Task, VelocitySummary
from todo_api.query.builder import TASK_COLUMNS, ListQuery
from todo_api.query.resolver import NewTask, UpdatePlan

logger = logging.getLogger(__name__)

SUBTASK_COLUMNS = ("id", "task_id", "title", "completed", "created_at", "updated_at")

_SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS tasks (
        id BIGSERIAL PRIMARY KEY,
        title VARCHAR(255) NOT NULL,
        description TEXT,
        status VARCHAR(20) NOT NULL DEFAULT 'todo',
        due_date TIMESTAMPTZ,
        priority VARCHAR(10) NOT NULL DEFAULT 'Medium',
        story_points INTEGER,
        created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
        CONSTRAINT tasks_status_valid CHECK (status IN ('todo', 'in_progress', 'done')),
        CONSTRAINT tasks_priority_valid CHECK (priority IN ('High', 'Medium', 'Low')),
        CONSTRAINT tasks_story_points_valid CHECK (story_points IN (1, 2, 3, 5, 8))
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_tasks_created_at ON tasks(created_at DESC)",
    "CREATE INDEX IF NOT EXISTS idx_tasks_due_date ON tasks(due_date)",
    "CREATE INDEX IF NOT EXISTS idx_tasks_priority ON tasks(priority)",
    "CREATE INDEX IF NOT EXISTS idx_tasks_status ON tasks(status)",
    "CREATE INDEX IF NOT EXISTS idx_tasks_story_points ON tasks(story_points)",
    """
    CREATE TABLE IF NOT EXISTS subtasks (
        id BIGSERIAL PRIMARY KEY,
        task_id BIGINT NOT NULL REFERENCES tasks(id) ON DELETE CASCADE,
        title VARCHAR(255) NOT NULL,
        completed BOOLEAN NOT NULL DEFAULT FALSE,
        created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_subtasks_task_id ON subtasks(task_id)",
    "CREATE INDEX IF NOT EXISTS idx_subtasks_completed ON subtasks(completed)",
)


class PostgresTodoStorage:
    """Persist tasks and subtasks through an injected psycopg connection pool.

    The pool is owned by whoever constructs this object; ``from_url`` builds
    and opens one, and ``close`` releases it at shutdown.
    """

    def __init__(self, pool: Any) -> None:
        if pool is None:
            raise ValueError("pool is required")
        self._pool = pool
        self._psycopg = self._load_psycopg()

    @classmethod
    def from_url(
        cls,
        database_url: str,
        *,
        min_size: int = 5,
        max_size: int = 25,
        timeout_s: float = 10.0,
    ) -> PostgresTodoStorage:
        if not database_url:
            raise ValueError("database_url is required")
        pool_cls, dict_row = cls._load_pool()
        pool = pool_cls(
            database_url,
            min_size=min_size,
            max_size=max_size,
            timeout=timeout_s,
            kwargs={"row_factory": dict_row},
            open=False,
        )
        pool.open(wait=True, timeout=timeout_s)
        logger.info("storage event=pool_opened min_size=%s max_size=%s", min_size, max_size)
        return cls(pool)

    def migrate(self) -> None:
        with self._connection() as conn:
            for statement in _SCHEMA_STATEMENTS:
                conn.execute(statement)
            conn.commit()

    def ping(self) -> None:
        with self._connection() as conn:
            conn.execute("SELECT 1")

    def close(self) -> None:
        self._pool.close()
        logger.info("storage event=pool_closed")

    def list_tasks(self, query: ListQuery) -> list[Task]:
        with self._connection() as conn:
            rows = conn.execute(query.sql, query.params).fetchall()
        return [self._row_to_task(row) for row in rows]

    def get_task(self, task_id: int) -> Task:
        with self._connection() as conn:
            row = conn.execute(
                f"SELECT {', '.join(TASK_COLUMNS)} FROM tasks WHERE id = %s",
                (task_id,),
            ).fetchone()
        if row is None:
            raise NotFoundError("task", task_id)
        return self._row_to_task(row)

    def create_task(self, values: NewTask) -> Task:
        with self._connection() as conn:
            row = conn.execute(
                f"""
                INSERT INTO tasks (
                    title,
                    description,
                    status,
                    due_date,
                    priority,
                    story_points,
                    created_at,
                    updated_at
                ) VALUES (%s, %s, %s, %s, %s, %s, now(), now())
                RETURNING {', '.join(TASK_COLUMNS)}
                """,
                (
                    values.title,
                    values.description,
                    values.status,
                    values.due_date,
                    values.priority,
                    values.story_points,
                ),
            ).fetchone()
            conn.commit()
        if row is None:
            raise RuntimeError("Failed to load created task")
        return self._row_to_task(row)

    def update_task(self, task_id: int, plan: UpdatePlan) -> Task:
        sql, params = plan.to_sql("tasks", {"id": task_id}, TASK_COLUMNS)
        with self._connection() as conn:
            row = conn.execute(sql, params).fetchone()
            if row is None:
                raise NotFoundError("task", task_id)
            conn.commit()
        return self._row_to_task(row)

    def delete_task(self, task_id: int) -> None:
        # Subtasks go with it through ON DELETE CASCADE.
        with self._connection() as conn:
            cursor = conn.execute("DELETE FROM tasks WHERE id = %s", (task_id,))
            if cursor.rowcount == 0:
                raise NotFoundError("task", task_id)
            conn.commit()

    def list_subtasks(self, task_id: int) -> list[Subtask]:
        with self._connection() as conn:
            self._require_task(conn, task_id)
            rows = conn.execute(
                f"""
                SELECT {', '.join(SUBTASK_COLUMNS)}
                FROM subtasks
                WHERE task_id = %s
                ORDER BY created_at ASC
                """,
                (task_id,),
            ).fetchall()
        return [self._row_to_subtask(row) for row in rows]

    def create_subtask(self, task_id: int, title: str) -> Subtask:
        with self._connection() as conn:
            self._require_task(conn, task_id)
            try:
                row = conn.execute(
                    f"""
                    INSERT INTO subtasks (task_id, title, completed, created_at, updated_at)
                    VALUES (%s, %s, %s, now(), now())
                    RETURNING {', '.join(SUBTASK_COLUMNS)}
                    """,
                    (task_id, title, False),
                ).fetchone()
            except self._psycopg.errors.ForeignKeyViolation as exc:
                # Parent deleted between the existence check and the insert.
                raise NotFoundError("task", task_id) from exc
            conn.commit()
        if row is None:
            raise RuntimeError("Failed to load created subtask")
        return self._row_to_subtask(row)

    def update_subtask(self, task_id: int, subtask_id: int, plan: UpdatePlan) -> Subtask:
        sql, params = plan.to_sql(
            "subtasks",
            {"id": subtask_id, "task_id": task_id},
            SUBTASK_COLUMNS,
        )
        with self._connection() as conn:
            self._require_task(conn, task_id)
            row = conn.execute(sql, params).fetchone()
            if row is None:
                raise NotFoundError("subtask", subtask_id)
            conn.commit()
        return self._row_to_subtask(row)

    def delete_subtask(self, task_id: int, subtask_id: int) -> None:
        with self._connection() as conn:
            cursor = conn.execute(
                "DELETE FROM subtasks WHERE id = %s AND task_id = %s",
                (subtask_id, task_id),
            )
            if cursor.rowcount == 0:
                raise NotFoundError("subtask", subtask_id)
            conn.commit()

    def subtask_progress(self, task_id: int) -> str | None:
        with self._connection() as conn:
            row = conn.execute(
                """
                SELECT
                    count(*) FILTER (WHERE completed) AS completed,
                    count(*) AS total
                FROM subtasks
                WHERE task_id = %s
                """,
                (task_id,),
            ).fetchone()
        if row is None or not row["total"]:
            return None
        return f"{row['completed']}/{row['total']}"

    def velocity(self) -> VelocitySummary:
        with self._connection() as conn:
            row = conn.execute("""
                SELECT
                    COALESCE(SUM(story_points), 0) AS total_estimated,
                    COALESCE(SUM(story_points) FILTER (WHERE status = 'done'), 0) AS completed
                FROM tasks
                """).fetchone()
        total = int(row["total_estimated"]) if row else 0
        completed = int(row["completed"]) if row else 0
        return VelocitySummary(
            total_estimated=total,
            completed=completed,
            remaining=total - completed,
        )

    @contextmanager
    def _connection(self) -> Iterator[Any]:
        """Borrow a pooled connection; infrastructure failures become 503s."""
        unavailable = (self._psycopg.OperationalError, self._psycopg.InterfaceError)
        try:
            with self._pool.connection() as conn:
                yield conn
        except unavailable as exc:
            logger.exception("storage event=unavailable error=%s", exc)
            raise StorageUnavailableError("Database is unavailable") from exc

    @staticmethod
    def _require_task(conn: Any, task_id: int) -> None:
        row = conn.execute(
            "SELECT EXISTS (SELECT 1 FROM tasks WHERE id = %s) AS present",
            (task_id,),
        ).fetchone()
        if not (row and row.get("present")):
            raise NotFoundError("task", task_id)

    @staticmethod
    def _load_psycopg() -> Any:
        try:
            import psycopg
        except ImportError as exc:  # pragma: no cover
            raise RuntimeError(
                "PostgreSQL storage requires psycopg. "
                'Install with: python -m pip install "psycopg[binary,pool]>=3.2,<4.0"'
            ) from exc
        return psycopg

    @staticmethod
    def _load_pool() -> tuple[Any, Any]:
        try:
            from psycopg.rows import dict_row
            from psycopg_pool import ConnectionPool
        except ImportError as exc:  # pragma: no cover
            raise RuntimeError(
                "PostgreSQL storage requires psycopg-pool. "
                'Install with: python -m pip install "psycopg[binary,pool]>=3.2,<4.0"'
            ) from exc
        return ConnectionPool, dict_row

    @staticmethod
    def _parse_datetime(raw: Any) -> datetime:
        if isinstance(raw, datetime):
            return raw
        if isinstance(raw, str):
            return datetime.fromisoformat(raw)
        raise TypeError(f"Unsupported datetime value: {type(raw)!r}")

    @classmethod
    def _row_to_task(cls, row: Any) -> Task:
        due_date = row["due_date"]
        return Task(
            id=int(row["id"]),
            title=row["title"],
            description=row["description"] or None,
            status=row["status"],
            due_date=cls._parse_datetime(due_date) if due_date is not None else None,
            priority=row["priority"],
            story_points=row["story_points"],
            created_at=cls._parse_datetime(row["created_at"]),
            updated_at=cls._parse_datetime(row["updated_at"]),
        )

    @classmethod
    def _row_to_subtask(cls, row: Any) -> Subtask:
        return Subtask(
            id=int(row["id"]),
            task_id=int(row["task_id"]),
            title=row["title"],
            completed=bool(row["completed"]),
            created_at=cls._parse_datetime(row["created_at"]),
            updated_at=cls._parse_datetime(row["updated_at"]),
        )
