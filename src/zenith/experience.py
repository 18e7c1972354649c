"""Append-only experience log backing the feedback loop.

Every orchestration outcome (and every failed execution attempt) is stored as
one ``experiences`` row. Rows are immutable except ``user_feedback``, which the
``/feedback`` endpoint overwrites. Rows are later exported for offline
learning, so ids are assigned by a DuckDB sequence and never reused.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import asdict, dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

import duckdb

from zenith.errors import ExperienceNotFoundError

logger = logging.getLogger(__name__)

SOURCE_QUERY = "query"
SOURCE_RECOMMEND = "recommend"

FEEDBACK_NONE = 0
FEEDBACK_GOOD = 1
FEEDBACK_BAD = -1

_COLUMNS = "id, created_at, source, prompt, generated_query, execution_result, user_feedback"


def _utc_now() -> datetime:
    return datetime.utcnow()


@dataclass(frozen=True)
class Experience:
    """One logged interaction outcome."""

    id: int
    timestamp: datetime
    source: str
    prompt: str
    generated_query: str
    execution_result: str
    user_feedback: int = FEEDBACK_NONE

    @classmethod
    def from_row(cls, row: tuple) -> "Experience":
        return cls(
            id=int(row[0]),
            timestamp=row[1],
            source=str(row[2]),
            prompt=str(row[3]),
            generated_query=str(row[4] or ""),
            execution_result=str(row[5] or ""),
            user_feedback=int(row[6] or 0),
        )

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["timestamp"] = self.timestamp.isoformat() + "Z"
        return data


class ExperienceLog:
    """Thread-safe DuckDB store for experience rows.

    Usage:
        log = ExperienceLog("./data/experiences.duckdb")
        exp_id = log.append("query", "cpu usage?", "avg(cpu_usage_pct)", "Success")
        log.set_feedback(exp_id, 1)
        log.close()
    """

    def __init__(self, db_path: Path | str):
        self.db_path = str(db_path)
        if self.db_path != ":memory:":
            path = Path(self.db_path).expanduser()
            path.parent.mkdir(parents=True, exist_ok=True)
            self.db_path = str(path)
        self._lock = threading.RLock()
        self._conn: duckdb.DuckDBPyConnection | None = duckdb.connect(self.db_path)
        self._ensure_tables()

    def _connection(self) -> duckdb.DuckDBPyConnection:
        if self._conn is None:
            raise RuntimeError("ExperienceLog is closed")
        return self._conn

    def _ensure_tables(self) -> None:
        with self._lock:
            conn = self._connection()
            conn.execute("CREATE SEQUENCE IF NOT EXISTS experience_id_seq START 1")
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS experiences (
                    id BIGINT PRIMARY KEY DEFAULT nextval('experience_id_seq'),
                    created_at TIMESTAMP NOT NULL,
                    source VARCHAR NOT NULL,
                    prompt VARCHAR NOT NULL,
                    generated_query VARCHAR,
                    execution_result VARCHAR,
                    user_feedback INTEGER DEFAULT 0
                )
                """
            )

    def append(
        self,
        source: str,
        prompt: str,
        generated_query: str,
        execution_result: str,
    ) -> int:
        """Insert a new experience row and return its id.

        All fields are free text; only storage-layer errors propagate.
        """
        with self._lock:
            conn = self._connection()
            row = conn.execute(
                """
                INSERT INTO experiences
                    (created_at, source, prompt, generated_query, execution_result, user_feedback)
                VALUES (?, ?, ?, ?, ?, 0)
                RETURNING id
                """,
                [_utc_now(), source, prompt, generated_query or "", execution_result or ""],
            ).fetchone()
        exp_id = int(row[0])
        logger.info("Experience logged [ID: %d] source=%s result=%s", exp_id, source, execution_result[:80])
        return exp_id

    def set_feedback(self, experience_id: int, value: int) -> None:
        """Overwrite ``user_feedback`` for an existing row.

        Raises:
            ValueError: If value is 0 (the "unset" sentinel)
            ExperienceNotFoundError: If no row has this id
        """
        if int(value) == FEEDBACK_NONE:
            raise ValueError("feedback value 0 is reserved for 'no feedback'")
        with self._lock:
            conn = self._connection()
            exists = conn.execute(
                "SELECT 1 FROM experiences WHERE id = ?", [int(experience_id)]
            ).fetchone()
            if exists is None:
                raise ExperienceNotFoundError(int(experience_id))
            conn.execute(
                "UPDATE experiences SET user_feedback = ? WHERE id = ?",
                [int(value), int(experience_id)],
            )
        logger.info("Experience feedback updated [ID: %d] feedback=%d", experience_id, value)

    def get(self, experience_id: int) -> Experience | None:
        with self._lock:
            row = self._connection().execute(
                f"SELECT {_COLUMNS} FROM experiences WHERE id = ?", [int(experience_id)]
            ).fetchone()
        return Experience.from_row(row) if row else None

    def list_recent(self, *, limit: int = 50, source: str | None = None) -> list[Experience]:
        """Return the newest rows first, optionally filtered by source."""
        capped = max(1, min(1000, int(limit)))
        with self._lock:
            conn = self._connection()
            if source:
                rows = conn.execute(
                    f"SELECT {_COLUMNS} FROM experiences WHERE source = ? ORDER BY id DESC LIMIT ?",
                    [source, capped],
                ).fetchall()
            else:
                rows = conn.execute(
                    f"SELECT {_COLUMNS} FROM experiences ORDER BY id DESC LIMIT ?",
                    [capped],
                ).fetchall()
        return [Experience.from_row(r) for r in rows]

    def count(self) -> int:
        with self._lock:
            row = self._connection().execute("SELECT COUNT(*) FROM experiences").fetchone()
        return int(row[0])

    def close(self) -> None:
        """Release the DuckDB connection. Safe to call more than once."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    @property
    def closed(self) -> bool:
        return self._conn is None

    def __enter__(self) -> "ExperienceLog":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
