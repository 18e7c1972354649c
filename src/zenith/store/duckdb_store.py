"""Embedded DuckDB telemetry backend queried with plain SQL.

Used when no VictoriaMetrics/VictoriaLogs pair is running. Both the metric
and the log path accept SQL against two tables:

- ``metric_samples`` (ts, metric, value, host, pid, process_name, labels_json)
- ``system_logs`` (ts, pid, process, subsystem, category, level, message)
"""

from __future__ import annotations

import json
import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Any

import duckdb

from zenith.errors import TelemetryQueryError
from zenith.store.base import QUERY_KIND_LOG, QUERY_KIND_METRIC, TelemetryStore

logger = logging.getLogger(__name__)

MAX_RESULT_ROWS = 200


def _parse_ts(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if value:
        try:
            return datetime.fromisoformat(str(value).replace("Z", "+00:00")).replace(tzinfo=None)
        except ValueError:
            pass
    return datetime.utcnow()


def serialize_rows(columns: list[str], rows: list[tuple]) -> str:
    """Flatten a result set into ``col | col`` text for an LLM prompt."""
    if not rows:
        return ""
    lines = [" | ".join(columns)]
    for row in rows:
        lines.append(" | ".join("NULL" if v is None else str(v) for v in row))
    return "\n".join(lines) + "\n"


class DuckDBTelemetryStore(TelemetryStore):
    """Thread-safe SQL telemetry store on a single DuckDB file."""

    name = "duckdb"

    def __init__(self, db_path: Path | str = ":memory:"):
        self.db_path = str(db_path)
        if self.db_path != ":memory:":
            path = Path(self.db_path).expanduser()
            path.parent.mkdir(parents=True, exist_ok=True)
            self.db_path = str(path)
        self._lock = threading.RLock()
        self._conn = duckdb.connect(self.db_path)
        self._ensure_tables()

    def _ensure_tables(self) -> None:
        with self._lock:
            self._conn.execute(
                """
                CREATE TABLE IF NOT EXISTS metric_samples (
                    ts TIMESTAMP,
                    metric VARCHAR,
                    value DOUBLE,
                    host VARCHAR,
                    pid INTEGER,
                    process_name VARCHAR,
                    labels_json VARCHAR
                )
                """
            )
            self._conn.execute(
                """
                CREATE TABLE IF NOT EXISTS system_logs (
                    ts TIMESTAMP,
                    pid INTEGER,
                    process VARCHAR,
                    subsystem VARCHAR,
                    category VARCHAR,
                    level VARCHAR,
                    message VARCHAR
                )
                """
            )

    def _execute(self, query: str) -> str:
        sql = (query or "").strip().rstrip(";")
        if not sql:
            raise TelemetryQueryError("empty query", query=query)
        with self._lock:
            try:
                cursor = self._conn.execute(sql)
                columns = [d[0] for d in (cursor.description or [])]
                rows = cursor.fetchmany(MAX_RESULT_ROWS) if columns else []
            except duckdb.Error as e:
                raise TelemetryQueryError(str(e), query=query) from e
        return serialize_rows(columns, rows)

    def query_metrics(self, query: str) -> str:
        return self._execute(query)

    def query_logs(self, query: str) -> str:
        return self._execute(query)

    def insert_metric(self, name: str, value: float, labels: dict[str, str] | None = None) -> None:
        labels = dict(labels or {})
        pid = labels.get("pid")
        with self._lock:
            self._conn.execute(
                "INSERT INTO metric_samples VALUES (?, ?, ?, ?, ?, ?, ?)",
                [
                    datetime.utcnow(),
                    name,
                    float(value),
                    labels.get("host"),
                    int(pid) if pid not in (None, "") else None,
                    labels.get("process_name"),
                    json.dumps(labels, sort_keys=True),
                ],
            )

    def insert_logs(self, entries: list[dict[str, Any]]) -> None:
        if not entries:
            return
        rows = [
            [
                _parse_ts(e.get("timestamp")),
                e.get("processID"),
                e.get("processName"),
                e.get("subsystem"),
                e.get("category"),
                e.get("messageType"),
                e.get("eventMessage"),
            ]
            for e in entries
        ]
        with self._lock:
            self._conn.executemany("INSERT INTO system_logs VALUES (?, ?, ?, ?, ?, ?, ?)", rows)
        logger.debug("Inserted %d log rows", len(rows))

    def summary_queries(self) -> list[tuple[str, str, str]]:
        return [
            (
                "CPU usage (1h)",
                QUERY_KIND_METRIC,
                "SELECT avg(value) AS avg_cpu, max(value) AS peak_cpu FROM metric_samples "
                "WHERE metric = 'cpu_usage_pct' AND ts > (SELECT max(ts) FROM metric_samples) - INTERVAL 1 HOUR",
            ),
            (
                "Memory (1h)",
                QUERY_KIND_METRIC,
                "SELECT metric, avg(value) AS avg_mb FROM metric_samples "
                "WHERE metric IN ('memory_used_mb', 'memory_free_mb') "
                "AND ts > (SELECT max(ts) FROM metric_samples) - INTERVAL 1 HOUR GROUP BY metric ORDER BY metric",
            ),
            (
                "Top processes by memory",
                QUERY_KIND_METRIC,
                "SELECT process_name, max(value) AS peak_mb FROM metric_samples "
                "WHERE metric = 'process_memory_mb' GROUP BY process_name ORDER BY peak_mb DESC LIMIT 5",
            ),
            (
                "Recent error logs",
                QUERY_KIND_LOG,
                "SELECT ts, process, message FROM system_logs "
                "WHERE lower(level) IN ('error', 'fault') ORDER BY ts DESC LIMIT 20",
            ),
        ]

    def close(self) -> None:
        with self._lock:
            self._conn.close()
