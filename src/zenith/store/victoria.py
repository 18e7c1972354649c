"""VictoriaMetrics / VictoriaLogs backend over HTTP.

Metrics are written with the Influx line protocol and queried with MetricsQL;
logs are written as JSON lines and queried with LogsQL.
"""

import json
import logging
import time
from typing import Any

import requests

from zenith.errors import TelemetryQueryError
from zenith.store.base import QUERY_KIND_LOG, QUERY_KIND_METRIC, TelemetryStore

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10


def _escape_tag(value: str) -> str:
    """Escape an Influx line-protocol tag key or value."""
    return str(value).replace("\\", "\\\\").replace(",", "\\,").replace("=", "\\=").replace(" ", "\\ ")


def format_line_protocol(
    name: str,
    value: float,
    labels: dict[str, str] | None = None,
    timestamp_ns: int | None = None,
) -> str:
    """Render one sample as ``name,tag=v value=1.0 <ts>``."""
    line = _escape_tag(name)
    for key in sorted(labels or {}):
        line += f",{_escape_tag(key)}={_escape_tag(labels[key])}"
    ts = timestamp_ns if timestamp_ns is not None else time.time_ns()
    return f"{line} value={float(value):f} {ts}\n"


class VictoriaStore(TelemetryStore):
    """HTTP client for a VictoriaMetrics + VictoriaLogs pair."""

    name = "victoria"

    def __init__(
        self,
        metrics_url: str = "http://localhost:8428",
        logs_url: str = "http://localhost:9428",
        *,
        timeout: int = DEFAULT_TIMEOUT,
        session: requests.Session | None = None,
    ):
        self.metrics_url = metrics_url.rstrip("/")
        self.logs_url = logs_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def _get(self, url: str, query: str, label: str) -> requests.Response:
        try:
            response = self.session.get(url, params={"query": query}, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise TelemetryQueryError(f"{label} query failed: {e}", query=query) from e
        if response.status_code != 200:
            raise TelemetryQueryError(
                f"{label} query failed ({response.status_code}): {response.text}",
                query=query,
            )
        return response

    def _post(self, url: str, body: str, content_type: str, label: str) -> None:
        try:
            response = self.session.post(
                url,
                data=body.encode("utf-8"),
                headers={"Content-Type": content_type},
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise TelemetryQueryError(f"{label} write failed: {e}") from e
        if response.status_code not in (200, 204):
            raise TelemetryQueryError(f"{label} write failed ({response.status_code}): {response.text}")

    def query_metrics(self, query: str) -> str:
        response = self._get(f"{self.metrics_url}/api/v1/query", query, "victoria metrics")
        try:
            payload = response.json()
        except ValueError as e:
            raise TelemetryQueryError(f"victoria metrics returned invalid JSON: {e}", query=query) from e

        if payload.get("status") not in (None, "success"):
            raise TelemetryQueryError(
                f"victoria metrics query error: {payload.get('error', payload.get('status'))}",
                query=query,
            )

        lines = []
        for item in (payload.get("data") or {}).get("result") or []:
            metric = json.dumps(item.get("metric") or {}, sort_keys=True)
            if "values" in item:
                lines.append(f"Metric: {metric}, Values: {json.dumps(item['values'])}")
            else:
                lines.append(f"Metric: {metric}, Value: {json.dumps(item.get('value'))}")
        return "".join(line + "\n" for line in lines)

    def query_logs(self, query: str) -> str:
        response = self._get(f"{self.logs_url}/select/logsql/query", query, "victoria logs")
        out = []
        for raw_line in response.text.splitlines():
            if not raw_line.strip():
                continue
            try:
                entry = json.loads(raw_line)
            except json.JSONDecodeError as e:
                raise TelemetryQueryError(f"victoria logs returned invalid NDJSON: {e}", query=query) from e
            out.append(json.dumps(entry, sort_keys=True) + "\n")
        return "".join(out)

    def insert_metric(self, name: str, value: float, labels: dict[str, str] | None = None) -> None:
        self._post(
            f"{self.metrics_url}/write",
            format_line_protocol(name, value, labels),
            "text/plain",
            "victoria metrics",
        )

    def insert_logs(self, entries: list[dict[str, Any]]) -> None:
        if not entries:
            return
        body = "".join(json.dumps(entry, default=str) + "\n" for entry in entries)
        self._post(f"{self.logs_url}/insert/jsonline", body, "application/json", "victoria logs")
        logger.debug("Inserted %d log entries", len(entries))

    def summary_queries(self) -> list[tuple[str, str, str]]:
        return [
            ("Average CPU usage (1h)", QUERY_KIND_METRIC, "avg(avg_over_time(cpu_usage_pct[1h]))"),
            ("Peak CPU usage (1h)", QUERY_KIND_METRIC, "max(max_over_time(cpu_usage_pct[1h]))"),
            ("Memory used MB", QUERY_KIND_METRIC, "avg(memory_used_mb)"),
            ("Memory free MB", QUERY_KIND_METRIC, "avg(memory_free_mb)"),
            ("Top processes by CPU", QUERY_KIND_METRIC, "topk(5, process_cpu_pct)"),
            ("Top processes by memory", QUERY_KIND_METRIC, "topk(5, process_memory_mb)"),
            ("Recent error logs", QUERY_KIND_LOG, '_time:1h messageType:error | limit 20'),
        ]

    def close(self) -> None:
        self.session.close()
