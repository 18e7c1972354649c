"""Shared test fixtures for the zenith test suite.

Provides scripted collaborators so orchestration can be tested without a
model or a telemetry backend:

* ``ScriptedProvider`` -- returns (or raises) queued responses per method
* ``RecordingStore``   -- returns (or raises) queued results and records calls
* ``experience_log``   -- a real DuckDB experience log under ``tmp_path``
* ``client``           -- FastAPI TestClient wired to the three above
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest
from fastapi.testclient import TestClient

from zenith.api import ZenithServices, create_app
from zenith.experience import ExperienceLog
from zenith.llm.provider import LLMProvider
from zenith.orchestrator import QueryOrchestrator
from zenith.store.base import QUERY_KIND_LOG, QUERY_KIND_METRIC, TelemetryStore


def _next(queue: list, default: Any) -> Any:
    item = queue.pop(0) if queue else default
    if isinstance(item, Exception):
        raise item
    return item


class ScriptedProvider(LLMProvider):
    """Provider whose answers are queued up front. Exceptions in a queue are raised."""

    name = "scripted"

    def __init__(
        self,
        queries: list | None = None,
        explanations: list | None = None,
        recommendations: list | None = None,
    ):
        self.queries = list(queries or [])
        self.explanations = list(explanations or [])
        self.recommendations = list(recommendations or [])
        self.calls: list[tuple[str, tuple]] = []

    def generate_query(self, question: str) -> str:
        self.calls.append(("generate_query", (question,)))
        return _next(self.queries, "METRIC: up")

    def explain_results(self, question: str, query: str, results: str) -> str:
        self.calls.append(("explain_results", (question, query, results)))
        return _next(self.explanations, "explained")

    def generate_recommendations(self, summary: str) -> str:
        self.calls.append(("generate_recommendations", (summary,)))
        return _next(self.recommendations, "recommended")

    def count(self, method: str) -> int:
        return sum(1 for name, _ in self.calls if name == method)


class RecordingStore(TelemetryStore):
    """In-memory store returning queued results per query kind."""

    name = "recording"

    def __init__(self, metric_results: list | None = None, log_results: list | None = None):
        self.metric_results = list(metric_results or [])
        self.log_results = list(log_results or [])
        self.queries: list[tuple[str, str]] = []
        self.inserted_metrics: list[tuple[str, float, dict]] = []
        self.inserted_logs: list[dict] = []
        self.closed = False

    def query_metrics(self, query: str) -> str:
        self.queries.append((QUERY_KIND_METRIC, query))
        return _next(self.metric_results, "")

    def query_logs(self, query: str) -> str:
        self.queries.append((QUERY_KIND_LOG, query))
        return _next(self.log_results, "")

    def insert_metric(self, name: str, value: float, labels: dict[str, str] | None = None) -> None:
        self.inserted_metrics.append((name, value, dict(labels or {})))

    def insert_logs(self, entries: list[dict[str, Any]]) -> None:
        self.inserted_logs.extend(entries)

    def summary_queries(self) -> list[tuple[str, str, str]]:
        return [
            ("Average CPU", QUERY_KIND_METRIC, "avg(cpu_usage_pct)"),
            ("Recent errors", QUERY_KIND_LOG, "messageType:error"),
        ]

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def experience_log(tmp_path: Path):
    log = ExperienceLog(tmp_path / "data" / "experiences.duckdb")
    yield log
    log.close()


@pytest.fixture
def provider() -> ScriptedProvider:
    return ScriptedProvider()


@pytest.fixture
def store() -> RecordingStore:
    return RecordingStore()


@pytest.fixture
def orchestrator(provider, store, experience_log) -> QueryOrchestrator:
    return QueryOrchestrator(provider, store, experience_log)


@pytest.fixture
def services(provider, store, experience_log) -> ZenithServices:
    return ZenithServices.from_parts(provider, store, experience_log)


@pytest.fixture
def client(services) -> TestClient:
    return TestClient(create_app(services))
