"""Abstract telemetry store interface."""

from abc import ABC, abstractmethod
from typing import Any

QUERY_KIND_METRIC = "metric"
QUERY_KIND_LOG = "log"


class TelemetryStore(ABC):
    """Queryable time-series / log backend.

    Query methods return a flattened textual rendering of the result rows
    suitable for an LLM prompt and raise ``TelemetryQueryError`` on failure.
    An empty result is an empty string, not an error.
    """

    #: Short identifier surfaced by /health and in prompts
    name: str = "base"

    @abstractmethod
    def query_metrics(self, query: str) -> str:
        ...

    @abstractmethod
    def query_logs(self, query: str) -> str:
        ...

    @abstractmethod
    def insert_metric(self, name: str, value: float, labels: dict[str, str] | None = None) -> None:
        ...

    @abstractmethod
    def insert_logs(self, entries: list[dict[str, Any]]) -> None:
        ...

    @abstractmethod
    def summary_queries(self) -> list[tuple[str, str, str]]:
        """Fixed ``(label, kind, query)`` triples used to build recommendations."""
        ...

    def run(self, kind: str, query: str) -> str:
        """Dispatch a query to the metric or log path."""
        if kind == QUERY_KIND_LOG:
            return self.query_logs(query)
        return self.query_metrics(query)

    def close(self) -> None:
        """Release backend resources. Default: nothing to release."""
