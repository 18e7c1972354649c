"""Telemetry backends queried by the orchestrator and fed by the collector."""

from zenith.store.base import TelemetryStore
from zenith.store.duckdb_store import DuckDBTelemetryStore
from zenith.store.victoria import VictoriaStore

__all__ = ["TelemetryStore", "DuckDBTelemetryStore", "VictoriaStore", "create_store"]


def create_store(config) -> TelemetryStore:
    """Build the telemetry backend selected by ``config.store_backend``."""
    if config.store_backend == "duckdb":
        return DuckDBTelemetryStore(config.telemetry_db_path)
    return VictoriaStore(config.metrics_url, config.logs_url)
