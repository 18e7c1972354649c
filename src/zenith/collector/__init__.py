"""Background telemetry collection into the configured store."""

from zenith.collector.metrics import collect_metrics, collect_process_metrics, collect_system_metrics
from zenith.collector.scheduler import CollectionScheduler

__all__ = [
    "CollectionScheduler",
    "collect_metrics",
    "collect_process_metrics",
    "collect_system_metrics",
]
