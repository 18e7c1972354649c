"""Portable host metric sampling with psutil.

Metric names match what the query prompts advertise:
``cpu_usage_pct``, ``memory_used_mb``, ``memory_free_mb``,
``process_memory_mb`` and ``process_cpu_pct``.
"""

import logging
import os
import socket

import psutil

from zenith.store.base import TelemetryStore

logger = logging.getLogger(__name__)

MB = 1024 * 1024
# Processes below this RSS are noise for performance questions
PROCESS_RSS_FLOOR_MB = 50
PROCESS_CPU_FLOOR_PCT = 1.0


def _host_labels() -> dict[str, str]:
    return {"host": socket.gethostname() or "localhost"}


def collect_system_metrics(store: TelemetryStore, *, cpu_interval: float = 1.0) -> int:
    """Sample CPU and memory. Returns the number of samples written."""
    labels = _host_labels()
    cpu = psutil.cpu_percent(interval=cpu_interval)
    store.insert_metric("cpu_usage_pct", cpu, labels)

    mem = psutil.virtual_memory()
    store.insert_metric("memory_used_mb", mem.used / MB, labels)
    store.insert_metric("memory_free_mb", mem.available / MB, labels)
    return 3


def collect_process_metrics(store: TelemetryStore, *, top_n: int = 10) -> int:
    """Record memory (and busy CPU) for the largest processes."""
    candidates = []
    for proc in psutil.process_iter(["pid", "name", "memory_info", "cpu_percent"]):
        info = proc.info
        mem_info = info.get("memory_info")
        if mem_info is None:
            continue
        rss_mb = mem_info.rss / MB
        if rss_mb < PROCESS_RSS_FLOOR_MB:
            continue
        name = os.path.basename(info.get("name") or "unknown")
        candidates.append((rss_mb, info.get("cpu_percent"), info["pid"], name))

    candidates.sort(reverse=True)
    written = 0
    for rss_mb, cpu_pct, pid, name in candidates[: max(0, top_n)]:
        labels = {"pid": str(pid), "process_name": name}
        store.insert_metric("process_memory_mb", rss_mb, labels)
        written += 1
        if cpu_pct is not None and cpu_pct > PROCESS_CPU_FLOOR_PCT:
            store.insert_metric("process_cpu_pct", cpu_pct, labels)
            written += 1
    return written


def collect_metrics(store: TelemetryStore, *, top_n: int = 10) -> int:
    """Run every collector; one failing collector does not stop the others."""
    written = 0
    for label, collector, kwargs in (
        ("system", collect_system_metrics, {}),
        ("process", collect_process_metrics, {"top_n": top_n}),
    ):
        try:
            written += collector(store, **kwargs)
        except Exception as e:
            logger.error("Failed to collect %s metrics: %s", label, e)
    logger.info("Finished collection (%d samples)", written)
    return written
