"""Interval scheduler running metric collection on a daemon thread."""

import logging
import threading
from datetime import timedelta

from zenith.collector.metrics import collect_metrics
from zenith.store.base import TelemetryStore

logger = logging.getLogger(__name__)


class CollectionScheduler:
    """Collect immediately, then every ``interval`` until stopped."""

    def __init__(self, store: TelemetryStore, interval: timedelta, *, top_n: int = 10):
        self.store = store
        self.interval = interval
        self.top_n = top_n
        self.runs = 0
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def run_once(self) -> int:
        self.runs += 1
        return collect_metrics(self.store, top_n=self.top_n)

    def _loop(self) -> None:
        logger.info("Running initial collection...")
        self.run_once()
        while not self._stop.wait(self.interval.total_seconds()):
            logger.info("Running scheduled collection...")
            self.run_once()

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="zenith-collector", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def join(self, timeout: float | None = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()
