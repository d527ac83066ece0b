"""Retention worker for automatic cleanup of old captures."""

import logging
import threading
from datetime import datetime, timedelta
from typing import Callable

from screentext.server.database import SQLStore
from screentext.shared.config import CaptureConfig
from screentext.shared.utils import utc_now

logger = logging.getLogger(__name__)

# Fraction of the records dropped per size-cap pass
SIZE_CAP_PURGE_FRACTION = 0.1
MAX_SIZE_CAP_PASSES = 10


class RetentionWorker(threading.Thread):
    """Background daemon that keeps the record store bounded.

    Handles:
    - Records older than ``retention_days``
    - Store files larger than ``max_db_size_mb`` (oldest records first,
      followed by a compaction so the file actually shrinks)

    Runs every ``interval_seconds``.
    """

    def __init__(
        self,
        store: SQLStore,
        config: CaptureConfig,
        interval_seconds: float,
        now: Callable[[], datetime] = utc_now,
    ):
        super().__init__(daemon=True, name="RetentionWorker")
        self.store = store
        self.config = config
        self.interval_seconds = interval_seconds
        self.now = now
        self._stop_event = threading.Event()
        logger.info("RetentionWorker initialized")

    def stop(self):
        """Signal the worker to stop."""
        logger.info("RetentionWorker stop signal received")
        self._stop_event.set()

    def run(self):
        logger.info("RetentionWorker started")
        while not self._stop_event.is_set():
            try:
                self.run_once()
            except Exception as e:
                logger.error(f"Retention cleanup error: {e}")

            self._stop_event.wait(self.interval_seconds)

        logger.info("RetentionWorker stopped")

    def run_once(self) -> int:
        """One cleanup pass; returns the number of records removed."""
        removed = self._purge_expired()
        removed += self._enforce_size_cap()
        return removed

    def _purge_expired(self) -> int:
        cutoff = self.now() - timedelta(days=self.config.retention_days)
        return self.store.purge(cutoff)

    def _enforce_size_cap(self) -> int:
        limit = self.config.max_db_size_bytes
        status = self.store.status()
        if status.database_bytes <= limit:
            return 0

        logger.info(
            f"Record store is {status.database_bytes} bytes, over the {limit} byte cap; purging oldest captures"
        )
        removed = 0
        for _ in range(MAX_SIZE_CAP_PASSES):
            if status.record_count == 0:
                break
            batch = max(1, int(status.record_count * SIZE_CAP_PURGE_FRACTION))
            removed += self.store.purge_oldest(batch)
            self.store.compact()
            status = self.store.status()
            if status.database_bytes <= limit:
                break

        logger.info(f"Size cap cleanup removed {removed} captures ({status.database_bytes} bytes remain)")
        return removed
