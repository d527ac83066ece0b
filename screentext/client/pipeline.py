"""Ingest decision engine: store, skip as duplicate, or skip as empty."""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from screentext.client.extractors import TextExtractor
from screentext.server.database import SQLStore
from screentext.shared.hashing import normalize_text, sha256_hex
from screentext.shared.models import CaptureOutcome, CaptureRecord, CaptureTrigger
from screentext.shared.utils import utc_now

logger = logging.getLogger(__name__)


@dataclass
class DedupState:
    """Last committed content hash and when it was committed.

    Lives in process memory only; a restart starts with an empty state.
    """

    last_hash: Optional[str] = None
    last_at: Optional[datetime] = None

    def is_duplicate(self, text_hash: str, timestamp: datetime, window_seconds: float) -> bool:
        if self.last_hash is None or self.last_at is None:
            return False
        if self.last_hash != text_hash:
            return False
        return (timestamp - self.last_at).total_seconds() <= window_seconds

    def remember(self, text_hash: str, timestamp: datetime) -> None:
        self.last_hash = text_hash
        self.last_at = timestamp

    def reset(self) -> None:
        self.last_hash = None
        self.last_at = None


class CapturePipeline:
    def __init__(
        self,
        store: SQLStore,
        extractor: TextExtractor,
        duplicate_window_seconds: float,
        now: Callable[[], datetime] = utc_now,
        state: Optional[DedupState] = None,
    ):
        self.store = store
        self.extractor = extractor
        self.duplicate_window_seconds = duplicate_window_seconds
        self.now = now
        self.state = state if state is not None else DedupState()
        self._lock = threading.Lock()

    def capture(self, trigger: CaptureTrigger) -> CaptureOutcome:
        """Run one capture attempt.

        Store failures propagate; the dedup state only advances after a
        successful insert.
        """
        with self._lock:
            extracted = self.extractor.extract()
            if extracted is None:
                return CaptureOutcome.skipped_no_text()

            normalized = normalize_text(extracted.text)
            if not normalized:
                return CaptureOutcome.skipped_no_text()

            digest = sha256_hex(normalized)
            timestamp = self.now()

            if self.state.is_duplicate(digest, timestamp, self.duplicate_window_seconds):
                return CaptureOutcome.skipped_duplicate()

            metadata = extracted.metadata
            record = CaptureRecord(
                timestamp=timestamp,
                app_name=metadata.app_name,
                window_title=metadata.window_title,
                bundle_id=metadata.bundle_id,
                source=extracted.source,
                trigger=trigger,
                display_id=metadata.display_id,
                text_hash=digest,
                text_length=len(normalized),
                text_content=normalized,
            )

            stored = self.store.insert(record)
            self.state.remember(digest, timestamp)
            logger.debug(f"Stored capture id={stored.id} app={stored.app_name} trigger={trigger.value}")
            return CaptureOutcome.stored(stored)
