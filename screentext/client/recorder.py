"""Capture daemon workers.

``CaptureWorker`` drives the ingest pipeline from a timer that watches the
foreground application; ``FrameBufferWorker`` keeps the frame buffer fed on
its own timer. The two run independently and may interleave freely.
"""

import logging
import threading
import time
from typing import Callable, Optional

from screentext.client.frame_buffer import FrameBufferStore
from screentext.client.metadata import NativeMetadataProvider
from screentext.client.pipeline import CapturePipeline
from screentext.shared.config import CaptureConfig
from screentext.shared.models import CaptureOutcome, CaptureTrigger, OutcomeKind

logger = logging.getLogger(__name__)


class CaptureWorker(threading.Thread):
    """Background daemon that turns foreground activity into capture attempts.

    Every ``active_gap_seconds`` it looks at the frontmost application:

    - a different app than at the last attempt -> ``app_switch``
    - otherwise, ``idle_gap_seconds`` since the last attempt -> ``idle``

    Attempts closer together than ``min_capture_interval_ms`` are dropped.
    One ``manual`` capture runs when the worker starts.
    """

    def __init__(
        self,
        pipeline: CapturePipeline,
        config: CaptureConfig,
        metadata_provider: Optional[NativeMetadataProvider] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__(daemon=True, name="CaptureWorker")
        self.pipeline = pipeline
        self.config = config
        self.metadata_provider = metadata_provider or NativeMetadataProvider()
        self.clock = clock
        self._stop_event = threading.Event()
        self._last_app: Optional[str] = None
        self._last_attempt_at: Optional[float] = None

    def stop(self):
        """Signal the worker to stop."""
        logger.info("CaptureWorker stop signal received")
        self._stop_event.set()

    def next_trigger(self, app_name: str, now: float) -> Optional[CaptureTrigger]:
        """Trigger for an attempt at ``now``, or None when nothing is due."""
        if self._last_attempt_at is not None:
            since_last = now - self._last_attempt_at
            if since_last * 1000 < self.config.min_capture_interval_ms:
                return None
        else:
            since_last = None

        if self._last_app is not None and app_name != self._last_app:
            return CaptureTrigger.APP_SWITCH
        if since_last is None or since_last >= self.config.idle_gap_seconds:
            return CaptureTrigger.IDLE
        return None

    def attempt(self, trigger: CaptureTrigger, app_name: Optional[str] = None) -> Optional[CaptureOutcome]:
        """Run one pipeline capture; faults are logged and swallowed."""
        self._last_attempt_at = self.clock()
        if app_name is not None:
            self._last_app = app_name

        try:
            outcome = self.pipeline.capture(trigger)
        except Exception as e:
            logger.error(f"Capture failure ({trigger.value}): {e}")
            return None

        if outcome.kind == OutcomeKind.STORED:
            logger.debug(f"Stored capture for {outcome.record.app_name}")
        elif outcome.kind == OutcomeKind.SKIPPED_DUPLICATE:
            logger.debug("Skipped duplicate capture")
        else:
            logger.debug("Skipped capture with no text")
        return outcome

    def tick(self) -> Optional[CaptureOutcome]:
        """Check the foreground app once and capture if a trigger is due."""
        try:
            app_name = self.metadata_provider.current_metadata().app_name
        except Exception as e:
            logger.error(f"Metadata lookup failed: {e}")
            return None

        trigger = self.next_trigger(app_name, self.clock())
        if trigger is None:
            return None
        return self.attempt(trigger, app_name)

    def run(self):
        logger.info("CaptureWorker started")
        try:
            initial_app = self.metadata_provider.current_metadata().app_name
        except Exception as e:
            logger.error(f"Metadata lookup failed: {e}")
            initial_app = None
        self.attempt(CaptureTrigger.MANUAL, initial_app)

        while not self._stop_event.wait(self.config.active_gap_seconds):
            self.tick()

        logger.info("CaptureWorker stopped")


class FrameBufferWorker(threading.Thread):
    """Background daemon that captures one frame every ``interval_seconds``."""

    def __init__(self, frame_buffer_store: FrameBufferStore, interval_seconds: float):
        super().__init__(daemon=True, name="FrameBufferWorker")
        self.frame_buffer_store = frame_buffer_store
        self.interval_seconds = interval_seconds
        self._stop_event = threading.Event()

    def stop(self):
        """Signal the worker to stop."""
        logger.info("FrameBufferWorker stop signal received")
        self._stop_event.set()

    def capture_once(self) -> None:
        try:
            path = self.frame_buffer_store.capture_frame()
        except Exception as e:
            logger.debug(f"Frame buffer capture failed: {e}")
            return
        if path is not None:
            logger.debug(f"Captured frame {path.name}")

    def run(self):
        logger.info(f"FrameBufferWorker started (every {self.interval_seconds}s)")
        self.capture_once()
        while not self._stop_event.wait(self.interval_seconds):
            self.capture_once()
        logger.info("FrameBufferWorker stopped")
