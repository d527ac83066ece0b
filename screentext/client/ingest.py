"""One-shot capture paths: a single manual capture and text ingest."""

import logging
from typing import Optional

from screentext.client.extractors import SyntheticExtractor, build_extractor
from screentext.client.pipeline import CapturePipeline
from screentext.server.database import SQLStore
from screentext.shared.config import CaptureConfig
from screentext.shared.models import (
    CaptureMetadata,
    CaptureOutcome,
    CaptureTrigger,
    OutcomeKind,
    TextSource,
)

logger = logging.getLogger(__name__)

MANUAL_APP_NAME = "Manual"


def capture_once(store: SQLStore, config: CaptureConfig) -> CaptureOutcome:
    """Run the configured extractor once with a MANUAL trigger."""
    pipeline = CapturePipeline(store, build_extractor(config), config.duplicate_window_seconds)
    outcome = pipeline.capture(CaptureTrigger.MANUAL)
    log_outcome(outcome)
    return outcome


def ingest_text(
    store: SQLStore,
    text: str,
    app_name: str = MANUAL_APP_NAME,
    window_title: Optional[str] = None,
    bundle_id: Optional[str] = None,
    display_id: Optional[str] = None,
    source: TextSource = TextSource.SYNTHETIC,
    trigger: CaptureTrigger = CaptureTrigger.MANUAL,
) -> CaptureOutcome:
    """Store caller-supplied text as one capture.

    The text goes through the same normalization and hashing as screen
    captures; blank text is skipped rather than stored.
    """
    metadata = CaptureMetadata(
        app_name=app_name,
        window_title=window_title,
        bundle_id=bundle_id,
        display_id=display_id,
    )
    extractor = SyntheticExtractor(text, metadata=metadata, source=source)
    outcome = CapturePipeline(store, extractor, duplicate_window_seconds=0).capture(trigger)
    log_outcome(outcome)
    return outcome


def log_outcome(outcome: CaptureOutcome) -> None:
    if outcome.kind == OutcomeKind.STORED:
        record = outcome.record
        logger.info(f"Stored capture id={record.id} for {record.app_name} ({record.source.value})")
    elif outcome.kind == OutcomeKind.SKIPPED_DUPLICATE:
        logger.info("Skipped duplicate capture")
    else:
        logger.info("No text captured")
