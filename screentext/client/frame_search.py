"""OCR search over the rolling frame buffer.

Lets a caller recover text that was on screen recently but never made it
into the record store, e.g. because accessibility extraction returned
nothing for that window.
"""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from screentext.client.extractors import OCRTextExtractor
from screentext.client.frame_buffer import FrameBufferStore
from screentext.shared.models import FrameOCRSearchHit
from screentext.shared.utils import utc_now

logger = logging.getLogger(__name__)

# Frames scanned per search, independent of the hit limit
MAX_SCANNED_FRAMES = 200
SNIPPET_BEFORE = 80
SNIPPET_AFTER = 120
SNIPPET_FALLBACK = 220


def snippet_around_match(text: str, query: str) -> str:
    """Excerpt of ``text`` around the first case-insensitive match of ``query``."""
    match_start = text.lower().find(query.lower())
    if match_start < 0:
        return text[:SNIPPET_FALLBACK]

    start = max(0, match_start - SNIPPET_BEFORE)
    end = min(len(text), match_start + len(query) + SNIPPET_AFTER)
    return text[start:end].strip()


def _frame_timestamp(path: Path) -> datetime:
    try:
        return datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)
    except OSError:
        return utc_now()


class FrameBufferOCRSearcher:
    def __init__(self, frame_buffer_store: FrameBufferStore, ocr_extractor: Optional[OCRTextExtractor] = None):
        self.frame_buffer_store = frame_buffer_store
        self.ocr_extractor = ocr_extractor or OCRTextExtractor()

    def search(self, query: str, within_seconds: int, limit: int) -> List[FrameOCRSearchHit]:
        """OCR recent frames and return those whose text contains ``query``.

        Frames are read only; the buffer directory is never modified here.
        Hits are returned newest first.
        """
        normalized_query = query.strip()
        if not normalized_query or limit <= 0:
            return []

        frames = self.frame_buffer_store.recent_frames(within_seconds, MAX_SCANNED_FRAMES)
        logger.debug(f"Scanning {len(frames)} frames for {normalized_query!r}")

        hits: List[FrameOCRSearchHit] = []
        for frame_path in frames:
            if len(hits) >= limit:
                break

            text = self.ocr_extractor.extract_text_from_path(frame_path)
            if not text or normalized_query.lower() not in text.lower():
                continue

            hits.append(
                FrameOCRSearchHit(
                    timestamp=_frame_timestamp(frame_path),
                    frame_path=str(frame_path),
                    snippet=snippet_around_match(text, normalized_query),
                )
            )

        hits.sort(key=lambda hit: hit.timestamp, reverse=True)
        return hits
