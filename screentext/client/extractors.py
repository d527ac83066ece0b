"""Text extraction strategies.

Every strategy satisfies the ``TextExtractor`` protocol: ``extract()``
returns an ``ExtractedText`` or None, and may raise. The daemon picks one
with ``build_extractor`` from the capture configuration.
"""

import logging
from pathlib import Path
from typing import Any, Callable, Iterable, List, Optional, Protocol, Sequence

import numpy as np
from PIL import Image

from screentext.client.accessibility import AccessibilityTextExtractor
from screentext.client.metadata import NativeMetadataProvider
from screentext.shared.config import CaptureConfig
from screentext.shared.image_utils import grab_primary_screen
from screentext.shared.models import CaptureMetadata, ExtractedText, TextSource

logger = logging.getLogger(__name__)


class TextExtractor(Protocol):
    def extract(self) -> Optional[ExtractedText]: ...


class OCRPostProcessor:
    """
    Converts raw OCR boxes into reading-order lines.

    Boxes whose vertical centers fall within half a box height of the
    current line's center are joined left to right with single spaces.
    """

    def process(self, dt_boxes: Sequence[Sequence[Sequence[float]]], texts: Sequence[str]) -> List[str]:
        if not dt_boxes or not texts or len(dt_boxes) != len(texts):
            return []

        items = []
        for box, text in zip(dt_boxes, texts):
            text = (text or "").strip()
            if not text:
                continue
            ys = [p[1] for p in box]
            xs = [p[0] for p in box]
            items.append(
                {
                    "text": text,
                    "x": min(xs),
                    "cy": (min(ys) + max(ys)) / 2.0,
                    "height": max(1.0, max(ys) - min(ys)),
                }
            )
        items.sort(key=lambda item: (item["cy"], item["x"]))

        lines: List[List[dict]] = []
        for item in items:
            if lines:
                current = lines[-1]
                center = sum(i["cy"] for i in current) / len(current)
                if abs(item["cy"] - center) <= current[0]["height"] / 2.0:
                    current.append(item)
                    continue
            lines.append([item])

        return [" ".join(i["text"] for i in sorted(line, key=lambda i: i["x"])) for line in lines]


def _default_ocr_engine() -> Callable[[np.ndarray], Any]:
    from rapidocr_onnxruntime import RapidOCR

    return RapidOCR()


class OCRTextExtractor:
    """Optical character recognition over the live screen or a saved frame.

    ``engine`` follows the RapidOCR calling convention: it takes a BGR array
    and returns ``(result, elapsed)`` where ``result`` is a list of
    ``[box, text, score]`` or None. The default engine is created on first use.
    """

    def __init__(
        self,
        engine: Optional[Callable[[np.ndarray], Any]] = None,
        grabber: Callable[[], Optional[Image.Image]] = grab_primary_screen,
        min_score: float = 0.5,
    ):
        self._engine = engine
        self.grabber = grabber
        self.min_score = min_score
        self.post_processor = OCRPostProcessor()

    @property
    def engine(self) -> Callable[[np.ndarray], Any]:
        if self._engine is None:
            self._engine = _default_ocr_engine()
            logger.info("RapidOCR engine loaded")
        return self._engine

    def extract_text(self) -> Optional[str]:
        image = self.grabber()
        if image is None:
            return None
        return self.extract_text_from_image(image)

    def extract_text_from_path(self, image_path: Path) -> Optional[str]:
        try:
            with Image.open(image_path) as image:
                image.load()
                return self.extract_text_from_image(image)
        except (OSError, ValueError) as e:
            logger.debug(f"Cannot read frame {image_path}: {e}")
            return None

    def extract_text_from_image(self, image: Image.Image) -> Optional[str]:
        # RGB -> BGR
        pixels = np.asarray(image.convert("RGB"))[:, :, ::-1]
        result, _ = self.engine(pixels)
        if not result:
            return None

        kept = [item for item in result if float(item[2]) >= self.min_score]
        lines = self.post_processor.process([item[0] for item in kept], [item[1] for item in kept])
        text = "\n".join(line for line in lines if line.strip())
        return text or None


class NativeTextExtractor:
    """Accessibility text first, OCR as a fallback.

    Accessibility text shorter than ``minimum_accessibility_chars`` is not
    trusted. Captures while an ignored application is frontmost yield None.
    """

    def __init__(
        self,
        metadata_provider: Optional[NativeMetadataProvider] = None,
        accessibility_extractor: Optional[AccessibilityTextExtractor] = None,
        ocr_extractor: Optional[OCRTextExtractor] = None,
        minimum_accessibility_chars: int = 12,
        ocr_enabled: bool = False,
        ignored_apps: Iterable[str] = (),
    ):
        self.metadata_provider = metadata_provider or NativeMetadataProvider()
        self.accessibility_extractor = accessibility_extractor or AccessibilityTextExtractor()
        self.ocr_extractor = ocr_extractor
        self.minimum_accessibility_chars = minimum_accessibility_chars
        self.ocr_enabled = ocr_enabled
        self.ignored_apps = {app.strip().lower() for app in ignored_apps if app.strip()}

    def _is_ignored(self, metadata: CaptureMetadata) -> bool:
        names = {metadata.app_name.lower()}
        if metadata.bundle_id:
            names.add(metadata.bundle_id.lower())
        return bool(names & self.ignored_apps)

    def extract(self) -> Optional[ExtractedText]:
        metadata = self.metadata_provider.current_metadata()
        if self._is_ignored(metadata):
            logger.debug(f"Skipping ignored app {metadata.app_name}")
            return None

        accessibility_text = self.accessibility_extractor.extract_text()
        if accessibility_text and len(accessibility_text) >= self.minimum_accessibility_chars:
            return ExtractedText(text=accessibility_text, source=TextSource.ACCESSIBILITY, metadata=metadata)

        if not self.ocr_enabled:
            return None

        if self.ocr_extractor is None:
            self.ocr_extractor = OCRTextExtractor()
        ocr_text = self.ocr_extractor.extract_text()
        if ocr_text:
            return ExtractedText(text=ocr_text, source=TextSource.OCR, metadata=metadata)
        return None


class SyntheticExtractor:
    """Returns caller-supplied text; used for manual ingest."""

    def __init__(
        self,
        text: str,
        metadata: Optional[CaptureMetadata] = None,
        source: TextSource = TextSource.SYNTHETIC,
    ):
        self.text = text
        self.metadata = metadata or CaptureMetadata(app_name="Manual")
        self.source = source

    def extract(self) -> Optional[ExtractedText]:
        return ExtractedText(text=self.text, source=self.source, metadata=self.metadata)


def build_extractor(config: CaptureConfig) -> TextExtractor:
    return NativeTextExtractor(
        minimum_accessibility_chars=config.minimum_accessibility_chars,
        ocr_enabled=config.ocr_enabled,
        ignored_apps=config.ignored_apps,
    )
