"""Shared image utility functions for ScreenText.

Used by:
- Frame buffer snapshots (frame_buffer.py)
- OCR extraction from the live screen (extractors.py)
- The screen-recording probe (permissions.py)
"""

import io
import logging
from typing import Optional

import mss
import mss.exception
import numpy as np
from PIL import Image

logger = logging.getLogger(__name__)


def grab_primary_screen() -> Optional[Image.Image]:
    """Takes one screenshot of the primary monitor.

    Returns:
        An RGB PIL image, or None when the platform denies capture.
    """
    try:
        with mss.mss() as sct:
            # sct.monitors[0] is the combined view, sct.monitors[1] the primary monitor
            if len(sct.monitors) < 2:
                return None
            sct_img = sct.grab(sct.monitors[1])
            # BGRA -> RGB
            screenshot = np.array(sct_img)[:, :, [2, 1, 0]]
    except mss.exception.ScreenShotError as e:
        logger.debug(f"Screen capture denied: {e}")
        return None
    return Image.fromarray(screenshot)


def downscale_image(image: Image.Image, max_dim: int) -> Image.Image:
    """Shrink ``image`` so its largest side is at most ``max_dim``.

    Aspect ratio is preserved and area (box) interpolation is used. Images
    already within bounds are returned unchanged.
    """
    width, height = image.size
    largest = max(width, height)
    if largest <= max_dim:
        return image

    scale = max_dim / float(largest)
    target = (max(1, int(width * scale)), max(1, int(height * scale)))
    return image.resize(target, Image.Resampling.BOX)


def encode_jpeg(image: Image.Image, quality: int) -> bytes:
    """Lossy-compress ``image`` as JPEG at ``quality`` (1-95)."""
    if image.mode not in ("RGB", "L"):
        image = image.convert("RGB")
    buffer = io.BytesIO()
    image.save(buffer, format="JPEG", quality=quality, optimize=True)
    return buffer.getvalue()
