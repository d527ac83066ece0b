"""Read-only capability probes.

A missing capability is an expected state, so every public entry point
reports a negative result instead of raising.
"""

import logging
import platform
from typing import Callable, Optional

import numpy as np
from PIL import Image

from screentext.shared.errors import ProbeFailure
from screentext.shared.hashing import sha256_bytes_hex
from screentext.shared.image_utils import grab_primary_screen
from screentext.shared.models import PermissionSnapshot, ScreenRecordingProbe

logger = logging.getLogger(__name__)

SAMPLE_EDGE = 32


def _accessibility_trusted() -> bool:
    if platform.system() != "Darwin":
        raise ProbeFailure("accessibility API is only available on macOS")
    try:
        from ApplicationServices import AXIsProcessTrusted
    except ImportError as e:
        raise ProbeFailure(f"pyobjc ApplicationServices unavailable: {e}") from e
    return bool(AXIsProcessTrusted())


def accessibility_granted() -> bool:
    try:
        return _accessibility_trusted()
    except ProbeFailure as e:
        logger.debug(f"Accessibility probe failed: {e}")
        return False


def probe_screen_recording(
    grabber: Callable[[], Optional[Image.Image]] = grab_primary_screen,
) -> ScreenRecordingProbe:
    """Capture one frame and describe it without keeping it.

    ``sample_hash`` is the digest of the top-left corner pixels, enough to
    tell a real frame from a blank one across calls.
    """
    try:
        image = grabber()
    except Exception as e:
        logger.debug(f"Screen recording probe failed: {e}")
        return ScreenRecordingProbe(granted=False)

    if image is None:
        return ScreenRecordingProbe(granted=False)

    pixels = np.asarray(image.convert("RGB"))
    sample = pixels[:SAMPLE_EDGE, :SAMPLE_EDGE]
    return ScreenRecordingProbe(
        granted=True,
        width=image.width,
        height=image.height,
        byte_count=int(pixels.nbytes),
        sample_hash=sha256_bytes_hex(sample.tobytes()),
    )


def snapshot() -> PermissionSnapshot:
    return PermissionSnapshot(
        accessibility_granted=accessibility_granted(),
        screen_recording_granted=probe_screen_recording().granted,
    )
