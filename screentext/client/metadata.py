"""Foreground application and window metadata."""

import logging
import platform
from typing import Optional

from screentext.client.accessibility import MacAccessibilityTree
from screentext.shared.errors import ProbeFailure
from screentext.shared.models import UNKNOWN_APP, CaptureMetadata

logger = logging.getLogger(__name__)

MAIN_DISPLAY_ID = "main"


class NativeMetadataProvider:
    """Reads the frontmost application through AppKit on macOS.

    Elsewhere (or when pyobjc is missing) every field but the display falls
    back to its unknown value.
    """

    def __init__(self, tree: Optional[MacAccessibilityTree] = None):
        self._workspace = None
        self._tree = tree
        if platform.system() != "Darwin":
            return
        try:
            from AppKit import NSWorkspace

            self._workspace = NSWorkspace.sharedWorkspace()
        except ImportError as e:
            logger.debug(f"AppKit unavailable, metadata limited: {e}")
        if self._tree is None:
            try:
                self._tree = MacAccessibilityTree()
            except ProbeFailure as e:
                logger.debug(f"Window titles unavailable: {e}")

    def _focused_window_title(self) -> Optional[str]:
        if self._tree is None:
            return None
        window = self._tree.focused_window()
        if window is None:
            return None
        return self._tree.string_attribute(window, "AXTitle")

    def current_metadata(self) -> CaptureMetadata:
        if self._workspace is None:
            return CaptureMetadata(app_name=UNKNOWN_APP, display_id=MAIN_DISPLAY_ID)

        frontmost = self._workspace.frontmostApplication()
        app_name = frontmost.localizedName() if frontmost is not None else None
        bundle_id = frontmost.bundleIdentifier() if frontmost is not None else None
        return CaptureMetadata(
            app_name=app_name or UNKNOWN_APP,
            window_title=self._focused_window_title(),
            bundle_id=bundle_id,
            display_id=MAIN_DISPLAY_ID,
        )
