"""Rolling buffer of compressed screen snapshots.

The directory is owned exclusively by ``FrameBufferStore``. Listing and
pruning are re-derived from filesystem metadata on every call, so frames
removed by hand simply disappear from the next scan.
"""

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional

from PIL import Image

from screentext.shared.image_utils import downscale_image, encode_jpeg, grab_primary_screen

logger = logging.getLogger(__name__)

FRAME_SUFFIX = ".jpg"


@dataclass
class FrameEntry:
    path: Path
    modified_at: float


class FrameBufferStore:
    def __init__(
        self,
        frames_dir: Path,
        retention_seconds: int,
        max_frames: int,
        max_dimension: int = 1280,
        jpeg_quality: int = 45,
        grabber: Callable[[], Optional[Image.Image]] = grab_primary_screen,
        clock: Callable[[], float] = time.time,
    ):
        self.frames_dir = Path(frames_dir)
        self.retention_seconds = retention_seconds
        self.max_frames = max_frames
        self.max_dimension = max_dimension
        self.jpeg_quality = jpeg_quality
        self.grabber = grabber
        self.clock = clock

    def capture_frame(self) -> Optional[Path]:
        """Grab, downscale, compress and write one frame, then prune.

        Returns None when capture is denied or encoding fails. Only a failure
        to create the frame directory is raised.
        """
        self.frames_dir.mkdir(parents=True, exist_ok=True)

        try:
            image = self.grabber()
        except Exception as e:
            logger.debug(f"Frame grab failed: {e}")
            return None
        if image is None:
            return None

        try:
            scaled = downscale_image(image, self.max_dimension)
            payload = encode_jpeg(scaled, self.jpeg_quality)
        except (OSError, ValueError) as e:
            logger.debug(f"Frame encoding failed: {e}")
            return None

        path = self._next_frame_path()
        try:
            path.write_bytes(payload)
        except OSError as e:
            logger.debug(f"Frame write failed for {path}: {e}")
            return None

        self.prune()
        return path

    def _next_frame_path(self) -> Path:
        stamp = int(self.clock() * 1000)
        path = self.frames_dir / f"frame-{stamp}{FRAME_SUFFIX}"
        # Two captures within one millisecond get distinct names
        while path.exists():
            stamp += 1
            path = self.frames_dir / f"frame-{stamp}{FRAME_SUFFIX}"
        return path

    def _frame_entries(self) -> List[FrameEntry]:
        if not self.frames_dir.is_dir():
            return []

        entries: List[FrameEntry] = []
        for path in self.frames_dir.iterdir():
            if path.name.startswith(".") or path.suffix.lower() != FRAME_SUFFIX:
                continue
            try:
                if not path.is_file():
                    continue
                entries.append(FrameEntry(path=path, modified_at=path.stat().st_mtime))
            except OSError:
                # Removed between listing and stat
                continue
        return entries

    def recent_frames(self, within_seconds: int, limit: int) -> List[Path]:
        """Frames modified within ``within_seconds``, newest first."""
        if limit <= 0:
            return []

        now = self.clock()
        entries = [e for e in self._frame_entries() if now - e.modified_at <= within_seconds]
        entries.sort(key=lambda e: e.modified_at, reverse=True)
        return [e.path for e in entries[:limit]]

    def _remove(self, entry: FrameEntry) -> bool:
        try:
            entry.path.unlink()
            return True
        except FileNotFoundError:
            return True
        except OSError as e:
            logger.debug(f"Could not delete frame {entry.path}: {e}")
            return False

    def prune(self) -> None:
        """Drop frames past the retention age, then the oldest beyond the cap."""
        cutoff = self.clock() - self.retention_seconds
        entries = sorted(self._frame_entries(), key=lambda e: e.modified_at, reverse=True)

        survivors: List[FrameEntry] = []
        for entry in entries:
            if entry.modified_at < cutoff:
                if not self._remove(entry):
                    survivors.append(entry)
            else:
                survivors.append(entry)

        for entry in survivors[self.max_frames:]:
            self._remove(entry)
