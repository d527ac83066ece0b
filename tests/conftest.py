import os
import sys
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest


_PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(_PROJECT_ROOT))

_DEFAULT_TEST_DATA_DIR = tempfile.mkdtemp(prefix="screentext_test_data_")
os.environ.setdefault("SCREENTEXT_DATA_DIR", _DEFAULT_TEST_DATA_DIR)
os.environ.setdefault("SCREENTEXT_LOG_TO_FILE", "false")

BASE_TIME = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def store(tmp_path):
    from screentext.server.database import SQLStore

    return SQLStore(tmp_path / "screentext.db")


@pytest.fixture
def make_record():
    """Factory for unsaved CaptureRecords with sensible defaults."""
    from screentext.shared.hashing import sha256_hex
    from screentext.shared.models import CaptureRecord, CaptureTrigger, TextSource

    def _make(text="hello world", offset_seconds=0.0, app_name="Terminal", **overrides):
        fields = dict(
            timestamp=BASE_TIME + timedelta(seconds=offset_seconds),
            app_name=app_name,
            window_title="main",
            bundle_id="com.example.app",
            source=TextSource.ACCESSIBILITY,
            trigger=CaptureTrigger.MANUAL,
            display_id="main",
            text_hash=sha256_hex(text),
            text_length=len(text),
            text_content=text,
        )
        fields.update(overrides)
        return CaptureRecord(**fields)

    return _make


class FakeClock:
    """Manually advanced clock returning UTC datetimes."""

    def __init__(self, start: datetime = BASE_TIME):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current = self.current + timedelta(seconds=seconds)


@pytest.fixture
def fake_clock():
    return FakeClock()
