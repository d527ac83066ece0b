"""Data models for ScreenText using Pydantic."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, field_validator

UNKNOWN_APP = "Unknown"


class TextSource(str, Enum):
    ACCESSIBILITY = "accessibility"
    OCR = "ocr"
    SYNTHETIC = "synthetic"


class CaptureTrigger(str, Enum):
    APP_SWITCH = "app_switch"
    FOCUS_CHANGE = "focus_change"
    CLICK = "click"
    TYPING_PAUSE = "typing_pause"
    SCROLL_STOP = "scroll_stop"
    CLIPBOARD = "clipboard"
    IDLE = "idle"
    MANUAL = "manual"


class CaptureMetadata(BaseModel):
    """Foreground window metadata attached to an extraction."""

    model_config = ConfigDict(frozen=True)

    app_name: str = UNKNOWN_APP
    window_title: str | None = None
    bundle_id: str | None = None
    display_id: str | None = None

    @field_validator("app_name", mode="before")
    @classmethod
    def default_app_name(cls, v):
        if v is None or not str(v).strip():
            return UNKNOWN_APP
        return v


class ExtractedText(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str
    source: TextSource
    metadata: CaptureMetadata = CaptureMetadata()


class CaptureRecord(BaseModel):
    """One persisted observation.

    ``id`` and ``created_at`` are assigned by the store on insert; a record
    is never modified afterwards.
    """

    model_config = ConfigDict(frozen=True)

    id: int | None = None
    timestamp: datetime
    app_name: str = UNKNOWN_APP
    window_title: str | None = None
    bundle_id: str | None = None
    source: TextSource
    trigger: CaptureTrigger
    display_id: str | None = None
    text_hash: str
    text_length: int
    text_content: str
    created_at: datetime | None = None

    @field_validator("app_name", mode="before")
    @classmethod
    def default_app_name(cls, v):
        if v is None or not str(v).strip():
            return UNKNOWN_APP
        return v


class SearchResult(BaseModel):
    id: int
    timestamp: datetime
    app_name: str
    window_title: str | None = None
    bundle_id: str | None = None
    source: TextSource
    trigger: CaptureTrigger
    snippet: str


class StoreStatus(BaseModel):
    record_count: int
    last_capture_at: datetime | None = None
    database_bytes: int


class OutcomeKind(str, Enum):
    STORED = "stored"
    SKIPPED_DUPLICATE = "skipped_duplicate"
    SKIPPED_NO_TEXT = "skipped_no_text"


class CaptureOutcome(BaseModel):
    kind: OutcomeKind
    record: CaptureRecord | None = None

    @classmethod
    def stored(cls, record: CaptureRecord) -> "CaptureOutcome":
        return cls(kind=OutcomeKind.STORED, record=record)

    @classmethod
    def skipped_duplicate(cls) -> "CaptureOutcome":
        return cls(kind=OutcomeKind.SKIPPED_DUPLICATE)

    @classmethod
    def skipped_no_text(cls) -> "CaptureOutcome":
        return cls(kind=OutcomeKind.SKIPPED_NO_TEXT)


class PermissionSnapshot(BaseModel):
    accessibility_granted: bool = False
    screen_recording_granted: bool = False


class ScreenRecordingProbe(BaseModel):
    granted: bool = False
    width: int = 0
    height: int = 0
    byte_count: int = 0
    sample_hash: str | None = None


class FrameOCRSearchHit(BaseModel):
    timestamp: datetime
    frame_path: str
    snippet: str
