"""Configuration management for ScreenText using pydantic-settings.

Two layers:

- ``Settings``: process environment (data directory, bind address, debug),
  read from ``SCREENTEXT_*`` variables or a ``.env`` file.
- ``CaptureConfig``: the capture policy stored as ``config.json`` inside the
  data directory (retention, capture gaps, frame buffer, ignored apps).
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Any, ClassVar, Dict, List, Optional, Set, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic_settings import BaseSettings

from screentext.shared.errors import ConfigurationError


class Settings(BaseSettings):
    """Application settings with automatic directory creation.

    Settings can be configured via environment variables:
    - SCREENTEXT_DEBUG: Enable debug mode (verbose logging)
    - SCREENTEXT_DATA_DIR: Base directory for all data storage
    - SCREENTEXT_HOST: API bind address (loopback by default)
    - SCREENTEXT_PORT: API port
    - SCREENTEXT_SERVER_BACKEND: API listener (socket | flask)
    - SCREENTEXT_RETENTION_CHECK_INTERVAL: Seconds between retention passes
    - SCREENTEXT_LOG_TO_FILE: Also write logs under <data_dir>/logs
    """

    debug: bool = Field(default=False, alias="SCREENTEXT_DEBUG")
    data_dir: Path = Field(
        default_factory=lambda: Path.home() / ".screentext",
        alias="SCREENTEXT_DATA_DIR",
        description="Base directory for the record store, config, logs and frame buffer",
    )
    host: str = Field(default="127.0.0.1", alias="SCREENTEXT_HOST")
    port: int = Field(default=41733, alias="SCREENTEXT_PORT")
    server_backend: str = Field(
        default="socket",
        alias="SCREENTEXT_SERVER_BACKEND",
        description="API listener implementation: socket (raw HTTP/1.1) or flask (WSGI)",
    )
    retention_check_interval: int = Field(
        default=3600,
        alias="SCREENTEXT_RETENTION_CHECK_INTERVAL",
        description="Seconds between retention cleanup runs",
    )
    log_to_file: bool = Field(default=True, alias="SCREENTEXT_LOG_TO_FILE")

    @field_validator("data_dir", mode="before")
    @classmethod
    def expand_path(cls, v: Optional[Union[str, Path]]) -> Optional[Path]:
        if v is None:
            return None
        return Path(str(v)).expanduser().resolve()

    @field_validator("server_backend")
    @classmethod
    def validate_server_backend(cls, v: str) -> str:
        normalized = (v or "").strip().lower()
        if normalized not in {"socket", "flask"}:
            raise ValueError("SCREENTEXT_SERVER_BACKEND must be one of: socket, flask")
        return normalized

    model_config = {
        "env_prefix": "",
        "populate_by_name": True,
        "extra": "ignore",
        "env_file": ["screentext.env", ".env"],
        "env_file_encoding": "utf-8",
    }

    @property
    def db_path(self) -> Path:
        """Path to the SQLite record store."""
        return self.data_dir / "screentext.db"

    @property
    def config_path(self) -> Path:
        return self.data_dir / "config.json"

    @property
    def logs_path(self) -> Path:
        return self.data_dir / "logs"

    @property
    def frame_buffer_path(self) -> Path:
        """Directory owned by the frame buffer."""
        return self.data_dir / "frame_buffer"

    def ensure_directories(self) -> None:
        for directory in (self.data_dir, self.logs_path, self.frame_buffer_path):
            directory.mkdir(parents=True, exist_ok=True)

    def verify_writable(self) -> None:
        test_path = self.data_dir / ".write_test"
        test_path.write_bytes(b"ok")
        test_path.unlink(missing_ok=True)

    def load_capture_config(self) -> "CaptureConfig":
        return CaptureConfig.load_or_create(self.config_path)

    @model_validator(mode="after")
    def _ensure_dirs_on_init(self) -> "Settings":
        """Automatically create directories after settings initialization."""
        try:
            self.ensure_directories()
            self.verify_writable()
        except PermissionError:
            if not os.access(self.data_dir.parent, os.W_OK):
                self.data_dir = Path(tempfile.gettempdir()) / "screentext"
            self.ensure_directories()
            self.verify_writable()
        return self


def _parse_int(raw: str, minimum: int) -> int:
    try:
        value = int(raw.strip())
    except ValueError:
        raise ConfigurationError(f"Invalid value: {raw}") from None
    if value < minimum:
        raise ConfigurationError(f"Invalid value: {raw}")
    return value


def _parse_bool(raw: str) -> bool:
    normalized = raw.strip().lower()
    if normalized in {"true", "1", "yes", "on"}:
        return True
    if normalized in {"false", "0", "no", "off"}:
        return False
    raise ConfigurationError(f"Invalid value: {raw}")


class CaptureConfig(BaseModel):
    """Capture policy persisted as ``config.json``.

    Keys missing from an older document take their defaults, so upgrading a
    legacy file is a plain load.
    """

    model_config = ConfigDict(validate_assignment=True, extra="ignore")

    retention_days: int = Field(default=14, ge=1)
    max_db_size_mb: int = Field(default=200, ge=50)
    idle_gap_seconds: int = Field(default=30, ge=5)
    active_gap_seconds: int = Field(default=10, ge=1)
    min_capture_interval_ms: int = Field(default=200, ge=100)
    ocr_enabled: bool = False
    minimum_accessibility_chars: int = Field(default=12, ge=1)
    duplicate_window_seconds: int = Field(default=2, ge=0)
    frame_buffer_enabled: bool = True
    frame_buffer_interval_seconds: int = Field(default=5, ge=1)
    frame_buffer_retention_seconds: int = Field(default=120, ge=10)
    frame_buffer_max_frames: int = Field(default=60, ge=1)
    ignored_apps: List[str] = Field(default_factory=list)

    # key -> minimum for integer options
    INT_OPTIONS: ClassVar[Dict[str, int]] = {
        "retention_days": 1,
        "max_db_size_mb": 50,
        "idle_gap_seconds": 5,
        "active_gap_seconds": 1,
        "min_capture_interval_ms": 100,
        "minimum_accessibility_chars": 1,
        "duplicate_window_seconds": 0,
        "frame_buffer_interval_seconds": 1,
        "frame_buffer_retention_seconds": 10,
        "frame_buffer_max_frames": 1,
    }
    BOOL_OPTIONS: ClassVar[Set[str]] = {"ocr_enabled", "frame_buffer_enabled"}

    @property
    def max_db_size_bytes(self) -> int:
        return self.max_db_size_mb * 1024 * 1024

    @classmethod
    def load_or_create(cls, path: Path) -> "CaptureConfig":
        path = Path(path)
        if path.exists():
            try:
                data: Any = json.loads(path.read_text(encoding="utf-8"))
                return cls.model_validate(data)
            except (json.JSONDecodeError, PydanticValidationError) as e:
                raise ConfigurationError(f"Invalid config document {path}: {e}") from e

        config = cls()
        config.save(path)
        return config

    def save(self, path: Path) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(self.model_dump(), indent=2, sort_keys=True)
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        tmp_path.write_text(payload + "\n", encoding="utf-8")
        os.replace(tmp_path, path)

    def set_value(self, key: str, raw: str) -> None:
        """Parse ``raw`` and assign it to option ``key``."""
        if key in self.INT_OPTIONS:
            setattr(self, key, _parse_int(raw, self.INT_OPTIONS[key]))
        elif key in self.BOOL_OPTIONS:
            setattr(self, key, _parse_bool(raw))
        elif key == "ignored_apps":
            self.ignored_apps = [item.strip() for item in raw.split(",") if item.strip()]
        else:
            raise ConfigurationError(f"Unknown config key: {key}")


# Global settings instance - directories are created on import
settings = Settings()
