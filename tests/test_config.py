"""Tests for Settings (environment) and CaptureConfig (config.json)."""

import json

import pytest
from pydantic import ValidationError as PydanticValidationError

from screentext.shared.config import CaptureConfig, Settings
from screentext.shared.errors import ConfigurationError


class TestSettings:
    def test_defaults(self, monkeypatch, tmp_path):
        monkeypatch.setenv("SCREENTEXT_DATA_DIR", str(tmp_path / "data"))
        for name in ("SCREENTEXT_HOST", "SCREENTEXT_PORT", "SCREENTEXT_SERVER_BACKEND", "SCREENTEXT_DEBUG"):
            monkeypatch.delenv(name, raising=False)

        settings = Settings()

        assert settings.host == "127.0.0.1"
        assert settings.port == 41733
        assert settings.server_backend == "socket"
        assert settings.debug is False
        assert settings.retention_check_interval == 3600

    def test_paths_live_under_data_dir(self, monkeypatch, tmp_path):
        monkeypatch.setenv("SCREENTEXT_DATA_DIR", str(tmp_path / "data"))

        settings = Settings()

        assert settings.db_path == settings.data_dir / "screentext.db"
        assert settings.config_path == settings.data_dir / "config.json"
        assert settings.logs_path == settings.data_dir / "logs"
        assert settings.frame_buffer_path == settings.data_dir / "frame_buffer"

    def test_directories_created_on_init(self, monkeypatch, tmp_path):
        monkeypatch.setenv("SCREENTEXT_DATA_DIR", str(tmp_path / "fresh"))

        settings = Settings()

        assert settings.data_dir.is_dir()
        assert settings.logs_path.is_dir()
        assert settings.frame_buffer_path.is_dir()

    def test_env_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv("SCREENTEXT_DATA_DIR", str(tmp_path))
        monkeypatch.setenv("SCREENTEXT_PORT", "50123")
        monkeypatch.setenv("SCREENTEXT_SERVER_BACKEND", "Flask")
        monkeypatch.setenv("SCREENTEXT_DEBUG", "true")

        settings = Settings()

        assert settings.port == 50123
        assert settings.server_backend == "flask"
        assert settings.debug is True

    def test_invalid_backend_rejected(self, monkeypatch, tmp_path):
        monkeypatch.setenv("SCREENTEXT_DATA_DIR", str(tmp_path))
        monkeypatch.setenv("SCREENTEXT_SERVER_BACKEND", "gopher")

        with pytest.raises(PydanticValidationError):
            Settings()

    def test_load_capture_config_creates_document(self, monkeypatch, tmp_path):
        monkeypatch.setenv("SCREENTEXT_DATA_DIR", str(tmp_path))
        settings = Settings()

        config = settings.load_capture_config()

        assert settings.config_path.exists()
        assert config == CaptureConfig()


class TestCaptureConfigDefaults:
    def test_documented_defaults(self):
        config = CaptureConfig()

        assert config.retention_days == 14
        assert config.max_db_size_mb == 200
        assert config.idle_gap_seconds == 30
        assert config.active_gap_seconds == 10
        assert config.min_capture_interval_ms == 200
        assert config.ocr_enabled is False
        assert config.minimum_accessibility_chars == 12
        assert config.duplicate_window_seconds == 2
        assert config.frame_buffer_enabled is True
        assert config.frame_buffer_interval_seconds == 5
        assert config.frame_buffer_retention_seconds == 120
        assert config.frame_buffer_max_frames == 60
        assert config.ignored_apps == []

    def test_max_db_size_bytes(self):
        assert CaptureConfig(max_db_size_mb=64).max_db_size_bytes == 64 * 1024 * 1024


class TestCaptureConfigPersistence:
    def test_load_or_create_writes_defaults(self, tmp_path):
        path = tmp_path / "config.json"

        config = CaptureConfig.load_or_create(path)

        assert config == CaptureConfig()
        on_disk = json.loads(path.read_text(encoding="utf-8"))
        assert on_disk["retention_days"] == 14
        assert list(on_disk) == sorted(on_disk)

    def test_legacy_document_gets_frame_buffer_defaults(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(
            json.dumps({"retention_days": 30, "max_db_size_mb": 500, "idle_gap_seconds": 60, "ocr_enabled": True}),
            encoding="utf-8",
        )

        config = CaptureConfig.load_or_create(path)

        assert config.retention_days == 30
        assert config.max_db_size_mb == 500
        assert config.ocr_enabled is True
        assert config.frame_buffer_enabled is True
        assert config.frame_buffer_interval_seconds == 5
        assert config.frame_buffer_retention_seconds == 120
        assert config.frame_buffer_max_frames == 60

    def test_unknown_keys_are_ignored(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"retention_days": 3, "launch_at_login": True}), encoding="utf-8")

        assert CaptureConfig.load_or_create(path).retention_days == 3

    def test_save_then_load(self, tmp_path):
        path = tmp_path / "config.json"
        config = CaptureConfig(retention_days=7, ignored_apps=["1Password", "com.apple.keychainaccess"])

        config.save(path)

        assert CaptureConfig.load_or_create(path) == config
        assert not (tmp_path / "config.json.tmp").exists()

    def test_invalid_json_raises(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{not json", encoding="utf-8")

        with pytest.raises(ConfigurationError):
            CaptureConfig.load_or_create(path)

    def test_out_of_range_value_raises(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"max_db_size_mb": 10}), encoding="utf-8")

        with pytest.raises(ConfigurationError):
            CaptureConfig.load_or_create(path)


class TestCaptureConfigSetValue:
    def test_set_integer(self):
        config = CaptureConfig()

        config.set_value("retention_days", " 30 ")

        assert config.retention_days == 30

    @pytest.mark.parametrize(
        "key, raw",
        [
            ("retention_days", "0"),
            ("max_db_size_mb", "49"),
            ("idle_gap_seconds", "4"),
            ("min_capture_interval_ms", "99"),
            ("frame_buffer_retention_seconds", "9"),
            ("duplicate_window_seconds", "-1"),
            ("active_gap_seconds", "ten"),
        ],
    )
    def test_invalid_integers_rejected(self, key, raw):
        config = CaptureConfig()

        with pytest.raises(ConfigurationError):
            config.set_value(key, raw)

        assert getattr(config, key) == getattr(CaptureConfig(), key)

    def test_minimums_are_accepted(self):
        config = CaptureConfig()

        config.set_value("max_db_size_mb", "50")
        config.set_value("duplicate_window_seconds", "0")

        assert config.max_db_size_mb == 50
        assert config.duplicate_window_seconds == 0

    @pytest.mark.parametrize("raw, expected", [("true", True), ("YES", True), ("1", True), ("off", False), ("0", False)])
    def test_set_boolean(self, raw, expected):
        config = CaptureConfig()

        config.set_value("ocr_enabled", raw)

        assert config.ocr_enabled is expected

    def test_invalid_boolean_rejected(self):
        with pytest.raises(ConfigurationError):
            CaptureConfig().set_value("frame_buffer_enabled", "maybe")

    def test_set_ignored_apps(self):
        config = CaptureConfig()

        config.set_value("ignored_apps", "1Password, Messages,, ")

        assert config.ignored_apps == ["1Password", "Messages"]

    def test_unknown_key_rejected(self):
        with pytest.raises(ConfigurationError):
            CaptureConfig().set_value("launch_at_login", "true")
