"""Configuration tests."""

import json
import os
from pathlib import Path

import pytest
from pydantic import ValidationError

from storyweaver.config import (
    DEFAULT_APP_DIR,
    DEFAULT_CONFIG,
    DEFAULT_ENDPOINT,
    LANGUAGES,
    LEVELS,
    AppConfig,
    ConfigManager,
    Settings,
    language_display,
    load_settings,
    tts_locale,
)
from storyweaver.errors import ConfigError


class TestDefaults:
    """Test default values and static tables."""

    def test_default_config(self):
        assert DEFAULT_CONFIG == AppConfig(
            language="russian", level="beginner", auto_translate=True, daily_goal=1, storage="sqlite"
        )

    def test_daily_goal_positive(self):
        with pytest.raises(ValidationError):
            AppConfig(daily_goal=0)

    def test_storage_choices(self):
        with pytest.raises(ValidationError):
            AppConfig(storage="postgres")

    def test_tables(self):
        assert set(LANGUAGES) == {"russian", "urdu", "english"}
        assert [info.max_words for info in LEVELS.values()] == [150, 300, 500]
        assert tts_locale("russian") == "ru-RU"
        assert tts_locale("urdu") == "ur-IN"
        assert tts_locale("klingon") == "en-US"
        assert language_display("english") == "🇺🇸 English"
        assert language_display("klingon") == "Klingon"


class TestSettings:
    """Test environment settings."""

    def test_defaults(self):
        settings = Settings.from_env()
        assert settings.app_dir == DEFAULT_APP_DIR
        assert settings.endpoint == DEFAULT_ENDPOINT
        assert settings.timeout == 90.0
        assert settings.max_retries == 2

    def test_environment_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv("STORYWEAVER_HOME", str(tmp_path))
        monkeypatch.setenv("OLLAMA_ENDPOINT", "http://gpu-box:11434/api/chat")
        monkeypatch.setenv("STORYWEAVER_MODEL", "llama3:8b")
        monkeypatch.setenv("STORYWEAVER_TIMEOUT", "30")
        monkeypatch.setenv("STORYWEAVER_MAX_RETRIES", "4")

        settings = Settings.from_env()
        assert settings.app_dir == tmp_path
        assert settings.endpoint == "http://gpu-box:11434/api/chat"
        assert settings.model == "llama3:8b"
        assert settings.timeout == 30.0
        assert settings.max_retries == 4
        assert settings.config_file == tmp_path / "config" / "app_config.json"
        assert settings.db_file == tmp_path / "stories.db"
        assert settings.log_file == tmp_path / "app.log"

    def test_invalid_number(self, monkeypatch):
        monkeypatch.setenv("STORYWEAVER_TIMEOUT", "soon")
        with pytest.raises(ConfigError):
            Settings.from_env()

    def test_load_settings_app_dir(self, tmp_path):
        assert load_settings(tmp_path).sessions_dir == tmp_path / "sessions"


class TestConfigManager:
    """Test loading and saving the config file."""

    def test_creates_defaults(self, config_manager):
        config = config_manager.load()
        assert config == DEFAULT_CONFIG
        with open(config_manager.config_file, encoding="utf-8") as f:
            assert json.load(f) == DEFAULT_CONFIG.model_dump()

    def test_defaults_identical_when_absent(self, tmp_path):
        first = ConfigManager(tmp_path / "a" / "app_config.json").load()
        second = ConfigManager(tmp_path / "b" / "app_config.json").load()
        assert first == second == DEFAULT_CONFIG

    def test_missing_keys_filled(self, config_manager):
        config_manager.config_file.parent.mkdir(parents=True)
        config_manager.config_file.write_text('{"language": "urdu"}', encoding="utf-8")
        config = config_manager.load()
        assert config.language == "urdu"
        assert config.level == "beginner"
        assert config.daily_goal == 1

    def test_corrupt_file_falls_back(self, config_manager, caplog):
        config_manager.config_file.parent.mkdir(parents=True)
        config_manager.config_file.write_text("{not json", encoding="utf-8")
        assert config_manager.load() == DEFAULT_CONFIG
        assert "using defaults" in caplog.text

    def test_invalid_values_fall_back(self, config_manager):
        config_manager.config_file.parent.mkdir(parents=True)
        config_manager.config_file.write_text('{"daily_goal": -3}', encoding="utf-8")
        assert config_manager.load() == DEFAULT_CONFIG

    def test_update_persists(self, config_manager):
        config = config_manager.load()
        updated = config_manager.update(config, level="advanced")
        assert updated.level == "advanced"
        assert config.level == "beginner"
        assert ConfigManager(config_manager.config_file).load().level == "advanced"

    def test_update_validates(self, config_manager):
        config = config_manager.load()
        with pytest.raises(ValidationError):
            config_manager.update(config, daily_goal=0)
        assert config_manager.load().daily_goal == 1

    def test_save_leaves_no_temp_files(self, config_manager):
        config_manager.save(AppConfig(language="english"))
        config_manager.save(AppConfig(language="urdu"))
        assert [p.name for p in config_manager.config_file.parent.iterdir()] == ["app_config.json"]

    @pytest.mark.skipif(os.name != "posix" or os.geteuid() == 0, reason="needs POSIX permissions as non-root")
    def test_unwritable_directory(self, tmp_path):
        locked = tmp_path / "locked"
        locked.mkdir()
        locked.chmod(0o500)
        try:
            with pytest.raises(ConfigError):
                ConfigManager(locked / "config" / "app_config.json").load()
        finally:
            locked.chmod(0o700)

    def test_file_as_directory(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("", encoding="utf-8")
        with pytest.raises(ConfigError):
            ConfigManager(Path(blocker) / "app_config.json").load()
