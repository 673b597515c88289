"""Tests for configuration loading."""

import json
import os
import stat
from pathlib import Path

from breakout.config.loader import load_config, save_config
from breakout.config.schema import Config


class TestConfig:
    """Test defaults, file loading and environment overrides."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("BREAKOUT_STORAGE__STORAGE_DIR", raising=False)
        config = Config()

        assert config.storage_dir is None
        assert config.logging.level == "WARNING"
        assert config.signals.install_handlers is True
        assert config.rooms.default_metadata == {}

    def test_load_camel_case(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({
            "storage": {"storageDir": str(tmp_path / "rooms")},
            "logging": {"level": "DEBUG"},
            "signals": {"installHandlers": False},
        }))

        config = load_config(path)

        assert config.storage_dir == tmp_path / "rooms"
        assert config.logging.level == "DEBUG"
        assert config.signals.install_handlers is False

    def test_legacy_top_level_storage_dir(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"storageDir": "~/rooms"}))

        config = load_config(path)

        assert config.storage_dir == Path("~/rooms").expanduser()

    def test_invalid_file_falls_back_to_defaults(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{not json")

        config = load_config(path)

        assert config.logging.level == "WARNING"

    def test_save_is_owner_only(self, tmp_path):
        path = tmp_path / "nested" / "config.json"
        config = Config()
        config.logging.level = "INFO"

        save_config(config, path)

        assert stat.S_IMODE(os.stat(path).st_mode) == 0o600
        assert json.loads(path.read_text())["logging"]["level"] == "INFO"
        assert load_config(path).logging.level == "INFO"

    def test_loose_permissions_are_fixed(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{}")
        os.chmod(path, 0o644)

        load_config(path)

        assert stat.S_IMODE(os.stat(path).st_mode) == 0o600

    def test_env_override(self, monkeypatch, tmp_path):
        monkeypatch.setenv("BREAKOUT_STORAGE__STORAGE_DIR", str(tmp_path))

        assert Config().storage_dir == tmp_path
