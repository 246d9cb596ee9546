from __future__ import annotations

import json

from movieshelf.core.config import DEFAULT_CONFIG, ConfigManager
from movieshelf.runtime import runtime_config


def test_defaults_written_on_first_load(config):
    assert config.config_path.exists()
    assert config.get("sync.debounce_ms") == 400
    assert config.get("sync.remove_batch_size") == 80
    assert config.get("database.busy_timeout_ms") == 30000
    assert config.get("library.paths") == []
    assert config.get("missing.key", "fallback") == "fallback"


def test_saved_values_merge_over_defaults(tmp_path):
    config_dir = tmp_path / "cfg"
    config_dir.mkdir()
    (config_dir / "config.json").write_text(
        json.dumps({"sync": {"debounce_ms": 100}, "extra": True}), encoding="utf-8"
    )

    manager = ConfigManager(config_dir=config_dir)
    assert manager.load()

    assert manager.get("sync.debounce_ms") == 100
    assert manager.get("sync.add_batch_size") == 15
    assert manager.get("extra") is True


def test_invalid_file_falls_back_to_defaults(tmp_path):
    (tmp_path / "config.json").write_text("{not json", encoding="utf-8")

    manager = ConfigManager(config_dir=tmp_path)

    assert manager.load() is False
    assert manager.get_all() == DEFAULT_CONFIG


def test_set_persists(config):
    config.set("logging.level", "DEBUG")

    reloaded = ConfigManager(config_dir=config.config_dir)
    assert reloaded.get("logging.level") == "DEBUG"


def test_reset_single_key(config):
    config.set("sync.watch_depth", 7)
    config.reset("sync.watch_depth")

    assert config.get("sync.watch_depth") == 3


def test_data_roots_are_ordered_and_unique(config, tmp_path):
    first, second = tmp_path / "a", tmp_path / "b"

    assert config.add_data_root(first)
    assert config.add_data_root(second)
    assert not config.add_data_root(str(first) + "/")

    assert config.get_data_roots() == [str(first), str(second)]

    assert config.remove_data_root(first)
    assert not config.remove_data_root(first)
    assert config.get_data_roots() == [str(second)]


def test_home_override(monkeypatch, tmp_path):
    monkeypatch.setenv(runtime_config.HOME_ENV_VAR, str(tmp_path / "home"))
    runtime_config.reset_runtime_config()
    try:
        assert runtime_config.get_data_dir() == tmp_path / "home"
        assert runtime_config.get_config_dir() == tmp_path / "home" / "config"
        assert runtime_config.get_database_dir() == tmp_path / "home" / "database"
        assert runtime_config.get_logs_dir() == tmp_path / "home" / "logs"
    finally:
        runtime_config.reset_runtime_config()
