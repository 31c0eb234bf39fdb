from __future__ import annotations

import asyncio
import json
from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from valkys.core.config import ConfigManager, UISettings, ValkysSettings, apply_overrides
from valkys.utils.errors import ConfigurationError


def test_missing_file_yields_defaults(tmp_path: Path) -> None:
    manager = ConfigManager(tmp_path / "absent.yml")
    settings = asyncio.run(manager.load())
    assert settings.redis.host == "localhost"
    assert settings.redis.port == 6379
    assert settings.redis.timeout == 5000
    assert settings.redis.pool_size == 10
    assert settings.ui.refresh_interval == 1000
    assert settings.ui.max_keys == 1000
    assert settings.ui.batch_size == 50


def test_load_yaml_from_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config_path = tmp_path / "config.yml"
    config_path.write_text("redis:\n  host: cache.internal\n  db: 3\nui:\n  show_ttl: false\n", encoding="utf-8")
    monkeypatch.setenv("VALKYS_CONFIG", str(config_path))
    settings = asyncio.run(ConfigManager().load())
    assert settings.redis.host == "cache.internal"
    assert settings.redis.db == 3
    assert settings.redis.url == "redis://cache.internal:6379/3"
    assert settings.ui.show_ttl is False


def test_load_toml(tmp_path: Path) -> None:
    config_path = tmp_path / "config.toml"
    config_path.write_text('[redis]\nport = 6380\n\n[ui]\ntheme = "nord"\n', encoding="utf-8")
    settings = asyncio.run(ConfigManager(config_path).load())
    assert settings.redis.port == 6380
    assert settings.ui.theme == "nord"


def test_invalid_values_raise_configuration_error(tmp_path: Path) -> None:
    config_path = tmp_path / "config.yml"
    config_path.write_text("ui:\n  refresh_interval: 10\n", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        asyncio.run(ConfigManager(config_path).load())


def test_unsupported_suffix(tmp_path: Path) -> None:
    config_path = tmp_path / "config.ini"
    config_path.write_text("[redis]\n", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        asyncio.run(ConfigManager(config_path).load())


def test_save_writes_yaml(tmp_path: Path) -> None:
    config_path = tmp_path / "nested" / "config.yml"
    manager = ConfigManager(config_path)
    settings = apply_overrides(ValkysSettings(), host="db.local", password="s3cret")
    written = asyncio.run(manager.save(settings))
    assert written == config_path
    data = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    assert data["redis"]["host"] == "db.local"
    assert not (tmp_path / "nested" / "config.tmp").exists()
    assert asyncio.run(manager.get_settings()).redis.host == "db.local"


def test_save_keeps_json_format(tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text('{"redis": {"port": 6380}}', encoding="utf-8")
    manager = ConfigManager(config_path)
    settings = apply_overrides(asyncio.run(manager.load()), host="db.local")
    asyncio.run(manager.save(settings))
    data = json.loads(config_path.read_text(encoding="utf-8"))
    assert data["redis"]["host"] == "db.local"
    assert data["redis"]["port"] == 6380
    assert asyncio.run(ConfigManager(config_path).load()).redis.host == "db.local"


def test_save_refuses_toml_and_leaves_file_intact(tmp_path: Path) -> None:
    config_path = tmp_path / "config.toml"
    original = "[redis]\nport = 6380\n"
    config_path.write_text(original, encoding="utf-8")
    manager = ConfigManager(config_path)
    settings = asyncio.run(manager.load())
    with pytest.raises(ConfigurationError):
        asyncio.run(manager.save(settings))
    assert config_path.read_text(encoding="utf-8") == original
    assert asyncio.run(ConfigManager(config_path).load()).redis.port == 6380


def test_reset_returns_defaults(tmp_path: Path) -> None:
    manager = ConfigManager(tmp_path / "config.yml")
    assert manager.reset() == ValkysSettings()


def test_overrides_only_touch_given_values() -> None:
    base = ValkysSettings()
    assert apply_overrides(base) is base
    updated = apply_overrides(base, port=7000, db=2)
    assert (updated.redis.host, updated.redis.port, updated.redis.db) == ("localhost", 7000, 2)
    with pytest.raises(ConfigurationError):
        apply_overrides(base, port=70000)


def test_masked_hides_password() -> None:
    settings = apply_overrides(ValkysSettings(), password="hunter2")
    assert settings.masked()["redis"]["password"] == "***"
    assert "hunter2" not in repr(settings.redis)


def test_refresh_interval_lower_bound() -> None:
    with pytest.raises(ValidationError):
        UISettings(refresh_interval=50)
