"""Configuration management for valkys.

:class:`ConfigManager` loads the connection and UI settings from a YAML (or
TOML/JSON) document, validates them with Pydantic, and writes them back when
the operator saves from the Config view. A missing file is not an error: the
dashboard starts with defaults that point at ``localhost:6379``.
"""
from __future__ import annotations

import asyncio
import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from valkys.utils.errors import ConfigurationError
from valkys.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / ".valkys" / "config.yml"


class TLSSettings(BaseModel):
    """TLS material used when the server requires encrypted connections."""

    enabled: bool = False
    cert_file: str = ""
    key_file: str = ""
    ca_file: str = ""
    insecure_skip_verify: bool = False


class RedisSettings(BaseModel):
    """Connection settings for the data store."""

    host: str = "localhost"
    port: int = Field(default=6379, ge=1, le=65535)
    password: str = Field(default="", repr=False)
    db: int = Field(default=0, ge=0)
    timeout: int = Field(default=5000, description="Socket timeout in milliseconds")
    pool_size: int = Field(default=10, ge=1)
    tls: TLSSettings = Field(default_factory=TLSSettings)

    @property
    def url(self) -> str:
        scheme = "rediss" if self.tls.enabled else "redis"
        return f"{scheme}://{self.host}:{self.port}/{self.db}"


class UISettings(BaseModel):
    """Settings for the terminal UI."""

    theme: str = "default"
    refresh_interval: int = Field(default=1000, description="Header refresh cadence in milliseconds")
    max_keys: int = Field(default=1000, ge=1, le=10_000)
    show_memory: bool = True
    show_ttl: bool = True
    batch_size: int = Field(default=50, ge=1)
    monitor_interval: float = Field(default=2.0, gt=0)
    fetch_timeout: float = Field(default=2.0, gt=0)
    shutdown_timeout: float = Field(default=3.0, gt=0)

    @field_validator("refresh_interval")
    @classmethod
    def validate_refresh_interval(cls, value: int) -> int:
        if value < 100:
            raise ValueError("refresh_interval must be at least 100ms")
        return value


class ValkysSettings(BaseModel):
    """Root configuration schema."""

    redis: RedisSettings = Field(default_factory=RedisSettings)
    ui: UISettings = Field(default_factory=UISettings)

    def masked(self) -> Dict[str, Any]:
        """Return a plain mapping safe to display, with the password hidden."""

        data = self.model_dump()
        if data["redis"].get("password"):
            data["redis"]["password"] = "***"
        return data


class ConfigManager:
    """Load and persist the configuration document.

    The path comes from the constructor, then ``$VALKYS_CONFIG``, then
    ``~/.valkys/config.yml``. Saving writes the document back in its own
    format; TOML files are read-only.
    """

    def __init__(self, config_path: Optional[Path] = None) -> None:
        env_path = os.environ.get("VALKYS_CONFIG")
        self.config_path = config_path or (Path(env_path) if env_path else DEFAULT_CONFIG_PATH)
        self._settings: Optional[ValkysSettings] = None
        self._lock = asyncio.Lock()

    async def load(self) -> ValkysSettings:
        """Load configuration from disk and validate it."""

        async with self._lock:
            if not self.config_path.exists():
                logger.info("configuration file missing, using defaults", extra={"path": str(self.config_path)})
                self._settings = ValkysSettings()
                return self._settings
            logger.debug("loading configuration", extra={"path": str(self.config_path)})
            data = self._read_file(self.config_path)
            try:
                settings = ValkysSettings(**data)
            except ValidationError as exc:
                raise ConfigurationError(f"Invalid configuration in {self.config_path}: {exc}") from exc
            self._settings = settings
            return settings

    async def save(self, settings: ValkysSettings) -> Path:
        """Persist ``settings`` in the format of the configuration file and make them current."""

        suffix = self.config_path.suffix
        if suffix not in {".yml", ".yaml", ".json"}:
            raise ConfigurationError(
                f"Cannot save {self.config_path}: only .yml, .yaml and .json files can be written"
            )
        async with self._lock:
            try:
                self.config_path.parent.mkdir(parents=True, exist_ok=True)
                tmp = self.config_path.with_suffix(".tmp")
                with tmp.open("w", encoding="utf-8") as handle:
                    if suffix == ".json":
                        json.dump(settings.model_dump(mode="json"), handle, indent=2)
                    else:
                        yaml.safe_dump(settings.model_dump(mode="json"), handle, sort_keys=False)
                tmp.replace(self.config_path)
            except OSError as exc:
                raise ConfigurationError(f"Cannot write {self.config_path}: {exc}") from exc
            self._settings = settings
            logger.info("configuration saved", extra={"path": str(self.config_path)})
            return self.config_path

    def reset(self) -> ValkysSettings:
        """Return default settings without touching the file on disk."""

        self._settings = ValkysSettings()
        return self._settings

    async def get_settings(self) -> ValkysSettings:
        """Return the last loaded settings, loading them if necessary."""

        if self._settings is None:
            return await self.load()
        return self._settings

    @staticmethod
    def _read_file(path: Path) -> Dict[str, Any]:
        try:
            if path.suffix in {".yml", ".yaml"}:
                with path.open("r", encoding="utf-8") as handle:
                    data = yaml.safe_load(handle) or {}
            elif path.suffix == ".toml":
                import tomllib

                with path.open("rb") as handle:
                    data = tomllib.load(handle)
            elif path.suffix == ".json":
                with path.open("r", encoding="utf-8") as handle:
                    data = json.load(handle)
            else:
                raise ConfigurationError(f"Unsupported configuration format: {path.suffix}")
        except (OSError, yaml.YAMLError, ValueError) as exc:
            raise ConfigurationError(f"Cannot read {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigurationError(f"Configuration root in {path} must be a mapping")
        return data


def apply_overrides(
    settings: ValkysSettings,
    *,
    host: Optional[str] = None,
    port: Optional[int] = None,
    password: Optional[str] = None,
    db: Optional[int] = None,
) -> ValkysSettings:
    """Return a copy of ``settings`` with command line values applied."""

    updates: Dict[str, Any] = {}
    if host:
        updates["host"] = host
    if port:
        updates["port"] = port
    if password:
        updates["password"] = password
    if db is not None and db >= 0:
        updates["db"] = db
    if not updates:
        return settings
    try:
        redis = RedisSettings(**{**settings.redis.model_dump(), **updates})
    except ValidationError as exc:
        raise ConfigurationError(str(exc)) from exc
    return settings.model_copy(update={"redis": redis})


__all__ = [
    "ConfigManager",
    "DEFAULT_CONFIG_PATH",
    "RedisSettings",
    "TLSSettings",
    "UISettings",
    "ValkysSettings",
    "apply_overrides",
]
