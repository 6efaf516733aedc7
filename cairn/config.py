"""
Config system - Typed configuration with layered sources.

Merge precedence (later overrides earlier):
    defaults < .env file < environment variables < manual overrides

Environment keys are the upper-cased field names with a prefix, e.g.
``CAIRN_PORT=4000`` or ``CAIRN_TWITTER_AUTH_ENABLED=true``.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import dotenv_values


class ConfigError(Exception):
    """Raised when configuration validation fails."""
    pass


_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


@dataclass(frozen=True)
class CairnConfig:
    """Settings consumed by the site, the server and the adapters."""

    name: str = "Test Project"
    port: int = 3000
    static_route: str = "/static"
    static_path: str = "./static"

    twitter_auth_enabled: bool = False

    cloudinary_cloud_name: Optional[str] = None
    cloudinary_api_key: Optional[str] = None
    cloudinary_api_secret: Optional[str] = None

    cookie_secret: str = "qwerty"
    cookie_secure: bool = False
    session_ttl_days: int = 30

    database_url: str = "sqlite:///cairn.db"
    admin_path: str = "/admin"
    enable_reset_route: bool = True

    @property
    def cloudinary(self) -> Dict[str, Optional[str]]:
        """Cloudinary credentials as adapter keyword arguments."""
        return {
            "cloud_name": self.cloudinary_cloud_name,
            "api_key": self.cloudinary_api_key,
            "api_secret": self.cloudinary_api_secret,
        }

    def with_overrides(self, **overrides: Any) -> "CairnConfig":
        return replace(self, **ConfigLoader._coerce_all(overrides))


class ConfigLoader:
    """
    Loads and merges configuration from multiple sources.

    Example:
        >>> config = ConfigLoader.load(env_file=".env", overrides={"port": 4000})
        >>> config.port
        4000
    """

    def __init__(self, env_prefix: str = "CAIRN_"):
        self.env_prefix = env_prefix
        self.config_data: Dict[str, Any] = {}

    @classmethod
    def load(
        cls,
        env_file: Optional[str] = ".env",
        env_prefix: str = "CAIRN_",
        overrides: Optional[Dict[str, Any]] = None,
        environ: Optional[Dict[str, str]] = None,
    ) -> CairnConfig:
        """
        Build a CairnConfig from .env, environment and overrides.

        Args:
            env_file: Path to .env file (skipped if missing or None)
            env_prefix: Prefix for environment variables
            overrides: Manual overrides (highest precedence)
            environ: Environment mapping (defaults to os.environ)

        Returns:
            Frozen CairnConfig

        Raises:
            ConfigError: If a value cannot be coerced to its field type
        """
        loader = cls(env_prefix=env_prefix)

        if env_file and Path(env_file).exists():
            loader._merge_prefixed(dotenv_values(env_file))

        loader._merge_prefixed(os.environ if environ is None else environ)

        if overrides:
            loader.config_data.update(overrides)

        return CairnConfig(**cls._coerce_all(loader.config_data))

    def _merge_prefixed(self, source: Dict[str, Optional[str]]) -> None:
        known = {f.name for f in fields(CairnConfig)}
        for key, value in source.items():
            if not key.startswith(self.env_prefix) or value is None:
                continue
            name = key[len(self.env_prefix):].lower()
            if name in known:
                self.config_data[name] = value

    @staticmethod
    def _coerce_all(data: Dict[str, Any]) -> Dict[str, Any]:
        types = {f.name: f.type for f in fields(CairnConfig)}
        coerced = {}
        for name, value in data.items():
            if name not in types:
                raise ConfigError(f"Unknown config key: {name}")
            coerced[name] = ConfigLoader._coerce(name, types[name], value)
        return coerced

    @staticmethod
    def _coerce(name: str, type_name: str, value: Any) -> Any:
        # Field types are strings under postponed annotations
        if not isinstance(value, str):
            return value
        if type_name == "bool":
            lowered = value.strip().lower()
            if lowered in _TRUE:
                return True
            if lowered in _FALSE:
                return False
            raise ConfigError(f"{name}: expected a boolean, got {value!r}")
        if type_name == "int":
            try:
                return int(value)
            except ValueError:
                raise ConfigError(f"{name}: expected an integer, got {value!r}") from None
        if type_name == "Optional[str]":
            return value or None
        return value
