"""Configuration management for tagsort."""

from __future__ import annotations

import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping

import yaml

from .exceptions import ConfigError
from .models import TagsortConfig
from .resolver import flatten_for_env, overrides_from_env, resolve_with_precedence

DEFAULT_CONFIG_PATH = Path("~/.tagsort/config.yaml")
_CONFIG_HEADER = (
    "# tagsort configuration file\n"
    "# Edit by hand or with `tagsort config set KEY --value VALUE`.\n"
)


class ConfigManager:
    """Read and write the YAML configuration file and resolve effective settings."""

    def __init__(
        self,
        config_path: Path | None = None,
        *,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self._config_path = (config_path or DEFAULT_CONFIG_PATH).expanduser()
        self._env = env if env is not None else os.environ

    @property
    def config_path(self) -> Path:
        return self._config_path

    def load(
        self,
        *,
        cli_overrides: Mapping[str, Any] | None = None,
        include_env: bool = True,
        ensure_file: bool = True,
    ) -> TagsortConfig:
        """Return the effective configuration.

        Args:
            cli_overrides: Highest-precedence overrides, typically from CLI flags.
            include_env: Whether ``TAGSORT__`` environment variables apply.
            ensure_file: Create the configuration file with defaults if missing.

        Raises:
            ConfigError: If the file cannot be parsed or values are invalid.
        """
        if ensure_file:
            self.ensure_exists()
        return resolve_with_precedence(
            defaults=TagsortConfig(),
            file_overrides=self.load_file_overrides(),
            env_overrides=overrides_from_env(self._env) if include_env else None,
            cli_overrides=cli_overrides,
        )

    def load_file_overrides(self) -> dict[str, Any]:
        """Return the raw mapping stored in the configuration file."""
        if not self._config_path.exists():
            return {}
        try:
            raw = yaml.safe_load(self._config_path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Failed to parse configuration file: {exc}") from exc
        if not isinstance(raw, dict):
            raise ConfigError("Configuration file must contain a mapping at the top level.")
        return raw

    def save(self, config: TagsortConfig | Mapping[str, Any]) -> None:
        """Write ``config`` to disk, replacing the previous contents."""
        if isinstance(config, TagsortConfig):
            data = config.model_dump(mode="python")
        else:
            data = dict(config)
        self._config_path.parent.mkdir(parents=True, exist_ok=True)
        stamp = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
        body = yaml.safe_dump(data, sort_keys=False)
        self._config_path.write_text(
            f"{_CONFIG_HEADER}# Last updated: {stamp}\n{body}", encoding="utf-8"
        )

    def ensure_exists(self) -> Path:
        """Create the configuration file with default values if it is missing."""
        if not self._config_path.exists():
            self.save(TagsortConfig())
        return self._config_path

    def read_text(self) -> str:
        if not self._config_path.exists():
            return ""
        return self._config_path.read_text(encoding="utf-8")


__all__ = [
    "ConfigError",
    "ConfigManager",
    "DEFAULT_CONFIG_PATH",
    "TagsortConfig",
    "flatten_for_env",
    "overrides_from_env",
    "resolve_with_precedence",
]
