"""Layered resolution of tagsort configuration sources."""

from __future__ import annotations

from collections.abc import Mapping as MappingABC
from copy import deepcopy
from typing import Any, Dict, Mapping

import yaml
from pydantic import ValidationError

from .exceptions import ConfigError
from .models import TagsortConfig

ENV_PREFIX = "TAGSORT__"


def resolve_with_precedence(
    *,
    defaults: TagsortConfig,
    file_overrides: Mapping[str, Any] | None = None,
    env_overrides: Mapping[str, Any] | None = None,
    cli_overrides: Mapping[str, Any] | None = None,
) -> TagsortConfig:
    """Layer overrides on top of ``defaults``: file, then environment, then CLI.

    Keys in any layer may be nested mappings or dotted paths such as
    ``transaction.force``.

    Raises:
        ConfigError: If a layer is malformed or the merged result fails validation.
    """
    merged: dict[str, Any] = defaults.model_dump(mode="python")
    layers = (("file", file_overrides), ("environment", env_overrides), ("cli", cli_overrides))
    for label, layer in layers:
        if layer is None:
            continue
        merged = _merge(merged, _expand(layer, label))

    try:
        return TagsortConfig.model_validate(merged)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration values: {exc}") from exc


def flatten_for_env(config: TagsortConfig) -> Dict[str, str]:
    """Render ``config`` as ``TAGSORT__SECTION__KEY`` environment assignments."""
    flat: Dict[str, str] = {}
    for section, values in config.model_dump(mode="python").items():
        for key, value in values.items():
            env_key = f"{ENV_PREFIX}{section.upper()}__{key.upper()}"
            if isinstance(value, (list, dict)):
                flat[env_key] = yaml.safe_dump(value, default_flow_style=True).strip()
            elif isinstance(value, bool):
                flat[env_key] = "true" if value else "false"
            else:
                flat[env_key] = "null" if value is None else str(value)
    return flat


def overrides_from_env(env: Mapping[str, str]) -> dict[str, Any]:
    """Collect ``TAGSORT__`` variables into a nested override mapping.

    Values are parsed as YAML scalars so ``true``/``[a, b]`` become booleans
    and lists; unparsable values are kept verbatim.
    """
    overrides: dict[str, Any] = {}
    for name, raw in env.items():
        if not name.startswith(ENV_PREFIX):
            continue
        segments = [segment.lower() for segment in name[len(ENV_PREFIX) :].split("__") if segment]
        if not segments:
            continue
        try:
            value = yaml.safe_load(raw)
        except yaml.YAMLError:
            value = raw
        _assign(overrides, segments, value, "environment")
    return overrides


def _expand(layer: Mapping[str, Any], label: str) -> dict[str, Any]:
    if not isinstance(layer, MappingABC):
        raise ConfigError(f"{label.capitalize()} overrides must be a mapping.")
    expanded: dict[str, Any] = {}
    for key, value in layer.items():
        if not isinstance(key, str):
            raise ConfigError(f"{label.capitalize()} override keys must be strings.")
        if isinstance(value, MappingABC):
            value = _expand(value, label)
        _assign(expanded, key.split("."), value, label)
    return expanded


def _assign(target: dict[str, Any], path: list[str], value: Any, label: str) -> None:
    node = target
    for segment in path[:-1]:
        child = node.setdefault(segment, {})
        if not isinstance(child, dict):
            raise ConfigError(
                f"{label.capitalize()} override for {'.'.join(path)} conflicts with existing value."
            )
        node = child
    leaf = path[-1]
    if isinstance(value, dict) and isinstance(node.get(leaf), dict):
        node[leaf] = _merge(node[leaf], value)
    else:
        node[leaf] = value


def _merge(base: Mapping[str, Any], overrides: Mapping[str, Any]) -> dict[str, Any]:
    merged = deepcopy(dict(base))
    for key, value in overrides.items():
        current = merged.get(key)
        if isinstance(value, MappingABC) and isinstance(current, MappingABC):
            merged[key] = _merge(current, value)
        else:
            merged[key] = deepcopy(value)
    return merged


__all__ = ["ENV_PREFIX", "flatten_for_env", "overrides_from_env", "resolve_with_precedence"]
