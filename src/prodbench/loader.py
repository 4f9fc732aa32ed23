from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from prodbench.errors import ConfigurationError
from prodbench.models.config import BenchmarkConfig


def load_config_file(path: Path) -> dict[str, Any]:
    try:
        with path.open() as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigurationError(f"Failed to read config file: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping")
    return data


def merge_settings(base: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    """Overlay ``overrides`` on ``base``, merging nested sections key by key."""
    merged = dict(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_settings(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(path: Path | None = None, overrides: dict[str, Any] | None = None) -> BenchmarkConfig:
    data = load_config_file(path) if path is not None else {}
    if overrides:
        data = merge_settings(data, overrides)
    return BenchmarkConfig.from_dict(data)
