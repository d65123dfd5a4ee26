"""
Configuration loading.

Settings are layered, later layers winning:

1. Model defaults (``settings.py``)
2. A YAML file
3. ``UI_EXPLORER__{SECTION}__{KEY}`` environment variables, e.g.
   ``UI_EXPLORER__BUDGET__MAX_TOTAL_STEPS=200``
"""

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from ui_explorer.config.settings import Settings
from ui_explorer.core.exceptions import ConfigurationError

ENV_PREFIX = "UI_EXPLORER"

CONFIG_SEARCH_PATHS = (
    Path("config.yaml"),
    Path("config") / "config.yaml",
    Path.home() / ".ui_explorer" / "config.yaml",
)

_TRUE = {"true", "yes", "on"}
_FALSE = {"false", "no", "off"}
_NULL = {"none", "null", ""}

_cached: Settings | None = None


def _merge(base: dict[str, Any], layer: dict[str, Any]) -> dict[str, Any]:
    """Recursively overlay ``layer`` on a copy of ``base``."""
    merged = dict(base)
    for key, value in layer.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = _merge(current, value)
        else:
            merged[key] = value
    return merged


def _coerce(raw: str) -> Any:
    """Turn an environment string into bool, None, int, float or str."""
    lowered = raw.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    if lowered in _NULL:
        return None
    for cast in (int, float):
        try:
            return cast(raw)
        except ValueError:
            continue
    return raw


def _env_layer(prefix: str) -> dict[str, Any]:
    """
    Collect ``{prefix}__SECTION__KEY`` variables into a nested dict.

    Variables naming only a section (no key) are ignored.
    """
    marker = f"{prefix}__"
    layer: dict[str, Any] = {}

    for name, raw in os.environ.items():
        if not name.startswith(marker):
            continue
        *sections, key = name[len(marker):].lower().split("__")
        if not sections:
            continue
        target = layer
        for section in sections:
            target = target.setdefault(section, {})
        target[key] = _coerce(raw)

    return layer


def _yaml_layer(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigurationError(
            f"Invalid YAML in configuration file: {e}",
            details={"path": str(path)},
        ) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Configuration file must contain a mapping, got: {type(data).__name__}",
            details={"path": str(path)},
        )
    return data


def load_config(
    config_path: Path | str | None = None,
    env_prefix: str = ENV_PREFIX,
) -> Settings:
    """
    Build validated settings from defaults, an optional file and the environment.

    Args:
        config_path: YAML file to read; defaults only when None
        env_prefix: Prefix of override variables

    Returns:
        Validated Settings

    Raises:
        FileNotFoundError: ``config_path`` was given but does not exist
        ConfigurationError: Bad YAML, a non-mapping file or invalid values
    """
    data: dict[str, Any] = {}
    if config_path is not None:
        data = _yaml_layer(Path(config_path))
    data = _merge(data, _env_layer(env_prefix))

    try:
        return Settings(**data)
    except ValidationError as e:
        raise ConfigurationError(
            "Invalid configuration",
            details={"errors": e.error_count(), "first": e.errors()[0]["msg"]},
        ) from e


def get_default_config_path() -> Path | None:
    """First existing ``config.yaml`` among the usual locations, if any."""
    return next((p for p in CONFIG_SEARCH_PATHS if p.exists()), None)


def get_settings(
    config_path: Path | str | None = None,
    reload: bool = False,
) -> Settings:
    """
    Process-wide settings, loaded on first use.

    ``config_path`` only matters on the first call or with ``reload``.
    """
    global _cached
    if _cached is None or reload:
        _cached = load_config(config_path or get_default_config_path())
    return _cached


def reset_settings() -> None:
    global _cached
    _cached = None
