"""Helper utilities for loading snapshot settings and configuring logging."""
from __future__ import annotations

import logging
import warnings
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from .errors import ConfigurationError
from .schema import SnapshotSettings

logger = logging.getLogger(__name__)

SETTINGS_ROOT_KEY = "snapio"


def parse_override_value(raw: str) -> Any:
    """Parse a CLI override value into a Python object."""

    text = raw.strip()
    lower = text.lower()
    if lower in {"true", "false"}:
        return lower == "true"
    if lower in {"none", "null"}:
        return None
    try:
        return int(text)
    except ValueError:
        try:
            return float(text)
        except ValueError:
            pass
    if (text.startswith('"') and text.endswith('"')) or (text.startswith("'") and text.endswith("'")):
        return text[1:-1]
    return text


def apply_overrides_dict(payload: Dict[str, Any], overrides: Sequence[str]) -> Dict[str, Any]:
    """Apply dotted-path ``key=value`` overrides to a settings dictionary."""

    if not overrides:
        return payload
    for item in overrides:
        key, sep, value_str = item.partition("=")
        if not sep:
            raise ConfigurationError(f"Invalid override '{item}'; expected path=value")
        path = key.strip()
        if path.startswith(SETTINGS_ROOT_KEY + "."):
            path = path[len(SETTINGS_ROOT_KEY) + 1 :]
        parts = [segment for segment in path.split(".") if segment]
        if not parts:
            raise ConfigurationError(f"Invalid override '{item}'; empty path")
        target: Any = payload
        for segment in parts[:-1]:
            if not isinstance(target, dict):
                raise ConfigurationError(f"Cannot traverse into non-mapping for override '{item}' at '{segment}'")
            if segment not in target or target[segment] is None:
                target[segment] = {}
            target = target[segment]
        if not isinstance(target, dict):
            raise ConfigurationError(f"Cannot set override '{item}'; target is not a mapping")
        target[parts[-1]] = parse_override_value(value_str)
    return payload


def load_settings(path: Optional[Path] = None, overrides: Optional[Sequence[str]] = None) -> SnapshotSettings:
    """Load :class:`SnapshotSettings` from a YAML file and/or overrides.

    The file may hold the settings at its root or under a top-level
    ``snapio:`` mapping (so a full run configuration can be passed).
    """

    data: Dict[str, Any] = {}
    if path is not None:
        from ruamel.yaml import YAML

        yaml = YAML(typ="safe")
        source_path = Path(path).resolve()
        try:
            with source_path.open("r", encoding="utf-8") as fh:
                loaded = yaml.load(fh)
        except OSError as exc:
            raise ConfigurationError(f"Unable to read settings file {source_path}: {exc}") from exc
        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            raise ConfigurationError(f"{source_path}: settings root must be a mapping")
        if isinstance(loaded.get(SETTINGS_ROOT_KEY), dict):
            loaded = loaded[SETTINGS_ROOT_KEY]
        elif SETTINGS_ROOT_KEY in loaded:
            loaded = {}
        data = dict(loaded)
        logger.debug("load_settings: read %d keys from %s", len(data), source_path)
    data = apply_overrides_dict(data, overrides or [])
    return SnapshotSettings(**data)


def configure_logging(level: int, suppress_warnings: bool = False) -> None:
    """Configure root logging and optionally silence Python warnings."""

    logging.basicConfig(level=level)
    root = logging.getLogger()
    root.setLevel(level)
    if suppress_warnings:
        warnings.filterwarnings("ignore")
    logging.captureWarnings(True)


__all__ = [
    "parse_override_value",
    "apply_overrides_dict",
    "load_settings",
    "configure_logging",
]
