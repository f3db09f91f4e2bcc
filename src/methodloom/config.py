# methodloom:domain=config
"""Project configuration: optional ``methodloom.yml`` at the project root."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

import yaml

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "methodloom.yml"

FAIL_ON_LEVELS: tuple[str, ...] = ("error", "warning", "info", "never")
OUTPUT_FORMATS: tuple[str, ...] = ("rich", "json", "porcelain", "markdown")
MODES: tuple[str, ...] = ("validate", "suggest")


@dataclass(frozen=True)
class MethodloomConfig:
    """Tool settings; every field has a built-in default."""

    playbook: str | None = None
    fail_on: str = "error"
    format: str | None = None
    mode: str = "suggest"
    log_level: str = "WARNING"


def _choice(data: dict[str, object], key: str, choices: tuple[str, ...], default: str) -> str:
    value = data.get(key)
    if value is None:
        return default
    text = str(value).lower()
    if text not in choices:
        logger.warning(
            "Ignoring invalid %s=%r in %s (expected one of %s)",
            key,
            value,
            CONFIG_FILENAME,
            ", ".join(choices),
        )
        return default
    return text


def load_config(project_root: Path) -> MethodloomConfig:
    """Load ``methodloom.yml`` from *project_root*.

    Falls back to defaults for a missing file, unreadable YAML, or invalid
    values.  Unknown keys are ignored.
    """
    config_path = project_root / CONFIG_FILENAME
    if not config_path.is_file():
        return MethodloomConfig()

    try:
        with config_path.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except (OSError, yaml.YAMLError):
        logger.warning("Failed to read %s, using defaults", CONFIG_FILENAME)
        return MethodloomConfig()

    if not isinstance(data, dict):
        return MethodloomConfig()

    defaults = MethodloomConfig()
    playbook = data.get("playbook")
    fmt = data.get("format")
    return MethodloomConfig(
        playbook=str(playbook) if playbook else None,
        fail_on=_choice(data, "fail_on", FAIL_ON_LEVELS, defaults.fail_on),
        format=_choice(data, "format", OUTPUT_FORMATS, "rich") if fmt is not None else None,
        mode=_choice(data, "mode", MODES, defaults.mode),
        log_level=str(data.get("log_level") or defaults.log_level).upper(),
    )
