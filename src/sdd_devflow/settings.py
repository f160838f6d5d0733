"""User settings: optional YAML file overriding catalog defaults."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from sdd_devflow.onboarding.presets import (
    AI_TOOLS,
    AUTONOMY_LEVELS,
    BRANCHING_STRATEGIES,
    DEFAULT_BACKEND_PORT,
    DEFAULT_FRONTEND_PORT,
    INIT_AUTONOMY_LEVEL,
    default_entry,
)

logger = logging.getLogger(__name__)

ENV_VAR = "SDD_DEVFLOW_CONFIG"
LOCAL_FILE = ".sdd-devflow.yml"
USER_FILE = Path("~/.config/sdd-devflow/config.yml")


@dataclass(frozen=True)
class Settings:
    """Defaults applied by the wizards and by ``--yes``."""

    ai_tools: str = default_entry(AI_TOOLS).key
    autonomy_level: int = default_entry(AUTONOMY_LEVELS).level
    init_autonomy_level: int = INIT_AUTONOMY_LEVEL
    branching: str = default_entry(BRANCHING_STRATEGIES).key
    backend_port: int = DEFAULT_BACKEND_PORT
    frontend_port: int = DEFAULT_FRONTEND_PORT


def find_settings_file(explicit: Path | None = None, cwd: Path | None = None) -> Path | None:
    """Return the first settings file that applies, or ``None``.

    Lookup order: *explicit*, ``$SDD_DEVFLOW_CONFIG``, ``./.sdd-devflow.yml``,
    ``~/.config/sdd-devflow/config.yml``.  An explicit path is returned even
    if it does not exist so the caller can report it.
    """
    if explicit is not None:
        return explicit
    env_path = os.environ.get(ENV_VAR)
    if env_path:
        return Path(env_path).expanduser()
    local = (cwd or Path.cwd()) / LOCAL_FILE
    if local.is_file():
        return local
    user = USER_FILE.expanduser()
    if user.is_file():
        return user
    return None


def _choice(data: dict[str, Any], key: str, valid: set[str], default: str) -> str:
    if key not in data:
        return default
    value = str(data[key])
    if value not in valid:
        logger.warning("Invalid %s '%s' in settings, using '%s'", key, value, default)
        return default
    return value


def _level(data: dict[str, Any], key: str, default: int) -> int:
    if key not in data:
        return default
    value = data[key]
    valid = {entry.level for entry in AUTONOMY_LEVELS}
    if isinstance(value, bool) or not isinstance(value, int) or value not in valid:
        logger.warning("Invalid %s '%s' in settings, using %d", key, value, default)
        return default
    return value


def _port(data: dict[str, Any], key: str, default: int) -> int:
    if key not in data:
        return default
    value = data[key]
    if isinstance(value, bool) or not isinstance(value, int) or not 0 < value < 65536:
        logger.warning("Invalid %s '%s' in settings, using %d", key, value, default)
        return default
    return value


def load_settings(path: Path | None) -> Settings:
    """Load settings from *path*.

    Falls back to defaults for a missing file, unreadable YAML, or a
    non-mapping document.  Invalid values fall back per key; unknown keys
    are ignored.
    """
    defaults = Settings()
    if path is None or not path.is_file():
        if path is not None:
            logger.warning("Settings file not found: %s", path)
        return defaults

    try:
        with path.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except (OSError, UnicodeDecodeError, yaml.YAMLError):
        logger.warning("Failed to read %s, using default settings", path)
        return defaults

    if not isinstance(data, dict):
        return defaults

    logger.debug("Loaded settings from %s", path)
    return Settings(
        ai_tools=_choice(data, "ai_tools", {e.key for e in AI_TOOLS}, defaults.ai_tools),
        autonomy_level=_level(data, "autonomy_level", defaults.autonomy_level),
        init_autonomy_level=_level(data, "init_autonomy_level", defaults.init_autonomy_level),
        branching=_choice(
            data, "branching", {e.key for e in BRANCHING_STRATEGIES}, defaults.branching
        ),
        backend_port=_port(data, "backend_port", defaults.backend_port),
        frontend_port=_port(data, "frontend_port", defaults.frontend_port),
    )
