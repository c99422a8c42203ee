"""Analysis settings: defaults, ``config.toml`` overrides and env toggles."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, FrozenSet, Optional

import toml

from .errors import InvalidInputError

logger = logging.getLogger(__name__)

BASE_DIR = Path(os.environ.get("CODEANALYSIS_HOME", str(Path.home() / ".codeanalysis"))).expanduser()
CONFIG_FILE = BASE_DIR / "config.toml"
CONFIG_SECTION = "analysis"

SKIP_DIRS: FrozenSet[str] = frozenset({
    "node_modules", ".git", "dist", "build", "out", "coverage",
    ".next", ".nuxt", ".svelte-kit", ".cache", ".turbo", ".vercel",
    "__pycache__", ".venv", "venv",
})

DEFAULT_PATH_ALIASES: Dict[str, str] = {"@/": "src/"}

_TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class AnalysisConfig:
    """Thresholds and resolution settings for one analysis run."""

    max_complexity: int = 10
    max_parameters: int = 5
    max_function_lines: int = 50
    max_class_lines: int = 300
    tolerant_parsing: bool = False
    # 0 lists every cycle.
    max_cycles: int = 0
    path_aliases: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_PATH_ALIASES))
    skip_dirs: FrozenSet[str] = SKIP_DIRS

    def with_overrides(self, overrides: Dict[str, Any]) -> "AnalysisConfig":
        known = {f.name: f for f in fields(self)}
        values: Dict[str, Any] = {}
        for key, value in overrides.items():
            if key not in known:
                logger.warning("Ignoring unknown analysis setting '%s'", key)
                continue
            values[key] = _coerce(key, value, getattr(self, key))
        return replace(self, **values)


def _coerce(key: str, value: Any, current: Any) -> Any:
    if isinstance(current, bool):
        if isinstance(value, str):
            return value.strip().lower() in _TRUE_VALUES
        return bool(value)
    if isinstance(current, int):
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise InvalidInputError(f"Setting '{key}' must be a non-negative integer, got {value!r}")
        return value
    if isinstance(current, dict):
        if not isinstance(value, dict):
            raise InvalidInputError(f"Setting '{key}' must be a table")
        return {str(k): str(v) for k, v in value.items()}
    if isinstance(current, frozenset):
        if not isinstance(value, (list, tuple, set, frozenset)):
            raise InvalidInputError(f"Setting '{key}' must be a list")
        return frozenset(str(v) for v in value)
    return value


def load_config(path: Optional[Path] = None) -> AnalysisConfig:
    """Build the effective configuration.

    Reads the ``[analysis]`` table of *path* (or ``$CODEANALYSIS_HOME/config.toml``
    when it exists), then applies the ``CODEANALYSIS_TOLERANT_PARSING``
    environment toggle.
    """
    config = AnalysisConfig()
    config_path = path if path is not None else CONFIG_FILE

    if config_path.exists():
        try:
            payload = toml.load(str(config_path))
        except toml.TomlDecodeError as exc:
            raise InvalidInputError(f"Invalid config file {config_path}: {exc}") from exc
        section = payload.get(CONFIG_SECTION, {})
        if not isinstance(section, dict):
            raise InvalidInputError(f"[{CONFIG_SECTION}] in {config_path} must be a table")
        config = config.with_overrides(section)
        logger.debug("Loaded analysis settings from %s", config_path)
    elif path is not None:
        raise InvalidInputError(f"Config file not found: {path}")

    env_tolerant = os.environ.get("CODEANALYSIS_TOLERANT_PARSING")
    if env_tolerant is not None:
        config = replace(config, tolerant_parsing=env_tolerant.strip().lower() in _TRUE_VALUES)

    return config
