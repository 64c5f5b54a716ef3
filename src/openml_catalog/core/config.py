"""Runtime settings and constants.

Settings are resolved in three layers, later layers winning:
    1. Defaults defined in this module
    2. An optional YAML file with a top-level ``openml_catalog:`` mapping
    3. Environment variables (OPENML_API_URL, OPENML_API_KEY, OPENML_CACHE_DIR)

The cache root is always handed to ``ArtifactCache`` explicitly; nothing in
the package reads it from global state.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from .errors import ConfigError

# ============================================================================
# DEFAULTS
# ============================================================================

DEFAULT_API_URL = "https://www.openml.org/api/v1/json"
DEFAULT_CACHE_ROOT = Path("~/.cache/openml_catalog")
DEFAULT_TIMEOUT_SEC = 60.0
DOWNLOAD_CHUNK_SIZE = 1024 * 256

# Distinct-value ceiling used by the default auto-detection policy
DEFAULT_MAX_LEVELS = 10

# Environment overrides
ENV_API_URL = "OPENML_API_URL"
ENV_API_KEY = "OPENML_API_KEY"
ENV_CACHE_DIR = "OPENML_CACHE_DIR"

SETTINGS_SECTION = "openml_catalog"


@dataclass(frozen=True)
class Settings:
    """Resolved client settings.

    Attributes:
        api_url: Base URL of the catalog JSON API, without trailing slash.
        api_key: Opaque key appended to requests when set.
        cache_root: Directory holding downloaded artifacts.
        timeout_sec: Transport timeout for a single request.
        strict_decoding: Reject unknown fields in catalog responses.
        show_progress: Show a progress bar for artifact downloads.
    """

    api_url: str = DEFAULT_API_URL
    api_key: Optional[str] = None
    cache_root: Path = DEFAULT_CACHE_ROOT
    timeout_sec: float = DEFAULT_TIMEOUT_SEC
    strict_decoding: bool = True
    show_progress: bool = False

    def __post_init__(self) -> None:
        if not self.api_url:
            raise ConfigError("api_url must not be empty")
        if self.timeout_sec <= 0:
            raise ConfigError(f"timeout_sec must be positive, got {self.timeout_sec}")


def _coerce_value(name: str, value: Any) -> Any:
    if name == "cache_root":
        return Path(str(value)).expanduser()
    if name == "api_url":
        return str(value).rstrip("/")
    if name == "api_key":
        return str(value) if value not in (None, "") else None
    if name == "timeout_sec":
        try:
            return float(value)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"timeout_sec must be a number, got {value!r}") from e
    if name in ("strict_decoding", "show_progress"):
        if not isinstance(value, bool):
            raise ConfigError(f"{name} must be true or false, got {value!r}")
        return value
    return value


def _read_settings_file(path: Path) -> Dict[str, Any]:
    """Load the settings section from a YAML file."""
    if not path.exists():
        raise ConfigError(f"Settings file not found: {path}")
    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Settings file {path} must contain a mapping")
    section = data.get(SETTINGS_SECTION, {}) or {}
    if not isinstance(section, dict):
        raise ConfigError(f"'{SETTINGS_SECTION}' in {path} must be a mapping")
    known = {f.name for f in fields(Settings)}
    unknown = sorted(set(section) - known)
    if unknown:
        raise ConfigError(f"Unknown settings in {path}: {', '.join(unknown)}")
    return section


def load_settings(
    path: Optional[Path] = None, env: Optional[Mapping[str, str]] = None
) -> Settings:
    """Resolve settings from defaults, an optional YAML file and the environment.

    Args:
        path: Optional YAML settings file.
        env: Environment mapping; defaults to ``os.environ``.

    Returns:
        The resolved ``Settings``.

    Raises:
        ConfigError: If the file is missing, malformed or holds invalid values.

    Examples:
        >>> s = load_settings(env={"OPENML_API_KEY": "abc"})
        >>> s.api_key
        'abc'
    """
    env = os.environ if env is None else env
    values: Dict[str, Any] = {}
    if path is not None:
        values.update(_read_settings_file(Path(path)))
    if env.get(ENV_API_URL):
        values["api_url"] = env[ENV_API_URL]
    if env.get(ENV_API_KEY):
        values["api_key"] = env[ENV_API_KEY]
    if env.get(ENV_CACHE_DIR):
        values["cache_root"] = env[ENV_CACHE_DIR]

    coerced = {k: _coerce_value(k, v) for k, v in values.items()}
    settings = Settings()
    if coerced:
        settings = replace(settings, **coerced)
    return replace(settings, cache_root=Path(settings.cache_root).expanduser())


__all__ = [
    "DEFAULT_API_URL",
    "DEFAULT_CACHE_ROOT",
    "DEFAULT_TIMEOUT_SEC",
    "DEFAULT_MAX_LEVELS",
    "DOWNLOAD_CHUNK_SIZE",
    "Settings",
    "load_settings",
]
