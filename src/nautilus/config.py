"""Config file loading and auto-discovery for Nautilus.

Searches for ``nautilus.yaml`` in the current directory and parent
directories and parses it. Values in the file are defaults: explicit CLI
flags and the ``DATABASE_URL`` environment variable take precedence.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

import yaml

from nautilus.errors import ConfigError

CONFIG_FILENAME = "nautilus.yaml"
DEFAULT_LOG_LEVEL = "INFO"


@dataclass(frozen=True)
class NautilusConfig:
    """Parsed Nautilus project configuration."""

    config_path: Path | None = None
    database_url: str | None = None
    log_level: str = DEFAULT_LOG_LEVEL
    host: str | None = None
    port: int | None = None
    scheduler_enabled: bool = True


def find_config(start: Path | None = None) -> Path | None:
    """Walk from *start* (default ``cwd()``) up to the filesystem root.

    Returns the first ``nautilus.yaml`` found, or ``None``.
    """
    current = (start or Path.cwd()).resolve()
    while True:
        candidate = current / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            return None
        current = parent


def load_config(
    path: str | Path | None = None,
    *,
    auto_discover: bool = True,
) -> NautilusConfig:
    """Load a Nautilus config file.

    Resolution order:

    1. Explicit *path* (error if it doesn't exist).
    2. Auto-discover by walking parent directories.
    3. Return an empty ``NautilusConfig`` (all defaults).
    """
    config_path: Path | None = None

    if path is not None:
        config_path = Path(path).resolve()
        if not config_path.is_file():
            msg = f"Config file not found: {config_path}"
            raise FileNotFoundError(msg)
    elif auto_discover:
        config_path = find_config()

    if config_path is None:
        return NautilusConfig()

    return _parse_config(config_path)


def _parse_config(config_path: Path) -> NautilusConfig:
    """Read and parse a YAML config file."""
    text = config_path.read_text(encoding="utf-8")
    data = yaml.safe_load(text) or {}

    if not isinstance(data, dict):
        msg = f"Expected a YAML mapping in {config_path}, got {type(data).__name__}"
        raise ConfigError(msg)

    database_url = data.get("database_url")
    if database_url and database_url.startswith("sqlite:///"):
        # Relative sqlite paths are relative to the config file
        raw = database_url[len("sqlite:///"):]
        if not Path(raw).is_absolute():
            database_url = f"sqlite:///{(config_path.parent / raw).resolve()}"

    port = data.get("port")
    return NautilusConfig(
        config_path=config_path,
        database_url=database_url,
        log_level=str(data.get("log_level", DEFAULT_LOG_LEVEL)).upper(),
        host=data.get("host"),
        port=int(port) if port is not None else None,
        scheduler_enabled=bool(data.get("scheduler_enabled", True)),
    )


def resolve_database_url(
    explicit: str | None = None,
    cfg: NautilusConfig | None = None,
) -> str:
    """Return the database URL: CLI flag > ``DATABASE_URL`` > config file.

    Raises ``ConfigError`` when none of them is set.
    """
    url = explicit or os.environ.get("DATABASE_URL") or (cfg.database_url if cfg else None)
    if not url:
        msg = "DATABASE_URL is not set (use --database-url, the environment, or nautilus.yaml)"
        raise ConfigError(msg)
    return url
