"""Service start-up: configuration loading, logger and clock setup."""

import logging
import os
from datetime import timedelta
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import dotenv_values

from .logs import LoggerConfig, new_logger
from .settings import Config
from .timer import CachedTimer

DEFAULT_ENV = "local"
DEFAULT_CONFIG_DIR = "config"

_TRUE = {"1", "t", "true", "yes", "y", "on"}


def _coerce(text: str, current: Any) -> Any:
    if isinstance(current, bool):
        return text.strip().lower() in _TRUE
    if isinstance(current, int):
        return int(text)
    if isinstance(current, float):
        return float(text)
    if isinstance(current, list):
        return text.split()
    return text


def _set_path(data: dict[str, Any], path: list[str], text: str) -> None:
    node = data
    for part in path[:-1]:
        child = node.get(part)
        if not isinstance(child, dict):
            child = {}
            node[part] = child
        node = child
    leaf = path[-1]
    node[leaf] = _coerce(text, node[leaf]) if leaf in node else text


def _leaf_paths(data: dict[str, Any], prefix: tuple[str, ...] = ()):
    for key, value in data.items():
        path = prefix + (str(key),)
        if isinstance(value, dict):
            yield from _leaf_paths(value, path)
        else:
            yield path


def load_config(env: Optional[str] = None, config_dir: str = DEFAULT_CONFIG_DIR) -> Config:
    """Read ``<config_dir>/<env>.yaml``, merge a ``.env`` file and environment overrides.

    The environment name defaults to GO_ENV, then to "local". A key such as
    server.port is overridden by an environment variable named SERVER.PORT.
    """
    env = env or os.environ.get("GO_ENV") or DEFAULT_ENV
    config_file = Path(config_dir) / f"{env}.yaml"
    data = yaml.safe_load(config_file.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Failed to read config file: {config_file} is not a mapping")

    env_file = Path(config_dir).parent / ".env"
    if env_file.is_file():
        for key, value in dotenv_values(env_file).items():
            if value is not None:
                _set_path(data, key.lower().split("."), value)

    for path in list(_leaf_paths(data)):
        override = os.environ.get(".".join(path).upper())
        if override is not None:
            _set_path(data, list(path), override)

    config = Config.from_mapping(data)
    print(f"Loaded configuration from: {config_file}")
    return config


def setup_logger(config: Config) -> logging.Logger:
    """Create the application logger from the logger settings."""
    settings = config.logger
    return new_logger(
        LoggerConfig(
            level=settings.log_level,
            filename=settings.file_log_name,
            max_size=settings.max_size,
            max_backups=settings.max_backups,
            max_age=settings.max_age,
            compress=settings.compress,
        )
    )


def setup_timers() -> tuple[CachedTimer, CachedTimer]:
    """Start the 10 millisecond and 1 second cached clocks."""
    return CachedTimer(timedelta(milliseconds=10)), CachedTimer(timedelta(seconds=1))