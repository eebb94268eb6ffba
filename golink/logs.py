"""Logger setup writing JSON lines to a rotating file and readable lines to stdout."""

import gzip
import json
import logging
import os
import shutil
import sys
import time
import traceback
from dataclasses import dataclass
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

DEFAULT_LOG_DIR = "./storages/logs"
LOGGER_NAME = "golink"

_MEGABYTE = 1024 * 1024
_DEFAULT_MAX_SIZE_MB = 100
_SECONDS_PER_DAY = 24 * 60 * 60

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
    "panic": logging.CRITICAL,
    "fatal": logging.CRITICAL,
}
_LEVEL_NAMES = {
    logging.DEBUG: "DEBUG",
    logging.INFO: "INFO",
    logging.WARNING: "WARN",
    logging.ERROR: "ERROR",
    logging.CRITICAL: "FATAL",
}
_RESERVED = set(logging.LogRecord("", 0, "", 0, "", (), None).__dict__) | {"message", "asctime"}


@dataclass
class LoggerConfig:
    """Level and file rotation settings; sizes in megabytes, ages in days."""

    level: str = "info"
    filename: str = ""
    max_size: int = 0
    max_backups: int = 0
    max_age: int = 0
    compress: bool = False


def get_log_level(level: str) -> int:
    """Map a level name to a logging level; unknown names give INFO."""
    return _LEVELS.get(level, logging.INFO)


def _level_name(record: logging.LogRecord) -> str:
    return _LEVEL_NAMES.get(record.levelno, record.levelname)


def _timestamp(record: logging.LogRecord) -> str:
    moment = datetime.fromtimestamp(record.created, timezone.utc).astimezone()
    return moment.isoformat(timespec="milliseconds")


def _extras(record: logging.LogRecord) -> dict[str, Any]:
    return {key: value for key, value in record.__dict__.items() if key not in _RESERVED}


def _stacktrace(record: logging.LogRecord) -> str:
    if record.exc_info:
        return "".join(traceback.format_exception(*record.exc_info)).rstrip()
    return "".join(traceback.format_stack()).rstrip()


class _JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "level": _level_name(record),
            "timestamp": _timestamp(record),
            "caller": f"{record.filename}:{record.lineno}",
            "msg": record.getMessage(),
        }
        entry.update(_extras(record))
        if record.levelno >= logging.ERROR:
            entry["stacktrace"] = _stacktrace(record)
        return json.dumps(entry, default=str)


class _ConsoleFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        parts = [_timestamp(record), _level_name(record), f"{record.filename}:{record.lineno}", record.getMessage()]
        extras = _extras(record)
        if extras:
            parts.append(json.dumps(extras, default=str))
        line = "\t".join(parts)
        if record.levelno >= logging.ERROR:
            line += "\n" + _stacktrace(record)
        return line


class _RotatingFileHandler(RotatingFileHandler):
    """Rotates by size into timestamped backups, pruned by count and age."""

    def __init__(self, filename: str, max_bytes: int, max_backups: int, max_age_days: int, compress: bool) -> None:
        super().__init__(filename, maxBytes=max_bytes, encoding="utf-8")
        self._max_backups = max_backups
        self._max_age = max_age_days * _SECONDS_PER_DAY
        self._compress = compress

    def doRollover(self) -> None:
        if self.stream:
            self.stream.close()
            self.stream = None
        base = Path(self.baseFilename)
        if base.exists():
            stamp = datetime.now().strftime("%Y-%m-%dT%H-%M-%S.%f")[:-3]
            backup = base.with_name(f"{base.stem}-{stamp}{base.suffix}")
            os.replace(base, backup)
            if self._compress:
                with open(backup, "rb") as source, gzip.open(f"{backup}.gz", "wb") as target:
                    shutil.copyfileobj(source, target)
                backup.unlink()
        self._prune(base)
        if not self.delay:
            self.stream = self._open()

    def _prune(self, base: Path) -> None:
        backups = sorted(
            base.parent.glob(f"{base.stem}-*{base.suffix}*"),
            key=lambda path: path.stat().st_mtime,
            reverse=True,
        )
        now = time.time()
        for position, path in enumerate(backups):
            too_many = self._max_backups > 0 and position >= self._max_backups
            too_old = self._max_age > 0 and now - path.stat().st_mtime > self._max_age
            if too_many or too_old:
                path.unlink(missing_ok=True)


def _program_name() -> str:
    return Path(sys.argv[0]).stem or "golink"


def new_logger(config: LoggerConfig, log_dir: str = DEFAULT_LOG_DIR) -> logging.Logger:
    """Configure and return the application logger."""
    level = get_log_level(config.level)
    Path(log_dir).mkdir(parents=True, exist_ok=True)

    filename = config.filename or str(Path(log_dir) / f"{_program_name()}.log")
    Path(filename).parent.mkdir(parents=True, exist_ok=True)
    max_size = config.max_size if config.max_size > 0 else _DEFAULT_MAX_SIZE_MB

    file_handler = _RotatingFileHandler(
        filename, max_size * _MEGABYTE, config.max_backups, config.max_age, config.compress
    )
    file_handler.setFormatter(_JsonFormatter())
    file_handler.setLevel(level)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(_ConsoleFormatter())
    console_handler.setLevel(level)

    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(level)
    logger.propagate = False
    logger.addHandler(file_handler)
    logger.addHandler(console_handler)
    return logger