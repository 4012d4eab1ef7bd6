"""Structured JSON event log for the engine, its store and the HTTP adapter.

Events go to stderr and to `<OUT_DIR>/logs/engine.log.jsonl`. The handlers are
rebuilt whenever `settings.out_dir` changes, so a process that repoints its
output directory keeps one log per directory.
"""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from tempfile import gettempdir
from typing import Any

from pythonjsonlogger import jsonlogger

from .settings import settings

LOGGER_NAME = "promisex"
LOG_FILE_NAME = "engine.log.jsonl"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def _parse_level(name: str) -> int:
    level = logging.getLevelName(str(name or "").upper())
    return level if isinstance(level, int) else logging.INFO


def _writable_log_dir(out_dir: str) -> Path | None:
    for candidate in (
        Path(out_dir) / "logs",
        Path.cwd() / "out" / "logs",
        Path(gettempdir()) / LOGGER_NAME / "logs",
    ):
        try:
            candidate.mkdir(parents=True, exist_ok=True)
            probe = candidate / ".writetest"
            probe.touch(exist_ok=True)
            probe.unlink(missing_ok=True)
        except OSError:
            continue
        return candidate
    return None


def reset_logger() -> None:
    """Close and detach the handlers; the next `get_logger` call rebuilds them."""
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.__dict__.pop("_promisex_out_dir", None)


def get_logger() -> logging.Logger:
    logger = logging.getLogger(LOGGER_NAME)
    out_dir = str(settings.out_dir)
    if logger.__dict__.get("_promisex_out_dir") == out_dir:
        return logger

    reset_logger()
    logger.setLevel(_parse_level(settings.log_level))
    logger.propagate = False

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    log_dir = _writable_log_dir(out_dir)
    if log_dir is not None:
        handlers.append(logging.FileHandler(log_dir / LOG_FILE_NAME, encoding="utf-8"))

    formatter = jsonlogger.JsonFormatter(LOG_FORMAT)
    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    logger.__dict__["_promisex_out_dir"] = out_dir
    return logger


def _plain(value: Any) -> Any:
    # Service classes and grid rows are logged as their wire values.
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, tuple):
        return [_plain(v) for v in value]
    return value


def log_event(event: str, *, level: int = logging.INFO, **fields: Any) -> None:
    get_logger().log(level, event, extra={"event": event, **{k: _plain(v) for k, v in fields.items()}})
