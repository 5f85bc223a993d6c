from __future__ import annotations

import json
import logging
import sys
from dataclasses import dataclass
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Optional

DEFAULT_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


@dataclass(frozen=True)
class LogConfig:
    level: str = "INFO"
    path: Optional[Path] = None
    max_bytes: int = 10 * 1024 * 1024
    backup_count: int = 3


def _jsonable(value: Any) -> Any:
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_jsonable(item) for item in value]
    if isinstance(value, dict):
        return {str(key): _jsonable(item) for key, item in value.items()}
    return str(value)


def format_event(event: str, **fields: Any) -> str:
    payload: dict[str, Any] = {"event": event}
    exc = fields.pop("exc", None)
    for key, value in fields.items():
        payload[key] = _jsonable(value)
    if exc is not None:
        payload["error"] = str(exc)
        payload["error_type"] = type(exc).__name__
    return json.dumps(payload, ensure_ascii=False)


def log_event(logger: logging.Logger, level: int, event: str, **fields: Any) -> None:
    """Emit one structured log line; ``exc`` is rendered as error fields."""
    if not logger.isEnabledFor(level):
        return
    logger.log(level, format_event(event, **fields))


def setup_rotating_logger(name: str, config: LogConfig) -> logging.Logger:
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, config.level.upper(), logging.INFO))
    if getattr(logger, "_llmcord_configured", False):
        return logger

    formatter = logging.Formatter(DEFAULT_LOG_FORMAT)
    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)

    if config.path is not None:
        config.path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            config.path,
            maxBytes=config.max_bytes,
            backupCount=config.backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.propagate = False
    logger._llmcord_configured = True  # type: ignore[attr-defined]
    return logger
