from __future__ import annotations

import json
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from .config import LogConfig

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
_MAX_FIELD_CHARS = 500


def _coerce_field(value: Any) -> Any:
    if value is None or isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_coerce_field(item) for item in value]
    if isinstance(value, dict):
        return {str(key): _coerce_field(item) for key, item in value.items()}
    text = str(value)
    if len(text) > _MAX_FIELD_CHARS:
        return text[: _MAX_FIELD_CHARS - 3] + "..."
    return text


def log_event(
    logger: logging.Logger,
    level: int,
    event: str,
    *,
    exc: Optional[BaseException] = None,
    **fields: Any,
) -> None:
    """Emit one structured log line: ``{"event": ..., <fields>}``.

    When ``exc`` is given its type and message are recorded and the traceback
    is attached to the record.
    """
    if not logger.isEnabledFor(level):
        return
    payload: dict[str, Any] = {"event": event}
    for key, value in fields.items():
        payload[key] = _coerce_field(value)
    if exc is not None:
        payload["error_type"] = type(exc).__name__
        payload["error"] = _coerce_field(str(exc))
    try:
        message = json.dumps(payload, sort_keys=False, default=str)
    except (TypeError, ValueError):
        message = f"event={event} fields={fields!r}"
    exc_info = (type(exc), exc, exc.__traceback__) if exc is not None else None
    logger.log(level, message, exc_info=exc_info)


def setup_rotating_logger(name: str, log_config: "LogConfig") -> logging.Logger:
    logger = logging.getLogger(name)
    logger.setLevel(log_config.level)
    if getattr(logger, "_discord_bot_configured", False):
        return logger

    formatter = logging.Formatter(LOG_FORMAT)
    if log_config.console:
        stream_handler = logging.StreamHandler(sys.stderr)
        stream_handler.setFormatter(formatter)
        logger.addHandler(stream_handler)
    if log_config.path is not None:
        path = Path(log_config.path)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            path,
            maxBytes=log_config.max_bytes,
            backupCount=log_config.backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)
    logger.propagate = False
    logger._discord_bot_configured = True  # type: ignore[attr-defined]
    return logger
