"""Structured logging configuration shared by the library and the CLI.

Library modules log through ``logging.getLogger(__name__)`` and attach an
``event`` key plus context fields through ``extra``.  :class:`JsonFormatter`
keeps those fields when rendering, so a replayed session can be inspected as
JSON lines.
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Mapping as ABCMapping
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping, TextIO

__all__ = ["JsonFormatter", "setup_logging"]


_ROOT_LOGGER = "zonebeat"
_HANDLER_MARKER = "_zonebeat_handler"
_TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# Attributes present on every ``LogRecord``; anything else came from ``extra``.
_RESERVED_ATTRIBUTES = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__
) | {"message", "asctime", "taskName"}


def _json_safe(value: Any) -> Any:
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    if isinstance(value, ABCMapping):
        return {str(key): _json_safe(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_json_safe(item) for item in value]
    return str(value)


class JsonFormatter(logging.Formatter):
    """Render log records as single-line JSON documents."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRIBUTES or key.startswith("_"):
                continue
            payload[key] = _json_safe(value)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, sort_keys=True)


def _resolve_level(value: Any) -> int:
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        level = logging.getLevelName(value.strip().upper())
        if isinstance(level, int):
            return level
    return logging.INFO


def _build_handler(output: Any) -> logging.Handler:
    target = str(output or "stderr").strip()
    lowered = target.lower()
    if lowered == "stdout":
        stream: TextIO = sys.stdout
        return logging.StreamHandler(stream)
    if lowered == "stderr":
        return logging.StreamHandler(sys.stderr)
    path = Path(target).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    return logging.FileHandler(path, encoding="utf8")


def setup_logging(config: Mapping[str, Any] | None = None) -> logging.Logger:
    """Configure the ``zonebeat`` logger from the ``logging`` config table.

    Parameters
    ----------
    config:
        Mapping with an optional ``logging`` table holding ``level``
        (``debug``/``info``/...), ``output`` (``stdout``, ``stderr`` or a
        file path) and ``format`` (``json`` or ``text``).  Calling the
        function again replaces the handler installed by a previous call.
    """

    section: Mapping[str, Any] = {}
    if config:
        candidate = config.get("logging")
        if isinstance(candidate, ABCMapping):
            section = candidate

    logger = logging.getLogger(_ROOT_LOGGER)
    for handler in list(logger.handlers):
        if getattr(handler, _HANDLER_MARKER, False):
            logger.removeHandler(handler)
            handler.close()

    handler = _build_handler(section.get("output"))
    if str(section.get("format", "json")).strip().lower() == "text":
        handler.setFormatter(logging.Formatter(_TEXT_FORMAT))
    else:
        handler.setFormatter(JsonFormatter())
    setattr(handler, _HANDLER_MARKER, True)

    logger.addHandler(handler)
    logger.setLevel(_resolve_level(section.get("level", "info")))
    logger.propagate = False
    return logger
