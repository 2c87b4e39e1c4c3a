"""Error records and the package exception type.

Collaborator failures never escape the session coordinator.  They are
captured as :class:`ErrorRecord` instances, logged with structured context
and handed to the event sink.  :class:`ZonebeatError` is reserved for
problems the caller has to fix (bad configuration, unreadable traces).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, MutableMapping, Optional

__all__ = [
    "ErrorRecord",
    "ZonebeatError",
    "build_error_record",
    "log_error_record",
]


_CATEGORY_STATUS_CODES: Mapping[str, int] = {
    "runtime": 1,
    "usage": 2,
    "io": 3,
    "config": 4,
}

_DEFAULT_CATEGORY = "runtime"
_DEFAULT_LOGGER_NAME = "zonebeat.errors"


def _normalise_context(context: Optional[Mapping[str, Any]]) -> Mapping[str, Any]:
    if not context:
        return {}
    payload: MutableMapping[str, Any] = {}
    for key, value in context.items():
        if isinstance(value, (str, int, float, bool)) or value is None:
            payload[key] = value
        else:
            payload[key] = str(value)
    return dict(payload)


@dataclass(frozen=True, slots=True)
class ErrorRecord:
    """A collaborator failure converted into an event-sink record.

    ``operation`` names the failing call (``heart_rate.start_session``,
    ``playback.resume`` ...) and ``category`` groups it:
    ``sensor_start``, ``sensor_stop``, ``playback`` or ``summary`` (the
    workout summary could not be fetched).
    """

    category: str
    operation: str
    message: str
    context: Mapping[str, Any] = field(default_factory=dict)

    @property
    def event(self) -> str:
        return "session.error"

    def as_dict(self) -> Mapping[str, Any]:
        return {
            "event": self.event,
            "category": self.category,
            "operation": self.operation,
            "message": self.message,
            "context": dict(self.context),
        }


def build_error_record(
    category: str,
    operation: str,
    error: BaseException,
    *,
    context: Optional[Mapping[str, Any]] = None,
) -> ErrorRecord:
    """Describe ``error`` raised by ``operation`` as an :class:`ErrorRecord`."""

    details = dict(context or {})
    details.setdefault("error_type", type(error).__name__)
    message = str(error) or type(error).__name__
    return ErrorRecord(
        category=category,
        operation=operation,
        message=message,
        context=_normalise_context(details),
    )


def log_error_record(
    record: ErrorRecord,
    *,
    logger: Optional[logging.Logger] = None,
    exc_info: Optional[BaseException] = None,
) -> None:
    """Emit ``record`` through ``logger.warning`` with structured context."""

    target = logger or logging.getLogger(_DEFAULT_LOGGER_NAME)
    target.warning(
        "%s failed: %s",
        record.operation,
        record.message,
        extra={
            "event": record.event,
            "category": record.category,
            "operation": record.operation,
            "context": dict(record.context),
        },
        exc_info=exc_info,
    )


class ZonebeatError(RuntimeError):
    """Error raised for invalid configuration or unreadable inputs."""

    __slots__ = ("category", "status_code", "context", "logged")

    def __init__(
        self,
        message: str,
        *,
        category: str = _DEFAULT_CATEGORY,
        status_code: Optional[int] = None,
        context: Optional[Mapping[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.category = category or _DEFAULT_CATEGORY
        self.status_code = (
            status_code
            if status_code is not None
            else _CATEGORY_STATUS_CODES.get(
                self.category, _CATEGORY_STATUS_CODES[_DEFAULT_CATEGORY]
            )
        )
        self.context = dict(_normalise_context(context))
        self.logged = False
