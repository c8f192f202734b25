"""Logging helpers for consistent structured context."""

from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from time import monotonic
from typing import Any, Dict, Iterator

from .config import TrackedValidator

_DEFAULT_LOG_KEYS = set(logging.makeLogRecord({}).__dict__.keys())
_EXCLUDED_EXTRA_KEYS = {"message", "asctime", "color_message"}
LEVEL_COLORS = {
    "DEBUG": "\033[90m",
    "INFO": "\033[32m",
    "WARNING": "\033[33m",
    "ERROR": "\033[31m",
    "CRITICAL": "\033[35m",
}
TIMESTAMP_COLOR = "\033[36m"
RESET = "\033[0m"


def get_logger(name: str) -> logging.Logger:
    """Return a module-scoped logger."""

    return logging.getLogger(name)


def extract_log_context(record: logging.LogRecord) -> Dict[str, Any]:
    """Return a dictionary of non-default attributes attached via `extra`."""

    context: Dict[str, Any] = {}

    for key, value in record.__dict__.items():
        if key in _DEFAULT_LOG_KEYS or key in _EXCLUDED_EXTRA_KEYS or key.startswith("_"):
            continue

        context[key] = value

    return context


def build_log_extra(
    *,
    validator: TrackedValidator | None = None,
    endpoint: str | None = None,
    request_url: str | None = None,
    status_code: int | None = None,
    elapsed: float | None = None,
    additional: Dict[str, Any] | None = None,
) -> Dict[str, Any]:
    """Construct an `extra` dict for structured logging."""
    extra: Dict[str, Any] = {}

    if validator is not None:
        extra["validator"] = validator.account
        extra["validator_name"] = validator.name

    if endpoint is not None:
        extra["endpoint"] = endpoint

    if request_url is not None:
        extra["request_url"] = request_url

    if status_code is not None:
        extra["status_code"] = status_code

    if elapsed is not None:
        extra["elapsed_seconds"] = round(elapsed, 3)

    if additional:
        extra.update(additional)

    return extra


@contextmanager
def log_duration(
    logger: logging.Logger,
    message: str,
    *,
    level: int = logging.DEBUG,
    extra: Dict[str, Any] | None = None,
) -> Iterator[None]:
    """Context manager to log elapsed time for an operation."""

    start = monotonic()
    try:
        yield
    finally:
        elapsed = monotonic() - start
        log_extra = dict(extra or {})
        log_extra["elapsed_seconds"] = round(elapsed, 3)
        logger.log(level, message, extra=log_extra)


def resolve_color_message(record: logging.LogRecord, color_message: str | None) -> str | None:
    """Interpolate uvicorn's colored message variant with the record args."""
    if not color_message or not record.args:
        return color_message

    try:
        return color_message % record.args
    except (TypeError, ValueError):
        return color_message


def format_context(context: Dict[str, Any]) -> str:
    """Render structured context as sorted ``key=value`` pairs."""
    return " ".join(f"{key}={context[key]}" for key in sorted(context))


class JsonFormatter(logging.Formatter):
    """One JSON object per line with the structured context merged in."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        color_message = getattr(record, "color_message", None)
        if color_message:
            payload["color_message"] = resolve_color_message(record, color_message)

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        if record.stack_info:
            payload["stack_info"] = self.formatStack(record.stack_info)

        payload.update(extract_log_context(record))

        return json.dumps(payload, default=str)


class StructuredTextFormatter(logging.Formatter):
    """Human-readable lines ending in ``| key=value`` context pairs."""

    def __init__(
        self,
        fmt: str | None = None,
        datefmt: str | None = None,
        style: str = "%",
        *,
        color_enabled: bool = True,
    ) -> None:
        super().__init__(fmt, datefmt, style)
        self.color_enabled = color_enabled

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        timestamp = super().formatTime(record, datefmt)

        if not self.color_enabled:
            return timestamp

        return f"{TIMESTAMP_COLOR}{timestamp}{RESET}"

    def _colorize(self, record: logging.LogRecord) -> logging.LogRecord:
        # Work on a copy so other handlers see the plain record.
        colored = logging.makeLogRecord(record.__dict__)

        level_color = LEVEL_COLORS.get(record.levelname)
        if level_color:
            colored.levelname = f"{level_color}{record.levelname}{RESET}"

        color_message = resolve_color_message(record, getattr(record, "color_message", None))
        if color_message:
            colored.msg = color_message
            colored.args = None

        return colored

    def format(self, record: logging.LogRecord) -> str:
        context = extract_log_context(record)

        if self.color_enabled:
            record = self._colorize(record)

        line = super().format(record)

        if not context:
            return line

        return f"{line} | {format_context(context)}"


__all__ = [
    "JsonFormatter",
    "StructuredTextFormatter",
    "build_log_extra",
    "extract_log_context",
    "format_context",
    "get_logger",
    "log_duration",
    "resolve_color_message",
]
