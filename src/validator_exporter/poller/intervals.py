"""Utilities for poll interval resolution."""

from __future__ import annotations

import re

from ..logging import get_logger
from ..settings import get_settings

LOGGER = get_logger(__name__)
SETTINGS = get_settings()

DEFAULT_POLL_INTERVAL = SETTINGS.poller.interval
DURATION_PATTERN = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s|m|h)?\s*$", re.IGNORECASE)
UNIT_MULTIPLIERS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


def parse_duration_to_seconds(value: str) -> float | None:
    """Parse a duration string (e.g., '500ms', '1s', '5m', '1h') to seconds.

    Supports formats: 'N', 'Nms', 'Ns', 'Nm', 'Nh' where N is a non-negative
    number, optionally fractional. A bare number is read as seconds.

    Args:
        value: Duration string to parse.

    Returns:
        Duration in seconds, or None if parsing fails.
    """
    match = DURATION_PATTERN.match(value)

    if not match:
        return None

    amount = float(match.group(1))

    unit = (match.group(2) or "s").lower()

    return amount * UNIT_MULTIPLIERS[unit]


def determine_poll_interval_seconds(raw_value: str | None = None) -> float:
    """Resolve the poll interval in seconds.

    Uses the provided value (normally the config file's ``poll_interval``),
    falling back to the environment default when missing or invalid.

    Returns:
        Poll interval in seconds (always positive).
    """
    candidate = raw_value or DEFAULT_POLL_INTERVAL

    resolved_seconds = parse_duration_to_seconds(candidate)

    if resolved_seconds is None or resolved_seconds <= 0:
        LOGGER.warning(
            "Invalid poll interval '%s'. Falling back to %s seconds.",
            candidate,
            DEFAULT_POLL_INTERVAL_SECONDS,
        )

        return DEFAULT_POLL_INTERVAL_SECONDS

    return resolved_seconds


# Parse the default poll interval to seconds, with a fallback of one second.
DEFAULT_POLL_INTERVAL_SECONDS = (
    parse_duration_to_seconds(DEFAULT_POLL_INTERVAL) if DEFAULT_POLL_INTERVAL else None
) or 1.0


__all__ = [
    "DEFAULT_POLL_INTERVAL",
    "DEFAULT_POLL_INTERVAL_SECONDS",
    "determine_poll_interval_seconds",
    "parse_duration_to_seconds",
]
