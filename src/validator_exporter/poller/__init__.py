"""Polling package for validator metrics."""

from .control import poll_validators, run_poll_cycle, wait_for_stop
from .fetch import (
    fetch_account,
    fetch_delegators,
    fetch_validator,
    fetch_validator_info,
)
from .intervals import (
    DEFAULT_POLL_INTERVAL,
    DEFAULT_POLL_INTERVAL_SECONDS,
    determine_poll_interval_seconds,
    parse_duration_to_seconds,
)
from .manager import PollerManager, get_poller_manager, reset_poller_manager

__all__ = [
    "DEFAULT_POLL_INTERVAL",
    "DEFAULT_POLL_INTERVAL_SECONDS",
    "PollerManager",
    "determine_poll_interval_seconds",
    "fetch_account",
    "fetch_delegators",
    "fetch_validator",
    "fetch_validator_info",
    "get_poller_manager",
    "parse_duration_to_seconds",
    "poll_validators",
    "reset_poller_manager",
    "run_poll_cycle",
    "wait_for_stop",
]
