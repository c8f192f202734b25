"""Health reporting and metrics formatting helpers."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Dict, Iterable, List, Tuple

from fastapi import status

from .config import TrackedValidator


@dataclass(slots=True)
class ValidatorHealth:
    healthy: bool
    last_success: float | None = None


class PollHealth:
    """Tracks the outcome of the latest poll round per validator account."""

    def __init__(self) -> None:
        self._configured: dict[str, TrackedValidator] = {}
        self._status: dict[str, ValidatorHealth] = {}
        self._lock = threading.Lock()

    def set_configured(self, validators: Iterable[TrackedValidator]) -> None:
        with self._lock:
            self._configured = {validator.account: validator for validator in validators}
            self._status = {
                account: state
                for account, state in self._status.items()
                if account in self._configured
            }

    def record_success(self, validator: TrackedValidator, *, timestamp: float | None = None) -> None:
        now = time.time() if timestamp is None else timestamp

        with self._lock:
            self._status[validator.account] = ValidatorHealth(healthy=True, last_success=now)

    def record_failure(self, validator: TrackedValidator) -> None:
        with self._lock:
            previous = self._status.get(validator.account)
            last_success = previous.last_success if previous else None
            self._status[validator.account] = ValidatorHealth(healthy=False, last_success=last_success)

    def snapshot(self) -> tuple[dict[str, TrackedValidator], dict[str, ValidatorHealth]]:
        with self._lock:
            return dict(self._configured), dict(self._status)

    def clear(self) -> None:
        with self._lock:
            self._configured.clear()
            self._status.clear()


def _format_timestamp(value: float) -> str:
    return datetime.fromtimestamp(value, tz=timezone.utc).isoformat()


def generate_health_report(
    health: PollHealth,
    include_details: bool = False,
) -> Tuple[str, int, List[Dict[str, str]]]:
    configured, statuses = health.snapshot()

    if not configured:
        return "ok", status.HTTP_200_OK, []

    if not statuses:
        return "initializing", status.HTTP_503_SERVICE_UNAVAILABLE, []

    any_success = any(state.healthy for state in statuses.values())
    all_success = all(state.healthy for state in statuses.values())

    if all_success:
        overall_status = "ok"
        status_code = status.HTTP_200_OK
    elif any_success:
        overall_status = "degraded"
        status_code = status.HTTP_200_OK
    else:
        overall_status = "unhealthy"
        status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    validator_details: List[Dict[str, str]] = []

    for account, state in sorted(statuses.items()):
        validator = configured.get(account)

        entry: Dict[str, str] = {
            "validator": account,
            "name": validator.name if validator else "",
            "status": "ok" if state.healthy else "unhealthy",
        }

        if include_details and state.last_success is not None:
            entry["last_success_timestamp"] = _format_timestamp(state.last_success)

        validator_details.append(entry)

    return overall_status, status_code, validator_details


def generate_readiness_report(
    health: PollHealth,
    stale_threshold_seconds: float,
) -> Tuple[bool, List[Dict[str, str]]]:
    configured, statuses = health.snapshot()

    if not configured:
        return True, []

    if not statuses:
        return False, []

    threshold = time.time() - stale_threshold_seconds

    any_ready = False
    entries: List[Dict[str, str]] = []

    for account, state in sorted(statuses.items()):
        is_recent = state.last_success is not None and state.last_success >= threshold
        ready = state.healthy and is_recent

        if ready:
            any_ready = True

        entry: Dict[str, str] = {
            "validator": account,
            "status": "ready" if ready else "not_ready",
        }

        if state.last_success is not None:
            entry["last_success_timestamp"] = _format_timestamp(state.last_success)

        entries.append(entry)

    return any_ready, entries


def format_metrics_payload(payload: bytes) -> bytes:
    """Rewrite sample values in scientific notation as plain decimals."""
    text = payload.decode()

    lines = []

    for line in text.splitlines():
        if not line or line.startswith("#"):
            lines.append(line)

            continue

        parts = line.rsplit(" ", 1)

        if len(parts) != 2:
            lines.append(line)

            continue

        metric, value = parts

        if "e" in value.lower() and value.lower() not in {"+inf", "-inf", "nan"}:
            try:
                value = format(Decimal(value), "f")
            except InvalidOperation:
                pass

        lines.append(f"{metric} {value}")

    return ("\n".join(lines) + "\n").encode()


__all__ = [
    "PollHealth",
    "ValidatorHealth",
    "format_metrics_payload",
    "generate_health_report",
    "generate_readiness_report",
]
