"""Projection of decoded API snapshots onto validator metrics."""

from __future__ import annotations

import math
import re
from datetime import datetime

from .config import TrackedValidator
from .logging import build_log_extra, get_logger
from .metrics import (
    BALANCE_AVAILABLE,
    BALANCE_COMMISSION,
    BALANCE_DELEGATED,
    BALANCE_REWARD,
    BALANCE_UNBONDING,
    COMMISSION_RATE,
    CUMULATIVE_SHARE,
    DELEGATOR_SHARES,
    DELEGATORS,
    MIN_SELF_DELEGATION,
    PARTICIPATION_RATE,
    PARTICIPATION_TOTAL,
    PARTICIPATION_VOTED,
    SIGNING_INFO_BONDED_HEIGHT,
    SIGNING_INFO_TOMBSTONED,
    STATUS,
    TOKENS,
    UNBONDING_TIME,
    UPTIME_HISTORICAL_EARLIEST_HEIGHT,
    UPTIME_HISTORICAL_LAST_SYNC_HEIGHT,
    UPTIME_HISTORICAL_SUCCESS_BLOCKS,
    UPTIME_WINDOW_END,
    UPTIME_WINDOW_START,
    UPTIME_WINDOW_UPTIME,
    VOTING_POWER_PERCENT,
    MetricsRegistry,
    record_field_parse_error,
)
from .models import AccountSnapshot, DelegatorSnapshot, ValidatorSnapshot

LOGGER = get_logger(__name__)

# Plain ASCII float literals only: no padding, digit separators or non-ASCII digits.
_DECIMAL_LITERAL = re.compile(
    r"[+-]?(?:(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?|inf(?:inity)?|nan)",
    re.IGNORECASE | re.ASCII,
)


def parse_decimal(value: str) -> float | None:
    """Parse a decimal string, returning None when it is not a number.

    Finite literals that overflow to infinity are rejected; explicit
    ``inf`` and ``nan`` literals are accepted.
    """
    if not isinstance(value, str) or _DECIMAL_LITERAL.fullmatch(value) is None:
        return None

    parsed = float(value)

    if math.isinf(parsed) and not value.lstrip("+-").lower().startswith("inf"):
        return None

    return parsed


def bool_to_float(value: bool) -> float:
    return 1.0 if value else 0.0


def timestamp_to_unix(value: datetime | None) -> float:
    if value is None:
        return 0.0
    return float(math.floor(value.timestamp()))


def publish_account(
    metrics: MetricsRegistry,
    validator: TrackedValidator,
    account: AccountSnapshot,
) -> None:
    labels = validator.label_values()
    balance = account.balance

    metrics.set(BALANCE_AVAILABLE, labels, balance.available)
    metrics.set(BALANCE_COMMISSION, labels, balance.commission)
    metrics.set(BALANCE_DELEGATED, labels, balance.delegated)
    metrics.set(BALANCE_REWARD, labels, balance.reward)
    metrics.set(BALANCE_UNBONDING, labels, balance.unbonding)


def publish_validator(
    metrics: MetricsRegistry,
    validator: TrackedValidator,
    snapshot: ValidatorSnapshot,
) -> None:
    labels = validator.label_values()

    def decimal_or_zero(field: str, value: str) -> float:
        parsed = parse_decimal(value)

        if parsed is None:
            # Published as 0; the counter keeps the degrade observable.
            record_field_parse_error(metrics, field)
            LOGGER.debug(
                "Unparseable decimal field %s=%r; publishing 0.",
                field,
                value,
                extra=build_log_extra(validator=validator, endpoint="validator"),
            )
            return 0.0

        return parsed

    historical = snapshot.uptime.historical_uptime
    window = snapshot.uptime.window_uptime

    metrics.set(STATUS, labels, snapshot.status)
    metrics.set(TOKENS, labels, snapshot.tokens)
    metrics.set(
        COMMISSION_RATE,
        labels,
        decimal_or_zero("commission_rate", snapshot.commission.commission_rates.rate),
    )
    metrics.set(
        DELEGATOR_SHARES,
        labels,
        decimal_or_zero("delegator_shares", snapshot.delegator_shares),
    )
    metrics.set(UNBONDING_TIME, labels, timestamp_to_unix(snapshot.unbonding_time))
    metrics.set(
        MIN_SELF_DELEGATION,
        labels,
        decimal_or_zero("min_self_delegation", snapshot.min_self_delegation),
    )
    metrics.set(PARTICIPATION_RATE, labels, snapshot.participation.rate)
    metrics.set(PARTICIPATION_TOTAL, labels, snapshot.participation.total)
    metrics.set(PARTICIPATION_VOTED, labels, snapshot.participation.voted)
    metrics.set(SIGNING_INFO_BONDED_HEIGHT, labels, snapshot.signing_info.bonded_height)
    metrics.set(SIGNING_INFO_TOMBSTONED, labels, bool_to_float(snapshot.signing_info.tombstoned))
    metrics.set(UPTIME_HISTORICAL_EARLIEST_HEIGHT, labels, historical.earliest_height)
    metrics.set(UPTIME_HISTORICAL_LAST_SYNC_HEIGHT, labels, historical.last_sync_height)
    metrics.set(UPTIME_HISTORICAL_SUCCESS_BLOCKS, labels, historical.success_blocks)
    metrics.set(UPTIME_WINDOW_UPTIME, labels, window.uptime)
    metrics.set(UPTIME_WINDOW_START, labels, window.window_start)
    metrics.set(UPTIME_WINDOW_END, labels, window.window_end)
    metrics.set(VOTING_POWER_PERCENT, labels, snapshot.voting_power_percent)
    metrics.set(CUMULATIVE_SHARE, labels, snapshot.cumulative_share)


def publish_delegators(
    metrics: MetricsRegistry,
    validator: TrackedValidator,
    delegators: DelegatorSnapshot,
) -> None:
    metrics.set(DELEGATORS, validator.label_values(), delegators.validator_delegators)


__all__ = [
    "bool_to_float",
    "parse_decimal",
    "publish_account",
    "publish_delegators",
    "publish_validator",
    "timestamp_to_unix",
]
