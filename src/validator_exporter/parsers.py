"""Decoders turning validator API JSON payloads into typed snapshots.

Decoding follows the rules of a strict JSON unmarshaller: a field that is
absent or ``null`` takes its zero value, while a field that is present with
the wrong JSON type is a structural failure raised as `ApiDecodeError`.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Mapping

from .exceptions import ApiDecodeError
from .models import (
    AccountSnapshot,
    Asset,
    Balance,
    Commission,
    CommissionRates,
    DelegatorSnapshot,
    HistoricalUptime,
    Participation,
    SigningInfo,
    Uptime,
    ValidatorSnapshot,
    WindowUptime,
)


def decode_json(body: bytes | str) -> Any:
    """Decode a raw response body, raising `ApiDecodeError` on invalid JSON."""
    try:
        return json.loads(body)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ApiDecodeError(f"Response body is not valid JSON: {exc}") from exc


def parse_account(payload: Any) -> AccountSnapshot:
    data = _require_object(payload, "$")
    balance = _object(data, "balance", "balance")

    assets = tuple(
        Asset(
            denom=_string(entry, "denom", f"assets[{index}].denom"),
            amount=_string(entry, "amount", f"assets[{index}].amount"),
        )
        for index, entry in enumerate(_array_of_objects(data, "assets", "assets"))
    )

    return AccountSnapshot(
        address=_string(data, "address", "address"),
        balance=Balance(
            available=_integer(balance, "available", "balance.available"),
            vesting=_integer(balance, "vesting", "balance.vesting"),
            delegated=_integer(balance, "delegated", "balance.delegated"),
            unbonding=_integer(balance, "unbonding", "balance.unbonding"),
            reward=_integer(balance, "reward", "balance.reward"),
            commission=_integer(balance, "commission", "balance.commission"),
        ),
        assets=assets,
    )


def parse_validator(payload: Any) -> ValidatorSnapshot:
    data = _require_object(payload, "$")

    commission = _object(data, "commission", "commission")
    rates = _object(commission, "commission_rates", "commission.commission_rates")
    participation = _object(data, "participation", "participation")
    signing_info = _object(data, "signingInfo", "signingInfo")
    uptime = _object(data, "uptime", "uptime")
    historical = _object(uptime, "historicalUptime", "uptime.historicalUptime")
    window = _object(uptime, "windowUptime", "uptime.windowUptime")

    return ValidatorSnapshot(
        status=_integer(data, "status", "status"),
        tokens=_integer(data, "tokens", "tokens"),
        delegator_shares=_string(data, "delegator_shares", "delegator_shares"),
        unbonding_time=_timestamp(data, "unbonding_time", "unbonding_time"),
        commission=Commission(
            commission_rates=CommissionRates(
                rate=_string(rates, "rate", "commission.commission_rates.rate"),
                max_rate=_string(rates, "max_rate", "commission.commission_rates.max_rate"),
                max_change_rate=_string(
                    rates,
                    "max_change_rate",
                    "commission.commission_rates.max_change_rate",
                ),
            ),
            update_time=_timestamp(commission, "update_time", "commission.update_time"),
        ),
        min_self_delegation=_string(data, "min_self_delegation", "min_self_delegation"),
        participation=Participation(
            rate=_integer(participation, "rate", "participation.rate"),
            total=_integer(participation, "total", "participation.total"),
            voted=_integer(participation, "voted", "participation.voted"),
        ),
        signing_info=SigningInfo(
            bonded_height=_integer(signing_info, "bondedHeight", "signingInfo.bondedHeight"),
            jailed_until=_string(signing_info, "jailedUntil", "signingInfo.jailedUntil"),
            tombstoned=_boolean(signing_info, "tombstoned", "signingInfo.tombstoned"),
        ),
        uptime=Uptime(
            historical_uptime=HistoricalUptime(
                earliest_height=_integer(
                    historical,
                    "earliestHeight",
                    "uptime.historicalUptime.earliestHeight",
                ),
                last_sync_height=_integer(
                    historical,
                    "lastSyncHeight",
                    "uptime.historicalUptime.lastSyncHeight",
                ),
                success_blocks=_integer(
                    historical,
                    "successBlocks",
                    "uptime.historicalUptime.successBlocks",
                ),
            ),
            window_uptime=WindowUptime(
                uptime=_number(window, "uptime", "uptime.windowUptime.uptime"),
                window_start=_integer(window, "windowStart", "uptime.windowUptime.windowStart"),
                window_end=_integer(window, "windowEnd", "uptime.windowUptime.windowEnd"),
            ),
        ),
        voting_power_percent=_number(data, "votingPowerPercent", "votingPowerPercent"),
        cumulative_share=_number(data, "cumulativeShare", "cumulativeShare"),
    )


def parse_delegators(payload: Any) -> DelegatorSnapshot:
    data = _require_object(payload, "$")

    return DelegatorSnapshot(
        validator_delegators=_integer(data, "validatorDelegators", "validatorDelegators"),
    )


def _mismatch(path: str, expected: str, value: Any) -> ApiDecodeError:
    return ApiDecodeError(
        f"Field '{path}' must be {expected}, got {type(value).__name__}.",
        field=path,
    )


def _require_object(value: Any, path: str) -> Mapping[str, Any]:
    if not isinstance(value, dict):
        raise _mismatch(path, "an object", value)
    return value


def _object(data: Mapping[str, Any], key: str, path: str) -> Mapping[str, Any]:
    value = data.get(key)
    if value is None:
        return {}
    return _require_object(value, path)


def _array_of_objects(data: Mapping[str, Any], key: str, path: str) -> list[Mapping[str, Any]]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise _mismatch(path, "an array", value)
    return [
        _require_object(entry, f"{path}[{index}]") if entry is not None else {}
        for index, entry in enumerate(value)
    ]


def _integer(data: Mapping[str, Any], key: str, path: str) -> int:
    value = data.get(key)
    if value is None:
        return 0
    if isinstance(value, bool):
        raise _mismatch(path, "an integer", value)
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    raise _mismatch(path, "an integer", value)


def _number(data: Mapping[str, Any], key: str, path: str) -> float:
    value = data.get(key)
    if value is None:
        return 0.0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise _mismatch(path, "a number", value)
    return float(value)


def _string(data: Mapping[str, Any], key: str, path: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise _mismatch(path, "a string", value)
    return value


def _boolean(data: Mapping[str, Any], key: str, path: str) -> bool:
    value = data.get(key)
    if value is None:
        return False
    if not isinstance(value, bool):
        raise _mismatch(path, "a boolean", value)
    return value


def _timestamp(data: Mapping[str, Any], key: str, path: str) -> datetime | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise _mismatch(path, "an RFC 3339 timestamp string", value)

    try:
        parsed = datetime.fromisoformat(value)
    except ValueError as exc:
        raise ApiDecodeError(
            f"Field '{path}' is not a valid RFC 3339 timestamp: {value!r}.",
            field=path,
        ) from exc

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)

    return parsed


__all__ = [
    "decode_json",
    "parse_account",
    "parse_delegators",
    "parse_validator",
]
