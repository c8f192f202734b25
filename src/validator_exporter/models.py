"""Decoded API records produced for a single fetch."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True, slots=True)
class Balance:
    available: int = 0
    vesting: int = 0
    delegated: int = 0
    unbonding: int = 0
    reward: int = 0
    commission: int = 0


@dataclass(frozen=True, slots=True)
class Asset:
    denom: str = ""
    amount: str = ""


@dataclass(frozen=True, slots=True)
class AccountSnapshot:
    """Decoded `/accounts/{account}` payload."""

    address: str = ""
    balance: Balance = field(default_factory=Balance)
    assets: tuple[Asset, ...] = ()


@dataclass(frozen=True, slots=True)
class CommissionRates:
    rate: str = ""
    max_rate: str = ""
    max_change_rate: str = ""


@dataclass(frozen=True, slots=True)
class Commission:
    commission_rates: CommissionRates = field(default_factory=CommissionRates)
    update_time: datetime | None = None


@dataclass(frozen=True, slots=True)
class Participation:
    rate: int = 0
    total: int = 0
    voted: int = 0


@dataclass(frozen=True, slots=True)
class SigningInfo:
    bonded_height: int = 0
    jailed_until: str = ""
    tombstoned: bool = False


@dataclass(frozen=True, slots=True)
class HistoricalUptime:
    earliest_height: int = 0
    last_sync_height: int = 0
    success_blocks: int = 0


@dataclass(frozen=True, slots=True)
class WindowUptime:
    uptime: float = 0.0
    window_start: int = 0
    window_end: int = 0


@dataclass(frozen=True, slots=True)
class Uptime:
    historical_uptime: HistoricalUptime = field(default_factory=HistoricalUptime)
    window_uptime: WindowUptime = field(default_factory=WindowUptime)


@dataclass(frozen=True, slots=True)
class ValidatorSnapshot:
    """Decoded `/validators/{operatorAddress}` payload."""

    status: int = 0
    tokens: int = 0
    delegator_shares: str = ""
    unbonding_time: datetime | None = None
    commission: Commission = field(default_factory=Commission)
    min_self_delegation: str = ""
    participation: Participation = field(default_factory=Participation)
    signing_info: SigningInfo = field(default_factory=SigningInfo)
    uptime: Uptime = field(default_factory=Uptime)
    voting_power_percent: float = 0.0
    cumulative_share: float = 0.0


@dataclass(frozen=True, slots=True)
class DelegatorSnapshot:
    """Decoded `/validators/{operatorAddress}/delegators` payload."""

    validator_delegators: int = 0


__all__ = [
    "AccountSnapshot",
    "Asset",
    "Balance",
    "Commission",
    "CommissionRates",
    "DelegatorSnapshot",
    "HistoricalUptime",
    "Participation",
    "SigningInfo",
    "Uptime",
    "ValidatorSnapshot",
    "WindowUptime",
]
