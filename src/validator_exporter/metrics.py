"""Prometheus metric registry and helpers for validator exporter state."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Iterable, Sequence

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    GCCollector,
    PlatformCollector,
    ProcessCollector,
    generate_latest,
)

from .exceptions import (
    MetricError,
    MetricLabelError,
    MetricNotFoundError,
    MetricRegistrationError,
)

if TYPE_CHECKING:
    from .config import TrackedValidator


class MetricKind(str, Enum):
    GAUGE = "gauge"
    COUNTER = "counter"


@dataclass(frozen=True, slots=True)
class MetricDefinition:
    name: str
    kind: MetricKind
    help: str
    labelnames: tuple[str, ...] = ()
    namespaced: bool = True


VALIDATOR_LABELS = ("address", "name")
CHAIN_LABELS = ("chain_id",)
CHAIN_VALIDATOR_LABELS = ("chain_id", "address", "name")

# Validator API metric names (populated by the poller in this package).
BALANCE_AVAILABLE = "validator_balance_available"
BALANCE_COMMISSION = "validator_balance_commission"
BALANCE_DELEGATED = "validator_balance_delegated"
BALANCE_REWARD = "validator_balance_reward"
BALANCE_UNBONDING = "validator_balance_unbonding"
DELEGATORS = "validator_delegators"
STATUS = "validator_status"
TOKENS = "validator_tokens"
COMMISSION_RATE = "validator_commission_rate"
DELEGATOR_SHARES = "validator_delegator_shares"
UNBONDING_TIME = "validator_unbonding_time"
MIN_SELF_DELEGATION = "validator_min_self_delegation"
PARTICIPATION_RATE = "validator_participation_rate"
PARTICIPATION_TOTAL = "validator_participation_total"
PARTICIPATION_VOTED = "validator_participation_voted"
SIGNING_INFO_BONDED_HEIGHT = "validator_signing_info_bonded_height"
SIGNING_INFO_TOMBSTONED = "validator_signing_info_tombstoned"
UPTIME_HISTORICAL_EARLIEST_HEIGHT = "validator_uptime_historical_earliest_height"
UPTIME_HISTORICAL_LAST_SYNC_HEIGHT = "validator_uptime_historical_last_sync_height"
UPTIME_HISTORICAL_SUCCESS_BLOCKS = "validator_uptime_historical_success_blocks"
UPTIME_WINDOW_UPTIME = "validator_uptime_window_uptime"
UPTIME_WINDOW_START = "validator_uptime_window_start"
UPTIME_WINDOW_END = "validator_uptime_window_end"
VOTING_POWER_PERCENT = "validator_voting_power_percent"
CUMULATIVE_SHARE = "validator_cumulative_share"

# Exporter self-metrics.
EXPORTER_UP = "validator_exporter_up"
EXPORTER_CONFIGURED_VALIDATORS = "validator_exporter_configured_validators"
EXPORTER_API_ERRORS = "validator_exporter_api_errors_total"
EXPORTER_FIELD_PARSE_ERRORS = "validator_exporter_field_parse_errors_total"
EXPORTER_LAST_SUCCESS = "validator_exporter_last_success_timestamp_seconds"


def _gauge(name: str, help_text: str, labelnames: tuple[str, ...] = VALIDATOR_LABELS) -> MetricDefinition:
    return MetricDefinition(name, MetricKind.GAUGE, help_text, labelnames)


def _counter(name: str, help_text: str, labelnames: tuple[str, ...]) -> MetricDefinition:
    return MetricDefinition(name, MetricKind.COUNTER, help_text, labelnames)


VALIDATOR_API_METRICS: tuple[MetricDefinition, ...] = (
    _gauge(BALANCE_AVAILABLE, "Validator balance available"),
    _gauge(BALANCE_COMMISSION, "Validator commission"),
    _gauge(BALANCE_DELEGATED, "Validator balance delegated"),
    _gauge(BALANCE_REWARD, "Validator balance reward"),
    _gauge(BALANCE_UNBONDING, "Validator balance unbonding"),
    _gauge(DELEGATORS, "Validator delegators"),
    _gauge(STATUS, "Validator status"),
    _gauge(TOKENS, "Validator tokens"),
    _gauge(COMMISSION_RATE, "Validator commission rate"),
    _gauge(DELEGATOR_SHARES, "Validator delegator shares"),
    _gauge(UNBONDING_TIME, "Validator unbonding time (unix seconds)"),
    _gauge(MIN_SELF_DELEGATION, "Validator min self delegation"),
    _gauge(PARTICIPATION_RATE, "Validator participation rate"),
    _gauge(PARTICIPATION_TOTAL, "Validator participation total"),
    _gauge(PARTICIPATION_VOTED, "Validator participation voted"),
    _gauge(SIGNING_INFO_BONDED_HEIGHT, "Validator signing info bonded height"),
    _gauge(SIGNING_INFO_TOMBSTONED, "Validator signing info tombstoned"),
    _gauge(UPTIME_HISTORICAL_EARLIEST_HEIGHT, "Validator uptime historical earliest height"),
    _gauge(UPTIME_HISTORICAL_LAST_SYNC_HEIGHT, "Validator uptime historical last sync height"),
    _gauge(UPTIME_HISTORICAL_SUCCESS_BLOCKS, "Validator uptime historical success blocks"),
    _gauge(UPTIME_WINDOW_UPTIME, "Validator uptime window uptime"),
    _gauge(UPTIME_WINDOW_START, "Validator uptime window start"),
    _gauge(UPTIME_WINDOW_END, "Validator uptime window end"),
    _gauge(VOTING_POWER_PERCENT, "Validator voting power percent"),
    _gauge(CUMULATIVE_SHARE, "Validator cumulative share"),
)

# Populated by the block and RPC watchers that share this registry.
CONSENSUS_METRICS: tuple[MetricDefinition, ...] = (
    _gauge("block_height", "Latest known block height (all nodes mixed up)", CHAIN_LABELS),
    _gauge("active_set", "Number of validators in the active set", CHAIN_LABELS),
    _gauge(
        "seat_price",
        "Min seat price to be in the active set (ie. bonded tokens of the latest validator)",
        ("chain_id", "denom"),
    ),
    _gauge("rank", "Rank of the validator", CHAIN_VALIDATOR_LABELS),
    _counter(
        "proposed_blocks",
        "Number of proposed blocks per validator (for a bonded validator)",
        CHAIN_VALIDATOR_LABELS,
    ),
    _counter(
        "validated_blocks",
        "Number of validated blocks per validator (for a bonded validator)",
        CHAIN_VALIDATOR_LABELS,
    ),
    _counter(
        "missed_blocks",
        "Number of missed blocks per validator (for a bonded validator)",
        CHAIN_VALIDATOR_LABELS,
    ),
    _counter(
        "solo_missed_blocks",
        "Number of missed blocks per validator, unless block is missed by many other validators",
        CHAIN_VALIDATOR_LABELS,
    ),
    _gauge(
        "consecutive_missed_blocks",
        "Number of consecutive missed blocks per validator (for a bonded validator)",
        CHAIN_VALIDATOR_LABELS,
    ),
    _counter("tracked_blocks", "Number of blocks tracked since start", CHAIN_LABELS),
    _counter("transactions_total", "Number of transactions since start", CHAIN_LABELS),
    _counter("skipped_blocks", "Number of blocks skipped (ie. not tracked) since start", CHAIN_LABELS),
    _gauge("tokens", "Number of staked tokens per validator", ("chain_id", "address", "name", "denom")),
    _gauge("is_bonded", "Set to 1 if the validator is bonded", CHAIN_VALIDATOR_LABELS),
    _gauge("is_jailed", "Set to 1 if the validator is jailed", CHAIN_VALIDATOR_LABELS),
    _gauge("commission", "Earned validator commission", ("chain_id", "address", "name", "denom")),
    _gauge(
        "vote",
        "Set to 1 if the validator has voted on a proposal",
        ("chain_id", "address", "name", "proposal_id"),
    ),
    _gauge("node_block_height", "Latest fetched block height for each node", ("chain_id", "node")),
    _gauge("node_synced", "Set to 1 is the node is synced (ie. not catching-up)", ("chain_id", "node")),
    _gauge("upgrade_plan", "Block height of the upcoming upgrade (hard fork)", ("chain_id", "version")),
    _gauge("proposal_end_time", "Timestamp of the voting end time of a proposal", ("chain_id", "proposal_id")),
    _gauge("last_validated_block_time", "Timestamp of the last validated block", CHAIN_VALIDATOR_LABELS),
)

EXPORTER_METRICS: tuple[MetricDefinition, ...] = (
    MetricDefinition(
        EXPORTER_UP,
        MetricKind.GAUGE,
        "Indicates whether the exporter is available (1 for up, 0 for down).",
        namespaced=False,
    ),
    MetricDefinition(
        EXPORTER_CONFIGURED_VALIDATORS,
        MetricKind.GAUGE,
        "Number of validators currently tracked by the exporter.",
        namespaced=False,
    ),
    MetricDefinition(
        EXPORTER_API_ERRORS,
        MetricKind.COUNTER,
        "Number of failed validator API fetches by endpoint and error type.",
        ("endpoint", "error_type"),
        namespaced=False,
    ),
    MetricDefinition(
        EXPORTER_FIELD_PARSE_ERRORS,
        MetricKind.COUNTER,
        "Number of decimal string fields that could not be parsed and were published as 0.",
        ("field",),
        namespaced=False,
    ),
    MetricDefinition(
        EXPORTER_LAST_SUCCESS,
        MetricKind.GAUGE,
        "Unix timestamp of the most recent successful fetch per validator and endpoint.",
        ("address", "name", "endpoint"),
        namespaced=False,
    ),
)


class MetricsRegistry:
    """Named, labeled gauges and counters backed by a `CollectorRegistry`.

    The registry owns every published value. Writers address a metric by its
    unqualified name and pass label values in registration order; the
    namespace prefix is applied internally. Family lookups are guarded by an
    internal lock and per-series writes rely on the locking inside
    `prometheus_client`, so callers never synchronize externally.
    """

    def __init__(self, namespace: str = "", registry: CollectorRegistry | None = None) -> None:
        self.namespace = namespace.strip("_")
        self.registry = registry or CollectorRegistry()
        self._definitions: dict[str, MetricDefinition] = {}
        self._families: dict[str, Gauge | Counter] = {}
        self._runtime_collectors: list[object] = []
        self._lock = threading.Lock()

    def qualified_name(self, name: str, *, namespaced: bool = True) -> str:
        if self.namespace and namespaced:
            return f"{self.namespace}_{name}"
        return name

    def register(
        self,
        name: str,
        kind: MetricKind | str,
        help: str,
        labelnames: Sequence[str] = (),
        *,
        namespaced: bool = True,
    ) -> Gauge | Counter:
        """Create and register a metric family.

        Raises:
            MetricRegistrationError: If the name is already registered.
        """
        definition = MetricDefinition(
            name=name,
            kind=MetricKind(kind),
            help=help,
            labelnames=tuple(labelnames),
            namespaced=namespaced,
        )

        with self._lock:
            if name in self._definitions:
                raise MetricRegistrationError(
                    f"Metric '{name}' is already registered.",
                    metric=name,
                )

            metric_class = Gauge if definition.kind is MetricKind.GAUGE else Counter

            try:
                family = metric_class(
                    self.qualified_name(name, namespaced=namespaced),
                    help,
                    labelnames=definition.labelnames,
                    registry=self.registry,
                )
            except ValueError as exc:
                raise MetricRegistrationError(
                    f"Metric '{name}' could not be registered: {exc}",
                    metric=name,
                ) from exc

            self._definitions[name] = definition
            self._families[name] = family

        return family

    def register_all(self, definitions: Iterable[MetricDefinition]) -> None:
        for definition in definitions:
            self.register(
                definition.name,
                definition.kind,
                definition.help,
                definition.labelnames,
                namespaced=definition.namespaced,
            )

    def register_runtime_collectors(self) -> None:
        """Register process, platform and GC collectors into this registry."""
        with self._lock:
            if self._runtime_collectors:
                return

            self._runtime_collectors = [
                ProcessCollector(registry=self.registry),
                PlatformCollector(registry=self.registry),
                GCCollector(registry=self.registry),
            ]

    def definition(self, name: str) -> MetricDefinition:
        with self._lock:
            definition = self._definitions.get(name)

        if definition is None:
            raise MetricNotFoundError(f"Metric '{name}' is not registered.", metric=name)

        return definition

    def set(self, name: str, label_values: Sequence[object], value: float) -> None:
        """Overwrite the gauge value for one label tuple (last write wins)."""
        definition, family = self._resolve(name, label_values)

        if definition.kind is not MetricKind.GAUGE:
            raise MetricError(f"Metric '{name}' is a counter and cannot be set.", metric=name)

        self._child(family, definition, label_values).set(float(value))

    def inc(self, name: str, label_values: Sequence[object] = (), amount: float = 1.0) -> None:
        definition, family = self._resolve(name, label_values)

        try:
            self._child(family, definition, label_values).inc(amount)
        except ValueError as exc:
            raise MetricError(str(exc), metric=name) from exc

    def get_value(self, name: str, label_values: Sequence[object] = ()) -> float | None:
        """Return the current sample value for a label tuple, or None when unset."""
        definition = self.definition(name)
        self._check_arity(definition, label_values)

        sample_name = self.qualified_name(name, namespaced=definition.namespaced)

        if definition.kind is MetricKind.COUNTER:
            sample_name = sample_name.removesuffix("_total") + "_total"

        labels = dict(zip(definition.labelnames, (str(value) for value in label_values)))

        return self.registry.get_sample_value(sample_name, labels)

    def remove(self, name: str, label_values: Sequence[object]) -> None:
        definition, family = self._resolve(name, label_values)

        if not definition.labelnames:
            return

        try:
            family.remove(*(str(value) for value in label_values))
        except KeyError:
            pass

    def render(self) -> bytes:
        """Render the full registry in the Prometheus text exposition format."""
        return generate_latest(self.registry)

    def close(self) -> None:
        """Unregister every collector owned by this registry."""
        with self._lock:
            collectors = [*self._families.values(), *self._runtime_collectors]
            self._families.clear()
            self._definitions.clear()
            self._runtime_collectors = []

        for collector in collectors:
            try:
                self.registry.unregister(collector)
            except KeyError:
                pass

    def _resolve(
        self,
        name: str,
        label_values: Sequence[object],
    ) -> tuple[MetricDefinition, Gauge | Counter]:
        with self._lock:
            definition = self._definitions.get(name)
            family = self._families.get(name)

        if definition is None or family is None:
            raise MetricNotFoundError(f"Metric '{name}' is not registered.", metric=name)

        self._check_arity(definition, label_values)

        return definition, family

    @staticmethod
    def _check_arity(definition: MetricDefinition, label_values: Sequence[object]) -> None:
        if len(label_values) != len(definition.labelnames):
            raise MetricLabelError(
                f"Metric '{definition.name}' expects {len(definition.labelnames)} label value(s), got {len(label_values)}.",
                metric=definition.name,
                context={
                    "labelnames": list(definition.labelnames),
                    "label_values": [str(value) for value in label_values],
                },
            )

    @staticmethod
    def _child(
        family: Gauge | Counter,
        definition: MetricDefinition,
        label_values: Sequence[object],
    ) -> Gauge | Counter:
        if not definition.labelnames:
            return family

        return family.labels(*(str(value) for value in label_values))


def create_metrics(
    namespace: str = "",
    registry: CollectorRegistry | None = None,
    *,
    include_process_metrics: bool = False,
) -> MetricsRegistry:
    """Build a registry holding the validator, consensus and exporter metric families."""

    metrics = MetricsRegistry(namespace=namespace, registry=registry)

    metrics.register_all(VALIDATOR_API_METRICS)
    metrics.register_all(CONSENSUS_METRICS)
    metrics.register_all(EXPORTER_METRICS)

    if include_process_metrics:
        metrics.register_runtime_collectors()

    return metrics


def set_exporter_up(metrics: MetricsRegistry, up: bool) -> None:
    metrics.set(EXPORTER_UP, (), 1 if up else 0)


def set_configured_validators(
    metrics: MetricsRegistry,
    validators: Sequence[TrackedValidator],
) -> None:
    metrics.set(EXPORTER_CONFIGURED_VALIDATORS, (), len(validators))


def record_api_error(metrics: MetricsRegistry, endpoint: str, error_type: str) -> None:
    metrics.inc(EXPORTER_API_ERRORS, (endpoint, error_type))


def record_field_parse_error(metrics: MetricsRegistry, field: str) -> None:
    metrics.inc(EXPORTER_FIELD_PARSE_ERRORS, (field,))


def record_fetch_success(
    metrics: MetricsRegistry,
    validator: TrackedValidator,
    endpoint: str,
    *,
    timestamp: float | None = None,
) -> None:
    now = time.time() if timestamp is None else timestamp

    metrics.set(EXPORTER_LAST_SUCCESS, (*validator.label_values(), endpoint), now)


__all__ = [
    "CONSENSUS_METRICS",
    "EXPORTER_METRICS",
    "MetricDefinition",
    "MetricKind",
    "MetricsRegistry",
    "VALIDATOR_API_METRICS",
    "VALIDATOR_LABELS",
    "create_metrics",
    "record_api_error",
    "record_fetch_success",
    "record_field_parse_error",
    "set_configured_validators",
    "set_exporter_up",
]
