from __future__ import annotations

import threading

import pytest
from prometheus_client import CollectorRegistry

from validator_exporter.config import TrackedValidator
from validator_exporter.exceptions import (
    MetricError,
    MetricLabelError,
    MetricNotFoundError,
    MetricRegistrationError,
)
from validator_exporter.metrics import (
    BALANCE_AVAILABLE,
    CONSENSUS_METRICS,
    EXPORTER_API_ERRORS,
    EXPORTER_CONFIGURED_VALIDATORS,
    EXPORTER_FIELD_PARSE_ERRORS,
    EXPORTER_LAST_SUCCESS,
    EXPORTER_UP,
    VALIDATOR_API_METRICS,
    MetricKind,
    MetricsRegistry,
    create_metrics,
    record_api_error,
    record_fetch_success,
    set_configured_validators,
    set_exporter_up,
)


def test_create_metrics_registers_every_family(metrics: MetricsRegistry) -> None:
    for definition in (*VALIDATOR_API_METRICS, *CONSENSUS_METRICS):
        assert metrics.definition(definition.name) == definition

    for name in (EXPORTER_UP, EXPORTER_API_ERRORS, EXPORTER_LAST_SUCCESS):
        assert metrics.definition(name).name == name

    assert metrics.definition(BALANCE_AVAILABLE).labelnames == ("address", "name")


def test_duplicate_registration_raises(metrics: MetricsRegistry) -> None:
    with pytest.raises(MetricRegistrationError):
        metrics.register(BALANCE_AVAILABLE, MetricKind.GAUGE, "again", ("address", "name"))


def test_set_overwrites_value(metrics: MetricsRegistry) -> None:
    labels = ("ADDR", "Kiln")

    metrics.set(BALANCE_AVAILABLE, labels, 10)
    metrics.set(BALANCE_AVAILABLE, labels, 20)

    assert metrics.get_value(BALANCE_AVAILABLE, labels) == 20.0


def test_set_is_isolated_per_label_tuple(metrics: MetricsRegistry) -> None:
    metrics.set(BALANCE_AVAILABLE, ("A", "one"), 1)
    metrics.set(BALANCE_AVAILABLE, ("B", "two"), 2)

    assert metrics.get_value(BALANCE_AVAILABLE, ("A", "one")) == 1.0
    assert metrics.get_value(BALANCE_AVAILABLE, ("B", "two")) == 2.0


def test_get_value_unset_series_returns_none(metrics: MetricsRegistry) -> None:
    assert metrics.get_value(BALANCE_AVAILABLE, ("missing", "series")) is None


def test_label_arity_mismatch_raises(metrics: MetricsRegistry) -> None:
    with pytest.raises(MetricLabelError) as exc_info:
        metrics.set(BALANCE_AVAILABLE, ("only-address",), 1)

    assert exc_info.value.context["labelnames"] == ["address", "name"]


def test_unknown_metric_raises(metrics: MetricsRegistry) -> None:
    with pytest.raises(MetricNotFoundError):
        metrics.set("validator_does_not_exist", (), 1)


def test_counters_cannot_be_set(metrics: MetricsRegistry) -> None:
    with pytest.raises(MetricError):
        metrics.set(EXPORTER_FIELD_PARSE_ERRORS, ("delegator_shares",), 3)


def test_counter_increments_accumulate(metrics: MetricsRegistry) -> None:
    record_api_error(metrics, "delegators", "status_error")
    record_api_error(metrics, "delegators", "status_error")

    assert metrics.get_value(EXPORTER_API_ERRORS, ("delegators", "status_error")) == 2.0


def test_namespace_prefixes_validator_metrics_only() -> None:
    metrics = create_metrics("story", registry=CollectorRegistry())

    try:
        metrics.set(BALANCE_AVAILABLE, ("A", "one"), 5)
        set_exporter_up(metrics, True)

        rendered = metrics.render().decode()

        assert 'story_validator_balance_available{address="A",name="one"} 5.0' in rendered
        assert "validator_exporter_up 1.0" in rendered
        assert "story_validator_exporter_up" not in rendered
    finally:
        metrics.close()


def test_render_contains_help_and_samples(metrics: MetricsRegistry) -> None:
    metrics.set(BALANCE_AVAILABLE, ("ADDR", "Kiln"), 1000)

    rendered = metrics.render().decode()

    assert "# TYPE validator_balance_available gauge" in rendered
    assert 'validator_balance_available{address="ADDR",name="Kiln"} 1000.0' in rendered


def test_remove_drops_series(metrics: MetricsRegistry) -> None:
    metrics.set(BALANCE_AVAILABLE, ("ADDR", "Kiln"), 1)
    metrics.remove(BALANCE_AVAILABLE, ("ADDR", "Kiln"))
    metrics.remove(BALANCE_AVAILABLE, ("ADDR", "Kiln"))

    assert metrics.get_value(BALANCE_AVAILABLE, ("ADDR", "Kiln")) is None


def test_close_unregisters_so_names_can_be_reused() -> None:
    registry = CollectorRegistry()

    first = create_metrics(registry=registry)
    first.close()

    second = create_metrics(registry=registry)

    try:
        assert BALANCE_AVAILABLE in second
    finally:
        second.close()


def test_runtime_collectors_are_optional() -> None:
    registry = CollectorRegistry()
    metrics = create_metrics(registry=registry, include_process_metrics=True)

    try:
        assert "python_info" in metrics.render().decode()
    finally:
        metrics.close()


def test_exporter_helpers(metrics: MetricsRegistry, validator: TrackedValidator) -> None:
    set_exporter_up(metrics, True)
    set_configured_validators(metrics, [validator])
    record_fetch_success(metrics, validator, "account", timestamp=1700000000.0)

    assert metrics.get_value(EXPORTER_UP) == 1.0
    assert metrics.get_value(EXPORTER_CONFIGURED_VALIDATORS) == 1.0
    assert metrics.get_value(EXPORTER_LAST_SUCCESS, ("KILNADDR", "Kiln", "account")) == 1700000000.0


def test_concurrent_writers_to_distinct_tuples(metrics: MetricsRegistry) -> None:
    def _writer(index: int) -> None:
        for value in range(200):
            metrics.set(BALANCE_AVAILABLE, (f"addr-{index}", f"name-{index}"), value)

    threads = [threading.Thread(target=_writer, args=(index,)) for index in range(8)]

    for thread in threads:
        thread.start()

    for thread in threads:
        thread.join()

    for index in range(8):
        assert metrics.get_value(BALANCE_AVAILABLE, (f"addr-{index}", f"name-{index}")) == 199.0
