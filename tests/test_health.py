import time

from validator_exporter.config import TrackedValidator
from validator_exporter.health import (
    PollHealth,
    format_metrics_payload,
    generate_health_report,
    generate_readiness_report,
)


def _build_validator(name: str, account: str) -> TrackedValidator:
    return TrackedValidator(name=name, account=account, operator_address=f"op-{account}")


KILN = _build_validator("Kiln", "0xabc")
FIGMENT = _build_validator("Figment", "0xdef")


def test_generate_health_report_ok_when_no_validators() -> None:
    status, status_code, validators = generate_health_report(PollHealth())

    assert status == "ok"
    assert status_code == 200
    assert validators == []


def test_generate_health_report_initializing_when_configured() -> None:
    health = PollHealth()
    health.set_configured([KILN])

    status, status_code, validators = generate_health_report(health)

    assert status == "initializing"
    assert status_code == 503
    assert validators == []


def test_generate_health_report_degraded() -> None:
    health = PollHealth()
    health.set_configured([KILN, FIGMENT])
    health.record_success(KILN)
    health.record_failure(FIGMENT)

    status, status_code, validators = generate_health_report(health)

    assert status == "degraded"
    assert status_code == 200
    assert validators == [
        {"validator": "0xabc", "name": "Kiln", "status": "ok"},
        {"validator": "0xdef", "name": "Figment", "status": "unhealthy"},
    ]


def test_generate_health_report_unhealthy_keeps_last_success() -> None:
    health = PollHealth()
    health.set_configured([KILN])
    health.record_success(KILN, timestamp=0.0)
    health.record_failure(KILN)

    status, status_code, validators = generate_health_report(health, include_details=True)

    assert status == "unhealthy"
    assert status_code == 503
    assert validators[0]["last_success_timestamp"] == "1970-01-01T00:00:00+00:00"


def test_generate_readiness_report_staleness() -> None:
    now = time.time()

    health = PollHealth()
    health.set_configured([KILN, FIGMENT])
    health.record_success(KILN, timestamp=now)
    health.record_success(FIGMENT, timestamp=now - 10_000)

    ready, details = generate_readiness_report(health, stale_threshold_seconds=300)

    assert ready is True
    assert [item["status"] for item in details] == ["ready", "not_ready"]


def test_generate_readiness_report_not_ready_before_first_poll() -> None:
    health = PollHealth()
    health.set_configured([KILN])

    assert generate_readiness_report(health, stale_threshold_seconds=300) == (False, [])


def test_set_configured_drops_removed_validators() -> None:
    health = PollHealth()
    health.set_configured([KILN, FIGMENT])
    health.record_success(FIGMENT)

    health.set_configured([KILN])

    _, statuses = health.snapshot()

    assert statuses == {}


def test_format_metrics_payload_expands_scientific_notation() -> None:
    payload = (
        b"# HELP validator_tokens Validator tokens\n"
        b"# TYPE validator_tokens gauge\n"
        b'validator_tokens{address="A",name="one"} 1.5e+06\n'
        b'validator_uptime_window_uptime{address="A",name="one"} 0.995\n'
    )

    formatted = format_metrics_payload(payload).decode()

    assert 'validator_tokens{address="A",name="one"} 1500000' in formatted
    assert 'validator_uptime_window_uptime{address="A",name="one"} 0.995' in formatted
    assert formatted.startswith("# HELP validator_tokens Validator tokens\n")
