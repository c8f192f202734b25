"""Tests for context helper functions."""

from __future__ import annotations

from pathlib import Path

import pytest

from validator_exporter.client import ValidatorApiClient
from validator_exporter.config import ExporterConfig, TrackedValidator
from validator_exporter.context import (
    ApplicationContext,
    create_default_context,
    default_client_factory,
    get_application_context,
    reset_application_context,
    set_application_context,
)
from validator_exporter.exceptions import MetricNotFoundError
from validator_exporter.metrics import BALANCE_AVAILABLE, create_metrics
from validator_exporter.runtime_settings import RuntimeSettings, get_runtime_settings
from validator_exporter.settings import get_settings


def _runtime(api_url: str | None = None, validators: list[TrackedValidator] | None = None) -> RuntimeSettings:
    return RuntimeSettings(
        app=get_settings(),
        exporter=ExporterConfig(validators=validators or [], api_url=api_url, poll_interval="2s"),
        config_path=Path("config.toml"),
    )


def test_runtime_settings_prefer_config_file_values() -> None:
    runtime = _runtime(api_url="https://config.example/")

    assert runtime.api_base_url == "https://config.example"
    assert runtime.poll_interval == "2s"


def test_runtime_settings_fall_back_to_environment() -> None:
    runtime = RuntimeSettings(app=get_settings(), exporter=ExporterConfig(), config_path=Path("config.toml"))

    assert runtime.api_base_url == get_settings().api.base_url.rstrip("/")
    assert runtime.poll_interval == get_settings().poller.interval


@pytest.mark.anyio
@pytest.mark.parametrize("anyio_backend", ["asyncio"], indirect=True)
async def test_default_client_factory_uses_runtime_base_url() -> None:
    client = default_client_factory(_runtime(api_url="https://config.example"))

    try:
        assert isinstance(client, ValidatorApiClient)
        assert client.base_url == "https://config.example"
    finally:
        await client.aclose()


def test_context_exposes_settings_and_validators(validator: TrackedValidator) -> None:
    metrics = create_metrics()
    runtime = _runtime(validators=[validator])

    context = ApplicationContext(metrics=metrics, runtime=runtime, client_factory=default_client_factory)

    try:
        assert context.settings is runtime.app
        assert context.validators == [validator]
    finally:
        metrics.close()


def test_set_and_reset_application_context(validator: TrackedValidator) -> None:
    metrics = create_metrics()
    context = ApplicationContext(metrics=metrics, runtime=_runtime(), client_factory=default_client_factory)

    set_application_context(context)

    assert get_application_context() is context

    reset_application_context()

    with pytest.raises(MetricNotFoundError):
        metrics.definition(BALANCE_AVAILABLE)


def test_create_default_context_loads_config(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    config_file = tmp_path.joinpath("config.toml")
    config_file.write_text(
        """
[[validators]]
name = "Kiln"
account = "0xabc"
operator_address = "storyvaloper1kiln"
""",
        encoding="utf-8",
    )

    monkeypatch.setenv("VALIDATOR_EXPORTER_CONFIG_PATH", str(tmp_path))
    get_settings.cache_clear()

    try:
        context = create_default_context()

        try:
            assert [validator.account for validator in context.validators] == ["0xabc"]
            assert context.runtime.config_path == config_file.resolve()
            assert get_runtime_settings() is context.runtime
        finally:
            context.metrics.close()
    finally:
        get_settings.cache_clear()
