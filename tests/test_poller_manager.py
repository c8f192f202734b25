from __future__ import annotations

import asyncio
import importlib
import logging
from pathlib import Path
from typing import Any

import pytest
from fastapi import FastAPI

from validator_exporter.config import ExporterConfig, TrackedValidator
from validator_exporter.context import ApplicationContext
from validator_exporter.metrics import MetricsRegistry
from validator_exporter.poller.manager import PollerManager, get_poller_manager, reset_poller_manager
from validator_exporter.runtime_settings import RuntimeSettings
from validator_exporter.settings import get_settings

manager_module = importlib.import_module("validator_exporter.poller.manager")


def _build_context(metrics: MetricsRegistry, validators: list[TrackedValidator]) -> ApplicationContext:
    return ApplicationContext(
        metrics=metrics,
        runtime=RuntimeSettings(
            app=get_settings(),
            exporter=ExporterConfig(validators=validators),
            config_path=Path("config.toml"),
        ),
        client_factory=lambda _runtime: None,
    )


@pytest.mark.anyio
@pytest.mark.parametrize("anyio_backend", ["asyncio"], indirect=True)
async def test_create_task_is_idempotent_across_apps(
    monkeypatch: pytest.MonkeyPatch,
    metrics: MetricsRegistry,
    validator: TrackedValidator,
) -> None:
    started: list[list[TrackedValidator]] = []

    async def _poll(validators: list[TrackedValidator], *, context: Any, stop_event: asyncio.Event) -> None:
        started.append(validators)
        await stop_event.wait()

    monkeypatch.setattr(manager_module.poller_control, "poll_validators", _poll)

    manager = PollerManager()
    context = _build_context(metrics, [validator])
    health_app = FastAPI()
    metrics_app = FastAPI()

    first = manager.create_task([validator], context, health_app)
    second = manager.create_task([validator], context, metrics_app)

    await asyncio.sleep(0)

    assert first is second
    assert started == [[validator]]
    assert manager.is_running() is True
    assert manager.should_cleanup(health_app) is True
    assert manager.should_cleanup(metrics_app) is False

    await manager.shutdown(timeout_seconds=1.0)

    assert first.done() and not first.cancelled()
    assert manager.is_running() is False


@pytest.mark.anyio
@pytest.mark.parametrize("anyio_backend", ["asyncio"], indirect=True)
async def test_shutdown_cancels_task_that_ignores_stop_event(
    monkeypatch: pytest.MonkeyPatch,
    metrics: MetricsRegistry,
    validator: TrackedValidator,
    caplog: pytest.LogCaptureFixture,
) -> None:
    async def _poll(validators: list[TrackedValidator], **kwargs: Any) -> None:
        await asyncio.sleep(3600)

    monkeypatch.setattr(manager_module.poller_control, "poll_validators", _poll)

    manager = PollerManager()
    task = manager.create_task([validator], _build_context(metrics, [validator]), FastAPI())

    caplog.set_level(logging.WARNING)

    await manager.shutdown(timeout_seconds=0.01)

    assert task.cancelled()
    assert "did not stop within" in caplog.text


@pytest.mark.anyio
@pytest.mark.parametrize("anyio_backend", ["asyncio"], indirect=True)
async def test_no_validators_creates_no_task(metrics: MetricsRegistry) -> None:
    manager = PollerManager()
    app = FastAPI()

    assert manager.create_task([], _build_context(metrics, []), app) is None
    assert manager.should_cleanup(app) is True

    await manager.shutdown()


def test_global_manager_reset() -> None:
    manager = get_poller_manager()
    manager.tasks_created = True

    reset_poller_manager()

    assert get_poller_manager() is manager
    assert manager.tasks_created is False
