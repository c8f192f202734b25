"""Runtime dependency container for wiring metrics, configs, and API clients."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable

from .client import ApiClientProtocol, ValidatorApiClient
from .config import TrackedValidator
from .health import PollHealth
from .metrics import MetricsRegistry, create_metrics
from .runtime_settings import RuntimeSettings, get_runtime_settings
from .settings import AppSettings


@dataclass(slots=True)
class ApplicationContext:
    """Bundle of services required while the exporter is running."""

    metrics: MetricsRegistry

    runtime: RuntimeSettings

    client_factory: Callable[[RuntimeSettings], ApiClientProtocol]

    health: PollHealth = field(default_factory=PollHealth)

    def create_api_client(self) -> ApiClientProtocol:
        """Construct an API client for the configured base URL."""

        return self.client_factory(self.runtime)

    @property
    def settings(self) -> AppSettings:
        """Return resolved environment-driven application settings."""

        return self.runtime.app

    @property
    def validators(self) -> list[TrackedValidator]:
        """Expose the configured validator set."""

        return self.runtime.validators


def default_client_factory(runtime: RuntimeSettings) -> ApiClientProtocol:
    """Create an httpx-backed `ValidatorApiClient` for the runtime settings."""

    return ValidatorApiClient(
        runtime.api_base_url,
        timeout_seconds=runtime.app.api.request_timeout_seconds,
    )


def create_default_context() -> ApplicationContext:
    """Build an application context with a fresh metrics registry."""

    runtime_settings = get_runtime_settings()
    metrics_settings = runtime_settings.app.metrics

    return ApplicationContext(
        metrics=create_metrics(
            metrics_settings.namespace,
            include_process_metrics=metrics_settings.process_metrics_enabled,
        ),
        runtime=runtime_settings,
        client_factory=default_client_factory,
    )


_APPLICATION_CONTEXT: ApplicationContext | None = None


def get_application_context() -> ApplicationContext:
    """Return the current application context, creating one when absent."""

    global _APPLICATION_CONTEXT

    if _APPLICATION_CONTEXT is None:
        _APPLICATION_CONTEXT = create_default_context()

    return _APPLICATION_CONTEXT


def set_application_context(context: ApplicationContext | None) -> None:
    """Replace the globally cached application context."""

    global _APPLICATION_CONTEXT

    _APPLICATION_CONTEXT = context


def reset_application_context() -> None:
    """Close the cached context's registry and clear it."""

    global _APPLICATION_CONTEXT

    if _APPLICATION_CONTEXT is not None:
        _APPLICATION_CONTEXT.metrics.close()

    _APPLICATION_CONTEXT = None


__all__ = [
    "ApplicationContext",
    "create_default_context",
    "default_client_factory",
    "get_application_context",
    "reset_application_context",
    "set_application_context",
]
