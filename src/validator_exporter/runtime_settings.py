"""Utilities for resolving application settings alongside the validator set."""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from .config import ExporterConfig, TrackedValidator, load_exporter_config, resolve_config_path
from .settings import AppSettings, get_settings


@dataclass(slots=True)
class RuntimeSettings:
    """Resolved environment settings paired with the configured validator set."""

    app: AppSettings

    exporter: ExporterConfig

    config_path: Path

    @property
    def validators(self) -> list[TrackedValidator]:
        return self.exporter.validators

    @property
    def api_base_url(self) -> str:
        """Base URL from the config file, falling back to the environment."""

        return (self.exporter.api_url or self.app.api.base_url).rstrip("/")

    @property
    def poll_interval(self) -> str:
        return self.exporter.poll_interval or self.app.poller.interval


@lru_cache(maxsize=1)
def get_runtime_settings(*, config_path: Path | None = None) -> RuntimeSettings:
    """Load environment settings and the validator set as a single bundle."""

    app_settings = get_settings()

    resolved_path = config_path or resolve_config_path(app_settings)

    exporter_config = load_exporter_config(resolved_path)

    return RuntimeSettings(
        app=app_settings,
        exporter=exporter_config,
        config_path=resolved_path,
    )


def reset_runtime_settings_cache() -> None:
    """Clear the runtime settings cache so fresh configuration is loaded."""

    get_runtime_settings.cache_clear()


__all__ = [
    "RuntimeSettings",
    "get_runtime_settings",
    "reset_runtime_settings_cache",
]
