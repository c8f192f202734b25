"""Application settings and environment-driven configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

DEFAULT_API_BASE_URL = "https://api.testnet.storyscan.app"


def _as_int(value: str | None, default: int) -> int:
    """Convert a string value to an integer, returning default on failure."""
    if value is None:
        return default

    try:
        return int(value)
    except ValueError:
        return default


def _as_float(value: str | None, default: float) -> float:
    """Convert a string value to a float, returning default on failure."""
    if value is None:
        return default

    try:
        return float(value)
    except ValueError:
        return default


def _as_bool(value: str | None, default: bool) -> bool:
    """Convert a string value to a boolean, returning default on failure.

    Recognizes truthy values: "1", "true", "yes", "on" (case-insensitive).
    Recognizes falsy values: "0", "false", "no", "off" (case-insensitive).
    """
    if value is None:
        return default

    normalized = value.strip().lower()

    if normalized in {"1", "true", "yes", "on"}:
        return True

    if normalized in {"0", "false", "no", "off"}:
        return False

    return default


@dataclass(slots=True)
class LoggingSettings:
    level: str
    format: str
    color_enabled: bool


@dataclass(slots=True)
class PollerSettings:
    interval: str
    parallel_validators: bool
    shutdown_timeout_seconds: float


@dataclass(slots=True)
class ApiSettings:
    base_url: str
    request_timeout_seconds: float


@dataclass(slots=True)
class MetricsSettings:
    namespace: str
    process_metrics_enabled: bool


@dataclass(slots=True)
class HealthSettings:
    readiness_stale_threshold_seconds: int


@dataclass(slots=True)
class ServerSettings:
    host: str
    health_port: int
    metrics_port: int


@dataclass(slots=True)
class ConfigSettings:
    config_path_env: str | None
    default_config_filename: str

    def resolve_config_path(self) -> Path:
        if self.config_path_env:
            configured_path = Path(self.config_path_env).expanduser().resolve()

            if configured_path.is_dir():
                return configured_path.joinpath(self.default_config_filename)

            return configured_path

        return Path.cwd().joinpath(self.default_config_filename).resolve()


@dataclass(slots=True)
class AppSettings:
    logging: LoggingSettings
    poller: PollerSettings
    api: ApiSettings
    metrics: MetricsSettings
    health: HealthSettings
    server: ServerSettings
    config: ConfigSettings


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    logging_settings = LoggingSettings(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format=os.getenv("LOG_FORMAT", "text").lower(),
        color_enabled=_as_bool(os.getenv("LOG_COLOR_ENABLED"), True),
    )

    poller_settings = PollerSettings(
        interval=os.getenv("POLL_INTERVAL", "1s"),
        parallel_validators=_as_bool(os.getenv("POLL_PARALLEL_VALIDATORS"), False),
        shutdown_timeout_seconds=_as_float(os.getenv("POLL_SHUTDOWN_TIMEOUT_SECONDS"), 5.0),
    )

    api_settings = ApiSettings(
        base_url=os.getenv("VALIDATOR_API_BASE_URL", DEFAULT_API_BASE_URL),
        request_timeout_seconds=_as_float(os.getenv("API_REQUEST_TIMEOUT_SECONDS"), 10.0),
    )

    metrics_settings = MetricsSettings(
        namespace=os.getenv("METRICS_NAMESPACE", "").strip(),
        process_metrics_enabled=_as_bool(os.getenv("PROCESS_METRICS_ENABLED"), True),
    )

    health_settings = HealthSettings(
        readiness_stale_threshold_seconds=_as_int(
            os.getenv("READINESS_STALE_THRESHOLD_SECONDS"),
            300,
        )
    )

    server_settings = ServerSettings(
        host=os.getenv("SERVER_HOST", "0.0.0.0"),
        health_port=_as_int(os.getenv("HEALTH_PORT"), 8080),
        metrics_port=_as_int(os.getenv("METRICS_PORT"), 9100),
    )

    config_settings = ConfigSettings(
        config_path_env=os.getenv("VALIDATOR_EXPORTER_CONFIG_PATH"),
        default_config_filename="config.toml",
    )

    return AppSettings(
        logging=logging_settings,
        poller=poller_settings,
        api=api_settings,
        metrics=metrics_settings,
        health=health_settings,
        server=server_settings,
        config=config_settings,
    )


__all__ = ["AppSettings", "DEFAULT_API_BASE_URL", "get_settings"]
