import logging
import logging.config
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from .api import register_health_routes, register_metrics_routes, register_routes
from .config import ExporterConfig, resolve_config_path
from .context import (
    ApplicationContext,
    default_client_factory,
    get_application_context,
    reset_application_context,
    set_application_context,
)
from .exceptions import ConfigError
from .logging import (
    JsonFormatter,
    StructuredTextFormatter,
    build_log_extra,
    get_logger,
)
from .metrics import create_metrics, set_configured_validators, set_exporter_up
from .poller.manager import get_poller_manager
from .runtime_settings import RuntimeSettings
from .settings import AppSettings, get_settings

SETTINGS = get_settings()


def _configure_logging(settings: AppSettings) -> None:
    """Configure logging based on application settings."""
    log_level = settings.logging.level
    log_format = settings.logging.format

    if log_level not in logging.getLevelNamesMapping():
        log_level = "INFO"

    if log_format == "json":
        formatter_config = {
            "()": JsonFormatter,
            "datefmt": "%Y-%m-%dT%H:%M:%S%z",
        }
    else:
        formatter_config = {
            "()": StructuredTextFormatter,
            "format": "%(asctime)s %(levelname)s [%(name)s] %(message)s",
            "datefmt": "%Y-%m-%dT%H:%M:%S%z",
            "color_enabled": settings.logging.color_enabled,
        }

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"standard": formatter_config},
            "handlers": {
                "default": {
                    "class": "logging.StreamHandler",
                    "formatter": "standard",
                }
            },
            "root": {"level": log_level, "handlers": ["default"]},
            "loggers": {
                "uvicorn": {
                    "handlers": ["default"],
                    "level": log_level,
                    "propagate": False,
                },
                "uvicorn.error": {
                    "handlers": ["default"],
                    "level": log_level,
                    "propagate": False,
                },
                "uvicorn.access": {
                    "handlers": ["default"],
                    "level": log_level,
                    "propagate": False,
                },
                "httpx": {"level": "WARNING"},
            },
        }
    )


_configure_logging(SETTINGS)
LOGGER = get_logger(__name__)


APP_TITLE = "Validator Prometheus Exporter"
APP_DESCRIPTION = "Exposes Prometheus metrics for tracked blockchain validators."


def _empty_context(settings: AppSettings) -> ApplicationContext:
    config_path = resolve_config_path(settings)

    LOGGER.warning(
        "Configuration file not found at %s; no validators will be polled.",
        config_path,
        extra=build_log_extra(additional={"config_path": str(config_path)}),
    )

    return ApplicationContext(
        metrics=create_metrics(
            settings.metrics.namespace,
            include_process_metrics=settings.metrics.process_metrics_enabled,
        ),
        runtime=RuntimeSettings(
            app=settings,
            exporter=ExporterConfig(),
            config_path=config_path,
        ),
        client_factory=default_client_factory,
    )


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Start the shared poller on startup and stop it on shutdown.

    Both the health and metrics apps use this lifespan; the poller manager
    ensures only the first one to start creates the polling task and only
    that app tears it down.
    """

    try:
        context = get_application_context()
    except FileNotFoundError:
        context = _empty_context(SETTINGS)
        set_application_context(context)
    except ConfigError as exc:
        LOGGER.error("Configuration validation error: %s", exc)
        raise

    validators = context.validators

    set_configured_validators(context.metrics, validators)
    set_exporter_up(context.metrics, True)
    context.health.set_configured(validators)

    app.state.context = context

    manager = get_poller_manager()
    app.state.polling_task = manager.create_task(validators, context, app)

    try:
        yield
    finally:
        if manager.should_cleanup(app):
            set_exporter_up(context.metrics, False)

            await manager.shutdown(
                timeout_seconds=context.settings.poller.shutdown_timeout_seconds,
            )
            manager.reset()

            reset_application_context()
            app.state.context = None
            app.state.polling_task = None


def _build_app(
    title: str,
    description: str,
    context: ApplicationContext | None,
) -> FastAPI:
    if context is not None:
        set_application_context(context)

    return FastAPI(title=title, description=description, lifespan=_lifespan)


def create_app(*, context: ApplicationContext | None = None) -> FastAPI:
    """Create a FastAPI instance serving both health and metrics routes.

    Args:
        context: Optional application context for dependency injection (defaults to global context).
    """

    app = _build_app(APP_TITLE, APP_DESCRIPTION, context)
    register_routes(app)

    return app


def create_health_app(*, context: ApplicationContext | None = None) -> FastAPI:
    """Create a FastAPI instance for health endpoints only (port 8080)."""

    app = _build_app(
        f"{APP_TITLE} - Health",
        "Health check endpoints for the validator exporter.",
        context,
    )
    register_health_routes(app)

    return app


def create_metrics_app(*, context: ApplicationContext | None = None) -> FastAPI:
    """Create a FastAPI instance for the metrics endpoint only (port 9100).

    Shares the lifespan with the health app and reuses its polling task.
    """

    app = _build_app(
        f"{APP_TITLE} - Metrics",
        "Prometheus metrics endpoint for the validator exporter.",
        context,
    )
    register_metrics_routes(app)

    return app
