import asyncio
import signal
import sys

import uvicorn
from fastapi import FastAPI

from .app import create_health_app, create_metrics_app
from .logging import get_logger
from .settings import get_settings

SETTINGS = get_settings()

LOGGER = get_logger(__name__)


def _build_server(app: FastAPI, port: int) -> uvicorn.Server:
    # Logging is configured by the app module; uvicorn must not replace it.
    config = uvicorn.Config(
        app,
        host=SETTINGS.server.host,
        port=port,
        log_config=None,
    )

    return uvicorn.Server(config)


async def run_servers() -> None:
    """Serve the health and metrics apps side by side.

    Both apps share one lifespan; the first to start owns the polling task,
    and shutting down either server runs the lifespan cleanup. Cancelling
    this coroutine cancels both servers.
    """
    servers = (
        _build_server(create_health_app(), SETTINGS.server.health_port),
        _build_server(create_metrics_app(), SETTINGS.server.metrics_port),
    )

    LOGGER.info(
        "Starting health server on port %s and metrics server on port %s.",
        SETTINGS.server.health_port,
        SETTINGS.server.metrics_port,
    )

    async with asyncio.TaskGroup() as group:
        for server in servers:
            group.create_task(server.serve())


def _raise_keyboard_interrupt(signum: int, frame: object) -> None:
    raise KeyboardInterrupt(f"Received signal {signum}")


def run() -> None:
    """Run both servers, turning SIGTERM and SIGINT into a clean exit."""
    for signum in (signal.SIGTERM, signal.SIGINT):
        signal.signal(signum, _raise_keyboard_interrupt)

    try:
        asyncio.run(run_servers())
    except KeyboardInterrupt:
        LOGGER.info("Shutdown requested; exiting.")
        sys.exit(0)


if __name__ == "__main__":
    run()
