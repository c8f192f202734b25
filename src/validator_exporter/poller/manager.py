"""Poller manager for coordinating the validator polling task across FastAPI apps."""

from __future__ import annotations

import asyncio
import threading
from typing import TYPE_CHECKING

from fastapi import FastAPI

from ..config import TrackedValidator
from ..context import ApplicationContext
from ..logging import build_log_extra, get_logger
from . import control as poller_control

if TYPE_CHECKING:
    from collections.abc import Sequence

LOGGER = get_logger(__name__)


class PollerManager:
    """Owns the background polling task shared by the health and metrics apps.

    Both apps run the same lifespan; only the first to start creates the
    task and only that app tears it down. Shutdown first sets the stop event
    so the loop ends at a safe point, then cancels the task if it has not
    finished within the timeout.
    """

    def __init__(self) -> None:
        self.tasks_created: bool = False
        self.polling_task: asyncio.Task | None = None
        self.stop_event: asyncio.Event | None = None
        self.primary_app: FastAPI | None = None
        self._lock = threading.Lock()

    def create_task(
        self,
        validators: Sequence[TrackedValidator],
        context: ApplicationContext,
        app: FastAPI,
    ) -> asyncio.Task | None:
        """Create the polling task if no app has created it yet.

        Returns:
            The polling task, or None when there are no validators to poll.
        """
        with self._lock:
            if self.tasks_created:
                LOGGER.debug("Reusing polling task from another app instance")
                return self.polling_task

            self.tasks_created = True
            self.primary_app = app

            if not validators:
                LOGGER.info("No validators configured; polling is disabled.")
                return None

            self.stop_event = asyncio.Event()
            self.polling_task = asyncio.create_task(
                poller_control.poll_validators(
                    list(validators),
                    context=context,
                    stop_event=self.stop_event,
                ),
                name="validator-poller",
            )

            LOGGER.debug(
                "Created polling task for %d validator(s)",
                len(validators),
                extra=build_log_extra(additional={"validator_count": len(validators)}),
            )

            return self.polling_task

    def should_cleanup(self, app: FastAPI) -> bool:
        with self._lock:
            return self.tasks_created and self.primary_app is app

    def is_running(self) -> bool:
        with self._lock:
            return self.polling_task is not None and not self.polling_task.done()

    async def shutdown(self, timeout_seconds: float = 5.0) -> None:
        """Stop the polling task, cancelling it if it outlives the timeout."""
        with self._lock:
            task = self.polling_task
            stop_event = self.stop_event
            self.polling_task = None
            self.stop_event = None

        if task is None or task.done():
            return

        if stop_event is not None:
            stop_event.set()

        done, _ = await asyncio.wait({task}, timeout=timeout_seconds)

        if not done:
            LOGGER.warning(
                "Polling task did not stop within %s seconds; cancelling",
                timeout_seconds,
                extra=build_log_extra(additional={"timeout_seconds": timeout_seconds}),
            )
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        elif not task.cancelled() and task.exception() is not None:
            LOGGER.error(
                "Polling task exited with an error",
                exc_info=task.exception(),
            )

        LOGGER.debug("Polling task stopped")

    def reset(self) -> None:
        """Reset the manager state (useful for testing)."""
        with self._lock:
            self.tasks_created = False
            self.polling_task = None
            self.stop_event = None
            self.primary_app = None


_poller_manager: PollerManager | None = None
_manager_lock = threading.Lock()


def get_poller_manager() -> PollerManager:
    global _poller_manager

    with _manager_lock:
        if _poller_manager is None:
            _poller_manager = PollerManager()

        return _poller_manager


def reset_poller_manager() -> None:
    global _poller_manager

    with _manager_lock:
        if _poller_manager is not None:
            _poller_manager.reset()


__all__ = [
    "PollerManager",
    "get_poller_manager",
    "reset_poller_manager",
]
