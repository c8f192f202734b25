"""Async control loop for validator polling."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Sequence

from ..client import ApiClientProtocol
from ..config import TrackedValidator
from ..context import ApplicationContext, get_application_context
from ..exceptions import ValidatorFetchError
from ..health import PollHealth
from ..logging import build_log_extra, get_logger, log_duration
from ..metrics import MetricsRegistry
from .fetch import fetch_validator_info
from .intervals import determine_poll_interval_seconds

LOGGER = get_logger(__name__)


async def poll_validators(
    validators: Sequence[TrackedValidator],
    *,
    context: ApplicationContext | None = None,
    client: ApiClientProtocol | None = None,
    stop_event: asyncio.Event | None = None,
) -> None:
    """Poll every tracked validator once per tick until stopped or cancelled.

    Each tick runs one poll cycle and then waits out the remainder of the
    interval. A cycle that overruns the interval is followed immediately by
    the next one; ticks are never skipped or overlapped.

    Args:
        validators: Validators to poll, in configuration order.
        context: Optional application context (defaults to global context).
        client: Optional API client; one is created from the context and
            closed on exit when omitted.
        stop_event: Optional event that ends the loop at the next validator
            boundary or during the tick wait.
    """

    context_obj = context or get_application_context()
    stop = stop_event or asyncio.Event()

    owns_client = client is None
    api_client = client or context_obj.create_api_client()

    interval_seconds = determine_poll_interval_seconds(context_obj.runtime.poll_interval)
    parallel = context_obj.settings.poller.parallel_validators

    LOGGER.info(
        "Polling %d validator(s) every %s seconds.",
        len(validators),
        interval_seconds,
        extra=build_log_extra(
            additional={
                "validator_count": len(validators),
                "parallel_validators": parallel,
            }
        ),
    )

    try:
        while not stop.is_set():
            start_time = time.monotonic()

            with log_duration(
                LOGGER,
                "poll_cycle",
                level=logging.DEBUG,
                extra=build_log_extra(additional={"validator_count": len(validators)}),
            ):
                await run_poll_cycle(
                    validators,
                    client=api_client,
                    metrics=context_obj.metrics,
                    health=context_obj.health,
                    stop_event=stop,
                    parallel=parallel,
                )

            elapsed = time.monotonic() - start_time
            sleep_duration = max(interval_seconds - elapsed, 0)

            if await wait_for_stop(stop, sleep_duration):
                break
    except asyncio.CancelledError:
        LOGGER.debug("Validator polling task cancelled.")
        raise
    finally:
        if owns_client:
            await api_client.aclose()

    LOGGER.info("Validator polling stopped.")


async def run_poll_cycle(
    validators: Sequence[TrackedValidator],
    *,
    client: ApiClientProtocol,
    metrics: MetricsRegistry,
    health: PollHealth | None = None,
    stop_event: asyncio.Event | None = None,
    parallel: bool = False,
) -> int:
    """Run one poll round over the validator set.

    Returns:
        The number of validators whose fetches did not all succeed.
    """

    if parallel:
        async with asyncio.TaskGroup() as group:
            tasks = [
                group.create_task(
                    _poll_one(validator, client=client, metrics=metrics, health=health),
                    name=f"poll-{validator.account}",
                )
                for validator in validators
            ]

        return sum(1 for task in tasks if not task.result())

    failures = 0

    for validator in validators:
        if stop_event is not None and stop_event.is_set():
            break

        if not await _poll_one(validator, client=client, metrics=metrics, health=health):
            failures += 1

    return failures


async def _poll_one(
    validator: TrackedValidator,
    *,
    client: ApiClientProtocol,
    metrics: MetricsRegistry,
    health: PollHealth | None,
) -> bool:
    try:
        await fetch_validator_info(validator, client=client, metrics=metrics, health=health)
    except ValidatorFetchError as exc:
        LOGGER.warning(
            "Error fetching validator info for %s: %s",
            validator.name,
            exc.message,
            extra=build_log_extra(validator=validator, additional=exc.context),
        )
        return False
    except Exception as exc:  # noqa: BLE001
        LOGGER.exception(
            "Unexpected error while polling validator %s.",
            validator.name,
            exc_info=exc,
            extra=build_log_extra(validator=validator),
        )
        return False

    return True


async def wait_for_stop(stop_event: asyncio.Event, timeout: float) -> bool:
    """Wait up to ``timeout`` seconds for the stop event; True when it fired."""

    if stop_event.is_set():
        return True

    if timeout <= 0:
        await asyncio.sleep(0)
        return stop_event.is_set()

    try:
        await asyncio.wait_for(stop_event.wait(), timeout=timeout)
    except asyncio.TimeoutError:
        return False

    return True


__all__ = ["poll_validators", "run_poll_cycle", "wait_for_stop"]
