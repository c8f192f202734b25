"""Per-validator fan-out of the account, validator and delegator fetches."""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, TypeVar

from ..client import (
    ACCOUNT_ENDPOINT,
    DELEGATORS_ENDPOINT,
    VALIDATOR_ENDPOINT,
    ApiClientProtocol,
)
from ..config import TrackedValidator
from ..exceptions import ApiDecodeError, ApiError, ValidatorFetchError
from ..health import PollHealth
from ..logging import build_log_extra, get_logger
from ..metrics import MetricsRegistry, record_api_error, record_fetch_success
from ..models import AccountSnapshot, DelegatorSnapshot, ValidatorSnapshot
from ..parsers import parse_account, parse_delegators, parse_validator
from ..publisher import publish_account, publish_delegators, publish_validator

LOGGER = get_logger(__name__)

SnapshotT = TypeVar("SnapshotT")


async def _fetch_and_publish(
    endpoint: str,
    validator: TrackedValidator,
    *,
    client: ApiClientProtocol,
    metrics: MetricsRegistry,
    parse: Callable[[Any], SnapshotT],
    publish: Callable[[MetricsRegistry, TrackedValidator, SnapshotT], None],
) -> SnapshotT:
    try:
        payload = await client.get_json(endpoint, validator)

        try:
            snapshot = parse(payload)
        except ApiDecodeError as exc:
            raise ApiDecodeError(
                exc.message,
                field=exc.field,
                validator=validator.account,
                endpoint=endpoint,
                request_url=client.build_url(endpoint, validator),
            ) from exc
    except ApiError as exc:
        record_api_error(metrics, endpoint, exc.error_type)
        raise

    publish(metrics, validator, snapshot)
    record_fetch_success(metrics, validator, endpoint)

    return snapshot


async def fetch_account(
    validator: TrackedValidator,
    *,
    client: ApiClientProtocol,
    metrics: MetricsRegistry,
) -> AccountSnapshot:
    return await _fetch_and_publish(
        ACCOUNT_ENDPOINT,
        validator,
        client=client,
        metrics=metrics,
        parse=parse_account,
        publish=publish_account,
    )


async def fetch_validator(
    validator: TrackedValidator,
    *,
    client: ApiClientProtocol,
    metrics: MetricsRegistry,
) -> ValidatorSnapshot:
    return await _fetch_and_publish(
        VALIDATOR_ENDPOINT,
        validator,
        client=client,
        metrics=metrics,
        parse=parse_validator,
        publish=publish_validator,
    )


async def fetch_delegators(
    validator: TrackedValidator,
    *,
    client: ApiClientProtocol,
    metrics: MetricsRegistry,
) -> DelegatorSnapshot:
    return await _fetch_and_publish(
        DELEGATORS_ENDPOINT,
        validator,
        client=client,
        metrics=metrics,
        parse=parse_delegators,
        publish=publish_delegators,
    )


FETCHERS: tuple[tuple[str, Callable[..., Awaitable[Any]]], ...] = (
    (ACCOUNT_ENDPOINT, fetch_account),
    (VALIDATOR_ENDPOINT, fetch_validator),
    (DELEGATORS_ENDPOINT, fetch_delegators),
)


async def _capture(awaitable: Awaitable[Any]) -> BaseException | None:
    # Sibling fetches keep running when one fails.
    try:
        await awaitable
    except Exception as exc:  # noqa: BLE001
        return exc

    return None


async def fetch_validator_info(
    validator: TrackedValidator,
    *,
    client: ApiClientProtocol,
    metrics: MetricsRegistry,
    health: PollHealth | None = None,
) -> None:
    """Run the three fetches for one validator concurrently and join on all of them.

    Each fetch publishes its own metrics as soon as it succeeds, so a failure
    in one endpoint leaves only that endpoint's metrics stale.

    Raises:
        ValidatorFetchError: If at least one of the fetches failed.
    """

    async with asyncio.TaskGroup() as group:
        tasks = {
            endpoint: group.create_task(
                _capture(fetcher(validator, client=client, metrics=metrics)),
                name=f"fetch-{endpoint}-{validator.account}",
            )
            for endpoint, fetcher in FETCHERS
        }

    errors: dict[str, BaseException] = {}

    for endpoint, task in tasks.items():
        error = task.result()

        if error is None:
            continue

        errors[endpoint] = error

        extra = build_log_extra(
            validator=validator,
            endpoint=endpoint,
            request_url=getattr(error, "request_url", None),
            status_code=getattr(error, "status_code", None),
        )

        if isinstance(error, ApiError):
            LOGGER.warning(
                "Failed to fetch %s for validator %s: %s",
                endpoint,
                validator.name,
                error.message,
                extra=extra,
            )
        else:
            LOGGER.error(
                "Unexpected error fetching %s for validator %s.",
                endpoint,
                validator.name,
                exc_info=error,
                extra=extra,
            )

    if errors:
        if health is not None:
            health.record_failure(validator)

        raise ValidatorFetchError(validator.account, errors)

    if health is not None:
        health.record_success(validator)


__all__ = [
    "FETCHERS",
    "fetch_account",
    "fetch_delegators",
    "fetch_validator",
    "fetch_validator_info",
]
