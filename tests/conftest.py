from __future__ import annotations

import json
from typing import Any, Callable

import httpx
import pytest
from prometheus_client import CollectorRegistry

from validator_exporter.client import ValidatorApiClient
from validator_exporter.config import TrackedValidator
from validator_exporter.context import reset_application_context
from validator_exporter.metrics import MetricsRegistry, create_metrics
from validator_exporter.poller.manager import reset_poller_manager
from validator_exporter.runtime_settings import reset_runtime_settings_cache

API_BASE_URL = "https://api.test"

ACCOUNT_PAYLOAD: dict[str, Any] = {
    "address": "0xabc",
    "balance": {
        "available": 1000,
        "vesting": 0,
        "delegated": 250000,
        "unbonding": 10,
        "reward": 75,
        "commission": 50,
    },
    "assets": [{"denom": "ip", "amount": "1000"}],
}

VALIDATOR_PAYLOAD: dict[str, Any] = {
    "status": 3,
    "tokens": 1500000,
    "delegator_shares": "1500000.000000000000000000",
    "unbonding_time": "2024-05-01T12:00:00.5Z",
    "commission": {
        "commission_rates": {
            "rate": "0.050000000000000000",
            "max_rate": "0.200000000000000000",
            "max_change_rate": "0.010000000000000000",
        },
        "update_time": "2024-01-01T00:00:00Z",
    },
    "min_self_delegation": "1024",
    "participation": {"rate": 97, "total": 100, "voted": 98},
    "signingInfo": {"bondedHeight": 12345, "jailedUntil": "1970-01-01T00:00:00Z", "tombstoned": False},
    "uptime": {
        "historicalUptime": {"earliestHeight": 100, "lastSyncHeight": 200, "successBlocks": 95},
        "windowUptime": {"uptime": 0.995, "windowStart": 150, "windowEnd": 210},
    },
    "votingPowerPercent": 1.25,
    "cumulativeShare": 42.5,
}

DELEGATORS_PAYLOAD: dict[str, Any] = {"validatorDelegators": 17}


@pytest.fixture(autouse=True)
def reset_exporter_state() -> None:
    reset_application_context()
    reset_runtime_settings_cache()
    reset_poller_manager()
    yield
    reset_application_context()
    reset_runtime_settings_cache()
    reset_poller_manager()


@pytest.fixture
def metrics() -> MetricsRegistry:
    registry = create_metrics(registry=CollectorRegistry())
    yield registry
    registry.close()


@pytest.fixture
def validator() -> TrackedValidator:
    return TrackedValidator(
        name="Kiln",
        account="0xabc",
        operator_address="storyvaloper1kiln",
        address="KILNADDR",
    )


@pytest.fixture
def api_responses(validator: TrackedValidator) -> dict[str, tuple[int, Any]]:
    """Map of request path to (status, JSON body or raw bytes) served by `api_client`."""

    return {
        f"/accounts/{validator.account}": (200, ACCOUNT_PAYLOAD),
        f"/validators/{validator.operator_address}": (200, VALIDATOR_PAYLOAD),
        f"/validators/{validator.operator_address}/delegators": (200, DELEGATORS_PAYLOAD),
    }


@pytest.fixture
def requested_paths() -> list[str]:
    return []


@pytest.fixture
def mock_transport(
    api_responses: dict[str, tuple[int, Any]],
    requested_paths: list[str],
) -> httpx.MockTransport:
    def _handler(request: httpx.Request) -> httpx.Response:
        requested_paths.append(request.url.path)

        if request.url.path not in api_responses:
            return httpx.Response(404, json={"error": "not found"})

        status_code, body = api_responses[request.url.path]

        if isinstance(body, bytes):
            return httpx.Response(status_code, content=body)

        return httpx.Response(status_code, content=json.dumps(body).encode())

    return httpx.MockTransport(_handler)


@pytest.fixture
def api_client_factory(
    mock_transport: httpx.MockTransport,
) -> Callable[[], ValidatorApiClient]:
    def _factory() -> ValidatorApiClient:
        return ValidatorApiClient(
            API_BASE_URL,
            http_client=httpx.AsyncClient(transport=mock_transport),
        )

    return _factory
