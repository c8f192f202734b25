"""Async HTTP client for the validator API."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable
from urllib.parse import quote

import httpx

from .config import TrackedValidator
from .exceptions import (
    ApiConnectionError,
    ApiDecodeError,
    ApiError,
    ApiStatusError,
    ApiTimeoutError,
)
from .logging import build_log_extra, get_logger
from .parsers import decode_json

LOGGER = get_logger(__name__)

ACCOUNT_ENDPOINT = "account"
VALIDATOR_ENDPOINT = "validator"
DELEGATORS_ENDPOINT = "delegators"


def account_path(validator: TrackedValidator) -> str:
    return f"/accounts/{quote(validator.account, safe='')}"


def validator_path(validator: TrackedValidator) -> str:
    return f"/validators/{quote(validator.operator_address, safe='')}"


def delegators_path(validator: TrackedValidator) -> str:
    return f"{validator_path(validator)}/delegators"


ENDPOINT_PATHS = {
    ACCOUNT_ENDPOINT: account_path,
    VALIDATOR_ENDPOINT: validator_path,
    DELEGATORS_ENDPOINT: delegators_path,
}


@runtime_checkable
class ApiClientProtocol(Protocol):
    @property
    def base_url(self) -> str: ...

    def build_url(self, endpoint: str, validator: TrackedValidator) -> str: ...

    async def get_json(
        self,
        endpoint: str,
        validator: TrackedValidator,
    ) -> Any: ...

    async def aclose(self) -> None: ...


class ValidatorApiClient:
    """Thin wrapper over `httpx.AsyncClient` that enforces the fetch contract.

    Each call issues one GET, requires HTTP 200, reads the full body and
    decodes it as JSON. Transport failures, unexpected statuses and invalid
    bodies are raised as `ApiError` subclasses carrying the validator,
    endpoint and request URL. Cancellation is never wrapped.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout_seconds: float = 10.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_seconds),
            headers={"Accept": "application/json"},
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    def build_url(self, endpoint: str, validator: TrackedValidator) -> str:
        try:
            path_builder = ENDPOINT_PATHS[endpoint]
        except KeyError:
            raise ValueError(f"Unknown validator API endpoint '{endpoint}'.") from None

        return f"{self._base_url}{path_builder(validator)}"

    async def get_json(self, endpoint: str, validator: TrackedValidator) -> Any:
        request_url = self.build_url(endpoint, validator)
        error_kwargs: dict[str, Any] = {
            "validator": validator.account,
            "endpoint": endpoint,
            "request_url": request_url,
        }

        try:
            response = await self._http.get(request_url, follow_redirects=True)
        except httpx.TimeoutException as exc:
            raise ApiTimeoutError(f"Request to {request_url} timed out: {exc}", **error_kwargs) from exc
        except httpx.TransportError as exc:
            raise ApiConnectionError(f"Request to {request_url} failed: {exc}", **error_kwargs) from exc
        except httpx.HTTPError as exc:
            raise ApiError(f"Request to {request_url} failed: {exc}", **error_kwargs) from exc

        if response.status_code != httpx.codes.OK:
            LOGGER.error(
                "Unexpected status code %d from %s.",
                response.status_code,
                request_url,
                extra=build_log_extra(
                    validator=validator,
                    endpoint=endpoint,
                    request_url=request_url,
                    status_code=response.status_code,
                ),
            )
            raise ApiStatusError(
                f"unexpected status code: {response.status_code}",
                status_code=response.status_code,
                **error_kwargs,
            )

        try:
            return decode_json(response.content)
        except ApiDecodeError as exc:
            raise ApiDecodeError(exc.message, **error_kwargs) from exc

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    async def __aenter__(self) -> "ValidatorApiClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


__all__ = [
    "ACCOUNT_ENDPOINT",
    "ApiClientProtocol",
    "DELEGATORS_ENDPOINT",
    "ENDPOINT_PATHS",
    "VALIDATOR_ENDPOINT",
    "ValidatorApiClient",
]
