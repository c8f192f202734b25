"""HTTP API surface for the validator exporter."""

from __future__ import annotations

from fastapi import FastAPI, Response, status
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST

from .context import get_application_context
from .health import (
    format_metrics_payload,
    generate_health_report,
    generate_readiness_report,
)


def register_health_routes(app: FastAPI) -> None:
    """Register health check endpoints on the health port (8080).

    Registers the following endpoints:
    - GET /health: Overall health status with per-validator status
    - GET /health/details: Same report including last success timestamps
    - GET /health/livez: Liveness probe (always returns 200)
    - GET /health/readyz: Readiness probe (returns 200 if ready, 503 if not)
    """
    @app.get("/health", response_class=JSONResponse)
    async def health() -> JSONResponse:
        context = get_application_context()
        overall_status, status_code, validator_details = generate_health_report(context.health)

        return JSONResponse(
            status_code=status_code,
            content={
                "status": overall_status,
                "validators": validator_details,
            },
        )

    @app.get("/health/details", response_class=JSONResponse)
    async def health_details() -> JSONResponse:
        context = get_application_context()
        overall_status, status_code, validator_details = generate_health_report(
            context.health,
            include_details=True,
        )

        return JSONResponse(
            status_code=status_code,
            content={
                "status": overall_status,
                "validators": validator_details,
            },
        )

    @app.get("/health/livez", response_class=JSONResponse)
    async def livez() -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_200_OK,
            content={"status": "alive"},
        )

    @app.get("/health/readyz", response_class=JSONResponse)
    async def readyz() -> JSONResponse:
        context = get_application_context()
        ready, readiness_details = generate_readiness_report(
            context.health,
            context.settings.health.readiness_stale_threshold_seconds,
        )

        status_code = (
            status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE
        )

        return JSONResponse(
            status_code=status_code,
            content={
                "status": "ready" if ready else "not_ready",
                "validators": readiness_details,
            },
        )


def register_metrics_routes(app: FastAPI) -> None:
    """Register the Prometheus endpoint on the metrics port (9100)."""
    @app.get("/metrics", response_class=Response)
    async def metrics() -> Response:
        payload = get_application_context().metrics.render()

        return Response(content=format_metrics_payload(payload), media_type=CONTENT_TYPE_LATEST)


def register_routes(app: FastAPI) -> None:
    """Register health and metrics routes on a single app."""
    register_health_routes(app)
    register_metrics_routes(app)


__all__ = [
    "register_health_routes",
    "register_metrics_routes",
    "register_routes",
]
