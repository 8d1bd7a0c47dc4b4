"""JSON/HTTP routes for browser and script clients.

Registered on the MCP server with ``FastMCP.custom_route`` so one process
serves both surfaces. Query and body fields use camelCase (``userId``,
``metricType``, ``compositeData``). Errors come back as the standard error
payload with the status code of their category.
"""

from __future__ import annotations

import hmac
import json
import logging
from typing import TYPE_CHECKING, Any

from fastmcp import FastMCP
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from healthtrack.core.errors import (
    HealthTrackError,
    UnauthorizedError,
    ValidationError,
    error_payload,
    error_status,
)
from healthtrack.domains.health.domain_logic.validation import validate_required_fields

if TYPE_CHECKING:
    from healthtrack.domains.health.service import HealthService

logger = logging.getLogger(__name__)


def _error_response(route: str, exc: Exception) -> JSONResponse:
    if isinstance(exc, HealthTrackError):
        logger.info("%s rejected (%s): %s", route, exc.category, exc)
    else:
        logger.exception("%s failed", route)
    return JSONResponse(error_payload(exc), status_code=error_status(exc))


async def _json_body(request: Request) -> dict[str, Any]:
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ValidationError("Request body must be valid JSON") from exc
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return body


def _check_init_secret(request: Request, init_secret: str) -> None:
    if not init_secret:
        return
    supplied = request.headers.get("authorization", "")
    if not hmac.compare_digest(supplied, f"Bearer {init_secret}"):
        raise UnauthorizedError("Unauthorized")


def register_api_routes(
    mcp: FastMCP,
    service: HealthService,
    *,
    init_secret: str = "",
) -> None:
    """Register the ``/health`` and ``/api/*`` routes on the server."""

    @mcp.custom_route("/health", methods=["GET"])
    async def health(request: Request) -> Response:
        status = await service.health_status()
        return JSONResponse(status, status_code=200 if status["status"] == "ok" else 503)

    @mcp.custom_route("/api/init", methods=["GET", "POST"])
    async def init_store(request: Request) -> Response:
        try:
            _check_init_secret(request, init_secret)
            return JSONResponse(await service.initialize_store(surface="http"))
        except Exception as exc:
            return _error_response("/api/init", exc)

    @mcp.custom_route("/api/users", methods=["GET", "POST"])
    async def users(request: Request) -> Response:
        try:
            if request.method == "GET":
                users = await service.list_users(surface="http")
                return JSONResponse([u.to_dict() for u in users])
            body = await _json_body(request)
            user = await service.create_user(body.get("name"), surface="http")
            return JSONResponse(user.to_dict(), status_code=201)
        except Exception as exc:
            return _error_response("/api/users", exc)

    @mcp.custom_route("/api/metrics", methods=["GET", "POST"])
    async def metrics(request: Request) -> Response:
        try:
            if request.method == "GET":
                params = request.query_params
                if not params.get("userId"):
                    raise ValidationError("userId is required")
                _, rows = await service.get_metrics(
                    params["userId"], params.get("days"), surface="http"
                )
                return JSONResponse([m.to_dict() for m in rows])

            body = await _json_body(request)
            validate_required_fields(body, ["userId", "metricType"])
            if body.get("value") is None and body.get("compositeData") is None:
                raise ValidationError("Missing required field: value")
            metric = await service.record_metric(
                body["userId"],
                body["metricType"],
                body.get("value"),
                unit=body.get("unit"),
                composite_data=body.get("compositeData"),
                surface="http",
            )
            return JSONResponse(metric.to_dict(), status_code=201)
        except Exception as exc:
            return _error_response("/api/metrics", exc)

    @mcp.custom_route("/api/analytics", methods=["GET"])
    async def analytics(request: Request) -> Response:
        try:
            params = request.query_params
            if not params.get("userId"):
                raise ValidationError("userId is required")
            return JSONResponse(
                await service.analyze(params["userId"], params.get("days"), surface="http")
            )
        except Exception as exc:
            return _error_response("/api/analytics", exc)

    @mcp.custom_route("/api/export", methods=["GET"])
    async def export(request: Request) -> Response:
        try:
            params = request.query_params
            if not params.get("userId"):
                raise ValidationError("userId is required")
            report = await service.export(
                params["userId"],
                params.get("format"),
                params.get("days"),
                surface="http",
            )
        except Exception as exc:
            return _error_response("/api/export", exc)
        return Response(
            report.content,
            media_type=report.content_type,
            headers={"Content-Disposition": f'attachment; filename="{report.filename}"'},
        )

    @mcp.custom_route("/api/ai-insights", methods=["POST"])
    async def ai_insights(request: Request) -> Response:
        try:
            body = await _json_body(request)
            validate_required_fields(body, ["userId"])
            report = await service.generate_insights(body["userId"], surface="http")
            return JSONResponse(report.to_dict())
        except Exception as exc:
            return _error_response("/api/ai-insights", exc)
