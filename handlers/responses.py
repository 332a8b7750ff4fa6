# -*- coding: utf-8 -*-
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from aiohttp import web

from providers.errors import (
    ErrorKind,
    FailoverExhausted,
    InvalidProjectError,
    InvalidRequestError,
    NoProvidersAvailable,
    ProviderError,
    StudioError,
    UnsupportedProviderError,
)
from providers.gateway import UnifiedProviderGateway
from services.failover import FailoverOrchestrator
from services.generation_service import AsyncJobOrchestrator
from services.health_monitor import ProviderHealthMonitor
from services.status_service import StatusService

log = logging.getLogger(__name__)

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}

_CLIENT_ERRORS = (InvalidRequestError, InvalidProjectError, UnsupportedProviderError)
_UNAVAILABLE_ERRORS = (NoProvidersAvailable, FailoverExhausted)


@dataclass(slots=True)
class Services:
    gateway: UnifiedProviderGateway
    monitor: ProviderHealthMonitor
    failover: FailoverOrchestrator
    orchestrator: AsyncJobOrchestrator
    status: StatusService


SERVICES = web.AppKey("services", Services)


def services(request: web.Request) -> Services:
    return request.app[SERVICES]


def status_for(exc: StudioError) -> int:
    if isinstance(exc, _CLIENT_ERRORS):
        return 400
    if isinstance(exc, _UNAVAILABLE_ERRORS):
        return 503
    if isinstance(exc, ProviderError) and exc.kind is ErrorKind.UNSUPPORTED:
        return 400
    return 500


def json_ok(payload: dict[str, Any], status: int = 200) -> web.Response:
    return web.json_response(payload, status=status)


def json_error(exc: StudioError, status: int | None = None) -> web.Response:
    return web.json_response(exc.to_dict(), status=status or status_for(exc))


async def read_json(request: web.Request) -> dict[str, Any]:
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise InvalidRequestError("Request body must be valid JSON.") from exc
    if not isinstance(body, dict):
        raise InvalidRequestError("Request body must be a JSON object.")
    return body


@web.middleware
async def cors_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    if request.method == "OPTIONS":
        return web.Response(status=200, headers=CORS_HEADERS)
    try:
        response = await handler(request)
    except web.HTTPException as exc:
        exc.headers.update(CORS_HEADERS)
        raise
    response.headers.update(CORS_HEADERS)
    return response


@web.middleware
async def error_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    """Render StudioError subclasses as the JSON error shape."""
    try:
        return await handler(request)
    except StudioError as exc:
        status = status_for(exc)
        if status >= 500:
            log.error("%s %s failed: %s", request.method, request.path, exc.message)
        return json_error(exc, status)
    except web.HTTPException:
        raise
    except Exception:
        log.exception("Unhandled error on %s %s", request.method, request.path)
        return web.json_response(
            {"success": False, "error": "internal_error", "message": "Internal server error"},
            status=500,
        )
