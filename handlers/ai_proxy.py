# -*- coding: utf-8 -*-
from __future__ import annotations

import logging

from aiohttp import web

from providers.errors import ErrorKind, InvalidRequestError
from providers.models import GenerationRequest, GenerationSuccess
from handlers.responses import json_ok, read_json, services

routes = web.RouteTableDef()
log = logging.getLogger(__name__)


@routes.post("/api/ai-proxy")
async def ai_proxy(request: web.Request) -> web.Response:
    body = await read_json(request)
    gen_request = GenerationRequest.from_payload(body)
    result = await services(request).gateway.execute(gen_request)

    if isinstance(result, GenerationSuccess):
        return json_ok({"success": True, "data": result.data})

    log.error("[AI Proxy] %s: %s", gen_request.provider, result.message)
    status = 400 if result.kind is ErrorKind.UNSUPPORTED else 500
    return json_ok(result.to_dict(), status=status)


@routes.post("/api/ai-failover")
async def ai_failover(request: web.Request) -> web.Response:
    body = await read_json(request)
    prompt = str(body.get("prompt") or "")
    if not prompt:
        raise InvalidRequestError("prompt is required.")

    images = body.get("images") or []
    if isinstance(images, str):
        images = [images]
    try:
        max_retries = int(body.get("maxRetries", 3))
    except (TypeError, ValueError) as exc:
        raise InvalidRequestError("maxRetries must be an integer.") from exc

    preferred = str(body.get("preferredProvider") or "").strip().lower() or None
    result = await services(request).failover.call_with_failover(
        prompt,
        images=[str(i) for i in images if i],
        system_prompt=body.get("systemPrompt"),
        max_retries=max_retries,
        preferred_provider=preferred,
        api_key=body.get("apiKey"),
    )
    return json_ok(result.to_dict())
