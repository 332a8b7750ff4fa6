# -*- coding: utf-8 -*-
from __future__ import annotations

import logging

from aiohttp import web
from pydantic import ValidationError

from providers.errors import ConfigurationError, InvalidProjectError, InvalidRequestError
from providers.project import ProjectDescriptor
from handlers.responses import json_ok, read_json, services

routes = web.RouteTableDef()
log = logging.getLogger(__name__)


def _project_from(body: dict) -> ProjectDescriptor:
    try:
        return ProjectDescriptor.from_payload(body.get("projectData"))
    except ValidationError as exc:
        errors = exc.errors(include_url=False, include_context=False)
        raise InvalidProjectError("Project data is malformed.", details={"errors": errors}) from exc


@routes.post("/api/generate-script-and-video")
async def generate_script_and_video(request: web.Request) -> web.Response:
    project = _project_from(await read_json(request))
    log.info("[Video Gen] Request for %r (%ss)", project.product_name, project.video_length)
    result = await services(request).orchestrator.generate_video(project)
    return json_ok(result.to_response())


@routes.post("/api/generate-luma-video")
async def generate_luma_video(request: web.Request) -> web.Response:
    project = _project_from(await read_json(request))
    orchestrator = services(request).orchestrator
    if not orchestrator.luma.configured:
        raise ConfigurationError("Luma API key not configured", missing=["LUMA_API_KEY"])
    submission = await orchestrator.start_luma_generation(project)
    return json_ok(submission)


@routes.post("/api/check-video-status")
async def check_video_status(request: web.Request) -> web.Response:
    body = await read_json(request)
    job_id, provider = body.get("jobId"), body.get("provider")
    if not job_id or not provider:
        raise InvalidRequestError("Missing jobId or provider")
    report = await services(request).status.check_status(str(job_id), str(provider))
    return json_ok(report.to_response())


@routes.get("/api/check-luma-status")
async def check_luma_status(request: web.Request) -> web.Response:
    generation_id = request.query.get("id")
    if not generation_id:
        raise InvalidRequestError("Generation ID is required")
    luma = services(request).orchestrator.luma
    if not luma.configured:
        raise ConfigurationError("Luma API key not configured", missing=["LUMA_API_KEY"])
    data = await luma.get_generation(generation_id)
    return json_ok({"success": True, "data": data})
