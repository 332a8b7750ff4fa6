# -*- coding: utf-8 -*-
from __future__ import annotations

from datetime import datetime, timezone

from aiohttp import web

from handlers.responses import json_ok, services

routes = web.RouteTableDef()


@routes.get("/api/health")
async def health(request: web.Request) -> web.Response:
    return json_ok(
        {
            "success": True,
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "message": "Video studio API is running",
        }
    )


@routes.get("/api/provider-health")
async def provider_health(request: web.Request) -> web.Response:
    statuses = await services(request).monitor.check_all()
    providers = [s.to_dict() for s in statuses]
    return json_ok(
        {
            "success": True,
            "providers": providers,
            "active": [p["id"] for p in providers if p["status"] == "active"],
        }
    )
