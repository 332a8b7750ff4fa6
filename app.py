# -*- coding: utf-8 -*-
import logging
from typing import Optional

from aiohttp import web

from config import PROVIDER_KEY_FIELDS, Settings, settings
from handlers import ai_proxy as ai_proxy_handlers
from handlers import health as health_handlers
from handlers import video as video_handlers
from handlers.responses import SERVICES, Services, cors_middleware, error_middleware
from providers.gateway import UnifiedProviderGateway
from services.failover import FailoverOrchestrator
from services.generation_service import AsyncJobOrchestrator
from services.health_monitor import HealthStore, ProviderHealthMonitor
from services.status_service import StatusService
from utils.clock import Clock, system_clock


def build_services(cfg: Optional[Settings] = None, *, clock: Clock = system_clock) -> Services:
    cfg = cfg or settings
    gateway = UnifiedProviderGateway(settings=cfg)
    monitor = ProviderHealthMonitor(gateway, HealthStore(), timeout=cfg.HEALTH_CHECK_TIMEOUT_SEC, clock=clock)
    orchestrator = AsyncJobOrchestrator(settings=cfg, clock=clock)
    return Services(
        gateway=gateway,
        monitor=monitor,
        failover=FailoverOrchestrator(gateway, monitor, settings=cfg),
        orchestrator=orchestrator,
        status=StatusService(settings=cfg, runway=orchestrator.runway, luma=orchestrator.luma, clock=clock),
    )


def create_app(services: Optional[Services] = None) -> web.Application:
    app = web.Application(middlewares=[cors_middleware, error_middleware])
    app[SERVICES] = services or build_services()

    app.add_routes(health_handlers.routes)
    app.add_routes(ai_proxy_handlers.routes)
    app.add_routes(video_handlers.routes)
    return app


def main() -> None:
    logging.basicConfig(
        level=getattr(logging, (settings.LOG_LEVEL or "INFO").upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    logger = logging.getLogger(__name__)
    logger.info("APP_ENV: %s", settings.APP_ENV)
    for provider_id, field in PROVIDER_KEY_FIELDS.items():
        logger.info("%s API Key set: %s", provider_id.upper(), "Yes" if getattr(settings, field) else "No")
    missing = settings.missing_hosting_config()
    logger.info("Cloudinary configured: %s", "No (missing %s)" % ", ".join(missing) if missing else "Yes")
    logger.info("PREFERRED_PROVIDER: %s", settings.PREFERRED_PROVIDER or "(not set)")

    web.run_app(create_app(), host=settings.HOST, port=settings.PORT, print=None)


if __name__ == "__main__":
    try:
        main()
    except (KeyboardInterrupt, SystemExit):
        pass
