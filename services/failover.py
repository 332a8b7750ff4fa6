# -*- coding: utf-8 -*-
from __future__ import annotations

import logging
from typing import Optional, Sequence

from config import Settings, settings as default_settings
from providers.errors import FailoverExhausted, NoProvidersAvailable, ProviderError
from providers.models import GenerationRequest, GenerationSuccess
from services.health_monitor import ProviderCaller, ProviderHealthMonitor, ProviderStatus

log = logging.getLogger(__name__)


def prioritize(providers: list[ProviderStatus], preferred_id: Optional[str]) -> list[ProviderStatus]:
    """Move ``preferred_id`` to the front; the others keep their relative order."""
    if not preferred_id:
        return list(providers)
    for idx, p in enumerate(providers):
        if p.id == preferred_id:
            if idx == 0:
                return list(providers)
            return [p] + providers[:idx] + providers[idx + 1:]
    return list(providers)


class FailoverOrchestrator:
    """Tries ranked, healthy providers in order until one succeeds."""

    def __init__(
        self,
        gateway: ProviderCaller,
        monitor: ProviderHealthMonitor,
        *,
        settings: Optional[Settings] = None,
    ) -> None:
        self._gateway = gateway
        self._monitor = monitor
        self._settings = settings or default_settings

    async def call_with_failover(
        self,
        prompt: str,
        *,
        images: Optional[Sequence[str]] = None,
        system_prompt: Optional[str] = None,
        require_vision: Optional[bool] = None,
        max_retries: int = 3,
        preferred_provider: Optional[str] = None,
        api_key: Optional[str] = None,
    ) -> GenerationSuccess:
        images = tuple(images or ())
        if require_vision is None:
            require_vision = bool(images)

        await self._monitor.check_all()
        available = self._monitor.get_active_providers(require_vision)
        if not available:
            raise NoProvidersAvailable(
                "No active vision-capable providers available."
                if require_vision
                else "No active providers available."
            )

        preferred = preferred_provider or self._settings.preferred_provider()
        ordered = prioritize(available, preferred)
        if preferred and ordered[0].id == preferred and available[0].id != preferred:
            log.info("[Failover] Prioritizing preferred provider: %s", preferred)

        base = GenerationRequest(prompt=prompt, images=images, system_prompt=system_prompt, api_key=api_key)
        budget = min(len(ordered), max(1, max_retries))
        last_error: Optional[ProviderError] = None

        for attempt, provider in enumerate(ordered[:budget], start=1):
            log.info("[Failover] Attempt %d/%d with %s", attempt, budget, provider.id)
            try:
                data = await self._gateway.call(base.with_provider(provider.id))
            except ProviderError as exc:
                log.warning("[Failover] Attempt %d with %s failed: %s", attempt, provider.id, exc.message)
                last_error = exc
                # demoted for the rest of this session until the next check_all
                self._monitor.store.mark_error(provider.id, exc.message)
                continue
            log.info("[Failover] Success with %s", provider.id)
            return GenerationSuccess(data=data, provider_id=provider.id, attempts=attempt)

        message = last_error.message if last_error else "unknown error"
        raise FailoverExhausted(
            f"All provider attempts failed. Last error: {message}",
            last_error=last_error,
            attempts=budget,
        )
