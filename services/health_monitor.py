# -*- coding: utf-8 -*-
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Optional, Protocol

from providers.errors import ErrorKind, ProviderError, classify_error_message
from providers.models import GenerationRequest
from providers.registry import PROVIDERS, ProviderDescriptor, get_descriptor, registry_order
from utils.clock import Clock, system_clock

log = logging.getLogger(__name__)

STATUS_ACTIVE = "active"
STATUS_ERROR = "error"
STATUS_QUOTA = "quota_exceeded"
STATUS_UNCONFIGURED = "unconfigured"

_KIND_TO_STATUS = {
    ErrorKind.QUOTA_EXCEEDED: STATUS_QUOTA,
    ErrorKind.UNCONFIGURED: STATUS_UNCONFIGURED,
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class ProviderStatus:
    """Latest known health of one provider."""

    id: str
    name: str
    has_vision: bool
    cost_per_1m: float
    priority: float
    status: str = STATUS_UNCONFIGURED
    has_key: Optional[bool] = None
    last_checked: datetime | None = None
    response_time_ms: Optional[int] = None
    error_message: Optional[str] = None

    @classmethod
    def initial(cls, d: ProviderDescriptor) -> "ProviderStatus":
        return cls(
            id=d.id,
            name=d.name,
            has_vision=d.has_vision,
            cost_per_1m=d.cost_per_1m,
            priority=d.priority,
            last_checked=_utcnow(),
        )

    @property
    def is_active(self) -> bool:
        return self.status == STATUS_ACTIVE

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "status": self.status,
            "hasVision": self.has_vision,
            "hasKey": self.has_key,
            "lastChecked": self.last_checked.isoformat() if self.last_checked else None,
            "responseTime": self.response_time_ms,
            "errorMessage": self.error_message,
            "costPer1M": self.cost_per_1m,
        }


class HealthStore:
    """
    In-memory provider status cache shared by the monitor and the failover
    orchestrator. Last write wins.
    """

    def __init__(self, descriptors: Optional[dict[str, ProviderDescriptor]] = None) -> None:
        self._descriptors = dict(descriptors if descriptors is not None else PROVIDERS)
        self._statuses: dict[str, ProviderStatus] = {
            pid: ProviderStatus.initial(d) for pid, d in self._descriptors.items()
        }

    def descriptors(self) -> list[ProviderDescriptor]:
        return list(self._descriptors.values())

    def get(self, provider_id: str) -> Optional[ProviderStatus]:
        return self._statuses.get(provider_id)

    def set(self, status: ProviderStatus) -> None:
        self._statuses[status.id] = status

    def seed(self, provider_id: str, status: str, **fields: Any) -> ProviderStatus:
        """Overwrite a provider's status; used by tests and admin tooling."""
        current = self._statuses[provider_id]
        updated = replace(current, status=status, last_checked=_utcnow(), **fields)
        self._statuses[provider_id] = updated
        return updated

    def mark_error(self, provider_id: str, message: str) -> None:
        current = self._statuses.get(provider_id)
        if current is None:
            return
        current.status = STATUS_ERROR
        current.error_message = message
        current.last_checked = _utcnow()

    def all_sorted(self) -> list[ProviderStatus]:
        return sorted(self._statuses.values(), key=lambda s: (s.priority, registry_order(s.id)))


class ProviderCaller(Protocol):
    async def call(self, request: GenerationRequest) -> dict[str, Any]:
        ...


class ProviderHealthMonitor:
    """Probes providers through the gateway and caches the outcome."""

    def __init__(
        self,
        gateway: ProviderCaller,
        store: Optional[HealthStore] = None,
        *,
        timeout: float = 5.0,
        clock: Clock = system_clock,
    ) -> None:
        self._gateway = gateway
        self.store = store or HealthStore()
        self._timeout = timeout
        self._clock = clock
        self._inflight: Optional[asyncio.Future[list[ProviderStatus]]] = None

    async def check_provider(self, provider_id: str) -> ProviderStatus:
        """Run a test call; always returns (and stores) a status."""
        descriptor = get_descriptor(provider_id)
        log.debug("[Health] Checking %s...", provider_id)
        started = self._clock.monotonic()

        try:
            await asyncio.wait_for(
                self._gateway.call(GenerationRequest(provider=provider_id, test=True)),
                timeout=self._timeout,
            )
        except ProviderError as exc:
            status_type = _KIND_TO_STATUS.get(exc.kind, STATUS_ERROR)
            status = ProviderStatus.initial(descriptor)
            status.status = status_type
            status.has_key = status_type != STATUS_UNCONFIGURED
            status.error_message = exc.message
        except asyncio.TimeoutError:
            status = ProviderStatus.initial(descriptor)
            status.status = STATUS_ERROR
            status.has_key = True
            status.error_message = f"Health check timed out after {self._timeout:g}s"
        except Exception as exc:
            log.error("[Health] %s check failed: %s", provider_id, exc)
            # third-party errors only carry text
            status_type = _KIND_TO_STATUS.get(classify_error_message(str(exc)), STATUS_ERROR)
            status = ProviderStatus.initial(descriptor)
            status.status = status_type
            status.has_key = status_type != STATUS_UNCONFIGURED and status_type != STATUS_ERROR
            status.error_message = str(exc) or exc.__class__.__name__
        else:
            status = ProviderStatus.initial(descriptor)
            status.status = STATUS_ACTIVE
            status.has_key = True
            status.response_time_ms = int((self._clock.monotonic() - started) * 1000)

        self.store.set(status)
        return status

    async def check_all(self) -> list[ProviderStatus]:
        """Probe every provider concurrently; overlapping calls share one run."""
        if self._inflight is not None:
            return await asyncio.shield(self._inflight)
        inflight = asyncio.ensure_future(self._run_all())
        inflight.add_done_callback(self._clear_inflight)
        self._inflight = inflight
        return await asyncio.shield(inflight)

    def _clear_inflight(self, _: asyncio.Future) -> None:
        self._inflight = None

    async def _run_all(self) -> list[ProviderStatus]:
        log.info("[Health] Checking all providers...")
        await asyncio.gather(*(self.check_provider(d.id) for d in self.store.descriptors()))
        return self.get_all_statuses()

    def get_status(self, provider_id: str) -> Optional[ProviderStatus]:
        return self.store.get(provider_id)

    def get_all_statuses(self) -> list[ProviderStatus]:
        return self.store.all_sorted()

    def get_active_providers(self, require_vision: bool = False) -> list[ProviderStatus]:
        return [
            s for s in self.store.all_sorted()
            if s.is_active and (not require_vision or s.has_vision)
        ]
