# -*- coding: utf-8 -*-
from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from config import PROVIDER_KEY_FIELDS, Settings, settings as default_settings
from providers.chat_backends import BACKENDS, ChatBackend
from providers.errors import ErrorKind, ProviderError, env_remediation
from providers.models import GenerationFailure, GenerationRequest, GenerationResult, GenerationSuccess
from providers.registry import DISABLED_PROVIDERS

log = logging.getLogger(__name__)

TEST_SENTINEL = "OK"

_TRANSIENT_ERRORS = (httpx.TimeoutException, httpx.TransportError)


def _classify_status(status_code: int, body: str) -> ErrorKind:
    if status_code == 429 or "quota" in (body or "").lower():
        return ErrorKind.QUOTA_EXCEEDED
    if status_code in (401, 403):
        return ErrorKind.AUTH
    return ErrorKind.TRANSIENT


class UnifiedProviderGateway:
    """
    Single entry point for chat / vision calls.

    Normalizes a GenerationRequest into the provider's wire format, sends it
    and returns ``{"text": ...}``. Every failure surfaces as ProviderError.
    """

    def __init__(
        self,
        *,
        settings: Optional[Settings] = None,
        backends: Optional[dict[str, ChatBackend]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 120.0,
    ) -> None:
        self._settings = settings or default_settings
        self._backends = backends if backends is not None else BACKENDS
        self._transport = transport
        self._timeout = timeout

    def _resolve_key(self, backend: ChatBackend, request: GenerationRequest) -> str:
        key = (request.api_key or "").strip() or self._settings.api_key_for(backend.provider_id)
        if not key:
            field = PROVIDER_KEY_FIELDS.get(backend.provider_id, f"{backend.provider_id.upper()}_API_KEY")
            raise ProviderError(
                ErrorKind.UNCONFIGURED,
                f"{backend.display_name} API key not configured",
                provider=backend.provider_id,
                fix=env_remediation([field]),
            )
        return key

    def _backend_for(self, provider_id: Optional[str]) -> ChatBackend:
        if not provider_id:
            raise ProviderError(ErrorKind.UNSUPPORTED, "No AI provider specified")
        if provider_id in DISABLED_PROVIDERS:
            raise ProviderError(ErrorKind.DISABLED, DISABLED_PROVIDERS[provider_id], provider=provider_id)
        backend = self._backends.get(provider_id)
        if backend is None:
            raise ProviderError(ErrorKind.UNSUPPORTED, f"Unsupported AI provider: {provider_id}", provider=provider_id)
        return backend

    async def call(self, request: GenerationRequest) -> dict[str, Any]:
        """Dispatch the request; return ``{"text": ...}`` or raise ProviderError."""
        backend = self._backend_for(request.provider)
        api_key = self._resolve_key(backend, request)
        if request.test:
            return {"text": TEST_SENTINEL, "test": True}

        backend.ensure_capable(request)
        payload = backend.build_payload(request)
        url = backend.endpoint(request)
        log.info("[%s] generating (images=%d)", backend.provider_id, len(request.images))

        try:
            async with httpx.AsyncClient(timeout=httpx.Timeout(self._timeout), transport=self._transport) as http:
                r = await http.post(url, headers=backend.headers(api_key), json=payload)
        except _TRANSIENT_ERRORS as exc:
            log.warning("[%s] network error: %s", backend.provider_id, exc)
            raise ProviderError(
                ErrorKind.TRANSIENT,
                f"{backend.display_name} request failed: {exc}",
                provider=backend.provider_id,
            ) from exc

        if r.status_code >= 400:
            body = r.text
            log.error("[%s] API failed %s: %.500s", backend.provider_id, r.status_code, body)
            raise ProviderError(
                _classify_status(r.status_code, body),
                f"{backend.display_name} API failed ({r.status_code}): {body[:500]}",
                provider=backend.provider_id,
                status_code=r.status_code,
            )

        try:
            data = r.json()
        except ValueError as exc:
            raise ProviderError(
                ErrorKind.MALFORMED,
                f"{backend.display_name} API returned invalid JSON",
                provider=backend.provider_id,
            ) from exc

        return {"text": backend.parse_response(data)}

    async def execute(self, request: GenerationRequest) -> GenerationResult:
        """Like :meth:`call` but folds the outcome into the result union."""
        try:
            data = await self.call(request)
        except ProviderError as exc:
            return GenerationFailure(kind=exc.kind, message=exc.message, fix=exc.fix)
        return GenerationSuccess(data=data, provider_id=request.provider or "", attempts=1)
