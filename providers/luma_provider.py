# -*- coding: utf-8 -*-
from __future__ import annotations

import asyncio
import logging
import os
from typing import Any, Optional, Tuple

import aiohttp

from config import Settings, settings as default_settings
from providers.base import JobId, JobStatus, VideoBackend, VideoProvider
from providers.errors import ErrorKind, ProviderError, env_remediation
from providers.models import ClipParams
from utils.images import normalize_image_url

log = logging.getLogger(__name__)

# accepted Luma model identifiers
_ALLOWED_MODELS = {
    "ray-2",
    "ray-flash-2",
}
_DEFAULT_MODEL = "ray-2"
_DEFAULT_ASPECT = "9:16"


class LumaProvider(VideoProvider):
    """Video generation provider backed by Luma Dream Machine."""

    name = VideoBackend.LUMA

    def __init__(self, *, settings: Optional[Settings] = None, api_key: Optional[str] = None) -> None:
        s = settings or default_settings
        self._base_url = "https://api.lumalabs.ai/dream-machine/v1"
        self._api_key = api_key if api_key is not None else s.LUMA_API_KEY
        if not self._api_key:
            log.warning("LUMA_API_KEY is not configured; provider will fail on submit")
        self._trust_env = os.getenv("HTTP_TRUST_ENV", "1").lower() in ("1", "true", "yes")

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    def _require_key(self) -> None:
        if not self._api_key:
            raise ProviderError(
                ErrorKind.UNCONFIGURED,
                "Luma API key not configured",
                provider=self.name.value,
                fix=env_remediation(["LUMA_API_KEY"]),
            )

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[dict[str, Any]] = None,
        timeout: float = 60,
    ) -> Tuple[int, dict[str, Any]]:
        """Perform one call; returns (http status, decoded body)."""
        headers = self._headers_json if json is not None else self._headers_get
        async with aiohttp.ClientSession(trust_env=self._trust_env) as session:
            async with session.request(
                method,
                f"{self._base_url}/{path}",
                headers=headers,
                json=json,
                timeout=aiohttp.ClientTimeout(total=timeout),
            ) as resp:
                text = await resp.text()
                if resp.status >= 400:
                    log.error("Luma %s %s failed %s: %.500s", method, path, resp.status, text)
                    return resp.status, {"error": text[:500]}
                return resp.status, await self._safe_json(resp, text)

    async def create_job(self, params: ClipParams) -> JobId:
        """Submit a new Dream Machine job and return provider identifier."""
        self._require_key()
        model = (params.model or "").strip().lower()
        if model not in _ALLOWED_MODELS:
            model = _DEFAULT_MODEL

        payload: dict[str, Any] = {
            "prompt": params.prompt,
            "model": model,
            "aspect_ratio": params.ratio or _DEFAULT_ASPECT,
            "loop": False,
        }
        if params.image_url:
            payload["keyframes"] = {
                "frame0": {"type": "image", "url": normalize_image_url(params.image_url)},
            }

        try:
            status, data = await self._request("POST", "generations", json=payload, timeout=120)
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise ProviderError(ErrorKind.TRANSIENT, f"Luma submit failed: {exc}", provider="luma") from exc
        if status >= 400:
            kind = ErrorKind.QUOTA_EXCEEDED if status == 429 else ErrorKind.TRANSIENT
            raise ProviderError(
                kind,
                f"Luma API error ({status}): {data.get('error', '')}",
                provider="luma",
                status_code=status,
            )

        job_id = data.get("id") or (data.get("generation") or {}).get("id")
        if not job_id:
            raise ProviderError(ErrorKind.MALFORMED, "Luma submit succeeded but no job id returned", provider="luma")
        log.info("[Luma] Generation started: %s", job_id)
        return str(job_id)

    async def get_generation(self, job_id: JobId) -> dict[str, Any]:
        """Raw generation record, as returned by the API."""
        self._require_key()
        try:
            status, data = await self._request("GET", f"generations/{job_id}")
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise ProviderError(ErrorKind.TRANSIENT, f"Luma status request failed: {exc}", provider="luma") from exc
        if status >= 400:
            raise ProviderError(
                ErrorKind.TRANSIENT,
                f"Luma status check failed ({status})",
                provider="luma",
                status_code=status,
            )
        return data

    async def poll(self, job_id: JobId) -> JobStatus:
        """
        One status probe. Network and HTTP failures are transient: report
        processing so the outer loop keeps polling.
        """
        try:
            data = await self.get_generation(job_id)
        except ProviderError as exc:
            if exc.kind is ErrorKind.UNCONFIGURED:
                raise
            log.warning("[Luma] %s", exc.message)
            return JobStatus(status="processing", extra={"state": "transient", "error": exc.message})

        state = data.get("state") or "queued"
        mapped = self._map_state(state)
        video_url = self.video_url_of(data)
        if mapped == "failed":
            return JobStatus(
                status=mapped,
                error=str(data.get("failure_reason") or "Unknown error"),
                extra={"state": state},
            )
        progress = 100 if mapped == "succeeded" and video_url else 0
        return JobStatus(status=mapped, output_url=video_url, progress=progress, extra={"state": state})

    @staticmethod
    def video_url_of(data: dict[str, Any]) -> Optional[str]:
        assets = data.get("assets") or {}
        return assets.get("video") or (data.get("video") or {}).get("url")

    def _map_state(self, state: str) -> str:
        lowered = (state or "").lower()
        if lowered in {"pending", "queued", "starting"}:
            return "queued"
        if lowered in {"dreaming", "processing", "running", "generating"}:
            return "processing"
        if lowered in {"completed", "succeeded", "success"}:
            return "succeeded"
        if lowered in {"failed", "error", "cancelled"}:
            return "failed"
        return "queued"

    @property
    def _headers_json(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Accept": "application/json",
            "Content-Type": "application/json",
        }

    @property
    def _headers_get(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Accept": "application/json",
        }

    async def _safe_json(self, resp: aiohttp.ClientResponse, text: str) -> dict[str, Any]:
        try:
            return await resp.json(content_type=None)
        except ValueError as exc:
            log.error("Luma response non-json: %s", text)
            raise ProviderError(ErrorKind.MALFORMED, "Luma returned invalid JSON", provider="luma") from exc
