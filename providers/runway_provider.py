# -*- coding: utf-8 -*-
from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from config import Settings, settings as default_settings
from providers.base import JobId, JobStatus, VideoBackend, VideoProvider
from providers.errors import ErrorKind, ProviderError, env_remediation
from providers.models import ClipParams
from utils.images import normalize_image_url

log = logging.getLogger(__name__)

BASE_URL = "https://api.dev.runwayml.com/v1"
API_VERSION = "2024-11-06"

DEFAULT_MODEL = "gen4_turbo"
DEFAULT_RATIO = "720:1280"
AUDIO_MODEL = "eleven_text_to_sound_v2"

_TRANSIENT_ERRORS = (httpx.TimeoutException, httpx.TransportError)

_STATUS_MAP = {
    "PENDING": "queued",
    "THROTTLED": "queued",
    "RUNNING": "processing",
    "SUCCEEDED": "succeeded",
    "FAILED": "failed",
    "CANCELLED": "failed",
}


def _error_kind(status_code: int) -> ErrorKind:
    if status_code in (401, 403):
        return ErrorKind.AUTH
    if status_code == 429:
        return ErrorKind.QUOTA_EXCEEDED
    return ErrorKind.TRANSIENT


def _map_status(raw: Any) -> str:
    return _STATUS_MAP.get(str(raw or "").upper(), "processing")


class RunwayProvider(VideoProvider):
    """Image-to-video and sound-effect jobs on Runway's task API."""

    name = VideoBackend.RUNWAY

    def __init__(
        self,
        *,
        settings: Optional[Settings] = None,
        api_key: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        s = settings or default_settings
        self._api_key = api_key if api_key is not None else s.RUNWAY_API_KEY
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    def _headers(self) -> dict[str, str]:
        if not self._api_key:
            raise ProviderError(
                ErrorKind.UNCONFIGURED,
                "Runway API key not configured",
                provider=self.name.value,
                fix=env_remediation(["RUNWAY_API_KEY"]),
            )
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
            "X-Runway-Version": API_VERSION,
        }

    def _client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=httpx.Timeout(timeout), transport=self._transport)

    async def _submit(self, path: str, payload: dict[str, Any]) -> JobId:
        headers = self._headers()
        try:
            async with self._client(60.0) as http:
                r = await http.post(f"{BASE_URL}/{path}", headers=headers, json=payload)
        except _TRANSIENT_ERRORS as exc:
            raise ProviderError(ErrorKind.TRANSIENT, f"Runway request failed: {exc}", provider="runway") from exc

        if r.status_code >= 400:
            log.error("Runway %s failed %s: %.500s", path, r.status_code, r.text)
            raise ProviderError(
                _error_kind(r.status_code),
                f"Runway API error ({r.status_code}): {r.text[:500]}",
                provider="runway",
                status_code=r.status_code,
            )
        try:
            task_id = r.json().get("id")
        except (ValueError, AttributeError) as exc:
            raise ProviderError(ErrorKind.MALFORMED, "Runway returned invalid JSON", provider="runway") from exc
        if not task_id:
            raise ProviderError(ErrorKind.MALFORMED, "Runway submit succeeded but no task id returned", provider="runway")
        log.info("[Runway] Task created: %s", task_id)
        return str(task_id)

    async def create_job(self, params: ClipParams) -> JobId:
        """POST /image_to_video"""
        if not params.image_url:
            raise ValueError("Runway image-to-video requires an image URL")
        body: dict[str, Any] = {
            "promptImage": normalize_image_url(params.image_url),
            "promptText": params.prompt,
            "model": params.model or DEFAULT_MODEL,
            "duration": params.duration_seconds or 5,
            "ratio": params.ratio or DEFAULT_RATIO,
        }
        if params.reference_urls:
            body["references"] = [{"type": "image", "uri": normalize_image_url(u)} for u in params.reference_urls]
        log.info(
            "[Runway] Starting generation: model=%s duration=%s ratio=%s prompt_len=%d refs=%d",
            body["model"], body["duration"], body["ratio"], len(params.prompt), len(params.reference_urls),
        )
        return await self._submit("image_to_video", body)

    async def create_audio_job(self, prompt: str, duration: int) -> JobId:
        """POST /sound_effect"""
        body = {"model": AUDIO_MODEL, "promptText": prompt, "duration": duration, "loop": False}
        return await self._submit("sound_effect", body)

    async def fetch_task(self, job_id: JobId) -> dict[str, Any]:
        """GET /tasks/{id}; raw payload, raises ProviderError on failure."""
        headers = self._headers()
        try:
            async with self._client(30.0) as http:
                r = await http.get(f"{BASE_URL}/tasks/{job_id}", headers=headers)
        except _TRANSIENT_ERRORS as exc:
            raise ProviderError(ErrorKind.TRANSIENT, f"Runway status request failed: {exc}", provider="runway") from exc
        if r.status_code >= 400:
            raise ProviderError(
                _error_kind(r.status_code),
                f"Runway status check failed ({r.status_code})",
                provider="runway",
                status_code=r.status_code,
            )
        try:
            return r.json()
        except ValueError as exc:
            raise ProviderError(ErrorKind.MALFORMED, "Runway returned invalid JSON", provider="runway") from exc

    async def poll(self, job_id: JobId) -> JobStatus:
        """
        One status probe. Failed probes are reported as still processing so the
        caller's bounded loop keeps going; credential problems are raised.
        """
        try:
            data = await self.fetch_task(job_id)
        except ProviderError as exc:
            if exc.kind in (ErrorKind.UNCONFIGURED, ErrorKind.AUTH):
                raise
            log.warning("[Runway] %s, retrying...", exc.message)
            return JobStatus(status="processing", extra={"transient": exc.message})

        status = _map_status(data.get("status"))
        output = data.get("output") or []
        url = output[0] if isinstance(output, list) and output else None
        progress = data.get("progress")
        pct = int(progress * 100) if isinstance(progress, (int, float)) and progress <= 1 else 0
        if status == "succeeded":
            return JobStatus(status=status, output_url=url, progress=100)
        if status == "failed":
            return JobStatus(status=status, error=str(data.get("failure") or data.get("error") or "Unknown error"))
        return JobStatus(status=status, progress=pct, extra={"raw_status": data.get("status")})
