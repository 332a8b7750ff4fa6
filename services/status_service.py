# -*- coding: utf-8 -*-
"""
Stateless job status checks for callers that poll at their own cadence.

``reliable-service`` is a local simulation: the job id carries its start
timestamp (ms) in the last ``-`` segment and the job "finishes" after 8s.
"""

from __future__ import annotations

import hashlib
import logging
from typing import Any, Optional

import httpx

from config import Settings, settings as default_settings
from providers.errors import ConfigurationError, ErrorKind, ProviderError, UnsupportedProviderError
from providers.luma_provider import LumaProvider
from providers.models import JobStatusReport
from providers.runway_provider import RunwayProvider
from utils.clock import Clock, system_clock

log = logging.getLogger(__name__)

REPLICATE_BASE = "https://api.replicate.com/v1"

SIMULATION_MS = 8000
SAMPLE_VIDEO_URLS = (
    "https://storage.googleapis.com/gtv-videos-bucket/sample/BigBuckBunny.mp4",
    "https://commondatastorage.googleapis.com/gtv-videos-bucket/sample/ElephantsDream.mp4",
    "https://storage.googleapis.com/gtv-videos-bucket/sample/ForBiggerBlazes.mp4",
    "https://storage.googleapis.com/gtv-videos-bucket/sample/ForBiggerEscapes.mp4",
)

_REPLICATE_STATES = {
    "starting": "queued",
    "processing": "processing",
    "succeeded": "succeeded",
    "failed": "failed",
    "canceled": "failed",
}


def job_started_ms(job_id: str, now_ms: int) -> int:
    """Timestamp embedded in ``job_id``; ``now_ms`` when absent or unparseable."""
    tail = job_id.rsplit("-", 1)[-1]
    try:
        return int(tail)
    except ValueError:
        return now_ms


def sample_url_for(job_id: str) -> str:
    digest = hashlib.sha256(job_id.encode("utf-8")).digest()
    return SAMPLE_VIDEO_URLS[digest[0] % len(SAMPLE_VIDEO_URLS)]


class StatusService:
    def __init__(
        self,
        *,
        settings: Optional[Settings] = None,
        runway: Optional[RunwayProvider] = None,
        luma: Optional[LumaProvider] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Clock = system_clock,
    ) -> None:
        self.settings = settings or default_settings
        self.runway = runway or RunwayProvider(settings=self.settings, transport=transport)
        self.luma = luma or LumaProvider(settings=self.settings)
        self._transport = transport
        self.clock = clock

    async def check_status(self, job_id: str, provider: str) -> JobStatusReport:
        provider = (provider or "").strip().lower()
        if provider == "reliable-service":
            return self._simulate(job_id)
        if provider == "runway":
            return await self._check_runway(job_id)
        if provider == "luma":
            return await self._check_luma(job_id)
        if provider.startswith("replicate"):
            return await self._check_replicate(job_id)
        raise UnsupportedProviderError(f"Unsupported provider for status check: {provider}")

    def _simulate(self, job_id: str) -> JobStatusReport:
        now = self.clock.now_ms()
        elapsed = now - job_started_ms(job_id, now)
        if elapsed < SIMULATION_MS:
            return JobStatusReport(status="processing", message="Generating your video...")
        return JobStatusReport(
            status="succeeded",
            video_url=sample_url_for(job_id),
            message="Video ready for download!",
        )

    @staticmethod
    def _require(value: str, name: str, label: str) -> None:
        if not value:
            raise ConfigurationError(f"{label} not configured on server.", missing=[name])

    async def _check_runway(self, job_id: str) -> JobStatusReport:
        self._require(self.settings.RUNWAY_API_KEY, "RUNWAY_API_KEY", "Runway API key")
        status = await self.runway.poll(job_id)
        if (status.extra or {}).get("transient"):
            # a failed probe is not a job failure
            return JobStatusReport(status="processing", message=status.extra["transient"])
        return JobStatusReport(status=status.status, video_url=status.output_url, error=status.error)

    async def _check_luma(self, job_id: str) -> JobStatusReport:
        self._require(self.settings.LUMA_API_KEY, "LUMA_API_KEY", "Luma API key")
        status = await self.luma.poll(job_id)
        return JobStatusReport(status=status.status, video_url=status.output_url, error=status.error)

    async def _check_replicate(self, job_id: str) -> JobStatusReport:
        token = self.settings.REPLICATE_API_TOKEN
        self._require(token, "REPLICATE_API_TOKEN", "Replicate API token")
        headers = {"Authorization": f"Token {token}", "Content-Type": "application/json"}
        try:
            async with httpx.AsyncClient(timeout=httpx.Timeout(30.0), transport=self._transport) as http:
                r = await http.get(f"{REPLICATE_BASE}/predictions/{job_id}", headers=headers)
        except httpx.HTTPError as exc:
            raise ProviderError(ErrorKind.TRANSIENT, f"Replicate request failed: {exc}", provider="replicate") from exc
        if r.status_code >= 400:
            log.error("[Check Status] Replicate job %s: HTTP %s", job_id, r.status_code)
            raise ProviderError(
                ErrorKind.TRANSIENT,
                f"Replicate API failed with status: {r.status_code}",
                provider="replicate",
                status_code=r.status_code,
            )
        prediction: dict[str, Any] = r.json()
        status = _REPLICATE_STATES.get(str(prediction.get("status") or ""), "processing")
        if status == "succeeded":
            output = prediction.get("output")
            url = output[0] if isinstance(output, list) and output else output
            return JobStatusReport(status=status, video_url=url)
        if status == "failed":
            return JobStatusReport(status=status, error=str(prediction.get("error") or "Unknown error"))
        return JobStatusReport(status=status)
