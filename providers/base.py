# -*- coding: utf-8 -*-
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from providers.models import ClipParams


class VideoBackend(str, Enum):
    """Supported video generation providers."""

    RUNWAY = "runway"
    LUMA = "luma"


JobId = str


@dataclass(slots=True)
class JobStatus:
    """Represents a provider job state snapshot.

    ``status`` is one of queued / processing / succeeded / failed.
    """

    status: str
    output_url: str | None = None
    error: str | None = None
    progress: int = 0
    extra: dict | None = None


class VideoProvider(Protocol):
    """Common contract for asynchronous video generation providers."""

    name: VideoBackend

    async def create_job(self, params: ClipParams) -> JobId:
        """Submit a generation job and return provider job identifier."""

    async def poll(self, job_id: JobId) -> JobStatus:
        """Return latest job status supplied by the provider."""
