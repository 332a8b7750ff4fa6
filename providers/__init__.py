# -*- coding: utf-8 -*-
"""Chat gateway and video generation providers."""

from providers.base import JobId, JobStatus, VideoBackend, VideoProvider
from providers.errors import ErrorKind, ProviderError, StudioError
from providers.gateway import UnifiedProviderGateway
from providers.luma_provider import LumaProvider
from providers.models import ClipParams, GenerationRequest, GenerationResult
from providers.runway_provider import RunwayProvider

__all__ = [
    "JobId",
    "JobStatus",
    "VideoBackend",
    "VideoProvider",
    "ErrorKind",
    "ProviderError",
    "StudioError",
    "UnifiedProviderGateway",
    "LumaProvider",
    "ClipParams",
    "GenerationRequest",
    "GenerationResult",
    "RunwayProvider",
]
