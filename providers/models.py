# -*- coding: utf-8 -*-
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional, Union

from providers.errors import ErrorKind, InvalidTransition, Remediation


# ---------------------------
# Chat / vision requests
# ---------------------------

@dataclass(frozen=True, slots=True)
class GenerationRequest:
    """One logical call to a chat / vision provider."""

    provider: Optional[str] = None
    prompt: str = ""
    images: tuple[str, ...] = ()
    system_prompt: Optional[str] = None
    test: bool = False
    # per-user credential, takes precedence over process configuration
    api_key: Optional[str] = None

    def __post_init__(self) -> None:
        # accept any iterable of images but store an immutable tuple
        if not isinstance(self.images, tuple):
            object.__setattr__(self, "images", tuple(self.images or ()))
        if self.provider is not None:
            object.__setattr__(self, "provider", self.provider.strip().lower() or None)

    @property
    def has_images(self) -> bool:
        return bool(self.images)

    def with_provider(self, provider: str) -> "GenerationRequest":
        return GenerationRequest(
            provider=provider,
            prompt=self.prompt,
            images=self.images,
            system_prompt=self.system_prompt,
            test=self.test,
            api_key=self.api_key,
        )

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "GenerationRequest":
        """Build from the inbound JSON body (camelCase keys)."""
        images = payload.get("images") or ()
        if isinstance(images, str):
            images = (images,)
        return cls(
            provider=payload.get("provider"),
            prompt=str(payload.get("prompt") or ""),
            images=tuple(str(i) for i in images if i),
            system_prompt=payload.get("systemPrompt") or payload.get("system_prompt"),
            test=bool(payload.get("test", False)),
            api_key=payload.get("apiKey") or payload.get("api_key"),
        )


@dataclass(slots=True)
class GenerationSuccess:
    data: Any
    provider_id: str
    attempts: int = 1

    success: bool = field(default=True, init=False)

    def to_dict(self) -> dict[str, Any]:
        return {"success": True, "data": self.data, "provider": self.provider_id, "attempts": self.attempts}


@dataclass(slots=True)
class GenerationFailure:
    kind: ErrorKind
    message: str
    fix: Optional[Remediation] = None

    success: bool = field(default=False, init=False)

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"success": False, "error": self.kind.value, "message": self.message}
        if self.fix is not None:
            body["fix"] = self.fix.to_dict()
        return body


GenerationResult = Union[GenerationSuccess, GenerationFailure]


# ---------------------------
# Video jobs
# ---------------------------

class JobState(str, Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMEOUT = "timeout"

    @property
    def terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES = frozenset({JobState.SUCCEEDED, JobState.FAILED, JobState.TIMEOUT})


@dataclass(slots=True)
class VideoJob:
    """One externally hosted generation task, driven by the poll loop."""

    job_id: str
    provider: str
    state: JobState = JobState.QUEUED
    output_url: Optional[str] = None
    failure_reason: Optional[str] = None
    attempts: int = 0

    @property
    def done(self) -> bool:
        return self.state.terminal

    def transition(
        self,
        state: JobState,
        *,
        output_url: Optional[str] = None,
        failure_reason: Optional[str] = None,
    ) -> None:
        if self.state.terminal:
            raise InvalidTransition(
                f"Job {self.job_id} is already {self.state.value}; cannot move to {state.value}"
            )
        self.state = state
        if output_url is not None:
            self.output_url = output_url
        if failure_reason is not None:
            self.failure_reason = failure_reason


@dataclass(slots=True)
class ClipParams:
    """Unified parameter set consumed by video providers."""

    prompt: str
    image_url: Optional[str] = None
    reference_urls: list[str] = field(default_factory=list)
    duration_seconds: Optional[int] = None
    ratio: Optional[str] = None
    model: Optional[str] = None

    def __post_init__(self) -> None:
        self.prompt = (self.prompt or "").strip()
        if isinstance(self.duration_seconds, int) and self.duration_seconds <= 0:
            self.duration_seconds = None
        self.reference_urls = [u for u in (self.reference_urls or []) if u]


# ---------------------------
# Aggregate video result
# ---------------------------

METHOD_SINGLE_CLIP = "single-clip-no-audio"
METHOD_COMBINED = "combined-with-remote-transform"
METHOD_STATIC_BRANDING = "cloudinary-static-with-branding"


@dataclass(slots=True)
class ExtendedVideoResult:
    """Built clip by clip; ``cost`` only ever grows."""

    clips: list[str] = field(default_factory=list)
    clip_public_ids: list[str] = field(default_factory=list)
    audio_url: Optional[str] = None
    audio_public_id: Optional[str] = None
    video_url: Optional[str] = None
    cost: float = 0
    method: str = METHOD_SINGLE_CLIP
    actual_duration: int = 0
    # hosted source asset of the static fallback
    source_public_id: Optional[str] = None

    def add_clip(self, url: str, public_id: str) -> None:
        self.clips.append(url)
        self.clip_public_ids.append(public_id)

    def add_cost(self, amount: float) -> None:
        if amount < 0:
            raise ValueError("cost increments must be non-negative")
        self.cost += amount

    @property
    def clip_count(self) -> int:
        return len(self.clips)

    def to_response(self) -> dict[str, Any]:
        if self.method == METHOD_STATIC_BRANDING:
            return {
                "success": True,
                "videoUrl": self.video_url,
                "audioUrl": None,
                "cloudinaryPublicId": self.source_public_id,
                "generationMethod": self.method,
                "cost": self.cost,
                "message": "No video provider configured; generated a branded product image.",
            }
        return {
            "success": True,
            "videoUrl": self.video_url,
            "audioUrl": self.audio_url,
            "allClips": list(self.clips),
            "clipCount": self.clip_count,
            "multiClip": self.clip_count > 1,
            "generationMethod": self.method,
            "cost": self.cost,
            "duration": self.actual_duration,
            "message": (
                f"Generated {self.clip_count} clips ({self.actual_duration}s total)"
                + (" and combined them with remote transformations." if self.method == METHOD_COMBINED else ".")
            ),
        }


@dataclass(slots=True)
class JobStatusReport:
    """Answer of the stateless status-check endpoint."""

    status: str
    video_url: Optional[str] = None
    error: Optional[str] = None
    message: Optional[str] = None

    def to_response(self) -> dict[str, Any]:
        body: dict[str, Any] = {"success": True, "status": self.status}
        if self.video_url:
            body["videoUrl"] = self.video_url
        if self.error:
            body["error"] = self.error
        if self.message:
            body["message"] = self.message
        return body
