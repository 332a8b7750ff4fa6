# -*- coding: utf-8 -*-
"""Structured error types shared by the gateway, orchestrators and HTTP layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    """Classification carried by every provider failure."""

    UNCONFIGURED = "unconfigured"
    CAPABILITY = "capability"
    TRANSIENT = "transient"
    QUOTA_EXCEEDED = "quota_exceeded"
    AUTH = "auth"
    MALFORMED = "malformed"
    DISABLED = "disabled"
    UNSUPPORTED = "unsupported"

    @property
    def retryable(self) -> bool:
        return self in {ErrorKind.TRANSIENT, ErrorKind.MALFORMED}


@dataclass(slots=True)
class Remediation:
    """The ``fix`` block rendered verbatim by the UI."""

    title: str
    steps: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"title": self.title, "steps": list(self.steps)}


class StudioError(Exception):
    """Base class for every error raised by this service."""

    code = "internal_error"

    def __init__(self, message: str, *, fix: Optional[Remediation] = None, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.fix = fix
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"success": False, "error": self.code, "message": self.message}
        if self.details:
            body["details"] = self.details
        if self.fix is not None:
            body["fix"] = self.fix.to_dict()
        return body


class ProviderError(StudioError):
    """A provider call failed; ``kind`` tells callers how to react."""

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        *,
        provider: Optional[str] = None,
        status_code: Optional[int] = None,
        fix: Optional[Remediation] = None,
    ):
        super().__init__(message, fix=fix)
        self.kind = kind
        self.provider = provider
        self.status_code = status_code

    @property
    def code(self) -> str:  # type: ignore[override]
        return self.kind.value

    def __repr__(self) -> str:
        return f"ProviderError(kind={self.kind.value!r}, provider={self.provider!r}, message={self.message!r})"


class CapabilityError(ProviderError):
    """Input the provider cannot handle, e.g. images sent to a text-only model."""

    def __init__(self, message: str, *, provider: Optional[str] = None):
        super().__init__(ErrorKind.CAPABILITY, message, provider=provider)


class ConfigurationError(StudioError):
    """Required credentials or settings are absent."""

    code = "missing_configuration"

    def __init__(self, message: str, *, missing: Optional[list[str]] = None, fix: Optional[Remediation] = None):
        missing = list(missing or [])
        super().__init__(
            message,
            fix=fix or env_remediation(missing),
            details={"missingConfigs": missing} if missing else None,
        )
        self.missing = missing


class UnsupportedProviderError(StudioError):
    code = "unsupported_provider"


class InvalidProjectError(StudioError):
    code = "missing_input"


class InvalidRequestError(StudioError):
    code = "invalid_request"


class AssetUploadError(StudioError):
    code = "asset_upload_failed"


class HostingConnectionError(StudioError):
    code = "cloudinary_connection_failed"


class JobFailedError(StudioError):
    """The remote provider reported a terminal failure for a job."""

    code = "job_failed"

    def __init__(self, message: str, *, job_id: Optional[str] = None):
        super().__init__(message)
        self.job_id = job_id


class JobTimeoutError(StudioError):
    """A bounded poll loop ran out of attempts before a terminal state."""

    code = "job_timeout"

    def __init__(self, message: str, *, job_id: Optional[str] = None):
        super().__init__(message)
        self.job_id = job_id


class InvalidTransition(StudioError):
    code = "invalid_transition"


class NoProvidersAvailable(StudioError):
    code = "no_providers_available"


class FailoverExhausted(StudioError):
    code = "all_providers_failed"

    def __init__(self, message: str, *, last_error: Optional[BaseException] = None, attempts: int = 0):
        super().__init__(message)
        self.last_error = last_error
        self.attempts = attempts


class VideoGenerationError(StudioError):
    """Wraps whatever aborted a video job, keeping the original message."""

    code = "video_generation_failed"

    def __init__(self, message: str, *, stage: str, suggestions: Optional[list[str]] = None):
        super().__init__(message, details={"stage": stage})
        self.stage = stage
        self.suggestions = list(suggestions or [])

    def to_dict(self) -> dict[str, Any]:
        body = super().to_dict()
        if self.suggestions:
            body["suggestions"] = list(self.suggestions)
        return body


def env_remediation(missing: list[str]) -> Remediation:
    """Standard steps for adding missing environment variables."""
    names = ", ".join(missing) if missing else "the required API keys"
    return Remediation(
        title="How to fix this:",
        steps=[
            "1. Open the deployment settings -> Environment Variables",
            f"2. Add missing variables: {names}",
            "3. Set them for both production and preview environments",
            "4. Redeploy or restart the service",
        ],
    )


def classify_error_message(message: str) -> ErrorKind:
    """
    Boundary adapter for third-party errors that only carry text.
    Internal code raises ProviderError with an explicit kind instead.
    """
    lowered = (message or "").lower()
    if "not configured" in lowered:
        return ErrorKind.UNCONFIGURED
    if "quota" in lowered or "rate limit" in lowered:
        return ErrorKind.QUOTA_EXCEEDED
    return ErrorKind.TRANSIENT
