# -*- coding: utf-8 -*-
from __future__ import annotations

import os
from typing import Optional
from urllib.parse import urlparse

from dotenv import load_dotenv
from pydantic import BaseModel

# .env must be loaded before the Settings defaults are evaluated
load_dotenv()


def _coalesce_env(*names: str, default: str = "") -> str:
    """Return the first non-empty value among the given environment variables."""
    for n in names:
        v = os.getenv(n, "")
        if isinstance(v, str) and v.strip():
            return v.strip()
    return default


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


def _parse_cloudinary_url(raw: str) -> tuple[str, str, str]:
    """
    cloudinary://<api_key>:<api_secret>@<cloud_name>
    Returns (cloud_name, api_key, api_secret); empty strings when absent.
    """
    if not raw:
        return "", "", ""
    parsed = urlparse(raw.strip())
    if parsed.scheme != "cloudinary":
        return "", "", ""
    return parsed.hostname or "", parsed.username or "", parsed.password or ""


_CLD_URL_NAME, _CLD_URL_KEY, _CLD_URL_SECRET = _parse_cloudinary_url(os.getenv("CLOUDINARY_URL", ""))

# Gemini accepts both GOOGLE_API_KEY and the legacy API_KEY
_GOOGLE_API_KEY = _coalesce_env("GOOGLE_API_KEY", "GEMINI_API_KEY", "API_KEY")

# provider id -> Settings attribute holding its credential
PROVIDER_KEY_FIELDS: dict[str, str] = {
    "claude": "ANTHROPIC_API_KEY",
    "deepseek": "DEEPSEEK_API_KEY",
    "gemini": "GOOGLE_API_KEY",
    "moonshot": "MOONSHOT_API_KEY",
    "openai": "OPENAI_API_KEY",
    "perplexity": "PERPLEXITY_API_KEY",
    "xai": "XAI_API_KEY",
    "runway": "RUNWAY_API_KEY",
    "luma": "LUMA_API_KEY",
    "replicate": "REPLICATE_API_TOKEN",
}


class Settings(BaseModel):
    """Application-level configuration derived from environment variables."""

    # General
    APP_ENV: str = os.getenv("APP_ENV", "dev")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = _env_int("PORT", 8080)

    # Chat / vision providers
    ANTHROPIC_API_KEY: str = os.getenv("ANTHROPIC_API_KEY", "")
    GOOGLE_API_KEY: str = _GOOGLE_API_KEY
    DEEPSEEK_API_KEY: str = os.getenv("DEEPSEEK_API_KEY", "")
    OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "")
    XAI_API_KEY: str = os.getenv("XAI_API_KEY", "")
    MOONSHOT_API_KEY: str = os.getenv("MOONSHOT_API_KEY", "")
    PERPLEXITY_API_KEY: str = os.getenv("PERPLEXITY_API_KEY", "")
    PREFERRED_PROVIDER: str = os.getenv("PREFERRED_PROVIDER", "")

    # Video / audio job providers
    RUNWAY_API_KEY: str = os.getenv("RUNWAY_API_KEY", "")
    LUMA_API_KEY: str = os.getenv("LUMA_API_KEY", "")
    REPLICATE_API_TOKEN: str = os.getenv("REPLICATE_API_TOKEN", "")

    # Hosting (separate variables win over CLOUDINARY_URL)
    CLOUDINARY_CLOUD_NAME: str = _coalesce_env("CLOUDINARY_CLOUD_NAME", default=_CLD_URL_NAME)
    CLOUDINARY_API_KEY: str = _coalesce_env("CLOUDINARY_API_KEY", default=_CLD_URL_KEY)
    CLOUDINARY_API_SECRET: str = _coalesce_env("CLOUDINARY_API_SECRET", default=_CLD_URL_SECRET)

    # Health checks
    HEALTH_CHECK_TIMEOUT_SEC: float = _env_float("HEALTH_CHECK_TIMEOUT_SEC", 5.0)

    # Clip generation
    CLIP_DURATION_SEC: int = _env_int("CLIP_DURATION_SEC", 5)
    DEFAULT_VIDEO_LENGTH_SEC: int = _env_int("DEFAULT_VIDEO_LENGTH_SEC", 10)
    CLIP_POLL_INTERVAL_SEC: float = _env_float("CLIP_POLL_INTERVAL_SEC", 5.0)
    CLIP_POLL_MAX_ATTEMPTS: int = _env_int("CLIP_POLL_MAX_ATTEMPTS", 120)
    CLIP_MAX_RETRIES: int = _env_int("CLIP_MAX_RETRIES", 3)
    CLIP_RETRY_BASE_DELAY_SEC: float = _env_float("CLIP_RETRY_BASE_DELAY_SEC", 5.0)
    CLIP_COST_CREDITS: int = _env_int("CLIP_COST_CREDITS", 25)

    # Background audio
    AUDIO_POLL_INTERVAL_SEC: float = _env_float("AUDIO_POLL_INTERVAL_SEC", 2.0)
    AUDIO_POLL_MAX_ATTEMPTS: int = _env_int("AUDIO_POLL_MAX_ATTEMPTS", 60)
    AUDIO_MAX_DURATION_SEC: int = _env_int("AUDIO_MAX_DURATION_SEC", 30)

    # Luma (blocking flow)
    LUMA_POLL_INTERVAL_SEC: float = _env_float("LUMA_POLL_INTERVAL_SEC", 10.0)
    LUMA_POLL_MAX_ATTEMPTS: int = _env_int("LUMA_POLL_MAX_ATTEMPTS", 30)

    # Remote transformation settle time
    COMBINE_SETTLE_DELAY_SEC: float = _env_float("COMBINE_SETTLE_DELAY_SEC", 6.0)

    # ---------- helpers ----------
    def api_key_for(self, provider_id: str) -> str:
        """Process-wide credential for a provider id, empty string when unset."""
        field = PROVIDER_KEY_FIELDS.get(provider_id)
        if field is None and provider_id.startswith("replicate"):
            field = PROVIDER_KEY_FIELDS["replicate"]
        if field is None:
            return ""
        return (getattr(self, field, "") or "").strip()

    def missing_hosting_config(self) -> list[str]:
        """Names of the Cloudinary variables that are not set."""
        missing = []
        if not self.CLOUDINARY_CLOUD_NAME:
            missing.append("CLOUDINARY_CLOUD_NAME")
        if not self.CLOUDINARY_API_KEY:
            missing.append("CLOUDINARY_API_KEY")
        if not self.CLOUDINARY_API_SECRET:
            missing.append("CLOUDINARY_API_SECRET")
        return missing

    def preferred_provider(self) -> Optional[str]:
        value = (self.PREFERRED_PROVIDER or "").strip().lower()
        return value or None


settings = Settings()
