# -*- coding: utf-8 -*-
"""
Cloudinary asset hosting over its REST upload API.

- upload_image / upload_video: signed uploads, return secure_url + public_id
- ping: credential check against the Admin API
- delivery_url / combine_clips_url: URL-based transformations (no upload)
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from typing import Iterable, Optional
from urllib.parse import quote

import httpx

from config import Settings, settings as default_settings
from providers.errors import AssetUploadError, ConfigurationError, HostingConnectionError, Remediation
from utils.clock import Clock, system_clock

log = logging.getLogger(__name__)

API_BASE = "https://api.cloudinary.com/v1_1"
DELIVERY_BASE = "https://res.cloudinary.com"

FOLDER_ASSETS = "studio-runway-assets"
FOLDER_CLIPS = "studio-runway-clips"
FOLDER_AUDIO = "studio-audio-tracks"
FOLDER_PRODUCT_IMAGES = "studio-product-images"
FOLDER_BRAND_LOGOS = "studio-brand-logos"

# e_volume is a relative change; -70 plays the track at 30% of its level
AUDIO_VOLUME_CHANGE = -70
FADE_MS = 500


@dataclass(frozen=True, slots=True)
class UploadedAsset:
    secure_url: str
    public_id: str


def sign_params(params: dict[str, object], api_secret: str) -> str:
    """Cloudinary signature: sorted ``k=v`` pairs joined by ``&`` plus the secret, SHA-1 hex."""
    to_sign = "&".join(f"{k}={params[k]}" for k in sorted(params))
    return hashlib.sha1(f"{to_sign}{api_secret}".encode("utf-8")).hexdigest()


def layer_id(public_id: str) -> str:
    """Public ids used as overlay layers replace folder slashes with colons."""
    return public_id.replace("/", ":")


def delivery_url(
    cloud_name: str,
    public_id: str,
    transformations: Iterable[str] = (),
    *,
    resource_type: str = "video",
    fmt: str = "mp4",
) -> str:
    chain = "/".join(t for t in transformations if t)
    prefix = f"{chain}/" if chain else ""
    return f"{DELIVERY_BASE}/{cloud_name}/{resource_type}/upload/{prefix}{public_id}.{fmt}"


def combine_clips_url(
    cloud_name: str,
    clip_public_ids: list[str],
    *,
    audio_public_id: Optional[str] = None,
    clip_duration: int = 5,
) -> str:
    """
    Splice clips in order onto the first one, optionally overlay an audio
    track at low volume, then normalize codec and quality.
    """
    if not clip_public_ids:
        raise ValueError("Cannot combine zero clips.")

    transformations = [f"du_{clip_duration}"]
    for public_id in clip_public_ids[1:]:
        transformations.append(f"fl_splice,l_video:{layer_id(public_id)}")
        transformations.append(f"e_fade:{FADE_MS}")
        transformations.append("fl_layer_apply")

    if audio_public_id:
        log.info("[Cloudinary] Adding audio track: %s", audio_public_id)
        transformations.append(f"l_video:{layer_id(audio_public_id)},e_volume:{AUDIO_VOLUME_CHANGE}")
        transformations.append("fl_layer_apply")

    transformations.append("vc_auto")
    transformations.append("q_auto:good")
    return delivery_url(cloud_name, clip_public_ids[0], transformations, resource_type="video", fmt="mp4")


def cache_bust(url: str, stamp_ms: int) -> str:
    """Drop any query string and append ``?v=<stamp>``."""
    return f"{url.split('?', 1)[0]}?v={stamp_ms}"


class CloudinaryClient:
    """Thin async client for the pieces of Cloudinary the pipeline needs."""

    def __init__(
        self,
        *,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Clock = system_clock,
        timeout: float = 120.0,
    ) -> None:
        s = settings or default_settings
        self.cloud_name = s.CLOUDINARY_CLOUD_NAME
        self._api_key = s.CLOUDINARY_API_KEY
        self._api_secret = s.CLOUDINARY_API_SECRET
        self._missing = s.missing_hosting_config()
        self._transport = transport
        self._clock = clock
        self._timeout = timeout

    @property
    def configured(self) -> bool:
        return not self._missing

    def ensure_configured(self) -> None:
        if self._missing:
            raise ConfigurationError(
                f"Server configuration incomplete. Missing: {', '.join(self._missing)}",
                missing=self._missing,
            )

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=httpx.Timeout(self._timeout), transport=self._transport)

    async def ping(self) -> None:
        """Verify credentials; raises HostingConnectionError."""
        self.ensure_configured()
        url = f"{API_BASE}/{self.cloud_name}/resources/image"
        try:
            async with self._client() as http:
                r = await http.get(url, params={"max_results": 1}, auth=(self._api_key, self._api_secret))
        except httpx.HTTPError as exc:
            raise self._connection_error(str(exc)) from exc
        if r.status_code >= 400:
            raise self._connection_error(f"Cloudinary ping failed: {r.status_code}")
        log.info("[Cloudinary] Connection verified")

    def _connection_error(self, reason: str) -> HostingConnectionError:
        return HostingConnectionError(
            "Cloudinary credentials are invalid or connection failed",
            details={"error": reason, "cloudName": self.cloud_name},
            fix=Remediation(
                title="Cloudinary connection failed",
                steps=[
                    "1. Verify Cloudinary credentials are correct",
                    "2. Check cloud name",
                    "3. Check API key and secret are not expired",
                ],
            ),
        )

    async def _upload(self, resource_type: str, file: str, folder: str) -> UploadedAsset:
        self.ensure_configured()
        timestamp = self._clock.now_ms() // 1000
        form = {
            "file": file,
            "folder": folder,
            "timestamp": str(timestamp),
            "api_key": self._api_key,
            "signature": sign_params({"folder": folder, "timestamp": timestamp}, self._api_secret),
        }
        url = f"{API_BASE}/{self.cloud_name}/{resource_type}/upload"
        async with self._client() as http:
            r = await http.post(url, data=form)
        if r.status_code >= 400:
            raise AssetUploadError(f"Cloudinary upload failed ({r.status_code}): {r.text[:500]}")
        try:
            data = r.json()
            return UploadedAsset(secure_url=data["secure_url"], public_id=data["public_id"])
        except (ValueError, KeyError, TypeError) as exc:
            raise AssetUploadError("Cloudinary upload returned an unexpected response") from exc

    async def upload_image(self, data_uri: str, folder: str = FOLDER_ASSETS) -> UploadedAsset:
        if not data_uri or not data_uri.startswith("data:image/"):
            raise AssetUploadError("Invalid base64 data URL for upload.")
        try:
            asset = await self._upload("image", data_uri, folder)
        except (AssetUploadError, httpx.HTTPError) as exc:
            log.error("[Cloudinary] Image upload failed: %s", exc)
            raise AssetUploadError(f"Failed to upload image to Cloudinary: {exc}") from exc
        log.info("[Cloudinary] Image uploaded: %s", asset.secure_url)
        return asset

    async def upload_video(self, source_url: str, folder: str = FOLDER_CLIPS) -> UploadedAsset:
        """Fetch-upload a remote video (or audio) by URL."""
        try:
            asset = await self._upload("video", source_url, folder)
        except (AssetUploadError, httpx.HTTPError) as exc:
            log.error("[Cloudinary] Video upload failed: %s", exc)
            raise AssetUploadError(f"Failed to upload video to Cloudinary: {exc}") from exc
        log.info("[Cloudinary] Video uploaded: %s", asset.public_id)
        return asset

    def audio_url(self, public_id: str) -> str:
        return f"{DELIVERY_BASE}/{self.cloud_name}/video/upload/{public_id}.mp3"

    def combine_clips_url(self, clip_public_ids: list[str], *, audio_public_id: Optional[str], clip_duration: int) -> str:
        return combine_clips_url(
            self.cloud_name,
            clip_public_ids,
            audio_public_id=audio_public_id,
            clip_duration=clip_duration,
        )

    def branded_image_url(self, public_id: str, product_name: str, logo_public_id: Optional[str] = None) -> str:
        """Static 1080x1920 product card with a name caption and optional logo."""
        transformations = [
            "w_1080,h_1920,c_fill,g_center,q_auto:good",
            f"l_text:Arial_80_bold:{quote(product_name, safe='')},co_white,g_south,y_150,e_shadow:100",
        ]
        if logo_public_id:
            transformations.append(f"l_{layer_id(logo_public_id)},w_0.15,g_north_east,x_30,y_30,o_90")
        return delivery_url(
            self.cloud_name,
            public_id,
            transformations,
            resource_type="image",
            fmt="jpg",
        )
