# -*- coding: utf-8 -*-
from __future__ import annotations

import logging
import math
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

from config import Settings, settings as default_settings
from providers.errors import (
    AssetUploadError,
    ErrorKind,
    InvalidProjectError,
    ProviderError,
    StudioError,
    VideoGenerationError,
)
from providers.luma_provider import LumaProvider
from providers.models import (
    METHOD_COMBINED,
    METHOD_SINGLE_CLIP,
    METHOD_STATIC_BRANDING,
    ClipParams,
    ExtendedVideoResult,
    VideoJob,
)
from providers.project import ProjectDescriptor
from providers.runway_provider import RunwayProvider
from services.hosting import (
    FOLDER_ASSETS,
    FOLDER_AUDIO,
    FOLDER_BRAND_LOGOS,
    FOLDER_CLIPS,
    FOLDER_PRODUCT_IMAGES,
    CloudinaryClient,
    UploadedAsset,
    cache_bust,
)
from services.polling import poll_until_terminal
from services.prompts import (
    analyze_product_type,
    build_audio_prompt,
    build_clip_prompt,
    build_luma_prompt,
)
from services.retry import retry_with_backoff
from utils.clock import Clock, system_clock

log = logging.getLogger("services.generation_service")

T = TypeVar("T")

STATIC_BRANDING_COST = 0.001

RUNWAY_SUGGESTIONS = ["Check Runway API key & credits", "Try a shorter video duration"]
FALLBACK_SUGGESTIONS = ["Check image validity", "Verify Cloudinary credentials"]


def plan_clips(requested: Optional[int], clip_length: int, default_length: int = 10) -> tuple[int, int]:
    """(clip count, realized duration); the duration always rounds up."""
    if clip_length <= 0:
        raise ValueError("clip_length must be positive")
    duration = requested if requested and requested > 0 else default_length
    num_clips = math.ceil(duration / clip_length)
    return num_clips, num_clips * clip_length


def audio_cost(duration: int) -> int:
    return math.ceil(duration / 6)


def clip_error_is_retryable(exc: BaseException) -> bool:
    """Bad credentials and bad input fail the same way on every attempt."""
    if isinstance(exc, ProviderError):
        return exc.kind.retryable or exc.kind is ErrorKind.QUOTA_EXCEEDED
    return not isinstance(exc, ValueError)


def _message(exc: Exception) -> str:
    return exc.message if isinstance(exc, StudioError) else str(exc)


class SequentialJobRunner(Generic[T]):
    """
    Runs ``produce(1) .. produce(count)`` one after another.

    Item k+1 is started only once item k has resolved. The first exception
    aborts the run and propagates; nothing produced so far is returned.
    """

    def __init__(self, label: str = "Clip") -> None:
        self.label = label
        self.started: list[int] = []
        self.completed: list[int] = []

    async def run(self, count: int, produce: Callable[[int], Awaitable[T]]) -> list[T]:
        results: list[T] = []
        for index in range(1, count + 1):
            log.info("[%s] ========== %s %d/%d ==========", self.label, self.label.upper(), index, count)
            self.started.append(index)
            results.append(await produce(index))
            self.completed.append(index)
        return results


class AsyncJobOrchestrator:
    """Drives product video generation: clips, optional audio, remote combination."""

    def __init__(
        self,
        *,
        settings: Optional[Settings] = None,
        runway: Optional[RunwayProvider] = None,
        luma: Optional[LumaProvider] = None,
        hosting: Optional[CloudinaryClient] = None,
        clock: Clock = system_clock,
    ) -> None:
        self.settings = settings or default_settings
        self.runway = runway or RunwayProvider(settings=self.settings)
        self.luma = luma or LumaProvider(settings=self.settings)
        self.hosting = hosting or CloudinaryClient(settings=self.settings, clock=clock)
        self.clock = clock

    # ---------------------- top-level entry ----------------------

    async def generate_video(self, project: ProjectDescriptor) -> ExtendedVideoResult:
        """
        Check hosting config and connectivity, validate the project, then run
        the Runway flow or, without a Runway key, the static branded fallback.
        """
        self.hosting.ensure_configured()
        await self.hosting.ping()

        if not project.product_name or not project.has_main_image:
            raise InvalidProjectError("Product image and name are required.")

        if self.runway.configured:
            try:
                return await self.generate_extended_video(project)
            except (StudioError, ValueError) as exc:
                log.error("[Video Gen] Extended video flow failed: %s", _message(exc))
                raise VideoGenerationError(
                    f"Runway video generation failed: {_message(exc)}",
                    stage="runway_extended_flow",
                    suggestions=RUNWAY_SUGGESTIONS,
                ) from exc

        log.info("[Video Gen] ========== CLOUDINARY FALLBACK ==========")
        try:
            return await self.generate_static_branding(project)
        except (StudioError, ValueError) as exc:
            raise VideoGenerationError(
                f"Video generation failed: {_message(exc)}",
                stage="cloudinary_fallback",
                suggestions=FALLBACK_SUGGESTIONS,
            ) from exc

    # ---------------------- runway flow ----------------------

    async def generate_extended_video(self, project: ProjectDescriptor) -> ExtendedVideoResult:
        s = self.settings
        clip_length = s.CLIP_DURATION_SEC
        num_clips, actual_duration = plan_clips(project.video_length, clip_length, s.DEFAULT_VIDEO_LENGTH_SEC)
        log.info(
            "[Extended Video] Requested %ss, generating %d clips of %ds (%ds total)",
            project.video_length, num_clips, clip_length, actual_duration,
        )

        image_url, reference_urls = await self._prepare_assets(project)
        product_type = analyze_product_type(project)
        result = ExtendedVideoResult(actual_duration=actual_duration)

        async def produce(clip_number: int) -> UploadedAsset:
            prompt = build_clip_prompt(
                project,
                product_type,
                clip_number=clip_number,
                total_clips=num_clips,
                duration=clip_length,
            )
            params = ClipParams(
                prompt=prompt,
                image_url=image_url,
                reference_urls=reference_urls,
                duration_seconds=clip_length,
            )
            runway_url = await retry_with_backoff(
                lambda attempt: self._render_clip(params, clip_number, attempt),
                max_attempts=s.CLIP_MAX_RETRIES,
                base_delay=s.CLIP_RETRY_BASE_DELAY_SEC,
                strategy="linear",
                should_retry=clip_error_is_retryable,
                clock=self.clock,
                label=f"Clip {clip_number}",
            )
            asset = await self.hosting.upload_video(runway_url, FOLDER_CLIPS)
            result.add_clip(asset.secure_url, asset.public_id)
            result.add_cost(s.CLIP_COST_CREDITS)
            log.info("[Clip %d] Complete, running cost %s", clip_number, result.cost)
            return asset

        await SequentialJobRunner("Clip").run(num_clips, produce)

        await self._attach_audio(project, result, actual_duration)
        await self._finalize(result, clip_length)
        log.info("[Extended Video] Final URL: %s", result.video_url)
        return result

    async def _prepare_assets(self, project: ProjectDescriptor) -> tuple[str, list[str]]:
        if not project.has_main_image:
            raise AssetUploadError("Main product image is required for video generation.")
        main = await self.hosting.upload_image(project.main_image.data_uri(), FOLDER_ASSETS)
        refs: list[str] = []
        for ref in project.reference_images:
            if not ref.base64:
                continue
            refs.append((await self.hosting.upload_image(ref.data_uri(), FOLDER_ASSETS)).secure_url)
        log.info("[Assets] Main image ready, %d reference image(s)", len(refs))
        return main.secure_url, refs

    async def _render_clip(self, params: ClipParams, clip_number: int, attempt: int) -> str:
        log.info("[Clip %d] Attempt %d: submitting to Runway", clip_number, attempt)
        job_id = await self.runway.create_job(params)
        job = VideoJob(job_id=job_id, provider=self.runway.name.value)
        return await poll_until_terminal(
            job,
            self.runway.poll,
            interval_sec=self.settings.CLIP_POLL_INTERVAL_SEC,
            max_attempts=self.settings.CLIP_POLL_MAX_ATTEMPTS,
            clock=self.clock,
            label=f"Clip {clip_number}",
        )

    async def _attach_audio(self, project: ProjectDescriptor, result: ExtendedVideoResult, duration: int) -> None:
        preselected = project.preselected_audio_id
        if preselected:
            result.audio_public_id = preselected
            result.audio_url = self.hosting.audio_url(preselected)
            log.info("[Audio] Using pre-selected track: %s", preselected)
            return

        if not (project.include_audio and self.runway.configured):
            return

        audio_duration = min(duration, self.settings.AUDIO_MAX_DURATION_SEC)
        prompt = build_audio_prompt(project.product_name, project.visual_theme)
        try:
            job_id = await self.runway.create_audio_job(prompt, audio_duration)
            job = VideoJob(job_id=job_id, provider=self.runway.name.value)
            source_url = await poll_until_terminal(
                job,
                self.runway.poll,
                interval_sec=self.settings.AUDIO_POLL_INTERVAL_SEC,
                max_attempts=self.settings.AUDIO_POLL_MAX_ATTEMPTS,
                clock=self.clock,
                label="Audio",
            )
            asset = await self.hosting.upload_video(source_url, FOLDER_AUDIO)
        except Exception as exc:
            log.warning("[Audio] Generation failed, continuing without audio: %s", exc)
            return

        result.audio_public_id = asset.public_id
        result.audio_url = asset.secure_url
        result.add_cost(audio_cost(audio_duration))
        log.info("[Audio] Track ready: %s", asset.public_id)

    async def _finalize(self, result: ExtendedVideoResult, clip_length: int) -> None:
        if result.clip_count > 1 or result.audio_public_id:
            url = self.hosting.combine_clips_url(
                result.clip_public_ids,
                audio_public_id=result.audio_public_id,
                clip_duration=clip_length,
            )
            result.method = METHOD_COMBINED
            log.info("[Combine] Waiting %.0fs for remote transformation", self.settings.COMBINE_SETTLE_DELAY_SEC)
            await self.clock.sleep(self.settings.COMBINE_SETTLE_DELAY_SEC)
        else:
            url = result.clips[0]
            result.method = METHOD_SINGLE_CLIP
        result.video_url = cache_bust(url, self.clock.now_ms())

    # ---------------------- static fallback ----------------------

    async def generate_static_branding(self, project: ProjectDescriptor) -> ExtendedVideoResult:
        asset = await self.hosting.upload_image(project.main_image.data_uri(), FOLDER_PRODUCT_IMAGES)

        logo_public_id = None
        logo = project.brand_kit.logo if project.brand_kit else None
        if logo and logo.base64:
            try:
                logo_public_id = (await self.hosting.upload_image(logo.data_uri(), FOLDER_BRAND_LOGOS)).public_id
            except AssetUploadError as exc:
                log.error("[Cloudinary] Logo overlay failed: %s", exc.message)

        result = ExtendedVideoResult(method=METHOD_STATIC_BRANDING, source_public_id=asset.public_id)
        result.video_url = self.hosting.branded_image_url(asset.public_id, project.product_name, logo_public_id)
        result.add_cost(STATIC_BRANDING_COST)
        return result

    # ---------------------- luma ----------------------

    async def start_luma_generation(self, project: ProjectDescriptor) -> dict[str, Any]:
        """Submit to Luma and return immediately; the caller polls the status endpoint."""
        if not project.product_name or not project.has_main_image:
            raise InvalidProjectError("Product image and name are required.")
        asset = await self.hosting.upload_image(project.main_image.data_uri(), FOLDER_PRODUCT_IMAGES)
        prompt = build_luma_prompt(project.product_name, project.visual_theme)
        generation_id = await self.luma.create_job(ClipParams(prompt=prompt, image_url=asset.secure_url))
        return {
            "success": True,
            "status": "dreaming",
            "generationId": generation_id,
            "provider": self.luma.name.value,
            "message": "Video generation started. Poll the status endpoint for progress.",
        }

    async def generate_luma_video(self, image_url: str, prompt: str) -> str:
        """Blocking Luma flow; returns the finished video URL."""
        job_id = await self.luma.create_job(ClipParams(prompt=prompt, image_url=image_url))
        job = VideoJob(job_id=job_id, provider=self.luma.name.value)
        return await poll_until_terminal(
            job,
            self.luma.poll,
            interval_sec=self.settings.LUMA_POLL_INTERVAL_SEC,
            max_attempts=self.settings.LUMA_POLL_MAX_ATTEMPTS,
            clock=self.clock,
            label="Luma",
        )
