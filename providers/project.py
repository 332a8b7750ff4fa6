# -*- coding: utf-8 -*-
"""Inbound project descriptor built by the UI layer."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class _Wire(BaseModel):
    # UI sends camelCase; Python code reads snake_case
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class ImageAsset(_Wire):
    base64: str = ""
    mime_type: str = Field(default="image/jpeg", alias="mimeType")

    def data_uri(self) -> str:
        return f"data:{self.mime_type};base64,{self.base64}"


class ProductInfo(_Wire):
    name: str = ""


class AnalysisReport(_Wire):
    category: str = ""
    inspiration_summary: str = Field(default="", alias="inspirationSummary")


class StoryScene(_Wire):
    visual: str = ""
    emotion: Optional[str] = None
    camera_angle: Optional[str] = Field(default=None, alias="cameraAngle")


class CulturalContext(_Wire):
    tradition: str = ""
    symbolism: str = ""


class Storyboard(_Wire):
    scenes: list[StoryScene] = Field(default_factory=list)
    cultural_context: Optional[CulturalContext] = Field(default=None, alias="culturalContext")
    narrative_style: Optional[str] = Field(default=None, alias="narrativeStyle")


class MusicSelection(_Wire):
    name: str = ""
    cloudinary_id: Optional[str] = Field(default=None, alias="cloudinaryId")


class BrandKit(_Wire):
    logo: Optional[ImageAsset] = None


class ProjectDescriptor(_Wire):
    """Everything the video step needs from the UI."""

    product: ProductInfo = Field(default_factory=ProductInfo)
    main_image: Optional[ImageAsset] = Field(default=None, alias="mainImage")
    reference_images: list[ImageAsset] = Field(default_factory=list, alias="referenceImages")
    video_length: Optional[int] = Field(default=None, alias="videoLength")
    analysis_report: AnalysisReport = Field(default_factory=AnalysisReport, alias="analysisReport")
    storyboard: Optional[Storyboard] = None
    music: Optional[MusicSelection] = None
    include_audio: bool = Field(default=False, alias="includeAudio")
    visual_theme: str = Field(default="", alias="visualTheme")
    brand_kit: Optional[BrandKit] = Field(default=None, alias="brandKit")

    @property
    def product_name(self) -> str:
        return (self.product.name or "").strip()

    @property
    def has_main_image(self) -> bool:
        return bool(self.main_image and self.main_image.base64)

    @property
    def preselected_audio_id(self) -> Optional[str]:
        if self.music and self.music.cloudinary_id:
            return self.music.cloudinary_id
        return None

    @classmethod
    def from_payload(cls, payload: Any) -> "ProjectDescriptor":
        return cls.model_validate(payload or {})
