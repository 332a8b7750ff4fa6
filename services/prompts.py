# -*- coding: utf-8 -*-
"""Clip and audio prompt construction for the video step."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Optional

from providers.project import ProjectDescriptor, StoryScene

log = logging.getLogger(__name__)

MAX_PROMPT_CHARS = 900

_FLAT_WORDS = ("sticker", "decal", "poster", "print", "card", "mat", "sheet")
_METAL_WORDS = ("meenakari", "metal", "brass", "copper", "decorative")
_WEARABLE_CATEGORIES = ("apparel", "clothing", "jewelry")
_WEARABLE_WORDS = ("shirt", "dress", "bracelet", "necklace")

# position of a clip in the video -> default scene when the storyboard has none
_POSITION_SCENES = {
    "opening": "Establishing shot introducing the product in an inviting setting, slow push-in.",
    "detail": "Close-up detail shots highlighting texture, craftsmanship and key features.",
    "closing": "Lifestyle shot of the product in use, warm light, confident closing frame.",
}

_LUMA_MOVEMENTS = (
    "Smooth slow zoom in revealing details",
    "Gentle 360-degree rotation",
    "Elegant pan across the product",
    "Subtle dolly movement highlighting features",
)


@dataclass(frozen=True, slots=True)
class ProductType:
    product_form: str
    usage_type: str
    demonstration_type: str


def analyze_product_type(project: ProjectDescriptor) -> ProductType:
    name = project.product_name.lower()
    category = project.analysis_report.category.lower()
    summary = project.analysis_report.inspiration_summary.lower()

    is_flat = (
        any(w in name for w in _FLAT_WORDS)
        or ("peel" in summary and "stick" in summary)
        or "sticker" in category
        or "decal" in category
    )
    is_metal = any(w in name for w in _METAL_WORDS) or any(w in category for w in ("metal", "brass", "decorative"))
    is_wearable = any(c in category for c in _WEARABLE_CATEGORIES) or any(w in name for w in _WEARABLE_WORDS)

    if is_metal:
        form, usage, demo = "decorative-3d", "display-decorative", "hands-displaying"
    elif is_flat:
        form, usage, demo = "flat-2d", "peel-and-stick", "hands-peeling-placing"
    elif is_wearable:
        form, usage, demo = "wearable", "wear", "model-wearing"
    else:
        form, usage, demo = "physical-3d", "hold-and-use", "hands-using"

    result = ProductType(product_form=form, usage_type=usage, demonstration_type=demo)
    log.debug("[Prompt] product type for %r: %s", project.product_name, result)
    return result


def clip_position(clip_number: int, total_clips: int) -> str:
    """opening for the first clip, closing for the last, detail in between."""
    if clip_number <= 1:
        return "opening"
    if clip_number >= total_clips:
        return "closing"
    return "detail"


def _scene_for(project: ProjectDescriptor, clip_number: int) -> Optional[StoryScene]:
    scenes = project.storyboard.scenes if project.storyboard else []
    if not scenes:
        return None
    idx = clip_number - 1
    scene = scenes[idx] if idx < len(scenes) else scenes[0]
    return scene if scene.visual else None


def build_clip_prompt(
    project: ProjectDescriptor,
    product_type: ProductType,
    *,
    clip_number: int,
    total_clips: int,
    duration: int,
) -> str:
    name = project.product_name
    position = clip_position(clip_number, total_clips)
    scene = _scene_for(project, clip_number)
    storyboard = project.storyboard

    parts: list[str] = []
    if storyboard and storyboard.narrative_style:
        parts.append(f"{storyboard.narrative_style}.")
    if storyboard and storyboard.cultural_context and clip_number == 1:
        ctx = storyboard.cultural_context
        parts.append(f"{ctx.tradition} context. {ctx.symbolism}.")

    parts.append(scene.visual if scene else _POSITION_SCENES[position])

    if product_type.product_form == "flat-2d":
        parts.append(f"The product is a flat {name}. Show as completely flat with no 3D depth.")
    elif product_type.product_form == "decorative-3d":
        parts.append(f"The product is a decorative {name}. Show craftsmanship and ornamental details.")

    if scene and scene.emotion:
        parts.append(f"Evoke a feeling of {scene.emotion}.")
    if scene and scene.camera_angle:
        parts.append(f"Use a {scene.camera_angle}.")

    if clip_number > 1:
        parts.append("Continue seamlessly from the previous shot, same product and lighting.")
    parts.append(f"The {name} should be the clear focus. {duration}s professional video. Cinematic quality.")

    prompt = " ".join(p.strip() for p in parts if p and p.strip())
    if len(prompt) > MAX_PROMPT_CHARS:
        log.warning("[Prompt] clip %d prompt too long (%d chars), condensing", clip_number, len(prompt))
        prompt = prompt[:850] + "... Professional demonstration."
    return prompt


def build_audio_prompt(product_name: str, visual_theme: str = "") -> str:
    theme = (visual_theme or "").lower()
    if "minimal" in theme or "clean" in theme:
        return f"Minimal ambient background music for {product_name}."
    if "vibrant" in theme or "modern" in theme:
        return f"Upbeat modern electronic music for {product_name}."
    if "cinematic" in theme:
        return f"Epic cinematic background music for {product_name}."
    return f"Professional upbeat background music for {product_name} product demonstration."


def build_luma_prompt(product_name: str, visual_theme: str = "", rng: Optional[random.Random] = None) -> str:
    movement = (rng or random).choice(_LUMA_MOVEMENTS)
    lighting = (
        "Soft studio lighting with elegant shadows"
        if "premium" in (visual_theme or "").lower()
        else "Bright, vibrant lighting"
    )
    return (
        f"Professional product showcase of {product_name}. {movement}. {lighting}. "
        "Professional commercial quality. Clean background. High-end product photography style."
    )
