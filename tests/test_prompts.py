import random

import pytest

from providers.project import ProjectDescriptor
from services.prompts import (
    MAX_PROMPT_CHARS,
    analyze_product_type,
    build_audio_prompt,
    build_clip_prompt,
    build_luma_prompt,
    clip_position,
)


def _project(name="Desk Lamp", category="", summary="", storyboard=None):
    return ProjectDescriptor.from_payload(
        {
            "product": {"name": name},
            "analysisReport": {"category": category, "inspirationSummary": summary},
            "storyboard": storyboard,
        }
    )


@pytest.mark.parametrize(
    "name,category,summary,form",
    [
        ("Brass Peacock", "", "", "decorative-3d"),
        ("Vinyl Sticker Pack", "", "", "flat-2d"),
        ("Wall Art", "", "easy peel and stick backing", "flat-2d"),
        ("Silk Scarf", "Apparel", "", "wearable"),
        ("Coffee Grinder", "Kitchen", "", "physical-3d"),
    ],
)
def test_analyze_product_type(name, category, summary, form):
    assert analyze_product_type(_project(name, category, summary)).product_form == form


def test_clip_positions():
    assert [clip_position(n, 3) for n in (1, 2, 3)] == ["opening", "detail", "closing"]
    assert clip_position(1, 1) == "opening"


def test_clip_prompt_uses_storyboard_scene():
    project = _project(
        storyboard={
            "narrativeStyle": "Warm documentary",
            "culturalContext": {"tradition": "Diwali", "symbolism": "Light over darkness"},
            "scenes": [{"visual": "Hands lighting the lamp at dusk", "emotion": "joy", "cameraAngle": "low angle"}],
        }
    )

    prompt = build_clip_prompt(project, analyze_product_type(project), clip_number=1, total_clips=2, duration=5)

    assert prompt.startswith("Warm documentary. Diwali context. Light over darkness.")
    assert "Hands lighting the lamp at dusk" in prompt
    assert "Evoke a feeling of joy." in prompt
    assert "Use a low angle." in prompt
    assert "5s professional video" in prompt
    assert "Continue seamlessly" not in prompt


def test_later_clips_continue_from_previous_shot():
    project = _project()

    prompt = build_clip_prompt(project, analyze_product_type(project), clip_number=2, total_clips=2, duration=5)

    assert "Lifestyle shot" in prompt
    assert "Continue seamlessly from the previous shot" in prompt


def test_long_prompts_are_condensed():
    project = _project(storyboard={"scenes": [{"visual": "slow orbit " * 200}]})

    prompt = build_clip_prompt(project, analyze_product_type(project), clip_number=1, total_clips=1, duration=5)

    assert len(prompt) < MAX_PROMPT_CHARS
    assert prompt.endswith("... Professional demonstration.")


def test_audio_prompt_follows_theme():
    assert build_audio_prompt("Lamp", "Clean Minimal").startswith("Minimal ambient")
    assert build_audio_prompt("Lamp", "cinematic").startswith("Epic cinematic")
    assert build_audio_prompt("Lamp") == "Professional upbeat background music for Lamp product demonstration."


def test_luma_prompt_is_seedable():
    first = build_luma_prompt("Lamp", "premium", rng=random.Random(7))
    second = build_luma_prompt("Lamp", "premium", rng=random.Random(7))

    assert first == second
    assert "Soft studio lighting" in first
