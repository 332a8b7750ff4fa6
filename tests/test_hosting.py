import hashlib
from urllib.parse import parse_qs

import httpx
import pytest

from providers.errors import AssetUploadError, ConfigurationError, HostingConnectionError
from services.hosting import CloudinaryClient, cache_bust, combine_clips_url, sign_params


def test_sign_params_matches_cloudinary_scheme():
    expected = hashlib.sha1(b"folder=clips&timestamp=1700000000secret").hexdigest()
    assert sign_params({"timestamp": 1700000000, "folder": "clips"}, "secret") == expected


def test_combine_clips_url_chain():
    url = combine_clips_url(
        "demo",
        ["studio-runway-clips/a", "studio-runway-clips/b", "studio-runway-clips/c"],
        audio_public_id="studio-audio-tracks/m",
        clip_duration=5,
    )

    assert url == (
        "https://res.cloudinary.com/demo/video/upload/"
        "du_5/"
        "fl_splice,l_video:studio-runway-clips:b/e_fade:500/fl_layer_apply/"
        "fl_splice,l_video:studio-runway-clips:c/e_fade:500/fl_layer_apply/"
        "l_video:studio-audio-tracks:m,e_volume:-70/fl_layer_apply/"
        "vc_auto/q_auto:good/"
        "studio-runway-clips/a.mp4"
    )


def test_combine_clips_url_requires_clips():
    with pytest.raises(ValueError):
        combine_clips_url("demo", [])


def test_cache_bust_replaces_existing_query():
    assert cache_bust("https://x/v.mp4?v=1&a=2", 99) == "https://x/v.mp4?v=99"
    assert cache_bust("https://x/v.mp4", 5) == "https://x/v.mp4?v=5"


def test_missing_config_lists_every_variable(make_settings):
    client = CloudinaryClient(settings=make_settings(CLOUDINARY_CLOUD_NAME="demo"))

    with pytest.raises(ConfigurationError) as err:
        client.ensure_configured()

    assert err.value.missing == ["CLOUDINARY_API_KEY", "CLOUDINARY_API_SECRET"]
    assert err.value.to_dict()["details"] == {"missingConfigs": ["CLOUDINARY_API_KEY", "CLOUDINARY_API_SECRET"]}
    assert err.value.fix.steps


@pytest.mark.asyncio
async def test_ping_failure_carries_fix(hosted_settings):
    transport = httpx.MockTransport(lambda request: httpx.Response(401, json={"error": "bad auth"}))
    client = CloudinaryClient(settings=hosted_settings, transport=transport)

    with pytest.raises(HostingConnectionError) as err:
        await client.ping()

    body = err.value.to_dict()
    assert body["error"] == "cloudinary_connection_failed"
    assert body["details"]["cloudName"] == "demo"
    assert body["fix"]["title"] == "Cloudinary connection failed"


@pytest.mark.asyncio
async def test_upload_image_signs_form(hosted_settings, clock):
    sent = {}

    def handler(request: httpx.Request) -> httpx.Response:
        sent["url"] = str(request.url)
        sent["form"] = {k: v[0] for k, v in parse_qs(request.content.decode()).items()}
        return httpx.Response(200, json={"secure_url": "https://res/img.jpg", "public_id": "studio-runway-assets/img"})

    client = CloudinaryClient(settings=hosted_settings, transport=httpx.MockTransport(handler), clock=clock)

    asset = await client.upload_image("data:image/png;base64,AAAA")

    assert asset.public_id == "studio-runway-assets/img"
    assert sent["url"] == "https://api.cloudinary.com/v1_1/demo/image/upload"
    form = sent["form"]
    assert form["folder"] == "studio-runway-assets"
    assert form["api_key"] == "cld-key"
    assert form["signature"] == sign_params(
        {"folder": "studio-runway-assets", "timestamp": form["timestamp"]}, "cld-secret"
    )


@pytest.mark.asyncio
async def test_upload_image_rejects_non_data_uri(hosted_settings):
    client = CloudinaryClient(settings=hosted_settings)

    with pytest.raises(AssetUploadError, match="Invalid base64"):
        await client.upload_image("https://example.com/a.jpg")


@pytest.mark.asyncio
async def test_upload_failure_is_wrapped(hosted_settings):
    transport = httpx.MockTransport(lambda request: httpx.Response(500, text="nope"))
    client = CloudinaryClient(settings=hosted_settings, transport=transport)

    with pytest.raises(AssetUploadError, match="Failed to upload video to Cloudinary"):
        await client.upload_video("https://runway/out.mp4")


def test_branded_image_url_with_logo(hosted_settings):
    client = CloudinaryClient(settings=hosted_settings)

    url = client.branded_image_url("studio-product-images/p1", "Brass Lamp", "studio-brand-logos/l1")

    assert url.startswith("https://res.cloudinary.com/demo/image/upload/w_1080,h_1920,c_fill")
    assert "l_text:Arial_80_bold:Brass%20Lamp" in url
    assert "l_studio-brand-logos:l1,w_0.15" in url
    assert url.endswith("/studio-product-images/p1.jpg")


def test_single_clip_with_audio_sets_volume_on_layer():
    url = combine_clips_url("demo", ["clips/a"], audio_public_id="audio/m", clip_duration=5)

    assert "/l_video:audio:m,e_volume:-70/fl_layer_apply/vc_auto/" in url
    assert "so_" not in url
    assert url.count("fl_layer_apply") == 1
