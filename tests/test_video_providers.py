import json

import httpx
import pytest

from providers.errors import ErrorKind, ProviderError
from providers.luma_provider import LumaProvider
from providers.models import ClipParams
from providers.runway_provider import RunwayProvider


def _runway(make_settings, handler, key="rw"):
    return RunwayProvider(settings=make_settings(RUNWAY_API_KEY=key), transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_runway_image_to_video_payload(make_settings):
    sent = {}

    def handler(request):
        sent["url"] = str(request.url)
        sent["headers"] = request.headers
        sent["body"] = json.loads(request.content)
        return httpx.Response(200, json={"id": "task-42"})

    provider = _runway(make_settings, handler)
    params = ClipParams(
        prompt="slow push-in",
        image_url="http://res.cloudinary.com/demo/a.jpg",
        reference_urls=["//res.cloudinary.com/demo/ref.jpg"],
        duration_seconds=5,
    )

    assert await provider.create_job(params) == "task-42"
    assert sent["url"] == "https://api.dev.runwayml.com/v1/image_to_video"
    assert sent["headers"]["X-Runway-Version"] == "2024-11-06"
    assert sent["headers"]["Authorization"] == "Bearer rw"
    body = sent["body"]
    assert body["promptImage"] == "https://res.cloudinary.com/demo/a.jpg"
    assert body["model"] == "gen4_turbo"
    assert body["ratio"] == "720:1280"
    assert body["duration"] == 5
    assert body["references"] == [{"type": "image", "uri": "https://res.cloudinary.com/demo/ref.jpg"}]


@pytest.mark.asyncio
async def test_runway_sound_effect_payload(make_settings):
    sent = {}

    def handler(request):
        sent["path"] = request.url.path
        sent["body"] = json.loads(request.content)
        return httpx.Response(200, json={"id": "audio-1"})

    provider = _runway(make_settings, handler)

    assert await provider.create_audio_job("calm music", 10) == "audio-1"
    assert sent["path"] == "/v1/sound_effect"
    assert sent["body"] == {"model": "eleven_text_to_sound_v2", "promptText": "calm music", "duration": 10, "loop": False}


@pytest.mark.asyncio
async def test_runway_without_key_is_unconfigured(make_settings):
    provider = _runway(make_settings, lambda request: httpx.Response(200, json={}), key="")

    with pytest.raises(ProviderError) as err:
        await provider.create_job(ClipParams(prompt="x", image_url="https://a/b.jpg"))

    assert err.value.kind is ErrorKind.UNCONFIGURED
    assert "RUNWAY_API_KEY" in " ".join(err.value.fix.steps)


@pytest.mark.asyncio
async def test_runway_submit_errors(make_settings):
    provider = _runway(make_settings, lambda request: httpx.Response(429, text="too many"))

    with pytest.raises(ProviderError) as err:
        await provider.create_job(ClipParams(prompt="x", image_url="https://a/b.jpg"))

    assert err.value.kind is ErrorKind.QUOTA_EXCEEDED
    assert err.value.status_code == 429


@pytest.mark.asyncio
async def test_runway_submit_without_task_id_is_malformed(make_settings):
    provider = _runway(make_settings, lambda request: httpx.Response(200, json={"status": "ok"}))

    with pytest.raises(ProviderError) as err:
        await provider.create_job(ClipParams(prompt="x", image_url="https://a/b.jpg"))

    assert err.value.kind is ErrorKind.MALFORMED


@pytest.mark.asyncio
async def test_runway_requires_an_image(make_settings):
    provider = _runway(make_settings, lambda request: httpx.Response(200, json={"id": "t"}))

    with pytest.raises(ValueError):
        await provider.create_job(ClipParams(prompt="x"))


@pytest.mark.asyncio
async def test_runway_poll_success(make_settings):
    remote = {"status": "SUCCEEDED", "output": ["https://runway/out.mp4"]}
    provider = _runway(make_settings, lambda request: httpx.Response(200, json=remote))

    status = await provider.poll("task-1")

    assert status.status == "succeeded"
    assert status.output_url == "https://runway/out.mp4"
    assert status.progress == 100


def _luma(make_settings, key="lk"):
    return LumaProvider(settings=make_settings(LUMA_API_KEY=key))


@pytest.mark.asyncio
async def test_luma_submit_uses_keyframe_image(make_settings, monkeypatch):
    provider = _luma(make_settings)
    calls = []

    async def fake_request(method, path, *, json=None, timeout=60):
        calls.append((method, path, json))
        return 201, {"id": "gen-1", "state": "queued"}

    monkeypatch.setattr(provider, "_request", fake_request)

    job_id = await provider.create_job(ClipParams(prompt="rotate", image_url="https://res/p.jpg"))

    assert job_id == "gen-1"
    method, path, payload = calls[0]
    assert (method, path) == ("POST", "generations")
    assert payload["model"] == "ray-2"
    assert payload["aspect_ratio"] == "9:16"
    assert payload["keyframes"] == {"frame0": {"type": "image", "url": "https://res/p.jpg"}}


@pytest.mark.asyncio
async def test_luma_submit_http_error(make_settings, monkeypatch):
    provider = _luma(make_settings)

    async def fake_request(method, path, *, json=None, timeout=60):
        return 500, {"error": "oops"}

    monkeypatch.setattr(provider, "_request", fake_request)

    with pytest.raises(ProviderError) as err:
        await provider.create_job(ClipParams(prompt="rotate"))

    assert err.value.kind is ErrorKind.TRANSIENT


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "remote,status,url",
    [
        ({"state": "queued"}, "queued", None),
        ({"state": "dreaming"}, "processing", None),
        ({"state": "completed", "assets": {"video": "https://luma/a.mp4"}}, "succeeded", "https://luma/a.mp4"),
        ({"state": "completed", "video": {"url": "https://luma/b.mp4"}}, "succeeded", "https://luma/b.mp4"),
        ({"state": "failed", "failure_reason": "blocked"}, "failed", None),
    ],
)
async def test_luma_poll_state_mapping(make_settings, monkeypatch, remote, status, url):
    provider = _luma(make_settings)

    async def fake_request(method, path, *, json=None, timeout=60):
        assert (method, path) == ("GET", "generations/gen-1")
        return 200, remote

    monkeypatch.setattr(provider, "_request", fake_request)

    result = await provider.poll("gen-1")

    assert result.status == status
    assert result.output_url == url
    if status == "failed":
        assert result.error == "blocked"


@pytest.mark.asyncio
async def test_luma_poll_http_error_is_transient(make_settings, monkeypatch):
    provider = _luma(make_settings)

    async def fake_request(method, path, *, json=None, timeout=60):
        return 502, {"error": "bad gateway"}

    monkeypatch.setattr(provider, "_request", fake_request)

    assert (await provider.poll("gen-1")).status == "processing"


@pytest.mark.asyncio
async def test_luma_without_key(make_settings):
    provider = _luma(make_settings, key="")

    with pytest.raises(ProviderError) as err:
        await provider.poll("gen-1")

    assert err.value.kind is ErrorKind.UNCONFIGURED


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [401, 403])
async def test_runway_rejected_key_is_auth_error(make_settings, status):
    provider = _runway(make_settings, lambda request: httpx.Response(status, text="unauthorized"))

    with pytest.raises(ProviderError) as err:
        await provider.create_job(ClipParams(prompt="x", image_url="https://a/b.jpg"))
    assert err.value.kind is ErrorKind.AUTH

    with pytest.raises(ProviderError) as err:
        await provider.poll("task-1")
    assert err.value.kind is ErrorKind.AUTH
