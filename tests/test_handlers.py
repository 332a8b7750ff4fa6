import pytest
from aiohttp.test_utils import TestClient, TestServer

from app import build_services, create_app
from handlers.responses import CORS_HEADERS
from providers.models import GenerationSuccess


@pytest.fixture
def app_services(make_settings, clock):
    return build_services(make_settings(), clock=clock)


async def _client(app_services):
    client = TestClient(TestServer(create_app(app_services)))
    await client.start_server()
    return client


@pytest.mark.asyncio
async def test_health(app_services):
    client = await _client(app_services)
    try:
        resp = await client.get("/api/health")
        body = await resp.json()
    finally:
        await client.close()

    assert resp.status == 200
    assert body["status"] == "healthy"
    assert resp.headers["Access-Control-Allow-Origin"] == "*"


@pytest.mark.asyncio
async def test_options_preflight(app_services):
    client = await _client(app_services)
    try:
        resp = await client.options("/api/ai-proxy")
    finally:
        await client.close()

    assert resp.status == 200
    for name, value in CORS_HEADERS.items():
        assert resp.headers[name] == value


@pytest.mark.asyncio
async def test_ai_proxy_test_flag(app_services):
    client = await _client(app_services)
    try:
        resp = await client.post(
            "/api/ai-proxy", json={"provider": "claude", "prompt": "hi", "test": True, "apiKey": "user-key"}
        )
        body = await resp.json()
    finally:
        await client.close()

    assert resp.status == 200
    assert body == {"success": True, "data": {"text": "OK", "test": True}}


@pytest.mark.asyncio
async def test_ai_proxy_unsupported_provider_is_400(app_services):
    client = await _client(app_services)
    try:
        resp = await client.post("/api/ai-proxy", json={"provider": "bard", "prompt": "hi"})
        body = await resp.json()
    finally:
        await client.close()

    assert resp.status == 400
    assert body["error"] == "unsupported"


@pytest.mark.asyncio
async def test_ai_proxy_missing_key_is_500_with_fix(app_services):
    client = await _client(app_services)
    try:
        resp = await client.post("/api/ai-proxy", json={"provider": "openai", "prompt": "hi"})
        body = await resp.json()
    finally:
        await client.close()

    assert resp.status == 500
    assert body["success"] is False
    assert body["error"] == "unconfigured"
    assert any("OPENAI_API_KEY" in step for step in body["fix"]["steps"])


@pytest.mark.asyncio
async def test_ai_proxy_rejects_invalid_json(app_services):
    client = await _client(app_services)
    try:
        resp = await client.post("/api/ai-proxy", data="not json", headers={"Content-Type": "application/json"})
        body = await resp.json()
    finally:
        await client.close()

    assert resp.status == 400
    assert body["error"] == "invalid_request"


@pytest.mark.asyncio
async def test_ai_failover_without_active_providers_is_503(app_services):
    client = await _client(app_services)
    try:
        resp = await client.post("/api/ai-failover", json={"prompt": "describe"})
        body = await resp.json()
    finally:
        await client.close()

    assert resp.status == 503
    assert body["error"] == "no_providers_available"


@pytest.mark.asyncio
async def test_ai_failover_requires_prompt(app_services):
    client = await _client(app_services)
    try:
        resp = await client.post("/api/ai-failover", json={})
    finally:
        await client.close()

    assert resp.status == 400


@pytest.mark.asyncio
async def test_provider_health_lists_every_provider(app_services):
    client = await _client(app_services)
    try:
        resp = await client.get("/api/provider-health")
        body = await resp.json()
    finally:
        await client.close()

    assert resp.status == 200
    by_id = {p["id"]: p for p in body["providers"]}
    assert body["active"] == []
    assert by_id["claude"]["status"] == "unconfigured"
    assert by_id["claude"]["hasKey"] is False
    assert by_id["perplexity"]["status"] == "error"


@pytest.mark.asyncio
async def test_generate_video_without_hosting_config(app_services):
    client = await _client(app_services)
    try:
        resp = await client.post("/api/generate-script-and-video", json={"projectData": {}})
        body = await resp.json()
    finally:
        await client.close()

    assert resp.status == 500
    assert body["error"] == "missing_configuration"
    assert body["details"]["missingConfigs"] == [
        "CLOUDINARY_CLOUD_NAME",
        "CLOUDINARY_API_KEY",
        "CLOUDINARY_API_SECRET",
    ]


@pytest.mark.asyncio
async def test_generate_video_rejects_malformed_project(app_services):
    client = await _client(app_services)
    try:
        resp = await client.post(
            "/api/generate-script-and-video", json={"projectData": {"videoLength": "forever"}}
        )
        body = await resp.json()
    finally:
        await client.close()

    assert resp.status == 400
    assert body["error"] == "missing_input"
    assert body["details"]["errors"]


@pytest.mark.asyncio
async def test_generate_video_returns_orchestrator_result(app_services, monkeypatch):
    class Result:
        def to_response(self):
            return {"success": True, "videoUrl": "https://cdn/v.mp4?v=1"}

    async def fake_generate(project):
        assert project.product_name == "Lamp"
        return Result()

    monkeypatch.setattr(app_services.orchestrator, "generate_video", fake_generate)
    client = await _client(app_services)
    try:
        resp = await client.post(
            "/api/generate-script-and-video", json={"projectData": {"product": {"name": "Lamp"}}}
        )
        body = await resp.json()
    finally:
        await client.close()

    assert resp.status == 200
    assert body["videoUrl"] == "https://cdn/v.mp4?v=1"


@pytest.mark.asyncio
async def test_unexpected_errors_become_internal_error(app_services, monkeypatch):
    async def broken(project):
        raise RuntimeError("kaboom")

    monkeypatch.setattr(app_services.orchestrator, "generate_video", broken)
    client = await _client(app_services)
    try:
        resp = await client.post("/api/generate-script-and-video", json={"projectData": {}})
        body = await resp.json()
    finally:
        await client.close()

    assert resp.status == 500
    assert body == {"success": False, "error": "internal_error", "message": "Internal server error"}


@pytest.mark.asyncio
async def test_generate_luma_video_without_key(app_services):
    client = await _client(app_services)
    try:
        resp = await client.post("/api/generate-luma-video", json={"projectData": {}})
        body = await resp.json()
    finally:
        await client.close()

    assert resp.status == 500
    assert body["details"]["missingConfigs"] == ["LUMA_API_KEY"]


@pytest.mark.asyncio
async def test_check_video_status_requires_fields(app_services):
    client = await _client(app_services)
    try:
        resp = await client.post("/api/check-video-status", json={"jobId": "x"})
        body = await resp.json()
    finally:
        await client.close()

    assert resp.status == 400
    assert body["message"] == "Missing jobId or provider"


@pytest.mark.asyncio
async def test_check_video_status_unknown_provider(app_services):
    client = await _client(app_services)
    try:
        resp = await client.post("/api/check-video-status", json={"jobId": "x", "provider": "sora"})
    finally:
        await client.close()

    assert resp.status == 400


@pytest.mark.asyncio
async def test_check_video_status_reliable_service(app_services, clock):
    client = await _client(app_services)
    try:
        resp = await client.post(
            "/api/check-video-status",
            json={"jobId": f"reliable-{clock.now_ms()}", "provider": "reliable-service"},
        )
        body = await resp.json()
    finally:
        await client.close()

    assert resp.status == 200
    assert body["success"] is True
    assert body["status"] == "processing"


@pytest.mark.asyncio
async def test_check_luma_status_requires_id(app_services):
    client = await _client(app_services)
    try:
        resp = await client.get("/api/check-luma-status")
        body = await resp.json()
    finally:
        await client.close()

    assert resp.status == 400
    assert body["message"] == "Generation ID is required"


@pytest.mark.asyncio
@pytest.mark.parametrize("sent,expected", [(" OpenAI ", "openai"), ("", None)])
async def test_ai_failover_normalizes_preferred_provider(app_services, monkeypatch, sent, expected):
    seen = {}

    async def fake_failover(prompt, **kwargs):
        seen.update(kwargs)
        return GenerationSuccess(data={"text": "hi"}, provider_id="openai")

    monkeypatch.setattr(app_services.failover, "call_with_failover", fake_failover)
    client = await _client(app_services)
    try:
        resp = await client.post("/api/ai-failover", json={"prompt": "describe", "preferredProvider": sent})
        body = await resp.json()
    finally:
        await client.close()

    assert resp.status == 200
    assert body["provider"] == "openai"
    assert seen["preferred_provider"] == expected
