# -*- coding: utf-8 -*-
"""
Wire formats of the chat / vision providers.

Each backend turns a GenerationRequest into (url, headers, json payload) and
pulls the generated text back out of the provider's response body.
"""

from __future__ import annotations

import logging
from typing import Any

from providers.errors import CapabilityError, ErrorKind, ProviderError
from providers.models import GenerationRequest
from utils.images import is_http_url, parse_data_uri

log = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = "You are a helpful assistant."
MAX_TOKENS = 4096

# what indexing into an unexpected JSON shape raises
_SHAPE_ERRORS = (KeyError, IndexError, TypeError, AttributeError)


class ChatBackend:
    """Base class; subclasses describe one provider's HTTP contract."""

    provider_id: str = ""
    display_name: str = ""
    supports_images: bool = True

    def endpoint(self, request: GenerationRequest) -> str:
        raise NotImplementedError

    def headers(self, api_key: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

    def build_payload(self, request: GenerationRequest) -> dict[str, Any]:
        raise NotImplementedError

    def parse_response(self, data: Any) -> str:
        raise NotImplementedError

    def ensure_capable(self, request: GenerationRequest) -> None:
        if request.has_images and not self.supports_images:
            raise CapabilityError(
                f"{self.display_name} provider does not support images.",
                provider=self.provider_id,
            )

    def _text(self, value: Any, data: Any) -> str:
        if value is None:
            return ""
        if not isinstance(value, str):
            raise self._malformed(data)
        return value

    def _malformed(self, data: Any) -> ProviderError:
        log.error("%s returned an unexpected payload: %.500s", self.display_name, data)
        return ProviderError(
            ErrorKind.MALFORMED,
            f"{self.display_name} API returned an unexpected response shape",
            provider=self.provider_id,
        )


class AnthropicBackend(ChatBackend):
    provider_id = "claude"
    display_name = "Anthropic"
    model = "claude-3-5-sonnet-20240620"
    api_version = "2023-06-01"

    def endpoint(self, request: GenerationRequest) -> str:
        return "https://api.anthropic.com/v1/messages"

    def headers(self, api_key: str) -> dict[str, str]:
        return {
            "x-api-key": api_key,
            "anthropic-version": self.api_version,
            "Content-Type": "application/json",
        }

    def build_payload(self, request: GenerationRequest) -> dict[str, Any]:
        content: list[dict[str, Any]] = []
        for image in request.images:
            parsed = parse_data_uri(image)
            if parsed:
                mime, data = parsed
                content.append({"type": "image", "source": {"type": "base64", "media_type": mime, "data": data}})
            elif is_http_url(image):
                content.append({"type": "image", "source": {"type": "url", "url": image}})
            else:
                raise CapabilityError(f"Unsupported image reference for {self.display_name}", provider=self.provider_id)
        content.append({"type": "text", "text": request.prompt})
        return {
            "model": self.model,
            "max_tokens": MAX_TOKENS,
            "system": request.system_prompt or DEFAULT_SYSTEM_PROMPT,
            "messages": [{"role": "user", "content": content}],
        }

    def parse_response(self, data: Any) -> str:
        try:
            blocks = data["content"]
            text = (blocks[0] or {}).get("text") if blocks else ""
        except _SHAPE_ERRORS as exc:
            raise self._malformed(data) from exc
        return self._text(text, data)


class OpenAICompatibleBackend(ChatBackend):
    """Chat-completions dialect shared by OpenAI, DeepSeek, Moonshot and xAI."""

    url = ""
    text_model = ""
    vision_model = ""
    temperature: float | None = 0.7
    send_max_tokens = True

    def endpoint(self, request: GenerationRequest) -> str:
        return self.url

    def model_for(self, request: GenerationRequest) -> str:
        if request.has_images and self.vision_model:
            return self.vision_model
        return self.text_model

    def build_payload(self, request: GenerationRequest) -> dict[str, Any]:
        messages: list[dict[str, Any]] = []
        if request.system_prompt:
            messages.append({"role": "system", "content": request.system_prompt})

        if request.has_images:
            parts: list[dict[str, Any]] = [{"type": "text", "text": request.prompt}]
            for image in request.images:
                parts.append({"type": "image_url", "image_url": {"url": image}})
            messages.append({"role": "user", "content": parts})
        else:
            messages.append({"role": "user", "content": request.prompt})

        payload: dict[str, Any] = {"model": self.model_for(request), "messages": messages}
        if self.send_max_tokens:
            payload["max_tokens"] = MAX_TOKENS
        if self.temperature is not None:
            payload["temperature"] = self.temperature
        return payload

    def parse_response(self, data: Any) -> str:
        try:
            choices = data["choices"]
            text = ((choices[0] or {}).get("message") or {}).get("content") if choices else ""
        except _SHAPE_ERRORS as exc:
            raise self._malformed(data) from exc
        return self._text(text, data)


class OpenAIBackend(OpenAICompatibleBackend):
    provider_id = "openai"
    display_name = "OpenAI"
    url = "https://api.openai.com/v1/chat/completions"
    text_model = "gpt-4o"
    temperature = None


class DeepSeekBackend(OpenAICompatibleBackend):
    provider_id = "deepseek"
    display_name = "DeepSeek"
    url = "https://api.deepseek.com/chat/completions"
    text_model = "deepseek-chat"
    vision_model = "deepseek-vision"


class MoonshotBackend(OpenAICompatibleBackend):
    provider_id = "moonshot"
    display_name = "Moonshot"
    supports_images = False
    url = "https://api.moonshot.cn/v1/chat/completions"
    text_model = "moonshot-v1-8k"


class XAIBackend(OpenAICompatibleBackend):
    provider_id = "xai"
    display_name = "xAI/Grok"
    supports_images = False
    url = "https://api.x.ai/v1/chat/completions"
    text_model = "grok-4-latest"
    send_max_tokens = False


class GeminiBackend(ChatBackend):
    provider_id = "gemini"
    display_name = "Google"
    base_url = "https://generativelanguage.googleapis.com/v1beta"
    text_model = "gemini-2.5-flash"
    vision_model = "gemini-2.5-pro"

    def endpoint(self, request: GenerationRequest) -> str:
        model = self.vision_model if request.has_images else self.text_model
        return f"{self.base_url}/models/{model}:generateContent"

    def headers(self, api_key: str) -> dict[str, str]:
        return {"x-goog-api-key": api_key, "Content-Type": "application/json"}

    def build_payload(self, request: GenerationRequest) -> dict[str, Any]:
        parts: list[dict[str, Any]] = []
        for image in request.images:
            parsed = parse_data_uri(image)
            if not parsed:
                # generateContent only takes inline bytes for ad-hoc images
                raise CapabilityError("Gemini accepts inline data-URI images only", provider=self.provider_id)
            mime, data = parsed
            parts.append({"inlineData": {"mimeType": mime, "data": data}})
        parts.append({"text": request.prompt})

        payload: dict[str, Any] = {"contents": [{"role": "user", "parts": parts}]}
        if request.system_prompt:
            payload["systemInstruction"] = {"parts": [{"text": request.system_prompt}]}
        return payload

    def parse_response(self, data: Any) -> str:
        try:
            candidates = data["candidates"]
            if not candidates:
                return ""
            parts = ((candidates[0] or {}).get("content") or {}).get("parts") or []
            text = "".join(p.get("text") or "" for p in parts if isinstance(p, dict))
        except _SHAPE_ERRORS as exc:
            raise self._malformed(data) from exc
        return self._text(text, data)


BACKENDS: dict[str, ChatBackend] = {
    b.provider_id: b
    for b in (
        AnthropicBackend(),
        OpenAIBackend(),
        DeepSeekBackend(),
        MoonshotBackend(),
        XAIBackend(),
        GeminiBackend(),
    )
}
