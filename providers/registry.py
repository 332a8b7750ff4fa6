# -*- coding: utf-8 -*-
"""Static table of the chat / vision providers the gateway can reach."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class ProviderDescriptor:
    """Identity and ranking of one provider; lower priority is preferred."""

    id: str
    name: str
    has_vision: bool
    cost_per_1m: float
    priority: float


# Insertion order is the tie-break for equal priorities.
PROVIDERS: dict[str, ProviderDescriptor] = {
    d.id: d
    for d in (
        ProviderDescriptor("perplexity", "Perplexity AI", has_vision=False, cost_per_1m=0.20, priority=1),
        ProviderDescriptor("openai", "OpenAI", has_vision=True, cost_per_1m=0.0, priority=2),
        ProviderDescriptor("moonshot", "Moonshot AI", has_vision=False, cost_per_1m=2.0, priority=3),
        ProviderDescriptor("gemini", "Google Gemini", has_vision=True, cost_per_1m=0.0, priority=4),
        ProviderDescriptor("claude", "Claude (Anthropic)", has_vision=True, cost_per_1m=3.0, priority=5),
        ProviderDescriptor("xai", "xAI (Grok)", has_vision=False, cost_per_1m=0.25, priority=5.5),
        ProviderDescriptor("deepseek", "DeepSeek", has_vision=True, cost_per_1m=0.14, priority=6),
    )
}

# Providers switched off on purpose; calls fail fast with a fixed message.
DISABLED_PROVIDERS: dict[str, str] = {
    "perplexity": "Perplexity provider has been temporarily disabled due to API instability.",
}


def get_descriptor(provider_id: str) -> ProviderDescriptor:
    try:
        return PROVIDERS[provider_id]
    except KeyError as exc:
        raise KeyError(f"Unknown provider: {provider_id}") from exc


def registry_order(provider_id: str) -> int:
    """Position of the provider in the registry, used as a stable secondary sort key."""
    for idx, key in enumerate(PROVIDERS):
        if key == provider_id:
            return idx
    return len(PROVIDERS)


def ranked(descriptors: list[ProviderDescriptor] | None = None) -> list[ProviderDescriptor]:
    items = list(PROVIDERS.values()) if descriptors is None else list(descriptors)
    return sorted(items, key=lambda d: (d.priority, registry_order(d.id)))
