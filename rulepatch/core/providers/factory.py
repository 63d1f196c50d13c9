"""Factory functions for creating providers."""

from __future__ import annotations

from rulepatch.core.providers.base import Provider
from rulepatch.core.providers.claudecode_provider import ClaudeCodeProvider
from rulepatch.core.providers.codex_provider import CodexProvider
from rulepatch.core.providers.litellm_provider import (
    AnthropicProvider,
    LiteLLMProvider,
    OpenAIProvider,
)
from rulepatch.utils.config import Settings

PROVIDER_CLASSES: dict[str, type[Provider]] = {
    "openai": OpenAIProvider,
    "anthropic": AnthropicProvider,
    "litellm": LiteLLMProvider,
    "claudecode": ClaudeCodeProvider,
    "codex": CodexProvider,
}


def get_provider(provider_type: str, settings: Settings, model: str | None = None) -> Provider:
    """
    Factory function to create a provider.

    Args:
        provider_type: Type of provider (openai, anthropic, litellm, claudecode, codex)
        settings: Application settings passed to the provider
        model: Model override

    Returns:
        A Provider instance

    Raises:
        ValueError: If provider_type is not recognized
    """
    cls = PROVIDER_CLASSES.get(provider_type.lower())
    if cls is None:
        available = ", ".join(PROVIDER_CLASSES.keys())
        raise ValueError(f"Unknown provider type: {provider_type}. Available: {available}")

    return cls(settings, model=model)


def get_available_providers(settings: Settings) -> list[str]:
    """Return the names of providers that are configured and usable."""
    return [
        name for name, cls in PROVIDER_CLASSES.items() if cls(settings).is_available()
    ]


def get_all_provider_types() -> list[str]:
    """Return list of all supported provider type names."""
    return list(PROVIDER_CLASSES.keys())
