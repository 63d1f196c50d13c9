"""Language-model provider implementations."""

from rulepatch.core.providers.base import Message, Provider, Role, ToolCall
from rulepatch.core.providers.claudecode_provider import ClaudeCodeProvider
from rulepatch.core.providers.codex_provider import CodexProvider
from rulepatch.core.providers.factory import (
    get_all_provider_types,
    get_available_providers,
    get_provider,
)
from rulepatch.core.providers.litellm_provider import (
    AnthropicProvider,
    LiteLLMProvider,
    OpenAIProvider,
)

__all__ = [
    "Provider",
    "Message",
    "Role",
    "ToolCall",
    "LiteLLMProvider",
    "OpenAIProvider",
    "AnthropicProvider",
    "ClaudeCodeProvider",
    "CodexProvider",
    "get_provider",
    "get_available_providers",
    "get_all_provider_types",
]
