"""LiteLLM-backed providers for hosted model vendors."""

from __future__ import annotations

from typing import Any

import litellm
from litellm import completion

from rulepatch.core.providers.base import Message, Provider, ToolCall
from rulepatch.errors import ProviderError
from rulepatch.utils.config import Settings
from rulepatch.utils.logger import get_logger

logger = get_logger(__name__)

# Suppress LiteLLM's banner and debug hints
litellm.suppress_debug_info = True


class LiteLLMProvider(Provider):
    """Provider for any model string LiteLLM understands."""

    DEFAULT_MODEL = "gpt-4o"

    def __init__(self, settings: Settings, model: str | None = None):
        """
        Initialize the provider.

        Args:
            settings: Explicit application settings (API keys, limits, timeout)
            model: Model override; falls back to settings.model, then DEFAULT_MODEL
        """
        self.settings = settings
        self.model = model or settings.model or self.DEFAULT_MODEL
        self.temperature = settings.temperature
        self.max_tokens = settings.max_tokens
        self.timeout = settings.request_timeout
        self.num_retries = settings.num_retries

    @property
    def name(self) -> str:
        """Return the provider name."""
        return "litellm"

    @property
    def supports_tools(self) -> bool:
        return True

    @property
    def api_key(self) -> str | None:
        """API key matching the configured model's vendor."""
        model_lower = self.model.lower()
        if "claude" in model_lower or "anthropic" in model_lower:
            return self.settings.anthropic_api_key
        if "ollama" in model_lower:
            return None  # Ollama doesn't need an API key
        return self.settings.openai_api_key

    def is_available(self) -> bool:
        """Check if an API key (or a keyless local model) is configured."""
        return bool(self.api_key) or self.model.lower().startswith("ollama")

    def _request_kwargs(
        self,
        messages: list[Message],
        tools: list[dict[str, Any]] | None,
    ) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "model": self.model,
            "messages": [message.to_dict() for message in messages],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "timeout": self.timeout,
        }
        if self.num_retries:
            kwargs["num_retries"] = self.num_retries
        if self.api_key:
            kwargs["api_key"] = self.api_key
        if self.settings.api_base:
            kwargs["api_base"] = self.settings.api_base
        if tools:
            kwargs["tools"] = tools
        return kwargs

    def chat_completion(
        self,
        messages: list[Message],
        tools: list[dict[str, Any]] | None = None,
    ) -> Message:
        """
        Send the conversation to the model.

        Args:
            messages: Ordered conversation
            tools: Optional OpenAI-style tool definitions

        Returns:
            The assistant reply, including any requested tool calls

        Raises:
            ProviderError: On transport failure, error status or malformed response
        """
        logger.debug(f"Sending {len(messages)} message(s) to {self.model}")

        try:
            response = completion(**self._request_kwargs(messages, tools))
        except Exception as e:
            raise ProviderError(self.name, f"Completion request to {self.model} failed: {e}") from e

        try:
            choices = response.choices
            if not choices:
                raise ProviderError(self.name, "No completion choices returned")
            reply = choices[0].message
            tool_calls = [
                ToolCall(
                    id=call.id,
                    name=call.function.name,
                    arguments=call.function.arguments or "{}",
                )
                for call in (getattr(reply, "tool_calls", None) or [])
            ]
            content = reply.content or ""
        except (AttributeError, IndexError, TypeError) as e:
            raise ProviderError(self.name, f"Malformed completion response: {e}") from e

        usage = getattr(response, "usage", None)
        if usage:
            logger.debug(f"{self.model} used {getattr(usage, 'total_tokens', 0)} tokens")

        return Message.assistant(content, tool_calls)


class OpenAIProvider(LiteLLMProvider):
    """OpenAI chat completions."""

    DEFAULT_MODEL = "gpt-4o"

    @property
    def name(self) -> str:
        return "openai"

    @property
    def api_key(self) -> str | None:
        return self.settings.openai_api_key


class AnthropicProvider(LiteLLMProvider):
    """Anthropic messages API."""

    DEFAULT_MODEL = "anthropic/claude-3-5-sonnet-20240620"

    def __init__(self, settings: Settings, model: str | None = None):
        super().__init__(settings, model)
        if not self.model.startswith("anthropic/"):
            self.model = f"anthropic/{self.model}"

    @property
    def name(self) -> str:
        return "anthropic"

    @property
    def api_key(self) -> str | None:
        return self.settings.anthropic_api_key
