"""Base class for providers that shell out to a vendor CLI."""

from __future__ import annotations

import shutil
import subprocess
from abc import abstractmethod
from typing import Any

from rulepatch.core.providers.base import Message, Provider
from rulepatch.errors import ProviderError
from rulepatch.utils.config import Settings
from rulepatch.utils.logger import get_logger

logger = get_logger(__name__)


class CLIProviderBase(Provider):
    """Base class for CLI-based providers (claude, codex).

    The conversation is flattened into one prompt on stdin and the CLI's
    stdout is the reply. Tool definitions are ignored.
    """

    def __init__(self, settings: Settings, model: str | None = None):
        self.settings = settings
        self.model = model
        self.timeout = settings.request_timeout

    @property
    @abstractmethod
    def cli_command(self) -> str:
        """Return the CLI command name."""
        ...

    @property
    @abstractmethod
    def install_hint(self) -> str:
        """Return installation instructions."""
        ...

    def cli_args(self) -> list[str]:
        """Arguments passed after the command name."""
        return []

    def is_available(self) -> bool:
        """Check if CLI tool is installed."""
        return shutil.which(self.cli_command) is not None

    @staticmethod
    def render_transcript(messages: list[Message]) -> str:
        """Flatten a conversation into a single prompt."""
        sections = []
        for message in messages:
            if message.role.value == "system":
                sections.append(message.content)
            else:
                sections.append(f"[{message.role.value}]\n{message.content}")
        return "\n\n".join(sections)

    def chat_completion(
        self,
        messages: list[Message],
        tools: list[dict[str, Any]] | None = None,
    ) -> Message:
        """Run the CLI with the flattened conversation and return its output."""
        if not self.is_available():
            raise ProviderError(
                self.name,
                f"{self.cli_command} CLI not found. Install with: {self.install_hint}",
            )

        if tools:
            logger.debug(f"{self.name} does not support tools; ignoring {len(tools)} definition(s)")

        cmd = [self.cli_command, *self.cli_args()]
        logger.debug(f"Running {' '.join(cmd)}")

        try:
            result = subprocess.run(
                cmd,
                input=self.render_transcript(messages),
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise ProviderError(self.name, f"CLI timeout after {self.timeout} seconds") from e
        except OSError as e:
            raise ProviderError(self.name, f"Failed to run {self.cli_command}: {e}") from e

        if result.returncode != 0:
            error_msg = result.stderr.strip() if result.stderr else f"Exit code: {result.returncode}"
            raise ProviderError(self.name, f"CLI error: {error_msg}")

        return Message.assistant(result.stdout.strip())
