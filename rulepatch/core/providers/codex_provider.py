"""OpenAI Codex CLI provider."""

from __future__ import annotations

from rulepatch.core.providers.cli_provider_base import CLIProviderBase


class CodexProvider(CLIProviderBase):
    """Provider using the Codex CLI non-interactively."""

    @property
    def name(self) -> str:
        """Return the provider name."""
        return "codex"

    @property
    def cli_command(self) -> str:
        return "codex"

    @property
    def install_hint(self) -> str:
        return "npm install -g @openai/codex"

    def cli_args(self) -> list[str]:
        args = ["exec"]
        if self.model:
            args.extend(["--model", self.model])
        # Read the prompt from stdin
        args.append("-")
        return args
