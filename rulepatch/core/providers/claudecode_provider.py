"""Claude Code CLI provider."""

from __future__ import annotations

from rulepatch.core.providers.cli_provider_base import CLIProviderBase


class ClaudeCodeProvider(CLIProviderBase):
    """Provider using the Claude Code CLI in print mode."""

    @property
    def name(self) -> str:
        """Return the provider name."""
        return "claudecode"

    @property
    def cli_command(self) -> str:
        return "claude"

    @property
    def install_hint(self) -> str:
        return "npm install -g @anthropic-ai/claude-code"

    def cli_args(self) -> list[str]:
        args = ["--print"]
        if self.model:
            args.extend(["--model", self.model])
        return args
