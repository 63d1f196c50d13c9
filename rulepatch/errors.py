"""Exception hierarchy for rulepatch."""

from __future__ import annotations

from pathlib import Path


class RulePatchError(Exception):
    """Base application error."""


class RuleParseError(RulePatchError):
    """A rule document could not be parsed."""

    def __init__(self, message: str, source_path: str | None = None) -> None:
        self.message = message
        self.source_path = source_path
        if source_path:
            message = f"{message} ({source_path})"
        super().__init__(message)


class MalformedFrontmatterError(RuleParseError):
    """The frontmatter block is missing or not properly delimited."""


class InvalidGlobError(RuleParseError):
    """A glob pattern could not be compiled."""

    def __init__(self, pattern: str, detail: str, source_path: str | None = None) -> None:
        self.pattern = pattern
        self.detail = detail
        super().__init__(f"Invalid glob pattern '{pattern}': {detail}", source_path)


class RuleValidationError(RulePatchError):
    """A parsed rule document is incomplete."""

    def __init__(self, path: str, problems: list[str]) -> None:
        self.path = path
        self.problems = problems
        super().__init__(f"Validation failed for {path}: {', '.join(problems)}")


class DiscoveryError(RulePatchError):
    """Project files or rule documents could not be enumerated."""


class MetadataError(RulePatchError):
    """Version-control metadata could not be retrieved."""


class StorageError(RulePatchError):
    def __init__(self, path: Path | str, message: str) -> None:
        self.path = Path(path)
        self.message = message
        super().__init__(f"{message}: {path}")


class ReadError(StorageError):
    """A file could not be read."""


class WriteError(StorageError):
    """A file could not be written."""


class ProviderError(RulePatchError):
    """A language-model provider call failed."""

    def __init__(self, provider: str, message: str) -> None:
        self.provider = provider
        self.message = message
        super().__init__(f"[{provider}] {message}")


class ToolError(RulePatchError):
    """A tool call requested by the model could not be executed."""
