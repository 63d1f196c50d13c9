"""Rule documents: markdown with a flat frontmatter block.

A rule document looks like::

    ---
    description: Go formatting conventions
    globs: *.go, cmd/**/*.go
    alwaysApply: false
    ---
    Body handed verbatim to the model.

Only the first two ``---`` lines are structural; later ones belong to the body.
Unrecognized frontmatter keys are ignored on parse and dropped on serialize.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from rulepatch.errors import InvalidGlobError, MalformedFrontmatterError, RuleValidationError
from rulepatch.utils.file_ops import read_bytes
from rulepatch.utils.globs import GlobPattern, compile_glob, split_globs
from rulepatch.utils.logger import get_logger

logger = get_logger(__name__)

DELIMITER = "---"

KEY_DESCRIPTION = "description"
KEY_GLOBS = "globs"
KEY_ALWAYS_APPLY = "alwaysApply"


@dataclass(frozen=True)
class RuleDocument:
    """A parsed rule document."""

    path: str
    description: str = ""
    patterns: tuple[GlobPattern, ...] = field(default_factory=tuple)
    always_apply: bool = False
    body: str = ""

    @property
    def globs(self) -> list[str]:
        """Source text of each pattern, in declaration order."""
        return [p.pattern for p in self.patterns]

    def matches(self, file_path: str) -> bool:
        """Check whether this rule covers the given file path."""
        if self.always_apply:
            return True
        return any(p.match(file_path) for p in self.patterns)

    def problems(self) -> list[str]:
        """Return the reasons this document is incomplete (empty if valid)."""
        problems = []
        if not self.description:
            problems.append("description is required")
        if not self.patterns and not self.always_apply:
            problems.append("at least one glob pattern is required unless alwaysApply is true")
        return problems

    def validate(self) -> None:
        """
        Check the document has everything needed to be useful.

        Raises:
            RuleValidationError: If the description is missing, or the rule
                has no patterns and is not always applied
        """
        problems = self.problems()
        if problems:
            raise RuleValidationError(self.path, problems)


def _is_delimiter(line: str) -> bool:
    return line.rstrip() == DELIMITER


def parse_frontmatter(lines: list[str]) -> dict[str, str]:
    """Parse flat ``key: value`` lines; quotes around values are stripped."""
    result: dict[str, str] = {}
    for line in lines:
        line = line.strip()
        if not line:
            continue

        key, sep, value = line.partition(":")
        if not sep:
            continue

        result[key.strip()] = value.strip().strip("\"'")
    return result


def parse_rule(raw: bytes | str, source_path: str) -> RuleDocument:
    """
    Parse a rule document.

    Args:
        raw: Document contents
        source_path: Identifier of the document, stored as ``RuleDocument.path``

    Returns:
        The parsed RuleDocument (not validated)

    Raises:
        MalformedFrontmatterError: If the document does not start with a
            ``---`` line or has no closing ``---`` line
        InvalidGlobError: If any glob in ``globs`` is malformed
    """
    if isinstance(raw, bytes):
        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedFrontmatterError(f"Document is not valid UTF-8 ({e})", source_path) from e
    else:
        text = raw

    lines = text.splitlines(keepends=True)
    if not lines or not _is_delimiter(lines[0]):
        raise MalformedFrontmatterError("Missing opening frontmatter delimiter", source_path)

    closing = next((i for i in range(1, len(lines)) if _is_delimiter(lines[i])), None)
    if closing is None:
        raise MalformedFrontmatterError("Missing closing frontmatter delimiter", source_path)

    frontmatter = parse_frontmatter(lines[1:closing])

    patterns: list[GlobPattern] = []
    for pattern in split_globs(frontmatter.get(KEY_GLOBS, "")):
        try:
            patterns.append(compile_glob(pattern))
        except InvalidGlobError as e:
            raise InvalidGlobError(e.pattern, e.detail, source_path) from e

    document = RuleDocument(
        path=source_path,
        description=frontmatter.get(KEY_DESCRIPTION, ""),
        patterns=tuple(patterns),
        always_apply=frontmatter.get(KEY_ALWAYS_APPLY, "").lower() == "true",
        body="".join(lines[closing + 1 :]),
    )
    logger.debug(f"Parsed rule {source_path}: {len(patterns)} glob(s), alwaysApply={document.always_apply}")
    return document


def serialize_rule(document: RuleDocument) -> str:
    """Render a RuleDocument back into its on-disk form."""
    parts = [f"{DELIMITER}\n"]
    if document.description:
        parts.append(f"{KEY_DESCRIPTION}: {document.description}\n")
    if document.patterns:
        parts.append(f"{KEY_GLOBS}: {', '.join(document.globs)}\n")
    if document.always_apply:
        parts.append(f"{KEY_ALWAYS_APPLY}: true\n")
    parts.append(f"{DELIMITER}\n")
    parts.append(document.body)
    return "".join(parts)


def load_rule(path: Path | str, source_path: str | None = None) -> RuleDocument:
    """
    Read and parse a rule document from disk.

    Raises:
        ReadError: If the file cannot be read
        RuleParseError: If the contents cannot be parsed
    """
    return parse_rule(read_bytes(path), source_path or str(path))
