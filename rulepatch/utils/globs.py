"""Shell-style glob compilation for rule applicability.

Supported syntax:

- ``*`` any run of characters except ``/``
- ``**`` any run of characters including ``/``; ``**/`` also matches no
  directory at all, so ``**/*.ts`` matches ``main.ts``
- ``?`` one character except ``/``
- ``[abc]``, ``[a-z]``, ``[!abc]`` / ``[^abc]`` character classes, never
  matching ``/``
- ``{a,b}`` alternation, which may nest and contain wildcards
- ``\\x`` a literal ``x``

Patterns are anchored at both ends and applied to the path exactly as given.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from rulepatch.errors import InvalidGlobError

# Characters with a meaning inside a regex character class
_CLASS_SPECIALS = frozenset("\\[]^&~|")


@dataclass(frozen=True)
class GlobPattern:
    """A compiled glob. Compares equal by its source text."""

    pattern: str
    regex: re.Pattern[str] = field(compare=False, repr=False)

    def match(self, path: str) -> bool:
        """Check whether the whole path matches this glob."""
        return self.regex.fullmatch(path) is not None

    def __str__(self) -> str:
        return self.pattern


def _translate_class(pattern: str, start: int) -> tuple[str, int]:
    """Translate the ``[...]`` class opening at ``start``; return (regex, next index)."""
    n = len(pattern)
    i = start + 1
    negate = False
    if i < n and pattern[i] in "!^":
        negate = True
        i += 1

    body_start = i
    # A ']' directly after the opening bracket is literal
    if i < n and pattern[i] == "]":
        i += 1
    while i < n and pattern[i] != "]":
        i += 1
    if i >= n:
        raise InvalidGlobError(pattern, "unterminated character class")

    body = pattern[body_start:i]
    if not body:
        raise InvalidGlobError(pattern, "empty character class")

    escaped = "".join(f"\\{ch}" if ch in _CLASS_SPECIALS else ch for ch in body)
    # Classes never match the path separator
    if negate:
        return f"[^/{escaped}]", i + 1
    return f"(?:(?!/)[{escaped}])", i + 1


def translate(pattern: str) -> str:
    """
    Translate a glob into an (unanchored) regular expression.

    Args:
        pattern: Glob source text

    Returns:
        Regular expression source

    Raises:
        InvalidGlobError: If the pattern is empty or malformed
    """
    if not pattern:
        raise InvalidGlobError(pattern, "empty pattern")

    out: list[str] = []
    depth = 0
    i, n = 0, len(pattern)

    while i < n:
        ch = pattern[i]
        if ch == "*":
            j = i
            while j < n and pattern[j] == "*":
                j += 1
            if j - i == 1:
                out.append("[^/]*")
                i = j
            elif j < n and pattern[j] == "/":
                out.append("(?:.*/)?")
                i = j + 1
            else:
                out.append(".*")
                i = j
        elif ch == "?":
            out.append("[^/]")
            i += 1
        elif ch == "[":
            regex, i = _translate_class(pattern, i)
            out.append(regex)
        elif ch == "{":
            depth += 1
            out.append("(?:")
            i += 1
        elif ch == "}":
            if depth == 0:
                raise InvalidGlobError(pattern, "unmatched '}'")
            depth -= 1
            out.append(")")
            i += 1
        elif ch == "," and depth > 0:
            out.append("|")
            i += 1
        elif ch == "\\":
            if i + 1 >= n:
                raise InvalidGlobError(pattern, "trailing escape character")
            out.append(re.escape(pattern[i + 1]))
            i += 2
        else:
            out.append(re.escape(ch))
            i += 1

    if depth:
        raise InvalidGlobError(pattern, "unterminated '{' alternation")

    return "".join(out)


def compile_glob(pattern: str) -> GlobPattern:
    """
    Compile a glob pattern.

    Raises:
        InvalidGlobError: If the pattern is malformed
    """
    source = translate(pattern)
    try:
        regex = re.compile(source, re.DOTALL)
    except re.error as e:
        raise InvalidGlobError(pattern, str(e)) from e
    return GlobPattern(pattern=pattern, regex=regex)


def split_globs(value: str) -> list[str]:
    """Split a comma-separated glob list, honoring commas inside ``{...}``."""
    patterns: list[str] = []
    current: list[str] = []
    depth = 0
    escaped = False

    for ch in value:
        if escaped:
            current.append(ch)
            escaped = False
            continue
        if ch == "\\":
            current.append(ch)
            escaped = True
            continue
        if ch == "{":
            depth += 1
        elif ch == "}" and depth > 0:
            depth -= 1
        elif ch == "," and depth == 0:
            patterns.append("".join(current))
            current = []
            continue
        current.append(ch)

    patterns.append("".join(current))
    return [p.strip() for p in patterns if p.strip()]
