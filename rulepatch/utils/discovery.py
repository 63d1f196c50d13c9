"""File and rule discovery for review runs."""

from __future__ import annotations

import os
from pathlib import Path, PurePosixPath
from typing import Iterable

from rich.markup import escape
from rich.tree import Tree

from rulepatch.errors import DiscoveryError, InvalidGlobError
from rulepatch.utils.globs import GlobPattern, compile_glob
from rulepatch.utils.logger import get_logger

logger = get_logger(__name__)

# Always skipped, in addition to the ignore file
DEFAULT_IGNORES = [".git/"]


class IgnoreMatcher:
    """Decides whether a repository-relative path is excluded from review.

    Each entry excludes a path when it matches the path as a glob, matches the
    file name (for entries without a ``/``), or names a leading directory of
    the path.
    """

    def __init__(self, entries: Iterable[str]):
        self.entries: list[str] = []
        self._globs: list[GlobPattern] = []
        self._prefixes: list[str] = []

        for entry in entries:
            entry = entry.strip()
            if not entry or entry.startswith("#"):
                continue
            self.entries.append(entry)
            prefix = entry.rstrip("/")
            if prefix:
                self._prefixes.append(prefix)
            try:
                self._globs.append(compile_glob(prefix or entry))
            except InvalidGlobError as e:
                raise DiscoveryError(f"Invalid ignore pattern '{entry}': {e.detail}") from e

    @classmethod
    def from_file(cls, path: Path, extra: Iterable[str] = ()) -> "IgnoreMatcher":
        """Load entries from an ignore file (missing file means no entries)."""
        lines: list[str] = []
        if path.exists():
            try:
                lines = path.read_text(encoding="utf-8").splitlines()
            except (OSError, UnicodeDecodeError) as e:
                raise DiscoveryError(f"Cannot read ignore file {path}: {e}") from e
            logger.info(f"Loaded ignore file {path}")
        return cls([*lines, *extra])

    def is_ignored(self, rel_path: str) -> bool:
        """Check a POSIX-style relative path against every entry."""
        name = PurePosixPath(rel_path).name
        for prefix in self._prefixes:
            if rel_path == prefix or rel_path.startswith(f"{prefix}/"):
                return True
        for glob in self._globs:
            if glob.match(rel_path):
                return True
            if "/" not in glob.pattern and glob.match(name):
                return True
        return False


def discover_files(
    root: Path | str,
    ignore_file: str | None = ".rulepatchignore",
    extra_ignores: Iterable[str] = (),
) -> list[str]:
    """
    List the repository-relative files to review.

    Args:
        root: Project root directory
        ignore_file: Ignore file name relative to root (None to skip)
        extra_ignores: Additional entries, e.g. the rules and patch directories

    Returns:
        Sorted POSIX-style paths relative to root

    Raises:
        DiscoveryError: If the root cannot be walked or an ignore entry is invalid
    """
    root = Path(root)
    if not root.is_dir():
        raise DiscoveryError(f"Project root is not a directory: {root}")

    entries = [*DEFAULT_IGNORES, *extra_ignores]
    if ignore_file:
        matcher = IgnoreMatcher.from_file(root / ignore_file, entries)
    else:
        matcher = IgnoreMatcher(entries)

    def on_error(error: OSError) -> None:
        raise DiscoveryError(f"Failed to walk {error.filename}: {error.strerror}") from error

    files: list[str] = []
    for dirpath, dirnames, filenames in os.walk(root, onerror=on_error):
        rel_dir = Path(dirpath).relative_to(root).as_posix()
        rel_dir = "" if rel_dir == "." else f"{rel_dir}/"

        # Prune ignored directories before descending
        dirnames[:] = sorted(d for d in dirnames if not matcher.is_ignored(f"{rel_dir}{d}"))

        for filename in filenames:
            rel_path = f"{rel_dir}{filename}"
            if not matcher.is_ignored(rel_path):
                files.append(rel_path)

    files.sort()
    logger.info(f"Discovered {len(files)} file(s) under {root}")
    logger.debug(f"Ignore entries: {', '.join(matcher.entries)}")
    return files


def discover_rules(rules_dir: Path | str) -> list[str]:
    """
    List every rule document under the rules directory.

    Returns:
        Sorted POSIX-style paths relative to rules_dir

    Raises:
        DiscoveryError: If the rules directory does not exist
    """
    rules_dir = Path(rules_dir)
    if not rules_dir.is_dir():
        raise DiscoveryError(f"Rules directory not found: {rules_dir}")

    rules = sorted(
        path.relative_to(rules_dir).as_posix()
        for path in rules_dir.rglob("*")
        if path.is_file() and not path.name.startswith(".")
    )
    logger.info(f"Found {len(rules)} rule document(s) in {rules_dir}")
    return rules


def build_file_tree(paths: Iterable[str], label: str = ".") -> Tree:
    """Render relative file paths as a rich Tree."""
    tree = Tree(f"[bold]{escape(label)}[/bold]")
    nodes: dict[str, Tree] = {"": tree}

    for path in sorted(paths):
        parts = path.split("/")
        parent_key = ""
        for depth, part in enumerate(parts):
            key = "/".join(parts[: depth + 1])
            if key not in nodes:
                is_file = depth == len(parts) - 1
                text = escape(part) if is_file else f"[blue]{escape(part)}/[/blue]"
                nodes[key] = nodes[parent_key].add(text)
            parent_key = key

    return tree
