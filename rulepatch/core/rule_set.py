"""Rule set: the immutable collection of rule documents for a run."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Iterator

from rulepatch.core.rule_document import RuleDocument, load_rule
from rulepatch.utils.discovery import discover_rules
from rulepatch.utils.logger import get_logger

logger = get_logger(__name__)


class RuleSet:
    """Ordered, immutable collection of rule documents.

    Insertion order is the rule directory scan order and is preserved by
    ``match``. Matching is pure: it never touches the filesystem and never
    normalizes the path it is given.
    """

    def __init__(self, documents: Iterable[RuleDocument] = ()):
        self._documents: tuple[RuleDocument, ...] = tuple(documents)

    @classmethod
    def build(
        cls,
        document_paths: Iterable[str],
        rules_dir: Path | str | None = None,
    ) -> "RuleSet":
        """
        Read and parse every rule document.

        Construction is fail-fast: the first read or parse error propagates
        and no partial RuleSet is returned.

        Args:
            document_paths: Rule document paths, relative to rules_dir if given;
                each path as given becomes the document identifier
            rules_dir: Directory the paths are relative to

        Returns:
            The RuleSet, in the order the paths were given

        Raises:
            ReadError: If a document cannot be read
            RuleParseError: If a document cannot be parsed
        """
        base = Path(rules_dir) if rules_dir is not None else None
        documents = []
        for rel_path in document_paths:
            path = base / rel_path if base is not None else Path(rel_path)
            document = load_rule(path, source_path=Path(rel_path).as_posix())
            documents.append(document)
            logger.debug(f"Loaded rule: {document.path}")

        logger.info(f"Loaded {len(documents)} rule(s)")
        return cls(documents)

    @classmethod
    def from_directory(cls, rules_dir: Path | str) -> "RuleSet":
        """Discover and load every rule document under a directory.

        Raises:
            DiscoveryError: If the directory does not exist
            RuleParseError: If a document cannot be parsed
        """
        return cls.build(discover_rules(rules_dir), rules_dir=rules_dir)

    @property
    def documents(self) -> tuple[RuleDocument, ...]:
        """All documents, in insertion order."""
        return self._documents

    def __len__(self) -> int:
        return len(self._documents)

    def __iter__(self) -> Iterator[RuleDocument]:
        return iter(self._documents)

    def match(self, file_path: str) -> list[RuleDocument]:
        """
        Get the rules that apply to a file.

        A document is included once if it is always applied or any of its
        patterns matches, no matter how many patterns match.

        Args:
            file_path: Path exactly as the caller wants it matched

        Returns:
            Matching documents in insertion order
        """
        return [doc for doc in self._documents if doc.matches(file_path)]

    def validate(self) -> dict[str, list[str]]:
        """
        Collect validation problems for every document.

        Returns:
            Mapping of document path to its problems; valid documents are omitted
        """
        return {doc.path: doc.problems() for doc in self._documents if doc.problems()}
