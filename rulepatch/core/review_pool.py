"""Concurrent review pipeline: a bounded pool of workers draining a file queue.

Each job moves through: metadata lookup, rule matching, file read, provider
call, reply classification and, for a rewrite, patch persistence. Every job
ends in exactly one of WRITTEN, SKIPPED or FAILED. A failure in one job is
logged and recorded; it never stops the other workers.
"""

from __future__ import annotations

import queue
import threading
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path, PurePath
from typing import Callable, Iterable, Iterator

from rulepatch.core.prompt_builder import ERROR_SENTINEL, SKIP_SENTINEL, build_review_messages
from rulepatch.core.providers.base import Message, Provider
from rulepatch.core.rule_set import RuleSet
from rulepatch.core.tools import FunctionProcessor, converse
from rulepatch.errors import MetadataError, ProviderError, StorageError, WriteError
from rulepatch.utils.config import Settings
from rulepatch.utils.file_ops import ensure_directory, ensure_ignore_entry, read_file, write_file
from rulepatch.utils.git import get_file_commit, get_file_stage
from rulepatch.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_WORKERS = 10
PATCH_SUFFIX = ".patch"

MetadataLookup = Callable[..., str]

# Queue marker telling a worker to exit
_STOP = object()


class ReviewStatus(str, Enum):
    """Terminal state of a review job."""

    WRITTEN = "written"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class Classification:
    """What a provider reply means for the job."""

    status: ReviewStatus
    content: str = ""


def classify_reply(content: str) -> Classification:
    """
    Classify a provider reply.

    The trimmed reply must equal a sentinel exactly; a reply that merely
    contains one is treated as patch content like any other text.

    Args:
        content: Raw reply content

    Returns:
        SKIPPED or FAILED for the sentinels, otherwise WRITTEN with the reply
        as the patch body
    """
    trimmed = content.strip()
    if trimmed == SKIP_SENTINEL:
        return Classification(ReviewStatus.SKIPPED)
    if trimmed == ERROR_SENTINEL:
        return Classification(ReviewStatus.FAILED, "model reported an error")
    return Classification(ReviewStatus.WRITTEN, content)


@dataclass
class ReviewResult:
    """Outcome of one file's review."""

    file_path: str
    status: ReviewStatus
    patch_path: Path | None = None
    error: str | None = None
    worker_id: int | None = None


@dataclass
class ReviewSummary:
    """Aggregate outcome of a run. Unpacks as (written, skipped, failed)."""

    results: list[ReviewResult] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def add(self, result: ReviewResult) -> None:
        with self._lock:
            self.results.append(result)

    def _count(self, status: ReviewStatus) -> int:
        return sum(1 for result in self.results if result.status is status)

    @property
    def written(self) -> int:
        return self._count(ReviewStatus.WRITTEN)

    @property
    def skipped(self) -> int:
        return self._count(ReviewStatus.SKIPPED)

    @property
    def failed(self) -> int:
        return self._count(ReviewStatus.FAILED)

    @property
    def total(self) -> int:
        return len(self.results)

    def as_tuple(self) -> tuple[int, int, int]:
        return self.written, self.skipped, self.failed

    def __iter__(self) -> Iterator[int]:
        return iter(self.as_tuple())


def patch_path_for(patch_dir: Path | str, file_path: str) -> Path:
    """
    Deterministic patch location: ``<patch_dir>/<file_path>.patch``.

    An absolute file path is stored under the patch directory without its
    anchor.

    Raises:
        WriteError: If the resulting path would fall outside patch_dir
    """
    source = PurePath(file_path)
    if source.anchor:
        source = source.relative_to(source.anchor)

    patch_dir = Path(patch_dir)
    path = patch_dir / f"{source}{PATCH_SUFFIX}"
    if not path.resolve().is_relative_to(patch_dir.resolve()):
        raise WriteError(path, "Patch path escapes the patch directory")
    return path


class ReviewPool:
    """Fixed-size pool of review workers sharing one job queue."""

    def __init__(
        self,
        rule_set: RuleSet,
        provider: Provider,
        root: Path | str = ".",
        patch_dir: str = ".rulepatch/patches",
        worker_count: int = DEFAULT_WORKERS,
        vcs_ignore_file: str | None = ".gitignore",
        system_prompt: str | None = None,
        enable_tools: bool = False,
        max_tool_rounds: int = 8,
        commit_lookup: MetadataLookup = get_file_commit,
        stage_lookup: MetadataLookup = get_file_stage,
    ):
        """
        Initialize the pool.

        Args:
            rule_set: Rules matched against every file
            provider: Backend answering every review
            root: Project root; file paths are relative to it
            patch_dir: Patch directory relative to root
            worker_count: Number of concurrent workers
            vcs_ignore_file: Ignore file receiving the patch directory entry
                (relative to root; None to leave it alone)
            system_prompt: Replacement for the default review preamble
            enable_tools: Let the model call load_file/download_file
            max_tool_rounds: Tool-calling rounds allowed per file
            commit_lookup: Returns the latest commit for a path
            stage_lookup: Returns the index stage line for a path
        """
        if worker_count < 1:
            raise ValueError(f"worker_count must be at least 1, got {worker_count}")

        self.rule_set = rule_set
        self.provider = provider
        self.root = Path(root)
        self.patch_dir = patch_dir
        self.worker_count = worker_count
        self.vcs_ignore_file = vcs_ignore_file
        self.system_prompt = system_prompt
        self.enable_tools = enable_tools
        self.max_tool_rounds = max_tool_rounds
        self.commit_lookup = commit_lookup
        self.stage_lookup = stage_lookup

        self._prepare_lock = threading.Lock()
        self._prepared = False

    @classmethod
    def from_settings(
        cls,
        rule_set: RuleSet,
        provider: Provider,
        settings: Settings,
        root: Path | str = ".",
    ) -> "ReviewPool":
        """Build a pool configured from application settings."""
        return cls(
            rule_set,
            provider,
            root=root,
            patch_dir=settings.patch_dir,
            worker_count=settings.workers,
            vcs_ignore_file=settings.vcs_ignore_file,
            system_prompt=settings.system_prompt,
            enable_tools=settings.enable_tools,
            max_tool_rounds=settings.max_tool_rounds,
        )

    @property
    def patch_root(self) -> Path:
        return self.root / self.patch_dir

    def prepare_patch_dir(self) -> None:
        """
        Create the patch directory and exclude it from version control.

        Runs at most once per pool, serialized across workers. Failures leave
        the pool unprepared so a later job tries again.

        Raises:
            WriteError: If the directory or ignore file cannot be written
        """
        with self._prepare_lock:
            if self._prepared:
                return
            ensure_directory(self.patch_root)
            if self.vcs_ignore_file:
                entry = f"{self.patch_dir.strip('/')}/"
                ensure_ignore_entry(self.root / self.vcs_ignore_file, entry)
            self._prepared = True

    def write_patch(self, file_path: str, content: str) -> Path:
        """
        Persist a patch, replacing any earlier patch for the same file.

        Raises:
            WriteError: If the patch cannot be written
        """
        path = patch_path_for(self.patch_root, file_path)
        self.prepare_patch_dir()
        write_file(path, content)
        return path

    def _metadata(self, lookup: MetadataLookup, label: str, file_path: str, worker_id: int) -> str:
        try:
            return lookup(file_path, cwd=self.root)
        except MetadataError as e:
            logger.warning(f"[worker {worker_id}] {file_path}: no {label} metadata ({e})")
            return ""

    def _ask_provider(self, messages: list[Message]) -> Message:
        if self.enable_tools and self.provider.supports_tools:
            processor = FunctionProcessor(self.root)
            return converse(self.provider, messages, processor, self.max_tool_rounds)
        return self.provider.chat_completion(messages)

    def review_file(self, file_path: str, worker_id: int = 0) -> ReviewResult:
        """
        Run one job to a terminal state.

        Read, provider and write errors (and anything unexpected) become a
        FAILED result instead of propagating.
        """
        try:
            return self._review(file_path, worker_id)
        except (StorageError, ProviderError) as e:
            logger.error(f"[worker {worker_id}] {file_path}: {e}")
            return ReviewResult(file_path, ReviewStatus.FAILED, error=str(e), worker_id=worker_id)
        except Exception as e:
            logger.exception(f"[worker {worker_id}] {file_path}: unexpected error")
            return ReviewResult(file_path, ReviewStatus.FAILED, error=repr(e), worker_id=worker_id)

    def _review(self, file_path: str, worker_id: int) -> ReviewResult:
        rules = self.rule_set.match(file_path)
        if not rules:
            logger.info(f"[worker {worker_id}] {file_path}: no matching rules")
            return ReviewResult(file_path, ReviewStatus.SKIPPED, worker_id=worker_id)
        logger.debug(f"[worker {worker_id}] {file_path}: {len(rules)} matching rule(s)")

        commit = self._metadata(self.commit_lookup, "commit", file_path, worker_id)
        stage = self._metadata(self.stage_lookup, "stage", file_path, worker_id)

        content = read_file(self.root / file_path)
        messages = build_review_messages(
            file_path,
            content,
            rules,
            commit=commit,
            stage=stage,
            system_prompt=self.system_prompt,
        )

        reply = self._ask_provider(messages)
        classification = classify_reply(reply.content)

        if classification.status is ReviewStatus.SKIPPED:
            logger.info(f"[worker {worker_id}] {file_path}: no changes needed")
            return ReviewResult(file_path, ReviewStatus.SKIPPED, worker_id=worker_id)

        if classification.status is ReviewStatus.FAILED:
            logger.warning(f"[worker {worker_id}] {file_path}: {classification.content}")
            return ReviewResult(
                file_path, ReviewStatus.FAILED, error=classification.content, worker_id=worker_id
            )

        patch_path = self.write_patch(file_path, classification.content)
        logger.info(f"[worker {worker_id}] {file_path}: patch written to {patch_path}")
        return ReviewResult(file_path, ReviewStatus.WRITTEN, patch_path=patch_path, worker_id=worker_id)

    def _worker(self, worker_id: int, jobs: "queue.Queue[object]", summary: ReviewSummary) -> None:
        while True:
            item = jobs.get()
            try:
                if item is _STOP:
                    return
                summary.add(self.review_file(str(item), worker_id))
            finally:
                jobs.task_done()

    def run(self, file_paths: Iterable[str]) -> ReviewSummary:
        """
        Review every file and block until all workers have exited.

        Args:
            file_paths: Repository-relative paths, one job each

        Returns:
            The summary of all jobs
        """
        files = list(file_paths)
        summary = ReviewSummary()
        if not files:
            logger.info("No files to review")
            return summary

        worker_count = min(self.worker_count, len(files))

        # Sized so seeding never blocks
        jobs: queue.Queue[object] = queue.Queue(maxsize=len(files) + worker_count)
        for file_path in files:
            jobs.put(file_path)
        for _ in range(worker_count):
            jobs.put(_STOP)

        logger.info(f"Reviewing {len(files)} file(s) with {worker_count} worker(s) using {self.provider.name}")

        workers = [
            threading.Thread(
                target=self._worker,
                args=(worker_id, jobs, summary),
                name=f"review-worker-{worker_id}",
                daemon=True,
            )
            for worker_id in range(worker_count)
        ]
        for worker in workers:
            worker.start()
        for worker in workers:
            worker.join()

        logger.info(
            f"Review finished: {summary.written} written, "
            f"{summary.skipped} skipped, {summary.failed} failed"
        )
        return summary


def run_review(
    file_paths: Iterable[str],
    rule_set: RuleSet,
    provider: Provider,
    worker_count: int = DEFAULT_WORKERS,
    **pool_options: object,
) -> ReviewSummary:
    """
    Review files concurrently and report aggregate counts.

    Args:
        file_paths: Repository-relative paths to review
        rule_set: Rules to match against each file
        provider: Language-model backend
        worker_count: Number of concurrent workers
        **pool_options: Further ReviewPool arguments (root, patch_dir, ...)

    Returns:
        ReviewSummary; ``written, skipped, failed = run_review(...)`` works
    """
    pool = ReviewPool(rule_set, provider, worker_count=worker_count, **pool_options)  # type: ignore[arg-type]
    return pool.run(file_paths)
