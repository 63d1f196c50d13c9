"""Unit tests for the concurrent review pool."""

from __future__ import annotations

import threading
from collections import Counter
from pathlib import Path
from typing import Any, Callable

import pytest

from rulepatch.core.prompt_builder import ERROR_SENTINEL, SKIP_SENTINEL
from rulepatch.core.providers.base import Message
from rulepatch.core.review_pool import (
    ReviewPool,
    ReviewResult,
    ReviewStatus,
    ReviewSummary,
    classify_reply,
    patch_path_for,
    run_review,
)
from rulepatch.core.rule_document import RuleDocument
from rulepatch.core.rule_set import RuleSet
from rulepatch.errors import MetadataError, WriteError
from rulepatch.utils.config import Settings
from rulepatch.utils.globs import compile_glob


def no_metadata(file_path: str, cwd: Path | None = None) -> str:
    raise MetadataError("not a git repository")


def fixed(value: str) -> Callable[..., str]:
    def lookup(file_path: str, cwd: Path | None = None) -> str:
        return f"{value}:{file_path}"

    return lookup


@pytest.fixture
def go_rules() -> RuleSet:
    return RuleSet(
        [RuleDocument(path="go.mdc", description="Go style", patterns=(compile_glob("*.go"),), body="gofmt")]
    )


@pytest.fixture
def all_rules() -> RuleSet:
    return RuleSet([RuleDocument(path="all.mdc", description="Everything", always_apply=True)])


def make_pool(root: Path, rule_set: RuleSet, provider: Any, **kwargs: Any) -> ReviewPool:
    kwargs.setdefault("commit_lookup", no_metadata)
    kwargs.setdefault("stage_lookup", no_metadata)
    return ReviewPool(rule_set, provider, root=root, **kwargs)


class TestClassifyReply:
    """Tests for classify_reply."""

    def test_skip_sentinel(self) -> None:
        """Test the no-change sentinel, including surrounding whitespace."""
        assert classify_reply(SKIP_SENTINEL).status is ReviewStatus.SKIPPED
        assert classify_reply(f"  {SKIP_SENTINEL}\n").status is ReviewStatus.SKIPPED

    def test_error_sentinel(self) -> None:
        """Test the model-error sentinel."""
        result = classify_reply(f"\n{ERROR_SENTINEL}\n")

        assert result.status is ReviewStatus.FAILED
        assert result.content

    def test_sentinel_inside_text_is_content(self) -> None:
        """Test that a reply merely containing a sentinel is patch content."""
        reply = f"Here you go: {SKIP_SENTINEL}"
        result = classify_reply(reply)

        assert result.status is ReviewStatus.WRITTEN
        assert result.content == reply

    def test_content_kept_untrimmed(self) -> None:
        """Test that patch content is stored exactly as received."""
        assert classify_reply("package main\n").content == "package main\n"


class TestSummary:
    """Tests for ReviewSummary."""

    def test_unpacks_as_counts(self) -> None:
        """Test tuple-style unpacking."""
        summary = ReviewSummary()
        summary.add(ReviewResult("a", ReviewStatus.WRITTEN))
        summary.add(ReviewResult("b", ReviewStatus.SKIPPED))
        summary.add(ReviewResult("c", ReviewStatus.SKIPPED))

        written, skipped, failed = summary
        assert (written, skipped, failed) == (1, 2, 0)
        assert summary.total == 3


class TestPatchPathFor:
    """Tests for patch_path_for."""

    def test_relative_path(self, tmp_path: Path) -> None:
        """Test the patch location for a repository-relative path."""
        assert patch_path_for(tmp_path, "cmd/tool.go") == tmp_path / "cmd" / "tool.go.patch"

    def test_absolute_path_loses_anchor(self, tmp_path: Path) -> None:
        """Test that an absolute path cannot replace the patch directory."""
        assert patch_path_for(tmp_path, "/srv/app/main.go") == tmp_path / "srv" / "app" / "main.go.patch"

    @pytest.mark.parametrize("file_path", ["../main.go", "pkg/../../main.go", "../../etc/passwd"])
    def test_escaping_path(self, tmp_path: Path, file_path: str) -> None:
        """Test that paths climbing out of the patch directory are refused."""
        with pytest.raises(WriteError, match="escapes the patch directory"):
            patch_path_for(tmp_path / "patches", file_path)

    def test_inner_parent_reference(self, tmp_path: Path) -> None:
        """Test that '..' staying inside the patch directory is allowed."""
        path = patch_path_for(tmp_path, "pkg/../main.go")
        assert path.resolve() == (tmp_path / "main.go.patch").resolve()


class TestReviewFile:
    """Tests for single-job behavior."""

    def test_skipped_writes_nothing(self, tmp_path: Path, go_rules: RuleSet, stub_provider: Any) -> None:
        """Test that a skipped file leaves no patch or patch directory."""
        (tmp_path / "a.go").write_text("package a\n")
        pool = make_pool(tmp_path, go_rules, stub_provider(SKIP_SENTINEL))

        result = pool.review_file("a.go")

        assert result.status is ReviewStatus.SKIPPED
        assert result.patch_path is None
        assert not (tmp_path / ".rulepatch").exists()
        assert not (tmp_path / ".gitignore").exists()

    def test_written_patch(self, tmp_path: Path, go_rules: RuleSet, stub_provider: Any) -> None:
        """Test that a rewrite is stored at the deterministic patch path."""
        (tmp_path / "pkg").mkdir()
        (tmp_path / "pkg" / "a.go").write_text("package a\n")
        pool = make_pool(tmp_path, go_rules, stub_provider("package a // fixed\n"))

        result = pool.review_file("pkg/a.go")

        expected = tmp_path / ".rulepatch" / "patches" / "pkg" / "a.go.patch"
        assert result.status is ReviewStatus.WRITTEN
        assert result.patch_path == expected
        assert expected.read_text() == "package a // fixed\n"
        assert (tmp_path / ".gitignore").read_text() == ".rulepatch/patches/\n"

    def test_unmatched_file_not_reviewed(self, tmp_path: Path, go_rules: RuleSet, stub_provider: Any) -> None:
        """Test that a file no rule applies to is skipped without a provider call."""
        (tmp_path / "b.txt").write_text("notes\n")
        provider = stub_provider("rewritten notes\n")

        result = make_pool(tmp_path, go_rules, provider).review_file("b.txt")

        assert result.status is ReviewStatus.SKIPPED
        assert provider.calls == []
        assert not (tmp_path / ".rulepatch").exists()

    def test_absolute_path_stays_in_patch_dir(
        self, tmp_path: Path, all_rules: RuleSet, stub_provider: Any
    ) -> None:
        """Test that an absolute file path is stored under the patch directory."""
        root = tmp_path / "root"
        root.mkdir()
        source = tmp_path / "src" / "a.go"
        source.parent.mkdir()
        source.write_text("package a\n")

        result = make_pool(root, all_rules, stub_provider("package a // fixed\n")).review_file(str(source))

        relative = source.relative_to(source.anchor)
        expected = root / ".rulepatch" / "patches" / f"{relative}.patch"
        assert result.status is ReviewStatus.WRITTEN
        assert result.patch_path == expected
        assert expected.read_text() == "package a // fixed\n"
        assert not (source.parent / "a.go.patch").exists()

    def test_parent_path_refused(self, tmp_path: Path, all_rules: RuleSet, stub_provider: Any) -> None:
        """Test that a path climbing out of the patch directory fails the job."""
        root = tmp_path / "root"
        root.mkdir()
        (tmp_path / "outside.go").write_text("package outside\n")

        result = make_pool(root, all_rules, stub_provider("rewritten")).review_file("../outside.go")

        assert result.status is ReviewStatus.FAILED
        assert "escapes the patch directory" in result.error
        assert not (root / ".rulepatch" / "outside.go.patch").exists()
        assert not (root / ".gitignore").exists()

    def test_patch_overwritten(self, tmp_path: Path, go_rules: RuleSet, stub_provider: Any) -> None:
        """Test that a second review replaces the earlier patch."""
        (tmp_path / "a.go").write_text("package a\n")
        make_pool(tmp_path, go_rules, stub_provider("first")).review_file("a.go")
        make_pool(tmp_path, go_rules, stub_provider("second")).review_file("a.go")

        assert patch_path_for(tmp_path / ".rulepatch" / "patches", "a.go").read_text() == "second"

    def test_error_sentinel_fails_job(self, tmp_path: Path, go_rules: RuleSet, stub_provider: Any) -> None:
        """Test that the error sentinel yields FAILED without a patch."""
        (tmp_path / "a.go").write_text("package a\n")
        result = make_pool(tmp_path, go_rules, stub_provider(ERROR_SENTINEL)).review_file("a.go")

        assert result.status is ReviewStatus.FAILED
        assert not (tmp_path / ".rulepatch").exists()

    def test_read_failure(self, tmp_path: Path, go_rules: RuleSet, stub_provider: Any) -> None:
        """Test that an unreadable file fails before the provider is called."""
        provider = stub_provider("unused")
        result = make_pool(tmp_path, go_rules, provider).review_file("missing.go")

        assert result.status is ReviewStatus.FAILED
        assert "File not found" in result.error
        assert provider.calls == []

    def test_metadata_failure_is_not_fatal(
        self, tmp_path: Path, go_rules: RuleSet, stub_provider: Any
    ) -> None:
        """Test that missing version-control metadata becomes empty values."""
        (tmp_path / "a.go").write_text("package a\n")
        provider = stub_provider(SKIP_SENTINEL)

        result = make_pool(tmp_path, go_rules, provider).review_file("a.go")

        assert result.status is ReviewStatus.SKIPPED
        messages = provider.calls[0]
        assert messages[1].content == "Commit: "
        assert messages[2].content == "Stage: "

    def test_prompt_contents(self, tmp_path: Path, go_rules: RuleSet, stub_provider: Any) -> None:
        """Test the conversation sent for a matched file."""
        (tmp_path / "a.go").write_text("package a\n")
        provider = stub_provider(SKIP_SENTINEL)
        pool = make_pool(
            tmp_path,
            go_rules,
            provider,
            commit_lookup=fixed("c"),
            stage_lookup=fixed("s"),
        )

        pool.review_file("a.go")

        messages = provider.calls[0]
        assert messages[1].content == "Commit: c:a.go"
        assert messages[2].content == "Stage: s:a.go"
        assert messages[3].content.startswith("Rule: go.mdc")
        assert messages[-1].content == "File: a.go\n\npackage a\n"

    def test_unexpected_exception_contained(self, tmp_path: Path, go_rules: RuleSet, stub_provider: Any) -> None:
        """Test that a programming error in one job is recorded as FAILED."""
        (tmp_path / "a.go").write_text("package a\n")

        def explode(messages: list[Message]) -> str:
            raise KeyError("boom")

        result = make_pool(tmp_path, go_rules, stub_provider(explode)).review_file("a.go")

        assert result.status is ReviewStatus.FAILED
        assert "KeyError" in result.error

    def test_tools_need_provider_support(self, tmp_path: Path, go_rules: RuleSet, stub_provider: Any) -> None:
        """Test that the tool loop is skipped for providers without tool support."""
        (tmp_path / "a.go").write_text("package a\n")
        provider = stub_provider(SKIP_SENTINEL)

        result = make_pool(tmp_path, go_rules, provider, enable_tools=True).review_file("a.go")

        assert result.status is ReviewStatus.SKIPPED
        assert len(provider.calls) == 1


class TestRun:
    """Tests for running the pool over many files."""

    @pytest.mark.parametrize(("file_count", "workers"), [(1, 10), (7, 3), (25, 4), (5, 1)])
    def test_every_file_processed_once(
        self,
        tmp_path: Path,
        go_rules: RuleSet,
        stub_provider: Any,
        reviewed_path: Callable[[list[Message]], str],
        file_count: int,
        workers: int,
    ) -> None:
        """Test that N files with W workers yield N outcomes, one per file."""
        files = [f"f{i}.go" for i in range(file_count)]
        for name in files:
            (tmp_path / name).write_text(f"package f // {name}\n")

        provider = stub_provider(lambda messages: SKIP_SENTINEL if reviewed_path(messages) < "f3" else "patched")
        summary = make_pool(tmp_path, go_rules, provider, worker_count=workers).run(files)

        assert summary.total == file_count
        assert summary.written + summary.skipped + summary.failed == file_count
        assert Counter(reviewed_path(call) for call in provider.calls) == Counter(files)
        assert sorted(r.file_path for r in summary.results) == sorted(files)

    def test_worker_ids_within_pool_size(self, tmp_path: Path, go_rules: RuleSet, stub_provider: Any) -> None:
        """Test that no more than W workers take part."""
        files = [f"f{i}.go" for i in range(12)]
        for name in files:
            (tmp_path / name).write_text("x")

        summary = make_pool(tmp_path, go_rules, stub_provider(SKIP_SENTINEL), worker_count=3).run(files)

        assert {r.worker_id for r in summary.results} <= {0, 1, 2}

    def test_failure_isolated(
        self, tmp_path: Path, go_rules: RuleSet, failing_provider: Any
    ) -> None:
        """Test that one failing job does not affect the others."""
        files = ["a.go", "boom.go", "c.go"]
        for name in files:
            (tmp_path / name).write_text("x")

        summary = make_pool(tmp_path, go_rules, failing_provider("boom"), worker_count=2).run(files)

        assert summary.as_tuple() == (0, 2, 1)
        failed = [r for r in summary.results if r.status is ReviewStatus.FAILED]
        assert failed[0].file_path == "boom.go"
        assert "backend returned 500" in failed[0].error

    def test_ignore_entry_added_once(self, tmp_path: Path, go_rules: RuleSet, stub_provider: Any) -> None:
        """Test concurrent writers add the patch directory to .gitignore exactly once."""
        (tmp_path / ".gitignore").write_text("node_modules/")
        files = [f"f{i}.go" for i in range(20)]
        for name in files:
            (tmp_path / name).write_text("x")

        summary = make_pool(tmp_path, go_rules, stub_provider("patched"), worker_count=8).run(files)

        assert summary.written == 20
        assert (tmp_path / ".gitignore").read_text() == "node_modules/\n.rulepatch/patches/\n"

        make_pool(tmp_path, go_rules, stub_provider("patched")).run(files[:1])
        assert (tmp_path / ".gitignore").read_text().count(".rulepatch/patches/") == 1

    def test_provider_calls_overlap(self, tmp_path: Path, go_rules: RuleSet, stub_provider: Any) -> None:
        """Test that workers call the provider concurrently."""
        files = ["a.go", "b.go"]
        for name in files:
            (tmp_path / name).write_text("x")
        barrier = threading.Barrier(2, timeout=10)

        def wait_for_peer(messages: list[Message]) -> str:
            barrier.wait()
            return SKIP_SENTINEL

        summary = make_pool(tmp_path, go_rules, stub_provider(wait_for_peer), worker_count=2).run(files)

        assert summary.skipped == 2

    def test_empty_input(self, tmp_path: Path, go_rules: RuleSet, stub_provider: Any) -> None:
        """Test that no files means no work."""
        provider = stub_provider()
        summary = make_pool(tmp_path, go_rules, provider).run([])

        assert summary.as_tuple() == (0, 0, 0)
        assert provider.calls == []

    def test_invalid_worker_count(self, tmp_path: Path, go_rules: RuleSet, stub_provider: Any) -> None:
        """Test that a pool needs at least one worker."""
        with pytest.raises(ValueError):
            ReviewPool(go_rules, stub_provider(), root=tmp_path, worker_count=0)


class TestEndToEnd:
    """End-to-end scenarios through run_review."""

    def test_skipped_files_produce_no_patches(
        self, tmp_path: Path, stub_provider: Any, reviewed_path: Callable[[list[Message]], str]
    ) -> None:
        """Test one Go rule, two files, and a model that approves everything."""
        (tmp_path / "a.go").write_text("package a\n")
        (tmp_path / "b.txt").write_text("notes\n")
        rule_set = RuleSet(
            [RuleDocument(path="go.mdc", description="Go", patterns=(compile_glob("*.go"),))]
        )

        assert [d.path for d in rule_set.match("a.go")] == ["go.mdc"]
        assert rule_set.match("b.txt") == []

        provider = stub_provider(SKIP_SENTINEL)
        written, skipped, failed = run_review(
            ["a.go", "b.txt"],
            rule_set,
            provider,
            worker_count=2,
            root=tmp_path,
            commit_lookup=no_metadata,
            stage_lookup=no_metadata,
        )

        assert (written, skipped, failed) == (0, 2, 0)
        assert [reviewed_path(call) for call in provider.calls] == ["a.go"]
        assert not (tmp_path / ".rulepatch" / "patches" / "a.go.patch").exists()

    def test_from_settings(self, tmp_path: Path, go_rules: RuleSet, stub_provider: Any, settings: Settings) -> None:
        """Test building a pool from settings."""
        settings = settings.model_copy(update={"patch_dir": "out/patches", "workers": 3})
        pool = ReviewPool.from_settings(go_rules, stub_provider(), settings, root=tmp_path)

        assert pool.worker_count == 3
        assert pool.patch_root == tmp_path / "out" / "patches"
