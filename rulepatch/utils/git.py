"""Version-control metadata lookups."""

from __future__ import annotations

import subprocess
from pathlib import Path

from rulepatch.errors import MetadataError
from rulepatch.utils.logger import get_logger

logger = get_logger(__name__)

GIT_TIMEOUT = 30


def _run_git(args: list[str], cwd: Path | None) -> str:
    cmd = ["git", *args]
    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            cwd=cwd,
            timeout=GIT_TIMEOUT,
        )
    except FileNotFoundError as e:
        raise MetadataError("git executable not found") from e
    except subprocess.TimeoutExpired as e:
        raise MetadataError(f"{' '.join(cmd)} timed out after {GIT_TIMEOUT} seconds") from e
    except OSError as e:
        raise MetadataError(f"Failed to run {' '.join(cmd)}: {e}") from e

    if result.returncode != 0:
        detail = result.stderr.strip() or f"exit code {result.returncode}"
        raise MetadataError(f"{' '.join(cmd)} failed: {detail}")

    return result.stdout


def get_file_commit(file_path: str, cwd: Path | None = None) -> str:
    """Return the hash of the latest commit touching a file."""
    return _run_git(["log", "-1", "--format=%H", "--", file_path], cwd).strip()


def get_file_stage(file_path: str, cwd: Path | None = None) -> str:
    """Return the index stage line (mode, object, stage, path) for a file."""
    return _run_git(["ls-files", "--stage", "--", file_path], cwd).strip()
