"""File operations for rulepatch."""

from __future__ import annotations

import threading
from pathlib import Path

from rulepatch.errors import ReadError, WriteError
from rulepatch.utils.logger import get_logger

logger = get_logger(__name__)

# Serializes the check-then-append in ensure_ignore_entry
_ignore_lock = threading.Lock()


def read_file(path: Path | str, encoding: str = "utf-8") -> str:
    """
    Read a file's contents.

    Args:
        path: Path to the file
        encoding: File encoding (default: utf-8)

    Returns:
        File contents as string

    Raises:
        ReadError: If the file is missing, not a regular file, unreadable or
            not valid text in the given encoding
    """
    path = Path(path)

    if not path.exists():
        raise ReadError(path, "File not found")

    if not path.is_file():
        raise ReadError(path, "Path is not a file")

    try:
        return path.read_text(encoding=encoding)
    except PermissionError as e:
        raise ReadError(path, "Permission denied reading file") from e
    except UnicodeDecodeError as e:
        raise ReadError(path, "Unicode decode error reading file") from e
    except OSError as e:
        raise ReadError(path, f"OS error reading file ({e})") from e


def read_bytes(path: Path | str) -> bytes:
    """Read a file's raw bytes, raising ReadError on failure."""
    path = Path(path)

    if not path.is_file():
        raise ReadError(path, "File not found")

    try:
        return path.read_bytes()
    except OSError as e:
        raise ReadError(path, f"OS error reading file ({e})") from e


def write_file(
    path: Path | str,
    content: str,
    encoding: str = "utf-8",
    create_dirs: bool = True,
) -> None:
    """
    Write content to a file, replacing any previous content.

    Args:
        path: Path to the file
        content: Content to write
        encoding: File encoding (default: utf-8)
        create_dirs: Create parent directories if they don't exist

    Raises:
        WriteError: If the directory or file cannot be written
    """
    path = Path(path)

    try:
        if create_dirs:
            path.parent.mkdir(parents=True, exist_ok=True)

        path.write_text(content, encoding=encoding)
        logger.debug(f"Wrote file: {path}")
    except PermissionError as e:
        raise WriteError(path, "Permission denied writing file") from e
    except OSError as e:
        raise WriteError(path, f"OS error writing file ({e})") from e


def ensure_directory(path: Path | str) -> Path:
    """
    Ensure a directory exists, creating it if necessary.

    Safe to call concurrently; an existing directory is not an error.

    Raises:
        WriteError: If the directory cannot be created
    """
    path = Path(path)

    try:
        path.mkdir(parents=True, exist_ok=True)
    except PermissionError as e:
        raise WriteError(path, "Permission denied creating directory") from e
    except OSError as e:
        raise WriteError(path, f"OS error creating directory ({e})") from e
    return path


def ensure_ignore_entry(ignore_file: Path | str, entry: str) -> bool:
    """
    Append an entry to an ignore file unless it is already present.

    Presence is checked by substring containment on the whole file.

    Args:
        ignore_file: Path to the ignore file (created if missing)
        entry: The line to add, e.g. ".rulepatch/patches/"

    Returns:
        True if the entry was appended, False if it was already there

    Raises:
        WriteError: If the ignore file cannot be read or written
    """
    ignore_file = Path(ignore_file)

    with _ignore_lock:
        existing = ""
        if ignore_file.exists():
            try:
                existing = ignore_file.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                raise WriteError(ignore_file, f"Cannot read ignore file ({e})") from e

        if entry in existing:
            return False

        prefix = "" if not existing or existing.endswith("\n") else "\n"
        try:
            with open(ignore_file, "a", encoding="utf-8") as f:
                f.write(f"{prefix}{entry}\n")
        except OSError as e:
            raise WriteError(ignore_file, f"Cannot append to ignore file ({e})") from e

    logger.info(f"Added '{entry}' to {ignore_file}")
    return True


def get_relative_path(path: Path | str, base: Path | str | None = None) -> str:
    """
    Get a POSIX-style path relative to a base directory.

    Args:
        path: The path to make relative
        base: Base directory (defaults to cwd)

    Returns:
        Relative path, or the path unchanged if it is not under base
    """
    path = Path(path)
    base = Path(base) if base else Path.cwd()

    try:
        return path.relative_to(base).as_posix()
    except ValueError:
        return path.as_posix()
