"""Utility modules for rulepatch."""

from rulepatch.utils.config import Settings, get_effective_settings, get_settings
from rulepatch.utils.file_ops import (
    ensure_directory,
    ensure_ignore_entry,
    read_file,
    write_file,
)
from rulepatch.utils.logger import get_logger, setup_logging

__all__ = [
    "Settings",
    "get_settings",
    "get_effective_settings",
    "read_file",
    "write_file",
    "ensure_directory",
    "ensure_ignore_entry",
    "get_logger",
    "setup_logging",
]
