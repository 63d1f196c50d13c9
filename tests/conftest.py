"""Pytest configuration and fixtures."""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any, Callable

import pytest

from rulepatch.core.providers.base import Message, Provider
from rulepatch.errors import ProviderError
from rulepatch.utils.config import Settings
from rulepatch.utils.logger import PACKAGE_LOGGER


class StubProvider(Provider):
    """Provider whose reply is computed from the request."""

    def __init__(self, reply: str | Callable[[list[Message]], str] = "x10Barry__Skipped"):
        self._reply = reply
        self.calls: list[list[Message]] = []
        self._lock = threading.Lock()

    @property
    def name(self) -> str:
        return "stub"

    def chat_completion(
        self,
        messages: list[Message],
        tools: list[dict[str, Any]] | None = None,
    ) -> Message:
        with self._lock:
            self.calls.append(list(messages))
        reply = self._reply(messages) if callable(self._reply) else self._reply
        return Message.assistant(reply)

    def is_available(self) -> bool:
        return True


class FailingProvider(StubProvider):
    """Provider that fails for files whose name contains a marker."""

    def __init__(self, marker: str = "boom"):
        super().__init__()
        self.marker = marker

    def chat_completion(
        self,
        messages: list[Message],
        tools: list[dict[str, Any]] | None = None,
    ) -> Message:
        if self.marker in messages[-1].content.splitlines()[0]:
            raise ProviderError(self.name, "backend returned 500")
        return super().chat_completion(messages, tools)


def file_path_of(messages: list[Message]) -> str:
    """Extract the reviewed path from the final user message."""
    first_line = messages[-1].content.splitlines()[0]
    return first_line.removeprefix("File: ")


@pytest.fixture(autouse=True)
def reset_logging():
    """Detach handlers the CLI installs so later tests never log to a closed stream."""
    yield
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.handlers.clear()
    package_logger.propagate = True


@pytest.fixture
def settings() -> Settings:
    """Settings that never depend on the developer's environment."""
    return Settings(
        _env_file=None,
        openai_api_key="sk-test",
        anthropic_api_key="sk-ant-test",
    )


@pytest.fixture
def sample_rule_content() -> str:
    """Return sample rule content."""
    return """---
description: "Go formatting"
globs: *.go, cmd/**/*.go
alwaysApply: false
owner: platform-team
---
# Formatting

- Run gofmt
- Keep functions short
"""


@pytest.fixture
def project_dir(tmp_path: Path, sample_rule_content: str) -> Path:
    """Create a small project with rules and source files."""
    rules_dir = tmp_path / ".cursor" / "rules"
    rules_dir.mkdir(parents=True)

    (rules_dir / "go-format.mdc").write_text(sample_rule_content)
    (rules_dir / "general.mdc").write_text(
        """---
description: General hygiene
alwaysApply: true
---
No commented-out code.
"""
    )

    (tmp_path / "main.go").write_text("package main\n")
    (tmp_path / "README.txt").write_text("hello\n")
    (tmp_path / "cmd" / "tool").mkdir(parents=True)
    (tmp_path / "cmd" / "tool" / "tool.go").write_text("package tool\n")

    return tmp_path


@pytest.fixture
def stub_provider() -> type[StubProvider]:
    """The StubProvider class, for building providers with custom replies."""
    return StubProvider


@pytest.fixture
def failing_provider() -> type[FailingProvider]:
    """The FailingProvider class."""
    return FailingProvider


@pytest.fixture
def reviewed_path() -> Callable[[list[Message]], str]:
    """Helper extracting the reviewed path from a message list."""
    return file_path_of
