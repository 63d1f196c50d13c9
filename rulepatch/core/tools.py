"""Tool functions the model may call during a review conversation."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import httpx

from rulepatch.core.providers.base import Message, Provider
from rulepatch.errors import ProviderError, ReadError, ToolError
from rulepatch.utils.file_ops import read_file
from rulepatch.utils.logger import get_logger

logger = get_logger(__name__)

NEXT_STEP_PROMPT = "What would you like to do next?"

TOOL_DEFINITIONS: list[dict[str, Any]] = [
    {
        "type": "function",
        "function": {
            "name": "load_file",
            "description": "Load and read the contents of a file",
            "parameters": {
                "type": "object",
                "properties": {
                    "filepath": {
                        "type": "string",
                        "description": "The complete path to the file from the root directory",
                    },
                },
                "required": ["filepath"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "download_file",
            "description": "Download a file from an external source",
            "parameters": {
                "type": "object",
                "properties": {
                    "url": {
                        "type": "string",
                        "description": "The URL of the file to download",
                    },
                },
                "required": ["url"],
            },
        },
    },
]


class FunctionProcessor:
    """Executes tool calls against the project root and the network."""

    def __init__(self, root: Path | str, timeout: float = 30.0):
        """
        Initialize the processor.

        Args:
            root: Project root; load_file may not read outside it
            timeout: Download timeout in seconds
        """
        self.root = Path(root).resolve()
        self.timeout = timeout

    def process(self, name: str, arguments: str) -> str:
        """
        Run one tool call.

        Args:
            name: Tool name
            arguments: JSON-encoded arguments

        Returns:
            The tool result text

        Raises:
            ToolError: If the tool is unknown, the arguments are invalid or the call fails
        """
        try:
            params = json.loads(arguments or "{}")
        except json.JSONDecodeError as e:
            raise ToolError(f"failed to parse arguments: {e}") from e
        if not isinstance(params, dict):
            raise ToolError("arguments must be a JSON object")

        if name == "load_file":
            return self.load_file(params.get("filepath", ""))
        if name == "download_file":
            return self.download_file(params.get("url", ""))
        raise ToolError(f"unknown function: {name}")

    def load_file(self, filepath: str) -> str:
        """Read a project file."""
        if not filepath:
            raise ToolError("filepath is required")

        path = (self.root / filepath).resolve()
        if not path.is_relative_to(self.root):
            raise ToolError(f"path escapes the project root: {filepath}")

        try:
            return read_file(path)
        except ReadError as e:
            raise ToolError(f"failed to read file: {e}") from e

    def download_file(self, url: str) -> str:
        """Fetch a URL and return the response body."""
        if not url:
            raise ToolError("url is required")

        try:
            with httpx.Client(timeout=self.timeout, follow_redirects=True) as client:
                response = client.get(url)
        except httpx.HTTPError as e:
            raise ToolError(f"failed to download file: {e}") from e

        if response.status_code != 200:
            raise ToolError(f"failed to download file: status code {response.status_code}")

        return response.text


def converse(
    provider: Provider,
    messages: list[Message],
    processor: FunctionProcessor,
    max_rounds: int = 8,
) -> Message:
    """
    Drive a tool-calling conversation until the model gives a plain reply.

    Each round appends the assistant message, one tool message per call (a
    failed call becomes an ``Error: ...`` tool message) and a follow-up user
    turn. ``messages`` is extended in place.

    Raises:
        ProviderError: If a provider call fails or no plain reply arrives
            within max_rounds
    """
    for round_number in range(1, max_rounds + 1):
        reply = provider.chat_completion(messages, tools=TOOL_DEFINITIONS)
        if not reply.tool_calls:
            return reply

        messages.append(reply)
        logger.debug(f"Round {round_number}: processing {len(reply.tool_calls)} tool call(s)")

        for call in reply.tool_calls:
            try:
                result = processor.process(call.name, call.arguments)
            except ToolError as e:
                logger.warning(f"Tool call {call.name} failed: {e}")
                result = f"Error: {e}"
            messages.append(Message.tool(call.id, result))

        messages.append(Message.user(NEXT_STEP_PROMPT))

    raise ProviderError(provider.name, f"No final reply after {max_rounds} tool-calling rounds")
