"""Prompt assembly for a single file review."""

from __future__ import annotations

from rulepatch.core.providers.base import Message
from rulepatch.core.rule_document import RuleDocument

# Reserved replies. The whole trimmed reply must equal one of these.
SKIP_SENTINEL = "x10Barry__Skipped"
ERROR_SENTINEL = "x10Barry__Error"

DEFAULT_SYSTEM_PROMPT = f"""You are an automated code reviewer. You receive one source file together
with the project rules that apply to it, and you rewrite the file so that it
follows every rule.

Reply with exactly one of:
- the complete, corrected contents of the file and nothing else;
- {SKIP_SENTINEL} if the file already follows every rule and needs no changes;
- {ERROR_SENTINEL} if you cannot review the file.

Do not wrap the file in code fences and do not add commentary."""


class PromptBuilder:
    """Ordered text accumulator.

    Fragments are joined with newlines in append order. Nothing is escaped
    or truncated; the caller owns the payload size.
    """

    def __init__(self) -> None:
        self._parts: list[str] = []

    def append(self, text: str) -> "PromptBuilder":
        """Add a fragment; returns self so calls can be chained."""
        self._parts.append(text)
        return self

    def render(self) -> str:
        """Join all fragments with newline separators."""
        return "\n".join(self._parts)


def rule_summary_line(rule: RuleDocument) -> str:
    """One human-readable line describing a rule, for the system preamble."""
    if rule.always_apply:
        scope = "always applies"
    else:
        scope = f"applies to {', '.join(rule.globs)}"
    return f"- {rule.path}: {rule.description or 'no description'} ({scope})"


def rule_message(rule: RuleDocument) -> Message:
    """User message carrying one rule's description and full body."""
    builder = PromptBuilder()
    builder.append(f"Rule: {rule.path}")
    builder.append(f"Description: {rule.description}")
    builder.append("")
    builder.append(rule.body)
    return Message.user(builder.render())


def build_review_messages(
    file_path: str,
    content: str,
    rules: list[RuleDocument],
    commit: str = "",
    stage: str = "",
    system_prompt: str | None = None,
) -> list[Message]:
    """
    Assemble the conversation for one file review.

    The order is: system preamble with the rule summary, commit, stage, one
    message per matched rule, then the file content. The system message is
    rendered after the rule messages but placed first.

    Args:
        file_path: Repository-relative path of the reviewed file
        content: Current file content
        rules: Rules matched for the file, in RuleSet order
        commit: Latest commit hash touching the file (may be empty)
        stage: Index stage line for the file (may be empty)
        system_prompt: Replacement for DEFAULT_SYSTEM_PROMPT

    Returns:
        Messages ready for Provider.chat_completion
    """
    rule_messages = [rule_message(rule) for rule in rules]

    file_prompt = PromptBuilder()
    file_prompt.append(f"File: {file_path}")
    file_prompt.append("")
    file_prompt.append(content)

    preamble = PromptBuilder()
    preamble.append(system_prompt or DEFAULT_SYSTEM_PROMPT)
    preamble.append("")
    preamble.append("Rules that apply to this file:")
    for rule in rules:
        preamble.append(rule_summary_line(rule))

    return [
        Message.system(preamble.render()),
        Message.user(f"Commit: {commit}"),
        Message.user(f"Stage: {stage}"),
        *rule_messages,
        Message.user(file_prompt.render()),
    ]
