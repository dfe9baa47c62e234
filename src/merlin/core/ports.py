# src/merlin/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The core depends on Protocols instead of concrete implementations.
This keeps storage, the task API and LLM providers swappable and makes
testing easier.
"""

from dataclasses import dataclass, field
from typing import Any, Protocol

ChatMessage = dict[str, Any]
# OpenAI-style chat messages: {"role": "...", "content": "...", "tool_calls"?: [...], "tool_call_id"?: "..."}.


@dataclass(frozen=True, slots=True)
class ToolCall:
    """A function invocation returned by the model instead of (or next to) text."""

    name: str
    args: dict[str, Any] = field(default_factory=dict)
    id: str | None = None


@dataclass(frozen=True, slots=True)
class ModelReply:
    text: str = ""
    tool_calls: tuple[ToolCall, ...] = ()


class LLMClient(Protocol):
    """Tool-calling chat completion client (OpenAI/OpenRouter-compatible)."""

    async def complete(
        self,
        messages: list[ChatMessage],
        tools: list[dict[str, Any]] | None = None,
    ) -> ModelReply: ...


class KeyValueStorage(Protocol):
    """Client-local persistent storage (string keys, string values)."""

    def get(self, key: str) -> str | None: ...
    def set(self, key: str, value: str) -> None: ...
    def delete(self, key: str) -> None: ...


class TaskOperations(Protocol):
    """
    Task operations the assistant may invoke through tool calls.

    Results are the decoded API response bodies; they are fed back to the
    model verbatim, so they must be JSON-serializable.
    """

    async def ai_create_task(self, title: str, description: str = "") -> Any: ...
    async def ai_list_tasks(self) -> Any: ...
    async def ai_update_task(self, data: dict[str, Any]) -> Any: ...
    async def ai_delete_task(self, task_id: str) -> Any: ...


class Notifier(Protocol):
    """Transient user-visible notification (toast in a browser, a printed line in the console)."""

    def __call__(self, text: str) -> None: ...
