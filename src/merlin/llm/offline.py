# src/merlin/llm/offline.py

from __future__ import annotations

import json
import re
from typing import Any

from ..core.ports import ChatMessage, ModelReply, ToolCall
from .tools import CREATE_TASK, LIST_TASKS

_CREATE_RE = re.compile(r"(?i)\b(?:create|add)\s+(?:a\s+)?task\s+(?:called|named|titled)?\s*[\"']?(.+?)[\"']?\s*$")
_LIST_RE = re.compile(r"(?i)\b(?:list|show)\s+(?:all\s+|my\s+)?tasks\b")


class OfflineLLMClient:
    """
    Offline deterministic LLM client used for demos when no external API is configured.

    Behavior:
    - "create a task called X" -> create_task tool call
    - "list my tasks"          -> list_tasks tool call
    - continuation after a tool result -> short confirmation built from the result
    - anything else -> a friendly offline notice
    """

    async def complete(
        self,
        messages: list[ChatMessage],
        tools: list[dict[str, Any]] | None = None,
    ) -> ModelReply:
        tool_result = next((m for m in reversed(messages) if m.get("role") == "tool"), None)
        if tool_result is not None:
            return ModelReply(text=f"Done. Result: {tool_result.get('content', '')}")

        user_text = ""
        for m in reversed(messages):
            if m.get("role") == "user":
                user_text = str(m.get("content") or "")
                break
        # Summary block (if any) sits above the actual question.
        last_line = user_text.strip().splitlines()[-1] if user_text.strip() else ""

        if tools:
            m = _CREATE_RE.search(last_line)
            if m:
                args = {"title": m.group(1).strip()}
                return ModelReply(tool_calls=(ToolCall(name=CREATE_TASK, args=args, id="offline_0"),))
            if _LIST_RE.search(last_line):
                return ModelReply(tool_calls=(ToolCall(name=LIST_TASKS, args={}, id="offline_0"),))

        return ModelReply(
            text=(
                "Offline demo mode: no external LLM is configured.\n"
                "Set MERLIN_LLM_API_KEY (and MERLIN_LLM_MODELS) to enable real responses.\n\n"
                f"You said: {json.dumps(last_line, ensure_ascii=False)}"
            )
        )
