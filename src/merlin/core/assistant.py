# src/merlin/core/assistant.py

"""
AI assistant turn orchestration.

One turn:
    IDLE -> AWAITING_MODEL -> IDLE                                  (plain answer)
    IDLE -> AWAITING_MODEL -> DISPATCHING_TOOL -> AWAITING_FINAL -> IDLE   (tool call)

Key invariants:
- at most one turn in flight per assistant; a send() while busy is ignored,
- a turn always ends with exactly one "ai" message appended (answer or fallback),
- tool failures never abort a turn: they become {"error": ...} results the
  model sees in the continuation call,
- the assistant knows nothing about rendering; the dashboard hears about task
  changes through `on_tasks_changed` and about failures through `notify`.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Literal

from ..llm.tools import CREATE_TASK, DELETE_TASK, LIST_TASKS, MUTATING_TOOLS, TASK_TOOLS, UPDATE_TASK
from ..tasks.summary import generate_task_summary
from ..tasks.task_models import Task
from .errors import ToolDispatchError
from .ports import ChatMessage, LLMClient, Notifier, TaskOperations, ToolCall

logger = logging.getLogger(__name__)

FALLBACK_REPLY = "Sorry, I encountered an error. Please try again."
CONTINUE_PROMPT = "Continue"
UNKNOWN_TOOL = "Unknown tool"

_PRODUCTIVITY_RE = re.compile(
    r"(?i)\b(progress|completed?|stats|statistics|how\s+many|productiv\w*|summary|pending|done\s+today|finished|overview)\b"
)


class TurnState(StrEnum):
    IDLE = "idle"
    AWAITING_MODEL = "awaiting_model"
    DISPATCHING_TOOL = "dispatching_tool"
    AWAITING_FINAL = "awaiting_final"


@dataclass(frozen=True, slots=True)
class Message:
    role: Literal["user", "ai"]
    text: str


def wants_productivity_summary(text: str) -> bool:
    return bool(_PRODUCTIVITY_RE.search(text or ""))


def build_prompt(text: str, tasks: Iterable[Task | Mapping[str, Any]] = ()) -> str:
    """Prepend the task summary block when the question is about productivity."""
    items = list(tasks)
    if items and wants_productivity_summary(text):
        return f"{generate_task_summary(items)}\n\n{text}"
    return text


def _as_result(body: Any) -> dict[str, Any]:
    """Tool results go back to the model as JSON objects."""
    if isinstance(body, dict):
        return body
    return {"result": body}


class TaskAssistant:
    def __init__(
        self,
        llm: LLMClient,
        operations: TaskOperations,
        *,
        on_tasks_changed: Callable[[], Any] | None = None,
        notify: Notifier | None = None,
    ) -> None:
        self._llm = llm
        self._ops = operations
        self._on_tasks_changed = on_tasks_changed
        self._notify = notify
        self._state = TurnState.IDLE
        self.messages: list[Message] = []

    @property
    def state(self) -> TurnState:
        return self._state

    @property
    def busy(self) -> bool:
        return self._state is not TurnState.IDLE

    async def send(
        self,
        text: str,
        tasks: Iterable[Task | Mapping[str, Any]] = (),
    ) -> Message | None:
        """
        Run one turn. Returns the appended "ai" message, or None when the
        input was ignored (blank, or a turn is already in flight).
        """
        user_text = (text or "").strip()
        if not user_text or self.busy:
            return None

        self.messages.append(Message("user", user_text))
        self._state = TurnState.AWAITING_MODEL
        try:
            answer = await self._run_turn(build_prompt(user_text, tasks))
        except Exception:
            logger.exception("Assistant turn failed")
            answer = FALLBACK_REPLY
        finally:
            self._state = TurnState.IDLE

        reply = Message("ai", answer)
        self.messages.append(reply)
        return reply

    async def _run_turn(self, prompt: str) -> str:
        history: list[ChatMessage] = [{"role": "user", "content": prompt}]
        reply = await self._llm.complete(history, tools=TASK_TOOLS)

        if not reply.tool_calls:
            return reply.text

        call = reply.tool_calls[0]
        if len(reply.tool_calls) > 1:
            logger.info("Model returned %d tool calls; dispatching only %s", len(reply.tool_calls), call.name)
        call_id = call.id or "call_0"

        self._state = TurnState.DISPATCHING_TOOL
        result = await self.dispatch(call)

        history.append(
            {
                "role": "assistant",
                "content": reply.text or None,
                "tool_calls": [
                    {
                        "id": call_id,
                        "type": "function",
                        "function": {"name": call.name, "arguments": json.dumps(call.args, ensure_ascii=False)},
                    }
                ],
            }
        )
        history.append(
            {
                "role": "tool",
                "tool_call_id": call_id,
                "name": call.name,
                "content": json.dumps(result, ensure_ascii=False, default=str),
            }
        )
        history.append({"role": "user", "content": CONTINUE_PROMPT})

        self._state = TurnState.AWAITING_FINAL
        final = await self._llm.complete(history, tools=TASK_TOOLS)
        return final.text

    async def dispatch(self, call: ToolCall) -> dict[str, Any]:
        """
        Execute one tool call against the task API.

        Never raises: unknown tools and failures come back as {"error": ...}.
        """
        try:
            body = await self._execute(call)
        except ToolDispatchError as e:
            logger.warning("Tool dispatch rejected: %s", e)
            return {"error": e.message}
        except Exception as e:
            logger.exception("Tool %s failed", call.name)
            self._emit_notice(f"Failed to run {call.name}: {e}")
            return {"error": str(e) or e.__class__.__name__}

        if call.name in MUTATING_TOOLS:
            await self._tasks_changed()
        return _as_result(body)

    async def _execute(self, call: ToolCall) -> Any:
        args = call.args or {}
        logger.info("Dispatching tool %s args=%s", call.name, sorted(args))

        if call.name == CREATE_TASK:
            title = str(args.get("title") or "").strip()
            if not title:
                raise ValueError("title is required")
            return await self._ops.ai_create_task(title, str(args.get("description") or ""))
        if call.name == LIST_TASKS:
            return await self._ops.ai_list_tasks()
        if call.name == UPDATE_TASK:
            if not args.get("id"):
                raise ValueError("id is required")
            return await self._ops.ai_update_task(dict(args))
        if call.name == DELETE_TASK:
            if not args.get("id"):
                raise ValueError("id is required")
            return await self._ops.ai_delete_task(str(args["id"]))

        raise ToolDispatchError(call.name, UNKNOWN_TOOL)

    async def _tasks_changed(self) -> None:
        if self._on_tasks_changed is None:
            return
        try:
            res = self._on_tasks_changed()
            if hasattr(res, "__await__"):
                await res
        except Exception:
            logger.exception("on_tasks_changed callback failed")

    def _emit_notice(self, text: str) -> None:
        if self._notify is None:
            return
        try:
            self._notify(text)
        except Exception:
            logger.debug("notify callback failed", exc_info=True)
