# src/merlin/llm/tools.py

"""Function declarations the assistant offers to the model (OpenAI tools format)."""

from __future__ import annotations

from typing import Any

CREATE_TASK = "create_task"
LIST_TASKS = "list_tasks"
UPDATE_TASK = "update_task"
DELETE_TASK = "delete_task"

TOOL_NAMES = (CREATE_TASK, LIST_TASKS, UPDATE_TASK, DELETE_TASK)

# Tools whose success changes the task list shown on the dashboard.
MUTATING_TOOLS = frozenset({CREATE_TASK, UPDATE_TASK, DELETE_TASK})


def _tool(name: str, description: str, properties: dict[str, Any], required: list[str]) -> dict[str, Any]:
    params: dict[str, Any] = {"type": "object", "properties": properties}
    if required:
        params["required"] = required
    return {
        "type": "function",
        "function": {"name": name, "description": description, "parameters": params},
    }


TASK_TOOLS: list[dict[str, Any]] = [
    _tool(
        CREATE_TASK,
        "Create a user task",
        {"title": {"type": "string"}, "description": {"type": "string"}},
        ["title"],
    ),
    _tool(LIST_TASKS, "List all tasks for a user", {}, []),
    _tool(
        UPDATE_TASK,
        "Update an existing task",
        {
            "id": {"type": "string"},
            "title": {"type": "string"},
            "description": {"type": "string"},
            "status": {"type": "string", "enum": ["todo", "in-progress", "done"]},
        },
        ["id"],
    ),
    _tool(DELETE_TASK, "Delete a task", {"id": {"type": "string"}}, ["id"]),
]
