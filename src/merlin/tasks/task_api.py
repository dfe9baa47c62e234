# src/merlin/tasks/task_api.py

from __future__ import annotations

import logging
from typing import Any

from ..http.client import AuthenticatedClient
from .task_models import Task, TaskStatus, normalize_task_list

logger = logging.getLogger(__name__)


class TaskApi:
    """
    Task endpoints of the remote API.

    Two families:
    - dashboard CRUD on /tasks (returns canonical Task objects where a list is involved)
    - assistant routes on /mcp/task/* (raw bodies, fed back to the model as tool results)

    Deleting from the assistant goes through DELETE /tasks/{id}; there is no
    separate /mcp/task/delete call.
    """

    def __init__(self, http: AuthenticatedClient) -> None:
        self._http = http

    # ---- dashboard CRUD ----

    async def list_tasks(self) -> list[Task]:
        payload = await self._http.get("/tasks")
        return normalize_task_list(payload)

    async def create_task(self, title: str, description: str = "") -> Any:
        logger.info("Creating task title=%r", title)
        return await self._http.post("/tasks", json={"title": title, "description": description})

    async def update_task(self, task_id: str, data: dict[str, Any]) -> Any:
        payload = dict(data)
        if "status" in payload:
            payload["status"] = str(payload["status"])
        logger.info("Updating task id=%s fields=%s", task_id, sorted(payload))
        return await self._http.put(f"/tasks/{task_id}", json=payload)

    async def set_status(self, task_id: str, status: TaskStatus) -> Any:
        return await self.update_task(task_id, {"status": status.value})

    async def delete_task(self, task_id: str) -> Any:
        logger.info("Deleting task id=%s", task_id)
        return await self._http.delete(f"/tasks/{task_id}")

    # ---- assistant routes ----

    async def ai_create_task(self, title: str, description: str = "") -> Any:
        return await self._http.post("/mcp/task/create", json={"title": title, "description": description})

    async def ai_list_tasks(self) -> Any:
        return await self._http.post("/mcp/task/list")

    async def ai_update_task(self, data: dict[str, Any]) -> Any:
        return await self._http.post("/mcp/task/update", json=dict(data))

    async def ai_delete_task(self, task_id: str) -> Any:
        return await self.delete_task(task_id)
