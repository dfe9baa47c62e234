# src/merlin/tasks/task_models.py

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date, datetime
from enum import StrEnum
from typing import Any

from ..core.errors import ParseError


class TaskStatus(StrEnum):
    """
    Task status as the dashboard understands it.

    Notes:
    - the API sometimes spells "in-progress" as "in_progress"; both map to IN_PROGRESS.
    - unknown strings are kept verbatim by normalize_status() so they still show
      up in "pending" counts instead of silently becoming something else.
    """

    TODO = "todo"
    IN_PROGRESS = "in-progress"
    DONE = "done"


def normalize_status(raw: Any) -> str:
    s = str(raw or "").strip().lower()
    if s == "in_progress":
        return TaskStatus.IN_PROGRESS.value
    return s


@dataclass(frozen=True, slots=True)
class Task:
    id: str
    title: str
    status: str
    description: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    @classmethod
    def from_api(cls, data: Mapping[str, Any]) -> Task:
        """
        Build a Task from an API object.

        Timestamps come either as snake_case or camelCase; snake_case wins
        when both are present.
        """
        if not isinstance(data, Mapping):
            raise ParseError(f"task must be an object, got {type(data).__name__}")

        raw_id = data.get("id", data.get("_id"))
        description = data.get("description")
        return cls(
            id=str(raw_id) if raw_id is not None else "",
            title=str(data.get("title") or ""),
            status=normalize_status(data.get("status") or TaskStatus.TODO),
            description=str(description) if description is not None else None,
            created_at=_first_str(data, "created_at", "createdAt"),
            updated_at=_first_str(data, "updated_at", "updatedAt"),
        )

    @property
    def is_done(self) -> bool:
        return self.status == TaskStatus.DONE


def _first_str(data: Mapping[str, Any], *keys: str) -> str | None:
    for key in keys:
        val = data.get(key)
        if val:
            return str(val)
    return None


def normalize_task_list(payload: Any) -> list[Task]:
    """
    Map every server shape we accept into list[Task].

    Accepted: a bare list, {"tasks": [...]}, {"data": [...]}.
    Anything else raises ParseError.
    """
    items: Any
    if isinstance(payload, list):
        items = payload
    elif isinstance(payload, Mapping) and isinstance(payload.get("tasks"), list):
        items = payload["tasks"]
    elif isinstance(payload, Mapping) and isinstance(payload.get("data"), list):
        items = payload["data"]
    else:
        raise ParseError(f"unrecognized task list payload: {type(payload).__name__}")

    return [Task.from_api(item) for item in items]


def local_date(raw: str | None) -> date | None:
    """
    Calendar date of a timestamp string in local time.

    Aware timestamps are converted to local time; naive ones are taken as
    local already. Unparseable input yields None.
    """
    if not raw:
        return None
    s = raw.strip()
    try:
        dt = datetime.fromisoformat(s)
    except ValueError:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone()
    return dt.date()


def as_tasks(items: Iterable[Task | Mapping[str, Any]]) -> list[Task]:
    """Accept Task objects or raw API mappings interchangeably."""
    return [t if isinstance(t, Task) else Task.from_api(t) for t in items]
