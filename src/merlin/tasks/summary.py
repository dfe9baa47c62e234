# src/merlin/tasks/summary.py

"""Compact text digest of task state, injected into assistant prompts."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date
from typing import Any

from .task_models import Task, TaskStatus, as_tasks, local_date


@dataclass(frozen=True, slots=True)
class TaskSummary:
    completed_today: int
    pending: int
    total: int
    completed: int
    in_progress: int
    todo: int

    def to_text(self) -> str:
        return (
            "User summary:\n"
            f"- Completed today: {self.completed_today}\n"
            f"- Pending: {self.pending}\n"
            f"- Total tasks: {self.total}\n"
            f"- Completed: {self.completed}\n"
            f"- In progress: {self.in_progress}\n"
            f"- Todo: {self.todo}"
        )


def summarize_tasks(
    tasks: Iterable[Task | Mapping[str, Any]],
    *,
    today: date | None = None,
) -> TaskSummary:
    items = as_tasks(tasks)
    today = today or date.today()

    completed = in_progress = todo = completed_today = 0
    for t in items:
        if t.status == TaskStatus.DONE:
            completed += 1
            if local_date(t.updated_at) == today:
                completed_today += 1
        elif t.status == TaskStatus.IN_PROGRESS:
            in_progress += 1
        elif t.status == TaskStatus.TODO:
            todo += 1

    return TaskSummary(
        completed_today=completed_today,
        pending=len(items) - completed,
        total=len(items),
        completed=completed,
        in_progress=in_progress,
        todo=todo,
    )


def generate_task_summary(
    tasks: Iterable[Task | Mapping[str, Any]],
    *,
    today: date | None = None,
) -> str:
    return summarize_tasks(tasks, today=today).to_text()
