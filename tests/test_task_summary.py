# tests/test_task_summary.py

from __future__ import annotations

from datetime import date

from merlin.tasks.summary import TaskSummary, generate_task_summary, summarize_tasks

TODAY = date(2026, 10, 19)


def test_empty_list_is_all_zero() -> None:
    assert summarize_tasks([], today=TODAY) == TaskSummary(0, 0, 0, 0, 0, 0)


def test_done_today_and_todo() -> None:
    tasks = [
        {"status": "done", "updatedAt": "2026-10-19T08:30:00"},
        {"status": "todo"},
    ]

    s = summarize_tasks(tasks, today=TODAY)

    assert s == TaskSummary(completed_today=1, pending=1, total=2, completed=1, in_progress=0, todo=1)


def test_underscore_status_counts_as_in_progress() -> None:
    a = summarize_tasks([{"status": "in_progress"}], today=TODAY)
    b = summarize_tasks([{"status": "in-progress"}], today=TODAY)

    assert a == b
    assert a.in_progress == 1
    assert a.pending == 1


def test_done_on_other_day_is_not_completed_today() -> None:
    s = summarize_tasks(
        [{"status": "done", "updated_at": "2026-10-18T23:59:59"}, {"status": "done"}],
        today=TODAY,
    )

    assert s.completed == 2
    assert s.completed_today == 0


def test_order_does_not_matter() -> None:
    tasks = [
        {"status": "done", "updatedAt": "2026-10-19T01:00:00"},
        {"status": "in-progress"},
        {"status": "todo"},
        {"status": "archived"},
    ]

    forward = summarize_tasks(tasks, today=TODAY)
    backward = summarize_tasks(list(reversed(tasks)), today=TODAY)

    assert forward == backward
    # Unknown statuses still count as pending.
    assert forward.pending == 3


def test_text_format() -> None:
    text = generate_task_summary([{"status": "todo"}], today=TODAY)

    assert text == (
        "User summary:\n"
        "- Completed today: 0\n"
        "- Pending: 1\n"
        "- Total tasks: 1\n"
        "- Completed: 0\n"
        "- In progress: 0\n"
        "- Todo: 1"
    )
