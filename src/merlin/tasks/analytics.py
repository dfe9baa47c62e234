# src/merlin/tasks/analytics.py

"""
Productivity analytics over a task list.

Pure functions: same tasks + same window + same `today` -> equal report.
All comparisons are on local calendar dates ("YYYY-MM-DD"), ranges are
inclusive on both ends, and a task without created/updated dates never
lands in any date-filtered bucket.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import date, timedelta
from enum import StrEnum
from typing import Any

from .task_models import Task, TaskStatus, as_tasks, local_date


class DateFilter(StrEnum):
    TODAY = "today"
    LAST_7_DAYS = "last7days"
    THIS_MONTH = "thismonth"
    CUSTOM = "custom"


@dataclass(frozen=True, slots=True)
class DateWindow:
    kind: DateFilter = DateFilter.LAST_7_DAYS
    start: date | None = None
    end: date | None = None

    @classmethod
    def custom(cls, start: date, end: date) -> DateWindow:
        return cls(DateFilter.CUSTOM, start, end)

    @classmethod
    def parse(cls, args: Sequence[str]) -> DateWindow:
        """
        Parse CLI-style arguments:
        [] | ["today"] | ["last7days"] | ["thismonth"] | ["YYYY-MM-DD", "YYYY-MM-DD"]
        """
        if not args:
            return cls()
        if len(args) == 1:
            return cls(DateFilter(args[0].strip().lower()))
        if len(args) == 2:
            return cls.custom(date.fromisoformat(args[0]), date.fromisoformat(args[1]))
        raise ValueError("expected a window name or a start and end date")


@dataclass(frozen=True, slots=True)
class DailyCompletion:
    day: date
    label: str
    completed: int


@dataclass(frozen=True, slots=True)
class WeeklyTrend:
    week: str
    label: str
    start: date
    end: date
    completed: int
    in_progress: int
    created: int


@dataclass(frozen=True, slots=True)
class AnalyticsReport:
    start: date
    end: date
    total: int
    completed: int
    in_progress: int
    todo: int
    remaining: int
    completed_this_month: int
    completion_pct: float
    in_progress_pct: float
    remaining_pct: float
    efficiency: float
    overall_progress: float
    daily_completions: tuple[DailyCompletion, ...]
    weekly_trends: tuple[WeeklyTrend, ...]
    status_breakdown: tuple[tuple[str, int], ...]


def _round1(x: float) -> float:
    """Round half up to one decimal."""
    return math.floor(x * 10 + 0.5) / 10


def _pct(part: int, total: int) -> float:
    return _round1(part / total * 100) if total > 0 else 0.0


def _short_label(d: date) -> str:
    return f"{d:%b} {d.day}"


def _in_range(d: date | None, start: date, end: date) -> bool:
    return d is not None and start <= d <= end


def resolve_date_range(window: DateWindow, today: date | None = None) -> tuple[date, date]:
    """Inclusive calendar-day range for a window."""
    today = today or date.today()
    kind = DateFilter(window.kind)

    if kind is DateFilter.TODAY:
        return today, today
    if kind is DateFilter.LAST_7_DAYS:
        return today - timedelta(days=6), today
    if kind is DateFilter.THIS_MONTH:
        return today.replace(day=1), today

    # CUSTOM: until both bounds are picked, show today only.
    if window.start is None or window.end is None:
        return today, today
    if window.start > window.end:
        raise ValueError(f"start {window.start} is after end {window.end}")
    return window.start, window.end


def filter_tasks_by_range(tasks: Iterable[Task], start: date, end: date) -> list[Task]:
    out: list[Task] = []
    for t in tasks:
        created = local_date(t.created_at)
        updated = local_date(t.updated_at)
        if created is None and updated is None:
            continue
        if _in_range(created, start, end) or _in_range(updated, start, end):
            out.append(t)
    return out


def _daily_completions(tasks: list[Task], today: date) -> tuple[DailyCompletion, ...]:
    out: list[DailyCompletion] = []
    for offset in range(6, -1, -1):
        day = today - timedelta(days=offset)
        count = sum(1 for t in tasks if t.status == TaskStatus.DONE and local_date(t.updated_at) == day)
        out.append(DailyCompletion(day=day, label=_short_label(day), completed=count))
    return tuple(out)


def _weekly_trends(tasks: list[Task], today: date) -> tuple[WeeklyTrend, ...]:
    weeks: list[WeeklyTrend] = []
    for week_index in range(4):
        end = today - timedelta(days=7 * week_index)
        start = end - timedelta(days=6)

        completed = in_progress = created = 0
        for t in tasks:
            updated = local_date(t.updated_at)
            if t.status == TaskStatus.DONE:
                if _in_range(updated, start, end):
                    completed += 1
            elif t.status == TaskStatus.IN_PROGRESS and _in_range(updated, start, end):
                in_progress += 1
            if _in_range(local_date(t.created_at), start, end):
                created += 1

        weeks.append(
            WeeklyTrend(
                week=f"Week {week_index + 1}",
                label=f"{_short_label(start)} - {_short_label(end)}",
                start=start,
                end=end,
                completed=completed,
                in_progress=in_progress,
                created=created,
            )
        )
    # Oldest week first.
    weeks.reverse()
    return tuple(weeks)


def compute_analytics(
    tasks: Iterable[Task | Mapping[str, Any]],
    window: DateWindow | None = None,
    *,
    today: date | None = None,
) -> AnalyticsReport:
    today = today or date.today()
    window = window or DateWindow()
    start, end = resolve_date_range(window, today)

    filtered = filter_tasks_by_range(as_tasks(tasks), start, end)

    total = len(filtered)
    completed = sum(1 for t in filtered if t.status == TaskStatus.DONE)
    in_progress = sum(1 for t in filtered if t.status == TaskStatus.IN_PROGRESS)
    todo = sum(1 for t in filtered if t.status == TaskStatus.TODO)
    remaining = todo + in_progress

    completed_this_month = 0
    for t in filtered:
        updated = local_date(t.updated_at)
        if t.status == TaskStatus.DONE and updated is not None:
            if (updated.year, updated.month) == (today.year, today.month):
                completed_this_month += 1

    overall = (completed + in_progress * 0.5) / total * 100 if total > 0 else 0.0

    breakdown = tuple(
        (name, value)
        for name, value in (("Done", completed), ("In Progress", in_progress), ("Todo", todo))
        if value > 0
    )

    return AnalyticsReport(
        start=start,
        end=end,
        total=total,
        completed=completed,
        in_progress=in_progress,
        todo=todo,
        remaining=remaining,
        completed_this_month=completed_this_month,
        completion_pct=_pct(completed, total),
        in_progress_pct=_pct(in_progress, total),
        remaining_pct=_pct(remaining, total),
        efficiency=_pct(completed, total),
        overall_progress=_round1(overall),
        daily_completions=_daily_completions(filtered, today),
        weekly_trends=_weekly_trends(filtered, today),
        status_breakdown=breakdown,
    )


def format_report(report: AnalyticsReport) -> str:
    """Plain-text rendering for the console dashboard."""
    lines = [
        f"Analytics {report.start.isoformat()} .. {report.end.isoformat()}",
        f"  Total tasks:      {report.total}",
        f"  Completed:        {report.completed} ({report.completion_pct}%)",
        f"  In progress:      {report.in_progress} ({report.in_progress_pct}%)",
        f"  Remaining:        {report.remaining} ({report.remaining_pct}%)",
        f"  Done this month:  {report.completed_this_month}",
        f"  Efficiency:       {report.efficiency}%",
        f"  Overall progress: {report.overall_progress}%",
        "  Daily completions (last 7 days):",
    ]
    lines.extend(f"    {d.label:>7}: {'#' * d.completed} {d.completed}" for d in report.daily_completions)
    lines.append("  Weekly trend (oldest first):")
    lines.extend(
        f"    {w.label}: completed={w.completed} in_progress={w.in_progress} created={w.created}"
        for w in report.weekly_trends
    )
    return "\n".join(lines)
