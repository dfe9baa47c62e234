# tests/test_analytics.py

from __future__ import annotations

from datetime import date

import pytest

from merlin.tasks.analytics import (
    DateFilter,
    DateWindow,
    compute_analytics,
    format_report,
    resolve_date_range,
)

TODAY = date(2026, 10, 19)


def _t(status: str, created: str | None = None, updated: str | None = None) -> dict:
    out: dict = {"id": f"{status}-{created}-{updated}", "title": "t", "status": status}
    if created:
        out["created_at"] = created
    if updated:
        out["updated_at"] = updated
    return out


def test_resolve_named_windows() -> None:
    assert resolve_date_range(DateWindow(DateFilter.TODAY), TODAY) == (TODAY, TODAY)
    assert resolve_date_range(DateWindow(DateFilter.LAST_7_DAYS), TODAY) == (date(2026, 10, 13), TODAY)
    assert resolve_date_range(DateWindow(DateFilter.THIS_MONTH), TODAY) == (date(2026, 10, 1), TODAY)


def test_custom_window_without_bounds_is_today() -> None:
    assert resolve_date_range(DateWindow(DateFilter.CUSTOM, start=date(2026, 1, 1)), TODAY) == (TODAY, TODAY)


def test_custom_window_start_after_end_is_rejected() -> None:
    with pytest.raises(ValueError):
        resolve_date_range(DateWindow.custom(date(2026, 10, 20), date(2026, 10, 1)), TODAY)


def test_range_is_inclusive_on_both_ends() -> None:
    tasks = [
        _t("todo", created="2026-10-01T00:00:00"),
        _t("todo", created="2026-10-05T23:59:00"),
        _t("todo", created="2026-09-30T23:59:00"),
        _t("todo", created="2026-10-06T00:00:00"),
    ]

    report = compute_analytics(tasks, DateWindow.custom(date(2026, 10, 1), date(2026, 10, 5)), today=TODAY)

    assert report.total == 2


def test_tasks_without_dates_are_excluded() -> None:
    tasks = [_t("done"), _t("todo", created="2026-10-19T10:00:00")]

    report = compute_analytics(tasks, DateWindow(DateFilter.TODAY), today=TODAY)

    assert report.total == 1
    assert report.completed == 0


def test_updated_date_alone_can_match() -> None:
    tasks = [_t("done", created="2026-09-01T10:00:00", updated="2026-10-18T10:00:00")]

    report = compute_analytics(tasks, DateWindow(DateFilter.LAST_7_DAYS), today=TODAY)

    assert report.total == 1
    assert report.completed == 1
    assert report.completed_this_month == 1


def test_percentages_round_half_up() -> None:
    tasks = [
        _t("done", created="2026-10-19T09:00:00", updated="2026-10-19T10:00:00"),
        _t("in-progress", created="2026-10-19T09:00:00"),
        _t("todo", created="2026-10-19T09:00:00"),
    ]

    report = compute_analytics(tasks, DateWindow(DateFilter.TODAY), today=TODAY)

    assert report.completion_pct == 33.3
    assert report.remaining == 2
    assert report.remaining_pct == 66.7
    assert report.overall_progress == 50.0
    assert report.status_breakdown == (("Done", 1), ("In Progress", 1), ("Todo", 1))


def test_empty_report_is_zero() -> None:
    report = compute_analytics([], today=TODAY)

    assert report.total == 0
    assert report.completion_pct == 0.0
    assert report.overall_progress == 0.0
    assert report.status_breakdown == ()
    assert [d.completed for d in report.daily_completions] == [0] * 7


def test_daily_and_weekly_series() -> None:
    tasks = [
        _t("done", created="2026-10-10T09:00:00", updated="2026-10-19T10:00:00"),
        _t("done", created="2026-10-10T09:00:00", updated="2026-10-13T10:00:00"),
    ]

    report = compute_analytics(tasks, DateWindow(DateFilter.THIS_MONTH), today=TODAY)

    days = report.daily_completions
    assert days[0].day == date(2026, 10, 13)
    assert days[-1].day == TODAY
    assert days[0].completed == 1 and days[-1].completed == 1
    assert days[-1].label == "Oct 19"

    weeks = report.weekly_trends
    assert [w.end for w in weeks] == [
        date(2026, 9, 28),
        date(2026, 10, 5),
        date(2026, 10, 12),
        date(2026, 10, 19),
    ]
    assert weeks[-1].completed == 2
    assert weeks[-2].created == 2


def test_same_input_same_report() -> None:
    tasks = [_t("todo", created="2026-10-19T09:00:00")]
    window = DateWindow(DateFilter.LAST_7_DAYS)

    assert compute_analytics(tasks, window, today=TODAY) == compute_analytics(tasks, window, today=TODAY)


def test_parse_and_format() -> None:
    assert DateWindow.parse([]) == DateWindow()
    assert DateWindow.parse(["Today"]).kind is DateFilter.TODAY
    assert DateWindow.parse(["2026-10-01", "2026-10-05"]) == DateWindow.custom(date(2026, 10, 1), date(2026, 10, 5))
    with pytest.raises(ValueError):
        DateWindow.parse(["fortnight"])

    text = format_report(compute_analytics([], today=TODAY))
    assert text.startswith("Analytics 2026-10-13 .. 2026-10-19")
