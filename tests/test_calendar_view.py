import datetime

import pytest

from calendar_view import classify_task, month_bounds
from errors import InvalidInput
from models import SubmissionStatus, TaskUrgency
from settings import settings

D = datetime.date


def test_month_bounds_handles_december():
    assert month_bounds(2026, 12) == (D(2026, 12, 1), D(2027, 1, 1))
    assert month_bounds(2026, 2) == (D(2026, 2, 1), D(2026, 3, 1))


@pytest.mark.parametrize("year, month", [(2026, 0), (2026, 13), (0, 5), ("2026", 5)])
def test_month_bounds_rejects_invalid_months(year, month):
    with pytest.raises(InvalidInput):
        month_bounds(year, month)


@pytest.mark.parametrize(
    "due, status, expected",
    [
        (D(2026, 3, 1), SubmissionStatus.COMPLETED, TaskUrgency.DONE),
        (D(2026, 3, 1), SubmissionStatus.DISPENSED, TaskUrgency.WAIVED),
        (D(2026, 3, 9), SubmissionStatus.PENDING, TaskUrgency.OVERDUE),
        (D(2026, 3, 10), SubmissionStatus.PENDING, TaskUrgency.DUE_SOON),
        (D(2026, 3, 13), SubmissionStatus.PENDING, TaskUrgency.DUE_SOON),
        (D(2026, 3, 14), SubmissionStatus.PENDING, TaskUrgency.OPEN),
    ],
)
def test_classify_task(due, status, expected):
    assert classify_task(due, status, D(2026, 3, 10), due_soon_days=3) is expected


def test_events_in_month_is_lazy_and_restartable(events, calendar_svc, store, operator, monkeypatch):
    events.create_event(D(2026, 3, 20), "CLEANING", "MONTHLY", ["u1"], caller=operator)
    events.create_event(D(2026, 3, 2), "MEALS", "MONTHLY", ["u1"], caller=operator)
    events.create_event(D(2026, 4, 1), "SECURITY", "MONTHLY", ["u1"], caller=operator)

    calls = []
    original = store.fetch_events_between
    monkeypatch.setattr(
        store, "fetch_events_between", lambda s, e: calls.append((s, e)) or original(s, e)
    )

    view = calendar_svc.events_in_month(2026, 3)
    assert calls == []

    first = [(e.category.value, day) for e, day in view]
    events.create_event(D(2026, 3, 31), "TELEPHONE", "ONE_OFF", ["u1"], caller=operator)
    second = [(e.category.value, day) for e, day in view]

    assert first == [("MEALS", 2), ("CLEANING", 20)]
    assert second == [("MEALS", 2), ("CLEANING", 20), ("TELEPHONE", 31)]
    assert len(calls) == 2


def test_month_grid_includes_every_day(events, calendar_svc, operator):
    events.create_event(D(2026, 2, 14), "CLEANING", "MONTHLY", ["u1"], caller=operator)
    events.create_event(D(2026, 2, 14), "MEALS", "MONTHLY", ["u1"], caller=operator)

    grid = calendar_svc.month_grid(2026, 2)

    assert sorted(grid) == list(range(1, 29))
    assert [e.category.value for e in grid[14]] == ["CLEANING", "MEALS"]
    assert grid[1] == []


def test_tasks_for_unit_sorted_with_urgency(events, submissions, calendar_svc, operator):
    late = events.create_event(D(2026, 3, 5), "CLEANING", "MONTHLY", ["u1", "u2"], caller=operator)
    soon = events.create_event(D(2026, 3, 12), "MEALS", "MONTHLY", ["u1", "u2"], caller=operator)
    done = events.create_event(D(2026, 3, 1), "SECURITY", "MONTHLY", ["u1", "u2"], caller=operator)
    events.create_event(D(2026, 3, 25), "TELEPHONE", "MONTHLY", ["u1", "u2"], caller=operator)
    events.create_event(D(2026, 3, 8), "CAREGIVER", "MONTHLY", ["u2"], caller=operator)
    events.create_event(D(2026, 4, 2), "CLEANING", "MONTHLY", ["u1"], caller=operator)
    submissions.set_completed(done.id, "u1", 9, caller=operator)

    tasks = calendar_svc.tasks_for_unit("u1", 2026, 3)

    assert [t.event.date.day for t in tasks] == [1, 5, 12, 25]
    assert [t.urgency for t in tasks] == [
        TaskUrgency.DONE,
        TaskUrgency.OVERDUE,
        TaskUrgency.DUE_SOON,
        TaskUrgency.OPEN,
    ]
    assert tasks[1].event.id == late.id
    assert tasks[2].event.id == soon.id
    assert tasks[0].submission.rating == 9


def test_tasks_for_unit_honours_explicit_today(events, calendar_svc, operator):
    events.create_event(D(2026, 3, 5), "CLEANING", "MONTHLY", ["u1"], caller=operator)

    tasks = calendar_svc.tasks_for_unit("u1", 2026, 3, today=D(2026, 3, 1))

    assert tasks[0].urgency is TaskUrgency.OPEN


def test_due_soon_window_comes_from_settings(events, calendar_svc, operator, monkeypatch):
    monkeypatch.setattr(settings, "due_soon_days", 0)
    events.create_event(D(2026, 3, 11), "CLEANING", "MONTHLY", ["u1"], caller=operator)

    assert calendar_svc.tasks_for_unit("u1", 2026, 3)[0].urgency is TaskUrgency.OPEN


def test_unit_month_stats(events, submissions, calendar_svc, operator):
    a = events.create_event(D(2026, 3, 5), "CLEANING", "MONTHLY", ["u1"], caller=operator)
    b = events.create_event(D(2026, 3, 6), "MEALS", "MONTHLY", ["u1"], caller=operator)
    events.create_event(D(2026, 3, 7), "SECURITY", "MONTHLY", ["u1"], caller=operator)
    c = events.create_event(D(2026, 3, 8), "TELEPHONE", "MONTHLY", ["u1"], caller=operator)
    submissions.set_completed(a.id, "u1", 6, caller=operator)
    submissions.set_completed(b.id, "u1", 9, caller=operator)
    submissions.set_dispensed(c.id, "u1", caller=operator)

    stats = calendar_svc.unit_month_stats("u1", 2026, 3)

    assert (stats.total, stats.pending, stats.completed, stats.dispensed) == (4, 1, 2, 1)
    assert stats.delivery_pct == 75.0
    assert stats.average_rating == 7.5


def test_unit_month_stats_for_empty_month(calendar_svc):
    stats = calendar_svc.unit_month_stats("u1", 2026, 3)

    assert stats.total == 0
    assert stats.delivery_pct == 100.0
    assert stats.average_rating is None
