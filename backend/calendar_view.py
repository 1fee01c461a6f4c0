"""
Month-scoped projections for the calendar and the unit task list.

Overdue/due-soon flags are display policy computed against "today" on
every read; they are never written back to the store.
"""

import calendar
import datetime
from typing import Callable, Dict, Iterator, List, Optional, Tuple

from aggregation import completed_ratings
from errors import InvalidInput
from models import Event, SubmissionStatus, TaskUrgency, UnitMonthStats, UnitTask
from repo_events import EventRepo
from repo_submissions import SubmissionRepo
from settings import settings


def month_bounds(year: int, month: int) -> Tuple[datetime.date, datetime.date]:
    """First day of the month and first day of the following month."""

    if not isinstance(year, int) or not datetime.MINYEAR <= year <= datetime.MAXYEAR:
        raise InvalidInput(f"Invalid year: {year!r}")
    if not isinstance(month, int) or not 1 <= month <= 12:
        raise InvalidInput(f"Invalid month: {month!r}")
    start = datetime.date(year, month, 1)
    if month == 12:
        if year == datetime.MAXYEAR:
            return start, datetime.date.max
        return start, datetime.date(year + 1, 1, 1)
    return start, datetime.date(year, month + 1, 1)


def classify_task(
    due: datetime.date,
    status: SubmissionStatus,
    today: datetime.date,
    due_soon_days: int,
) -> TaskUrgency:
    if status is SubmissionStatus.COMPLETED:
        return TaskUrgency.DONE
    if status is SubmissionStatus.DISPENSED:
        return TaskUrgency.WAIVED
    if due < today:
        return TaskUrgency.OVERDUE
    if (due - today).days <= due_soon_days:
        return TaskUrgency.DUE_SOON
    return TaskUrgency.OPEN


class MonthEvents:
    """(event, day of month) pairs for one month, oldest first.

    Nothing is fetched until iteration starts, and each new iteration
    reads the store again.
    """

    def __init__(self, repo: EventRepo, start: datetime.date, end: datetime.date):
        self._repo = repo
        self.start = start
        self.end = end

    def __iter__(self) -> Iterator[Tuple[Event, int]]:
        for event in self._repo.fetch_events_between(self.start, self.end):
            yield event, event.date.day


class CalendarService:
    def __init__(
        self,
        event_repo: EventRepo,
        submission_repo: SubmissionRepo,
        today: Callable[[], datetime.date] = datetime.date.today,
    ):
        self.event_repo = event_repo
        self.submission_repo = submission_repo
        self.today = today

    def events_in_month(self, year: int, month: int) -> MonthEvents:
        start, end = month_bounds(year, month)
        return MonthEvents(self.event_repo, start, end)

    def month_grid(self, year: int, month: int) -> Dict[int, List[Event]]:
        """Events grouped by day; every day of the month is present."""

        events = self.events_in_month(year, month)
        days = calendar.monthrange(year, month)[1]
        grid: Dict[int, List[Event]] = {day: [] for day in range(1, days + 1)}
        for event, day in events:
            grid[day].append(event)
        return grid

    def tasks_for_unit(
        self,
        unit_id: str,
        year: int,
        month: int,
        today: Optional[datetime.date] = None,
    ) -> List[UnitTask]:
        """The unit's submissions for events due in the month, by due date."""

        start, end = month_bounds(year, month)
        today = today or self.today()
        return [
            UnitTask(
                event=event,
                submission=submission,
                urgency=classify_task(
                    event.date, submission.status, today, settings.due_soon_days
                ),
            )
            for event, submission in self.submission_repo.fetch_unit_tasks(unit_id, start, end)
        ]

    def unit_month_stats(self, unit_id: str, year: int, month: int) -> UnitMonthStats:
        start, end = month_bounds(year, month)
        submissions = [
            s for _, s in self.submission_repo.fetch_unit_tasks(unit_id, start, end)
        ]
        total = len(submissions)
        pending = sum(1 for s in submissions if s.status is SubmissionStatus.PENDING)
        completed = sum(1 for s in submissions if s.status is SubmissionStatus.COMPLETED)
        ratings = completed_ratings(submissions)
        return UnitMonthStats(
            unit_id=unit_id,
            year=year,
            month=month,
            total=total,
            pending=pending,
            completed=completed,
            dispensed=total - pending - completed,
            # A month with nothing scheduled counts as fully delivered.
            delivery_pct=round((total - pending) / total * 100, 1) if total else 100.0,
            average_rating=round(sum(ratings) / len(ratings), 1) if ratings else None,
        )
