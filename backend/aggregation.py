"""
Read-side rollups over submissions.

Nothing here is persisted: every figure is recomputed from the current
submission rows on each call.

- coverage: resolved (COMPLETED or DISPENSED) / total * 100, 0.0 when empty
- average rating: mean over COMPLETED ratings only; PENDING and DISPENSED
  rows are excluded rather than counted as zero. 0.0 means "no data" and
  `rated_count` tells it apart from a genuine average of zero.
"""

from collections import Counter
from typing import Dict, Iterable, List, Optional, Sequence

from errors import EventNotFound
from models import (
    Event,
    EventReport,
    EventSummary,
    ReportRow,
    ServiceCategory,
    Submission,
    SubmissionStatus,
    Unit,
)
from repo_events import EventRepo
from repo_submissions import SubmissionRepo
from settings import settings


def coverage(submissions: Sequence[Submission]) -> float:
    if not submissions:
        return 0.0
    resolved = sum(1 for s in submissions if s.is_resolved)
    return resolved / len(submissions) * 100


def completed_ratings(submissions: Iterable[Submission]) -> List[int]:
    return [
        s.rating
        for s in submissions
        if s.status is SubmissionStatus.COMPLETED and s.rating is not None
    ]


def average_rating(submissions: Iterable[Submission]) -> float:
    ratings = completed_ratings(submissions)
    if not ratings:
        return 0.0
    return sum(ratings) / len(ratings)


def summarize(event: Event, submissions: Sequence[Submission]) -> EventSummary:
    counts = Counter(s.status for s in submissions)
    return EventSummary(
        event=event,
        total=len(submissions),
        pending=counts[SubmissionStatus.PENDING],
        completed=counts[SubmissionStatus.COMPLETED],
        dispensed=counts[SubmissionStatus.DISPENSED],
        coverage_pct=round(coverage(submissions), 1),
        average_rating=round(average_rating(submissions), 1),
        rated_count=len(completed_ratings(submissions)),
    )


class AggregationService:
    """Coverage, ratings, event reports and the regional dashboard."""

    def __init__(self, event_repo: EventRepo, submission_repo: SubmissionRepo):
        self.event_repo = event_repo
        self.submission_repo = submission_repo

    def _submissions(self, event_id: str) -> List[Submission]:
        submissions = self.submission_repo.fetch_for_event(event_id)
        if submissions is None:
            raise EventNotFound(event_id)
        return submissions

    def coverage(self, event_id: str) -> float:
        return coverage(self._submissions(event_id))

    def average_rating(self, event_id: str) -> float:
        return average_rating(self._submissions(event_id))

    def event_summary(self, event_id: str) -> EventSummary:
        event = self.event_repo.fetch_event(event_id)
        if event is None:
            raise EventNotFound(event_id)
        return summarize(event, self._submissions(event_id))

    def event_report(self, event_id: str, roster: Iterable[Unit] = ()) -> EventReport:
        """Summary plus one row per submission, for the report renderer.

        Unit names come from the current roster; units that have since left
        it are listed by id.
        """

        names = {u.id: u.name for u in roster}
        event = self.event_repo.fetch_event(event_id)
        if event is None:
            raise EventNotFound(event_id)
        submissions = self._submissions(event_id)
        rows = [
            ReportRow(
                unit_id=s.unit_id,
                unit_name=names.get(s.unit_id) or s.unit_id,
                status=s.status,
                rating=s.rating,
                updated_at=s.updated_at,
            )
            for s in submissions
        ]
        rows.sort(key=lambda r: (r.unit_name.casefold(), r.unit_id))
        return EventReport(summary=summarize(event, submissions), rows=rows)

    def recent_events_dashboard(self, limit: Optional[int] = None) -> List[EventSummary]:
        """Latest events by due date, newest first, each with its rollup."""

        if limit is None:
            limit = settings.recent_events_limit
        events = self.event_repo.fetch_recent_events(max(1, limit))
        by_event = self.submission_repo.fetch_for_events([e.id for e in events])
        return [summarize(e, by_event.get(e.id, [])) for e in events]

    def unit_category_satisfaction(
        self, unit_id: str
    ) -> Dict[ServiceCategory, Optional[float]]:
        """Mean rating per service category for one unit; None means no data."""

        by_category: Dict[ServiceCategory, List[Submission]] = {c: [] for c in ServiceCategory}
        for event, submission in self.submission_repo.fetch_unit_tasks(unit_id):
            by_category[event.category].append(submission)
        out: Dict[ServiceCategory, Optional[float]] = {}
        for category, submissions in by_category.items():
            ratings = completed_ratings(submissions)
            out[category] = round(sum(ratings) / len(ratings), 1) if ratings else None
        return out
