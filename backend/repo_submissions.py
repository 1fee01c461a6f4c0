"""
Repository: SQL operations for `monitoring_submissions`.

DB interaction only. Status/rating validation happens in the service
layer; the table's CHECK constraint is the last line that keeps
`rating IS NOT NULL` tied to `status = 'COMPLETED'`.

Important notes:
- `update_submission` can be made conditional on the current status so a
  rating edit never lands on a row that was concurrently reverted.
- `update_all_for_event` locks the event row and updates every submission
  in one statement inside one transaction.
"""

import datetime
from typing import Callable, Dict, List, Optional, Tuple

from db import get_conn, store_errors
from models import Event, Submission, SubmissionState, SubmissionStatus, state_from_row
from repo_events import event_from_row

SUBMISSION_COLUMNS = "s.event_id, s.unit_id, s.status, s.rating, s.updated_at"


def submission_from_row(r) -> Submission:
    return Submission(
        event_id=str(r[0]),
        unit_id=r[1],
        state=state_from_row(r[2], r[3]),
        updated_at=r[4],
    )


class SubmissionRepo:
    """DB access only. No business logic here."""

    def __init__(self, connection_factory: Optional[Callable] = None):
        self._connect = connection_factory or get_conn

    def fetch_submission(self, event_id: str, unit_id: str) -> Optional[Submission]:
        with store_errors(), self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"SELECT {SUBMISSION_COLUMNS} FROM monitoring_submissions s "
                    "WHERE s.event_id=%s AND s.unit_id=%s",
                    (event_id, unit_id),
                )
                r = cur.fetchone()
                return submission_from_row(r) if r else None

    def update_submission(
        self,
        submission: Submission,
        require_status: Optional[SubmissionStatus] = None,
    ) -> bool:
        """Write status, rating and updated_at for one (event, unit) pair.

        Returns False when no row matched, either because the pair does not
        exist or because its status differs from `require_status`.
        """

        sql = (
            "UPDATE monitoring_submissions SET status=%s, rating=%s, updated_at=%s "
            "WHERE event_id=%s AND unit_id=%s"
        )
        params = [
            submission.status.value,
            submission.rating,
            submission.updated_at,
            submission.event_id,
            submission.unit_id,
        ]
        if require_status is not None:
            sql += " AND status=%s"
            params.append(require_status.value)
        sql += " RETURNING unit_id"

        with store_errors(), self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, tuple(params))
                return cur.fetchone() is not None

    def update_all_for_event(
        self, event_id: str, state: SubmissionState, updated_at: datetime.datetime
    ) -> Optional[int]:
        """Apply one state to every submission of an event atomically.

        Returns the number of rows updated, or None if the event does not
        exist.
        """

        rating = getattr(state, "rating", None)
        with store_errors(), self._connect() as conn:
            with conn.transaction():
                with conn.cursor() as cur:
                    cur.execute(
                        "SELECT id FROM monitoring_events WHERE id=%s FOR UPDATE",
                        (event_id,),
                    )
                    if cur.fetchone() is None:
                        return None
                    cur.execute(
                        "UPDATE monitoring_submissions SET status=%s, rating=%s, updated_at=%s "
                        "WHERE event_id=%s",
                        (state.status, rating, updated_at, event_id),
                    )
                    return cur.rowcount

    def fetch_for_event(self, event_id: str) -> Optional[List[Submission]]:
        """All submissions of an event ordered by unit, or None if the event is gone.

        A LEFT JOIN from the event row lets one statement distinguish
        "no such event" (no rows) from "event without submissions" (one row
        of NULLs).
        """

        with store_errors(), self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "SELECT e.id, s.unit_id, s.status, s.rating, s.updated_at "
                    "FROM monitoring_events e "
                    "LEFT JOIN monitoring_submissions s ON s.event_id = e.id "
                    "WHERE e.id=%s ORDER BY s.unit_id",
                    (event_id,),
                )
                rows = cur.fetchall()
        if not rows:
            return None
        return [submission_from_row(r) for r in rows if r[1] is not None]

    def fetch_for_events(self, event_ids: List[str]) -> Dict[str, List[Submission]]:
        out: Dict[str, List[Submission]] = {event_id: [] for event_id in event_ids}
        if not event_ids:
            return out
        with store_errors(), self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"SELECT {SUBMISSION_COLUMNS} FROM monitoring_submissions s "
                    "WHERE s.event_id = ANY(%s) ORDER BY s.event_id, s.unit_id",
                    (list(event_ids),),
                )
                for r in cur.fetchall():
                    sub = submission_from_row(r)
                    out[sub.event_id].append(sub)
        return out

    def fetch_unit_tasks(
        self,
        unit_id: str,
        start: Optional[datetime.date] = None,
        end: Optional[datetime.date] = None,
    ) -> List[Tuple[Event, Submission]]:
        """A unit's (event, submission) pairs, oldest due date first.

        `start` is inclusive and `end` exclusive; either may be omitted.
        """

        sql = (
            "SELECT e.id, e.date, e.category, e.recurrence_label, e.created_at, "
            f"{SUBMISSION_COLUMNS} "
            "FROM monitoring_submissions s "
            "JOIN monitoring_events e ON e.id = s.event_id "
            "WHERE s.unit_id=%s"
        )
        params: list = [unit_id]
        if start is not None:
            sql += " AND e.date >= %s"
            params.append(start)
        if end is not None:
            sql += " AND e.date < %s"
            params.append(end)
        sql += " ORDER BY e.date, e.created_at, e.id"

        with store_errors(), self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, tuple(params))
                return [
                    (event_from_row(r[:5]), submission_from_row(r[5:]))
                    for r in cur.fetchall()
                ]
