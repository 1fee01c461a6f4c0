"""
Repository: SQL operations for `monitoring_events`.

This file contains only DB interaction code. It maps Pydantic models
to SQL parameters and converts DB rows back into models. Keep business
rules out of this module.

Important notes:
- SQL strings use positional parameters for psycopg.
- `insert_event_with_submissions` writes the event row and every
  submission row inside one transaction; readers never see an event
  with a partial set of submissions.
- Deleting an event relies on `ON DELETE CASCADE` on
  `monitoring_submissions.event_id` (see scripts/create_monitoring_tables.py).
"""

import datetime
import logging
from typing import Callable, List, Optional

import psycopg

from db import get_conn, store_errors
from errors import CreationFailed
from models import Event, ServiceCategory, Submission

logger = logging.getLogger(__name__)

EVENT_COLUMNS = "id, date, category, recurrence_label, created_at"


def event_from_row(r) -> Event:
    return Event(
        id=str(r[0]),
        date=r[1],
        category=ServiceCategory(r[2]),
        recurrence_label=r[3],
        created_at=r[4],
    )


class EventRepo:
    """DB access only. No business logic here.

    Responsibilities:
    - Map `Event`/`Submission` -> SQL parameters
    - Execute queries and return model objects
    - Keep transaction/commit boundaries local and explicit
    """

    def __init__(self, connection_factory: Optional[Callable] = None):
        self._connect = connection_factory or get_conn

    def insert_event_with_submissions(
        self, event: Event, submissions: List[Submission]
    ) -> int:
        """Persist the event and its fan-out in a single transaction.

        Returns the number of submission rows written. Integrity or data
        errors roll the whole transaction back and surface as
        `CreationFailed`.
        """

        rows = [
            (s.event_id, s.unit_id, s.status.value, s.rating, s.updated_at)
            for s in submissions
        ]
        try:
            with store_errors(), self._connect() as conn:
                with conn.transaction():
                    with conn.cursor() as cur:
                        cur.execute(
                            "INSERT INTO monitoring_events (id, date, category, recurrence_label, created_at) "
                            "VALUES (%s, %s, %s, %s, %s)",
                            (
                                event.id,
                                event.date,
                                event.category.value,
                                event.recurrence_label,
                                event.created_at,
                            ),
                        )
                        cur.executemany(
                            "INSERT INTO monitoring_submissions (event_id, unit_id, status, rating, updated_at) "
                            "VALUES (%s, %s, %s, %s, %s)",
                            rows,
                        )
                logger.debug("Inserted event %s with %d submissions", event.id, len(rows))
        except (psycopg.IntegrityError, psycopg.DataError) as e:
            raise CreationFailed(f"Fan-out for event {event.id} failed: {e}") from e
        return len(rows)

    def fetch_event(self, event_id: str) -> Optional[Event]:
        with store_errors(), self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"SELECT {EVENT_COLUMNS} FROM monitoring_events WHERE id=%s",
                    (event_id,),
                )
                r = cur.fetchone()
                return event_from_row(r) if r else None

    def delete_event(self, event_id: str) -> bool:
        """Delete an event; its submissions go with it via the FK cascade."""

        with store_errors(), self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "DELETE FROM monitoring_events WHERE id=%s RETURNING id",
                    (event_id,),
                )
                return cur.fetchone() is not None

    def fetch_events_between(
        self, start: datetime.date, end: datetime.date
    ) -> List[Event]:
        """Events with `start <= date < end`, oldest first."""

        with store_errors(), self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"SELECT {EVENT_COLUMNS} FROM monitoring_events "
                    "WHERE date >= %s AND date < %s ORDER BY date, created_at, id",
                    (start, end),
                )
                return [event_from_row(r) for r in cur.fetchall()]

    def fetch_recent_events(self, limit: int) -> List[Event]:
        """The `limit` events with the latest due dates, newest first."""

        with store_errors(), self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"SELECT {EVENT_COLUMNS} FROM monitoring_events "
                    "ORDER BY date DESC, created_at DESC LIMIT %s",
                    (limit,),
                )
                return [event_from_row(r) for r in cur.fetchall()]

    def ping(self) -> None:
        """Lightweight DB health check. Raises on error.

        Used by the top-level `/health` endpoint to validate DB reachability.
        """

        with store_errors(), self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1;")
