"""
Process-local store implementing both `EventRepo` and `SubmissionRepo`.

Used for local development (`STORE_BACKEND=memory`) and by the test
suite. Every write builds the new state first and swaps it in under a
lock, so a failed fan-out or bulk update leaves nothing behind, matching
the transactional behaviour of the Postgres repositories.
"""

import datetime
import threading
from typing import Dict, List, Optional, Tuple

from errors import CreationFailed
from models import Event, Submission, SubmissionState, SubmissionStatus


class InMemoryStore:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.events: Dict[str, Event] = {}
        self.submissions: Dict[Tuple[str, str], Submission] = {}

    # events

    def insert_event_with_submissions(
        self, event: Event, submissions: List[Submission]
    ) -> int:
        staged: Dict[Tuple[str, str], Submission] = {}
        for s in submissions:
            key = (s.event_id, s.unit_id)
            if s.event_id != event.id:
                raise CreationFailed(f"Submission for unit {s.unit_id} targets another event")
            if key in staged:
                raise CreationFailed(f"Duplicate submission for unit {s.unit_id}")
            staged[key] = s
        with self._lock:
            if event.id in self.events:
                raise CreationFailed(f"Event {event.id} already exists")
            # Submissions first: readers reach them through the event.
            self.submissions = {**self.submissions, **staged}
            self.events = {**self.events, event.id: event}
        return len(staged)

    def fetch_event(self, event_id: str) -> Optional[Event]:
        return self.events.get(event_id)

    def delete_event(self, event_id: str) -> bool:
        with self._lock:
            if event_id not in self.events:
                return False
            self.events = {k: e for k, e in self.events.items() if k != event_id}
            self.submissions = {
                key: s for key, s in self.submissions.items() if key[0] != event_id
            }
        return True

    def fetch_events_between(
        self, start: datetime.date, end: datetime.date
    ) -> List[Event]:
        found = [e for e in self.events.values() if start <= e.date < end]
        return sorted(found, key=_event_order)

    def fetch_recent_events(self, limit: int) -> List[Event]:
        return sorted(self.events.values(), key=_event_order, reverse=True)[:limit]

    def ping(self) -> None:
        return None

    # submissions

    def fetch_submission(self, event_id: str, unit_id: str) -> Optional[Submission]:
        return self.submissions.get((event_id, unit_id))

    def update_submission(
        self,
        submission: Submission,
        require_status: Optional[SubmissionStatus] = None,
    ) -> bool:
        key = (submission.event_id, submission.unit_id)
        with self._lock:
            current = self.submissions.get(key)
            if current is None:
                return False
            if require_status is not None and current.status is not require_status:
                return False
            self.submissions[key] = submission
        return True

    def update_all_for_event(
        self, event_id: str, state: SubmissionState, updated_at: datetime.datetime
    ) -> Optional[int]:
        with self._lock:
            if event_id not in self.events:
                return None
            staged = {
                key: s.model_copy(update={"state": state, "updated_at": updated_at})
                for key, s in self.submissions.items()
                if key[0] == event_id
            }
            self.submissions = {**self.submissions, **staged}
        return len(staged)

    def fetch_for_event(self, event_id: str) -> Optional[List[Submission]]:
        if event_id not in self.events:
            return None
        return sorted(
            (s for key, s in self.submissions.items() if key[0] == event_id),
            key=lambda s: s.unit_id,
        )

    def fetch_for_events(self, event_ids: List[str]) -> Dict[str, List[Submission]]:
        out: Dict[str, List[Submission]] = {event_id: [] for event_id in event_ids}
        for (event_id, _), s in sorted(self.submissions.items()):
            if event_id in out:
                out[event_id].append(s)
        return out

    def fetch_unit_tasks(
        self,
        unit_id: str,
        start: Optional[datetime.date] = None,
        end: Optional[datetime.date] = None,
    ) -> List[Tuple[Event, Submission]]:
        pairs = []
        for (event_id, sub_unit), s in self.submissions.items():
            if sub_unit != unit_id:
                continue
            event = self.events.get(event_id)
            if event is None:
                continue
            if start is not None and event.date < start:
                continue
            if end is not None and event.date >= end:
                continue
            pairs.append((event, s))
        return sorted(pairs, key=lambda pair: _event_order(pair[0]))


def _event_order(event: Event):
    created = event.created_at or datetime.datetime.min.replace(tzinfo=datetime.timezone.utc)
    return (event.date, created, event.id)
