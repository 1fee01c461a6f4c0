"""
Service / facade layer for monitoring events.

This module implements business rules and normalization before any DB
interaction. It is intentionally free of SQL; it calls `EventRepo` to
perform database operations. All event writes go through this service
so validation and access checks live in one place.

Key responsibilities:
- validate event input (calendar date, known category, recurrence label)
- protect the system (non-empty roster, max roster size)
- fan out one PENDING submission per roster unit, persisted atomically
  with the event
- restrict event creation and deletion to operators via `caller`
"""

import datetime
import logging
import uuid
from typing import Callable, Iterable, List, Union

from errors import CreationFailed, EventNotFound, InvalidInput
from models import Caller, Event, Pending, ServiceCategory, Submission, Unit
from repo_events import EventRepo
from settings import settings

logger = logging.getLogger(__name__)

MAX_RECURRENCE_LABEL_LENGTH = 32


def utc_now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def require_operator(caller: Caller, action: str) -> None:
    if not caller.is_operator:
        raise PermissionError(f"Only operators can {action}")


def parse_event_date(value: Union[datetime.date, str]) -> datetime.date:
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    if isinstance(value, str):
        try:
            return datetime.date.fromisoformat(value)
        except ValueError:
            pass
    raise InvalidInput(f"Not a valid calendar date: {value!r}")


def parse_category(value: Union[ServiceCategory, str]) -> ServiceCategory:
    if isinstance(value, str) and not isinstance(value, ServiceCategory):
        value = value.strip().upper()
    try:
        return ServiceCategory(value)
    except ValueError:
        allowed = ", ".join(c.value for c in ServiceCategory)
        raise InvalidInput(
            f"Unsupported service category: {value!r} (expected one of {allowed})"
        ) from None


def normalize_recurrence_label(label: str) -> str:
    if not isinstance(label, str) or not label.strip():
        raise InvalidInput("Recurrence label must be a non-empty string")
    label = label.strip().upper()
    if len(label) > MAX_RECURRENCE_LABEL_LENGTH:
        raise InvalidInput(
            f"Recurrence label too long: {len(label)} (max {MAX_RECURRENCE_LABEL_LENGTH})"
        )
    return label


class EventService:
    """Event creation (with fan-out), lookup and deletion.

    Example usage:
        svc = EventService(EventRepo())
        event = svc.create_event(date(2026, 3, 15), "CLEANING", "MONTHLY",
                                 ["unit-1", "unit-2"], caller=operator)
    """

    def __init__(self, repo: EventRepo, clock: Callable[[], datetime.datetime] = utc_now):
        self.repo = repo
        self.clock = clock

    def create_event(
        self,
        date: Union[datetime.date, str],
        category: Union[ServiceCategory, str],
        recurrence_label: str,
        unit_roster: Iterable[Union[str, Unit]],
        caller: Caller,
    ) -> Event:
        """Create an event and one PENDING submission per roster unit.

        Steps:
        1. Access check (operators only).
        2. Validate and normalize the event fields.
        3. Validate the roster snapshot (non-empty, bounded, unique ids).
        4. Delegate to `EventRepo.insert_event_with_submissions()`, which
           writes everything in one transaction.

        Raises:
        - `InvalidInput` for a bad date/category/label or an empty or oversized roster
        - `CreationFailed` when the roster cannot be fanned out in full
        - `PermissionError` if `caller` is not an operator
        """

        # 1) access
        require_operator(caller, "create monitoring events")

        # 2) validate/normalize the event
        event_date = parse_event_date(date)
        event_category = parse_category(category)
        label = normalize_recurrence_label(recurrence_label)

        # 3) roster snapshot
        unit_ids = [u.id if isinstance(u, Unit) else u for u in unit_roster]
        if len(unit_ids) == 0:
            raise InvalidInput("Unit roster is empty; nothing to fan out")
        if len(unit_ids) > settings.max_roster_size:
            raise InvalidInput(
                f"Roster too large: {len(unit_ids)} units (max {settings.max_roster_size})"
            )
        seen = set()
        for unit_id in unit_ids:
            if not isinstance(unit_id, str) or not unit_id.strip():
                raise CreationFailed(f"Roster contains an unusable unit id: {unit_id!r}")
            if unit_id in seen:
                raise CreationFailed(f"Roster lists unit {unit_id} more than once")
            seen.add(unit_id)

        now = self.clock()
        event = Event(
            id=str(uuid.uuid4()),
            date=event_date,
            category=event_category,
            recurrence_label=label,
            created_at=now,
        )
        submissions = [
            Submission(event_id=event.id, unit_id=unit_id, state=Pending(), updated_at=now)
            for unit_id in unit_ids
        ]

        # 4) single transactional write
        try:
            self.repo.insert_event_with_submissions(event, submissions)
        except CreationFailed:
            logger.warning(
                "Fan-out rejected for %s event due %s (%d units)",
                event_category.value, event_date, len(unit_ids),
            )
            raise
        logger.info(
            "Created event %s: %s due %s for %d units",
            event.id, event_category.value, event_date, len(unit_ids),
        )
        return event

    def get_event(self, event_id: str) -> Event:
        event = self.repo.fetch_event(event_id)
        if event is None:
            raise EventNotFound(event_id)
        return event

    def delete_event(self, event_id: str, caller: Caller) -> None:
        """Delete an event together with all of its submissions."""

        require_operator(caller, "delete monitoring events")
        if not self.repo.delete_event(event_id):
            raise EventNotFound(event_id)
        logger.info("Deleted event %s and its submissions", event_id)

    def recent_events(self, limit: int) -> List[Event]:
        return self.repo.fetch_recent_events(max(1, limit))

    def health_check(self) -> None:
        """Perform a lightweight DB ping via the repository."""

        self.repo.ping()
