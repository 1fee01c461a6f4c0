"""
Service layer for submission state changes.

Single-submission transitions (the state machine) and the per-event bulk
transitions both live here; neither touches SQL directly.

States: PENDING (initial), COMPLETED{rating}, DISPENSED. Either terminal
state may go back to PENDING; COMPLETED and DISPENSED replace each other
because the state is a single tagged value.

Access rules (`caller` is always passed in explicitly):
- operators may change any submission and run bulk transitions
- unit reporters may only change their own unit's submission
"""

import datetime
import logging
from typing import Callable, Optional

from errors import EventNotFound, InvalidRating, InvalidState, SubmissionNotFound
from models import (
    MAX_RATING,
    MIN_RATING,
    Caller,
    Completed,
    Dispensed,
    Pending,
    Submission,
    SubmissionState,
    SubmissionStatus,
)
from repo_submissions import SubmissionRepo
from service_events import require_operator, utc_now
from settings import settings

logger = logging.getLogger(__name__)


def validate_rating(rating: object) -> int:
    # bool is an int subclass; True must not pass as a rating of 1.
    if isinstance(rating, bool) or not isinstance(rating, int):
        raise InvalidRating(rating)
    if not MIN_RATING <= rating <= MAX_RATING:
        raise InvalidRating(rating)
    return rating


def require_unit_access(caller: Caller, unit_id: str) -> None:
    if caller.is_operator:
        return
    if caller.unit_id is None or caller.unit_id != unit_id:
        raise PermissionError("Cannot change another unit's submission")


class SubmissionService:
    """Submission state machine plus bulk transitions.

    Example usage:
        svc = SubmissionService(SubmissionRepo())
        svc.set_completed(event_id, "unit-7", 9, caller=reporter)
        svc.complete_all(event_id, caller=operator)
    """

    def __init__(
        self, repo: SubmissionRepo, clock: Callable[[], datetime.datetime] = utc_now
    ):
        self.repo = repo
        self.clock = clock

    def _apply(
        self,
        event_id: str,
        unit_id: str,
        state: SubmissionState,
        caller: Caller,
        require_status: Optional[SubmissionStatus] = None,
    ) -> Submission:
        require_unit_access(caller, unit_id)
        updated = Submission(
            event_id=event_id, unit_id=unit_id, state=state, updated_at=self.clock()
        )
        if self.repo.update_submission(updated, require_status=require_status):
            logger.debug("Submission %s/%s -> %s", event_id, unit_id, updated.status.value)
            return updated

        current = self.repo.fetch_submission(event_id, unit_id)
        if current is None or require_status is None:
            raise SubmissionNotFound(event_id, unit_id)
        raise InvalidState(
            f"Submission {event_id}/{unit_id} is {current.status.value}, "
            f"expected {require_status.value}"
        )

    def set_completed(
        self, event_id: str, unit_id: str, rating: int, caller: Caller
    ) -> Submission:
        return self._apply(event_id, unit_id, Completed(rating=validate_rating(rating)), caller)

    def set_dispensed(self, event_id: str, unit_id: str, caller: Caller) -> Submission:
        return self._apply(event_id, unit_id, Dispensed(), caller)

    def revert(self, event_id: str, unit_id: str, caller: Caller) -> Submission:
        return self._apply(event_id, unit_id, Pending(), caller)

    def update_rating(
        self, event_id: str, unit_id: str, rating: int, caller: Caller
    ) -> Submission:
        """Change the rating of a submission that is already COMPLETED.

        The write is conditional on the stored status so it cannot race
        with a concurrent revert or dispense.
        """

        return self._apply(
            event_id,
            unit_id,
            Completed(rating=validate_rating(rating)),
            caller,
            require_status=SubmissionStatus.COMPLETED,
        )

    def get_submission(self, event_id: str, unit_id: str) -> Submission:
        found = self.repo.fetch_submission(event_id, unit_id)
        if found is None:
            raise SubmissionNotFound(event_id, unit_id)
        return found

    def complete_all(
        self, event_id: str, caller: Caller, default_rating: Optional[int] = None
    ) -> int:
        """Mark every submission of the event COMPLETED with one rating.

        This overwrites any individual ratings already recorded. Returns
        the number of submissions updated.
        """

        require_operator(caller, "complete every submission of an event")
        if default_rating is None:
            default_rating = settings.default_complete_rating
        state = Completed(rating=validate_rating(default_rating))
        count = self.repo.update_all_for_event(event_id, state, self.clock())
        if count is None:
            raise EventNotFound(event_id)
        logger.info("Completed %d submissions of event %s with rating %d", count, event_id, state.rating)
        return count

    def dispense_all(self, event_id: str, caller: Caller) -> int:
        require_operator(caller, "dispense every submission of an event")
        count = self.repo.update_all_for_event(event_id, Dispensed(), self.clock())
        if count is None:
            raise EventNotFound(event_id)
        logger.info("Dispensed %d submissions of event %s", count, event_id)
        return count
