import datetime

import pytest
from pydantic import ValidationError

from models import (
    Completed,
    Dispensed,
    Pending,
    Submission,
    SubmissionStatus,
    state_from_row,
)

NOW = datetime.datetime(2026, 3, 1, tzinfo=datetime.timezone.utc)


def test_state_from_row_rebuilds_each_variant():
    assert state_from_row("PENDING", None) == Pending()
    assert state_from_row("DISPENSED", None) == Dispensed()
    assert state_from_row("COMPLETED", 7) == Completed(rating=7)


def test_completed_requires_rating_in_range():
    with pytest.raises(ValidationError):
        Completed(rating=11)
    with pytest.raises(ValidationError):
        Completed(rating=-1)
    with pytest.raises(ValidationError):
        Completed()


def test_completed_rejects_non_integer_rating():
    with pytest.raises(ValidationError):
        Completed(rating=7.5)
    with pytest.raises(ValidationError):
        Completed(rating="7")


def test_submission_defaults_to_pending_without_rating():
    sub = Submission(event_id="e1", unit_id="u1", updated_at=NOW)

    assert sub.status is SubmissionStatus.PENDING
    assert sub.rating is None
    assert sub.is_resolved is False


def test_submission_rating_only_exists_when_completed():
    completed = Submission(event_id="e1", unit_id="u1", state=Completed(rating=8), updated_at=NOW)
    dispensed = Submission(event_id="e1", unit_id="u1", state=Dispensed(), updated_at=NOW)

    assert completed.rating == 8
    assert dispensed.rating is None
    assert dispensed.is_resolved is True


def test_submission_state_is_discriminated_on_status():
    sub = Submission.model_validate(
        {
            "event_id": "e1",
            "unit_id": "u1",
            "state": {"status": "COMPLETED", "rating": 9},
            "updated_at": NOW.isoformat(),
        }
    )

    assert isinstance(sub.state, Completed)
    assert sub.model_dump(mode="json")["status"] == "COMPLETED"
    assert sub.model_dump(mode="json")["rating"] == 9


def test_dispensed_state_cannot_carry_a_rating():
    sub = Submission.model_validate(
        {
            "event_id": "e1",
            "unit_id": "u1",
            "state": {"status": "DISPENSED", "rating": 9},
            "updated_at": NOW.isoformat(),
        }
    )

    assert sub.rating is None
