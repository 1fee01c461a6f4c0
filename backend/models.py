"""
Pydantic models used across the backend.

Input shapes (`EventIn`, `RatingIn`) validate at the FastAPI route
boundary; the remaining models are the domain records and read-side
projections shared by the service and repo layers.

Guidelines:
- Submission state is a tagged variant (`Pending | Completed | Dispensed`)
    discriminated on `status`. A rating only exists inside `Completed`, so
    a dispensed-and-rated submission cannot be built.
- Keep DB-specific conversion (`state_from_row`) here so both stores map
    rows the same way.
"""

import datetime
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field

MIN_RATING = 0
MAX_RATING = 10


class ServiceCategory(str, Enum):
    CLEANING = "CLEANING"
    CAREGIVER = "CAREGIVER"
    MEALS = "MEALS"
    SECURITY = "SECURITY"
    TELEPHONE = "TELEPHONE"


class SubmissionStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    DISPENSED = "DISPENSED"


class Role(str, Enum):
    OPERATOR = "operator"
    UNIT_REPORTER = "unit_reporter"


class TaskUrgency(str, Enum):
    DONE = "DONE"
    WAIVED = "WAIVED"
    OVERDUE = "OVERDUE"
    DUE_SOON = "DUE_SOON"
    OPEN = "OPEN"


class Pending(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: Literal["PENDING"] = "PENDING"


class Completed(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: Literal["COMPLETED"] = "COMPLETED"
    rating: int = Field(ge=MIN_RATING, le=MAX_RATING, strict=True)


class Dispensed(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: Literal["DISPENSED"] = "DISPENSED"


SubmissionState = Annotated[
    Union[Pending, Completed, Dispensed], Field(discriminator="status")
]


def state_from_row(status: str, rating: Optional[int]) -> Union[Pending, Completed, Dispensed]:
    """Rebuild the tagged state from the (status, rating) column pair."""

    status = SubmissionStatus(status)
    if status is SubmissionStatus.COMPLETED:
        return Completed(rating=rating)
    if status is SubmissionStatus.DISPENSED:
        return Dispensed()
    return Pending()


class Caller(BaseModel):
    """Who is invoking an operation. Passed explicitly into every mutation.

    Fields:
    - `role`: operators manage events; unit reporters update their own unit.
    - `unit_id`: the reporter's unit. Ignored for operators.
    """

    role: Role
    unit_id: Optional[str] = None

    @property
    def is_operator(self) -> bool:
        return self.role is Role.OPERATOR


class Unit(BaseModel):
    id: str
    name: str = ""


class EventIn(BaseModel):
        """Input shape for a new monitoring event sent by operators.

        Fields:
        - `date`: due date. Past dates are allowed (catch-up scheduling).
        - `category`: one of `ServiceCategory`.
        - `recurrence_label`: display-only tag (`MONTHLY`, `WEEKLY`, `ONE_OFF`...).
        """

        date: datetime.date
        category: ServiceCategory
        recurrence_label: str = "MONTHLY"


class Event(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    date: datetime.date
    category: ServiceCategory
    recurrence_label: str
    created_at: Optional[datetime.datetime] = None


class Submission(BaseModel):
    model_config = ConfigDict(frozen=True)

    event_id: str
    unit_id: str
    state: SubmissionState = Field(default_factory=Pending)
    updated_at: datetime.datetime

    @computed_field
    @property
    def status(self) -> SubmissionStatus:
        return SubmissionStatus(self.state.status)

    @computed_field
    @property
    def rating(self) -> Optional[int]:
        if isinstance(self.state, Completed):
            return self.state.rating
        return None

    @property
    def is_resolved(self) -> bool:
        return self.status is not SubmissionStatus.PENDING


class RatingIn(BaseModel):
    # Type and range are checked by the service so every caller gets InvalidRating.
    rating: Any


class CompleteAllIn(BaseModel):
    rating: Any = None


class EventSummary(BaseModel):
    event: Event
    total: int
    pending: int
    completed: int
    dispensed: int
    coverage_pct: float
    average_rating: float
    rated_count: int

    @property
    def has_rating_data(self) -> bool:
        # average_rating == 0.0 is ambiguous; rated_count is not.
        return self.rated_count > 0


class ReportRow(BaseModel):
    unit_id: str
    unit_name: str
    status: SubmissionStatus
    rating: Optional[int] = None
    updated_at: datetime.datetime


class EventReport(BaseModel):
    summary: EventSummary
    rows: list[ReportRow]


class UnitTask(BaseModel):
    event: Event
    submission: Submission
    urgency: TaskUrgency


class UnitMonthStats(BaseModel):
    unit_id: str
    year: int
    month: int
    total: int
    pending: int
    completed: int
    dispensed: int
    delivery_pct: float
    average_rating: Optional[float] = None
