import datetime

import pytest

from aggregation import AggregationService
from calendar_view import CalendarService
from models import Caller, Role, Unit
from repo_memory import InMemoryStore
from service_events import EventService
from service_submissions import SubmissionService


class TickingClock:
    """Deterministic UTC clock that advances one second per reading."""

    def __init__(self, start=datetime.datetime(2026, 3, 1, 9, 0, tzinfo=datetime.timezone.utc)):
        self.current = start

    def __call__(self):
        self.current += datetime.timedelta(seconds=1)
        return self.current


@pytest.fixture
def clock():
    return TickingClock()


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def operator():
    return Caller(role=Role.OPERATOR)


@pytest.fixture
def reporter():
    def _reporter(unit_id):
        return Caller(role=Role.UNIT_REPORTER, unit_id=unit_id)

    return _reporter


@pytest.fixture
def roster():
    return [
        Unit(id="u1", name="North School"),
        Unit(id="u2", name="East School"),
        Unit(id="u3", name="West School"),
        Unit(id="u4", name="South School"),
        Unit(id="u5", name="Central School"),
    ]


@pytest.fixture
def events(store, clock):
    return EventService(store, clock=clock)


@pytest.fixture
def submissions(store, clock):
    return SubmissionService(store, clock=clock)


@pytest.fixture
def aggregation(store):
    return AggregationService(store, store)


@pytest.fixture
def calendar_svc(store):
    return CalendarService(store, store, today=lambda: datetime.date(2026, 3, 10))
