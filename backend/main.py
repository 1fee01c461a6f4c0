import datetime
import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from aggregation import AggregationService
from calendar_view import CalendarService
from errors import (
    CreationFailed,
    EventNotFound,
    InvalidInput,
    InvalidState,
    MonitoringError,
    StoreUnavailable,
    SubmissionNotFound,
)
from models import Caller, CompleteAllIn, EventIn, RatingIn, Role
from repo_events import EventRepo
from repo_memory import InMemoryStore
from repo_submissions import SubmissionRepo
from roster import PostgresUnitRoster, StaticUnitRoster, UnitRosterProvider, parse_static_units
from service_events import EventService, require_operator
from service_submissions import SubmissionService
from settings import settings

logging.basicConfig(level=settings.log_level.upper())
logger = logging.getLogger(__name__)

app = FastAPI(title="Compliance Monitor Backend")


@dataclass
class Services:
    events: EventService
    submissions: SubmissionService
    aggregation: AggregationService
    calendar: CalendarService
    roster: UnitRosterProvider


def build_services() -> Services:
    """Wire repositories and services for the configured store backend."""

    if settings.store_backend == "memory":
        store = InMemoryStore()
        event_repo, submission_repo = store, store
        roster = StaticUnitRoster(parse_static_units(settings.static_units))
    else:
        event_repo, submission_repo = EventRepo(), SubmissionRepo()
        roster = PostgresUnitRoster()
    return Services(
        events=EventService(event_repo),
        submissions=SubmissionService(submission_repo),
        aggregation=AggregationService(event_repo, submission_repo),
        calendar=CalendarService(event_repo, submission_repo),
        roster=roster,
    )


# Instantiate once here so the routes remain thin; tests swap the whole
# container through `app.dependency_overrides[get_services]`.
_services = build_services()


def get_services() -> Services:
    return _services


def get_caller(
    x_role: Optional[str] = Header(None),
    x_unit_id: Optional[str] = Header(None),
) -> Caller:
    """Caller context supplied by the identity layer in front of this service."""

    try:
        role = Role(x_role)
    except ValueError:
        raise HTTPException(status_code=401, detail="Missing or unknown X-Role header") from None
    return Caller(role=role, unit_id=x_unit_id)


_STATUS_BY_ERROR = [
    (InvalidInput, 400),
    (EventNotFound, 404),
    (SubmissionNotFound, 404),
    (InvalidState, 409),
    (CreationFailed, 500),
    (StoreUnavailable, 503),
]


@app.exception_handler(MonitoringError)
def monitoring_error_handler(request: Request, exc: MonitoringError):
    status = next((code for kind, code in _STATUS_BY_ERROR if isinstance(exc, kind)), 500)
    if status >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status, content={"detail": str(exc)})


@app.exception_handler(PermissionError)
def permission_error_handler(request: Request, exc: PermissionError):
    return JSONResponse(status_code=403, content={"detail": str(exc)})


@app.get("/health")
def health(svc: Services = Depends(get_services)):
    try:
        svc.events.health_check()
        return {"ok": True}
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"DB health check failed: {e}")


@app.post("/events", status_code=201)
def create_event(
    body: EventIn,
    svc: Services = Depends(get_services),
    caller: Caller = Depends(get_caller),
):
    require_operator(caller, "create monitoring events")
    units = svc.roster.list_units()
    return svc.events.create_event(
        body.date, body.category, body.recurrence_label, units, caller=caller
    )


@app.get("/events/{event_id}")
def get_event(event_id: str, svc: Services = Depends(get_services)):
    return svc.events.get_event(event_id)


@app.delete("/events/{event_id}")
def delete_event(
    event_id: str,
    svc: Services = Depends(get_services),
    caller: Caller = Depends(get_caller),
):
    svc.events.delete_event(event_id, caller=caller)
    return {"deleted": event_id}


@app.get("/events/{event_id}/summary")
def event_summary(event_id: str, svc: Services = Depends(get_services)):
    summary = svc.aggregation.event_summary(event_id)
    return {**summary.model_dump(mode="json"), "has_rating_data": summary.has_rating_data}


@app.get("/events/{event_id}/report")
def event_report(event_id: str, svc: Services = Depends(get_services)):
    return svc.aggregation.event_report(event_id, svc.roster.list_units())


@app.post("/events/{event_id}/complete-all")
def complete_all(
    event_id: str,
    body: Optional[CompleteAllIn] = None,
    svc: Services = Depends(get_services),
    caller: Caller = Depends(get_caller),
):
    rating = body.rating if body else None
    updated = svc.submissions.complete_all(event_id, caller=caller, default_rating=rating)
    return {"updated": updated}


@app.post("/events/{event_id}/dispense-all")
def dispense_all(
    event_id: str,
    svc: Services = Depends(get_services),
    caller: Caller = Depends(get_caller),
):
    return {"updated": svc.submissions.dispense_all(event_id, caller=caller)}


@app.put("/events/{event_id}/submissions/{unit_id}/complete")
def complete_submission(
    event_id: str,
    unit_id: str,
    body: RatingIn,
    svc: Services = Depends(get_services),
    caller: Caller = Depends(get_caller),
):
    return svc.submissions.set_completed(event_id, unit_id, body.rating, caller=caller)


@app.put("/events/{event_id}/submissions/{unit_id}/rating")
def update_rating(
    event_id: str,
    unit_id: str,
    body: RatingIn,
    svc: Services = Depends(get_services),
    caller: Caller = Depends(get_caller),
):
    return svc.submissions.update_rating(event_id, unit_id, body.rating, caller=caller)


@app.post("/events/{event_id}/submissions/{unit_id}/dispense")
def dispense_submission(
    event_id: str,
    unit_id: str,
    svc: Services = Depends(get_services),
    caller: Caller = Depends(get_caller),
):
    return svc.submissions.set_dispensed(event_id, unit_id, caller=caller)


@app.post("/events/{event_id}/submissions/{unit_id}/revert")
def revert_submission(
    event_id: str,
    unit_id: str,
    svc: Services = Depends(get_services),
    caller: Caller = Depends(get_caller),
):
    return svc.submissions.revert(event_id, unit_id, caller=caller)


def _default_month(year: Optional[int], month: Optional[int]):
    today = datetime.date.today()
    return (
        today.year if year is None else year,
        today.month if month is None else month,
    )


@app.get("/calendar")
def month_calendar(
    year: Optional[int] = None,
    month: Optional[int] = None,
    svc: Services = Depends(get_services),
):
    year, month = _default_month(year, month)
    grid = svc.calendar.month_grid(year, month)
    return {"year": year, "month": month, "days": grid}


@app.get("/dashboard")
def dashboard(
    limit: Optional[int] = Query(None, ge=1, le=100),
    svc: Services = Depends(get_services),
):
    return [
        {**s.model_dump(mode="json"), "has_rating_data": s.has_rating_data}
        for s in svc.aggregation.recent_events_dashboard(limit)
    ]


@app.get("/units/{unit_id}/tasks")
def unit_tasks(
    unit_id: str,
    year: Optional[int] = None,
    month: Optional[int] = None,
    svc: Services = Depends(get_services),
):
    year, month = _default_month(year, month)
    return svc.calendar.tasks_for_unit(unit_id, year, month)


@app.get("/units/{unit_id}/stats")
def unit_stats(
    unit_id: str,
    year: Optional[int] = None,
    month: Optional[int] = None,
    svc: Services = Depends(get_services),
):
    year, month = _default_month(year, month)
    return svc.calendar.unit_month_stats(unit_id, year, month)


@app.get("/units/{unit_id}/satisfaction")
def unit_satisfaction(unit_id: str, svc: Services = Depends(get_services)):
    return {
        category.value: value
        for category, value in svc.aggregation.unit_category_satisfaction(unit_id).items()
    }
