"""
Domain errors raised by the service and repository layers.

Routes translate these into HTTP status codes (see `main`). Authorization
failures use the builtin `PermissionError` instead of a class from here.
"""


class MonitoringError(Exception):
    """Base class for every error the monitoring core raises."""


class InvalidInput(MonitoringError, ValueError):
    """Malformed date, category, recurrence label, roster or month."""


class InvalidRating(InvalidInput):
    def __init__(self, rating: object):
        super().__init__(f"Rating must be an integer between 0 and 10, got {rating!r}")
        self.rating = rating


class EventNotFound(MonitoringError, LookupError):
    def __init__(self, event_id: str):
        super().__init__(f"Event not found: {event_id}")
        self.event_id = event_id


class SubmissionNotFound(MonitoringError, LookupError):
    def __init__(self, event_id: str, unit_id: str):
        super().__init__(f"No submission for unit {unit_id} on event {event_id}")
        self.event_id = event_id
        self.unit_id = unit_id


class InvalidState(MonitoringError):
    """Operation is not legal for the submission's current status."""


class CreationFailed(MonitoringError):
    """Fan-out could not complete; nothing was persisted."""


class StoreUnavailable(MonitoringError):
    """Transient infrastructure failure. Callers may retry."""
