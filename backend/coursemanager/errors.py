"""Domain errors raised by the service layer.

Every error is a `ValueError` tagged with an `ErrorKind`; the HTTP layer
maps the kind to a status code.
"""

from enum import Enum
from typing import Iterable


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    DUPLICATE = "duplicate"
    CONFLICT = "conflict"
    FORBIDDEN = "forbidden"


class DomainError(ValueError):
    kind: ErrorKind = ErrorKind.CONFLICT

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(DomainError):
    """A lookup by id (or ids) found nothing."""
    kind = ErrorKind.NOT_FOUND

    def __init__(self, entity: str, ids):
        if isinstance(ids, Iterable) and not isinstance(ids, str):
            ids = sorted(ids)
            message = f"{entity} not found: {', '.join(str(i) for i in ids)}"
        else:
            message = f"{entity} not found: {ids}"
        super().__init__(message)
        self.entity = entity
        self.ids = ids


class DuplicateEmailError(DomainError):
    kind = ErrorKind.DUPLICATE

    def __init__(self, email: str):
        super().__init__(f"Email already in use: {email}")
        self.email = email


class NotOrganizerError(DomainError):
    kind = ErrorKind.FORBIDDEN

    def __init__(self, user_id: int):
        super().__init__(f"User {user_id} is not an organizer")
        self.user_id = user_id


class SchedulingConflictError(DomainError):
    """The classroom already hosts an overlapping event."""
    kind = ErrorKind.CONFLICT

    def __init__(self, classroom_id: int, conflicting_ids: Iterable[int] = ()):
        self.classroom_id = classroom_id
        self.conflicting_ids = sorted(conflicting_ids)
        message = f"Classroom {classroom_id} not available at the given time"
        if self.conflicting_ids:
            message += f" (overlaps event {', '.join(str(i) for i in self.conflicting_ids)})"
        super().__init__(message)


class EventFullError(DomainError):
    kind = ErrorKind.CONFLICT

    def __init__(self, event_id: int):
        super().__init__(f"Event {event_id} is full")
        self.event_id = event_id


class AlreadyParticipatingError(DomainError):
    kind = ErrorKind.CONFLICT

    def __init__(self, event_id: int, user_id: int):
        super().__init__(f"User {user_id} already participates in event {event_id}")
        self.event_id = event_id
        self.user_id = user_id


class AgeRestrictionError(DomainError):
    kind = ErrorKind.FORBIDDEN

    def __init__(self, event_id: int, min_age: int):
        super().__init__(f"Event {event_id} requires a minimum age of {min_age}")
        self.event_id = event_id
        self.min_age = min_age


class StillReferencedError(DomainError):
    """Deleting the entity would orphan events that point at it."""
    kind = ErrorKind.CONFLICT

    def __init__(self, entity: str, entity_id: int, event_count: int):
        super().__init__(f"{entity} {entity_id} is still referenced by {event_count} event(s)")
        self.entity = entity
        self.entity_id = entity_id
        self.event_count = event_count
