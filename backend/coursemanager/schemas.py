"""Pydantic request/response schemas used by the API.

Schemas keep API input/output shapes stable and provide validation for
controller handlers and tests.
"""

from datetime import datetime, timezone
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import List, Optional


def _to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class UserRegistrationIn(BaseModel):
    """Payload for `POST /api/users/register`."""
    firstname: str = Field(min_length=1)
    surname: str = Field(min_length=1)
    age: int = Field(ge=0)
    email: str = Field(min_length=3)
    password: str = Field(min_length=1)
    is_organizer: bool = False


class UserUpdateIn(BaseModel):
    """Partial user update; fields left out or sent as null are not changed."""
    firstname: Optional[str] = Field(default=None, min_length=1)
    surname: Optional[str] = Field(default=None, min_length=1)
    age: Optional[int] = Field(default=None, ge=0)
    email: Optional[str] = Field(default=None, min_length=3)
    password: Optional[str] = Field(default=None, min_length=1)
    is_organizer: Optional[bool] = None


class UserOut(BaseModel):
    """Public user representation; the password is never returned."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    firstname: str
    surname: str
    age: int
    email: str
    is_organizer: bool


class TagIn(BaseModel):
    label: str = Field(min_length=1)


class TagOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    label: str


class ClassroomIn(BaseModel):
    name: str = Field(min_length=1)


class ClassroomOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str


class MessageOut(BaseModel):
    message: str


class EventIn(BaseModel):
    """Request body for creating or fully replacing an event.

    Timezone-aware datetimes are converted to naive UTC; naive values are
    taken as UTC already.
    """
    name: str = Field(min_length=1)
    start_datetime: datetime
    end_datetime: datetime
    max_participants: int = Field(ge=1)
    min_age: Optional[int] = Field(default=None, ge=0)
    info: Optional[str] = None
    organizer_id: int
    classroom_id: int
    tag_ids: List[int] = Field(default_factory=list)

    @field_validator('start_datetime', 'end_datetime')
    @classmethod
    def _normalize_datetime(cls, v: datetime) -> datetime:
        return _to_naive_utc(v)


class EventSummary(BaseModel):
    """Flattened event projection returned by every event endpoint."""
    id: int
    name: str
    start_datetime: datetime
    end_datetime: datetime
    max_participants: int
    min_age: Optional[int] = None
    info: Optional[str] = None
    organizer_id: int
    organizer_name: str
    classroom_id: int
    classroom_name: str
    tag_ids: List[int]
    participant_count: int = 0
