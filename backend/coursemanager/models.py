"""SQLModel data models.

This module defines the application's database tables using SQLModel.
Each class maps to a table and uses relationships where appropriate.
Datetimes are stored naive, in UTC.
"""

from typing import Optional
from pydantic import NaiveDatetime
from sqlmodel import SQLModel, Field, Relationship
from datetime import datetime, timezone
from typing import List


def utc_now() -> datetime:
    """Current UTC time as a naive datetime, the form stored in the database."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class EventTagLink(SQLModel, table=True):
    """Association row between an `Event` and one of its `Tag`s."""
    event_id: Optional[int] = Field(default=None, foreign_key='event.id', primary_key=True)
    tag_id: Optional[int] = Field(default=None, foreign_key='tag.id', primary_key=True)


class EventParticipant(SQLModel, table=True):
    """A user's attendance of an event.

    Rows are inserted directly (not through `Event.participants`) so that
    `joined_at` is always populated.
    """
    event_id: Optional[int] = Field(default=None, foreign_key='event.id', primary_key=True)
    user_id: Optional[int] = Field(default=None, foreign_key='user.id', primary_key=True)
    joined_at: NaiveDatetime = Field(default_factory=utc_now)


class User(SQLModel, table=True):
    """A registered user.

    Fields:
    - `email`: unique login address
    - `password`: opaque credential string, stored as provided
    - `is_organizer`: whether the user may own events
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    firstname: str
    surname: str
    age: int
    email: str = Field(index=True, nullable=False, unique=True)
    password: str
    is_organizer: bool = False
    organized_events: List['Event'] = Relationship(back_populates='organizer')
    participating_events: List['Event'] = Relationship(back_populates='participants', link_model=EventParticipant)


class Classroom(SQLModel, table=True):
    """A bookable room."""
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    events: List['Event'] = Relationship(back_populates='classroom')


class Tag(SQLModel, table=True):
    """A free-form label attached to events."""
    id: Optional[int] = Field(default=None, primary_key=True)
    label: str
    events: List['Event'] = Relationship(back_populates='tags', link_model=EventTagLink)


class Event(SQLModel, table=True):
    """A scheduled course session held in a classroom.

    Within one classroom the `[start_datetime, end_datetime)` intervals of
    two events never overlap.
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    start_datetime: NaiveDatetime = Field(index=True)
    end_datetime: NaiveDatetime = Field(index=True)
    max_participants: int
    min_age: Optional[int] = None
    info: Optional[str] = None
    organizer_id: int = Field(foreign_key='user.id', index=True)
    classroom_id: int = Field(foreign_key='classroom.id', index=True)
    organizer: Optional[User] = Relationship(back_populates='organized_events')
    classroom: Optional[Classroom] = Relationship(back_populates='events')
    tags: List[Tag] = Relationship(back_populates='events', link_model=EventTagLink)
    participants: List[User] = Relationship(back_populates='participating_events', link_model=EventParticipant)
