"""Repository classes encapsulating database operations.

Each repository is small and focused on a single aggregate (users,
classrooms, tags, events, participations). Repositories return SQLModel
objects. `create` commits and refreshes; `save` and `delete` only flush
so that services can group them inside `database.transactional`.
"""

from datetime import datetime
from typing import Dict, Iterable, List, Optional
from sqlmodel import Session, col, select
from sqlalchemy import func
from . import models


class UserRepository:
    """CRUD operations for `User` objects."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, user: models.User) -> models.User:
        """Persist a new user and return the managed instance."""
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user

    def get(self, user_id: int) -> Optional[models.User]:
        """Get a `User` by primary key."""
        return self.session.get(models.User, user_id)

    def get_by_email(self, email: str) -> Optional[models.User]:
        """Return a `User` by email or `None` if not found."""
        stmt = select(models.User).where(models.User.email == email)
        return self.session.exec(stmt).first()

    def list_all(self) -> List[models.User]:
        stmt = select(models.User).order_by(models.User.id)
        return self.session.exec(stmt).all()

    def save(self, user: models.User) -> models.User:
        self.session.add(user)
        self.session.flush()
        return user

    def delete(self, user: models.User) -> None:
        self.session.delete(user)
        self.session.flush()

    def count_organized_events(self, user_id: int) -> int:
        """Number of events that name `user_id` as their organizer."""
        stmt = select(func.count()).select_from(models.Event).where(models.Event.organizer_id == user_id)
        return self.session.exec(stmt).one()


class ClassroomRepository:
    """CRUD operations for `Classroom` objects."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, classroom: models.Classroom) -> models.Classroom:
        self.session.add(classroom)
        self.session.commit()
        self.session.refresh(classroom)
        return classroom

    def get(self, classroom_id: int) -> Optional[models.Classroom]:
        return self.session.get(models.Classroom, classroom_id)

    def list_all(self) -> List[models.Classroom]:
        stmt = select(models.Classroom).order_by(models.Classroom.id)
        return self.session.exec(stmt).all()

    def save(self, classroom: models.Classroom) -> models.Classroom:
        self.session.add(classroom)
        self.session.flush()
        return classroom

    def delete(self, classroom: models.Classroom) -> None:
        self.session.delete(classroom)
        self.session.flush()

    def count_events(self, classroom_id: int) -> int:
        """Number of events booked into `classroom_id`."""
        stmt = select(func.count()).select_from(models.Event).where(models.Event.classroom_id == classroom_id)
        return self.session.exec(stmt).one()


class TagRepository:
    """CRUD operations for `Tag` objects."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, tag: models.Tag) -> models.Tag:
        self.session.add(tag)
        self.session.commit()
        self.session.refresh(tag)
        return tag

    def get(self, tag_id: int) -> Optional[models.Tag]:
        return self.session.get(models.Tag, tag_id)

    def get_many(self, tag_ids: Iterable[int]) -> List[models.Tag]:
        """Return the tags whose id is in `tag_ids`; unknown ids are skipped."""
        ids = set(tag_ids)
        if not ids:
            return []
        stmt = select(models.Tag).where(col(models.Tag.id).in_(ids))
        return self.session.exec(stmt).all()

    def list_all(self) -> List[models.Tag]:
        stmt = select(models.Tag).order_by(models.Tag.id)
        return self.session.exec(stmt).all()

    def save(self, tag: models.Tag) -> models.Tag:
        self.session.add(tag)
        self.session.flush()
        return tag

    def delete(self, tag: models.Tag) -> None:
        self.session.delete(tag)
        self.session.flush()


class EventRepository:
    """Persistence and finder queries for `Event` objects."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, event: models.Event) -> models.Event:
        self.session.add(event)
        self.session.commit()
        self.session.refresh(event)
        return event

    def get(self, event_id: int) -> Optional[models.Event]:
        return self.session.get(models.Event, event_id)

    def list_all(self) -> List[models.Event]:
        stmt = select(models.Event).order_by(models.Event.start_datetime, models.Event.id)
        return self.session.exec(stmt).all()

    def save(self, event: models.Event) -> models.Event:
        self.session.add(event)
        self.session.flush()
        return event

    def delete(self, event: models.Event) -> None:
        self.session.delete(event)
        self.session.flush()

    def find_overlapping(self, classroom_id: int, start: datetime, end: datetime,
                         exclude_event_id: Optional[int] = None) -> List[models.Event]:
        """Return events in `classroom_id` whose interval overlaps `[start, end)`.

        Both bounds are strict, so an event ending exactly at `start` (or
        starting exactly at `end`) is not returned. `exclude_event_id`
        leaves one event out, which is how an event being edited avoids
        conflicting with its own stored booking.
        """
        stmt = select(models.Event).where(
            models.Event.classroom_id == classroom_id,
            models.Event.start_datetime < end,
            models.Event.end_datetime > start,
        )
        if exclude_event_id is not None:
            stmt = stmt.where(models.Event.id != exclude_event_id)
        return self.session.exec(stmt).all()

    def list_by_organizer(self, organizer_id: int) -> List[models.Event]:
        stmt = select(models.Event).where(models.Event.organizer_id == organizer_id).order_by(models.Event.start_datetime)
        return self.session.exec(stmt).all()

    def list_past_for_participant(self, user_id: int, now: datetime) -> List[models.Event]:
        """Events attended by `user_id` that ended before `now`."""
        stmt = (
            select(models.Event)
            .join(models.EventParticipant, models.EventParticipant.event_id == models.Event.id)
            .where(models.EventParticipant.user_id == user_id, models.Event.end_datetime < now)
            .order_by(models.Event.start_datetime)
        )
        return self.session.exec(stmt).all()

    def list_future_for_participant(self, user_id: int, now: datetime) -> List[models.Event]:
        """Events attended by `user_id` that start after `now`."""
        stmt = (
            select(models.Event)
            .join(models.EventParticipant, models.EventParticipant.event_id == models.Event.id)
            .where(models.EventParticipant.user_id == user_id, models.Event.start_datetime > now)
            .order_by(models.Event.start_datetime)
        )
        return self.session.exec(stmt).all()

    def search(self, now: datetime, organizer_id: Optional[int] = None, classroom_id: Optional[int] = None,
               tag_id: Optional[int] = None, exclude_full: bool = False,
               include_past: bool = False) -> List[models.Event]:
        """Filter events; every criterion left as `None`/`False` is ignored.

        Unless `include_past` is set only events starting after `now` are
        returned. `exclude_full` drops events whose participant count has
        reached `max_participants`.
        """
        stmt = select(models.Event)
        if not include_past:
            stmt = stmt.where(models.Event.start_datetime > now)
        if organizer_id is not None:
            stmt = stmt.where(models.Event.organizer_id == organizer_id)
        if classroom_id is not None:
            stmt = stmt.where(models.Event.classroom_id == classroom_id)
        if tag_id is not None:
            tagged = select(models.EventTagLink.event_id).where(models.EventTagLink.tag_id == tag_id)
            stmt = stmt.where(col(models.Event.id).in_(tagged))
        if exclude_full:
            taken = (
                select(func.count())
                .select_from(models.EventParticipant)
                .where(models.EventParticipant.event_id == models.Event.id)
                .scalar_subquery()
            )
            stmt = stmt.where(taken < models.Event.max_participants)
        stmt = stmt.order_by(models.Event.start_datetime, models.Event.id)
        return self.session.exec(stmt).all()


class ParticipantRepository:
    """Rows of the user/event attendance relation."""
    def __init__(self, session: Session):
        self.session = session

    def get(self, event_id: int, user_id: int) -> Optional[models.EventParticipant]:
        return self.session.get(models.EventParticipant, (event_id, user_id))

    def add(self, event_id: int, user_id: int) -> models.EventParticipant:
        link = models.EventParticipant(event_id=event_id, user_id=user_id)
        self.session.add(link)
        self.session.commit()
        self.session.refresh(link)
        return link

    def remove(self, link: models.EventParticipant) -> None:
        self.session.delete(link)
        self.session.flush()

    def count_for_event(self, event_id: int) -> int:
        stmt = select(func.count()).select_from(models.EventParticipant).where(models.EventParticipant.event_id == event_id)
        return self.session.exec(stmt).one()

    def counts_for_events(self, event_ids: Iterable[int]) -> Dict[int, int]:
        """Participant count per event id; events without participants map to 0."""
        ids = set(event_ids)
        counts = {i: 0 for i in ids}
        if not ids:
            return counts
        stmt = (
            select(models.EventParticipant.event_id, func.count())
            .where(col(models.EventParticipant.event_id).in_(ids))
            .group_by(models.EventParticipant.event_id)
        )
        for event_id, n in self.session.exec(stmt).all():
            counts[event_id] = n
        return counts

    def list_users_for_event(self, event_id: int) -> List[models.User]:
        stmt = (
            select(models.User)
            .join(models.EventParticipant, models.EventParticipant.user_id == models.User.id)
            .where(models.EventParticipant.event_id == event_id)
            .order_by(models.EventParticipant.joined_at, models.User.id)
        )
        return self.session.exec(stmt).all()
