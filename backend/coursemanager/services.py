"""Business logic services used by HTTP controllers.

This module holds small service classes that coordinate repositories.
Services are intentionally thin: they perform validation, execute domain
logic and persist aggregates via repositories. Failures are raised as
`errors.DomainError` subclasses.
"""

import logging
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session
from . import errors, models, repositories, schemas
from .database import transactional

logger = logging.getLogger("coursemanager.services")

USER_UPDATABLE_FIELDS = ("firstname", "surname", "age", "email", "password", "is_organizer")


class UserService:
    """Registration, lookup and maintenance of users."""
    def __init__(self, session: Session):
        self.session = session
        self.user_repo = repositories.UserRepository(session)

    def register(self, firstname: str, surname: str, age: int, email: str, password: str,
                 is_organizer: bool = False) -> models.User:
        """Create a new user.

        Raises `DuplicateEmailError` if another user already uses `email`.
        The password is stored as given.
        """
        if self.user_repo.get_by_email(email):
            raise errors.DuplicateEmailError(email)
        user = models.User(
            firstname=firstname,
            surname=surname,
            age=age,
            email=email,
            password=password,
            is_organizer=bool(is_organizer),
        )
        try:
            user = self.user_repo.create(user)
        except IntegrityError as e:
            # a concurrent registration took the address after the lookup
            self.session.rollback()
            raise errors.DuplicateEmailError(email) from e
        logger.info("registered user id=%s organizer=%s", user.id, user.is_organizer)
        return user

    def get_organizer(self, user_id: int) -> models.User:
        """Return the user if it exists and holds the organizer role."""
        user = self.user_repo.get(user_id)
        if not user:
            raise errors.NotFoundError("Organizer", user_id)
        if user.is_organizer is not True:
            raise errors.NotOrganizerError(user_id)
        return user

    def get_by_id(self, user_id: int) -> Optional[models.User]:
        return self.user_repo.get(user_id)

    def get_by_email(self, email: str) -> Optional[models.User]:
        return self.user_repo.get_by_email(email)

    def list_all(self) -> List[models.User]:
        return self.user_repo.list_all()

    def update(self, user_id: int, changes: Dict) -> models.User:
        """Apply a partial update.

        Only keys from `USER_UPDATABLE_FIELDS` whose value is not `None`
        are written; everything else on the user is left untouched.
        """
        user = self.user_repo.get(user_id)
        if not user:
            raise errors.NotFoundError("User", user_id)
        present = {k: v for k, v in changes.items() if k in USER_UPDATABLE_FIELDS and v is not None}
        if "email" in present and present["email"] != user.email:
            other = self.user_repo.get_by_email(present["email"])
            if other and other.id != user.id:
                raise errors.DuplicateEmailError(present["email"])
        try:
            with transactional(self.session):
                for field, value in present.items():
                    setattr(user, field, value)
                self.user_repo.save(user)
        except IntegrityError as e:
            raise errors.DuplicateEmailError(present.get("email", user.email)) from e
        self.session.refresh(user)
        return user

    def delete(self, user_id: int) -> None:
        user = self.user_repo.get(user_id)
        if not user:
            raise errors.NotFoundError("User", user_id)
        organized = self.user_repo.count_organized_events(user_id)
        if organized:
            raise errors.StillReferencedError("User", user_id, organized)
        with transactional(self.session):
            self.user_repo.delete(user)
        logger.info("deleted user id=%s", user_id)


class TagService:
    """CRUD over event tags."""
    def __init__(self, session: Session):
        self.session = session
        self.tag_repo = repositories.TagRepository(session)

    def create(self, label: str) -> models.Tag:
        return self.tag_repo.create(models.Tag(label=label))

    def get_by_id(self, tag_id: int) -> models.Tag:
        tag = self.tag_repo.get(tag_id)
        if not tag:
            raise errors.NotFoundError("Tag", tag_id)
        return tag

    def get_many(self, tag_ids: Iterable[int]) -> List[models.Tag]:
        """Resolve every id in `tag_ids` (duplicates collapse) or fail naming the missing ones."""
        wanted = set(tag_ids or [])
        found = self.tag_repo.get_many(wanted)
        missing = wanted - {t.id for t in found}
        if missing:
            raise errors.NotFoundError("Tag", missing)
        return sorted(found, key=lambda t: t.id)

    def update(self, tag_id: int, label: str) -> models.Tag:
        tag = self.get_by_id(tag_id)
        with transactional(self.session):
            tag.label = label
            self.tag_repo.save(tag)
        self.session.refresh(tag)
        return tag

    def delete(self, tag_id: int) -> None:
        tag = self.get_by_id(tag_id)
        with transactional(self.session):
            self.tag_repo.delete(tag)
        logger.info("deleted tag id=%s", tag_id)

    def list_all(self) -> List[models.Tag]:
        return self.tag_repo.list_all()


class ClassroomService:
    """CRUD over classrooms."""
    def __init__(self, session: Session):
        self.session = session
        self.classroom_repo = repositories.ClassroomRepository(session)

    def create(self, name: str) -> models.Classroom:
        return self.classroom_repo.create(models.Classroom(name=name))

    def get_by_id(self, classroom_id: int) -> models.Classroom:
        classroom = self.classroom_repo.get(classroom_id)
        if not classroom:
            raise errors.NotFoundError("Classroom", classroom_id)
        return classroom

    def update(self, classroom_id: int, name: str) -> models.Classroom:
        classroom = self.get_by_id(classroom_id)
        with transactional(self.session):
            classroom.name = name
            self.classroom_repo.save(classroom)
        self.session.refresh(classroom)
        return classroom

    def delete(self, classroom_id: int) -> None:
        classroom = self.get_by_id(classroom_id)
        booked = self.classroom_repo.count_events(classroom_id)
        if booked:
            raise errors.StillReferencedError("Classroom", classroom_id, booked)
        with transactional(self.session):
            self.classroom_repo.delete(classroom)
        logger.info("deleted classroom id=%s", classroom_id)

    def list_all(self) -> List[models.Classroom]:
        return self.classroom_repo.list_all()


class EventService:
    """Schedule events into classrooms and query them.

    The classroom availability check and the following insert/update are
    not atomic: two concurrent requests for the same slot can both pass
    the check.
    """
    def __init__(self, session: Session, now: Callable[[], datetime] = models.utc_now):
        self.session = session
        self.now = now
        self.event_repo = repositories.EventRepository(session)
        self.participant_repo = repositories.ParticipantRepository(session)
        self.users = UserService(session)
        self.classrooms = ClassroomService(session)
        self.tags = TagService(session)

    def _resolve(self, request: Dict):
        organizer = self.users.get_organizer(request["organizer_id"])
        classroom = self.classrooms.get_by_id(request["classroom_id"])
        tags = self.tags.get_many(request.get("tag_ids") or [])
        return organizer, classroom, tags

    def _ensure_available(self, classroom_id: int, start: datetime, end: datetime,
                          exclude_event_id: Optional[int]) -> None:
        overlapping = self.event_repo.find_overlapping(classroom_id, start, end, exclude_event_id)
        if overlapping:
            ids = [e.id for e in overlapping]
            logger.warning("scheduling conflict classroom=%s start=%s end=%s overlaps=%s",
                           classroom_id, start.isoformat(), end.isoformat(), ids)
            raise errors.SchedulingConflictError(classroom_id, ids)

    @staticmethod
    def _apply(event: models.Event, request: Dict, organizer, classroom, tags) -> None:
        event.name = request["name"]
        event.start_datetime = request["start_datetime"]
        event.end_datetime = request["end_datetime"]
        event.max_participants = request["max_participants"]
        event.min_age = request.get("min_age")
        event.info = request.get("info")
        event.organizer = organizer
        event.classroom = classroom
        event.tags = list(tags)

    def is_available(self, classroom_id: int, start: datetime, end: datetime,
                     exclude_event_id: Optional[int] = None) -> bool:
        """Return True if no other event in the classroom overlaps `[start, end)`.

        The event `exclude_event_id`, when given, never counts as a
        conflict. Touching intervals (one ends exactly when the other
        starts) do not overlap.
        """
        return not self.event_repo.find_overlapping(classroom_id, start, end, exclude_event_id)

    def create_event(self, request: Dict) -> models.Event:
        """Create an event from a request dict (see `schemas.EventIn`)."""
        organizer, classroom, tags = self._resolve(request)
        self._ensure_available(classroom.id, request["start_datetime"], request["end_datetime"], None)
        event = models.Event(
            name=request["name"],
            start_datetime=request["start_datetime"],
            end_datetime=request["end_datetime"],
            max_participants=request["max_participants"],
            organizer_id=organizer.id,
            classroom_id=classroom.id,
        )
        self._apply(event, request, organizer, classroom, tags)
        event = self.event_repo.create(event)
        logger.info("created event id=%s classroom=%s organizer=%s", event.id, classroom.id, organizer.id)
        return event

    def update_event(self, event_id: int, request: Dict) -> models.Event:
        """Overwrite every mutable field of an existing event."""
        event = self.get_event(event_id)
        organizer, classroom, tags = self._resolve(request)
        self._ensure_available(classroom.id, request["start_datetime"], request["end_datetime"], event_id)
        with transactional(self.session):
            self._apply(event, request, organizer, classroom, tags)
            self.event_repo.save(event)
        self.session.refresh(event)
        logger.info("updated event id=%s", event_id)
        return event

    def delete_event(self, event_id: int) -> None:
        event = self.get_event(event_id)
        with transactional(self.session):
            self.event_repo.delete(event)
        logger.info("deleted event id=%s", event_id)

    def get_event(self, event_id: int) -> models.Event:
        event = self.event_repo.get(event_id)
        if not event:
            raise errors.NotFoundError("Event", event_id)
        return event

    def list_all(self) -> List[models.Event]:
        return self.event_repo.list_all()

    def get_organized_events(self, organizer_id: int) -> List[models.Event]:
        return self.event_repo.list_by_organizer(organizer_id)

    def get_past_participating_events(self, participant_id: int) -> List[models.Event]:
        return self.event_repo.list_past_for_participant(participant_id, self.now())

    def get_future_participating_events(self, participant_id: int) -> List[models.Event]:
        return self.event_repo.list_future_for_participant(participant_id, self.now())

    def search_events(self, organizer_id: Optional[int] = None, classroom_id: Optional[int] = None,
                      tag_id: Optional[int] = None, exclude_full: bool = False,
                      include_past: bool = False) -> List[models.Event]:
        """Upcoming events matching every given filter.

        Past events are included only with `include_past`. With
        `exclude_full`, events whose participant count reached
        `max_participants` are dropped.
        """
        return self.event_repo.search(self.now(), organizer_id, classroom_id, tag_id,
                                      bool(exclude_full), bool(include_past))

    def map_to_summary(self, event: models.Event, participant_count: Optional[int] = None) -> schemas.EventSummary:
        """Flatten an event with its organizer, classroom and tags."""
        if participant_count is None:
            participant_count = self.participant_repo.count_for_event(event.id)
        organizer = event.organizer
        return schemas.EventSummary(
            id=event.id,
            name=event.name,
            start_datetime=event.start_datetime,
            end_datetime=event.end_datetime,
            max_participants=event.max_participants,
            min_age=event.min_age,
            info=event.info,
            organizer_id=organizer.id,
            organizer_name=f"{organizer.firstname} {organizer.surname}",
            classroom_id=event.classroom.id,
            classroom_name=event.classroom.name,
            tag_ids=sorted(t.id for t in event.tags),
            participant_count=participant_count,
        )

    def map_all_to_summary(self, events: List[models.Event]) -> List[schemas.EventSummary]:
        counts = self.participant_repo.counts_for_events(e.id for e in events)
        return [self.map_to_summary(e, counts.get(e.id, 0)) for e in events]


class ParticipationService:
    """Join and leave events, respecting capacity and minimum age."""
    def __init__(self, session: Session):
        self.session = session
        self.participant_repo = repositories.ParticipantRepository(session)
        self.event_repo = repositories.EventRepository(session)
        self.user_repo = repositories.UserRepository(session)

    def _event(self, event_id: int) -> models.Event:
        event = self.event_repo.get(event_id)
        if not event:
            raise errors.NotFoundError("Event", event_id)
        return event

    def join(self, event_id: int, user_id: int) -> models.EventParticipant:
        event = self._event(event_id)
        user = self.user_repo.get(user_id)
        if not user:
            raise errors.NotFoundError("User", user_id)
        if self.participant_repo.get(event_id, user_id):
            raise errors.AlreadyParticipatingError(event_id, user_id)
        if event.min_age is not None and user.age < event.min_age:
            raise errors.AgeRestrictionError(event_id, event.min_age)
        if self.participant_repo.count_for_event(event_id) >= event.max_participants:
            raise errors.EventFullError(event_id)
        link = self.participant_repo.add(event_id, user_id)
        logger.info("user id=%s joined event id=%s", user_id, event_id)
        return link

    def leave(self, event_id: int, user_id: int) -> None:
        event = self._event(event_id)
        link = self.participant_repo.get(event_id, user_id)
        if not link:
            raise errors.NotFoundError("Participant", user_id)
        with transactional(self.session):
            self.participant_repo.remove(link)
        self.session.expire(event, ["participants"])
        logger.info("user id=%s left event id=%s", user_id, event_id)

    def list_participants(self, event_id: int) -> List[models.User]:
        self._event(event_id)
        return self.participant_repo.list_users_for_event(event_id)
