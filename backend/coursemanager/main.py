"""FastAPI application entrypoint and HTTP controllers.

This module defines the HTTP endpoints of the course manager backend.
Controllers are intentionally thin: they accept requests, delegate to
services, and translate domain errors into HTTP status codes.

Endpoints implemented:
- /api/users: list, get, register, update, delete, get by email
- /api/tags and /api/classrooms: CRUD
- /api/events: list, search, get, create, update, delete, by organizer
- /api/events/{id}/participants: list, join, leave
- /api/participants/{user_id}/past and /future
- GET /health
"""

from fastapi import FastAPI, Depends, HTTPException, Request
from fastapi.responses import Response
from fastapi.middleware.cors import CORSMiddleware
from sqlmodel import Session
from typing import List, Optional
import json
import logging
import time
import uuid
from .database import create_db_and_tables, get_session
from . import errors, services
from .errors import ErrorKind
from .schemas import (
    ClassroomIn,
    ClassroomOut,
    EventIn,
    EventSummary,
    MessageOut,
    TagIn,
    TagOut,
    UserOut,
    UserRegistrationIn,
    UserUpdateIn,
)
from .config import settings

app = FastAPI(title="Course Manager API")
logger = logging.getLogger("coursemanager.api")
if not logging.getLogger().handlers:
    logging.basicConfig(level=settings.LOG_LEVEL)

if settings.ALLOW_DEV_CORS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

create_db_and_tables()

STATUS_BY_KIND = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.DUPLICATE: 409,
    ErrorKind.CONFLICT: 409,
    ErrorKind.FORBIDDEN: 403,
}


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    req_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
    request.state.request_id = req_id
    started = time.perf_counter()
    response: Response
    try:
        response = await call_next(request)
    except Exception:
        elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
        logger.exception(
            "request_failed %s",
            json.dumps(
                {
                    "request_id": req_id,
                    "path": request.url.path,
                    "method": request.method,
                    "duration_ms": elapsed_ms,
                },
                ensure_ascii=True,
            ),
        )
        raise
    response.headers["X-Request-ID"] = req_id
    elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
    if request.url.path.startswith("/api"):
        logger.info(
            "request_done %s",
            json.dumps(
                {
                    "request_id": req_id,
                    "path": request.url.path,
                    "method": request.method,
                    "status_code": response.status_code,
                    "duration_ms": elapsed_ms,
                },
                ensure_ascii=True,
            ),
        )
    return response


def _http_error(exc: errors.DomainError) -> HTTPException:
    """Translate a domain error into an HTTPException.

    With `COLLAPSE_DOMAIN_ERRORS` every domain error becomes a 400.
    """
    if settings.COLLAPSE_DOMAIN_ERRORS:
        status = 400
    else:
        status = STATUS_BY_KIND.get(exc.kind, 400)
    return HTTPException(status_code=status, detail=exc.message)


# --- users ---

@app.get('/api/users', response_model=List[UserOut])
def list_users(db: Session = Depends(get_session)):
    return services.UserService(db).list_all()


@app.get('/api/users/email/{email}', response_model=UserOut)
def get_user_by_email(email: str, db: Session = Depends(get_session)):
    """Look a user up by e-mail address; 404 if unknown."""
    user = services.UserService(db).get_by_email(email)
    if not user:
        raise HTTPException(status_code=404, detail='user not found')
    return user


@app.get('/api/users/{user_id}', response_model=UserOut)
def get_user(user_id: int, db: Session = Depends(get_session)):
    user = services.UserService(db).get_by_id(user_id)
    if not user:
        raise HTTPException(status_code=404, detail='user not found')
    return user


@app.post('/api/users/register', response_model=UserOut)
def register_user(payload: UserRegistrationIn, db: Session = Depends(get_session)):
    """Register a new user. A duplicate e-mail is rejected with 409."""
    svc = services.UserService(db)
    try:
        return svc.register(
            payload.firstname,
            payload.surname,
            payload.age,
            payload.email,
            payload.password,
            payload.is_organizer,
        )
    except errors.DomainError as e:
        raise _http_error(e) from e


@app.put('/api/users/{user_id}', response_model=UserOut)
def update_user(user_id: int, payload: UserUpdateIn, db: Session = Depends(get_session)):
    """Partially update a user; omitted or null fields are left unchanged."""
    try:
        return services.UserService(db).update(user_id, payload.model_dump(exclude_none=True))
    except errors.DomainError as e:
        raise _http_error(e) from e


@app.delete('/api/users/{user_id}', status_code=204)
def delete_user(user_id: int, db: Session = Depends(get_session)):
    try:
        services.UserService(db).delete(user_id)
    except errors.DomainError as e:
        raise _http_error(e) from e
    return Response(status_code=204)


# --- tags ---

@app.get('/api/tags', response_model=List[TagOut])
def list_tags(db: Session = Depends(get_session)):
    return services.TagService(db).list_all()


@app.post('/api/tags', response_model=TagOut)
def create_tag(payload: TagIn, db: Session = Depends(get_session)):
    return services.TagService(db).create(payload.label)


@app.get('/api/tags/{tag_id}', response_model=TagOut)
def get_tag(tag_id: int, db: Session = Depends(get_session)):
    try:
        return services.TagService(db).get_by_id(tag_id)
    except errors.DomainError as e:
        raise _http_error(e) from e


@app.put('/api/tags/{tag_id}', response_model=TagOut)
def update_tag(tag_id: int, payload: TagIn, db: Session = Depends(get_session)):
    try:
        return services.TagService(db).update(tag_id, payload.label)
    except errors.DomainError as e:
        raise _http_error(e) from e


@app.delete('/api/tags/{tag_id}', response_model=MessageOut)
def delete_tag(tag_id: int, db: Session = Depends(get_session)):
    """Delete a tag. Answers 200 with a message body, unlike user deletion."""
    try:
        services.TagService(db).delete(tag_id)
    except errors.DomainError as e:
        raise _http_error(e) from e
    return {'message': 'Tag deleted'}


# --- classrooms ---

@app.get('/api/classrooms', response_model=List[ClassroomOut])
def list_classrooms(db: Session = Depends(get_session)):
    return services.ClassroomService(db).list_all()


@app.post('/api/classrooms', response_model=ClassroomOut)
def create_classroom(payload: ClassroomIn, db: Session = Depends(get_session)):
    return services.ClassroomService(db).create(payload.name)


@app.get('/api/classrooms/{classroom_id}', response_model=ClassroomOut)
def get_classroom(classroom_id: int, db: Session = Depends(get_session)):
    try:
        return services.ClassroomService(db).get_by_id(classroom_id)
    except errors.DomainError as e:
        raise _http_error(e) from e


@app.put('/api/classrooms/{classroom_id}', response_model=ClassroomOut)
def update_classroom(classroom_id: int, payload: ClassroomIn, db: Session = Depends(get_session)):
    try:
        return services.ClassroomService(db).update(classroom_id, payload.name)
    except errors.DomainError as e:
        raise _http_error(e) from e


@app.delete('/api/classrooms/{classroom_id}', response_model=MessageOut)
def delete_classroom(classroom_id: int, db: Session = Depends(get_session)):
    """Delete a classroom that no event is booked into."""
    try:
        services.ClassroomService(db).delete(classroom_id)
    except errors.DomainError as e:
        raise _http_error(e) from e
    return {'message': 'Classroom deleted'}


# --- events ---

@app.get('/api/events', response_model=List[EventSummary])
def list_events(db: Session = Depends(get_session)):
    svc = services.EventService(db)
    return svc.map_all_to_summary(svc.list_all())


@app.get('/api/events/search', response_model=List[EventSummary])
def search_events(
    organizer_id: Optional[int] = None,
    classroom_id: Optional[int] = None,
    tag_id: Optional[int] = None,
    exclude_full: bool = False,
    include_past: bool = False,
    db: Session = Depends(get_session),
):
    """Search upcoming events; every filter is optional.

    `exclude_full=true` hides events that reached `max_participants`;
    `include_past=true` also returns events that already started.
    """
    svc = services.EventService(db)
    events = svc.search_events(organizer_id, classroom_id, tag_id, exclude_full, include_past)
    return svc.map_all_to_summary(events)


@app.get('/api/events/organizers/{organizer_id}/events', response_model=List[EventSummary])
def organized_events(organizer_id: int, db: Session = Depends(get_session)):
    svc = services.EventService(db)
    return svc.map_all_to_summary(svc.get_organized_events(organizer_id))


@app.get('/api/events/{event_id}', response_model=EventSummary)
def get_event(event_id: int, db: Session = Depends(get_session)):
    svc = services.EventService(db)
    try:
        return svc.map_to_summary(svc.get_event(event_id))
    except errors.DomainError as e:
        raise _http_error(e) from e


@app.post('/api/events/create', response_model=EventSummary)
def create_event(payload: EventIn, db: Session = Depends(get_session)):
    """Schedule a new event.

    Fails with 403 if the organizer lacks the organizer role, 404 if the
    organizer, classroom or a tag does not exist, and 409 if the classroom
    is already booked for an overlapping time.
    """
    svc = services.EventService(db)
    try:
        event = svc.create_event(payload.model_dump())
    except errors.DomainError as e:
        raise _http_error(e) from e
    return svc.map_to_summary(event)


@app.put('/api/events/{event_id}/update', response_model=EventSummary)
def update_event(event_id: int, payload: EventIn, db: Session = Depends(get_session)):
    """Replace every field of an event; its own booking never conflicts."""
    svc = services.EventService(db)
    try:
        event = svc.update_event(event_id, payload.model_dump())
    except errors.DomainError as e:
        raise _http_error(e) from e
    return svc.map_to_summary(event)


@app.delete('/api/events/{event_id}/delete', status_code=204)
def delete_event(event_id: int, db: Session = Depends(get_session)):
    try:
        services.EventService(db).delete_event(event_id)
    except errors.DomainError as e:
        raise _http_error(e) from e
    return Response(status_code=204)


# --- participation ---

@app.get('/api/events/{event_id}/participants', response_model=List[UserOut])
def list_participants(event_id: int, db: Session = Depends(get_session)):
    try:
        return services.ParticipationService(db).list_participants(event_id)
    except errors.DomainError as e:
        raise _http_error(e) from e


@app.post('/api/events/{event_id}/participants/{user_id}', status_code=201)
def join_event(event_id: int, user_id: int, db: Session = Depends(get_session)):
    """Sign a user up for an event, subject to capacity and minimum age."""
    try:
        link = services.ParticipationService(db).join(event_id, user_id)
    except errors.DomainError as e:
        raise _http_error(e) from e
    return {'event_id': link.event_id, 'user_id': link.user_id, 'joined_at': link.joined_at.isoformat()}


@app.delete('/api/events/{event_id}/participants/{user_id}', status_code=204)
def leave_event(event_id: int, user_id: int, db: Session = Depends(get_session)):
    try:
        services.ParticipationService(db).leave(event_id, user_id)
    except errors.DomainError as e:
        raise _http_error(e) from e
    return Response(status_code=204)


@app.get('/api/participants/{user_id}/past', response_model=List[EventSummary])
def past_participating_events(user_id: int, db: Session = Depends(get_session)):
    """Events the user attended that have already ended."""
    svc = services.EventService(db)
    return svc.map_all_to_summary(svc.get_past_participating_events(user_id))


@app.get('/api/participants/{user_id}/future', response_model=List[EventSummary])
def future_participating_events(user_id: int, db: Session = Depends(get_session)):
    """Events the user signed up for that have not started yet."""
    svc = services.EventService(db)
    return svc.map_all_to_summary(svc.get_future_participating_events(user_id))


@app.get("/health")
def health():
    """Lightweight health check for uptime monitoring."""
    return {"status": "ok"}
