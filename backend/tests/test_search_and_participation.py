from datetime import datetime

import pytest

from coursemanager import errors, services

PAST = datetime(2020, 6, 1, 9)
FUTURE = datetime(2031, 6, 1, 9)


def hours(base, start, end):
    return base.replace(hour=start), base.replace(hour=end)


@pytest.fixture
def participation(session):
    return services.ParticipationService(session)


def test_exclude_full_omits_events_at_capacity(make_user, event_service, event_request, participation):
    full = event_service.create_event(event_request(*hours(FUTURE, 9, 10), name="full", max_participants=2))
    open_ = event_service.create_event(event_request(*hours(FUTURE, 11, 12), name="open", max_participants=2))
    for _ in range(2):
        participation.join(full.id, make_user().id)
    participation.join(open_.id, make_user().id)

    everything = event_service.search_events()
    assert [e.id for e in everything] == [full.id, open_.id]
    available = event_service.search_events(exclude_full=True)
    assert [e.id for e in available] == [open_.id]


def test_search_filters_combine(session, make_user, event_service, event_request, classroom):
    tags = services.TagService(session)
    py, js = tags.create("python"), tags.create("js")
    lab = services.ClassroomService(session).create("Lab")
    other_org = make_user(is_organizer=True)

    e1 = event_service.create_event(event_request(*hours(FUTURE, 9, 10), tag_ids=[py.id]))
    e2 = event_service.create_event(event_request(*hours(FUTURE, 9, 10), classroom_id=lab.id, tag_ids=[js.id]))
    e3 = event_service.create_event(event_request(*hours(FUTURE, 12, 13), organizer_id=other_org.id,
                                                  tag_ids=[py.id, js.id]))

    assert [e.id for e in event_service.search_events(tag_id=py.id)] == [e1.id, e3.id]
    assert [e.id for e in event_service.search_events(classroom_id=lab.id)] == [e2.id]
    assert [e.id for e in event_service.search_events(organizer_id=other_org.id)] == [e3.id]
    assert [e.id for e in event_service.search_events(classroom_id=classroom.id, tag_id=js.id)] == [e3.id]
    assert event_service.search_events(classroom_id=lab.id, tag_id=py.id) == []


def test_search_skips_started_events_unless_asked(event_service, event_request):
    old = event_service.create_event(event_request(*hours(PAST, 9, 10)))
    new = event_service.create_event(event_request(*hours(FUTURE, 9, 10)))
    assert [e.id for e in event_service.search_events()] == [new.id]
    assert [e.id for e in event_service.search_events(include_past=True)] == [old.id, new.id]


def test_past_and_future_participation(make_user, event_service, event_request, participation):
    user = make_user()
    old = event_service.create_event(event_request(*hours(PAST, 9, 10)))
    new = event_service.create_event(event_request(*hours(FUTURE, 9, 10)))
    event_service.create_event(event_request(*hours(FUTURE, 11, 12)))
    participation.join(old.id, user.id)
    participation.join(new.id, user.id)

    assert [e.id for e in event_service.get_past_participating_events(user.id)] == [old.id]
    assert [e.id for e in event_service.get_future_participating_events(user.id)] == [new.id]


def test_organized_events(make_user, organizer, event_service, event_request):
    mine = event_service.create_event(event_request(*hours(FUTURE, 9, 10)))
    assert [e.id for e in event_service.get_organized_events(organizer.id)] == [mine.id]
    assert event_service.get_organized_events(make_user(is_organizer=True).id) == []


def test_join_rules(make_user, event_service, event_request, participation):
    event = event_service.create_event(event_request(*hours(FUTURE, 9, 10), max_participants=1, min_age=18))
    adult, other_adult, child = make_user(age=20), make_user(age=40), make_user(age=12)

    with pytest.raises(errors.AgeRestrictionError):
        participation.join(event.id, child.id)
    link = participation.join(event.id, adult.id)
    assert link.joined_at is not None
    with pytest.raises(errors.AlreadyParticipatingError):
        participation.join(event.id, adult.id)
    with pytest.raises(errors.EventFullError):
        participation.join(event.id, other_adult.id)
    with pytest.raises(errors.NotFoundError):
        participation.join(event.id, 4242)
    with pytest.raises(errors.NotFoundError):
        participation.join(4242, adult.id)

    assert [u.id for u in participation.list_participants(event.id)] == [adult.id]
    assert event_service.map_to_summary(event).participant_count == 1


def test_leave_frees_a_seat(make_user, event_service, event_request, participation):
    event = event_service.create_event(event_request(*hours(FUTURE, 9, 10), max_participants=1))
    first, second = make_user(), make_user()
    participation.join(event.id, first.id)
    participation.leave(event.id, first.id)
    with pytest.raises(errors.NotFoundError):
        participation.leave(event.id, first.id)
    participation.join(event.id, second.id)
    assert [u.id for u in participation.list_participants(event.id)] == [second.id]


def test_deleting_event_drops_participations(make_user, event_service, event_request, participation):
    user = make_user()
    event = event_service.create_event(event_request(*hours(FUTURE, 9, 10)))
    participation.join(event.id, user.id)
    event_service.delete_event(event.id)
    assert event_service.get_future_participating_events(user.id) == []


def test_leave_refreshes_loaded_participants(make_user, event_service, event_request, participation):
    event = event_service.create_event(event_request(*hours(FUTURE, 9, 10)))
    user = make_user()
    participation.join(event.id, user.id)
    assert [u.id for u in event.participants] == [user.id]
    participation.leave(event.id, user.id)
    assert event.participants == []
