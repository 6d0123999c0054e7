"""CLI script to seed the backend DB with demo users, rooms, tags and events.
Usage: python scripts/seed_demo.py [--days-ahead N]
"""
import sys
import argparse
import pathlib
from datetime import timedelta
# Ensure `backend/` is on sys.path so `coursemanager` imports work when running this script directly
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
from sqlmodel import Session
from coursemanager.database import engine, create_db_and_tables
from coursemanager import errors, models, services

USERS = [
    ("Jan", "Kowalski", 41, "jan.kowalski@example.com", True),
    ("Maria", "Wiśniewska", 35, "maria.w@example.com", True),
    ("Ola", "Lis", 19, "ola.lis@example.com", False),
    ("Tomek", "Nowak", 16, "tomek.nowak@example.com", False),
]
CLASSROOMS = ["Aula A", "Lab 2.14", "Room 101"]
TAGS = ["python", "databases", "beginner", "workshop"]


def _user(svc: services.UserService, firstname, surname, age, email, is_organizer):
    existing = svc.get_by_email(email)
    if existing:
        return existing
    return svc.register(firstname, surname, age, email, "demo", is_organizer)


def main(days_ahead: int = 7):
    """Insert demo data; users, rooms and tags are matched by e-mail/name so reruns add no duplicates.

    Events are scheduled `days_ahead` days from now. A slot that is
    already taken is reported and skipped.
    """
    create_db_and_tables()
    with Session(engine) as session:
        user_svc = services.UserService(session)
        users = [_user(user_svc, *u) for u in USERS]
        room_svc, tag_svc = services.ClassroomService(session), services.TagService(session)
        known_rooms = {r.name: r for r in room_svc.list_all()}
        known_tags = {t.label: t for t in tag_svc.list_all()}
        rooms = [known_rooms.get(name) or room_svc.create(name) for name in CLASSROOMS]
        tags = [known_tags.get(label) or tag_svc.create(label) for label in TAGS]
        day = (models.utc_now() + timedelta(days=days_ahead)).replace(hour=9, minute=0, second=0, microsecond=0)
        plan = [
            ("Python for beginners", 0, 2, users[0], rooms[0], [tags[0], tags[2]], 20, None),
            ("SQL workshop", 2, 4, users[1], rooms[0], [tags[1], tags[3]], 12, 18),
            ("Code review clinic", 1, 3, users[0], rooms[1], [tags[0]], 6, None),
        ]
        event_svc = services.EventService(session)
        created = 0
        for name, start_h, end_h, org, room, event_tags, cap, min_age in plan:
            try:
                event_svc.create_event({
                    "name": name,
                    "start_datetime": day + timedelta(hours=start_h),
                    "end_datetime": day + timedelta(hours=end_h),
                    "max_participants": cap,
                    "min_age": min_age,
                    "info": None,
                    "organizer_id": org.id,
                    "classroom_id": room.id,
                    "tag_ids": [t.id for t in event_tags],
                })
                created += 1
                print(f'Scheduled {name!r} in {room.name}')
            except errors.DomainError as e:
                print(f'Skipped {name!r}: {e}')
        print(f'Users: {len(users)}, classrooms: {len(rooms)}, tags: {len(tags)}, events: {created}')

if __name__ == '__main__':
    parser = argparse.ArgumentParser()
    parser.add_argument('--days-ahead', type=int, default=7, help='Schedule demo events this many days from now')
    args = parser.parse_args()
    main(days_ahead=args.days_ahead)
