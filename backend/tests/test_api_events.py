from fastapi.testclient import TestClient

from coursemanager.main import app

client = TestClient(app)


def _setup():
    """Create an organizer, a plain user, a classroom and a tag over HTTP."""
    org = client.post("/api/users/register", json={
        "firstname": "Jan", "surname": "Kowalski", "age": 40,
        "email": "jan@example.com", "password": "pw", "is_organizer": True,
    }).json()
    student = client.post("/api/users/register", json={
        "firstname": "Ola", "surname": "Lis", "age": 19,
        "email": "ola@example.com", "password": "pw",
    }).json()
    room = client.post("/api/classrooms", json={"name": "Aula"}).json()
    tag = client.post("/api/tags", json={"label": "python"}).json()
    return org, student, room, tag


def _event(org, room, start, end, **overrides):
    body = {
        "name": "Workshop",
        "start_datetime": start,
        "end_datetime": end,
        "max_participants": 1,
        "organizer_id": org["id"],
        "classroom_id": room["id"],
        "tag_ids": [],
    }
    body.update(overrides)
    return body


def test_tag_crud():
    created = client.post("/api/tags", json={"label": "sql"})
    assert created.status_code == 200
    tag_id = created.json()["id"]
    assert client.get(f"/api/tags/{tag_id}").json() == {"id": tag_id, "label": "sql"}
    assert client.put(f"/api/tags/{tag_id}", json={"label": "postgres"}).json()["label"] == "postgres"
    assert [t["label"] for t in client.get("/api/tags").json()] == ["postgres"]
    r = client.delete(f"/api/tags/{tag_id}")
    assert r.status_code == 200
    assert r.json() == {"message": "Tag deleted"}
    assert client.get(f"/api/tags/{tag_id}").status_code == 404
    assert client.delete(f"/api/tags/{tag_id}").status_code == 404


def test_classroom_crud_and_in_use_guard():
    org, _, room, _ = _setup()
    assert client.put(f"/api/classrooms/{room['id']}", json={"name": "Aula B"}).json()["name"] == "Aula B"
    client.post("/api/events/create", json=_event(org, room, "2031-01-10T10:00:00", "2031-01-10T11:00:00"))
    assert client.delete(f"/api/classrooms/{room['id']}").status_code == 409
    spare = client.post("/api/classrooms", json={"name": "Spare"}).json()
    assert client.delete(f"/api/classrooms/{spare['id']}").json() == {"message": "Classroom deleted"}
    assert client.get(f"/api/classrooms/{spare['id']}").status_code == 404


def test_event_lifecycle_over_http():
    org, student, room, tag = _setup()
    r = client.post("/api/events/create", json=_event(
        org, room, "2031-01-10T10:00:00", "2031-01-10T11:00:00", tag_ids=[tag["id"]]))
    assert r.status_code == 200
    event = r.json()
    assert event["organizer_name"] == "Jan Kowalski"
    assert event["classroom_name"] == "Aula"
    assert event["tag_ids"] == [tag["id"]]

    clash = client.post("/api/events/create", json=_event(org, room, "2031-01-10T10:30:00", "2031-01-10T11:30:00"))
    assert clash.status_code == 409

    # timezone-aware input is stored as UTC: 12:00+01:00 is 11:00Z, touching the first event
    after = client.post("/api/events/create", json=_event(org, room, "2031-01-10T12:00:00+01:00", "2031-01-10T13:00:00+01:00"))
    assert after.status_code == 200
    assert after.json()["start_datetime"] == "2031-01-10T11:00:00"

    not_org = client.post("/api/events/create", json=_event(student, room, "2031-02-01T10:00:00", "2031-02-01T11:00:00"))
    assert not_org.status_code == 403
    missing_tag = client.post("/api/events/create", json=_event(
        org, room, "2031-02-01T10:00:00", "2031-02-01T11:00:00", tag_ids=[999]))
    assert missing_tag.status_code == 404

    upd = client.put(f"/api/events/{event['id']}/update", json=_event(
        org, room, "2031-01-10T10:00:00", "2031-01-10T11:00:00", name="Workshop v2"))
    assert upd.status_code == 200
    assert upd.json()["name"] == "Workshop v2"
    assert upd.json()["tag_ids"] == []

    assert client.get(f"/api/events/{event['id']}").json()["name"] == "Workshop v2"
    assert len(client.get("/api/events").json()) == 2
    organized = client.get(f"/api/events/organizers/{org['id']}/events").json()
    assert [e["id"] for e in organized] == [event["id"], after.json()["id"]]

    assert client.delete(f"/api/events/{event['id']}/delete").status_code == 204
    assert client.get(f"/api/events/{event['id']}").status_code == 404
    assert client.delete(f"/api/events/{event['id']}/delete").status_code == 404


def test_participation_and_search_over_http():
    org, student, room, _ = _setup()
    event = client.post("/api/events/create", json=_event(
        org, room, "2031-03-01T10:00:00", "2031-03-01T11:00:00", max_participants=1)).json()

    joined = client.post(f"/api/events/{event['id']}/participants/{student['id']}")
    assert joined.status_code == 201
    assert joined.json()["user_id"] == student["id"]
    full = client.post(f"/api/events/{event['id']}/participants/{org['id']}")
    assert full.status_code == 409

    people = client.get(f"/api/events/{event['id']}/participants").json()
    assert [p["id"] for p in people] == [student["id"]]

    assert [e["id"] for e in client.get("/api/events/search").json()] == [event["id"]]
    assert client.get("/api/events/search", params={"exclude_full": "true"}).json() == []
    future = client.get(f"/api/participants/{student['id']}/future").json()
    assert [e["id"] for e in future] == [event["id"]]
    assert future[0]["participant_count"] == 1
    assert client.get(f"/api/participants/{student['id']}/past").json() == []

    assert client.delete(f"/api/events/{event['id']}/participants/{student['id']}").status_code == 204
    assert client.get("/api/events/search", params={"exclude_full": "true"}).json()[0]["id"] == event["id"]
