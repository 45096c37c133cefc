from campus_events import models


def test_organizer_creates_event(helpers):
    token = helpers["register_organizer"]("org@college.edu")
    event = helpers["create_event"](token, title="Hackathon", capacity=50)

    assert event["title"] == "Hackathon"
    assert event["capacity"] == 50
    assert event["registeredCount"] == 0
    assert event["organizerId"] == helpers["user_id"]("org@college.edu")
    assert event["createdAt"]


def test_organizer_id_in_body_is_ignored(helpers):
    org_token = helpers["register_organizer"]("real@college.edu")
    helpers["register_organizer"]("victim@college.edu")
    victim_id = helpers["user_id"]("victim@college.edu")

    event = helpers["create_event"](org_token, organizerId=victim_id)
    assert event["organizerId"] == helpers["user_id"]("real@college.edu")


def test_create_event_requires_auth(helpers):
    resp = helpers["client"].post(
        "/api/events",
        json={
            "title": "No auth",
            "description": "Desc",
            "category": "tech",
            "date": helpers["future_time"](),
            "venue": "Hall",
            "capacity": 5,
        },
    )
    assert resp.status_code == 401


def test_student_cannot_create_event(helpers):
    client = helpers["client"]
    token = helpers["register_student"]("stud@college.edu")
    resp = client.post(
        "/api/events",
        json={
            "title": "Invalid",
            "description": "Desc",
            "category": "tech",
            "date": helpers["future_time"](),
            "venue": "Hall",
            "capacity": 5,
        },
        headers=helpers["auth_header"](token),
    )
    assert resp.status_code == 403


def test_create_event_missing_fields(helpers):
    client = helpers["client"]
    token = helpers["register_organizer"]()
    resp = client.post(
        "/api/events",
        json={"title": "Half", "description": "Desc", "category": "tech"},
        headers=helpers["auth_header"](token),
    )
    assert resp.status_code == 400
    assert resp.json()["message"] == "All fields are required"
    assert helpers["db"].query(models.Event).count() == 0


def test_create_event_rejects_negative_capacity(helpers):
    client = helpers["client"]
    token = helpers["register_organizer"]()
    resp = client.post(
        "/api/events",
        json={
            "title": "Negative",
            "description": "Desc",
            "category": "tech",
            "date": helpers["future_time"](),
            "venue": "Hall",
            "capacity": -1,
        },
        headers=helpers["auth_header"](token),
    )
    assert resp.status_code == 400
    assert "Capacity" in resp.json()["message"]


def test_list_events_expands_organizer(helpers):
    client = helpers["client"]
    token = helpers["register_organizer"]("host@college.edu", name="Host Club")
    created = helpers["create_event"](token)

    resp = client.get("/api/events")
    assert resp.status_code == 200
    events = resp.json()
    assert len(events) == 1
    assert events[0]["id"] == created["id"]
    assert events[0]["organizer"] == {
        "id": helpers["user_id"]("host@college.edu"),
        "name": "Host Club",
        "email": "host@college.edu",
    }
    assert "password" not in str(events[0]["organizer"])


def test_available_events_excludes_full(helpers):
    client = helpers["client"]
    org = helpers["register_organizer"]()
    open_event = helpers["create_event"](org, title="Open", capacity=2)
    full_event = helpers["create_event"](org, title="Full", capacity=1)
    zero_event = helpers["create_event"](org, title="Zero", capacity=0)

    student = helpers["register_student"]("s@college.edu")
    reg = client.post(f"/api/events/{full_event['id']}/register", headers=helpers["auth_header"](student))
    assert reg.status_code == 201

    resp = client.get("/api/events/available")
    assert resp.status_code == 200
    ids = {event["id"] for event in resp.json()}
    assert ids == {open_event["id"]}
    assert zero_event["id"] not in ids
    for event in resp.json():
        assert event["registeredCount"] < event["capacity"]


def test_my_events_newest_first_and_scoped_to_owner(helpers):
    client = helpers["client"]
    mine = helpers["register_organizer"]("mine@college.edu")
    other = helpers["register_organizer"]("other@college.edu")
    first = helpers["create_event"](mine, title="First")
    helpers["create_event"](other, title="Not mine")
    second = helpers["create_event"](mine, title="Second")

    resp = client.get("/api/events/my-events", headers=helpers["auth_header"](mine))
    assert resp.status_code == 200
    assert [event["id"] for event in resp.json()] == [second["id"], first["id"]]


def test_my_events_rejects_students(helpers):
    token = helpers["register_student"]("stud@college.edu")
    resp = helpers["client"].get("/api/events/my-events", headers=helpers["auth_header"](token))
    assert resp.status_code == 403
