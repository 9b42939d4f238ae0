import json
from datetime import datetime

from fastapi.testclient import TestClient
from sqlalchemy import DateTime
from sqlmodel import Session, select

from lnconnext import models
from lnconnext.database import engine
from lnconnext.main import app

client = TestClient(app)

LOCATION = {
    "buildingName": "BOB Space",
    "address": "123 Sukhumvit Road, Bangkok",
    "city": "Bangkok",
    "googleMapsUrl": "https://maps.app.goo.gl/txMxnbfE6q7qvhLe7",
}


def _setup(headers):
    r = client.post(
        "/api/organizer/create",
        json={"name": "BOB Space", "bio": "space", "website": "https://bobspace.co", "socialMedia": []},
        headers=headers,
    )
    oid = r.json()["data"]["id"]
    ids = []
    for name in ("Alice", "Bob"):
        client.post("/api/bitcoiner/create", json={"name": name, "bio": "bio", "socialMedia": []}, headers=headers)
        with Session(engine) as s:
            ids.append(s.exec(select(models.Bitcoiner).where(models.Bitcoiner.name == name)).first().id)
    return oid, ids


def _payload(organizer_id, speakers=(), **overrides):
    alice, bob = speakers if speakers else (None, None)
    payload = {
        "name": "Mempool Meetup",
        "description": "Fee markets and mempool dynamics",
        "startDate": "2099-07-11T18:30:00+07:00",
        "endDate": "2099-07-11T21:00:00+07:00",
        "price": 0,
        "currency": "thb",
        "images": ["https://bobspace.co/poster.jpg", "https://bobspace.co/2.jpg"],
        "organizerId": organizer_id,
        "location": LOCATION,
        "websites": [{"url": "https://meetup.com/e/1", "displayText": "Join Meetup", "type": "other"}],
        "sections": [] if not speakers else [
            {
                "sectionName": "Opening",
                "startTime": "2099-07-11T18:30:00+07:00",
                "endTime": "2099-07-11T19:00:00+07:00",
                "spot": "Main room",
                "description": "Welcome",
                "speakerIds": [bob, alice],
            },
            {
                "sectionName": "Deep dive",
                "startTime": "2099-07-11T19:00:00+07:00",
                "endTime": "2099-07-11T20:00:00+07:00",
                "spot": "Main room",
                "description": "RBF",
                "speakerIds": [alice],
            },
        ],
    }
    payload.update(overrides)
    return payload


def _create(headers, payload):
    r = client.post("/api/event/create", json=payload, headers=headers)
    assert r.status_code == 200, r.text
    return r.json()["data"]["id"]


def test_create_and_get_event_detail(auth_headers):
    oid, speakers = _setup(auth_headers)
    eid = _create(auth_headers, _payload(oid, speakers))

    r = client.post("/api/event/get", json={"id": eid})
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["currency"] == "THB"
    assert data["startDate"] == "2099-07-11T11:30:00Z"
    assert data["organizerName"] == "BOB Space"
    assert data["location"]["city"] == "Bangkok"
    assert data["websites"][0]["displayText"] == "Join Meetup"
    assert [s["sectionName"] for s in data["sections"]] == ["Opening", "Deep dive"]
    assert [p["bitcoinerName"] for p in data["sections"][0]["participants"]] == ["Bob", "Alice"]
    # union across sections, first seen first
    assert [p["bitcoinerName"] for p in data["eventParticipants"]] == ["Bob", "Alice"]
    opening = data["sections"][0]["participants"]
    assert [p["id"] for p in data["eventParticipants"]] == [opening[0]["id"], opening[1]["id"]]


def test_create_checks_references(auth_headers):
    oid, speakers = _setup(auth_headers)
    r = client.post("/api/event/create", json=_payload("missing"), headers=auth_headers)
    assert r.status_code == 400
    assert r.json()["error"] == "Organizer not found or inactive"

    r = client.post("/api/event/create", json=_payload(oid, (speakers[0], "ghost")), headers=auth_headers)
    assert r.status_code == 400
    assert r.json()["error"] == "Speaker not found or inactive: ghost"

    r = client.post("/api/event/create", json=_payload(oid, price=-5), headers=auth_headers)
    assert r.status_code == 400
    assert r.json()["error"] == "Price must be a non-negative number"


def test_update_replaces_children_and_keeps_history(auth_headers):
    oid, speakers = _setup(auth_headers)
    eid = _create(auth_headers, _payload(oid, speakers))
    with Session(engine) as s:
        old_location = s.get(models.Event, eid).location_id

    body = _payload(oid, name="Mempool Meetup II", websites=[], sections=[])
    del body["location"]
    r = client.post("/api/event/update", json={"id": eid, **body}, headers=auth_headers)
    assert r.status_code == 200, r.text

    data = client.post("/api/event/get", json={"id": eid}).json()["data"]
    assert data["name"] == "Mempool Meetup II"
    assert data["websites"] == []
    assert data["sections"] == []
    assert data["eventParticipants"] == []
    assert data["location"]["id"] == old_location

    with Session(engine) as s:
        snapshot = s.exec(select(models.Event).where(models.Event.active_flag == "R")).one()
        assert snapshot.name == "Mempool Meetup"
        assert len(snapshot.websites) == 1
        assert [len(sec.participants) for sec in snapshot.sections] == [2, 1]

    moved = {**LOCATION, "buildingName": "Fitculty"}
    r = client.post("/api/event/update", json={"id": eid, **_payload(oid, location=moved)}, headers=auth_headers)
    assert r.status_code == 200
    data = client.post("/api/event/get", json={"id": eid}).json()["data"]
    assert data["location"]["buildingName"] == "Fitculty"
    assert data["location"]["id"] != old_location


def test_delete_and_missing(auth_headers):
    oid, _ = _setup(auth_headers)
    eid = _create(auth_headers, _payload(oid))
    assert client.post("/api/event/delete", json={"id": eid}, headers=auth_headers).status_code == 200
    r = client.post("/api/event/get", json={"id": eid})
    assert r.status_code == 404
    assert r.json()["error"] == "Event not found"
    assert client.post("/api/event/update", json={"id": eid, **_payload(oid)}, headers=auth_headers).status_code == 404
    assert client.post("/api/event/delete", json={"id": eid}, headers=auth_headers).status_code == 404
    assert client.post("/api/event/delete", json={}, headers=auth_headers).json()["error"] == "Event ID is required"


def test_list_filters(auth_headers):
    oid, _ = _setup(auth_headers)
    _create(auth_headers, _payload(oid, name="Later", startDate="2099-09-01T10:00:00Z", endDate="2099-09-01T12:00:00Z"))
    _create(auth_headers, _payload(oid, name="Sooner", startDate="2099-08-01T10:00:00Z", endDate="2099-08-01T12:00:00Z", images=[]))

    data = client.post("/api/event/list", json={}).json()["data"]
    assert data["total"] == 2
    assert [e["name"] for e in data["events"]] == ["Sooner", "Later"]
    first = data["events"][0]
    assert first["firstImage"] == ""
    assert first["location"]["buildingName"] == "BOB Space"
    assert set(first) == {"id", "name", "startDate", "price", "currency", "firstImage", "organizerName", "location"}

    data = client.post("/api/event/list", json={"filters": {"startDateFrom": "2099-08-15T00:00:00Z"}}).json()["data"]
    assert [e["name"] for e in data["events"]] == ["Later"]

    data = client.post("/api/event/list", json={"filters": {"organizerId": "other"}}).json()["data"]
    assert data == {"events": [], "total": 0}


def test_upcoming_past_and_search(auth_headers):
    oid, _ = _setup(auth_headers)
    _create(auth_headers, _payload(oid, name="Genesis party", startDate="2001-01-03T10:00:00Z", endDate="2001-01-03T12:00:00Z"))
    _create(auth_headers, _payload(oid, name="Old halving", startDate="2002-04-20T10:00:00Z", endDate="2002-04-20T12:00:00Z"))
    _create(auth_headers, _payload(oid, name="Lightning night", description="channels", startDate="2099-01-01T10:00:00Z", endDate="2099-01-01T12:00:00Z"))

    data = client.post("/api/event/upcoming", json={}).json()["data"]
    assert [e["name"] for e in data["events"]] == ["Lightning night"]
    assert data["pagination"] == {"total": 1, "limit": 10}

    data = client.post("/api/event/past", json={"limit": 1}).json()["data"]
    assert [e["name"] for e in data["events"]] == ["Old halving"]

    r = client.post("/api/event/search", json={"query": "CHANNEL"})
    assert r.status_code == 200
    data = r.json()["data"]
    assert [e["name"] for e in data["events"]] == ["Lightning night"]
    assert data["query"] == "CHANNEL"
    assert data["pagination"] == {"total": 1, "page": 1, "limit": 50, "hasMore": False}

    r = client.post("/api/event/search", json={"query": "e", "filters": {"organizerId": "other"}})
    assert r.json()["data"]["events"] == []

    assert client.post("/api/event/search", json={"query": ""}).status_code == 400
    assert client.post("/api/event/upcoming", json={"limit": -3}).status_code == 400


def test_timestamps_are_stored_as_naive_utc(auth_headers):
    columns = [
        (models.Event, "start_date"),
        (models.Event, "updated_at"),
        (models.EventSection, "start_time"),
        (models.User, "last_login_at"),
    ]
    for model, name in columns:
        column_type = model.__table__.c[name].type
        assert isinstance(column_type, DateTime)
        assert column_type.timezone is False

    oid, speakers = _setup(auth_headers)
    eid = _create(auth_headers, _payload(oid, speakers))
    with Session(engine) as s:
        event = s.get(models.Event, eid)
        assert event.start_date == datetime(2099, 7, 11, 11, 30)
        assert event.start_date.tzinfo is None
        assert event.sections[0].start_time == datetime(2099, 7, 11, 11, 30)


def test_non_finite_numbers_are_rejected(auth_headers):
    oid, _ = _setup(auth_headers)
    body = json.dumps(_payload(oid)).replace('"price": 0', '"price": NaN')
    r = client.post("/api/event/create", content=body, headers={**auth_headers, "Content-Type": "application/json"})
    assert r.status_code == 400
    assert r.json() == {"success": False, "error": "Invalid JSON format"}

    r = client.post("/api/event/create", json=_payload(oid, price=10**400), headers=auth_headers)
    assert r.status_code == 400
    assert r.json()["error"] == "Price must be a non-negative number"


def test_search_treats_wildcards_literally_and_zero_limit_as_default(auth_headers):
    oid, _ = _setup(auth_headers)
    _create(auth_headers, _payload(oid, name="Lightning night", description="channels"))
    _create(auth_headers, _payload(oid, name="Fees at 100%", description="mempool_watch"))

    for query, names in [("%", ["Fees at 100%"]), ("_", ["Fees at 100%"]), ("l_ght", [])]:
        data = client.post("/api/event/search", json={"query": query}).json()["data"]
        assert [e["name"] for e in data["events"]] == names

    data = client.post("/api/event/list", json={"filters": {"searchTerm": "%"}}).json()["data"]
    assert [e["name"] for e in data["events"]] == ["Fees at 100%"]

    data = client.post("/api/event/search", json={"query": "night", "filters": {"limit": 0}}).json()["data"]
    assert [e["name"] for e in data["events"]] == ["Lightning night"]
    assert data["pagination"] == {"total": 1, "page": 1, "limit": 50, "hasMore": False}
