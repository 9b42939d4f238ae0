from fastapi.testclient import TestClient
from sqlmodel import Session, select

from lnconnext import models
from lnconnext.database import engine
from lnconnext.main import app

client = TestClient(app)


def _organizer(headers, name="BOB Space", **overrides):
    payload = {
        "name": name,
        "bio": "A community space for Bitcoin enthusiasts",
        "website": "https://bobspace.co",
        "socialMedia": [{"displayText": "BOB page", "platform": "facebook", "urlLink": "https://facebook.com/bob"}],
    }
    payload.update(overrides)
    r = client.post("/api/organizer/create", json=payload, headers=headers)
    assert r.status_code == 200, r.text
    return r.json()["data"]["id"]


def _event(headers, organizer_id, name, start, speakers=()):
    payload = {
        "name": name,
        "description": "meetup",
        "startDate": start,
        "endDate": start.replace("T10", "T12"),
        "price": 0,
        "currency": "THB",
        "images": [],
        "organizerId": organizer_id,
        "websites": [],
        "sections": [{
            "sectionName": "Talk",
            "startTime": start,
            "endTime": start.replace("T10", "T11"),
            "spot": "Main",
            "description": "talk",
            "speakerIds": list(speakers),
        }] if speakers else [],
    }
    r = client.post("/api/event/create", json=payload, headers=headers)
    assert r.status_code == 200, r.text
    return r.json()["data"]["id"]


def _bitcoiner(headers, name, organizer_id=None):
    payload = {"name": name, "bio": "bio", "socialMedia": []}
    if organizer_id:
        payload["organizerId"] = organizer_id
    assert client.post("/api/bitcoiner/create", json=payload, headers=headers).status_code == 200
    with Session(engine) as s:
        return s.exec(select(models.Bitcoiner).where(models.Bitcoiner.name == name)).first().id


def test_create_returns_id_and_get_lists_active_members(auth_headers):
    oid = _organizer(auth_headers)
    _bitcoiner(auth_headers, "Alice", oid)
    bob = _bitcoiner(auth_headers, "Bob", oid)
    client.post("/api/bitcoiner/delete", json={"id": bob}, headers=auth_headers)

    r = client.post("/api/organizer/get", json={"id": oid})
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["website"] == "https://bobspace.co"
    assert data["socialMedia"][0]["displayText"] == "BOB page"
    assert [m["name"] for m in data["members"]] == ["Alice"]


def test_create_validation_errors(auth_headers):
    r = client.post(
        "/api/organizer/create",
        json={"name": "X", "bio": "b", "website": "not-a-url", "socialMedia": []},
        headers=auth_headers,
    )
    assert r.status_code == 400
    assert r.json() == {"success": False, "error": "Website must be a valid URL"}


def test_update_snapshots_and_delete(auth_headers):
    oid = _organizer(auth_headers)
    r = client.post(
        "/api/organizer/update",
        json={"id": oid, "name": "BOB Space BKK", "bio": "new", "website": "https://bob.space", "socialMedia": []},
        headers=auth_headers,
    )
    assert r.status_code == 200
    assert r.json()["data"] == {}
    data = client.post("/api/organizer/get", json={"id": oid}).json()["data"]
    assert data["name"] == "BOB Space BKK"
    assert data["socialMedia"] == []

    with Session(engine) as s:
        removed = s.exec(select(models.Organizer).where(models.Organizer.active_flag == "R")).all()
        assert [o.name for o in removed] == ["BOB Space"]
        assert len(removed[0].social_media) == 1
        assert removed[0].social_media[0].url_link == "https://facebook.com/bob"

    assert client.post("/api/organizer/delete", json={"id": oid}, headers=auth_headers).status_code == 200
    assert client.post("/api/organizer/get", json={"id": oid}).status_code == 404
    assert client.post("/api/organizer/delete", json={"id": oid}, headers=auth_headers).status_code == 404


def test_list_and_search(auth_headers):
    _organizer(auth_headers, "Right Shift", socialMedia=[
        {"displayText": "yt", "platform": "youtube", "urlLink": "https://youtube.com/@rightshift"},
    ])
    _organizer(auth_headers, "Bitcoin Thailand")
    _organizer(auth_headers, "BLC Chiang Mai")

    data = client.post("/api/organizer/list", json={"filters": {"selectedPlatform": "youtube"}}).json()["data"]
    assert data["total"] == 1
    assert data["organizers"][0]["name"] == "Right Shift"

    data = client.post("/api/organizer/list", json={"filters": {"limit": 2}}).json()["data"]
    assert data["total"] == 3
    assert len(data["organizers"]) == 2

    r = client.post("/api/organizer/search", json={"query": "b"})
    assert r.status_code == 200
    # plain binary collation: upper-case sorts first
    assert [o["name"] for o in r.json()["data"]] == ["BLC Chiang Mai", "Bitcoin Thailand"]

    r = client.post("/api/organizer/search", json={})
    assert r.status_code == 400
    assert r.json()["error"] == "Search query is required"


def test_events_and_stats(auth_headers):
    oid = _organizer(auth_headers)
    alice = _bitcoiner(auth_headers, "Alice")
    bob = _bitcoiner(auth_headers, "Bob")
    _event(auth_headers, oid, "Past meetup", "2001-03-01T10:00:00Z", speakers=[alice])
    _event(auth_headers, oid, "Future meetup", "2099-03-01T10:00:00Z", speakers=[alice, bob])
    _event(auth_headers, oid, "Far future meetup", "2099-09-01T10:00:00Z")

    r = client.post("/api/organizer/events", json={"organizerId": oid})
    assert r.status_code == 200
    events = r.json()["data"]
    assert [e["name"] for e in events] == ["Far future meetup", "Future meetup", "Past meetup"]
    assert events[0]["organizerName"] == "BOB Space"
    assert events[0]["firstImage"] == ""

    stats = client.post("/api/organizer/stats", json={"organizerId": oid}).json()["data"]
    assert stats["totalEvents"] == 3
    assert stats["upcomingEvents"] == 2
    assert stats["pastEvents"] == 1
    assert stats["totalSpeakers"] == 2
    assert len(stats["recentEvents"]) == 3

    r = client.post("/api/organizer/stats", json={})
    assert r.status_code == 400
    assert r.json()["error"] == "Organizer ID is required"
    assert client.post("/api/organizer/events", json={"organizerId": "nope"}).status_code == 404


def test_search_terms_match_literally(auth_headers):
    _organizer(auth_headers, "BOB Space")
    _organizer(auth_headers, "node_runners")

    r = client.post("/api/organizer/search", json={"query": "_"})
    assert [o["name"] for o in r.json()["data"]] == ["node_runners"]

    r = client.post("/api/organizer/search", json={"query": "B_B"})
    assert r.json()["data"] == []

    data = client.post("/api/organizer/list", json={"filters": {"searchTerm": "%"}}).json()["data"]
    assert data["total"] == 0
    assert data["organizers"] == []
