import io
from datetime import date, timedelta

from conftest import OTHER_OWNER, OWNER
from crud import create_event
from schemas import EventCandidate

HOMEWORK = "Math homework due tomorrow at 5:00 PM for Alice"


def _ingest(client, auth, text=HOMEWORK, **extra):
    return client.post("/assistant/analyze-email", json={"emailContent": text, **extra}, headers=auth)


def test_health_needs_no_user(client):
    assert client.get("/health").get_json()["ok"] is True


def test_missing_user_header_is_401(client):
    resp = client.post("/assistant/analyze-email", json={"emailContent": HOMEWORK})
    assert resp.status_code == 401
    assert resp.get_json()["success"] is False


def test_analyze_email(client, auth):
    resp = _ingest(client, auth)
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["success"] is True
    assert body["msg"] == "Successfully created 1 events from email"

    ev = body["data"]["events"][0]
    assert body["data"]["hasEvents"] is True
    assert body["data"]["eventsCreated"] == 1
    assert ev["title"] == "Math Homework Due"
    assert ev["category"] == "ASSIGNMENT_DUE"
    assert ev["startDate"] == "2025-03-16"
    assert ev["startTime"] == "17:00"
    assert ev["childId"] == 1


def test_analyze_email_twice_skips_duplicate(client, auth):
    _ingest(client, auth)
    data = _ingest(client, auth).get_json()["data"]
    assert data["eventsCreated"] == 0
    assert data["skipped"] == 1


def test_analyze_email_empty_is_400(client, auth):
    resp = _ingest(client, auth, text="   ")
    assert resp.status_code == 400
    assert resp.get_json()["success"] is False


def test_analyze_email_unknown_child_is_404(client, auth):
    resp = _ingest(client, auth, childId=999)
    assert resp.status_code == 404


def test_analyze_email_no_events(client, auth):
    body = _ingest(client, auth, text="Thanks for a great week!").get_json()
    assert body["data"]["hasEvents"] is False
    assert body["msg"] == "No events found in email content"


def test_analyze_photo_requires_file(client, auth):
    resp = client.post("/assistant/analyze-photo", data={}, headers=auth)
    assert resp.status_code == 400
    assert resp.get_json()["msg"] == "Photo file is required"


def test_analyze_photo_with_rule_classifier(client, auth):
    data = {"photo": (io.BytesIO(b"\xff\xd8fake"), "flyer.jpg", "image/jpeg")}
    resp = client.post("/assistant/analyze-photo", data=data, headers=auth, content_type="multipart/form-data")
    assert resp.status_code == 200
    assert resp.get_json()["data"]["hasEvents"] is False


def test_calendar_grid(client, auth):
    _ingest(client, auth)
    data = client.get("/calendar/grid?year=2025&month=3", headers=auth).get_json()["data"]
    assert data["year"] == 2025 and data["month"] == 3
    assert len(data["cells"]) == 42
    assert data["cells"][0] == {
        "date": "2025-02-23", "isCurrentMonth": False, "isPreviousMonth": True, "isNextMonth": False,
    }
    assert [e["title"] for e in data["eventsByDate"]["2025-03-16"]] == ["Math Homework Due"]


def test_calendar_grid_rolls_month_over(client, auth):
    data = client.get("/calendar/grid?year=2025&month=13", headers=auth).get_json()["data"]
    assert (data["year"], data["month"]) == (2026, 1)


def test_calendar_grid_is_owner_scoped(client, auth):
    _ingest(client, auth)
    other = {"X-User-Id": str(OTHER_OWNER)}
    data = client.get("/calendar/grid?year=2025&month=3", headers=other).get_json()["data"]
    assert data["eventsByDate"] == {}


def test_conflicts(client, auth):
    _ingest(client, auth)
    hit = client.post("/calendar/conflicts", json={"start": "2025-03-16T17:30:00"}, headers=auth)
    assert [e["title"] for e in hit.get_json()["data"]] == ["Math Homework Due"]

    miss = client.post(
        "/calendar/conflicts",
        json={"start": "2025-03-16T16:00:00", "end": "2025-03-16T17:00:00"},
        headers=auth,
    )
    assert miss.get_json()["data"] == []

    event_id = hit.get_json()["data"][0]["id"]
    excluded = client.post(
        "/calendar/conflicts",
        json={"start": "2025-03-16T17:30:00", "excludeEventId": event_id},
        headers=auth,
    )
    assert excluded.get_json()["data"] == []


def test_conflicts_bad_interval(client, auth):
    resp = client.post("/calendar/conflicts", json={"start": "tomorrow-ish"}, headers=auth)
    assert resp.status_code == 400
    assert client.post("/calendar/conflicts", json={}, headers=auth).status_code == 400


def test_conflict_pairs(client, auth):
    text = "Science test 03/20/2025 at 9:00 AM\nDentist appointment 03/20/2025 9:30 AM - 10:30 AM"
    _ingest(client, auth, text=text)
    resp = client.get("/calendar/conflicts?from=2025-03-20&to=2025-03-20", headers=auth)
    pairs = resp.get_json()["data"]
    assert len(pairs) == 1
    assert {p["title"] for p in pairs[0]} == {"Science Test", "Dentist appointment 03/20/2025 9:30 AM - 10:30 AM"}


def test_colors(client, auth):
    data = client.get("/calendar/colors", headers=auth).get_json()["data"]
    assert data["EXAM"] == "#DC2626"
    assert len(data) == 10


def test_stats(client, auth):
    _ingest(client, auth)
    data = client.get("/calendar/stats", headers=auth).get_json()["data"]
    assert data["totalEvents"] == 1
    assert data["eventsByType"] == {"ASSIGNMENT_DUE": 1}


def test_update_and_delete_event(client, auth):
    event_id = _ingest(client, auth).get_json()["data"]["events"][0]["id"]

    resp = client.put(
        f"/calendar/events/{event_id}",
        json={"title": "Math Worksheet", "type": "exam", "childId": 2, "hasReminder": "true", "reminderMinutes": 15},
        headers=auth,
    )
    assert resp.status_code == 200
    ev = resp.get_json()["data"]
    assert ev["title"] == "Math Worksheet"
    assert ev["category"] == "EXAM"
    assert ev["color"] == "#DC2626"
    assert ev["childId"] == 2
    assert ev["reminderMinutes"] == 15

    assert client.put(f"/calendar/events/{event_id}", json={"childId": 999}, headers=auth).status_code == 404
    assert client.put(f"/calendar/events/{event_id}", json={"title": " "}, headers=auth).status_code == 400
    assert client.put(f"/calendar/events/{event_id}", json={"endDate": "2025-01-01"}, headers=auth).status_code == 400

    other = {"X-User-Id": str(OTHER_OWNER)}
    assert client.delete(f"/calendar/events/{event_id}", headers=other).status_code == 404
    assert client.delete(f"/calendar/events/{event_id}", headers=auth).status_code == 200
    assert client.get("/calendar/events?year=2025&month=3", headers=auth).get_json()["data"] == []


def test_month_events(client, auth):
    _ingest(client, auth)
    data = client.get("/calendar/events?year=2025&month=3&childId=1", headers=auth).get_json()["data"]
    assert [e["title"] for e in data] == ["Math Homework Due"]
    assert client.get("/calendar/events?year=2025&month=3&childId=2", headers=auth).get_json()["data"] == []
    assert client.get("/calendar/events?year=2025&month=13", headers=auth).status_code == 400


def test_children_routes(client, auth):
    names = [c["name"] for c in client.get("/children", headers=auth).get_json()["data"]]
    assert names == ["Alice", "Bob"]

    resp = client.post("/children", json={"name": " Cara "}, headers=auth)
    assert resp.status_code == 201
    assert resp.get_json()["data"]["name"] == "Cara"
    assert client.post("/children", json={}, headers=auth).status_code == 400


def test_analyze_email_non_string_content_is_400(client, auth):
    resp = _ingest(client, auth, text=123)
    assert resp.status_code == 400
    assert resp.get_json()["msg"] == "emailContent must be a string"


def test_calendar_grid_out_of_range_year_is_400(client, auth):
    assert client.get("/calendar/grid?year=10000&month=1", headers=auth).status_code == 400
    assert client.get("/calendar/grid?year=9999&month=12", headers=auth).status_code == 400


def _add(db, title, day, child_id=None, owner=OWNER, **kw):
    return create_event(db, owner, EventCandidate(title=title, start_date=day, **kw), child_id)


def test_upcoming_events_route(client, auth, db):
    today = date.today()
    _add(db, "Soon", today + timedelta(days=2))
    _add(db, "Today", today, child_id=1)
    _add(db, "Later", today + timedelta(days=20))
    _add(db, "Theirs", today, owner=OTHER_OWNER)

    data = client.get("/calendar/upcoming", headers=auth).get_json()["data"]
    assert [e["title"] for e in data["events"]] == ["Today", "Soon"]
    assert data["days"] == 7
    assert data["filteredChild"] is None

    data = client.get("/calendar/upcoming?days=30&limit=2", headers=auth).get_json()["data"]
    assert [e["title"] for e in data["events"]] == ["Today", "Soon"]
    data = client.get("/calendar/upcoming?childId=1", headers=auth).get_json()["data"]
    assert [e["title"] for e in data["events"]] == ["Today"]
    assert data["filteredChild"] == 1

    assert client.get("/calendar/upcoming?childId=999", headers=auth).status_code == 404
    assert client.get("/calendar/upcoming?days=-1", headers=auth).status_code == 400


def test_date_range_route(client, auth, db):
    _add(db, "Camp", date(2025, 2, 27), end_date=date(2025, 3, 2))
    _add(db, "Fair", date(2025, 3, 10), child_id=2)
    _add(db, "April", date(2025, 4, 1))

    resp = client.get("/calendar/date-range?startDate=2025-03-01&endDate=2025-03-31", headers=auth)
    data = resp.get_json()["data"]
    assert [e["title"] for e in data["events"]] == ["Camp", "Fair"]
    assert data["dateRange"] == {"startDate": "2025-03-01", "endDate": "2025-03-31"}

    resp = client.get("/calendar/date-range?startDate=2025-03-01&endDate=2025-03-31&childId=2", headers=auth)
    assert [e["title"] for e in resp.get_json()["data"]["events"]] == ["Fair"]

    assert client.get("/calendar/date-range?startDate=2025-03-01", headers=auth).status_code == 400
    assert client.get("/calendar/date-range?startDate=2025-03-31&endDate=2025-03-01", headers=auth).status_code == 400


def test_get_single_event(client, auth):
    event_id = _ingest(client, auth).get_json()["data"]["events"][0]["id"]

    resp = client.get(f"/calendar/events/{event_id}", headers=auth)
    assert resp.status_code == 200
    assert resp.get_json()["data"]["title"] == "Math Homework Due"

    other = {"X-User-Id": str(OTHER_OWNER)}
    assert client.get(f"/calendar/events/{event_id}", headers=other).status_code == 404
    assert client.get("/calendar/events/9999", headers=auth).status_code == 404
