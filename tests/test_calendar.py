"""Unit tests for the calendar collaborator and calendar routes (network faked)."""
from types import SimpleNamespace

import pytest
import requests

from briefbot.calendar.client import (
    BRIEF_MARKER,
    EVENT_DESCRIPTION_FILENAME,
    EVENT_DETAILS_FILENAME,
    CalendarClient,
    CalendarError,
    CalendarEvent,
    CalendarNotConnectedError,
    ConnectorTokenProvider,
    TokenCache,
    event_documents,
    format_brief_summary,
    merge_brief_summary,
    parse_expiry,
)
from briefbot.models.records import COMPLETED


class Clock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


class FakeResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self.payload = payload if payload is not None else {}

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        return self.payload

    def raise_for_status(self):
        if not self.ok:
            raise requests.HTTPError(f"HTTP {self.status_code}")


class FakeSession:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def _next(self, method, url, kwargs):
        self.calls.append((method, url, kwargs))
        return self.responses.pop(0)

    def get(self, url, **kwargs):
        return self._next("GET", url, kwargs)

    def request(self, method, url, **kwargs):
        return self._next(method, url, kwargs)


def _connector(token="tok-1", expires_at=2000):
    return FakeResponse(200, {"items": [{"settings": {"access_token": token, "expires_at": expires_at}}]})


def _provider(session, clock=None):
    cache = TokenCache(clock=clock or Clock())
    return ConnectorTokenProvider("https://connectors.example/api", "repl-token", cache=cache, session=session)


def _event(**overrides):
    data = dict(
        id="evt-1",
        summary="Launch Review",
        description="Agenda: go/no-go for launch",
        start="2026-10-20T15:00:00Z",
        end="2026-10-20T16:00:00Z",
        attendees=["Ana", "Ben"],
        html_link="https://calendar.example/evt-1",
    )
    data.update(overrides)
    return CalendarEvent(**data)


# -------------------------
# Token cache / provider
# -------------------------

def test_token_cache_expiry():
    clock = Clock(1000)
    cache = TokenCache(clock=clock)
    assert cache.get() is None
    cache.set("abc", expires_at=1500)
    assert cache.get() == "abc"
    clock.now = 1500
    assert cache.get() is None
    clock.now = 1000
    assert cache.get() is None  # expired entry was dropped


def test_token_cache_invalidate():
    cache = TokenCache(clock=Clock())
    cache.set("abc", expires_at=5000)
    cache.invalidate()
    assert cache.get() is None


def test_parse_expiry_formats():
    assert parse_expiry(None) is None
    assert parse_expiry(1700000000) == 1700000000.0
    assert parse_expiry(1700000000000) == 1700000000.0
    assert parse_expiry("1970-01-01T00:16:40Z") == 1000.0
    assert parse_expiry("soon") is None


def test_provider_caches_until_expiry():
    clock = Clock(1000)
    session = FakeSession(_connector("tok-1", 2000), _connector("tok-2", 4000))
    provider = _provider(session, clock)

    assert provider.get_access_token() == "tok-1"
    assert provider.get_access_token() == "tok-1"
    assert len(session.calls) == 1
    assert session.calls[0][2]["headers"]["X_REPLIT_TOKEN"] == "repl-token"

    clock.now = 2500
    assert provider.get_access_token() == "tok-2"
    assert len(session.calls) == 2


def test_provider_reads_oauth_credentials():
    payload = {"items": [{"settings": {"oauth": {"credentials": {"access_token": "oauth-tok"}}}}]}
    session = FakeSession(FakeResponse(200, payload), FakeResponse(200, payload))
    provider = _provider(session)
    assert provider.get_access_token() == "oauth-tok"
    # no expiry: not cached
    provider.get_access_token()
    assert len(session.calls) == 2


def test_provider_not_connected():
    provider = _provider(FakeSession(FakeResponse(200, {"items": []})))
    with pytest.raises(CalendarNotConnectedError):
        provider.get_access_token()


def test_provider_not_configured():
    provider = ConnectorTokenProvider("", "", cache=TokenCache(), session=FakeSession())
    with pytest.raises(CalendarNotConnectedError):
        provider.get_access_token()


def test_provider_connector_error():
    provider = _provider(FakeSession(FakeResponse(500)))
    with pytest.raises(CalendarError):
        provider.get_access_token()


# -------------------------
# Calendar client
# -------------------------

def _client(*api_responses):
    provider = _provider(FakeSession(_connector()))
    session = FakeSession(*api_responses)
    return CalendarClient(provider, session=session, base_url="https://calendar.example/v3"), session


def test_upcoming_events_query_and_mapping():
    item = {
        "id": "evt-1",
        "summary": "Launch Review",
        "start": {"dateTime": "2026-10-20T15:00:00Z"},
        "end": {"dateTime": "2026-10-20T16:00:00Z"},
        "attendees": [{"displayName": "Ana"}, {"email": "ben@example.com"}, {}],
        "htmlLink": "https://calendar.example/evt-1",
    }
    client, session = _client(FakeResponse(200, {"items": [item, {"id": "evt-2", "start": {"date": "2026-10-21"}}]}))

    events = client.upcoming_events("team@example.com", max_results=5)

    method, url, kwargs = session.calls[0]
    assert method == "GET"
    assert url == "https://calendar.example/v3/calendars/team%40example.com/events"
    assert kwargs["params"]["singleEvents"] == "true"
    assert kwargs["params"]["orderBy"] == "startTime"
    assert kwargs["params"]["maxResults"] == 5
    assert kwargs["headers"]["Authorization"] == "Bearer tok-1"

    assert events[0].attendees == ["Ana", "ben", "Unknown"]
    assert events[0].description is None
    assert events[1].summary == "Untitled Event"
    assert events[1].start == "2026-10-21"


def test_get_event_missing_returns_none():
    client, _ = _client(FakeResponse(404))
    assert client.get_event("primary", "gone") is None


def test_rejected_token_invalidates_cache():
    client, _ = _client(FakeResponse(401))
    with pytest.raises(CalendarNotConnectedError):
        client.list_calendars()
    assert client.token_provider.cache.get() is None


def test_update_event_description_replaces_previous_summary():
    existing = {"id": "evt-1", "description": f"Agenda\n\n{BRIEF_MARKER}\nGoal: old"}
    client, session = _client(FakeResponse(200, existing), FakeResponse(200, {}))

    assert client.update_event_description("primary", "evt-1", "Goal: new") is True

    method, _, kwargs = session.calls[1]
    assert method == "PATCH"
    assert kwargs["json"]["description"] == f"Agenda\n\n{BRIEF_MARKER}\nGoal: new"


def test_merge_brief_summary_appends():
    assert merge_brief_summary("Agenda", "Goal: x") == f"Agenda\n\n{BRIEF_MARKER}\nGoal: x"


def test_is_connected():
    assert _client()[0].is_connected() is True
    provider = _provider(FakeSession(FakeResponse(200, {"items": []})))
    assert CalendarClient(provider, session=FakeSession()).is_connected() is False


# -------------------------
# Event documents / summary text
# -------------------------

def test_event_documents_uses_description():
    docs = event_documents(_event(), has_other_documents=False)
    assert docs == [{"filename": EVENT_DESCRIPTION_FILENAME, "text": "Agenda: go/no-go for launch"}]


def test_event_documents_synthetic_when_nothing_else():
    docs = event_documents(_event(description=None), has_other_documents=False)
    assert docs[0]["filename"] == EVENT_DETAILS_FILENAME
    assert "Meeting: Launch Review" in docs[0]["text"]
    assert "Attendees: Ana, Ben" in docs[0]["text"]


def test_event_documents_empty_when_files_uploaded():
    assert event_documents(_event(description="  "), has_other_documents=True) == []


def test_format_brief_summary():
    text = format_brief_summary({
        "goal": "Decide launch",
        "decisions": ["Go/no-go"],
        "actionChecklist": [{"owner": "QA lead", "task": "Close bugs", "dueDate": "Friday"}],
    })
    assert text.splitlines() == ["Goal: Decide launch", "Decisions:", "- Go/no-go", "Actions:", "- QA lead • Close bugs • Friday"]


# -------------------------
# Calendar routes
# -------------------------

def test_calendar_status_and_events(api):
    api.calendar.events = {"evt-1": _event()}
    assert api.client.get("/api/calendar/status").json() == {"success": True, "connected": True}
    assert api.client.get("/api/calendar/list").json()["calendars"][0]["primary"] is True

    events = api.client.get("/api/calendar/events", params={"calendarId": "primary"}).json()["events"]
    assert events[0]["id"] == "evt-1"
    assert events[0]["htmlLink"] == "https://calendar.example/evt-1"


def test_calendar_unavailable_is_503(api):
    class Down:
        def list_calendars(self):
            raise CalendarNotConnectedError("Google Calendar not connected")

    api.calendar = Down()
    resp = api.client.get("/api/calendar/list")
    assert resp.status_code == 503


def test_calendar_generate_brief_from_event(api):
    api.calendar.events = {"evt-1": _event(description=None)}
    resp = api.client.post(
        "/api/calendar/generate-brief",
        data={"eventId": "evt-1", "calendarId": "primary", "meetingType": "decision", "audienceLevel": "exec"},
    )
    assert resp.status_code == 200, resp.text
    data = resp.json()
    assert data["existingBriefId"] is None
    assert data["event"]["summary"] == "Launch Review"

    job = api.store.get_job(data["jobId"])
    assert job.status == COMPLETED
    assert job.calendar_event_id == "evt-1"
    assert [d["filename"] for d in job.document_contents] == [EVENT_DETAILS_FILENAME]
    assert job.metadata["attendees"] == "Ana, Ben"
    assert job.metadata["audience_level"] == "exec"
    assert api.store.find_meeting_by_event("evt-1") is not None


def test_calendar_generate_brief_returns_existing(api):
    api.calendar.events = {"evt-1": _event()}
    meeting = api.store.create_meeting("Launch Review", "Ana, Ben", "review", "exec", calendar_event_id="evt-1")
    brief = api.store.create_brief(meeting.id, {"goal": "Decide launch"})

    resp = api.client.post("/api/calendar/generate-brief", data={"eventId": "evt-1"})
    assert resp.json()["existingBriefId"] == brief.id
    assert resp.json()["jobId"] is None
    assert api.store.list_jobs() == []

    forced = api.client.post("/api/calendar/generate-brief", data={"eventId": "evt-1", "force": "true"})
    assert forced.json()["jobId"]
    assert len(api.store.list_jobs()) == 1


def test_calendar_generate_brief_with_uploaded_file(api):
    api.calendar.events = {"evt-1": _event()}
    resp = api.client.post(
        "/api/calendar/generate-brief",
        data={"eventId": "evt-1"},
        files=[("files", ("notes.txt", b"Beta signups reached 1,200.", "text/plain"))],
    )
    job = api.store.get_job(resp.json()["jobId"])
    assert [d["filename"] for d in job.document_contents] == [EVENT_DESCRIPTION_FILENAME, "notes.txt"]
    assert [f["filename"] for f in job.document_files] == ["notes.txt"]


def test_calendar_generate_brief_unknown_event(api):
    resp = api.client.post("/api/calendar/generate-brief", data={"eventId": "nope"})
    assert resp.status_code == 404


def test_calendar_generate_brief_bad_meeting_type(api):
    api.calendar.events = {"evt-1": _event()}
    resp = api.client.post("/api/calendar/generate-brief", data={"eventId": "evt-1", "meetingType": "party"})
    assert resp.status_code == 400


def test_brief_summary_write_back(api):
    api.calendar.events = {"evt-1": _event()}
    meeting = api.store.create_meeting("Launch Review", "Ana, Ben", "review", "exec", calendar_event_id="evt-1")
    brief = api.store.create_brief(meeting.id, {
        "goal": "Decide launch",
        "decisions": ["Go/no-go"],
        "actionChecklist": [{"owner": "TBD (role)", "task": "Close bugs", "dueDate": "TBD", "source": None}],
    })

    resp = api.client.post("/api/calendar/events/evt-1/brief-summary", json={"briefId": brief.id})
    assert resp.status_code == 200, resp.text
    assert resp.json() == {"success": True}

    calendar_id, event_id, summary = api.calendar.updated[0]
    assert (calendar_id, event_id) == ("primary", "evt-1")
    assert summary.startswith("Goal: Decide launch")
    assert "TBD (role) • Close bugs • TBD" in summary

    assert api.client.post("/api/calendar/events/evt-1/brief-summary", json={"briefId": "missing"}).status_code == 404
    assert api.client.post("/api/calendar/events/other/brief-summary", json={"briefId": brief.id}).status_code == 404
