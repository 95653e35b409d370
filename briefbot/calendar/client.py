"""
Calendar collaborator: Google Calendar over REST with an access token fetched from a connector service.
The token is cached process-wide until its expiry timestamp; an expired entry is dropped and refetched.
"""
import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import quote

import requests

from briefbot.core.config import settings

logger = logging.getLogger(__name__)

GOOGLE_CALENDAR_API = "https://www.googleapis.com/calendar/v3"
BRIEF_MARKER = "--- BriefBot Summary ---"
EVENT_DESCRIPTION_FILENAME = "event_description.txt"
EVENT_DETAILS_FILENAME = "event_details.txt"


class CalendarError(Exception):
    pass


class CalendarNotConnectedError(CalendarError):
    pass


@dataclass
class CalendarEvent:
    id: str
    summary: str
    description: Optional[str]
    start: str
    end: str
    attendees: List[str] = field(default_factory=list)
    html_link: str = ""
    attachments: List[Dict[str, str]] = field(default_factory=list)


@dataclass
class _CachedToken:
    access_token: str
    expires_at: float


class TokenCache:
    """Single cached access token with an explicit expiry (epoch seconds). get() returns None once expired and drops the entry."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._entry: Optional[_CachedToken] = None
        self._lock = threading.Lock()

    def get(self) -> Optional[str]:
        with self._lock:
            if self._entry is None:
                return None
            if self._entry.expires_at <= self._clock():
                self._entry = None
                return None
            return self._entry.access_token

    def set(self, access_token: str, expires_at: float) -> None:
        with self._lock:
            self._entry = _CachedToken(access_token, expires_at)

    def invalidate(self) -> None:
        with self._lock:
            self._entry = None


# Process-wide; shared by every CalendarClient built through get_calendar_client().
_token_cache = TokenCache()


def parse_expiry(value: Any) -> Optional[float]:
    """Connector expiry as epoch seconds. Accepts ISO-8601 strings, epoch seconds, or epoch milliseconds."""
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value / 1000.0 if value > 1e12 else float(value)
    if isinstance(value, str):
        try:
            dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt.timestamp()
    return None


class ConnectorTokenProvider:
    """Fetches the calendar access token from the connector service, serving it from the cache while it is unexpired.
    A token without an expiry is used once and not cached."""

    def __init__(
        self,
        connector_url: str,
        connector_token: str,
        cache: Optional[TokenCache] = None,
        session: Optional[requests.Session] = None,
        timeout: float = 10.0,
    ):
        self.connector_url = connector_url
        self.connector_token = connector_token
        self.cache = cache or _token_cache
        self.session = session or requests.Session()
        self.timeout = timeout

    def get_access_token(self) -> str:
        cached = self.cache.get()
        if cached:
            return cached
        if not self.connector_url or not self.connector_token:
            raise CalendarNotConnectedError("Calendar connector is not configured")

        try:
            resp = self.session.get(
                self.connector_url,
                headers={"Accept": "application/json", "X_REPLIT_TOKEN": self.connector_token},
                timeout=self.timeout,
            )
            resp.raise_for_status()
            payload = resp.json()
        except (requests.RequestException, ValueError) as e:
            raise CalendarError(f"Calendar connector request failed: {e}") from e

        items = payload.get("items") or [] if isinstance(payload, dict) else []
        conn_settings = (items[0] or {}).get("settings") or {} if items else {}
        token = conn_settings.get("access_token") or (
            ((conn_settings.get("oauth") or {}).get("credentials") or {}).get("access_token")
        )
        if not token:
            raise CalendarNotConnectedError("Google Calendar not connected")

        expires_at = parse_expiry(conn_settings.get("expires_at"))
        if expires_at is not None:
            self.cache.set(token, expires_at)
        return token


def _event_from_api(item: Dict[str, Any]) -> CalendarEvent:
    start = item.get("start") or {}
    end = item.get("end") or {}
    attendees = []
    for a in item.get("attendees") or []:
        email = a.get("email") or ""
        attendees.append(a.get("displayName") or (email.split("@")[0] if email else "") or "Unknown")
    return CalendarEvent(
        id=item.get("id") or "",
        summary=item.get("summary") or "Untitled Event",
        description=item.get("description") or None,
        start=start.get("dateTime") or start.get("date") or "",
        end=end.get("dateTime") or end.get("date") or "",
        attendees=attendees,
        html_link=item.get("htmlLink") or "",
        attachments=[
            {
                "file_url": att.get("fileUrl") or "",
                "title": att.get("title") or "Attachment",
                "mime_type": att.get("mimeType") or "application/octet-stream",
            }
            for att in item.get("attachments") or []
        ],
    )


class CalendarClient:
    """Read events and write brief summaries back to event descriptions."""

    def __init__(
        self,
        token_provider: ConnectorTokenProvider,
        session: Optional[requests.Session] = None,
        base_url: str = GOOGLE_CALENDAR_API,
        timeout: float = 15.0,
    ):
        self.token_provider = token_provider
        self.session = session or requests.Session()
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        token = self.token_provider.get_access_token()
        try:
            resp = self.session.request(
                method,
                f"{self.base_url}{path}",
                headers={"Authorization": f"Bearer {token}", "Accept": "application/json"},
                timeout=self.timeout,
                **kwargs,
            )
        except requests.RequestException as e:
            raise CalendarError(f"Calendar request failed: {e}") from e
        if resp.status_code == 401:
            self.token_provider.cache.invalidate()
            raise CalendarNotConnectedError("Calendar access token rejected")
        return resp

    def is_connected(self) -> bool:
        try:
            self.token_provider.get_access_token()
            return True
        except CalendarError:
            return False

    def list_calendars(self) -> List[Dict[str, Any]]:
        resp = self._request("GET", "/users/me/calendarList")
        if not resp.ok:
            raise CalendarError(f"Failed to list calendars: HTTP {resp.status_code}")
        return [
            {
                "id": cal.get("id") or "",
                "summary": cal.get("summary") or "Unnamed Calendar",
                "primary": bool(cal.get("primary")),
            }
            for cal in resp.json().get("items") or []
        ]

    def upcoming_events(self, calendar_id: str = "primary", max_results: int = 10) -> List[CalendarEvent]:
        """Events starting within the next 7 days, ordered by start time."""
        now = datetime.now(timezone.utc)
        resp = self._request(
            "GET",
            f"/calendars/{quote(calendar_id, safe='')}/events",
            params={
                "timeMin": now.isoformat(),
                "timeMax": (now + timedelta(days=7)).isoformat(),
                "maxResults": max_results,
                "singleEvents": "true",
                "orderBy": "startTime",
            },
        )
        if not resp.ok:
            raise CalendarError(f"Failed to list events: HTTP {resp.status_code}")
        return [_event_from_api(item) for item in resp.json().get("items") or []]

    def get_event(self, calendar_id: str, event_id: str) -> Optional[CalendarEvent]:
        """The event, or None when the calendar does not have it."""
        resp = self._request("GET", f"/calendars/{quote(calendar_id, safe='')}/events/{quote(event_id, safe='')}")
        if resp.status_code in (404, 410):
            return None
        if not resp.ok:
            raise CalendarError(f"Failed to fetch event: HTTP {resp.status_code}")
        return _event_from_api(resp.json())

    def update_event_description(self, calendar_id: str, event_id: str, brief_summary: str) -> bool:
        """Append (or replace) the BriefBot summary section of the event description. Returns False if the event could not be updated."""
        event = self.get_event(calendar_id, event_id)
        if event is None:
            return False
        resp = self._request(
            "PATCH",
            f"/calendars/{quote(calendar_id, safe='')}/events/{quote(event_id, safe='')}",
            json={"description": merge_brief_summary(event.description or "", brief_summary)},
        )
        if not resp.ok:
            logger.warning("calendar_update_failed", extra={"event_id": event_id, "status": resp.status_code})
            return False
        return True


def merge_brief_summary(existing: str, brief_summary: str) -> str:
    """Keep the description text before the BriefBot marker and put the new summary after it."""
    before = existing.split(BRIEF_MARKER)[0].strip() if BRIEF_MARKER in existing else existing
    return f"{before}\n\n{BRIEF_MARKER}\n{brief_summary}"


def event_documents(event: CalendarEvent, has_other_documents: bool) -> List[Dict[str, str]]:
    """Pseudo-documents for an event: its description as event_description.txt; with no description and nothing else uploaded,
    a minimal event_details.txt built from summary, time, and attendees so generation always has an input."""
    if event.description and event.description.strip():
        return [{"filename": EVENT_DESCRIPTION_FILENAME, "text": event.description.strip()}]
    if has_other_documents:
        return []
    text = "\n".join([
        f"Meeting: {event.summary}",
        f"Scheduled: {event.start or 'TBD'} to {event.end or 'TBD'}",
        f"Attendees: {', '.join(event.attendees) or 'Not specified'}",
        "",
        "No agenda or supporting documents were attached to this calendar event.",
    ])
    return [{"filename": EVENT_DETAILS_FILENAME, "text": text}]


def format_brief_summary(brief: Dict[str, Any]) -> str:
    """Plain-text summary of a brief (public camelCase keys) for a calendar event description."""
    lines = [f"Goal: {brief.get('goal', '')}"]
    if brief.get("decisions"):
        lines.append("Decisions:")
        lines.extend(f"- {d}" for d in brief["decisions"])
    if brief.get("actionChecklist"):
        lines.append("Actions:")
        lines.extend(
            f"- {a.get('owner', 'TBD (role)')} • {a.get('task', '')} • {a.get('dueDate', 'TBD')}"
            for a in brief["actionChecklist"]
        )
    return "\n".join(lines)


_calendar_client: Optional[CalendarClient] = None


def get_calendar_client() -> CalendarClient:
    """Return the process-wide calendar client configured from settings (connector URL and token)."""
    global _calendar_client
    if _calendar_client is None:
        provider = ConnectorTokenProvider(settings.calendar_connector_url, settings.calendar_connector_token)
        _calendar_client = CalendarClient(provider)
    return _calendar_client
