import sys
from pathlib import Path
import json
from types import SimpleNamespace
import pytest

# Ensure repo root is on sys.path so `import briefbot...` works in tests
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def pretty_json(obj) -> str:
    return json.dumps(obj, indent=2, ensure_ascii=False, sort_keys=True, default=str)


# -------------------------
# Fakes
# -------------------------

VALID_BRIEF = {
    "goal": "Decide whether the launch proceeds on the planned date.",
    "context": [
        "Beta signups reached 1,200 [Source: notes.txt]",
        "Two blocking bugs remain open",
        "Marketing assets are ready",
    ],
    "options": [
        {"option": "Launch on schedule", "pros": ["Keeps momentum"], "cons": ["Bug risk"]},
        {"option": "Delay two weeks", "pros": ["Bugs fixed"], "cons": ["Misses campaign"]},
    ],
    "risksTradeoffs": ["Support load may spike after launch"],
    "decisions": ["Go or no-go for the launch date"],
    "actionChecklist": [
        {"owner": "QA lead", "task": "Close blocking bugs", "dueDate": "Friday", "source": "notes.txt"},
        {"task": "Confirm press embargo"},
    ],
    "sources": [{"label": "Launch notes", "filename": "notes.txt", "section": None}],
}


def completion(content):
    """Shape of an OpenAI chat completion as the generator reads it."""
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content), finish_reason="stop")]
    )


class FakeCompletions:
    """Replays scripted results in order (the last one repeats). Exceptions are raised, strings become message content."""

    def __init__(self, results):
        self.results = list(results)
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        item = self.results[min(len(self.calls), len(self.results)) - 1]
        if isinstance(item, BaseException):
            raise item
        return completion(item)


class FakeOpenAI:
    def __init__(self, *results):
        self.completions = FakeCompletions(results)
        self.chat = SimpleNamespace(completions=self.completions)


class FakeCalendar:
    def __init__(self, events=None, connected=True):
        self.events = {e.id: e for e in (events or [])}
        self.connected = connected
        self.updated = []

    def is_connected(self):
        return self.connected

    def list_calendars(self):
        return [{"id": "primary", "summary": "Work", "primary": True}]

    def upcoming_events(self, calendar_id="primary", max_results=10):
        return list(self.events.values())[:max_results]

    def get_event(self, calendar_id, event_id):
        return self.events.get(event_id)

    def update_event_description(self, calendar_id, event_id, brief_summary):
        if event_id not in self.events:
            return False
        self.updated.append((calendar_id, event_id, brief_summary))
        return True


@pytest.fixture
def brief_json():
    return json.dumps(VALID_BRIEF)


@pytest.fixture
def make_generator():
    from briefbot.generate.generator import BriefGenerator

    def _make(*results, **kwargs):
        client = FakeOpenAI(*results)
        sleeps = []
        kwargs.setdefault("max_attempts", 3)
        kwargs.setdefault("initial_backoff_seconds", 1.0)
        gen = BriefGenerator(client, sleep=sleeps.append, **kwargs)
        gen.sleeps = sleeps
        gen.fake = client.completions
        return gen

    return _make


@pytest.fixture
def memory_store():
    from briefbot.jobs.store import InMemoryStore

    return InMemoryStore()


@pytest.fixture
def upload_root(tmp_path, monkeypatch):
    from briefbot.core.config import settings

    monkeypatch.setattr(settings, "data_root", str(tmp_path))
    return Path(settings.upload_root)


@pytest.fixture
def api(memory_store, upload_root, make_generator, brief_json):
    """TestClient with the store, generator, and calendar swapped for in-process fakes. Background tasks finish before each call returns."""
    from fastapi.testclient import TestClient

    from briefbot.calendar.client import get_calendar_client
    from briefbot.main import app, get_brief_generator
    from briefbot.jobs.store import get_store

    ctx = SimpleNamespace(store=memory_store, generator=make_generator(brief_json), calendar=FakeCalendar())
    app.dependency_overrides[get_store] = lambda: ctx.store
    app.dependency_overrides[get_brief_generator] = lambda: ctx.generator
    app.dependency_overrides[get_calendar_client] = lambda: ctx.calendar
    ctx.client = TestClient(app)
    yield ctx
    app.dependency_overrides.clear()


def _log(item, title: str, request: dict, response: dict):
    """
    Store logs on the test item so conftest can attach to pytest-html report.
    """
    logs = getattr(item, "_api_logs", [])
    logs.append({"title": title, "request": request, "response": response})
    item._api_logs = logs


@pytest.fixture
def api_log(request):
    return lambda title, req, res: _log(request.node, title, req, res)


@pytest.hookimpl(hookwrapper=True)
def pytest_runtest_makereport(item, call):
    """
    Attach request/response payloads into pytest-html report.

    In tests, store payloads like:
      request_log = {"method": "...", "url": "...", "json": {...}}
      response_log = {"status_code": 200, "json": {...}}
      item._api_logs = [{"title": "...", "request": ..., "response": ...}, ...]
    """
    outcome = yield
    rep = outcome.get_result()

    if rep.when != "call":
        return

    api_logs = getattr(item, "_api_logs", None)
    if not api_logs:
        return

    # Only attach if pytest-html is installed/enabled
    extras = getattr(rep, "extra", [])

    try:
        from pytest_html import extras as html_extras
    except ImportError:
        rep.extra = extras
        return

    for entry in api_logs:
        title = entry.get("title", "API Call")
        req = entry.get("request", {})
        res = entry.get("response", {})

        html = f"""
        <div style="font-family: ui-monospace, SFMono-Regular, Menlo, Monaco, Consolas, 'Liberation Mono', monospace;">
          <h4 style="margin:8px 0;">{title}</h4>

          <details style="margin:6px 0;">
            <summary><b>Request</b></summary>
            <pre style="background:#0b1020;color:#cfe3ff;padding:10px;border-radius:8px;overflow:auto;">{pretty_json(req)}</pre>
          </details>

          <details style="margin:6px 0;">
            <summary><b>Response</b></summary>
            <pre style="background:#0b1020;color:#cfe3ff;padding:10px;border-radius:8px;overflow:auto;">{pretty_json(res)}</pre>
          </details>
        </div>
        """
        extras.append(html_extras.html(html))

    rep.extra = extras
