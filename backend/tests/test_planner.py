"""Tests for the plan-the-week flow (read, suggest, save best-effort)."""

import json
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone

import pytest
import requests

from routes.google_calendar import GoogleCalendarStore
from schemas.suggestion_schema import SuggestionStatus
from services.event_source import CalendarStoreError, EventSource, InMemoryEventStore
from services.planner import NEW_EVENT_TITLE, WeekPlanner, draft_event_at
from services.suggestion_client import SuggestionClient

UTC = timezone.utc
NOW = datetime(2024, 1, 8, 8, tzinfo=UTC)

THREE = json.dumps([
    {"title": "Gym", "startDate": "2024-01-08T18:00:00Z", "endDate": "2024-01-08T19:00:00Z"},
    {"title": "Read", "startDate": "2024-01-09T20:00:00Z", "endDate": "2024-01-09T21:00:00Z"},
    {"title": "Groceries", "startDate": "2024-01-10T17:00:00Z", "endDate": "2024-01-10T17:30:00Z"},
])


class FlakyStore(InMemoryEventStore):
    """Rejects saves for the titles given."""

    def __init__(self, events=None, reject=()):
        super().__init__(events)
        self.reject = set(reject)

    def save_event(self, event):
        if event["title"] in self.reject:
            raise CalendarStoreError("quota exceeded")
        return super().save_event(event)


@pytest.fixture
def executor():
    pool = ThreadPoolExecutor(max_workers=2)
    yield pool
    pool.shutdown(wait=True)


@pytest.fixture
def make_planner(fake_session, executor):
    def _make(store, *responses):
        source = EventSource(lambda: store, executor=executor)
        source.request_access().result(timeout=5)
        session = fake_session(*responses)
        client = SuggestionClient("sk-test", session=session, executor=executor)
        return WeekPlanner(source, client), source, session
    return _make


def test_plan_saves_every_suggestion(make_planner, envelope):
    store = InMemoryEventStore([
        {"title": "Standup", "start": NOW + timedelta(hours=1), "end": NOW + timedelta(hours=1, minutes=15)},
    ])
    planner, source, session = make_planner(store, envelope(THREE))
    refreshed = []
    source.subscribe(lambda: refreshed.append(True))

    out = planner.plan(NOW)

    assert out.result.ok
    assert [s.title for s in out.saved] == ["Gym", "Read", "Groceries"]
    assert out.failed == []
    assert len(store.events) == 4
    assert refreshed == [True]
    prompt = json.loads(session.calls[0]["data"])["messages"][1]["content"]
    assert "Standup from 2024-01-08 09:00:00 +0000 to 2024-01-08 09:15:00 +0000" in prompt


def test_one_failed_save_does_not_stop_the_rest(make_planner, envelope):
    store = FlakyStore(reject={"Read"})
    planner, _, _ = make_planner(store, envelope(THREE))

    out = planner.plan(NOW)

    assert [s.title for s in out.saved] == ["Gym", "Groceries"]
    assert [s.title for s in out.failed] == ["Read"]
    assert [e["title"] for e in store.events] == ["Gym", "Groceries"]


def test_failed_request_saves_nothing_but_still_refreshes(make_planner, fake_response):
    store = InMemoryEventStore()
    planner, source, _ = make_planner(store, fake_response(500, b"upstream error"))
    refreshed = []
    source.subscribe(lambda: refreshed.append(True))

    out = planner.plan(NOW)

    assert out.result.status == SuggestionStatus.ENVELOPE_ERROR
    assert out.saved == [] and out.failed == []
    assert store.events == []
    assert refreshed == [True]


def test_plan_async(make_planner, envelope):
    store = InMemoryEventStore()
    planner, _, _ = make_planner(store, envelope(THREE))
    seen = []

    out = planner.plan_async(NOW, callback=seen.append).result(timeout=5)

    assert len(out.saved) == 3
    assert seen == [out]


def test_draft_event_at():
    draft = draft_event_at(NOW)
    assert draft.title == NEW_EVENT_TITLE
    assert draft.start == NOW
    assert draft.end - draft.start == timedelta(hours=1)


def test_insert_timeout_does_not_stop_the_rest(make_planner, envelope, fake_session, fake_response):
    def handler(method, url, kwargs):
        if url.endswith("/users/me/calendarList"):
            return fake_response(200, json_body={"items": [{"id": "primary"}]})
        if method == "GET":
            return fake_response(200, json_body={"items": []})
        if kwargs["json"]["summary"] == "Gym":
            return requests.Timeout("insert timed out")
        return fake_response(200, json_body={"id": "new", **kwargs["json"]})

    gcal_session = fake_session(handler=handler)
    store = GoogleCalendarStore("ya29.token", session=gcal_session)
    planner, _, _ = make_planner(store, envelope(THREE))

    out = planner.plan(NOW)

    assert [s.title for s in out.saved] == ["Read", "Groceries"]
    assert [s.title for s in out.failed] == ["Gym"]
    posts = [c["json"]["summary"] for c in gcal_session.calls if c["method"] == "POST"]
    assert posts == ["Gym", "Read", "Groceries"]
