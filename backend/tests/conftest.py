"""Shared fakes for the requests-style sessions the clients take."""

import json
import os
from datetime import datetime, timezone

import pytest

# day windows in tests are computed in UTC
os.environ["CALENDAR_TZ"] = "UTC"

from schemas.suggestion_schema import CalendarEvent


class FakeResponse:
    def __init__(self, status_code=200, body=b"", json_body=None):
        if json_body is not None:
            body = json.dumps(json_body).encode("utf-8")
        self.status_code = status_code
        self.content = body

    @property
    def ok(self):
        return 200 <= self.status_code < 400

    @property
    def text(self):
        return self.content.decode("utf-8", errors="replace")

    def json(self):
        return json.loads(self.content)


class FakeSession:
    """Records every call; answers from a queue or from handler(method, url, kwargs)."""

    def __init__(self, *responses, handler=None):
        self.responses = list(responses)
        self.handler = handler
        self.calls = []
        self.closed = False

    def _send(self, method, url, **kwargs):
        self.calls.append({"method": method, "url": url, **kwargs})
        resp = self.handler(method, url, kwargs) if self.handler else self.responses.pop(0)
        if isinstance(resp, Exception):
            raise resp
        return resp

    def get(self, url, **kwargs):
        return self._send("GET", url, **kwargs)

    def post(self, url, **kwargs):
        return self._send("POST", url, **kwargs)

    def close(self):
        self.closed = True


def make_envelope(*contents, status_code=200):
    return FakeResponse(status_code, json_body={
        "id": "chatcmpl-1",
        "object": "chat.completion",
        "choices": [
            {"index": i, "message": {"role": "assistant", "content": c}, "finish_reason": "stop"}
            for i, c in enumerate(contents)
        ],
        "usage": {"prompt_tokens": 10, "completion_tokens": 10, "total_tokens": 20},
    })


@pytest.fixture
def fake_session():
    return FakeSession


@pytest.fixture
def fake_response():
    return FakeResponse


@pytest.fixture
def envelope():
    return make_envelope


@pytest.fixture
def standup():
    return CalendarEvent(
        title="Standup",
        start=datetime(2024, 1, 8, 9, 0, tzinfo=timezone.utc),
        end=datetime(2024, 1, 8, 9, 15, tzinfo=timezone.utc),
    )


GYM_CONTENT = '[{"title":"Gym","startDate":"2024-01-08T09:00:00Z","endDate":"2024-01-08T10:00:00Z"}]'


@pytest.fixture
def gym_content():
    return GYM_CONTENT
