import json
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from linksnap.models import ClickEvent, UrlEntry
from linksnap.store import InMemoryUrlStore, set_default_store

KST = timezone(timedelta(hours=9))


@pytest.fixture
def now():
    return datetime(2026, 3, 10, 14, 30, 0, tzinfo=KST)


@pytest.fixture
def store():
    s = InMemoryUrlStore()
    set_default_store(s)
    yield s
    set_default_store(None)


@pytest.fixture
def lambda_context():
    return SimpleNamespace(aws_request_id="req-test-1")


def make_entry(short_code="abc123", events=None, created_at=None, original_url=None):
    return UrlEntry(
        id=f"id-{short_code}",
        original_url=original_url or f"https://example.com/{short_code}",
        short_code=short_code,
        created_at=created_at or datetime(2026, 3, 1, tzinfo=timezone.utc),
        events=list(events or []),
    )


def click(ts, referrer="direct", user_agent="Mozilla/5.0 (Windows NT 10.0; Win64; x64)"):
    return ClickEvent(timestamp=ts, referrer=referrer, user_agent=user_agent)


def http_event(method="GET", path="/", body=None, headers=None, path_params=None):
    event = {
        "routeKey": "$default",
        "rawPath": path,
        "headers": headers or {},
        "requestContext": {
            "domainName": "abc.execute-api.ap-northeast-2.amazonaws.com",
            "stage": "dev",
            "http": {"method": method, "path": path},
        },
    }
    if body is not None:
        event["body"] = body if isinstance(body, str) else json.dumps(body)
    if path_params is not None:
        event["pathParameters"] = path_params
    return event
