"""Shared stubs for the HTTP layer."""

import json
import random

import pytest
import requests

from vitals_triage.services.integration.fetcher import ResilientFetcher


class StubResponse:
    def __init__(self, status_code=200, payload=None, headers=None, text=None):
        self.status_code = status_code
        self._payload = payload
        self.headers = headers or {}
        if text is None:
            text = json.dumps(payload) if payload is not None else ""
        self.text = text

    def json(self):
        if self._payload is None:
            raise requests.exceptions.JSONDecodeError("Expecting value", self.text, 0)
        return self._payload


class StubSession:
    """Replays queued responses (or raises queued exceptions) in order."""

    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []
        self.closed = False

    def request(self, method, url, **kwargs):
        self.calls.append({"method": method, "url": url, **kwargs})
        if not self.responses:
            raise AssertionError(f"Unexpected request: {method} {url} {kwargs.get('params')}")
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def close(self):
        self.closed = True


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def make_fetcher(sleeps):
    def _make(responses, **kwargs):
        session = StubSession(responses)
        fetcher = ResilientFetcher(
            "test-key",
            session=session,
            sleep=sleeps.append,
            rng=random.Random(7),
            **kwargs,
        )
        return fetcher, session

    return _make


@pytest.fixture
def response():
    return StubResponse
