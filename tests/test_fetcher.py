"""Tests for the retrying HTTP fetcher."""

import random

import pytest
import requests

from vitals_triage.services.integration.fetcher import (
    FetchExhausted,
    HTTPStatusError,
    RetryPolicy,
    jitter,
)

URL = "https://api.example.test/patients"


def test_success_returns_json_and_sends_credentials(make_fetcher, response, sleeps):
    fetcher, session = make_fetcher([response(200, {"data": []})])

    assert fetcher.fetch(URL, params={"page": 1}) == {"data": []}

    call = session.calls[0]
    assert call["method"] == "GET"
    assert call["params"] == {"page": 1}
    assert call["headers"]["x-api-key"] == "test-key"
    assert call["headers"]["Accept"] == "application/json"
    assert call["timeout"] == 30
    assert sleeps == []


def test_caller_headers_are_merged(make_fetcher, response):
    fetcher, session = make_fetcher([response(200, {"ok": True})])
    fetcher.fetch(URL, method="POST", json_body={"a": 1}, headers={"Content-Type": "application/json"})

    call = session.calls[0]
    assert call["method"] == "POST"
    assert call["json"] == {"a": 1}
    assert call["headers"]["Content-Type"] == "application/json"
    assert call["headers"]["x-api-key"] == "test-key"


class TestRateLimit:
    def test_honours_retry_after(self, make_fetcher, response, sleeps):
        fetcher, session = make_fetcher(
            [response(429, headers={"retry-after": "2"}), response(200, {"ok": True})]
        )
        assert fetcher.fetch(URL) == {"ok": True}
        assert len(sleeps) == 1
        assert 1.4 <= sleeps[0] <= 2.6

    def test_falls_back_to_backoff(self, make_fetcher, response, sleeps):
        fetcher, _ = make_fetcher([response(429), response(200, {"ok": True})])
        fetcher.fetch(URL)
        assert 0.41 <= sleeps[0] <= 0.78

    def test_unparseable_retry_after_uses_backoff(self, make_fetcher, response, sleeps):
        fetcher, _ = make_fetcher(
            [response(429, headers={"retry-after": "soon"}), response(200, {"ok": True})]
        )
        fetcher.fetch(URL)
        assert 0.41 <= sleeps[0] <= 0.78


def test_server_errors_back_off_and_grow(make_fetcher, response, sleeps):
    fetcher, session = make_fetcher(
        [response(500), response(503), response(200, {"ok": True})]
    )
    assert fetcher.fetch(URL) == {"ok": True}
    assert len(session.calls) == 3
    assert 0.41 <= sleeps[0] <= 0.78
    assert 0.75 <= sleeps[1] <= 1.41


def test_other_status_fails_immediately(make_fetcher, response, sleeps):
    fetcher, session = make_fetcher([response(404, text="x" * 500)])

    with pytest.raises(HTTPStatusError) as excinfo:
        fetcher.fetch(URL)

    assert excinfo.value.status_code == 404
    assert excinfo.value.body == "x" * 200
    assert "HTTP 404" in str(excinfo.value)
    assert len(session.calls) == 1
    assert sleeps == []


def test_exhaustion_after_max_attempts(make_fetcher, response, sleeps):
    fetcher, session = make_fetcher([response(503)] * 10)

    with pytest.raises(FetchExhausted) as excinfo:
        fetcher.fetch(URL)

    assert excinfo.value.attempts == 10
    assert excinfo.value.last_status == 503
    assert len(session.calls) == 10
    assert len(sleeps) == 9
    assert max(sleeps) <= 8000 * 1.3 / 1000


class TestNetworkFailures:
    def test_retried(self, make_fetcher, response, sleeps):
        fetcher, _ = make_fetcher(
            [requests.exceptions.ConnectionError("reset"), response(200, {"ok": True})]
        )
        assert fetcher.fetch(URL) == {"ok": True}
        assert len(sleeps) == 1

    def test_final_attempt_propagates_original_error(self, make_fetcher, sleeps):
        errors = [requests.exceptions.Timeout(f"timeout {i}") for i in range(3)]
        fetcher, session = make_fetcher(errors, policy=RetryPolicy(max_attempts=3))

        with pytest.raises(requests.exceptions.Timeout, match="timeout 2"):
            fetcher.fetch(URL)
        assert len(session.calls) == 3
        assert len(sleeps) == 2

    def test_undecodable_body_is_retried(self, make_fetcher, response):
        fetcher, session = make_fetcher(
            [response(200, None, text="<html>"), response(200, {"ok": True})]
        )
        assert fetcher.fetch(URL) == {"ok": True}
        assert len(session.calls) == 2


def test_backoff_schedule_is_capped():
    policy = RetryPolicy()
    schedule = []
    backoff = policy.initial_backoff_ms
    for _ in range(6):
        backoff = policy.next_backoff(backoff)
        schedule.append(backoff)
    assert schedule == [1080, 1944, 3499, 6298, 8000, 8000]


def test_jitter_stays_within_band():
    rng = random.Random(3)
    for _ in range(200):
        assert 699 <= jitter(1000, rng) <= 1300


def test_close_closes_session(make_fetcher):
    fetcher, session = make_fetcher([])
    with fetcher:
        pass
    assert session.closed


def test_rate_limit_exhaustion(make_fetcher, response, sleeps):
    fetcher, session = make_fetcher(
        [response(429, headers={"retry-after": "1"})] * 10
    )

    with pytest.raises(FetchExhausted) as excinfo:
        fetcher.fetch(URL)

    assert excinfo.value.last_status == 429
    assert len(session.calls) == 10
    # no wait after the final attempt
    assert len(sleeps) == 9
    assert all(0.69 <= s <= 1.3 for s in sleeps)


def test_server_error_ignores_retry_after(make_fetcher, response, sleeps):
    fetcher, _ = make_fetcher(
        [response(503, headers={"retry-after": "30"}), response(200, {"ok": True})]
    )
    assert fetcher.fetch(URL) == {"ok": True}
    assert len(sleeps) == 1
    assert 0.41 <= sleeps[0] <= 0.78
