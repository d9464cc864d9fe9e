"""
Resilient HTTP Fetcher for the Patient API

Issues JSON requests with bounded retry:

  - 429: wait Retry-After seconds when the header is a number, otherwise
    the current backoff; both jittered by +/-30%
  - 500/503: jittered backoff, headers ignored
  - any other non-2xx: fail immediately with HTTPStatusError (no retry)
  - network failure / undecodable body: jittered backoff, and on the final
    attempt the original exception propagates

Backoff starts at 600 ms and grows x1.8 per retry, capped at 8000 ms. When
every attempt is spent on retryable statuses, FetchExhausted is raised.

Waiting goes through an injectable ``sleep`` callable and random source so
the schedule can be tested without real delays.
"""

from __future__ import annotations

import logging
import math
import random
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

import requests

logger = logging.getLogger(__name__)


class FetchError(Exception):
    """Base class for transport failures surfaced to the caller."""


class HTTPStatusError(FetchError):
    """Non-retryable HTTP status."""

    def __init__(self, status_code: int, url: str, body: str = ""):
        self.status_code = status_code
        self.url = url
        self.body = body
        message = f"HTTP {status_code} for {url}"
        if body:
            message = f"{message} - {body}"
        super().__init__(message)


class FetchExhausted(FetchError):
    """Every attempt ended in a retryable status."""

    def __init__(self, url: str, attempts: int, last_status: Optional[int] = None):
        self.url = url
        self.attempts = attempts
        self.last_status = last_status
        super().__init__(
            f"Gave up on {url} after {attempts} attempts (last status: {last_status})"
        )


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 10
    initial_backoff_ms: int = 600
    backoff_factor: float = 1.8
    max_backoff_ms: int = 8000
    retry_statuses: Tuple[int, ...] = (500, 503)
    rate_limit_status: int = 429
    body_excerpt_chars: int = 200

    def next_backoff(self, backoff_ms: int) -> int:
        return min(self.max_backoff_ms, int(math.floor(backoff_ms * self.backoff_factor)))


def jitter(ms: float, rng: Optional[random.Random] = None) -> int:
    """Scale ms by a uniform factor in [0.7, 1.3) and floor to whole ms."""
    r = (rng or random).random()
    return int(math.floor(ms * (0.7 + r * 0.6)))


def _retry_after_ms(value: Optional[str]) -> Optional[float]:
    if value is None:
        return None
    try:
        seconds = float(str(value).strip())
    except ValueError:
        return None
    if not math.isfinite(seconds) or seconds < 0:
        return None
    return seconds * 1000


class ResilientFetcher:
    """
    JSON-over-HTTP client carrying the API credential on every call.

    Args:
        api_key: value for the x-api-key header
        session: requests.Session (or compatible object exposing request())
        policy: retry/backoff configuration
        timeout: per-request timeout in seconds
        sleep: called with seconds to wait
        rng: random source for jitter
    """

    def __init__(
        self,
        api_key: str,
        session: Optional[requests.Session] = None,
        policy: Optional[RetryPolicy] = None,
        timeout: float = 30,
        sleep: Callable[[float], None] = time.sleep,
        rng: Optional[random.Random] = None,
    ):
        self.api_key = api_key
        self.session = session if session is not None else requests.Session()
        self.policy = policy or RetryPolicy()
        self.timeout = timeout
        self._sleep = sleep
        self.rng = rng or random.Random()

    def __enter__(self) -> "ResilientFetcher":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        close = getattr(self.session, "close", None)
        if close is not None:
            close()

    def sleep_ms(self, ms: float) -> None:
        self._sleep(ms / 1000.0)

    def jitter(self, ms: float) -> int:
        return jitter(ms, self.rng)

    def _headers(self, extra: Optional[Dict[str, str]]) -> Dict[str, str]:
        headers = {"x-api-key": self.api_key, "Accept": "application/json"}
        headers.update(extra or {})
        return headers

    def fetch(
        self,
        url: str,
        method: str = "GET",
        params: Optional[Dict[str, Any]] = None,
        json_body: Any = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        """
        Perform the request and return the decoded JSON body.

        Raises:
            HTTPStatusError: non-retryable status
            FetchExhausted: attempt budget spent on 429/500/503
            requests.RequestException / ValueError: network or decode failure
                on the final attempt
        """
        policy = self.policy
        backoff_ms = policy.initial_backoff_ms
        last_status: Optional[int] = None

        for attempt in range(1, policy.max_attempts + 1):
            final = attempt == policy.max_attempts
            try:
                response = self.session.request(
                    method,
                    url,
                    params=params,
                    json=json_body,
                    headers=self._headers(headers),
                    timeout=self.timeout,
                )
                status = response.status_code

                if status == policy.rate_limit_status or status in policy.retry_statuses:
                    last_status = status
                    base_ms = backoff_ms
                    if status == policy.rate_limit_status:
                        retry_after = _retry_after_ms(response.headers.get("retry-after"))
                        if retry_after is not None:
                            base_ms = retry_after
                    if final:
                        break
                    wait_ms = self.jitter(base_ms)
                    logger.warning(
                        "Got %s from %s, waiting %d ms (attempt %d/%d)",
                        status,
                        url,
                        wait_ms,
                        attempt,
                        policy.max_attempts,
                    )
                    self.sleep_ms(wait_ms)
                    backoff_ms = policy.next_backoff(backoff_ms)
                    continue

                if not 200 <= status < 300:
                    body = response.text or ""
                    raise HTTPStatusError(status, url, body[: policy.body_excerpt_chars])

                return response.json()

            except (requests.RequestException, ValueError) as exc:
                if final:
                    raise
                wait_ms = self.jitter(backoff_ms)
                logger.warning(
                    "Request to %s failed (%s), retrying in %d ms (attempt %d/%d)",
                    url,
                    exc,
                    wait_ms,
                    attempt,
                    policy.max_attempts,
                )
                self.sleep_ms(wait_ms)
                backoff_ms = policy.next_backoff(backoff_ms)

        raise FetchExhausted(url, policy.max_attempts, last_status)
