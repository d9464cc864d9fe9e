"""
Paginated patient retrieval with de-duplication.

Two independent policies drive the loop:

  - EmptyPageRetryPolicy: the API sometimes answers a valid page with zero
    records; the same page is re-requested a few times before it is
    believed empty.
  - PageTerminationPolicy: learns the total page count from the first
    payload exposing pagination metadata and decides when to stop.

Records are keyed by patient id, last write wins. Records without a usable
id are dropped.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple

from vitals_triage.core.config import clamp_page_limit
from vitals_triage.services.extractors.normalizer import (
    extract_patient_id,
    extract_patients,
)
from vitals_triage.services.integration.fetcher import ResilientFetcher

logger = logging.getLogger(__name__)


def _is_number(value: Any) -> bool:
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        return False


def read_total_pages(payload: Any) -> Optional[int]:
    """
    Total page count from payload["pagination"], if present.

    Uses totalPages directly, else ceil(total / limit).
    """
    if not isinstance(payload, Mapping):
        return None
    pagination = payload.get("pagination")
    if not isinstance(pagination, Mapping):
        return None

    total_pages = pagination.get("totalPages")
    if _is_number(total_pages):
        return int(total_pages)

    total = pagination.get("total")
    limit = pagination.get("limit")
    if _is_number(total) and _is_number(limit) and limit > 0:
        return int(math.ceil(total / limit))
    return None


@dataclass(frozen=True)
class EmptyPageRetryPolicy:
    max_attempts: int = 3
    base_delay_ms: int = 500

    def delay_ms(self, attempt: int) -> int:
        return self.base_delay_ms * attempt


class PageTerminationPolicy:
    """Stops on an empty page or once the first-seen page bound is reached."""

    def __init__(self):
        self.total_pages: Optional[int] = None

    def observe(self, payload: Any) -> None:
        if self.total_pages is not None:
            return
        self.total_pages = read_total_pages(payload)
        if self.total_pages is not None:
            logger.info("Pagination bound established: %d pages", self.total_pages)

    def should_stop(self, page: int, record_count: int) -> bool:
        if record_count == 0:
            return True
        return self.total_pages is not None and page >= self.total_pages


class PatientPaginator:
    """
    Walks the patient collection endpoint page by page.

    Waits (empty-page retries, pacing between pages) go through the
    fetcher's sleep and jitter so one clock drives the whole run.
    """

    def __init__(
        self,
        fetcher: ResilientFetcher,
        url: str,
        limit: int = 20,
        empty_policy: Optional[EmptyPageRetryPolicy] = None,
        page_pause_ms: int = 220,
    ):
        self.fetcher = fetcher
        self.url = url
        self.limit = clamp_page_limit(limit)
        self.empty_policy = empty_policy or EmptyPageRetryPolicy()
        self.page_pause_ms = page_pause_ms

    def fetch_page(self, page: int) -> Tuple[Any, List[Dict[str, Any]]]:
        """Fetch one page, re-requesting it while it comes back empty."""
        policy = self.empty_policy
        payload: Any = None
        records: List[Dict[str, Any]] = []

        for attempt in range(1, policy.max_attempts + 1):
            logger.debug("GET %s page=%d limit=%d (attempt %d)", self.url, page, self.limit, attempt)
            payload = self.fetcher.fetch(
                self.url, params={"page": page, "limit": self.limit}
            )
            records = extract_patients(payload)
            if records:
                break
            if attempt < policy.max_attempts:
                wait_ms = self.fetcher.jitter(policy.delay_ms(attempt))
                logger.debug("Page %d came back empty, retrying in %d ms", page, wait_ms)
                self.fetcher.sleep_ms(wait_ms)

        return payload, records

    def fetch_all(self) -> List[Dict[str, Any]]:
        by_id: Dict[str, Dict[str, Any]] = {}
        termination = PageTerminationPolicy()
        page = 1

        while True:
            payload, records = self.fetch_page(page)
            termination.observe(payload)

            for record in records:
                pid = extract_patient_id(record)
                if pid:
                    by_id[pid] = record

            if termination.should_stop(page, len(records)):
                logger.info(
                    "Stopped after page %d with %d unique patients", page, len(by_id)
                )
                break

            page += 1
            self.fetcher.sleep_ms(self.fetcher.jitter(self.page_pause_ms))

        return list(by_id.values())


def fetch_all_patients(
    fetcher: ResilientFetcher, url: str, limit: int = 20
) -> List[Dict[str, Any]]:
    return PatientPaginator(fetcher, url, limit=limit).fetch_all()
