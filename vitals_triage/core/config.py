"""Runtime configuration read from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

DEFAULT_BASE_URL = "https://assessment.ksensetech.com/api"
DEFAULT_EXPECTED_HIGH_RISK = 20
MIN_PAGE_LIMIT = 1
MAX_PAGE_LIMIT = 20


class ConfigurationError(Exception):
    """Missing or malformed configuration; raised before any network call."""


def clamp_page_limit(value: int) -> int:
    return min(MAX_PAGE_LIMIT, max(MIN_PAGE_LIMIT, int(value)))


def _read_int(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = (environ.get(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}")


@dataclass(frozen=True)
class Settings:
    api_key: str
    base_url: str = DEFAULT_BASE_URL
    expected_high_risk: int = DEFAULT_EXPECTED_HIGH_RISK
    page_limit: int = MAX_PAGE_LIMIT
    timeout_s: int = 30

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Build settings from DEMOMED_* environment variables.

        Raises:
            ConfigurationError: if DEMOMED_API_KEY is missing or blank, or a
                numeric variable does not parse.
        """
        if environ is None:
            environ = os.environ

        api_key = (environ.get("DEMOMED_API_KEY") or "").strip()
        if not api_key:
            raise ConfigurationError("Missing DEMOMED_API_KEY environment variable.")

        base_url = (environ.get("DEMOMED_BASE_URL") or DEFAULT_BASE_URL).strip()

        return cls(
            api_key=api_key,
            base_url=base_url.rstrip("/"),
            expected_high_risk=_read_int(
                environ, "DEMOMED_EXPECTED_HIGH_RISK", DEFAULT_EXPECTED_HIGH_RISK
            ),
            page_limit=clamp_page_limit(
                _read_int(environ, "DEMOMED_PAGE_LIMIT", MAX_PAGE_LIMIT)
            ),
            timeout_s=_read_int(environ, "DEMOMED_TIMEOUT_S", 30),
        )

    @property
    def patients_url(self) -> str:
        return f"{self.base_url}/patients"

    @property
    def submit_url(self) -> str:
        return f"{self.base_url}/submit-assessment"
