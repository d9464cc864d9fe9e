import pytest

from vitals_triage.core.config import (
    DEFAULT_BASE_URL,
    ConfigurationError,
    Settings,
    clamp_page_limit,
)


def test_missing_api_key_is_fatal():
    with pytest.raises(ConfigurationError, match="DEMOMED_API_KEY"):
        Settings.from_env({})
    with pytest.raises(ConfigurationError):
        Settings.from_env({"DEMOMED_API_KEY": "   "})


def test_defaults():
    settings = Settings.from_env({"DEMOMED_API_KEY": "abc"})
    assert settings.api_key == "abc"
    assert settings.base_url == DEFAULT_BASE_URL
    assert settings.expected_high_risk == 20
    assert settings.page_limit == 20
    assert settings.patients_url == f"{DEFAULT_BASE_URL}/patients"
    assert settings.submit_url == f"{DEFAULT_BASE_URL}/submit-assessment"


def test_overrides():
    settings = Settings.from_env(
        {
            "DEMOMED_API_KEY": "abc",
            "DEMOMED_BASE_URL": "http://localhost:9000/api/",
            "DEMOMED_EXPECTED_HIGH_RISK": "12",
            "DEMOMED_PAGE_LIMIT": "50",
            "DEMOMED_TIMEOUT_S": "5",
        }
    )
    assert settings.base_url == "http://localhost:9000/api"
    assert settings.expected_high_risk == 12
    assert settings.page_limit == 20
    assert settings.timeout_s == 5


def test_bad_integer_names_the_variable():
    with pytest.raises(ConfigurationError, match="DEMOMED_PAGE_LIMIT"):
        Settings.from_env({"DEMOMED_API_KEY": "abc", "DEMOMED_PAGE_LIMIT": "lots"})


@pytest.mark.parametrize("value, expected", [(-5, 1), (0, 1), (1, 1), (10, 10), (20, 20), (21, 20)])
def test_clamp_page_limit(value, expected):
    assert clamp_page_limit(value) == expected
