"""
Tests for settings defaults, list parsing and validation.
"""
import pytest
from pydantic import ValidationError

from ipo_radar.core.config import (
    DEFAULT_GMP_SOURCE_URLS,
    Settings,
    get_settings,
)


class TestDefaults:

    def test_safe_defaults(self):
        settings = Settings()

        assert settings.PRIMARY_FETCH_TIMEOUT == 15.0
        assert settings.DETAIL_FETCH_TIMEOUT == 7.0
        assert settings.DETAIL_ENRICH_CONCURRENCY == 8
        assert settings.DETAIL_ENRICH_STATUSES == ["Upcoming", "Open", "Closed", "Listed"]
        assert settings.GMP_SOURCE_URLS == DEFAULT_GMP_SOURCE_URLS
        assert settings.SUBSCRIPTION_LOOKUP_PATH == ""

    def test_environment_from_conftest(self):
        assert get_settings().ENVIRONMENT == "test"


class TestListParsing:

    def test_comma_separated(self):
        settings = Settings(GMP_SOURCE_URLS="https://a.test/ipo/, https://b.test/sme/")
        assert settings.GMP_SOURCE_URLS == ["https://a.test/ipo/", "https://b.test/sme/"]

    def test_json_array(self):
        settings = Settings(GMP_SOURCE_URLS='["https://a.test/ipo/"]')
        assert settings.GMP_SOURCE_URLS == ["https://a.test/ipo/"]

    def test_empty_string_disables_gmp(self):
        assert Settings(GMP_SOURCE_URLS="").GMP_SOURCE_URLS == []

    def test_from_environment(self, monkeypatch):
        monkeypatch.setenv("GMP_SOURCE_URLS", "https://a.test/ipo/,https://b.test/sme/")
        monkeypatch.setenv("DETAIL_ENRICH_STATUSES", "open,upcoming")

        settings = Settings()

        assert settings.GMP_SOURCE_URLS == ["https://a.test/ipo/", "https://b.test/sme/"]
        assert settings.DETAIL_ENRICH_STATUSES == ["Open", "Upcoming"]

    def test_statuses_normalized(self):
        settings = Settings(DETAIL_ENRICH_STATUSES=["OPEN", " closed "])
        assert settings.DETAIL_ENRICH_STATUSES == ["Open", "Closed"]


class TestValidation:

    def test_unknown_status(self):
        with pytest.raises(ValidationError):
            Settings(DETAIL_ENRICH_STATUSES="Open,Withdrawn")

    @pytest.mark.parametrize("field", [
        "PRIMARY_FETCH_TIMEOUT",
        "DETAIL_FETCH_TIMEOUT",
        "SUBSCRIPTION_FETCH_TIMEOUT",
        "GMP_FETCH_TIMEOUT",
    ])
    def test_timeouts_must_be_positive(self, field):
        with pytest.raises(ValidationError):
            Settings(**{field: 0})

    def test_concurrency_at_least_one(self):
        with pytest.raises(ValidationError):
            Settings(DETAIL_ENRICH_CONCURRENCY=0)

    def test_template_needs_placeholders(self):
        with pytest.raises(ValidationError):
            Settings(SUBSCRIPTION_URL_TEMPLATE="https://subs.test/{slug}/")
