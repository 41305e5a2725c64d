"""
minihost — Settings Unit Tests
================================

What:  Defaults, environment loading and validation of HostSettings.
"""

import pytest
from pydantic import ValidationError

from minihost.config import DEFAULT_URL, HostSettings


class TestDefaults:

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("MINIHOST_URLS", raising=False)
        monkeypatch.delenv("MINIHOST_LOG_LEVEL", raising=False)
        s = HostSettings(_env_file=None)

        assert s.urls == DEFAULT_URL
        assert s.urls_list == ["http://localhost:5000/"]
        assert s.concurrent_exchanges is True
        assert s.shutdown_timeout == 10.0
        assert s.log_level == "INFO"
        assert s.rate_limit_requests == 100
        assert s.rate_limit_window == 3600


class TestEnvironment:

    def test_reads_prefixed_variables(self, monkeypatch):
        monkeypatch.setenv("MINIHOST_URLS", "http://+:8080/")
        monkeypatch.setenv("MINIHOST_CONCURRENT_EXCHANGES", "false")
        monkeypatch.setenv("MINIHOST_SHUTDOWN_TIMEOUT", "2.5")

        s = HostSettings(_env_file=None)

        assert s.urls_list == ["http://+:8080/"]
        assert s.concurrent_exchanges is False
        assert s.shutdown_timeout == 2.5

    def test_urls_list_splits_and_drops_blanks(self):
        s = HostSettings(urls=" http://a:1/ ,, http://b:2/ ,")
        assert s.urls_list == ["http://a:1/", "http://b:2/"]


class TestValidation:

    def test_log_level_is_upper_cased(self):
        assert HostSettings(log_level="warning").log_level == "WARNING"

    def test_invalid_log_level_rejected(self):
        with pytest.raises(ValidationError, match="Invalid log_level"):
            HostSettings(log_level="LOUD")

    @pytest.mark.parametrize(
        "field, value",
        [
            ("shutdown_timeout", -1),
            ("shutdown_timeout", 301),
            ("rate_limit_requests", 0),
            ("rate_limit_window", 86401),
        ],
    )
    def test_out_of_range_rejected(self, field, value):
        with pytest.raises(ValidationError):
            HostSettings(**{field: value})
