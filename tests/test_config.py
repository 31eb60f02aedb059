from __future__ import annotations

from pathlib import Path

import pytest

from venuebook.utils.config import get_settings


def test_settings_read_from_environment(monkeypatch):
    monkeypatch.setenv("ADMIN_TOKEN", "  from-env  ")
    monkeypatch.setenv("DATABASE_PATH", "/tmp/venuebook-test.db")
    monkeypatch.setenv("NOTICE_TTL_SECONDS", "2.5")
    monkeypatch.setenv("API_BASE_URL", "http://api.local:9000/")
    get_settings.cache_clear()
    try:
        settings = get_settings()
        assert settings.admin_token == "from-env"
        assert settings.database_path == Path("/tmp/venuebook-test.db")
        assert settings.notice_ttl_seconds == 2.5
        assert settings.api_base_url == "http://api.local:9000"
    finally:
        get_settings.cache_clear()


def test_blank_admin_token_disables_auth(monkeypatch):
    monkeypatch.setenv("ADMIN_TOKEN", "   ")
    get_settings.cache_clear()
    try:
        assert get_settings().admin_token is None
    finally:
        get_settings.cache_clear()


def test_invalid_number_is_reported(monkeypatch):
    monkeypatch.setenv("SCHEDULE_MAX_YEAR", "soon")
    get_settings.cache_clear()
    try:
        with pytest.raises(ValueError, match="SCHEDULE_MAX_YEAR"):
            get_settings()
    finally:
        get_settings.cache_clear()
