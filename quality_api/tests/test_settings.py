"""Configuration, token verification and logging context."""

import logging
import uuid

import pytest
from fastapi import HTTPException

from siteproof.core.deps import get_current_inspector_id
from siteproof.core.logging import LoggingContextFilter, correlation_id_var
from siteproof.core.security import create_access_token, get_token_subject
from siteproof.core.settings import get_app_settings
from siteproof.db.config import IN_MEMORY_URL, Settings


class TestDatabaseSettings:
    @pytest.fixture(autouse=True)
    def _clean_env(self, monkeypatch):
        for name in ("DATABASE_URL", "POSTGRES_URL", "POSTGRES_USER", "POSTGRES_PASSWORD", "POSTGRES_DB"):
            monkeypatch.delenv(name, raising=False)

    def test_falls_back_to_in_memory(self):
        settings = Settings(_env_file=None)
        assert settings.database_url == IN_MEMORY_URL
        assert settings.is_in_memory

    def test_postgres_parts_use_asyncpg(self):
        settings = Settings(
            _env_file=None, POSTGRES_USER="qa", POSTGRES_PASSWORD="pw", POSTGRES_DB="siteproof", POSTGRES_HOST="db"
        )
        assert settings.async_database_url == "postgresql+asyncpg://qa:pw@db:5432/siteproof"
        assert settings.sync_database_url == "postgresql://qa:pw@db:5432/siteproof"
        assert not settings.is_sqlite

    def test_explicit_url_wins(self):
        settings = Settings(_env_file=None, DATABASE_URL="sqlite:///./qa.db", POSTGRES_URL="postgres://x/y")
        assert settings.async_database_url == "sqlite+aiosqlite:///./qa.db"
        assert not settings.is_in_memory

    def test_postgres_scheme_alias(self):
        settings = Settings(_env_file=None, POSTGRES_URL="postgres://u:p@h/db")
        assert settings.async_database_url == "postgresql+asyncpg://u:p@h/db"


class TestCorsSettings:
    def test_origins_accept_comma_separated(self, monkeypatch):
        monkeypatch.setenv("CORS_ORIGINS", "https://a.example, https://b.example")
        assert get_app_settings().CORS_ORIGINS == ["https://a.example", "https://b.example"]

    def test_origins_accept_json_array(self, monkeypatch):
        monkeypatch.setenv("CORS_ORIGINS", '["https://a.example"]')
        assert get_app_settings().CORS_ORIGINS == ["https://a.example"]

    def test_methods_accept_comma_separated(self, monkeypatch):
        monkeypatch.setenv("CORS_ALLOW_METHODS", "GET,PUT")
        assert get_app_settings().CORS_ALLOW_METHODS == ["GET", "PUT"]


class TestInspectorToken:
    async def test_missing_token_allowed_by_default(self, monkeypatch):
        monkeypatch.delenv("REQUIRE_AUTH", raising=False)
        assert await get_current_inspector_id(None) is None

    async def test_missing_token_rejected_when_required(self, monkeypatch):
        monkeypatch.setenv("REQUIRE_AUTH", "true")
        with pytest.raises(HTTPException) as excinfo:
            await get_current_inspector_id(None)
        assert excinfo.value.status_code == 401

    async def test_subject_must_be_uuid(self):
        with pytest.raises(HTTPException):
            await get_current_inspector_id(create_access_token("inspector-7"))

    async def test_valid_token(self):
        inspector = uuid.uuid4()
        assert await get_current_inspector_id(create_access_token(str(inspector))) == inspector

    def test_expired_token_has_no_subject(self):
        assert get_token_subject(create_access_token("x", expires_minutes=-5)) is None


def test_log_records_carry_correlation_id():
    token = correlation_id_var.set("req-42")
    try:
        record = logging.LogRecord("t", logging.INFO, __file__, 1, "msg", None, None)
        LoggingContextFilter().filter(record)
    finally:
        correlation_id_var.reset(token)
    assert record.correlation_id == "req-42"
    assert record.inspector_id == "-"
