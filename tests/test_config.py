from __future__ import annotations

from couchfluent.config import get_settings


def test_get_settings_reads_environment(monkeypatch):
    monkeypatch.setenv("COUCHDB_URL", "http://example.test:5984")
    monkeypatch.setenv("COUCHDB_DB_PREFIX", "staging_")
    monkeypatch.setenv("COUCHDB_TIMEOUT_SECONDS", "4.5")

    settings = get_settings()

    assert settings.couchdb_url == "http://example.test:5984"
    assert settings.couchdb_db_prefix == "staging_"
    assert settings.couchdb_timeout_seconds == 4.5


def test_get_settings_defaults(monkeypatch):
    monkeypatch.delenv("COUCHDB_URL", raising=False)
    monkeypatch.delenv("COUCHDB_DB_PREFIX", raising=False)
    monkeypatch.delenv("COUCHDB_TIMEOUT_SECONDS", raising=False)

    settings = get_settings()

    assert settings.couchdb_url == "http://localhost:5984"
    assert settings.couchdb_db_prefix == ""
    assert settings.couchdb_timeout_seconds == 30.0


def test_get_settings_is_cached(monkeypatch):
    monkeypatch.setenv("COUCHDB_DB_PREFIX", "first_")
    first = get_settings()

    monkeypatch.setenv("COUCHDB_DB_PREFIX", "second_")
    second = get_settings()

    assert first is second
    assert second.couchdb_db_prefix == "first_"
