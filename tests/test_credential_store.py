"""
Tests for the credential stores.

Both implementations are run through the same contract tests:
- get on an empty store returns None
- set replaces the record for the key
- the record's provider must equal the key
- delete and providers()

SQL-only:
- expiry survives the round trip as aware UTC
- database failures surface as StorageError
"""

from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError

from loopauth.environments.base import StorageError


@pytest.fixture(params=["memory", "sql"])
def store(request):
    """Run each contract test against both stores."""
    return request.getfixturevalue(f"{request.param}_store")


# ---------------------------------------------------------------------------
# CONTRACT TESTS
# ---------------------------------------------------------------------------

class TestCredentialStoreContract:

    def test_get_missing_returns_none(self, store):
        assert store.get("google") is None

    def test_set_then_get(self, store, make_credential):
        credential = make_credential()
        store.set("google", credential)

        loaded = store.get("google")

        assert loaded == credential

    def test_set_replaces(self, store, make_credential):
        store.set("google", make_credential(access_token="first"))
        store.set("google", make_credential(access_token="second"))

        assert store.get("google").access_token == "second"
        assert store.providers() == ["google"]

    def test_key_must_match_provider(self, store, make_credential):
        with pytest.raises(StorageError):
            store.set("microsoft", make_credential(provider="google"))
        assert store.get("microsoft") is None

    def test_delete(self, store, make_credential):
        store.set("google", make_credential())

        assert store.delete("google") is True
        assert store.get("google") is None
        assert store.delete("google") is False

    def test_providers_sorted(self, store, make_credential):
        store.set("zoom", make_credential(provider="zoom"))
        store.set("google", make_credential())

        assert store.providers() == ["google", "zoom"]

    def test_credential_without_expiry(self, store, make_credential):
        store.set("google", make_credential(expires_in=None, refresh_token=None))

        loaded = store.get("google")

        assert loaded.expires_at is None
        assert loaded.refresh_token is None


# ---------------------------------------------------------------------------
# SQL STORE TESTS
# ---------------------------------------------------------------------------

class TestSQLCredentialStore:

    def test_expiry_is_aware_utc(self, sql_store, make_credential):
        credential = make_credential(expires_in=timedelta(minutes=30))
        sql_store.set("google", credential)

        loaded = sql_store.get("google")

        assert loaded.expires_at.utcoffset() == timedelta(0)
        assert loaded.expires_at == credential.expires_at

    def test_write_failure_raises_storage_error(self, sql_store, make_credential, monkeypatch):
        def broken_factory():
            raise OperationalError("INSERT", {}, Exception("disk I/O error"))

        monkeypatch.setattr(sql_store, "_session_factory", broken_factory)

        with pytest.raises(StorageError) as exc_info:
            sql_store.set("google", make_credential())

        assert exc_info.value.phase == "store"

    def test_failed_write_keeps_old_record(self, sql_store, make_credential, monkeypatch):
        sql_store.set("google", make_credential(access_token="original"))
        good_factory = sql_store._session_factory

        def broken_factory():
            raise OperationalError("INSERT", {}, Exception("disk I/O error"))

        monkeypatch.setattr(sql_store, "_session_factory", broken_factory)
        with pytest.raises(StorageError):
            sql_store.set("google", make_credential(access_token="replacement"))

        monkeypatch.setattr(sql_store, "_session_factory", good_factory)
        assert sql_store.get("google").access_token == "original"
