"""Tests for client token storage."""

import json
import time

import pytest
from jose import jwt

from timecal.client.token_storage import (
    FileTokenStorage,
    MemoryTokenStorage,
    is_token_expired,
    is_valid_token_format,
    validate_token_security,
)


@pytest.fixture(params=["memory", "file"])
def storage(request, tmp_path):
    if request.param == "memory":
        return MemoryTokenStorage()
    return FileTokenStorage(tmp_path / "session.json")


class TestStorageBackends:
    def test_empty_storage(self, storage):
        assert storage.get() is None
        assert storage.has_token() is False
        assert storage.is_available() is True

    def test_set_get_clear(self, storage, valid_token):
        storage.set(valid_token)
        assert storage.get() == valid_token

        storage.clear()
        assert storage.get() is None

    def test_malformed_token_is_cleared_on_read(self, storage):
        storage.set("definitely.not.ajwt")

        assert storage.get() is None
        assert storage._read() is None


class TestFileTokenStorage:
    def test_survives_new_instance(self, tmp_path, valid_token):
        path = tmp_path / "session.json"
        FileTokenStorage(path).set(valid_token)

        assert FileTokenStorage(path).get() == valid_token

    def test_stores_under_auth_token_key_and_keeps_other_keys(self, tmp_path, valid_token):
        path = tmp_path / "session.json"
        path.write_text(json.dumps({"theme": "dark"}))

        FileTokenStorage(path).set(valid_token)

        assert json.loads(path.read_text()) == {"theme": "dark", "auth_token": valid_token}

    def test_corrupt_file_reads_as_empty(self, tmp_path):
        path = tmp_path / "session.json"
        path.write_text("{not json")

        assert FileTokenStorage(path).get() is None

    def test_creates_parent_directories(self, tmp_path, valid_token):
        storage = FileTokenStorage(tmp_path / "nested" / "dir" / "session.json")

        storage.set(valid_token)

        assert storage.get() == valid_token


class TestTokenChecks:
    def test_issued_token_has_valid_format(self, valid_token):
        assert is_valid_token_format(valid_token) is True

    @pytest.mark.parametrize("token", ["", "abc", "a.b", "a.b.c.d"])
    def test_wrong_shape(self, token):
        assert is_valid_token_format(token) is False

    def test_missing_identity_claims(self):
        token = jwt.encode({"exp": int(time.time()) + 60}, "k", algorithm="HS256")

        assert is_valid_token_format(token) is False

    def test_expiry(self, valid_token, expired_token):
        assert is_token_expired(valid_token) is False
        assert is_token_expired(expired_token) is True
        assert is_token_expired(None) is True
        assert is_token_expired("garbage") is True

    def test_security_check_accepts_fresh_token(self, valid_token):
        assert validate_token_security(valid_token) == (True, None)

    def test_security_check_rejects_expired(self, expired_token):
        assert validate_token_security(expired_token) == (False, "Token has expired")

    def test_security_check_rejects_far_future_expiry(self, token_codec, test_claims):
        token = token_codec.issue(test_claims, ttl=7 * 24 * 60 * 60)

        assert validate_token_security(token) == (False, "Token expiration too far in future")
