"""Tests for password hashing and bearer tokens."""

import pytest

from gamified_ed.errors import AuthError
from gamified_ed.security.tokens import TokenClaims, TokenService

from conftest import TEST_SECRET


@pytest.fixture
def tokens():
    return TokenService(TEST_SECRET, bcrypt_rounds=4)


class TestPasswords:
    def test_hash_is_not_plaintext(self, tokens):
        hashed = tokens.hash_password("secret1")
        assert hashed != "secret1"
        assert hashed.startswith("$2")

    def test_hash_is_salted(self, tokens):
        assert tokens.hash_password("secret1") != tokens.hash_password("secret1")

    def test_verify_matches(self, tokens):
        hashed = tokens.hash_password("secret1")
        assert tokens.verify_password("secret1", hashed) is True
        assert tokens.verify_password("wrong", hashed) is False

    def test_malformed_hash_is_mismatch(self, tokens):
        assert tokens.verify_password("secret1", "not-a-bcrypt-hash") is False


class TestTokens:
    def test_round_trip_claims(self, tokens):
        token = tokens.issue_token("65f0c0ffee0000000000beef", "alice", "alice@x.com")
        claims = tokens.verify_token(token)
        assert claims == TokenClaims(
            id="65f0c0ffee0000000000beef", username="alice", email="alice@x.com"
        )

    def test_expired_token_rejected(self):
        expired = TokenService(TEST_SECRET, expire_days=-1, bcrypt_rounds=4)
        token = expired.issue_token("id1", "alice", "alice@x.com")
        with pytest.raises(AuthError) as exc_info:
            expired.verify_token(token)
        assert exc_info.value.message == "Invalid token"

    def test_wrong_secret_rejected(self, tokens):
        other = TokenService("another-signing-secret-abcdefghijklmnopqrstu", bcrypt_rounds=4)
        token = other.issue_token("id1", "alice", "alice@x.com")
        with pytest.raises(AuthError):
            tokens.verify_token(token)

    def test_tampered_token_rejected(self, tokens):
        token = tokens.issue_token("id1", "alice", "alice@x.com")
        header, payload, signature = token.split(".")
        tampered = ".".join([header, payload, signature[::-1]])
        with pytest.raises(AuthError):
            tokens.verify_token(tampered)

    @pytest.mark.parametrize("garbage", ["", "abc", "a.b.c"])
    def test_garbage_rejected(self, tokens, garbage):
        with pytest.raises(AuthError):
            tokens.verify_token(garbage)
