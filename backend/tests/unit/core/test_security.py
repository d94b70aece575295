"""
Tests for JWT authentication and password hashing.
"""

import pytest
from datetime import datetime, timedelta, timezone
from jose import jwt

from app.core.security import (
    create_access_token,
    verify_token,
    get_password_hash,
    verify_password,
    JWT_SECRET_KEY,
    JWT_ISSUER,
    ALGORITHM,
    ACCESS_TOKEN_EXPIRE_MINUTES,
)


class TestTokenGeneration:
    """Tests for JWT token generation."""

    def test_access_token_claims(self):
        """Access tokens carry subject, issuer, id, type and expiry."""
        token = create_access_token({"sub": "test-user-id"})

        assert isinstance(token, str)
        payload = jwt.decode(
            token, JWT_SECRET_KEY, algorithms=[ALGORITHM], issuer=JWT_ISSUER
        )

        assert payload["sub"] == "test-user-id"
        assert payload["type"] == "access"
        assert payload["iss"] == JWT_ISSUER
        assert payload["jti"]
        assert "exp" in payload

    def test_each_token_has_unique_id(self):
        first = jwt.get_unverified_claims(create_access_token({"sub": "u"}))
        second = jwt.get_unverified_claims(create_access_token({"sub": "u"}))
        assert first["jti"] != second["jti"]

    def test_token_expiration(self):
        now = datetime.now(timezone.utc)
        payload = verify_token(create_access_token({"sub": "user-id"}))

        exp = datetime.fromtimestamp(payload["exp"], tz=timezone.utc)
        expected = now + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
        assert abs((exp - expected).total_seconds()) < 3


class TestTokenValidation:
    """Tests for JWT token validation."""

    def test_valid_token_verification(self):
        payload = verify_token(create_access_token({"sub": "user-id"}))
        assert payload["sub"] == "user-id"

    def test_invalid_token_verification(self):
        with pytest.raises(ValueError, match="Invalid token"):
            verify_token("invalid-token")

    def test_wrong_token_type(self):
        token = create_access_token({"sub": "user-id"})
        with pytest.raises(ValueError, match="Token is not a refresh token"):
            verify_token(token, token_type="refresh")

    def test_wrong_issuer(self):
        token = jwt.encode(
            {
                "sub": "user-id",
                "type": "access",
                "iss": "someone-else",
                "exp": datetime.now(timezone.utc) + timedelta(hours=1),
            },
            JWT_SECRET_KEY,
            algorithm=ALGORITHM,
        )
        with pytest.raises(ValueError, match="Invalid token"):
            verify_token(token)

    def test_expired_token(self):
        payload = {
            "sub": "test-user",
            "type": "access",
            "iss": JWT_ISSUER,
            "exp": datetime.now(timezone.utc) - timedelta(hours=1),
        }
        expired_token = jwt.encode(payload, JWT_SECRET_KEY, algorithm=ALGORITHM)

        with pytest.raises(ValueError, match="Invalid token"):
            verify_token(expired_token)

    def test_wrong_signature(self):
        token = jwt.encode(
            {"sub": "user-id", "type": "access", "iss": JWT_ISSUER},
            "another-secret",
            algorithm=ALGORITHM,
        )
        with pytest.raises(ValueError, match="Invalid token"):
            verify_token(token)


class TestPasswordHashing:
    """Tests for password hashing functions."""

    def test_password_hashing(self):
        """The same password hashes differently each time (salt)."""
        password = "secure-password"

        hash1 = get_password_hash(password)
        hash2 = get_password_hash(password)

        assert hash1 != hash2
        assert hash1.startswith("$argon2")
        assert verify_password(password, hash1)
        assert verify_password(password, hash2)

    def test_password_verification(self):
        password_hash = get_password_hash("another-secure-password")

        assert verify_password("another-secure-password", password_hash)
        assert not verify_password("wrong-password", password_hash)

    def test_malformed_hash_does_not_verify(self):
        assert not verify_password("anything", "not-a-real-hash")
