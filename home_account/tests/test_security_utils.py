"""
Tests for password hashing, access tokens and CSRF tokens.
"""

from datetime import timedelta

import jwt
import pytest

from home_account.utils.error_utils import ConfigurationError, TokenExpired, TokenInvalid
from home_account.utils.security_utils import (
    JWT_ALGORITHM,
    create_access_token,
    decode_access_token,
    generate_csrf_token,
    hash_password,
    validate_csrf_token,
    verify_password,
)

SECRET = "unit-test-secret"


def test_hash_and_verify_password():
    """Test that a hashed password verifies and a wrong one does not."""
    password_hash = hash_password("correct horse", rounds=4)

    assert password_hash != "correct horse"
    assert verify_password("correct horse", password_hash)
    assert not verify_password("wrong horse", password_hash)


def test_verify_password_without_hash():
    """Unknown users still go through a bcrypt comparison and never match."""
    assert not verify_password("timing-attack-prevention", None)
    assert not verify_password("anything", None)


def test_access_token_roundtrip():
    token = create_access_token(7, "ana@example.com", SECRET)
    payload = decode_access_token(token, SECRET)

    assert payload["id"] == 7
    assert payload["email"] == "ana@example.com"
    assert payload["exp"] > payload["iat"]


def test_expired_token():
    token = create_access_token(7, "ana@example.com", SECRET, expires_in=timedelta(seconds=-10))

    with pytest.raises(TokenExpired):
        decode_access_token(token, SECRET)


def test_token_signed_with_other_secret():
    token = create_access_token(7, "ana@example.com", "other-secret")

    with pytest.raises(TokenInvalid):
        decode_access_token(token, SECRET)


def test_garbage_token():
    with pytest.raises(TokenInvalid):
        decode_access_token("not-a-jwt", SECRET)


def test_token_without_id_claim():
    token = jwt.encode({"email": "ana@example.com"}, SECRET, algorithm=JWT_ALGORITHM)

    with pytest.raises(TokenInvalid):
        decode_access_token(token, SECRET)


def test_missing_secret():
    """Test that signing and verifying require a configured secret."""
    with pytest.raises(ConfigurationError):
        create_access_token(1, "ana@example.com", None)
    with pytest.raises(ConfigurationError):
        decode_access_token("token", "")


def test_csrf_token_shape():
    token = generate_csrf_token()

    assert len(token) == 64
    int(token, 16)
    assert token != generate_csrf_token()


@pytest.mark.parametrize(
    "header,cookie,expected",
    [
        ("abc123", "abc123", True),
        ("abc123", "abc124", False),
        ("abc123", "abc12", False),
        (None, "abc123", False),
        ("abc123", None, False),
        ("", "", False),
    ],
)
def test_validate_csrf_token(header, cookie, expected):
    assert validate_csrf_token(header, cookie) is expected
