from datetime import timedelta
from types import SimpleNamespace

import pytest
from jose import jwt

from motomarket.core.config import settings
from motomarket.core.security import (
    ExpiredToken, InvalidToken, create_access_token, get_password_hash,
    issue_access_token, token_response, validate_password_strength, verify_access_token,
    verify_password,
)

ACCOUNT = SimpleNamespace(id=42, email="ana@motomail.com", first_name="Ana", last_name="Restrepo",
                          email_verified=True, role="user")


def test_password_hash_roundtrip():
    hashed = get_password_hash("Segura123!")

    assert hashed != "Segura123!"
    assert verify_password("Segura123!", hashed)
    assert not verify_password("segura123!", hashed)


@pytest.mark.parametrize("password, score, valid", [
    ("Segura123!", 5, True),
    ("SeguraLarga123!", 5, True),
    ("segura123!", 4, False),
    ("Segura123", 4, False),
    ("abc", 1, False),
])
def test_password_strength(password, score, valid):
    result = validate_password_strength(password)

    assert result.score == score
    assert result.is_valid is valid
    assert bool(result.errors) is not valid


def test_token_carries_identity_claims():
    payload = verify_access_token(issue_access_token(ACCOUNT))

    assert payload["account_id"] == 42
    assert payload["sub"] == "42"
    assert payload["email"] == "ana@motomail.com"
    assert payload["verified"] is True
    assert payload["exp"] > payload["iat"]


def test_default_expiry_matches_settings():
    payload = verify_access_token(issue_access_token(ACCOUNT))

    assert payload["exp"] - payload["iat"] == settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60


def test_expired_token():
    token = create_access_token({"sub": "42"}, expires_delta=timedelta(seconds=-1))

    with pytest.raises(ExpiredToken):
        verify_access_token(token)


def test_tampered_token():
    token = jwt.encode({"sub": "42"}, "another-secret", algorithm="HS256")

    with pytest.raises(InvalidToken) as excinfo:
        verify_access_token(token)
    assert not isinstance(excinfo.value, ExpiredToken)


def test_subject_must_be_an_account_id():
    with pytest.raises(InvalidToken):
        verify_access_token(create_access_token({"sub": "ana"}))


def test_token_response_shape():
    auth = token_response(ACCOUNT)

    assert auth["token_type"] == "bearer"
    assert auth["expires_in"] == settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60
    assert auth["user"] == {
        "account_id": 42,
        "email": "ana@motomail.com",
        "first_name": "Ana",
        "last_name": "Restrepo",
        "verified": True,
    }
