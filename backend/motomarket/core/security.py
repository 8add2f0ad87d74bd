import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from motomarket.core.config import settings

# CryptContext handles password hashing using bcrypt
pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.BCRYPT_ROUNDS,
)

SPECIAL_CHARACTERS = r"[!@#$%^&*(),.?\":{}|<>]"


class InvalidToken(Exception):
    """Signature check failed or the payload could not be parsed"""


class ExpiredToken(InvalidToken):
    """Token signature is valid but the exp claim is in the past"""


@dataclass
class PasswordStrength:
    is_valid: bool
    score: int
    errors: List[str] = field(default_factory=list)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against a hash using constant-time comparison"""
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Hash a password using bcrypt"""
    return pwd_context.hash(password)


def needs_rehash(hashed_password: str) -> bool:
    """True when the hash was produced with weaker settings than the current ones"""
    return pwd_context.needs_update(hashed_password)


def validate_password_strength(password: str) -> PasswordStrength:
    """
    Check a password against the registration policy.

    Each satisfied rule adds a point; a length of 12 or more adds a bonus
    point. The score is capped at 5.
    """
    errors = []
    score = 0

    if len(password) < 8:
        errors.append("Password must be at least 8 characters long")
    else:
        score += 1
    if not re.search(r"[A-Z]", password):
        errors.append("Password must contain an uppercase letter")
    else:
        score += 1
    if not re.search(r"[a-z]", password):
        errors.append("Password must contain a lowercase letter")
    else:
        score += 1
    if not re.search(r"\d", password):
        errors.append("Password must contain a number")
    else:
        score += 1
    if not re.search(SPECIAL_CHARACTERS, password):
        errors.append("Password must contain a special character (!@#$%^&*...)")
    else:
        score += 1
    if len(password) >= 12:
        score += 1

    return PasswordStrength(is_valid=not errors, score=min(score, 5), errors=errors)


def token_claims(account) -> Dict[str, Any]:
    """Identity claims carried by an access token"""
    return {
        "sub": str(account.id),
        "email": account.email,
        "first_name": account.first_name,
        "last_name": account.last_name,
        "verified": bool(account.email_verified),
        "role": account.role,
    }


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token with issue time and expiration"""
    to_encode = data.copy()

    now = datetime.now(timezone.utc)
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode.update({"iat": now, "exp": now + expires_delta})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def issue_access_token(account, expires_delta: Optional[timedelta] = None) -> str:
    return create_access_token(token_claims(account), expires_delta)


def verify_access_token(token: str) -> Dict[str, Any]:
    """
    Decode and verify a JWT token.

    Raises ExpiredToken when the exp claim has passed and InvalidToken for
    any other failure, including a missing or non-numeric subject.
    """
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except ExpiredSignatureError as exc:
        raise ExpiredToken("Token expired") from exc
    except JWTError as exc:
        raise InvalidToken("Invalid token") from exc

    subject = payload.get("sub")
    try:
        payload["account_id"] = int(subject)
    except (TypeError, ValueError) as exc:
        raise InvalidToken("Token subject is not an account id") from exc
    return payload


def token_response(account) -> Dict[str, Any]:
    """Login/register auth block returned to clients"""
    return {
        "token": issue_access_token(account),
        "token_type": "bearer",
        "expires_in": settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        "user": {
            "account_id": account.id,
            "email": account.email,
            "first_name": account.first_name,
            "last_name": account.last_name,
            "verified": bool(account.email_verified),
        },
    }
