import logging
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from motomarket.core.database import get_db
from motomarket.core.errors import AuthenticationFailed, PermissionDenied, RateLimited
from motomarket.core.rate_limit import rate_limiter
from motomarket.core.security import ExpiredToken, InvalidToken, verify_access_token
from motomarket.models.account import Account
from motomarket.services.account_service import account_service

logger = logging.getLogger(__name__)

# Reads "Authorization: Bearer <token>"; auto_error=False so each gate
# decides how a missing credential is reported
bearer_scheme = HTTPBearer(auto_error=False)


def _resolve_account(token: str, db: Session) -> Account:
    """Verify a token and load its account, raising AuthenticationFailed"""
    try:
        payload = verify_access_token(token)
    except ExpiredToken:
        raise AuthenticationFailed(
            "Your session has expired. Log in again.", error="TokenExpired",
            extra={"code": "TOKEN_EXPIRED"},
        )
    except InvalidToken:
        raise AuthenticationFailed("Invalid access token", error="InvalidToken")

    account = db.query(Account).filter(Account.id == payload["account_id"]).first()
    if account is None:
        raise AuthenticationFailed("The account for this token no longer exists",
                                   error="AccountNotFound")
    if not account.is_active:
        raise AuthenticationFailed("Your account has been deactivated. Contact support.",
                                   error="AccountDisabled")
    return account


async def get_current_account(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db)
) -> Account:
    """
    Required authentication.

    Fails with 401 (MissingToken, InvalidToken, TokenExpired, AccountNotFound,
    AccountDisabled); on success records the access time and returns the account.
    """
    if credentials is None or credentials.scheme.lower() != "bearer" or not credentials.credentials:
        raise AuthenticationFailed("You must log in to access this resource", error="MissingToken")

    account = _resolve_account(credentials.credentials, db)
    account_service.touch(db, account)
    return account


async def get_optional_account(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db)
) -> Optional[Account]:
    """Optional authentication: any failure simply yields an anonymous request"""
    if credentials is None or not credentials.credentials:
        return None
    try:
        return _resolve_account(credentials.credentials, db)
    except AuthenticationFailed as exc:
        logger.debug("Ignoring credential on optional route: %s", exc.error)
        return None


async def require_verified_account(
    account: Account = Depends(get_current_account)
) -> Account:
    if not account.email_verified:
        raise PermissionDenied(
            "You must verify your email to use this feature",
            error="EmailNotVerified",
            extra={"code": "EMAIL_NOT_VERIFIED"},
        )
    return account


def require_role(*roles: str):
    """Dependency factory allowing only accounts whose role is listed"""
    async def checker(account: Account = Depends(get_current_account)) -> Account:
        if account.role not in roles:
            raise PermissionDenied("You do not have permission for this action",
                                   error="InsufficientRole")
        return account
    return checker


async def user_rate_limit(
    account: Account = Depends(get_current_account)
) -> Account:
    """Per-account request budget on write endpoints"""
    allowed, retry_after = rate_limiter.check(f"account:{account.id}")
    if not allowed:
        logger.warning("Rate limit exceeded for account %s", account.id)
        raise RateLimited(retry_after)
    return account
