import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from motomarket.core.config import settings
from motomarket.core.errors import AuthenticationFailed, Conflict, PermissionDenied, ValidationFailed
from motomarket.core.security import (
    get_password_hash, needs_rehash, validate_password_strength, verify_password,
)
from motomarket.models.account import Account
from motomarket.models.listing import Listing
from motomarket.schemas import AccountCreate

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _strip(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return value.strip() or None


class AccountService:
    @staticmethod
    def register(db: Session, data: AccountCreate) -> Account:
        """
        Create an account after policy, password and uniqueness checks.

        E-mail uniqueness is case-insensitive; a duplicate e-mail or phone
        raises Conflict and nothing is written.
        """
        if not data.first_name.strip() or not data.last_name.strip():
            raise ValidationFailed(
                "Email, password, first name and last name are required",
                error="MissingFields",
                extra={"required": ["email", "password", "first_name", "last_name"]},
            )

        if not data.accepts_policy:
            raise ValidationFailed(
                "You must accept the data processing policy to register",
                error="PolicyNotAccepted",
            )

        strength = validate_password_strength(data.password)
        if not strength.is_valid:
            raise ValidationFailed(
                "The password does not meet the security requirements",
                error="WeakPassword",
                extra={"errors": strength.errors, "score": strength.score},
            )

        email = normalize_email(data.email)
        phone = _strip(data.phone)
        AccountService._ensure_unique(db, email, phone)

        account = Account(
            email=email,
            hashed_password=get_password_hash(data.password),
            first_name=data.first_name.strip(),
            last_name=data.last_name.strip(),
            phone=phone,
            city=_strip(data.city),
            department=_strip(data.department),
            email_verified=False,
            policy_accepted_at=datetime.now(timezone.utc),
            is_active=True,
        )
        db.add(account)
        try:
            db.commit()
        except IntegrityError:
            # Two registrations for the same e-mail raced past the explicit check
            db.rollback()
            raise Conflict("An account with that email already exists",
                           error="AccountExists", extra={"field": "email"})
        db.refresh(account)
        logger.info("Registered account %s", account.id)
        return account

    @staticmethod
    def _ensure_unique(db: Session, email: str, phone: Optional[str]) -> None:
        criteria = [Account.email == email]
        if phone:
            criteria.append(Account.phone == phone)
        existing = db.query(Account).filter(or_(*criteria)).first()
        if existing:
            field = "email" if existing.email == email else "phone"
            raise Conflict(f"An account with that {field} already exists",
                           error="AccountExists", extra={"field": field})

    @staticmethod
    def authenticate(db: Session, email: str, password: str) -> Account:
        account = db.query(Account).filter(Account.email == normalize_email(email)).first()

        # Same message for unknown e-mail and wrong password
        if not account:
            raise AuthenticationFailed("Incorrect email or password", error="InvalidCredentials")
        if not account.is_active:
            raise PermissionDenied("Your account has been deactivated. Contact support.",
                                   error="AccountDisabled")
        if not verify_password(password, account.hashed_password):
            raise AuthenticationFailed("Incorrect email or password", error="InvalidCredentials")

        if needs_rehash(account.hashed_password):
            account.hashed_password = get_password_hash(password)
        account.last_access_at = datetime.now(timezone.utc)
        db.commit()
        db.refresh(account)
        logger.info("Account %s logged in", account.id)
        return account

    @staticmethod
    def touch(db: Session, account: Account) -> None:
        """Record activity on an authenticated request"""
        account.last_access_at = datetime.now(timezone.utc)
        db.commit()

    @staticmethod
    def profile(db: Session, account: Account) -> Dict[str, Any]:
        active = db.query(Listing).filter(
            Listing.owner_id == account.id,
            Listing.is_active.is_(True)
        ).order_by(Listing.created_at.desc(), Listing.id.desc()).all()

        return {
            "listings": active,
            "stats": {
                "active_listings": len(active),
                "completed_sales": account.total_sales,
                "completed_purchases": account.total_purchases,
                "rating": account.rating,
            },
        }

    @staticmethod
    def seed_admin(db: Session) -> Optional[Account]:
        """Create the configured admin account when the table is empty"""
        if db.query(Account.id).first() is not None:
            return None
        admin = Account(
            email=normalize_email(settings.ADMIN_EMAIL),
            hashed_password=get_password_hash(settings.ADMIN_PASSWORD),
            first_name="Admin",
            last_name="MotoMarket",
            role="admin",
            email_verified=True,
            id_verified=True,
            rating=5.0,
            is_active=True,
        )
        db.add(admin)
        db.commit()
        logger.info("Seeded admin account %s", admin.email)
        return admin


account_service = AccountService()
