from sqlalchemy import Column, Integer, String, DateTime, Boolean, Float
from sqlalchemy.sql import func
from motomarket.core.database import Base


class Account(Base):
    """
    Marketplace account.

    Stores authentication credentials, profile and verification flags.
    Accounts are never hard-deleted; is_active is the deactivation flag.
    """
    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True, index=True)
    # Stored lower-cased; unique and indexed for login lookups
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False)
    phone = Column(String, unique=True, nullable=True)
    city = Column(String, nullable=True)
    department = Column(String, nullable=True)
    address = Column(String, nullable=True)
    avatar_url = Column(String, nullable=True)
    role = Column(String, nullable=False, default="user")

    email_verified = Column(Boolean, nullable=False, default=False)
    phone_verified = Column(Boolean, nullable=False, default=False)
    id_verified = Column(Boolean, nullable=False, default=False)

    rating = Column(Float, nullable=False, default=0.0)
    total_sales = Column(Integer, nullable=False, default=0)
    total_purchases = Column(Integer, nullable=False, default=0)

    is_active = Column(Boolean, nullable=False, default=True)
    policy_accepted_at = Column(DateTime(timezone=True), nullable=True)
    last_access_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
