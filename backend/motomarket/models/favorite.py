from sqlalchemy import Column, Integer, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from motomarket.core.database import Base


class Favorite(Base):
    """Bookmark joining an account and a listing; one row per pair"""
    __tablename__ = "favorites"
    __table_args__ = (
        UniqueConstraint("account_id", "listing_id", name="uq_favorites_account_listing"),
    )

    id = Column(Integer, primary_key=True, index=True)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False, index=True)
    listing_id = Column(Integer, ForeignKey("listings.id"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    listing = relationship("Listing")
