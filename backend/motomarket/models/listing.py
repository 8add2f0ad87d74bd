import enum

from sqlalchemy import (
    Column, Integer, String, Text, DateTime, Boolean, ForeignKey, Numeric, Enum,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from motomarket.core.database import Base


class Fuel(str, enum.Enum):
    GASOLINE = "GASOLINE"
    ELECTRIC = "ELECTRIC"
    HYBRID = "HYBRID"


class Transmission(str, enum.Enum):
    MANUAL = "MANUAL"
    AUTOMATIC = "AUTOMATIC"
    SEMI_AUTOMATIC = "SEMI_AUTOMATIC"


class ItemState(str, enum.Enum):
    NEW = "NEW"
    USED = "USED"
    FOR_PARTS = "FOR_PARTS"


class Condition(str, enum.Enum):
    EXCELLENT = "EXCELLENT"
    VERY_GOOD = "VERY_GOOD"
    GOOD = "GOOD"
    FAIR = "FAIR"
    NEEDS_REPAIR = "NEEDS_REPAIR"


class Brakes(str, enum.Enum):
    DISC = "DISC"
    DRUM = "DRUM"
    MIXED = "MIXED"
    ABS = "ABS"
    CBS = "CBS"


class Tires(str, enum.Enum):
    NEW = "NEW"
    GOOD = "GOOD"
    FAIR = "FAIR"
    NEED_REPLACEMENT = "NEED_REPLACEMENT"


class Listing(Base):
    """
    Motorcycle advertisement owned by exactly one account.

    Soft-deleted by flipping is_active; the owner never changes after creation.
    """
    __tablename__ = "listings"

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(Integer, ForeignKey("accounts.id"), nullable=False, index=True)

    title = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    price = Column(Numeric(14, 2), nullable=False, index=True)
    negotiable = Column(Boolean, nullable=False, default=True)

    brand = Column(String, nullable=False, index=True)
    model = Column(String, nullable=False)
    year = Column(Integer, nullable=False, index=True)
    displacement = Column(Integer, nullable=False)  # cc
    mileage = Column(Integer, nullable=False)  # km
    color = Column(String, nullable=False)

    fuel = Column(Enum(Fuel), nullable=False, default=Fuel.GASOLINE)
    transmission = Column(Enum(Transmission), nullable=False, default=Transmission.MANUAL)
    state = Column(Enum(ItemState), nullable=False, default=ItemState.USED)
    condition = Column(Enum(Condition), nullable=False, default=Condition.GOOD)
    brakes = Column(Enum(Brakes), nullable=True)
    tires = Column(Enum(Tires), nullable=True)

    soat_valid = Column(Boolean, nullable=False, default=False)
    inspection_valid = Column(Boolean, nullable=False, default=False)
    papers_in_order = Column(Boolean, nullable=False, default=False)
    maintenance = Column(Text, nullable=True)
    accessories = Column(Text, nullable=True)

    city = Column(String, nullable=False)
    department = Column(String, nullable=False, index=True)
    neighborhood = Column(String, nullable=True)

    primary_image_url = Column(String, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    is_sold = Column(Boolean, nullable=False, default=False, index=True)
    is_featured = Column(Boolean, nullable=False, default=False)
    views = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    owner = relationship("Account", backref="listings")
    # Images are always read in display order; the first one is the primary image
    images = relationship(
        "ListingImage",
        back_populates="listing",
        order_by="ListingImage.position",
        cascade="all, delete-orphan",
    )


class ListingImage(Base):
    __tablename__ = "listing_images"

    id = Column(Integer, primary_key=True, index=True)
    listing_id = Column(Integer, ForeignKey("listings.id"), nullable=False, index=True)
    url = Column(String, nullable=False)
    alt = Column(String, nullable=True)
    position = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    listing = relationship("Listing", back_populates="images")
