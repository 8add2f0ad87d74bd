import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import and_, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from motomarket.core.errors import NotFound, PermissionDenied, ValidationFailed
from motomarket.models.account import Account
from motomarket.models.listing import Listing, ListingImage
from motomarket.services.favorite_service import favorite_service
from motomarket.services.search_filters import ListingQuery

logger = logging.getLogger(__name__)

MIN_YEAR = 1950
MAX_DISPLACEMENT = 5000
SIMILAR_LIMIT = 6
SIMILAR_PRICE_BAND = Decimal("0.2")

REQUIRED_FIELDS = [
    "title", "description", "price", "brand", "model", "year",
    "displacement", "mileage", "color", "city", "department",
]
# Optional on input but NOT NULL in the table; an explicit null is rejected
NON_NULLABLE_FIELDS = [
    "negotiable", "fuel", "transmission", "state", "condition",
    "soat_valid", "inspection_valid", "papers_in_order",
]
TEXT_FIELDS = [
    "title", "description", "brand", "model", "color", "maintenance",
    "accessories", "city", "department", "neighborhood",
]
# Columns callers may never set directly
PROTECTED_FIELDS = {"id", "owner_id", "views", "is_active", "is_sold", "is_featured",
                    "created_at", "updated_at", "primary_image_url"}

LISTING_NOT_FOUND_MESSAGE = "The listing does not exist or has been removed"


@dataclass
class ListingDetail:
    listing: Listing
    is_favorite: bool
    favorites_count: int
    similar: List[Listing]
    seller_verified: bool


@dataclass
class ListingPage:
    items: List[Listing]
    total: int
    page: int
    limit: int
    favorited: set = field(default_factory=set)
    favorite_counts: Dict[int, int] = field(default_factory=dict)

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0

    def pagination(self) -> Dict[str, Any]:
        return {
            "page": self.page,
            "limit": self.limit,
            "total": self.total,
            "total_pages": self.total_pages,
            "has_next_page": self.page < self.total_pages,
            "has_previous_page": self.page > 1,
        }


def current_max_year() -> int:
    return datetime.now(timezone.utc).year + 1


def validate_listing_fields(fields: Dict[str, Any], partial: bool = False) -> Dict[str, Any]:
    """
    Check required fields and numeric ranges; return the cleaned fields.

    With partial=True only the provided fields are checked (updates). Raises
    ValidationFailed carrying a message per offending field.
    """
    cleaned = dict(fields)
    errors: Dict[str, str] = {}

    for name in TEXT_FIELDS:
        if isinstance(cleaned.get(name), str):
            cleaned[name] = cleaned[name].strip()

    for name in REQUIRED_FIELDS:
        if partial and name not in cleaned:
            continue
        if cleaned.get(name) in (None, ""):
            errors[name] = "This field is required"

    for name in NON_NULLABLE_FIELDS:
        if name in cleaned and cleaned[name] is None:
            errors[name] = "This field cannot be null"

    year = cleaned.get("year")
    if year is not None and "year" not in errors:
        max_year = current_max_year()
        if year < MIN_YEAR or year > max_year:
            errors["year"] = f"Year must be between {MIN_YEAR} and {max_year}"

    price = cleaned.get("price")
    if price is not None and "price" not in errors and (not math.isfinite(price) or price <= 0):
        errors["price"] = "Price must be greater than 0"

    displacement = cleaned.get("displacement")
    if displacement is not None and "displacement" not in errors:
        if displacement <= 0 or displacement > MAX_DISPLACEMENT:
            errors["displacement"] = f"Displacement must be between 1 and {MAX_DISPLACEMENT} cc"

    mileage = cleaned.get("mileage")
    if mileage is not None and "mileage" not in errors and mileage < 0:
        errors["mileage"] = "Mileage cannot be negative"

    if errors:
        raise ValidationFailed(
            "Some listing fields are missing or invalid",
            extra={"fields": errors},
        )

    if cleaned.get("price") is not None:
        cleaned["price"] = Decimal(str(cleaned["price"]))
    return cleaned


class ListingService:
    @staticmethod
    def _owned(db: Session, listing_id: int, owner: Account) -> Listing:
        listing = db.query(Listing).filter(Listing.id == listing_id).first()
        if not listing:
            raise NotFound(LISTING_NOT_FOUND_MESSAGE, error="ListingNotFound")
        if listing.owner_id != owner.id:
            raise PermissionDenied("You can only modify your own listings", error="NotListingOwner")
        return listing

    @staticmethod
    def create(db: Session, owner: Account, fields: Dict[str, Any],
               image_urls: Optional[List[str]] = None) -> Listing:
        """
        Publish a listing with its images.

        The listing and its image rows are committed together, so a failure
        leaves neither behind.
        """
        data = validate_listing_fields(fields)
        data = {key: value for key, value in data.items() if key not in PROTECTED_FIELDS}
        image_urls = [url for url in (image_urls or []) if url]

        listing = Listing(
            **data,
            owner_id=owner.id,
            primary_image_url=image_urls[0] if image_urls else None,
            is_active=True,
            is_sold=False,
            is_featured=False,
            views=0,
        )
        for position, url in enumerate(image_urls):
            listing.images.append(ListingImage(
                url=url,
                alt=f"{data['brand']} {data['model']} - Image {position + 1}",
                position=position,
            ))

        db.add(listing)
        try:
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise
        db.refresh(listing)
        logger.info("Account %s published listing %s", owner.id, listing.id)
        return listing

    @staticmethod
    def get_by_id(db: Session, listing_id: int, viewer: Optional[Account] = None) -> ListingDetail:
        listing = db.query(Listing).options(
            joinedload(Listing.owner)
        ).filter(Listing.id == listing_id).first()

        if not listing or not listing.is_active:
            raise NotFound(LISTING_NOT_FOUND_MESSAGE, error="ListingNotFound")

        if viewer is None or viewer.id != listing.owner_id:
            # views = views + 1 in a single statement
            db.query(Listing).filter(Listing.id == listing_id).update(
                {Listing.views: Listing.views + 1}, synchronize_session=False
            )
            db.commit()
            db.refresh(listing)

        similar = ListingService.similar_to(db, listing)
        is_favorite = viewer is not None and favorite_service.is_favorite(db, viewer.id, listing.id)
        favorites_count = favorite_service.counts(db, [listing.id]).get(listing.id, 0)

        return ListingDetail(
            listing=listing,
            is_favorite=is_favorite,
            favorites_count=favorites_count,
            similar=similar,
            seller_verified=(listing.owner.rating or 0) >= 4.0,
        )

    @staticmethod
    def similar_to(db: Session, listing: Listing, limit: int = SIMILAR_LIMIT) -> List[Listing]:
        """Same brand, price within 20%, same displacement or same department"""
        price = Decimal(listing.price)
        low = price * (1 - SIMILAR_PRICE_BAND)
        high = price * (1 + SIMILAR_PRICE_BAND)

        return db.query(Listing).options(joinedload(Listing.owner)).filter(
            Listing.id != listing.id,
            Listing.is_active.is_(True),
            Listing.is_sold.is_(False),
            or_(
                Listing.brand == listing.brand,
                and_(Listing.price >= low, Listing.price <= high),
                Listing.displacement == listing.displacement,
                Listing.department == listing.department,
            )
        ).order_by(Listing.created_at.desc(), Listing.id.desc()).limit(limit).all()

    @staticmethod
    def search(db: Session, query: ListingQuery, viewer: Optional[Account] = None) -> ListingPage:
        base = query.apply(db.query(Listing))
        total = base.count()
        items = base.options(joinedload(Listing.owner)).order_by(
            *query.ordering()
        ).offset(query.offset).limit(query.limit).all()

        ids = [item.id for item in items]
        favorited = favorite_service.favorited_ids(db, viewer.id, ids) if viewer else set()

        return ListingPage(
            items=items,
            total=total,
            page=query.page,
            limit=query.limit,
            favorited=favorited,
            favorite_counts=favorite_service.counts(db, ids),
        )

    @staticmethod
    def list_mine(db: Session, owner: Account, status: str = "all"):
        """
        Owner's listings including soft-deleted ones.

        status narrows the list to active, sold or inactive listings. Returns
        (listings, favorite counts, statistics over the returned listings).
        """
        q = db.query(Listing).filter(Listing.owner_id == owner.id)
        if status == "active":
            q = q.filter(Listing.is_active.is_(True), Listing.is_sold.is_(False))
        elif status == "sold":
            q = q.filter(Listing.is_sold.is_(True))
        elif status == "inactive":
            q = q.filter(Listing.is_active.is_(False))

        listings = q.order_by(Listing.created_at.desc(), Listing.id.desc()).all()
        counts = favorite_service.counts(db, [listing.id for listing in listings])

        stats = {
            "total": len(listings),
            "active": sum(1 for m in listings if m.is_active and not m.is_sold),
            "sold": sum(1 for m in listings if m.is_sold),
            "inactive": sum(1 for m in listings if not m.is_active),
            "total_views": sum(m.views for m in listings),
            "total_favorites": sum(counts.values()),
        }
        return listings, counts, stats

    @staticmethod
    def update(db: Session, listing_id: int, owner: Account, fields: Dict[str, Any]) -> Listing:
        listing = ListingService._owned(db, listing_id, owner)

        changes = {key: value for key, value in fields.items() if key not in PROTECTED_FIELDS}
        changes = validate_listing_fields(changes, partial=True)

        for key, value in changes.items():
            setattr(listing, key, value)
        listing.updated_at = datetime.now(timezone.utc)

        db.commit()
        db.refresh(listing)
        logger.info("Account %s updated listing %s (%s)", owner.id, listing.id, ", ".join(sorted(changes)))
        return listing

    @staticmethod
    def soft_delete(db: Session, listing_id: int, owner: Account) -> Listing:
        """Deactivate a listing; it stays in the owner's history"""
        listing = ListingService._owned(db, listing_id, owner)
        listing.is_active = False
        listing.updated_at = datetime.now(timezone.utc)
        db.commit()
        db.refresh(listing)
        logger.info("Account %s deactivated listing %s", owner.id, listing.id)
        return listing

    @staticmethod
    def mark_sold(db: Session, listing_id: int, owner: Account) -> Listing:
        listing = ListingService._owned(db, listing_id, owner)
        if not listing.is_active:
            raise NotFound(LISTING_NOT_FOUND_MESSAGE, error="ListingNotFound")
        listing.is_sold = True
        listing.updated_at = datetime.now(timezone.utc)
        db.commit()
        db.refresh(listing)
        return listing

    @staticmethod
    def get_owned(db: Session, listing_id: int, owner: Account) -> Listing:
        return ListingService._owned(db, listing_id, owner)


listing_service = ListingService()
