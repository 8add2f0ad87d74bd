import logging
from typing import Dict, Iterable, List, Set

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from motomarket.core.errors import NotFound
from motomarket.models.account import Account
from motomarket.models.favorite import Favorite
from motomarket.models.listing import Listing

logger = logging.getLogger(__name__)

ADDED = "added"
REMOVED = "removed"


class FavoriteService:
    @staticmethod
    def toggle(db: Session, account: Account, listing_id: int) -> str:
        """
        Flip the favorite state of a listing for an account.

        Returns ADDED when a favorite row was created and REMOVED when the
        existing one was deleted. Inactive or unknown listings raise NotFound.
        """
        listing = db.query(Listing).filter(
            Listing.id == listing_id,
            Listing.is_active.is_(True)
        ).first()
        if not listing:
            raise NotFound("The listing does not exist or is no longer available",
                           error="ListingNotFound")

        existing = db.query(Favorite).filter(
            Favorite.account_id == account.id,
            Favorite.listing_id == listing_id
        ).first()

        if existing:
            db.delete(existing)
            db.commit()
            logger.info("Account %s removed favorite %s", account.id, listing_id)
            return REMOVED

        db.add(Favorite(account_id=account.id, listing_id=listing_id))
        try:
            db.commit()
        except IntegrityError:
            # A concurrent request inserted the same pair first
            db.rollback()
        logger.info("Account %s added favorite %s", account.id, listing_id)
        return ADDED

    @staticmethod
    def is_favorite(db: Session, account_id: int, listing_id: int) -> bool:
        return db.query(Favorite.id).filter(
            Favorite.account_id == account_id,
            Favorite.listing_id == listing_id
        ).first() is not None

    @staticmethod
    def favorited_ids(db: Session, account_id: int, listing_ids: Iterable[int]) -> Set[int]:
        """Subset of listing_ids the account has favorited, in one query"""
        ids = list(listing_ids)
        if not ids:
            return set()
        rows = db.query(Favorite.listing_id).filter(
            Favorite.account_id == account_id,
            Favorite.listing_id.in_(ids)
        ).all()
        return {listing_id for (listing_id,) in rows}

    @staticmethod
    def counts(db: Session, listing_ids: Iterable[int]) -> Dict[int, int]:
        """Favorite count per listing id, in one query"""
        ids = list(listing_ids)
        if not ids:
            return {}
        rows = db.query(Favorite.listing_id, func.count(Favorite.id)).filter(
            Favorite.listing_id.in_(ids)
        ).group_by(Favorite.listing_id).all()
        return {listing_id: count for listing_id, count in rows}

    @staticmethod
    def list_for(db: Session, account: Account) -> List[Listing]:
        """Listings favorited by the account, most recently favorited first"""
        favorites = db.query(Favorite).options(
            joinedload(Favorite.listing).joinedload(Listing.owner)
        ).filter(
            Favorite.account_id == account.id
        ).order_by(Favorite.created_at.desc(), Favorite.id.desc()).all()
        return [favorite.listing for favorite in favorites]


favorite_service = FavoriteService()
