import logging
from pathlib import Path
from typing import List

from fastapi import UploadFile
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from motomarket.core.config import settings
from motomarket.core.errors import ValidationFailed
from motomarket.models.account import Account
from motomarket.models.listing import ListingImage
from motomarket.services.listing_service import listing_service
from motomarket.storage.local_storage import storage

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {".jpg", ".jpeg", ".png", ".webp"}


class ImageService:
    @staticmethod
    async def read_upload(file: UploadFile) -> tuple[bytes, str]:
        """Validate one uploaded image and return (content, extension)"""
        if not file.filename:
            raise ValidationFailed("Filename is required", error="InvalidImage")

        extension = Path(file.filename).suffix.lower()
        if extension not in ALLOWED_EXTENSIONS:
            raise ValidationFailed(
                f"Image type not supported. Allowed: {', '.join(sorted(ALLOWED_EXTENSIONS))}",
                error="InvalidImage",
                extra={"filename": file.filename},
            )

        content = await file.read()
        if not content:
            raise ValidationFailed("Image is empty", error="InvalidImage",
                                   extra={"filename": file.filename})
        if len(content) > settings.MAX_FILE_SIZE:
            raise ValidationFailed(
                f"Image exceeds the {settings.MAX_FILE_SIZE // (1024 * 1024)}MB limit",
                error="ImageTooLarge",
                extra={"filename": file.filename},
            )
        return content, extension

    @staticmethod
    async def add_images(db: Session, listing_id: int, owner: Account,
                         files: List[UploadFile]) -> List[ListingImage]:
        """
        Store uploaded images for a listing owned by the caller.

        Every file is validated before anything is written. Positions continue
        after the existing images and the first image becomes the primary one
        when the listing has none.
        """
        listing = listing_service.get_owned(db, listing_id, owner)

        if not files:
            raise ValidationFailed("No images were received", error="NoImages")
        if len(files) > settings.MAX_FILES_PER_UPLOAD:
            raise ValidationFailed(
                f"At most {settings.MAX_FILES_PER_UPLOAD} images per upload",
                error="TooManyImages",
            )

        uploads = [await ImageService.read_upload(file) for file in files]
        names = [file.filename for file in files]

        last_position = db.query(func.max(ListingImage.position)).filter(
            ListingImage.listing_id == listing.id
        ).scalar()
        next_position = 0 if last_position is None else last_position + 1

        saved_urls = []
        images = []
        try:
            for offset, (content, extension) in enumerate(uploads):
                _, url = storage.save_image(content, listing.id, extension)
                saved_urls.append(url)
                image = ListingImage(
                    listing_id=listing.id,
                    url=url,
                    alt=names[offset],
                    position=next_position + offset,
                )
                db.add(image)
                images.append(image)

            if not listing.primary_image_url:
                listing.primary_image_url = saved_urls[0]
            db.commit()
        except (OSError, SQLAlchemyError):
            db.rollback()
            # Files without rows would only be picked up by the cleanup job
            for url in saved_urls:
                storage.delete_url(url)
            raise

        for image in images:
            db.refresh(image)
        logger.info("Stored %d image(s) for listing %s", len(images), listing.id)
        return images


image_service = ImageService()
