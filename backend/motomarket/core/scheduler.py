"""
Background scheduler for periodic tasks.

- Cleanup orphaned listing images: files under the upload directory that no
  ListingImage row references. Runs every UPLOAD_CLEANUP_HOURS hours.
"""

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from motomarket.core.config import settings
from motomarket.core.database import SessionLocal
from motomarket.models.listing import ListingImage
from motomarket.storage.local_storage import storage
from typing import Optional
import logging
import time

logger = logging.getLogger(__name__)

scheduler = BackgroundScheduler()


def cleanup_orphaned_images_job(min_age_seconds: Optional[int] = None) -> int:
    """
    Delete stored image files with no database row.

    These appear when an upload request fails after writing to disk. Files
    younger than min_age_seconds (default: one job interval) are skipped, so
    an upload that has not committed yet keeps its files.
    Returns the number of files deleted.
    """
    if min_age_seconds is None:
        min_age_seconds = settings.UPLOAD_CLEANUP_HOURS * 3600
    cutoff = time.time() - min_age_seconds

    db = SessionLocal()
    try:
        referenced = {url for (url,) in db.query(ListingImage.url).all()}
        total_deleted = 0

        for file_path in storage.iter_images():
            url = storage.url_for(file_path)
            if url in referenced:
                continue
            try:
                if file_path.stat().st_mtime > cutoff:
                    continue
                file_path.unlink()
                total_deleted += 1
                logger.info(f"Deleted orphaned image: {url}")
            except OSError as e:
                logger.error(f"Error deleting orphaned image {url}: {str(e)}")

        if total_deleted > 0:
            logger.info(f"Cleanup job completed: Deleted {total_deleted} orphaned images")
        else:
            logger.info("Cleanup job completed: No orphaned images found")
        return total_deleted
    finally:
        db.close()


def start_scheduler():
    """
    Start the background scheduler.

    Called when the FastAPI app starts.
    """
    if not scheduler.running:
        scheduler.add_job(
            cleanup_orphaned_images_job,
            trigger=IntervalTrigger(hours=settings.UPLOAD_CLEANUP_HOURS),
            id="cleanup_orphaned_images",
            name="Cleanup orphaned listing images",
            replace_existing=True
        )

        scheduler.start()
        logger.info(
            f"Background scheduler started. Cleanup job scheduled every {settings.UPLOAD_CLEANUP_HOURS} hours."
        )


def stop_scheduler():
    """
    Stop the background scheduler.

    Called when the FastAPI app shuts down.
    """
    if scheduler.running:
        scheduler.shutdown()
        logger.info("Background scheduler stopped.")
