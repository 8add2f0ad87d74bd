import os
import time

from motomarket.core import scheduler
from motomarket.core.scheduler import cleanup_orphaned_images_job
from motomarket.storage.local_storage import storage


def _age(path, seconds):
    old = time.time() - seconds
    os.utime(path, (old, old))


def test_cleanup_removes_only_unreferenced_images(client, register, create_listing):
    headers, _ = register()
    listing = create_listing(headers)
    uploaded = client.post(
        f"/api/motos/{listing['id']}/imagenes",
        files=[("imagenes", ("a.jpg", b"kept", "image/jpeg"))],
        headers=headers,
    ).json()["images"][0]
    orphan_path, _ = storage.save_image(b"orphan", listing["id"], ".jpg")
    _age(orphan_path, 7 * 3600)
    _age(storage.path_for(uploaded["url"]), 7 * 3600)

    deleted = cleanup_orphaned_images_job()

    assert deleted == 1
    assert storage.path_for(uploaded["url"]).exists()
    assert not storage.path_for(storage.url_for(orphan_path)).exists()


def test_cleanup_keeps_recent_unreferenced_files(client, register, create_listing):
    headers, _ = register()
    listing = create_listing(headers)
    pending_path, _ = storage.save_image(b"still uploading", listing["id"], ".jpg")

    assert cleanup_orphaned_images_job() == 0
    assert os.path.exists(pending_path)

    assert cleanup_orphaned_images_job(min_age_seconds=0) == 1
    assert not os.path.exists(pending_path)


def test_cleanup_with_nothing_to_do(db):
    assert cleanup_orphaned_images_job() == 0


def test_scheduler_start_and_stop(monkeypatch):
    monkeypatch.setattr(scheduler, "scheduler", scheduler.BackgroundScheduler())

    scheduler.start_scheduler()
    try:
        job = scheduler.scheduler.get_job("cleanup_orphaned_images")
        assert job is not None
        assert scheduler.scheduler.running
    finally:
        scheduler.stop_scheduler()

    assert not scheduler.scheduler.running
