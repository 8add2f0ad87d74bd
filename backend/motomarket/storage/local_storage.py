import uuid
from pathlib import Path
from typing import Iterator
from motomarket.core.config import settings

# Public URL prefix the upload directory is mounted under
UPLOAD_URL_PREFIX = "/uploads"


class LocalStorage:
    def __init__(self, upload_dir: str | None = None):
        self.upload_dir = Path(upload_dir or settings.UPLOAD_DIR)
        self.upload_dir.mkdir(parents=True, exist_ok=True)

    def save_image(self, content: bytes, listing_id: int, extension: str) -> tuple[str, str]:
        """Save image bytes for a listing and return (file_path, public_url)"""
        unique_filename = f"{uuid.uuid4()}{extension}"
        listing_dir = self.upload_dir / "listings" / str(listing_id)
        listing_dir.mkdir(parents=True, exist_ok=True)

        file_path = listing_dir / unique_filename
        with open(file_path, "wb") as f:
            f.write(content)

        return str(file_path), self.url_for(file_path)

    def url_for(self, file_path: Path) -> str:
        relative = Path(file_path).relative_to(self.upload_dir)
        return f"{UPLOAD_URL_PREFIX}/{relative.as_posix()}"

    def path_for(self, url: str) -> Path | None:
        """Map a public /uploads URL back to its file; None for external URLs"""
        if not url.startswith(UPLOAD_URL_PREFIX + "/"):
            return None
        return self.upload_dir / url[len(UPLOAD_URL_PREFIX) + 1:]

    def delete_url(self, url: str) -> bool:
        """Delete the file behind a public URL"""
        file_path = self.path_for(url)
        if file_path is not None and file_path.exists():
            file_path.unlink()
            return True
        return False

    def iter_images(self) -> Iterator[Path]:
        listings_dir = self.upload_dir / "listings"
        if not listings_dir.exists():
            return iter(())
        return (path for path in listings_dir.rglob("*") if path.is_file())


storage = LocalStorage()
