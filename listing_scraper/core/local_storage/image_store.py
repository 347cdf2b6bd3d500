"""
Local file-based image storage.
"""

from pathlib import Path

from listing_scraper.core.local_storage.base import ImageSink
from listing_scraper.utils.images.processing import storage_key


class LocalImageStore(ImageSink):
    """
    Stores images under ``base_dir/{code}/{position + 1}.{ext}``.

    Writes overwrite, so re-running acquisition for missing positions is safe.
    """

    def __init__(self, base_dir: str, public_base_url: str | None = None):
        """
        Args:
            base_dir: Directory images are written to
            public_base_url: Prefix for returned URLs (defaults to a file:// URL)
        """
        self.base_dir = Path(base_dir)
        self.public_base_url = (public_base_url or self.base_dir.resolve().as_uri()).rstrip("/")

    def put(self, code: str, position: int, data: bytes, content_type: str) -> str:
        key = storage_key(code, position, content_type)
        path = self.base_dir / key
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        return f"{self.public_base_url}/{key}"

    def list_keys(self, code: str) -> list[str]:
        folder = self.base_dir / code
        if not folder.exists():
            return []
        return sorted(f"{code}/{p.name}" for p in folder.iterdir() if p.is_file())
