"""
Per-source storage layout.

Directory structure:
    <download_root>/<source>/<basename-of-url>
"""

from __future__ import annotations

from pathlib import Path

from .naming import filename_from_url


class SourceStorageManager:
    """Maps (source, URL) pairs to destination paths under the download root."""

    def __init__(self, download_root: Path):
        self._download_root = Path(download_root).resolve()

    @property
    def download_root(self) -> Path:
        return self._download_root

    def get_source_dir(self, source: str) -> Path:
        return self._download_root / source

    def ensure_source_dir(self, source: str) -> Path:
        """
        Create the source directory if needed.

        Raises:
            OSError: If the directory cannot be created.
        """
        path = self.get_source_dir(source)
        path.mkdir(parents=True, exist_ok=True)
        return path

    def media_path(self, source: str, url: str) -> Path:
        return self.get_source_dir(source) / filename_from_url(url)

    def exists(self, source: str, url: str) -> bool:
        """Synchronous existence check used for dedup."""
        return self.media_path(source, url).exists()
