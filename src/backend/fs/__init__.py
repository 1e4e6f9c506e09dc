"""
File system utilities for media storage.

- naming.py: URL basename -> file name
- storage.py: <download_root>/<source>/ layout and the dedup existence check
"""

from .naming import filename_from_url
from .storage import SourceStorageManager

__all__ = [
    "filename_from_url",
    "SourceStorageManager",
]
