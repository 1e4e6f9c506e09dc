"""
Media file naming.

Files keep the basename of their source URL, e.g.
``https://64.media.tumblr.com/.../tumblr_abc123_1280.jpg`` -> ``tumblr_abc123_1280.jpg``.
The basename is the dedup key: a file present under that name is never
fetched again.

The name is taken as it appears in the URL path. Percent-escapes are not
decoded, so an encoded separator can never reach the file system.
"""

from __future__ import annotations

import os
import posixpath
from urllib.parse import urlparse

_SEPARATORS = {"/", "\\", os.sep} | ({os.altsep} if os.altsep else set())


def filename_from_url(url: str) -> str:
    """
    Return the last path segment of `url` (query and fragment ignored).

    Raises:
        ValueError: if the URL has no usable basename.
    """
    path = urlparse(url).path
    name = posixpath.basename(path.rstrip("/"))
    if not name or name in (".", "..") or any(sep in name for sep in _SEPARATORS):
        raise ValueError(f"URL has no file name: {url!r}")
    return name
