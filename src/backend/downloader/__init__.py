"""
Media downloader: the consumer side of a crawl's output queue.
"""

from .downloader import DownloadResult, DownloadStatus, MediaDownloader

__all__ = [
    "DownloadResult",
    "DownloadStatus",
    "MediaDownloader",
]
