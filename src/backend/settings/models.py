from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from ..net.http_client import ProxyConfig
from ..net.retry import RetryConfig
from ..net.throttle import ThrottleConfig


DEFAULT_MAX_CONCURRENT = 3
DEFAULT_DOWNLOAD_ROOT = "downloads"
DEFAULT_QUEUE_SIZE = 1000
DEFAULT_DOWNLOAD_WORKERS = 4


def _int_setting(data: dict[str, Any], key: str, default: int, *, minimum: int = 1) -> int:
    try:
        value = int(data.get(key, default) or default)
    except (TypeError, ValueError):
        value = default
    return max(minimum, value)


@dataclass
class GlobalSettings:
    download_root: str = DEFAULT_DOWNLOAD_ROOT
    max_concurrent: int = DEFAULT_MAX_CONCURRENT
    queue_size: int = DEFAULT_QUEUE_SIZE
    download_workers: int = DEFAULT_DOWNLOAD_WORKERS
    ignore_photos: bool = False
    ignore_videos: bool = False
    throttle: Optional[ThrottleConfig] = None
    retry: Optional[RetryConfig] = None
    proxy: Optional[ProxyConfig] = None

    def get_throttle(self) -> ThrottleConfig:
        """Get throttle config, using defaults if not set."""
        return self.throttle or ThrottleConfig()

    def get_retry(self) -> RetryConfig:
        """Get retry config, using defaults if not set."""
        return self.retry or RetryConfig()

    def get_proxy(self) -> ProxyConfig:
        """Get proxy config, using defaults if not set."""
        return self.proxy or ProxyConfig()

    def to_persist_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "version": 1,
            "download_root": self.download_root,
            "max_concurrent": self.max_concurrent,
            "queue_size": self.queue_size,
            "download_workers": self.download_workers,
            "ignore_photos": self.ignore_photos,
            "ignore_videos": self.ignore_videos,
        }
        if self.throttle is not None:
            data["throttle"] = self.throttle.to_persist_dict()
        if self.retry is not None:
            data["retry"] = self.retry.to_persist_dict()
        if self.proxy is not None:
            data["proxy"] = self.proxy.to_persist_dict()
        return data

    @classmethod
    def from_persist_dict(cls, data: dict[str, Any]) -> "GlobalSettings":
        download_root = str(data.get("download_root", DEFAULT_DOWNLOAD_ROOT) or DEFAULT_DOWNLOAD_ROOT)

        raw_throttle = data.get("throttle")
        throttle = ThrottleConfig.from_persist_dict(raw_throttle) if isinstance(raw_throttle, dict) else None

        raw_retry = data.get("retry")
        retry = RetryConfig.from_persist_dict(raw_retry) if isinstance(raw_retry, dict) else None

        raw_proxy = data.get("proxy")
        proxy = ProxyConfig.from_persist_dict(raw_proxy) if isinstance(raw_proxy, dict) else None

        return cls(
            download_root=download_root,
            max_concurrent=_int_setting(data, "max_concurrent", DEFAULT_MAX_CONCURRENT),
            queue_size=_int_setting(data, "queue_size", DEFAULT_QUEUE_SIZE),
            download_workers=_int_setting(data, "download_workers", DEFAULT_DOWNLOAD_WORKERS),
            ignore_photos=bool(data.get("ignore_photos", False)),
            ignore_videos=bool(data.get("ignore_videos", False)),
            throttle=throttle,
            retry=retry,
            proxy=proxy,
        )
