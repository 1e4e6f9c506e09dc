"""
Network utilities: throttle, retry with exponential backoff, and the HTTP client.
"""

from .throttle import Throttle, ThrottleConfig
from .retry import (
    RetryConfig,
    RetryableError,
    with_retry,
    with_retry_async,
)
from .http_client import HttpClient, HttpResponse, ProxyConfig

__all__ = [
    "Throttle",
    "ThrottleConfig",
    "RetryConfig",
    "RetryableError",
    "with_retry",
    "with_retry_async",
    "HttpClient",
    "HttpResponse",
    "ProxyConfig",
]
