"""
Minimal blocking HTTP client on top of urllib, with proxy support.

Callers run it from worker threads (`asyncio.to_thread`). Statuses listed in
the retry policy surface as RetryableError; every other status comes back as
an HttpResponse so callers can inspect the body (the short-link API answers
404 with a literal "Not Found").
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional
from urllib.error import HTTPError
from urllib.parse import urlparse
from urllib.request import OpenerDirector, ProxyHandler, Request, build_opener

from .retry import DEFAULT_RETRYABLE_STATUS_CODES, RetryableError


DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)
DEFAULT_TIMEOUT_S = 30.0

# urllib's ProxyHandler speaks plain HTTP CONNECT only.
VALID_PROXY_SCHEMES = frozenset({"http", "https"})


@dataclass
class ProxyConfig:
    """
    Proxy configuration for page, short-link and media requests.

    Attributes:
        enabled: Whether proxy is enabled.
        url: Proxy URL (e.g., "http://host:port").
    """
    enabled: bool = False
    url: str = ""

    def get_url(self) -> Optional[str]:
        """Proxy URL if enabled and configured, else None."""
        url = self.url.strip()
        if self.enabled and url:
            return url
        return None

    def to_persist_dict(self) -> dict[str, Any]:
        return {"enabled": self.enabled, "url": self.url}

    @classmethod
    def from_persist_dict(cls, data: dict[str, Any]) -> "ProxyConfig":
        return cls(enabled=bool(data.get("enabled", False)), url=str(data.get("url", "") or ""))

    def validate(self) -> tuple[bool, str]:
        """
        Returns:
            (is_valid, error_message) tuple.
        """
        if not self.enabled:
            return True, ""

        url = self.url.strip()
        if not url:
            return False, "Proxy is enabled but URL is empty"

        parsed = urlparse(url)
        if not parsed.scheme:
            return False, "Proxy URL must include scheme (e.g., http://)"
        if parsed.scheme.lower() not in VALID_PROXY_SCHEMES:
            return False, (
                f"Unsupported proxy scheme: {parsed.scheme}. "
                f"Use: {', '.join(sorted(VALID_PROXY_SCHEMES))}"
            )
        if not parsed.netloc:
            return False, "Proxy URL must include host (and optionally port)"
        return True, ""


@dataclass(frozen=True)
class HttpResponse:
    status: int
    body: bytes

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")


class HttpClient:
    def __init__(
        self,
        *,
        proxy: Optional[ProxyConfig] = None,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        retryable_status_codes: frozenset[int] = DEFAULT_RETRYABLE_STATUS_CODES,
    ) -> None:
        self._user_agent = user_agent
        self._timeout_s = timeout_s
        self._retryable = frozenset(retryable_status_codes)
        self._opener = self._build_opener(proxy)

    @staticmethod
    def _build_opener(proxy: Optional[ProxyConfig]) -> OpenerDirector:
        url = proxy.get_url() if proxy is not None else None
        if url is None:
            return build_opener()
        is_valid, error = proxy.validate()
        if not is_valid:
            raise ValueError(error)
        return build_opener(ProxyHandler({"http": url, "https": url}))

    def get(self, url: str) -> HttpResponse:
        """
        GET `url`.

        Raises:
            RetryableError: for retryable HTTP statuses (429/5xx).
            URLError / OSError: for transport failures.
        """
        req = Request(url, headers={"User-Agent": self._user_agent, "Accept": "*/*"})
        try:
            with self._opener.open(req, timeout=self._timeout_s) as resp:
                return HttpResponse(status=int(resp.status), body=resp.read())
        except HTTPError as exc:
            status = int(exc.code)
            if status in self._retryable:
                raise RetryableError(f"GET {url}: HTTP {status}", status_code=status) from exc
            try:
                body = exc.read()
            finally:
                exc.close()
            return HttpResponse(status=status, body=body or b"")

    def get_bytes(self, url: str) -> bytes:
        """GET `url` and require a 2xx answer."""
        resp = self.get(url)
        if not resp.ok:
            raise RetryableError(f"GET {url}: HTTP {resp.status}", status_code=resp.status, should_retry=False)
        return resp.body
