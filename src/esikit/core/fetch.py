"""Fragment retrieval with a shared in-memory TTL cache."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from threading import Lock
import time
from typing import Any, Protocol
from urllib.parse import urljoin

import requests

from .exceptions import FetchError
from .stats import ProcessingStats


# Headers describing the inbound connection rather than the fragment request.
_SKIPPED_FORWARD_HEADERS = frozenset({"host", "content-length", "connection"})


class HttpResponse(Protocol):
    status_code: int
    text: str


class HttpClient(Protocol):
    """Anything able to issue a GET with headers and a timeout."""

    def get(
        self, url: str, *, headers: Mapping[str, str], timeout: float
    ) -> HttpResponse: ...


@dataclass(frozen=True, slots=True)
class CacheEntry:
    content: str
    expires_at: float


class FragmentCache:
    """Resolved URL to fragment mapping with passive expiry."""

    def __init__(self, ttl: float, *, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = Lock()

    def get(self, url: str) -> str | None:
        """Return the cached content when present and not yet expired."""
        with self._lock:
            entry = self._entries.get(url)
            if entry is None or self._clock() >= entry.expires_at:
                return None
            return entry.content

    def put(self, url: str, content: str) -> None:
        with self._lock:
            self._entries[url] = CacheEntry(content, self._clock() + self.ttl)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


def resolve_url(url: str, *base_urls: str | None) -> str:
    """Resolve ``url`` against the first non-empty base URL.

    Absolute URLs pass through; relative URLs stay untouched when no base is
    available.
    """
    if not url:
        raise FetchError("empty URL", url=url)
    if url.startswith(("http://", "https://")):
        return url
    base = next((candidate for candidate in base_urls if candidate), None)
    if base is None:
        return url
    return urljoin(base, url)


class FragmentFetcher:
    """Fetch fragments over HTTP, consulting the cache first."""

    def __init__(
        self,
        *,
        session: HttpClient | None = None,
        timeout: float = 30.0,
        cache: FragmentCache | None = None,
        stats: ProcessingStats | None = None,
        base_url: str | None = None,
    ) -> None:
        self._session_lock = Lock()
        self._session: HttpClient | None = session
        self.timeout = timeout
        self.cache = cache
        self.stats = stats or ProcessingStats()
        self.base_url = base_url

    def resolve(self, url: str, base_url: str | None = None) -> str:
        return resolve_url(url, base_url, self.base_url)

    def fetch(
        self,
        url: str,
        headers: Mapping[str, str] | None = None,
        *,
        base_url: str | None = None,
    ) -> str:
        """Return the body of ``url`` or raise :class:`FetchError`."""
        resolved = self.resolve(url, base_url)

        if self.cache is not None:
            cached = self.cache.get(resolved)
            if cached is not None:
                self.stats.record_cache_hit()
                return cached

        self.stats.record_cache_miss()
        content = self._download(resolved, headers or {})
        if self.cache is not None:
            self.cache.put(resolved, content)
        return content

    def is_cached(self, url: str, base_url: str | None = None) -> bool:
        if self.cache is None:
            return False
        return self.cache.get(self.resolve(url, base_url)) is not None

    def _download(self, url: str, headers: Mapping[str, str]) -> str:
        forwarded = {
            key: value
            for key, value in headers.items()
            if key.lower() not in _SKIPPED_FORWARD_HEADERS
        }
        client = self._ensure_session()
        try:
            response = client.get(url, headers=forwarded, timeout=self.timeout)
        except Exception as exc:  # clients raise their own transport errors
            raise FetchError(f"failed to fetch {url}: {exc}", url=url) from exc
        if response.status_code >= 400:
            reason = getattr(response, "reason", None) or ""
            message = f"HTTP {response.status_code}"
            if reason:
                message = f"{message}: {reason}"
            raise FetchError(message, url=url, status=response.status_code)
        return response.text

    def _ensure_session(self) -> HttpClient:
        with self._session_lock:
            if self._session is None:
                self._session = requests.Session()
            return self._session

    def close(self) -> None:
        """Close the underlying session when it supports it."""
        session: Any = self._session
        if session is not None and hasattr(session, "close"):
            session.close()


__all__ = [
    "CacheEntry",
    "FragmentCache",
    "FragmentFetcher",
    "HttpClient",
    "HttpResponse",
    "resolve_url",
]
