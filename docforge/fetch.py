"""HTTP retrieval with a bounded timeout and retry budget."""

from __future__ import annotations

import logging
import time
from typing import Callable, Dict, Optional, Tuple

import requests

from .config import DEFAULT_FETCH_RETRIES, DEFAULT_FETCH_TIMEOUT
from .errors import FetchError

logger = logging.getLogger("docforge")

USER_AGENT = "docforge/0.1 (+https://pandoc.org)"


class PageFetcher:
    """Fetch pages and sitemaps, caching bodies for the lifetime of a run.

    A request is attempted ``retries + 1`` times with exponential backoff
    between attempts; the last failure becomes a ``FetchError``.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_FETCH_TIMEOUT,
        retries: int = DEFAULT_FETCH_RETRIES,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.timeout = timeout
        self.retries = max(0, retries)
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": USER_AGENT})
        self._sleep = sleep
        self._cache: Dict[str, Tuple[bytes, Optional[str]]] = {}

    def _get(self, url: str) -> Tuple[bytes, Optional[str]]:
        if url in self._cache:
            return self._cache[url]
        logger.info("Fetching %s", url)
        attempts = self.retries + 1
        for attempt in range(attempts):
            try:
                resp = self.session.get(url, timeout=self.timeout)
                resp.raise_for_status()
                break
            except requests.RequestException as exc:
                if attempt == attempts - 1:
                    raise FetchError(f"Failed to fetch {url}: {exc}") from exc
                logger.debug("Attempt %d for %s failed: %s", attempt + 1, url, exc)
                self._sleep(2**attempt)
        self._cache[url] = (resp.content, resp.encoding)
        return self._cache[url]

    def get_bytes(self, url: str) -> bytes:
        return self._get(url)[0]

    def get_text(self, url: str) -> str:
        data, encoding = self._get(url)
        try:
            return data.decode(encoding or "utf-8", errors="replace")
        except LookupError:
            return data.decode("utf-8", errors="replace")
