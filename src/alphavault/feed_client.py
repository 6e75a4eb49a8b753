"""HTTP client for the SEC M&A feed worker.

The worker fronts EDGAR with pre-filtered M&A feeds:
  - /api/sec/ticker-to-cik          — ticker → CIK + company name
  - /api/sec/8k/bulk                — recent 8-Ks, optionally filtered by item
  - /api/sec/s4/feed                — S-4 filings, optionally for one CIK
  - /api/sec/s4/bulk                — S-4 filings over a day window
  - /api/sec/s4/content             — raw S-4 document text
  - /api/sec/ma/material-events     — 8-K events grouped by category

Requests are rate limited (``request_rate_limit`` seconds apart), retried on
429 / 5xx / connection errors, and cached in memory for ``cache_ttl`` seconds.
Every failure surfaces as ``UpstreamFetchFailure``.
"""

from __future__ import annotations

import logging
import re
import threading
import time
from typing import Any

import requests
from bs4 import BeautifulSoup, NavigableString, Tag

from alphavault.errors import UpstreamFetchFailure
from alphavault.models import CompanyRef, FilingFeed, MaterialEvents

log = logging.getLogger(__name__)

# ═══════════════════════════════════════════════════════════════════════════
#  Constants
# ═══════════════════════════════════════════════════════════════════════════

TICKER_TO_CIK = "/api/sec/ticker-to-cik"
EIGHT_K_BULK = "/api/sec/8k/bulk"
S4_FEED = "/api/sec/s4/feed"
S4_BULK = "/api/sec/s4/bulk"
S4_CONTENT = "/api/sec/s4/content"
MATERIAL_EVENTS = "/api/sec/ma/material-events"

RETRY_STATUSES = (429, 500, 502, 503, 504)

_BLOCK_TAGS = frozenset([
    "p", "div", "br", "h1", "h2", "h3", "h4", "h5", "h6",
    "li", "ol", "ul", "blockquote", "pre", "hr",
    "section", "article", "header", "footer",
    "tr", "table", "thead", "tbody", "tfoot",
])


# ═══════════════════════════════════════════════════════════════════════════
#  Cache helper
# ═══════════════════════════════════════════════════════════════════════════

class _CacheEntry:
    """Simple timestamped cache entry."""
    __slots__ = ("data", "timestamp")

    def __init__(self, data: Any):
        self.data = data
        self.timestamp = time.time()

    def expired(self, ttl: float) -> bool:
        return (time.time() - self.timestamp) > ttl


def strip_html(html: str) -> str:
    """Readable text from filing HTML.

    Block elements become line breaks and each table row becomes one line,
    so "Item 2.01" headings stay on their own line.
    """
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style"]):
        tag.decompose()

    for table in soup.find_all("table"):
        rows = []
        for tr in table.find_all("tr"):
            cells = [td.get_text(strip=True) for td in tr.find_all(["td", "th"])]
            cells = [c for c in cells if c]
            if cells:
                rows.append("\t".join(cells))
        if rows:
            table.replace_with("\n".join(rows) + "\n")
        else:
            table.decompose()

    parts: list[str] = []

    def _walk(node: Tag | NavigableString) -> None:
        if isinstance(node, NavigableString):
            if str(node).strip():
                parts.append(str(node))
            return
        is_block = (node.name or "").lower() in _BLOCK_TAGS
        if is_block:
            parts.append("\n")
        for child in node.children:
            _walk(child)
        if is_block:
            parts.append("\n")

    _walk(soup)
    text = "".join(parts)
    text = re.sub(r"[ \t]+", " ", text)
    text = re.sub(r" *\n *", "\n", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


# ═══════════════════════════════════════════════════════════════════════════
#  Feed client
# ═══════════════════════════════════════════════════════════════════════════

class FeedClient:
    """Thread-safe client for the M&A feed worker (implements ``FilingSource``)."""

    def __init__(
        self,
        base_url: str,
        user_agent: str,
        rate_limit: float = 0.2,
        timeout: int = 30,
        cache_ttl: float = 300,
        retries: int = 2,
    ):
        self.base_url = base_url.rstrip("/")
        self.headers = {
            "User-Agent": user_agent,
            "Accept": "application/json",
            "Accept-Encoding": "gzip, deflate",
        }
        self.rate_limit = rate_limit
        self.timeout = timeout
        self.cache_ttl = cache_ttl
        self.retries = retries
        self._last_request_time = 0.0
        self._rate_lock = threading.Lock()
        self._cache: dict[str, _CacheEntry] = {}
        self._cache_lock = threading.Lock()

    # ── Rate-limited HTTP request ─────────────────────────────────────

    def _request(self, url: str, params: dict[str, Any]) -> requests.Response:
        """GET with rate limiting and retry on 429 / 5xx / connection errors."""
        last_exc: Exception | None = None
        for attempt in range(1 + self.retries):
            with self._rate_lock:
                elapsed = time.time() - self._last_request_time
                if elapsed < self.rate_limit:
                    time.sleep(self.rate_limit - elapsed)
                self._last_request_time = time.time()

            try:
                resp = requests.get(url, params=params, headers=self.headers, timeout=self.timeout)
                if resp.status_code in RETRY_STATUSES and attempt < self.retries:
                    wait = min(2 ** attempt, 8)
                    log.warning("Feed returned %d, retrying in %ds…", resp.status_code, wait)
                    time.sleep(wait)
                    continue
                resp.raise_for_status()
                return resp
            except (requests.exceptions.ConnectionError, requests.exceptions.Timeout) as exc:
                last_exc = exc
                if attempt < self.retries:
                    wait = min(2 ** attempt, 8)
                    log.warning("Feed request failed, retrying in %ds: %s", wait, exc)
                    time.sleep(wait)
                    continue
                raise

        if last_exc:
            raise last_exc
        raise requests.exceptions.ConnectionError(f"Failed after {self.retries + 1} attempts: {url}")

    def _get_json(self, endpoint: str, params: dict[str, Any] | None = None) -> dict:
        """Cached JSON GET.  Network, HTTP and decoding errors → ``UpstreamFetchFailure``."""
        params = {k: v for k, v in (params or {}).items() if v not in (None, "")}
        key = f"{endpoint}?{sorted(params.items())}"
        with self._cache_lock:
            cached = self._cache.get(key)
            if cached and not cached.expired(self.cache_ttl):
                log.debug("Cache hit: %s", key)
                return cached.data

        url = f"{self.base_url}{endpoint}"
        log.info("Fetching %s %s", endpoint, params)
        try:
            data = self._request(url, params).json()
        except requests.exceptions.RequestException as exc:
            raise UpstreamFetchFailure(endpoint, str(exc)) from exc
        except ValueError as exc:
            raise UpstreamFetchFailure(endpoint, f"invalid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise UpstreamFetchFailure(endpoint, f"unexpected payload type {type(data).__name__}")
        if data.get("error"):
            raise UpstreamFetchFailure(endpoint, str(data["error"]))

        with self._cache_lock:
            self._evict_expired()
            self._cache[key] = _CacheEntry(data)
        return data

    def _evict_expired(self) -> None:
        """Drop expired entries.  Caller holds ``_cache_lock``."""
        stale = [k for k, entry in self._cache.items() if entry.expired(self.cache_ttl)]
        for k in stale:
            del self._cache[k]

    # ── Endpoints ─────────────────────────────────────────────────────

    def resolve_company(self, ticker: str) -> CompanyRef:
        """Ticker → CIK and company name."""
        clean = ticker.strip().upper()
        data = self._get_json(TICKER_TO_CIK, {"ticker": clean})
        if not data.get("cik"):
            raise UpstreamFetchFailure(TICKER_TO_CIK, f"no CIK for ticker '{clean}'")
        return CompanyRef.model_validate({"ticker": clean, **data})

    def _feed(self, endpoint: str, params: dict[str, Any]) -> FilingFeed:
        data = self._get_json(endpoint, params)
        feed = FilingFeed.model_validate({"filings": data.get("filings") or []})
        feed.count = int(data.get("count") or len(feed.filings))
        return feed

    def get_8k_bulk(self, days: int = 90, items: str = "", max_results: int = 500) -> FilingFeed:
        """Recent 8-Ks; ``items`` is a comma list such as "1.01,2.01"."""
        return self._feed(EIGHT_K_BULK, {"days": days, "max": max_results, "items": items})

    def get_s4_feed(self, cik: str = "", limit: int = 50) -> FilingFeed:
        return self._feed(S4_FEED, {"cik": cik, "limit": limit})

    def get_s4_bulk(self, days: int = 90, max_results: int = 200) -> FilingFeed:
        return self._feed(S4_BULK, {"days": days, "max": max_results})

    def get_s4_content(self, accession: str, cik: str) -> str:
        """Raw text of one S-4 (HTML stripped)."""
        if not accession or not cik:
            raise ValueError("Accession number and CIK are required")
        data = self._get_json(S4_CONTENT, {"accession": accession, "cik": cik})
        raw = data.get("rawContent") or data.get("content") or ""
        if not raw:
            raise UpstreamFetchFailure(S4_CONTENT, f"no content for {accession}")
        if raw.lstrip().startswith("<"):
            return strip_html(raw)
        return raw

    def get_material_events(self, cik: str = "", days: int = 30) -> MaterialEvents:
        data = self._get_json(MATERIAL_EVENTS, {"cik": cik, "days": days})
        return MaterialEvents.model_validate({
            "categorized": data.get("categorized") or {},
            "filings": data.get("filings") or [],
        })


# ═══════════════════════════════════════════════════════════════════════════
#  Module-level singleton, shared across the app
# ═══════════════════════════════════════════════════════════════════════════

_client: FeedClient | None = None


def get_feed_client() -> FeedClient:
    """Get or create the shared FeedClient from config."""
    global _client
    if _client is None:
        from alphavault.config import get_config
        config = get_config()
        _client = FeedClient(
            base_url=config.feed_base_url,
            user_agent=config.edgar_identity,
            rate_limit=config.request_rate_limit,
            timeout=config.request_timeout,
            cache_ttl=config.cache_ttl,
        )
    return _client
