"""
YouTube search for the song picker.

Runs yt-dlp flat searches in a thread pool, caches results per query and
guards the upstream with a global rate limiter plus retry with backoff.
Nothing in here touches room state.
"""
import asyncio
import logging
import random
import time
from typing import Any, Callable, Dict, List, Optional, Tuple
from limits import parse
from limits.storage import MemoryStorage
from limits.strategies import FixedWindowRateLimiter
from yt_dlp import YoutubeDL
from yt_dlp.utils import DownloadError
from songqueue import config
from songqueue.errors import InvalidInput, NotFound, RateLimited, UpstreamUnavailable
from songqueue.models.room import format_duration

logger = logging.getLogger(__name__)


class SearchCache:
    def __init__(self, ttl: float, max_size: int, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self.max_size = max_size
        self.clock = clock
        self._entries: Dict[str, Tuple[float, List[dict]]] = {}

    @staticmethod
    def key(query: str) -> str:
        return f"search:{query.lower().strip()}"

    def get(self, query: str) -> Optional[List[dict]]:
        key = self.key(query)
        cached = self._entries.get(key)
        if not cached:
            return None
        stored_at, results = cached
        if self.clock() - stored_at < self.ttl:
            return results
        del self._entries[key]
        return None

    def set(self, query: str, results: List[dict]):
        key = self.key(query)
        self._entries.pop(key, None)
        # Evict oldest entries first
        while self._entries and len(self._entries) >= self.max_size:
            del self._entries[next(iter(self._entries))]
        self._entries[key] = (self.clock(), results)

    def clear(self):
        self._entries.clear()

    def __len__(self):
        return len(self._entries)


class RateLimiter:
    """
    Fixed-window limit on upstream requests, counted by the `limits` library.
    Exceeding the window budget blocks every request until the cooldown has passed.
    """
    KEY = "youtube-search"

    def __init__(self, max_requests: int, window: float, cooldown: float, clock: Callable[[], float] = time.monotonic):
        self.rate = parse(f"{max_requests}/{max(1, int(window))} seconds")
        self.storage = MemoryStorage()
        self.strategy = FixedWindowRateLimiter(self.storage)
        self.cooldown = cooldown
        self.clock = clock
        self.limited_until = None

    def reset(self):
        self.storage.reset()
        self.limited_until = None

    def remaining(self) -> int:
        return self.strategy.get_window_stats(self.rate, self.KEY).remaining

    def acquire(self):
        now = self.clock()
        if self.limited_until is not None:
            if now < self.limited_until:
                raise RateLimited(retry_after=self.limited_until - now)
            self.reset()

        if not self.strategy.hit(self.rate, self.KEY):
            self.limited_until = now + self.cooldown
            logger.warning(f"Search rate limit hit, pausing upstream requests for {self.cooldown}s")
            raise RateLimited(retry_after=self.cooldown)


cache = SearchCache(config.SEARCH_CACHE_TTL, config.SEARCH_CACHE_SIZE)
limiter = RateLimiter(config.SEARCH_RATE_LIMIT, config.SEARCH_RATE_WINDOW, config.SEARCH_RATE_COOLDOWN)


def _thumbnail(entry: Dict[str, Any]) -> Optional[str]:
    thumbnails = entry.get("thumbnails") or []
    if thumbnails:
        return thumbnails[0].get("url")
    return entry.get("thumbnail")


def _to_result(entry: Dict[str, Any]) -> dict:
    views = entry.get("view_count")
    return {
        "video_id": entry.get("id"),
        "title": entry.get("title") or "Unknown Track",
        "thumbnail": _thumbnail(entry),
        "channel": entry.get("channel") or entry.get("uploader") or "Unknown",
        "duration": format_duration(entry.get("duration")) or "Unknown",
        "views": views if views is not None else "Unknown",
    }


def _search_youtube(query: str, limit: int) -> List[dict]:
    ydl_opts = {
        'quiet': True,
        'no_warnings': True,
        'skip_download': True,
        'extract_flat': 'in_playlist',
        'source_address': '0.0.0.0', # bind to ipv4
    }
    if config.PROXY_URL:
        ydl_opts['proxy'] = config.PROXY_URL

    with YoutubeDL(ydl_opts) as ydl:
        try:
            info = ydl.extract_info(f"ytsearch{limit}:{query}", download=False)
        except DownloadError as e:
            logger.error(f"yt-dlp search error: {e}")
            raise UpstreamUnavailable("Failed to search YouTube. Please try again.")

    entries = [e for e in (info or {}).get("entries") or [] if e and e.get("id")]
    if not entries:
        raise NotFound("No search results found")
    return [_to_result(e) for e in entries[:limit]]


async def _with_retries(func: Callable, *args, retries: int = None, base_delay: float = None):
    retries = max(1, retries if retries is not None else config.SEARCH_RETRIES)
    base_delay = base_delay if base_delay is not None else config.SEARCH_RETRY_DELAY
    loop = asyncio.get_running_loop()
    for attempt in range(retries):
        try:
            return await loop.run_in_executor(None, func, *args)
        except (NotFound, InvalidInput):
            raise
        except UpstreamUnavailable:
            if attempt == retries - 1:
                raise
            delay = base_delay * (2 ** attempt) + random.random() * base_delay
            logger.warning(f"Search attempt {attempt + 1} failed, retrying in {delay:.1f}s")
            await asyncio.sleep(delay)


async def search(query: str) -> List[dict]:
    """
    Returns up to SEARCH_MAX_RESULTS results for query.
    Raises InvalidInput, NotFound, RateLimited or UpstreamUnavailable.
    """
    query = (query or "").strip()
    if not query:
        raise InvalidInput("Search query is required")

    cached = cache.get(query)
    if cached is not None:
        logger.info(f"Serving cached result for query: \"{query}\"")
        return cached

    limiter.acquire()
    logger.debug(f"Upstream search budget left in window: {limiter.remaining()}")
    results = await _with_retries(_search_youtube, query, config.SEARCH_MAX_RESULTS)
    cache.set(query, results)
    logger.info(f"Search completed for query: \"{query}\" - {len(results)} results")
    return results
