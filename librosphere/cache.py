"""
Listing response cache and invalidation
"""

import logging
import time
from typing import Callable, Dict, List, Optional
from urllib.parse import quote, unquote, urlsplit

from starlette.background import BackgroundTasks

from .models import CachedResponse

logger = logging.getLogger(__name__)

DEFAULT_TTL = 604800


class ResponseCache:
    """In-process cache of rendered responses keyed by URL"""

    def __init__(self, default_ttl: int = DEFAULT_TTL, clock: Callable[[], float] = time.monotonic):
        self.default_ttl = default_ttl
        self.clock = clock
        self._entries: Dict[str, CachedResponse] = {}

    async def match(self, key: str) -> Optional[CachedResponse]:
        entry = self._entries.get(key)
        if entry is None:
            return None

        if entry.expires is not None and entry.expires <= self.clock():
            del self._entries[key]
            return None

        return entry

    async def put(self, key: str, response: CachedResponse, ttl: Optional[int] = None):
        ttl = self.default_ttl if ttl is None else ttl
        response.expires = self.clock() + ttl
        self._entries[key] = response

    async def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    async def clear(self):
        self._entries.clear()

    async def keys(self) -> List[str]:
        return list(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)


def listing_url(origin: str, path: str) -> str:
    """Cache key for the listing at a decoded path"""
    return f"{origin}{quote(path, safe='/')}"


def listing_prefix(url: str) -> str:
    """Object key prefix that the listing cached under url covers"""
    path = unquote(urlsplit(url).path)
    return path[1:] if path.startswith("/") else path


class CacheInvalidator:
    """
    Removes stale listings after the store changes

    A listing shows every key that starts with its prefix, so a change to
    "notes/a.txt" affects "/", "/notes", "/notes/" and also "/no". Every
    cached listing whose prefix the changed key starts with is dropped,
    whatever host it was requested through.

    `generation` counts invalidations. A listing read from the store is only
    cached if no invalidation ran since the read started.
    """

    def __init__(self, cache: ResponseCache):
        self.cache = cache
        self.generation = 0

    async def invalidate(self, url: str):
        """Delete a cached listing now; errors propagate"""
        self.generation += 1
        removed = await self.cache.delete(url)
        if removed:
            logger.debug(f"Invalidated cached listing: {url}")

    async def invalidate_key(self, key: str):
        """Delete every cached listing that shows key; errors propagate"""
        self.generation += 1
        for url in await self.cache.keys():
            if key.startswith(listing_prefix(url)) and await self.cache.delete(url):
                logger.debug(f"Invalidated cached listing: {url}")

    def schedule(self, tasks: BackgroundTasks, key: str):
        """Invalidate the listings showing key once the response has been sent"""
        tasks.add_task(self._invalidate_in_background, key)

    async def _invalidate_in_background(self, key: str):
        try:
            await self.invalidate_key(key)
        except Exception as e:
            logger.error(f"Cache invalidation error: {type(e).__name__}")

    async def store_listing(self, url: str, response: CachedResponse, ttl: int, generation: int):
        """Cache a listing unless the store changed after it was read"""
        if generation != self.generation:
            logger.debug(f"Skipped caching stale listing: {url}")
            return

        try:
            await self.cache.put(url, response, ttl)
        except Exception as e:
            logger.error(f"Cache store error: {type(e).__name__}")
