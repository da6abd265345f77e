"""
Response cache for generation requests.

Identical requests (same system context, messages, model and sampling
parameters) are served from memory until their TTL expires.
"""

import hashlib
import json
import time
from typing import Any, Dict, Optional, Tuple

from questline.utils.logger import get_logger

logger = get_logger(__name__)


def make_cache_key(payload: Dict[str, Any]) -> str:
    """SHA-256 of the normalized JSON form of a request payload."""
    key_str = json.dumps(payload, sort_keys=True, default=str)
    return hashlib.sha256(key_str.encode()).hexdigest()


class ResponseCache:
    """
    Simple in-memory response cache with TTL support.

    Oldest-expiring entries are evicted in bulk once ``max_size`` is reached.
    """

    def __init__(self, max_size: int = 1000, default_ttl: int = 3600):
        """
        Initialize the response cache.

        Args:
            max_size: Maximum number of items to cache
            default_ttl: Default time-to-live in seconds
        """
        self.cache: Dict[str, Tuple[Any, float]] = {}
        self.max_size = max_size
        self.default_ttl = default_ttl
        self.hits = 0
        self.misses = 0

    def get(self, key: str) -> Optional[Any]:
        """
        Retrieve item from cache if it exists and hasn't expired.

        Returns:
            Cached item or None if not found/expired
        """
        now = time.time()

        if key in self.cache:
            value, expiry = self.cache[key]
            if now < expiry:
                self.hits += 1
                logger.debug(f"Cache hit for key: {key[:8]}...")
                return value
            del self.cache[key]
            logger.debug(f"Cache expired for key: {key[:8]}...")

        self.misses += 1
        return None

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        """
        Store item in cache with optional TTL.

        Args:
            key: Cache key, usually from make_cache_key
            value: Item to cache
            ttl: Time-to-live in seconds (uses default if None)
        """
        expiry = time.time() + (ttl or self.default_ttl)

        if len(self.cache) >= self.max_size:
            evict = max(1, len(self.cache) // 4)
            oldest_keys = sorted(self.cache.keys(), key=lambda k: self.cache[k][1])[
                :evict
            ]
            for old_key in oldest_keys:
                del self.cache[old_key]

        self.cache[key] = (value, expiry)
        logger.debug(
            f"Cached item with key: {key[:8]}... (TTL: {ttl or self.default_ttl}s)"
        )

    def clear(self) -> None:
        """Clear all cached items."""
        self.cache.clear()
        self.hits = 0
        self.misses = 0
        logger.info("Response cache cleared")

    def stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        total_requests = self.hits + self.misses
        hit_rate = (self.hits / total_requests * 100) if total_requests > 0 else 0

        return {
            "size": len(self.cache),
            "max_size": self.max_size,
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": hit_rate,
            "total_requests": total_requests,
        }
