"""
AI Response Cache - Redis cache for successful AI judge results

Every AI judge call costs quota (2 requests/minute) and up to 30 seconds of
rate-limiter wait, so identical inputs are served from Redis:
- Skill Map Cache (24hr TTL): milestone name + description -> SkillMap
- CV Analysis Cache (24hr TTL): CV text -> CVAnalysis
- Fit Analysis Cache (1hr TTL): skills + experience + skill map -> FitAnalysis

Cache Key Patterns:
    - skillmap:{content_hash}
    - cv:{content_hash}
    - fit:{content_hash}

Only AI results are cached; deterministic fallback results are cheap to
recompute and must not mask a recovered AI judge.

Usage:
    cache = get_ai_cache()
    key = hash_content(name, description)
    cached = await cache.get(CacheLayer.SKILL_MAP, key)
    if cached is None:
        skill_map = await judge.generate_skill_map(name, description)
        await cache.set(CacheLayer.SKILL_MAP, key, skill_map.model_dump())
"""

import json
import hashlib
import logging
from enum import Enum
from typing import Any, Dict, Optional

import redis.asyncio as redis

from workforce.config import get_settings

logger = logging.getLogger(__name__)


class CacheLayer(Enum):
    """Cache layers with key prefix and TTL in seconds."""

    SKILL_MAP = ("skillmap", 86400)    # 24 hours
    CV_ANALYSIS = ("cv", 86400)        # 24 hours
    FIT_ANALYSIS = ("fit", 3600)       # 1 hour

    def __init__(self, prefix: str, ttl: int):
        self.prefix = prefix
        self._ttl = ttl

    @property
    def ttl(self) -> int:
        return self._ttl


def hash_content(*args: Any) -> str:
    """
    Generate a 16-character hex hash from content.

    Dict keys are sorted and list order is preserved, so callers that want
    order-insensitive keys (skill lists) should sort before hashing.
    """
    content = json.dumps(args, sort_keys=True, default=str)
    return hashlib.sha256(content.encode()).hexdigest()[:16]


class AIResponseCache:
    """
    Redis cache for AI judge responses.

    Provides graceful degradation when Redis is unavailable, returning None
    (a miss) instead of raising.

    Attributes:
        redis: Async Redis client (created lazily)
        stats: Hits/misses per layer
    """

    def __init__(self, redis_url: str):
        self.redis_url = redis_url
        self.redis: Optional[redis.Redis] = None
        self.stats: Dict[str, Dict[str, int]] = {
            "hits": {layer.prefix: 0 for layer in CacheLayer},
            "misses": {layer.prefix: 0 for layer in CacheLayer},
        }

    async def _ensure_connected(self) -> Optional[redis.Redis]:
        if self.redis is None:
            try:
                self.redis = redis.from_url(
                    self.redis_url,
                    encoding="utf-8",
                    decode_responses=True
                )
            except Exception as e:
                logger.warning(f"Failed to connect to Redis: {e}")
                return None
        return self.redis

    @staticmethod
    def _key(layer: CacheLayer, content_hash: str) -> str:
        return f"{layer.prefix}:{content_hash}"

    async def get(self, layer: CacheLayer, content_hash: str) -> Optional[Dict[str, Any]]:
        """
        Get a cached AI result.

        Returns:
            Decoded JSON dict or None on miss/error
        """
        try:
            client = await self._ensure_connected()
            if not client:
                return None

            cached = await client.get(self._key(layer, content_hash))

            if cached:
                self.stats["hits"][layer.prefix] += 1
                return json.loads(cached)

            self.stats["misses"][layer.prefix] += 1
            return None

        except Exception as e:
            logger.warning(f"Redis get error ({layer.prefix} cache): {e}")
            self.stats["misses"][layer.prefix] += 1
            return None

    async def set(self, layer: CacheLayer, content_hash: str, value: Dict[str, Any]) -> bool:
        """
        Cache an AI result with the layer's TTL.

        Returns:
            True if cached successfully, False otherwise
        """
        try:
            client = await self._ensure_connected()
            if not client:
                return False

            await client.setex(self._key(layer, content_hash), layer.ttl, json.dumps(value))
            return True

        except Exception as e:
            logger.warning(f"Redis set error ({layer.prefix} cache): {e}")
            return False

    async def invalidate(self, layer: CacheLayer, content_hash: str) -> bool:
        try:
            client = await self._ensure_connected()
            if not client:
                return False

            result = await client.delete(self._key(layer, content_hash))
            return result > 0

        except Exception as e:
            logger.warning(f"Redis delete error: {e}")
            return False

    # ==================== Health & Stats ====================

    async def health_check(self) -> bool:
        try:
            client = await self._ensure_connected()
            if not client:
                return False

            await client.ping()
            return True

        except Exception as e:
            logger.warning(f"Redis health check failed: {e}")
            return False

    def get_stats(self) -> Dict[str, Dict[str, Any]]:
        """
        Get cache statistics including hit rates.

        Returns:
            Dict with stats per cache layer
        """
        stats = {}

        for layer in CacheLayer:
            hits = self.stats["hits"][layer.prefix]
            misses = self.stats["misses"][layer.prefix]
            total = hits + misses

            stats[layer.prefix] = {
                "hits": hits,
                "misses": misses,
                "total": total,
                "hit_rate": hits / total if total > 0 else 0.0,
            }

        return stats

    async def close(self) -> None:
        """Close Redis connection."""
        if self.redis:
            await self.redis.close()
            self.redis = None


# ==================== Factory Function ====================

_cache_instance: Optional[AIResponseCache] = None


def get_ai_cache(redis_url: Optional[str] = None) -> Optional[AIResponseCache]:
    """
    Get or create the cache singleton.

    Returns:
        AIResponseCache, or None when caching is disabled in settings
    """
    global _cache_instance

    settings = get_settings()
    if not settings.ai_cache_enabled:
        return None

    if _cache_instance is None:
        url = redis_url or settings.redis_url
        _cache_instance = AIResponseCache(redis_url=url)

    return _cache_instance
