"""
Redis key-value store for small persisted values such as the preferred provider.
"""
from typing import Optional, Any
import json
from redis import asyncio as aioredis
from redis.exceptions import RedisError

from sermon_ai.core.config import settings
from sermon_ai.core.logger import get_logger

logger = get_logger(__name__)


class RedisCache:
    """Redis cache manager with connection pooling."""

    def __init__(self, url: Optional[str] = None, enabled: Optional[bool] = None):
        self.redis: Optional[aioredis.Redis] = None
        self.url = url or settings.redis_url
        self.enabled = settings.redis_enabled if enabled is None else enabled

    async def connect(self) -> None:
        """Establish Redis connection."""
        if not self.enabled:
            logger.info("Redis cache is disabled")
            return

        try:
            self.redis = aioredis.from_url(
                self.url,
                encoding="utf-8",
                decode_responses=True,
                max_connections=10
            )
            await self.redis.ping()
            logger.info("Redis cache connected successfully", url=self.url)
        except RedisError as e:
            logger.error("Failed to connect to Redis", error=str(e))
            self.enabled = False
            self.redis = None

    async def disconnect(self) -> None:
        """Close Redis connection."""
        if self.redis:
            await self.redis.aclose()
            self.redis = None
            logger.info("Redis cache disconnected")

    async def get(self, key: str) -> Optional[Any]:
        """
        Get value from cache.

        Args:
            key: Cache key

        Returns:
            Cached value or None if not found
        """
        if not self.enabled or not self.redis:
            return None

        try:
            value = await self.redis.get(key)
            if value:
                return json.loads(value)
            return None
        except RedisError as e:
            logger.warning("Redis get failed", key=key, error=str(e))
            return None

    async def set(self, key: str, value: Any) -> bool:
        """
        Store a value without expiry.

        Args:
            key: Cache key
            value: JSON-serializable value

        Returns:
            True if successful, False otherwise
        """
        if not self.enabled or not self.redis:
            return False

        try:
            payload = json.dumps(value)
            await self.redis.set(key, payload)
            return True
        except RedisError as e:
            logger.warning("Redis set failed", key=key, error=str(e))
            return False


def provider_selection_key() -> str:
    """Key holding the user's preferred AI provider."""
    return "preferred_ai_provider"
