import redis
from typing import Optional, cast
from .config import settings
from .logging_config import get_logger

logger = get_logger(__name__)

USE_REDIS = settings.REDIS_ENABLED

# Redis connection pool; connections are opened lazily on first command
pool = redis.ConnectionPool(
    host=settings.REDIS_HOST,
    port=settings.REDIS_PORT,
    db=settings.REDIS_DB,
    password=settings.REDIS_PASSWORD or None,
    decode_responses=True,
    socket_connect_timeout=1,
    socket_timeout=1,
    max_connections=20
)

redis_client = redis.Redis(connection_pool=pool)


class RedisService:
    """
    Read-through cache in front of the link resolver.

    Every method degrades to a cache miss (or a no-op) when Redis is
    disabled or unreachable; the database stays the source of truth.
    """

    LINK_CACHE_PREFIX = "link:"

    @staticmethod
    def cache_link(code: str, link_id: int, url: str) -> bool:
        """Cache a short code to (link id, URL) mapping."""
        if not USE_REDIS:
            return False
        try:
            key = f"{RedisService.LINK_CACHE_PREFIX}{code}"
            redis_client.hset(key, mapping={"id": str(link_id), "url": url})
            redis_client.expire(key, settings.LINK_CACHE_TTL)
            return True
        except redis.RedisError as e:
            logger.debug(f"Redis cache_link failed for {code}: {e}")
            return False

    @staticmethod
    def get_cached_link(code: str) -> Optional[tuple[int, str]]:
        """Get cached (link id, URL) for a short code."""
        if not USE_REDIS:
            return None
        try:
            key = f"{RedisService.LINK_CACHE_PREFIX}{code}"
            data = cast(dict[str, str], redis_client.hgetall(key))
        except redis.RedisError as e:
            logger.debug(f"Redis get_cached_link failed for {code}: {e}")
            return None

        if not data or "id" not in data or "url" not in data:
            return None
        try:
            return int(data["id"]), data["url"]
        except ValueError:
            return None

    @staticmethod
    def delete_cached_link(code: str) -> bool:
        """Delete cached link."""
        if not USE_REDIS:
            return False
        try:
            redis_client.delete(f"{RedisService.LINK_CACHE_PREFIX}{code}")
            return True
        except redis.RedisError as e:
            logger.debug(f"Redis delete_cached_link failed for {code}: {e}")
            return False

    @staticmethod
    def health_check() -> bool:
        """Check Redis connection health."""
        if not USE_REDIS:
            return True
        try:
            return bool(redis_client.ping())
        except redis.RedisError:
            return False
