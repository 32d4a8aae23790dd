import logging

import redis
from typing import Any, Iterator, Optional

from admin_metrics.core.config import settings

logger = logging.getLogger(__name__)


class DummyRedis:
    """No-op redis client used when Redis is unavailable."""

    def get(self, *args: Any, **kwargs: Any) -> Optional[str]:
        return None

    def setex(self, *args: Any, **kwargs: Any) -> None:
        return None

    def delete(self, *args: Any, **kwargs: Any) -> int:
        return 0

    def scan_iter(self, *args: Any, **kwargs: Any) -> Iterator[str]:
        return iter(())

    def ping(self, *args: Any, **kwargs: Any) -> None:
        return None


_redis_client: Optional[redis.Redis] = None


def get_redis_client() -> Optional[redis.Redis]:
    """
    Lazily initialize and return a shared Redis client. Falls back to a no-op
    dummy instance when Redis is unavailable so callers can continue gracefully.
    """

    global _redis_client

    if _redis_client is not None:
        return _redis_client

    redis_url = settings.redis_connection_url
    if not redis_url:
        return None

    try:
        if "rediss://" in redis_url:
            client = redis.from_url(
                redis_url, decode_responses=True, ssl_cert_reqs=None
            )
        else:
            client = redis.from_url(redis_url, decode_responses=True)
        client.ping()
        _redis_client = client  # type: ignore[assignment]
    except Exception as exc:
        logger.warning(
            f"Redis connection failed ({exc}). Falling back to no-op client."
        )
        _redis_client = DummyRedis()  # type: ignore[assignment]

    return _redis_client


def set_redis_client(client: Any) -> None:
    """Replace the shared client (workers and tests inject their own)."""
    global _redis_client
    _redis_client = client
