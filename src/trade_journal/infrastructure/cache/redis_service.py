import json
import logging
import os
from typing import Any, Optional

import redis

logger = logging.getLogger(__name__)

KEY_PREFIX = "trade_journal:"


class RedisService:
    """
    Thin JSON cache over Redis. Every operation degrades to a no-op when
    REDIS_URL is unset or the server is unreachable.
    """

    def __init__(self, redis_url: Optional[str] = None):
        self.redis_url = redis_url or os.getenv("REDIS_URL")
        self.client = None
        if self.redis_url:
            try:
                self.client = redis.from_url(self.redis_url, decode_responses=True)
                # Test connection
                self.client.ping()
                logger.info("Connected to Redis for caching.")
            except Exception as e:
                logger.warning(f"Failed to connect to Redis: {e}. Caching disabled.")
                self.client = None
        else:
            logger.info("REDIS_URL not set. Caching disabled.")

    @property
    def enabled(self) -> bool:
        return self.client is not None

    def get(self, key: str) -> Optional[Any]:
        if not self.client:
            return None
        try:
            data = self.client.get(KEY_PREFIX + key)
            if data:
                return json.loads(data)
            return None
        except Exception as e:
            logger.warning(f"Redis get error: {e}")
            return None

    def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None):
        if not self.client:
            return
        try:
            if hasattr(value, "model_dump_json"):
                serialized = value.model_dump_json()
            else:
                serialized = json.dumps(value, default=str)

            if ttl_seconds:
                self.client.setex(KEY_PREFIX + key, ttl_seconds, serialized)
            else:
                self.client.set(KEY_PREFIX + key, serialized)
        except Exception as e:
            logger.warning(f"Redis set error: {e}")

    def delete(self, key: str):
        if not self.client:
            return
        try:
            self.client.delete(KEY_PREFIX + key)
        except Exception as e:
            logger.warning(f"Redis delete error: {e}")
