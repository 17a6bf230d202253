import logging
import time
from typing import Callable, Optional, Tuple

from pydantic import ValidationError

from trade_journal.core.entities.currency import CachedRate
from trade_journal.infrastructure.cache.redis_service import RedisService

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 60 * 60  # 1 hour


class RateCache:
    """
    Holds the most recent exchange rate for one currency pair.

    The entry is kept in process and, when Redis is available, mirrored there
    so that every worker sees the same rate. Expired entries are not dropped:
    get() still returns them, flagged as stale, for use as a fallback.
    """

    def __init__(
        self,
        key: str,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        redis_service: Optional[RedisService] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.key = key
        self.ttl_seconds = ttl_seconds
        self.redis = redis_service
        self.clock = clock
        self._entry: Optional[CachedRate] = None

    def get(self) -> Tuple[Optional[float], bool]:
        """Returns (value, is_stale). value is None when nothing was ever cached."""
        now = self.clock()
        entry = self._entry
        if entry is None or entry.is_stale(now):
            # Another worker may have refreshed the shared copy
            shared = self._load_shared()
            if shared is not None and (entry is None or shared.fetched_at > entry.fetched_at):
                entry = shared
                self._entry = shared
        if entry is None:
            return None, True
        return entry.value, entry.is_stale(now)

    def put(self, value: float) -> CachedRate:
        entry = CachedRate(value=value, fetched_at=self.clock(), ttl_seconds=self.ttl_seconds)
        self._entry = entry
        if self.redis is not None:
            # Kept in Redis beyond the ttl so a stale value survives restarts
            self.redis.set(self.key, entry)
        return entry

    def clear(self):
        self._entry = None
        if self.redis is not None:
            self.redis.delete(self.key)

    def _load_shared(self) -> Optional[CachedRate]:
        if self.redis is None:
            return None
        raw = self.redis.get(self.key)
        if not raw:
            return None
        try:
            return CachedRate.model_validate(raw)
        except ValidationError as e:
            logger.warning(f"Ignoring malformed cached rate under {self.key}: {e}")
            return None
