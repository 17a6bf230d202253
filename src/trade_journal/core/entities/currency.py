from enum import Enum

from pydantic import BaseModel


class RateSource(str, Enum):
    LIVE = "live"
    CACHE = "cache"
    STALE = "stale"
    FALLBACK = "fallback"


class CachedRate(BaseModel):
    """
    One cached exchange rate. fetched_at is epoch seconds.
    """
    value: float
    fetched_at: float
    ttl_seconds: float

    def is_stale(self, now: float) -> bool:
        return now - self.fetched_at >= self.ttl_seconds


class RateQuote(BaseModel):
    base: str = "USD"
    quote: str = "IDR"
    rate: float
    source: RateSource
    is_stale: bool = False

    def convert(self, amount: float) -> float:
        return amount * self.rate
