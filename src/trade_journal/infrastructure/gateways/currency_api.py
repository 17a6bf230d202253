import logging
import os
from typing import Optional

import httpx

from trade_journal.core.entities.currency import RateQuote, RateSource
from trade_journal.infrastructure.cache.rate_cache import DEFAULT_TTL_SECONDS, RateCache
from trade_journal.infrastructure.cache.redis_service import RedisService

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.freecurrencyapi.com/v1/latest"
DEFAULT_FALLBACK_RATE = 16000.0  # IDR per USD
REQUEST_TIMEOUT_SECONDS = 5.0


class CurrencyRateGateway:
    """
    USD -> quote currency rate from freecurrencyapi.com.

    The rate is display-only, so this gateway never raises: a failed fetch
    falls back to the last cached value (even if expired) and, failing
    that, to a fixed default rate.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
        base: str = "USD",
        quote: str = "IDR",
        fallback_rate: Optional[float] = None,
        cache: Optional[RateCache] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        :param transport: Optional httpx transport, used to stub the API in tests.
        """
        self.api_key = api_key if api_key is not None else os.getenv("CURRENCY_API_KEY", "")
        self.api_url = api_url or os.getenv("CURRENCY_API_URL", DEFAULT_API_URL)
        self.base = base
        self.quote = quote
        self.fallback_rate = fallback_rate or float(os.getenv("CURRENCY_FALLBACK_RATE", DEFAULT_FALLBACK_RATE))
        self.cache = cache or RateCache(
            key=f"fx:{base}:{quote}",
            ttl_seconds=float(os.getenv("CURRENCY_CACHE_TTL", DEFAULT_TTL_SECONDS)),
        )
        self.transport = transport

    async def get_rate(self) -> RateQuote:
        cached, is_stale = self.cache.get()
        if cached is not None and not is_stale:
            return self._quote(cached, RateSource.CACHE)

        live = await self._fetch_rate()
        if live is not None:
            self.cache.put(live)
            return self._quote(live, RateSource.LIVE)

        if cached is not None:
            logger.warning(f"Using stale {self.base}/{self.quote} rate {cached}")
            return self._quote(cached, RateSource.STALE, is_stale=True)

        logger.warning(f"Using fallback {self.base}/{self.quote} rate {self.fallback_rate}")
        return self._quote(self.fallback_rate, RateSource.FALLBACK)

    async def _fetch_rate(self) -> Optional[float]:
        params = {
            "apikey": self.api_key,
            "base_currency": self.base,
            "currencies": self.quote,
        }
        try:
            async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT_SECONDS, transport=self.transport) as client:
                resp = await client.get(self.api_url, params=params)
                resp.raise_for_status()
                payload = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Failed to fetch {self.base}/{self.quote} rate: {e}")
            return None

        data = payload.get("data") if isinstance(payload, dict) else None
        rate = data.get(self.quote) if isinstance(data, dict) else None
        try:
            rate = float(rate)
        except (TypeError, ValueError):
            logger.warning(f"Currency API returned no usable {self.quote} rate: {payload}")
            return None
        return rate if rate > 0 else None

    def _quote(self, rate: float, source: RateSource, is_stale: bool = False) -> RateQuote:
        return RateQuote(base=self.base, quote=self.quote, rate=rate, source=source, is_stale=is_stale)


def build_rate_gateway() -> CurrencyRateGateway:
    redis_service = RedisService()
    cache = RateCache(
        key="fx:USD:IDR",
        ttl_seconds=float(os.getenv("CURRENCY_CACHE_TTL", DEFAULT_TTL_SECONDS)),
        redis_service=redis_service if redis_service.enabled else None,
    )
    return CurrencyRateGateway(cache=cache)
