import httpx
import pytest

from trade_journal.core.entities.currency import RateSource
from trade_journal.infrastructure.cache.rate_cache import RateCache
from trade_journal.infrastructure.gateways.currency_api import CurrencyRateGateway


class FakeClock:
    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class FakeRedis:
    """Stands in for RedisService (same get/set/delete surface)."""

    def __init__(self):
        self.store = {}

    def get(self, key):
        return self.store.get(key)

    def set(self, key, value, ttl_seconds=None):
        self.store[key] = value.model_dump(mode="json")

    def delete(self, key):
        self.store.pop(key, None)


def api_returning(rate=None, status=200, calls=None):
    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(request)
        if status != 200:
            return httpx.Response(status, json={"message": "error"})
        return httpx.Response(200, json={"data": {"IDR": rate}})
    return httpx.MockTransport(handler)


def gateway_with(transport, cache=None) -> CurrencyRateGateway:
    return CurrencyRateGateway(
        api_key="test-key",
        api_url="https://currency.test/v1/latest",
        fallback_rate=16000.0,
        cache=cache or RateCache(key="fx:USD:IDR", ttl_seconds=3600, clock=FakeClock()),
        transport=transport,
    )


# --- RateCache ---

def test_empty_cache_is_stale_with_no_value():
    assert RateCache(key="k").get() == (None, True)


def test_cache_expires_after_ttl():
    clock = FakeClock()
    cache = RateCache(key="k", ttl_seconds=60, clock=clock)
    cache.put(15900.0)
    assert cache.get() == (15900.0, False)

    clock.now += 61
    assert cache.get() == (15900.0, True)


def test_cache_reads_shared_copy():
    clock = FakeClock()
    shared = FakeRedis()
    RateCache(key="k", ttl_seconds=60, redis_service=shared, clock=clock).put(15800.0)

    other_worker = RateCache(key="k", ttl_seconds=60, redis_service=shared, clock=clock)
    assert other_worker.get() == (15800.0, False)


def test_cache_clear():
    cache = RateCache(key="k", redis_service=FakeRedis())
    cache.put(1.0)
    cache.clear()
    assert cache.get() == (None, True)


# --- CurrencyRateGateway ---

async def test_live_rate_is_fetched_and_cached():
    calls = []
    gateway = gateway_with(api_returning(16250.5, calls=calls))

    first = await gateway.get_rate()
    assert first.rate == 16250.5
    assert first.source == RateSource.LIVE

    second = await gateway.get_rate()
    assert second.source == RateSource.CACHE
    assert len(calls) == 1
    assert calls[0].url.params["currencies"] == "IDR"
    assert calls[0].url.params["apikey"] == "test-key"


async def test_api_error_falls_back_to_default_rate():
    quote = await gateway_with(api_returning(status=500)).get_rate()
    assert quote.rate == 16000.0
    assert quote.source == RateSource.FALLBACK


async def test_missing_rate_in_payload_falls_back():
    quote = await gateway_with(api_returning(rate=None)).get_rate()
    assert quote.source == RateSource.FALLBACK


async def test_network_error_uses_stale_cached_rate():
    def handler(request):
        raise httpx.ConnectError("unreachable", request=request)

    clock = FakeClock()
    cache = RateCache(key="k", ttl_seconds=60, clock=clock)
    cache.put(15500.0)
    clock.now += 120

    quote = await gateway_with(httpx.MockTransport(handler), cache=cache).get_rate()
    assert quote.rate == 15500.0
    assert quote.source == RateSource.STALE
    assert quote.is_stale


def test_quote_conversion():
    gateway = gateway_with(api_returning(16000.0))
    quote = gateway._quote(16000.0, RateSource.LIVE)
    assert quote.convert(2.5) == pytest.approx(40_000)
