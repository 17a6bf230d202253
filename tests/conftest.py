"""
Pytest configuration and shared fixtures.
"""
from datetime import datetime, timezone

import pytest
from httpx import ASGITransport, AsyncClient

from trade_journal.api.main import app, get_datasource, get_rate_gateway
from trade_journal.core.entities.currency import RateQuote, RateSource
from trade_journal.core.entities.equity import EquityTransaction, EquityTransactionType
from trade_journal.core.entities.trade import AssetType, Position, Trade
from trade_journal.infrastructure.persistence.memory_repo import InMemoryJournalRepo


def day(n: int) -> datetime:
    """Midnight UTC on the n-th of June 2024."""
    return datetime(2024, 6, n, tzinfo=timezone.utc)


@pytest.fixture
def make_trade():
    """Factory for trades; closed when exit_price is given."""
    def _make(
        entry_price=100.0,
        exit_price=None,
        position_size=10.0,
        position=Position.LONG,
        asset_type=AssetType.STOCK,
        open_day=1,
        close_day=None,
        tags=None,
        stop_loss_price=None,
        ticker="AAPL",
    ) -> Trade:
        if exit_price is not None and close_day is None:
            close_day = open_day
        return Trade(
            ticker=ticker,
            asset_type=asset_type,
            position=position,
            open_date=day(open_day),
            close_date=day(close_day) if close_day is not None else None,
            entry_price=entry_price,
            exit_price=exit_price,
            position_size=position_size,
            stop_loss_price=stop_loss_price,
            tags=tags or [],
        )
    return _make


@pytest.fixture
def make_transaction():
    def _make(amount: float, on_day: int = 1, kind=EquityTransactionType.DEPOSIT) -> EquityTransaction:
        return EquityTransaction(type=kind, amount=amount, date=day(on_day))
    return _make


class StubRateGateway:
    quote = "IDR"

    def __init__(self, rate: float = 16250.0):
        self.rate = rate

    async def get_rate(self) -> RateQuote:
        return RateQuote(rate=self.rate, source=RateSource.LIVE)


@pytest.fixture
def repo():
    return InMemoryJournalRepo()


@pytest.fixture
async def client(repo):
    """Async HTTP client for testing FastAPI endpoints against an in-memory store."""
    app.dependency_overrides[get_datasource] = lambda: repo
    app.dependency_overrides[get_rate_gateway] = lambda: StubRateGateway()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
