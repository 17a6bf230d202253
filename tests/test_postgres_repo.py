"""
PostgresRepo against a scripted psycopg2 connection (no database needed).
"""
from decimal import Decimal

import pytest
from conftest import day

from trade_journal.core.entities.trade import AssetType, Position
from trade_journal.infrastructure.persistence import postgres_repo
from trade_journal.infrastructure.persistence.postgres_repo import PostgresRepo


class FakeCursor:
    def __init__(self, conn):
        self.conn = conn
        self.rowcount = 0

    def execute(self, query, params=None):
        self.conn.executed.append((" ".join(query.split()), params))
        self.rowcount = self.conn.rowcount

    def fetchall(self):
        return self.conn.rows

    def close(self):
        pass


class FakeConnection:
    def __init__(self):
        self.executed = []
        self.rows = []
        self.rowcount = 0
        self.commits = 0

    def cursor(self):
        return FakeCursor(self)

    def commit(self):
        self.commits += 1

    def close(self):
        pass


@pytest.fixture
def conn(monkeypatch):
    fake = FakeConnection()
    monkeypatch.setattr(postgres_repo.psycopg2, "connect", lambda dsn: fake)
    return fake


def trade_row(**overrides):
    row = {
        "id": "t1", "ticker": "AAPL", "asset_type": "Stock", "position": "Short",
        "open_date": day(1), "close_date": day(2), "entry_price": Decimal("100"),
        "exit_price": Decimal("95.5"), "position_size": Decimal("10"), "stop_loss_price": None,
        "take_profit_price": Decimal("90"), "commission": None, "tags": ["Breakout"],
        "entry_reason": None, "image_url_before": None, "image_url_after": None,
        "created_at": day(1), "updated_at": None,
    }
    row.update(overrides)
    return tuple(row.values())


def test_tables_created_on_init(conn):
    PostgresRepo("postgresql://test")
    statements = [q for q, _ in conn.executed]
    assert any("CREATE TABLE IF NOT EXISTS trades" in q for q in statements)
    assert any("CREATE TABLE IF NOT EXISTS equity_transactions" in q for q in statements)
    assert conn.commits == 1


async def test_get_trades_maps_rows(conn):
    repo = PostgresRepo("postgresql://test")
    conn.rows = [trade_row()]

    trades = await repo.get_trades("u1", open_only=True)

    query, params = conn.executed[-1]
    assert "close_date IS NULL" in query
    assert params == ["u1"]

    trade = trades[0]
    assert trade.asset_type == AssetType.STOCK
    assert trade.position == Position.SHORT
    assert trade.exit_price == 95.5
    assert trade.stop_loss_price is None
    assert trade.take_profit_price == 90.0
    assert trade.tags == ["Breakout"]


async def test_get_trade_missing_returns_none(conn):
    repo = PostgresRepo("postgresql://test")
    conn.rows = []
    assert await repo.get_trade("u1", "nope") is None
    assert conn.executed[-1][1] == ["u1", "nope"]


async def test_delete_notifies_only_when_a_row_went(conn):
    repo = PostgresRepo("postgresql://test")
    seen = []
    repo.subscribe("u1", seen.append)

    conn.rowcount = 0
    assert await repo.delete_trade("u1", "t1") is False
    assert seen == []

    conn.rowcount = 1
    assert await repo.delete_trade("u1", "t1") is True
    assert seen == ["u1"]


async def test_add_trade_upserts(conn, make_trade):
    repo = PostgresRepo("postgresql://test")
    trade = make_trade(exit_price=110, tags=["Breakout"])

    await repo.add_trade("u1", trade)

    query, params = conn.executed[-1]
    assert query.startswith("INSERT INTO trades")
    assert "ON CONFLICT (id) DO UPDATE" in query
    assert params[0] == trade.id
    assert params[2] == "Stock"
    assert params[-1] == "u1"
    assert len(params) == query.count("%s")
