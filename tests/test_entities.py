from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from trade_journal.core.entities.equity import EquityTransactionCreate, EquityTransaction, EquityTransactionType
from trade_journal.core.entities.risk import PositionSizeRequest
from trade_journal.core.entities.trade import TradeCreate

BASE = {
    "ticker": " btcusd ",
    "asset_type": "Crypto",
    "position": "Long",
    "open_date": "2024-06-01T09:00:00Z",
    "entry_price": 67000,
    "position_size": 0.5,
}


def test_ticker_is_normalised():
    assert TradeCreate(**BASE).ticker == "BTCUSD"


def test_blank_ticker_rejected():
    with pytest.raises(ValidationError):
        TradeCreate(**{**BASE, "ticker": "   "})


@pytest.mark.parametrize("field", ["entry_price", "position_size"])
def test_non_positive_prices_rejected(field):
    with pytest.raises(ValidationError):
        TradeCreate(**{**BASE, field: 0})


def test_exit_price_without_close_date_rejected():
    with pytest.raises(ValidationError):
        TradeCreate(**{**BASE, "exit_price": 68000})


def test_close_date_without_exit_price_rejected():
    with pytest.raises(ValidationError):
        TradeCreate(**{**BASE, "close_date": "2024-06-02T09:00:00Z"})


def test_close_before_open_rejected():
    with pytest.raises(ValidationError):
        TradeCreate(**{**BASE, "exit_price": 68000, "close_date": "2024-05-30T09:00:00Z"})


def test_closed_trade_accepted():
    trade = TradeCreate(**{**BASE, "exit_price": 68000, "close_date": "2024-06-02T09:00:00Z"})
    assert trade.exit_price == 68000


def test_naive_dates_become_utc():
    trade = TradeCreate(**{**BASE, "open_date": datetime(2024, 6, 1, 9)})
    assert trade.open_date == datetime(2024, 6, 1, 9, tzinfo=timezone.utc)


def test_blank_tags_dropped():
    trade = TradeCreate(**{**BASE, "tags": ["Breakout", " ", "", " FOMO "]})
    assert trade.tags == ["Breakout", "FOMO"]


def test_signed_amount():
    deposit = EquityTransaction(type=EquityTransactionType.DEPOSIT, amount=100, date=datetime(2024, 6, 1))
    withdraw = EquityTransaction(type=EquityTransactionType.WITHDRAW, amount=40, date=datetime(2024, 6, 1))
    assert deposit.signed_amount == 100
    assert withdraw.signed_amount == -40


def test_negative_amount_rejected():
    with pytest.raises(ValidationError):
        EquityTransactionCreate(type="withdraw", amount=-50, date="2024-06-01T00:00:00Z")


@pytest.mark.parametrize("risk", [0, -1, 100.5])
def test_risk_percentage_bounds(risk):
    with pytest.raises(ValidationError):
        PositionSizeRequest(risk_percentage=risk, entry_price=100, stop_loss_price=95)


def test_risk_percentage_upper_bound_inclusive():
    assert PositionSizeRequest(risk_percentage=100, entry_price=100, stop_loss_price=95).risk_percentage == 100


def test_position_size_prices_optional():
    request = PositionSizeRequest(total_equity=10000, risk_percentage=1, entry_price=100)
    assert request.stop_loss_price is None
    with pytest.raises(ValidationError):
        PositionSizeRequest(entry_price=0)
