from typing import Optional

from trade_journal.core.entities.trade import Position, Trade, TradeResult


def is_closed(trade: Trade) -> bool:
    # exit_price is the single source of truth for "closed" in derived figures
    return trade.exit_price is not None


def calculate_pnl(trade: Trade) -> float:
    """Realized PnL of one position. Open positions (no exit price) return 0."""
    if not is_closed(trade):
        return 0.0
    pnl = (trade.exit_price - trade.entry_price) * trade.position_size
    return -pnl if trade.position == Position.SHORT else pnl


def classify_result(trade: Trade) -> TradeResult:
    if not is_closed(trade):
        return TradeResult.OPEN

    pnl = calculate_pnl(trade)
    if pnl > 0:
        return TradeResult.WIN
    if pnl < 0:
        return TradeResult.LOSS
    return TradeResult.BREAK_EVEN


def initial_risk(trade: Trade) -> float:
    if trade.stop_loss_price is None or not trade.entry_price or not trade.position_size:
        return 0.0
    return abs(trade.entry_price - trade.stop_loss_price) * trade.position_size


def r_multiple(trade: Trade) -> Optional[float]:
    """PnL expressed in units of the risk taken at entry. None when no risk is defined."""
    risk = initial_risk(trade)
    if risk <= 0:
        return None
    return calculate_pnl(trade) / risk
