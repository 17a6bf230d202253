from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from trade_journal.core.entities.analytics import AnalyticsFilter, AnalyticsSnapshot, EquityCurvePoint
from trade_journal.core.entities.equity import EquityTransaction
from trade_journal.core.entities.trade import Trade
from trade_journal.core.use_cases.pnl_calculator import calculate_pnl, is_closed, r_multiple
from trade_journal.core.use_cases.trade_filter import CLOSE_DATE, filter_trades


def compute_current_equity(
    trades: Optional[Sequence[Trade]],
    transactions: Optional[Sequence[EquityTransaction]],
) -> float:
    """Deposits minus withdrawals plus realized PnL, over the whole history."""
    cash = sum(tx.signed_amount for tx in transactions or [])
    realized = sum(calculate_pnl(t) for t in trades or [] if is_closed(t))
    return cash + realized


class AnalyticsAggregator:
    @staticmethod
    def compute(
        trades: Optional[Sequence[Trade]],
        transactions: Optional[Sequence[EquityTransaction]],
        filters: Optional[AnalyticsFilter] = None,
    ) -> AnalyticsSnapshot:
        trades = list(trades or [])
        transactions = list(transactions or [])

        # 1. Balance comes from everything, never from the filtered subset
        current_equity = compute_current_equity(trades, transactions)

        # 2. Reporting set: closed trades passing the filter
        closed = [t for t in trades if is_closed(t)]
        reporting = filter_trades(closed, filters, date_field=CLOSE_DATE)

        # 3. Accumulate
        total_pnl = 0.0
        total_profit = 0.0
        total_loss = 0.0
        wins = 0
        losses = 0
        r_values: List[float] = []
        pnl_events: List[Tuple[datetime, float]] = []

        for trade in reporting:
            pnl = calculate_pnl(trade)
            total_pnl += pnl
            if pnl > 0:
                total_profit += pnl
                wins += 1
            elif pnl < 0:
                total_loss += abs(pnl)
                losses += 1

            r = r_multiple(trade)
            if r is not None:
                r_values.append(r)

            # A closed trade normally carries a close date; fall back to the open date otherwise
            pnl_events.append((trade.close_date or trade.open_date, pnl))

        count = len(reporting)
        win_rate = (wins / count) * 100 if count > 0 else 0.0
        avg_win = total_profit / wins if wins else 0.0
        avg_loss = total_loss / losses if losses else 0.0
        avg_r = sum(r_values) / len(r_values) if r_values else 0.0
        profit_factor = total_profit / total_loss if total_loss > 0 else 0.0

        equity_curve = AnalyticsAggregator.build_equity_curve(current_equity, transactions, pnl_events)

        return AnalyticsSnapshot(
            total_pnl=total_pnl,
            total_profit=total_profit,
            total_loss=total_loss,
            win_rate=win_rate,
            total_trades=count,
            wins=wins,
            losses=losses,
            current_equity=current_equity,
            avg_win=avg_win,
            avg_loss=avg_loss,
            avg_r_multiple=avg_r,
            profit_factor=profit_factor,
            equity_curve=equity_curve,
        )

    @staticmethod
    def build_equity_curve(
        current_equity: float,
        transactions: Sequence[EquityTransaction],
        pnl_events: Sequence[Tuple[datetime, float]],
    ) -> List[EquityCurvePoint]:
        """
        One point per event, ascending by date. The running balance starts at
        current_equity with the net effect of every event backed out, so the
        last point lands on current_equity.
        """
        events = [(tx.date, tx.signed_amount) for tx in transactions]
        events.extend(pnl_events)
        if not events:
            return []

        # sorted() is stable: on equal dates cash flows stay ahead of trades
        events = sorted(events, key=lambda e: e[0])

        balance = current_equity - sum(delta for _, delta in events)
        curve: List[EquityCurvePoint] = []
        for when, delta in events:
            balance += delta
            curve.append(EquityCurvePoint(date=when, equity=balance))
        return curve
