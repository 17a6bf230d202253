import asyncio
import logging
from typing import Callable, List, Optional, Set

from trade_journal.core.entities.analytics import AnalyticsFilter, AnalyticsSnapshot, FilterOptions
from trade_journal.core.entities.currency import RateQuote
from trade_journal.core.entities.equity import (
    EquitySummary,
    EquityTransaction,
    EquityTransactionCreate,
    EquityTransactionType,
)
from trade_journal.core.entities.risk import PositionSizeRequest, PositionSizeResult
from trade_journal.core.entities.trade import Trade, TradeClose, TradeCreate, utc_now
from trade_journal.core.exceptions import TradeAlreadyClosedError, TradeNotFoundError
from trade_journal.core.interfaces.datasource import IJournalDataSource, Unsubscribe
from trade_journal.core.use_cases.analytics_aggregator import AnalyticsAggregator, compute_current_equity
from trade_journal.core.use_cases.pnl_calculator import calculate_pnl, is_closed
from trade_journal.core.use_cases.risk_calculator import calculate_position_size, contract_size_for
from trade_journal.core.use_cases.trade_filter import (
    OPEN_DATE,
    available_filter_options,
    filter_trades,
    sort_newest_first,
)

logger = logging.getLogger(__name__)


# --- Business Logic Services ---

class JournalService:
    def __init__(self, datasource: IJournalDataSource):
        self.db = datasource

    async def create_trade(self, user: str, data: TradeCreate) -> Trade:
        trade = Trade(**data.model_dump())
        await self.db.add_trade(user, trade)
        logger.info(f"Trade {trade.id} ({trade.ticker}) created for {user}")
        return trade

    async def get_trade(self, user: str, trade_id: str) -> Trade:
        trade = await self.db.get_trade(user, trade_id)
        if trade is None:
            raise TradeNotFoundError(user, trade_id)
        return trade

    async def edit_trade(self, user: str, trade_id: str, data: TradeCreate) -> Trade:
        existing = await self.get_trade(user, trade_id)
        trade = Trade(
            **data.model_dump(),
            id=existing.id,
            created_at=existing.created_at,
            updated_at=utc_now(),
        )
        await self.db.replace_trade(user, trade)
        return trade

    async def close_position(self, user: str, trade_id: str, data: TradeClose) -> Trade:
        """Only the exit price and close date change; the rest of the record is kept."""
        trade = await self.get_trade(user, trade_id)
        if is_closed(trade) or trade.close_date is not None:
            raise TradeAlreadyClosedError(trade_id)

        trade.exit_price = data.exit_price
        trade.close_date = data.close_date
        trade.updated_at = utc_now()
        await self.db.replace_trade(user, trade)
        logger.info(f"Trade {trade_id} closed for {user}, pnl={calculate_pnl(trade):.2f}")
        return trade

    async def delete_trade(self, user: str, trade_id: str):
        deleted = await self.db.delete_trade(user, trade_id)
        if not deleted:
            raise TradeNotFoundError(user, trade_id)
        logger.info(f"Trade {trade_id} deleted for {user}")

    async def list_trades(self, user: str, filters: Optional[AnalyticsFilter] = None) -> List[Trade]:
        # History listing filters on the open date and shows the newest first
        trades = await self.db.get_trades(user)
        return sort_newest_first(filter_trades(trades, filters, date_field=OPEN_DATE))

    async def list_open_trades(self, user: str) -> List[Trade]:
        trades = await self.db.get_trades(user, open_only=True)
        return sort_newest_first(trades)

    async def record_equity_transaction(self, user: str, data: EquityTransactionCreate) -> EquityTransaction:
        tx = EquityTransaction(**data.model_dump())
        await self.db.add_equity_transaction(user, tx)
        logger.info(f"{tx.type.value} of {tx.amount:.2f} recorded for {user}")
        return tx

    async def get_equity_summary(self, user: str, rate: Optional[RateQuote] = None) -> EquitySummary:
        transactions = await self.db.get_equity_transactions(user)
        trades = await self.db.get_trades(user)

        deposits = [tx for tx in transactions if tx.type == EquityTransactionType.DEPOSIT]
        withdrawals = [tx for tx in transactions if tx.type == EquityTransactionType.WITHDRAW]
        total_deposits = sum(tx.amount for tx in deposits)
        total_withdrawals = sum(tx.amount for tx in withdrawals)
        realized = sum(calculate_pnl(t) for t in trades if is_closed(t))
        current_equity = compute_current_equity(trades, transactions)

        return EquitySummary(
            total_deposits=total_deposits,
            total_withdrawals=total_withdrawals,
            net_transfers=total_deposits - total_withdrawals,
            deposit_count=len(deposits),
            withdrawal_count=len(withdrawals),
            realized_pnl=realized,
            current_equity=current_equity,
            currency=rate.quote if rate else "USD",
            converted_equity=rate.convert(current_equity) if rate else None,
            conversion_rate=rate.rate if rate else None,
            transactions=sorted(transactions, key=lambda tx: tx.date, reverse=True),
        )


class AnalyticsService:
    def __init__(self, datasource: IJournalDataSource):
        self.db = datasource
        self._pending: Set[asyncio.Task] = set()

    async def get_snapshot(self, user: str, filters: Optional[AnalyticsFilter] = None) -> AnalyticsSnapshot:
        trades = await self.db.get_trades(user)
        transactions = await self.db.get_equity_transactions(user)
        return AnalyticsAggregator.compute(trades, transactions, filters)

    async def get_current_equity(self, user: str) -> float:
        trades = await self.db.get_trades(user)
        transactions = await self.db.get_equity_transactions(user)
        return compute_current_equity(trades, transactions)

    async def calculate_position_size(self, user: str, request: PositionSizeRequest) -> PositionSizeResult:
        total_equity = request.total_equity
        if total_equity is None:
            total_equity = await self.get_current_equity(user)

        contract_size = request.contract_size or contract_size_for(request.asset_type)
        return calculate_position_size(
            total_equity,
            request.risk_percentage,
            request.entry_price,
            request.stop_loss_price,
            contract_size,
        )

    async def get_filter_options(self, user: str) -> FilterOptions:
        trades = await self.db.get_trades(user)
        return available_filter_options(trades)

    def watch(
        self,
        user: str,
        filters: Optional[AnalyticsFilter],
        on_snapshot: Callable[[AnalyticsSnapshot], None],
    ) -> Unsubscribe:
        """
        Recompute the snapshot after every change to the user's journal.
        The listener is called from the writer's task; the recompute is
        scheduled on the running loop so the write itself is not delayed.
        Refreshes can finish out of order; a result older than the last one
        delivered is dropped.
        """
        seq = {"issued": 0, "delivered": 0}

        async def refresh(n: int):
            try:
                snapshot = await self.get_snapshot(user, filters)
            except Exception as e:
                logger.error(f"Analytics refresh failed for {user}: {e}")
                return
            if n <= seq["delivered"]:
                logger.debug(f"Dropping stale analytics refresh {n} for {user}")
                return
            seq["delivered"] = n
            on_snapshot(snapshot)

        def on_change(changed_user: str):
            seq["issued"] += 1
            task = asyncio.get_running_loop().create_task(refresh(seq["issued"]))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

        return self.db.subscribe(user, on_change)
