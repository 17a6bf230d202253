import logging
from collections import defaultdict
from typing import Dict, List, Optional

from trade_journal.core.entities.equity import EquityTransaction
from trade_journal.core.entities.trade import Trade
from trade_journal.core.interfaces.datasource import ChangeCallback, IJournalDataSource, Unsubscribe

logger = logging.getLogger(__name__)


class InMemoryJournalRepo(IJournalDataSource):
    """
    Process-local journal store. Used when DATABASE_URL is not set and in tests.
    Every read hands out copies so callers cannot mutate stored records.
    """

    def __init__(self):
        self._trades: Dict[str, Dict[str, Trade]] = defaultdict(dict)
        self._transactions: Dict[str, List[EquityTransaction]] = defaultdict(list)
        self._listeners: Dict[str, List[ChangeCallback]] = defaultdict(list)

    async def get_trades(self, user: str, open_only: bool = False) -> List[Trade]:
        trades = [t.model_copy(deep=True) for t in self._trades[user].values()]
        if open_only:
            trades = [t for t in trades if t.close_date is None]
        return trades

    async def get_trade(self, user: str, trade_id: str) -> Optional[Trade]:
        trade = self._trades[user].get(trade_id)
        return trade.model_copy(deep=True) if trade else None

    async def add_trade(self, user: str, trade: Trade) -> Trade:
        self._trades[user][trade.id] = trade.model_copy(deep=True)
        self._notify(user)
        return trade

    async def replace_trade(self, user: str, trade: Trade) -> Trade:
        self._trades[user][trade.id] = trade.model_copy(deep=True)
        self._notify(user)
        return trade

    async def delete_trade(self, user: str, trade_id: str) -> bool:
        removed = self._trades[user].pop(trade_id, None)
        if removed is None:
            return False
        self._notify(user)
        return True

    async def get_equity_transactions(self, user: str) -> List[EquityTransaction]:
        return [tx.model_copy() for tx in self._transactions[user]]

    async def add_equity_transaction(self, user: str, transaction: EquityTransaction) -> EquityTransaction:
        self._transactions[user].append(transaction.model_copy())
        self._notify(user)
        return transaction

    def subscribe(self, user: str, callback: ChangeCallback) -> Unsubscribe:
        self._listeners[user].append(callback)

        def unsubscribe():
            if callback in self._listeners[user]:
                self._listeners[user].remove(callback)

        return unsubscribe

    def _notify(self, user: str):
        for callback in list(self._listeners[user]):
            try:
                callback(user)
            except Exception as e:
                logger.warning(f"Change listener failed for {user}: {e}")
