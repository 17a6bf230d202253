from abc import ABC, abstractmethod
from typing import Callable, List, Optional

from trade_journal.core.entities.equity import EquityTransaction
from trade_journal.core.entities.trade import Trade

ChangeCallback = Callable[[str], None]
Unsubscribe = Callable[[], None]


class IJournalDataSource(ABC):
    """
    Per-user store of trades and cash flows.
    Reads return a snapshot; subscribers are told (with the user id) after
    every write so they can pull a fresh one.
    """

    @abstractmethod
    async def get_trades(self, user: str, open_only: bool = False) -> List[Trade]:
        pass

    @abstractmethod
    async def get_trade(self, user: str, trade_id: str) -> Optional[Trade]:
        pass

    @abstractmethod
    async def add_trade(self, user: str, trade: Trade) -> Trade:
        pass

    @abstractmethod
    async def replace_trade(self, user: str, trade: Trade) -> Trade:
        """Full-record replace keyed on trade.id."""
        pass

    @abstractmethod
    async def delete_trade(self, user: str, trade_id: str) -> bool:
        pass

    @abstractmethod
    async def get_equity_transactions(self, user: str) -> List[EquityTransaction]:
        pass

    @abstractmethod
    async def add_equity_transaction(self, user: str, transaction: EquityTransaction) -> EquityTransaction:
        pass

    @abstractmethod
    def subscribe(self, user: str, callback: ChangeCallback) -> Unsubscribe:
        pass
