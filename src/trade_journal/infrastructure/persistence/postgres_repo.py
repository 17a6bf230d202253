import asyncio
import logging
from collections import defaultdict
from typing import Dict, List, Optional

import psycopg2

from trade_journal.core.entities.equity import EquityTransaction, EquityTransactionType
from trade_journal.core.entities.trade import AssetType, Position, Trade
from trade_journal.core.interfaces.datasource import ChangeCallback, IJournalDataSource, Unsubscribe

logger = logging.getLogger(__name__)

TRADE_COLUMNS = """
    id, ticker, asset_type, position, open_date, close_date, entry_price, exit_price,
    position_size, stop_loss_price, take_profit_price, commission, tags, entry_reason,
    image_url_before, image_url_after, created_at, updated_at
"""


class PostgresRepo(IJournalDataSource):
    def __init__(self, dsn: str):
        self.dsn = dsn
        self._listeners: Dict[str, List[ChangeCallback]] = defaultdict(list)
        self._init_db()

    def _init_db(self):
        conn = psycopg2.connect(self.dsn)
        cur = conn.cursor()

        # Trades Table
        cur.execute("""
            CREATE TABLE IF NOT EXISTS trades (
                id VARCHAR PRIMARY KEY,
                "user" VARCHAR NOT NULL,
                ticker VARCHAR NOT NULL,
                asset_type VARCHAR NOT NULL,
                position VARCHAR NOT NULL,
                open_date TIMESTAMPTZ NOT NULL,
                close_date TIMESTAMPTZ,
                entry_price DECIMAL NOT NULL,
                exit_price DECIMAL,
                position_size DECIMAL NOT NULL,
                stop_loss_price DECIMAL,
                take_profit_price DECIMAL,
                commission DECIMAL,
                tags TEXT[] NOT NULL DEFAULT '{}',
                entry_reason TEXT,
                image_url_before TEXT,
                image_url_after TEXT,
                created_at TIMESTAMPTZ NOT NULL,
                updated_at TIMESTAMPTZ
            );
        """)

        # Equity Transactions Table
        cur.execute("""
            CREATE TABLE IF NOT EXISTS equity_transactions (
                id VARCHAR PRIMARY KEY,
                "user" VARCHAR NOT NULL,
                type VARCHAR NOT NULL,
                amount DECIMAL NOT NULL,
                date TIMESTAMPTZ NOT NULL,
                notes TEXT,
                created_at TIMESTAMPTZ NOT NULL
            );
        """)

        conn.commit()
        cur.close()
        conn.close()

    # --- Row mapping ---

    @staticmethod
    def _opt_float(value) -> Optional[float]:
        return float(value) if value is not None else None

    def _row_to_trade(self, row) -> Trade:
        return Trade(
            id=row[0],
            ticker=row[1],
            asset_type=AssetType(row[2]),
            position=Position(row[3]),
            open_date=row[4],
            close_date=row[5],
            entry_price=float(row[6]),
            exit_price=self._opt_float(row[7]),
            position_size=float(row[8]),
            stop_loss_price=self._opt_float(row[9]),
            take_profit_price=self._opt_float(row[10]),
            commission=self._opt_float(row[11]),
            tags=list(row[12] or []),
            entry_reason=row[13],
            image_url_before=row[14],
            image_url_after=row[15],
            created_at=row[16],
            updated_at=row[17],
        )

    @staticmethod
    def _trade_params(trade: Trade) -> tuple:
        return (
            trade.ticker, trade.asset_type.value, trade.position.value, trade.open_date,
            trade.close_date, trade.entry_price, trade.exit_price, trade.position_size,
            trade.stop_loss_price, trade.take_profit_price, trade.commission, trade.tags,
            trade.entry_reason, trade.image_url_before, trade.image_url_after,
            trade.created_at, trade.updated_at,
        )

    # --- Sync queries (run off the event loop) ---

    def _fetch_trades(self, user: str, open_only: bool, trade_id: Optional[str] = None) -> List[Trade]:
        conn = psycopg2.connect(self.dsn)
        cur = conn.cursor()

        query = f'SELECT {TRADE_COLUMNS} FROM trades WHERE "user" = %s'
        params = [user]

        if open_only:
            query += " AND close_date IS NULL"
        if trade_id:
            query += " AND id = %s"
            params.append(trade_id)

        cur.execute(query, params)
        rows = cur.fetchall()

        trades = [self._row_to_trade(row) for row in rows]

        cur.close()
        conn.close()
        return trades

    def _upsert_trade(self, user: str, trade: Trade):
        conn = psycopg2.connect(self.dsn)
        cur = conn.cursor()

        cur.execute(f"""
            INSERT INTO trades ({TRADE_COLUMNS}, "user")
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
            ON CONFLICT (id) DO UPDATE SET
                ticker = EXCLUDED.ticker, asset_type = EXCLUDED.asset_type,
                position = EXCLUDED.position, open_date = EXCLUDED.open_date,
                close_date = EXCLUDED.close_date, entry_price = EXCLUDED.entry_price,
                exit_price = EXCLUDED.exit_price, position_size = EXCLUDED.position_size,
                stop_loss_price = EXCLUDED.stop_loss_price,
                take_profit_price = EXCLUDED.take_profit_price,
                commission = EXCLUDED.commission, tags = EXCLUDED.tags,
                entry_reason = EXCLUDED.entry_reason,
                image_url_before = EXCLUDED.image_url_before,
                image_url_after = EXCLUDED.image_url_after,
                updated_at = EXCLUDED.updated_at
            WHERE trades."user" = EXCLUDED."user"
        """, (trade.id, *self._trade_params(trade), user))

        conn.commit()
        cur.close()
        conn.close()

    def _delete_trade(self, user: str, trade_id: str) -> bool:
        conn = psycopg2.connect(self.dsn)
        cur = conn.cursor()

        cur.execute('DELETE FROM trades WHERE "user" = %s AND id = %s', (user, trade_id))
        deleted = cur.rowcount > 0

        conn.commit()
        cur.close()
        conn.close()
        return deleted

    def _fetch_transactions(self, user: str) -> List[EquityTransaction]:
        conn = psycopg2.connect(self.dsn)
        cur = conn.cursor()

        cur.execute("""
            SELECT id, type, amount, date, notes, created_at
            FROM equity_transactions
            WHERE "user" = %s
            ORDER BY created_at
        """, (user,))
        rows = cur.fetchall()

        transactions = []
        for row in rows:
            transactions.append(EquityTransaction(
                id=row[0],
                type=EquityTransactionType(row[1]),
                amount=float(row[2]),
                date=row[3],
                notes=row[4],
                created_at=row[5],
            ))

        cur.close()
        conn.close()
        return transactions

    def _insert_transaction(self, user: str, tx: EquityTransaction):
        conn = psycopg2.connect(self.dsn)
        cur = conn.cursor()

        cur.execute("""
            INSERT INTO equity_transactions (id, "user", type, amount, date, notes, created_at)
            VALUES (%s, %s, %s, %s, %s, %s, %s)
        """, (tx.id, user, tx.type.value, tx.amount, tx.date, tx.notes, tx.created_at))

        conn.commit()
        cur.close()
        conn.close()

    # --- IJournalDataSource Implementation ---

    async def get_trades(self, user: str, open_only: bool = False) -> List[Trade]:
        return await asyncio.to_thread(self._fetch_trades, user, open_only)

    async def get_trade(self, user: str, trade_id: str) -> Optional[Trade]:
        trades = await asyncio.to_thread(self._fetch_trades, user, False, trade_id)
        return trades[0] if trades else None

    async def add_trade(self, user: str, trade: Trade) -> Trade:
        await asyncio.to_thread(self._upsert_trade, user, trade)
        self._notify(user)
        return trade

    async def replace_trade(self, user: str, trade: Trade) -> Trade:
        await asyncio.to_thread(self._upsert_trade, user, trade)
        self._notify(user)
        return trade

    async def delete_trade(self, user: str, trade_id: str) -> bool:
        deleted = await asyncio.to_thread(self._delete_trade, user, trade_id)
        if deleted:
            self._notify(user)
        return deleted

    async def get_equity_transactions(self, user: str) -> List[EquityTransaction]:
        return await asyncio.to_thread(self._fetch_transactions, user)

    async def add_equity_transaction(self, user: str, transaction: EquityTransaction) -> EquityTransaction:
        await asyncio.to_thread(self._insert_transaction, user, transaction)
        self._notify(user)
        return transaction

    def subscribe(self, user: str, callback: ChangeCallback) -> Unsubscribe:
        # Only writes made through this process are observed
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
