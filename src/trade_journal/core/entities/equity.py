"""
Equity Entities for the Trade Journal

Tracks cash flowing into and out of the trading account.
"""
from datetime import datetime
from enum import Enum
from typing import List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator

from trade_journal.core.entities.trade import as_utc, utc_now


class EquityTransactionType(str, Enum):
    DEPOSIT = "deposit"
    WITHDRAW = "withdraw"


class EquityTransactionCreate(BaseModel):
    type: EquityTransactionType
    amount: float = Field(gt=0)  # Always positive; the sign comes from type
    date: datetime
    notes: Optional[str] = None

    @field_validator("date")
    @classmethod
    def normalise_date(cls, v: datetime) -> datetime:
        return as_utc(v)

    class Config:
        json_schema_extra = {
            "example": {
                "type": "deposit",
                "amount": 10000.0,
                "date": "2024-06-01T00:00:00Z",
                "notes": "Initial funding",
            }
        }


class EquityTransaction(EquityTransactionCreate):
    """
    Represents a single deposit/withdrawal event. Immutable once recorded.
    """
    id: str = Field(default_factory=lambda: uuid4().hex)
    created_at: datetime = Field(default_factory=utc_now)

    @property
    def signed_amount(self) -> float:
        if self.type == EquityTransactionType.WITHDRAW:
            return -self.amount
        return self.amount


class EquitySummary(BaseModel):
    """
    Aggregated cash-flow data for a user.
    """
    total_deposits: float
    total_withdrawals: float
    net_transfers: float
    deposit_count: int
    withdrawal_count: int
    realized_pnl: float
    current_equity: float
    currency: str = "USD"
    converted_equity: Optional[float] = None
    conversion_rate: Optional[float] = None
    transactions: List[EquityTransaction]
