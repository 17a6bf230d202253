from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator, model_validator


class AssetType(str, Enum):
    STOCK = "Stock"
    CRYPTO = "Crypto"
    FOREX = "Forex"


class Position(str, Enum):
    LONG = "Long"
    SHORT = "Short"


class TradeResult(str, Enum):
    OPEN = "Open"
    WIN = "Win"
    LOSS = "Loss"
    BREAK_EVEN = "BreakEven"


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Naive datetimes are taken to be UTC so every stored date is comparable."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TradeFields(BaseModel):
    ticker: str
    asset_type: AssetType
    position: Position
    open_date: datetime
    close_date: Optional[datetime] = None
    entry_price: float = Field(gt=0)
    exit_price: Optional[float] = Field(default=None, gt=0)
    position_size: float = Field(gt=0)
    stop_loss_price: Optional[float] = None
    take_profit_price: Optional[float] = None
    commission: Optional[float] = None
    tags: List[str] = Field(default_factory=list)
    entry_reason: Optional[str] = None
    image_url_before: Optional[str] = None
    image_url_after: Optional[str] = None

    @field_validator("ticker")
    @classmethod
    def normalise_ticker(cls, v: str) -> str:
        v = v.strip().upper()
        if not v:
            raise ValueError("ticker is required")
        return v

    @field_validator("open_date", "close_date")
    @classmethod
    def normalise_dates(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v)

    @field_validator("tags")
    @classmethod
    def drop_blank_tags(cls, v: List[str]) -> List[str]:
        return [t.strip() for t in v if t and t.strip()]


class TradeCreate(TradeFields):
    """
    Input for creating or fully replacing a trade.
    Exit price and close date must be given together or not at all.
    """

    @model_validator(mode="after")
    def check_close_state(self) -> "TradeCreate":
        if (self.exit_price is None) != (self.close_date is None):
            raise ValueError("exit_price and close_date must be set together or both left empty")
        if self.close_date is not None and self.close_date < self.open_date:
            raise ValueError("close_date cannot be before open_date")
        return self

    class Config:
        json_schema_extra = {
            "example": {
                "ticker": "btcusd",
                "asset_type": "Crypto",
                "position": "Long",
                "open_date": "2024-06-01T09:30:00Z",
                "entry_price": 67000.0,
                "position_size": 0.1,
                "stop_loss_price": 66000.0,
                "tags": ["Breakout"],
            }
        }


class TradeClose(BaseModel):
    exit_price: float = Field(gt=0)
    close_date: datetime

    @field_validator("close_date")
    @classmethod
    def normalise_close_date(cls, v: datetime) -> datetime:
        return as_utc(v)


class Trade(TradeFields):
    """
    Stored trade record used throughout the core logic.
    Compatible with FastAPI serialisation.
    """
    id: str = Field(default_factory=lambda: uuid4().hex)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: Optional[datetime] = None
