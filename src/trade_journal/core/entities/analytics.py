from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from trade_journal.core.entities.trade import AssetType, TradeResult, as_utc


class AnalyticsFilter(BaseModel):
    """
    Reporting filter. Every field left as None means "all".
    Date bounds are inclusive.
    """
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    asset_type: Optional[AssetType] = None
    strategy_tag: Optional[str] = None
    result: Optional[TradeResult] = None

    @field_validator("date_from", "date_to")
    @classmethod
    def normalise_bounds(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v)

    @field_validator("strategy_tag")
    @classmethod
    def normalise_tag(cls, v: Optional[str]) -> Optional[str]:
        # Stored tags are stripped, so the filter value must be too
        if v is None:
            return None
        return v.strip() or None


class EquityCurvePoint(BaseModel):
    date: datetime
    equity: float


class AnalyticsSnapshot(BaseModel):
    """
    Performance summary for the filtered trades.
    current_equity always reflects the full, unfiltered history.
    """
    total_pnl: float = 0.0
    total_profit: float = 0.0
    total_loss: float = 0.0  # Absolute value of losing trades
    win_rate: float = 0.0  # 0 - 100
    total_trades: int = 0
    wins: int = 0
    losses: int = 0
    current_equity: float = 0.0
    avg_win: float = 0.0
    avg_loss: float = 0.0
    avg_r_multiple: float = 0.0
    profit_factor: float = 0.0
    equity_curve: List[EquityCurvePoint] = Field(default_factory=list)


class FilterOptions(BaseModel):
    asset_types: List[AssetType]
    tags: List[str]
