from typing import Optional

from pydantic import BaseModel, Field

from trade_journal.core.entities.trade import AssetType


class PositionSizeRequest(BaseModel):
    """
    Calculator input. total_equity falls back to the account's current
    equity when omitted. Prices may be left out while the form is being
    filled in; the result is then all zeros.
    """
    total_equity: Optional[float] = Field(default=None, gt=0)
    risk_percentage: float = Field(default=1.0, gt=0, le=100)
    entry_price: Optional[float] = Field(default=None, gt=0)
    stop_loss_price: Optional[float] = Field(default=None, gt=0)
    asset_type: Optional[AssetType] = None
    contract_size: Optional[float] = Field(default=None, gt=0)


class PositionSizeResult(BaseModel):
    risk_amount: float = 0.0
    risk_per_unit: float = 0.0
    position_size: float = 0.0  # Units (shares, coins, currency units)
    lot_size: float = 0.0  # Only set when a contract size applies
    total_equity: float = 0.0
