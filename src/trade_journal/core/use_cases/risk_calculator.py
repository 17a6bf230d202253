from typing import Dict, Optional

from trade_journal.core.entities.risk import PositionSizeResult
from trade_journal.core.entities.trade import AssetType

# Units per standard lot
STANDARD_CONTRACT_SIZES: Dict[AssetType, float] = {
    AssetType.FOREX: 100_000.0,
}


def contract_size_for(asset_type: Optional[AssetType]) -> Optional[float]:
    if asset_type is None:
        return None
    return STANDARD_CONTRACT_SIZES.get(asset_type)


def calculate_position_size(
    total_equity: Optional[float],
    risk_percentage: Optional[float],
    entry_price: Optional[float],
    stop_loss_price: Optional[float],
    contract_size: Optional[float] = None,
) -> PositionSizeResult:
    """
    Live-preview sizing: how many units can be bought so that hitting the
    stop loses risk_percentage of total_equity.
    Missing inputs give an all-zero result rather than an error.
    """
    if not total_equity or not risk_percentage or not entry_price or not stop_loss_price:
        return PositionSizeResult()
    if total_equity <= 0 or risk_percentage <= 0 or entry_price <= 0 or stop_loss_price <= 0:
        return PositionSizeResult()

    risk_amount = total_equity * (risk_percentage / 100)
    risk_per_unit = abs(entry_price - stop_loss_price)

    if risk_per_unit == 0:
        return PositionSizeResult(risk_amount=risk_amount, total_equity=total_equity)

    position_size = risk_amount / risk_per_unit
    lot_size = position_size / contract_size if contract_size and contract_size > 0 else 0.0

    return PositionSizeResult(
        risk_amount=risk_amount,
        risk_per_unit=risk_per_unit,
        position_size=position_size,
        lot_size=lot_size,
        total_equity=total_equity,
    )
