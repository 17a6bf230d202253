from datetime import datetime
from typing import Iterable, List, Optional

from trade_journal.core.entities.analytics import AnalyticsFilter, FilterOptions
from trade_journal.core.entities.trade import AssetType, Trade
from trade_journal.core.use_cases.pnl_calculator import classify_result

CLOSE_DATE = "close"
OPEN_DATE = "open"


def _relevant_date(trade: Trade, date_field: str) -> Optional[datetime]:
    if date_field == OPEN_DATE:
        return trade.open_date
    return trade.close_date


def matches_date(trade: Trade, filters: AnalyticsFilter, date_field: str = CLOSE_DATE) -> bool:
    if filters.date_from is None and filters.date_to is None:
        return True

    when = _relevant_date(trade, date_field)
    if when is None:
        return False
    if filters.date_from is not None and when < filters.date_from:
        return False
    if filters.date_to is not None and when > filters.date_to:
        return False
    return True


def matches_asset(trade: Trade, filters: AnalyticsFilter) -> bool:
    return filters.asset_type is None or trade.asset_type == filters.asset_type


def matches_strategy(trade: Trade, filters: AnalyticsFilter) -> bool:
    return not filters.strategy_tag or filters.strategy_tag in trade.tags


def matches_result(trade: Trade, filters: AnalyticsFilter) -> bool:
    return filters.result is None or classify_result(trade) == filters.result


def filter_trades(
    trades: Iterable[Trade],
    filters: Optional[AnalyticsFilter] = None,
    date_field: str = CLOSE_DATE,
) -> List[Trade]:
    """
    Apply the reporting predicates. Input order is preserved.
    date_field picks which date the range applies to: the close date for
    performance reporting, the open date for trade history listings.
    """
    if filters is None:
        return list(trades)

    return [
        t for t in trades
        if matches_date(t, filters, date_field)
        and matches_asset(t, filters)
        and matches_strategy(t, filters)
        and matches_result(t, filters)
    ]


def sort_newest_first(trades: Iterable[Trade]) -> List[Trade]:
    return sorted(trades, key=lambda t: t.open_date, reverse=True)


def available_filter_options(trades: Iterable[Trade]) -> FilterOptions:
    """Distinct asset types and tags present in the data, for filter dropdowns."""
    asset_types = set()
    tags = set()
    for t in trades:
        asset_types.add(t.asset_type)
        tags.update(t.tags)

    ordered_assets = [a for a in AssetType if a in asset_types]
    return FilterOptions(asset_types=ordered_assets, tags=sorted(tags, key=str.lower))
