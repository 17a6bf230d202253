import logging
import os
from datetime import datetime
from functools import lru_cache
from typing import List, Literal, Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# --- Imports ---
from trade_journal.core.entities.analytics import AnalyticsFilter, AnalyticsSnapshot, FilterOptions
from trade_journal.core.entities.currency import RateQuote
from trade_journal.core.entities.equity import EquitySummary, EquityTransaction, EquityTransactionCreate
from trade_journal.core.entities.risk import PositionSizeRequest, PositionSizeResult
from trade_journal.core.entities.trade import AssetType, Trade, TradeClose, TradeCreate, TradeResult
from trade_journal.core.exceptions import TradeAlreadyClosedError, TradeNotFoundError
from trade_journal.core.interfaces.datasource import IJournalDataSource
from trade_journal.core.services import AnalyticsService, JournalService
from trade_journal.infrastructure.gateways.currency_api import CurrencyRateGateway, build_rate_gateway
from trade_journal.infrastructure.persistence.memory_repo import InMemoryJournalRepo

# Setup Logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("TradeJournal")

app = FastAPI(title="Trade Journal API", version="1.0.0", description="Trade journaling, equity tracking & performance analytics")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Dependency Injection ---

@lru_cache
def get_datasource() -> IJournalDataSource:
    db_url = os.getenv("DATABASE_URL")
    if db_url:
        from trade_journal.infrastructure.persistence.postgres_repo import PostgresRepo
        try:
            return PostgresRepo(db_url)
        except Exception as e:
            logger.error(f"Failed to connect to DB: {e}. Falling back to in-memory store.")
    return InMemoryJournalRepo()


@lru_cache
def get_rate_gateway() -> CurrencyRateGateway:
    return build_rate_gateway()


def get_journal_service(db: IJournalDataSource = Depends(get_datasource)) -> JournalService:
    return JournalService(db)


def get_analytics_service(db: IJournalDataSource = Depends(get_datasource)) -> AnalyticsService:
    return AnalyticsService(db)


def get_filters(
    dateFrom: Optional[datetime] = Query(None, description="Inclusive start (ISO 8601)"),
    dateTo: Optional[datetime] = Query(None, description="Inclusive end (ISO 8601)"),
    assetType: Optional[AssetType] = Query(None, description="Omit for all assets"),
    strategyTag: Optional[str] = Query(None, description="Omit for all strategies"),
    result: Optional[TradeResult] = Query(None, description="Open, Win, Loss or BreakEven"),
) -> AnalyticsFilter:
    return AnalyticsFilter(
        date_from=dateFrom,
        date_to=dateTo,
        asset_type=assetType,
        strategy_tag=strategyTag,
        result=result,
    )

# --- Error Mapping ---

@app.exception_handler(TradeNotFoundError)
async def trade_not_found_handler(request: Request, exc: TradeNotFoundError):
    return JSONResponse(status_code=404, content={"detail": exc.message, "trade_id": exc.trade_id})


@app.exception_handler(TradeAlreadyClosedError)
async def trade_closed_handler(request: Request, exc: TradeAlreadyClosedError):
    return JSONResponse(status_code=409, content={"detail": exc.message, "trade_id": exc.trade_id})

# --- Endpoints ---

@app.get("/health")
async def health():
    return {"status": "healthy", "mode": "postgres" if os.getenv("DATABASE_URL") else "in-memory"}


@app.get("/v1/trades", response_model=List[Trade])
async def list_trades(
    user: str = Query(..., description="User ID"),
    filters: AnalyticsFilter = Depends(get_filters),
    journal: JournalService = Depends(get_journal_service),
):
    """Trade history, newest first. The date range applies to the open date."""
    return await journal.list_trades(user, filters)


@app.post("/v1/trades", response_model=Trade, status_code=201)
async def create_trade(
    data: TradeCreate,
    user: str = Query(..., description="User ID"),
    journal: JournalService = Depends(get_journal_service),
):
    return await journal.create_trade(user, data)


@app.get("/v1/trades/open", response_model=List[Trade])
async def list_open_trades(
    user: str = Query(..., description="User ID"),
    journal: JournalService = Depends(get_journal_service),
):
    return await journal.list_open_trades(user)


@app.get("/v1/trades/{trade_id}", response_model=Trade)
async def get_trade(
    trade_id: str,
    user: str = Query(..., description="User ID"),
    journal: JournalService = Depends(get_journal_service),
):
    return await journal.get_trade(user, trade_id)


@app.put("/v1/trades/{trade_id}", response_model=Trade)
async def edit_trade(
    trade_id: str,
    data: TradeCreate,
    user: str = Query(..., description="User ID"),
    journal: JournalService = Depends(get_journal_service),
):
    return await journal.edit_trade(user, trade_id, data)


@app.post("/v1/trades/{trade_id}/close", response_model=Trade)
async def close_trade(
    trade_id: str,
    data: TradeClose,
    user: str = Query(..., description="User ID"),
    journal: JournalService = Depends(get_journal_service),
):
    return await journal.close_position(user, trade_id, data)


@app.delete("/v1/trades/{trade_id}")
async def delete_trade(
    trade_id: str,
    user: str = Query(..., description="User ID"),
    journal: JournalService = Depends(get_journal_service),
):
    await journal.delete_trade(user, trade_id)
    return {"status": "deleted", "id": trade_id}


@app.get("/v1/equity", response_model=EquitySummary)
async def get_equity(
    user: str = Query(..., description="User ID"),
    currency: Literal["USD", "IDR"] = Query("USD", description="'USD' or 'IDR'"),
    journal: JournalService = Depends(get_journal_service),
    rates: CurrencyRateGateway = Depends(get_rate_gateway),
):
    """
    Deposits, withdrawals and the resulting account equity.
    With currency=IDR the current equity is also converted at the latest rate.
    """
    rate = None
    if currency == rates.quote:
        rate = await rates.get_rate()
    return await journal.get_equity_summary(user, rate)


@app.post("/v1/equity", response_model=EquityTransaction, status_code=201)
async def record_equity_transaction(
    data: EquityTransactionCreate,
    user: str = Query(..., description="User ID"),
    journal: JournalService = Depends(get_journal_service),
):
    return await journal.record_equity_transaction(user, data)


@app.get("/v1/analytics", response_model=AnalyticsSnapshot)
async def get_analytics(
    user: str = Query(..., description="User ID"),
    filters: AnalyticsFilter = Depends(get_filters),
    analytics: AnalyticsService = Depends(get_analytics_service),
):
    """
    Performance metrics and equity curve for the filtered closed trades.
    currentEquity ignores the filters.
    """
    return await analytics.get_snapshot(user, filters)


@app.post("/v1/calculator/position-size", response_model=PositionSizeResult)
async def position_size(
    request: PositionSizeRequest,
    user: str = Query(..., description="User ID"),
    analytics: AnalyticsService = Depends(get_analytics_service),
):
    return await analytics.calculate_position_size(user, request)


@app.get("/v1/currency/rate", response_model=RateQuote)
async def get_currency_rate(rates: CurrencyRateGateway = Depends(get_rate_gateway)):
    return await rates.get_rate()


@app.get("/v1/filters/options", response_model=FilterOptions)
async def get_filter_options(
    user: str = Query(..., description="User ID"),
    analytics: AnalyticsService = Depends(get_analytics_service),
):
    return await analytics.get_filter_options(user)
