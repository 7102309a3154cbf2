# backend/portfolio_tracker/routers/price_history.py
"""
Price history endpoints.

Key features:
- Trigger a gap-filling sync for every tracked ticker
- Check calendar coverage per ticker
- Read stored daily bars

The sync endpoints answer with a {success, ...} envelope. Failures are
reported as `{success: false, error}` with status 500 rather than the
generic error format.
"""

import logging
from datetime import date

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from portfolio_tracker.dependencies import get_price_store, get_sync_service
from portfolio_tracker.middleware.rate_limit import limiter, RATE_LIMIT_SYNC
from portfolio_tracker.schemas.price_history import (
    PriceBarResponse,
    SyncDetails,
    SyncErrorResponse,
    SyncResponse,
    SyncStatusResponse,
    TickerCoverageResponse,
    TickerPriceHistoryResponse,
)
from portfolio_tracker.schemas.validators import validate_date_range, validate_ticker_query
from portfolio_tracker.services.exceptions import ServiceError, ValidationError
from portfolio_tracker.services.market_data.sync_service import PriceHistorySyncService
from portfolio_tracker.services.price_store import SqlAlchemyPriceStore

logger = logging.getLogger(__name__)

# =============================================================================
# ROUTER SETUP
# =============================================================================

router = APIRouter(
    prefix="/price-history",
    tags=["Price History"],
)


# =============================================================================
# SYNC
# =============================================================================

@router.post(
    "/sync",
    response_model=SyncResponse,
    summary="Sync missing price history",
    responses={500: {"model": SyncErrorResponse, "description": "Sync failed"}},
)
@limiter.limit(RATE_LIMIT_SYNC)
def sync_price_history(
        request: Request,
        service: PriceHistorySyncService = Depends(get_sync_service),
        store: SqlAlchemyPriceStore = Depends(get_price_store),
):
    """
    Fill every missing daily bar since the configured start date.

    Tickers the primary provider has no data for are retried one by one
    against the fallback providers; `details.fallback_sources` names the
    provider that supplied each of them.

    Bars fetched earlier today are treated as provisional and refreshed.
    """
    try:
        summary = service.run_sync(store)
    except (ServiceError, SQLAlchemyError) as e:
        logger.error(f"Price history sync failed: {e}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=SyncErrorResponse(error=str(e)).model_dump(),
        )
    except Exception:
        logger.exception("Price history sync failed unexpectedly")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=SyncErrorResponse(error="Price history sync failed").model_dump(),
        )

    if summary.tickers_processed == 0:
        return SyncResponse(synced=0, message=summary.message)

    return SyncResponse(
        synced=summary.synced,
        message=summary.message,
        details=SyncDetails(
            tickers_processed=summary.tickers_processed,
            records_found=summary.records_found,
            records_inserted=summary.synced,
            fallback_tickers=summary.fallback_tickers,
            fallback_sources=summary.fallback_sources,
        ),
    )


@router.get(
    "/sync",
    response_model=SyncStatusResponse,
    summary="Get price history coverage",
)
def get_sync_status(
        service: PriceHistorySyncService = Depends(get_sync_service),
        store: SqlAlchemyPriceStore = Depends(get_price_store),
) -> SyncStatusResponse:
    """
    Count stored vs. missing trading days per ticker.

    Read-only; nothing is fetched.
    """
    coverage = service.get_status(store)
    return SyncStatusResponse(
        start_date=coverage.start_date,
        end_date=coverage.end_date,
        trading_days=coverage.trading_days,
        tickers={
            ticker: TickerCoverageResponse(
                total=c.total,
                existing=c.existing,
                missing=c.missing,
            )
            for ticker, c in coverage.tickers.items()
        },
    )


# =============================================================================
# READ
# =============================================================================

@router.get(
    "",
    response_model=None,
    summary="Get stored price history",
)
def get_price_history(
        ticker: str | None = Query(default=None, description="Single ticker; all tickers if omitted"),
        start: date | None = Query(default=None, description="First date (inclusive)"),
        end: date | None = Query(default=None, description="Last date (inclusive)"),
        store: SqlAlchemyPriceStore = Depends(get_price_store),
) -> TickerPriceHistoryResponse | dict[str, list[PriceBarResponse]]:
    """
    Stored daily bars, oldest first.

    With `ticker`: `{ticker, count, data}`.
    Without: `{TICKER: [bars...]}` for every tracked ticker.
    """
    try:
        ticker = validate_ticker_query(ticker)
        start, end = validate_date_range(start, end)
    except ValueError as e:
        raise ValidationError(str(e))

    if ticker is not None:
        rows = store.get_price_history(ticker, start, end)
        return TickerPriceHistoryResponse(
            ticker=ticker,
            count=len(rows),
            data=[PriceBarResponse.model_validate(r) for r in rows],
        )

    return {
        t: [PriceBarResponse.model_validate(r) for r in store.get_price_history(t, start, end)]
        for t in store.all_tickers()
    }
