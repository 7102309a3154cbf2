# backend/portfolio_tracker/schemas/__init__.py
"""
Pydantic schemas for API request/response validation.

This package contains all Pydantic schemas organized by domain:
- errors: Error response formats
- holdings: Holding CRUD, bulk import and allocation
- price_history: Stored bars, sync trigger and sync status
- validators: Reusable validation functions (ticker, date range)

Usage:
    from portfolio_tracker.schemas import HoldingCreate, HoldingResponse
    from portfolio_tracker.schemas import SyncResponse, SyncStatusResponse
"""

from portfolio_tracker.schemas.errors import ErrorDetail, ValidationErrorDetail
from portfolio_tracker.schemas.holdings import (
    HoldingCreate,
    HoldingUpdate,
    HoldingTargetUpdate,
    ManualHoldingCreate,
    HoldingImportItem,
    HoldingBatchRequest,
    HoldingBatchError,
    HoldingBatchResponse,
    HoldingResponse,
    AllocationItem,
    AllocationResponse,
)
from portfolio_tracker.schemas.price_history import (
    PriceBarResponse,
    TickerPriceHistoryResponse,
    SyncDetails,
    SyncResponse,
    SyncErrorResponse,
    TickerCoverageResponse,
    SyncStatusResponse,
)

__all__ = [
    # Errors
    "ErrorDetail",
    "ValidationErrorDetail",
    # Holdings
    "HoldingCreate",
    "HoldingUpdate",
    "HoldingTargetUpdate",
    "ManualHoldingCreate",
    "HoldingImportItem",
    "HoldingBatchRequest",
    "HoldingBatchError",
    "HoldingBatchResponse",
    "HoldingResponse",
    "AllocationItem",
    "AllocationResponse",
    # Price history
    "PriceBarResponse",
    "TickerPriceHistoryResponse",
    "SyncDetails",
    "SyncResponse",
    "SyncErrorResponse",
    "TickerCoverageResponse",
    "SyncStatusResponse",
]
