# backend/portfolio_tracker/routers/holdings.py
"""
Holding management endpoints.

Provides CRUD for holdings plus the two ways tickers enter the system
without the edit form:
- POST /holdings/manual: track a ticker before buying it
- POST /holdings/batch: bulk upsert from the browser extension

Every holding is returned with computed gain/loss metrics.
"""

import logging

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.orm import Session

from portfolio_tracker.database import get_db
from portfolio_tracker.dependencies import get_holding_service
from portfolio_tracker.middleware.rate_limit import limiter, RATE_LIMIT_WRITE, RATE_LIMIT_IMPORT
from portfolio_tracker.models import Holding
from portfolio_tracker.schemas.holdings import (
    AllocationItem,
    AllocationResponse,
    HoldingBatchError,
    HoldingBatchRequest,
    HoldingBatchResponse,
    HoldingCreate,
    HoldingResponse,
    HoldingTargetUpdate,
    HoldingUpdate,
    ManualHoldingCreate,
)
from portfolio_tracker.services.holding_service import HoldingService

logger = logging.getLogger(__name__)

# =============================================================================
# ROUTER SETUP
# =============================================================================

router = APIRouter(
    prefix="/holdings",
    tags=["Holdings"],
)


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def to_response(service: HoldingService, holding: Holding) -> HoldingResponse:
    """Combine stored columns with computed metrics."""
    metrics = service.calculate_metrics(holding)
    return HoldingResponse(
        id=holding.id,
        ticker=holding.ticker,
        company_name=holding.company_name,
        cost_basis=holding.cost_basis,
        shares=holding.shares,
        current_price=holding.current_price,
        desired_percent=holding.desired_percent,
        created_at=holding.created_at,
        updated_at=holding.updated_at,
        cost_per_share=metrics.cost_per_share,
        current_value=metrics.current_value,
        total_cost=metrics.total_cost,
        gain_loss=metrics.gain_loss,
        gain_loss_percent=metrics.gain_loss_percent,
    )


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.get(
    "",
    response_model=list[HoldingResponse],
    summary="List holdings",
)
def list_holdings(
        db: Session = Depends(get_db),
        service: HoldingService = Depends(get_holding_service),
) -> list[HoldingResponse]:
    """All holdings ordered by ticker, with gain/loss metrics."""
    return [to_response(service, h) for h in service.list_holdings(db)]


@router.post(
    "",
    response_model=HoldingResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a holding",
)
@limiter.limit(RATE_LIMIT_WRITE)
def create_holding(
        request: Request,
        payload: HoldingCreate,
        db: Session = Depends(get_db),
        service: HoldingService = Depends(get_holding_service),
) -> HoldingResponse:
    """
    Create a holding for a new ticker.

    - **cost_basis** is the total paid for the position, not per share

    Raises **409** if the ticker already has a holding.
    """
    holding = service.create_holding(db, **payload.model_dump())
    return to_response(service, holding)


@router.get(
    "/allocation",
    response_model=AllocationResponse,
    summary="Current vs. target allocation",
)
def get_allocation(
        db: Session = Depends(get_db),
        service: HoldingService = Depends(get_holding_service),
) -> AllocationResponse:
    """
    Weight of each holding in total current value, compared with its
    desired_percent. Drift is null for holdings without a target.
    """
    summary = service.get_allocation(db)
    return AllocationResponse(
        total_value=summary.total_value,
        total_desired_percent=summary.total_desired_percent,
        items=[
            AllocationItem(
                holding_id=entry.holding_id,
                ticker=entry.ticker,
                current_value=entry.current_value,
                current_percent=entry.current_percent,
                desired_percent=entry.desired_percent,
                drift=entry.drift,
            )
            for entry in summary.items
        ],
    )


@router.post(
    "/manual",
    response_model=HoldingResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Track a ticker without a position",
    responses={200: {"description": "Ticker was already tracked"}},
)
@limiter.limit(RATE_LIMIT_WRITE)
def create_manual_holding(
        request: Request,
        response: Response,
        payload: ManualHoldingCreate,
        db: Session = Depends(get_db),
        service: HoldingService = Depends(get_holding_service),
) -> HoldingResponse:
    """
    Create a 0-share placeholder so the ticker gets price history.

    Returns the existing holding with **200** if the ticker is already tracked.
    """
    holding, created = service.create_manual(db, payload.ticker, payload.company_name)
    if not created:
        response.status_code = status.HTTP_200_OK
    return to_response(service, holding)


@router.post(
    "/batch",
    response_model=HoldingBatchResponse,
    response_model_exclude_unset=True,
    status_code=status.HTTP_201_CREATED,
    summary="Bulk import holdings (browser extension)",
)
@limiter.limit(RATE_LIMIT_IMPORT)
def import_holdings(
        request: Request,
        payload: HoldingBatchRequest,
        db: Session = Depends(get_db),
        service: HoldingService = Depends(get_holding_service),
) -> HoldingBatchResponse:
    """
    Upsert holdings by ticker.

    Items are validated one by one. Rejected items are listed in
    **errors** (omitted when everything succeeded); the rest are saved.
    """
    result = service.import_batch(db, payload.holdings)

    body = {
        "success": result.success_count,
        "failed": result.failure_count,
        "holdings": [to_response(service, h) for h in result.holdings],
    }
    if result.errors:
        body["errors"] = [HoldingBatchError(**e) for e in result.errors]
    return HoldingBatchResponse(**body)


@router.get(
    "/{holding_id}",
    response_model=HoldingResponse,
    summary="Get a holding by ID",
)
def get_holding(
        holding_id: int,
        db: Session = Depends(get_db),
        service: HoldingService = Depends(get_holding_service),
) -> HoldingResponse:
    """Raises **404** if the holding does not exist."""
    return to_response(service, service.get_holding(db, holding_id))


@router.put(
    "/{holding_id}",
    response_model=HoldingResponse,
    summary="Replace a holding",
)
@limiter.limit(RATE_LIMIT_WRITE)
def update_holding(
        request: Request,
        holding_id: int,
        payload: HoldingUpdate,
        db: Session = Depends(get_db),
        service: HoldingService = Depends(get_holding_service),
) -> HoldingResponse:
    """
    Replace ticker, name, cost basis, shares and price.

    desired_percent is only changed when present in the body.
    Raises **404** if missing, **409** if the new ticker is taken.
    """
    changes = payload.model_dump(exclude={"desired_percent"})
    if "desired_percent" in payload.model_fields_set:
        changes["desired_percent"] = payload.desired_percent

    holding = service.update_holding(db, holding_id, changes)
    return to_response(service, holding)


@router.patch(
    "/{holding_id}/target",
    response_model=HoldingResponse,
    summary="Set or clear the target allocation",
)
@limiter.limit(RATE_LIMIT_WRITE)
def set_holding_target(
        request: Request,
        holding_id: int,
        payload: HoldingTargetUpdate,
        db: Session = Depends(get_db),
        service: HoldingService = Depends(get_holding_service),
) -> HoldingResponse:
    """Send `desired_percent: null` to clear the target."""
    holding = service.set_target(db, holding_id, payload.desired_percent)
    return to_response(service, holding)


@router.delete(
    "/{holding_id}",
    summary="Delete a holding",
)
@limiter.limit(RATE_LIMIT_WRITE)
def delete_holding(
        request: Request,
        holding_id: int,
        db: Session = Depends(get_db),
        service: HoldingService = Depends(get_holding_service),
) -> dict:
    """
    Delete a holding. Stored price history for the ticker is kept.

    Raises **404** if the holding does not exist.
    """
    service.delete_holding(db, holding_id)
    return {"success": True}
