# backend/portfolio_tracker/services/holding_service.py
"""
Holding Service for managing portfolio positions.

This service handles:
- Holding CRUD (one row per ticker)
- Placeholder holdings for tickers tracked before purchase
- Bulk upsert from the browser extension, with per-item errors
- Gain/loss metrics and allocation drift

Design Principles:
- No HTTP Knowledge: Raises domain exceptions, not HTTPException
- Cost basis is the TOTAL paid, never per share
- Partial Success: A bad item in a bulk import does not block the others

Usage:
    from portfolio_tracker.services.holding_service import HoldingService

    service = HoldingService()
    holding = service.create_holding(db, ticker="AAPL", company_name="Apple Inc.",
                                     cost_basis=Decimal("1500"), shares=Decimal("10"))
    metrics = service.calculate_metrics(holding)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select
from sqlalchemy.orm import Session

from portfolio_tracker.models import Holding
from portfolio_tracker.schemas.holdings import HoldingImportItem
from portfolio_tracker.services.constants import (
    MONEY_QUANTUM,
    PERCENT_QUANTUM,
    PRICE_QUANTUM,
)
from portfolio_tracker.services.exceptions import (
    DuplicateHoldingError,
    HoldingNotFoundError,
)

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
HUNDRED = Decimal("100")


# =============================================================================
# RESULT TYPES
# =============================================================================

@dataclass(frozen=True)
class HoldingMetrics:
    """Derived figures for one holding."""

    cost_per_share: Decimal
    current_value: Decimal
    total_cost: Decimal
    gain_loss: Decimal
    gain_loss_percent: Decimal


@dataclass
class BatchImportResult:
    """Outcome of a bulk import: upserted holdings and rejected items."""

    holdings: list[Holding] = field(default_factory=list)
    errors: list[dict[str, Any]] = field(default_factory=list)

    @property
    def success_count(self) -> int:
        return len(self.holdings)

    @property
    def failure_count(self) -> int:
        return len(self.errors)


@dataclass(frozen=True)
class AllocationEntry:
    holding_id: int
    ticker: str
    current_value: Decimal
    current_percent: Decimal
    desired_percent: Decimal | None
    drift: Decimal | None


@dataclass
class AllocationSummary:
    total_value: Decimal
    total_desired_percent: Decimal
    items: list[AllocationEntry] = field(default_factory=list)


# =============================================================================
# SERVICE
# =============================================================================

class HoldingService:
    """
    Service for reading and writing holdings.

    Every write commits its own transaction, except the bulk import which
    commits once after all items have been applied.
    """

    # =========================================================================
    # READS
    # =========================================================================

    def list_holdings(self, db: Session) -> list[Holding]:
        """All holdings ordered by ticker."""
        return list(db.scalars(select(Holding).order_by(Holding.ticker)).all())

    def get_holding(self, db: Session, holding_id: int) -> Holding:
        """
        Raises:
            HoldingNotFoundError: If no holding has this id
        """
        holding = db.get(Holding, holding_id)
        if holding is None:
            raise HoldingNotFoundError(holding_id)
        return holding

    def get_by_ticker(self, db: Session, ticker: str) -> Holding | None:
        return db.scalar(select(Holding).where(Holding.ticker == ticker.strip().upper()))

    # =========================================================================
    # WRITES
    # =========================================================================

    def create_holding(
            self,
            db: Session,
            ticker: str,
            company_name: str,
            cost_basis: Decimal,
            shares: Decimal,
            current_price: Decimal | None = None,
            desired_percent: Decimal | None = None,
    ) -> Holding:
        """
        Create a holding for a ticker that is not tracked yet.

        Raises:
            DuplicateHoldingError: If the ticker already has a holding
        """
        ticker = ticker.strip().upper()
        if self.get_by_ticker(db, ticker) is not None:
            raise DuplicateHoldingError(ticker)

        holding = Holding(
            ticker=ticker,
            company_name=company_name,
            cost_basis=cost_basis,
            shares=shares,
            current_price=current_price,
            desired_percent=desired_percent,
        )
        db.add(holding)
        db.commit()
        db.refresh(holding)

        logger.info(f"Created holding {holding.id} for {ticker}")
        return holding

    def update_holding(
            self,
            db: Session,
            holding_id: int,
            changes: dict[str, Any],
    ) -> Holding:
        """
        Apply field changes to a holding.

        Args:
            changes: Column name -> new value. Keys not present are left alone.

        Raises:
            HoldingNotFoundError: If no holding has this id
            DuplicateHoldingError: If the new ticker belongs to another holding
        """
        holding = self.get_holding(db, holding_id)

        new_ticker = changes.get("ticker")
        if new_ticker is not None:
            new_ticker = new_ticker.strip().upper()
            other = self.get_by_ticker(db, new_ticker)
            if other is not None and other.id != holding.id:
                raise DuplicateHoldingError(new_ticker)
            changes = {**changes, "ticker": new_ticker}

        for key, value in changes.items():
            setattr(holding, key, value)

        db.commit()
        db.refresh(holding)
        return holding

    def set_target(
            self,
            db: Session,
            holding_id: int,
            desired_percent: Decimal | None,
    ) -> Holding:
        """Set or clear (None) the target allocation percent."""
        return self.update_holding(db, holding_id, {"desired_percent": desired_percent})

    def delete_holding(self, db: Session, holding_id: int) -> None:
        """
        Delete a holding. Its price history is kept.

        Raises:
            HoldingNotFoundError: If no holding has this id
        """
        holding = self.get_holding(db, holding_id)
        db.delete(holding)
        db.commit()
        logger.info(f"Deleted holding {holding_id} ({holding.ticker})")

    def create_manual(
            self,
            db: Session,
            ticker: str,
            company_name: str | None = None,
    ) -> tuple[Holding, bool]:
        """
        Ensure a ticker is tracked, creating a 0-share placeholder if needed.

        Returns:
            (holding, created) where created is False if the ticker existed
        """
        ticker = ticker.strip().upper()
        existing = self.get_by_ticker(db, ticker)
        if existing is not None:
            return existing, False

        holding = self.create_holding(
            db,
            ticker=ticker,
            company_name=company_name or ticker,
            cost_basis=ZERO,
            shares=ZERO,
        )
        return holding, True

    def import_batch(self, db: Session, items: list[Any]) -> BatchImportResult:
        """
        Upsert holdings by ticker from the browser extension.

        Each item is validated on its own; invalid items are reported in
        `errors` with the original payload. An existing holding keeps its
        desired_percent since the extension never sends targets.
        """
        result = BatchImportResult()

        for raw in items:
            try:
                item = HoldingImportItem.model_validate(raw)
            except PydanticValidationError as e:
                result.errors.append({"holding": raw, "error": _describe_validation_error(e)})
                continue

            holding = self.get_by_ticker(db, item.ticker)
            if holding is None:
                holding = Holding(ticker=item.ticker)
                db.add(holding)

            holding.company_name = item.company_name
            holding.cost_basis = item.cost_basis
            holding.shares = item.shares
            holding.current_price = item.current_price

            db.flush()
            result.holdings.append(holding)

        try:
            db.commit()
        except Exception as e:
            logger.error(f"Error committing holdings import: {e}")
            db.rollback()
            raise

        for holding in result.holdings:
            db.refresh(holding)

        logger.info(
            f"Imported holdings: {result.success_count} upserted, {result.failure_count} rejected"
        )
        return result

    # =========================================================================
    # METRICS
    # =========================================================================

    def calculate_metrics(self, holding: Holding) -> HoldingMetrics:
        """
        Derive per-share cost, value and gain/loss.

        Zero shares or zero cost produce zeros, never a division error.
        """
        total_cost = Decimal(holding.cost_basis or ZERO)
        shares = Decimal(holding.shares or ZERO)

        cost_per_share = total_cost / shares if shares > 0 else ZERO
        current_value = Decimal(holding.current_price) * shares if holding.current_price else ZERO
        gain_loss = current_value - total_cost
        gain_loss_percent = gain_loss / total_cost * HUNDRED if total_cost > 0 else ZERO

        return HoldingMetrics(
            cost_per_share=cost_per_share.quantize(PRICE_QUANTUM),
            current_value=current_value.quantize(MONEY_QUANTUM),
            total_cost=total_cost.quantize(MONEY_QUANTUM),
            gain_loss=gain_loss.quantize(MONEY_QUANTUM),
            gain_loss_percent=gain_loss_percent.quantize(PERCENT_QUANTUM),
        )

    def get_allocation(self, db: Session) -> AllocationSummary:
        """
        Current weight of each holding vs. its target.

        Weights are shares of total current value. Holdings without a
        known price count as 0. Drift is current minus desired percent.
        """
        holdings = self.list_holdings(db)
        values = {h.id: self.calculate_metrics(h).current_value for h in holdings}
        total_value = sum(values.values(), ZERO)

        summary = AllocationSummary(
            total_value=total_value,
            total_desired_percent=sum(
                (Decimal(h.desired_percent) for h in holdings if h.desired_percent is not None),
                ZERO,
            ).quantize(PERCENT_QUANTUM),
        )

        for h in holdings:
            value = values[h.id]
            current_percent = (value / total_value * HUNDRED) if total_value > 0 else ZERO
            current_percent = current_percent.quantize(PERCENT_QUANTUM)
            desired = Decimal(h.desired_percent) if h.desired_percent is not None else None

            summary.items.append(AllocationEntry(
                holding_id=h.id,
                ticker=h.ticker,
                current_value=value,
                current_percent=current_percent,
                desired_percent=desired,
                drift=(current_percent - desired).quantize(PERCENT_QUANTUM) if desired is not None else None,
            ))

        return summary


def _describe_validation_error(error: PydanticValidationError) -> str:
    """First validation problem as 'field: message'."""
    first = error.errors()[0]
    loc = ".".join(str(part) for part in first.get("loc", ())) or "holding"
    return f"{loc}: {first.get('msg', 'invalid value')}"
