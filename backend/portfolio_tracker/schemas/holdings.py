# backend/portfolio_tracker/schemas/holdings.py
"""
Pydantic schemas for Holding validation.

These schemas define:
- What data clients must send (Create, Update, Manual, Target)
- What the browser extension sends in bulk (Batch)
- What data the API returns (Response, with computed metrics)

Cost basis is always the TOTAL amount paid for the position.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from portfolio_tracker.schemas.validators import validate_ticker


# =============================================================================
# BASE SCHEMA
# =============================================================================

class HoldingBase(BaseModel):
    """
    Base schema with fields common to Create, Update and Response.
    """

    ticker: str = Field(
        ...,
        min_length=1,
        max_length=20,
        examples=["AAPL", "BRK.B", "OTCFX"],
        description="Ticker symbol (normalized to uppercase)"
    )

    company_name: str = Field(
        ...,
        min_length=1,
        max_length=255,
        examples=["Apple Inc."],
    )

    cost_basis: Decimal = Field(
        ...,
        ge=0,
        description="Total amount paid for the position (not per share)"
    )

    shares: Decimal = Field(..., ge=0)

    current_price: Decimal | None = Field(
        default=None,
        ge=0,
        description="Latest known price per share"
    )

    @field_validator('ticker')
    @classmethod
    def validate_and_normalize_ticker(cls, v: str) -> str:
        return validate_ticker(v)

    @field_validator('company_name')
    @classmethod
    def normalize_company_name(cls, v: str) -> str:
        """Normalize company name: trim whitespace."""
        v = v.strip()
        if not v:
            raise ValueError("company_name cannot be blank")
        return v

    @field_validator('current_price')
    @classmethod
    def zero_price_is_unknown(cls, v: Decimal | None) -> Decimal | None:
        """A price of 0 means "not known yet"."""
        if v is not None and v == 0:
            return None
        return v


# =============================================================================
# CREATE / UPDATE SCHEMAS
# =============================================================================

class HoldingCreate(HoldingBase):
    """Schema for creating a new holding."""

    desired_percent: Decimal | None = Field(
        default=None,
        ge=0,
        le=100,
        description="Target allocation in percent of portfolio value"
    )


class HoldingUpdate(HoldingBase):
    """
    Schema for replacing a holding (PUT).

    desired_percent is only changed when the client sends it; the edit
    form does not know about targets.
    """

    desired_percent: Decimal | None = Field(default=None, ge=0, le=100)


class HoldingTargetUpdate(BaseModel):
    """Set or clear (null) a holding's target allocation."""

    desired_percent: Decimal | None = Field(
        ...,
        ge=0,
        le=100,
        examples=[25, None],
    )


class ManualHoldingCreate(BaseModel):
    """
    Track a ticker before owning it.

    Creates a placeholder with 0 shares and 0 cost so the ticker is
    included in price history syncs.
    """

    ticker: str = Field(..., min_length=1, max_length=20)
    company_name: str | None = Field(
        default=None,
        max_length=255,
        description="Defaults to the ticker"
    )

    @field_validator('ticker')
    @classmethod
    def validate_and_normalize_ticker(cls, v: str) -> str:
        return validate_ticker(v)

    @field_validator('company_name')
    @classmethod
    def blank_name_is_none(cls, v: str | None) -> str | None:
        if v is None or not v.strip():
            return None
        return v.strip()


# =============================================================================
# BATCH IMPORT (browser extension)
# =============================================================================

class HoldingImportItem(HoldingBase):
    """One holding scraped by the browser extension."""

    model_config = ConfigDict(extra="ignore")


class HoldingBatchRequest(BaseModel):
    """
    Bulk import payload.

    Items are kept raw here and validated one at a time by the service,
    so a single bad row does not reject the whole import.
    """

    holdings: list[dict[str, Any]] = Field(..., description="Holdings to upsert by ticker")


class HoldingBatchError(BaseModel):
    holding: Any
    error: str


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class HoldingResponse(BaseModel):
    """
    Holding with computed metrics.

    Metrics:
        cost_per_share: cost_basis / shares (0 when shares is 0)
        current_value: current_price * shares (0 when price unknown)
        total_cost: cost_basis
        gain_loss: current_value - total_cost
        gain_loss_percent: gain_loss / total_cost * 100 (0 when cost is 0)
    """

    model_config = ConfigDict(from_attributes=True)

    id: int
    ticker: str
    company_name: str
    cost_basis: Decimal
    shares: Decimal
    current_price: Decimal | None
    desired_percent: Decimal | None
    created_at: datetime
    updated_at: datetime

    cost_per_share: Decimal
    current_value: Decimal
    total_cost: Decimal
    gain_loss: Decimal
    gain_loss_percent: Decimal


class HoldingBatchResponse(BaseModel):
    success: int = Field(..., description="Number of holdings created or updated")
    failed: int = Field(..., description="Number of rejected items")
    holdings: list[HoldingResponse]
    errors: list[HoldingBatchError] | None = None


class AllocationItem(BaseModel):
    holding_id: int
    ticker: str
    current_value: Decimal
    current_percent: Decimal
    desired_percent: Decimal | None
    drift: Decimal | None = Field(
        default=None,
        description="current_percent - desired_percent (None without a target)"
    )


class AllocationResponse(BaseModel):
    """Current weights vs. target allocation."""

    total_value: Decimal
    total_desired_percent: Decimal
    items: list[AllocationItem]
