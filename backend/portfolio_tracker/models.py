# backend/portfolio_tracker/models.py
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import String, Date, DateTime, Numeric, UniqueConstraint, BigInteger, Integer, Index
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


class Holding(Base):
    """
    A tracked position in the portfolio.

    One row per ticker. Cost basis is the TOTAL amount paid for the position,
    not a per-share figure. A holding with zero shares and zero cost is a
    placeholder that only exists so the ticker gets price history.
    """
    __tablename__ = "holdings"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    ticker: Mapped[str] = mapped_column(String(20), unique=True, index=True)  # e.g. "AAPL"
    company_name: Mapped[str] = mapped_column(String(255))
    cost_basis: Mapped[Decimal] = mapped_column(Numeric(18, 8), default=Decimal("0"))
    shares: Mapped[Decimal] = mapped_column(Numeric(18, 8), default=Decimal("0"))
    current_price: Mapped[Decimal | None] = mapped_column(Numeric(18, 8), nullable=True)

    # Target allocation in percent of portfolio value (0-100)
    desired_percent: Mapped[Decimal | None] = mapped_column(Numeric(7, 4), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))


class PriceBar(Base):
    """
    Daily price history (OHLCV format).

    Each record is one trading day for one ticker. Rows are only ever
    written by the price history sync, which upserts on (ticker, date),
    so re-fetching a day overwrites the previous values.

    fetched_at drives the same-day refresh rule: a row written today is
    not trusted as complete until the next calendar day.
    """
    __tablename__ = "price_bars"
    __table_args__ = (
        UniqueConstraint('ticker', 'date', name='uq_price_bar_ticker_date'),
        Index('ix_price_bars_ticker_date', 'ticker', 'date'),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    ticker: Mapped[str] = mapped_column(String(20))
    date: Mapped[date] = mapped_column(Date)  # Daily data - no time component

    # =========================================================================
    # OHLCV DATA (Open, High, Low, Close, Volume)
    # =========================================================================
    # All prices use Decimal for financial precision (18 digits, 8 decimals)

    open_price: Mapped[Decimal] = mapped_column(Numeric(18, 8))
    high_price: Mapped[Decimal] = mapped_column(Numeric(18, 8))
    low_price: Mapped[Decimal] = mapped_column(Numeric(18, 8))
    close_price: Mapped[Decimal] = mapped_column(Numeric(18, 8))
    volume: Mapped[int] = mapped_column(BigInteger, default=0)

    # Not every provider reports these; NULL means "unavailable", not zero
    vwap: Mapped[Decimal | None] = mapped_column(Numeric(18, 8), nullable=True)
    trade_count: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # =========================================================================
    # METADATA (Data Lineage)
    # =========================================================================
    provider: Mapped[str] = mapped_column(String(50), default="alpaca")  # e.g., "alpaca", "alpaca_otc", "yahoo"
    fetched_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc)
    )
