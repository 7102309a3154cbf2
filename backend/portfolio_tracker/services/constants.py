# backend/portfolio_tracker/services/constants.py
"""
Centralized constants for the Portfolio Tracker services.

Usage:
    from portfolio_tracker.services.constants import ALPACA_PAGE_LIMIT, RATE_LIMIT_SYNC
"""

from decimal import Decimal


# =============================================================================
# MARKET DATA - ALPACA BARS ENDPOINT
# =============================================================================

# Bars returned per page; pagination continues via next_page_token
ALPACA_PAGE_LIMIT: int = 10000

# One bar per calendar day
ALPACA_TIMEFRAME: str = "1Day"

# Prices adjusted for splits only (not dividends), so history lines up
# with share counts entered by the user
ALPACA_ADJUSTMENT: str = "split"


# =============================================================================
# PROVIDER NAMES (stored in price_bars.provider for lineage)
# =============================================================================

PROVIDER_ALPACA: str = "alpaca"
PROVIDER_YAHOO: str = "yahoo"


# =============================================================================
# PRICE PRECISION
# =============================================================================

# Prices are stored as Numeric(18, 8)
PRICE_QUANTUM: Decimal = Decimal("0.00000001")

# Holding metrics (gain/loss) are reported with cent precision
MONEY_QUANTUM: Decimal = Decimal("0.01")
PERCENT_QUANTUM: Decimal = Decimal("0.01")


# =============================================================================
# RATE LIMITING (slowapi format: "count/period")
# =============================================================================

RATE_LIMIT_DEFAULT: str = "120/minute"
RATE_LIMIT_WRITE: str = "60/minute"
RATE_LIMIT_SYNC: str = "6/minute"
RATE_LIMIT_IMPORT: str = "20/minute"
RATE_LIMIT_HEALTH: str = "300/minute"
