# backend/portfolio_tracker/services/exceptions.py
"""
Service layer exceptions.

These exceptions represent domain-specific errors and contain NO HTTP knowledge.
The router layer is responsible for mapping these to appropriate HTTP responses.

Exception Hierarchy:
    ServiceError (base)
    ├── ValidationError
    ├── NotFoundError
    │   └── HoldingNotFoundError
    ├── DuplicateHoldingError
    └── MarketDataError
        ├── ProviderConfigurationError
        ├── ProviderUnavailableError
        └── RateLimitError
"""


class ServiceError(Exception):
    """
    Base exception for all service layer errors.

    Attributes:
        message: Human-readable error description
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message


# =============================================================================
# VALIDATION ERRORS
# =============================================================================


class ValidationError(ServiceError):
    """
    Raised when input validation fails inside a service.

    Request body validation is handled by Pydantic; this covers rules
    that need the database or span several fields.

    Attributes:
        field: The field that failed validation (optional)
    """

    def __init__(self, message: str, field: str | None = None) -> None:
        self.field = field
        super().__init__(message)


# =============================================================================
# HOLDING ERRORS
# =============================================================================


class NotFoundError(ServiceError):
    """
    Base exception for resource not found errors.

    Attributes:
        resource_type: Type of resource (e.g., "Holding")
        resource_id: Identifier of the resource
    """

    def __init__(
            self,
            message: str,
            resource_type: str | None = None,
            resource_id: int | str | None = None,
    ) -> None:
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(message)


class HoldingNotFoundError(NotFoundError):
    """Raised when a holding id does not exist."""

    def __init__(self, holding_id: int) -> None:
        self.holding_id = holding_id
        super().__init__(
            f"Holding {holding_id} not found",
            resource_type="Holding",
            resource_id=holding_id,
        )


class DuplicateHoldingError(ServiceError):
    """Raised when creating a holding for a ticker that is already tracked."""

    def __init__(self, ticker: str) -> None:
        self.ticker = ticker
        super().__init__(f"A holding for ticker '{ticker}' already exists")


# =============================================================================
# MARKET DATA PROVIDER ERRORS
# =============================================================================


class MarketDataError(ServiceError):
    """
    Base exception for market data provider failures.

    Attributes:
        provider: Name of the provider that failed
    """

    def __init__(self, message: str, provider: str | None = None) -> None:
        self.provider = provider
        super().__init__(message)


class ProviderConfigurationError(MarketDataError):
    """
    Raised before any network call when a provider lacks credentials
    or other required configuration.

    This is NOT a retryable error.
    """

    def __init__(self, provider: str, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Provider '{provider}' is not configured: {reason}", provider=provider)


class ProviderUnavailableError(MarketDataError):
    """
    Raised when a market data provider cannot serve a request.

    Examples:
    - Network timeout or connection error
    - Server errors (500, 502, 503)
    - A 2xx response whose body is not JSON

    Retried with backoff by MarketDataProvider._execute_with_retry.

    Attributes:
        status_code: HTTP status if the provider answered, else None
    """

    def __init__(self, provider: str, reason: str, status_code: int | None = None) -> None:
        message = f"Provider '{provider}' is unavailable: {reason}"
        super().__init__(message, provider=provider)
        self.reason = reason
        self.status_code = status_code


class RateLimitError(MarketDataError):
    """
    Raised when the provider's rate limit has been exceeded.

    This is a retryable error (with backoff).

    Attributes:
        retry_after: Seconds to wait before retrying (if provided by API)
    """

    def __init__(self, provider: str, retry_after: int | None = None) -> None:
        message = f"Rate limit exceeded for provider '{provider}'"
        if retry_after:
            message += f" (retry after {retry_after}s)"
        super().__init__(message, provider=provider)
        self.retry_after = retry_after


__all__ = [
    "ServiceError",
    "ValidationError",
    "NotFoundError",
    "HoldingNotFoundError",
    "DuplicateHoldingError",
    "MarketDataError",
    "ProviderConfigurationError",
    "ProviderUnavailableError",
    "RateLimitError",
]
