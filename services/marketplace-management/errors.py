"""Error kinds and exceptions raised by the marketplace services."""
from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Closed set of error tags returned to clients in the ``code`` field."""

    VALIDATION = "VALIDATION"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    OUT_OF_STOCK = "OUT_OF_STOCK"
    OFFLINE = "OFFLINE"
    SERVER_ERROR = "SERVER_ERROR"


class MarketplaceError(Exception):
    """Base class for errors reported to the caller as ``{error, code}``."""

    kind = ErrorKind.SERVER_ERROR

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.kind.value}


class ValidationError(MarketplaceError):
    kind = ErrorKind.VALIDATION


class NotFoundError(MarketplaceError):
    kind = ErrorKind.NOT_FOUND


class ForbiddenError(MarketplaceError):
    """The resource exists but belongs to another user."""

    kind = ErrorKind.FORBIDDEN


class OutOfStockError(MarketplaceError):
    kind = ErrorKind.OUT_OF_STOCK

    def __init__(self, message: str = "Not enough stock available", product_id: Optional[str] = None,
                 available: Optional[int] = None, requested: Optional[int] = None):
        super().__init__(message)
        self.product_id = product_id
        self.available = available
        self.requested = requested


class AuthenticationError(MarketplaceError):
    kind = ErrorKind.UNAUTHORIZED


class ServiceUnavailableError(MarketplaceError):
    """A backend collaborator (identity service, database) could not be reached."""

    kind = ErrorKind.OFFLINE


class RepositoryError(MarketplaceError):
    """Unexpected persistence failure."""

    kind = ErrorKind.SERVER_ERROR
