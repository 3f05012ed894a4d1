"""Unified error codes and custom exceptions.

Error code ranges:
  1xxx: Auth
  2xxx: Account / balance
  3xxx: Portfolio / holdings
  4xxx: Input validation
  9xxx: System
"""

from decimal import Decimal
from typing import Any


class AppError(Exception):
    """Base application error.

    ``details`` is returned to the caller in the response ``data`` field so
    they can act on the failure (amounts, symbols, violated fields).
    """

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        self.details = details
        super().__init__(message)


class StaleWriteError(Exception):
    """A compare-and-swap on a versioned row matched no rows.

    Internal signal only: the mutation core rolls back and retries, and
    surfaces ConcurrentModificationError once retries are exhausted.
    """

    def __init__(self, table: str, key: str) -> None:
        self.table = table
        self.key = key
        super().__init__(f"Stale write on {table} for {key}")


# --- 1xxx: Auth ---

class InvalidCredentialsError(AppError):
    def __init__(self) -> None:
        super().__init__(1003, "Invalid or expired token", 401)


# --- 2xxx: Account ---

class InsufficientBalanceError(AppError):
    def __init__(self, required: Decimal, available: Decimal) -> None:
        super().__init__(
            2001,
            f"Insufficient balance: required {required}, available {available}",
            422,
            {"required": str(required), "available": str(available)},
        )


class AccountNotFoundError(AppError):
    def __init__(self, user_id: str) -> None:
        super().__init__(2002, f"Account not found for user {user_id}", 404)


# --- 3xxx: Portfolio ---

class PortfolioNotFoundError(AppError):
    def __init__(self, user_id: str) -> None:
        super().__init__(3001, f"Portfolio not found for user {user_id}", 404)


class HoldingNotFoundError(AppError):
    def __init__(self, symbol: str) -> None:
        super().__init__(
            3002, f"Holding not found: {symbol}", 404, {"symbol": symbol}
        )


class InsufficientQuantityError(AppError):
    def __init__(self, symbol: str, available: Decimal, requested: Decimal) -> None:
        super().__init__(
            3003,
            f"Insufficient quantity to sell {symbol}: available {available}, requested {requested}",
            422,
            {"symbol": symbol, "available": str(available), "requested": str(requested)},
        )


# --- 4xxx: Input ---

class InvalidInputError(AppError):
    def __init__(self, errors: list[str]) -> None:
        self.errors = errors
        super().__init__(
            4001, f"Validation failed: {'; '.join(errors)}", 400, {"errors": errors}
        )


# --- 9xxx: System ---

class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)


class ConcurrentModificationError(AppError):
    def __init__(self, user_id: str) -> None:
        super().__init__(
            9003, f"Portfolio for user {user_id} was modified concurrently, retry", 409
        )


class StorageFailureError(AppError):
    """Opaque on purpose: the caller only learns that nothing was applied."""

    def __init__(self) -> None:
        super().__init__(9004, "Internal server error", 500)


class UpstreamPriceUnavailableError(AppError):
    """Raised by the price feed client; always absorbed by the price oracle."""

    def __init__(self, symbol: str, reason: str) -> None:
        self.symbol = symbol
        self.reason = reason
        super().__init__(9005, f"Price feed unavailable for {symbol}: {reason}", 502)
