"""Unified error codes and custom exceptions.

Error code ranges:
  1xxx: Input
  2xxx: Account
  3xxx: Market
  5xxx: Position
  9xxx: System
"""


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        super().__init__(message)


class CorruptedStateError(Exception):
    """A snapshot document failed structural validation.

    Never reaches a caller: the engine loader replaces the sub-ledger with
    a fresh default and persists it.
    """


# --- 1xxx: Input ---

class InvalidInputError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(1001, f"Invalid input: {detail}", 400)


class InvalidGuestIdError(AppError):
    def __init__(self) -> None:
        super().__init__(1002, "Invalid guest id", 400)


class InvalidUsernameError(AppError):
    def __init__(self) -> None:
        super().__init__(
            1003,
            "Username must be 3-20 characters: letters, digits or underscore",
            400,
        )


# --- 2xxx: Account ---

class InsufficientFundsError(AppError):
    def __init__(self, required: float, available: float) -> None:
        self.required = required
        self.available = available
        super().__init__(
            2001,
            f"Insufficient funds: required {required:.2f}, available {available:.2f}",
            422,
        )


# --- 3xxx: Market ---

class TickerNotFoundError(AppError):
    def __init__(self, ticker: str) -> None:
        super().__init__(3001, f"Ticker not found: {ticker}", 404)


class InstrumentNotFoundError(AppError):
    def __init__(self, instrument_id: str) -> None:
        super().__init__(3002, f"Instrument not found: {instrument_id}", 404)


# --- 5xxx: Position ---

class InsufficientInventoryError(AppError):
    def __init__(self, requested: float, available: float) -> None:
        self.requested = requested
        self.available = available
        super().__init__(
            5001,
            f"Insufficient inventory: requested {requested:.4f}, available {available:.4f}",
            422,
        )


# --- 9xxx: System ---

class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)
