from decimal import Decimal
from typing import Iterable, Optional


class CopyEngineError(Exception):
    """Base class for all copy engine errors"""
    code = "copy_engine_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


# Calculation-stage errors: raised before any order is placed
class EmptyPortfolio(CopyEngineError):
    """Raised when the source portfolio holds no positions"""
    code = "empty_portfolio"

    def __init__(self, message: str = "Source portfolio has no positions"):
        super().__init__(message)


class InvalidMagnitude(CopyEngineError):
    """Raised when notional values or prices are zero or negative"""
    code = "invalid_magnitude"

    def __init__(self, symbols: Iterable[str], message: Optional[str] = None):
        self.symbols = list(symbols)
        super().__init__(message or f"Non-positive notional value for: {', '.join(self.symbols)}")

    def to_dict(self) -> dict:
        return {**super().to_dict(), "symbols": self.symbols}


class DistributionIncomplete(CopyEngineError):
    """Raised when portfolio percentages do not sum to 1 within tolerance"""
    code = "distribution_incomplete"

    def __init__(self, total: Decimal):
        self.total = total
        super().__init__(f"Portfolio percentages sum to {total}, expected 1")


class InsufficientBalance(CopyEngineError):
    """Raised when the allocated capital cannot cover the copy"""
    code = "insufficient_balance"

    def __init__(self, shortfall: Decimal, required: Decimal, available: Decimal,
                 message: Optional[str] = None):
        self.shortfall = shortfall
        self.required = required
        self.available = available
        super().__init__(
            message or f"Insufficient balance: ${required} required, ${available} allocated "
                       f"(shortfall ${shortfall})"
        )

    def to_dict(self) -> dict:
        return {
            **super().to_dict(),
            "shortfall": str(self.shortfall),
            "required": str(self.required),
            "available": str(self.available),
        }


class StaleBalance(CopyEngineError):
    """Raised when a balance check-and-set observes a newer ledger version"""
    code = "stale_balance"

    def __init__(self, account_id: str, expected_version: int, actual_version: int):
        self.account_id = account_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Balance for account {account_id} changed (version {expected_version} -> {actual_version})"
        )


class BelowPlatformMinimum(CopyEngineError):
    """Informational: position notional is below the platform minimum; causes a skip"""
    code = "below_platform_minimum"

    def __init__(self, symbol: str, notional: Decimal, minimum: Decimal):
        self.symbol = symbol
        self.notional = notional
        self.minimum = minimum
        super().__init__(f"{symbol} target ${notional} is below platform minimum ${minimum}")


# Upstream data errors
class Unavailable(CopyEngineError):
    """Raised when an upstream data source cannot be reached"""
    code = "unavailable"


class SymbolNotFound(CopyEngineError):
    """Raised when no market data exists for a symbol"""
    code = "symbol_not_found"

    def __init__(self, symbol: str):
        self.symbol = symbol
        super().__init__(f"No market data for {symbol}")


class Stale(CopyEngineError):
    """Raised when the only available market data is older than allowed"""
    code = "stale"

    def __init__(self, symbol: str, age_seconds: float):
        self.symbol = symbol
        self.age_seconds = age_seconds
        super().__init__(f"Price for {symbol} is stale ({age_seconds:.1f}s old)")


# Collaborator-side errors
class OrderExecutionError(Exception):
    """Raised when order execution fails"""
    pass


class OrderFailed(OrderExecutionError, CopyEngineError):
    """Per-symbol order failure; recorded, never fatal to the batch"""
    code = "order_failed"

    def __init__(self, symbol: str, reason: str):
        self.symbol = symbol
        self.reason = reason
        CopyEngineError.__init__(self, f"Order for {symbol} failed: {reason}")


class OrderTimeout(OrderFailed):
    """Order submission exceeded its timeout"""
    code = "timeout"

    def __init__(self, symbol: str):
        super().__init__(symbol, "timeout")
