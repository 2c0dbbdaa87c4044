from .base_client import (
    PortfolioProvider,
    MarketDataProvider,
    MinimumsProvider,
    OrderClient,
)
from .models import (
    # Portfolio models
    Side,
    ScalingMode,
    PositionSnapshot,
    PositionCopyRequest,
    # Distribution and preview models
    PositionDistribution,
    ScaledPosition,
    ScaledPositionStatus,
    Preview,
    # Order models
    OrderFill,
    ExecutionStatus,
    BatchStatus,
    ExecutionResult,
    ExecutionBatch,
    # Ratio tracking models
    StoredDistribution,
    RebalanceDelta,
    RebalanceProposal,
)
from .exceptions import (
    CopyEngineError,
    EmptyPortfolio,
    InvalidMagnitude,
    DistributionIncomplete,
    InsufficientBalance,
    StaleBalance,
    BelowPlatformMinimum,
    Unavailable,
    SymbolNotFound,
    Stale,
    OrderExecutionError,
    OrderFailed,
    OrderTimeout,
)

__version__ = "1.0.0"

__all__ = [
    "PortfolioProvider",
    "MarketDataProvider",
    "MinimumsProvider",
    "OrderClient",
    "Side",
    "ScalingMode",
    "PositionSnapshot",
    "PositionCopyRequest",
    "PositionDistribution",
    "ScaledPosition",
    "ScaledPositionStatus",
    "Preview",
    "OrderFill",
    "ExecutionStatus",
    "BatchStatus",
    "ExecutionResult",
    "ExecutionBatch",
    "StoredDistribution",
    "RebalanceDelta",
    "RebalanceProposal",
    "CopyEngineError",
    "EmptyPortfolio",
    "InvalidMagnitude",
    "DistributionIncomplete",
    "InsufficientBalance",
    "StaleBalance",
    "BelowPlatformMinimum",
    "Unavailable",
    "SymbolNotFound",
    "Stale",
    "OrderExecutionError",
    "OrderFailed",
    "OrderTimeout",
    "__version__",
]
