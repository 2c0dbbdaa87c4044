from .cancellation import CancellationToken
from .capital import BalanceSnapshot, CapitalLedger
from .orchestrator import ExecutionOrchestrator, merge_entry_price
from .paper import PaperOrderClient
from .copier import CopyTrader

__version__ = "1.0.0"

__all__ = [
    "CancellationToken",
    "BalanceSnapshot",
    "CapitalLedger",
    "ExecutionOrchestrator",
    "merge_entry_price",
    "PaperOrderClient",
    "CopyTrader",
    "__version__",
]
