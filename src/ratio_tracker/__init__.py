from .delta import compute_rebalance_delta
from .store import DistributionStore, InMemoryDistributionStore
from .tracker import RatioTracker
from .monitor import RebalanceMonitor, RebalanceWatch
from exchange_connector_base import RebalanceDelta, RebalanceProposal, StoredDistribution

__version__ = "1.0.0"

__all__ = [
    "compute_rebalance_delta",
    "DistributionStore",
    "InMemoryDistributionStore",
    "RatioTracker",
    "RebalanceMonitor",
    "RebalanceWatch",
    "RebalanceDelta",
    "RebalanceProposal",
    "StoredDistribution",
    "__version__",
]
