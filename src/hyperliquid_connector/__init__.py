from .client import HyperliquidClient
from .models import CachedPrice

__version__ = "1.0.0"

__all__ = [
    "HyperliquidClient",
    "CachedPrice",
    "__version__",
]
