from .distribution import DistributionCalculator, compute_distribution, distribution_from_positions
from .minimums import StaticMinimumTable
from .scaler import MinimumSizeScaler
from .validator import CapitalValidator
from .models import ScalingResult
from exchange_connector_base import PositionDistribution, ScaledPosition, Preview

__version__ = "1.0.0"

__all__ = [
    "DistributionCalculator",
    "compute_distribution",
    "distribution_from_positions",
    "StaticMinimumTable",
    "MinimumSizeScaler",
    "CapitalValidator",
    "ScalingResult",
    "PositionDistribution",
    "ScaledPosition",
    "Preview",
    "__version__",
]
