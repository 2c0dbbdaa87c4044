"""Map distribution percentages onto order sizes under platform minimums"""

from decimal import Decimal, ROUND_DOWN, ROUND_UP
from typing import Dict, List, Optional
import logging

from exchange_connector_base import (
    MinimumsProvider,
    PositionDistribution,
    ScaledPosition,
    ScaledPositionStatus,
    ScalingMode,
    BelowPlatformMinimum,
    InvalidMagnitude,
    SymbolNotFound,
)
from app_config import get_config
from app_logging import get_logger
from .models import ScalingResult


class MinimumSizeScaler:
    """Convert target notionals into order sizes, enforcing platform minimums"""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or get_logger(__name__)
        self.config = get_config()

    def scale(self, distribution: List[PositionDistribution], prices: Dict[str, Decimal],
              minimums: MinimumsProvider, platform: str,
              mode: ScalingMode = 'proportional') -> ScalingResult:
        """
        Scale every distribution entry. Entries are not mutated; new
        ScaledPosition objects are returned in the same order.

        proportional: entries below the minimum are skipped, never raised.
        minimum_enforced: entries below the minimum are raised to it and carry
        a scaling factor different from 1.
        """
        positions = []
        warnings = []

        for entry in distribution:
            price = self._validated_price(entry.symbol, prices)
            minimum = minimums.get_minimum(platform, entry.symbol)

            scaled = self._scale_proportional(entry, price, minimum, mode, warnings)
            positions.append(scaled)

        return ScalingResult(positions=positions, warnings=warnings)

    def _validated_price(self, symbol: str, prices: Dict[str, Decimal]) -> Decimal:
        price = prices.get(symbol)
        if price is None:
            self.logger.error(f"No price data for {symbol}")
            raise SymbolNotFound(symbol)
        if price <= 0:
            self.logger.error(f"Invalid price for {symbol}: {price}")
            raise InvalidMagnitude([symbol], f"Invalid price for {symbol}: {price}")
        return price

    def _scale_proportional(self, entry: PositionDistribution, price: Decimal, minimum: Decimal,
                            mode: ScalingMode, warnings: List[str]) -> ScaledPosition:
        size = (entry.target_notional / price).quantize(
            self.config.trading.size_quantum, rounding=ROUND_DOWN
        )

        # Checked on the rounded order, which can land under a minimum the target cleared
        if entry.target_notional < minimum:
            notice = BelowPlatformMinimum(entry.symbol, entry.target_notional, minimum).message
            return self._scale_below_minimum(entry, price, minimum, mode, notice, warnings)
        if size * price < minimum:
            notice = (
                f"{entry.symbol} order of {size} @ ${price} is ${size * price}, "
                f"below platform minimum ${minimum} after size rounding"
            )
            return self._scale_below_minimum(entry, price, minimum, mode, notice, warnings)

        if size <= 0:
            warning = f"{entry.symbol} target ${entry.target_notional} rounds to a zero order size at ${price}"
            warnings.append(warning)
            self.logger.info(f"Skipping {entry.symbol}: {warning}")
            return self._skipped(entry, price, minimum)

        return ScaledPosition(
            **entry.model_dump(exclude={'target_size', 'scaling_factor'}),
            target_size=size,
            scaling_factor=Decimal('1'),
            price=price,
            proportional_notional=entry.target_notional,
            minimum_notional=minimum,
            status=ScaledPositionStatus.PENDING,
        )

    def _scale_below_minimum(self, entry: PositionDistribution, price: Decimal, minimum: Decimal,
                             mode: ScalingMode, notice: str, warnings: List[str]) -> ScaledPosition:
        if mode == 'proportional' or entry.target_notional <= 0:
            warnings.append(notice)
            self.logger.info(f"Skipping {entry.symbol}: {notice}")
            return self._skipped(entry, price, minimum)

        # Round up so the raised order never lands under the minimum
        size = (minimum / price).quantize(self.config.trading.size_quantum, rounding=ROUND_UP)
        scaling_factor = minimum / entry.target_notional

        warning = (
            f"{entry.symbol} raised from ${entry.target_notional} to platform minimum ${minimum} "
            f"(scaling factor {scaling_factor:.4f}); allocation is no longer proportional"
        )
        warnings.append(warning)
        self.logger.warning(warning)

        return ScaledPosition(
            **entry.model_dump(exclude={'target_notional', 'target_size', 'scaling_factor'}),
            target_notional=minimum,
            target_size=size,
            scaling_factor=scaling_factor,
            price=price,
            proportional_notional=entry.target_notional,
            minimum_notional=minimum,
            status=ScaledPositionStatus.ADJUSTED,
        )

    def _skipped(self, entry: PositionDistribution, price: Decimal, minimum: Decimal) -> ScaledPosition:
        return ScaledPosition(
            **entry.model_dump(exclude={'target_size', 'scaling_factor'}),
            target_size=Decimal('0'),
            scaling_factor=Decimal('0'),
            price=price,
            proportional_notional=entry.target_notional,
            minimum_notional=minimum,
            status=ScaledPositionStatus.SKIPPED_BELOW_MINIMUM,
        )
