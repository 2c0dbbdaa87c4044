"""Turn a source portfolio snapshot into a normalized percentage distribution"""

from decimal import Decimal, ROUND_DOWN
from typing import List, Optional
import logging

from exchange_connector_base import (
    PositionCopyRequest,
    PositionDistribution,
    PositionSnapshot,
    EmptyPortfolio,
    InvalidMagnitude,
    DistributionIncomplete,
)
from app_config import get_config
from app_logging import get_logger


class DistributionCalculator:
    """Compute each source position's share of the portfolio's total notional"""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or get_logger(__name__)
        self.config = get_config()

    def compute_distribution(self, request: PositionCopyRequest) -> List[PositionDistribution]:
        """
        Map the source portfolio onto the user's allocated capital.

        Output keeps source snapshot order. target_notional is the allocated
        capital times the percentage, truncated to the minimal currency unit.

        Raises:
            EmptyPortfolio: source portfolio has no positions
            InvalidMagnitude: one or more notional values are zero or negative
            DistributionIncomplete: percentages do not sum to 1 within tolerance
        """
        percentages = self.compute_percentages(request.source_portfolio)
        capital = request.allocated_capital
        quantum = self.config.trading.currency_quantum

        distribution = []
        for position, percentage in zip(request.source_portfolio, percentages):
            target_notional = (capital * percentage).quantize(quantum, rounding=ROUND_DOWN)
            distribution.append(PositionDistribution(
                symbol=position.symbol,
                side=position.side,
                percentage_of_portfolio=percentage,
                target_notional=target_notional,
                leverage=position.leverage,
            ))

        self.logger.debug(
            f"Distribution over {len(distribution)} positions for ${capital:,.2f} allocated capital"
        )
        return distribution

    def distribution_from_positions(self, positions: List[PositionSnapshot]) -> List[PositionDistribution]:
        """Percentages only; target_notional is left at 0"""
        percentages = self.compute_percentages(positions)
        return [
            PositionDistribution(
                symbol=position.symbol,
                side=position.side,
                percentage_of_portfolio=percentage,
                target_notional=Decimal('0'),
                leverage=position.leverage,
            )
            for position, percentage in zip(positions, percentages)
        ]

    def compute_percentages(self, positions: List[PositionSnapshot]) -> List[Decimal]:
        """Percentage of total notional per position, in input order"""
        if not positions:
            raise EmptyPortfolio()

        invalid = [pos.symbol for pos in positions if pos.notional_value <= 0]
        if invalid:
            self.logger.error(f"Invalid notional values for {', '.join(invalid)}")
            raise InvalidMagnitude(invalid)

        total = sum((pos.notional_value for pos in positions), Decimal('0'))
        percentages = [pos.notional_value / total for pos in positions]

        self.verify_complete(percentages)
        return percentages

    def verify_complete(self, percentages: List[Decimal]):
        """Trust a distribution only if it sums to 1 within tolerance"""
        total = sum(percentages, Decimal('0'))
        if abs(total - 1) > self.config.trading.percentage_tolerance:
            raise DistributionIncomplete(total)


def compute_distribution(request: PositionCopyRequest) -> List[PositionDistribution]:
    """Module-level entry point for one-off distribution calculations"""
    return DistributionCalculator().compute_distribution(request)


def distribution_from_positions(positions: List[PositionSnapshot]) -> List[PositionDistribution]:
    return DistributionCalculator().distribution_from_positions(positions)
