"""Capital sufficiency checks and the go/no-go copy preview"""

from decimal import Decimal, ROUND_UP
from typing import Dict, List, Optional
import logging

from exchange_connector_base import (
    MinimumsProvider,
    PositionCopyRequest,
    PositionDistribution,
    Preview,
    ScaledPosition,
    InsufficientBalance,
)
from app_config import get_config
from app_logging import get_logger
from .scaler import MinimumSizeScaler


class CapitalValidator:
    """Validate a scaled distribution against allocated capital and build the preview"""

    def __init__(self, scaler: Optional[MinimumSizeScaler] = None,
                 logger: Optional[logging.Logger] = None):
        self.logger = logger or get_logger(__name__)
        self.config = get_config()
        self.scaler = scaler or MinimumSizeScaler(logger=self.logger)

    def build_preview(self, request: PositionCopyRequest, distribution: List[PositionDistribution],
                      prices: Dict[str, Decimal], minimums: MinimumsProvider,
                      balance_version: Optional[int] = None) -> Preview:
        """
        Scale the distribution and confirm the capital covers it.

        Pure: the same inputs always yield a preview with the same content, so
        callers may rebuild it as often as they like before confirming.

        Proportional totals are checked against the allocated capital. A
        minimum-enforced total is checked against the full available balance;
        spending past the allocation sets exceeds_allocation and adds a warning.

        Raises:
            InsufficientBalance: the total exceeds the capital it is checked
                against, or every entry falls below its platform minimum
        """
        platform = request.platform or self.config.trading.default_platform
        capital = request.allocated_capital

        scaling = self.scaler.scale(
            distribution=distribution,
            prices=prices,
            minimums=minimums,
            platform=platform,
            mode=request.scaling_mode
        )
        positions = scaling.positions
        executable = [p for p in positions if p.is_executable]

        if positions and not executable:
            self._raise_nothing_executable(positions, capital)

        total_notional = sum((p.target_notional for p in executable), Decimal('0'))
        warnings = list(scaling.warnings)
        exceeds_allocation = False

        if request.scaling_mode == 'minimum_enforced':
            # Raised minimums may spend past the allocation but never past the balance
            self._check_covered(total_notional, request.available_balance, "balance")
            if total_notional > capital:
                exceeds_allocation = True
                overspend = total_notional - capital
                warning = (
                    f"Raised minimums bring the total to ${total_notional:,.2f}, "
                    f"${overspend:,.2f} over the ${capital:,.2f} allocation"
                )
                warnings.append(warning)
                self.logger.warning(warning)
        else:
            self._check_covered(total_notional, capital, "allocated")

        preview = Preview(
            account_id=request.account_id,
            source_wallet=request.source_wallet,
            platform=platform,
            scaling_mode=request.scaling_mode,
            available_balance=request.available_balance,
            allocation_fraction=request.allocation_fraction,
            allocated_capital=capital,
            positions=positions,
            total_notional=total_notional,
            remaining_balance=request.available_balance - total_notional,
            skipped_count=scaling.skipped_count,
            adjusted_count=scaling.adjusted_count,
            exceeds_allocation=exceeds_allocation,
            warnings=warnings,
            existing_user_positions=request.existing_user_positions,
            balance_version=balance_version,
        )
        self._log_preview(preview)
        return preview

    def _check_covered(self, total_notional: Decimal, available: Decimal, label: str):
        if total_notional <= available:
            return
        shortfall = total_notional - available
        message = (
            f"Insufficient balance: ${total_notional} required, ${available} {label} "
            f"(shortfall ${shortfall})"
        )
        self.logger.error(message)
        raise InsufficientBalance(shortfall=shortfall, required=total_notional, available=available,
                                  message=message)

    def _raise_nothing_executable(self, positions: List[ScaledPosition], capital: Decimal):
        """Report the extra capital needed for the cheapest entry to clear its minimum"""
        candidates = [
            p.minimum_notional / p.percentage_of_portfolio
            for p in positions if p.percentage_of_portfolio > 0
        ]
        quantum = self.config.trading.currency_quantum
        required = min(candidates).quantize(quantum, rounding=ROUND_UP)
        shortfall = max(required - capital, quantum)

        message = (
            f"All {len(positions)} positions fall below the platform minimum with "
            f"${capital:,.2f} allocated; at least ${required:,.2f} is needed "
            f"(shortfall ${shortfall:,.2f})"
        )
        self.logger.error(message)
        raise InsufficientBalance(shortfall=shortfall, required=required, available=capital,
                                  message=message)

    def _log_preview(self, preview: Preview):
        """Log the preview in a banner block"""
        self.logger.info(f"====== COPY PREVIEW ({len(preview.positions)}) ======")
        self.logger.info(f"Allocated Capital: ${preview.allocated_capital:,.2f} "
                         f"({preview.allocation_fraction * 100:.2f}% of ${preview.available_balance:,.2f})")

        for pos in preview.positions:
            self.logger.info(
                f"  {pos.symbol} {pos.side.upper()} {pos.percentage_of_portfolio * 100:.2f}% "
                f"-> ${pos.target_notional:,.2f} = {pos.target_size} @ ${pos.price} "
                f"({pos.leverage}x) [{pos.status}]"
            )

        self.logger.info(f"Total Notional: ${preview.total_notional:,.2f}")
        self.logger.info(f"Remaining Balance: ${preview.remaining_balance:,.2f}")
        self.logger.info(f"Skipped: {preview.skipped_count}, Adjusted: {preview.adjusted_count}")
        if preview.exceeds_allocation:
            self.logger.info("Exceeds Allocation: yes")
        self.logger.info("=" * 35)
