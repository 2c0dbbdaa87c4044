"""Remember copy-time ratios and propose (never execute) rebalancing"""

from decimal import Decimal
from typing import List, Optional, Sequence
import logging

from exchange_connector_base import (
    PortfolioProvider,
    PositionCopyRequest,
    PositionDistribution,
    PositionSnapshot,
    RebalanceProposal,
    ScalingMode,
    StoredDistribution,
)
from app_logging import get_logger
from copy_calculator import DistributionCalculator
from .delta import compute_rebalance_delta
from .store import DistributionStore, InMemoryDistributionStore


class RatioTracker:
    """Target ratios per (account, source wallet) and rebalance proposals against fresh data"""

    def __init__(self, portfolio_provider: PortfolioProvider,
                 store: Optional[DistributionStore] = None,
                 calculator: Optional[DistributionCalculator] = None,
                 logger: Optional[logging.Logger] = None):
        self.portfolio_provider = portfolio_provider
        self.store = store or InMemoryDistributionStore()
        self.logger = logger or get_logger(__name__)
        self.calculator = calculator or DistributionCalculator(logger=self.logger)

    def record(self, account_id: str, source_wallet: str,
               entries: Sequence[PositionDistribution]) -> StoredDistribution:
        """Store the distribution computed at copy time as the target ratio"""
        base_fields = set(PositionDistribution.model_fields)
        stored = StoredDistribution(
            account_id=account_id,
            source_wallet=source_wallet,
            entries=[PositionDistribution(**entry.model_dump(include=base_fields)) for entry in entries],
        )
        self.store.save(stored)
        self.logger.info(
            f"Recorded target ratio for account {account_id} copying {source_wallet} "
            f"({len(stored.entries)} symbols)"
        )
        return stored

    def stored_distribution(self, account_id: str, source_wallet: str) -> StoredDistribution:
        stored = self.store.get(account_id, source_wallet)
        if stored is None:
            raise KeyError(f"No stored distribution for account {account_id} and wallet {source_wallet}")
        return stored

    async def propose_rebalance(self, account_id: str, source_wallet: str,
                                available_balance: Decimal, allocation_fraction: Decimal,
                                existing_user_positions: Sequence[PositionSnapshot] = (),
                                platform: Optional[str] = None,
                                scaling_mode: ScalingMode = 'proportional') -> RebalanceProposal:
        """
        Compare the stored ratio with the source's current positions.

        The proposal includes a PositionCopyRequest for the new target when a
        rebalance is warranted; it is never executed here.

        Raises:
            KeyError: nothing was recorded for this account and wallet
            Unavailable: the portfolio provider could not be reached
        """
        stored = self.stored_distribution(account_id, source_wallet)
        positions = await self.portfolio_provider.get_positions(source_wallet)

        if not positions:
            self.logger.warning(f"Source wallet {source_wallet} has closed every position")
            proposal = compute_rebalance_delta(stored.entries, [], source_wallet=source_wallet)
            self._log_proposal(proposal)
            return proposal

        request = PositionCopyRequest(
            source_portfolio=positions,
            available_balance=available_balance,
            allocation_fraction=allocation_fraction,
            existing_user_positions=list(existing_user_positions),
            account_id=account_id,
            source_wallet=source_wallet,
            platform=platform,
            scaling_mode=scaling_mode,
        )
        current = self.calculator.distribution_from_positions(request.source_portfolio)
        proposal = compute_rebalance_delta(stored.entries, current, source_wallet=source_wallet)

        if proposal.requires_rebalance:
            proposal = proposal.model_copy(update={'proposed_request': request})

        self._log_proposal(proposal)
        return proposal

    def _log_proposal(self, proposal: RebalanceProposal):
        self.logger.info(f"====== REBALANCE CHECK {proposal.source_wallet} ======")
        for delta in proposal.deltas:
            flags: List[str] = []
            if delta.is_new:
                flags.append("NEW")
            if delta.is_closed:
                flags.append("CLOSED")
            if delta.side_changed:
                flags.append("SIDE CHANGED")
            suffix = f" [{', '.join(flags)}]" if flags else ""
            self.logger.info(
                f"  {delta.symbol}: {delta.stored_percentage * 100:.2f}% -> "
                f"{delta.current_percentage * 100:.2f}% ({delta.delta_percentage * 100:+.2f}%){suffix}"
            )
        action = "Rebalance proposed" if proposal.requires_rebalance else "Within threshold"
        self.logger.info(f"{action} (max delta {proposal.max_abs_delta * 100:.2f}%)")
        self.logger.info("=" * 35)
