"""Optional periodic rebalance checks; cadence is chosen by the caller"""

import inspect
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Tuple
import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from exchange_connector_base import CopyEngineError, RebalanceProposal
from app_config import get_config
from app_logging import get_logger
from .tracker import RatioTracker


@dataclass(frozen=True)
class RebalanceWatch:
    """One copied wallet to re-check"""
    account_id: str
    source_wallet: str
    allocation_fraction: Decimal


class RebalanceMonitor:
    """
    Periodically asks the RatioTracker for proposals and hands them to a callback.

    Proposals are only reported; acting on them is up to the callback owner.
    """

    JOB_ID = "rebalance-monitor"

    def __init__(self, tracker: RatioTracker,
                 balance_lookup: Callable[[str], Decimal],
                 on_proposal: Callable[[RebalanceWatch, RebalanceProposal], Any],
                 interval_seconds: Optional[int] = None,
                 logger: Optional[logging.Logger] = None):
        self.tracker = tracker
        self.balance_lookup = balance_lookup
        self.on_proposal = on_proposal
        self.interval_seconds = interval_seconds or get_config().rebalance.poll_interval_seconds
        self.logger = logger or get_logger(__name__)
        self.scheduler: Optional[AsyncIOScheduler] = None
        self._watches: Dict[Tuple[str, str], RebalanceWatch] = {}

    def watch(self, account_id: str, source_wallet: str, allocation_fraction: Decimal) -> RebalanceWatch:
        watch = RebalanceWatch(account_id, source_wallet, allocation_fraction)
        self._watches[(account_id, source_wallet.lower())] = watch
        return watch

    def unwatch(self, account_id: str, source_wallet: str):
        self._watches.pop((account_id, source_wallet.lower()), None)

    @property
    def watches(self) -> List[RebalanceWatch]:
        return list(self._watches.values())

    async def poll_once(self) -> List[RebalanceProposal]:
        """Check every watched wallet; a failing wallet does not stop the others"""
        proposals = []
        for watch in self.watches:
            try:
                proposal = await self.tracker.propose_rebalance(
                    account_id=watch.account_id,
                    source_wallet=watch.source_wallet,
                    available_balance=self.balance_lookup(watch.account_id),
                    allocation_fraction=watch.allocation_fraction,
                )
            except (CopyEngineError, KeyError) as e:
                self.logger.error(f"Rebalance check failed for {watch.source_wallet}: {e}")
                continue

            proposals.append(proposal)
            if proposal.requires_rebalance:
                result = self.on_proposal(watch, proposal)
                if inspect.isawaitable(result):
                    await result
        return proposals

    def start(self):
        """Start the interval job; must be called from a running event loop"""
        if self.scheduler is not None:
            self.logger.warning("Rebalance monitor already running")
            return

        self.scheduler = AsyncIOScheduler()
        self.scheduler.add_job(
            self.poll_once,
            IntervalTrigger(seconds=self.interval_seconds),
            id=self.JOB_ID,
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.start()
        self.logger.info(f"Rebalance monitor started (every {self.interval_seconds}s, {len(self._watches)} wallets)")

    def stop(self):
        if self.scheduler is None:
            return
        self.scheduler.shutdown(wait=False)
        self.scheduler = None
        self.logger.info("Rebalance monitor stopped")
