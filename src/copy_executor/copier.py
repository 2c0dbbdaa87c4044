"""Copy trader: preview and execute as two steps under the account's capital lock"""

from decimal import ROUND_UP
from typing import Optional, TYPE_CHECKING
import logging

from exchange_connector_base import (
    MarketDataProvider,
    MinimumsProvider,
    OrderClient,
    PortfolioProvider,
    PositionCopyRequest,
    PositionSnapshot,
    Preview,
    ExecutionBatch,
    Unavailable,
)
from app_config import get_config
from app_logging import CopyContext, clear_current_copy, get_logger, set_current_copy
from copy_calculator import CapitalValidator, DistributionCalculator, StaticMinimumTable
from .cancellation import CancellationToken
from .capital import BalanceSnapshot, CapitalLedger
from .orchestrator import ExecutionOrchestrator

if TYPE_CHECKING:
    from ratio_tracker import RatioTracker


class CopyTrader:
    """
    Entry point for copy operations.

    preview() is pure with respect to account state and may be called any
    number of times. execute() holds the account's capital lock for the whole
    validation+execution window and re-validates a preview built against an
    older balance before submitting anything.
    """

    def __init__(self, market_data: MarketDataProvider, order_client: OrderClient,
                 ledger: Optional[CapitalLedger] = None,
                 minimums: Optional[MinimumsProvider] = None,
                 portfolio_provider: Optional[PortfolioProvider] = None,
                 tracker: Optional['RatioTracker'] = None,
                 logger: Optional[logging.Logger] = None):
        self.config = get_config()
        self.logger = logger or get_logger(__name__)
        self.market_data = market_data
        self.ledger = ledger or CapitalLedger(logger=self.logger)
        self.minimums = minimums or StaticMinimumTable()
        self.portfolio_provider = portfolio_provider
        self.tracker = tracker
        self.calculator = DistributionCalculator(logger=self.logger)
        self.validator = CapitalValidator(logger=self.logger)
        self.orchestrator = ExecutionOrchestrator(order_client, logger=self.logger)

    async def resolve_request(self, request: PositionCopyRequest) -> PositionCopyRequest:
        """Fetch the source portfolio when the request only names a wallet"""
        if request.source_portfolio or not request.source_wallet:
            return request
        if self.portfolio_provider is None:
            raise Unavailable("No portfolio provider configured to fetch source positions")

        positions = await self.portfolio_provider.get_positions(request.source_wallet)
        self.logger.info(f"Fetched {len(positions)} positions for source wallet {request.source_wallet}")
        return request.model_copy(update={'source_portfolio': positions})

    async def preview(self, request: PositionCopyRequest) -> Preview:
        """Compute distribution, scale and validate; no order is placed"""
        request = await self.resolve_request(request)
        set_current_copy(CopyContext(account_id=request.account_id, source_wallet=request.source_wallet))
        try:
            snapshot = self._tracked_snapshot(request)
            request = self._apply_ledger_balance(request, snapshot)
            return await self._build_preview(request, snapshot)
        finally:
            clear_current_copy()

    async def execute(self, preview: Preview,
                      cancellation_token: Optional[CancellationToken] = None,
                      order_timeout: Optional[float] = None) -> ExecutionBatch:
        """Execute a confirmed preview under the account's capital lock"""
        set_current_copy(CopyContext(account_id=preview.account_id, source_wallet=preview.source_wallet))
        try:
            async with self.ledger.hold(preview.account_id) as snapshot:
                return await self._execute_locked(preview, snapshot, cancellation_token, order_timeout)
        finally:
            clear_current_copy()

    async def copy(self, request: PositionCopyRequest,
                   cancellation_token: Optional[CancellationToken] = None,
                   order_timeout: Optional[float] = None) -> ExecutionBatch:
        """Preview and execute in one lock hold, without a confirmation step"""
        request = await self.resolve_request(request)
        set_current_copy(CopyContext(account_id=request.account_id, source_wallet=request.source_wallet))
        try:
            async with self.ledger.hold(request.account_id) as snapshot:
                if snapshot is None:
                    snapshot = self.ledger.set_balance(request.account_id, request.available_balance)
                request = self._apply_ledger_balance(request, snapshot)
                preview = await self._build_preview(request, snapshot)
                return await self._execute_locked(preview, snapshot, cancellation_token, order_timeout)
        finally:
            clear_current_copy()

    async def _build_preview(self, request: PositionCopyRequest, snapshot: BalanceSnapshot) -> Preview:
        distribution = self.calculator.compute_distribution(request)
        prices = await self.market_data.get_prices([entry.symbol for entry in distribution])
        return self.validator.build_preview(
            request=request,
            distribution=distribution,
            prices=prices,
            minimums=self.minimums,
            balance_version=snapshot.version
        )

    async def _execute_locked(self, preview: Preview, snapshot: Optional[BalanceSnapshot],
                              cancellation_token: Optional[CancellationToken],
                              order_timeout: Optional[float]) -> ExecutionBatch:
        if snapshot is None:
            snapshot = self.ledger.set_balance(preview.account_id, preview.available_balance)
        elif preview.balance_version != snapshot.version:
            preview = self._revalidate(preview, snapshot)

        batch = await self.orchestrator.execute_batch(preview, cancellation_token, order_timeout)

        spent = batch.filled_notional.quantize(self.config.trading.currency_quantum, rounding=ROUND_UP)
        if spent > 0:
            self.ledger.debit(preview.account_id, spent, expected_version=snapshot.version)

        self._record_distribution(preview, batch)
        return batch

    def _revalidate(self, preview: Preview, snapshot: BalanceSnapshot) -> Preview:
        """Re-derive the preview against the current balance using the confirmed prices"""
        self.logger.warning(
            f"Balance for account {preview.account_id} changed since preview "
            f"(version {preview.balance_version} -> {snapshot.version}); re-validating "
            f"against ${snapshot.available_balance:,.2f}"
        )
        request = PositionCopyRequest(
            source_portfolio=[
                PositionSnapshot(
                    symbol=p.symbol,
                    side=p.side,
                    notional_value=p.percentage_of_portfolio,
                    leverage=p.leverage
                )
                for p in preview.positions
            ],
            available_balance=snapshot.available_balance,
            allocation_fraction=preview.allocation_fraction,
            existing_user_positions=preview.existing_user_positions,
            account_id=preview.account_id,
            source_wallet=preview.source_wallet,
            platform=preview.platform,
            scaling_mode=preview.scaling_mode,
        )
        distribution = self.calculator.compute_distribution(request)
        prices = {p.symbol: p.price for p in preview.positions}
        return self.validator.build_preview(
            request=request,
            distribution=distribution,
            prices=prices,
            minimums=self.minimums,
            balance_version=snapshot.version
        )

    def _tracked_snapshot(self, request: PositionCopyRequest) -> BalanceSnapshot:
        snapshot = self.ledger.snapshot(request.account_id)
        if snapshot is None:
            snapshot = self.ledger.set_balance(request.account_id, request.available_balance)
        return snapshot

    def _apply_ledger_balance(self, request: PositionCopyRequest, snapshot: BalanceSnapshot) -> PositionCopyRequest:
        """The ledger's balance is authoritative for tracked accounts"""
        if request.available_balance == snapshot.available_balance:
            return request
        self.logger.warning(
            f"Request balance ${request.available_balance:,.2f} differs from ledger balance "
            f"${snapshot.available_balance:,.2f} for account {request.account_id}; using ledger"
        )
        return request.model_copy(update={'available_balance': snapshot.available_balance})

    def _record_distribution(self, preview: Preview, batch: ExecutionBatch):
        if self.tracker is None or not preview.source_wallet or not batch.succeeded:
            return
        self.tracker.record(preview.account_id, preview.source_wallet, preview.positions)
