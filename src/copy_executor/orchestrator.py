"""Sequential, best-effort execution of a confirmed copy preview"""

import asyncio
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, List, Optional, Tuple
import logging

from exchange_connector_base import (
    OrderClient,
    OrderFailed,
    PositionSnapshot,
    Preview,
    ScaledPosition,
    ExecutionBatch,
    ExecutionResult,
    ExecutionStatus,
    BatchStatus,
)
from app_config import get_config
from app_logging import get_logger
from .cancellation import CancellationToken

TIMEOUT_REASON = "timeout"


def merge_entry_price(existing_size: Decimal, existing_entry_price: Decimal,
                      added_size: Decimal, added_entry_price: Decimal) -> Tuple[Decimal, Decimal]:
    """Combined size and weighted-average entry price of two same-side fills"""
    merged_size = existing_size + added_size
    if merged_size <= 0:
        raise ValueError("Merged position size must be positive")
    merged_entry_price = (existing_size * existing_entry_price + added_size * added_entry_price) / merged_size
    return merged_size, merged_entry_price


class ExecutionOrchestrator:
    """
    Submit one order per executable preview position, strictly in preview order.

    Each outcome is recorded as soon as it is known and a failure never stops
    later symbols. Orders that were placed are never reversed automatically;
    the returned batch is the record a user needs for manual remediation.
    """

    def __init__(self, order_client: OrderClient, logger: Optional[logging.Logger] = None):
        self.order_client = order_client
        self.logger = logger or get_logger(__name__)
        self.config = get_config()

    async def execute_batch(self, preview: Preview,
                            cancellation_token: Optional[CancellationToken] = None,
                            order_timeout: Optional[float] = None) -> ExecutionBatch:
        """Execute the preview and return an ExecutionBatch covering every position"""
        if order_timeout is None:
            order_timeout = self.config.trading.order_timeout_seconds

        existing_map = {pos.symbol: pos for pos in preview.existing_user_positions}
        started_at = datetime.now(timezone.utc)
        results: List[ExecutionResult] = []
        cancelled = False

        executable = preview.executable_positions
        self.logger.info(
            f"Executing {len(executable)} orders for account {preview.account_id} "
            f"({preview.skipped_count} skipped below minimum)"
        )

        for position in preview.positions:
            if not position.is_executable:
                results.append(ExecutionResult(
                    symbol=position.symbol,
                    side=position.side,
                    status=ExecutionStatus.SKIPPED_BELOW_MINIMUM,
                    requested_size=Decimal('0'),
                    error_reason=f"target ${position.proportional_notional} below minimum ${position.minimum_notional}"
                ))
                continue

            if not cancelled and cancellation_token is not None and cancellation_token.is_cancelled:
                cancelled = True
                reason = cancellation_token.reason or "cancelled by caller"
                self.logger.warning(f"Cancellation observed before {position.symbol}: {reason}; no further orders")

            if cancelled:
                results.append(ExecutionResult(
                    symbol=position.symbol,
                    side=position.side,
                    status=ExecutionStatus.CANCELLED,
                    requested_size=position.target_size,
                    error_reason="cancelled"
                ))
                continue

            result = await self._submit(position, existing_map.get(position.symbol), order_timeout)
            results.append(result)

        batch = ExecutionBatch(
            preview_id=preview.preview_id,
            account_id=preview.account_id,
            status=self._aggregate_status(results, cancelled),
            results=results,
            cancelled=cancelled,
            started_at=started_at,
            completed_at=datetime.now(timezone.utc),
        )
        self._log_batch(batch)
        return batch

    async def _submit(self, position: ScaledPosition, existing: Optional[PositionSnapshot],
                      order_timeout: float) -> ExecutionResult:
        """Place one order; always completes to a result"""
        symbol = position.symbol
        self.logger.info(
            f"Placing {position.side.upper()} {position.target_size} {symbol} "
            f"(~${position.target_notional:,.2f}, {position.leverage}x)"
        )

        try:
            fill = await asyncio.wait_for(
                self.order_client.place_order(
                    symbol=symbol,
                    side=position.side,
                    size=position.target_size,
                    leverage=position.leverage
                ),
                timeout=order_timeout
            )
        except asyncio.TimeoutError:
            self.logger.error(f"Order for {symbol} timed out after {order_timeout}s; not retrying")
            return self._failed(position, TIMEOUT_REASON)
        except OrderFailed as e:
            self.logger.error(f"Order for {symbol} failed: {e.reason}")
            return self._failed(position, e.reason)
        except Exception as e:
            self.logger.error(f"Order for {symbol} failed: {e}")
            return self._failed(position, str(e) or e.__class__.__name__)

        if fill.filled_size <= 0:
            self.logger.error(f"Order for {symbol} returned no fill")
            return self._failed(position, "order not filled")

        merged_size, merged_entry_price = self._merge(position, existing, fill.filled_size, fill.entry_price)

        self.logger.info(f"Filled {fill.filled_size} {symbol} @ ${fill.entry_price}")
        return ExecutionResult(
            symbol=symbol,
            side=position.side,
            status=ExecutionStatus.SUCCEEDED,
            requested_size=position.target_size,
            actual_size=fill.filled_size,
            actual_entry_price=fill.entry_price,
            merged_size=merged_size,
            merged_entry_price=merged_entry_price,
            order_id=fill.order_id,
        )

    def _merge(self, position: ScaledPosition, existing: Optional[PositionSnapshot],
               filled_size: Decimal, entry_price: Decimal) -> Tuple[Optional[Decimal], Optional[Decimal]]:
        """Weighted-average merge with an existing same-side user position"""
        if existing is None:
            return None, None

        if existing.side != position.side:
            self.logger.warning(
                f"Existing {existing.side} {existing.symbol} position is opposite to the copied "
                f"{position.side} order; not merged"
            )
            return None, None

        if not existing.size or existing.entry_price is None:
            self.logger.warning(f"Existing {existing.symbol} position lacks size/entry price; not merged")
            return None, None

        merged_size, merged_entry_price = merge_entry_price(
            existing.size, existing.entry_price, filled_size, entry_price
        )
        self.logger.info(
            f"Merged {existing.symbol}: {existing.size} @ ${existing.entry_price} + "
            f"{filled_size} @ ${entry_price} -> {merged_size} @ ${merged_entry_price:.2f}"
        )
        return merged_size, merged_entry_price

    def _failed(self, position: ScaledPosition, reason: str) -> ExecutionResult:
        return ExecutionResult(
            symbol=position.symbol,
            side=position.side,
            status=ExecutionStatus.FAILED,
            requested_size=position.target_size,
            error_reason=reason,
        )

    def _aggregate_status(self, results: List[ExecutionResult], cancelled: bool) -> str:
        if cancelled:
            return BatchStatus.ABORTED
        attempted = [r for r in results if r.status != ExecutionStatus.SKIPPED_BELOW_MINIMUM]
        if all(r.status == ExecutionStatus.SUCCEEDED for r in attempted):
            return BatchStatus.ALL_SUCCEEDED
        return BatchStatus.PARTIAL

    def _log_batch(self, batch: ExecutionBatch):
        """Log every symbol's outcome in a banner block"""
        self.logger.info(f"====== EXECUTION BATCH {batch.batch_id[:8]} ({batch.status.upper()}) ======")
        self.logger.info(
            f"Succeeded: {len(batch.succeeded)}, Failed: {len(batch.failed)}, "
            f"Skipped: {len(batch.skipped)}, Cancelled: {batch.cancelled}"
        )
        for result in batch.results:
            if result.status == ExecutionStatus.SUCCEEDED:
                self.logger.info(f"  {result.symbol}: {result.actual_size} @ ${result.actual_entry_price}")
            else:
                self.logger.info(f"  {result.symbol}: {result.status} ({result.error_reason})")
        if batch.status == BatchStatus.PARTIAL:
            self.logger.warning("Batch partially executed; placed orders were not reversed")
        self.logger.info(f"Filled Notional: ${batch.filled_notional:,.2f}")
        self.logger.info("=" * 40)
