"""
Copy Service - HTTP management API

Exposes the two-step copy flow (preview, then execute on confirmation),
cooperative cancellation of in-flight batches, account balances held by the
capital ledger and on-demand rebalance checks.
"""
import os
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from exchange_connector_base import (
    CopyEngineError,
    PositionCopyRequest,
    Preview,
    Stale,
    Unavailable,
)
from app_config import get_config
from app_logging import AppLogger
from copy_executor import CancellationToken, CopyTrader
from ratio_tracker import RatioTracker, RebalanceMonitor
from .schemas import BalanceUpdate, ExecuteRequest, RebalanceCheckRequest, WatchRequest

app_logger = AppLogger(__name__)

VERSION = os.getenv('SERVICE_VERSION', '1.0.0')


def _error_status(exc: CopyEngineError) -> int:
    if isinstance(exc, (Unavailable, Stale)):
        return 503
    return 400


def create_app(copy_trader: CopyTrader, tracker: Optional[RatioTracker] = None,
               monitor: Optional[RebalanceMonitor] = None) -> FastAPI:
    """Build the API around an already wired CopyTrader"""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if monitor is not None:
            monitor.start()
        yield
        if monitor is not None:
            monitor.stop()

    app = FastAPI(
        title="Position Copy Engine",
        description="Replicates a source portfolio's position ratios onto user capital",
        version=VERSION,
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Confirmed-but-not-yet-executed previews and the tokens of running batches
    previews: Dict[str, Preview] = {}
    in_flight: Dict[str, CancellationToken] = {}
    service_config = get_config().service

    def evict_previews():
        """Drop expired previews, then the oldest beyond the cap; running batches are kept"""
        cutoff = datetime.now(timezone.utc) - timedelta(seconds=service_config.preview_ttl_seconds)
        expired = [pid for pid, p in previews.items() if p.created_at < cutoff and pid not in in_flight]

        idle = sorted(
            (p for pid, p in previews.items() if pid not in in_flight and pid not in expired),
            key=lambda p: p.created_at
        )
        overflow = len(previews) - len(expired) - service_config.max_pending_previews
        if overflow > 0:
            expired.extend(p.preview_id for p in idle[:overflow])

        for preview_id in expired:
            previews.pop(preview_id, None)
        if expired:
            app_logger.log_info(f"Discarded {len(expired)} unexecuted previews")

    app.state.copy_trader = copy_trader
    app.state.previews = previews

    @app.exception_handler(CopyEngineError)
    async def copy_engine_error_handler(request: Request, exc: CopyEngineError):
        status_code = _error_status(exc)
        app_logger.log_warning(f"{request.method} {request.url.path} failed ({exc.code}): {exc.message}")
        return JSONResponse(status_code=status_code, content=exc.to_dict())

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "version": VERSION,
            "pending_previews": len(previews),
            "executing": len(in_flight),
            "rebalance_tracking": tracker is not None,
            "rebalance_monitor": monitor is not None and monitor.scheduler is not None,
        }

    @app.post("/previews")
    async def create_preview(body: PositionCopyRequest):
        """Compute a preview; nothing is submitted until it is executed"""
        preview = await copy_trader.preview(body)
        previews[preview.preview_id] = preview
        evict_previews()
        app_logger.log_info(
            f"Stored preview {preview.preview_id} for account {preview.account_id} "
            f"({len(preview.executable_positions)} executable positions)"
        )
        return preview.model_dump(mode='json')

    @app.get("/previews/{preview_id}")
    async def get_preview(preview_id: str):
        evict_previews()
        preview = previews.get(preview_id)
        if preview is None:
            raise HTTPException(status_code=404, detail=f"Unknown preview {preview_id}")
        return preview.model_dump(mode='json')

    @app.post("/previews/{preview_id}/execute")
    async def execute_preview(preview_id: str, body: Optional[ExecuteRequest] = None):
        """Execute a confirmed preview; each preview executes at most once"""
        evict_previews()
        preview = previews.get(preview_id)
        if preview is None:
            raise HTTPException(status_code=404, detail=f"Unknown preview {preview_id}")
        if preview_id in in_flight:
            raise HTTPException(status_code=409, detail=f"Preview {preview_id} is already executing")

        token = CancellationToken()
        in_flight[preview_id] = token
        try:
            batch = await copy_trader.execute(
                preview,
                cancellation_token=token,
                order_timeout=body.order_timeout_seconds if body else None
            )
        finally:
            in_flight.pop(preview_id, None)

        previews.pop(preview_id, None)
        result = batch.model_dump(mode='json')
        result["summary"] = {
            "succeeded": len(batch.succeeded),
            "failed": len(batch.failed),
            "skipped": len(batch.skipped),
            "filled_notional": str(batch.filled_notional),
        }
        return result

    @app.post("/previews/{preview_id}/cancel")
    async def cancel_execution(preview_id: str):
        """Stop a running batch before its next order submission"""
        token = in_flight.get(preview_id)
        if token is None:
            raise HTTPException(status_code=404, detail=f"Preview {preview_id} is not executing")
        token.cancel("cancelled via API")
        app_logger.log_warning(f"Cancellation requested for preview {preview_id}")
        return {"preview_id": preview_id, "cancelled": True}

    @app.get("/accounts/{account_id}/balance")
    async def get_balance(account_id: str):
        snapshot = copy_trader.ledger.snapshot(account_id)
        if snapshot is None:
            raise HTTPException(status_code=404, detail=f"Account {account_id} is not tracked")
        return {
            "account_id": snapshot.account_id,
            "available_balance": str(snapshot.available_balance),
            "version": snapshot.version,
        }

    @app.put("/accounts/{account_id}/balance")
    async def set_balance(account_id: str, body: BalanceUpdate):
        """Replace the ledger balance, e.g. after a deposit"""
        async with copy_trader.ledger.hold(account_id):
            snapshot = copy_trader.ledger.set_balance(account_id, body.available_balance)
        return {
            "account_id": snapshot.account_id,
            "available_balance": str(snapshot.available_balance),
            "version": snapshot.version,
        }

    @app.post("/rebalance/check")
    async def check_rebalance(body: RebalanceCheckRequest):
        """Propose (never execute) a rebalance against the source's current positions"""
        if tracker is None:
            raise Unavailable("Ratio tracking is not enabled")
        try:
            proposal = await tracker.propose_rebalance(
                account_id=body.account_id,
                source_wallet=body.source_wallet,
                available_balance=body.available_balance,
                allocation_fraction=body.allocation_fraction,
                existing_user_positions=body.existing_user_positions,
                platform=body.platform,
                scaling_mode=body.scaling_mode,
            )
        except KeyError as e:
            raise HTTPException(status_code=404, detail=str(e).strip("'\""))
        return proposal.model_dump(mode='json')

    @app.post("/rebalance/watches")
    async def add_watch(body: WatchRequest):
        """Add a copied wallet to the periodic rebalance check"""
        if monitor is None:
            raise Unavailable("Rebalance monitor is not enabled")
        watch = monitor.watch(body.account_id, body.source_wallet, body.allocation_fraction)
        return {
            "account_id": watch.account_id,
            "source_wallet": watch.source_wallet,
            "allocation_fraction": str(watch.allocation_fraction),
        }

    return app
