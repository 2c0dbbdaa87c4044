"""
Copy Service entry point

Loads configuration, wires the Hyperliquid reader, the paper order client,
the capital ledger and the ratio tracker, then serves the management API.
"""
import logging
import os
import sys
from decimal import Decimal
from pathlib import Path

import uvicorn

from app_config import load_config
from app_logging import configure_root_logger
from copy_calculator import StaticMinimumTable
from copy_executor import CapitalLedger, CopyTrader, PaperOrderClient
from hyperliquid_connector import HyperliquidClient
from ratio_tracker import RatioTracker, RebalanceMonitor, RebalanceProposal, RebalanceWatch
from .app import create_app

logger = logging.getLogger(__name__)


def _load_configuration():
    config_path = Path(os.getenv('CONFIG_PATH', 'config/config.yaml'))
    try:
        config = load_config(config_path)
    except Exception as e:
        logging.basicConfig(level=logging.INFO)
        logger.error(f"Failed to load configuration: {e}")
        sys.exit(1)
    configure_root_logger(config.logging)
    return config


def _report_proposal(watch: RebalanceWatch, proposal: RebalanceProposal):
    logger.warning(
        f"Rebalance suggested for account {watch.account_id} copying {watch.source_wallet}: "
        f"max delta {proposal.max_abs_delta * 100:.2f}%"
    )


def build_app():
    """Wire collaborators from the loaded configuration"""
    config = _load_configuration()

    hyperliquid = HyperliquidClient()
    ledger = CapitalLedger()
    tracker = RatioTracker(portfolio_provider=hyperliquid)
    copy_trader = CopyTrader(
        market_data=hyperliquid,
        order_client=PaperOrderClient(market_data=hyperliquid),
        ledger=ledger,
        minimums=StaticMinimumTable.from_config(config),
        portfolio_provider=hyperliquid,
        tracker=tracker,
    )

    def balance_lookup(account_id: str) -> Decimal:
        snapshot = ledger.snapshot(account_id)
        if snapshot is None:
            raise KeyError(f"Account {account_id} is not tracked")
        return snapshot.available_balance

    monitor = None
    if os.getenv('REBALANCE_MONITOR', '').lower() in ('1', 'true', 'yes'):
        monitor = RebalanceMonitor(tracker, balance_lookup, _report_proposal)

    logger.info(f"Copy service ready (default platform: {config.trading.default_platform})")
    return create_app(copy_trader, tracker=tracker, monitor=monitor)


def main():
    uvicorn.run(build_app(), host=os.getenv('HOST', '0.0.0.0'), port=int(os.getenv('PORT', '8000')))


if __name__ == "__main__":
    main()
