import asyncio
from decimal import Decimal

import pytest

from exchange_connector_base import PositionDistribution
from ratio_tracker import (
    InMemoryDistributionStore,
    RatioTracker,
    RebalanceMonitor,
    compute_rebalance_delta,
)
from fakes import FakePortfolio, position

WALLET = "0xAbC"


def _entry(symbol: str, percentage: str, side: str = "long") -> PositionDistribution:
    return PositionDistribution(
        symbol=symbol,
        side=side,
        percentage_of_portfolio=Decimal(percentage),
        target_notional=Decimal("0"),
    )


def test_ratio_shift_produces_symmetric_deltas() -> None:
    stored = [_entry("BTC", "0.5"), _entry("ETH", "0.5")]
    current = [_entry("BTC", "0.6"), _entry("ETH", "0.4")]

    proposal = compute_rebalance_delta(stored, current)

    assert [d.delta_percentage for d in proposal.deltas] == [Decimal("0.1"), Decimal("-0.1")]
    assert proposal.max_abs_delta == Decimal("0.1")
    assert proposal.requires_rebalance is True
    assert proposal.proposed_request is None


def test_small_drift_stays_within_threshold() -> None:
    stored = [_entry("BTC", "0.5"), _entry("ETH", "0.5")]
    current = [_entry("BTC", "0.52"), _entry("ETH", "0.48")]

    proposal = compute_rebalance_delta(stored, current)

    assert proposal.requires_rebalance is False
    assert compute_rebalance_delta(stored, current, threshold_percent=Decimal("1")).requires_rebalance is True


def test_new_closed_and_flipped_symbols_are_flagged() -> None:
    stored = [_entry("BTC", "0.5"), _entry("ETH", "0.3"), _entry("SOL", "0.2")]
    current = [_entry("BTC", "0.5"), _entry("ETH", "0.3", side="short"), _entry("DOGE", "0.2")]

    proposal = compute_rebalance_delta(stored, current)
    deltas = {d.symbol: d for d in proposal.deltas}

    assert [d.symbol for d in proposal.deltas] == ["BTC", "ETH", "SOL", "DOGE"]
    assert deltas["ETH"].side_changed is True
    assert deltas["ETH"].delta_percentage == Decimal("0")
    assert deltas["SOL"].is_closed is True
    assert deltas["SOL"].current_percentage == Decimal("0")
    assert deltas["DOGE"].is_new is True
    assert deltas["DOGE"].stored_percentage == Decimal("0")
    assert proposal.requires_rebalance is True


def test_store_keys_wallets_case_insensitively() -> None:
    tracker = RatioTracker(portfolio_provider=FakePortfolio(), store=InMemoryDistributionStore())
    tracker.record("acct-1", WALLET, [_entry("BTC", "1")])

    assert tracker.stored_distribution("acct-1", WALLET.lower()).entries[0].symbol == "BTC"
    assert tracker.store.list_keys() == [("acct-1", WALLET.lower())]
    assert tracker.store.delete("acct-1", WALLET) is True

    with pytest.raises(KeyError):
        tracker.stored_distribution("acct-1", WALLET)


def test_propose_rebalance_against_current_positions() -> None:
    portfolio = FakePortfolio({WALLET: [position("BTC", 600), position("ETH", 400)]})
    tracker = RatioTracker(portfolio_provider=portfolio)
    tracker.record("acct-1", WALLET, [_entry("BTC", "0.5"), _entry("ETH", "0.5")])

    proposal = asyncio.run(tracker.propose_rebalance(
        account_id="acct-1",
        source_wallet=WALLET,
        available_balance=Decimal("1000"),
        allocation_fraction=Decimal("0.5"),
    ))

    assert proposal.requires_rebalance is True
    assert [d.delta_percentage for d in proposal.deltas] == [Decimal("0.1"), Decimal("-0.1")]
    request = proposal.proposed_request
    assert request is not None
    assert [p.symbol for p in request.source_portfolio] == ["BTC", "ETH"]
    assert request.allocation_fraction == Decimal("0.5")
    assert request.source_wallet == WALLET


def test_unchanged_source_needs_no_request() -> None:
    portfolio = FakePortfolio({WALLET: [position("BTC", 500), position("ETH", 500)]})
    tracker = RatioTracker(portfolio_provider=portfolio)
    tracker.record("acct-1", WALLET, [_entry("BTC", "0.5"), _entry("ETH", "0.5")])

    proposal = asyncio.run(tracker.propose_rebalance("acct-1", WALLET, Decimal("1000"), Decimal("1")))

    assert proposal.requires_rebalance is False
    assert proposal.proposed_request is None


def test_source_that_closed_everything() -> None:
    tracker = RatioTracker(portfolio_provider=FakePortfolio({WALLET: []}))
    tracker.record("acct-1", WALLET, [_entry("BTC", "1")])

    proposal = asyncio.run(tracker.propose_rebalance("acct-1", WALLET, Decimal("1000"), Decimal("1")))

    assert proposal.deltas[0].is_closed is True
    assert proposal.requires_rebalance is True
    assert proposal.proposed_request is None


def test_monitor_reports_only_actionable_proposals() -> None:
    portfolio = FakePortfolio({
        "0xmoved": [position("BTC", 700), position("ETH", 300)],
        "0xsteady": [position("BTC", 500), position("ETH", 500)],
    })
    tracker = RatioTracker(portfolio_provider=portfolio)
    for wallet in ("0xmoved", "0xsteady"):
        tracker.record("acct-1", wallet, [_entry("BTC", "0.5"), _entry("ETH", "0.5")])

    reported = []
    monitor = RebalanceMonitor(
        tracker,
        balance_lookup=lambda account_id: Decimal("1000"),
        on_proposal=lambda watch, proposal: reported.append(watch.source_wallet),
    )
    monitor.watch("acct-1", "0xmoved", Decimal("1"))
    monitor.watch("acct-1", "0xsteady", Decimal("1"))
    monitor.watch("acct-1", "0xnever-copied", Decimal("1"))

    proposals = asyncio.run(monitor.poll_once())

    assert len(proposals) == 2
    assert reported == ["0xmoved"]
    assert monitor.interval_seconds == 30


def test_monitor_awaits_async_callbacks_and_schedules() -> None:
    portfolio = FakePortfolio({WALLET: [position("BTC", 1)]})
    tracker = RatioTracker(portfolio_provider=portfolio)
    tracker.record("acct-1", WALLET, [_entry("ETH", "1")])
    reported = []

    async def on_proposal(watch, proposal):
        reported.append(proposal.max_abs_delta)

    monitor = RebalanceMonitor(tracker, lambda account_id: Decimal("100"), on_proposal, interval_seconds=60)
    monitor.watch("acct-1", WALLET, Decimal("1"))

    async def run():
        monitor.start()
        running = monitor.scheduler is not None
        await monitor.poll_once()
        monitor.stop()
        return running

    assert asyncio.run(run()) is True
    assert monitor.scheduler is None
    assert reported == [Decimal("1")]

    monitor.unwatch("acct-1", WALLET)
    assert monitor.watches == []
