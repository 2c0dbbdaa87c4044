from decimal import Decimal

import pytest

from exchange_connector_base import InsufficientBalance, ScaledPositionStatus
from fakes import make_preview, position, three_asset_portfolio


def test_preview_with_small_balance_skips_below_minimum() -> None:
    preview = make_preview(three_asset_portfolio(), balance=30)

    assert [p.symbol for p in preview.executable_positions] == ["BTC"]
    assert preview.total_notional == Decimal("15")
    assert preview.remaining_balance == Decimal("15")
    assert preview.skipped_count == 2
    assert preview.adjusted_count == 0
    assert preview.platform == "hyperliquid"
    assert len(preview.warnings) == 2


def test_preview_is_re_derivable() -> None:
    first = make_preview(three_asset_portfolio(), balance=1000, fraction="0.4")
    second = make_preview(three_asset_portfolio(), balance=1000, fraction="0.4")

    assert first.preview_id != second.preview_id
    assert first.content_equals(second)


def test_preview_reflects_allocation_fraction() -> None:
    preview = make_preview(three_asset_portfolio(), balance=1000, fraction="0.5")

    assert preview.allocated_capital == Decimal("500")
    assert [p.target_notional for p in preview.positions] == [Decimal("250"), Decimal("150"), Decimal("100")]
    assert preview.total_notional == Decimal("500")
    assert preview.remaining_balance == Decimal("500")


def test_everything_below_minimum_reports_shortfall() -> None:
    with pytest.raises(InsufficientBalance) as exc_info:
        make_preview(three_asset_portfolio(), balance=10)

    error = exc_info.value
    # BTC at 50% needs $24 allocated to clear a $12 minimum
    assert error.required == Decimal("24.00")
    assert error.shortfall == Decimal("14.00")
    assert error.available == Decimal("10")
    assert error.to_dict()["shortfall"] == "14.00"


def test_minimum_enforced_total_above_balance_is_rejected() -> None:
    with pytest.raises(InsufficientBalance) as exc_info:
        make_preview(three_asset_portfolio(), balance=30, scaling_mode="minimum_enforced")

    # 15 + 12 + 12 against a $30 balance
    assert exc_info.value.required == Decimal("39")
    assert exc_info.value.shortfall == Decimal("9")
    assert exc_info.value.available == Decimal("30")


def test_minimum_enforced_may_spend_past_the_allocation() -> None:
    preview = make_preview(three_asset_portfolio(), balance=100, fraction="0.5", scaling_mode="minimum_enforced")

    # 25 + 15 + 10 allocated, SOL raised to 12, still within the $100 balance
    assert preview.allocated_capital == Decimal("50")
    assert preview.total_notional == Decimal("52")
    assert preview.remaining_balance == Decimal("48")
    assert preview.adjusted_count == 1
    assert preview.exceeds_allocation is True
    assert "over the $50.00 allocation" in preview.warnings[-1]


def test_minimum_enforced_uses_rounding_slack() -> None:
    portfolio = [position("BTC", 100), position("ETH", 100), position("SOL", 100)]
    preview = make_preview(portfolio, balance=36, scaling_mode="minimum_enforced")

    # Each third truncates to 11.99 and is raised to the $12 minimum
    assert preview.adjusted_count == 3
    assert all(p.status == ScaledPositionStatus.ADJUSTED for p in preview.positions)
    assert all(p.proportional_notional == Decimal("11.99") for p in preview.positions)
    assert preview.total_notional == Decimal("36")
    assert preview.remaining_balance == Decimal("0")
    assert preview.exceeds_allocation is False


def test_minimum_enforced_without_small_positions_matches_proportional() -> None:
    enforced = make_preview(three_asset_portfolio(), balance=1000, scaling_mode="minimum_enforced")
    proportional = make_preview(three_asset_portfolio(), balance=1000)

    assert enforced.adjusted_count == 0
    assert [p.target_size for p in enforced.positions] == [p.target_size for p in proportional.positions]
