"""Pure comparison of a stored distribution against the source's current one"""

from decimal import Decimal
from typing import List, Optional

from exchange_connector_base import PositionDistribution, RebalanceDelta, RebalanceProposal
from app_config import get_config


def compute_rebalance_delta(stored: List[PositionDistribution],
                            current: List[PositionDistribution],
                            threshold_percent: Optional[Decimal] = None,
                            source_wallet: Optional[str] = None) -> RebalanceProposal:
    """
    Per-symbol delta = current percentage - stored percentage.

    Symbols only in the current distribution are flagged is_new; symbols only
    in the stored one are flagged is_closed with a current percentage of 0.
    Stored symbols come first in stored order, then new ones in current order.
    The result carries no proposed request; callers decide whether to build one.
    """
    if threshold_percent is None:
        threshold_percent = get_config().rebalance.delta_threshold_percent
    threshold = threshold_percent / 100

    current_map = {entry.symbol: entry for entry in current}
    stored_symbols = set()
    deltas = []

    for entry in stored:
        stored_symbols.add(entry.symbol)
        now = current_map.get(entry.symbol)
        if now is None:
            deltas.append(RebalanceDelta(
                symbol=entry.symbol,
                side=entry.side,
                stored_percentage=entry.percentage_of_portfolio,
                current_percentage=Decimal('0'),
                delta_percentage=-entry.percentage_of_portfolio,
                is_closed=True,
            ))
            continue

        deltas.append(RebalanceDelta(
            symbol=entry.symbol,
            side=now.side,
            stored_percentage=entry.percentage_of_portfolio,
            current_percentage=now.percentage_of_portfolio,
            delta_percentage=now.percentage_of_portfolio - entry.percentage_of_portfolio,
            side_changed=now.side != entry.side,
        ))

    for entry in current:
        if entry.symbol in stored_symbols:
            continue
        deltas.append(RebalanceDelta(
            symbol=entry.symbol,
            side=entry.side,
            stored_percentage=Decimal('0'),
            current_percentage=entry.percentage_of_portfolio,
            delta_percentage=entry.percentage_of_portfolio,
            is_new=True,
        ))

    max_abs_delta = max((abs(d.delta_percentage) for d in deltas), default=Decimal('0'))
    requires_rebalance = any(
        d.is_new or d.is_closed or d.side_changed for d in deltas
    ) or (bool(deltas) and max_abs_delta >= threshold)

    return RebalanceProposal(
        source_wallet=source_wallet,
        deltas=deltas,
        max_abs_delta=max_abs_delta,
        requires_rebalance=requires_rebalance,
    )
