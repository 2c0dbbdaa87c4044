"""Per-account capital ledger: request-scoped locks plus versioned balances"""

import asyncio
from collections import defaultdict
from contextlib import asynccontextmanager
from dataclasses import dataclass
from decimal import Decimal
from typing import AsyncIterator, Dict, Optional
import logging

from exchange_connector_base import StaleBalance
from app_logging import get_logger


@dataclass(frozen=True)
class BalanceSnapshot:
    """Balance of one account as observed at a given ledger version"""
    account_id: str
    available_balance: Decimal
    version: int


class CapitalLedger:
    """
    Owns each user account's available balance.

    A copy request holds the account lock for its whole validation+execution
    window. Every balance change bumps the version, so a preview built against
    an older version can be detected and re-validated.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or get_logger(__name__)
        self._balances: Dict[str, BalanceSnapshot] = {}
        self._account_locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def snapshot(self, account_id: str) -> Optional[BalanceSnapshot]:
        return self._balances.get(account_id)

    def is_tracked(self, account_id: str) -> bool:
        return account_id in self._balances

    def set_balance(self, account_id: str, available_balance: Decimal) -> BalanceSnapshot:
        """Replace the balance (e.g. after an external deposit) and bump the version"""
        if available_balance < 0:
            raise ValueError(f"Balance for account {account_id} cannot be negative: {available_balance}")

        current = self._balances.get(account_id)
        version = current.version + 1 if current else 1
        snapshot = BalanceSnapshot(account_id, available_balance, version)
        self._balances[account_id] = snapshot
        self.logger.info(f"Balance for account {account_id} set to ${available_balance:,.2f} (version {version})")
        return snapshot

    def debit(self, account_id: str, amount: Decimal, expected_version: int) -> BalanceSnapshot:
        """
        Check-and-set debit of committed capital.

        Raises:
            StaleBalance: the ledger moved past expected_version
            KeyError: the account is not tracked
        """
        current = self._balances[account_id]
        if current.version != expected_version:
            raise StaleBalance(account_id, expected_version, current.version)

        snapshot = BalanceSnapshot(account_id, current.available_balance - amount, current.version + 1)
        self._balances[account_id] = snapshot
        self.logger.info(
            f"Debited ${amount:,.2f} from account {account_id}: "
            f"${current.available_balance:,.2f} -> ${snapshot.available_balance:,.2f} (version {snapshot.version})"
        )
        return snapshot

    @asynccontextmanager
    async def hold(self, account_id: str) -> AsyncIterator[Optional[BalanceSnapshot]]:
        """Serialize copy operations on one account; yields the balance seen under the lock"""
        waiting_accounts = [acc_id for acc_id, lock in self._account_locks.items() if lock.locked()]
        if account_id in waiting_accounts:
            self.logger.debug(f"Account {account_id} waiting for an in-flight copy operation")

        async with self._account_locks[account_id]:
            self.logger.debug(f"Account {account_id} acquired capital lock")
            yield self.snapshot(account_id)
