from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Tuple
from exchange_connector_base import StoredDistribution


class DistributionStore(ABC):
    """Abstract persistence for copy-time distributions, keyed by account and source wallet"""

    @abstractmethod
    def save(self, stored: StoredDistribution):
        """Store or replace the distribution for (account_id, source_wallet)"""
        pass

    @abstractmethod
    def get(self, account_id: str, source_wallet: str) -> Optional[StoredDistribution]:
        """Stored distribution, or None when the wallet was never copied"""
        pass

    @abstractmethod
    def delete(self, account_id: str, source_wallet: str) -> bool:
        """Forget a stored distribution; True if one existed"""
        pass

    @abstractmethod
    def list_keys(self) -> List[Tuple[str, str]]:
        """All (account_id, source_wallet) pairs with a stored distribution"""
        pass


class InMemoryDistributionStore(DistributionStore):
    """Process-local store; records are immutable so they are shared, not copied"""

    def __init__(self):
        self._records: Dict[Tuple[str, str], StoredDistribution] = {}

    def save(self, stored: StoredDistribution):
        self._records[(stored.account_id, stored.source_wallet.lower())] = stored

    def get(self, account_id: str, source_wallet: str) -> Optional[StoredDistribution]:
        return self._records.get((account_id, source_wallet.lower()))

    def delete(self, account_id: str, source_wallet: str) -> bool:
        return self._records.pop((account_id, source_wallet.lower()), None) is not None

    def list_keys(self) -> List[Tuple[str, str]]:
        return list(self._records)
