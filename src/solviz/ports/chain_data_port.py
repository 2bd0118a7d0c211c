from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Optional
from solviz.core.dto import TransactionRecord, WalletRecord

class ChainDataPort(ABC):
    """
    Abstract Class for fetching wallet and transaction projections.
    """

    # --- Wallet summary (balance, activity); None = no data ---

    @abstractmethod
    def get_wallet(
        self,
        address: str,
        transactions: Optional[List[TransactionRecord]] = None,
    ) -> Optional[WalletRecord]:
        raise NotImplementedError

    # --- Recent transactions, newest first ---

    @abstractmethod
    def get_transactions(self, address: str, limit: int = 50) -> List[TransactionRecord]:
        raise NotImplementedError
