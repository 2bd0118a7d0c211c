from solviz.ports.chain_data_port import ChainDataPort
from solviz.core.dto import TransactionRecord, WalletRecord
from solviz.core.errors import DataSourceError
from typing import Dict, List, Optional

class StaticChainAdapter(ChainDataPort):
    def __init__(self,
                 wallets: Optional[Dict[str, WalletRecord]] = None,
                 transactions: Optional[Dict[str, List[TransactionRecord]]] = None,
                 failing: Optional[List[str]] = None,
                 ):
        self._wallets = dict(wallets or {})
        self._txs = {k: list(v) for k, v in (transactions or {}).items()}
        self._failing = set(failing or [])
        self.calls: List[str] = []

    def get_transactions(self, address, limit = 50):
        self.calls.append(address)
        if address in self._failing:
            raise DataSourceError(f"static failure for {address}")
        items = sorted(self._txs.get(address, []), key=lambda t: t.timestamp, reverse=True)
        return items[:limit]

    def get_wallet(self, address, transactions = None):
        if address in self._failing:
            raise DataSourceError(f"static failure for {address}")
        return self._wallets.get(address)
