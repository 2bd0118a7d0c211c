from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional

import requests

from solviz.config.settings import (
    HELIUS_API_KEY,
    HELIUS_BASE_URL,
    HELIUS_REQUESTS_PER_SEC,
    HELIUS_TIMEOUT_SEC,
    HELIUS_MAX_RETRIES,
    TX_LIMIT_DEFAULT,
    TX_LIMIT_MAX,
)

from solviz.adapters.cache import ResponseCache
from solviz.adapters.chain.rate_limiter import SimpleRateLimiter, backoff_sleep
from solviz.core.dto import TransactionRecord, WalletRecord
from solviz.core.errors import DataSourceError, RateLimitError
from solviz.io.parsing import parse_transactions, parse_wallet
from solviz.ports.chain_data_port import ChainDataPort

logger = logging.getLogger(__name__)

_NO_DATA = object()


def clamp_limit(limit: Optional[int]) -> int:
    if not limit or limit <= 0:
        return TX_LIMIT_DEFAULT
    return min(int(limit), TX_LIMIT_MAX)


class HeliusChainAdapter(ChainDataPort):

    def __init__(
        self,
        api_key: Optional[str] = HELIUS_API_KEY,
        base_url: str = HELIUS_BASE_URL,
        cache: Optional[ResponseCache] = None,
        session: Optional[requests.Session] = None,
        requests_per_sec: float = HELIUS_REQUESTS_PER_SEC,
        backoff: Callable[[int], None] = backoff_sleep,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._timeout = HELIUS_TIMEOUT_SEC
        self._max_retries = HELIUS_MAX_RETRIES

        self._rl = SimpleRateLimiter(requests_per_sec)
        self._session = session or requests.Session()
        self._cache = cache if cache is not None else ResponseCache()
        self._backoff = backoff

    # ---------- internal ----------

    def _call(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        if not self._api_key:
            raise DataSourceError("Missing HELIUS_API_KEY")

        req = dict(params or {})
        req["api-key"] = self._api_key
        url = f"{self._base_url}/{path.lstrip('/')}"

        last_err: Optional[Exception] = None

        for attempt in range(self._max_retries):
            try:
                self._rl.wait()
                resp = self._session.get(url, params=req, timeout=self._timeout)

                if resp.status_code == 429:
                    last_err = RateLimitError(f"Helius rate limited: {path}")
                    self._backoff(attempt)
                    continue
                if resp.status_code == 404:
                    return _NO_DATA
                if 400 <= resp.status_code < 500:
                    # other 4xx are final
                    raise DataSourceError(f"Helius rejected {path}: HTTP {resp.status_code}")

                resp.raise_for_status()
                return resp.json()

            except (requests.RequestException, ValueError) as e:
                last_err = e
                logger.debug("helius %s attempt %d failed: %s", path, attempt + 1, e)
                self._backoff(attempt)

        raise DataSourceError(f"Helius failed after retries: {last_err}")

    # ---------- port methods ----------

    def get_transactions(self, address: str, limit: int = TX_LIMIT_DEFAULT) -> List[TransactionRecord]:
        n = clamp_limit(limit)

        def load() -> List[TransactionRecord]:
            data = self._call(f"addresses/{address}/transactions", {"limit": n})
            if data is _NO_DATA:
                return []
            txs = parse_transactions(data)
            logger.info("fetched %d transaction(s) for %s", len(txs), address)
            return txs

        return self._cache.get_or_load(("transactions", address, n), load)

    def get_wallet(
        self,
        address: str,
        transactions: Optional[List[TransactionRecord]] = None,
    ) -> Optional[WalletRecord]:
        txs = transactions if transactions is not None else self.get_transactions(address)

        balances = self._cache.get_or_load(
            ("balances", address),
            lambda: self._call(f"addresses/{address}/balances"),
        )
        if balances is _NO_DATA:
            balances = None

        if balances is None and not txs:
            return None
        return parse_wallet(address, balances, txs)
