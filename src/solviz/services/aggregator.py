from __future__ import annotations

import logging
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Set, Tuple

from solviz.core.dto import ProtocolInfo, TransactionRecord
from solviz.core.models import Connection

logger = logging.getLogger(__name__)

Key = Tuple[str, str]

CO_OCCURRENCE_MAX_TARGETS = 4
SIGNATURE_SPLIT = 8


def _tag_protocol(conn: Connection, protocol: Optional[ProtocolInfo]) -> None:
    # first protocol seen on a pair wins
    if protocol is None or conn.protocol_category:
        return
    conn.protocol_id = protocol.protocol_id
    conn.protocol_name = protocol.name
    conn.protocol_category = protocol.category


def _observe(
    acc: Dict[Key, Connection],
    source: str,
    target: str,
    amount: Decimal,
    tx: TransactionRecord,
    placeholder: bool = False,
) -> None:
    if not source or not target or source == target:
        return
    if amount < 0:
        return
    key = (source, target)
    conn = acc.get(key)
    if conn is None:
        conn = Connection(source=source, target=target, placeholder=placeholder)
        acc[key] = conn
    conn.value += amount
    conn.transaction_count += 1
    conn.last_interaction = max(conn.last_interaction, int(tx.timestamp or 0))
    _tag_protocol(conn, tx.protocol)


def _from_token_transfers(transactions: List[TransactionRecord]) -> Dict[Key, Connection]:
    acc: Dict[Key, Connection] = {}
    for tx in transactions:
        for t in tx.token_transfers or []:
            _observe(acc, t.from_address, t.to_address, t.amount, tx)
    return acc


def _from_native_transfers(transactions: List[TransactionRecord]) -> Dict[Key, Connection]:
    acc: Dict[Key, Connection] = {}
    for tx in transactions:
        for t in tx.native_transfers or []:
            _observe(acc, t.from_address, t.to_address, t.amount, tx)
    return acc


def _unique(accounts: Iterable[str]) -> List[str]:
    seen: Set[str] = set()
    out: List[str] = []
    for a in accounts or []:
        if a and a not in seen:
            seen.add(a)
            out.append(a)
    return out


def _from_accounts(
    transactions: List[TransactionRecord],
    signature_fallback: bool,
) -> Dict[Key, Connection]:
    acc: Dict[Key, Connection] = {}
    zero = Decimal("0")
    for tx in transactions:
        accounts = _unique(tx.accounts)
        if len(accounts) >= 2:
            source = accounts[0]
            for target in accounts[1:1 + CO_OCCURRENCE_MAX_TARGETS]:
                _observe(acc, source, target, zero, tx)
        elif signature_fallback:
            sig = tx.signature or ""
            _observe(
                acc,
                sig[:SIGNATURE_SPLIT],
                sig[SIGNATURE_SPLIT:2 * SIGNATURE_SPLIT],
                zero,
                tx,
                placeholder=True,
            )
    return acc


def aggregate(
    transactions: Iterable[TransactionRecord],
    signature_fallback: bool = False,
) -> List[Connection]:
    """
    Reduce a batch of transactions into directional, weighted connections.

    Strategies are tried in order and the batch falls through to the next one
    only when the current one produced nothing for the whole batch:
    token transfers, native transfers, account co-occurrence. With
    ``signature_fallback`` transactions lacking accounts are connected through
    pseudo-addresses cut from their signature; those connections carry
    ``placeholder=True`` and are display-only.

    Never raises on malformed records; they simply contribute nothing.
    """
    txs = [tx for tx in transactions or [] if tx is not None]
    if not txs:
        return []

    acc = _from_token_transfers(txs)
    strategy = "token"
    if not acc:
        acc = _from_native_transfers(txs)
        strategy = "native"
    if not acc:
        acc = _from_accounts(txs, signature_fallback)
        strategy = "accounts"

    logger.debug("aggregated %d tx(s) into %d connection(s) via %s", len(txs), len(acc), strategy)
    return list(acc.values())


def merge_connections(existing: Dict[Key, Connection], new: Iterable[Connection]) -> Dict[Key, Connection]:
    """
    Additive merge into ``existing`` (mutated and returned). Values and counts
    are summed, the last interaction only moves forward.
    """
    for c in new:
        cur = existing.get(c.key)
        if cur is None:
            existing[c.key] = Connection(
                source=c.source,
                target=c.target,
                value=c.value,
                transaction_count=c.transaction_count,
                last_interaction=c.last_interaction,
                protocol_id=c.protocol_id,
                protocol_name=c.protocol_name,
                protocol_category=c.protocol_category,
                placeholder=c.placeholder,
            )
            continue
        cur.value += c.value
        cur.transaction_count += c.transaction_count
        cur.last_interaction = max(cur.last_interaction, c.last_interaction)
        if not cur.protocol_category and c.protocol_category:
            cur.protocol_id = c.protocol_id
            cur.protocol_name = c.protocol_name
            cur.protocol_category = c.protocol_category
        cur.placeholder = cur.placeholder and c.placeholder
    return existing


def filter_connections(
    connections: Iterable[Connection],
    min_transactions: int = 1,
    max_nodes: int = 0,
) -> List[Connection]:
    """
    Keep connections with at least ``min_transactions``; with ``max_nodes``
    keep the ``2 * max_nodes`` most active ones.
    """
    kept = [c for c in connections if c.transaction_count >= min_transactions]
    if max_nodes > 0:
        # stable: equal counts keep arrival order
        kept = sorted(kept, key=lambda c: c.transaction_count, reverse=True)[: max_nodes * 2]
    return kept


class ConnectionAggregator:
    """
    Session-lifetime connection state. Transactions already seen (by
    signature) are skipped, so overlapping refetches never double count.
    """

    def __init__(self, signature_fallback: bool = False) -> None:
        self.signature_fallback = signature_fallback
        self._connections: Dict[Key, Connection] = {}
        self._processed: Set[str] = set()

    def add_batch(self, transactions: Iterable[TransactionRecord]) -> List[Connection]:
        fresh: List[TransactionRecord] = []
        for tx in transactions or []:
            if tx is None:
                continue
            sig = tx.signature or ""
            if sig and sig in self._processed:
                continue
            if sig:
                self._processed.add(sig)
            fresh.append(tx)

        new = aggregate(fresh, signature_fallback=self.signature_fallback)
        merge_connections(self._connections, new)
        return new

    def connections(self) -> List[Connection]:
        return list(self._connections.values())

    def get(self, source: str, target: str) -> Optional[Connection]:
        return self._connections.get((source, target))

    @property
    def processed_count(self) -> int:
        return len(self._processed)

    def clear(self) -> None:
        self._connections.clear()
        self._processed.clear()
