"""
Decoding boundary for upstream JSON.

Everything that leaves this module is a strict TransactionRecord / WalletRecord.
Unknown shapes are defaulted or dropped here; nothing untyped flows further
into the pipeline.
"""
from __future__ import annotations

import logging
from collections import Counter
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Optional

from solviz.config import settings
from solviz.core.dto import (
    NativeTransfer,
    ProtocolInfo,
    TokenBalance,
    TokenTransfer,
    TransactionRecord,
    WalletRecord,
)
from solviz.core.enums import NodeType, ProtocolCategory, TransactionStatus, TransactionType
from solviz.data.protocols import determine_primary_protocol

logger = logging.getLogger(__name__)


_CATEGORY_TX_TYPES = {
    ProtocolCategory.DEX.value: TransactionType.SWAP,
    ProtocolCategory.STABLESWAP.value: TransactionType.SWAP,
    ProtocolCategory.LENDING.value: TransactionType.LENDING_BORROW,
    ProtocolCategory.STAKING.value: TransactionType.STAKE,
    ProtocolCategory.NFT.value: TransactionType.NFT_SALE,
}

_HELIUS_TX_TYPES = {
    "SWAP": TransactionType.SWAP,
    "TRANSFER": TransactionType.TOKEN_TRANSFER,
    "NFT_SALE": TransactionType.NFT_SALE,
    "STAKE_SOL": TransactionType.STAKE,
    "STAKE_TOKEN": TransactionType.STAKE,
}


def _dec(val: Any) -> Optional[Decimal]:
    if val is None or isinstance(val, bool):
        return None
    try:
        d = Decimal(str(val))
    except (InvalidOperation, ValueError):
        return None
    if not d.is_finite():
        return None
    return d


def _int(val: Any, default: int = 0) -> int:
    if val is None or isinstance(val, bool):
        return default
    try:
        return int(val)
    except (TypeError, ValueError, OverflowError):
        return default


def _str(val: Any) -> str:
    return val.strip() if isinstance(val, str) else ""


def _dicts(val: Any) -> List[Dict[str, Any]]:
    if not isinstance(val, list):
        return []
    return [v for v in val if isinstance(v, dict)]


def _account_key(key: Any) -> str:
    # RPC accountKeys are either plain strings or {"pubkey": ...}
    if isinstance(key, str):
        return key.strip()
    if isinstance(key, dict):
        return _str(key.get("pubkey"))
    return ""


# -------------------------
# Transactions
# -------------------------

def parse_token_transfers(raw: Any) -> List[TokenTransfer]:
    out: List[TokenTransfer] = []
    for t in _dicts(raw):
        src = _str(t.get("fromUserAccount") or t.get("from"))
        dst = _str(t.get("toUserAccount") or t.get("to"))
        amount = _dec(t.get("tokenAmount", t.get("amount")))
        if not src or not dst or amount is None or amount < 0:
            continue
        out.append(
            TokenTransfer(
                from_address=src,
                to_address=dst,
                amount=amount,
                mint=_str(t.get("mint")),
                symbol=t.get("symbol") if isinstance(t.get("symbol"), str) else None,
            )
        )
    return out


def parse_native_transfers(raw: Any) -> List[NativeTransfer]:
    out: List[NativeTransfer] = []
    for t in _dicts(raw):
        src = _str(t.get("fromUserAccount") or t.get("from"))
        dst = _str(t.get("toUserAccount") or t.get("to"))
        amount = _dec(t.get("amount"))
        if not src or not dst or amount is None or amount < 0:
            continue
        out.append(NativeTransfer(from_address=src, to_address=dst, amount=amount))
    return out


def _accounts(raw: Dict[str, Any]) -> List[str]:
    out: List[str] = []
    # Helius enhanced format
    for a in _dicts(raw.get("accountData")):
        key = _str(a.get("account"))
        if key:
            out.append(key)
    if out:
        return out

    # RPC format
    message = (raw.get("transaction") or {}).get("message") if isinstance(raw.get("transaction"), dict) else None
    keys = message.get("accountKeys") if isinstance(message, dict) else None
    if isinstance(keys, list):
        for k in keys:
            key = _account_key(k)
            if key:
                out.append(key)
    if out:
        return out

    accounts = raw.get("accounts")
    if isinstance(accounts, list):
        out = [_account_key(a) for a in accounts]
    return [a for a in out if a]


def _program_ids(raw: Dict[str, Any], accounts: List[str]) -> List[str]:
    seen: Dict[str, None] = {}

    def add_instruction(ins: Dict[str, Any]) -> None:
        pid = _str(ins.get("programId"))
        if not pid and "programIdIndex" in ins:
            idx = _int(ins.get("programIdIndex"), -1)
            if 0 <= idx < len(accounts):
                pid = accounts[idx]
        if pid:
            seen.setdefault(pid, None)

    # Helius enhanced format
    for ins in _dicts(raw.get("instructions")):
        add_instruction(ins)
        for inner in _dicts(ins.get("innerInstructions")):
            add_instruction(inner)

    # RPC format
    tx = raw.get("transaction") if isinstance(raw.get("transaction"), dict) else {}
    message = tx.get("message") if isinstance(tx.get("message"), dict) else {}
    for ins in _dicts(message.get("instructions")):
        add_instruction(ins)

    meta = raw.get("meta") if isinstance(raw.get("meta"), dict) else {}
    for group in _dicts(meta.get("innerInstructions")) + _dicts(raw.get("innerInstructions")):
        for ins in _dicts(group.get("instructions")):
            add_instruction(ins)

    pids = raw.get("programIds")
    for pid in pids if isinstance(pids, list) else []:
        if isinstance(pid, str) and pid:
            seen.setdefault(pid, None)

    return list(seen)


def determine_transaction_type(
    raw: Dict[str, Any],
    protocol: Optional[ProtocolInfo],
    token_transfers: List[TokenTransfer],
    native_transfers: List[NativeTransfer],
) -> TransactionType:
    if protocol is not None and protocol.category in _CATEGORY_TX_TYPES:
        return _CATEGORY_TX_TYPES[protocol.category]

    helius_type = _str(raw.get("type")).upper()
    if helius_type in _HELIUS_TX_TYPES:
        return _HELIUS_TX_TYPES[helius_type]

    if token_transfers:
        return TransactionType.TOKEN_TRANSFER
    if native_transfers:
        return TransactionType.SOL_TRANSFER
    return TransactionType.UNKNOWN


def parse_transaction(raw: Any) -> Optional[TransactionRecord]:
    """
    Returns None only when the record has no usable signature.
    """
    if not isinstance(raw, dict):
        return None

    tx = raw.get("transaction") if isinstance(raw.get("transaction"), dict) else {}
    sigs = tx.get("signatures") if isinstance(tx.get("signatures"), list) else []
    signature = _str(raw.get("signature")) or (_str(sigs[0]) if sigs else "")
    if not signature:
        return None

    meta = raw.get("meta") if isinstance(raw.get("meta"), dict) else {}
    accounts = _accounts(raw)
    program_ids = _program_ids(raw, accounts)
    protocol = determine_primary_protocol(program_ids)

    token_transfers = parse_token_transfers(raw.get("tokenTransfers"))
    native_transfers = parse_native_transfers(raw.get("nativeTransfers"))

    failed = bool(raw.get("transactionError") or raw.get("err") or meta.get("err"))

    return TransactionRecord(
        signature=signature,
        timestamp=_int(raw.get("timestamp", raw.get("blockTime"))),
        token_transfers=token_transfers,
        native_transfers=native_transfers,
        accounts=accounts,
        program_ids=program_ids,
        slot=_int(raw.get("slot")),
        fee=_int(raw.get("fee", meta.get("fee"))),
        status=TransactionStatus.FAILED if failed else TransactionStatus.SUCCESS,
        tx_type=determine_transaction_type(raw, protocol, token_transfers, native_transfers),
        protocol=protocol,
    )


def parse_transactions(raw: Any) -> List[TransactionRecord]:
    if not isinstance(raw, list):
        return []
    out: List[TransactionRecord] = []
    skipped = 0
    for r in raw:
        rec = parse_transaction(r)
        if rec is None:
            skipped += 1
            continue
        out.append(rec)
    if skipped:
        logger.debug("skipped %d transaction record(s) without signature", skipped)
    return out


# -------------------------
# Wallets
# -------------------------

def infer_wallet_type(
    transactions: List[TransactionRecord],
    swap_count_threshold: int = settings.EXCHANGE_SWAP_COUNT,
    dominance_ratio: float = settings.PROTOCOL_DOMINANCE_RATIO,
) -> str:
    if not transactions:
        return NodeType.UNKNOWN.value

    types = Counter(tx.tx_type for tx in transactions)
    if types[TransactionType.SWAP] > swap_count_threshold:
        return NodeType.EXCHANGE.value

    protocols = Counter(tx.protocol.name for tx in transactions if tx.protocol is not None)
    total = len(transactions)
    for _, count in protocols.items():
        if count / total > dominance_ratio:
            return NodeType.PROTOCOL.value

    # NFT collectors are plain users for classification purposes
    return NodeType.USER.value


def _token_balances(raw: Any) -> List[TokenBalance]:
    out: List[TokenBalance] = []
    for t in _dicts(raw):
        mint = _str(t.get("mint"))
        amount = _dec(t.get("amount"))
        if not mint or amount is None:
            continue
        # SPL decimals are a u8
        decimals = min(max(_int(t.get("decimals")), 0), 255)
        ui_amount = amount / (Decimal(10) ** decimals) if decimals > 0 else amount
        out.append(
            TokenBalance(
                mint=mint,
                amount=ui_amount,
                decimals=decimals,
                symbol=t.get("symbol") if isinstance(t.get("symbol"), str) else None,
            )
        )
    return out


def parse_wallet(
    address: str,
    balances: Any,
    transactions: Optional[List[TransactionRecord]] = None,
) -> WalletRecord:
    txs = list(transactions or [])
    data = balances if isinstance(balances, dict) else {}

    lamports = _int(data.get("nativeBalance", data.get("lamports")))
    stamps = [tx.timestamp for tx in txs if tx.timestamp > 0]

    return WalletRecord(
        address=address,
        balance=max(lamports, 0),
        token_balances=_token_balances(data.get("tokens")),
        transaction_count=len(txs),
        first_activity_at=min(stamps) if stamps else None,
        last_activity_at=max(stamps) if stamps else None,
        label=data.get("label") if isinstance(data.get("label"), str) else None,
        type=infer_wallet_type(txs),
    )


def parse_names(raw: Any, addresses: Iterable[str]) -> Dict[str, str]:
    wanted = set(addresses)
    names: Dict[str, str] = {}
    for item in _dicts(raw):
        addr = _str(item.get("address"))
        name = _str(item.get("displayName") or item.get("name"))
        if addr and name and addr in wanted:
            names[addr] = name
    return names
