from __future__ import annotations

from enum import Enum
from typing import Optional


class NodeType(str, Enum):
    UNKNOWN = "unknown"
    EXCHANGE = "exchange"
    PROTOCOL = "protocol"
    USER = "user"
    CONTRACT = "contract"
    HIGH_ACTIVITY = "high_activity"
    MAIN = "main"

    @classmethod
    def parse(cls, raw: object) -> Optional["NodeType"]:
        if raw is None:
            return None
        try:
            return cls(str(raw).strip().lower())
        except ValueError:
            return None


class ProtocolCategory(str, Enum):
    DEX = "dex"
    LENDING = "lending"
    YIELD = "yield"
    NFT = "nft"
    STAKING = "staking"
    STABLESWAP = "stableswap"
    BRIDGE = "bridge"
    GOVERNANCE = "governance"
    NATIVE = "native"
    OTHER = "other"


class TransactionStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"


class TransactionType(str, Enum):
    UNKNOWN = "unknown"
    TOKEN_TRANSFER = "token_transfer"
    SOL_TRANSFER = "sol_transfer"
    SWAP = "swap"
    NFT_SALE = "nft_sale"
    STAKE = "stake"
    LENDING_BORROW = "lending_borrow"


class InteractionState(str, Enum):
    IDLE = "idle"
    HOVERING = "hovering"
    SELECTED = "selected"
    EXPLORING = "exploring"


class SessionStatus(str, Enum):
    EMPTY = "empty"
    LOADING = "loading"
    READY = "ready"
    NO_CONNECTIONS = "no_connections"
    ERROR = "error"
