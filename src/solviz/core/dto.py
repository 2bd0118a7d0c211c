from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional

from solviz.core.enums import TransactionStatus, TransactionType


@dataclass(frozen=True)
class TokenTransfer:
    from_address: str
    to_address: str
    amount: Decimal         # ui amount as reported upstream
    mint: str = ""
    symbol: Optional[str] = None


@dataclass(frozen=True)
class NativeTransfer:
    from_address: str
    to_address: str
    amount: Decimal         # lamports


@dataclass(frozen=True)
class ProtocolInfo:
    protocol_id: str
    name: str
    category: str
    website: Optional[str] = None


@dataclass(frozen=True)
class TransactionRecord:
    signature: str
    timestamp: int = 0
    token_transfers: List[TokenTransfer] = field(default_factory=list)
    native_transfers: List[NativeTransfer] = field(default_factory=list)
    accounts: List[str] = field(default_factory=list)       # source first
    program_ids: List[str] = field(default_factory=list)

    slot: int = 0
    fee: int = 0
    status: TransactionStatus = TransactionStatus.SUCCESS
    tx_type: TransactionType = TransactionType.UNKNOWN
    protocol: Optional[ProtocolInfo] = None


@dataclass(frozen=True)
class TokenBalance:
    mint: str
    amount: Decimal
    decimals: int = 0
    symbol: Optional[str] = None


@dataclass(frozen=True)
class WalletRecord:
    address: str
    balance: int = 0                       # lamports
    token_balances: List[TokenBalance] = field(default_factory=list)
    transaction_count: int = 0
    first_activity_at: Optional[int] = None
    last_activity_at: Optional[int] = None
    label: Optional[str] = None
    type: Optional[str] = None
    protocol_id: Optional[str] = None
    protocol_name: Optional[str] = None
    protocol_category: Optional[str] = None
