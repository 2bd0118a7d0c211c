from __future__ import annotations

import base58

from solviz.core.errors import InvalidAddressError

PUBKEY_LENGTH = 32


def is_valid_address(address: str) -> bool:
    if not address or not isinstance(address, str):
        return False
    addr = address.strip()
    if not 32 <= len(addr) <= 44:
        return False
    try:
        raw = base58.b58decode(addr)
    except ValueError:
        return False
    return len(raw) == PUBKEY_LENGTH


def validate_address(address: str) -> str:
    """
    Returns the stripped address or raises InvalidAddressError.
    Solana addresses are case-sensitive, so no normalization beyond stripping.
    """
    addr = (address or "").strip()
    if not is_valid_address(addr):
        raise InvalidAddressError(f"Invalid Solana address: {address!r}")
    return addr


def short_address(address: str, head: int = 6, tail: int = 4) -> str:
    if not address:
        return ""
    if len(address) <= head + tail + 3:
        return address
    return f"{address[:head]}...{address[-tail:]}"
