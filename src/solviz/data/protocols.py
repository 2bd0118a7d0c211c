from __future__ import annotations

from typing import Dict, Iterable, Optional

from solviz.core.dto import ProtocolInfo
from solviz.core.enums import ProtocolCategory


# Known program ids -> protocol. Lowercase categories.
PROGRAM_ID_MAPPINGS: Dict[str, ProtocolInfo] = {
    "JUP4Fb2cqiRUcaTHdrPC8h2gNsA2ETXiPDD33WcGuJB": ProtocolInfo(
        "jupiter", "Jupiter Aggregator", ProtocolCategory.DEX.value, "https://jup.ag"
    ),
    "JUP6LkbZbjS1jKKwapdHNy74zcZ3tLUZoi5QNyVTaV4": ProtocolInfo(
        "jupiter", "Jupiter Aggregator v6", ProtocolCategory.DEX.value, "https://jup.ag"
    ),
    "MarBmsSgKXdrN1egZf5sqe1TMai9K1rChYNDJgjq7aD": ProtocolInfo(
        "marinade", "Marinade Finance", ProtocolCategory.STAKING.value, "https://marinade.finance"
    ),
    "metaqbxxUerdq28cj1RbAWkYQm3ybzjb6a8bt518x1s": ProtocolInfo(
        "metaplex", "Metaplex", ProtocolCategory.NFT.value, "https://metaplex.com"
    ),
    "9xQeWvG816bUx9EPjHmaT23yvVM2ZWbrrpZb9PusVFin": ProtocolInfo(
        "serum", "Serum DEX v3", ProtocolCategory.DEX.value, "https://projectserum.com"
    ),
    "So1endDq2YkqhipRh3WViPa8hdiSpxWy6z3Z6tMCpAo": ProtocolInfo(
        "solend", "Solend", ProtocolCategory.LENDING.value, "https://solend.fi"
    ),
    "675kPX9MHTjS2zt1qfr1NYHuzeLXfQM9H24wFSUt1Mp8": ProtocolInfo(
        "raydium", "Raydium Liquidity Pool V4", ProtocolCategory.DEX.value, "https://raydium.io"
    ),
    "SSwpkEEcbUqx4vtoEByFjSkhKdCT862DNVb52nZg1UZ": ProtocolInfo(
        "saber", "Saber", ProtocolCategory.STABLESWAP.value, "https://saber.so"
    ),
    "9W959DqEETiGZocYWCQPaJ6sBmUzgfxXfqGeTEdp3aQP": ProtocolInfo(
        "orca", "Orca Swap V2", ProtocolCategory.DEX.value, "https://orca.so"
    ),
    "whirLbMiicVdio4qvUfM5KAg6Ct8VwpYzGff3uctyCc": ProtocolInfo(
        "orca", "Orca Whirlpool", ProtocolCategory.DEX.value, "https://orca.so"
    ),
    "11111111111111111111111111111111": ProtocolInfo(
        "system", "System Program", ProtocolCategory.NATIVE.value
    ),
    "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA": ProtocolInfo(
        "spl-token", "Token Program", ProtocolCategory.NATIVE.value
    ),
    "ATokenGPvbdGVxr1b2hvZbsiqW5xWH25efTNsLJA8knL": ProtocolInfo(
        "spl-ata", "Associated Token Account Program", ProtocolCategory.NATIVE.value
    ),
    "MemoSq4gqABAXKb96qnH8TysNcWxMyWCqXgDLGmfcHr": ProtocolInfo(
        "spl-memo", "Memo Program", ProtocolCategory.NATIVE.value
    ),
    "ComputeBudget111111111111111111111111111111": ProtocolInfo(
        "compute-budget", "Compute Budget Program", ProtocolCategory.NATIVE.value
    ),
}


def get_protocol_info(program_id: str) -> Optional[ProtocolInfo]:
    return PROGRAM_ID_MAPPINGS.get(program_id)


def determine_primary_protocol(program_ids: Iterable[str]) -> Optional[ProtocolInfo]:
    """
    First known program that is not a native runtime program.
    """
    for pid in program_ids:
        info = PROGRAM_ID_MAPPINGS.get(pid)
        if info is not None and info.category != ProtocolCategory.NATIVE.value:
            return info
    return None
