"""
State tables for PairSwap pairs
"""

from .balances import ZERO_ADDRESS, AssetLedger
from .journal import Journal
from .pairs import PairState, pair_from_record, pair_record
from .shares import ShareLedger

__all__ = [
    "ZERO_ADDRESS",
    "AssetLedger",
    "Journal",
    "PairState",
    "pair_from_record",
    "pair_record",
    "ShareLedger",
]
