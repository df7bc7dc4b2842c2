"""
Pool state for a single two-asset pair.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Tuple

from .balances import ZERO_ADDRESS, Amount, AssetId
from .canonical import canonical_json_bytes, sha256_hex


_UINT32_MODULUS = 1 << 32
_UINT112_MAX = (1 << 112) - 1
_UINT256_MODULUS = 1 << 256


@dataclass(frozen=True)
class PairState:
    """
    Persisted state of one pair.

    Attributes:
        asset_a: Smaller asset identifier (canonical order)
        asset_b: Larger asset identifier
        reserve_a: Recorded balance of asset_a (uint112)
        reserve_b: Recorded balance of asset_b (uint112)
        last_update_time: Timestamp of the last resync, mod 2**32
        price_a_cumulative: Sum of (reserve_b / reserve_a) * dt in Q112.112, mod 2**256
        price_b_cumulative: Sum of (reserve_a / reserve_b) * dt in Q112.112, mod 2**256
        k_last: reserve_a * reserve_b after the last liquidity event (0 when the protocol fee is off)
    """

    asset_a: AssetId
    asset_b: AssetId
    reserve_a: Amount = 0
    reserve_b: Amount = 0
    last_update_time: int = 0
    price_a_cumulative: int = 0
    price_b_cumulative: int = 0
    k_last: int = 0

    def __post_init__(self) -> None:
        """Validate pair state invariants."""
        if not isinstance(self.asset_a, str) or not isinstance(self.asset_b, str):
            raise TypeError("asset identifiers must be strings")
        if self.asset_a >= self.asset_b:
            raise ValueError(f"Assets must be in canonical order: {self.asset_a} < {self.asset_b}")
        if self.asset_a == ZERO_ADDRESS:
            raise ValueError("asset_a must not be the null identifier")

        for name, value, upper in (
            ("reserve_a", self.reserve_a, _UINT112_MAX + 1),
            ("reserve_b", self.reserve_b, _UINT112_MAX + 1),
            ("last_update_time", self.last_update_time, _UINT32_MODULUS),
            ("price_a_cumulative", self.price_a_cumulative, _UINT256_MODULUS),
            ("price_b_cumulative", self.price_b_cumulative, _UINT256_MODULUS),
            ("k_last", self.k_last, _UINT256_MODULUS),
        ):
            if not isinstance(value, int) or isinstance(value, bool):
                raise TypeError(f"{name} must be an int")
            if not (0 <= value < upper):
                raise ValueError(f"{name} out of range: {value}")

    def get_reserve(self, asset: AssetId) -> Amount:
        if asset == self.asset_a:
            return self.reserve_a
        if asset == self.asset_b:
            return self.reserve_b
        raise ValueError(f"Asset {asset} not in pair ({self.asset_a}, {self.asset_b})")

    def get_constant_product(self) -> int:
        return self.reserve_a * self.reserve_b

    def __repr__(self) -> str:
        return (
            f"PairState(assets=({self.asset_a[:10]}..., {self.asset_b[:10]}...), "
            f"reserves=({self.reserve_a}, {self.reserve_b}), "
            f"last_update_time={self.last_update_time}, k_last={self.k_last})"
        )


# Auto-derived from PairState field definitions (single source of truth).
RECORD_FIELDS: Tuple[str, ...] = tuple(PairState.__dataclass_fields__)


def pair_record(state: PairState) -> Dict[str, Any]:
    """Serialize a PairState to its flat persisted record."""
    return {name: getattr(state, name) for name in RECORD_FIELDS}


def pair_from_record(record: Mapping[str, Any]) -> PairState:
    """Deserialize a record. Raises KeyError on missing fields, ValueError on unknown ones."""
    unknown = set(record) - set(RECORD_FIELDS)
    if unknown:
        raise ValueError(f"unknown pair record fields: {sorted(unknown)}")
    return PairState(**{name: record[name] for name in RECORD_FIELDS})


def pair_record_bytes(state: PairState) -> bytes:
    return canonical_json_bytes(pair_record(state))


def pair_record_digest(state: PairState) -> str:
    return sha256_hex(pair_record_bytes(state))
