"""
Protocol fee kernel (deterministic, integer-only).

When a protocol fee recipient is configured, the pool mints the recipient
shares worth 1/6 of the growth in sqrt(k) since the last liquidity event.
Growth is measured lazily: only at the next deposit or withdrawal, never
on every swap.
"""

from __future__ import annotations

import math
from dataclasses import dataclass


# Protocol takes 1/(PROTOCOL_FEE_DIVISOR + 1) of the sqrt(k) growth.
PROTOCOL_FEE_DIVISOR = 5


@dataclass(frozen=True)
class ProtocolFee:
    """
    Attributes:
        fee_on: Whether a recipient is configured (caller refreshes k_last iff True)
        shares: Shares to mint to the recipient (0 when nothing is owed)
        k_last: k_last after collection (cleared to 0 when the fee is off)
    """

    fee_on: bool
    shares: int
    k_last: int

    def __post_init__(self) -> None:
        for name, v in (("shares", self.shares), ("k_last", self.k_last)):
            if not isinstance(v, int) or isinstance(v, bool):
                raise TypeError(f"{name} must be an int")
            if v < 0:
                raise ValueError(f"{name} must be non-negative: {v}")


def protocol_fee_shares(total_shares: int, root_k: int, root_k_last: int) -> int:
    """
    Shares that dilute existing holders by 1/6 of the sqrt(k) growth.

        shares = total * (root_k - root_k_last) / (5 * root_k + root_k_last)
    """
    if root_k <= root_k_last:
        return 0
    numerator = total_shares * (root_k - root_k_last)
    denominator = root_k * PROTOCOL_FEE_DIVISOR + root_k_last
    return numerator // denominator


def collect_protocol_fee(
    *,
    k_last: int,
    reserve_a: int,
    reserve_b: int,
    total_shares: int,
    fee_on: bool,
) -> ProtocolFee:
    """
    Decide the protocol fee owed before a liquidity event.

    - fee off: clear a stale ``k_last``; mint nothing.
    - fee on with ``k_last == 0``: nothing to measure against yet; mint nothing.
    - fee on with ``k_last != 0``: mint ``protocol_fee_shares`` (skipped when zero).
    """
    if not fee_on:
        return ProtocolFee(fee_on=False, shares=0, k_last=0)
    if k_last == 0:
        return ProtocolFee(fee_on=True, shares=0, k_last=0)
    root_k = math.isqrt(reserve_a * reserve_b)
    root_k_last = math.isqrt(k_last)
    shares = protocol_fee_shares(total_shares, root_k, root_k_last)
    return ProtocolFee(fee_on=True, shares=shares, k_last=k_last)
