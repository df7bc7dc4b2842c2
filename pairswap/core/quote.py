"""
Quote library: pure constant-product pricing helpers.

Every function here is stateless and integer-only. Rounding is always in the
pool's favour:

- exact-in quotes floor the output,
- exact-out quotes floor and then add one to the required input.

Fee model: ``swap_fee_bps`` is charged on the input before the constant
product is applied. The default of 30 bps is the 997/1000 factor:

    amount_out = floor(in * 9970 * r_out / (r_in * 10000 + in * 9970))
               = floor(in * 997 * r_out / (r_in * 1000 + in * 997))
"""

from __future__ import annotations

from typing import List, Sequence, Tuple

from ..state.balances import ZERO_ADDRESS, Amount, AssetId
from ..state.canonical import domain_sep_bytes, sha256_hex
from .errors import (
    IdenticalAssets,
    InsufficientAmount,
    InsufficientInputAmount,
    InsufficientLiquidity,
    InsufficientOutputAmount,
    InvalidPath,
    NullAsset,
)


BPS_DENOM = 10_000
DEFAULT_SWAP_FEE_BPS = 30

_PAIR_ID_DOMAIN = domain_sep_bytes("pair-id")


def _require_int(name: str, value: int) -> None:
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"{name} must be an int")


def _require_amounts(**values: int) -> None:
    for name, v in values.items():
        _require_int(name, v)
        if v < 0:
            raise ValueError(f"{name} must be non-negative: {v}")


def _require_fee_bps(fee_bps: int) -> None:
    _require_int("fee_bps", fee_bps)
    if not (0 <= fee_bps < BPS_DENOM):
        raise ValueError(f"fee_bps must be in [0, {BPS_DENOM}): {fee_bps}")


# -- Pair identity -----------------------------------------------------------


def canonical_order(x: AssetId, y: AssetId) -> Tuple[AssetId, AssetId]:
    """
    Sort two asset identifiers ascending.

    Raises:
        IdenticalAssets: If ``x == y``
        NullAsset: If the smaller identifier is the null identifier
    """
    if x == y:
        raise IdenticalAssets(f"identical assets: {x}")
    a, b = (x, y) if x < y else (y, x)
    if a == ZERO_ADDRESS:
        raise NullAsset()
    return a, b


def pair_id(x: AssetId, y: AssetId) -> str:
    """
    Deterministic identity of the unordered pair ``{x, y}``.

        pair_id = H(domain || asset_a || 0x00 || asset_b), with (asset_a, asset_b) = canonical_order(x, y)

    so ``pair_id(x, y) == pair_id(y, x)``.
    """
    a, b = canonical_order(x, y)
    return sha256_hex(_PAIR_ID_DOMAIN + a.encode("utf-8") + b"\x00" + b.encode("utf-8"))


# -- Single-hop quotes -------------------------------------------------------


def quote(amount_in: Amount, reserve_in: Amount, reserve_out: Amount) -> Amount:
    """
    Equivalent amount at the current reserve ratio (no fee, no price impact).

        amount_out = floor(amount_in * reserve_out / reserve_in)
    """
    _require_amounts(amount_in=amount_in, reserve_in=reserve_in, reserve_out=reserve_out)
    if amount_in == 0:
        raise InsufficientAmount()
    if reserve_in == 0 or reserve_out == 0:
        raise InsufficientLiquidity()
    return (amount_in * reserve_out) // reserve_in


def amount_out_given_in(
    amount_in: Amount,
    reserve_in: Amount,
    reserve_out: Amount,
    fee_bps: int = DEFAULT_SWAP_FEE_BPS,
) -> Amount:
    """
    Maximum output for an exact input.

        amount_out = floor(in * (1 - fee) * r_out / (r_in + in * (1 - fee)))

    Raises:
        InsufficientInputAmount: If ``amount_in == 0``
        InsufficientLiquidity: If either reserve is empty
    """
    _require_amounts(amount_in=amount_in, reserve_in=reserve_in, reserve_out=reserve_out)
    _require_fee_bps(fee_bps)
    if amount_in == 0:
        raise InsufficientInputAmount()
    if reserve_in == 0 or reserve_out == 0:
        raise InsufficientLiquidity()
    amount_in_with_fee = amount_in * (BPS_DENOM - fee_bps)
    numerator = amount_in_with_fee * reserve_out
    denominator = reserve_in * BPS_DENOM + amount_in_with_fee
    return numerator // denominator


def amount_in_given_out(
    amount_out: Amount,
    reserve_in: Amount,
    reserve_out: Amount,
    fee_bps: int = DEFAULT_SWAP_FEE_BPS,
) -> Amount:
    """
    Minimum input for an exact output.

        amount_in = floor(r_in * out / ((r_out - out) * (1 - fee))) + 1

    The trailing ``+ 1`` rounds up unconditionally so the trader never under-pays.

    Raises:
        InsufficientOutputAmount: If ``amount_out == 0``
        InsufficientLiquidity: If either reserve is empty or ``amount_out >= reserve_out``
    """
    _require_amounts(amount_out=amount_out, reserve_in=reserve_in, reserve_out=reserve_out)
    _require_fee_bps(fee_bps)
    if amount_out == 0:
        raise InsufficientOutputAmount()
    if reserve_in == 0 or reserve_out == 0:
        raise InsufficientLiquidity()
    if amount_out >= reserve_out:
        raise InsufficientLiquidity(
            f"amount_out ({amount_out}) >= reserve_out ({reserve_out})"
        )
    numerator = reserve_in * amount_out * BPS_DENOM
    denominator = (reserve_out - amount_out) * (BPS_DENOM - fee_bps)
    return numerator // denominator + 1


# -- Chained quotes ----------------------------------------------------------


def chained_amounts_out(
    amount_in: Amount,
    reserves: Sequence[Tuple[Amount, Amount]],
    fee_bps: int = DEFAULT_SWAP_FEE_BPS,
) -> List[Amount]:
    """
    Apply ``amount_out_given_in`` hop by hop, left to right.

    Args:
        amount_in: Exact input into the first hop
        reserves: ``(reserve_in, reserve_out)`` per hop, oriented in the direction of travel

    Returns:
        ``[amount_in, out_1, ..., out_n]`` (one entry per asset on the path)
    """
    if len(reserves) < 1:
        raise InvalidPath("path must contain at least two assets")
    amounts = [amount_in]
    for reserve_in, reserve_out in reserves:
        amounts.append(amount_out_given_in(amounts[-1], reserve_in, reserve_out, fee_bps))
    return amounts


def chained_amounts_in(
    amount_out: Amount,
    reserves: Sequence[Tuple[Amount, Amount]],
    fee_bps: int = DEFAULT_SWAP_FEE_BPS,
) -> List[Amount]:
    """
    Mirror of ``chained_amounts_out``: apply ``amount_in_given_out`` right to left.

    Returns:
        ``[in_0, ..., in_{n-1}, amount_out]`` (one entry per asset on the path)
    """
    if len(reserves) < 1:
        raise InvalidPath("path must contain at least two assets")
    amounts = [0] * (len(reserves) + 1)
    amounts[-1] = amount_out
    for i in range(len(reserves) - 1, -1, -1):
        reserve_in, reserve_out = reserves[i]
        amounts[i] = amount_in_given_out(amounts[i + 1], reserve_in, reserve_out, fee_bps)
    return amounts
