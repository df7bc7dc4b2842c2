"""
Path quotes against live registry reserves.

Thin adapters over ``core.quote.chained_amounts_out``/``chained_amounts_in``:
each hop's reserves are read from the registry and oriented in the
direction of travel.
"""

from __future__ import annotations

from typing import List, Sequence, Tuple

from ..core.errors import InvalidPath
from ..core.quote import DEFAULT_SWAP_FEE_BPS, canonical_order, chained_amounts_in, chained_amounts_out
from ..state.balances import Amount, AssetId
from .registry import PairRegistry


def reserves_for(registry: PairRegistry, asset_in: AssetId, asset_out: AssetId) -> Tuple[Amount, Amount]:
    """
    Reserves of the ``{asset_in, asset_out}`` pair as (reserve_in, reserve_out).

    Raises:
        IdenticalAssets, NullAsset: On a malformed pair
        InvalidPath: If no pair exists for the two assets
    """
    asset_a, _asset_b = canonical_order(asset_in, asset_out)
    pair = registry.get_pair(asset_in, asset_out)
    if pair is None:
        raise InvalidPath(f"no pair for ({asset_in}, {asset_out})")
    reserve_a, reserve_b, _ts = pair.get_state()
    if asset_in == asset_a:
        return reserve_a, reserve_b
    return reserve_b, reserve_a


def _hop_reserves(registry: PairRegistry, path: Sequence[AssetId]) -> List[Tuple[Amount, Amount]]:
    if len(path) < 2:
        raise InvalidPath("path must contain at least two assets")
    return [reserves_for(registry, path[i], path[i + 1]) for i in range(len(path) - 1)]


def chained_amounts_out_for_path(
    registry: PairRegistry,
    amount_in: Amount,
    path: Sequence[AssetId],
    fee_bps: int = DEFAULT_SWAP_FEE_BPS,
) -> List[Amount]:
    """Exact-in amounts along ``path``; one entry per asset."""
    return chained_amounts_out(amount_in, _hop_reserves(registry, path), fee_bps)


def chained_amounts_in_for_path(
    registry: PairRegistry,
    amount_out: Amount,
    path: Sequence[AssetId],
    fee_bps: int = DEFAULT_SWAP_FEE_BPS,
) -> List[Amount]:
    """Exact-out amounts along ``path``; one entry per asset."""
    return chained_amounts_in(amount_out, _hop_reserves(registry, path), fee_bps)
