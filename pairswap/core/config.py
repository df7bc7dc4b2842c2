"""
Pair engine configuration.

Defaults reproduce the canonical constant-product pool: 0.3% swap fee and
1000 permanently locked shares. A config can be built in code or loaded
from a YAML mapping, e.g.::

    minimum_liquidity: 1000
    swap_fee_bps: 30
    locked_shares_holder: "0x0000000000000000000000000000000000000000"
    event_history: 256
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Mapping, Union

import yaml

from ..state.balances import ZERO_ADDRESS
from .quote import BPS_DENOM, DEFAULT_SWAP_FEE_BPS


MINIMUM_LIQUIDITY = 1000
EVENT_HISTORY = 256


@dataclass(frozen=True)
class PairConfig:
    """Runtime config for a pair engine."""

    # Shares minted to `locked_shares_holder` on the genesis deposit, never redeemable.
    minimum_liquidity: int = MINIMUM_LIQUIDITY
    # Fee charged on swap input, in basis points (30 = 0.3%).
    swap_fee_bps: int = DEFAULT_SWAP_FEE_BPS
    locked_shares_holder: str = ZERO_ADDRESS
    # Committed notifications kept on `PairEngine.events`; older ones are dropped.
    event_history: int = EVENT_HISTORY

    def __post_init__(self) -> None:
        for name, v in (
            ("minimum_liquidity", self.minimum_liquidity),
            ("swap_fee_bps", self.swap_fee_bps),
            ("event_history", self.event_history),
        ):
            if not isinstance(v, int) or isinstance(v, bool):
                raise TypeError(f"{name} must be an int")
        if self.minimum_liquidity <= 0:
            raise ValueError(f"minimum_liquidity must be positive: {self.minimum_liquidity}")
        if not (0 <= self.swap_fee_bps < BPS_DENOM):
            raise ValueError(f"swap_fee_bps must be in [0, {BPS_DENOM}): {self.swap_fee_bps}")
        if self.event_history <= 0:
            raise ValueError(f"event_history must be positive: {self.event_history}")
        if not isinstance(self.locked_shares_holder, str) or not self.locked_shares_holder:
            raise ValueError("locked_shares_holder must be a non-empty string")


_CONFIG_KEYS = frozenset(f.name for f in fields(PairConfig))


def pair_config_from_mapping(obj: Mapping[str, Any]) -> PairConfig:
    """Build a PairConfig from a mapping, rejecting unknown keys."""
    if not isinstance(obj, Mapping):
        raise TypeError("pair config must be a mapping")
    unknown = set(obj) - _CONFIG_KEYS
    if unknown:
        raise ValueError(f"unknown pair config keys: {sorted(unknown)}")
    return PairConfig(**dict(obj))


def load_pair_config(path: Union[str, Path]) -> PairConfig:
    """Load a PairConfig from a YAML file. An empty file yields the defaults."""
    obj = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
    if obj is None:
        return PairConfig()
    return pair_config_from_mapping(obj)
