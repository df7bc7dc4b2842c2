"""
Core pair algorithms
"""

from .callbacks import SwapCallback
from .config import PairConfig, load_pair_config, pair_config_from_mapping
from .errors import PairError
from .events import Burn, Mint, Swap, Sync
from .fees import ProtocolFee, collect_protocol_fee
from .oracle import (
    TwapObservation,
    average_price_q112,
    consult,
    current_cumulative_prices,
    observe,
    resynchronize,
    twap_between,
)
from .pair import PairEngine
from .quote import (
    amount_in_given_out,
    amount_out_given_in,
    canonical_order,
    chained_amounts_in,
    chained_amounts_out,
    pair_id,
    quote,
)

__all__ = [
    "SwapCallback",
    "PairConfig",
    "load_pair_config",
    "pair_config_from_mapping",
    "PairError",
    "Burn",
    "Mint",
    "Swap",
    "Sync",
    "ProtocolFee",
    "collect_protocol_fee",
    "TwapObservation",
    "average_price_q112",
    "consult",
    "current_cumulative_prices",
    "observe",
    "resynchronize",
    "twap_between",
    "PairEngine",
    "amount_in_given_out",
    "amount_out_given_in",
    "canonical_order",
    "chained_amounts_in",
    "chained_amounts_out",
    "pair_id",
    "quote",
]
