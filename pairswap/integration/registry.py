"""
In-memory pair registry.

This is the imperative shell that creates pair engines:
- one engine per unordered asset pair (``PairExists`` on duplicates),
- each engine bound to the registry's asset ledger and its own share ledger,
- the protocol fee recipient fixed at construction (there is no fee governance).
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional, Tuple

from ..core.config import PairConfig
from ..core.errors import PairExists
from ..core.pair import PairEngine
from ..core.quote import canonical_order, pair_id
from ..state.balances import Address, AssetId, AssetLedger
from ..state.shares import ShareLedger

logger = logging.getLogger(__name__)

DEFAULT_REGISTRY_ADDRESS = "0x" + "fa" * 20


class PairRegistry:
    """Creates and indexes pair engines over one shared asset ledger."""

    def __init__(
        self,
        asset_ledger: AssetLedger,
        *,
        address: Address = DEFAULT_REGISTRY_ADDRESS,
        fee_recipient: Optional[Address] = None,
        clock: Optional[Callable[[], int]] = None,
        config: Optional[PairConfig] = None,
    ) -> None:
        self.address = address
        self.asset_ledger = asset_ledger
        self._fee_recipient = fee_recipient
        self._clock = clock
        self._config = config or PairConfig()
        self._pairs: Dict[Tuple[AssetId, AssetId], PairEngine] = {}
        self._order: List[PairEngine] = []

    def protocol_fee_recipient(self) -> Optional[Address]:
        return self._fee_recipient

    def create_pair(self, x: AssetId, y: AssetId) -> PairEngine:
        """
        Create the pair for ``{x, y}``.

        Raises:
            IdenticalAssets, NullAsset: On a malformed pair
            PairExists: If the pair was already created (in either order)
        """
        key = canonical_order(x, y)
        if key in self._pairs:
            raise PairExists(f"pair already exists: {key}")
        engine = PairEngine(
            address=pair_id(*key),
            registry=self,
            asset_ledger=self.asset_ledger,
            share_ledger=ShareLedger(self.asset_ledger.journal),
            clock=self._clock,
            config=self._config,
        )
        engine.initialize(*key, sender=self.address)
        self._pairs[key] = engine
        self._order.append(engine)
        logger.info("Pair %s created: %s/%s (#%d)", engine.address, key[0], key[1], len(self._order))
        return engine

    def get_pair(self, x: AssetId, y: AssetId) -> Optional[PairEngine]:
        """Look up the pair for ``{x, y}``; argument order does not matter."""
        if x == y:
            return None
        key = (x, y) if x < y else (y, x)
        return self._pairs.get(key)

    def all_pairs(self) -> List[PairEngine]:
        return list(self._order)

    def __len__(self) -> int:
        return len(self._order)

    def __repr__(self) -> str:
        return f"PairRegistry({len(self._order)} pairs, fee_recipient={self._fee_recipient})"
