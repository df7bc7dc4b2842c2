"""Exchange callback capability.

A pool never holds a callback. The caller hands one to ``PairEngine.exchange``
for that single invocation, and it is invoked only when the payload is
non-empty.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class SwapCallback(ABC):
    """Receiver of optimistically transferred exchange output."""

    @abstractmethod
    def on_exchange(self, initiator: str, amount_a_out: int, amount_b_out: int, payload: bytes) -> None:
        """Called after the outputs are transferred and before the invariant is checked.

        Implementations repay the pool (transfer input assets to the pool's
        address) before returning. Raising aborts the whole exchange.

        Args:
            initiator: Identity that called ``exchange``
            amount_a_out: Amount of asset_a sent to the recipient
            amount_b_out: Amount of asset_b sent to the recipient
            payload: Opaque bytes passed through from the caller
        """
