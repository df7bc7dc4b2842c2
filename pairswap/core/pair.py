"""
Pair engine: the stateful reserve pool for one asset pair.

This is the imperative layer around the pure kernels:
- ``quote`` arithmetic is applied inline for the swap invariant,
- ``fees.collect_protocol_fee`` decides protocol-fee dilution,
- ``oracle.resynchronize`` records reserves and advances the accumulators.

Every mutating operation runs inside two scopes, entered in this order:

1. the reentrancy guard (``Locked`` if another operation is in flight), then
2. an atomic scope on the asset ledger's journal. Every ledger write and
   every pair-state change made while it is open (including those made by
   other pairs from inside an exchange callback) is undone if anything
   raises. Notifications are published only once the outermost scope
   commits.

Collaborators are injected, never looked up:
- ``asset_ledger``: ``journal``, ``balance_of(asset, holder)``,
  ``transfer(asset, sender, to, amount) -> bool``
- ``share_ledger``: ``journal`` (the asset ledger's), ``mint``, ``burn``,
  ``total_supply``, ``balance_of``
- ``registry``: ``address`` and ``protocol_fee_recipient() -> address | None``
"""

from __future__ import annotations

import logging
import math
import time
from collections import deque
from contextlib import contextmanager
from dataclasses import replace
from typing import Any, Callable, Deque, Iterator, List, Optional, Tuple

from ..state.balances import Address, Amount, AssetId
from ..state.pairs import PairState
from .callbacks import SwapCallback
from .config import PairConfig
from .errors import (
    Forbidden,
    InsufficientInputAmount,
    InsufficientLiquidity,
    InsufficientLiquidityBurned,
    InsufficientLiquidityMinted,
    InsufficientOutputAmount,
    InvalidRecipient,
    InvariantViolation,
    Locked,
    MissingCallback,
    TransferFailed,
)
from .events import Burn, Event, EventListener, Mint, Swap, Sync
from .fees import collect_protocol_fee
from .oracle import resynchronize
from .quote import BPS_DENOM, canonical_order
from .uint import checked_mul, checked_sub

logger = logging.getLogger(__name__)


def _require_amount(name: str, value: int) -> None:
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"{name} must be an int")
    if value < 0:
        raise ValueError(f"{name} must be non-negative: {value}")


def _wall_clock() -> int:
    return int(time.time())


class PairEngine:
    """
    Constant-product pool for one canonically ordered asset pair.

    Deposits and repayments are push-based: callers transfer assets (or
    shares) to ``address`` first, then call the engine, which measures what
    arrived against its recorded reserves.
    """

    def __init__(
        self,
        *,
        address: Address,
        registry: Any,
        asset_ledger: Any,
        share_ledger: Any,
        clock: Optional[Callable[[], int]] = None,
        config: Optional[PairConfig] = None,
    ) -> None:
        if share_ledger.journal is not asset_ledger.journal:
            raise ValueError("share_ledger must be built on the asset ledger's journal")
        self.address = address
        self.config = config or PairConfig()
        self._registry = registry
        self._assets = asset_ledger
        self._shares = share_ledger
        self._journal = asset_ledger.journal
        self._clock = clock or _wall_clock
        self._state: Optional[PairState] = None
        self._locked = False
        self._pending: List[Event] = []
        self._listeners: List[EventListener] = []
        # Most recent committed notifications, oldest first.
        self.events: Deque[Event] = deque(maxlen=self.config.event_history)

    # -- Read-only surface ---------------------------------------------------

    @property
    def state(self) -> PairState:
        return self._require_initialized()

    @property
    def initialized(self) -> bool:
        return self._state is not None

    @property
    def locked(self) -> bool:
        return self._locked

    @property
    def asset_a(self) -> AssetId:
        return self.state.asset_a

    @property
    def asset_b(self) -> AssetId:
        return self.state.asset_b

    @property
    def total_shares(self) -> Amount:
        return self._shares.total_supply()

    @property
    def share_ledger(self) -> Any:
        return self._shares

    def get_state(self) -> Tuple[Amount, Amount, int]:
        """Return (reserve_a, reserve_b, last_update_time)."""
        state = self.state
        return state.reserve_a, state.reserve_b, state.last_update_time

    def subscribe(self, listener: EventListener) -> None:
        """Register a listener called with every committed notification."""
        self._listeners.append(listener)

    # -- Setup ---------------------------------------------------------------

    def initialize(self, asset_a: AssetId, asset_b: AssetId, *, sender: Address) -> None:
        """
        Bind the pair to its two assets. Callable once, by the registry only.

        Raises:
            Forbidden: If ``sender`` is not the registry or the pair is already bound
            IdenticalAssets, NullAsset: On a malformed pair
        """
        if sender != self._registry.address:
            raise Forbidden(f"initialize called by {sender}, not the registry")
        if self._state is not None:
            raise Forbidden("pair already initialized")
        a, b = canonical_order(asset_a, asset_b)
        self._state = PairState(asset_a=a, asset_b=b)

    # -- Mutating operations -------------------------------------------------

    def deposit(self, recipient: Address, *, sender: Address) -> Amount:
        """
        Issue shares for assets already transferred to the pool.

        Genesis:  shares = isqrt(amount_a * amount_b) - minimum_liquidity
                  (minimum_liquidity shares go to the locked holder)
        Later:    shares = min(amount_a * total / reserve_a, amount_b * total / reserve_b)

        Raises:
            InsufficientLiquidityMinted: If the computed share amount is not positive
            Overflow: If a balance is below its reserve or exceeds 112 bits
        """
        with self._mutating("deposit"):
            state = self.state
            reserve_a, reserve_b = state.reserve_a, state.reserve_b
            balance_a, balance_b = self._balances()
            amount_a = checked_sub(balance_a, reserve_a)
            amount_b = checked_sub(balance_b, reserve_b)

            fee_on = self._mint_protocol_fee(reserve_a, reserve_b)
            total = self._shares.total_supply()
            if total == 0:
                minimum = self.config.minimum_liquidity
                shares = math.isqrt(checked_mul(amount_a, amount_b)) - minimum
                if shares <= 0:
                    raise InsufficientLiquidityMinted(
                        f"isqrt({amount_a} * {amount_b}) does not exceed minimum liquidity {minimum}"
                    )
                self._shares.mint(self.config.locked_shares_holder, minimum)
            else:
                if reserve_a == 0 or reserve_b == 0:
                    raise InsufficientLiquidityMinted("shares outstanding against an empty reserve")
                shares = min(
                    checked_mul(amount_a, total) // reserve_a,
                    checked_mul(amount_b, total) // reserve_b,
                )
            if shares <= 0:
                raise InsufficientLiquidityMinted()
            self._shares.mint(recipient, shares)

            self._update(balance_a, balance_b, reserve_a, reserve_b)
            if fee_on:
                self._refresh_k_last()
            self._emit(Mint(sender=sender, amount_a=amount_a, amount_b=amount_b))
            return shares

    def withdraw(self, recipient: Address, *, sender: Address) -> Tuple[Amount, Amount]:
        """
        Redeem the shares held by the pool itself, pro rata on current balances.

        Raises:
            InsufficientLiquidityBurned: If either payout rounds to zero
            TransferFailed: If the asset ledger refuses a payout
        """
        with self._mutating("withdraw"):
            state = self.state
            reserve_a, reserve_b = state.reserve_a, state.reserve_b
            balance_a, balance_b = self._balances()
            shares = self._shares.balance_of(self.address)

            fee_on = self._mint_protocol_fee(reserve_a, reserve_b)
            total = self._shares.total_supply()
            if total == 0:
                raise InsufficientLiquidityBurned("no shares outstanding")
            # Balances, not reserves: any unsynced surplus is paid out pro rata too.
            amount_a = checked_mul(shares, balance_a) // total
            amount_b = checked_mul(shares, balance_b) // total
            if amount_a == 0 or amount_b == 0:
                raise InsufficientLiquidityBurned(f"payout ({amount_a}, {amount_b}) rounds to zero")

            self._shares.burn(self.address, shares)
            self._safe_transfer(state.asset_a, recipient, amount_a)
            self._safe_transfer(state.asset_b, recipient, amount_b)
            balance_a, balance_b = self._balances()

            self._update(balance_a, balance_b, reserve_a, reserve_b)
            if fee_on:
                self._refresh_k_last()
            self._emit(Burn(sender=sender, amount_a=amount_a, amount_b=amount_b, recipient=recipient))
            return amount_a, amount_b

    def exchange(
        self,
        amount_a_out: Amount,
        amount_b_out: Amount,
        recipient: Address,
        payload: bytes = b"",
        *,
        sender: Address,
        callback: Optional[SwapCallback] = None,
    ) -> None:
        """
        Send the requested outputs, then require the fee-adjusted product not to shrink.

        Outputs are transferred before anything is checked. With a non-empty
        ``payload`` the ``callback`` runs next and may supply the input; the
        input is then whatever the pool holds beyond ``reserve - amount_out``.

            (balance_a * 10000 - in_a * fee_bps) * (balance_b * 10000 - in_b * fee_bps)
                >= reserve_a * reserve_b * 10000**2

        Raises:
            InsufficientOutputAmount: If both outputs are zero
            InsufficientLiquidity: If an output is not below its reserve
            InvalidRecipient: If ``recipient`` is one of the pair's assets
            MissingCallback: If ``payload`` is non-empty and no callback was given
            InsufficientInputAmount: If nothing was paid in
            InvariantViolation: If the fee-adjusted product decreased
        """
        _require_amount("amount_a_out", amount_a_out)
        _require_amount("amount_b_out", amount_b_out)
        with self._mutating("exchange"):
            if amount_a_out == 0 and amount_b_out == 0:
                raise InsufficientOutputAmount()
            state = self.state
            reserve_a, reserve_b = state.reserve_a, state.reserve_b
            if amount_a_out >= reserve_a or amount_b_out >= reserve_b:
                raise InsufficientLiquidity(
                    f"outputs ({amount_a_out}, {amount_b_out}) vs reserves ({reserve_a}, {reserve_b})"
                )
            if recipient == state.asset_a or recipient == state.asset_b:
                raise InvalidRecipient(f"recipient {recipient} is a pair asset")

            if amount_a_out > 0:
                self._safe_transfer(state.asset_a, recipient, amount_a_out)
            if amount_b_out > 0:
                self._safe_transfer(state.asset_b, recipient, amount_b_out)
            if payload:
                if callback is None:
                    raise MissingCallback()
                callback.on_exchange(sender, amount_a_out, amount_b_out, bytes(payload))
            balance_a, balance_b = self._balances()

            floor_a = reserve_a - amount_a_out
            floor_b = reserve_b - amount_b_out
            amount_a_in = balance_a - floor_a if balance_a > floor_a else 0
            amount_b_in = balance_b - floor_b if balance_b > floor_b else 0
            if amount_a_in == 0 and amount_b_in == 0:
                raise InsufficientInputAmount()

            fee_bps = self.config.swap_fee_bps
            adjusted_a = checked_sub(checked_mul(balance_a, BPS_DENOM), checked_mul(amount_a_in, fee_bps))
            adjusted_b = checked_sub(checked_mul(balance_b, BPS_DENOM), checked_mul(amount_b_in, fee_bps))
            if checked_mul(adjusted_a, adjusted_b) < checked_mul(reserve_a * reserve_b, BPS_DENOM * BPS_DENOM):
                raise InvariantViolation()

            self._update(balance_a, balance_b, reserve_a, reserve_b)
            self._emit(
                Swap(
                    sender=sender,
                    amount_a_in=amount_a_in,
                    amount_b_in=amount_b_in,
                    amount_a_out=amount_a_out,
                    amount_b_out=amount_b_out,
                    recipient=recipient,
                )
            )

    def skim(self, recipient: Address) -> None:
        """Send any balance above the recorded reserves to ``recipient``."""
        with self._mutating("skim"):
            state = self.state
            balance_a, balance_b = self._balances()
            surplus_a = checked_sub(balance_a, state.reserve_a)
            surplus_b = checked_sub(balance_b, state.reserve_b)
            if surplus_a:
                self._safe_transfer(state.asset_a, recipient, surplus_a)
            if surplus_b:
                self._safe_transfer(state.asset_b, recipient, surplus_b)

    def resync(self) -> None:
        """Force recorded reserves to match the live balances."""
        with self._mutating("resync"):
            state = self.state
            balance_a, balance_b = self._balances()
            self._update(balance_a, balance_b, state.reserve_a, state.reserve_b)

    # -- Internals -----------------------------------------------------------

    def _require_initialized(self) -> PairState:
        if self._state is None:
            raise Forbidden("pair not initialized")
        return self._state

    @contextmanager
    def _lock(self) -> Iterator[None]:
        if self._locked:
            raise Locked()
        self._locked = True
        try:
            yield
        finally:
            self._locked = False

    @contextmanager
    def _transaction(self, operation: str) -> Iterator[None]:
        self._require_initialized()
        pending: List[Event] = []
        self._pending = pending
        try:
            with self._journal.atomic():
                yield
                self._journal.on_commit(lambda: self._publish(pending))
        except Exception as exc:
            logger.debug(
                "pair %s: %s rolled back (%s)", self.address, operation, getattr(exc, "code", type(exc).__name__)
            )
            raise
        finally:
            self._pending = []
        logger.debug(
            "pair %s: %s applied at depth %d, reserves=%s",
            self.address,
            operation,
            self._journal.depth,
            self.get_state()[:2],
        )

    @contextmanager
    def _mutating(self, operation: str) -> Iterator[None]:
        # Lock first: a re-entrant call must fail before it opens a scope.
        with self._lock(), self._transaction(operation):
            yield

    def _balances(self) -> Tuple[Amount, Amount]:
        state = self.state
        return (
            self._assets.balance_of(state.asset_a, self.address),
            self._assets.balance_of(state.asset_b, self.address),
        )

    def _safe_transfer(self, asset: AssetId, to: Address, amount: Amount) -> None:
        if not self._assets.transfer(asset, self.address, to, amount):
            raise TransferFailed(f"transfer of {amount} {asset} to {to} failed")

    def _restore_state(self, state: Optional[PairState]) -> None:
        self._state = state

    def _set_state(self, state: PairState) -> None:
        previous = self._state
        self._journal.record(lambda: self._restore_state(previous))
        self._state = state

    def _update(self, balance_a: Amount, balance_b: Amount, prior_reserve_a: Amount, prior_reserve_b: Amount) -> None:
        self._set_state(
            resynchronize(
                self.state,
                balance_a,
                balance_b,
                prior_reserve_a,
                prior_reserve_b,
                self._clock(),
            )
        )
        self._emit(Sync(reserve_a=self.state.reserve_a, reserve_b=self.state.reserve_b))

    def _mint_protocol_fee(self, reserve_a: Amount, reserve_b: Amount) -> bool:
        recipient = self._registry.protocol_fee_recipient()
        state = self.state
        fee = collect_protocol_fee(
            k_last=state.k_last,
            reserve_a=reserve_a,
            reserve_b=reserve_b,
            total_shares=self._shares.total_supply(),
            fee_on=recipient is not None,
        )
        if fee.shares > 0:
            self._shares.mint(recipient, fee.shares)
        if fee.k_last != state.k_last:
            self._set_state(replace(state, k_last=fee.k_last))
        return fee.fee_on

    def _refresh_k_last(self) -> None:
        state = self.state
        self._set_state(replace(state, k_last=state.reserve_a * state.reserve_b))

    def _emit(self, event: Event) -> None:
        self._pending.append(event)

    def _publish(self, events: List[Event]) -> None:
        # Runs after commit: a failing listener cannot undo the operation.
        for event in events:
            self.events.append(event)
            for listener in self._listeners:
                try:
                    listener(event)
                except Exception:
                    logger.exception("pair %s: listener %r failed on %s", self.address, listener, event.kind.value)

    def __repr__(self) -> str:
        return f"PairEngine(address={self.address}, state={self._state!r}, locked={self._locked})"
