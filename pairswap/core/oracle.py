"""
Price accumulator kernel (time-weighted average price).

The functional core here is pure:
- ``resynchronize`` advances the two cumulative prices and records new reserves.
- The read-side helpers turn two accumulator readings into an average price.

Wraparound is part of the contract. Timestamps are 32-bit and accumulators
are 256-bit; both wrap silently. A consumer only ever subtracts two readings
taken less than one wrap period apart, and modular subtraction gives the
right answer across a wrap.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Tuple

from ..state.pairs import PairState
from .errors import Overflow
from .uint import (
    RESOLUTION,
    UINT112_MAX,
    elapsed32,
    encode_q112,
    uqdiv,
    wrap32,
    wrap256,
)


def _accumulate(state: PairState, prior_reserve_a: int, prior_reserve_b: int, elapsed: int) -> Tuple[int, int]:
    a_cum = state.price_a_cumulative
    b_cum = state.price_b_cumulative
    if elapsed > 0 and prior_reserve_a != 0 and prior_reserve_b != 0:
        a_cum = wrap256(a_cum + uqdiv(encode_q112(prior_reserve_b), prior_reserve_a) * elapsed)
        b_cum = wrap256(b_cum + uqdiv(encode_q112(prior_reserve_a), prior_reserve_b) * elapsed)
    return a_cum, b_cum


def resynchronize(
    state: PairState,
    balance_a: int,
    balance_b: int,
    prior_reserve_a: int,
    prior_reserve_b: int,
    timestamp: int,
) -> PairState:
    """
    Record new reserves, integrating the prior price over the elapsed time.

    Args:
        state: Pair state before the update
        balance_a: New reserve for asset_a (live ledger balance)
        balance_b: New reserve for asset_b
        prior_reserve_a: Reserve of asset_a the elapsed interval was priced at
        prior_reserve_b: Reserve of asset_b the elapsed interval was priced at
        timestamp: Current time in seconds (reduced mod 2**32 here)

    Raises:
        Overflow: If either balance does not fit in 112 bits
    """
    if balance_a < 0 or balance_b < 0 or balance_a > UINT112_MAX or balance_b > UINT112_MAX:
        raise Overflow(f"balances out of uint112 range: ({balance_a}, {balance_b})")
    now32 = wrap32(timestamp)
    elapsed = elapsed32(now32, state.last_update_time)
    a_cum, b_cum = _accumulate(state, prior_reserve_a, prior_reserve_b, elapsed)
    return replace(
        state,
        reserve_a=balance_a,
        reserve_b=balance_b,
        last_update_time=now32,
        price_a_cumulative=a_cum,
        price_b_cumulative=b_cum,
    )


# -- Read side ---------------------------------------------------------------


def current_cumulative_prices(state: PairState, timestamp: int) -> Tuple[int, int, int]:
    """
    Accumulators as they would read if the pair were resynchronized at ``timestamp``.

    Saves a consumer from forcing a resync just to take a reading.

    Returns:
        (price_a_cumulative, price_b_cumulative, timestamp mod 2**32)
    """
    now32 = wrap32(timestamp)
    elapsed = elapsed32(now32, state.last_update_time)
    a_cum, b_cum = _accumulate(state, state.reserve_a, state.reserve_b, elapsed)
    return a_cum, b_cum, now32


def average_price_q112(cumulative_start: int, cumulative_end: int, elapsed: int) -> int:
    """Average Q112.112 price over a window, tolerant of accumulator wraparound."""
    if elapsed <= 0:
        raise ValueError(f"elapsed must be positive: {elapsed}")
    return wrap256(cumulative_end - cumulative_start) // elapsed


def consult(average_q112: int, amount_in: int) -> int:
    """Convert ``amount_in`` at a Q112.112 average price, flooring the result."""
    if amount_in < 0:
        raise ValueError(f"amount_in must be non-negative: {amount_in}")
    return (average_q112 * amount_in) >> RESOLUTION


@dataclass(frozen=True)
class TwapObservation:
    """One reading of both accumulators."""

    timestamp: int
    price_a_cumulative: int
    price_b_cumulative: int


def observe(state: PairState, timestamp: int) -> TwapObservation:
    a_cum, b_cum, ts = current_cumulative_prices(state, timestamp)
    return TwapObservation(timestamp=ts, price_a_cumulative=a_cum, price_b_cumulative=b_cum)


def twap_between(older: TwapObservation, newer: TwapObservation) -> Tuple[int, int]:
    """
    Average prices between two observations, as Q112.112.

    Returns:
        (average price of asset_a in asset_b, average price of asset_b in asset_a)

    Raises:
        ValueError: If no time elapsed between the observations
    """
    elapsed = elapsed32(newer.timestamp, older.timestamp)
    return (
        average_price_q112(older.price_a_cumulative, newer.price_a_cumulative, elapsed),
        average_price_q112(older.price_b_cumulative, newer.price_b_cumulative, elapsed),
    )
