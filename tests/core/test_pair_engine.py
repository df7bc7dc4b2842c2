from __future__ import annotations

import logging
from typing import List, Optional

import pytest

from pairswap.core.callbacks import SwapCallback
from pairswap.core.config import PairConfig
from pairswap.core.errors import (
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
    Overflow,
    TransferFailed,
)
from pairswap.core.events import Burn, Mint, Swap, Sync, event_to_dict
from pairswap.core.pair import PairEngine
from pairswap.core.uint import Q112, UINT112_MAX
from pairswap.integration.registry import PairRegistry
from pairswap.state.balances import ZERO_ADDRESS, AssetLedger
from pairswap.state.shares import ShareLedger

A = "0x" + "aa" * 20
B = "0x" + "bb" * 20
C = "0x" + "cc" * 20
LP = "0x" + "11" * 20
TRADER = "0x" + "22" * 20
FEE_TO = "0x" + "33" * 20
POOL = "0x" + "44" * 20
REGISTRY = "0x" + "55" * 20


class _Clock:
    def __init__(self, now: int = 1_000) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now


class _Registry:
    address = REGISTRY

    def __init__(self, fee_recipient: Optional[str] = None) -> None:
        self.fee_recipient = fee_recipient

    def protocol_fee_recipient(self) -> Optional[str]:
        return self.fee_recipient


class _RefusingLedger(AssetLedger):
    def __init__(self) -> None:
        super().__init__()
        self.refuse = False

    def transfer(self, asset, sender, to, amount):  # type: ignore[override]
        if self.refuse:
            return False
        return super().transfer(asset, sender, to, amount)


def _setup(*, fee_recipient: Optional[str] = None, config: Optional[PairConfig] = None):
    ledger = AssetLedger()
    clock = _Clock()
    registry = PairRegistry(ledger, fee_recipient=fee_recipient, clock=clock, config=config)
    return ledger, clock, registry.create_pair(B, A)


def _direct(ledger: AssetLedger, shares: ShareLedger, registry: Optional[_Registry] = None) -> PairEngine:
    registry = registry or _Registry()
    pair = PairEngine(
        address=POOL,
        registry=registry,
        asset_ledger=ledger,
        share_ledger=shares,
        clock=_Clock(),
    )
    pair.initialize(A, B, sender=registry.address)
    return pair


def _add(ledger: AssetLedger, pair: PairEngine, amount_a: int, amount_b: int, to: str = LP) -> int:
    ledger.credit(A, pair.address, amount_a)
    ledger.credit(B, pair.address, amount_b)
    return pair.deposit(to, sender=to)


class _Repay(SwapCallback):
    def __init__(self, ledger: AssetLedger, pair: PairEngine, asset: str, amount: int) -> None:
        self.ledger = ledger
        self.pair = pair
        self.asset = asset
        self.amount = amount
        self.calls: List[tuple] = []

    def on_exchange(self, initiator, amount_a_out, amount_b_out, payload) -> None:
        self.calls.append((initiator, amount_a_out, amount_b_out, payload))
        self.ledger.transfer(self.asset, TRADER, self.pair.address, self.amount)


# -- Setup ---------------------------------------------------------------------


def test_initialize_is_registry_only_and_once() -> None:
    registry = _Registry()
    ledger = AssetLedger()
    pair = PairEngine(address=POOL, registry=registry, asset_ledger=ledger, share_ledger=ShareLedger(ledger.journal))
    with pytest.raises(Forbidden):
        pair.deposit(LP, sender=LP)
    with pytest.raises(Forbidden):
        pair.initialize(A, B, sender=LP)
    pair.initialize(B, A, sender=REGISTRY)
    assert (pair.asset_a, pair.asset_b) == (A, B)
    with pytest.raises(Forbidden):
        pair.initialize(A, B, sender=REGISTRY)


def test_share_ledger_must_join_the_asset_ledger_journal() -> None:
    with pytest.raises(ValueError, match="journal"):
        PairEngine(address=POOL, registry=_Registry(), asset_ledger=AssetLedger(), share_ledger=ShareLedger())


# -- Deposit -------------------------------------------------------------------


def test_genesis_deposit_locks_minimum_liquidity() -> None:
    ledger, _clock, pair = _setup()
    shares = _add(ledger, pair, 10_000_000, 10_000_000)

    assert shares == 9_999_000
    assert pair.share_ledger.balance_of(LP) == 9_999_000
    assert pair.share_ledger.balance_of(ZERO_ADDRESS) == 1_000
    assert pair.total_shares == 10_000_000
    assert pair.get_state()[:2] == (10_000_000, 10_000_000)
    assert list(pair.events) == [Sync(10_000_000, 10_000_000), Mint(sender=LP, amount_a=10_000_000, amount_b=10_000_000)]


@pytest.mark.parametrize("amount", [1_000, 10, 1])
def test_genesis_deposit_must_exceed_minimum_liquidity(amount: int) -> None:
    ledger, _clock, pair = _setup()
    with pytest.raises(InsufficientLiquidityMinted):
        _add(ledger, pair, amount, amount)
    assert pair.total_shares == 0
    assert pair.get_state()[:2] == (0, 0)
    assert list(pair.events) == []
    assert not pair.locked


def test_smallest_genesis_deposit_mints_one_share() -> None:
    ledger, _clock, pair = _setup()
    assert _add(ledger, pair, 1_001, 1_001) == 1


@pytest.mark.parametrize(
    "amount_a, amount_b, expected",
    [(10_000, 10_000, 9_000), (1_000_000, 1_000_000, 999_000), (1_000, 4_000, 1_000)],
)
def test_genesis_shares_use_the_geometric_mean_of_both_sides(amount_a: int, amount_b: int, expected: int) -> None:
    ledger, _clock, pair = _setup()
    assert _add(ledger, pair, amount_a, amount_b) == expected


def test_later_deposit_is_proportional_to_the_scarcer_side() -> None:
    ledger, _clock, pair = _setup()
    _add(ledger, pair, 1_000_000, 2_000_000)
    assert pair.total_shares == 1_414_213

    assert _add(ledger, pair, 500_000, 1_000_000) == 707_106
    # Surplus on one side earns nothing extra.
    # reserves (1_500_000, 3_000_000), supply 2_121_319: min(1414, 707106)
    assert _add(ledger, pair, 1_000, 1_000_000) == 1_414


def test_deposit_against_existing_supply() -> None:
    ledger = AssetLedger()
    shares = ShareLedger(ledger.journal)
    shares.mint(LP, 1_000)
    pair = _direct(ledger, shares)
    ledger.credit(A, POOL, 1_000)
    ledger.credit(B, POOL, 2_000)
    pair.resync()

    assert _add(ledger, pair, 500, 1_000, to=TRADER) == 500
    assert shares.balance_of(TRADER) == 500
    assert pair.get_state()[:2] == (1_500, 3_000)


def test_deposit_with_nothing_transferred_fails() -> None:
    ledger, _clock, pair = _setup()
    _add(ledger, pair, 1_000_000, 1_000_000)
    with pytest.raises(InsufficientLiquidityMinted):
        pair.deposit(LP, sender=LP)


# -- Withdraw ------------------------------------------------------------------


def test_withdraw_pays_out_pro_rata() -> None:
    ledger = AssetLedger()
    shares = ShareLedger(ledger.journal)
    shares.mint(LP, 900)
    shares.mint(POOL, 100)
    pair = _direct(ledger, shares)
    ledger.credit(A, POOL, 1_100)
    ledger.credit(B, POOL, 1_100)
    pair.resync()

    assert pair.withdraw(LP, sender=LP) == (110, 110)
    assert ledger.balance_of(A, LP) == 110
    assert ledger.balance_of(B, LP) == 110
    assert pair.get_state()[:2] == (990, 990)
    assert pair.total_shares == 900
    assert pair.events[-1] == Burn(sender=LP, amount_a=110, amount_b=110, recipient=LP)


def test_full_withdraw_leaves_the_locked_minimum() -> None:
    ledger, _clock, pair = _setup()
    minted = _add(ledger, pair, 10_000_000, 10_000_000)
    assert pair.share_ledger.transfer(LP, pair.address, minted)

    assert pair.withdraw(LP, sender=LP) == (9_999_000, 9_999_000)
    assert pair.get_state()[:2] == (1_000, 1_000)
    assert pair.total_shares == 1_000


def test_withdraw_without_returned_shares_fails() -> None:
    ledger, _clock, pair = _setup()
    _add(ledger, pair, 1_000_000, 1_000_000)
    with pytest.raises(InsufficientLiquidityBurned):
        pair.withdraw(LP, sender=LP)
    assert pair.get_state()[:2] == (1_000_000, 1_000_000)


# -- Exchange ------------------------------------------------------------------


def test_exchange_accepts_quoted_output() -> None:
    ledger, _clock, pair = _setup()
    _add(ledger, pair, 1_000_000, 1_000_000)
    ledger.credit(A, pair.address, 100_000)

    pair.exchange(0, 90_661, TRADER, sender=TRADER)

    assert ledger.balance_of(B, TRADER) == 90_661
    assert pair.get_state()[:2] == (1_100_000, 909_339)
    assert pair.events[-1] == Swap(
        sender=TRADER, amount_a_in=100_000, amount_b_in=0, amount_a_out=0, amount_b_out=90_661, recipient=TRADER
    )


def test_exchange_rejects_one_unit_more_than_quoted() -> None:
    ledger, _clock, pair = _setup()
    _add(ledger, pair, 1_000_000, 1_000_000)
    ledger.credit(A, pair.address, 100_000)
    before = pair.state
    events_before = list(pair.events)

    with pytest.raises(InvariantViolation):
        pair.exchange(0, 90_662, TRADER, sender=TRADER)

    assert pair.state == before
    assert ledger.balance_of(B, TRADER) == 0
    assert ledger.balance_of(B, pair.address) == 1_000_000
    assert list(pair.events) == events_before


def test_exchange_argument_checks() -> None:
    ledger, _clock, pair = _setup()
    _add(ledger, pair, 1_000_000, 1_000_000)
    with pytest.raises(InsufficientOutputAmount):
        pair.exchange(0, 0, TRADER, sender=TRADER)
    with pytest.raises(InsufficientLiquidity):
        pair.exchange(0, 1_000_000, TRADER, sender=TRADER)
    with pytest.raises(InvalidRecipient):
        pair.exchange(0, 10, A, sender=TRADER)
    with pytest.raises(InsufficientInputAmount):
        pair.exchange(0, 10, TRADER, sender=TRADER)
    assert ledger.balance_of(B, TRADER) == 0
    assert not pair.locked


def test_flash_exchange_repaid_with_fee_succeeds() -> None:
    ledger, _clock, pair = _setup()
    _add(ledger, pair, 1_000_000, 1_000_000)
    ledger.credit(B, TRADER, 10)
    callback = _Repay(ledger, pair, B, 1_004)

    pair.exchange(0, 1_000, TRADER, b"flash", sender=TRADER, callback=callback)

    assert callback.calls == [(TRADER, 0, 1_000, b"flash")]
    assert ledger.balance_of(B, TRADER) == 6
    assert pair.get_state()[:2] == (1_000_000, 1_000_004)
    assert pair.events[-1].amount_b_in == 1_004


def test_flash_exchange_underpaid_rolls_back() -> None:
    ledger, _clock, pair = _setup()
    _add(ledger, pair, 1_000_000, 1_000_000)
    ledger.credit(B, TRADER, 10)

    with pytest.raises(InvariantViolation):
        pair.exchange(0, 1_000, TRADER, b"flash", sender=TRADER, callback=_Repay(ledger, pair, B, 1_003))

    assert ledger.balance_of(B, TRADER) == 10
    assert pair.get_state()[:2] == (1_000_000, 1_000_000)


def test_payload_without_callback_fails_and_restores_output() -> None:
    ledger, _clock, pair = _setup()
    _add(ledger, pair, 1_000_000, 1_000_000)
    with pytest.raises(MissingCallback):
        pair.exchange(0, 1_000, TRADER, b"x", sender=TRADER)
    assert ledger.balance_of(B, TRADER) == 0
    assert ledger.balance_of(B, pair.address) == 1_000_000


def test_empty_payload_ignores_callback() -> None:
    ledger, _clock, pair = _setup()
    _add(ledger, pair, 1_000_000, 1_000_000)
    ledger.credit(A, pair.address, 100_000)
    callback = _Repay(ledger, pair, B, 0)
    pair.exchange(0, 90_661, TRADER, sender=TRADER, callback=callback)
    assert callback.calls == []


# -- Reentrancy and atomicity --------------------------------------------------


class _Reenter(SwapCallback):
    def __init__(self, action) -> None:
        self.action = action

    def on_exchange(self, initiator, amount_a_out, amount_b_out, payload) -> None:
        self.action()


@pytest.mark.parametrize(
    "action",
    [
        lambda pair: pair.resync(),
        lambda pair: pair.skim(TRADER),
        lambda pair: pair.deposit(TRADER, sender=TRADER),
        lambda pair: pair.withdraw(TRADER, sender=TRADER),
        lambda pair: pair.exchange(0, 1, TRADER, sender=TRADER),
    ],
    ids=["resync", "skim", "deposit", "withdraw", "exchange"],
)
def test_reentrant_call_from_callback_is_locked(action) -> None:
    ledger, _clock, pair = _setup()
    _add(ledger, pair, 1_000_000, 1_000_000)
    before = pair.state
    events_before = list(pair.events)

    with pytest.raises(Locked):
        pair.exchange(0, 1_000, TRADER, b"go", sender=TRADER, callback=_Reenter(lambda: action(pair)))

    assert not pair.locked
    assert pair.state == before
    assert list(pair.events) == events_before
    assert ledger.balance_of(B, TRADER) == 0
    assert ledger.balance_of(B, pair.address) == 1_000_000


def test_lock_is_held_for_the_callback_duration() -> None:
    ledger, _clock, pair = _setup()
    _add(ledger, pair, 1_000_000, 1_000_000)
    ledger.credit(B, TRADER, 10)
    seen = []

    def reenter() -> None:
        seen.append(pair.locked)
        with pytest.raises(Locked):
            pair.resync()
        ledger.transfer(B, TRADER, pair.address, 1_004)

    pair.exchange(0, 1_000, TRADER, b"go", sender=TRADER, callback=_Reenter(reenter))
    assert seen == [True]
    assert not pair.locked


def test_listeners_see_only_committed_events() -> None:
    ledger, _clock, pair = _setup()
    received = []
    pair.subscribe(received.append)

    with pytest.raises(InsufficientLiquidityMinted):
        _add(ledger, pair, 10, 10)
    assert received == []

    ledger.credit(A, pair.address, 1_000_000)
    ledger.credit(B, pair.address, 1_000_000)
    pair.deposit(LP, sender=LP)
    assert [type(e) for e in received] == [Sync, Mint]
    assert event_to_dict(received[0]) == {"event": "Sync", "reserve_a": 1_000_010, "reserve_b": 1_000_010}


def test_failing_listener_does_not_fail_a_committed_operation(caplog: pytest.LogCaptureFixture) -> None:
    ledger, _clock, pair = _setup()
    received = []

    def broken(event) -> None:
        raise RuntimeError("listener down")

    pair.subscribe(broken)
    pair.subscribe(received.append)
    with caplog.at_level(logging.ERROR, logger="pairswap.core.pair"):
        assert _add(ledger, pair, 1_000_000, 1_000_000) == 999_000

    assert [type(e) for e in pair.events] == [Sync, Mint]
    assert [type(e) for e in received] == [Sync, Mint]
    assert "listener" in caplog.text
    assert not pair.locked


def test_event_history_is_bounded() -> None:
    ledger, _clock, pair = _setup(config=PairConfig(event_history=3))
    _add(ledger, pair, 1_000_000, 1_000_000)
    for _ in range(3):
        ledger.credit(B, pair.address, 1)
        pair.resync()
    assert list(pair.events) == [Sync(1_000_000, 1_000_001), Sync(1_000_000, 1_000_002), Sync(1_000_000, 1_000_003)]


def _second_pair(ledger: AssetLedger):
    registry = PairRegistry(ledger, clock=_Clock())
    ab = registry.create_pair(A, B)
    bc = registry.create_pair(B, C)
    _add(ledger, ab, 1_000_000, 1_000_000)
    ledger.credit(B, bc.address, 1_000_000)
    ledger.credit(C, bc.address, 1_000_000)
    bc.deposit(LP, sender=LP)
    return ab, bc


def test_rollback_undoes_other_pairs_touched_by_the_callback() -> None:
    ledger = AssetLedger()
    ab, bc = _second_pair(ledger)
    bc_state = bc.state
    bc_shares = bc.share_ledger.get_all_balances()
    bc_events = list(bc.events)
    seen = []
    bc.subscribe(seen.append)

    def swap_on_bc() -> None:
        assert ledger.transfer(B, TRADER, bc.address, 2_000)
        bc.exchange(0, 1_000, TRADER, sender=TRADER)

    # AB is never repaid, so the whole exchange fails after BC's swap went through.
    with pytest.raises(InsufficientInputAmount):
        ab.exchange(0, 2_000, TRADER, b"arb", sender=TRADER, callback=_Reenter(swap_on_bc))

    assert bc.state == bc_state
    assert ledger.balance_of(B, bc.address) == 1_000_000
    assert ledger.balance_of(C, bc.address) == 1_000_000
    assert ledger.balance_of(B, TRADER) == 0
    assert ledger.balance_of(C, TRADER) == 0
    assert bc.share_ledger.get_all_balances() == bc_shares
    assert list(bc.events) == bc_events
    assert seen == []
    assert ledger.journal.depth == 0

    # BC is still consistent: skim is a no-op and a balanced deposit works.
    bc.skim(TRADER)
    ledger.credit(B, bc.address, 1_000)
    ledger.credit(C, bc.address, 1_000)
    assert bc.deposit(LP, sender=LP) == 1_000


def test_nested_pair_events_publish_when_the_outer_exchange_commits() -> None:
    ledger = AssetLedger()
    ab, bc = _second_pair(ledger)
    ledger.credit(B, TRADER, 2_007)
    seen = []
    during = []
    bc.subscribe(seen.append)

    def swap_and_repay() -> None:
        assert ledger.transfer(B, TRADER, bc.address, 2_000)
        bc.exchange(0, 1_000, TRADER, sender=TRADER)
        during.append(list(seen))
        assert ledger.transfer(B, TRADER, ab.address, 2_007)

    ab.exchange(0, 2_000, TRADER, b"arb", sender=TRADER, callback=_Reenter(swap_and_repay))

    assert during == [[]]
    assert [type(e) for e in seen] == [Sync, Swap]
    assert bc.get_state()[:2] == (1_002_000, 999_000)
    assert ab.get_state()[:2] == (1_000_000, 1_000_007)
    assert ledger.balance_of(C, TRADER) == 1_000


# -- Skim / resync -------------------------------------------------------------


def test_skim_sends_surplus_and_keeps_reserves() -> None:
    ledger, _clock, pair = _setup()
    _add(ledger, pair, 1_000_000, 1_000_000)
    ledger.credit(A, pair.address, 500)

    pair.skim(TRADER)

    assert ledger.balance_of(A, TRADER) == 500
    assert ledger.balance_of(B, TRADER) == 0
    assert ledger.balance_of(A, pair.address) == 1_000_000
    assert pair.get_state()[:2] == (1_000_000, 1_000_000)


def test_resync_adopts_donations() -> None:
    ledger, _clock, pair = _setup()
    _add(ledger, pair, 1_000_000, 1_000_000)
    ledger.credit(B, pair.address, 7)
    pair.resync()
    assert pair.get_state()[:2] == (1_000_000, 1_000_007)
    assert pair.events[-1] == Sync(1_000_000, 1_000_007)


def test_resync_rejects_balances_beyond_112_bits() -> None:
    ledger, _clock, pair = _setup()
    ledger.credit(A, pair.address, UINT112_MAX)
    ledger.credit(B, pair.address, 1)
    pair.resync()
    assert pair.get_state()[:2] == (UINT112_MAX, 1)

    ledger.credit(A, pair.address, 1)
    with pytest.raises(Overflow):
        pair.resync()
    assert pair.get_state()[:2] == (UINT112_MAX, 1)
    assert not pair.locked


def test_refused_transfer_aborts_the_operation() -> None:
    ledger = _RefusingLedger()
    shares = ShareLedger(ledger.journal)
    pair = _direct(ledger, shares)
    _add(ledger, pair, 1_000_000, 1_000_000)
    ledger.credit(A, POOL, 100_000)
    ledger.refuse = True

    with pytest.raises(TransferFailed):
        pair.exchange(0, 90_661, TRADER, sender=TRADER)
    assert pair.get_state()[:2] == (1_000_000, 1_000_000)


def test_skim_without_surplus_makes_no_transfers() -> None:
    ledger = _RefusingLedger()
    pair = _direct(ledger, ShareLedger(ledger.journal))
    _add(ledger, pair, 1_000_000, 1_000_000)
    ledger.refuse = True

    pair.skim(TRADER)

    ledger.credit(A, POOL, 5)
    with pytest.raises(TransferFailed):
        pair.skim(TRADER)
    assert ledger.balance_of(A, POOL) == 1_000_005


# -- Oracle --------------------------------------------------------------------


def test_accumulators_advance_with_the_clock() -> None:
    ledger, clock, pair = _setup()
    _add(ledger, pair, 1_000_000, 1_000_000)
    assert pair.state.price_a_cumulative == 0

    clock.now += 10
    pair.resync()
    assert pair.state.price_a_cumulative == 10 * Q112
    assert pair.state.price_b_cumulative == 10 * Q112
    assert pair.get_state()[2] == clock.now


# -- Protocol fee --------------------------------------------------------------


def test_protocol_fee_minted_on_next_liquidity_event() -> None:
    ledger, _clock, pair = _setup(fee_recipient=FEE_TO)
    _add(ledger, pair, 1_000_000, 1_000_000)
    assert pair.state.k_last == 10**12
    assert pair.share_ledger.balance_of(FEE_TO) == 0

    ledger.credit(A, pair.address, 100_000)
    pair.exchange(0, 90_661, TRADER, sender=TRADER)
    assert pair.state.k_last == 10**12

    assert _add(ledger, pair, 11_000, 9_094) == 10_000
    assert pair.share_ledger.balance_of(FEE_TO) == 22
    assert pair.total_shares == 1_000_022 + 10_000
    assert pair.state.k_last == pair.state.reserve_a * pair.state.reserve_b


def test_protocol_fee_switched_off_clears_k_last() -> None:
    ledger = AssetLedger()
    shares = ShareLedger(ledger.journal)
    registry = _Registry(fee_recipient=FEE_TO)
    pair = _direct(ledger, shares, registry)
    _add(ledger, pair, 1_000_000, 1_000_000)
    assert pair.state.k_last == 10**12

    registry.fee_recipient = None
    _add(ledger, pair, 1_000, 1_000)
    assert pair.state.k_last == 0
    assert shares.balance_of(FEE_TO) == 0


def test_withdraw_mints_protocol_fee_and_refreshes_k_last() -> None:
    ledger, _clock, pair = _setup(fee_recipient=FEE_TO)
    _add(ledger, pair, 1_000_000, 1_000_000)
    ledger.credit(A, pair.address, 100_000)
    pair.exchange(0, 90_661, TRADER, sender=TRADER)
    assert pair.share_ledger.transfer(LP, pair.address, 99_900)

    amount_a, amount_b = pair.withdraw(LP, sender=LP)

    # Fee shares are minted before the payout, so they dilute it.
    assert pair.share_ledger.balance_of(FEE_TO) == 22
    assert (amount_a, amount_b) == (99_900 * 1_100_000 // 1_000_022, 99_900 * 909_339 // 1_000_022)
    assert pair.total_shares == 1_000_022 - 99_900
    assert pair.get_state()[:2] == (1_100_000 - amount_a, 909_339 - amount_b)
    assert pair.state.k_last == pair.state.reserve_a * pair.state.reserve_b


def test_fee_free_config_accepts_exact_constant_product() -> None:
    ledger, _clock, pair = _setup(config=PairConfig(swap_fee_bps=0))
    _add(ledger, pair, 1_000_000, 1_000_000)
    # 1_000_000 * 1_000_000 == 1_250_000 * 800_000
    ledger.credit(A, pair.address, 250_000)
    pair.exchange(0, 200_000, TRADER, sender=TRADER)
    assert pair.get_state()[:2] == (1_250_000, 800_000)
