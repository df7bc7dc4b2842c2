from __future__ import annotations

import pytest

from pairswap.core.fees import ProtocolFee, collect_protocol_fee, protocol_fee_shares


def test_fee_off_clears_k_last() -> None:
    fee = collect_protocol_fee(k_last=10**12, reserve_a=2 * 10**6, reserve_b=2 * 10**6, total_shares=10**6, fee_on=False)
    assert fee == ProtocolFee(fee_on=False, shares=0, k_last=0)


def test_fee_on_without_k_last_mints_nothing() -> None:
    fee = collect_protocol_fee(k_last=0, reserve_a=10**6, reserve_b=10**6, total_shares=10**6, fee_on=True)
    assert fee == ProtocolFee(fee_on=True, shares=0, k_last=0)


def test_fee_on_mints_one_sixth_of_root_k_growth() -> None:
    # isqrt(1_100_000 * 909_339) = 1_000_136; 10**6 * 136 // (5 * 1_000_136 + 10**6) = 22
    fee = collect_protocol_fee(
        k_last=10**12, reserve_a=1_100_000, reserve_b=909_339, total_shares=10**6, fee_on=True
    )
    assert fee.fee_on is True
    assert fee.shares == 22
    assert fee.k_last == 10**12


def test_no_growth_mints_nothing() -> None:
    assert protocol_fee_shares(10**6, 1000, 1000) == 0
    assert protocol_fee_shares(10**6, 999, 1000) == 0
    fee = collect_protocol_fee(k_last=10**12, reserve_a=10**6, reserve_b=10**6, total_shares=10**6, fee_on=True)
    assert fee.shares == 0


def test_doubling_root_k_dilutes_by_one_sixth_of_growth() -> None:
    # Growth 1000 -> 2000: the recipient ends with 1/12 of the pool, i.e. 1/6 of the growth.
    total = 1_000_000
    shares = protocol_fee_shares(total, 2000, 1000)
    assert shares == total * 1000 // 11000
    assert abs(shares * 12 - (total + shares)) <= 12


def test_protocol_fee_rejects_negative_values() -> None:
    with pytest.raises(ValueError):
        ProtocolFee(fee_on=True, shares=-1, k_last=0)
