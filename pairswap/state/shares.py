"""
Liquidity-share ledger for a single pair.

Shares are a plain fungible balance table scoped to one pool; the engine
mints, burns and reads total supply through it. A share ledger must be
built on the same journal as the asset ledger of its pair.
"""

from __future__ import annotations

from typing import Dict, Optional

from .balances import Address, Amount
from .journal import Journal


class ShareLedger:
    """
    Deterministic share table mapping holder -> shares, plus total supply.

    Notes:
    - Share balances are always non-negative.
    - Zero balances are omitted to keep the table sparse.
    - Total supply always equals the sum of balances.
    """

    def __init__(self, journal: Optional[Journal] = None) -> None:
        self.journal = journal or Journal()
        self._balances: Dict[Address, Amount] = {}
        self._total_supply: Amount = 0

    def balance_of(self, holder: Address) -> Amount:
        """Share balance of ``holder``. Returns 0 if not found."""
        return self._balances.get(holder, 0)

    def total_supply(self) -> Amount:
        return self._total_supply

    def _write(self, holder: Address, amount: Amount) -> None:
        if amount == 0:
            self._balances.pop(holder, None)
        else:
            self._balances[holder] = amount

    def _write_supply(self, total: Amount) -> None:
        self._total_supply = total

    def _set(self, holder: Address, amount: Amount) -> None:
        if amount < 0:
            raise ValueError(f"Share balance cannot be negative: {amount}")
        previous = self._balances.get(holder, 0)
        self.journal.record(lambda: self._write(holder, previous))
        self._write(holder, amount)

    def _adjust_supply(self, delta: int) -> None:
        previous = self._total_supply
        self.journal.record(lambda: self._write_supply(previous))
        self._total_supply = previous + delta

    def mint(self, to: Address, amount: Amount) -> None:
        if amount < 0:
            raise ValueError(f"Mint amount must be non-negative: {amount}")
        self._set(to, self.balance_of(to) + amount)
        self._adjust_supply(amount)

    def burn(self, holder: Address, amount: Amount) -> None:
        if amount < 0:
            raise ValueError(f"Burn amount must be non-negative: {amount}")
        current = self.balance_of(holder)
        if current < amount:
            raise ValueError(f"Insufficient share balance: {current} < {amount}")
        self._set(holder, current - amount)
        self._adjust_supply(-amount)

    def transfer(self, sender: Address, to: Address, amount: Amount) -> bool:
        """Move shares between holders. Returns False if ``sender`` cannot cover ``amount``."""
        if amount < 0:
            raise ValueError(f"Transfer amount must be non-negative: {amount}")
        current = self.balance_of(sender)
        if current < amount:
            return False
        self._set(sender, current - amount)
        self._set(to, self.balance_of(to) + amount)
        return True

    def get_all_balances(self) -> Dict[Address, Amount]:
        return dict(self._balances)

    def verify_supply(self) -> bool:
        """Verify total supply equals the sum of balances."""
        return self._total_supply == sum(self._balances.values())

    def __repr__(self) -> str:
        return f"ShareLedger({len(self._balances)} holders, supply={self._total_supply})"
