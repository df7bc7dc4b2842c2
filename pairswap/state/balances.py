"""
Multi-asset balance ledger.

Implements the asset-ledger collaborator the pair engine consumes:
AssetLedger[AssetId, Address] -> Amount, with transfers. Every write is
recorded in the ledger's ``journal`` so an enclosing atomic scope can undo it.
"""

from __future__ import annotations

from typing import Dict, Optional, Tuple

from .journal import Journal


# Type aliases
Address = str  # 20-byte hex string (0x...)
AssetId = str  # asset identifiers share the address space
Amount = int  # Non-negative integer (arbitrary precision)

# The null identifier; never a valid asset, used as the locked-shares sink.
ZERO_ADDRESS = "0x" + "00" * 20


class AssetLedger:
    """
    In-memory ledger mapping (asset, holder) -> amount.

    Notes:
    - Balances are always non-negative; zero balances are omitted.
    - ``transfer`` reports failure by returning False (it does not raise),
      so callers must check the result.
    - ``journal`` is the transaction boundary for every pair over this ledger.
    """

    def __init__(self, journal: Optional[Journal] = None) -> None:
        self.journal = journal or Journal()
        self._balances: Dict[Tuple[AssetId, Address], Amount] = {}

    def balance_of(self, asset: AssetId, holder: Address) -> Amount:
        """Balance of ``holder`` in ``asset``. Returns 0 if not found."""
        return self._balances.get((asset, holder), 0)

    def _write(self, key: Tuple[AssetId, Address], amount: Amount) -> None:
        if amount == 0:
            self._balances.pop(key, None)
        else:
            self._balances[key] = amount

    def set(self, asset: AssetId, holder: Address, amount: Amount) -> None:
        if amount < 0:
            raise ValueError(f"Balance cannot be negative: {amount}")
        key = (asset, holder)
        previous = self._balances.get(key, 0)
        if previous == amount:
            return
        self.journal.record(lambda: self._write(key, previous))
        self._write(key, amount)

    def credit(self, asset: AssetId, holder: Address, amount: Amount) -> None:
        """Create ``amount`` of ``asset`` out of thin air (funding helper)."""
        if amount < 0:
            raise ValueError(f"Credit must be non-negative: {amount}")
        self.set(asset, holder, self.balance_of(asset, holder) + amount)

    def transfer(self, asset: AssetId, sender: Address, to: Address, amount: Amount) -> bool:
        """
        Move ``amount`` of ``asset`` from ``sender`` to ``to``.

        Returns:
            True on success, False if ``sender`` cannot cover ``amount``.

        Raises:
            ValueError: If amount is negative
        """
        if amount < 0:
            raise ValueError(f"Transfer amount must be non-negative: {amount}")
        current = self.balance_of(asset, sender)
        if current < amount:
            return False
        self.set(asset, sender, current - amount)
        self.set(asset, to, self.balance_of(asset, to) + amount)
        return True

    def total_supply(self, asset: AssetId) -> Amount:
        return sum(v for (a, _holder), v in self._balances.items() if a == asset)

    def get_all_balances(self) -> Dict[Tuple[AssetId, Address], Amount]:
        return dict(self._balances)

    def __repr__(self) -> str:
        return f"AssetLedger({len(self._balances)} entries)"
