"""Exception types for the pair engine and its quote library.

Every failure is fatal to the operation that raised it. The engine restores
its pre-call state before the exception leaves ``PairEngine``; nothing here is
caught and retried internally.
"""

from __future__ import annotations


class PairError(Exception):
    """Base class. ``code`` is a short, stable identifier for the failure."""

    code: str = "PAIR_ERROR"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.code
        super().__init__(self.message)


class Locked(PairError):
    """A mutating operation is already in flight on this pool."""

    code = "LOCKED"


class Forbidden(PairError):
    """Caller is not allowed to perform the operation (e.g. ``initialize``)."""

    code = "FORBIDDEN"


class Overflow(PairError):
    """A value left its fixed-width domain (112-bit reserve, 256-bit word)."""

    code = "OVERFLOW"


class InsufficientLiquidityMinted(PairError):
    code = "INSUFFICIENT_LIQUIDITY_MINTED"


class InsufficientLiquidityBurned(PairError):
    code = "INSUFFICIENT_LIQUIDITY_BURNED"


class InsufficientOutputAmount(PairError):
    code = "INSUFFICIENT_OUTPUT_AMOUNT"


class InsufficientInputAmount(PairError):
    code = "INSUFFICIENT_INPUT_AMOUNT"


class InsufficientAmount(PairError):
    code = "INSUFFICIENT_AMOUNT"


class InsufficientLiquidity(PairError):
    """Requested output is not strictly below the reserve (or a reserve is empty)."""

    code = "INSUFFICIENT_LIQUIDITY"


class InvalidRecipient(PairError):
    code = "INVALID_TO"


class InvariantViolation(PairError):
    """Fee-adjusted post-trade product fell below the pre-trade product."""

    code = "K"


class TransferFailed(PairError):
    code = "TRANSFER_FAILED"


class MissingCallback(PairError):
    """Non-empty exchange payload supplied without a callback capability."""

    code = "MISSING_CALLBACK"


class IdenticalAssets(PairError):
    code = "IDENTICAL_ADDRESSES"


class NullAsset(PairError):
    code = "ZERO_ADDRESS"


class InvalidPath(PairError):
    code = "INVALID_PATH"


class PairExists(PairError):
    code = "PAIR_EXISTS"
