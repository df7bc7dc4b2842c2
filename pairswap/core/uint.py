"""
Fixed-width integer helpers (unsigned, explicit wraparound).

Python ints are unbounded, so every width the pool relies on is modelled here
explicitly instead of being left implicit:

- reserves are bounded to 112 bits; exceeding the bound is an error,
- timestamps are 32-bit and wrap (modular difference),
- price accumulators are 256-bit and wrap,
- intermediate products are 256-bit words; leaving the range is an error
  unless the caller asks for wrapping arithmetic.

Q112.112 prices are stored as plain ints scaled by ``2**112``.
"""

from __future__ import annotations

from .errors import Overflow


UINT32_MODULUS = 1 << 32
UINT112_MAX = (1 << 112) - 1
UINT256_MODULUS = 1 << 256
UINT256_MAX = UINT256_MODULUS - 1

Q112 = 1 << 112
RESOLUTION = 112


def _require_int(name: str, value: int) -> None:
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"{name} must be an int")


def require_uint(name: str, value: int, bits: int = 256) -> int:
    """Return ``value`` if it is an unsigned int that fits ``bits``; raise ``Overflow`` otherwise."""
    _require_int(name, value)
    if value < 0 or value >> bits:
        raise Overflow(f"{name} out of uint{bits} range: {value}")
    return value


def checked_add(x: int, y: int) -> int:
    z = x + y
    if z > UINT256_MAX:
        raise Overflow("ds-math-add-overflow")
    return z


def checked_sub(x: int, y: int) -> int:
    z = x - y
    if z < 0:
        raise Overflow("ds-math-sub-underflow")
    return z


def checked_mul(x: int, y: int) -> int:
    z = x * y
    if z > UINT256_MAX:
        raise Overflow("ds-math-mul-overflow")
    return z


def wrap32(x: int) -> int:
    return x % UINT32_MODULUS


def wrap256(x: int) -> int:
    return x % UINT256_MODULUS


def elapsed32(now: int, then: int) -> int:
    """Seconds between two 32-bit timestamps, tolerating one wraparound."""
    return (wrap32(now) - wrap32(then)) % UINT32_MODULUS


def encode_q112(y: int) -> int:
    """Encode a 112-bit integer as Q112.112 (a 224-bit word)."""
    require_uint("y", y, 112)
    return y * Q112


def uqdiv(x: int, y: int) -> int:
    """Divide a Q112.112 value by a 112-bit integer, flooring to Q112.112."""
    require_uint("x", x, 224)
    require_uint("y", y, 112)
    if y == 0:
        raise ZeroDivisionError("uqdiv by zero")
    return x // y


def decode_q112(x: int) -> int:
    """Integer part of a Q112.112 value."""
    return x >> RESOLUTION
