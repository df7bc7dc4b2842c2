"""
Canonical byte encodings for pair records and pair identities.

Two independent encoders of the same record must produce identical bytes,
so the encoding is JSON restricted to what round-trips exactly:
ints (any size), strings, booleans, None, lists and str-keyed dicts.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any


DOMAIN_PREFIX = b"pairswap:"


def _check_encodable(value: Any, where: str = "$") -> None:
    if isinstance(value, float):
        raise TypeError(f"{where}: floats have no canonical encoding")
    if isinstance(value, str):
        if any(0xD800 <= ord(ch) <= 0xDFFF for ch in value):
            raise TypeError(f"{where}: lone surrogate in string")
    elif isinstance(value, dict):
        for key, item in value.items():
            if not isinstance(key, str):
                raise TypeError(f"{where}: record keys must be str, got {type(key).__name__}")
            _check_encodable(key, where)
            _check_encodable(item, f"{where}.{key}")
    elif isinstance(value, (list, tuple)):
        for i, item in enumerate(value):
            _check_encodable(item, f"{where}[{i}]")


def canonical_json_bytes(value: Any) -> bytes:
    """Sorted-key, whitespace-free UTF-8 JSON. Floats are rejected."""
    _check_encodable(value)
    return json.dumps(
        value,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    ).encode("utf-8")


def sha256_hex(data: bytes) -> str:
    return "0x" + hashlib.sha256(data).hexdigest()


def domain_sep_bytes(label: str, version: int = 1) -> bytes:
    """
    ``pairswap:<label>:v<version>\\x00``

    NUL-terminated so a hashed prefix can never run into the payload.
    """
    if not isinstance(label, str) or not label:
        raise TypeError("label must be a non-empty str")
    if "\x00" in label or not label.isascii():
        raise ValueError(f"label must be NUL-free ASCII: {label!r}")
    if not isinstance(version, int) or isinstance(version, bool) or version <= 0:
        raise ValueError(f"version must be a positive int: {version!r}")
    return DOMAIN_PREFIX + f"{label}:v{version}".encode("ascii") + b"\x00"
