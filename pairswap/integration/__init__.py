"""
Imperative shell: pair creation and path quotes over a registry.
"""

from .paths import chained_amounts_in_for_path, chained_amounts_out_for_path, reserves_for
from .registry import PairRegistry

__all__ = [
    "PairRegistry",
    "chained_amounts_in_for_path",
    "chained_amounts_out_for_path",
    "reserves_for",
]
