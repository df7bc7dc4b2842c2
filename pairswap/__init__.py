"""
PairSwap: a two-asset constant-product reserve engine.
"""

__version__ = "0.1.0"
