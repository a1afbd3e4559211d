"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Umbra, a product of Garudex Labs

Umbra Ledger - Shielded deposit/withdrawal ledger

Umbra keeps the per-asset commitment trees, root history windows and
double-spend registries behind an anonymous deposit pool.
"""

from umbra._version import __version__

__all__ = ["__version__"]
