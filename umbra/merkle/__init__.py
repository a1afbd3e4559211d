"""
Incremental Merkle tree and root history for the commitment pool.

This module provides append-only commitment trees, authentication paths and
the window of recently valid roots that withdrawals are checked against.
"""

from umbra.merkle.root_history import RootHistoryWindow
from umbra.merkle.tree import (
    IncrementalMerkleTree,
    MerklePath,
    SparseNodeStore,
    compute_root,
    verify_path,
)

__all__ = [
    "IncrementalMerkleTree",
    "MerklePath",
    "RootHistoryWindow",
    "SparseNodeStore",
    "compute_root",
    "verify_path",
]
