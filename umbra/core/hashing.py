"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Umbra, a product of Garudex Labs

Field hash adapter.

FieldHash wraps the two-input hash shared with the withdrawal circuit and
derives the per-level empty subtree values from it. The concrete hash is
pluggable: backends are registered by name and selected with the
hash.backend configuration setting.
"""

import threading
from typing import Callable, Dict, List, Optional

from umbra.core.field import is_canonical
from umbra.core.poseidon import poseidon_hash2
from umbra.exceptions import InvalidConfigurationError, InvalidFieldElementError
from umbra.logging_config import get_logger

logger = get_logger(__name__)

Hash2 = Callable[[int, int], int]

HASH_BACKENDS: Dict[str, Hash2] = {
    "poseidon": poseidon_hash2,
}

# Leaf value that denotes an empty slot
EMPTY_LEAF = 0


class FieldHash:
    """
    Deterministic two-input hash over the scalar field.

    Both inputs and the output are checked for canonicity so a misbehaving
    backend cannot feed non-reduced values into a tree.

    Example:
        >>> field_hash = FieldHash()
        >>> root = field_hash.hash2(1, 2)
        >>> zeros = field_hash.empty_subtree_hashes(20)
    """

    def __init__(self, hash2_fn: Optional[Hash2] = None, name: Optional[str] = None):
        """
        Initialize the adapter.

        Args:
            hash2_fn: Two-input hash function (default: Poseidon)
            name: Backend name for logs (default: function name)
        """
        self._hash2 = hash2_fn or poseidon_hash2
        self.name = name or getattr(self._hash2, "__name__", "custom")
        self._empty_hashes: List[int] = [EMPTY_LEAF]
        self._lock = threading.Lock()

    def hash2(self, left: int, right: int) -> int:
        """
        Hash two field elements.

        Raises:
            InvalidFieldElementError: If an input or the backend output is not canonical
        """
        if not is_canonical(left) or not is_canonical(right):
            raise InvalidFieldElementError(
                f"hash2 inputs must be canonical field elements, got {left!r}, {right!r}"
            )

        result = self._hash2(left, right)
        if not is_canonical(result):
            raise InvalidFieldElementError(
                f"Hash backend {self.name} returned a non-canonical value: {result!r}"
            )
        return result

    def empty_subtree_hash(self, level: int) -> int:
        """Root of a subtree of the given height whose leaves are all empty."""
        return self.empty_subtree_hashes(level)[level]

    def empty_subtree_hashes(self, depth: int) -> List[int]:
        """
        Empty subtree roots for levels 0..depth inclusive.

        Values are memoized; each level is one hash of the level below.
        """
        with self._lock:
            while len(self._empty_hashes) <= depth:
                below = self._empty_hashes[-1]
                self._empty_hashes.append(self.hash2(below, below))
            return self._empty_hashes[: depth + 1]


def create_field_hash(config=None) -> FieldHash:
    """
    Factory function to build the field hash named in configuration.

    Args:
        config: Hash configuration with a backend setting (default: poseidon)

    Returns:
        FieldHash for the configured backend

    Raises:
        InvalidConfigurationError: If the backend name is unknown
    """
    backend = getattr(config, "backend", "poseidon")

    if backend not in HASH_BACKENDS:
        raise InvalidConfigurationError(
            f"Invalid hash backend: {backend}. Expected one of {sorted(HASH_BACKENDS)}"
        )

    logger.debug(f"Using {backend} field hash backend")
    return FieldHash(HASH_BACKENDS[backend], name=backend)
