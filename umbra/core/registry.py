"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Umbra, a product of Garudex Labs

Commitment and nullifier registries.

Both are permanent sets of field elements with an atomic check-and-insert.
The commitment registry enforces at-most-once deposits; the nullifier
registry enforces at-most-once withdrawals.
"""

import threading
from typing import Set


class UsedValueRegistry:
    """
    Set of field elements that can each be used once.

    use() is a compare-and-set: under concurrent calls with the same value,
    exactly one caller sees True.
    """

    def __init__(self):
        self._values: Set[int] = set()
        self._lock = threading.Lock()

    def use(self, value: int) -> bool:
        """
        Insert value if absent.

        Returns:
            True if the value was newly inserted, False if it was already used
        """
        with self._lock:
            if value in self._values:
                return False
            self._values.add(value)
            return True

    def contains(self, value: int) -> bool:
        with self._lock:
            return value in self._values

    def __contains__(self, value: int) -> bool:
        return self.contains(value)

    def __len__(self) -> int:
        with self._lock:
            return len(self._values)

    def undo_use(self, value: int) -> None:
        """
        Remove a value again.

        Only for undoing a use() made by the same ledger operation, while that
        operation still holds the vault lock and is about to fail.
        """
        with self._lock:
            self._values.discard(value)


class CommitmentRegistry(UsedValueRegistry):
    """Commitments deposited into one vault."""


class NullifierRegistry(UsedValueRegistry):
    """Nullifier hashes spent from one vault."""
