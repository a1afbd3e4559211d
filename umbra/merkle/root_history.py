"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Umbra, a product of Garudex Labs

Window of recently valid Merkle roots.

Withdrawals may prove membership against any of the last W roots, so that a
proof built against a slightly stale root still verifies after a few
concurrent deposits.
"""

from collections import Counter
from typing import List

from umbra.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_ROOT_HISTORY_SIZE = 30


class RootHistoryWindow:
    """
    Append-only root log with a bounded known-root set.

    The known set is positional: it holds the roots at the last W positions of
    the history. A value recorded twice inside the window is counted twice, so
    evicting the older position keeps the newer one known.

    Example:
        >>> window = RootHistoryWindow(size=30, initial_root=empty_root)
        >>> window.record(new_root)
        >>> window.is_known(new_root)
        True
    """

    def __init__(self, size: int = DEFAULT_ROOT_HISTORY_SIZE, initial_root: int = 0):
        """
        Create a window seeded with the empty-tree root.

        Args:
            size: Number of recent roots accepted (W, at least 1)
            initial_root: Root of the empty tree, recorded at position 0

        Raises:
            ValueError: If size is smaller than 1
        """
        if not isinstance(size, int) or size < 1:
            raise ValueError(f"Root history size must be at least 1, got {size!r}")

        self.size = size
        self._history: List[int] = []
        self._known: Counter = Counter()
        self.record(initial_root)

    def record(self, root: int) -> None:
        """Append a root and evict the one that fell out of the window."""
        self._history.append(root)
        self._known[root] += 1

        evicted_position = len(self._history) - 1 - self.size
        if evicted_position >= 0:
            evicted = self._history[evicted_position]
            self._known[evicted] -= 1
            if self._known[evicted] == 0:
                del self._known[evicted]

    def is_known(self, root: int) -> bool:
        """Return True if root is one of the last W recorded roots. Zero is never known."""
        if root == 0:
            return False
        return self._known.get(root, 0) > 0

    def __len__(self) -> int:
        return len(self._history)

    def length(self) -> int:
        """Number of roots ever recorded, including the empty-tree root."""
        return len(self._history)

    @property
    def current_root(self) -> int:
        return self._history[-1]

    def root_at(self, position: int) -> int:
        """Root recorded at a history position (0 is the empty-tree root)."""
        return self._history[position]

    def known_roots(self) -> List[int]:
        """Roots in the window, oldest first."""
        start = max(0, len(self._history) - self.size)
        return list(self._history[start:])
