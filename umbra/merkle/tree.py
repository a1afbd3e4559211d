"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Umbra, a product of Garudex Labs

Incremental Merkle tree for the commitment pool.

This module implements the append-only, fixed-depth binary tree that holds
deposit commitments. It supports:
- O(depth) leaf insertion from a frontier of filled left subtrees
- Path reconstruction for any inserted leaf, against the current root or the
  root at any earlier tree size
- Root recomputation from a leaf and its path, the same fold the withdrawal
  circuit performs
"""

from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

from umbra.core.field import is_canonical
from umbra.core.hashing import EMPTY_LEAF, FieldHash
from umbra.exceptions import (
    InvalidFieldElementError,
    InvalidLeafError,
    LeafIndexOutOfRangeError,
    TreeFullError,
)
from umbra.logging_config import get_logger

logger = get_logger(__name__)

MAX_TREE_DEPTH = 32

# Direction bits: 0 means the running node is the left child (sibling on the right)
LEFT = 0
RIGHT = 1


@dataclass
class MerklePath:
    """
    Authentication path from a leaf to a root.

    Attributes:
        leaf_index: Index of the leaf (0-based)
        leaf: Leaf value
        siblings: Sibling value at each level, leaf level first
        directions: Direction bit at each level (0 = leaf side is left, 1 = right)
        root: Root the path folds to
    """
    leaf_index: int
    leaf: int
    siblings: List[int]
    directions: List[int]
    root: int

    def compute_root(self, field_hash: FieldHash) -> int:
        """Fold the leaf up through the siblings."""
        return compute_root(field_hash, self.leaf, self.siblings, self.directions)

    def verify(self, field_hash: FieldHash, expected_root: Optional[int] = None) -> bool:
        """Check that the path folds to expected_root (default: self.root)."""
        target = self.root if expected_root is None else expected_root
        return self.compute_root(field_hash) == target


def compute_root(
    field_hash: FieldHash,
    leaf: int,
    siblings: Sequence[int],
    directions: Sequence[int],
) -> int:
    """
    Recompute a root from a leaf and its authentication path.

    Args:
        field_hash: Hash shared with the proof circuit
        leaf: Leaf value
        siblings: Sibling values, leaf level first
        directions: Direction bits, leaf level first

    Returns:
        The folded root

    Raises:
        ValueError: If siblings and directions differ in length or a bit is not 0/1
    """
    if len(siblings) != len(directions):
        raise ValueError(
            f"Path has {len(siblings)} siblings but {len(directions)} directions"
        )

    current = leaf
    for sibling, direction in zip(siblings, directions):
        if direction == LEFT:
            current = field_hash.hash2(current, sibling)
        elif direction == RIGHT:
            current = field_hash.hash2(sibling, current)
        else:
            raise ValueError(f"Direction bits must be 0 or 1, got {direction!r}")
    return current


def verify_path(
    field_hash: FieldHash,
    leaf: int,
    siblings: Sequence[int],
    directions: Sequence[int],
    expected_root: int,
) -> bool:
    """Return True if the path folds the leaf to expected_root."""
    try:
        return compute_root(field_hash, leaf, siblings, directions) == expected_root
    except (ValueError, InvalidFieldElementError):
        return False


class SparseNodeStore:
    """
    Addressable node storage keyed by (level, index).

    Level 0 holds leaves, level depth holds the root. Every insertion rewrites
    the nodes on its path; a node whose subtree is complete is never rewritten.
    """

    def __init__(self):
        self._nodes: Dict[Tuple[int, int], int] = {}

    def get(self, level: int, index: int) -> Optional[int]:
        return self._nodes.get((level, index))

    def put(self, level: int, index: int, value: int) -> None:
        self._nodes[(level, index)] = value

    def __contains__(self, key: Tuple[int, int]) -> bool:
        return key in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[Tuple[Tuple[int, int], int]]:
        return iter(self._nodes.items())


class IncrementalMerkleTree:
    """
    Append-only binary Merkle tree of fixed depth.

    Insertion walks the leaf's path once, hashing against either the stored
    left sibling (filled_subtrees) or the empty subtree value for that level,
    so each insert costs exactly `depth` hashes regardless of tree size.
    Inserted nodes are also written to a SparseNodeStore so that paths for
    old leaves can be rebuilt.

    Example:
        >>> tree = IncrementalMerkleTree(depth=20)
        >>> index, root = tree.insert(commitment)
        >>> path = tree.path_to(index)
        >>> assert path.verify(tree.field_hash, root)
    """

    def __init__(
        self,
        depth: int,
        field_hash: Optional[FieldHash] = None,
        node_store: Optional[SparseNodeStore] = None,
    ):
        """
        Create an empty tree.

        Args:
            depth: Number of levels between leaves and root (1 to 32)
            field_hash: Node hash (default: Poseidon)
            node_store: Node storage (default: new in-memory store)

        Raises:
            ValueError: If depth is out of range
        """
        if not isinstance(depth, int) or not 1 <= depth <= MAX_TREE_DEPTH:
            raise ValueError(f"Tree depth must be between 1 and {MAX_TREE_DEPTH}, got {depth!r}")

        self.depth = depth
        self.field_hash = field_hash or FieldHash()
        self._zeros = self.field_hash.empty_subtree_hashes(depth)
        self.nodes = node_store if node_store is not None else SparseNodeStore()

        self.next_leaf_index = 0
        self.filled_subtrees: List[int] = list(self._zeros[:depth])
        self.current_root = self._zeros[depth]

    @property
    def capacity(self) -> int:
        """Maximum number of leaves (2^depth)."""
        return 1 << self.depth

    @property
    def is_full(self) -> bool:
        return self.next_leaf_index >= self.capacity

    @property
    def empty_root(self) -> int:
        """Root of the tree with no leaves."""
        return self._zeros[self.depth]

    def empty_subtree_hash(self, level: int) -> int:
        return self._zeros[level]

    def insert(self, leaf: int) -> Tuple[int, int]:
        """
        Append a leaf.

        State is only updated after every hash on the path succeeded.

        Args:
            leaf: Non-zero canonical field element

        Returns:
            Tuple of (leaf index, new root)

        Raises:
            InvalidLeafError: If leaf is zero
            InvalidFieldElementError: If leaf is not a canonical field element
            TreeFullError: If the tree already holds 2^depth leaves
        """
        if not is_canonical(leaf):
            raise InvalidFieldElementError(f"Leaf must be a canonical field element, got {leaf!r}")
        if leaf == EMPTY_LEAF:
            raise InvalidLeafError("Leaf value 0 is reserved for empty slots")
        if self.is_full:
            raise TreeFullError(
                f"Merkle tree is full: {self.capacity} leaves at depth {self.depth}"
            )

        leaf_index = self.next_leaf_index
        node_index = leaf_index
        current = leaf

        filled_updates: Dict[int, int] = {}
        node_writes: List[Tuple[int, int, int]] = [(0, leaf_index, leaf)]

        for level in range(self.depth):
            if node_index % 2 == 0:
                filled_updates[level] = current
                left, right = current, self._zeros[level]
            else:
                left, right = self.filled_subtrees[level], current

            current = self.field_hash.hash2(left, right)
            node_index >>= 1
            node_writes.append((level + 1, node_index, current))

        for level, value in filled_updates.items():
            self.filled_subtrees[level] = value
        for level, index, value in node_writes:
            self.nodes.put(level, index, value)

        self.next_leaf_index = leaf_index + 1
        self.current_root = current

        logger.debug(f"Inserted leaf {leaf_index} at depth {self.depth}")

        return leaf_index, current

    def path_to(self, leaf_index: int, tree_size: Optional[int] = None) -> MerklePath:
        """
        Rebuild the authentication path of an inserted leaf.

        Args:
            leaf_index: Index of the leaf (0-based)
            tree_size: Leaf count to build the path against (default: current).
                Pass leaf_index + 1 for the path as it was at insertion time.

        Returns:
            MerklePath whose root is the root at tree_size

        Raises:
            LeafIndexOutOfRangeError: If the leaf is not within tree_size leaves
        """
        size = self._check_tree_size(tree_size)

        if not isinstance(leaf_index, int) or leaf_index < 0 or leaf_index >= size:
            raise LeafIndexOutOfRangeError(
                f"Leaf index {leaf_index} out of range [0, {size})"
            )

        siblings: List[int] = []
        directions: List[int] = []
        node_index = leaf_index

        for level in range(self.depth):
            if node_index % 2 == 0:
                sibling_index = node_index + 1
                directions.append(LEFT)
            else:
                sibling_index = node_index - 1
                directions.append(RIGHT)

            siblings.append(self._node_at(level, sibling_index, size))
            node_index >>= 1

        return MerklePath(
            leaf_index=leaf_index,
            leaf=self.nodes.get(0, leaf_index),
            siblings=siblings,
            directions=directions,
            root=self._node_at(self.depth, 0, size),
        )

    def root_at(self, tree_size: int) -> int:
        """
        Root of the tree holding only its first tree_size leaves.

        Raises:
            LeafIndexOutOfRangeError: If tree_size exceeds the current leaf count
        """
        return self._node_at(self.depth, 0, self._check_tree_size(tree_size))

    def _check_tree_size(self, tree_size: Optional[int]) -> int:
        if tree_size is None:
            return self.next_leaf_index
        if not isinstance(tree_size, int) or not 0 <= tree_size <= self.next_leaf_index:
            raise LeafIndexOutOfRangeError(
                f"Tree size {tree_size} out of range [0, {self.next_leaf_index}]"
            )
        return tree_size

    def _node_at(self, level: int, index: int, tree_size: int) -> int:
        """
        Value of node (level, index) when the tree held tree_size leaves.

        Empty subtrees use the per-level empty hash. Complete subtrees, and any
        node when tree_size is the current size, come from the store. A
        partially filled subtree at an earlier size is rehashed from its
        children; only one child per level can be partial.
        """
        first_leaf = index << level
        if first_leaf >= tree_size:
            return self._zeros[level]

        end_leaf = (index + 1) << level
        if end_leaf <= tree_size or tree_size == self.next_leaf_index:
            return self.nodes.get(level, index)

        left = self._node_at(level - 1, 2 * index, tree_size)
        right = self._node_at(level - 1, 2 * index + 1, tree_size)
        return self.field_hash.hash2(left, right)
