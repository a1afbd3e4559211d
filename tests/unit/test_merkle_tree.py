"""
Unit tests for the incremental Merkle tree.

Tests cover:
- Insertion results against a naively built full tree
- Frontier updates and the root invariant
- Path reconstruction, current and historical
- Root recomputation and path verification
- Edge cases (zero leaf, full tree, depth bounds, out-of-range paths)
"""

import pytest
from hypothesis import given, strategies as st

from umbra.core.field import FIELD_MODULUS
from umbra.core.hashing import FieldHash
from umbra.exceptions import (
    InvalidFieldElementError,
    InvalidLeafError,
    LeafIndexOutOfRangeError,
    TreeFullError,
)
from umbra.merkle.tree import (
    IncrementalMerkleTree,
    MerklePath,
    SparseNodeStore,
    compute_root,
    verify_path,
)


def naive_root(field_hash, leaves, depth):
    """Root of a full tree built level by level with zero padding."""
    level = list(leaves) + [0] * ((1 << depth) - len(leaves))
    for _ in range(depth):
        level = [field_hash.hash2(level[i], level[i + 1]) for i in range(0, len(level), 2)]
    return level[0]


class TestTreeConstruction:
    """Test empty tree state."""

    def test_empty_tree_root_is_empty_subtree_hash(self, toy_hash):
        tree = IncrementalMerkleTree(4, toy_hash)
        assert tree.current_root == toy_hash.empty_subtree_hash(4)
        assert tree.current_root == tree.empty_root
        assert tree.next_leaf_index == 0

    def test_empty_tree_matches_naive_root(self, toy_hash):
        tree = IncrementalMerkleTree(3, toy_hash)
        assert tree.current_root == naive_root(toy_hash, [], 3)

    def test_frontier_starts_at_empty_subtrees(self, toy_hash):
        tree = IncrementalMerkleTree(4, toy_hash)
        assert tree.filled_subtrees == toy_hash.empty_subtree_hashes(4)[:4]

    def test_capacity(self, toy_hash):
        assert IncrementalMerkleTree(5, toy_hash).capacity == 32

    @pytest.mark.parametrize("depth", [0, 33, -1])
    def test_depth_out_of_range(self, toy_hash, depth):
        with pytest.raises(ValueError, match="Tree depth"):
            IncrementalMerkleTree(depth, toy_hash)

    def test_default_hash_is_poseidon(self, poseidon_hash):
        tree = IncrementalMerkleTree(2)
        assert tree.current_root == poseidon_hash.empty_subtree_hash(2)


class TestInsert:
    """Test leaf insertion."""

    def test_first_insert(self, toy_hash):
        tree = IncrementalMerkleTree(3, toy_hash)
        index, root = tree.insert(5)

        assert index == 0
        assert root == naive_root(toy_hash, [5], 3)
        assert tree.current_root == root
        assert tree.next_leaf_index == 1

    def test_sequential_indices(self, toy_hash):
        tree = IncrementalMerkleTree(3, toy_hash)
        indices = [tree.insert(leaf)[0] for leaf in (11, 12, 13, 14)]
        assert indices == [0, 1, 2, 3]

    def test_every_insert_matches_naive_root(self, toy_hash):
        tree = IncrementalMerkleTree(3, toy_hash)
        leaves = []
        for leaf in range(101, 109):
            leaves.append(leaf)
            _, root = tree.insert(leaf)
            assert root == naive_root(toy_hash, leaves, 3)

    def test_root_changes_each_insert(self, toy_hash):
        tree = IncrementalMerkleTree(4, toy_hash)
        roots = {tree.current_root}
        for leaf in range(1, 10):
            roots.add(tree.insert(leaf)[1])
        assert len(roots) == 10

    def test_insert_uses_exactly_depth_hashes(self, toy_hash):
        calls = []

        def counting_hash(a, b):
            calls.append((a, b))
            return toy_hash.hash2(a, b)

        counted = FieldHash(counting_hash)
        tree = IncrementalMerkleTree(6, counted)
        calls.clear()

        tree.insert(99)
        assert len(calls) == 6

    def test_zero_leaf_rejected(self, toy_hash):
        tree = IncrementalMerkleTree(3, toy_hash)
        with pytest.raises(InvalidLeafError):
            tree.insert(0)
        assert tree.next_leaf_index == 0

    def test_non_canonical_leaf_rejected(self, toy_hash):
        tree = IncrementalMerkleTree(3, toy_hash)
        with pytest.raises(InvalidFieldElementError):
            tree.insert(FIELD_MODULUS)

    def test_full_tree(self, toy_hash):
        tree = IncrementalMerkleTree(2, toy_hash)
        for leaf in (1, 2, 3, 4):
            tree.insert(leaf)

        root_before = tree.current_root
        with pytest.raises(TreeFullError):
            tree.insert(5)

        assert tree.is_full
        assert tree.next_leaf_index == 4
        assert tree.current_root == root_before

    def test_failed_hash_leaves_state_untouched(self, toy_hash):
        state = {"fail": False}

        def flaky_hash(a, b):
            if state["fail"]:
                raise RuntimeError("backend down")
            return toy_hash.hash2(a, b)

        tree = IncrementalMerkleTree(3, FieldHash(flaky_hash))
        tree.insert(1)
        snapshot = (tree.next_leaf_index, tree.current_root, list(tree.filled_subtrees), len(tree.nodes))

        state["fail"] = True
        with pytest.raises(RuntimeError):
            tree.insert(2)

        assert (tree.next_leaf_index, tree.current_root, list(tree.filled_subtrees), len(tree.nodes)) == snapshot


class TestPaths:
    """Test path reconstruction and verification."""

    def test_path_length_and_root(self, toy_hash):
        tree = IncrementalMerkleTree(4, toy_hash)
        for leaf in (7, 8, 9):
            tree.insert(leaf)

        path = tree.path_to(1)
        assert isinstance(path, MerklePath)
        assert len(path.siblings) == 4
        assert len(path.directions) == 4
        assert path.leaf == 8
        assert path.root == tree.current_root
        assert path.verify(toy_hash)

    def test_direction_bits_follow_index(self, toy_hash):
        tree = IncrementalMerkleTree(3, toy_hash)
        for leaf in range(1, 7):
            tree.insert(leaf)

        # 5 = 0b101: right, left, right
        assert tree.path_to(5).directions == [1, 0, 1]

    def test_unfilled_sibling_is_empty_subtree(self, toy_hash):
        tree = IncrementalMerkleTree(3, toy_hash)
        tree.insert(42)

        path = tree.path_to(0)
        assert path.siblings == toy_hash.empty_subtree_hashes(3)[:3]

    def test_every_leaf_verifies_against_current_root(self, toy_hash):
        tree = IncrementalMerkleTree(4, toy_hash)
        for leaf in range(1, 12):
            tree.insert(leaf * 13)

        for index in range(11):
            path = tree.path_to(index)
            assert compute_root(toy_hash, path.leaf, path.siblings, path.directions) == tree.current_root

    def test_historical_path_matches_insertion_root(self, toy_hash):
        tree = IncrementalMerkleTree(4, toy_hash)
        recorded = []
        for leaf in range(1, 10):
            recorded.append(tree.insert(leaf))

        for index, root in recorded:
            path = tree.path_to(index, tree_size=index + 1)
            assert path.root == root
            assert path.verify(toy_hash, root)

    def test_root_at_every_size(self, toy_hash):
        tree = IncrementalMerkleTree(3, toy_hash)
        leaves = [21, 22, 23, 24, 25]
        for leaf in leaves:
            tree.insert(leaf)

        for size in range(len(leaves) + 1):
            assert tree.root_at(size) == naive_root(toy_hash, leaves[:size], 3)

    def test_path_to_uninserted_leaf(self, toy_hash):
        tree = IncrementalMerkleTree(3, toy_hash)
        tree.insert(1)
        with pytest.raises(LeafIndexOutOfRangeError):
            tree.path_to(1)
        with pytest.raises(LeafIndexOutOfRangeError):
            tree.path_to(-1)

    def test_tree_size_beyond_current(self, toy_hash):
        tree = IncrementalMerkleTree(3, toy_hash)
        tree.insert(1)
        with pytest.raises(LeafIndexOutOfRangeError):
            tree.root_at(2)

    def test_leaf_outside_historical_size(self, toy_hash):
        tree = IncrementalMerkleTree(3, toy_hash)
        tree.insert(1)
        tree.insert(2)
        with pytest.raises(LeafIndexOutOfRangeError):
            tree.path_to(1, tree_size=1)


class TestComputeRoot:

    def test_fold_order(self, toy_hash):
        h = toy_hash.hash2
        assert compute_root(toy_hash, 5, [6, 7], [0, 1]) == h(7, h(5, 6))

    def test_mismatched_lengths(self, toy_hash):
        with pytest.raises(ValueError, match="siblings"):
            compute_root(toy_hash, 5, [6, 7], [0])

    def test_bad_direction_bit(self, toy_hash):
        with pytest.raises(ValueError, match="Direction bits"):
            compute_root(toy_hash, 5, [6], [2])

    def test_verify_path_false_on_wrong_root(self, toy_hash):
        tree = IncrementalMerkleTree(3, toy_hash)
        tree.insert(3)
        path = tree.path_to(0)
        assert not verify_path(toy_hash, path.leaf, path.siblings, path.directions, path.root + 1)

    def test_verify_path_false_on_malformed_path(self, toy_hash):
        assert not verify_path(toy_hash, 5, [6], [0, 1], 0)

    def test_tampered_sibling_fails(self, toy_hash):
        tree = IncrementalMerkleTree(3, toy_hash)
        for leaf in (1, 2, 3):
            tree.insert(leaf)
        path = tree.path_to(2)
        path.siblings[1] += 1
        assert not path.verify(toy_hash)


class TestSparseNodeStore:

    def test_nodes_written_per_insert(self, toy_hash):
        tree = IncrementalMerkleTree(3, toy_hash)
        tree.insert(1)
        # leaf plus one node per level
        assert len(tree.nodes) == 4
        assert (0, 0) in tree.nodes
        assert tree.nodes.get(3, 0) == tree.current_root

    def test_injected_store_is_used(self, toy_hash):
        store = SparseNodeStore()
        tree = IncrementalMerkleTree(2, toy_hash, node_store=store)
        tree.insert(9)
        assert store.get(0, 0) == 9
        assert dict(iter(store))[(2, 0)] == tree.current_root

    def test_missing_node(self):
        assert SparseNodeStore().get(0, 0) is None


class TestTreeProperties:
    """Property-based tests over small trees."""

    @given(st.lists(st.integers(min_value=1, max_value=FIELD_MODULUS - 1), min_size=1, max_size=16))
    def test_root_and_paths_match_naive_tree(self, leaves):
        field_hash = FieldHash(lambda a, b: (a * 3 + b * 7 + 1) % FIELD_MODULUS)
        tree = IncrementalMerkleTree(4, field_hash)
        recorded_roots = [tree.insert(leaf)[1] for leaf in leaves]

        assert tree.current_root == naive_root(field_hash, leaves, 4)
        for index, leaf in enumerate(leaves):
            current = tree.path_to(index)
            assert current.leaf == leaf
            assert current.verify(field_hash, tree.current_root)

            historical = tree.path_to(index, tree_size=index + 1)
            assert historical.verify(field_hash, recorded_roots[index])
