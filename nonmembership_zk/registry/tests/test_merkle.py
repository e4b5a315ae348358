import pytest

from nonmembership_zk.registry.config import ZERO_ELEMENT
from nonmembership_zk.registry.exceptions import (
    EncodingRangeError,
    IndexOutOfRangeError,
    NotBuiltError,
)
from nonmembership_zk.registry.hashing import Sha256FieldHasher
from nonmembership_zk.registry.merkle import MerkleProof, MerkleTree, compute_path_root


def _tree(levels: int, count: int) -> MerkleTree:
    tree = MerkleTree(levels, Sha256FieldHasher())
    for idx in range(count):
        tree.insert_leaf(idx, tree.hash_leaf_value(f"agent-{idx}"))
    tree.build()
    return tree


def test_new_tree_is_unbuilt_and_zero():
    tree = MerkleTree(3, Sha256FieldHasher())
    assert tree.capacity == 8
    assert tree.leaves == (ZERO_ELEMENT,) * 8
    assert tree.is_built is False
    with pytest.raises(NotBuiltError):
        tree.root


@pytest.mark.parametrize("levels", [1, 2, 3, 4])
def test_every_proof_verifies(levels):
    tree = _tree(levels, 2**levels - 1)
    for idx in range(tree.capacity):
        proof = tree.proof(idx)
        assert len(proof.siblings) == levels
        assert len(proof.path_indices) == levels
        assert proof.index == idx
        assert tree.verify(proof) is True


def test_layers_follow_parent_rule():
    tree = _tree(2, 3)
    hasher = tree.hasher
    layers = tree.layers
    assert len(layers) == 3
    assert layers[0] == tree.leaves
    assert layers[1][0] == hasher.hash2(layers[0][0], layers[0][1])
    assert layers[1][1] == hasher.hash2(layers[0][2], layers[0][3])
    assert layers[2] == (tree.root,)


def test_changing_one_leaf_changes_root():
    tree = _tree(3, 4)
    original = tree.root
    for idx in range(tree.capacity):
        previous = tree.leaves[idx]
        tree.insert_leaf(idx, tree.hash_leaf_value(f"other-{idx}"))
        assert tree.build() != original
        tree.insert_leaf(idx, previous)
        assert tree.build() == original


def test_three_agent_scenario():
    tree = MerkleTree(3, Sha256FieldHasher())
    for idx in range(3):
        tree.insert_leaf(idx, tree.hash_leaf_value(f"registered agent {idx}"))
    assert tree.find_first_empty_slot() == 3

    three_leaf_root = tree.build()
    proof = tree.proof(3)
    assert proof.leaf == ZERO_ELEMENT
    assert tree.verify(proof) is True

    tree.insert_leaf(3, tree.hash_leaf_value("registered agent 3"))
    assert tree.build() != three_leaf_root


def test_insert_invalidates_build():
    tree = _tree(2, 1)
    tree.insert_leaf(1, 7)
    assert tree.is_built is False
    with pytest.raises(NotBuiltError, match="build"):
        tree.proof(0)


def test_proof_before_build_raises():
    tree = MerkleTree(2, Sha256FieldHasher())
    with pytest.raises(NotBuiltError):
        tree.proof(0)


@pytest.mark.parametrize("index", [-1, 4, 100])
def test_insert_out_of_range(index):
    tree = MerkleTree(2, Sha256FieldHasher())
    with pytest.raises(IndexOutOfRangeError):
        tree.insert_leaf(index, 1)


def test_proof_out_of_range():
    tree = _tree(2, 1)
    with pytest.raises(IndexOutOfRangeError):
        tree.proof(4)


def test_insert_rejects_unencodable_value():
    tree = MerkleTree(2, Sha256FieldHasher())
    with pytest.raises(EncodingRangeError):
        tree.insert_leaf(0, -3)


@pytest.mark.parametrize("levels", [0, 21])
def test_levels_out_of_range(levels):
    with pytest.raises(ValueError):
        MerkleTree(levels, Sha256FieldHasher())


def test_find_first_empty_slot_full_tree():
    tree = _tree(2, 4)
    assert tree.find_first_empty_slot() is None


def test_find_first_empty_slot_returns_lowest_gap():
    tree = MerkleTree(3, Sha256FieldHasher())
    for idx in (0, 1, 3, 4):
        tree.insert_leaf(idx, idx + 1)
    assert tree.find_first_empty_slot() == 2


def test_contains():
    empty = MerkleTree(2, Sha256FieldHasher())
    assert empty.contains(ZERO_ELEMENT) is True
    assert empty.contains(5) is False

    tree = _tree(2, 4)
    assert tree.contains(tree.leaves[2]) is True
    assert tree.contains(ZERO_ELEMENT) is False
    assert tree.contains(tree.leaves[2] + 1) is False


def test_verify_rejects_tampered_proof():
    tree = _tree(3, 3)
    proof = tree.proof(1)
    bad_leaf = MerkleProof(proof.root, proof.leaf + 1, proof.siblings, proof.path_indices)
    assert tree.verify(bad_leaf) is False

    siblings = list(proof.siblings)
    siblings[0] += 1
    bad_sibling = MerkleProof(proof.root, proof.leaf, tuple(siblings), proof.path_indices)
    assert tree.verify(bad_sibling) is False


def test_verify_rejects_path_of_wrong_length():
    tree = _tree(3, 3)
    root = tree.root
    assert tree.verify(MerkleProof(root, root, (), ())) is False

    proof = tree.proof(0)
    short = MerkleProof(proof.root, tree.layers[1][0], proof.siblings[1:], proof.path_indices[1:])
    assert tree.verify(short) is False

    long = MerkleProof(proof.root, proof.leaf, proof.siblings + (0,), proof.path_indices + (0,))
    assert tree.verify(long) is False


@pytest.mark.parametrize("bad", [-1, 2**256])
def test_verify_rejects_unencodable_path_values(bad):
    tree = _tree(2, 2)
    proof = tree.proof(1)
    bad_sibling = MerkleProof(proof.root, proof.leaf, (bad,) + proof.siblings[1:], proof.path_indices)
    assert tree.verify(bad_sibling) is False

    bad_leaf = MerkleProof(proof.root, bad, proof.siblings, proof.path_indices)
    assert tree.verify(bad_leaf) is False


def test_malformed_path_never_matches():
    hasher = Sha256FieldHasher()
    assert compute_path_root(hasher, 1, [2, 3], [0]) is None
    assert compute_path_root(hasher, 1, [2], [2]) is None


def test_hash_leaf_value_accepts_str_and_bytes():
    tree = MerkleTree(2, Sha256FieldHasher())
    assert tree.hash_leaf_value("Code Review Bot") == tree.hash_leaf_value(b"Code Review Bot")
    assert tree.hash_leaf_value("Code Review Bot") != tree.hash_leaf_value("Code Review Bot ")
