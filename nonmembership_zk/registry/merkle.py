"""
Fixed-depth Merkle tree over the registry slots.

Every slot holds one field element; the zero element marks an empty slot.
Parents are ``hash2(left, right)`` with fixed left||right ordering.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from .config import MAX_TREE_LEVELS, ZERO_ELEMENT
from .exceptions import EncodingRangeError, IndexOutOfRangeError, NotBuiltError
from .field import require_encodable
from .hashing import HashProvider


@dataclass(frozen=True)
class MerkleProof:
    """
    Authentication path for one slot.

    ``path_indices[k]`` is 0 when the node at level k is a left child and 1
    when it is a right child; ``siblings[k]`` is the other child.
    """

    root: int
    leaf: int
    siblings: Tuple[int, ...]
    path_indices: Tuple[int, ...]

    @property
    def index(self) -> int:
        """Slot index encoded by the path bits."""
        return sum(bit << level for level, bit in enumerate(self.path_indices))


class MerkleTree:
    """
    Binary hash tree with ``2**levels`` slots.

    The tree is unbuilt after construction and after every insert; ``build()``
    recomputes all layers from the current leaves.

    Example:
        tree = MerkleTree(8, hasher)
        tree.insert_leaf(0, tree.hash_leaf_value("Code Review Bot"))
        root = tree.build()
        assert tree.verify(tree.proof(1))
    """

    def __init__(self, levels: int, hasher: HashProvider) -> None:
        if isinstance(levels, bool) or not isinstance(levels, int):
            raise TypeError("levels must be an int")
        if levels < 1 or levels > MAX_TREE_LEVELS:
            raise ValueError(f"levels must be between 1 and {MAX_TREE_LEVELS}")
        self.levels = levels
        self.capacity = 2**levels
        self._hasher = hasher
        self._leaves: List[int] = [ZERO_ELEMENT] * self.capacity
        self._layers: List[List[int]] = []

    @property
    def hasher(self) -> HashProvider:
        return self._hasher

    @property
    def leaves(self) -> Tuple[int, ...]:
        return tuple(self._leaves)

    @property
    def layers(self) -> Tuple[Tuple[int, ...], ...]:
        return tuple(tuple(layer) for layer in self._layers)

    @property
    def is_built(self) -> bool:
        return len(self._layers) == self.levels + 1

    @property
    def root(self) -> int:
        self._require_built()
        return self._layers[-1][0]

    def hash_leaf_value(self, description: str | bytes) -> int:
        """Derive a leaf value from a human-readable description."""
        if isinstance(description, str):
            description = description.encode("utf-8")
        return self._hasher.hash1(bytes(description))

    def insert_leaf(self, index: int, value: int) -> None:
        self._check_index(index)
        self._leaves[index] = require_encodable(value, "leaf value")
        self._layers = []

    def build(self) -> int:
        """Compute every layer bottom-up and return the root."""
        layers = [list(self._leaves)]
        for _ in range(self.levels):
            current = layers[-1]
            parents = []
            for i in range(0, len(current), 2):
                left = current[i]
                right = current[i + 1] if i + 1 < len(current) else ZERO_ELEMENT
                parents.append(self._hasher.hash2(left, right))
            layers.append(parents)
        self._layers = layers
        return self.root

    def proof(self, index: int) -> MerkleProof:
        self._require_built()
        self._check_index(index)

        siblings = []
        path_indices = []
        current = index
        for level in range(self.levels):
            layer = self._layers[level]
            is_right = current % 2 == 1
            sibling_index = current - 1 if is_right else current + 1
            if sibling_index < len(layer):
                siblings.append(layer[sibling_index])
            else:
                siblings.append(ZERO_ELEMENT)
            path_indices.append(1 if is_right else 0)
            current //= 2

        return MerkleProof(
            root=self.root,
            leaf=self._leaves[index],
            siblings=tuple(siblings),
            path_indices=tuple(path_indices),
        )

    def verify(self, proof: MerkleProof) -> bool:
        """
        Recompute the path from ``proof.leaf`` and compare with ``proof.root``.

        A path of the wrong length or with values outside the codec range is
        rejected, never raised.
        """
        if len(proof.siblings) != self.levels or len(proof.path_indices) != self.levels:
            return False
        try:
            for value in (proof.leaf, *proof.siblings):
                require_encodable(value, "path value")
            computed = compute_path_root(
                self._hasher, proof.leaf, proof.siblings, proof.path_indices
            )
        except EncodingRangeError:
            return False
        return computed == proof.root

    def find_first_empty_slot(self) -> Optional[int]:
        """Lowest index holding the zero element, or None when full."""
        for index, value in enumerate(self._leaves):
            if value == ZERO_ELEMENT:
                return index
        return None

    def contains(self, value: int) -> bool:
        return value in self._leaves

    def _check_index(self, index: int) -> None:
        if isinstance(index, bool) or not isinstance(index, int):
            raise TypeError("index must be an int")
        if index < 0 or index >= self.capacity:
            raise IndexOutOfRangeError(
                f"Index {index} out of bounds (max: {self.capacity - 1})"
            )

    def _require_built(self) -> None:
        if not self.is_built:
            raise NotBuiltError("Tree not built yet. Call build() first.")


def compute_path_root(
    hasher: HashProvider,
    leaf: int,
    siblings: Sequence[int],
    path_indices: Sequence[int],
) -> Optional[int]:
    """
    Hash ``leaf`` up through ``siblings``.

    Returns None for a malformed path (length mismatch or a bit other than
    0/1), which never equals a root.
    """
    if len(siblings) != len(path_indices):
        return None
    current = leaf
    for sibling, bit in zip(siblings, path_indices):
        if bit == 0:
            current = hasher.hash2(current, sibling)
        elif bit == 1:
            current = hasher.hash2(sibling, current)
        else:
            return None
    return current
