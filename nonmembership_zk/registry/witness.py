"""
⚠️ DRAFT — requires circuit review before relying on the guarantee

Non-membership witness assembly.

The witness proves that *some* slot of the committed tree is currently empty
and that the candidate's hash differs from that slot's value. It does not
place the candidate relative to the occupied slots; whether the circuit binds
the candidate against them must be confirmed against the circuit itself.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Tuple

from .exceptions import CandidateAlreadyRegisteredError, RegistryFullError
from .field import parse_decimal, to_decimal
from .merkle import MerkleTree


@dataclass(frozen=True)
class Witness:
    """
    Prover input bundle.

    Attributes:
        root: Tree root (public)
        candidate_hash: hash1 of the candidate description (public)
        siblings: Authentication path of the empty slot (private)
        path_indices: Left/right bits of the empty slot (private)
        leaf: Value stored at the empty slot, always zero (private)
        slot: Index of the empty slot; recorded for diagnostics only
    """

    root: int
    candidate_hash: int
    siblings: Tuple[int, ...]
    path_indices: Tuple[int, ...]
    leaf: int
    slot: int

    def to_circuit_input(self) -> Dict[str, Any]:
        """Input object in the shape the compiled circuit expects."""
        return {
            "root": to_decimal(self.root),
            "agentDescriptionHash": to_decimal(self.candidate_hash),
            "siblings": [to_decimal(s) for s in self.siblings],
            "pathIndices": [str(bit) for bit in self.path_indices],
            "leafHash": to_decimal(self.leaf),
        }

    def to_dict(self) -> Dict[str, Any]:
        data = self.to_circuit_input()
        data["slot"] = self.slot
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Witness":
        siblings = tuple(
            parse_decimal(s, f"siblings[{i}]") for i, s in enumerate(data["siblings"])
        )
        path_indices = tuple(int(bit) for bit in data["pathIndices"])
        if len(siblings) != len(path_indices):
            raise ValueError("siblings and pathIndices must have the same length")
        if any(bit not in (0, 1) for bit in path_indices):
            raise ValueError("pathIndices must be 0 or 1")
        slot = data.get("slot")
        if slot is None:
            slot = sum(bit << level for level, bit in enumerate(path_indices))
        return cls(
            root=parse_decimal(data["root"], "root"),
            candidate_hash=parse_decimal(data["agentDescriptionHash"], "agentDescriptionHash"),
            siblings=siblings,
            path_indices=path_indices,
            leaf=parse_decimal(data["leafHash"], "leafHash"),
            slot=int(slot),
        )


def build_non_membership_witness(tree: MerkleTree, description: str | bytes) -> Witness:
    """
    Assemble the witness for ``description`` against a built tree.

    Raises:
        CandidateAlreadyRegisteredError: If the candidate's hash is a leaf
        RegistryFullError: If no empty slot is left
        NotBuiltError: If the tree has not been built since the last insert
    """
    candidate_hash = tree.hash_leaf_value(description)
    if tree.contains(candidate_hash):
        raise CandidateAlreadyRegisteredError(
            "Candidate is already registered; no non-membership proof is possible"
        )

    slot = tree.find_first_empty_slot()
    if slot is None:
        raise RegistryFullError(
            f"No empty slots available in tree ({tree.capacity} slots in use). "
            "Rebuild the registry with more levels."
        )

    proof = tree.proof(slot)
    return Witness(
        root=proof.root,
        candidate_hash=candidate_hash,
        siblings=proof.siblings,
        path_indices=proof.path_indices,
        leaf=proof.leaf,
        slot=slot,
    )
