"""Registry tree, field codec and non-membership witnesses."""
from __future__ import annotations

from .exceptions import (
    CandidateAlreadyRegisteredError,
    EncodingRangeError,
    HashProviderError,
    IndexOutOfRangeError,
    NotBuiltError,
    RegistryError,
    RegistryFileError,
    RegistryFullError,
)
from .field import decode, encode_fixed_width, to_hex32
from .hashing import (
    HashProvider,
    PoseidonNodeHasher,
    Sha256FieldHasher,
    get_hash_provider_name,
    open_hash_provider,
    set_hash_provider_name,
)
from .merkle import MerkleProof, MerkleTree
from .snapshot import RegistrySnapshot, build_registry_tree, load_registry
from .witness import Witness, build_non_membership_witness

__all__ = [
    "CandidateAlreadyRegisteredError",
    "EncodingRangeError",
    "HashProviderError",
    "IndexOutOfRangeError",
    "NotBuiltError",
    "RegistryError",
    "RegistryFileError",
    "RegistryFullError",
    "decode",
    "encode_fixed_width",
    "to_hex32",
    "HashProvider",
    "PoseidonNodeHasher",
    "Sha256FieldHasher",
    "get_hash_provider_name",
    "open_hash_provider",
    "set_hash_provider_name",
    "MerkleProof",
    "MerkleTree",
    "RegistrySnapshot",
    "build_registry_tree",
    "load_registry",
    "Witness",
    "build_non_membership_witness",
]
