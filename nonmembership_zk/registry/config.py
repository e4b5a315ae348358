"""
Field and tree configuration for the non-membership registry.

These values must agree with the circuit the proofs are generated against.
Changing any of them invalidates every persisted tree root and proof.
"""

# ============================================================================
# FIELD ENCODING
# ============================================================================

# Width of a field element on the wire (contract BytesN<32> parameters)
FIELD_WIDTH_BYTES = 32
FIELD_HEX_DIGITS = FIELD_WIDTH_BYTES * 2

# Upper bound (exclusive) of values the fixed-width codec accepts
MAX_ENCODABLE = 2**256

# BN254 (bn128) scalar field prime. Hash outputs are reduced into this field
# so that every leaf and node is a valid circuit input.
SNARK_SCALAR_FIELD = (
    21888242871839275222246405745257275088548364400416034343698204186575808495617
)

ZERO_ELEMENT = 0

# ============================================================================
# TREE PARAMETERS
# ============================================================================

DEFAULT_TREE_LEVELS = 8  # 256 slots, matches the deployed circuit
MAX_TREE_LEVELS = 20

# ============================================================================
# HASHING
# ============================================================================

DOMAIN_SEPARATOR_PREFIX = b"NONMEMBERSHIP_ZK_V1_"

DOMAIN_SEPARATORS = {
    "merkle_leaf": DOMAIN_SEPARATOR_PREFIX + b"LEAF",
    "merkle_node": DOMAIN_SEPARATOR_PREFIX + b"NODE",
}

HASH_PROVIDERS = ("sha256", "poseidon")
DEFAULT_HASH_PROVIDER = "sha256"
# The non-membership circuit constrains Poseidon; real proofs need it.
CIRCUIT_HASH_PROVIDER = "poseidon"

# ============================================================================
# VALIDATION
# ============================================================================


def validate_config() -> bool:
    """
    Validate configuration parameters.

    Returns:
        True if configuration is valid

    Raises:
        AssertionError: If configuration is invalid
    """
    assert FIELD_WIDTH_BYTES == 32, "contract expects 32-byte field elements"
    assert SNARK_SCALAR_FIELD < MAX_ENCODABLE, "field must fit the fixed-width codec"
    assert 1 <= DEFAULT_TREE_LEVELS <= MAX_TREE_LEVELS, "default depth out of range"
    assert DEFAULT_HASH_PROVIDER in HASH_PROVIDERS, "unknown default hash provider"
    assert CIRCUIT_HASH_PROVIDER in HASH_PROVIDERS, "unknown circuit hash provider"
    assert len(set(DOMAIN_SEPARATORS.values())) == len(DOMAIN_SEPARATORS), (
        "domain separators must be distinct"
    )
    return True


# Auto-validate on import
validate_config()
