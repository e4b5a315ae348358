"""
Non-membership proofs for an admitted-item registry.

A registry of item descriptions is committed to a fixed-depth Merkle tree; a
Groth16 proof shows a candidate is absent and is then verified on-chain.
"""

__version__ = "0.1.0"

DISCLAIMER = """
⚠️  EXPERIMENTAL - NOT AUDITED
The non-membership witness proves that an empty slot exists in the committed
registry and that the candidate differs from it. Confirm that the circuit
binds the candidate against the occupied slots before relying on the result.
"""


def print_disclaimer():
    """Print the experimental-status disclaimer."""
    print(DISCLAIMER)
