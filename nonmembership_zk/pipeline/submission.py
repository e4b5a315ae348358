"""
Map a proof artifact onto the verifier contract's call parameters.

Every curve coordinate and public field element becomes a fixed-width
64-digit hex string; the non-membership flag is passed through raw.
"""

from __future__ import annotations

from dataclasses import astuple, dataclass, fields
from typing import List, Sequence, Tuple

from ..registry.exceptions import EncodingRangeError
from ..registry.field import parse_decimal, to_hex32
from .artifacts import PUBLIC_SIGNAL_COUNT, ProofArtifact

VERIFY_FUNCTION = "verify_non_membership"
REGISTER_FUNCTION = "register_agent"


@dataclass(frozen=True)
class SubmissionParams:
    """Arguments of ``verify_non_membership``, in contract order."""

    proof_a_x: str
    proof_a_y: str
    proof_b_x0: str
    proof_b_x1: str
    proof_b_y0: str
    proof_b_y1: str
    proof_c_x: str
    proof_c_y: str
    public_root: str
    public_agent_hash: str
    public_is_non_member: str

    def ordered(self) -> Tuple[str, ...]:
        return astuple(self)

    def as_contract_args(self) -> List[Tuple[str, str]]:
        """(parameter name, value) pairs in call order."""
        return [(f.name, getattr(self, f.name)) for f in fields(self)]


def encode_field(value: str | int, label: str = "value") -> str:
    return to_hex32(parse_decimal(value, label))


def encode_public_signals(public_signals: Sequence[str]) -> Tuple[str, str, str]:
    """Encode ``[root, candidateHash, isNonMember]`` as (hex, hex, raw flag)."""
    if len(public_signals) != PUBLIC_SIGNAL_COUNT:
        raise EncodingRangeError(
            f"expected {PUBLIC_SIGNAL_COUNT} public signals, got {len(public_signals)}"
        )
    root, candidate_hash, is_non_member = public_signals
    if is_non_member not in ("0", "1"):
        raise EncodingRangeError(
            f"isNonMember signal must be '0' or '1', got {is_non_member!r}"
        )
    return (
        encode_field(root, "root"),
        encode_field(candidate_hash, "candidateHash"),
        is_non_member,
    )


def encode_submission(artifact: ProofArtifact) -> SubmissionParams:
    """
    Encode ``artifact`` for submission.

    Raises:
        EncodingRangeError: If any coordinate or signal is not a decimal
            field element below 2**256, or the flag is not "0"/"1"
    """
    root, agent_hash, is_non_member = encode_public_signals(artifact.public_signals)

    pi_a, pi_b, pi_c = artifact.pi_a, artifact.pi_b, artifact.pi_c
    return SubmissionParams(
        proof_a_x=encode_field(pi_a[0], "pi_a[0]"),
        proof_a_y=encode_field(pi_a[1], "pi_a[1]"),
        proof_b_x0=encode_field(pi_b[0][0], "pi_b[0][0]"),
        proof_b_x1=encode_field(pi_b[0][1], "pi_b[0][1]"),
        proof_b_y0=encode_field(pi_b[1][0], "pi_b[1][0]"),
        proof_b_y1=encode_field(pi_b[1][1], "pi_b[1][1]"),
        proof_c_x=encode_field(pi_c[0], "pi_c[0]"),
        proof_c_y=encode_field(pi_c[1], "pi_c[1]"),
        public_root=root,
        public_agent_hash=agent_hash,
        public_is_non_member=is_non_member,
    )
