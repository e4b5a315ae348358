import pytest

from nonmembership_zk.pipeline.artifacts import ProofArtifact
from nonmembership_zk.pipeline.submission import (
    SubmissionParams,
    encode_public_signals,
    encode_submission,
)
from nonmembership_zk.registry.exceptions import EncodingRangeError
from nonmembership_zk.registry.field import to_hex32


def _artifact(public_signals=("123", "456", "1")) -> ProofArtifact:
    return ProofArtifact(
        pi_a=("1", "2", "1"),
        pi_b=(("3", "4"), ("5", "6"), ("1", "0")),
        pi_c=("7", "8", "1"),
        public_signals=tuple(public_signals),
    )


def test_public_signals_encoding():
    root, candidate, flag = encode_public_signals(["123", "456", "1"])
    assert len(root) == 64
    assert len(candidate) == 64
    assert root == to_hex32(123)
    assert candidate == to_hex32(456)
    assert flag == "1"


def test_flag_passes_through_zero():
    assert encode_public_signals(["1", "2", "0"])[2] == "0"


@pytest.mark.parametrize("flag", ["2", "01", "true", ""])
def test_flag_must_be_boolean_valued(flag):
    with pytest.raises(EncodingRangeError, match="isNonMember"):
        encode_public_signals(["1", "2", flag])


def test_public_signal_count():
    with pytest.raises(EncodingRangeError, match="3 public signals"):
        encode_public_signals(["1", "2"])


def test_submission_parameter_order():
    params = encode_submission(_artifact())
    assert params.ordered() == (
        to_hex32(1),
        to_hex32(2),
        to_hex32(3),
        to_hex32(4),
        to_hex32(5),
        to_hex32(6),
        to_hex32(7),
        to_hex32(8),
        to_hex32(123),
        to_hex32(456),
        "1",
    )


def test_contract_argument_names():
    names = [name for name, _ in encode_submission(_artifact()).as_contract_args()]
    assert names == [
        "proof_a_x",
        "proof_a_y",
        "proof_b_x0",
        "proof_b_x1",
        "proof_b_y0",
        "proof_b_y1",
        "proof_c_x",
        "proof_c_y",
        "public_root",
        "public_agent_hash",
        "public_is_non_member",
    ]
    assert len(SubmissionParams.__dataclass_fields__) == 11


def test_projective_coordinate_is_ignored():
    artifact = _artifact()
    other = ProofArtifact(
        pi_a=("1", "2", "999"),
        pi_b=(("3", "4"), ("5", "6"), ("9", "9")),
        pi_c=("7", "8", "999"),
        public_signals=artifact.public_signals,
    )
    assert encode_submission(other) == encode_submission(artifact)


def test_out_of_range_coordinate():
    artifact = ProofArtifact(
        pi_a=(str(2**256), "2"),
        pi_b=(("3", "4"), ("5", "6")),
        pi_c=("7", "8"),
        public_signals=("1", "2", "1"),
    )
    with pytest.raises(EncodingRangeError, match="pi_a"):
        encode_submission(artifact)
