from datetime import datetime, timedelta, timezone

import pytest

from nonmembership_zk.pipeline.artifacts import (
    CompiledCircuit,
    DeploymentConfig,
    LocalVerification,
    ProofArtifact,
    SubmissionRecord,
    utc_timestamp,
)
from nonmembership_zk.pipeline.errors import ArtifactFormatError

SNARKJS_PROOF = {
    "pi_a": ["11", "12", "1"],
    "pi_b": [["21", "22"], ["23", "24"], ["1", "0"]],
    "pi_c": ["31", "32", "1"],
    "protocol": "groth16",
    "curve": "bn128",
}


def test_utc_timestamp_format():
    moment = datetime(2025, 6, 1, 12, 0, 0, 123456, tzinfo=timezone.utc)
    assert utc_timestamp(moment) == "2025-06-01T12:00:00.123Z"


def test_utc_timestamp_converts_offsets():
    moment = datetime(2025, 6, 1, 14, 0, 0, tzinfo=timezone(timedelta(hours=2)))
    assert utc_timestamp(moment) == "2025-06-01T12:00:00.000Z"


def test_proof_from_snarkjs_output():
    artifact = ProofArtifact.from_json_objects(SNARKJS_PROOF, ["100", "200", "1"])
    assert artifact.pi_b[1] == ("23", "24")
    assert artifact.root == "100"
    assert artifact.candidate_hash == "200"
    assert artifact.is_non_member == "1"
    assert artifact.proof_dict() == SNARKJS_PROOF
    assert artifact.public_list() == ["100", "200", "1"]


def test_proof_accepts_integer_signals():
    artifact = ProofArtifact.from_json_objects(SNARKJS_PROOF, [100, 200, 1])
    assert artifact.public_signals == ("100", "200", "1")


@pytest.mark.parametrize("public", [["1", "2"], ["1", "2", "3", "4"], "123"])
def test_proof_requires_three_public_signals(public):
    with pytest.raises(ArtifactFormatError, match="exactly 3"):
        ProofArtifact.from_json_objects(SNARKJS_PROOF, public)


def test_proof_rejects_non_decimal_coordinate():
    proof = dict(SNARKJS_PROOF, pi_a=["0x11", "12"])
    with pytest.raises(ArtifactFormatError):
        ProofArtifact.from_json_objects(proof, ["1", "2", "1"])


def test_proof_rejects_short_pi_b():
    proof = dict(SNARKJS_PROOF, pi_b=[["21", "22"]])
    with pytest.raises(ArtifactFormatError, match="pi_b"):
        ProofArtifact.from_json_objects(proof, ["1", "2", "1"])


def test_deployment_config_json_keys():
    config = DeploymentConfig("CID", "testnet", "https://rpc", "2025-01-01T00:00:00.000Z")
    data = config.to_dict()
    assert data == {
        "contractId": "CID",
        "network": "testnet",
        "rpcUrl": "https://rpc",
        "deployedAt": "2025-01-01T00:00:00.000Z",
    }
    assert DeploymentConfig.from_dict(data) == config


def test_deployment_config_requires_iso_date():
    data = {"contractId": "CID", "network": "n", "rpcUrl": "r", "deployedAt": "yesterday"}
    with pytest.raises(ArtifactFormatError, match="ISO-8601"):
        DeploymentConfig.from_dict(data)


def test_deployment_config_missing_key():
    with pytest.raises(ArtifactFormatError, match="rpcUrl"):
        DeploymentConfig.from_dict(
            {"contractId": "CID", "network": "n", "deployedAt": "2025-01-01T00:00:00Z"}
        )


def test_submission_record_shape():
    record = SubmissionRecord(
        timestamp="2025-01-01T00:00:00.000Z",
        contract_id="CID",
        proof_hash="ab" * 32,
        verified=False,
        root="cd" * 32,
        agent_hash="ab" * 32,
        is_non_member="1",
    )
    data = record.to_dict()
    assert data["verified"] is False
    assert data["publicSignals"] == {
        "root": "cd" * 32,
        "agentHash": "ab" * 32,
        "isNonMember": "1",
    }
    assert SubmissionRecord.from_dict(data) == record


def test_local_verification_must_be_success():
    with pytest.raises(ArtifactFormatError):
        LocalVerification.from_dict(
            {"verified": False, "verifiedAt": "x", "publicSignals": []}
        )


def test_compiled_circuit_constraints_type():
    with pytest.raises(ArtifactFormatError):
        CompiledCircuit.from_dict({"r1cs": "a", "wasm": "b", "constraints": "many"})
    circuit = CompiledCircuit.from_dict({"r1cs": "a", "wasm": "b"})
    assert circuit.constraints is None
