from dataclasses import replace
from pathlib import Path

from nonmembership_zk.pipeline.fixture import FixtureToolchain, fixture_proof
from nonmembership_zk.pipeline.submission import encode_submission
from nonmembership_zk.pipeline.toolchain import Toolchain
from nonmembership_zk.registry.hashing import Sha256FieldHasher
from nonmembership_zk.registry.snapshot import build_registry_tree
from nonmembership_zk.registry.witness import build_non_membership_witness


def _witness():
    tree = build_registry_tree(["a", "b", "c"], Sha256FieldHasher(), levels=2)
    return build_non_membership_witness(tree, "d")


def test_fixture_proof_is_deterministic():
    assert fixture_proof(("1", "2", "1")) == fixture_proof(("1", "2", "1"))
    assert fixture_proof(("1", "2", "1")) != fixture_proof(("1", "3", "1"))


def test_virtual_paths_without_build_dir():
    toolchain = FixtureToolchain()
    circuit = toolchain.compile()
    assert circuit.r1cs_path.startswith("fixture://")


def test_placeholder_files_with_build_dir(tmp_path):
    toolchain = FixtureToolchain(tmp_path)
    circuit = toolchain.compile()
    keys = toolchain.setup(circuit)
    for path in circuit.files() + keys.files():
        assert Path(path).exists()


def test_prove_sets_non_membership_flag():
    toolchain = FixtureToolchain()
    witness = _witness()
    artifact = toolchain.prove(witness, toolchain.compile(), toolchain.setup(None))
    assert artifact.public_signals == (
        str(witness.root),
        str(witness.candidate_hash),
        "1",
    )

    occupied = replace(witness, leaf=5)
    assert toolchain.prove(occupied, None, None).is_non_member == "0"


def test_verify_detects_mismatched_signals():
    toolchain = FixtureToolchain()
    artifact = fixture_proof(("1", "2", "1"))
    assert toolchain.verify(artifact, None) is True
    assert toolchain.verify(replace(artifact, public_signals=("9", "2", "1")), None) is False


def test_forced_results():
    toolchain = FixtureToolchain(verify_result=False, onchain_result=False)
    artifact = fixture_proof(("1", "2", "1"))
    assert toolchain.verify(artifact, None) is False
    assert toolchain.submit(None, encode_submission(artifact)) is False
    assert toolchain.calls == ["verify", "submit"]
    assert len(toolchain.submitted) == 1


def test_fixture_satisfies_toolchain_protocol():
    toolchain: Toolchain = FixtureToolchain()
    assert toolchain.register(None, "aa", "bb") == "bb"
