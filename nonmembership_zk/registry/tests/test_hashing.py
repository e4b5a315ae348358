import hashlib
import shutil
import subprocess
import sys

import pytest

from nonmembership_zk.registry import hashing
from nonmembership_zk.registry.config import DOMAIN_SEPARATORS, SNARK_SCALAR_FIELD
from nonmembership_zk.registry.exceptions import HashProviderError
from nonmembership_zk.registry.field import encode_fixed_width


@pytest.fixture(autouse=True)
def reset_provider(monkeypatch: pytest.MonkeyPatch) -> None:
    hashing.set_hash_provider_name(None)
    monkeypatch.delenv("NONMEMBERSHIP_HASH_PROVIDER", raising=False)
    yield
    hashing.set_hash_provider_name(None)


def test_sha256_hash2_matches_definition():
    hasher = hashing.Sha256FieldHasher()
    expected = int.from_bytes(
        hashlib.sha256(
            DOMAIN_SEPARATORS["merkle_node"] + encode_fixed_width(1) + encode_fixed_width(2)
        ).digest(),
        "big",
    ) % SNARK_SCALAR_FIELD
    assert hasher.hash2(1, 2) == expected


def test_sha256_hash2_is_ordered():
    hasher = hashing.Sha256FieldHasher()
    assert hasher.hash2(1, 2) != hasher.hash2(2, 1)


def test_sha256_outputs_stay_in_field():
    hasher = hashing.Sha256FieldHasher()
    for i in range(20):
        assert 0 <= hasher.hash2(i, SNARK_SCALAR_FIELD - 1 - i) < SNARK_SCALAR_FIELD
        assert 0 <= hasher.hash1(bytes([i]) * 50) < SNARK_SCALAR_FIELD


def test_sha256_leaf_and_node_domains_differ():
    hasher = hashing.Sha256FieldHasher()
    # hash1(b"\x05") packs to 5; a node over (5, 0) must still differ
    assert hasher.hash1(b"\x05") != hasher.hash2(5, 0)


def test_sha256_is_a_hash_provider():
    assert isinstance(hashing.Sha256FieldHasher(), hashing.HashProvider)


def test_default_provider_is_sha256():
    assert hashing.get_hash_provider_name() == "sha256"


def test_env_var_selects_provider(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("NONMEMBERSHIP_HASH_PROVIDER", "poseidon")
    assert hashing.get_hash_provider_name() == "poseidon"
    assert hashing.get_hash_provider_name(prefer="sha256") == "sha256"


def test_override_beats_env(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("NONMEMBERSHIP_HASH_PROVIDER", "poseidon")
    hashing.set_hash_provider_name("sha256")
    assert hashing.get_hash_provider_name() == "sha256"
    hashing.set_hash_provider_name("")
    assert hashing.get_hash_provider_name() == "poseidon"


def test_default_applies_only_when_nothing_chosen(monkeypatch: pytest.MonkeyPatch):
    assert hashing.get_hash_provider_name(default="poseidon") == "poseidon"
    monkeypatch.setenv("NONMEMBERSHIP_HASH_PROVIDER", "sha256")
    assert hashing.get_hash_provider_name(default="poseidon") == "sha256"


def test_invalid_provider_raises():
    with pytest.raises(ValueError, match="Invalid hash provider"):
        hashing.get_hash_provider_name(prefer="md5")


def test_open_hash_provider_sha256():
    with hashing.open_hash_provider("sha256") as hasher:
        assert hasher.name == "sha256"


def test_poseidon_requires_start():
    hasher = hashing.PoseidonNodeHasher()
    with pytest.raises(HashProviderError, match="not running"):
        hasher.hash2(1, 2)


def test_poseidon_missing_node_binary():
    hasher = hashing.PoseidonNodeHasher(node_binary="definitely-not-node-binary")
    with pytest.raises(HashProviderError, match="cannot start"):
        hasher.start()


posix_only = pytest.mark.skipif(sys.platform == "win32", reason="needs a POSIX shell")


def _fake_node(tmp_path, body: str) -> str:
    script = tmp_path / "fake-node"
    script.write_text("#!/bin/sh\n" + body + "\n", encoding="utf-8")
    script.chmod(0o755)
    return str(script)


@posix_only
def test_poseidon_startup_times_out(tmp_path):
    hasher = hashing.PoseidonNodeHasher(
        node_binary=_fake_node(tmp_path, "sleep 30"), timeout=0.2
    )
    with pytest.raises(HashProviderError, match="did not answer"):
        hasher.start()


@posix_only
def test_poseidon_hash_times_out(tmp_path):
    hasher = hashing.PoseidonNodeHasher(
        node_binary=_fake_node(tmp_path, "echo ready\nsleep 30"), timeout=0.2
    )
    hasher.start()
    with pytest.raises(HashProviderError, match="did not answer"):
        hasher.hash2(1, 2)
    with pytest.raises(HashProviderError, match="not running"):
        hasher.hash2(1, 2)
    hasher.close()


def _poseidon_available() -> bool:
    if shutil.which("node") is None:
        return False
    result = subprocess.run(
        ["node", "-e", "require('circomlibjs')"],
        capture_output=True,
        text=True,
        check=False,
    )
    return result.returncode == 0


def test_poseidon_known_vector():
    if not _poseidon_available():
        pytest.skip("node with circomlibjs not available")
    with hashing.open_hash_provider("poseidon") as hasher:
        # circomlibjs poseidon([1, 2])
        assert hasher.hash2(1, 2) == int(
            "7853200120776062878684798364095072458815029376092732009249414926327459813530"
        )
        assert hasher.hash1(b"\x01") == hasher.hash1(b"\x00\x01")
