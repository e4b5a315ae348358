from pathlib import Path

import pytest

from nonmembership_zk.pipeline import settings
from nonmembership_zk.pipeline.fixture import FixtureToolchain
from nonmembership_zk.pipeline.settings import PipelineSettings
from nonmembership_zk.pipeline.toolchain import SnarkjsToolchain
from nonmembership_zk.registry import hashing

ENV_VARS = (
    "NONMEMBERSHIP_TOOLCHAIN",
    "NONMEMBERSHIP_HASH_PROVIDER",
    "NONMEMBERSHIP_BUILD_DIR",
    "NONMEMBERSHIP_CONFIG_DIR",
)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    settings.set_toolchain_name(None)
    hashing.set_hash_provider_name(None)
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    yield
    settings.set_toolchain_name(None)
    hashing.set_hash_provider_name(None)


def test_default_toolchain_is_snarkjs():
    assert settings.get_toolchain_name() == "snarkjs"


def test_toolchain_precedence(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("NONMEMBERSHIP_TOOLCHAIN", "fixture")
    assert settings.get_toolchain_name() == "fixture"
    settings.set_toolchain_name("snarkjs")
    assert settings.get_toolchain_name() == "snarkjs"
    assert settings.get_toolchain_name(prefer="fixture") == "fixture"


def test_invalid_toolchain():
    with pytest.raises(ValueError, match="Invalid toolchain"):
        settings.get_toolchain_name(prefer="gnark")


def test_invalid_toolchain_env(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("NONMEMBERSHIP_TOOLCHAIN", "gnark")
    with pytest.raises(ValueError, match="Invalid toolchain"):
        PipelineSettings.resolve()


def test_resolve_defaults():
    resolved = PipelineSettings.resolve()
    assert resolved.build_dir == Path("build")
    assert resolved.config_dir == Path("config")
    assert resolved.hash_provider == "poseidon"
    assert resolved.toolchain == "snarkjs"
    assert resolved.levels == 8
    assert resolved.ptau_power == 14


def test_resolve_reads_environment(monkeypatch: pytest.MonkeyPatch, tmp_path):
    monkeypatch.setenv("NONMEMBERSHIP_BUILD_DIR", str(tmp_path / "out"))
    monkeypatch.setenv("NONMEMBERSHIP_HASH_PROVIDER", "poseidon")
    resolved = PipelineSettings.resolve()
    assert resolved.build_dir == tmp_path / "out"
    assert resolved.hash_provider == "poseidon"


def test_explicit_arguments_win(monkeypatch: pytest.MonkeyPatch, tmp_path):
    monkeypatch.setenv("NONMEMBERSHIP_BUILD_DIR", str(tmp_path / "env"))
    resolved = PipelineSettings.resolve(
        build_dir=tmp_path / "cli",
        toolchain="fixture",
        circuit_path="circuits/other.circom",
        source_account=None,
    )
    assert resolved.build_dir == tmp_path / "cli"
    assert resolved.toolchain == "fixture"
    assert resolved.circuit_path == Path("circuits/other.circom")
    assert resolved.source_account == "deployer"


def test_make_toolchain(tmp_path):
    fixture = PipelineSettings(build_dir=tmp_path, toolchain="fixture").make_toolchain()
    assert isinstance(fixture, FixtureToolchain)
    assert fixture.build_dir == tmp_path

    real = PipelineSettings(build_dir=tmp_path, ptau_power=12).make_toolchain()
    assert isinstance(real, SnarkjsToolchain)
    assert real.ptau_power == 12
    assert real.circuit_name == "non_membership"


def test_make_store_uses_profile(tmp_path):
    store = PipelineSettings(config_dir=tmp_path, deployment_profile="testnet").make_store()
    assert store.deployment_path == tmp_path / "deployment-testnet.json"


def test_default_hash_follows_toolchain(monkeypatch: pytest.MonkeyPatch):
    assert PipelineSettings.resolve(toolchain="snarkjs").hash_provider == "poseidon"
    assert PipelineSettings.resolve(toolchain="fixture").hash_provider == "sha256"

    monkeypatch.setenv("NONMEMBERSHIP_TOOLCHAIN", "fixture")
    assert PipelineSettings.resolve().hash_provider == "sha256"


def test_chosen_hash_beats_toolchain_default(monkeypatch: pytest.MonkeyPatch):
    assert PipelineSettings.resolve(hash_provider="sha256").hash_provider == "sha256"

    monkeypatch.setenv("NONMEMBERSHIP_HASH_PROVIDER", "sha256")
    assert PipelineSettings.resolve(toolchain="snarkjs").hash_provider == "sha256"

    hashing.set_hash_provider_name("poseidon")
    assert PipelineSettings.resolve(toolchain="fixture").hash_provider == "poseidon"
