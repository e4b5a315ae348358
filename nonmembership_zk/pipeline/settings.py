"""
Pipeline settings and toolchain selection.

Values resolve in precedence order: explicit argument, in-memory override,
environment variable, default.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from ..registry.config import (
    CIRCUIT_HASH_PROVIDER,
    DEFAULT_HASH_PROVIDER,
    DEFAULT_TREE_LEVELS,
)
from ..registry.hashing import get_hash_provider_name
from .fixture import FixtureToolchain
from .store import FileArtifactStore
from .toolchain import (
    DEFAULT_PTAU_POWER,
    DEFAULT_TOOL_TIMEOUT,
    SnarkjsToolchain,
    Toolchain,
)

_VALID_TOOLCHAINS: Final[tuple[str, ...]] = ("snarkjs", "fixture")
_DEFAULT_TOOLCHAIN: Final[str] = "snarkjs"
_TOOLCHAIN_ENV_VAR: Final[str] = "NONMEMBERSHIP_TOOLCHAIN"
_BUILD_DIR_ENV_VAR: Final[str] = "NONMEMBERSHIP_BUILD_DIR"
_CONFIG_DIR_ENV_VAR: Final[str] = "NONMEMBERSHIP_CONFIG_DIR"

_toolchain_override: str | None = None


def _normalize_toolchain(value: str | None) -> str | None:
    if value is None or value == "":
        return None
    if not isinstance(value, str) or value not in _VALID_TOOLCHAINS:
        raise ValueError(
            f"Invalid toolchain: {value!r}. Valid options: {', '.join(_VALID_TOOLCHAINS)}"
        )
    return value


def get_toolchain_name(prefer: str | None = None) -> str:
    """
    Resolve the toolchain name.

    Raises:
        ValueError: If a provided toolchain name is invalid.
    """
    preferred = _normalize_toolchain(prefer)
    if preferred is not None:
        return preferred
    if _toolchain_override is not None:
        return _toolchain_override
    env_value = _normalize_toolchain(os.getenv(_TOOLCHAIN_ENV_VAR))
    if env_value is not None:
        return env_value
    return _DEFAULT_TOOLCHAIN


def set_toolchain_name(value: str | None) -> None:
    """Set in-memory toolchain override (testing only)."""
    global _toolchain_override
    _toolchain_override = _normalize_toolchain(value)


@dataclass(frozen=True)
class PipelineSettings:
    build_dir: Path = Path("build")
    config_dir: Path = Path("config")
    circuit_path: Path = Path("circuits/non_membership.circom")
    levels: int = DEFAULT_TREE_LEVELS
    hash_provider: str = CIRCUIT_HASH_PROVIDER
    toolchain: str = _DEFAULT_TOOLCHAIN
    deployment_profile: str = "local"
    source_account: str = "deployer"
    ptau_power: int = DEFAULT_PTAU_POWER
    timeout: float = DEFAULT_TOOL_TIMEOUT

    @classmethod
    def resolve(
        cls,
        *,
        build_dir: str | Path | None = None,
        config_dir: str | Path | None = None,
        hash_provider: str | None = None,
        toolchain: str | None = None,
        **kwargs,
    ) -> "PipelineSettings":
        """
        Fill unset values from overrides and the environment.

        With no hash chosen anywhere, the snarkjs toolchain gets the circuit
        hash (poseidon) and the fixture toolchain gets sha256.
        """
        resolved_toolchain = get_toolchain_name(toolchain)
        hash_default = (
            CIRCUIT_HASH_PROVIDER if resolved_toolchain == "snarkjs" else DEFAULT_HASH_PROVIDER
        )
        if build_dir is None:
            build_dir = os.getenv(_BUILD_DIR_ENV_VAR) or "build"
        if config_dir is None:
            config_dir = os.getenv(_CONFIG_DIR_ENV_VAR) or "config"
        if kwargs.get("circuit_path") is not None:
            kwargs["circuit_path"] = Path(kwargs["circuit_path"])
        return cls(
            build_dir=Path(build_dir),
            config_dir=Path(config_dir),
            hash_provider=get_hash_provider_name(hash_provider, default=hash_default),
            toolchain=resolved_toolchain,
            **{key: value for key, value in kwargs.items() if value is not None},
        )

    def make_store(self) -> FileArtifactStore:
        return FileArtifactStore(
            self.build_dir, self.config_dir, deployment_profile=self.deployment_profile
        )

    def make_toolchain(self) -> Toolchain:
        if self.toolchain == "fixture":
            return FixtureToolchain(self.build_dir)
        return SnarkjsToolchain(
            self.build_dir,
            self.circuit_path,
            ptau_power=self.ptau_power,
            source_account=self.source_account,
            timeout=self.timeout,
        )
