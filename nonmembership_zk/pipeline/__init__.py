"""Proof lifecycle: stages, artifact stores, toolchains and submission."""

from .artifacts import (
    CompiledCircuit,
    DeploymentConfig,
    LocalVerification,
    ProofArtifact,
    RegistrationReceipt,
    SetupKeys,
    SubmissionRecord,
)
from .errors import (
    ArtifactFormatError,
    ExternalToolError,
    MissingPrerequisiteArtifactError,
    PipelineError,
    VerificationFailedError,
)
from .fixture import FixtureToolchain
from .runner import ProofPipeline
from .settings import PipelineSettings, get_toolchain_name, set_toolchain_name
from .stages import STAGE_ORDER, Stage
from .store import ArtifactStore, FileArtifactStore, InMemoryArtifactStore
from .submission import SubmissionParams, encode_public_signals, encode_submission
from .toolchain import SnarkjsToolchain, Toolchain

__all__ = [
    "CompiledCircuit",
    "DeploymentConfig",
    "LocalVerification",
    "ProofArtifact",
    "RegistrationReceipt",
    "SetupKeys",
    "SubmissionRecord",
    "ArtifactFormatError",
    "ExternalToolError",
    "MissingPrerequisiteArtifactError",
    "PipelineError",
    "VerificationFailedError",
    "FixtureToolchain",
    "ProofPipeline",
    "PipelineSettings",
    "get_toolchain_name",
    "set_toolchain_name",
    "STAGE_ORDER",
    "Stage",
    "ArtifactStore",
    "FileArtifactStore",
    "InMemoryArtifactStore",
    "SubmissionParams",
    "encode_public_signals",
    "encode_submission",
    "SnarkjsToolchain",
    "Toolchain",
]
