"""
Artifact stores keyed by lifecycle stage.

A stage counts as done exactly when its artifact is present in the store.
The file store keeps the on-disk layout other tools expect (``proof.json``,
``public.json``, ``submission_record.json`` ...); the in-memory store backs
tests.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple

from ..registry.witness import Witness
from .artifacts import (
    CompiledCircuit,
    DeploymentConfig,
    LocalVerification,
    ProofArtifact,
    RegistrationReceipt,
    SetupKeys,
    SubmissionRecord,
)
from .errors import ArtifactFormatError, PipelineError
from .stages import Stage

logger = logging.getLogger(__name__)

STAGE_ARTIFACT_TYPES: Dict[Stage, type] = {
    Stage.COMPILED: CompiledCircuit,
    Stage.SETUP_DONE: SetupKeys,
    Stage.WITNESS_READY: Witness,
    Stage.PROOF_GENERATED: ProofArtifact,
    Stage.LOCALLY_VERIFIED: LocalVerification,
    Stage.SUBMITTED: SubmissionRecord,
    Stage.REGISTERED: RegistrationReceipt,
}

DEPLOYMENT_PROFILES: Dict[str, str] = {
    "local": "deployment.json",
    "testnet": "deployment-testnet.json",
}


class ArtifactStore(Protocol):
    def has(self, stage: Stage) -> bool:
        ...

    def load(self, stage: Stage) -> Any:
        ...

    def save(self, stage: Stage, artifact: Any) -> None:
        ...

    def discard(self, stage: Stage) -> None:
        ...

    def load_deployment(self) -> Optional[DeploymentConfig]:
        ...

    def save_deployment(self, config: DeploymentConfig) -> None:
        ...


def _check_type(stage: Stage, artifact: Any) -> None:
    expected = STAGE_ARTIFACT_TYPES[stage]
    if not isinstance(artifact, expected):
        raise TypeError(
            f"{stage.value} artifact must be {expected.__name__}, "
            f"got {type(artifact).__name__}"
        )


class InMemoryArtifactStore:
    """Dict-backed store; referenced files are not checked."""

    def __init__(self, deployment: Optional[DeploymentConfig] = None) -> None:
        self._artifacts: Dict[Stage, Any] = {}
        self._deployment = deployment

    def has(self, stage: Stage) -> bool:
        return stage in self._artifacts

    def load(self, stage: Stage) -> Any:
        if stage not in self._artifacts:
            raise KeyError(stage)
        return self._artifacts[stage]

    def save(self, stage: Stage, artifact: Any) -> None:
        _check_type(stage, artifact)
        self._artifacts[stage] = artifact

    def discard(self, stage: Stage) -> None:
        self._artifacts.pop(stage, None)

    def load_deployment(self) -> Optional[DeploymentConfig]:
        return self._deployment

    def save_deployment(self, config: DeploymentConfig) -> None:
        if self._deployment is not None:
            raise PipelineError("deployment config already written; it is immutable")
        self._deployment = config


# Per stage: file names, artifact -> JSON objects, JSON objects -> artifact
_Codec = Tuple[
    Tuple[str, ...],
    Callable[[Any], List[Any]],
    Callable[..., Any],
]

_CODECS: Dict[Stage, _Codec] = {
    Stage.COMPILED: (
        ("compiled.json",),
        lambda a: [a.to_dict()],
        CompiledCircuit.from_dict,
    ),
    Stage.SETUP_DONE: (
        ("setup.json",),
        lambda a: [a.to_dict()],
        SetupKeys.from_dict,
    ),
    Stage.WITNESS_READY: (
        ("input.json",),
        lambda a: [a.to_dict()],
        Witness.from_dict,
    ),
    Stage.PROOF_GENERATED: (
        ("proof.json", "public.json"),
        lambda a: [a.proof_dict(), a.public_list()],
        ProofArtifact.from_json_objects,
    ),
    Stage.LOCALLY_VERIFIED: (
        ("verification.json",),
        lambda a: [a.to_dict()],
        LocalVerification.from_dict,
    ),
    Stage.SUBMITTED: (
        ("submission_record.json",),
        lambda a: [a.to_dict()],
        SubmissionRecord.from_dict,
    ),
    Stage.REGISTERED: (
        ("registration.json",),
        lambda a: [a.to_dict()],
        RegistrationReceipt.from_dict,
    ),
}


def stage_files(stage: Stage) -> Tuple[str, ...]:
    return _CODECS[stage][0]


def write_json_atomic(path: Path, payload: Any) -> None:
    """Write JSON so readers never observe a half-written file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            json.dump(payload, fh, indent=2)
            fh.write("\n")
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def read_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ArtifactFormatError(f"{path} is not valid JSON: {exc}") from exc
    except UnicodeDecodeError as exc:
        raise ArtifactFormatError(f"{path} is not UTF-8: {exc}") from exc


class FileArtifactStore:
    """
    Artifacts as JSON files under ``build_dir``; deployment config under
    ``config_dir``.

    Compiled-circuit and setup artifacts only count as present while the
    files they reference still exist.
    """

    def __init__(
        self,
        build_dir: str | Path,
        config_dir: str | Path,
        deployment_profile: str = "local",
    ) -> None:
        if deployment_profile not in DEPLOYMENT_PROFILES:
            raise ValueError(
                f"Invalid deployment profile: {deployment_profile!r}. "
                f"Valid options: {', '.join(DEPLOYMENT_PROFILES)}"
            )
        self.build_dir = Path(build_dir)
        self.config_dir = Path(config_dir)
        self.deployment_path = self.config_dir / DEPLOYMENT_PROFILES[deployment_profile]

    def paths(self, stage: Stage) -> Tuple[Path, ...]:
        return tuple(self.build_dir / name for name in stage_files(stage))

    def has(self, stage: Stage) -> bool:
        if not all(path.exists() for path in self.paths(stage)):
            return False
        if stage in (Stage.COMPILED, Stage.SETUP_DONE):
            try:
                artifact = self.load(stage)
            except ArtifactFormatError:
                return True
            return all(path.exists() for path in artifact.files())
        return True

    def load(self, stage: Stage) -> Any:
        paths = self.paths(stage)
        if not all(path.exists() for path in paths):
            raise KeyError(stage)
        decode = _CODECS[stage][2]
        objects = [read_json(path) for path in paths]
        try:
            return decode(*objects)
        except ArtifactFormatError as exc:
            raise ArtifactFormatError(f"{paths[0]}: {exc}") from exc
        except (KeyError, TypeError, ValueError) as exc:
            raise ArtifactFormatError(f"{paths[0]} is malformed: {exc}") from exc

    def save(self, stage: Stage, artifact: Any) -> None:
        _check_type(stage, artifact)
        encode = _CODECS[stage][1]
        for path, payload in zip(self.paths(stage), encode(artifact)):
            write_json_atomic(path, payload)
        logger.debug("Saved %s artifact to %s", stage.value, self.build_dir)

    def discard(self, stage: Stage) -> None:
        for path in self.paths(stage):
            if path.exists():
                path.unlink()
                logger.debug("Discarded stale %s", path)

    def load_deployment(self) -> Optional[DeploymentConfig]:
        if not self.deployment_path.exists():
            return None
        try:
            return DeploymentConfig.from_dict(read_json(self.deployment_path))
        except ArtifactFormatError as exc:
            raise ArtifactFormatError(f"{self.deployment_path}: {exc}") from exc

    def save_deployment(self, config: DeploymentConfig) -> None:
        if self.deployment_path.exists():
            raise PipelineError(
                f"{self.deployment_path} already exists; deployment config is immutable"
            )
        write_json_atomic(self.deployment_path, config.to_dict())
