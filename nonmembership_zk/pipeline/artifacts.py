"""Typed artifacts handed from one lifecycle stage to the next."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from ..registry.exceptions import EncodingRangeError
from ..registry.field import parse_decimal
from .errors import ArtifactFormatError

PUBLIC_SIGNAL_COUNT = 3


def utc_timestamp(now: Optional[datetime] = None) -> str:
    """ISO-8601 UTC timestamp with millisecond precision and a Z suffix."""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace(
        "+00:00", "Z"
    )


def _require(data: Any, key: str, kind: type, artifact: str) -> Any:
    if not isinstance(data, dict):
        raise ArtifactFormatError(f"{artifact} must be a JSON object")
    if key not in data:
        raise ArtifactFormatError(f"{artifact} is missing '{key}'")
    value = data[key]
    if not isinstance(value, kind) or (kind is int and isinstance(value, bool)):
        raise ArtifactFormatError(f"{artifact} field '{key}' must be {kind.__name__}")
    return value


def _decimal_tuple(values: Any, label: str, minimum: int) -> Tuple[str, ...]:
    if not isinstance(values, (list, tuple)) or len(values) < minimum:
        raise ArtifactFormatError(f"{label} must hold at least {minimum} elements")
    result = []
    for idx, value in enumerate(values):
        if isinstance(value, int) and not isinstance(value, bool):
            value = str(value)
        try:
            parse_decimal(value, f"{label}[{idx}]")
        except EncodingRangeError as exc:
            raise ArtifactFormatError(str(exc)) from exc
        result.append(value)
    return tuple(result)


@dataclass(frozen=True)
class CompiledCircuit:
    """Constraint system and witness calculator produced by the compiler."""

    r1cs_path: str
    wasm_path: str
    constraints: Optional[int] = None

    def files(self) -> Tuple[Path, ...]:
        return (Path(self.r1cs_path), Path(self.wasm_path))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "r1cs": self.r1cs_path,
            "wasm": self.wasm_path,
            "constraints": self.constraints,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CompiledCircuit":
        constraints = data.get("constraints") if isinstance(data, dict) else None
        if constraints is not None and (
            isinstance(constraints, bool) or not isinstance(constraints, int)
        ):
            raise ArtifactFormatError("compiled circuit 'constraints' must be int")
        return cls(
            r1cs_path=_require(data, "r1cs", str, "compiled circuit"),
            wasm_path=_require(data, "wasm", str, "compiled circuit"),
            constraints=constraints,
        )


@dataclass(frozen=True)
class SetupKeys:
    """Proving and verification keys from the one-time trusted setup."""

    proving_key_path: str
    verification_key_path: str

    def files(self) -> Tuple[Path, ...]:
        return (Path(self.proving_key_path), Path(self.verification_key_path))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "provingKey": self.proving_key_path,
            "verificationKey": self.verification_key_path,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SetupKeys":
        return cls(
            proving_key_path=_require(data, "provingKey", str, "setup keys"),
            verification_key_path=_require(data, "verificationKey", str, "setup keys"),
        )


@dataclass(frozen=True)
class ProofArtifact:
    """
    Groth16 proof plus its public signals ``[root, candidateHash, isNonMember]``.

    Coordinates are kept exactly as the prover emitted them (snarkjs adds a
    projective third coordinate); only the first two of each are used.
    """

    pi_a: Tuple[str, ...]
    pi_b: Tuple[Tuple[str, ...], ...]
    pi_c: Tuple[str, ...]
    public_signals: Tuple[str, ...]
    protocol: str = "groth16"
    curve: str = "bn128"

    @property
    def root(self) -> str:
        return self.public_signals[0]

    @property
    def candidate_hash(self) -> str:
        return self.public_signals[1]

    @property
    def is_non_member(self) -> str:
        return self.public_signals[2]

    def proof_dict(self) -> Dict[str, Any]:
        return {
            "pi_a": list(self.pi_a),
            "pi_b": [list(row) for row in self.pi_b],
            "pi_c": list(self.pi_c),
            "protocol": self.protocol,
            "curve": self.curve,
        }

    def public_list(self) -> List[str]:
        return list(self.public_signals)

    @classmethod
    def from_json_objects(cls, proof: Any, public_signals: Any) -> "ProofArtifact":
        if not isinstance(proof, dict):
            raise ArtifactFormatError("proof must be a JSON object")
        pi_b = proof.get("pi_b")
        if not isinstance(pi_b, (list, tuple)) or len(pi_b) < 2:
            raise ArtifactFormatError("pi_b must hold at least 2 rows")
        rows = tuple(
            _decimal_tuple(row, f"pi_b[{idx}]", 2) for idx, row in enumerate(pi_b)
        )
        if not isinstance(public_signals, (list, tuple)) or (
            len(public_signals) != PUBLIC_SIGNAL_COUNT
        ):
            raise ArtifactFormatError(
                f"public signals must be exactly {PUBLIC_SIGNAL_COUNT} elements"
            )
        return cls(
            pi_a=_decimal_tuple(proof.get("pi_a"), "pi_a", 2),
            pi_b=rows,
            pi_c=_decimal_tuple(proof.get("pi_c"), "pi_c", 2),
            public_signals=_decimal_tuple(public_signals, "publicSignals", 3),
            protocol=str(proof.get("protocol", "groth16")),
            curve=str(proof.get("curve", "bn128")),
        )


@dataclass(frozen=True)
class LocalVerification:
    """Record that the proof verified against the local verification key."""

    verified_at: str
    public_signals: Tuple[str, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "verified": True,
            "verifiedAt": self.verified_at,
            "publicSignals": list(self.public_signals),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LocalVerification":
        if _require(data, "verified", bool, "local verification") is not True:
            raise ArtifactFormatError("local verification record is not a success")
        return cls(
            verified_at=_require(data, "verifiedAt", str, "local verification"),
            public_signals=tuple(_require(data, "publicSignals", list, "local verification")),
        )


@dataclass(frozen=True)
class DeploymentConfig:
    """Identifies the on-chain verifier; written once by the deploy step."""

    contract_id: str
    network: str
    rpc_url: str
    deployed_at: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "contractId": self.contract_id,
            "network": self.network,
            "rpcUrl": self.rpc_url,
            "deployedAt": self.deployed_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DeploymentConfig":
        deployed_at = _require(data, "deployedAt", str, "deployment config")
        try:
            datetime.fromisoformat(deployed_at.replace("Z", "+00:00"))
        except ValueError as exc:
            raise ArtifactFormatError(
                f"deployment config 'deployedAt' is not ISO-8601: {deployed_at!r}"
            ) from exc
        return cls(
            contract_id=_require(data, "contractId", str, "deployment config"),
            network=_require(data, "network", str, "deployment config"),
            rpc_url=_require(data, "rpcUrl", str, "deployment config"),
            deployed_at=deployed_at,
        )


@dataclass(frozen=True)
class SubmissionRecord:
    """Outcome of one on-chain verification attempt, success or not."""

    timestamp: str
    contract_id: str
    proof_hash: str
    verified: bool
    root: str
    agent_hash: str
    is_non_member: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "contractId": self.contract_id,
            "proofHash": self.proof_hash,
            "verified": self.verified,
            "publicSignals": {
                "root": self.root,
                "agentHash": self.agent_hash,
                "isNonMember": self.is_non_member,
            },
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SubmissionRecord":
        signals = _require(data, "publicSignals", dict, "submission record")
        return cls(
            timestamp=_require(data, "timestamp", str, "submission record"),
            contract_id=_require(data, "contractId", str, "submission record"),
            proof_hash=_require(data, "proofHash", str, "submission record"),
            verified=_require(data, "verified", bool, "submission record"),
            root=_require(signals, "root", str, "submission record publicSignals"),
            agent_hash=_require(signals, "agentHash", str, "submission record publicSignals"),
            is_non_member=_require(
                signals, "isNonMember", str, "submission record publicSignals"
            ),
        )


@dataclass(frozen=True)
class RegistrationReceipt:
    """Result of appending the candidate to the on-chain registry."""

    timestamp: str
    contract_id: str
    agent_hash: str
    merkle_root: str
    new_root: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "contractId": self.contract_id,
            "agentHash": self.agent_hash,
            "merkleRoot": self.merkle_root,
            "newRoot": self.new_root,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RegistrationReceipt":
        return cls(
            timestamp=_require(data, "timestamp", str, "registration receipt"),
            contract_id=_require(data, "contractId", str, "registration receipt"),
            agent_hash=_require(data, "agentHash", str, "registration receipt"),
            merkle_root=_require(data, "merkleRoot", str, "registration receipt"),
            new_root=_require(data, "newRoot", str, "registration receipt"),
        )
