"""
Fixture toolchain: canned results for every external stage.

For tests and dry runs only. Proof coordinates are SHA-256 digests of the
public signals, so ``verify`` catches tampered signals but nothing here is
zero-knowledge or sound.
"""

from __future__ import annotations

import hashlib
from pathlib import Path
from typing import List, Optional, Tuple

from ..registry.config import SNARK_SCALAR_FIELD, ZERO_ELEMENT
from ..registry.witness import Witness
from .artifacts import CompiledCircuit, DeploymentConfig, ProofArtifact, SetupKeys
from .submission import SubmissionParams

FIXTURE_CIRCUIT_NAME = "fixture_non_membership"


def _coordinate(label: str, public_signals: Tuple[str, ...]) -> str:
    digest = hashlib.sha256(
        ("FIXTURE_PROOF_V1|" + label + "|" + ",".join(public_signals)).encode("ascii")
    ).digest()
    return str(int.from_bytes(digest, "big") % SNARK_SCALAR_FIELD)


def fixture_proof(public_signals: Tuple[str, ...]) -> ProofArtifact:
    def c(label: str) -> str:
        return _coordinate(label, public_signals)

    return ProofArtifact(
        pi_a=(c("a.x"), c("a.y"), "1"),
        pi_b=((c("b.x0"), c("b.x1")), (c("b.y0"), c("b.y1")), ("1", "0")),
        pi_c=(c("c.x"), c("c.y"), "1"),
        public_signals=public_signals,
    )


class FixtureToolchain:
    """
    Deterministic stand-in for circom/snarkjs/stellar.

    Args:
        build_dir: Where placeholder circuit/key files are written. None keeps
            everything virtual (in-memory stores only).
        verify_result: Forced local verification outcome, or None to check
            that the proof matches its public signals.
        onchain_result: Value the simulated ``verify_non_membership`` returns.
    """

    def __init__(
        self,
        build_dir: Optional[str | Path] = None,
        *,
        verify_result: Optional[bool] = None,
        onchain_result: bool = True,
    ) -> None:
        self.build_dir = Path(build_dir) if build_dir is not None else None
        self.verify_result = verify_result
        self.onchain_result = onchain_result
        self.calls: List[str] = []
        self.submitted: List[SubmissionParams] = []

    def _placeholder(self, name: str, content: str) -> str:
        if self.build_dir is None:
            return f"fixture://{name}"
        path = self.build_dir / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return str(path)

    def compile(self) -> CompiledCircuit:
        self.calls.append("compile")
        return CompiledCircuit(
            r1cs_path=self._placeholder(f"{FIXTURE_CIRCUIT_NAME}.r1cs", "fixture r1cs\n"),
            wasm_path=self._placeholder(
                f"{FIXTURE_CIRCUIT_NAME}_js/{FIXTURE_CIRCUIT_NAME}.wasm", "fixture wasm\n"
            ),
            constraints=0,
        )

    def setup(self, circuit: CompiledCircuit) -> SetupKeys:
        self.calls.append("setup")
        return SetupKeys(
            proving_key_path=self._placeholder(
                f"{FIXTURE_CIRCUIT_NAME}_final.zkey", "fixture zkey\n"
            ),
            verification_key_path=self._placeholder(
                "verification_key.json", '{"protocol": "fixture"}\n'
            ),
        )

    def prove(
        self, witness: Witness, circuit: CompiledCircuit, keys: SetupKeys
    ) -> ProofArtifact:
        self.calls.append("prove")
        is_non_member = (
            witness.leaf == ZERO_ELEMENT and witness.candidate_hash != witness.leaf
        )
        public_signals = (
            str(witness.root),
            str(witness.candidate_hash),
            "1" if is_non_member else "0",
        )
        return fixture_proof(public_signals)

    def verify(self, artifact: ProofArtifact, keys: SetupKeys) -> bool:
        self.calls.append("verify")
        if self.verify_result is not None:
            return self.verify_result
        return artifact == fixture_proof(tuple(artifact.public_signals))

    def submit(self, deployment: DeploymentConfig, params: SubmissionParams) -> bool:
        self.calls.append("submit")
        self.submitted.append(params)
        return self.onchain_result and params.public_is_non_member == "1"

    def register(
        self, deployment: DeploymentConfig, agent_hash: str, merkle_root: str
    ) -> str:
        # The deployed contract echoes the root it was given
        self.calls.append("register")
        return merkle_root
