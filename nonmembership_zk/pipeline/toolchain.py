"""
External toolchain strategies.

The pipeline never compiles, proves or talks to the chain itself; it calls a
:class:`Toolchain`. :class:`SnarkjsToolchain` shells out to circom, snarkjs
and the stellar CLI. Every call blocks until the tool exits.
"""

from __future__ import annotations

import json
import logging
import re
import secrets
import subprocess
import tempfile
from pathlib import Path
from typing import List, Optional, Protocol, Sequence

from ..registry.witness import Witness
from .artifacts import (
    CompiledCircuit,
    DeploymentConfig,
    ProofArtifact,
    SetupKeys,
)
from .errors import ExternalToolError
from .store import read_json
from .submission import REGISTER_FUNCTION, VERIFY_FUNCTION, SubmissionParams

logger = logging.getLogger(__name__)

DEFAULT_TOOL_TIMEOUT = 1800
DEFAULT_PTAU_POWER = 14
BEACON_HASH = "0102030405060708090a0b0c0d0e0f101112131415161718191a1b1c1d1e1f"
BEACON_ITERATIONS = "10"

_CONSTRAINTS_RE = re.compile(r"# of Constraints:\s*(\d+)")


class Toolchain(Protocol):
    def compile(self) -> CompiledCircuit:
        ...

    def setup(self, circuit: CompiledCircuit) -> SetupKeys:
        ...

    def prove(
        self, witness: Witness, circuit: CompiledCircuit, keys: SetupKeys
    ) -> ProofArtifact:
        ...

    def verify(self, artifact: ProofArtifact, keys: SetupKeys) -> bool:
        ...

    def submit(self, deployment: DeploymentConfig, params: SubmissionParams) -> bool:
        ...

    def register(
        self, deployment: DeploymentConfig, agent_hash: str, merkle_root: str
    ) -> str:
        ...


def run_tool(
    command: Sequence[str],
    *,
    timeout: float = DEFAULT_TOOL_TIMEOUT,
    cwd: Optional[Path] = None,
) -> subprocess.CompletedProcess:
    """
    Run one external command, capturing its output.

    Raises:
        ExternalToolError: If the tool is missing, times out or exits non-zero
    """
    command = [str(part) for part in command]
    logger.debug("Running %s", " ".join(command))
    try:
        result = subprocess.run(
            command,
            capture_output=True,
            text=True,
            check=False,
            timeout=timeout,
            cwd=str(cwd) if cwd is not None else None,
        )
    except FileNotFoundError as exc:
        raise ExternalToolError(command, None, reason=f"not found on PATH ({exc})") from exc
    except subprocess.TimeoutExpired as exc:
        raise ExternalToolError(
            command,
            None,
            stdout=_text(exc.stdout),
            stderr=_text(exc.stderr),
            reason=f"timed out after {timeout}s",
        ) from exc
    if result.returncode != 0:
        raise ExternalToolError(command, result.returncode, result.stdout, result.stderr)
    return result


def _text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value


class SnarkjsToolchain:
    """
    circom + snarkjs (Groth16 over bn128) + stellar CLI.

    Example:
        toolchain = SnarkjsToolchain(Path("build"), Path("circuits/non_membership.circom"))
        circuit = toolchain.compile()
    """

    def __init__(
        self,
        build_dir: str | Path,
        circuit_path: str | Path,
        *,
        ptau_power: int = DEFAULT_PTAU_POWER,
        source_account: str = "deployer",
        timeout: float = DEFAULT_TOOL_TIMEOUT,
        circom: str = "circom",
        snarkjs: str = "snarkjs",
        stellar: str = "stellar",
    ) -> None:
        self.build_dir = Path(build_dir)
        self.circuit_path = Path(circuit_path)
        self.circuit_name = self.circuit_path.stem
        self.ptau_power = ptau_power
        self.source_account = source_account
        self.timeout = timeout
        self._circom = circom
        self._snarkjs = snarkjs
        self._stellar = stellar

    def _run(self, *command) -> subprocess.CompletedProcess:
        return run_tool(command, timeout=self.timeout)

    def compile(self) -> CompiledCircuit:
        if not self.circuit_path.exists():
            raise ExternalToolError(
                [self._circom, str(self.circuit_path)],
                None,
                reason=f"circuit source not found: {self.circuit_path}",
            )
        self.build_dir.mkdir(parents=True, exist_ok=True)
        self._run(
            self._circom, self.circuit_path, "--r1cs", "--wasm", "--sym", "-o", self.build_dir
        )
        r1cs = self.build_dir / f"{self.circuit_name}.r1cs"
        wasm = self.build_dir / f"{self.circuit_name}_js" / f"{self.circuit_name}.wasm"

        info = self._run(self._snarkjs, "r1cs", "info", r1cs)
        match = _CONSTRAINTS_RE.search(info.stdout)
        constraints = int(match.group(1)) if match else None
        logger.info("Compiled %s (%s constraints)", self.circuit_name, constraints)
        return CompiledCircuit(r1cs_path=str(r1cs), wasm_path=str(wasm), constraints=constraints)

    def setup(self, circuit: CompiledCircuit) -> SetupKeys:
        """Powers of tau plus Groth16 phase 2, with fresh entropy per run."""
        build = self.build_dir
        build.mkdir(parents=True, exist_ok=True)
        entropy = secrets.token_hex(32)
        r1cs = circuit.r1cs_path

        pot0 = build / "pot_0000.ptau"
        pot1 = build / "pot_0001.ptau"
        pot_beacon = build / "pot_beacon.ptau"
        pot_final = build / "pot_final.ptau"
        zkey0 = build / "circuit_0000.zkey"
        zkey_final = build / f"{self.circuit_name}_final.zkey"
        vkey = build / "verification_key.json"

        steps = [
            ("powersoftau new", ["powersoftau", "new", "bn128", str(self.ptau_power), pot0]),
            ("powersoftau contribute", ["powersoftau", "contribute", pot0, pot1, f"-e={entropy}"]),
            ("powersoftau beacon", ["powersoftau", "beacon", pot1, pot_beacon, BEACON_HASH, BEACON_ITERATIONS]),
            ("prepare phase2", ["powersoftau", "prepare", "phase2", pot_beacon, pot_final]),
            ("powersoftau verify", ["powersoftau", "verify", pot_final]),
            ("groth16 setup", ["groth16", "setup", r1cs, pot_final, zkey0]),
            ("zkey contribute", ["zkey", "contribute", zkey0, zkey_final, f"-e={entropy}"]),
            ("export verification key", ["zkey", "export", "verificationkey", zkey_final, vkey]),
            ("zkey verify", ["zkey", "verify", r1cs, pot_final, zkey_final]),
        ]
        for number, (label, args) in enumerate(steps, start=1):
            logger.info("[%d/%d] %s", number, len(steps), label)
            self._run(self._snarkjs, *args)

        return SetupKeys(proving_key_path=str(zkey_final), verification_key_path=str(vkey))

    def prove(
        self, witness: Witness, circuit: CompiledCircuit, keys: SetupKeys
    ) -> ProofArtifact:
        with tempfile.TemporaryDirectory() as tmp_dir:
            tmp = Path(tmp_dir)
            input_path = tmp / "input.json"
            proof_path = tmp / "proof.json"
            public_path = tmp / "public.json"
            input_path.write_text(json.dumps(witness.to_circuit_input()), encoding="utf-8")
            self._run(
                self._snarkjs,
                "groth16",
                "fullprove",
                input_path,
                circuit.wasm_path,
                keys.proving_key_path,
                proof_path,
                public_path,
            )
            return ProofArtifact.from_json_objects(read_json(proof_path), read_json(public_path))

    def verify(self, artifact: ProofArtifact, keys: SetupKeys) -> bool:
        with tempfile.TemporaryDirectory() as tmp_dir:
            tmp = Path(tmp_dir)
            proof_path = tmp / "proof.json"
            public_path = tmp / "public.json"
            proof_path.write_text(json.dumps(artifact.proof_dict()), encoding="utf-8")
            public_path.write_text(json.dumps(artifact.public_list()), encoding="utf-8")
            try:
                result = self._run(
                    self._snarkjs,
                    "groth16",
                    "verify",
                    keys.verification_key_path,
                    public_path,
                    proof_path,
                )
            except ExternalToolError as exc:
                # snarkjs exits non-zero for a well-formed but invalid proof
                if "Invalid proof" in exc.stdout or "Invalid proof" in exc.stderr:
                    return False
                raise
        return "OK" in result.stdout

    def _invoke(self, deployment: DeploymentConfig, function: str, args: List[str]) -> str:
        result = self._run(
            self._stellar,
            "contract",
            "invoke",
            "--id",
            deployment.contract_id,
            "--source",
            self.source_account,
            "--network",
            deployment.network,
            "--",
            function,
            *args,
        )
        if result.stderr.strip():
            logger.warning("%s stderr: %s", function, result.stderr.strip())
        return result.stdout.strip()

    def submit(self, deployment: DeploymentConfig, params: SubmissionParams) -> bool:
        args: List[str] = []
        for name, value in params.as_contract_args():
            args.extend([f"--{name}", value])
        output = self._invoke(deployment, VERIFY_FUNCTION, args)
        logger.info("%s returned %s", VERIFY_FUNCTION, output)
        return output == "true"

    def register(
        self, deployment: DeploymentConfig, agent_hash: str, merkle_root: str
    ) -> str:
        output = self._invoke(
            deployment,
            REGISTER_FUNCTION,
            ["--agent_hash", agent_hash, "--merkle_root", merkle_root],
        )
        return output.strip('"')
