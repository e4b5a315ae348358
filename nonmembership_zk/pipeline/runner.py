"""
Proof lifecycle runner.

Stages run strictly in order:

    compiled -> setup -> witness -> proof -> verified -> submitted -> registered

Each stage checks that its prerequisites' artifacts are in the store before
doing anything, and persists its own artifact only on success. Persisting an
artifact discards every later stage's artifact, so a re-run never leaves a
stale proof or record behind. One runner per artifact store at a time.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..registry.merkle import MerkleTree
from ..registry.witness import Witness, build_non_membership_witness
from .artifacts import (
    CompiledCircuit,
    DeploymentConfig,
    LocalVerification,
    ProofArtifact,
    RegistrationReceipt,
    SetupKeys,
    SubmissionRecord,
    utc_timestamp,
)
from .errors import MissingPrerequisiteArtifactError, VerificationFailedError
from .stages import CLI_NAME, STAGE_COMMANDS, STAGE_ORDER, Stage
from .store import ArtifactStore
from .submission import encode_submission
from .toolchain import Toolchain

logger = logging.getLogger(__name__)

DEPLOYMENT_COMMAND = f"{CLI_NAME} configure-deployment"


class ProofPipeline:
    """
    Drive the lifecycle against one artifact store.

    Example:
        pipeline = ProofPipeline(InMemoryArtifactStore(deployment), FixtureToolchain())
        pipeline.compile()
        pipeline.setup()
        pipeline.generate(tree, "Marketing Content Generator")
        pipeline.verify()
        record = pipeline.submit()
    """

    def __init__(
        self,
        store: ArtifactStore,
        toolchain: Toolchain,
        *,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.store = store
        self.toolchain = toolchain
        self._clock = clock

    def _now(self) -> str:
        return utc_timestamp(self._clock() if self._clock else None)

    def status(self) -> List[Tuple[Stage, bool]]:
        return [(stage, self.store.has(stage)) for stage in STAGE_ORDER]

    def next_stage(self) -> Optional[Stage]:
        """First stage whose artifact is absent, or None when all are present."""
        for stage, present in self.status():
            if not present:
                return stage
        return None

    def _require(
        self, stage: Stage, requirements: Optional[Tuple[Stage, ...]] = None
    ) -> None:
        if requirements is None:
            requirements = stage.requires
        for required in requirements:
            if not self.store.has(required):
                raise MissingPrerequisiteArtifactError(
                    STAGE_COMMANDS[stage],
                    required.label,
                    required.command,
                    missing_stage=required,
                )

    def _deployment(self, stage: Stage) -> DeploymentConfig:
        deployment = self.store.load_deployment()
        if deployment is None:
            raise MissingPrerequisiteArtifactError(
                STAGE_COMMANDS[stage], "deployment config", DEPLOYMENT_COMMAND
            )
        return deployment

    def _persist(self, stage: Stage, artifact: Any) -> None:
        # Later artifacts go first so an interrupted save never leaves them
        # describing the previous artifact.
        for later in stage.later_stages():
            self.store.discard(later)
        self.store.save(stage, artifact)
        logger.info("Stage %s complete", stage.value)

    def compile(self) -> CompiledCircuit:
        self._require(Stage.COMPILED)
        logger.info("Compiling circuit")
        circuit = self.toolchain.compile()
        self._persist(Stage.COMPILED, circuit)
        return circuit

    def setup(self) -> SetupKeys:
        self._require(Stage.SETUP_DONE)
        circuit = self.store.load(Stage.COMPILED)
        logger.info("Running trusted setup (this can take minutes)")
        keys = self.toolchain.setup(circuit)
        self._persist(Stage.SETUP_DONE, keys)
        return keys

    def prepare_witness(self, tree: MerkleTree, description: str) -> Witness:
        self._require(Stage.WITNESS_READY)
        witness = build_non_membership_witness(tree, description)
        logger.info("Witness ready: empty slot %d under root %d", witness.slot, witness.root)
        self._persist(Stage.WITNESS_READY, witness)
        return witness

    def prove(self) -> ProofArtifact:
        self._require(Stage.PROOF_GENERATED)
        witness = self.store.load(Stage.WITNESS_READY)
        circuit = self.store.load(Stage.COMPILED)
        keys = self.store.load(Stage.SETUP_DONE)
        logger.info("Generating proof")
        artifact = self.toolchain.prove(witness, circuit, keys)
        self._persist(Stage.PROOF_GENERATED, artifact)
        return artifact

    def generate(self, tree: MerkleTree, description: str) -> ProofArtifact:
        """Witness and proof in one step; nothing is written if keys are missing."""
        self._require(
            Stage.PROOF_GENERATED,
            tuple(s for s in Stage.PROOF_GENERATED.requires if s is not Stage.WITNESS_READY),
        )
        self.prepare_witness(tree, description)
        return self.prove()

    def verify(self) -> LocalVerification:
        self._require(Stage.LOCALLY_VERIFIED)
        artifact = self.store.load(Stage.PROOF_GENERATED)
        keys = self.store.load(Stage.SETUP_DONE)
        if artifact.is_non_member != "1":
            raise VerificationFailedError(
                STAGE_COMMANDS[Stage.LOCALLY_VERIFIED],
                "Proof does not assert non-membership (isNonMember != 1). "
                f"Re-run '{Stage.PROOF_GENERATED.command}' with a candidate "
                "that is not registered.",
            )
        if not self.toolchain.verify(artifact, keys):
            raise VerificationFailedError(
                STAGE_COMMANDS[Stage.LOCALLY_VERIFIED],
                "Proof is invalid against the verification key. "
                f"Re-run '{Stage.PROOF_GENERATED.command}'.",
            )
        result = LocalVerification(
            verified_at=self._now(), public_signals=tuple(artifact.public_signals)
        )
        self._persist(Stage.LOCALLY_VERIFIED, result)
        return result

    def submit(self) -> SubmissionRecord:
        """
        Submit the verified proof on-chain.

        The record is persisted whether or not the contract accepted the
        proof; check ``record.verified``.
        """
        self._require(Stage.SUBMITTED)
        deployment = self._deployment(Stage.SUBMITTED)
        artifact = self.store.load(Stage.PROOF_GENERATED)
        verification = self.store.load(Stage.LOCALLY_VERIFIED)
        if tuple(verification.public_signals) != tuple(artifact.public_signals):
            raise MissingPrerequisiteArtifactError(
                STAGE_COMMANDS[Stage.SUBMITTED],
                f"{Stage.LOCALLY_VERIFIED.label} (for the current proof)",
                Stage.LOCALLY_VERIFIED.command,
                missing_stage=Stage.LOCALLY_VERIFIED,
            )
        params = encode_submission(artifact)

        logger.info(
            "Submitting proof to contract %s on %s", deployment.contract_id, deployment.network
        )
        verified = self.toolchain.submit(deployment, params)
        record = SubmissionRecord(
            timestamp=self._now(),
            contract_id=deployment.contract_id,
            proof_hash=params.public_agent_hash,
            verified=bool(verified),
            root=params.public_root,
            agent_hash=params.public_agent_hash,
            is_non_member=params.public_is_non_member,
        )
        self._persist(Stage.SUBMITTED, record)
        if not record.verified:
            logger.warning("On-chain verification returned false")
        return record

    def register(self) -> RegistrationReceipt:
        self._require(Stage.REGISTERED)
        deployment = self._deployment(Stage.REGISTERED)
        record = self.store.load(Stage.SUBMITTED)
        if not record.verified:
            raise VerificationFailedError(
                STAGE_COMMANDS[Stage.REGISTERED],
                "Last submission was rejected on-chain; refusing to register. "
                f"Re-run '{Stage.PROOF_GENERATED.command}' and "
                f"'{Stage.SUBMITTED.command}'.",
            )
        new_root = self.toolchain.register(deployment, record.agent_hash, record.root)
        receipt = RegistrationReceipt(
            timestamp=self._now(),
            contract_id=deployment.contract_id,
            agent_hash=record.agent_hash,
            merkle_root=record.root,
            new_root=new_root,
        )
        self._persist(Stage.REGISTERED, receipt)
        return receipt

    def run(
        self,
        tree: MerkleTree,
        description: str,
        *,
        through: Stage = Stage.REGISTERED,
    ) -> Dict[Stage, Any]:
        """
        Run every stage up to ``through``.

        Compile and setup are skipped when their artifacts already exist;
        everything from the witness on is produced fresh for ``description``.
        """
        if STAGE_ORDER.index(through) < STAGE_ORDER.index(Stage.WITNESS_READY):
            raise ValueError("through must be the witness stage or later")
        results: Dict[Stage, Any] = {}
        if self.store.has(Stage.COMPILED):
            logger.info("Compiled circuit present, skipping compile")
            results[Stage.COMPILED] = self.store.load(Stage.COMPILED)
        else:
            results[Stage.COMPILED] = self.compile()

        if self.store.has(Stage.SETUP_DONE):
            logger.info("Setup keys present, skipping trusted setup")
            results[Stage.SETUP_DONE] = self.store.load(Stage.SETUP_DONE)
        else:
            results[Stage.SETUP_DONE] = self.setup()

        steps: List[Tuple[Stage, Callable[[], Any]]] = [
            (Stage.WITNESS_READY, lambda: self.prepare_witness(tree, description)),
            (Stage.PROOF_GENERATED, self.prove),
            (Stage.LOCALLY_VERIFIED, self.verify),
            (Stage.SUBMITTED, self.submit),
            (Stage.REGISTERED, self.register),
        ]
        last = STAGE_ORDER.index(through)
        for stage, step in steps:
            if STAGE_ORDER.index(stage) > last:
                break
            results[stage] = step()
            if stage is Stage.SUBMITTED and not results[stage].verified:
                raise VerificationFailedError(
                    STAGE_COMMANDS[Stage.SUBMITTED],
                    "Proof was rejected by the on-chain verifier; "
                    "submission record saved. Check the deployed verification key.",
                )
        return results
