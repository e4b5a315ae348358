"""Lifecycle stages and their prerequisites."""

from __future__ import annotations

from enum import Enum
from typing import Dict, Tuple

CLI_NAME = "nonmembership-zk"


class Stage(str, Enum):
    COMPILED = "compiled"
    SETUP_DONE = "setup"
    WITNESS_READY = "witness"
    PROOF_GENERATED = "proof"
    LOCALLY_VERIFIED = "verified"
    SUBMITTED = "submitted"
    REGISTERED = "registered"

    @property
    def command(self) -> str:
        """CLI command that produces this stage's artifact."""
        return f"{CLI_NAME} {STAGE_COMMANDS[self]}"

    @property
    def label(self) -> str:
        return STAGE_LABELS[self]

    @property
    def requires(self) -> Tuple["Stage", ...]:
        return STAGE_REQUIREMENTS[self]

    def later_stages(self) -> Tuple["Stage", ...]:
        return STAGE_ORDER[STAGE_ORDER.index(self) + 1:]


STAGE_ORDER: Tuple[Stage, ...] = (
    Stage.COMPILED,
    Stage.SETUP_DONE,
    Stage.WITNESS_READY,
    Stage.PROOF_GENERATED,
    Stage.LOCALLY_VERIFIED,
    Stage.SUBMITTED,
    Stage.REGISTERED,
)

STAGE_COMMANDS: Dict[Stage, str] = {
    Stage.COMPILED: "compile",
    Stage.SETUP_DONE: "setup",
    Stage.WITNESS_READY: "generate",
    Stage.PROOF_GENERATED: "generate",
    Stage.LOCALLY_VERIFIED: "verify",
    Stage.SUBMITTED: "submit",
    Stage.REGISTERED: "register",
}

STAGE_LABELS: Dict[Stage, str] = {
    Stage.COMPILED: "compiled circuit",
    Stage.SETUP_DONE: "trusted setup",
    Stage.WITNESS_READY: "witness",
    Stage.PROOF_GENERATED: "proof",
    Stage.LOCALLY_VERIFIED: "local verification",
    Stage.SUBMITTED: "submission record",
    Stage.REGISTERED: "registration receipt",
}

# Checked in order; the first absent artifact is reported. The proving key
# is checked before the circuit, as the prover needs both.
STAGE_REQUIREMENTS: Dict[Stage, Tuple[Stage, ...]] = {
    Stage.COMPILED: (),
    Stage.SETUP_DONE: (Stage.COMPILED,),
    Stage.WITNESS_READY: (Stage.SETUP_DONE,),
    Stage.PROOF_GENERATED: (Stage.SETUP_DONE, Stage.COMPILED, Stage.WITNESS_READY),
    Stage.LOCALLY_VERIFIED: (Stage.SETUP_DONE, Stage.PROOF_GENERATED),
    Stage.SUBMITTED: (Stage.LOCALLY_VERIFIED, Stage.PROOF_GENERATED),
    Stage.REGISTERED: (Stage.SUBMITTED,),
}
