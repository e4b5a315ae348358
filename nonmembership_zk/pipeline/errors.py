"""Pipeline error types."""

from __future__ import annotations

from typing import Optional, Sequence

from .stages import Stage


class PipelineError(Exception):
    """Base error for proof lifecycle failures."""


class MissingPrerequisiteArtifactError(PipelineError):
    """
    A stage was invoked before an earlier stage produced its artifact.

    Attributes:
        stage: Stage that was requested
        missing: Label of the artifact that is absent
        missing_stage: Stage that produces it, None for the deployment config
        command: CLI command that produces it
    """

    def __init__(
        self,
        stage: str,
        missing: str,
        command: str,
        missing_stage: Optional[Stage] = None,
    ) -> None:
        self.stage = stage
        self.missing = missing
        self.command = command
        self.missing_stage = missing_stage
        super().__init__(
            f"Cannot run '{stage}': {missing} artifact is missing. "
            f"Run '{command}' first."
        )


class ExternalToolError(PipelineError):
    """An external compiler, prover, verifier or contract CLI failed."""

    def __init__(
        self,
        command: Sequence[str],
        returncode: Optional[int],
        stdout: str = "",
        stderr: str = "",
        reason: str = "",
    ) -> None:
        self.command = list(command)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        tool = self.command[0] if self.command else "external tool"
        if reason:
            summary = f"{tool} failed: {reason}"
        else:
            summary = f"{tool} exited with code {returncode}"
        detail = stderr.strip() or stdout.strip()
        super().__init__(f"{summary}\n{detail}" if detail else summary)


class VerificationFailedError(PipelineError):
    """Local or on-chain verification returned false."""

    def __init__(self, stage: str, message: str) -> None:
        self.stage = stage
        super().__init__(message)


class ArtifactFormatError(PipelineError):
    """A persisted artifact exists but cannot be parsed."""
