"""Recovery check exception hierarchy.

This module defines traceable domain errors with clear boundaries.
Each verification stage raises a specific error type so a failed run
always names its cause.
"""

from __future__ import annotations


class RecoveryCheckError(Exception):
    """Base exception for all recovery check failures."""


class RecoveryConfigError(RecoveryCheckError):
    """Raised for invalid runtime configuration."""


class RecoveryDependencyError(RecoveryCheckError):
    """Raised when a required runtime dependency is missing."""


class SetupPreconditionError(RecoveryCheckError):
    """Raised when the environment is not fit to start a run."""


class ProcessFailureError(RecoveryCheckError):
    """Raised when an external process cannot complete successfully."""


class ProcessExitError(ProcessFailureError):
    """Raised when an external process exits with a nonzero code."""

    def __init__(self, command: str, exit_code: int) -> None:
        super().__init__(f"Process '{command}' exited with non-zero code: {exit_code}.")
        self.command = command
        self.exit_code = exit_code


class ProcessSpawnError(ProcessFailureError):
    """Raised when an external process cannot be started at all."""

    def __init__(self, command: str, cause: OSError) -> None:
        super().__init__(f"Failed to start process '{command}': {cause}.")
        self.command = command
        self.cause = cause


class MilestoneNotReachedError(RecoveryCheckError):
    """Raised when a process exits before all milestones are observed."""

    def __init__(self, pending: tuple[str, ...], exit_code: int | None = None) -> None:
        super().__init__(
            "Process output ended before milestones were reached: "
            f"{', '.join(pending)} (exit_code={exit_code})."
        )
        self.pending = pending
        self.exit_code = exit_code


class StreamTimeoutError(RecoveryCheckError):
    """Raised when milestones are not observed before the deadline."""

    def __init__(self, pending: tuple[str, ...], timeout_seconds: float) -> None:
        super().__init__(
            f"Milestones not reached within {timeout_seconds:.1f}s: {', '.join(pending)}."
        )
        self.pending = pending
        self.timeout_seconds = timeout_seconds


class ChunkDecodeFailure(RecoveryCheckError):
    """Raised when a snapshot chunk cannot be turned into records."""


class ChunkDecompressionError(ChunkDecodeFailure):
    """Raised for unreadable, corrupt, or truncated compressed chunks."""


class ChunkDecodeError(ChunkDecodeFailure):
    """Raised when decompressed chunk bytes do not match the schema."""


class DataIntegrityError(RecoveryCheckError):
    """Raised when fetched data violates a structural invariant."""


class ValidationMismatchError(RecoveryCheckError):
    """Raised when a sampled snapshot value disagrees with the reference node."""


class ReconciliationMismatchError(RecoveryCheckError):
    """Raised when two record sets differ or contain duplicate keys."""


class RpcError(RecoveryCheckError):
    """Base error for node RPC failures."""


class RpcTransportError(RpcError):
    """Raised when an RPC request cannot be delivered or answered."""


class RpcResponseError(RpcError):
    """Raised when a node returns an error object or malformed result."""


class SnapshotNotFoundError(RpcError):
    """Raised when a snapshot generation is unknown to the node."""
