"""Typed models for recovery verification workflows."""

from __future__ import annotations

import random
from contextlib import ExitStack
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Literal, Mapping, Protocol, Sequence

from core.config import RecoveryConfig
from core.types import MilestoneReport, SnapshotHandle, TokenRecord

VerificationStatus = Literal["passed", "failed", "skipped"]


class NodeProcess(Protocol):
    """Running node handle owned by the verification runtime."""

    @property
    def pid(self) -> int: ...

    @property
    def exit_code(self) -> int | None: ...

    def next_line(self, timeout: float | None = None) -> str | None: ...

    def stop(self) -> int | None: ...

    def __enter__(self) -> "NodeProcess": ...

    def __exit__(self, *exc_info: object) -> None: ...


class Supervisor(Protocol):
    """Process launcher used by verification stages."""

    def run_to_completion(
        self,
        command: Sequence[str],
        cwd: Path,
        env: Mapping[str, str] | None = None,
        log_path: Path | None = None,
    ) -> None: ...

    def run_supervised(
        self,
        command: Sequence[str],
        cwd: Path,
        env: Mapping[str, str] | None = None,
    ) -> NodeProcess: ...


class MilestoneTracker(Protocol):
    """Source of recovery milestone state."""

    def wait(
        self, process: NodeProcess, timeout_seconds: float | None = None
    ) -> MilestoneReport: ...


class SnapshotQueries(Protocol):
    """Snapshot and token registry queries."""

    def list_snapshots(self) -> tuple[int, ...]: ...

    def get_snapshot(self, generation_id: int) -> SnapshotHandle: ...

    def get_token_registry(self, at_height: int | None = None) -> tuple[TokenRecord, ...]: ...


class NodeQueries(Protocol):
    """Height and storage queries."""

    def block_number(self) -> int: ...

    def l1_batch_number(self) -> int: ...

    def storage_at(self, address: bytes, key: bytes, block_number: int) -> bytes: ...


@dataclass(frozen=True)
class VerificationCheckResult:
    """One verification stage result row."""

    check_id: str
    title: str
    status: VerificationStatus
    details: str
    duration_seconds: float


@dataclass(frozen=True)
class VerificationReport:
    """Final verification report for a complete run."""

    log_dir: str
    checks: tuple[VerificationCheckResult, ...]

    @property
    def failed_count(self) -> int:
        """Count failed checks in this report."""
        return sum(1 for check in self.checks if check.status == "failed")

    @property
    def passed_count(self) -> int:
        """Count passed checks in this report."""
        return sum(1 for check in self.checks if check.status == "passed")

    @property
    def succeeded(self) -> bool:
        """Whether every stage ran and passed."""
        return bool(self.checks) and all(check.status == "passed" for check in self.checks)


@dataclass
class RecoveryServices:
    """External collaborators used by verification stages."""

    supervisor: Supervisor
    reference_snapshots: SnapshotQueries
    recovered_snapshots: SnapshotQueries
    reference_node: NodeQueries
    recovered_node: NodeQueries
    milestone_tracker: MilestoneTracker
    kill_stale: Callable[[str], int]
    rng: random.Random | None = None


@dataclass
class VerificationRuntime:
    """Shared mutable runtime state used by check functions."""

    config: RecoveryConfig
    services: RecoveryServices
    cleanup: ExitStack
    snapshot: SnapshotHandle | None = None
    node_process: NodeProcess | None = None
    milestones: MilestoneReport | None = None
