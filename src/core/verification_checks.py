"""Verification stage implementations for snapshot recovery."""

from __future__ import annotations

from typing import Callable

from core.config import command_argv
from core.constants import SNAPSHOT_CREATOR_LOG_FILE_NAME
from core.errors import (
    DataIntegrityError,
    ProcessFailureError,
    RecoveryCheckError,
    SetupPreconditionError,
)
from core.logging_config import get_logger
from core.types import SnapshotHandle
from core.verification_types import NodeProcess, VerificationRuntime
from snapshot.chunk_decoder import read_storage_chunk, resolve_chunk_path
from validation.reconcile import reconcile_token_registries
from validation.sampling import SamplingValidator

_LOGGER = get_logger(__name__)

CheckCallable = Callable[[VerificationRuntime], str]
CheckRow = tuple[str, str, CheckCallable]


def build_checks() -> tuple[CheckRow, ...]:
    """Build the ordered stage list of one recovery run."""
    return (
        ("R001", "Create Snapshot", check_create_snapshot),
        ("R002", "Validate Snapshot", check_validate_snapshot),
        ("R003", "Drop Node Database", check_drop_node_database),
        ("R004", "Drop Node Storage", check_drop_node_storage),
        ("R005", "Start Recovering Node", check_start_recovering_node),
        ("R006", "Await Recovery Milestones", check_await_milestones),
        ("R007", "Check Node Liveness", check_node_liveness),
        ("R008", "Reconcile Tokens", check_reconcile_tokens),
    )


def check_create_snapshot(runtime: VerificationRuntime) -> str:
    """Run the snapshot creator to completion."""
    config = runtime.config
    log_path = config.log_dir / SNAPSHOT_CREATOR_LOG_FILE_NAME
    runtime.services.supervisor.run_to_completion(
        command_argv(config.snapshot_creator_command),
        cwd=config.home_dir,
        log_path=log_path,
    )
    return f"log={log_path}"


def check_validate_snapshot(runtime: VerificationRuntime) -> str:
    """Fetch the newest snapshot and sample-validate every chunk."""
    services = runtime.services
    generations = services.reference_snapshots.list_snapshots()
    _LOGGER.info("snapshots_listed", generations=list(generations))
    if not generations:
        raise SetupPreconditionError(
            "Reference node reports no snapshots. Check that the snapshot creator ran."
        )
    l1_batch_number = max(generations)
    snapshot = services.reference_snapshots.get_snapshot(l1_batch_number)
    _LOGGER.info(
        "snapshot_fetched",
        l1_batch_number=snapshot.l1_batch_number,
        block_number=snapshot.block_number,
        chunk_count=len(snapshot.chunks),
    )
    if snapshot.l1_batch_number != l1_batch_number:
        raise DataIntegrityError(
            f"Requested snapshot for L1 batch {l1_batch_number}, "
            f"got metadata for batch {snapshot.l1_batch_number}."
        )
    if not snapshot.chunks:
        raise DataIntegrityError(f"Snapshot for L1 batch {l1_batch_number} lists no chunks.")
    validator = SamplingValidator(
        services.reference_node,
        probability=runtime.config.sample_probability,
        rng=services.rng,
    )
    record_total = 0
    sampled_total = 0
    for chunk in snapshot.chunks:
        chunk_path = resolve_chunk_path(chunk, runtime.config.home_dir)
        records = read_storage_chunk(chunk_path)
        summary = validator.validate_chunk(snapshot, records, str(chunk_path))
        record_total += summary.record_count
        sampled_total += summary.sampled_count
    runtime.snapshot = snapshot
    return (
        f"l1_batch={snapshot.l1_batch_number} block={snapshot.block_number} "
        f"chunks={len(snapshot.chunks)} records={record_total} sampled={sampled_total}"
    )


def check_drop_node_database(runtime: VerificationRuntime) -> str:
    """Reset the recovering node database."""
    config = runtime.config
    runtime.services.supervisor.run_to_completion(
        command_argv(config.db_reset_command),
        cwd=config.home_dir,
        env=config.db_reset_env(),
    )
    return f"profile={config.node_profile}"


def check_drop_node_storage(runtime: VerificationRuntime) -> str:
    """Remove the recovering node on-disk storage."""
    config = runtime.config
    runtime.services.supervisor.run_to_completion(
        command_argv(config.storage_clean_command),
        cwd=config.home_dir,
        env=config.node_env(),
    )
    return f"profile={config.node_profile}"


def check_start_recovering_node(runtime: VerificationRuntime) -> str:
    """Start the recovering node with snapshot recovery enabled."""
    config = runtime.config
    runtime.services.kill_stale(config.recovering_node_process_name)
    process = runtime.services.supervisor.run_supervised(
        command_argv(config.recovering_node_command),
        cwd=config.home_dir,
        env=config.node_env(),
    )
    runtime.node_process = runtime.cleanup.enter_context(process)
    return f"pid={process.pid}"


def check_await_milestones(runtime: VerificationRuntime) -> str:
    """Wait until the recovering node checks a post-snapshot batch."""
    process = _require_process(runtime)
    report = runtime.services.milestone_tracker.wait(
        process, runtime.config.milestone_timeout_seconds
    )
    if process.exit_code is not None:
        raise ProcessFailureError(
            f"Recovering node exited with code {process.exit_code} after reaching milestones."
        )
    runtime.milestones = report
    observed = " ".join(
        f"{name}={report.observed_batches.get(name)}" for name in report.reached
    )
    return f"{observed} lines={report.lines_consumed}"


def check_node_liveness(runtime: VerificationRuntime) -> str:
    """Check that the recovered node advanced past the snapshot."""
    snapshot = _require_snapshot(runtime)
    recovered = runtime.services.recovered_node
    block_number = recovered.block_number()
    _LOGGER.info("recovered_block_number", block_number=block_number)
    if block_number <= snapshot.block_number:
        raise DataIntegrityError(
            f"Recovered node block {block_number} does not exceed snapshot block "
            f"{snapshot.block_number}."
        )
    l1_batch_number = recovered.l1_batch_number()
    _LOGGER.info("recovered_l1_batch_number", l1_batch_number=l1_batch_number)
    if l1_batch_number <= snapshot.l1_batch_number:
        raise DataIntegrityError(
            f"Recovered node L1 batch {l1_batch_number} does not exceed snapshot batch "
            f"{snapshot.l1_batch_number}."
        )
    return f"block={block_number} l1_batch={l1_batch_number}"


def check_reconcile_tokens(runtime: VerificationRuntime) -> str:
    """Compare recovered tokens with the reference registry at the snapshot block."""
    snapshot = _require_snapshot(runtime)
    recovered_tokens = runtime.services.recovered_snapshots.get_token_registry()
    _LOGGER.info("recovered_tokens_fetched", count=len(recovered_tokens))
    reference_tokens = runtime.services.reference_snapshots.get_token_registry(
        snapshot.block_number
    )
    _LOGGER.info("reference_tokens_fetched", count=len(reference_tokens))
    count = reconcile_token_registries(reference_tokens, recovered_tokens)
    return f"tokens={count}"


def _require_snapshot(runtime: VerificationRuntime) -> SnapshotHandle:
    if runtime.snapshot is None:
        raise RecoveryCheckError("Snapshot metadata missing; snapshot validation did not run.")
    return runtime.snapshot


def _require_process(runtime: VerificationRuntime) -> NodeProcess:
    if runtime.node_process is None:
        raise RecoveryCheckError("Recovering node is not running; start stage did not run.")
    return runtime.node_process
