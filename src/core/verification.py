"""Recovery verification orchestration and report formatting."""

from __future__ import annotations

import json
import time
from contextlib import ExitStack
from pathlib import Path
from typing import Callable

from core.config import RecoveryConfig
from core.constants import MILESTONE_SOURCE_HEALTH, RECOVERY_LOG_FILE_NAME, REPORT_FILE_NAME
from core.logging_config import get_logger
from core.verification_checks import build_checks
from core.verification_types import (
    MilestoneTracker,
    RecoveryServices,
    VerificationCheckResult,
    VerificationReport,
    VerificationRuntime,
    VerificationStatus,
)
from process.health_tracker import HealthStateTracker, default_health_rules
from process.log_tracker import LogStateTracker, default_milestone_rules
from process.supervisor import ProcessSupervisor, kill_stale_processes
from rpc.node_client import NodeClient
from rpc.snapshot_client import SnapshotClient
from rpc.transport import JsonRpcTransport

__all__ = [
    "RecoveryServices",
    "VerificationCheckResult",
    "VerificationReport",
    "build_milestone_tracker",
    "build_services",
    "run_verification",
    "render_verification_report",
    "save_verification_report",
]

_LOGGER = get_logger(__name__)


def run_verification(
    config: RecoveryConfig,
    services: RecoveryServices | None = None,
) -> VerificationReport:
    """Run all recovery stages in order, stopping at the first failure.

    Any supervised node is terminated, stale node processes are killed, and
    HTTP sessions opened for the run are closed before this function
    returns, whatever the outcome.
    """
    with ExitStack() as cleanup:
        active_services = services if services is not None else build_services(config, cleanup)
        cleanup.callback(active_services.kill_stale, config.recovering_node_process_name)
        runtime = VerificationRuntime(config=config, services=active_services, cleanup=cleanup)
        results = _run_checks(runtime, build_checks())
    return VerificationReport(log_dir=str(config.log_dir), checks=tuple(results))


def build_services(config: RecoveryConfig, cleanup: ExitStack | None = None) -> RecoveryServices:
    """Wire real RPC clients, supervisor, and milestone tracker from config.

    When ``cleanup`` is given, the HTTP sessions are closed when it unwinds.
    """
    reference = JsonRpcTransport(config.reference_rpc_url, config.rpc_timeout_seconds)
    recovered = JsonRpcTransport(config.recovered_rpc_url, config.rpc_timeout_seconds)
    if cleanup is not None:
        cleanup.callback(reference.close)
        cleanup.callback(recovered.close)
    return RecoveryServices(
        supervisor=ProcessSupervisor(),
        reference_snapshots=SnapshotClient(reference),
        recovered_snapshots=SnapshotClient(recovered),
        reference_node=NodeClient(reference),
        recovered_node=NodeClient(recovered),
        milestone_tracker=build_milestone_tracker(config, cleanup),
        kill_stale=kill_stale_processes,
    )


def build_milestone_tracker(
    config: RecoveryConfig,
    cleanup: ExitStack | None = None,
) -> MilestoneTracker:
    """Select the milestone source named by config.

    Both sources persist node output to the same recovery log file.
    """
    log_path = config.log_dir / RECOVERY_LOG_FILE_NAME
    if config.milestone_source == MILESTONE_SOURCE_HEALTH:
        tracker = HealthStateTracker(default_health_rules(), config.recovered_health_url, log_path)
        if cleanup is not None:
            cleanup.callback(tracker.close)
        return tracker
    return LogStateTracker(default_milestone_rules(), log_path)


def _run_checks(
    runtime: VerificationRuntime,
    checks: tuple[tuple[str, str, Callable[[VerificationRuntime], str]], ...],
) -> list[VerificationCheckResult]:
    results: list[VerificationCheckResult] = []
    failed = False
    for check_id, title, check_fn in checks:
        if failed:
            results.append(
                VerificationCheckResult(
                    check_id=check_id,
                    title=title,
                    status="skipped",
                    details="previous stage failed",
                    duration_seconds=0.0,
                )
            )
            continue
        _LOGGER.info("stage_started", check_id=check_id, title=title)
        started_at = time.monotonic()
        status, details = _run_single_check(check_fn, runtime)
        duration_seconds = round(time.monotonic() - started_at, 3)
        results.append(
            VerificationCheckResult(
                check_id=check_id,
                title=title,
                status=status,
                details=details,
                duration_seconds=duration_seconds,
            )
        )
        if status == "failed":
            _LOGGER.error("stage_failed", check_id=check_id, title=title, details=details)
            failed = True
        else:
            _LOGGER.info("stage_passed", check_id=check_id, duration_seconds=duration_seconds)
    return results


def _run_single_check(
    check_fn: Callable[[VerificationRuntime], str],
    runtime: VerificationRuntime,
) -> tuple[VerificationStatus, str]:
    try:
        details = str(check_fn(runtime))
        return "passed", details
    except Exception as error:
        return "failed", f"{type(error).__name__}: {error}"


def render_verification_report(report: VerificationReport) -> str:
    """Render report into stable multi-line text for CLI output."""
    lines = [f"log_dir={report.log_dir}"]
    for row in report.checks:
        lines.append(
            f"[{row.status.upper()}] {row.check_id} {row.title} "
            f"({row.duration_seconds:.3f}s) :: {row.details}"
        )
    lines.append(f"passed={report.passed_count}")
    lines.append(f"failed={report.failed_count}")
    return "\n".join(lines)


def save_verification_report(report: VerificationReport) -> Path:
    """Persist report JSON into the log directory for post-mortem inspection."""
    report_path = Path(report.log_dir) / REPORT_FILE_NAME
    report_path.parent.mkdir(parents=True, exist_ok=True)
    payload = {
        "log_dir": report.log_dir,
        "succeeded": report.succeeded,
        "checks": [
            {
                "check_id": row.check_id,
                "title": row.title,
                "status": row.status,
                "details": row.details,
                "duration_seconds": row.duration_seconds,
            }
            for row in report.checks
        ],
    }
    report_path.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")
    return report_path
