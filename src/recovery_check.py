"""Public SDK surface for snapshot recovery checks.

This module provides a stable import path for harness users.
It re-exports the config, clients, decoders, validators, and runner.
"""

from __future__ import annotations

from core.config import RecoveryConfig, load_config_file
from core.types import ChunkRef, MilestoneReport, SnapshotHandle, StorageRecord, TokenRecord
from core.verification import (
    RecoveryServices,
    VerificationReport,
    build_services,
    render_verification_report,
    run_verification,
    save_verification_report,
)
from process.health_tracker import HealthStateTracker
from process.log_tracker import LogStateTracker, MilestoneRule
from process.supervisor import ProcessSupervisor, SupervisedProcess, kill_stale_processes
from rpc.node_client import NodeClient
from rpc.snapshot_client import SnapshotClient
from rpc.transport import JsonRpcTransport
from snapshot.chunk_decoder import decode_storage_logs, read_storage_chunk
from validation.reconcile import reconcile_records, reconcile_token_registries
from validation.sampling import SamplingValidator

__all__ = [
    "ChunkRef",
    "HealthStateTracker",
    "JsonRpcTransport",
    "LogStateTracker",
    "MilestoneReport",
    "MilestoneRule",
    "NodeClient",
    "ProcessSupervisor",
    "RecoveryConfig",
    "RecoveryServices",
    "SamplingValidator",
    "SnapshotClient",
    "SnapshotHandle",
    "StorageRecord",
    "SupervisedProcess",
    "TokenRecord",
    "VerificationReport",
    "build_services",
    "decode_storage_logs",
    "kill_stale_processes",
    "load_config_file",
    "read_storage_chunk",
    "reconcile_records",
    "reconcile_token_registries",
    "render_verification_report",
    "run_verification",
    "save_verification_report",
]
