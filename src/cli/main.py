"""Recovery check CLI entry points.
This module exposes the verification pipeline and snapshot inspection tools.
It maps argparse commands onto the verification and client modules.
"""

from __future__ import annotations

import argparse
from dataclasses import replace
from pathlib import Path
from typing import Any, Sequence

from cli.verify_command import add_verify_command, run_verify_command
from core.config import RecoveryConfig, load_config_file
from core.errors import (
    ChunkDecodeFailure,
    RecoveryConfigError,
    RecoveryDependencyError,
    RpcError,
    SetupPreconditionError,
)
from rpc.snapshot_client import SnapshotClient
from rpc.transport import JsonRpcTransport
from snapshot.chunk_decoder import read_storage_chunk


def build_parser() -> argparse.ArgumentParser:
    """Build the top-level CLI parser.

    Returns:
        Configured argument parser.
    """
    parser = argparse.ArgumentParser(
        prog="recovery-check",
        description="Snapshot recovery verification harness",
    )
    parser.add_argument("--config", help="YAML file with config overrides")
    parser.add_argument("--log-dir", help="Override RECOVERY_LOG_DIR for this command")
    subparsers = parser.add_subparsers(dest="command", required=True)
    add_verify_command(subparsers)
    _add_list_snapshots_command(subparsers)
    _add_inspect_chunk_command(subparsers)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run the recovery check CLI.

    Args:
        argv: Optional argument vector.

    Returns:
        Process exit code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command == "inspect-chunk":
        return _run_inspect_chunk_command(args)
    try:
        config = _build_config(args.config, args.log_dir)
    except (RecoveryConfigError, RecoveryDependencyError, SetupPreconditionError) as error:
        print(f"config_error={error}")
        return 1
    if args.command == "verify":
        try:
            return run_verify_command(config, args)
        except (RecoveryConfigError, RecoveryDependencyError, SetupPreconditionError) as error:
            print(f"config_error={error}")
            return 1
    if args.command == "list-snapshots":
        return _run_list_snapshots_command(config)
    parser.error(f"Unsupported command: {args.command}")
    return 2


def _build_config(config_path: str | None, log_dir: str | None) -> RecoveryConfig:
    """Build config from environment plus optional file and flag overrides.

    Args:
        config_path: Optional YAML overrides file.
        log_dir: Optional log directory override.

    Returns:
        Validated config.
    """
    config = RecoveryConfig.from_env()
    if config_path:
        config = load_config_file(config, config_path)
    if log_dir:
        config = replace(config, log_dir=Path(log_dir).expanduser().resolve())
    return config


def _run_list_snapshots_command(config: RecoveryConfig) -> int:
    """Handle list-snapshots command.

    Args:
        config: Runtime config.

    Returns:
        Exit code.
    """
    transport = JsonRpcTransport(config.reference_rpc_url, config.rpc_timeout_seconds)
    try:
        generations = SnapshotClient(transport).list_snapshots()
    except RpcError as error:
        print(f"rpc_error={error}")
        return 1
    finally:
        transport.close()
    for l1_batch_number in sorted(generations):
        print(l1_batch_number)
    return 0


def _run_inspect_chunk_command(args: argparse.Namespace) -> int:
    """Handle inspect-chunk command.

    Args:
        args: Parsed CLI args.

    Returns:
        Exit code.
    """
    try:
        records = read_storage_chunk(Path(args.path).expanduser())
    except ChunkDecodeFailure as error:
        print(f"decode_error={type(error).__name__}: {error}")
        return 1
    print(f"records={len(records)}")
    if records:
        origin_batches = [record.origin_batch for record in records]
        print(f"min_origin_batch={min(origin_batches)}")
        print(f"max_origin_batch={max(origin_batches)}")
        print(f"max_sequence_index={max(record.sequence_index for record in records)}")
    return 0


def _add_list_snapshots_command(subparsers: Any) -> None:
    """Register list-snapshots subcommand."""
    subparsers.add_parser("list-snapshots", help="List snapshot generations on the reference node")


def _add_inspect_chunk_command(subparsers: Any) -> None:
    """Register inspect-chunk subcommand."""
    parser = subparsers.add_parser("inspect-chunk", help="Decode one snapshot chunk file")
    parser.add_argument("path", help="Path to a gzip-compressed storage-logs chunk")

