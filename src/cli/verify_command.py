"""Verification command wiring for the recovery check CLI."""

from __future__ import annotations

import argparse
from dataclasses import replace
from typing import Any

from core.config import RecoveryConfig, validate_config
from core.constants import SUPPORTED_MILESTONE_SOURCES
from core.verification import (
    render_verification_report,
    run_verification,
    save_verification_report,
)


def add_verify_command(subparsers: Any) -> None:
    """Register verify subcommand."""
    parser = subparsers.add_parser(
        "verify",
        help="Create a snapshot, recover a node from it, and verify the result",
    )
    parser.add_argument(
        "--sample-probability",
        type=float,
        help="Fraction of storage logs checked against the reference node",
    )
    parser.add_argument(
        "--milestone-timeout",
        type=float,
        help="Seconds to wait for recovery milestones",
    )
    parser.add_argument(
        "--milestone-source",
        choices=SUPPORTED_MILESTONE_SOURCES,
        help="Detect milestones from node logs or the health endpoint",
    )


def run_verify_command(config: RecoveryConfig, args: argparse.Namespace) -> int:
    """Execute the recovery pipeline and print the stage report."""
    config = _apply_overrides(config, args)
    report = run_verification(config)
    report_path = save_verification_report(report)
    print(render_verification_report(report))
    print(f"report_path={report_path}")
    return 0 if report.succeeded else 1


def _apply_overrides(config: RecoveryConfig, args: argparse.Namespace) -> RecoveryConfig:
    overrides: dict[str, object] = {}
    if args.sample_probability is not None:
        overrides["sample_probability"] = args.sample_probability
    if args.milestone_timeout is not None:
        overrides["milestone_timeout_seconds"] = args.milestone_timeout
    if args.milestone_source is not None:
        overrides["milestone_source"] = args.milestone_source
    if not overrides:
        return config
    return validate_config(replace(config, **overrides))
