"""Runtime configuration model for recovery checks.

This module owns all environment variable and config-file parsing.
Other modules consume one validated config object passed down from
the CLI instead of reading the ambient environment themselves.
"""

from __future__ import annotations

import os
import shlex
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Mapping, cast

from core.constants import (
    DEFAULT_DB_RESET_COMMAND,
    DEFAULT_LOG_DIR,
    DEFAULT_MILESTONE_TIMEOUT_SECONDS,
    DEFAULT_NODE_PROFILE,
    DEFAULT_RECOVERED_HEALTH_URL,
    DEFAULT_RECOVERED_RPC_URL,
    DEFAULT_RECOVERING_NODE_COMMAND,
    DEFAULT_RECOVERING_NODE_PROCESS_NAME,
    DEFAULT_REFERENCE_RPC_URL,
    DEFAULT_RPC_TIMEOUT_SECONDS,
    DEFAULT_SAMPLE_PROBABILITY,
    DEFAULT_SNAPSHOT_CREATOR_COMMAND,
    DEFAULT_STORAGE_CLEAN_COMMAND,
    DOCKER_ENV_VAR,
    DOCKER_NODE_PROFILE,
    HOME_ENV_VAR,
    MILESTONE_SOURCE_LOG,
    PROFILE_ENV_VAR,
    SUPPORTED_MILESTONE_SOURCES,
    TEMPLATE_DATABASE_ENV_VAR,
)
from core.errors import RecoveryConfigError, RecoveryDependencyError, SetupPreconditionError


@dataclass(frozen=True)
class RecoveryConfig:
    """Validated runtime configuration.

    Attributes:
        home_dir: Working directory for node tooling and chunk locators.
        log_dir: Directory receiving process logs and the run report.
        reference_rpc_url: JSON-RPC endpoint of the reference node.
        recovered_rpc_url: JSON-RPC endpoint of the recovering node.
        recovered_health_url: Health endpoint of the recovering node.
        rpc_timeout_seconds: Per-request RPC timeout.
        sample_probability: Inclusion probability for storage sampling.
        milestone_timeout_seconds: Ceiling on the recovery milestone wait.
        milestone_source: Either ``log`` or ``health``.
        node_profile: Deployment profile handed to the recovering node.
        snapshot_creator_command: Command producing a fresh snapshot.
        db_reset_command: Command dropping the recovering node database.
        storage_clean_command: Command dropping the recovering node storage.
        recovering_node_command: Command starting the node with recovery on.
        recovering_node_process_name: Process name used for stale cleanup.
        ambient_profile: Profile found in the launching environment.
    """

    home_dir: Path
    log_dir: Path
    reference_rpc_url: str
    recovered_rpc_url: str
    recovered_health_url: str
    rpc_timeout_seconds: float
    sample_probability: float
    milestone_timeout_seconds: float
    milestone_source: str
    node_profile: str
    snapshot_creator_command: str
    db_reset_command: str
    storage_clean_command: str
    recovering_node_command: str
    recovering_node_process_name: str
    ambient_profile: str | None = None

    @classmethod
    def from_env(cls) -> "RecoveryConfig":
        """Build config from process environment variables.

        Returns:
            A validated config object.

        Raises:
            RecoveryConfigError: If environment values are invalid.
            SetupPreconditionError: If a node profile is already selected.
        """
        home_value = os.getenv(HOME_ENV_VAR, ".")
        profile = DOCKER_NODE_PROFILE if os.getenv(DOCKER_ENV_VAR) else DEFAULT_NODE_PROFILE
        config = cls(
            home_dir=Path(home_value).expanduser().resolve(),
            log_dir=Path(os.getenv("RECOVERY_LOG_DIR", str(DEFAULT_LOG_DIR)))
            .expanduser()
            .resolve(),
            reference_rpc_url=os.getenv("RECOVERY_REFERENCE_RPC_URL", DEFAULT_REFERENCE_RPC_URL),
            recovered_rpc_url=os.getenv("RECOVERY_RECOVERED_RPC_URL", DEFAULT_RECOVERED_RPC_URL),
            recovered_health_url=os.getenv(
                "RECOVERY_RECOVERED_HEALTH_URL", DEFAULT_RECOVERED_HEALTH_URL
            ),
            rpc_timeout_seconds=_parse_float(
                "RECOVERY_RPC_TIMEOUT",
                os.getenv("RECOVERY_RPC_TIMEOUT"),
                DEFAULT_RPC_TIMEOUT_SECONDS,
            ),
            sample_probability=_parse_float(
                "RECOVERY_SAMPLE_PROBABILITY",
                os.getenv("RECOVERY_SAMPLE_PROBABILITY"),
                DEFAULT_SAMPLE_PROBABILITY,
            ),
            milestone_timeout_seconds=_parse_float(
                "RECOVERY_MILESTONE_TIMEOUT",
                os.getenv("RECOVERY_MILESTONE_TIMEOUT"),
                DEFAULT_MILESTONE_TIMEOUT_SECONDS,
            ),
            milestone_source=os.getenv("RECOVERY_MILESTONE_SOURCE", MILESTONE_SOURCE_LOG),
            node_profile=profile,
            snapshot_creator_command=DEFAULT_SNAPSHOT_CREATOR_COMMAND,
            db_reset_command=DEFAULT_DB_RESET_COMMAND,
            storage_clean_command=DEFAULT_STORAGE_CLEAN_COMMAND,
            recovering_node_command=DEFAULT_RECOVERING_NODE_COMMAND,
            recovering_node_process_name=DEFAULT_RECOVERING_NODE_PROCESS_NAME,
            ambient_profile=os.getenv(PROFILE_ENV_VAR),
        )
        return validate_config(config)

    def node_env(self, extra: Mapping[str, str] | None = None) -> dict[str, str]:
        """Return the environment for recovering-node tooling.

        Args:
            extra: Additional variables layered on top.

        Returns:
            Copy of the process environment with the node profile selected.
        """
        env = dict(os.environ)
        env[PROFILE_ENV_VAR] = self.node_profile
        if extra:
            env.update(extra)
        return env

    def db_reset_env(self) -> dict[str, str]:
        """Return the environment for the database reset command."""
        return self.node_env({TEMPLATE_DATABASE_ENV_VAR: ""})


def command_argv(command: str) -> list[str]:
    """Split a configured command line into an argument vector."""
    return shlex.split(command)


def load_config_file(config: RecoveryConfig, config_path: str) -> RecoveryConfig:
    """Overlay YAML config file values on top of an existing config.

    Args:
        config: Base config, usually from ``RecoveryConfig.from_env``.
        config_path: Path to a YAML mapping of field overrides.

    Returns:
        New validated config object.

    Raises:
        RecoveryConfigError: If the file is missing, malformed, or names unknown keys.
    """
    payload = _load_yaml_payload(config_path)
    if not isinstance(payload, Mapping):
        raise RecoveryConfigError(
            f"Config file {config_path} must contain a mapping, got {type(payload).__name__}."
        )
    known_fields = {item.name for item in fields(RecoveryConfig)} - {"ambient_profile"}
    unknown_keys = sorted(str(key) for key in payload if key not in known_fields)
    if unknown_keys:
        raise RecoveryConfigError(
            f"Unsupported config keys in {config_path}: {', '.join(unknown_keys)}. "
            f"Allowed keys: {', '.join(sorted(known_fields))}."
        )
    overrides: dict[str, object] = {}
    for key, value in payload.items():
        overrides[str(key)] = _coerce_field(str(key), value)
    return validate_config(replace(config, **overrides))


def validate_config(config: RecoveryConfig) -> RecoveryConfig:
    """Validate cross-field config constraints.

    Args:
        config: Candidate config.

    Returns:
        The same config when valid.

    Raises:
        RecoveryConfigError: If a value is out of range.
        SetupPreconditionError: If the ambient environment conflicts with the run.
    """
    if config.ambient_profile:
        raise SetupPreconditionError(
            f"`{PROFILE_ENV_VAR}` is set to '{config.ambient_profile}'. Unset it so that "
            "reference and recovering node components can run side by side."
        )
    if not 0.0 < config.sample_probability <= 1.0:
        raise RecoveryConfigError(
            f"Sample probability must be in (0, 1], got {config.sample_probability}."
        )
    if config.milestone_timeout_seconds <= 0:
        raise RecoveryConfigError(
            f"Milestone timeout must be positive, got {config.milestone_timeout_seconds}."
        )
    if config.rpc_timeout_seconds <= 0:
        raise RecoveryConfigError(
            f"RPC timeout must be positive, got {config.rpc_timeout_seconds}."
        )
    if config.milestone_source not in SUPPORTED_MILESTONE_SOURCES:
        raise RecoveryConfigError(
            f"Unsupported milestone source '{config.milestone_source}'. "
            f"Use one of: {', '.join(SUPPORTED_MILESTONE_SOURCES)}."
        )
    for name in (
        "snapshot_creator_command",
        "db_reset_command",
        "storage_clean_command",
        "recovering_node_command",
    ):
        if not command_argv(cast(str, getattr(config, name))):
            raise RecoveryConfigError(f"Config field '{name}' must name a command.")
    return config


def _parse_float(name: str, raw_value: str | None, default: float) -> float:
    if raw_value is None:
        return default
    try:
        return float(raw_value)
    except ValueError as error:
        raise RecoveryConfigError(
            f"Invalid {name} value: expected number, got '{raw_value}'. "
            f"Set {name} to a numeric value."
        ) from error


def _coerce_field(key: str, value: object) -> object:
    if key in {"home_dir", "log_dir"}:
        if not isinstance(value, str):
            raise RecoveryConfigError(f"Config field '{key}' must be a path string.")
        return Path(value).expanduser().resolve()
    if key in {"rpc_timeout_seconds", "sample_probability", "milestone_timeout_seconds"}:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise RecoveryConfigError(f"Config field '{key}' must be a number.")
        return float(value)
    if not isinstance(value, str):
        raise RecoveryConfigError(f"Config field '{key}' must be a string.")
    return value


def _load_yaml_payload(config_path: str) -> object:
    try:
        import yaml  # type: ignore[import-untyped]
    except ImportError as error:  # pragma: no cover - dependency failure
        raise RecoveryDependencyError(
            "YAML config support requires PyYAML. Install with 'pip install pyyaml'."
        ) from error
    config_file = Path(config_path).expanduser().resolve()
    if not config_file.exists():
        raise RecoveryConfigError(
            f"Config file does not exist at {config_file}. Provide a valid YAML file path."
        )
    try:
        payload = cast(object, yaml.safe_load(config_file.read_text(encoding="utf-8")))
    except OSError as error:
        raise RecoveryConfigError(
            f"Failed to read config at {config_file}: {error}. Check file permissions and retry."
        ) from error
    except yaml.YAMLError as error:
        raise RecoveryConfigError(
            f"Failed to parse YAML config at {config_file}: {error}. Fix YAML syntax and retry."
        ) from error
    if payload is None:
        return {}
    return payload
