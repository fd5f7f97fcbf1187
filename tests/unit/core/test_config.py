"""Unit tests for core config parsing."""

from __future__ import annotations

from pathlib import Path

import pytest

from core.config import RecoveryConfig, command_argv, load_config_file
from core.errors import RecoveryConfigError, SetupPreconditionError


def test_from_env_reads_home_and_log_dir(recovery_config: RecoveryConfig, tmp_path: Path) -> None:
    """Config should resolve home and log directories from environment."""
    assert recovery_config.home_dir == (tmp_path / "home").resolve() and (
        recovery_config.log_dir == (tmp_path / "logs").resolve()
    )


def test_from_env_uses_defaults(recovery_config: RecoveryConfig) -> None:
    """Unset variables should fall back to documented defaults."""
    assert (
        recovery_config.sample_probability == 0.1
        and recovery_config.milestone_source == "log"
        and recovery_config.node_profile == "ext-node"
    )


def test_from_env_selects_docker_profile(
    recovery_config: RecoveryConfig, monkeypatch: pytest.MonkeyPatch
) -> None:
    """IN_DOCKER should switch the recovering node profile."""
    monkeypatch.setenv("IN_DOCKER", "1")

    config = RecoveryConfig.from_env()

    assert config.node_profile == "ext-node-docker"


def test_from_env_raises_for_invalid_probability(
    recovery_config: RecoveryConfig, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Config should fail for non-numeric or out-of-range sample probability."""
    monkeypatch.setenv("RECOVERY_SAMPLE_PROBABILITY", "not-a-number")
    with pytest.raises(RecoveryConfigError):
        RecoveryConfig.from_env()

    monkeypatch.setenv("RECOVERY_SAMPLE_PROBABILITY", "0")
    with pytest.raises(RecoveryConfigError, match="Sample probability"):
        RecoveryConfig.from_env()


def test_from_env_refuses_preselected_profile(
    recovery_config: RecoveryConfig, monkeypatch: pytest.MonkeyPatch
) -> None:
    """A profile already present in the environment is a setup failure."""
    monkeypatch.setenv("ZKSYNC_ENV", "dev")

    with pytest.raises(SetupPreconditionError, match="ZKSYNC_ENV"):
        RecoveryConfig.from_env()


def test_node_env_sets_profile_and_db_reset_clears_template(
    recovery_config: RecoveryConfig,
) -> None:
    """Node tooling env should select the profile; db reset also blanks the template URL."""
    node_env = recovery_config.node_env()
    reset_env = recovery_config.db_reset_env()

    assert node_env["ZKSYNC_ENV"] == "ext-node" and reset_env["TEMPLATE_DATABASE_URL"] == ""


def test_load_config_file_overlays_values(recovery_config: RecoveryConfig, tmp_path: Path) -> None:
    """YAML overrides should replace and coerce matching fields."""
    config_path = tmp_path / "recovery.yaml"
    config_path.write_text(
        "sample_probability: 1\nmilestone_source: health\nrecovering_node_command: ./node --recover\n",
        encoding="utf-8",
    )

    config = load_config_file(recovery_config, str(config_path))

    assert (
        config.sample_probability == 1.0
        and config.milestone_source == "health"
        and command_argv(config.recovering_node_command) == ["./node", "--recover"]
    )


def test_load_config_file_rejects_unknown_keys(
    recovery_config: RecoveryConfig, tmp_path: Path
) -> None:
    """Unknown keys should fail with the allowed key list."""
    config_path = tmp_path / "recovery.yaml"
    config_path.write_text("sample_rate: 0.5\n", encoding="utf-8")

    with pytest.raises(RecoveryConfigError, match="sample_rate"):
        load_config_file(recovery_config, str(config_path))


def test_load_config_file_rejects_empty_command(
    recovery_config: RecoveryConfig, tmp_path: Path
) -> None:
    """A blank command string cannot be run."""
    config_path = tmp_path / "recovery.yaml"
    config_path.write_text("db_reset_command: '  '\n", encoding="utf-8")

    with pytest.raises(RecoveryConfigError, match="db_reset_command"):
        load_config_file(recovery_config, str(config_path))


def test_load_config_file_raises_for_missing_file(
    recovery_config: RecoveryConfig, tmp_path: Path
) -> None:
    """A missing file should be a config error."""
    with pytest.raises(RecoveryConfigError, match="does not exist"):
        load_config_file(recovery_config, str(tmp_path / "absent.yaml"))
