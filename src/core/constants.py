"""Core constants used across recovery check modules.

This module centralizes defaults, wire names, and log patterns.
Keeping values here avoids magic literals in verification logic.
"""

from __future__ import annotations

from pathlib import Path

DEFAULT_LOG_DIR = Path(".")
DEFAULT_REFERENCE_RPC_URL = "http://127.0.0.1:3050"
DEFAULT_RECOVERED_RPC_URL = "http://127.0.0.1:3060"
DEFAULT_RECOVERED_HEALTH_URL = "http://127.0.0.1:3081/health"
DEFAULT_RPC_TIMEOUT_SECONDS = 30.0
DEFAULT_SAMPLE_PROBABILITY = 0.1
DEFAULT_MILESTONE_TIMEOUT_SECONDS = 900.0
DEFAULT_HEALTH_POLL_INTERVAL_SECONDS = 1.0
DEFAULT_STOP_GRACE_SECONDS = 5.0
EXIT_REAP_SECONDS = 2.0

MILESTONE_SOURCE_LOG = "log"
MILESTONE_SOURCE_HEALTH = "health"
SUPPORTED_MILESTONE_SOURCES = (MILESTONE_SOURCE_LOG, MILESTONE_SOURCE_HEALTH)

HOME_ENV_VAR = "ZKSYNC_HOME"
PROFILE_ENV_VAR = "ZKSYNC_ENV"
DOCKER_ENV_VAR = "IN_DOCKER"
TEMPLATE_DATABASE_ENV_VAR = "TEMPLATE_DATABASE_URL"
DEFAULT_NODE_PROFILE = "ext-node"
DOCKER_NODE_PROFILE = "ext-node-docker"

DEFAULT_SNAPSHOT_CREATOR_COMMAND = "zk run snapshots-creator"
DEFAULT_DB_RESET_COMMAND = "zk db reset"
DEFAULT_STORAGE_CLEAN_COMMAND = "zk clean --database"
DEFAULT_RECOVERING_NODE_COMMAND = "zk external-node -- --enable-snapshots-recovery"
DEFAULT_RECOVERING_NODE_PROCESS_NAME = "zksync_external_node"

SNAPSHOT_CREATOR_LOG_FILE_NAME = "snapshot-creator.log"
RECOVERY_LOG_FILE_NAME = "snapshot-recovery.log"
REPORT_FILE_NAME = "recovery_report.json"

INTERESTING_LINE_PATTERN = (
    r"zksync_external_node::init|zksync_core::consistency_checker|zksync_core::reorg_detector"
)
CONSISTENCY_MILESTONE = "consistency_checked"
REORG_MILESTONE = "reorg_checked"
CONSISTENCY_LINE_PATTERN = r"L1 batch #(\d+) is consistent with L1"
REORG_LINE_PATTERN = r"No reorg at L1 batch #(\d+)"
CONSISTENCY_HEALTH_COMPONENT = "consistency_checker"
CONSISTENCY_HEALTH_DETAIL = "last_checked_batch"
REORG_HEALTH_COMPONENT = "reorg_detector"
REORG_HEALTH_DETAIL = "last_correct_l1_batch"
HEALTH_READY_STATUS = "ready"

RPC_LIST_SNAPSHOTS = "snapshots_getAllSnapshots"
RPC_GET_SNAPSHOT = "snapshots_getSnapshot"
RPC_SYNC_TOKENS = "en_syncTokens"
RPC_BLOCK_NUMBER = "eth_blockNumber"
RPC_L1_BATCH_NUMBER = "zks_L1BatchNumber"
RPC_GET_STORAGE_AT = "eth_getStorageAt"

ADDRESS_WIDTH_BYTES = 20
STORAGE_WORD_WIDTH_BYTES = 32
DECOMPRESS_BLOCK_SIZE = 64 * 1024
