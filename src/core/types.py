"""Shared typed models.

This module defines immutable data models exchanged between the
snapshot reader, RPC clients, validators, and the orchestrator.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping


@dataclass(frozen=True)
class ChunkRef:
    """Locator of one compressed storage-logs chunk.

    Attributes:
        locator: File path, absolute or relative to the home directory.
    """

    locator: str


@dataclass(frozen=True)
class SnapshotHandle:
    """Metadata of one snapshot generation.

    Attributes:
        l1_batch_number: L1 batch the snapshot was taken at.
        block_number: Last L2 block included in the snapshot.
        chunks: Ordered chunk locators.
    """

    l1_batch_number: int
    block_number: int
    chunks: tuple[ChunkRef, ...]


@dataclass(frozen=True)
class StorageRecord:
    """One storage slot exported in a snapshot chunk.

    Attributes:
        owner_address: 20-byte account address.
        key: 32-byte storage key.
        value: 32-byte storage value.
        origin_batch: L1 batch of the initial write.
        sequence_index: Enumeration index of the slot.
    """

    owner_address: bytes
    key: bytes
    value: bytes
    origin_batch: int
    sequence_index: int


@dataclass(frozen=True)
class TokenRecord:
    """One entry of a node token registry.

    Attributes:
        l1_address: Token address on L1.
        l2_address: Token address on L2, unique within one registry.
        attributes: Remaining response fields as sorted key/value pairs.
    """

    l1_address: str
    l2_address: str
    attributes: tuple[tuple[str, object], ...] = ()


@dataclass(frozen=True)
class MilestoneReport:
    """Outcome of waiting for recovery milestones.

    Attributes:
        reached: Milestone names in the order they fired.
        observed_batches: Batch number seen with each milestone, if any.
        lines_consumed: Output lines processed before termination.
    """

    reached: tuple[str, ...]
    observed_batches: Mapping[str, int | None] = field(default_factory=dict)
    lines_consumed: int = 0
