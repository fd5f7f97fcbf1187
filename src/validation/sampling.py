"""Random-sample validation of snapshot storage chunks.

Every record in a chunk is checked against the snapshot batch bound.
A random subset is additionally compared byte for byte against the
reference node's storage at the snapshot block. The first mismatch
fails the chunk.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Protocol, Sequence

from core.constants import DEFAULT_SAMPLE_PROBABILITY
from core.errors import DataIntegrityError, ValidationMismatchError
from core.logging_config import get_logger
from core.types import SnapshotHandle, StorageRecord

_LOGGER = get_logger(__name__)


class StorageReader(Protocol):
    """Node surface needed to read historical storage."""

    def storage_at(self, address: bytes, key: bytes, block_number: int) -> bytes: ...


@dataclass(frozen=True)
class ChunkSampleSummary:
    """Outcome of validating one chunk."""

    label: str
    record_count: int
    sampled_count: int


class SamplingValidator:
    """Cross-check sampled chunk records against reference storage."""

    def __init__(
        self,
        reference: StorageReader,
        probability: float = DEFAULT_SAMPLE_PROBABILITY,
        rng: random.Random | None = None,
    ) -> None:
        self._reference = reference
        self._probability = probability
        self._rng = rng or random.Random()

    def validate_chunk(
        self,
        snapshot: SnapshotHandle,
        records: Sequence[StorageRecord],
        chunk_label: str,
    ) -> ChunkSampleSummary:
        """Validate one decoded chunk.

        Args:
            snapshot: Snapshot the chunk belongs to.
            records: Decoded chunk records.
            chunk_label: Name used in errors and logs.

        Returns:
            Record and sample counts.

        Raises:
            DataIntegrityError: If the chunk is empty or a record postdates the snapshot.
            ValidationMismatchError: If a sampled value differs from reference storage.
        """
        if not records:
            raise DataIntegrityError(f"Snapshot chunk {chunk_label} contains no storage logs.")
        for index, record in enumerate(records):
            if record.origin_batch > snapshot.l1_batch_number:
                raise DataIntegrityError(
                    f"Storage log #{index} in {chunk_label} was first written in L1 batch "
                    f"{record.origin_batch}, after snapshot batch {snapshot.l1_batch_number}."
                )
        sampled_count = 0
        for index, record in enumerate(records):
            if self._rng.random() >= self._probability:
                continue
            sampled_count += 1
            self._check_record(snapshot, record, index, chunk_label)
        _LOGGER.info(
            "snapshot_chunk_checked",
            chunk=chunk_label,
            record_count=len(records),
            sampled_count=sampled_count,
        )
        return ChunkSampleSummary(
            label=chunk_label,
            record_count=len(records),
            sampled_count=sampled_count,
        )

    def _check_record(
        self,
        snapshot: SnapshotHandle,
        record: StorageRecord,
        index: int,
        chunk_label: str,
    ) -> None:
        live_value = self._reference.storage_at(
            record.owner_address, record.key, snapshot.block_number
        )
        if live_value != record.value:
            raise ValidationMismatchError(
                f"Storage log #{index} in {chunk_label} disagrees with reference node at block "
                f"{snapshot.block_number}: address=0x{record.owner_address.hex()} "
                f"key=0x{record.key.hex()} snapshot=0x{record.value.hex()} "
                f"reference=0x{live_value.hex()}."
            )
