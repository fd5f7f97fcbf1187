"""Unit tests for sampled snapshot chunk validation."""

from __future__ import annotations

import random

import pytest

from core.errors import DataIntegrityError, ValidationMismatchError
from core.types import SnapshotHandle, StorageRecord
from validation.sampling import SamplingValidator


class _AlwaysSample(random.Random):
    def random(self) -> float:
        return 0.0


class _FakeReference:
    def __init__(self, values: dict[tuple[bytes, bytes], bytes]) -> None:
        self.values = values
        self.reads: list[tuple[bytes, bytes, int]] = []

    def storage_at(self, address: bytes, key: bytes, block_number: int) -> bytes:
        self.reads.append((address, key, block_number))
        return self.values.get((address, key), b"\x00" * 32)


def _snapshot() -> SnapshotHandle:
    return SnapshotHandle(l1_batch_number=10, block_number=42, chunks=())


def _record(index: int, origin_batch: int = 3) -> StorageRecord:
    return StorageRecord(
        owner_address=bytes([index]) * 20,
        key=bytes([index]) * 32,
        value=index.to_bytes(32, "big"),
        origin_batch=origin_batch,
        sequence_index=index,
    )


def _matching_reference(records: list[StorageRecord]) -> _FakeReference:
    return _FakeReference({(record.owner_address, record.key): record.value for record in records})


def test_validate_chunk_reads_reference_at_snapshot_block() -> None:
    """Every sampled record should be compared at the snapshot block number."""
    records = [_record(1), _record(2), _record(3)]
    reference = _matching_reference(records)
    validator = SamplingValidator(reference, probability=1.0, rng=_AlwaysSample())

    summary = validator.validate_chunk(_snapshot(), records, "chunk-0")

    assert summary.sampled_count == 3 and summary.record_count == 3 and all(
        block == 42 for _, _, block in reference.reads
    )


def test_validate_chunk_stops_at_first_mismatch() -> None:
    """A mismatching sampled value should fail without reading further records."""
    records = [_record(1), _record(2), _record(3)]
    reference = _matching_reference(records)
    reference.values[(records[1].owner_address, records[1].key)] = b"\xff" * 32
    validator = SamplingValidator(reference, probability=1.0, rng=_AlwaysSample())

    with pytest.raises(ValidationMismatchError, match="#1 in chunk-0"):
        validator.validate_chunk(_snapshot(), records, "chunk-0")

    assert len(reference.reads) == 2


def test_validate_chunk_rejects_empty_chunk() -> None:
    """An empty chunk is a data integrity failure."""
    validator = SamplingValidator(_FakeReference({}), rng=_AlwaysSample())

    with pytest.raises(DataIntegrityError, match="no storage logs"):
        validator.validate_chunk(_snapshot(), [], "chunk-0")


def test_validate_chunk_rejects_record_written_after_snapshot() -> None:
    """Records first written after the snapshot batch are invalid even if unsampled."""
    records = [_record(1), _record(2, origin_batch=11)]
    validator = SamplingValidator(_matching_reference(records), probability=0.0)

    with pytest.raises(DataIntegrityError, match="L1 batch 11"):
        validator.validate_chunk(_snapshot(), records, "chunk-0")


def test_validate_chunk_accepts_record_from_snapshot_batch() -> None:
    """A record first written in the snapshot batch itself is valid."""
    records = [_record(1, origin_batch=10)]
    validator = SamplingValidator(
        _matching_reference(records), probability=1.0, rng=_AlwaysSample()
    )

    summary = validator.validate_chunk(_snapshot(), records, "chunk-0")

    assert summary.sampled_count == 1


def test_validate_chunk_samples_a_nonzero_fraction_of_large_chunks() -> None:
    """Default probability should sample a nonzero subset of a large chunk."""
    records = [_record(index % 256, origin_batch=1) for index in range(1000)]
    reference = _matching_reference(records)
    validator = SamplingValidator(reference, probability=0.1)

    summary = validator.validate_chunk(_snapshot(), records, "chunk-0")

    assert 0 < summary.sampled_count < 1000 and len(reference.reads) == summary.sampled_count
