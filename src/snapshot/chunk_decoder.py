"""Snapshot chunk reader.

This module turns one gzip-compressed storage-logs chunk into typed
storage records. Compressed input is streamed in fixed-size blocks and
the decoded chunk is validated as a whole: any truncation, schema
mismatch, or malformed field rejects the entire chunk.
"""

from __future__ import annotations

import gzip
import zlib
from pathlib import Path
from typing import BinaryIO, Iterable

from google.protobuf.message import DecodeError

from core.constants import ADDRESS_WIDTH_BYTES, DECOMPRESS_BLOCK_SIZE, STORAGE_WORD_WIDTH_BYTES
from core.errors import ChunkDecodeError, ChunkDecompressionError
from core.types import ChunkRef, StorageRecord
from snapshot.chunk_schema import REQUIRED_LOG_FIELDS, StorageLogsChunkMessage

_GZIP_WBITS = 16 + zlib.MAX_WBITS


def resolve_chunk_path(chunk: ChunkRef, home_dir: Path) -> Path:
    """Resolve a chunk locator against the home directory.

    Args:
        chunk: Chunk reference from snapshot metadata.
        home_dir: Base directory for relative locators.

    Returns:
        Absolute chunk file path.
    """
    locator = chunk.locator
    if locator.startswith("file://"):
        locator = locator[len("file://") :]
    path = Path(locator).expanduser()
    if not path.is_absolute():
        path = home_dir / path
    return path


def read_storage_chunk(chunk_path: Path) -> list[StorageRecord]:
    """Decompress and decode one chunk file.

    Args:
        chunk_path: Path to a gzip-compressed chunk.

    Returns:
        Ordered storage records contained in the chunk.

    Raises:
        ChunkDecompressionError: If the file is unreadable or the stream is corrupt.
        ChunkDecodeError: If the payload does not match the chunk schema.
    """
    try:
        with chunk_path.open("rb") as stream:
            payload = decompress_chunk(stream)
    except OSError as error:
        raise ChunkDecompressionError(
            f"Failed to read snapshot chunk at {chunk_path}: {error}."
        ) from error
    return decode_storage_logs(payload, source=str(chunk_path))


def decompress_chunk(stream: BinaryIO, block_size: int = DECOMPRESS_BLOCK_SIZE) -> bytes:
    """Gunzip a binary stream block by block.

    Concatenated gzip members and zero-byte padding between or after
    members are accepted, matching ``gzip`` tooling.

    Args:
        stream: Readable binary stream of compressed bytes.
        block_size: Number of compressed bytes read per step.

    Returns:
        Fully decompressed payload.

    Raises:
        ChunkDecompressionError: If the stream is corrupt or truncated.
    """
    decompressor = zlib.decompressobj(_GZIP_WBITS)
    output = bytearray()
    saw_input = False
    while True:
        block = stream.read(block_size)
        if not block:
            break
        saw_input = True
        while block:
            if decompressor.eof:
                block = block.lstrip(b"\x00")
                if not block:
                    break
                decompressor = zlib.decompressobj(_GZIP_WBITS)
            output.extend(_feed(decompressor, block))
            block = decompressor.unused_data if decompressor.eof else b""
    if not saw_input:
        raise ChunkDecompressionError("Snapshot chunk is empty; expected a gzip stream.")
    output.extend(decompressor.flush())
    if not decompressor.eof:
        raise ChunkDecompressionError(
            "Snapshot chunk gzip stream is truncated: end of stream marker not found."
        )
    return bytes(output)


def _feed(decompressor: "zlib._Decompress", block: bytes) -> bytes:
    try:
        return decompressor.decompress(block)
    except zlib.error as error:
        raise ChunkDecompressionError(f"Corrupt gzip data in snapshot chunk: {error}.") from error


def decode_storage_logs(payload: bytes, source: str = "<memory>") -> list[StorageRecord]:
    """Decode a decompressed chunk payload into storage records.

    Args:
        payload: Serialized ``SnapshotStorageLogsChunk`` message.
        source: Label used in error messages.

    Returns:
        Storage records in payload order.

    Raises:
        ChunkDecodeError: If the payload is malformed or a field violates the schema.
    """
    try:
        message = StorageLogsChunkMessage.FromString(payload)
    except DecodeError as error:
        raise ChunkDecodeError(f"Malformed snapshot chunk {source}: {error}.") from error
    return [_to_record(log, index, source) for index, log in enumerate(message.storage_logs)]


def _to_record(log: object, index: int, source: str) -> StorageRecord:
    missing = [name for name in REQUIRED_LOG_FIELDS if not log.HasField(name)]  # type: ignore[attr-defined]
    if missing:
        raise ChunkDecodeError(
            f"Storage log #{index} in {source} is missing required fields: {', '.join(missing)}."
        )
    owner_address = _fixed_width(log, "account_address", ADDRESS_WIDTH_BYTES, index, source)
    key = _fixed_width(log, "storage_key", STORAGE_WORD_WIDTH_BYTES, index, source)
    value = _fixed_width(log, "storage_value", STORAGE_WORD_WIDTH_BYTES, index, source)
    return StorageRecord(
        owner_address=owner_address,
        key=key,
        value=value,
        origin_batch=int(getattr(log, "l1_batch_number_of_initial_write")),
        sequence_index=int(getattr(log, "enumeration_index")),
    )


def _fixed_width(log: object, field_name: str, width: int, index: int, source: str) -> bytes:
    raw = bytes(getattr(log, field_name))
    if len(raw) != width:
        raise ChunkDecodeError(
            f"Storage log #{index} in {source} has {field_name} of {len(raw)} bytes; "
            f"expected {width}."
        )
    return raw


def encode_storage_logs(records: Iterable[StorageRecord]) -> bytes:
    """Serialize storage records as a ``SnapshotStorageLogsChunk`` payload."""
    message = StorageLogsChunkMessage()
    for record in records:
        log = message.storage_logs.add()
        log.account_address = record.owner_address
        log.storage_key = record.key
        log.storage_value = record.value
        log.l1_batch_number_of_initial_write = record.origin_batch
        log.enumeration_index = record.sequence_index
    return bytes(message.SerializeToString())


def write_storage_chunk(chunk_path: Path, records: Iterable[StorageRecord]) -> Path:
    """Write records as a gzip-compressed chunk file."""
    chunk_path.parent.mkdir(parents=True, exist_ok=True)
    with gzip.open(chunk_path, "wb") as stream:
        stream.write(encode_storage_logs(records))
    return chunk_path
