"""Snapshot and token registry queries.

This module exposes the snapshot listing, snapshot metadata, and token
registry RPC methods as typed calls. Payloads are validated in full
before any model is returned.
"""

from __future__ import annotations

from typing import Any, Mapping, Protocol, Sequence

from core.constants import RPC_GET_SNAPSHOT, RPC_LIST_SNAPSHOTS, RPC_SYNC_TOKENS
from core.errors import RpcResponseError, SnapshotNotFoundError
from core.types import ChunkRef, SnapshotHandle, TokenRecord
from rpc.transport import parse_quantity


class RpcCaller(Protocol):
    """Minimal transport surface used by RPC clients."""

    def call(self, method: str, params: Sequence[object] = ()) -> Any: ...


class SnapshotClient:
    """Query snapshot metadata and token registries from one node."""

    def __init__(self, transport: RpcCaller) -> None:
        self._transport = transport

    def list_snapshots(self) -> tuple[int, ...]:
        """Return the L1 batch numbers of all available snapshot generations."""
        payload = _expect_mapping(self._transport.call(RPC_LIST_SNAPSHOTS), "snapshot list")
        raw_numbers = payload.get("snapshotsL1BatchNumbers")
        if not isinstance(raw_numbers, list):
            raise RpcResponseError("Snapshot list is missing 'snapshotsL1BatchNumbers' array.")
        return tuple(parse_quantity(item, "snapshot L1 batch number") for item in raw_numbers)

    def get_snapshot(self, generation_id: int) -> SnapshotHandle:
        """Fetch metadata of one snapshot generation.

        Args:
            generation_id: L1 batch number identifying the snapshot.

        Returns:
            Fully populated snapshot handle.

        Raises:
            SnapshotNotFoundError: If the node does not know the generation.
            RpcResponseError: If the payload is malformed.
        """
        result = self._transport.call(RPC_GET_SNAPSHOT, [generation_id])
        if result is None:
            raise SnapshotNotFoundError(
                f"Snapshot for L1 batch {generation_id} was not found on the node."
            )
        payload = _expect_mapping(result, f"snapshot {generation_id}")
        raw_chunks = payload.get("storageLogsChunks")
        if not isinstance(raw_chunks, list):
            raise RpcResponseError(
                f"Snapshot {generation_id} is missing 'storageLogsChunks' array."
            )
        chunks = tuple(_parse_chunk(item, generation_id) for item in raw_chunks)
        return SnapshotHandle(
            l1_batch_number=parse_quantity(payload.get("l1BatchNumber"), "snapshot l1BatchNumber"),
            block_number=parse_quantity(payload.get("miniblockNumber"), "snapshot miniblockNumber"),
            chunks=chunks,
        )

    def get_token_registry(self, at_height: int | None = None) -> tuple[TokenRecord, ...]:
        """Fetch all known tokens, in node order.

        Args:
            at_height: Block to read at; ``None`` reads the current head.

        Returns:
            Token records as returned by the node.
        """
        params: list[object] = [] if at_height is None else [at_height]
        result = self._transport.call(RPC_SYNC_TOKENS, params)
        if not isinstance(result, list):
            raise RpcResponseError(
                f"Token registry must be a list, got {type(result).__name__}."
            )
        return tuple(_parse_token(item) for item in result)


def _parse_chunk(item: object, generation_id: int) -> ChunkRef:
    chunk = _expect_mapping(item, f"snapshot {generation_id} chunk")
    filepath = chunk.get("filepath")
    if not isinstance(filepath, str) or not filepath:
        raise RpcResponseError(f"Snapshot {generation_id} chunk is missing 'filepath'.")
    return ChunkRef(locator=filepath)


def _parse_token(item: object) -> TokenRecord:
    token = _expect_mapping(item, "token")
    l1_address = token.get("l1_address")
    l2_address = token.get("l2_address")
    if not isinstance(l1_address, str) or not isinstance(l2_address, str):
        raise RpcResponseError(f"Token entry is missing address fields: {dict(token)}.")
    attributes = tuple(
        sorted(
            (key, _freeze(value))
            for key, value in token.items()
            if key not in {"l1_address", "l2_address"}
        )
    )
    return TokenRecord(l1_address=l1_address, l2_address=l2_address, attributes=attributes)


def _freeze(value: object) -> object:
    if isinstance(value, list):
        return tuple(_freeze(item) for item in value)
    if isinstance(value, dict):
        return tuple(sorted((str(key), _freeze(item)) for key, item in value.items()))
    return value


def _expect_mapping(value: object, context: str) -> Mapping[str, object]:
    if isinstance(value, Mapping):
        return value
    raise RpcResponseError(f"Invalid {context}: expected object, got {type(value).__name__}.")
