"""Unit tests for snapshot and token registry queries."""

from __future__ import annotations

from typing import Any, Sequence

import pytest

from core.errors import RpcResponseError, SnapshotNotFoundError
from core.types import ChunkRef, SnapshotHandle
from rpc.snapshot_client import SnapshotClient


class _FakeTransport:
    def __init__(self, snapshots: dict[int, dict[str, object]], tokens: list[object]) -> None:
        self.snapshots = snapshots
        self.tokens = tokens
        self.calls: list[tuple[str, list[object]]] = []

    def call(self, method: str, params: Sequence[object] = ()) -> Any:
        self.calls.append((method, list(params)))
        if method == "snapshots_getAllSnapshots":
            return {"snapshotsL1BatchNumbers": sorted(self.snapshots)}
        if method == "snapshots_getSnapshot":
            return self.snapshots.get(int(params[0]))  # type: ignore[arg-type]
        if method == "en_syncTokens":
            return self.tokens
        raise AssertionError(f"unexpected method {method}")


def _snapshot_payload(l1_batch_number: int) -> dict[str, object]:
    return {
        "l1BatchNumber": l1_batch_number,
        "miniblockNumber": "0x2a",
        "storageLogsChunks": [{"filepath": "chunks/a.gz"}, {"filepath": "chunks/b.gz"}],
    }


def test_list_snapshots_returns_generation_ids() -> None:
    """Listing should return every generation id."""
    client = SnapshotClient(_FakeTransport({3: _snapshot_payload(3), 5: _snapshot_payload(5)}, []))

    assert client.list_snapshots() == (3, 5)


def test_list_snapshots_allows_empty_result() -> None:
    """No snapshots is a valid answer at the client layer."""
    client = SnapshotClient(_FakeTransport({}, []))

    assert client.list_snapshots() == ()


def test_get_snapshot_returns_fully_populated_handle() -> None:
    """Snapshot metadata should map onto a handle with ordered chunks."""
    client = SnapshotClient(_FakeTransport({5: _snapshot_payload(5)}, []))

    handle = client.get_snapshot(5)

    assert handle == SnapshotHandle(
        l1_batch_number=5,
        block_number=42,
        chunks=(ChunkRef("chunks/a.gz"), ChunkRef("chunks/b.gz")),
    )


def test_get_snapshot_raises_not_found_for_unknown_generation() -> None:
    """A generation absent from the listing should fail with NotFound."""
    transport = _FakeTransport({5: _snapshot_payload(5)}, [])
    client = SnapshotClient(transport)

    with pytest.raises(SnapshotNotFoundError):
        client.get_snapshot(999999)

    assert 999999 not in client.list_snapshots()


def test_get_snapshot_rejects_chunk_without_filepath() -> None:
    """Malformed chunk metadata should never yield a partial handle."""
    payload = _snapshot_payload(5)
    payload["storageLogsChunks"] = [{"filepath": "chunks/a.gz"}, {"size": 10}]
    client = SnapshotClient(_FakeTransport({5: payload}, []))

    with pytest.raises(RpcResponseError):
        client.get_snapshot(5)


def test_get_token_registry_passes_height_only_when_given() -> None:
    """Height should be sent as the only parameter when provided."""
    tokens = [
        {"l1_address": "0xaa", "l2_address": "0xbb", "symbol": "ETH", "decimals": 18},
    ]
    transport = _FakeTransport({}, tokens)
    client = SnapshotClient(transport)

    head_tokens = client.get_token_registry()
    historic_tokens = client.get_token_registry(at_height=42)

    assert transport.calls == [("en_syncTokens", []), ("en_syncTokens", [42])] and (
        head_tokens == historic_tokens
        and head_tokens[0].attributes == (("decimals", 18), ("symbol", "ETH"))
    )


def test_get_token_registry_rejects_entries_without_addresses() -> None:
    """Token entries must carry both addresses."""
    client = SnapshotClient(_FakeTransport({}, [{"l1_address": "0xaa"}]))

    with pytest.raises(RpcResponseError):
        client.get_token_registry()
