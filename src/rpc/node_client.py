"""Chain height and storage queries against one node."""

from __future__ import annotations

from core.constants import RPC_BLOCK_NUMBER, RPC_GET_STORAGE_AT, RPC_L1_BATCH_NUMBER
from rpc.snapshot_client import RpcCaller
from rpc.transport import parse_hex_bytes, parse_quantity


class NodeClient:
    """Read head heights and storage slots from a node."""

    def __init__(self, transport: RpcCaller) -> None:
        self._transport = transport

    def block_number(self) -> int:
        """Return the latest L2 block number."""
        return parse_quantity(self._transport.call(RPC_BLOCK_NUMBER), "block number")

    def l1_batch_number(self) -> int:
        """Return the latest sealed L1 batch number."""
        return parse_quantity(self._transport.call(RPC_L1_BATCH_NUMBER), "L1 batch number")

    def storage_at(self, address: bytes, key: bytes, block_number: int) -> bytes:
        """Read one storage slot at a historical block.

        Args:
            address: Account address bytes.
            key: Storage key bytes.
            block_number: Block to read at.

        Returns:
            Raw slot value as returned by the node.
        """
        result = self._transport.call(
            RPC_GET_STORAGE_AT,
            ["0x" + address.hex(), "0x" + key.hex(), hex(block_number)],
        )
        return parse_hex_bytes(result, "storage value")
