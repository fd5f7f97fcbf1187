"""JSON-RPC 2.0 transport over HTTP."""

from __future__ import annotations

import itertools
from typing import Any, Sequence

import requests

from core.errors import RpcResponseError, RpcTransportError
from core.logging_config import get_logger

_LOGGER = get_logger(__name__)


class JsonRpcTransport:
    """Send JSON-RPC requests to one node endpoint."""

    def __init__(
        self,
        url: str,
        timeout_seconds: float,
        session: requests.Session | None = None,
    ) -> None:
        self.url = url
        self._timeout_seconds = timeout_seconds
        self._session = session or requests.Session()
        self._request_ids = itertools.count(1)

    def call(self, method: str, params: Sequence[object] = ()) -> Any:
        """Invoke one RPC method and return its ``result`` field.

        Args:
            method: RPC method name.
            params: Positional parameters.

        Returns:
            Decoded JSON result, possibly ``None``.

        Raises:
            RpcTransportError: If the HTTP exchange fails.
            RpcResponseError: If the node answers with an error or malformed body.
        """
        request_id = next(self._request_ids)
        body = {"jsonrpc": "2.0", "id": request_id, "method": method, "params": list(params)}
        try:
            response = self._session.post(self.url, json=body, timeout=self._timeout_seconds)
            response.raise_for_status()
        except requests.RequestException as error:
            raise RpcTransportError(f"RPC {method} to {self.url} failed: {error}.") from error
        try:
            payload = response.json()
        except ValueError as error:
            raise RpcResponseError(
                f"RPC {method} to {self.url} returned a non-JSON body."
            ) from error
        if not isinstance(payload, dict):
            raise RpcResponseError(
                f"RPC {method} returned {type(payload).__name__}, expected object."
            )
        if payload.get("error") is not None:
            error_body = payload["error"]
            message = error_body.get("message") if isinstance(error_body, dict) else error_body
            raise RpcResponseError(f"RPC {method} to {self.url} returned error: {message}.")
        if "result" not in payload:
            raise RpcResponseError(f"RPC {method} to {self.url} returned no result field.")
        _LOGGER.debug("rpc_call_completed", url=self.url, method=method, request_id=request_id)
        return payload["result"]

    def close(self) -> None:
        """Release pooled HTTP connections."""
        self._session.close()


def parse_quantity(value: object, context: str) -> int:
    """Parse an RPC quantity given as hex string or integer.

    Raises:
        RpcResponseError: If the value is neither.
    """
    if isinstance(value, bool):
        raise RpcResponseError(f"Invalid {context}: expected quantity, got bool.")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value, 16) if value.startswith(("0x", "0X")) else int(value)
        except ValueError as error:
            raise RpcResponseError(f"Invalid {context}: cannot parse '{value}'.") from error
    raise RpcResponseError(f"Invalid {context}: expected quantity, got {type(value).__name__}.")


def parse_hex_bytes(value: object, context: str) -> bytes:
    """Parse a ``0x``-prefixed hex string into bytes.

    Raises:
        RpcResponseError: If the value is not a hex string.
    """
    if not isinstance(value, str) or not value.startswith(("0x", "0X")):
        raise RpcResponseError(
            f"Invalid {context}: expected 0x-prefixed hex string, got {value!r}."
        )
    digits = value[2:]
    if len(digits) % 2:
        digits = "0" + digits
    try:
        return bytes.fromhex(digits)
    except ValueError as error:
        raise RpcResponseError(f"Invalid {context}: '{value}' is not hex.") from error
