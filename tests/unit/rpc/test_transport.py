"""Unit tests for the JSON-RPC transport."""

from __future__ import annotations

from typing import Any

import pytest
import requests

from core.errors import RpcResponseError, RpcTransportError
from rpc.transport import JsonRpcTransport


class _FakeResponse:
    def __init__(self, payload: object, status_code: int = 200) -> None:
        self._payload = payload
        self.status_code = status_code

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self) -> object:
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class _FakeSession:
    def __init__(self, response: _FakeResponse | Exception) -> None:
        self.response = response
        self.requests: list[dict[str, Any]] = []

    def post(self, url: str, json: dict[str, Any], timeout: float) -> _FakeResponse:
        self.requests.append({"url": url, "json": json, "timeout": timeout})
        if isinstance(self.response, Exception):
            raise self.response
        return self.response

    def close(self) -> None:
        return None


def test_call_returns_result_and_sends_jsonrpc_envelope() -> None:
    """Transport should wrap params in a JSON-RPC 2.0 request."""
    session = _FakeSession(_FakeResponse({"jsonrpc": "2.0", "id": 1, "result": "0x10"}))
    transport = JsonRpcTransport("http://node:3050", 5.0, session=session)  # type: ignore[arg-type]

    result = transport.call("eth_blockNumber")

    assert result == "0x10" and session.requests[0]["json"] == {
        "jsonrpc": "2.0",
        "id": 1,
        "method": "eth_blockNumber",
        "params": [],
    }


def test_call_returns_none_result() -> None:
    """A null result is a valid answer."""
    session = _FakeSession(_FakeResponse({"jsonrpc": "2.0", "id": 1, "result": None}))
    transport = JsonRpcTransport("http://node:3050", 5.0, session=session)  # type: ignore[arg-type]

    assert transport.call("snapshots_getSnapshot", [7]) is None


def test_call_raises_response_error_for_error_object() -> None:
    """JSON-RPC error objects should become response errors."""
    session = _FakeSession(
        _FakeResponse({"jsonrpc": "2.0", "id": 1, "error": {"code": -32601, "message": "nope"}})
    )
    transport = JsonRpcTransport("http://node:3050", 5.0, session=session)  # type: ignore[arg-type]

    with pytest.raises(RpcResponseError, match="nope"):
        transport.call("missing_method")


def test_call_raises_transport_error_for_connection_failure() -> None:
    """Network failures should become transport errors."""
    session = _FakeSession(requests.ConnectionError("refused"))
    transport = JsonRpcTransport("http://node:3050", 5.0, session=session)  # type: ignore[arg-type]

    with pytest.raises(RpcTransportError):
        transport.call("eth_blockNumber")


def test_call_raises_transport_error_for_http_status() -> None:
    """HTTP error statuses should become transport errors."""
    session = _FakeSession(_FakeResponse({}, status_code=503))
    transport = JsonRpcTransport("http://node:3050", 5.0, session=session)  # type: ignore[arg-type]

    with pytest.raises(RpcTransportError):
        transport.call("eth_blockNumber")


def test_call_raises_response_error_for_non_json_body() -> None:
    """Bodies that are not JSON should become response errors."""
    session = _FakeSession(_FakeResponse(ValueError("bad json")))
    transport = JsonRpcTransport("http://node:3050", 5.0, session=session)  # type: ignore[arg-type]

    with pytest.raises(RpcResponseError):
        transport.call("eth_blockNumber")
