"""
Soroban JSON-RPC ledger height source.

Implements ``LedgerHeightSource`` with the ``getLatestLedger`` method.
Uses an injectable transport (JsonRpcTransport) so the HTTP layer can be
swapped for test fakes without changing parsing logic.

No retry loops. Transport exceptions propagate to the caller; malformed
or error responses raise ``RpcError``.

Response shape (Soroban RPC):
    {"jsonrpc": "2.0", "id": 1,
     "result": {"id": "...", "protocolVersion": 22, "sequence": 123456}}
    {"jsonrpc": "2.0", "id": 1,
     "error": {"code": -32601, "message": "method not found"}}
"""

from __future__ import annotations

import itertools
import logging
from typing import Any

from sgs_cosign.config import NetworkConfig
from sgs_cosign.rpc.transport import HttpxTransport, JsonRpcTransport

logger = logging.getLogger(__name__)


class RpcError(Exception):
    """The RPC server answered, but not with a usable result."""


class SorobanRpcLedgerSource:
    """Reports the latest ledger sequence from a Soroban RPC server.

    Args:
        url: The Soroban JSON-RPC endpoint URL.
        transport: Injectable transport for HTTP POST. Defaults to
            HttpxTransport. Pass a FakeTransport for testing.
    """

    def __init__(
        self,
        url: str,
        transport: JsonRpcTransport | None = None,
    ) -> None:
        self._url = url
        self._transport = transport or HttpxTransport()
        self._ids = itertools.count(1)

    @classmethod
    def from_config(
        cls,
        config: NetworkConfig,
        transport: JsonRpcTransport | None = None,
    ) -> SorobanRpcLedgerSource:
        """Source pointed at ``config.rpc_url``."""
        return cls(config.rpc_url, transport)

    @property
    def url(self) -> str:
        """The JSON-RPC endpoint URL."""
        return self._url

    async def latest_ledger(self) -> int:
        """Query ``getLatestLedger`` and return its sequence."""
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": "getLatestLedger",
        }
        response = await self._transport.post_json(self._url, payload)
        sequence = _parse_latest_ledger(response)
        logger.debug("latest ledger from %s: %d", self._url, sequence)
        return sequence


def _parse_latest_ledger(response: dict[str, Any]) -> int:
    """Extract ``result.sequence`` from a getLatestLedger response."""
    error = response.get("error")
    if error is not None:
        if isinstance(error, dict):
            message = error.get("message") or str(error.get("code", "unknown error"))
        else:
            message = str(error)
        raise RpcError(f"getLatestLedger failed: {message}")

    result = response.get("result")
    if not isinstance(result, dict):
        raise RpcError("getLatestLedger response has no result")

    sequence = result.get("sequence")
    if isinstance(sequence, bool) or not isinstance(sequence, int) or sequence < 0:
        raise RpcError(f"getLatestLedger returned invalid sequence: {sequence!r}")
    return sequence
