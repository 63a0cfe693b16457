"""
Soroban JSON-RPC access for the handshake.

    - ``JsonRpcTransport``: injectable transport protocol.
    - ``HttpxTransport``: default httpx-based transport.
    - ``SorobanRpcLedgerSource``: ``LedgerHeightSource`` over getLatestLedger.
"""

from sgs_cosign.rpc.ledger_source import RpcError, SorobanRpcLedgerSource
from sgs_cosign.rpc.transport import HttpxTransport, JsonRpcTransport

__all__ = [
    "HttpxTransport",
    "JsonRpcTransport",
    "RpcError",
    "SorobanRpcLedgerSource",
]
