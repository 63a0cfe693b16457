"""
Transport protocol for Soroban JSON-RPC calls.

Defines the seam where concrete HTTP implementations plug in. The RPC
clients depend on this protocol, not on httpx directly, so the transport
can be swapped without editing client logic.

Concrete implementations:
    - HttpxTransport (default, uses httpx.AsyncClient)
    - FakeTransport (tests, returns canned responses)
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from sgs_cosign.config import DEFAULT_SUBMIT_TIMEOUT_SECONDS


@runtime_checkable
class JsonRpcTransport(Protocol):
    """Async transport for JSON-RPC POST requests."""

    async def post_json(self, url: str, payload: dict[str, Any]) -> dict[str, Any]:
        """Send a JSON-RPC request and return the parsed response.

        Args:
            url: The JSON-RPC endpoint URL.
            payload: The JSON-RPC request body (jsonrpc, id, method, params).

        Returns:
            Parsed JSON response as a dict.

        Raises:
            Exception: On transport-level failures (connection refused,
                timeout, TLS error, HTTP error status).
        """
        ...


class HttpxTransport:
    """Default transport using httpx.AsyncClient.

    Lazily imports httpx so importing the package does not require it;
    httpx is only needed when actually making network calls.
    """

    def __init__(self, timeout: float = DEFAULT_SUBMIT_TIMEOUT_SECONDS) -> None:
        self._timeout = timeout

    async def post_json(self, url: str, payload: dict[str, Any]) -> dict[str, Any]:
        """Send JSON-RPC request via httpx."""
        import httpx

        async with httpx.AsyncClient(timeout=self._timeout) as client:
            response = await client.post(
                url,
                json=payload,
                headers={"Content-Type": "application/json"},
            )
            response.raise_for_status()
            result: dict[str, Any] = response.json()
            return result
