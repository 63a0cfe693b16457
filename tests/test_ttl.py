"""
Tests for TTL calculation and the Soroban RPC ledger height source.

Test plan:
- ledgers_for_minutes: rounds up, zero allowed, negative rejected
- TTLCalculator: latest + ledgers, monotonic in duration
- SorobanRpcLedgerSource: parses getLatestLedger, sends JSON-RPC 2.0
  payload, raises RpcError on error/malformed responses, propagates
  transport exceptions
- HttpxTransport: posts JSON and raises on HTTP error status
"""

import json
from typing import Any

import httpx
import pytest
from pytest_httpx import HTTPXMock

from sgs_cosign.config import NetworkConfig
from sgs_cosign.rpc import HttpxTransport, JsonRpcTransport, RpcError, SorobanRpcLedgerSource
from sgs_cosign.ttl import LedgerHeightSource, TTLCalculator, ledgers_for_minutes

from fakes import FakeLedger

# ---------------------------------------------------------------------------
# Fake transport
# ---------------------------------------------------------------------------


class FakeTransport:
    """Returns canned JSON-RPC responses for testing."""

    def __init__(self, response: dict[str, Any]) -> None:
        self._response = response
        self.calls: list[tuple[str, dict[str, Any]]] = []

    async def post_json(self, url: str, payload: dict[str, Any]) -> dict[str, Any]:
        self.calls.append((url, payload))
        return self._response


class ErrorTransport:
    """Raises an exception on post_json to simulate transport failures."""

    def __init__(self, exc: Exception) -> None:
        self._exc = exc

    async def post_json(self, url: str, payload: dict[str, Any]) -> dict[str, Any]:
        raise self._exc


LATEST_LEDGER = {
    "jsonrpc": "2.0",
    "id": 1,
    "result": {
        "id": "c73c5eac58a441d4eb733c35253ae85f783e018f7be5ef974258fed067aabb36",
        "protocolVersion": 22,
        "sequence": 2539605,
    },
}

RPC_URL = "https://soroban-testnet.stellar.org"


# ---------------------------------------------------------------------------
# Ledger math
# ---------------------------------------------------------------------------


class TestLedgersForMinutes:
    def test_one_minute_is_twelve_ledgers(self) -> None:
        assert ledgers_for_minutes(1) == 12

    def test_sixty_minutes(self) -> None:
        assert ledgers_for_minutes(60) == 720

    def test_rounds_up(self) -> None:
        assert ledgers_for_minutes(0.01) == 1

    def test_zero(self) -> None:
        assert ledgers_for_minutes(0) == 0

    def test_custom_close_time(self) -> None:
        assert ledgers_for_minutes(1, ledger_close_seconds=6) == 10

    def test_negative_rejected(self) -> None:
        with pytest.raises(ValueError):
            ledgers_for_minutes(-1)

    def test_nan_rejected(self) -> None:
        with pytest.raises(ValueError):
            ledgers_for_minutes(float("nan"))


class TestTTLCalculator:
    @pytest.mark.asyncio
    async def test_adds_to_latest_ledger(self) -> None:
        calc = TTLCalculator(FakeLedger(height=1000))
        assert await calc.compute_expiry_ledger(60) == 1720

    @pytest.mark.asyncio
    async def test_zero_duration_is_latest(self) -> None:
        calc = TTLCalculator(FakeLedger(height=1000))
        assert await calc.compute_expiry_ledger(0) == 1000

    @pytest.mark.asyncio
    async def test_monotonic_in_duration(self) -> None:
        calc = TTLCalculator(FakeLedger(height=5000))
        durations = [0, 0.5, 1, 5, 5.01, 60, 1440]
        expiries = [await calc.compute_expiry_ledger(d) for d in durations]
        assert expiries == sorted(expiries)

    @pytest.mark.asyncio
    async def test_follows_ledger_height(self) -> None:
        ledger = FakeLedger(height=1000)
        calc = TTLCalculator(ledger)
        before = await calc.compute_expiry_ledger(5)
        ledger.advance(10)
        assert await calc.compute_expiry_ledger(5) == before + 10

    def test_rejects_bad_close_time(self) -> None:
        with pytest.raises(ValueError):
            TTLCalculator(FakeLedger(), ledger_close_seconds=0)

    def test_fake_ledger_is_height_source(self) -> None:
        assert isinstance(FakeLedger(), LedgerHeightSource)


# ---------------------------------------------------------------------------
# Soroban RPC source
# ---------------------------------------------------------------------------


class TestSorobanRpcLedgerSource:
    @pytest.mark.asyncio
    async def test_parses_sequence(self) -> None:
        source = SorobanRpcLedgerSource(RPC_URL, FakeTransport(LATEST_LEDGER))
        assert await source.latest_ledger() == 2539605

    @pytest.mark.asyncio
    async def test_sends_get_latest_ledger(self) -> None:
        transport = FakeTransport(LATEST_LEDGER)
        source = SorobanRpcLedgerSource(RPC_URL, transport)
        await source.latest_ledger()
        url, payload = transport.calls[0]
        assert url == RPC_URL
        assert payload["jsonrpc"] == "2.0"
        assert payload["method"] == "getLatestLedger"

    @pytest.mark.asyncio
    async def test_request_ids_increase(self) -> None:
        transport = FakeTransport(LATEST_LEDGER)
        source = SorobanRpcLedgerSource(RPC_URL, transport)
        await source.latest_ledger()
        await source.latest_ledger()
        assert transport.calls[1][1]["id"] > transport.calls[0][1]["id"]

    @pytest.mark.asyncio
    async def test_error_response(self) -> None:
        response = {"jsonrpc": "2.0", "id": 1, "error": {"code": -32601, "message": "method not found"}}
        source = SorobanRpcLedgerSource(RPC_URL, FakeTransport(response))
        with pytest.raises(RpcError, match="method not found"):
            await source.latest_ledger()

    @pytest.mark.asyncio
    async def test_missing_result(self) -> None:
        source = SorobanRpcLedgerSource(RPC_URL, FakeTransport({"jsonrpc": "2.0", "id": 1}))
        with pytest.raises(RpcError, match="no result"):
            await source.latest_ledger()

    @pytest.mark.asyncio
    async def test_invalid_sequence(self) -> None:
        response = {"jsonrpc": "2.0", "id": 1, "result": {"sequence": "12"}}
        source = SorobanRpcLedgerSource(RPC_URL, FakeTransport(response))
        with pytest.raises(RpcError, match="invalid sequence"):
            await source.latest_ledger()

    @pytest.mark.asyncio
    async def test_transport_error_propagates(self) -> None:
        source = SorobanRpcLedgerSource(RPC_URL, ErrorTransport(ConnectionError("refused")))
        with pytest.raises(ConnectionError):
            await source.latest_ledger()

    @pytest.mark.asyncio
    async def test_feeds_ttl_calculator(self) -> None:
        calc = TTLCalculator(SorobanRpcLedgerSource(RPC_URL, FakeTransport(LATEST_LEDGER)))
        assert await calc.compute_expiry_ledger(1) == 2539605 + 12

    def test_url_property(self) -> None:
        assert SorobanRpcLedgerSource(RPC_URL, FakeTransport(LATEST_LEDGER)).url == RPC_URL

    def test_fake_transport_matches_protocol(self) -> None:
        assert isinstance(FakeTransport(LATEST_LEDGER), JsonRpcTransport)

    def test_from_config(self) -> None:
        config = NetworkConfig(rpc_url="http://localhost:8000/soroban/rpc")
        source = SorobanRpcLedgerSource.from_config(config, FakeTransport(LATEST_LEDGER))
        assert source.url == "http://localhost:8000/soroban/rpc"

    @pytest.mark.asyncio
    async def test_calculator_from_config(self) -> None:
        calc = TTLCalculator.from_config(FakeLedger(height=1000), NetworkConfig(ledger_close_seconds=6))
        assert await calc.compute_expiry_ledger(1) == 1010


# ---------------------------------------------------------------------------
# httpx transport
# ---------------------------------------------------------------------------


class TestHttpxTransport:
    @pytest.mark.asyncio
    async def test_posts_json(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=RPC_URL, method="POST", json=LATEST_LEDGER)
        source = SorobanRpcLedgerSource(RPC_URL, HttpxTransport(timeout=5))

        assert await source.latest_ledger() == 2539605

        request = httpx_mock.get_request()
        assert request is not None
        assert json.loads(request.content)["method"] == "getLatestLedger"
        assert request.headers["Content-Type"] == "application/json"

    @pytest.mark.asyncio
    async def test_http_error_status(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=RPC_URL, status_code=503, text="unavailable")
        with pytest.raises(httpx.HTTPStatusError):
            await HttpxTransport().post_json(RPC_URL, {"jsonrpc": "2.0", "id": 1})

    @pytest.mark.asyncio
    async def test_connection_error_propagates(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_exception(httpx.ConnectError("refused"), url=RPC_URL)
        source = SorobanRpcLedgerSource(RPC_URL, HttpxTransport())
        with pytest.raises(httpx.ConnectError):
            await source.latest_ledger()
