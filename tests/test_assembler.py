"""
Tests for TransactionAssembler and the handshake state machine.

Test plan:
- Happy path walks IDLE → ... → CONFIRMED in order
- Import guards: unknown signer → AddressMismatch (bundle untouched),
  different args → ArgumentShapeMismatch, unsigned / source-account
  remote entries rejected, tampered signature → SimulationError
- Simulation failure on build → FAILED with no bundle
- Local signing uses the short TTL, remote expiry is kept
- Submit: rejected results classified, transport errors →
  BACKEND_UNAVAILABLE, expired remote entry → EXPIRED
- Out-of-order steps → InvalidTransition without failing the handshake
- Concurrent step on one handshake → HandshakeBusy
- Cancellation mid-submit → FAILED, cancellation propagates
"""

import asyncio

import pytest

from sgs_cosign.assembler import Handshake, HandshakeState, TransactionAssembler
from sgs_cosign.client import SubmitResult
from sgs_cosign.config import NetworkConfig
from sgs_cosign.entry import AuthorizationEntry
from sgs_cosign.errors import (
    AddressMismatch,
    ArgumentShapeMismatch,
    HandshakeBusy,
    InvalidTransition,
    SigningRejected,
    SimulationError,
    SubmissionError,
    SubmissionFailure,
    UnsupportedCredential,
)
from sgs_cosign.scval import ScVal
from sgs_cosign.signer import AuthEntrySigner
from sgs_cosign.ttl import TTLCalculator

from fakes import (
    ADDR_A,
    ADDR_B,
    ADDR_C,
    NETWORK_ID,
    START_HEIGHT,
    BlockingLedger,
    FakeLedger,
    FakeSigner,
    HangingSubmitLedger,
    sign_stub,
    signed_remote_entry,
    start_game_invocation,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _assembler(
    ledger: FakeLedger,
    capability: FakeSigner | None = None,
    config: NetworkConfig | None = None,
) -> TransactionAssembler:
    ttl = TTLCalculator(ledger)
    signer = AuthEntrySigner(capability or FakeSigner(ADDR_B), ttl, NETWORK_ID)
    return TransactionAssembler(ledger, signer, ttl, config or NetworkConfig())


async def _built(ledger: FakeLedger) -> tuple[TransactionAssembler, Handshake]:
    assembler = _assembler(ledger)
    handshake = Handshake(session_key="test")
    await assembler.build(handshake, start_game_invocation())
    return assembler, handshake


async def _imported(ledger: FakeLedger) -> tuple[TransactionAssembler, Handshake]:
    remote = await signed_remote_entry(ledger, start_game_invocation())
    assembler, handshake = await _built(ledger)
    await assembler.import_remote(handshake, remote)
    return assembler, handshake


async def _signed(ledger: FakeLedger) -> tuple[TransactionAssembler, Handshake]:
    assembler, handshake = await _imported(ledger)
    await assembler.sign_local(handshake)
    return assembler, handshake


# ---------------------------------------------------------------------------
# Happy path
# ---------------------------------------------------------------------------


class TestRun:
    @pytest.mark.asyncio
    async def test_walks_every_state(self) -> None:
        ledger = FakeLedger()
        invocation = start_game_invocation()
        remote = await signed_remote_entry(ledger, invocation)
        handshake = Handshake(session_key="s1")

        await _assembler(ledger).run(handshake, invocation, remote)

        assert handshake.state == HandshakeState.CONFIRMED
        assert handshake.history == [
            HandshakeState.IDLE,
            HandshakeState.LOCAL_BUILT,
            HandshakeState.REMOTE_IMPORTED,
            HandshakeState.LOCALLY_SIGNED,
            HandshakeState.SUBMITTED,
            HandshakeState.CONFIRMED,
        ]
        assert handshake.is_terminal
        assert handshake.error is None
        assert handshake.tx_hash is not None
        assert 42 in ledger.sessions

    @pytest.mark.asyncio
    async def test_local_party_pays_fees(self) -> None:
        ledger = FakeLedger()
        _, handshake = await _built(ledger)
        assert ledger.build_calls[-1][1] == ADDR_B
        assert handshake.bundle is not None
        assert handshake.bundle.fee_payer == ADDR_B
        assert handshake.bundle.simulated

    @pytest.mark.asyncio
    async def test_submit_uses_config(self) -> None:
        ledger = FakeLedger()
        config = NetworkConfig(submit_timeout_seconds=12, default_auth_ttl_minutes=1)
        remote = await signed_remote_entry(ledger, start_game_invocation())
        assembler = _assembler(ledger, config=config)
        await assembler.run(Handshake(), start_game_invocation(), remote)
        _, timeout, expiry = ledger.submit_calls[0]
        assert timeout == 12
        assert expiry == START_HEIGHT + 12

    def test_session_keys_are_unique(self) -> None:
        assert Handshake().session_key != Handshake().session_key


# ---------------------------------------------------------------------------
# Import
# ---------------------------------------------------------------------------


class TestImportRemote:
    @pytest.mark.asyncio
    async def test_replaces_remote_stub(self) -> None:
        ledger = FakeLedger()
        remote = await signed_remote_entry(ledger, start_game_invocation())
        assembler, handshake = await _built(ledger)
        bundle = await assembler.import_remote(handshake, remote)
        assert bundle.auth_entries[0] == remote
        assert not bundle.auth_entries[1].is_signed
        assert handshake.remote_signer == ADDR_A
        assert handshake.state == HandshakeState.REMOTE_IMPORTED

    @pytest.mark.asyncio
    async def test_unknown_signer(self) -> None:
        ledger = FakeLedger()
        stranger = await sign_stub(
            ledger, AuthorizationEntry.stub(ADDR_C, "start_game", (ScVal.u32(42), ScVal.i128(10)))
        )
        assembler, handshake = await _built(ledger)
        built = handshake.bundle

        with pytest.raises(AddressMismatch, match=ADDR_C):
            await assembler.import_remote(handshake, stranger)

        assert handshake.state == HandshakeState.FAILED
        assert handshake.bundle is built
        assert all(not e.is_signed for e in built.auth_entries)

    @pytest.mark.asyncio
    async def test_different_arguments(self) -> None:
        ledger = FakeLedger()
        inflated = await sign_stub(
            ledger, AuthorizationEntry.stub(ADDR_A, "start_game", (ScVal.u32(42), ScVal.i128(99)))
        )
        assembler, handshake = await _built(ledger)
        with pytest.raises(ArgumentShapeMismatch):
            await assembler.import_remote(handshake, inflated)
        assert handshake.state == HandshakeState.FAILED
        assert isinstance(handshake.error, ArgumentShapeMismatch)

    @pytest.mark.asyncio
    async def test_unsigned_remote(self) -> None:
        ledger = FakeLedger()
        stub = AuthorizationEntry.stub(ADDR_A, "start_game", (ScVal.u32(42), ScVal.i128(10)))
        assembler, handshake = await _built(ledger)
        with pytest.raises(ArgumentShapeMismatch, match="not signed"):
            await assembler.import_remote(handshake, stub)

    @pytest.mark.asyncio
    async def test_source_account_remote(self) -> None:
        ledger = FakeLedger()
        entry = AuthorizationEntry.source_account("start_game", (ScVal.u32(42), ScVal.i128(10)))
        assembler, handshake = await _built(ledger)
        with pytest.raises(UnsupportedCredential):
            await assembler.import_remote(handshake, entry)

    @pytest.mark.asyncio
    async def test_tampered_signature(self) -> None:
        ledger = FakeLedger()
        remote = await signed_remote_entry(ledger, start_game_invocation())
        forged = remote.with_signature(b"\x00" * 32, int(remote.expiry_ledger or 0))
        assembler, handshake = await _built(ledger)
        with pytest.raises(SimulationError, match="BAD_SIGNATURE"):
            await assembler.import_remote(handshake, forged)
        assert handshake.state == HandshakeState.FAILED

    @pytest.mark.asyncio
    async def test_stretched_expiry_breaks_signature(self) -> None:
        ledger = FakeLedger()
        remote = await signed_remote_entry(ledger, start_game_invocation())
        stretched = remote.with_signature(remote.signature or b"", 10_000)
        assembler, handshake = await _built(ledger)
        with pytest.raises(SimulationError):
            await assembler.import_remote(handshake, stretched)


# ---------------------------------------------------------------------------
# Build and local signing
# ---------------------------------------------------------------------------


class TestBuild:
    @pytest.mark.asyncio
    async def test_simulation_failure(self) -> None:
        ledger = FakeLedger()
        ledger.simulate_error = ("HostError", "contract trapped")
        handshake = Handshake()
        with pytest.raises(SimulationError, match="contract trapped"):
            await _assembler(ledger).build(handshake, start_game_invocation())
        assert handshake.state == HandshakeState.FAILED
        assert handshake.bundle is None
        assert handshake.history == [HandshakeState.IDLE, HandshakeState.FAILED]


class TestSignLocal:
    @pytest.mark.asyncio
    async def test_signs_with_short_ttl(self) -> None:
        ledger = FakeLedger()
        _, handshake = await _signed(ledger)
        remote_entry, local_entry = handshake.bundle.auth_entries
        assert remote_entry.expiry_ledger == START_HEIGHT + 720
        assert local_entry.expiry_ledger == START_HEIGHT + 60
        assert ledger.verify(local_entry)
        assert handshake.bundle.pending_stubs == ()

    @pytest.mark.asyncio
    async def test_signer_declines(self) -> None:
        ledger = FakeLedger()
        remote = await signed_remote_entry(ledger, start_game_invocation())
        assembler = _assembler(ledger, FakeSigner(ADDR_B, decline=True))
        handshake = Handshake()
        await assembler.build(handshake, start_game_invocation())
        await assembler.import_remote(handshake, remote)
        with pytest.raises(SigningRejected):
            await assembler.sign_local(handshake)
        assert handshake.state == HandshakeState.FAILED


# ---------------------------------------------------------------------------
# Submit
# ---------------------------------------------------------------------------


class TestSubmit:
    @pytest.mark.asyncio
    async def test_confirmed(self) -> None:
        ledger = FakeLedger()
        assembler, handshake = await _signed(ledger)
        result = await assembler.submit(handshake)
        assert result.accepted
        assert handshake.submit_result is result
        assert handshake.state == HandshakeState.CONFIRMED

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("error_code", "failure"),
        [
            ("txINSUFFICIENT_BALANCE", SubmissionFailure.INSUFFICIENT_BALANCE),
            ("txBAD_AUTH", SubmissionFailure.REJECTED),
            ("txFAILED", SubmissionFailure.CONTRACT_REJECTED),
            ("txSOMETHING_NEW", SubmissionFailure.UNKNOWN),
        ],
    )
    async def test_rejected(self, error_code: str, failure: SubmissionFailure) -> None:
        ledger = FakeLedger()
        assembler, handshake = await _signed(ledger)
        ledger.submit_result = SubmitResult(
            accepted=False, tx_hash="ab" * 32, error_code=error_code, detail="nope"
        )
        with pytest.raises(SubmissionError, match=error_code) as exc_info:
            await assembler.submit(handshake)
        assert exc_info.value.failure == failure
        assert exc_info.value.tx_hash == "ab" * 32
        assert handshake.state == HandshakeState.FAILED
        assert handshake.history[-2:] == [HandshakeState.SUBMITTED, HandshakeState.FAILED]
        assert handshake.tx_hash == "ab" * 32

    @pytest.mark.asyncio
    async def test_transport_failure(self) -> None:
        ledger = FakeLedger()
        assembler, handshake = await _signed(ledger)
        boom = ConnectionError("rpc down")
        ledger.submit_should_raise = boom
        with pytest.raises(SubmissionError) as exc_info:
            await assembler.submit(handshake)
        assert exc_info.value.failure == SubmissionFailure.BACKEND_UNAVAILABLE
        assert exc_info.value.__cause__ is boom
        assert handshake.state == HandshakeState.FAILED
        assert handshake.submit_result is None

    @pytest.mark.asyncio
    async def test_expired_remote_entry(self) -> None:
        ledger = FakeLedger()
        assembler, handshake = await _imported(ledger)
        ledger.advance(721)
        await assembler.sign_local(handshake)
        with pytest.raises(SubmissionError) as exc_info:
            await assembler.submit(handshake)
        assert exc_info.value.failure == SubmissionFailure.EXPIRED
        assert ledger.sessions == {}


# ---------------------------------------------------------------------------
# State guards
# ---------------------------------------------------------------------------


class TestStateGuards:
    @pytest.mark.asyncio
    async def test_out_of_order_step(self) -> None:
        ledger = FakeLedger()
        handshake = Handshake()
        with pytest.raises(InvalidTransition):
            await _assembler(ledger).sign_local(handshake)
        assert handshake.state == HandshakeState.IDLE
        assert handshake.error is None

    @pytest.mark.asyncio
    async def test_failed_handshake_is_final(self) -> None:
        ledger = FakeLedger()
        ledger.simulate_error = ("HostError", "trap")
        assembler = _assembler(ledger)
        handshake = Handshake()
        with pytest.raises(SimulationError):
            await assembler.build(handshake, start_game_invocation())
        ledger.simulate_error = None
        with pytest.raises(InvalidTransition):
            await assembler.build(handshake, start_game_invocation())
        assert isinstance(handshake.error, SimulationError)

    def test_direct_transition_checked(self) -> None:
        handshake = Handshake()
        with pytest.raises(InvalidTransition):
            handshake.transition(HandshakeState.CONFIRMED)

    @pytest.mark.asyncio
    async def test_concurrent_step_is_busy(self) -> None:
        ledger = BlockingLedger()
        assembler = _assembler(ledger)
        handshake = Handshake()

        first = asyncio.create_task(assembler.build(handshake, start_game_invocation()))
        await asyncio.sleep(0)

        with pytest.raises(HandshakeBusy):
            await assembler.build(handshake, start_game_invocation())
        assert handshake.state == HandshakeState.IDLE

        ledger.release.set()
        await first
        assert handshake.state == HandshakeState.LOCAL_BUILT
        assert len(ledger.build_calls) == 1

    @pytest.mark.asyncio
    async def test_cancelled_submit_fails_handshake(self) -> None:
        ledger = HangingSubmitLedger()
        assembler, handshake = await _signed(ledger)

        task = asyncio.create_task(assembler.submit(handshake))
        await ledger.submit_started.wait()
        assert handshake.state == HandshakeState.SUBMITTED

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert handshake.state == HandshakeState.FAILED
        assert handshake.is_terminal
        assert isinstance(handshake.error, asyncio.CancelledError)
        with pytest.raises(InvalidTransition):
            await assembler.submit(handshake)

    @pytest.mark.asyncio
    async def test_separate_handshakes_run_concurrently(self) -> None:
        ledger = FakeLedger()
        invocation = start_game_invocation()
        remote = await signed_remote_entry(ledger, invocation)
        assembler = _assembler(ledger)
        first, second = Handshake(), Handshake()
        await asyncio.gather(
            assembler.build(first, invocation),
            assembler.build(second, invocation),
        )
        await assembler.import_remote(first, remote)
        assert second.state == HandshakeState.LOCAL_BUILT
        assert second.bundle is not None
        assert not second.bundle.auth_entries[0].is_signed
