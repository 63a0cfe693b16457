"""
Transaction assembler: merges a counterparty's signed entry into a
locally rebuilt bundle, signs what is left and submits.

Each handshake walks one state machine:

    IDLE → LOCAL_BUILT → REMOTE_IMPORTED → LOCALLY_SIGNED → SUBMITTED
         → CONFIRMED | FAILED

Any non-terminal state may also move to FAILED. Terminal states are
final: a failed handshake is restarted with a new ``Handshake`` and a
freshly built bundle, because expiry ledgers and simulated state may be
stale.

Steps:
    - ``build()``: build + simulate with the local party as fee payer.
    - ``import_remote()``: replace the remote signer's stub with the
      decoded signed entry, then re-simulate.
    - ``sign_local()``: sign every remaining stub owned by the local signer.
    - ``submit()``: hand the bundle to the ledger client.

A step either leaves the handshake in its next state with a fully valid
bundle, or moves it to FAILED, records the error and re-raises it. The
bundle is replaced, never mutated, so a failed step cannot leave a
half-merged bundle behind.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from enum import StrEnum

from sgs_cosign.client import LedgerClient, SimulateResult, SubmitResult
from sgs_cosign.config import NetworkConfig
from sgs_cosign.entry import AuthorizationEntry, Bundle, CredentialKind, Invocation
from sgs_cosign.errors import (
    AddressMismatch,
    ArgumentShapeMismatch,
    AuthEntryNotFound,
    HandshakeBusy,
    InvalidTransition,
    SimulationError,
    SubmissionError,
    SubmissionFailure,
    UnsupportedCredential,
    classify_submit_error,
)
from sgs_cosign.locator import find_local_stubs, locate_auth_entry
from sgs_cosign.signer import AuthEntrySigner
from sgs_cosign.ttl import TTLCalculator

logger = logging.getLogger(__name__)


# =========================================================================
# State machine
# =========================================================================


class HandshakeState(StrEnum):
    """Where a handshake is in the assemble-and-submit pipeline."""

    IDLE = "IDLE"
    LOCAL_BUILT = "LOCAL_BUILT"
    REMOTE_IMPORTED = "REMOTE_IMPORTED"
    LOCALLY_SIGNED = "LOCALLY_SIGNED"
    SUBMITTED = "SUBMITTED"
    CONFIRMED = "CONFIRMED"
    FAILED = "FAILED"


_TRANSITIONS: dict[HandshakeState, frozenset[HandshakeState]] = {
    HandshakeState.IDLE: frozenset(
        {HandshakeState.LOCAL_BUILT, HandshakeState.FAILED}
    ),
    HandshakeState.LOCAL_BUILT: frozenset(
        {HandshakeState.REMOTE_IMPORTED, HandshakeState.FAILED}
    ),
    HandshakeState.REMOTE_IMPORTED: frozenset(
        {HandshakeState.LOCALLY_SIGNED, HandshakeState.FAILED}
    ),
    HandshakeState.LOCALLY_SIGNED: frozenset(
        {HandshakeState.SUBMITTED, HandshakeState.FAILED}
    ),
    HandshakeState.SUBMITTED: frozenset(
        {HandshakeState.CONFIRMED, HandshakeState.FAILED}
    ),
    HandshakeState.CONFIRMED: frozenset(),
    HandshakeState.FAILED: frozenset(),
}

TERMINAL_STATES = frozenset({HandshakeState.CONFIRMED, HandshakeState.FAILED})


@dataclass
class Handshake:
    """One attempt at assembling and submitting a co-signed bundle.

    A handshake is owned by the task driving it. Its bundle is never
    shared with another handshake.

    Attributes:
        session_key: Caller-chosen label for logs and receipts.
        state: Current state.
        bundle: Latest valid bundle, None until built.
        remote_signer: Address whose signed entry was imported.
        artifact_digest: Digest of the imported artifact, if any.
        submit_result: Ledger result once submitted.
        error: The error that moved the handshake to FAILED.
        history: Every state the handshake has been in, in order.
    """

    session_key: str = field(default_factory=lambda: uuid.uuid4().hex)
    state: HandshakeState = HandshakeState.IDLE
    bundle: Bundle | None = None
    remote_signer: str | None = None
    artifact_digest: str | None = None
    submit_result: SubmitResult | None = None
    error: BaseException | None = None
    history: list[HandshakeState] = field(
        default_factory=lambda: [HandshakeState.IDLE]
    )
    _lock: asyncio.Lock = field(
        default_factory=asyncio.Lock, init=False, repr=False, compare=False
    )

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def tx_hash(self) -> str | None:
        return self.submit_result.tx_hash if self.submit_result else None

    def transition(self, new_state: HandshakeState) -> None:
        """Move to ``new_state``.

        Raises:
            InvalidTransition: If the move is not allowed from the current state.
        """
        if new_state not in _TRANSITIONS[self.state]:
            raise InvalidTransition(
                f"handshake {self.session_key}: cannot go from "
                f"{self.state} to {new_state}"
            )
        logger.info(
            "handshake %s: %s -> %s", self.session_key, self.state, new_state
        )
        self.state = new_state
        self.history.append(new_state)

    def fail(self, error: BaseException) -> None:
        """Record ``error`` and move to FAILED."""
        self.error = error
        logger.info(
            "handshake %s failed in %s: %s", self.session_key, self.state, error
        )
        self.transition(HandshakeState.FAILED)


# =========================================================================
# TransactionAssembler
# =========================================================================


class TransactionAssembler:
    """Drives handshakes through build, merge, local signing and submit.

    Args:
        client: Ledger client used to build, simulate and submit.
        signer: Signs the local party's stubs.
        ttl: Computes the transaction-level expiry ledger at submit time.
        config: Network configuration (TTLs, submit timeout).
    """

    def __init__(
        self,
        client: LedgerClient,
        signer: AuthEntrySigner,
        ttl: TTLCalculator,
        config: NetworkConfig,
    ) -> None:
        self._client = client
        self._signer = signer
        self._ttl = ttl
        self._config = config

    @property
    def local_address(self) -> str:
        """The local party's address, used as fee payer."""
        return self._signer.address

    @asynccontextmanager
    async def step(
        self, handshake: Handshake, expected: HandshakeState
    ) -> AsyncIterator[None]:
        """Run one step exclusively, failing the handshake on any error.

        Cancellation also fails the handshake before it propagates.

        Raises:
            HandshakeBusy: If another task is inside a step of this handshake.
            InvalidTransition: If the handshake is not in ``expected``.
        """
        if handshake._lock.locked():
            raise HandshakeBusy(f"handshake {handshake.session_key} is busy")
        async with handshake._lock:
            if handshake.state != expected:
                raise InvalidTransition(
                    f"handshake {handshake.session_key} is {handshake.state}, "
                    f"expected {expected}"
                )
            try:
                yield
            except (Exception, asyncio.CancelledError) as exc:
                if not handshake.is_terminal:
                    handshake.fail(exc)
                raise

    # -----------------------------------------------------------------
    # Steps
    # -----------------------------------------------------------------

    async def build(self, handshake: Handshake, invocation: Invocation) -> Bundle:
        """IDLE → LOCAL_BUILT: build and simulate with the local fee payer."""
        async with self.step(handshake, HandshakeState.IDLE):
            bundle = await self._client.build(invocation, self.local_address)
            result = await self._client.simulate(bundle)
            handshake.bundle = _require_valid(result, "build")
            handshake.transition(HandshakeState.LOCAL_BUILT)
            logger.debug(
                "handshake %s: built %s with %d auth entries",
                handshake.session_key,
                invocation.function_name,
                len(handshake.bundle.auth_entries),
            )
            return handshake.bundle

    async def import_remote(
        self, handshake: Handshake, remote_entry: AuthorizationEntry
    ) -> Bundle:
        """LOCAL_BUILT → REMOTE_IMPORTED: merge a signed remote entry.

        Raises:
            UnsupportedCredential: If the remote entry is not an ADDRESS entry.
            ArgumentShapeMismatch: If the remote entry is unsigned or does not
                authorize exactly what the local stub requires.
            AddressMismatch: If no stub in the local bundle belongs to the
                remote signer.
            SimulationError: If the merged bundle fails re-simulation.
        """
        async with self.step(handshake, HandshakeState.LOCAL_BUILT):
            bundle = _current_bundle(handshake)
            match remote_entry.credential_kind:
                case CredentialKind.ADDRESS:
                    pass
                case CredentialKind.SOURCE_ACCOUNT:
                    raise UnsupportedCredential(
                        "remote entry must use ADDRESS credentials"
                    )
            if not remote_entry.is_signed:
                raise ArgumentShapeMismatch("remote entry is not signed")

            address = str(remote_entry.signer_address)
            try:
                index, stub = locate_auth_entry(bundle.auth_entries, address)
            except AuthEntryNotFound as exc:
                raise AddressMismatch(
                    f"no auth stub for {address} in the rebuilt bundle"
                ) from exc
            if stub.is_signed:
                raise AddressMismatch(f"auth entry for {address} is already signed")
            if not stub.same_invocation(remote_entry):
                raise ArgumentShapeMismatch(
                    f"remote entry for {address} does not authorize the rebuilt "
                    f"invocation arguments"
                )

            result = await self._client.simulate(bundle.with_entry(index, remote_entry))
            handshake.bundle = _require_valid(result, "merge")
            handshake.remote_signer = address
            handshake.transition(HandshakeState.REMOTE_IMPORTED)
            return handshake.bundle

    async def sign_local(self, handshake: Handshake) -> Bundle:
        """REMOTE_IMPORTED → LOCALLY_SIGNED: sign the local party's stubs."""
        async with self.step(handshake, HandshakeState.REMOTE_IMPORTED):
            bundle = _current_bundle(handshake)
            indices = find_local_stubs(bundle.auth_entries, [self.local_address])
            for index in indices:
                signed = await self._signer.sign(
                    bundle.auth_entries[index],
                    ttl_minutes=self._config.default_auth_ttl_minutes,
                )
                bundle = bundle.with_entry(index, signed)
            logger.debug(
                "handshake %s: signed %d local auth entries",
                handshake.session_key, len(indices),
            )
            handshake.bundle = bundle
            handshake.transition(HandshakeState.LOCALLY_SIGNED)
            return bundle

    async def submit(self, handshake: Handshake) -> SubmitResult:
        """LOCALLY_SIGNED → SUBMITTED → CONFIRMED | FAILED.

        Raises:
            SubmissionError: If the ledger rejects the bundle or cannot be
                reached. The handshake is FAILED.
        """
        async with self.step(handshake, HandshakeState.LOCALLY_SIGNED):
            bundle = _current_bundle(handshake)
            expiry_ledger = await self._ttl.compute_expiry_ledger(
                self._config.default_auth_ttl_minutes
            )
            handshake.transition(HandshakeState.SUBMITTED)
            try:
                result = await self._client.submit(
                    bundle,
                    timeout_seconds=self._config.submit_timeout_seconds,
                    expiry_ledger=expiry_ledger,
                )
            except Exception as exc:
                raise SubmissionError(
                    f"submit failed: {exc}",
                    failure=SubmissionFailure.BACKEND_UNAVAILABLE,
                ) from exc

            handshake.submit_result = result
            if not result.accepted:
                parts = [f"error_code={result.error_code}"] if result.error_code else []
                if result.detail:
                    parts.append(result.detail)
                raise SubmissionError(
                    "; ".join(parts) or "submission rejected",
                    failure=classify_submit_error(result.error_code),
                    tx_hash=result.tx_hash,
                )

            handshake.transition(HandshakeState.CONFIRMED)
            return result

    async def run(
        self,
        handshake: Handshake,
        invocation: Invocation,
        remote_entry: AuthorizationEntry,
    ) -> Handshake:
        """Drive a fresh handshake from IDLE to CONFIRMED."""
        await self.build(handshake, invocation)
        await self.import_remote(handshake, remote_entry)
        await self.sign_local(handshake)
        await self.submit(handshake)
        return handshake


# =========================================================================
# Helpers
# =========================================================================


def _current_bundle(handshake: Handshake) -> Bundle:
    if handshake.bundle is None:
        raise InvalidTransition(f"handshake {handshake.session_key} has no bundle")
    return handshake.bundle


def _require_valid(result: SimulateResult, stage: str) -> Bundle:
    """Return the simulated bundle or raise SimulationError."""
    if not result.valid or result.bundle is None:
        parts = [f"simulation failed after {stage}"]
        if result.error_code:
            parts.append(f"error_code={result.error_code}")
        if result.detail:
            parts.append(result.detail)
        raise SimulationError("; ".join(parts))
    return result.bundle
