"""
Ledger client protocol: the network boundary.

Defines the interface the assembler depends on, not a concrete
implementation. Building, simulating and submitting real transactions
belongs to a contract client outside this package; the handshake only
needs these three calls.

Concrete implementations:
    - contract-binding clients (outside this package)
    - FakeLedger (tests)

The protocol has exactly three methods:
    - build(invocation, fee_payer) → Bundle
    - simulate(bundle) → SimulateResult
    - submit(bundle, timeout_seconds=, expiry_ledger=) → SubmitResult

Results are frozen dataclasses. No exceptions for "expected" failures;
those are captured in the result objects.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from sgs_cosign.entry import Bundle, Invocation

# =========================================================================
# Result types
# =========================================================================


@dataclass(frozen=True)
class SimulateResult:
    """Result of simulating a bundle.

    Attributes:
        valid: Whether the bundle passed structural validation.
        bundle: The simulated bundle with its auth entries populated.
            Present when valid is True.
        error_code: Machine-readable reason when valid is False.
        detail: Human-readable diagnostics.
    """

    valid: bool
    bundle: Bundle | None = None
    error_code: str | None = None
    detail: str | None = None

    def __post_init__(self) -> None:
        if self.valid and self.bundle is None:
            raise ValueError("a valid SimulateResult must carry the bundle")


@dataclass(frozen=True)
class SubmitResult:
    """Result of submitting a fully authorized bundle.

    Attributes:
        accepted: Whether the ledger applied the transaction.
        tx_hash: Transaction hash, when the ledger computed one.
        error_code: Ledger result code when accepted is False
            (e.g. "txTOO_LATE"). Classified via errors.classify_submit_error.
        detail: Human-readable diagnostics.
        ledger: Ledger sequence the transaction was applied in.
        return_value: Contract return value, if any.
    """

    accepted: bool
    tx_hash: str | None = None
    error_code: str | None = None
    detail: str | None = None
    ledger: int | None = None
    return_value: Any = None


# =========================================================================
# Protocol
# =========================================================================


@runtime_checkable
class LedgerClient(Protocol):
    """Interface for building, simulating and submitting bundles.

    Methods are async because every call may reach the network.
    """

    async def build(self, invocation: Invocation, fee_payer: str) -> Bundle:
        """Build an unsimulated bundle with ``fee_payer`` as source."""
        ...

    async def simulate(self, bundle: Bundle) -> SimulateResult:
        """Simulate ``bundle``, populating stubs and validating signed entries."""
        ...

    async def submit(
        self,
        bundle: Bundle,
        *,
        timeout_seconds: int,
        expiry_ledger: int,
    ) -> SubmitResult:
        """Sign as fee payer and submit ``bundle``.

        Args:
            bundle: Fully authorized bundle.
            timeout_seconds: How long to wait for the ledger to apply it.
            expiry_ledger: Last ledger in which the transaction may apply.
        """
        ...
