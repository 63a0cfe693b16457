"""
Handshake error taxonomy and ledger result classification.

Every step of the handshake either returns a fully valid value or raises
one of the exceptions below. Callers can catch ``HandshakeError`` for
"anything that went wrong in the handshake" or a specific subclass.

Submission failures carry a coarse ``SubmissionFailure`` code derived from
the ledger's transaction result. The mapping is conservative: unknown
result codes become UNKNOWN rather than guessing.

Ledger transaction result codes (Stellar):
    - txSUCCESS: applied
    - txTOO_LATE: past the transaction's max ledger bound
    - txBAD_AUTH: a signature or authorization entry did not verify
    - txINSUFFICIENT_BALANCE: fee payer cannot cover fees
    - txFAILED: an operation (the contract call) failed
"""

from __future__ import annotations

from enum import StrEnum

# =========================================================================
# Submission failure codes
# =========================================================================


class SubmissionFailure(StrEnum):
    """Why a submission did not confirm."""

    EXPIRED = "EXPIRED"
    REJECTED = "REJECTED"
    INSUFFICIENT_BALANCE = "INSUFFICIENT_BALANCE"
    CONTRACT_REJECTED = "CONTRACT_REJECTED"
    BACKEND_UNAVAILABLE = "BACKEND_UNAVAILABLE"
    UNKNOWN = "UNKNOWN"


_RESULT_MAP: dict[str, SubmissionFailure] = {
    "txTOO_LATE": SubmissionFailure.EXPIRED,
    "txBAD_AUTH": SubmissionFailure.REJECTED,
    "txBAD_AUTH_EXTRA": SubmissionFailure.REJECTED,
    "txINSUFFICIENT_BALANCE": SubmissionFailure.INSUFFICIENT_BALANCE,
    "txINSUFFICIENT_FEE": SubmissionFailure.INSUFFICIENT_BALANCE,
    "txFAILED": SubmissionFailure.CONTRACT_REJECTED,
}


def classify_submit_error(error_code: str | None) -> SubmissionFailure:
    """Map a ledger transaction result code to a SubmissionFailure.

    Args:
        error_code: Result code reported by the ledger client
            (e.g. "txTOO_LATE"). None means the ledger never said why.

    Returns:
        SubmissionFailure. UNKNOWN for unrecognized codes, None, and
        "txSUCCESS" (callers should check acceptance first).
    """
    if error_code is None:
        return SubmissionFailure.UNKNOWN
    return _RESULT_MAP.get(error_code, SubmissionFailure.UNKNOWN)


# =========================================================================
# Exceptions
# =========================================================================


class HandshakeError(Exception):
    """Base class for every handshake failure."""

    code = "HANDSHAKE_ERROR"


class AuthEntryNotFound(HandshakeError):
    """No address-credential entry matches the expected signer."""

    code = "NOT_FOUND"


class UnsupportedCredential(HandshakeError):
    """An entry has a credential kind other than the one required."""

    code = "UNSUPPORTED_CREDENTIAL"


class ArgumentShapeMismatch(HandshakeError):
    """An artifact or entry does not match the expected invocation shape."""

    code = "ARGUMENT_SHAPE_MISMATCH"


class FunctionMismatch(ArgumentShapeMismatch):
    """An artifact authorizes a different function than expected."""

    code = "FUNCTION_MISMATCH"


class MalformedArtifact(ArgumentShapeMismatch):
    """An artifact could not be parsed at all."""

    code = "MALFORMED_ARTIFACT"


class SigningRejected(HandshakeError):
    """The signer capability declined or failed."""

    code = "SIGNING_REJECTED"


class SimulationError(HandshakeError):
    """A bundle failed structural validation before or after a merge."""

    code = "SIMULATION_ERROR"


class AddressMismatch(HandshakeError):
    """A remote entry's signer has no stub in the local bundle."""

    code = "ADDRESS_MISMATCH"


class SubmissionError(HandshakeError):
    """The ledger rejected the fully authorized bundle."""

    code = "SUBMISSION_ERROR"

    def __init__(
        self,
        message: str,
        *,
        failure: SubmissionFailure = SubmissionFailure.UNKNOWN,
        tx_hash: str | None = None,
    ) -> None:
        super().__init__(message)
        self.failure = failure
        self.tx_hash = tx_hash


class InvalidTransition(HandshakeError):
    """A step was attempted from a state that does not allow it."""

    code = "INVALID_TRANSITION"


class HandshakeBusy(HandshakeError):
    """Another task is already driving this handshake."""

    code = "HANDSHAKE_BUSY"
