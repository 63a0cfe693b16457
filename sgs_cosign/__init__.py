"""
Two-party authorization handshake for Soroban contract calls.

Public API:

    Pure layer (no I/O):
        - ``locate_auth_entry()``: find a signer's stub in a bundle.
        - ``encode_artifact()`` / ``decode_artifact()``: portable artifact codec.
        - ``authorization_preimage()``: bytes a signer signs.
        - Data model: ``AuthorizationEntry``, ``Bundle``, ``Invocation``, ``ScVal``.

    Impure layer (network I/O):
        - ``AuthEntrySigner``: stub → signed entry.
        - ``TransactionAssembler`` / ``Handshake``: merge, sign, submit.
        - ``CosignService``: both halves of the handshake.
        - ``TTLCalculator``: duration → expiry ledger.

    Protocols (for dependency injection):
        - ``LedgerClient``: build / simulate / submit.
        - ``SignerCapability``: signs preimages, holds the keys.
        - ``Ed25519SignerCapability``: local ed25519 key implementation.
        - ``LedgerHeightSource``: current ledger sequence.

    start_game:
        - ``prepare_start_game()`` / ``import_start_game()``.
"""

from sgs_cosign.assembler import Handshake, HandshakeState, TransactionAssembler
from sgs_cosign.client import LedgerClient, SimulateResult, SubmitResult
from sgs_cosign.codec import (
    InvocationShape,
    artifact_digest,
    decode_artifact,
    encode_artifact,
)
from sgs_cosign.config import NetworkConfig
from sgs_cosign.entry import AuthorizationEntry, Bundle, CredentialKind, Invocation
from sgs_cosign.errors import (
    AddressMismatch,
    ArgumentShapeMismatch,
    AuthEntryNotFound,
    FunctionMismatch,
    HandshakeBusy,
    HandshakeError,
    InvalidTransition,
    MalformedArtifact,
    SigningRejected,
    SimulationError,
    SubmissionError,
    SubmissionFailure,
    UnsupportedCredential,
    classify_submit_error,
)
from sgs_cosign.keys import Ed25519SignerCapability, verify_entry_signature
from sgs_cosign.locator import find_local_stubs, locate_auth_entry
from sgs_cosign.preimage import authorization_preimage
from sgs_cosign.receipt import HandshakeReceipt
from sgs_cosign.scval import ScVal, ScValType
from sgs_cosign.service import CosignService
from sgs_cosign.signer import AuthEntrySigner, SignerCapability
from sgs_cosign.start_game import (
    START_GAME,
    START_GAME_SHAPE,
    StartGameArgs,
    StartGameParams,
    import_start_game,
    prepare_start_game,
    recover_start_game_params,
)
from sgs_cosign.ttl import LedgerHeightSource, TTLCalculator

__version__ = "0.1.0"

__all__ = [
    "START_GAME",
    "START_GAME_SHAPE",
    "AddressMismatch",
    "ArgumentShapeMismatch",
    "AuthEntryNotFound",
    "AuthEntrySigner",
    "AuthorizationEntry",
    "Bundle",
    "CosignService",
    "CredentialKind",
    "Ed25519SignerCapability",
    "FunctionMismatch",
    "Handshake",
    "HandshakeBusy",
    "HandshakeError",
    "HandshakeReceipt",
    "HandshakeState",
    "InvalidTransition",
    "Invocation",
    "InvocationShape",
    "LedgerClient",
    "LedgerHeightSource",
    "MalformedArtifact",
    "NetworkConfig",
    "ScVal",
    "ScValType",
    "SignerCapability",
    "SigningRejected",
    "SimulateResult",
    "SimulationError",
    "StartGameArgs",
    "StartGameParams",
    "SubmissionError",
    "SubmissionFailure",
    "SubmitResult",
    "TTLCalculator",
    "TransactionAssembler",
    "UnsupportedCredential",
    "artifact_digest",
    "authorization_preimage",
    "classify_submit_error",
    "decode_artifact",
    "encode_artifact",
    "find_local_stubs",
    "import_start_game",
    "locate_auth_entry",
    "prepare_start_game",
    "recover_start_game_params",
    "verify_entry_signature",
]
