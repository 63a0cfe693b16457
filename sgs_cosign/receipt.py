"""
Handshake receipt: the auditable record of a handshake and its outcome.

A receipt is taken from a ``Handshake`` at any point, usually after it
reaches CONFIRMED or FAILED. It carries no artifacts and no signatures,
only addresses, digests and outcome codes.

Digest includes:
    receipt_version, session_key, state, created_at, and every optional
    field that is present (function_name, fee_payer, signers,
    remote_signer, artifact_digest, tx_hash, error).

Invariants:
    - created_at: RFC3339 UTC (must end with "Z" or "+00:00").
    - artifact_digest: "sha256:" + 64 lowercase hex, when present.
    - error is present iff state is FAILED.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from sgs_cosign.assembler import Handshake, HandshakeState
from sgs_cosign.entry import CredentialKind
from sgs_cosign.errors import SubmissionError
from sgs_cosign.integrity import content_digest

# Schema version: bump when canonical dict shape changes.
RECEIPT_VERSION = "0.1"

_SHA256_DIGEST_RE = re.compile(r"^sha256:[0-9a-f]{64}$")
_RFC3339_UTC_RE = re.compile(
    r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(\.\d+)?(Z|\+00:00)$"
)


def _now_utc() -> str:
    """RFC3339 UTC timestamp for receipt creation."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S+00:00")


@dataclass(frozen=True)
class ReceiptError:
    """Structured error attached to a failed handshake receipt."""

    code: str
    detail: str | None = None
    failure: str | None = None

    def to_dict(self) -> dict[str, object]:
        result: dict[str, object] = {"code": self.code}
        if self.detail is not None:
            result["detail"] = self.detail
        if self.failure is not None:
            result["failure"] = self.failure
        return result

    @classmethod
    def from_exception(cls, exc: BaseException) -> ReceiptError:
        code = getattr(exc, "code", None) or type(exc).__name__
        failure = str(exc.failure) if isinstance(exc, SubmissionError) else None
        return cls(code=str(code), detail=str(exc) or None, failure=failure)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ReceiptError:
        return cls(
            code=data["code"],
            detail=data.get("detail"),
            failure=data.get("failure"),
        )


@dataclass(frozen=True)
class HandshakeReceipt:
    """A content-addressed summary of one handshake.

    Required:
        session_key: The handshake's label.
        state: State when the receipt was taken.
        created_at: RFC3339 UTC timestamp of the receipt.

    Optional:
        function_name: Invocation the bundle calls.
        fee_payer: Fee payer of the bundle.
        signers: Addresses whose entries are signed in the bundle, sorted.
        remote_signer: Address whose entry was imported.
        artifact_digest: Digest of the imported artifact.
        tx_hash: Ledger transaction hash.
        error: Structured error if state is FAILED.
    """

    session_key: str
    state: HandshakeState
    created_at: str
    function_name: str | None = None
    fee_payer: str | None = None
    signers: tuple[str, ...] = ()
    remote_signer: str | None = None
    artifact_digest: str | None = None
    tx_hash: str | None = None
    error: ReceiptError | None = None

    def __post_init__(self) -> None:
        if not self.session_key:
            raise ValueError("session_key must be non-empty")
        if not _RFC3339_UTC_RE.fullmatch(self.created_at):
            raise ValueError(
                f"created_at must be RFC3339 UTC (ending Z or +00:00), "
                f"got: {self.created_at!r}"
            )
        if self.artifact_digest is not None and not _SHA256_DIGEST_RE.fullmatch(
            self.artifact_digest
        ):
            raise ValueError(
                f"artifact_digest must be 'sha256:' + 64 lowercase hex, "
                f"got: {self.artifact_digest!r}"
            )
        if (self.state == HandshakeState.FAILED) != (self.error is not None):
            raise ValueError("error must be present exactly when state is FAILED")

    @classmethod
    def from_handshake(
        cls, handshake: Handshake, *, created_at: str | None = None
    ) -> HandshakeReceipt:
        bundle = handshake.bundle
        signers: tuple[str, ...] = ()
        if bundle is not None:
            signers = tuple(
                sorted(
                    str(e.signer_address)
                    for e in bundle.auth_entries
                    if e.credential_kind == CredentialKind.ADDRESS and e.is_signed
                )
            )
        error = None
        if handshake.state == HandshakeState.FAILED:
            if handshake.error is not None:
                error = ReceiptError.from_exception(handshake.error)
            else:
                error = ReceiptError(code="UNKNOWN")
        return cls(
            session_key=handshake.session_key,
            state=handshake.state,
            created_at=created_at or _now_utc(),
            function_name=bundle.invocation.function_name if bundle else None,
            fee_payer=bundle.fee_payer if bundle else None,
            signers=signers,
            remote_signer=handshake.remote_signer,
            artifact_digest=handshake.artifact_digest,
            tx_hash=handshake.tx_hash,
            error=error,
        )

    def to_canonical_dict(self) -> dict[str, object]:
        """Build the canonical dict used for digest computation.

        None-valued optional fields and empty signers are excluded.
        """
        result: dict[str, object] = {
            "receipt_version": RECEIPT_VERSION,
            "session_key": self.session_key,
            "state": str(self.state),
            "created_at": self.created_at,
        }
        optional: dict[str, object | None] = {
            "function_name": self.function_name,
            "fee_payer": self.fee_payer,
            "remote_signer": self.remote_signer,
            "artifact_digest": self.artifact_digest,
            "tx_hash": self.tx_hash,
        }
        result.update({k: v for k, v in optional.items() if v is not None})
        if self.signers:
            result["signers"] = list(self.signers)
        if self.error is not None:
            result["error"] = self.error.to_dict()
        return result

    def receipt_digest(self) -> str:
        """``sha256:`` digest of the canonical dict."""
        return content_digest(self.to_canonical_dict())
