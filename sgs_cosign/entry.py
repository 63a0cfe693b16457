"""
Handshake data model: authorization entries, invocations and bundles.

An ``AuthorizationEntry`` is one signer's permission for one invocation.
It starts life as a stub (no signature, no expiry) when a bundle is
built and simulated, and becomes a signed entry through
``AuthEntrySigner``. Signed entries are never mutated: signing returns a
new entry, and replacing an entry in a ``Bundle`` returns a new bundle.

Invariants:
    - ADDRESS entries carry a signer_address; SOURCE_ACCOUNT entries don't.
    - A stub has no signature. A signed entry has both a signature and
      an expiry_ledger.
    - SOURCE_ACCOUNT entries are never signed individually; whoever
      submits the transaction authorizes them.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import IntEnum

from sgs_cosign.scval import U32_MAX, ScVal, validate_address

# =========================================================================
# Credential kind
# =========================================================================


class CredentialKind(IntEnum):
    """How an entry is authorized. The int value is the wire discriminant."""

    ADDRESS = 1
    SOURCE_ACCOUNT = 2


# =========================================================================
# AuthorizationEntry
# =========================================================================


@dataclass(frozen=True)
class AuthorizationEntry:
    """One signer's required or granted permission for one invocation.

    Attributes:
        credential_kind: ADDRESS (signable by a third party) or
            SOURCE_ACCOUNT (authorized by the transaction submitter).
        invocation_name: Function this permission covers.
        invocation_args: Arguments the signer attests to, in order.
        signer_address: Signer strkey. Required for ADDRESS entries only.
        expiry_ledger: Last ledger at which the signature is valid.
            None until signed.
        signature: Opaque signature bytes. None for a stub.
    """

    credential_kind: CredentialKind
    invocation_name: str
    invocation_args: tuple[ScVal, ...] = ()
    signer_address: str | None = None
    expiry_ledger: int | None = None
    signature: bytes | None = None

    def __post_init__(self) -> None:
        match self.credential_kind:
            case CredentialKind.ADDRESS:
                if self.signer_address is None:
                    raise ValueError("ADDRESS entries require a signer_address")
                validate_address(self.signer_address, field_name="signer_address")
            case CredentialKind.SOURCE_ACCOUNT:
                if self.signer_address is not None:
                    raise ValueError("SOURCE_ACCOUNT entries have no signer_address")
                if self.signature is not None:
                    raise ValueError("SOURCE_ACCOUNT entries are never signed")
        if not self.invocation_name:
            raise ValueError("invocation_name must be non-empty")
        if not isinstance(self.invocation_args, tuple):
            object.__setattr__(self, "invocation_args", tuple(self.invocation_args))
        if self.signature is not None:
            if not self.signature:
                raise ValueError("signature must be non-empty when present")
            if self.expiry_ledger is None:
                raise ValueError("signed entries require an expiry_ledger")
        if self.expiry_ledger is not None and not 0 <= self.expiry_ledger <= U32_MAX:
            raise ValueError(
                f"expiry_ledger must be in [0, {U32_MAX}], got: {self.expiry_ledger}"
            )

    @classmethod
    def stub(
        cls,
        signer_address: str,
        invocation_name: str,
        invocation_args: tuple[ScVal, ...] | list[ScVal] = (),
    ) -> AuthorizationEntry:
        """Unsigned ADDRESS entry, as produced by simulation."""
        return cls(
            credential_kind=CredentialKind.ADDRESS,
            invocation_name=invocation_name,
            invocation_args=tuple(invocation_args),
            signer_address=signer_address,
        )

    @classmethod
    def source_account(
        cls,
        invocation_name: str,
        invocation_args: tuple[ScVal, ...] | list[ScVal] = (),
    ) -> AuthorizationEntry:
        """Entry authorized implicitly by the transaction submitter."""
        return cls(
            credential_kind=CredentialKind.SOURCE_ACCOUNT,
            invocation_name=invocation_name,
            invocation_args=tuple(invocation_args),
        )

    @property
    def is_signed(self) -> bool:
        return self.signature is not None

    def with_signature(self, signature: bytes, expiry_ledger: int) -> AuthorizationEntry:
        """Signed copy of this entry. The original is left untouched."""
        return replace(self, signature=signature, expiry_ledger=expiry_ledger)

    def same_invocation(self, other: AuthorizationEntry) -> bool:
        """True if both entries authorize the same name and arguments."""
        return (
            self.invocation_name == other.invocation_name
            and self.invocation_args == other.invocation_args
        )


# =========================================================================
# Invocation
# =========================================================================


@dataclass(frozen=True)
class Invocation:
    """A contract function call with its full argument list."""

    contract_id: str
    function_name: str
    args: tuple[ScVal, ...] = ()

    def __post_init__(self) -> None:
        validate_address(self.contract_id, field_name="contract_id")
        if not self.function_name:
            raise ValueError("function_name must be non-empty")
        if not isinstance(self.args, tuple):
            object.__setattr__(self, "args", tuple(self.args))


# =========================================================================
# Bundle
# =========================================================================


@dataclass(frozen=True)
class Bundle:
    """A not-yet-submitted operation and its authorization entries.

    A bundle belongs to whichever party built or merged it last. Bundles
    are exchanged by rebuilding, never by sharing the object.

    Attributes:
        invocation: The contract call.
        fee_payer: Strkey of the transaction source / fee payer.
        auth_entries: Required authorizations, stubs and signed mixed.
        simulated: True once the ledger client has simulated this bundle.
    """

    invocation: Invocation
    fee_payer: str
    auth_entries: tuple[AuthorizationEntry, ...] = field(default_factory=tuple)
    simulated: bool = False

    def __post_init__(self) -> None:
        validate_address(self.fee_payer, field_name="fee_payer")
        if not isinstance(self.auth_entries, tuple):
            object.__setattr__(self, "auth_entries", tuple(self.auth_entries))

    def with_entry(self, index: int, entry: AuthorizationEntry) -> Bundle:
        """Copy of this bundle with ``auth_entries[index]`` replaced."""
        if not 0 <= index < len(self.auth_entries):
            raise IndexError(f"auth entry index out of range: {index}")
        entries = list(self.auth_entries)
        entries[index] = entry
        return replace(self, auth_entries=tuple(entries))

    @property
    def pending_stubs(self) -> tuple[AuthorizationEntry, ...]:
        """ADDRESS entries that still need a signature."""
        return tuple(
            e
            for e in self.auth_entries
            if e.credential_kind == CredentialKind.ADDRESS and not e.is_signed
        )
