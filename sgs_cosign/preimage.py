"""
Authorization preimage: the exact bytes a signer signs for an entry.

Layout (big-endian):
    u16 + bytes  domain tag "sgs-cosign/auth-entry/v1"
    32 bytes     network id (SHA256 of the network passphrase)
    56 bytes     signer address (ASCII strkey)
    u32          expiry ledger
    u16 + bytes  invocation name (UTF-8)
    u16 + args   invocation arguments (see wire.py)

The preimage covers the signer, the expiry and the attested arguments,
so changing any of them invalidates the signature. The network id keeps
a testnet signature from being replayed on another network.
"""

from __future__ import annotations

from sgs_cosign.entry import AuthorizationEntry, CredentialKind
from sgs_cosign.errors import UnsupportedCredential
from sgs_cosign.wire import Writer

PREIMAGE_DOMAIN = b"sgs-cosign/auth-entry/v1"

NETWORK_ID_LENGTH = 32


def authorization_preimage(entry: AuthorizationEntry, network_id: bytes) -> bytes:
    """Build the canonical preimage for an ADDRESS entry.

    The entry's own signature, if any, is not part of the preimage, so
    the same bytes are produced before and after signing.

    Raises:
        UnsupportedCredential: If the entry is not an ADDRESS entry.
        ValueError: If the entry has no expiry_ledger or the network id
            is not 32 bytes.
    """
    if entry.credential_kind != CredentialKind.ADDRESS:
        raise UnsupportedCredential(
            f"only ADDRESS entries have a preimage, got {entry.credential_kind.name}"
        )
    if entry.expiry_ledger is None:
        raise ValueError("expiry_ledger must be set before building a preimage")
    if len(network_id) != NETWORK_ID_LENGTH:
        raise ValueError(
            f"network_id must be {NETWORK_ID_LENGTH} bytes, got {len(network_id)}"
        )

    w = Writer()
    w.short_bytes(PREIMAGE_DOMAIN)
    w.raw(network_id)
    w.raw(str(entry.signer_address).encode("ascii"))
    w.u32(entry.expiry_ledger)
    w.short_bytes(entry.invocation_name.encode("utf-8"))
    w.scvals(entry.invocation_args)
    return w.getvalue()
