"""
Auth entry signing: the secrets boundary.

``SignerCapability`` is the interface a wallet (or any key holder)
implements. It receives the canonical preimage and returns raw signature
bytes; private keys never cross this boundary. A capability may decline
by returning None.

``AuthEntrySigner`` turns a stub into a signed entry:

    stub → expiry ledger (TTL lookup) → preimage → capability → signed copy

Concrete capabilities:
    - wallet adapters (outside this package)
    - FakeSigner (tests)
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Protocol, runtime_checkable

from sgs_cosign.config import MULTI_SIG_AUTH_TTL_MINUTES
from sgs_cosign.entry import AuthorizationEntry, CredentialKind
from sgs_cosign.errors import SigningRejected, UnsupportedCredential
from sgs_cosign.preimage import authorization_preimage
from sgs_cosign.ttl import TTLCalculator

logger = logging.getLogger(__name__)


@runtime_checkable
class SignerCapability(Protocol):
    """Interface for signing authorization preimages.

    Properties:
        address: Strkey of the account this capability signs for.
    """

    @property
    def address(self) -> str:
        """Strkey of the signing account."""
        ...

    async def sign_auth_entry(
        self,
        preimage: bytes,
        *,
        network_id: bytes,
        signer_address: str,
    ) -> bytes | None:
        """Sign an authorization preimage.

        Args:
            preimage: Output of ``authorization_preimage()``.
            network_id: 32-byte network id the preimage is bound to.
            signer_address: Address the signature is requested for.

        Returns:
            Raw signature bytes, or None if the holder declined.
        """
        ...


class AuthEntrySigner:
    """Signs authorization stubs through an injected capability.

    Args:
        capability: The key holder's signing capability.
        ttl: Calculator used to derive the entry's expiry ledger.
        network_id: 32-byte network id mixed into the preimage.
    """

    def __init__(
        self,
        capability: SignerCapability,
        ttl: TTLCalculator,
        network_id: bytes,
    ) -> None:
        self._capability = capability
        self._ttl = ttl
        self._network_id = network_id

    @property
    def address(self) -> str:
        return self._capability.address

    async def sign(
        self,
        stub: AuthorizationEntry,
        *,
        ttl_minutes: float = MULTI_SIG_AUTH_TTL_MINUTES,
    ) -> AuthorizationEntry:
        """Produce a signed copy of ``stub``.

        Raises:
            UnsupportedCredential: If the stub is not an ADDRESS entry.
            ValueError: If the stub is already signed.
            SigningRejected: If the capability declines or raises.
        """
        match stub.credential_kind:
            case CredentialKind.ADDRESS:
                pass
            case CredentialKind.SOURCE_ACCOUNT:
                raise UnsupportedCredential(
                    "SOURCE_ACCOUNT entries are authorized by the submitter, not signed"
                )
        if stub.is_signed:
            raise ValueError(f"auth entry for {stub.signer_address} is already signed")

        expiry_ledger = await self._ttl.compute_expiry_ledger(ttl_minutes)
        unsigned = replace(stub, expiry_ledger=expiry_ledger)
        preimage = authorization_preimage(unsigned, self._network_id)

        logger.debug(
            "signing %s auth entry for %s (expires at ledger %d)",
            stub.invocation_name, stub.signer_address, expiry_ledger,
        )
        try:
            signature = await self._capability.sign_auth_entry(
                preimage,
                network_id=self._network_id,
                signer_address=str(stub.signer_address),
            )
        except Exception as exc:
            raise SigningRejected(
                f"signer failed for {stub.signer_address}: {exc}"
            ) from exc

        if not signature:
            raise SigningRejected(f"signer declined for {stub.signer_address}")

        return stub.with_signature(bytes(signature), expiry_ledger)
