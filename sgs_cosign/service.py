"""
Co-signing service: both halves of the two-party handshake.

``CosignService`` is constructed explicitly with its collaborators
(ledger client, signer capability, TTL calculator, network config), so
each party runs its own instance and tests can inject fakes.

Party A (initiator):
    ``export_authorization()`` builds the invocation with the counterparty
    as fee payer, signs its own stub and returns a portable artifact.

Party B (completer):
    ``complete_authorization()`` decodes the artifact, rebuilds the
    invocation from the decoded values, merges, signs and submits.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from sgs_cosign.assembler import Handshake, HandshakeState, TransactionAssembler
from sgs_cosign.client import LedgerClient
from sgs_cosign.codec import (
    InvocationShape,
    artifact_digest,
    decode_artifact,
    encode_artifact,
)
from sgs_cosign.config import NetworkConfig
from sgs_cosign.entry import AuthorizationEntry, Invocation
from sgs_cosign.errors import SimulationError
from sgs_cosign.locator import locate_auth_entry
from sgs_cosign.receipt import HandshakeReceipt
from sgs_cosign.signer import AuthEntrySigner, SignerCapability
from sgs_cosign.ttl import TTLCalculator

logger = logging.getLogger(__name__)

# Rebuilds the full invocation from the counterparty's decoded entry.
RebuildFn = Callable[[AuthorizationEntry], Invocation]


class CosignService:
    """One party's view of the co-signing handshake.

    Args:
        client: Ledger client for build / simulate / submit.
        capability: This party's signing capability.
        ttl: TTL calculator backed by the current ledger height.
        config: Network configuration. Defaults to testnet.
    """

    def __init__(
        self,
        client: LedgerClient,
        capability: SignerCapability,
        ttl: TTLCalculator,
        config: NetworkConfig | None = None,
    ) -> None:
        self._client = client
        self._config = config or NetworkConfig()
        self._signer = AuthEntrySigner(capability, ttl, self._config.network_id)
        self._assembler = TransactionAssembler(client, self._signer, ttl, self._config)

    @property
    def address(self) -> str:
        """This party's address."""
        return self._signer.address

    @property
    def config(self) -> NetworkConfig:
        return self._config

    @property
    def assembler(self) -> TransactionAssembler:
        return self._assembler

    # -----------------------------------------------------------------
    # Party A
    # -----------------------------------------------------------------

    async def export_authorization(
        self,
        invocation: Invocation,
        *,
        fee_payer: str,
        ttl_minutes: float | None = None,
    ) -> str:
        """Sign this party's entry for ``invocation`` and export it.

        Args:
            invocation: The full contract call, as both parties will build it.
            fee_payer: The counterparty, who will submit the transaction.
            ttl_minutes: Validity of the exported signature. Defaults to
                the config's multi-sig TTL.

        Returns:
            Portable artifact text.

        Raises:
            SimulationError: If the built bundle does not simulate.
            AuthEntryNotFound: If the bundle has no stub for this party.
            SigningRejected: If this party's signer declines.
        """
        if ttl_minutes is None:
            ttl_minutes = self._config.multi_sig_auth_ttl_minutes

        bundle = await self._client.build(invocation, fee_payer)
        result = await self._client.simulate(bundle)
        if not result.valid or result.bundle is None:
            raise SimulationError(
                f"simulation failed for {invocation.function_name}: "
                f"{result.error_code or 'invalid'}"
                + (f"; {result.detail}" if result.detail else "")
            )
        logger.debug(
            "found %d auth entries for %s",
            len(result.bundle.auth_entries), invocation.function_name,
        )

        _, stub = locate_auth_entry(result.bundle.auth_entries, self.address)
        signed = await self._signer.sign(stub, ttl_minutes=ttl_minutes)
        artifact = encode_artifact(signed)
        logger.info(
            "exported %s authorization for %s (%s, expires at ledger %s)",
            invocation.function_name,
            self.address,
            artifact_digest(artifact),
            signed.expiry_ledger,
        )
        return artifact

    # -----------------------------------------------------------------
    # Party B
    # -----------------------------------------------------------------

    def new_handshake(self, session_key: str | None = None) -> Handshake:
        """Fresh IDLE handshake, never shared with another session."""
        if session_key is None:
            return Handshake()
        return Handshake(session_key=session_key)

    async def complete_authorization(
        self,
        artifact: str,
        *,
        shape: InvocationShape,
        rebuild: RebuildFn,
        handshake: Handshake | None = None,
    ) -> Handshake:
        """Import the counterparty's artifact and submit the bundle.

        Args:
            artifact: Portable artifact text from the counterparty.
            shape: What the artifact is expected to authorize.
            rebuild: Builds the full invocation from the decoded entry
                plus this party's own arguments.
            handshake: Handshake to drive. Pass one to inspect its state
                after a failure. Defaults to a new handshake.

        Returns:
            The CONFIRMED handshake.

        Raises:
            HandshakeError: Any handshake failure; the handshake is FAILED.
        """
        if handshake is None:
            handshake = self.new_handshake()

        async with self._assembler.step(handshake, HandshakeState.IDLE):
            remote_entry = decode_artifact(artifact, shape)
            handshake.artifact_digest = artifact_digest(artifact)
            invocation = rebuild(remote_entry)
            logger.info(
                "handshake %s: imported %s authorization from %s",
                handshake.session_key,
                remote_entry.invocation_name,
                remote_entry.signer_address,
            )

        return await self._assembler.run(handshake, invocation, remote_entry)

    def receipt_for(
        self, handshake: Handshake, *, created_at: str | None = None
    ) -> HandshakeReceipt:
        """Auditable summary of ``handshake``."""
        return HandshakeReceipt.from_handshake(handshake, created_at=created_at)
