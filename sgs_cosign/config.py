"""
Network configuration for the co-signing handshake.

One frozen ``NetworkConfig`` is passed explicitly to the service and the
assembler; nothing reads global state at call time. ``from_env()`` is a
convenience for CLIs and deployments that configure through
``SGS_COSIGN_*`` environment variables.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass

from pydantic_settings import BaseSettings, SettingsConfigDict

# Stellar testnet passphrase.
TESTNET_PASSPHRASE = "Test SDF Network ; September 2015"

# Public Soroban RPC endpoint for testnet.
TESTNET_RPC_URL = "https://soroban-testnet.stellar.org"

# Average ledger close time on Stellar networks.
LEDGER_CLOSE_SECONDS = 5

# TTL for single-party auth entries (signed and submitted immediately).
DEFAULT_AUTH_TTL_MINUTES = 5

# TTL for auth entries exported to a counterparty.
MULTI_SIG_AUTH_TTL_MINUTES = 60

# Submission timeout handed to the ledger client.
DEFAULT_SUBMIT_TIMEOUT_SECONDS = 30

@dataclass(frozen=True)
class NetworkConfig:
    """Everything the handshake needs to know about the target network.

    Attributes:
        network_passphrase: Network passphrase; its SHA256 is the network id
            mixed into every authorization preimage.
        rpc_url: Soroban JSON-RPC endpoint.
        ledger_close_seconds: Expected seconds per ledger, used to convert
            minutes into ledgers.
        default_auth_ttl_minutes: TTL for the transaction-level expiry
            computed at submit time.
        multi_sig_auth_ttl_minutes: TTL for entries exported to the
            counterparty.
        submit_timeout_seconds: Timeout passed to ``LedgerClient.submit``.
    """

    network_passphrase: str = TESTNET_PASSPHRASE
    rpc_url: str = TESTNET_RPC_URL
    ledger_close_seconds: int = LEDGER_CLOSE_SECONDS
    default_auth_ttl_minutes: int = DEFAULT_AUTH_TTL_MINUTES
    multi_sig_auth_ttl_minutes: int = MULTI_SIG_AUTH_TTL_MINUTES
    submit_timeout_seconds: int = DEFAULT_SUBMIT_TIMEOUT_SECONDS

    def __post_init__(self) -> None:
        if not self.network_passphrase:
            raise ValueError("network_passphrase must be non-empty")
        if self.ledger_close_seconds < 1:
            raise ValueError(
                f"ledger_close_seconds must be >= 1, got: {self.ledger_close_seconds}"
            )
        if self.default_auth_ttl_minutes < 0 or self.multi_sig_auth_ttl_minutes < 0:
            raise ValueError("auth TTL minutes must be >= 0")
        if self.submit_timeout_seconds < 1:
            raise ValueError(
                f"submit_timeout_seconds must be >= 1, got: {self.submit_timeout_seconds}"
            )

    @property
    def network_id(self) -> bytes:
        """SHA256 of the network passphrase (32 bytes)."""
        return hashlib.sha256(self.network_passphrase.encode("utf-8")).digest()

    @classmethod
    def from_env(cls) -> NetworkConfig:
        """Build a config from ``SGS_COSIGN_*`` environment variables.

        Unset or empty variables keep their defaults.

        Raises:
            ValueError: If a variable does not parse or the resulting
                config is invalid.
        """
        return CosignSettings().to_config()


class CosignSettings(BaseSettings):
    """Environment overrides for ``NetworkConfig``.

    Recognized variables: ``SGS_COSIGN_NETWORK_PASSPHRASE``,
    ``SGS_COSIGN_RPC_URL``, ``SGS_COSIGN_LEDGER_CLOSE_SECONDS``,
    ``SGS_COSIGN_DEFAULT_AUTH_TTL_MINUTES``,
    ``SGS_COSIGN_MULTI_SIG_AUTH_TTL_MINUTES`` and
    ``SGS_COSIGN_SUBMIT_TIMEOUT_SECONDS``.
    """

    model_config = SettingsConfigDict(
        env_prefix="SGS_COSIGN_",
        env_ignore_empty=True,
        extra="ignore",
    )

    network_passphrase: str = TESTNET_PASSPHRASE
    rpc_url: str = TESTNET_RPC_URL
    ledger_close_seconds: int = LEDGER_CLOSE_SECONDS
    default_auth_ttl_minutes: int = DEFAULT_AUTH_TTL_MINUTES
    multi_sig_auth_ttl_minutes: int = MULTI_SIG_AUTH_TTL_MINUTES
    submit_timeout_seconds: int = DEFAULT_SUBMIT_TIMEOUT_SECONDS

    def to_config(self) -> NetworkConfig:
        return NetworkConfig(**self.model_dump())
