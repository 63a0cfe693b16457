"""
Stellar ed25519 keys and a concrete signing capability.

Stellar encodes keys as "strkeys": base32 of

    u8        version byte (6 << 3 for an account "G...", 18 << 3 for a
              secret seed "S...")
    32 bytes  raw ed25519 key
    u16       CRC16-XModem of the above, little-endian

``Ed25519SignerCapability`` holds one private key and implements
``SignerCapability``. It signs SHA256(preimage), so a verifier only needs
the signer's account address to check an entry.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import struct

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    NoEncryption,
    PrivateFormat,
    PublicFormat,
)

from sgs_cosign.entry import AuthorizationEntry, CredentialKind
from sgs_cosign.preimage import authorization_preimage

VERSION_ACCOUNT_ID = 6 << 3
VERSION_SEED = 18 << 3

_KEY_LENGTH = 32


# =========================================================================
# Strkeys
# =========================================================================


def _crc16_xmodem(data: bytes) -> bytes:
    return struct.pack("<H", binascii.crc_hqx(data, 0))


def encode_strkey(version: int, payload: bytes) -> str:
    """Encode ``payload`` as a strkey with the given version byte."""
    body = bytes([version]) + payload
    return base64.b32encode(body + _crc16_xmodem(body)).decode("ascii")


def decode_strkey(version: int, value: str) -> bytes:
    """Decode a strkey and return its 32-byte payload.

    Raises:
        ValueError: If the strkey is malformed, has the wrong version
            byte or a bad checksum.
    """
    try:
        raw = base64.b32decode(value.encode("ascii"))
    except (binascii.Error, UnicodeEncodeError) as exc:
        raise ValueError(f"invalid strkey: {value!r}") from exc
    if len(raw) != 1 + _KEY_LENGTH + 2:
        raise ValueError(f"invalid strkey length: {value!r}")
    body, checksum = raw[:-2], raw[-2:]
    if body[0] != version:
        raise ValueError(f"unexpected strkey version byte {body[0]} in {value!r}")
    if _crc16_xmodem(body) != checksum:
        raise ValueError(f"strkey checksum mismatch: {value!r}")
    return body[1:]


# =========================================================================
# Key helpers
# =========================================================================


def generate_signing_key() -> Ed25519PrivateKey:
    """Generate a new ed25519 key pair."""
    return Ed25519PrivateKey.generate()


def account_id(public_key: Ed25519PublicKey) -> str:
    """Account address ("G...") of ``public_key``."""
    raw = public_key.public_bytes(Encoding.Raw, PublicFormat.Raw)
    return encode_strkey(VERSION_ACCOUNT_ID, raw)


def public_key_from_address(address: str) -> Ed25519PublicKey:
    """Reconstruct the ed25519 public key behind a "G..." address."""
    return Ed25519PublicKey.from_public_bytes(decode_strkey(VERSION_ACCOUNT_ID, address))


def secret_seed(private_key: Ed25519PrivateKey) -> str:
    """Secret seed ("S...") of ``private_key``."""
    raw = private_key.private_bytes(Encoding.Raw, PrivateFormat.Raw, NoEncryption())
    return encode_strkey(VERSION_SEED, raw)


def private_key_from_seed(seed: str) -> Ed25519PrivateKey:
    return Ed25519PrivateKey.from_private_bytes(decode_strkey(VERSION_SEED, seed))


# =========================================================================
# Signing capability
# =========================================================================


class Ed25519SignerCapability:
    """Signs authorization preimages with a local ed25519 key.

    Args:
        private_key: The account's signing key.
    """

    def __init__(self, private_key: Ed25519PrivateKey) -> None:
        self._key = private_key
        self._address = account_id(private_key.public_key())

    @classmethod
    def from_seed(cls, seed: str) -> Ed25519SignerCapability:
        return cls(private_key_from_seed(seed))

    @property
    def address(self) -> str:
        return self._address

    async def sign_auth_entry(
        self,
        preimage: bytes,
        *,
        network_id: bytes,
        signer_address: str,
    ) -> bytes:
        if signer_address != self._address:
            raise ValueError(
                f"key for {self._address} cannot sign for {signer_address}"
            )
        return self._key.sign(hashlib.sha256(preimage).digest())


def verify_entry_signature(entry: AuthorizationEntry, network_id: bytes) -> bool:
    """True if ``entry`` carries a valid ed25519 signature by its signer.

    Unsigned entries, SOURCE_ACCOUNT entries and non-account signers
    never verify.
    """
    if entry.credential_kind != CredentialKind.ADDRESS or entry.signature is None:
        return False
    try:
        public_key = public_key_from_address(str(entry.signer_address))
    except ValueError:
        return False
    payload = hashlib.sha256(authorization_preimage(entry, network_id)).digest()
    try:
        public_key.verify(entry.signature, payload)
    except InvalidSignature:
        return False
    return True
