"""
Portable auth artifact codec.

A portable artifact is one signed ADDRESS entry in a compact binary
record, base64-encoded so it can be pasted into a chat or a link.

Record layout (big-endian):
    u32          body length
    body:
        u8           layout version (ARTIFACT_VERSION)
        u8           credential kind (CredentialKind)
        56 bytes     signer address (ASCII strkey)
        u32          expiry ledger
        u16 + bytes  invocation name (UTF-8)
        u16 + args   invocation arguments (see wire.py)
        u16 + bytes  signature

Decoding is a trust boundary: the artifact comes from the counterparty.
``decode_artifact`` validates structure and the expected invocation shape
and nothing else. The decoded values are only good for rebuilding an
equivalent bundle; they never bypass simulation.
"""

from __future__ import annotations

import base64
import binascii
import math
import struct
from dataclasses import dataclass

from sgs_cosign.entry import AuthorizationEntry, CredentialKind
from sgs_cosign.errors import (
    ArgumentShapeMismatch,
    FunctionMismatch,
    MalformedArtifact,
    UnsupportedCredential,
)
from sgs_cosign.integrity import prefixed_digest
from sgs_cosign.scval import ADDRESS_LENGTH, ScValType
from sgs_cosign.wire import Reader, Writer

# Layout version: bump when the record shape changes.
ARTIFACT_VERSION = 1

# Upper bound on a decoded record, well above any real entry.
MAX_ARTIFACT_BYTES = 8192

# Longest base64 text that can decode to MAX_ARTIFACT_BYTES.
MAX_ARTIFACT_TEXT = 4 * math.ceil(MAX_ARTIFACT_BYTES / 3)


@dataclass(frozen=True)
class InvocationShape:
    """What a decoding party expects an artifact to authorize.

    Attributes:
        function_name: Expected invocation name.
        arg_types: Expected type of each attested argument, in order.
            The length is the expected argument count.
    """

    function_name: str
    arg_types: tuple[ScValType, ...]

    @property
    def arg_count(self) -> int:
        return len(self.arg_types)


# =========================================================================
# Encode
# =========================================================================


def encode_entry_bytes(entry: AuthorizationEntry) -> bytes:
    """Encode a signed ADDRESS entry as a binary record.

    Raises:
        UnsupportedCredential: If the entry is a SOURCE_ACCOUNT entry.
        ValueError: If the entry is not signed.
    """
    match entry.credential_kind:
        case CredentialKind.ADDRESS:
            pass
        case CredentialKind.SOURCE_ACCOUNT:
            raise UnsupportedCredential(
                "SOURCE_ACCOUNT entries cannot be exported as artifacts"
            )
    if entry.signature is None or entry.expiry_ledger is None:
        raise ValueError("only signed entries can be exported as artifacts")

    body = Writer()
    body.u8(ARTIFACT_VERSION)
    body.u8(int(entry.credential_kind))
    body.raw(str(entry.signer_address).encode("ascii"))
    body.u32(entry.expiry_ledger)
    body.short_bytes(entry.invocation_name.encode("utf-8"))
    body.scvals(entry.invocation_args)
    body.short_bytes(entry.signature)
    body_bytes = body.getvalue()

    return struct.pack(">I", len(body_bytes)) + body_bytes


def encode_artifact(entry: AuthorizationEntry) -> str:
    """Encode a signed ADDRESS entry as base64 artifact text."""
    return base64.b64encode(encode_entry_bytes(entry)).decode("ascii")


# =========================================================================
# Decode
# =========================================================================


def _artifact_bytes(text: str) -> bytes:
    """base64 text → raw record bytes. Whitespace from copy/paste is ignored."""
    if not isinstance(text, str):
        raise MalformedArtifact(f"artifact must be text, got {type(text).__name__}")
    compact = "".join(text.split())
    if not compact:
        raise MalformedArtifact("artifact is empty")
    if len(compact) > MAX_ARTIFACT_TEXT:
        raise MalformedArtifact(f"artifact exceeds {MAX_ARTIFACT_BYTES} bytes")
    try:
        raw = base64.b64decode(compact, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise MalformedArtifact(f"artifact is not valid base64: {exc}") from exc
    if len(raw) > MAX_ARTIFACT_BYTES:
        raise MalformedArtifact(f"artifact exceeds {MAX_ARTIFACT_BYTES} bytes")
    return raw


def decode_entry_bytes(data: bytes) -> AuthorizationEntry:
    """Parse a binary record into an entry, without any shape expectations.

    Raises:
        MalformedArtifact: On any structural problem.
        UnsupportedCredential: If the record is not an ADDRESS entry.
    """
    outer = Reader(data)
    body_length = outer.u32()
    if body_length != outer.remaining:
        raise MalformedArtifact(
            f"length prefix says {body_length} bytes, record has {outer.remaining}"
        )
    r = Reader(outer.raw(body_length))

    version = r.u8()
    if version != ARTIFACT_VERSION:
        raise MalformedArtifact(f"unsupported artifact version: {version}")

    kind_tag = r.u8()
    try:
        kind = CredentialKind(kind_tag)
    except ValueError:
        raise MalformedArtifact(f"unknown credential kind: {kind_tag}") from None

    address_field = r.raw(ADDRESS_LENGTH)
    match kind:
        case CredentialKind.ADDRESS:
            pass
        case CredentialKind.SOURCE_ACCOUNT:
            raise UnsupportedCredential(
                f"unsupported credentials type: {kind.name}, expected ADDRESS"
            )

    expiry_ledger = r.u32()
    try:
        signer_address = address_field.decode("ascii")
        invocation_name = r.short_bytes().decode("utf-8")
    except UnicodeDecodeError as exc:
        raise MalformedArtifact(f"invalid text field: {exc}") from exc
    args = r.scvals()
    signature = r.short_bytes()
    r.expect_end()

    try:
        return AuthorizationEntry(
            credential_kind=kind,
            invocation_name=invocation_name,
            invocation_args=args,
            signer_address=signer_address,
            expiry_ledger=expiry_ledger,
            signature=signature,
        )
    except ValueError as exc:
        raise MalformedArtifact(f"invalid auth entry: {exc}") from exc


def check_shape(entry: AuthorizationEntry, shape: InvocationShape) -> None:
    """Raise unless ``entry`` authorizes exactly the expected shape.

    Raises:
        FunctionMismatch: If the invocation name differs.
        ArgumentShapeMismatch: If the argument count or a type differs.
    """
    if entry.invocation_name != shape.function_name:
        raise FunctionMismatch(
            f"invalid function name: {entry.invocation_name!r}, "
            f"expected {shape.function_name!r}"
        )
    if len(entry.invocation_args) != shape.arg_count:
        raise ArgumentShapeMismatch(
            f"invalid number of arguments: {len(entry.invocation_args)}, "
            f"expected {shape.arg_count}"
        )
    for position, (arg, expected) in enumerate(
        zip(entry.invocation_args, shape.arg_types)
    ):
        if arg.type != expected:
            raise ArgumentShapeMismatch(
                f"argument {position} is {arg.type.name}, expected {expected.name}"
            )


def decode_artifact(text: str, shape: InvocationShape) -> AuthorizationEntry:
    """Decode artifact text and validate it against ``shape``.

    Returns:
        The signed entry carried by the artifact.

    Raises:
        MalformedArtifact: If the text or record cannot be parsed.
        UnsupportedCredential: If the entry is not an ADDRESS entry.
        FunctionMismatch: If the entry authorizes a different function.
        ArgumentShapeMismatch: If the arguments do not match the shape.
    """
    entry = decode_entry_bytes(_artifact_bytes(text))
    check_shape(entry, shape)
    return entry


def artifact_digest(text: str) -> str:
    """``sha256:`` digest of the decoded artifact bytes, safe to log."""
    return prefixed_digest(_artifact_bytes(text))
