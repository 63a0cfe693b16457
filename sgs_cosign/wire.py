"""
Big-endian binary primitives shared by the artifact codec and the
authorization preimage.

``Writer`` accumulates bytes; ``Reader`` consumes them and raises
``MalformedArtifact`` on any truncation or bad value, so callers never
see a half-parsed record.

Argument encoding (one value):
    u8  type tag (ScValType)
    u32 payload length
    payload:
        U32     4 bytes unsigned
        I128    16 bytes two's complement
        ADDRESS 56 ASCII bytes
        BOOL    1 byte, 0 or 1
        SYMBOL  UTF-8 bytes
"""

from __future__ import annotations

import struct

from sgs_cosign.errors import MalformedArtifact
from sgs_cosign.scval import ADDRESS_LENGTH, ScVal, ScValType

_FIXED_WIDTHS: dict[ScValType, int] = {
    ScValType.U32: 4,
    ScValType.I128: 16,
    ScValType.ADDRESS: ADDRESS_LENGTH,
    ScValType.BOOL: 1,
}

# Upper bound on a single argument payload.
MAX_PAYLOAD_BYTES = 1024


class Writer:
    """Append-only big-endian byte builder."""

    def __init__(self) -> None:
        self._buf = bytearray()

    def u8(self, value: int) -> None:
        self._buf += struct.pack(">B", value)

    def u16(self, value: int) -> None:
        self._buf += struct.pack(">H", value)

    def u32(self, value: int) -> None:
        self._buf += struct.pack(">I", value)

    def raw(self, data: bytes) -> None:
        self._buf += data

    def short_bytes(self, data: bytes) -> None:
        """u16 length prefix followed by ``data``."""
        if len(data) > 0xFFFF:
            raise ValueError(f"field too long for u16 length prefix: {len(data)} bytes")
        self.u16(len(data))
        self.raw(data)

    def scval(self, value: ScVal) -> None:
        payload = encode_scval_payload(value)
        self.u8(int(value.type))
        self.u32(len(payload))
        self.raw(payload)

    def scvals(self, values: tuple[ScVal, ...]) -> None:
        """u16 count followed by each value."""
        if len(values) > 0xFFFF:
            raise ValueError(f"too many arguments: {len(values)}")
        self.u16(len(values))
        for value in values:
            self.scval(value)

    def getvalue(self) -> bytes:
        return bytes(self._buf)


class Reader:
    """Bounds-checked big-endian byte consumer."""

    def __init__(self, data: bytes) -> None:
        self._data = data
        self._pos = 0

    @property
    def remaining(self) -> int:
        return len(self._data) - self._pos

    def raw(self, n: int) -> bytes:
        if n < 0 or self.remaining < n:
            raise MalformedArtifact(
                f"truncated record: need {n} bytes at offset {self._pos}, "
                f"have {self.remaining}"
            )
        chunk = self._data[self._pos : self._pos + n]
        self._pos += n
        return chunk

    def u8(self) -> int:
        return self.raw(1)[0]

    def u16(self) -> int:
        return struct.unpack(">H", self.raw(2))[0]

    def u32(self) -> int:
        return struct.unpack(">I", self.raw(4))[0]

    def short_bytes(self) -> bytes:
        return self.raw(self.u16())

    def scval(self) -> ScVal:
        tag = self.u8()
        try:
            value_type = ScValType(tag)
        except ValueError:
            raise MalformedArtifact(f"unknown argument type tag: {tag}") from None
        length = self.u32()
        if length > MAX_PAYLOAD_BYTES:
            raise MalformedArtifact(f"argument payload too large: {length} bytes")
        return decode_scval_payload(value_type, self.raw(length))

    def scvals(self) -> tuple[ScVal, ...]:
        count = self.u16()
        return tuple(self.scval() for _ in range(count))

    def expect_end(self) -> None:
        if self.remaining:
            raise MalformedArtifact(f"{self.remaining} trailing bytes after record")


def encode_scval_payload(value: ScVal) -> bytes:
    """Encode the payload of one value (no tag, no length)."""
    match value.type:
        case ScValType.U32:
            return struct.pack(">I", value.value)
        case ScValType.I128:
            return int(value.value).to_bytes(16, "big", signed=True)
        case ScValType.ADDRESS:
            return str(value.value).encode("ascii")
        case ScValType.BOOL:
            return b"\x01" if value.value else b"\x00"
        case ScValType.SYMBOL:
            return str(value.value).encode("utf-8")
    raise ValueError(f"unsupported value type: {value.type!r}")


def decode_scval_payload(value_type: ScValType, payload: bytes) -> ScVal:
    """Decode one payload. Raises MalformedArtifact on bad width or content."""
    width = _FIXED_WIDTHS.get(value_type)
    if width is not None and len(payload) != width:
        raise MalformedArtifact(
            f"{value_type.name} payload must be {width} bytes, got {len(payload)}"
        )
    try:
        match value_type:
            case ScValType.U32:
                return ScVal.u32(struct.unpack(">I", payload)[0])
            case ScValType.I128:
                return ScVal.i128(int.from_bytes(payload, "big", signed=True))
            case ScValType.ADDRESS:
                return ScVal.address(payload.decode("ascii"))
            case ScValType.BOOL:
                if payload not in (b"\x00", b"\x01"):
                    raise MalformedArtifact(f"bool payload must be 0 or 1, got {payload!r}")
                return ScVal.bool_(payload == b"\x01")
            case ScValType.SYMBOL:
                return ScVal.symbol(payload.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as exc:
        raise MalformedArtifact(f"invalid {value_type.name} payload: {exc}") from exc
    raise MalformedArtifact(f"unsupported value type: {value_type!r}")
