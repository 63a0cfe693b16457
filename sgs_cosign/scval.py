"""
Typed contract argument values.

An ``ScVal`` is one argument of a contract invocation, tagged with its
type. Only the handful of types the handshake needs are supported; the
set is closed so every encoder and decoder can match it exhaustively.

Invariants:
    - U32: 0 <= value < 2**32.
    - I128: -2**127 <= value < 2**127.
    - ADDRESS: 56-char strkey, [A-Z2-7], starting with "G" (account)
      or "C" (contract).
    - BOOL: a real bool (not an int).
    - SYMBOL: 1-32 chars of [A-Za-z0-9_].
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import IntEnum

ADDRESS_LENGTH = 56

_ADDRESS_RE = re.compile(r"^[GC][A-Z2-7]{55}$")
_SYMBOL_RE = re.compile(r"^[A-Za-z0-9_]{1,32}$")

U32_MAX = 2**32 - 1
_I128_MIN = -(2**127)
_I128_MAX = 2**127 - 1


class ScValType(IntEnum):
    """Type tag of an argument value. The int value is the wire tag."""

    U32 = 1
    I128 = 2
    ADDRESS = 3
    BOOL = 4
    SYMBOL = 5


def is_valid_address(value: str) -> bool:
    """True if ``value`` looks like an account or contract strkey."""
    return bool(_ADDRESS_RE.fullmatch(value))


def validate_address(value: str, *, field_name: str = "address") -> None:
    """Raise ValueError if ``value`` is not a strkey address."""
    if not isinstance(value, str) or not is_valid_address(value):
        raise ValueError(
            f"{field_name} must be a 56-char strkey starting with G or C, got: {value!r}"
        )


@dataclass(frozen=True)
class ScVal:
    """A typed argument value.

    Prefer the constructors ``ScVal.u32()``, ``ScVal.i128()``,
    ``ScVal.address()``, ``ScVal.bool_()`` and ``ScVal.symbol()``.
    """

    type: ScValType
    value: int | str | bool

    def __post_init__(self) -> None:
        match self.type:
            case ScValType.U32:
                if (
                    isinstance(self.value, bool)
                    or not isinstance(self.value, int)
                    or not 0 <= self.value <= U32_MAX
                ):
                    raise ValueError(f"u32 out of range: {self.value!r}")
            case ScValType.I128:
                if (
                    isinstance(self.value, bool)
                    or not isinstance(self.value, int)
                    or not _I128_MIN <= self.value <= _I128_MAX
                ):
                    raise ValueError(f"i128 out of range: {self.value!r}")
            case ScValType.ADDRESS:
                validate_address(self.value)  # type: ignore[arg-type]
            case ScValType.BOOL:
                if not isinstance(self.value, bool):
                    raise ValueError(f"bool value expected, got: {self.value!r}")
            case ScValType.SYMBOL:
                if not isinstance(self.value, str) or not _SYMBOL_RE.fullmatch(self.value):
                    raise ValueError(
                        f"symbol must be 1-32 chars [A-Za-z0-9_], got: {self.value!r}"
                    )

    @classmethod
    def u32(cls, value: int) -> ScVal:
        return cls(ScValType.U32, value)

    @classmethod
    def i128(cls, value: int) -> ScVal:
        return cls(ScValType.I128, value)

    @classmethod
    def address(cls, value: str) -> ScVal:
        return cls(ScValType.ADDRESS, value)

    @classmethod
    def bool_(cls, value: bool) -> ScVal:
        return cls(ScValType.BOOL, value)

    @classmethod
    def symbol(cls, value: str) -> ScVal:
        return cls(ScValType.SYMBOL, value)

    def to_dict(self) -> dict[str, object]:
        """JSON-friendly form. I128 is a decimal string to survive JSON."""
        value: object = str(self.value) if self.type == ScValType.I128 else self.value
        return {"type": self.type.name.lower(), "value": value}
