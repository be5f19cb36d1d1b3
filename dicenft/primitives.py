"""
Opaque host primitives consumed by the token core.

``CanonicalAddr`` and ``Coin`` stand in for the hosting environment's
canonical account address and amount-with-denomination types. The core only
compares them; resolving, validating or formatting them is the host's job.
"""

from __future__ import annotations

import base64
import binascii
import re
from dataclasses import dataclass
from typing import Any, Dict

from dicenft.errors import DecodeError

UINT128_MAX = (1 << 128) - 1
_AMOUNT_PATTERN = re.compile(r"[0-9]+")


@dataclass(frozen=True)
class CanonicalAddr:
    """Raw canonical address bytes. Travels as a base64 string."""
    raw: bytes

    def __post_init__(self):
        if not isinstance(self.raw, (bytes, bytearray)):
            raise TypeError(f"CanonicalAddr expects bytes, got {type(self.raw).__name__}")
        object.__setattr__(self, "raw", bytes(self.raw))

    def __str__(self) -> str:
        return self.to_base64()

    def to_base64(self) -> str:
        return base64.b64encode(self.raw).decode("ascii")

    @classmethod
    def from_base64(cls, value: Any, field: str = "address") -> "CanonicalAddr":
        if not isinstance(value, str):
            raise DecodeError(field, "expected base64 string", value)
        try:
            return cls(base64.b64decode(value.encode("ascii"), validate=True))
        except (binascii.Error, UnicodeEncodeError) as e:
            raise DecodeError(field, f"invalid base64: {e}", value) from e


@dataclass(frozen=True)
class Coin:
    """
    An amount with a denomination.

    Amounts are unsigned 128-bit integers and are serialized as decimal
    strings so no precision is lost in JSON.
    """
    denom: str = ""
    amount: int = 0

    def __post_init__(self):
        if isinstance(self.amount, bool) or not isinstance(self.amount, int):
            raise TypeError(f"Coin amount must be int, got {type(self.amount).__name__}")
        if not 0 <= self.amount <= UINT128_MAX:
            raise ValueError(f"Coin amount out of range: {self.amount}")

    def __str__(self) -> str:
        return f"{self.amount}{self.denom}"

    def covers(self, required: "Coin") -> bool:
        """True if this coin has the same denomination and at least the required amount."""
        return self.denom == required.denom and self.amount >= required.amount

    def to_dict(self) -> Dict[str, Any]:
        return {"denom": self.denom, "amount": str(self.amount)}

    @classmethod
    def from_dict(cls, d: Any, field: str = "coin") -> "Coin":
        if not isinstance(d, dict):
            raise DecodeError(field, "expected object", d)
        denom = d.get("denom")
        amount = d.get("amount")
        if not isinstance(denom, str):
            raise DecodeError(f"{field}.denom", "expected string", denom)
        if not isinstance(amount, str) or not _AMOUNT_PATTERN.fullmatch(amount):
            raise DecodeError(f"{field}.amount", "expected decimal string", amount)
        try:
            return cls(denom=denom, amount=int(amount))
        except ValueError as e:
            raise DecodeError(f"{field}.amount", str(e), amount) from e
