"""
Expiration gate.

An ``Expiration`` is a time- or block-height-bound condition. Whether it has
elapsed is a pure predicate over a ``BlockInfo`` supplied by the caller; the
core never reads a clock itself.

Wire forms::

    "never"
    {"at_height": 12345}
    {"at_time": 1700000000}
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from dicenft.errors import DecodeError


@dataclass(frozen=True)
class BlockInfo:
    """Logical time reference: block height and block time in seconds."""
    height: int
    time: int


class ExpirationKind(Enum):
    NEVER = "never"
    AT_HEIGHT = "at_height"
    AT_TIME = "at_time"


@dataclass(frozen=True)
class Expiration:
    kind: ExpirationKind = ExpirationKind.NEVER
    value: Optional[int] = None

    def __post_init__(self):
        if self.kind == ExpirationKind.NEVER:
            if self.value is not None:
                raise ValueError("never-expiring condition takes no value")
        elif isinstance(self.value, bool) or not isinstance(self.value, int) or self.value < 0:
            raise ValueError(f"{self.kind.value} requires a non-negative integer, got {self.value!r}")

    @classmethod
    def never(cls) -> "Expiration":
        return cls()

    @classmethod
    def at_height(cls, height: int) -> "Expiration":
        return cls(ExpirationKind.AT_HEIGHT, height)

    @classmethod
    def at_time(cls, seconds: int) -> "Expiration":
        return cls(ExpirationKind.AT_TIME, seconds)

    def is_expired(self, block: BlockInfo) -> bool:
        """True once the block has reached the height or time."""
        if self.kind == ExpirationKind.AT_HEIGHT:
            return block.height >= self.value
        if self.kind == ExpirationKind.AT_TIME:
            return block.time >= self.value
        return False

    def __str__(self) -> str:
        if self.kind == ExpirationKind.NEVER:
            return "never"
        return f"{self.kind.value}:{self.value}"

    def to_dict(self) -> Any:
        if self.kind == ExpirationKind.NEVER:
            return "never"
        return {self.kind.value: self.value}

    @classmethod
    def from_dict(cls, d: Any, field: str = "expiration") -> "Expiration":
        if d == "never":
            return cls.never()
        if isinstance(d, dict) and len(d) == 1:
            (key, value), = d.items()
            try:
                kind = ExpirationKind(key)
            except ValueError:
                raise DecodeError(field, f"unknown expiration kind {key!r}", d) from None
            if kind != ExpirationKind.NEVER:
                try:
                    return cls(kind, value)
                except ValueError as e:
                    raise DecodeError(field, str(e), d) from e
        raise DecodeError(field, "expected \"never\", {\"at_height\": n} or {\"at_time\": n}", d)


def is_expired(expiration: Optional[Expiration], block: BlockInfo) -> bool:
    """Gate used by callers holding an optional expiration; absent means never."""
    return expiration is not None and expiration.is_expired(block)
