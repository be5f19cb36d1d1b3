"""
Seeded attribute generator.

A deterministic byte generator keyed by a domain-separation tag and a
caller-supplied seed:

    key    = SHA-256(tag || seed)
    stream = ChaCha20(key, nonce=0, counter=0) keystream
    draw i = stream[32*i : 32*(i+1)]

Equal (tag, seed) pairs give byte-identical sequences; constructing a new
generator restarts the sequence. Draw sites receive the generator explicitly
and it is discarded when the attribute assignment finishes; there is no
module-level generator.
"""

from __future__ import annotations

import hashlib
from typing import Iterator, List

from cryptography.hazmat.primitives.ciphers import Cipher, algorithms

DRAW_SIZE = 32
KEY_SIZE = 32
# cryptography takes the 4-byte little-endian block counter followed by the 12-byte nonce
_ZERO_NONCE = bytes(16)


class Prng:
    """ChaCha20 keystream generator seeded from a tag and a seed."""

    def __init__(self, tag: bytes, seed: bytes):
        key = hashlib.sha256(bytes(tag) + bytes(seed)).digest()
        self._init_stream(key)

    @classmethod
    def from_key(cls, key: bytes) -> "Prng":
        """Build a generator directly from a 32-byte ChaCha20 key."""
        if len(key) != KEY_SIZE:
            raise ValueError(f"ChaCha20 key must be {KEY_SIZE} bytes, got {len(key)}")
        prng = cls.__new__(cls)
        prng._init_stream(bytes(key))
        return prng

    def _init_stream(self, key: bytes) -> None:
        cipher = Cipher(algorithms.ChaCha20(key, _ZERO_NONCE), mode=None)
        self._stream = cipher.encryptor()
        self._draws = 0

    @property
    def draws(self) -> int:
        """Number of draws taken so far."""
        return self._draws

    def rand_bytes(self) -> bytes:
        """Return the next 32 bytes of keystream."""
        self._draws += 1
        return self._stream.update(bytes(DRAW_SIZE))

    def take(self, n: int) -> List[bytes]:
        return [self.rand_bytes() for _ in range(n)]

    def __iter__(self) -> Iterator[bytes]:
        while True:
            yield self.rand_bytes()
