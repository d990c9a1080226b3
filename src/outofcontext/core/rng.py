from __future__ import annotations
import hmac
import hashlib
import struct
import time
from dataclasses import dataclass
from typing import Optional


@dataclass
class CSPRNG:
    """
    Counter-mode generator: HMAC-SHA256(key, counter), top 53 bits mapped to [0,1).
    The same key always reproduces the same stream.
    """
    key: bytes
    counter: int = 0

    def random(self) -> float:
        self.counter += 1
        msg = struct.pack(">Q", self.counter)
        d = hmac.new(self.key, msg, hashlib.sha256).digest()
        x = int.from_bytes(d[:8], "big")
        return (x & ((1 << 53) - 1)) / float(1 << 53)


def seed_rng(seed: int) -> CSPRNG:
    key = hmac.new(b"outofcontext:seed", struct.pack(">Q", seed & 0xFFFF_FFFF_FFFF_FFFF), hashlib.sha256).digest()
    return CSPRNG(key=key)


def resolve_seed(seed: Optional[int]) -> int:
    """Return ``seed`` or, when absent, the low 32 bits of the wall clock in ns."""
    if seed is not None:
        return int(seed)
    return time.time_ns() & 0xFFFF_FFFF
