"""Hashing helpers for identifiers and delete tokens."""

from __future__ import annotations

import hashlib
import hmac
import re
from typing import Final

_FNV64_OFFSET_BASIS: Final[int] = 0xCBF29CE484222325
_FNV64_PRIME: Final[int] = 0x100000001B3
_MASK64: Final[int] = 0xFFFFFFFFFFFFFFFF

_ID_PATTERN: Final[re.Pattern[str]] = re.compile(r"\A[a-f\d]{16}\Z")


def fnv1a64(data: bytes, seed: int = _FNV64_OFFSET_BASIS) -> int:
    """Return the 64 bit FNV-1a hash of the supplied data.

    Runs one interpreter step per byte; callers bound the input size
    (the paste size limit) before hashing.
    """
    prime = _FNV64_PRIME
    mask = _MASK64
    value = seed & mask
    for byte in data:
        value = ((value ^ byte) * prime) & mask
    return value


def fnv1a64_hexdigest(data: str | bytes) -> str:
    """Return the FNV-1a hash as 16 zero padded lowercase hex characters."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    return f"{fnv1a64(data):016x}"


def is_valid_id(candidate: object) -> bool:
    """Return True if the candidate looks like a paste or comment id."""
    return isinstance(candidate, str) and _ID_PATTERN.match(candidate) is not None


def hmac_hexdigest(message: str, key: str, *, algorithm: str = "sha256") -> str:
    """Return the hex encoded HMAC of a text message under a text key."""
    digestmod = getattr(hashlib, algorithm)
    return hmac.new(key.encode("utf-8"), message.encode("utf-8"), digestmod).hexdigest()
