"""Shape validation for version 2 encrypted envelopes.

The server never decrypts anything. It only checks that submitted
envelopes have the exact structure clients produce and that the cipher
parameters stay within the supported bounds.
"""

from __future__ import annotations

import base64
import binascii
import zlib
from collections.abc import Mapping, Sequence
from typing import Any, Final

PASTE_KEYS: Final[frozenset[str]] = frozenset({"adata", "v", "ct", "meta"})
COMMENT_KEYS: Final[frozenset[str]] = frozenset({"adata", "v", "ct", "pasteid", "parentid"})

MAX_IV_BYTES: Final[int] = 24
MAX_SALT_BYTES: Final[int] = 14
MIN_ITERATIONS: Final[int] = 10_000
KEY_SIZES: Final[tuple[int, ...]] = (128, 192, 256)
TAG_SIZES: Final[tuple[int, ...]] = (64, 96, 128)
CIPHER_MODES: Final[tuple[str, ...]] = ("ctr", "cbc", "gcm")
COMPRESSIONS: Final[tuple[str, ...]] = ("zlib", "none")

# [cipher parameters, formatter, open discussion, burn after reading]
PASTE_ADATA_LENGTH: Final[int] = 4
# [iv, salt, iterations, keysize, tagsize, algorithm, mode, compression]
CIPHER_PARAMS_LENGTH: Final[int] = 8


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value: Any) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)


def _is_array(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, str | bytes | bytearray)


def _b64decode(value: Any) -> bytes | None:
    """Strictly decode base64 text, returning None if it is not valid."""
    if not isinstance(value, str):
        return None
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError):
        return None


def _deflated_size(data: bytes) -> int:
    """Return the size of ``data`` after a raw deflate pass."""
    compressor = zlib.compressobj(zlib.Z_DEFAULT_COMPRESSION, zlib.DEFLATED, -zlib.MAX_WBITS)
    return len(compressor.compress(data) + compressor.flush())


def _valid_cipher_params(params: Any) -> bool:
    if not _is_array(params) or len(params) != CIPHER_PARAMS_LENGTH:
        return False
    iv, salt, iterations, keysize, tagsize, algorithm, mode, compression = params

    iv_bytes = _b64decode(iv)
    if not iv_bytes or len(iv_bytes) > MAX_IV_BYTES:
        return False
    salt_bytes = _b64decode(salt)
    if not salt_bytes or len(salt_bytes) > MAX_SALT_BYTES:
        return False
    if not _is_int(iterations) or iterations <= MIN_ITERATIONS:
        return False
    if not _is_int(keysize) or keysize not in KEY_SIZES:
        return False
    if not _is_int(tagsize) or tagsize not in TAG_SIZES:
        return False
    if algorithm != "aes":
        return False
    if mode not in CIPHER_MODES:
        return False
    return compression in COMPRESSIONS


def is_valid(envelope: Any, is_comment: bool = False) -> bool:
    """Check whether an envelope is a well formed version 2 message.

    Args:
        envelope: Decoded JSON object submitted by a client
        is_comment: Validate against the comment shape instead of the paste shape

    Returns:
        True if every structural and bounds check passes
    """
    if not isinstance(envelope, Mapping):
        return False

    required = COMMENT_KEYS if is_comment else PASTE_KEYS
    # exact key set, no extras and nothing missing
    if len(envelope) != len(required) or any(key not in envelope for key in required):
        return False

    adata = envelope["adata"]
    if not _is_array(adata):
        return False
    if is_comment:
        cipher_params = adata
    else:
        if len(adata) != PASTE_ADATA_LENGTH:
            return False
        cipher_params = adata[0]
    if not _valid_cipher_params(cipher_params):
        return False

    ct = _b64decode(envelope["ct"])
    if not ct:
        return False

    version = envelope["v"]
    if not _is_number(version) or version < 2:
        return False

    # low entropy payloads shrink under deflate, ciphertext does not
    if len(ct) > _deflated_size(ct):
        return False

    if not is_comment:
        meta = envelope["meta"]
        if not isinstance(meta, Mapping) or list(meta) != ["expire"]:
            return False

    return True
