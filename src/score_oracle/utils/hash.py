# src/score_oracle/utils/hash.py
"""Hashing helpers exposing the keccak-256 function used by the EVM."""

from __future__ import annotations

from eth_utils import keccak

KECCAK_DIGEST_BYTES = 32


def keccak_digest(data: bytes) -> bytes:
    """Return the 32-byte keccak-256 digest of the supplied data."""
    return keccak(primitive=data)


def keccak_text(text: str) -> bytes:
    """Return the keccak-256 digest of the UTF-8 encoding of ``text``.

    An empty string hashes the empty byte sequence; there is no sentinel.
    """
    return keccak(text=text)


def keccak_hexdigest(data: bytes) -> str:
    """Return the 0x-prefixed hexadecimal keccak-256 digest of the data."""
    return "0x" + keccak_digest(data).hex()
