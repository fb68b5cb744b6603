# mypy: ignore-errors
"""Tests for hashing utilities."""

from __future__ import annotations

from score_oracle.utils import hash as hash_utils

DIGEST_LENGTH = 32
HEX_DIGEST_LENGTH = 2 + 64
EMPTY_KECCAK_HEX = "0xc5d2460186f7233c927e7db2dcc703c0e500b653ca82273b7bfad8045d85a470"


def test_keccak_digest_length() -> None:
    """Ensure the digest produces 32 bytes."""
    digest = hash_utils.keccak_digest(b"default")
    assert isinstance(digest, bytes)
    assert len(digest) == DIGEST_LENGTH


def test_keccak_is_not_sha3() -> None:
    """keccak-256 of the empty input has the well-known EVM value."""
    assert hash_utils.keccak_hexdigest(b"") == EMPTY_KECCAK_HEX


def test_keccak_text_encodes_utf8() -> None:
    assert hash_utils.keccak_text("é") == hash_utils.keccak_digest("é".encode("utf-8"))
    assert hash_utils.keccak_text("") == hash_utils.keccak_digest(b"")


def test_keccak_hexdigest() -> None:
    """Ensure hex digests are 0x-prefixed 64-character strings."""
    hexdigest = hash_utils.keccak_hexdigest(b"hex")
    assert isinstance(hexdigest, str)
    assert hexdigest.startswith("0x")
    assert len(hexdigest) == HEX_DIGEST_LENGTH
