"""Tests for digest signing and signer recovery."""

from __future__ import annotations

import pytest

from score_oracle.core.errors import SigningError
from score_oracle.core.security import derive_address, recover_signer, sign_digest, signer_matches
from score_oracle.utils.hash import keccak_digest
from tests.conftest import PLAYER, TEST_SIGNER_ADDR, TEST_SIGNER_PK

SIGNATURE_HEX_LENGTH = 2 + 65 * 2


def test_derive_address() -> None:
    assert derive_address(TEST_SIGNER_PK) == TEST_SIGNER_ADDR


def test_signature_recovers_to_signer() -> None:
    digest = keccak_digest(b"claim")
    signature = sign_digest(TEST_SIGNER_PK, digest)

    assert signature.startswith("0x")
    assert len(signature) == SIGNATURE_HEX_LENGTH
    assert int(signature[-2:], 16) in {27, 28}
    assert recover_signer(digest, signature) == TEST_SIGNER_ADDR


def test_signing_is_deterministic() -> None:
    digest = keccak_digest(b"claim")
    assert sign_digest(TEST_SIGNER_PK, digest) == sign_digest(TEST_SIGNER_PK, digest)


def test_other_digest_does_not_recover_signer() -> None:
    signature = sign_digest(TEST_SIGNER_PK, keccak_digest(b"claim"))
    assert recover_signer(keccak_digest(b"other"), signature) != TEST_SIGNER_ADDR


@pytest.mark.parametrize("private_key", ["0xdeadbeef", "0x" + "zz" * 32, "0x" + "00" * 32, ""])
def test_malformed_key_raises_signing_error(private_key: str) -> None:
    with pytest.raises(SigningError):
        sign_digest(private_key, keccak_digest(b"claim"))

    with pytest.raises(SigningError):
        derive_address(private_key)


def test_digest_must_be_32_bytes() -> None:
    with pytest.raises(SigningError):
        sign_digest(TEST_SIGNER_PK, b"short")


def test_recover_rejects_malformed_signature() -> None:
    with pytest.raises(ValueError):
        recover_signer(keccak_digest(b"claim"), "0x1234")


def test_signer_matches() -> None:
    assert signer_matches(TEST_SIGNER_PK, TEST_SIGNER_ADDR.lower()) is True
    assert signer_matches(TEST_SIGNER_PK, PLAYER) is False


def test_signing_error_does_not_leak_key() -> None:
    with pytest.raises(SigningError) as excinfo:
        sign_digest("0xdeadbeef", keccak_digest(b"claim"))
    assert "deadbeef" not in str(excinfo.value)
