"""Tests for signing digest construction."""

from __future__ import annotations

from typing import Any

import pytest
from eth_utils import keccak

from score_oracle.core.errors import DigestEncodingError
from score_oracle.services.digest import (
    ARBITRUM_ONE_CHAIN_ID,
    MAX_UINT256,
    PERSONAL_MESSAGE_PREFIX,
    HashVersion,
    build_claim_digest,
    build_digest,
    hash_metadata,
    hash_name,
    pack_fields,
    personal_digest,
    supported_versions,
)
from tests.conftest import OTHER_PLAYER, PLAYER

EMPTY_KECCAK_HEX = "c5d2460186f7233c927e7db2dcc703c0e500b653ca82273b7bfad8045d85a470"

BASE_CLAIM: dict[str, Any] = {
    "tournament_id": 1,
    "player": PLAYER,
    "score": 50_000,
    "nonce": 1,
    "name": "",
    "metadata_json": "",
}


def _word(value: int) -> bytes:
    return value.to_bytes(32, "big")


def test_digest_is_deterministic() -> None:
    first = build_claim_digest(**BASE_CLAIM)
    second = build_claim_digest(**BASE_CLAIM)
    assert first == second
    assert len(first) == 32


def test_digest_matches_manual_packing() -> None:
    """Rebuild the exact byte layout the contract hashes and compare."""
    name = "0xAbCd...1234"
    metadata_json = '{"duration":1000}'
    digest = build_claim_digest(
        tournament_id=42,
        player=PLAYER,
        score=123_456,
        nonce=7,
        name=name,
        metadata_json=metadata_json,
    )

    packed = (
        b"PINBALL_SCORE:v2"
        + _word(42)
        + bytes.fromhex(PLAYER[2:])
        + _word(123_456)
        + _word(7)
        + _word(ARBITRUM_ONE_CHAIN_ID)
        + keccak(text=name)
        + keccak(text=metadata_json)
    )
    assert digest == keccak(PERSONAL_MESSAGE_PREFIX + keccak(packed))


def test_v1_layout_matches_manual_packing() -> None:
    name_hash = hash_name("")
    meta_hash = hash_metadata("")
    digest = build_digest(HashVersion.V1, 3, PLAYER, 99, None, None, name_hash, meta_hash)

    packed = (
        b"PINBALL_SCORE:"
        + _word(3)
        + bytes.fromhex(PLAYER[2:])
        + _word(99)
        + name_hash
        + meta_hash
    )
    assert pack_fields(
        HashVersion.V1,
        {
            "tournament_id": 3,
            "player": PLAYER,
            "score": 99,
            "name_hash": name_hash,
            "meta_hash": meta_hash,
        },
    ) == packed
    assert digest == keccak(PERSONAL_MESSAGE_PREFIX + keccak(packed))


@pytest.mark.parametrize(
    "override",
    [
        {"tournament_id": 2},
        {"player": OTHER_PLAYER},
        {"score": 50_001},
        {"nonce": 2},
        {"name": "someone"},
        {"metadata_json": '{"tableId":1}'},
        {"chain_id": 1},
    ],
)
def test_every_field_is_bound(override: dict[str, Any]) -> None:
    assert build_claim_digest(**{**BASE_CLAIM, **override}) != build_claim_digest(**BASE_CLAIM)


def test_address_case_does_not_change_digest() -> None:
    upper = "0x" + PLAYER[2:].upper()
    assert build_claim_digest(**{**BASE_CLAIM, "player": upper}) == build_claim_digest(**BASE_CLAIM)


def test_versions_are_domain_separated() -> None:
    v1 = build_claim_digest(**BASE_CLAIM, version=HashVersion.V1)
    v2 = build_claim_digest(**BASE_CLAIM, version=HashVersion.V2)
    assert v1 != v2


def test_v1_ignores_nonce_and_chain() -> None:
    v1_a = build_claim_digest(**BASE_CLAIM, version=HashVersion.V1)
    v1_b = build_claim_digest(**{**BASE_CLAIM, "nonce": 9}, version=HashVersion.V1, chain_id=1)
    assert v1_a == v1_b


def test_empty_strings_hash_empty_bytes() -> None:
    assert hash_name("").hex() == EMPTY_KECCAK_HEX
    assert hash_metadata("").hex() == EMPTY_KECCAK_HEX


@pytest.mark.parametrize(
    "override",
    [
        {"score": MAX_UINT256 + 1},
        {"score": -1},
        {"tournament_id": -5},
        {"nonce": MAX_UINT256 + 1},
        {"score": True},
        {"score": 1.0},
        {"player": "0x1234"},
        {"player": "not-an-address"},
    ],
)
def test_out_of_range_fields_are_rejected(override: dict[str, Any]) -> None:
    with pytest.raises(DigestEncodingError):
        build_claim_digest(**{**BASE_CLAIM, **override})


def test_uint256_max_is_packable() -> None:
    assert len(build_claim_digest(**{**BASE_CLAIM, "tournament_id": MAX_UINT256})) == 32


def test_v2_requires_nonce_and_chain() -> None:
    with pytest.raises(DigestEncodingError):
        build_digest(HashVersion.V2, 1, PLAYER, 1, None, ARBITRUM_ONE_CHAIN_ID, b"\0" * 32, b"\0" * 32)
    with pytest.raises(DigestEncodingError):
        build_digest(HashVersion.V2, 1, PLAYER, 1, 1, None, b"\0" * 32, b"\0" * 32)


def test_hash_slots_must_be_32_bytes() -> None:
    with pytest.raises(DigestEncodingError):
        build_digest(HashVersion.V2, 1, PLAYER, 1, 1, 1, b"\0" * 31, b"\0" * 32)
    with pytest.raises(DigestEncodingError):
        personal_digest(b"\0" * 33)


def test_supported_versions() -> None:
    assert list(supported_versions()) == ["V1", "V2"]
    assert HashVersion.V2.tag == "PINBALL_SCORE:v2"
    assert HashVersion.V1.tag == "PINBALL_SCORE:"
