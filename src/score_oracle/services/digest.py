"""Signing digest construction for score claims.

The verifying contract rebuilds the same bytes with ``abi.encodePacked``,
hashes them with keccak-256 and then applies the personal-message prefix
before recovering the signer. Every byte here has to match that
reconstruction exactly.

Two layouts exist. V1 carries no nonce and no chain id and is kept only so
old signatures can still be checked; new claims are always signed with V2.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any, Final

from eth_abi.packed import encode_packed

from score_oracle.core.errors import DigestEncodingError
from score_oracle.services.validation import is_address
from score_oracle.utils.hash import KECCAK_DIGEST_BYTES, keccak_digest, keccak_text

# Arbitrum One. Not configurable and never taken from request input.
ARBITRUM_ONE_CHAIN_ID: Final[int] = 42161

PERSONAL_MESSAGE_PREFIX: Final[bytes] = b"\x19Ethereum Signed Message:\n32"
MAX_UINT256: Final[int] = 2**256 - 1


@dataclass(frozen=True)
class _Layout:
    """Tag and ordered ``(field, abi type)`` list for one hash version."""

    tag: str
    fields: tuple[tuple[str, str], ...]


class HashVersion(Enum):
    """Supported message layouts."""

    V1 = _Layout(
        tag="PINBALL_SCORE:",
        fields=(
            ("tournament_id", "uint256"),
            ("player", "address"),
            ("score", "uint256"),
            ("name_hash", "bytes32"),
            ("meta_hash", "bytes32"),
        ),
    )
    V2 = _Layout(
        tag="PINBALL_SCORE:v2",
        fields=(
            ("tournament_id", "uint256"),
            ("player", "address"),
            ("score", "uint256"),
            ("nonce", "uint256"),
            ("chain_id", "uint256"),
            ("name_hash", "bytes32"),
            ("meta_hash", "bytes32"),
        ),
    )

    @property
    def tag(self) -> str:
        return self.value.tag

    @property
    def fields(self) -> tuple[tuple[str, str], ...]:
        return self.value.fields


CURRENT_VERSION: Final[HashVersion] = HashVersion.V2


def _check_uint256(name: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise DigestEncodingError(f"{name} must be an integer")
    if value < 0 or value > MAX_UINT256:
        raise DigestEncodingError(f"{name} does not fit in uint256")
    return value


def _check_bytes32(name: str, value: Any) -> bytes:
    if not isinstance(value, (bytes, bytearray)) or len(value) != KECCAK_DIGEST_BYTES:
        raise DigestEncodingError(f"{name} must be exactly 32 bytes")
    return bytes(value)


def _check_address(name: str, value: Any) -> str:
    if not is_address(value):
        raise DigestEncodingError(f"{name} must be a 20-byte hex address")
    return value.lower()


_CHECKS = {
    "uint256": _check_uint256,
    "bytes32": _check_bytes32,
    "address": _check_address,
}


def pack_fields(version: HashVersion, values: dict[str, Any]) -> bytes:
    """Return the tightly packed message bytes for ``version``.

    Raises:
        DigestEncodingError: If a field is missing or does not fit its slot.
    """
    types: list[str] = ["string"]
    packed: list[Any] = [version.tag]
    for name, abi_type in version.fields:
        if name not in values:
            raise DigestEncodingError(f"missing field {name} for {version.name}")
        types.append(abi_type)
        packed.append(_CHECKS[abi_type](name, values[name]))
    return encode_packed(types, packed)


def content_hash(version: HashVersion, values: dict[str, Any]) -> bytes:
    """Return keccak-256 of the packed message for ``version``."""
    return keccak_digest(pack_fields(version, values))


def personal_digest(inner_hash: bytes) -> bytes:
    """Wrap a 32-byte hash with the personal-message prefix and rehash it."""
    return keccak_digest(PERSONAL_MESSAGE_PREFIX + _check_bytes32("inner_hash", inner_hash))


def build_digest(
    version: HashVersion,
    tournament_id: int,
    player: str,
    score: int,
    nonce: int | None,
    chain_id: int | None,
    name_hash: bytes,
    meta_hash: bytes,
) -> bytes:
    """Return the 32-byte digest the oracle signs for a claim.

    ``nonce`` and ``chain_id`` are ignored by V1 and required by V2.
    """
    values: dict[str, Any] = {
        "tournament_id": tournament_id,
        "player": player,
        "score": score,
        "name_hash": name_hash,
        "meta_hash": meta_hash,
    }
    if nonce is not None:
        values["nonce"] = nonce
    if chain_id is not None:
        values["chain_id"] = chain_id
    return personal_digest(content_hash(version, values))


def hash_name(name: str) -> bytes:
    """Hash the display name exactly as the contract does."""
    return keccak_text(name or "")


def hash_metadata(metadata_json: str) -> bytes:
    """Hash the canonical metadata string exactly as the contract does."""
    return keccak_text(metadata_json or "")


def build_claim_digest(
    *,
    tournament_id: int,
    player: str,
    score: int,
    nonce: int,
    name: str,
    metadata_json: str,
    version: HashVersion = CURRENT_VERSION,
    chain_id: int = ARBITRUM_ONE_CHAIN_ID,
) -> bytes:
    """Hash name and metadata, then build the digest for a claim."""
    return build_digest(
        version,
        tournament_id,
        player,
        score,
        nonce,
        chain_id,
        hash_name(name),
        hash_metadata(metadata_json),
    )


def supported_versions() -> Sequence[str]:
    """Return the names of all layouts, newest last."""
    return [version.name for version in HashVersion]
