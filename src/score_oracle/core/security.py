"""Signature utilities built on secp256k1 (eth-account / eth-keys).

This is the only module that touches the oracle's private key. It signs a
digest that has already been built; it never hashes or prefixes it again.
"""
from __future__ import annotations

from eth_account import Account
from eth_keys import keys
from eth_keys.exceptions import BadSignature, ValidationError

from score_oracle.core.errors import SigningError

SIGNATURE_BYTES = 65
DIGEST_BYTES = 32
_V_OFFSET = 27


def sign_digest(private_key: str, digest: bytes) -> str:
    """Sign a 32-byte digest with the oracle key.

    Args:
        private_key: 0x-prefixed hex secp256k1 private key.
        digest: The final digest produced by the digest builder.

    Returns:
        0x-prefixed hex of the 65-byte ``r || s || v`` signature, ``v`` in {27, 28}.

    Raises:
        SigningError: If the key is malformed or signing fails for any reason.
    """
    if len(digest) != DIGEST_BYTES:
        raise SigningError("digest must be exactly 32 bytes")
    try:
        signed = Account.unsafe_sign_hash(digest, private_key)
    except Exception as err:
        # Never echo the key or the underlying message.
        raise SigningError("unable to sign digest with configured key") from err
    return "0x" + bytes(signed.signature).hex()


def derive_address(private_key: str) -> str:
    """Return the checksum address controlled by ``private_key``.

    Raises:
        SigningError: If the key is malformed.
    """
    try:
        return Account.from_key(private_key).address
    except Exception as err:
        raise SigningError("configured signer key is malformed") from err


def recover_signer(digest: bytes, signature_hex: str) -> str:
    """Recover the checksum address that produced ``signature_hex`` over ``digest``.

    Mirrors the contract's ``ecrecover`` on the already-prefixed digest.

    Raises:
        ValueError: If the signature is not a well-formed 65-byte signature.
    """
    raw = bytes.fromhex(signature_hex.removeprefix("0x"))
    if len(raw) != SIGNATURE_BYTES:
        raise ValueError("signature must be 65 bytes")
    v = raw[64] - _V_OFFSET if raw[64] >= _V_OFFSET else raw[64]
    try:
        signature = keys.Signature(
            vrs=(v, int.from_bytes(raw[:32], "big"), int.from_bytes(raw[32:64], "big"))
        )
        public_key = signature.recover_public_key_from_msg_hash(digest)
    except (BadSignature, ValidationError) as err:
        raise ValueError("signature could not be recovered") from err
    return public_key.to_checksum_address()


def signer_matches(private_key: str, expected_address: str) -> bool:
    """Return True if the key controls ``expected_address`` (case-insensitive)."""
    return derive_address(private_key).lower() == expected_address.lower()
