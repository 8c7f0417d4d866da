"""
CryptoNote-style one-time keys.

For a recipient subaddress (C, D) = (c·G, d·G) and a fresh tx private key r:

    tx_out public key    R = r·D
    tx_out target key    P = Hs(r·C)·G + D
    shared secret        r·C == a·R    (a = account view private key)

The recipient recovers the one-time private key x = Hs(a·R) + d, which
satisfies x·G == P, and can recover D = P - Hs(a·R)·G to find which of its
subaddresses an output was sent to.

References:
    [CN]  van Saberhagen, "CryptoNote v2.0", §4.3 (unlinkable payments).
"""

from __future__ import annotations

from confidential_tx.crypto.curve import (
    SECP256K1_N,
    base_mul,
    decode_point,
    encode_point,
    hash_to_scalar,
    point_to_bytes,
)

ONETIME_KEY_DOMAIN_TAG = b"ctx_onetime_key"


def _hash_shared_point(shared_point_bytes: bytes) -> int:
    return hash_to_scalar(ONETIME_KEY_DOMAIN_TAG, shared_point_bytes)


def create_tx_out_public_key(tx_private_key: int, recipient_spend_public_key: str) -> str:
    """R = r·D"""
    D = decode_point(recipient_spend_public_key)
    return encode_point((tx_private_key % SECP256K1_N) * D)


def create_tx_out_target_key(tx_private_key: int, recipient) -> str:
    """
    P = Hs(r·C)·G + D

    Args:
        tx_private_key: fresh scalar r.
        recipient: a PublicAddress (view_public_key C, spend_public_key D).
    """
    C = decode_point(recipient.view_public_key)
    D = decode_point(recipient.spend_public_key)
    shared = (tx_private_key % SECP256K1_N) * C
    hs = _hash_shared_point(point_to_bytes(shared))
    return encode_point(base_mul(hs) + D)


def create_shared_secret(public_key: str, private_key: int) -> str:
    """
    Diffie-Hellman shared secret private_key·public_key.

    The sender calls this with (C, r); the recipient with (R, a).
    """
    return encode_point((private_key % SECP256K1_N) * decode_point(public_key))


def recover_onetime_private_key(
    tx_public_key: str,
    view_private_key: int,
    subaddress_spend_private_key: int,
) -> int:
    """x = Hs(a·R) + d"""
    shared = create_shared_secret(tx_public_key, view_private_key)
    hs = _hash_shared_point(bytes.fromhex(shared))
    return (hs + subaddress_spend_private_key) % SECP256K1_N


def recover_public_subaddress_spend_key(
    view_private_key: int,
    onetime_public_key: str,
    tx_public_key: str,
) -> str:
    """D = P - Hs(a·R)·G"""
    shared = create_shared_secret(tx_public_key, view_private_key)
    hs = _hash_shared_point(bytes.fromhex(shared))
    P = decode_point(onetime_public_key)
    return encode_point(P + (-base_mul(hs)))
