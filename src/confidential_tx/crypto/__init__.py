"""
confidential_tx.crypto — Cryptographic primitives for confidential transactions.

Provides:
- secp256k1 point encode/decode, hash-to-curve and scalar helpers
- Token-keyed Pedersen commitments
- CryptoNote one-time keys
- MLSAG ring signatures and the transaction balance check
- AES-CTR and AES-GCM keyed from Diffie-Hellman shared secrets
"""

from confidential_tx.crypto.cipher import DecryptionError, aes_ctr, aes_gcm_open, aes_gcm_seal
from confidential_tx.crypto.commitment import (
    NUMS_H,
    Commitment,
    CompressedCommitment,
    PedersenGens,
    generators,
)
from confidential_tx.crypto.curve import (
    G_COMPRESSED,
    InvalidCurvePoint,
    decode_point,
    encode_point,
    hash_to_curve,
    hash_to_scalar,
    random_scalar,
)
from confidential_tx.crypto.ring_signature import (
    KeyImage,
    RingMLSAG,
    SignatureRctBulletproofs,
)

__all__ = [
    "G_COMPRESSED",
    "NUMS_H",
    "Commitment",
    "CompressedCommitment",
    "DecryptionError",
    "InvalidCurvePoint",
    "KeyImage",
    "PedersenGens",
    "RingMLSAG",
    "SignatureRctBulletproofs",
    "aes_ctr",
    "aes_gcm_open",
    "aes_gcm_seal",
    "decode_point",
    "encode_point",
    "generators",
    "hash_to_curve",
    "hash_to_scalar",
    "random_scalar",
]
