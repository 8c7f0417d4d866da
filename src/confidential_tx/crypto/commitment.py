"""
Token-keyed Pedersen commitments.

Every token id gets its own value generator so that commitments to different
tokens can never cancel each other out:

    C = v·H_token + r·G

Generator derivation:
    H_0     = hash_to_curve(DOMAIN, G_compressed)            [canonical NUMS H]
    H_token = hash_to_curve(DOMAIN, H_0_compressed || token_id_le64)

The blinding generator is always G. Derivation is deterministic and cached,
so the same token id always maps to the same generator pair.

References:
    [Ped91] T.P. Pedersen, CRYPTO '91, §3.
    [Grin]  MimbleWimble/Grin multi-asset extension, domain-separated generators.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache

import ecdsa.ellipticcurve as ec

from confidential_tx.crypto.curve import (
    G_COMPRESSED,
    SECP256K1_N,
    _GENERATOR,
    InvalidCurvePoint,
    decode_point,
    encode_point,
    hash_to_curve,
    is_identity,
)

# ==============================================================================
# Constants
# ==============================================================================

GENERATOR_DOMAIN_TAG = b"ctx_amount_generator"

# Canonical NUMS value generator, used by token id 0
NUMS_H = hash_to_curve(GENERATOR_DOMAIN_TAG, bytes.fromhex(G_COMPRESSED))


# ==============================================================================
# Generators
# ==============================================================================


@dataclass(frozen=True)
class PedersenGens:
    """
    A (value, blinding) generator pair.

    Attributes:
        B: value generator for one token id.
        B_blinding: blinding generator, always G.
    """
    B: ec.PointJacobi
    B_blinding: ec.PointJacobi

    def commit(self, value: int, blinding: int) -> ec.AbstractPoint:
        """value·B + blinding·B_blinding"""
        value_part = (value % SECP256K1_N) * self.B
        blind_part = (blinding % SECP256K1_N) * self.B_blinding
        if is_identity(value_part):
            return blind_part
        if is_identity(blind_part):
            return value_part
        return value_part + blind_part


@lru_cache(maxsize=256)
def generators(token_id: int) -> PedersenGens:
    """
    Derive the Pedersen generator pair for a token id.

    Args:
        token_id: unsigned 64-bit token identifier.

    Returns:
        PedersenGens whose value generator is specific to this token id.
    """
    if token_id < 0 or token_id >= 2**64:
        raise ValueError(f"token_id must be a u64, got {token_id}")
    if token_id == 0:
        h_hex = NUMS_H
    else:
        h_hex = hash_to_curve(
            GENERATOR_DOMAIN_TAG,
            bytes.fromhex(NUMS_H) + token_id.to_bytes(8, "little"),
        )
    h_point = decode_point(h_hex)
    # Precompute tables for the fixed value generator
    h_point = ec.PointJacobi(
        h_point.curve(), h_point.x(), h_point.y(), 1, SECP256K1_N, generator=True
    )
    return PedersenGens(B=h_point, B_blinding=_GENERATOR)


# ==============================================================================
# Commitment
# ==============================================================================


@dataclass(frozen=True)
class Commitment:
    """An uncompressed commitment point; the token id is implicit."""
    point: ec.AbstractPoint

    @classmethod
    def new(cls, value: int, blinding: int, gens: PedersenGens) -> Commitment:
        return cls(gens.commit(value, blinding))

    @classmethod
    def decompress(cls, compressed: CompressedCommitment | str) -> Commitment:
        """
        Decode a compressed commitment.

        Raises:
            InvalidCurvePoint: If the bytes are not a valid curve point.
        """
        hex_str = compressed.hex if isinstance(compressed, CompressedCommitment) else compressed
        return cls(decode_point(hex_str))

    def compress(self) -> CompressedCommitment:
        return CompressedCommitment(hex=encode_point(self.point))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Commitment):
            return NotImplemented
        return self.point == other.point

    def __hash__(self) -> int:
        return hash(self.compress().hex)


@dataclass(frozen=True)
class CompressedCommitment:
    """33-byte compressed commitment, as it appears on the wire."""
    hex: str

    @classmethod
    def new(cls, value: int, blinding: int, gens: PedersenGens) -> CompressedCommitment:
        return Commitment.new(value, blinding, gens).compress()

    def decompress(self) -> Commitment:
        return Commitment.decompress(self)


__all__ = [
    "NUMS_H",
    "Commitment",
    "CompressedCommitment",
    "InvalidCurvePoint",
    "PedersenGens",
    "generators",
]
