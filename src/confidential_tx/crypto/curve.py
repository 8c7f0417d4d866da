"""
Group primitives over secp256k1 for confidential transactions.

Provides:
- Point encode/decode utilities for compressed secp256k1 points
- hash_to_curve: NUMS (Nothing-Up-My-Sleeve) point derivation with domain separation
- hash_to_scalar / random_scalar: scalar field helpers

Every wire-level point is a 66-char compressed hex string (02/03 prefix +
32-byte X coordinate). Scalars are ints reduced modulo the group order N.

References:
    [H2C]   IETF draft-irtf-cfrg-hash-to-curve, §5 (try-and-increment method).
    [SEC2]  SEC 2: Recommended Elliptic Curve Domain Parameters, §2.4.1.
"""

from __future__ import annotations

import hashlib
import secrets
from random import Random

import ecdsa
import ecdsa.ellipticcurve as ec

# ==============================================================================
# secp256k1 curve constants
# ==============================================================================

# Field prime
SECP256K1_P = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEFFFFFC2F

# Group order
SECP256K1_N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141

# Generator point (compressed)
G_COMPRESSED = "0279be667ef9dcbbac55a06295ce870b07029bfcdb2dce28d959f2815b16f81798"

# The secp256k1 curve object from the ecdsa library
_CURVE = ecdsa.SECP256k1.curve
_GENERATOR = ecdsa.SECP256k1.generator

COMPRESSED_POINT_LEN = 33
_IDENTITY_BYTES = bytes(COMPRESSED_POINT_LEN)


class InvalidCurvePoint(ValueError):
    """Raised when bytes do not decode to a point on secp256k1."""
    pass


# ==============================================================================
# Point utilities (public API)
# ==============================================================================


def decode_point(hex_str: str) -> ec.PointJacobi:
    """
    Decode a 33-byte compressed secp256k1 point to an ecdsa Point.

    Args:
        hex_str: 66-character hex string (02/03 prefix + 32-byte X coordinate).

    Returns:
        ecdsa elliptic curve Point.

    Raises:
        InvalidCurvePoint: If the hex string is malformed or not on the curve.
    """
    try:
        raw = bytes.fromhex(hex_str)
    except (TypeError, ValueError):
        raise InvalidCurvePoint(f"Not a hex string: {hex_str!r}") from None
    if len(raw) != COMPRESSED_POINT_LEN:
        raise InvalidCurvePoint(f"Expected 33 bytes, got {len(raw)}")
    prefix = raw[0]
    if prefix not in (0x02, 0x03):
        raise InvalidCurvePoint(f"Invalid prefix byte: 0x{prefix:02x}")

    x = int.from_bytes(raw[1:], "big")
    if x >= SECP256K1_P:
        raise InvalidCurvePoint("X coordinate is not a field element")
    y_sq = (pow(x, 3, SECP256K1_P) + 7) % SECP256K1_P
    y = pow(y_sq, (SECP256K1_P + 1) // 4, SECP256K1_P)

    # Verify it's actually a quadratic residue (point is on curve)
    if (y * y) % SECP256K1_P != y_sq:
        raise InvalidCurvePoint(f"X coordinate 0x{x:064x} does not correspond to a curve point")

    is_even = (prefix == 0x02)
    if (y % 2 == 0) != is_even:
        y = SECP256K1_P - y

    return ec.PointJacobi(_CURVE, x, y, 1, SECP256K1_N)


def encode_point(pt: ec.AbstractPoint) -> str:
    """
    Encode an ecdsa Point as a 33-byte compressed hex string.

    Raises:
        ValueError: If the point is the identity (point at infinity).
    """
    if is_identity(pt):
        raise ValueError("Cannot encode the point at infinity")
    # Jacobian coordinates (e.g. after negation) are not always reduced mod p
    x = pt.x() % SECP256K1_P
    y = pt.y() % SECP256K1_P
    prefix = b"\x02" if y % 2 == 0 else b"\x03"
    return (prefix + x.to_bytes(32, "big")).hex()


def point_to_bytes(pt: ec.AbstractPoint) -> bytes:
    """Compressed bytes of a point, with 33 zero bytes standing in for the identity."""
    if is_identity(pt):
        return _IDENTITY_BYTES
    return bytes.fromhex(encode_point(pt))


def is_identity(pt: ec.AbstractPoint) -> bool:
    return pt == ec.INFINITY


def sum_points(points) -> ec.AbstractPoint:
    """Sum an iterable of points; the empty sum is the identity."""
    total = ec.INFINITY
    for pt in points:
        total = pt if is_identity(total) else total + pt
    return total


def base_mul(scalar: int) -> ec.PointJacobi:
    """scalar·G"""
    return (scalar % SECP256K1_N) * _GENERATOR


def public_from_private(private_key: int) -> str:
    """Compressed hex of private_key·G."""
    return encode_point(base_mul(private_key))


# ==============================================================================
# hash_to_curve — NUMS point derivation
# ==============================================================================


def hash_to_curve(domain: bytes, data: bytes) -> str:
    """
    Derive a Nothing-Up-My-Sleeve point from (domain, data).

    Algorithm (try-and-increment, per IETF hash-to-curve §5):
        1. x = int(Blake2b256(domain || data)) mod p
        2. While x³+7 mod p is not a quadratic residue: x += 1
        3. Choose even y (0x02 prefix)

    The resulting point has no known discrete log relationship to G.

    Returns:
        66-char compressed hex of the NUMS point (always with 0x02 prefix / even y).
    """
    hasher = hashlib.blake2b(digest_size=32)
    hasher.update(domain)
    hasher.update(data)
    x = int.from_bytes(hasher.digest(), "big") % SECP256K1_P

    for _ in range(1000):
        y_sq = (pow(x, 3, SECP256K1_P) + 7) % SECP256K1_P
        # Euler criterion: y_sq is a QR iff y_sq^((p-1)/2) == 1 mod p
        if pow(y_sq, (SECP256K1_P - 1) // 2, SECP256K1_P) == 1:
            return (b"\x02" + x.to_bytes(32, "big")).hex()
        x = (x + 1) % SECP256K1_P

    raise RuntimeError("hash_to_curve: failed to find a valid point in 1000 iterations")


# ==============================================================================
# Scalars
# ==============================================================================


def hash_to_scalar(domain: bytes, *parts: bytes) -> int:
    """Blake2b-512 of (domain || parts...) reduced modulo N."""
    hasher = hashlib.blake2b(digest_size=64)
    hasher.update(domain)
    for part in parts:
        hasher.update(part)
    return int.from_bytes(hasher.digest(), "big") % SECP256K1_N


def scalar_to_bytes(scalar: int) -> bytes:
    return (scalar % SECP256K1_N).to_bytes(32, "big")


def default_rng() -> Random:
    """The OS entropy source, used whenever the caller does not inject one."""
    return secrets.SystemRandom()


def random_scalar(rng: Random) -> int:
    """A uniformly random non-zero scalar in [1, N-1]."""
    return rng.randrange(1, SECP256K1_N)


def random_bytes(rng: Random, length: int) -> bytes:
    return rng.getrandbits(8 * length).to_bytes(length, "big")
