"""
Ring signatures and the balance check over a whole transaction.

Each input is signed with a two-column MLSAG over its ring:

    column 0:  P_i               (target key of ring member i)
    column 1:  C_i - C_pseudo    (commitment difference)

For the real member j, the signer knows x with P_j = x·G and
z = blinding_j - pseudo_blinding with C_j - C_pseudo = z·G (the values cancel
because the pseudo-output commits to the same value and token id).

Key image:  I = x·Hp(P_j), so the same output can never be spent twice.

Challenge chain:
    c_{i+1} = Hs(message, C_pseudo, I, r0_i·G + c_i·P_i,
                                      r0_i·Hp(P_i) + c_i·I,
                                      r1_i·G + c_i·Z_i)

Conservation: pseudo-output blindings are chosen so they sum to the output
blindings, so  Σ C_pseudo - Σ C_out - fee·H_fee  is the identity exactly
when every token lane balances.

References:
    [LSAG]  Liu, Wei, Wong, "Linkable Spontaneous Anonymous Group Signature", 2004.
    [RCT]   Noether, "Ring Confidential Transactions", Ledger 1 (2016), §4.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Union

import ecdsa.ellipticcurve as ec
from pydantic import BaseModel, ConfigDict

from confidential_tx.crypto.commitment import generators
from confidential_tx.crypto.curve import (
    SECP256K1_N,
    InvalidCurvePoint,
    base_mul,
    decode_point,
    encode_point,
    hash_to_curve,
    hash_to_scalar,
    is_identity,
    point_to_bytes,
    random_scalar,
    sum_points,
)
from confidential_tx.errors import RingSignatureError

logger = logging.getLogger("confidential_tx.crypto")

KEY_IMAGE_DOMAIN_TAG = b"ctx_key_image"
MLSAG_DOMAIN_TAG = b"ctx_ring_mlsag"
EXTENDED_MESSAGE_DOMAIN_TAG = b"ctx_extended_message"


@lru_cache(maxsize=1024)
def _hash_to_point(public_key: str) -> ec.PointJacobi:
    """Hp(P)"""
    return decode_point(hash_to_curve(KEY_IMAGE_DOMAIN_TAG, bytes.fromhex(public_key)))


def _sub(a: ec.AbstractPoint, b: ec.AbstractPoint) -> ec.AbstractPoint:
    if is_identity(b):
        return a
    return sum_points([a, -b])


def _challenge(
    message: bytes,
    pseudo_output: ec.AbstractPoint,
    key_image: ec.AbstractPoint,
    L0: ec.AbstractPoint,
    R0: ec.AbstractPoint,
    L1: ec.AbstractPoint,
) -> int:
    return hash_to_scalar(
        MLSAG_DOMAIN_TAG,
        message,
        point_to_bytes(pseudo_output),
        point_to_bytes(key_image),
        point_to_bytes(L0),
        point_to_bytes(R0),
        point_to_bytes(L1),
    )


# ==============================================================================
# Wire types
# ==============================================================================


class KeyImage(BaseModel):
    """I = x·Hp(P): unique per spent output, reveals nothing about which."""
    model_config = ConfigDict(frozen=True)

    hex: str

    @classmethod
    def from_private(cls, onetime_private_key: int, target_key: str) -> KeyImage:
        return cls(hex=encode_point((onetime_private_key % SECP256K1_N) * _hash_to_point(target_key)))


class RingMLSAG(BaseModel):
    """
    A two-column MLSAG.

    responses is flattened as [r0_0, r1_0, r0_1, r1_1, ...].
    """
    model_config = ConfigDict(frozen=True)

    c_zero: int
    responses: list[int]
    key_image: KeyImage

    @classmethod
    def sign(
        cls,
        message: bytes,
        ring: list[ReducedTxOut],
        real_index: int,
        onetime_private_key: int,
        value: int,
        blinding: int,
        pseudo_output_blinding: int,
        token_id: int,
        rng,
    ) -> RingMLSAG:
        """
        Sign a ring.

        Raises:
            RingSignatureError: If the ring is empty, the index is out of range,
                                or the secrets do not open the real member.
        """
        n = len(ring)
        if n == 0:
            raise RingSignatureError("Cannot sign an empty ring")
        if not 0 <= real_index < n:
            raise RingSignatureError(f"real_index {real_index} out of range for ring of {n}")

        gens = generators(token_id)
        pseudo_output = gens.commit(value, pseudo_output_blinding)
        x = onetime_private_key % SECP256K1_N
        z = (blinding - pseudo_output_blinding) % SECP256K1_N

        real = ring[real_index]
        if encode_point(base_mul(x)) != real.target_key:
            raise RingSignatureError("Onetime private key does not match the real ring member")
        if decode_point(real.commitment) != gens.commit(value, blinding):
            raise RingSignatureError("Amount secrets do not open the real ring member")

        key_image_pt = x * _hash_to_point(real.target_key)
        key_image = KeyImage(hex=encode_point(key_image_pt))

        challenges: list[int] = [0] * n
        responses: list[int] = [0] * (2 * n)

        alpha0 = random_scalar(rng)
        alpha1 = random_scalar(rng)
        challenges[(real_index + 1) % n] = _challenge(
            message,
            pseudo_output,
            key_image_pt,
            base_mul(alpha0),
            alpha0 * _hash_to_point(real.target_key),
            base_mul(alpha1),
        )

        i = (real_index + 1) % n
        while i != real_index:
            r0 = random_scalar(rng)
            r1 = random_scalar(rng)
            responses[2 * i] = r0
            responses[2 * i + 1] = r1
            challenges[(i + 1) % n] = _next_challenge(
                message, pseudo_output, key_image_pt, ring[i], challenges[i], r0, r1
            )
            i = (i + 1) % n

        c = challenges[real_index]
        responses[2 * real_index] = (alpha0 - c * x) % SECP256K1_N
        responses[2 * real_index + 1] = (alpha1 - c * z) % SECP256K1_N

        return cls(c_zero=challenges[0], responses=responses, key_image=key_image)

    def verify(
        self,
        message: bytes,
        ring: list[ReducedTxOut],
        pseudo_output_commitment: str,
    ) -> None:
        """
        Verify against a ring and pseudo-output.

        Raises:
            RingSignatureError: If the signature does not verify.
        """
        n = len(ring)
        if n == 0:
            raise RingSignatureError("Cannot verify an empty ring")
        if len(self.responses) != 2 * n:
            raise RingSignatureError(
                f"Expected {2 * n} responses for ring of {n}, got {len(self.responses)}"
            )
        try:
            pseudo_output = decode_point(pseudo_output_commitment)
            key_image_pt = decode_point(self.key_image.hex)
        except InvalidCurvePoint as e:
            raise RingSignatureError(f"Invalid point in signature: {e}") from e

        c = self.c_zero % SECP256K1_N
        for i in range(n):
            try:
                c = _next_challenge(
                    message,
                    pseudo_output,
                    key_image_pt,
                    ring[i],
                    c,
                    self.responses[2 * i],
                    self.responses[2 * i + 1],
                )
            except InvalidCurvePoint as e:
                raise RingSignatureError(f"Invalid ring member {i}: {e}") from e

        if c != self.c_zero % SECP256K1_N:
            raise RingSignatureError("Ring signature does not verify")


def _next_challenge(
    message: bytes,
    pseudo_output: ec.AbstractPoint,
    key_image: ec.AbstractPoint,
    member: ReducedTxOut,
    c: int,
    r0: int,
    r1: int,
) -> int:
    P = decode_point(member.target_key)
    Z = _sub(decode_point(member.commitment), pseudo_output)
    L0 = sum_points([base_mul(r0), c * P])
    R0 = sum_points([(r0 % SECP256K1_N) * _hash_to_point(member.target_key), c * key_image])
    L1 = sum_points([base_mul(r1), c * Z])
    return _challenge(message, pseudo_output, key_image, L0, R0, L1)


class SignatureRctBulletproofs(BaseModel):
    """
    Ring signatures for every input plus their pseudo-output commitments.

    Range proofs are not produced here; the balance check below is what
    binds values.
    """
    model_config = ConfigDict(frozen=True)

    ring_signatures: list[RingMLSAG]
    pseudo_output_commitments: list[str]

    def key_images(self) -> list[KeyImage]:
        return [sig.key_image for sig in self.ring_signatures]


# ==============================================================================
# Signing inputs
# ==============================================================================


@dataclass(frozen=True)
class ReducedTxOut:
    """The parts of a TxOut a ring signature looks at."""
    public_key: str
    target_key: str
    commitment: str

    @classmethod
    def from_tx_out(cls, tx_out) -> ReducedTxOut:
        return cls(
            public_key=tx_out.public_key,
            target_key=tx_out.target_key,
            commitment=tx_out.masked_amount.commitment,
        )


@dataclass(frozen=True)
class OutputSecret:
    """Amount and blinding of an output, kept only until signing."""
    amount: object  # Amount
    blinding: int


@dataclass(frozen=True)
class InputSecret:
    onetime_private_key: int
    amount: object  # Amount
    blinding: int


@dataclass(frozen=True)
class SignableInputRing:
    """A ring the builder signs itself."""
    members: list[ReducedTxOut]
    real_input_index: int
    input_secret: InputSecret


@dataclass(frozen=True)
class PresignedInputRing:
    """A ring that another party already signed; it must not be re-signed."""
    mlsag: RingMLSAG
    pseudo_output_secret: OutputSecret


InputRing = Union[SignableInputRing, PresignedInputRing]


def extended_message(message: bytes, pseudo_output_commitments: list[str]) -> bytes:
    """The digest each builder-signed ring commits to."""
    hasher = hashlib.blake2b(digest_size=32)
    hasher.update(EXTENDED_MESSAGE_DOMAIN_TAG)
    hasher.update(message)
    for commitment in pseudo_output_commitments:
        hasher.update(bytes.fromhex(commitment))
    return hasher.digest()


def check_balance(
    pseudo_output_commitments: list[str],
    output_commitments: list[str],
    fee_value: int,
    fee_token_id: int,
) -> None:
    """
    Σ pseudo - Σ outputs - fee·H_fee must be the identity.

    Raises:
        RingSignatureError: If value is not conserved.
    """
    try:
        inputs_sum = sum_points(decode_point(c) for c in pseudo_output_commitments)
        outputs_sum = sum_points(decode_point(c) for c in output_commitments)
    except InvalidCurvePoint as e:
        raise RingSignatureError(f"Invalid commitment: {e}") from e
    fee_point = generators(fee_token_id).commit(fee_value, 0)
    difference = _sub(_sub(inputs_sum, outputs_sum), fee_point)
    if not is_identity(difference):
        raise RingSignatureError("value is not conserved")


def sign(
    block_version,
    message: bytes,
    input_rings: list[InputRing],
    output_secrets: list[OutputSecret],
    fee,
    rng,
) -> SignatureRctBulletproofs:
    """
    Sign every ring and produce the pseudo-outputs that balance the transaction.

    Args:
        block_version: the BlockVersion the transaction targets.
        message: 32-byte hash of the transaction prefix.
        input_rings: rings in transaction input order.
        output_secrets: secrets in transaction output order.
        fee: the fee Amount.
        rng: random source for blindings and MLSAG nonces.

    Raises:
        RingSignatureError: If value is not conserved or a ring cannot be signed.
    """
    if not input_rings:
        raise RingSignatureError("No input rings")
    signable = [i for i, ring in enumerate(input_rings) if isinstance(ring, SignableInputRing)]
    if not signable:
        raise RingSignatureError("At least one input ring must be signable")

    output_blinding_sum = sum(s.blinding for s in output_secrets) % SECP256K1_N

    pseudo_blindings: list[int] = [0] * len(input_rings)
    for i, ring in enumerate(input_rings):
        if isinstance(ring, PresignedInputRing):
            pseudo_blindings[i] = ring.pseudo_output_secret.blinding % SECP256K1_N
    for i in signable[:-1]:
        pseudo_blindings[i] = random_scalar(rng)
    last = signable[-1]
    others = sum(b for i, b in enumerate(pseudo_blindings) if i != last)
    pseudo_blindings[last] = (output_blinding_sum - others) % SECP256K1_N

    pseudo_outputs: list[str] = []
    for ring, pb in zip(input_rings, pseudo_blindings):
        amount = (
            ring.input_secret.amount
            if isinstance(ring, SignableInputRing)
            else ring.pseudo_output_secret.amount
        )
        pseudo_outputs.append(encode_point(generators(amount.token_id).commit(amount.value, pb)))

    output_commitments = [
        encode_point(generators(s.amount.token_id).commit(s.amount.value, s.blinding))
        for s in output_secrets
    ]
    check_balance(pseudo_outputs, output_commitments, fee.value, fee.token_id)

    ext_message = extended_message(message, pseudo_outputs)
    ring_signatures: list[RingMLSAG] = []
    for ring, pb in zip(input_rings, pseudo_blindings):
        if isinstance(ring, PresignedInputRing):
            ring_signatures.append(ring.mlsag)
            continue
        secret = ring.input_secret
        ring_signatures.append(
            RingMLSAG.sign(
                ext_message,
                ring.members,
                ring.real_input_index,
                secret.onetime_private_key,
                secret.amount.value,
                secret.blinding,
                pb,
                secret.amount.token_id,
                rng,
            )
        )

    logger.debug(
        f"Signed {len(ring_signatures)} rings at block version {int(block_version)}"
    )
    return SignatureRctBulletproofs(
        ring_signatures=ring_signatures,
        pseudo_output_commitments=pseudo_outputs,
    )


def verify(block_version, message: bytes, tx_prefix, signature: SignatureRctBulletproofs) -> None:
    """
    Verify every ring signature and the balance of a transaction prefix.

    Inputs carrying input rules were signed by their owner over the input's
    own digest; all others over the extended message.

    Raises:
        RingSignatureError: On any mismatch.
    """
    inputs = tx_prefix.inputs
    if len(signature.ring_signatures) != len(inputs):
        raise RingSignatureError(
            f"{len(inputs)} inputs but {len(signature.ring_signatures)} ring signatures"
        )
    if len(signature.pseudo_output_commitments) != len(inputs):
        raise RingSignatureError(
            f"{len(inputs)} inputs but {len(signature.pseudo_output_commitments)} pseudo-outputs"
        )

    check_balance(
        signature.pseudo_output_commitments,
        [o.masked_amount.commitment for o in tx_prefix.outputs],
        tx_prefix.fee.value,
        tx_prefix.fee.token_id,
    )

    ext_message = extended_message(message, signature.pseudo_output_commitments)
    for tx_in, mlsag, pseudo in zip(
        inputs, signature.ring_signatures, signature.pseudo_output_commitments
    ):
        ring = [ReducedTxOut.from_tx_out(o) for o in tx_in.ring]
        if tx_in.input_rules is not None:
            signed_message = tx_in.signed_digest(block_version)
        else:
            signed_message = ext_message
        mlsag.verify(signed_message, ring, pseudo)
