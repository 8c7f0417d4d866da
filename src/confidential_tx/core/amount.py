"""
Amounts and their masked, committed form on a TxOut.

A MaskedAmount is everything a TxOut reveals about its amount:
    commitment       = value·H_token + blinding·G
    masked_value     = value XOR mask_v
    masked_token_id  = token_id XOR mask_t   (8 bytes, or empty meaning token 0)

blinding, mask_v and mask_t are all derived from the output's shared secret,
so only the sender and the recipient can reopen it.
"""

from __future__ import annotations

import hashlib

from pydantic import BaseModel, ConfigDict, Field

from confidential_tx.constants import MASKED_TOKEN_ID_LEN, U64_MAX
from confidential_tx.crypto.commitment import CompressedCommitment, generators
from confidential_tx.crypto.curve import hash_to_scalar
from confidential_tx.errors import AmountError

AMOUNT_BLINDING_DOMAIN_TAG = b"ctx_amount_blinding"
AMOUNT_VALUE_DOMAIN_TAG = b"ctx_amount_value_mask"
AMOUNT_TOKEN_ID_DOMAIN_TAG = b"ctx_amount_token_id_mask"


class Amount(BaseModel):
    """A value in the smallest denomination of one token id."""
    model_config = ConfigDict(frozen=True)

    value: int = Field(ge=0, le=U64_MAX)
    token_id: int = Field(default=0, ge=0, le=U64_MAX)


class UnmaskedAmount(BaseModel):
    """An amount together with the blinding factor of its commitment."""
    model_config = ConfigDict(frozen=True)

    value: int
    token_id: int
    blinding: int

    @property
    def amount(self) -> Amount:
        return Amount(value=self.value, token_id=self.token_id)


def _mask_bytes(domain: bytes, shared_secret: str) -> bytes:
    hasher = hashlib.blake2b(digest_size=32)
    hasher.update(domain)
    hasher.update(bytes.fromhex(shared_secret))
    return hasher.digest()[:8]


def get_blinding(shared_secret: str) -> int:
    return hash_to_scalar(AMOUNT_BLINDING_DOMAIN_TAG, bytes.fromhex(shared_secret))


def _value_mask(shared_secret: str) -> int:
    return int.from_bytes(_mask_bytes(AMOUNT_VALUE_DOMAIN_TAG, shared_secret), "little")


def _token_id_mask(shared_secret: str) -> int:
    return int.from_bytes(_mask_bytes(AMOUNT_TOKEN_ID_DOMAIN_TAG, shared_secret), "little")


class MaskedAmount(BaseModel):
    """The committed amount carried by a TxOut."""
    model_config = ConfigDict(frozen=True)

    commitment: str          # compressed hex
    masked_value: int
    masked_token_id: str = ""  # hex, 8 bytes or empty

    @classmethod
    def new(cls, amount: Amount, shared_secret: str) -> MaskedAmount:
        """
        Mask an amount under a shared secret.

        Args:
            amount: the value and token id to commit to.
            shared_secret: compressed hex of the output's shared secret point.
        """
        blinding = get_blinding(shared_secret)
        commitment = CompressedCommitment.new(amount.value, blinding, generators(amount.token_id))
        masked_token_id = (amount.token_id ^ _token_id_mask(shared_secret)).to_bytes(
            MASKED_TOKEN_ID_LEN, "little"
        )
        return cls(
            commitment=commitment.hex,
            masked_value=amount.value ^ _value_mask(shared_secret),
            masked_token_id=masked_token_id.hex(),
        )

    @classmethod
    def new_with_version(cls, block_version, amount: Amount, shared_secret: str) -> MaskedAmount:
        """Like new(), clearing masked_token_id when the version predates it."""
        masked = cls.new(amount, shared_secret)
        if not block_version.masked_token_id_feature_is_supported():
            masked = masked.model_copy(update={"masked_token_id": ""})
        return masked

    def get_value(self, shared_secret: str) -> tuple[Amount, int]:
        """
        Reopen the amount with a shared secret.

        Returns:
            (amount, blinding)

        Raises:
            AmountError: If the recomputed commitment does not match, which
                         is what happens with a non-owning key.
        """
        if self.masked_token_id == "":
            token_id = 0
        elif len(self.masked_token_id) == 2 * MASKED_TOKEN_ID_LEN:
            masked = int.from_bytes(bytes.fromhex(self.masked_token_id), "little")
            token_id = masked ^ _token_id_mask(shared_secret)
        else:
            raise AmountError(
                f"masked_token_id must be empty or {MASKED_TOKEN_ID_LEN} bytes, "
                f"got {len(self.masked_token_id) // 2}"
            )

        value = self.masked_value ^ _value_mask(shared_secret)
        blinding = get_blinding(shared_secret)
        expected = CompressedCommitment.new(value, blinding, generators(token_id))
        if expected.hex != self.commitment:
            raise AmountError("Commitment does not match the unmasked amount")
        return Amount(value=value, token_id=token_id), blinding

    def unmask(self, shared_secret: str) -> UnmaskedAmount:
        amount, blinding = self.get_value(shared_secret)
        return UnmaskedAmount(value=amount.value, token_id=amount.token_id, blinding=blinding)
