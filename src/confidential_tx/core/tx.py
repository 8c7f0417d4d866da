"""
Transaction wire models: TxOut, TxIn, TxPrefix and Tx.

All points are 66-char compressed hex strings. The prefix hash is Blake2b-256
over a canonical JSON encoding (sorted keys, no whitespace), which makes it
a pure function of the model's field values.
"""

from __future__ import annotations

import hashlib
import hmac
import json
from typing import Callable

from pydantic import BaseModel, ConfigDict, Field

from confidential_tx.core.amount import Amount, MaskedAmount
from confidential_tx.core.fog_hint import EncryptedFogHint
from confidential_tx.core.memo import EncryptedMemo, MemoContext, MemoPayload
from confidential_tx.crypto.onetime_keys import (
    create_shared_secret,
    create_tx_out_public_key,
    create_tx_out_target_key,
    recover_public_subaddress_spend_key,
)
from confidential_tx.crypto.ring_signature import KeyImage, SignatureRctBulletproofs

TX_PREFIX_DOMAIN_TAG = b"ctx_tx_prefix"
TX_IN_DOMAIN_TAG = b"ctx_signed_contingent_input"
CONFIRMATION_DOMAIN_TAG = b"ctx_tx_out_confirmation_number"

MemoFn = Callable[[MemoContext], MemoPayload]


def _canonical_hash(domain: bytes, payload: object) -> bytes:
    encoded = json.dumps(payload, sort_keys=True, separators=(",", ":")).encode("utf-8")
    hasher = hashlib.blake2b(digest_size=32)
    hasher.update(domain)
    hasher.update(encoded)
    return hasher.digest()


# ==============================================================================
# TxOut
# ==============================================================================


class TxOut(BaseModel):
    """A transaction output."""
    model_config = ConfigDict(frozen=True)

    masked_amount: MaskedAmount
    target_key: str
    public_key: str
    e_fog_hint: EncryptedFogHint
    e_memo: EncryptedMemo | None = None

    @classmethod
    def new_with_memo(
        cls,
        block_version,
        amount: Amount,
        recipient,
        tx_private_key: int,
        hint: EncryptedFogHint,
        memo_fn: MemoFn,
    ) -> TxOut:
        """
        Build an output to a recipient subaddress.

        memo_fn is always invoked with the output's MemoContext. Its payload
        is dropped when the block version predates encrypted memos, and the
        masked token id is dropped when the version predates that.

        Args:
            block_version: targeted BlockVersion.
            amount: value and token id to send.
            recipient: the recipient's PublicAddress.
            tx_private_key: fresh scalar r for this output.
            hint: encrypted fog hint for the recipient.
            memo_fn: callback producing the plaintext memo.
        """
        public_key = create_tx_out_public_key(tx_private_key, recipient.spend_public_key)
        target_key = create_tx_out_target_key(tx_private_key, recipient)
        shared_secret = create_shared_secret(recipient.view_public_key, tx_private_key)

        memo = memo_fn(MemoContext(tx_public_key=public_key))
        e_memo = memo.encrypt(shared_secret) if block_version.e_memo_feature_is_supported() else None

        return cls(
            masked_amount=MaskedAmount.new_with_version(block_version, amount, shared_secret),
            target_key=target_key,
            public_key=public_key,
            e_fog_hint=hint,
            e_memo=e_memo,
        )

    def shared_secret(self, view_private_key: int) -> str:
        return create_shared_secret(self.public_key, view_private_key)

    def view_key_match(self, view_private_key: int) -> tuple[Amount, int]:
        """
        Reopen this output's amount with a view private key.

        Raises:
            AmountError: If the key does not own this output.
        """
        return self.masked_amount.get_value(self.shared_secret(view_private_key))

    def decrypt_memo(self, shared_secret: str) -> MemoPayload:
        """The plaintext memo; outputs without a memo read as UNUSED."""
        if self.e_memo is None:
            return MemoPayload.unused()
        return self.e_memo.decrypt(shared_secret)


def get_tx_out_shared_secret(view_private_key: int, tx_out_public_key: str) -> str:
    return create_shared_secret(tx_out_public_key, view_private_key)


def subaddress_matches_tx_out(account, subaddress_index: int, tx_out: TxOut) -> bool:
    """True if tx_out was sent to the account's subaddress at this index."""
    recovered = recover_public_subaddress_spend_key(
        account.view_private_key, tx_out.target_key, tx_out.public_key
    )
    return recovered == account.subaddress(subaddress_index).spend_public_key


class TxOutConfirmationNumber(BaseModel):
    """Proof that the holder knew an output's shared secret when it was built."""
    model_config = ConfigDict(frozen=True)

    hex: str

    @classmethod
    def from_shared_secret(cls, shared_secret: str) -> TxOutConfirmationNumber:
        return cls(hex=_canonical_hash(CONFIRMATION_DOMAIN_TAG, shared_secret).hex())

    def validate(self, tx_out_public_key: str, view_private_key: int) -> bool:
        """Check this confirmation against an output, given the recipient's view key."""
        shared_secret = create_shared_secret(tx_out_public_key, view_private_key)
        expected = TxOutConfirmationNumber.from_shared_secret(shared_secret)
        return hmac.compare_digest(expected.hex, self.hex)


# ==============================================================================
# TxIn
# ==============================================================================


class TxOutMembershipProof(BaseModel):
    """A Merkle proof of ring membership, carried as an opaque value."""
    model_config = ConfigDict(frozen=True)

    index: int
    highest_index: int
    elements: list[str] = Field(default_factory=list)


class InputRules(BaseModel):
    """Conditions under which a signed contingent input may be spent."""
    model_config = ConfigDict(frozen=True)

    required_outputs: list[TxOut] = Field(default_factory=list)
    max_tombstone_block: int = 0


class TxIn(BaseModel):
    """A ring of outputs, one of which is being spent."""
    model_config = ConfigDict(frozen=True)

    ring: list[TxOut]
    proofs: list[TxOutMembershipProof] = Field(default_factory=list)
    input_rules: InputRules | None = None

    def signed_digest(self, block_version) -> bytes:
        """
        The digest a signed contingent input's owner signs.

        Membership proofs are excluded, so whoever spends the input can
        attach fresh proofs without invalidating the signature.
        """
        payload = {
            "block_version": int(block_version),
            "ring": [o.model_dump(mode="json") for o in self.ring],
            "input_rules": self.input_rules.model_dump(mode="json") if self.input_rules else None,
        }
        return _canonical_hash(TX_IN_DOMAIN_TAG, payload)


# ==============================================================================
# TxPrefix / Tx
# ==============================================================================


class TxPrefix(BaseModel):
    """Everything the ring signatures sign."""
    model_config = ConfigDict(frozen=True)

    inputs: list[TxIn]
    outputs: list[TxOut]
    fee: Amount
    tombstone_block: int

    def hash(self) -> bytes:
        return _canonical_hash(TX_PREFIX_DOMAIN_TAG, self.model_dump(mode="json"))


class Tx(BaseModel):
    """A signed transaction."""
    model_config = ConfigDict(frozen=True)

    prefix: TxPrefix
    signature: SignatureRctBulletproofs

    def key_images(self) -> list[KeyImage]:
        return self.signature.key_images()

    def output_public_keys(self) -> list[str]:
        return [o.public_key for o in self.prefix.outputs]
