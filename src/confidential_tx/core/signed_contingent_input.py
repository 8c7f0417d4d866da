"""
Signed contingent inputs (SCIs).

An SCI is an input signed by its owner ahead of time, over a digest that
covers its ring and its input rules but not its membership proofs. Whoever
spends it must satisfy the rules (e.g. include the required outputs), which
is how an owner offers a swap: "you may spend my input if the transaction
also pays me this".
"""

from __future__ import annotations

import logging

from pydantic import BaseModel, ConfigDict, Field

from confidential_tx.block_version import BlockVersion
from confidential_tx.core.amount import Amount, UnmaskedAmount, get_blinding
from confidential_tx.core.fog_hint import create_fog_hint
from confidential_tx.core.input_credentials import InputCredentials
from confidential_tx.core.memo import MemoPayload
from confidential_tx.core.tx import InputRules, TxIn, TxOut, TxOutMembershipProof
from confidential_tx.crypto.commitment import CompressedCommitment, generators
from confidential_tx.crypto.curve import random_scalar
from confidential_tx.crypto.onetime_keys import create_shared_secret
from confidential_tx.crypto.ring_signature import (
    KeyImage,
    ReducedTxOut,
    RingMLSAG,
)
from confidential_tx.errors import (
    MissingRules,
    RingSignatureError,
    RingSizeMismatch,
    RuleViolation,
    SignatureInvalid,
    TokenIdMismatch,
)

logger = logging.getLogger("confidential_tx.sci")


class SignedContingentInput(BaseModel):
    """An input presigned by its owner, with the rules its spender must follow."""
    model_config = ConfigDict(frozen=True)

    block_version: int
    tx_in: TxIn
    mlsag: RingMLSAG
    pseudo_output_amount: UnmaskedAmount
    required_output_amounts: list[UnmaskedAmount] = Field(default_factory=list)
    tx_out_global_indices: list[int] = Field(default_factory=list)

    def key_image(self) -> KeyImage:
        return self.mlsag.key_image

    def with_membership_proofs(self, proofs: list[TxOutMembershipProof]) -> SignedContingentInput:
        """Attach proofs; the signature stays valid because it does not cover them."""
        tx_in = self.tx_in.model_copy(update={"proofs": list(proofs)})
        return self.model_copy(
            update={"tx_in": tx_in, "tx_out_global_indices": [p.index for p in proofs]}
        )

    def validate(self) -> None:
        """
        Check internal consistency and the owner's signature.

        Raises:
            MissingRules: If the input carries no rules.
            RingSizeMismatch: If ring, proofs and global indices disagree in length.
            TokenIdMismatch: If an unmasked amount does not open its output.
            SignatureInvalid: If the ring signature does not verify.
        """
        rules = self.tx_in.input_rules
        if rules is None:
            raise MissingRules("Signed contingent input has no input rules")

        ring_size = len(self.tx_in.ring)
        if ring_size == 0:
            raise RingSizeMismatch("Signed contingent input has an empty ring")
        if self.tx_in.proofs and len(self.tx_in.proofs) != ring_size:
            raise RingSizeMismatch(
                f"Ring has {ring_size} members but {len(self.tx_in.proofs)} proofs"
            )
        if self.tx_out_global_indices and len(self.tx_out_global_indices) != ring_size:
            raise RingSizeMismatch(
                f"Ring has {ring_size} members but {len(self.tx_out_global_indices)} global indices"
            )
        if len(rules.required_outputs) != len(self.required_output_amounts):
            raise RuleViolation(
                f"{len(rules.required_outputs)} required outputs but "
                f"{len(self.required_output_amounts)} unmasked amounts"
            )

        for output, unmasked in zip(rules.required_outputs, self.required_output_amounts):
            expected = CompressedCommitment.new(
                unmasked.value, unmasked.blinding, generators(unmasked.token_id)
            )
            if expected.hex != output.masked_amount.commitment:
                raise TokenIdMismatch(
                    f"Unmasked amount does not open required output {output.public_key}"
                )

        pseudo = self.pseudo_output_amount
        pseudo_commitment = CompressedCommitment.new(
            pseudo.value, pseudo.blinding, generators(pseudo.token_id)
        )
        ring = [ReducedTxOut.from_tx_out(o) for o in self.tx_in.ring]
        try:
            self.mlsag.verify(
                self.tx_in.signed_digest(BlockVersion(self.block_version)),
                ring,
                pseudo_commitment.hex,
            )
        except RingSignatureError as e:
            raise SignatureInvalid(f"Presigned ring signature does not verify: {e}") from e


def sign_contingent_input(
    block_version: BlockVersion,
    credentials: InputCredentials,
    rules: InputRules,
    required_output_amounts: list[UnmaskedAmount],
    rng,
) -> SignedContingentInput:
    """
    Presign an input under a set of rules.

    Args:
        block_version: version the consuming transaction must target.
        credentials: the owner's credentials for the input.
        rules: input rules the spender must satisfy.
        required_output_amounts: unmasked amounts of rules.required_outputs, in order.
        rng: random source.

    Raises:
        RuleViolation: If the version does not support signed input rules, or
                       the amounts do not match the rules.
    """
    if not block_version.signed_input_rules_are_supported():
        raise RuleViolation(f"Block version {int(block_version)} does not support input rules")
    if len(rules.required_outputs) != len(required_output_amounts):
        raise RuleViolation(
            f"{len(rules.required_outputs)} required outputs but "
            f"{len(required_output_amounts)} unmasked amounts"
        )

    tx_in = TxIn(
        ring=credentials.ring,
        proofs=credentials.membership_proofs,
        input_rules=rules,
    )
    pseudo_output_blinding = random_scalar(rng)
    mlsag = RingMLSAG.sign(
        tx_in.signed_digest(block_version),
        [ReducedTxOut.from_tx_out(o) for o in credentials.ring],
        credentials.real_index,
        credentials.onetime_private_key,
        credentials.amount.value,
        credentials.blinding,
        pseudo_output_blinding,
        credentials.amount.token_id,
        rng,
    )
    logger.debug(
        f"Signed contingent input with {len(rules.required_outputs)} required outputs"
    )
    return SignedContingentInput(
        block_version=int(block_version),
        tx_in=tx_in,
        mlsag=mlsag,
        pseudo_output_amount=UnmaskedAmount(
            value=credentials.amount.value,
            token_id=credentials.amount.token_id,
            blinding=pseudo_output_blinding,
        ),
        required_output_amounts=list(required_output_amounts),
        tx_out_global_indices=[p.index for p in credentials.membership_proofs],
    )


def create_required_output(
    block_version: BlockVersion,
    amount: Amount,
    recipient,
    fog_resolver,
    rng,
) -> tuple[TxOut, UnmaskedAmount]:
    """
    Build an output an SCI owner requires to be paid, with its unmasked amount.

    The output carries an UNUSED memo.
    """
    hint, _ = create_fog_hint(recipient, fog_resolver, rng)
    tx_private_key = random_scalar(rng)
    tx_out = TxOut.new_with_memo(
        block_version,
        amount,
        recipient,
        tx_private_key,
        hint,
        lambda _ctx: MemoPayload.unused(),
    )
    shared_secret = create_shared_secret(recipient.view_public_key, tx_private_key)
    unmasked = UnmaskedAmount(
        value=amount.value,
        token_id=amount.token_id,
        blinding=get_blinding(shared_secret),
    )
    return tx_out, unmasked
