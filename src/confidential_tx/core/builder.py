"""
TransactionBuilder: assembles, validates, orders and signs a confidential
transaction.

Usage:
    builder = TransactionBuilder(
        BlockVersion.MAX,
        Amount(value=MINIMUM_FEE, token_id=MOB_TOKEN_ID),
        MockFogResolver(),
        EmptyMemoBuilder(),
    )
    builder.add_input(credentials)
    builder.add_output(Amount(value=1_000, token_id=0), recipient, rng)
    builder.add_change_output(Amount(value=change, token_id=0), reserved_dest, rng)
    tx = builder.build(rng)

The builder is single use: build() consumes it whether or not it succeeds.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from functools import cmp_to_key
from typing import Callable

from confidential_tx.block_version import BlockVersion
from confidential_tx.constants import MOB_TOKEN_ID, U64_MAX
from confidential_tx.core.amount import Amount
from confidential_tx.core.fog_hint import create_fog_hint
from confidential_tx.core.input_credentials import InputCredentials
from confidential_tx.core.input_materials import InputMaterials, PresignedInput, SignableInput
from confidential_tx.core.memo import MemoContext, MemoPayload
from confidential_tx.core.tx import Tx, TxOut, TxOutConfirmationNumber, TxPrefix
from confidential_tx.crypto import ring_signature
from confidential_tx.crypto.curve import default_rng, random_scalar
from confidential_tx.crypto.onetime_keys import create_shared_secret
from confidential_tx.crypto.ring_signature import OutputSecret
from confidential_tx.errors import (
    AmountError,
    BlockVersionTooNew,
    BlockVersionTooOld,
    BuilderConsumed,
    FeatureNotSupportedAtBlockVersion,
    InvalidRingSize,
    MissingMembershipProofs,
    MixedTransactionsNotAllowed,
    NewMemoError,
    NoInputs,
    RingSignatureError,
    RingSignatureFailed,
    SignedInputRulesNotAllowed,
    TxBuilderError,
    WrongNumberOfRequiredOutputAmounts,
)
from confidential_tx.memo.builder import EmptyMemoBuilder, MemoBuilder

logger = logging.getLogger("confidential_tx.builder")


# ==============================================================================
# Output ordering
# ==============================================================================


class TxOutputsOrdering(ABC):
    """Comparator over output public keys used to order a transaction's outputs."""

    @abstractmethod
    def cmp(self, a: str, b: str) -> int:
        ...


class DefaultTxOutputsOrdering(TxOutputsOrdering):
    """Ascending public key order, required on chain."""

    def cmp(self, a: str, b: str) -> int:
        return (a > b) - (a < b)


# ==============================================================================
# TransactionBuilder
# ==============================================================================


class TransactionBuilder:
    """
    Builds one signed transaction.

    Args:
        block_version: protocol version the transaction targets.
        fee: fee value and token id. The memo builder is told first and may refuse it.
        fog_resolver: resolves fog pubkeys for recipients that use fog.
        memo_builder: memo policy; defaults to EmptyMemoBuilder.

    Raises:
        NewMemoError: If the memo builder rejects the initial fee.
    """

    def __init__(
        self,
        block_version: int,
        fee: Amount,
        fog_resolver,
        memo_builder: MemoBuilder | None = None,
    ) -> None:
        if memo_builder is None:
            memo_builder = EmptyMemoBuilder()
        try:
            memo_builder.set_fee(fee)
        except NewMemoError as e:
            logger.warning(f"Memo builder rejected initial fee {fee}: {e}")
            raise

        self.block_version = BlockVersion(block_version)
        self._fee = fee
        self._fog_resolver = fog_resolver
        self._memo_builder = memo_builder
        self._input_materials: list[InputMaterials] = []
        self._outputs_and_secrets: list[tuple[TxOut, OutputSecret]] = []
        self._tombstone_block = U64_MAX
        self._fog_tombstone_block_limit = U64_MAX
        self._consumed = False

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------

    def add_input(self, input_credentials: InputCredentials) -> None:
        """Add an input to sign. Nothing is validated until build()."""
        self._check_not_consumed()
        self._input_materials.append(SignableInput(input_credentials))

    def add_presigned_input(self, sci) -> None:
        """
        Add a signed contingent input and satisfy its rules.

        Every required output not already present is added with its unmasked
        amount as secret, and the input's max tombstone block (if non-zero)
        tightens the tombstone limit.

        Raises:
            WrongNumberOfRequiredOutputAmounts: If rules and unmasked amounts differ in count.
        """
        self._check_not_consumed()
        rules = sci.tx_in.input_rules
        if rules is not None:
            if len(rules.required_outputs) != len(sci.required_output_amounts):
                raise WrongNumberOfRequiredOutputAmounts(
                    f"{len(rules.required_outputs)} required outputs but "
                    f"{len(sci.required_output_amounts)} unmasked amounts"
                )
            for required_output, unmasked in zip(rules.required_outputs, sci.required_output_amounts):
                if any(existing == required_output for existing, _ in self._outputs_and_secrets):
                    continue
                secret = OutputSecret(amount=unmasked.amount, blinding=unmasked.blinding)
                self._outputs_and_secrets.append((required_output, secret))
                logger.debug(f"Added required output {required_output.public_key[:16]}...")
            if rules.max_tombstone_block:
                self._impose_tombstone_block_limit(rules.max_tombstone_block)
        self.add_presigned_input_raw(sci)

    def add_presigned_input_raw(self, sci) -> None:
        """Add a signed contingent input without enforcing its rules."""
        self._check_not_consumed()
        self._input_materials.append(PresignedInput(sci))

    # ------------------------------------------------------------------
    # Outputs
    # ------------------------------------------------------------------

    def add_output(
        self,
        amount: Amount,
        recipient,
        rng=None,
    ) -> tuple[TxOut, TxOutConfirmationNumber]:
        """
        Add an output to a recipient.

        Returns:
            (tx_out, confirmation_number)
        """
        self._check_not_consumed()
        memo_builder = self._memo_builder

        def memo_fn(ctx: MemoContext) -> MemoPayload:
            return memo_builder.make_memo_for_output(amount, recipient, ctx)

        return self._add_output_with_fog_hint_address(amount, recipient, recipient, memo_fn, rng)

    def add_change_output(
        self,
        amount: Amount,
        change_destination,
        rng=None,
    ) -> tuple[TxOut, TxOutConfirmationNumber]:
        """
        Add a change output to the sender's change subaddress.

        The fog hint is computed against the sender's primary address, so the
        sender's fog queries only ever look up one address.
        """
        self._check_not_consumed()
        memo_builder = self._memo_builder

        def memo_fn(ctx: MemoContext) -> MemoPayload:
            return memo_builder.make_memo_for_change_output(amount, change_destination, ctx)

        return self._add_output_with_fog_hint_address(
            amount,
            change_destination.change_subaddress,
            change_destination.primary_address,
            memo_fn,
            rng,
        )

    def _add_output_with_fog_hint_address(
        self,
        amount: Amount,
        recipient,
        fog_hint_address,
        memo_fn: Callable[[MemoContext], MemoPayload],
        rng,
    ) -> tuple[TxOut, TxOutConfirmationNumber]:
        rng = rng or default_rng()
        if not self.block_version.mixed_transactions_are_supported() and amount.token_id != self._fee.token_id:
            raise MixedTransactionsNotAllowed(self._fee.token_id, amount.token_id)
        if not self.block_version.masked_token_id_feature_is_supported() and amount.token_id != MOB_TOKEN_ID:
            raise FeatureNotSupportedAtBlockVersion(
                f"Token id {amount.token_id} needs masked token ids, "
                f"not supported at block version {int(self.block_version)}"
            )

        hint, pubkey_expiry = create_fog_hint(fog_hint_address, self._fog_resolver, rng)

        tx_private_key = random_scalar(rng)
        try:
            tx_out = TxOut.new_with_memo(
                self.block_version, amount, recipient, tx_private_key, hint, memo_fn
            )
        except NewMemoError as e:
            logger.warning(f"Memo builder rejected output of {amount}: {e}")
            raise

        shared_secret = create_shared_secret(recipient.view_public_key, tx_private_key)
        try:
            recovered, blinding = tx_out.masked_amount.get_value(shared_secret)
        except AmountError as e:
            raise TxBuilderError(f"Could not reopen the output just built: {e}") from e
        if recovered != amount:
            raise TxBuilderError(f"Output reopened as {recovered}, expected {amount}")

        self._impose_tombstone_block_limit(pubkey_expiry)

        self._outputs_and_secrets.append((tx_out, OutputSecret(amount=amount, blinding=blinding)))
        logger.debug(
            f"Added output {tx_out.public_key[:16]}... value={amount.value} token_id={amount.token_id}"
        )
        return tx_out, TxOutConfirmationNumber.from_shared_secret(shared_secret)

    # ------------------------------------------------------------------
    # Fee & tombstone
    # ------------------------------------------------------------------

    def set_fee(self, fee_value: int) -> None:
        """
        Change the fee value, keeping its token id.

        Raises:
            NewMemoError: If the memo builder refuses; the old fee is kept.
        """
        self._check_not_consumed()
        new_fee = Amount(value=fee_value, token_id=self._fee.token_id)
        try:
            self._memo_builder.set_fee(new_fee)
        except NewMemoError as e:
            logger.warning(f"Memo builder rejected fee change to {fee_value}: {e}")
            raise
        self._fee = new_fee

    @property
    def fee(self) -> int:
        return self._fee.value

    @property
    def fee_token_id(self) -> int:
        return self._fee.token_id

    @property
    def tombstone_block(self) -> int:
        return self._tombstone_block

    def set_tombstone_block(self, tombstone_block: int) -> int:
        """Request a tombstone block; returns the effective one after fog limits."""
        self._check_not_consumed()
        self._tombstone_block = min(tombstone_block, self._fog_tombstone_block_limit)
        return self._tombstone_block

    def _impose_tombstone_block_limit(self, limit: int) -> None:
        if limit < self._fog_tombstone_block_limit:
            self._fog_tombstone_block_limit = limit
        self._tombstone_block = min(self._tombstone_block, self._fog_tombstone_block_limit)

    # ------------------------------------------------------------------
    # Build
    # ------------------------------------------------------------------

    def build(self, rng=None) -> Tx:
        """Validate, order, hash and sign. Consumes the builder."""
        return self.build_with_sorter(rng, DefaultTxOutputsOrdering())

    def build_with_sorter(self, rng, ordering: TxOutputsOrdering) -> Tx:
        """
        Build with a custom output ordering. Only tests use anything but
        DefaultTxOutputsOrdering; validators reject other orders.

        Raises:
            BlockVersionTooOld / BlockVersionTooNew: version outside [0, MAX].
            FeatureNotSupportedAtBlockVersion: non-default fee token before masked token ids.
            NoInputs: no inputs were added.
            InvalidRingSize: rings differ in size or are empty.
            MixedTransactionsNotAllowed: input token id differs from the fee's.
            SignedInputRulesNotAllowed: presigned input before signed input rules.
            MissingMembershipProofs: ring size and proof count differ.
            RingSignatureFailed: signing failed, e.g. value is not conserved.
            BuilderConsumed: build was already called.
        """
        self._check_not_consumed()
        self._consumed = True
        rng = rng or default_rng()
        version = self.block_version

        if version < 0:
            raise BlockVersionTooOld(f"Block version {int(version)} is below 0")
        if version > BlockVersion.MAX:
            raise BlockVersionTooNew(
                f"Block version {int(version)} is above the maximum {int(BlockVersion.MAX)}"
            )

        if not version.masked_token_id_feature_is_supported() and self._fee.token_id != MOB_TOKEN_ID:
            raise FeatureNotSupportedAtBlockVersion(
                f"Fee token id {self._fee.token_id} not supported at block version {int(version)}"
            )

        if not self._input_materials:
            raise NoInputs("Transaction has no inputs")

        ring_sizes = {m.ring_size() for m in self._input_materials}
        if len(ring_sizes) != 1 or 0 in ring_sizes:
            raise InvalidRingSize(f"Inputs have inconsistent or empty ring sizes: {sorted(ring_sizes)}")

        for material in self._input_materials:
            token_id = material.amount().token_id
            if not version.mixed_transactions_are_supported() and token_id != self._fee.token_id:
                raise MixedTransactionsNotAllowed(self._fee.token_id, token_id)
            if isinstance(material, PresignedInput):
                if not version.signed_input_rules_are_supported():
                    raise SignedInputRulesNotAllowed(
                        f"Signed input rules not supported at block version {int(version)}"
                    )
            # Proof contents are taken as supplied; only their count is checked
            if material.ring_size() != material.num_proofs():
                raise MissingMembershipProofs(material.ring_size(), material.num_proofs())

        input_materials = sorted(self._input_materials, key=lambda m: m.sort_key())
        outputs_and_secrets = sorted(
            self._outputs_and_secrets,
            key=cmp_to_key(lambda a, b: ordering.cmp(a[0].public_key, b[0].public_key)),
        )
        logger.debug(
            f"Sorted {len(input_materials)} inputs and {len(outputs_and_secrets)} outputs"
        )

        prefix = TxPrefix(
            inputs=[m.tx_in() for m in input_materials],
            outputs=[tx_out for tx_out, _ in outputs_and_secrets],
            fee=self._fee,
            tombstone_block=self._tombstone_block,
        )
        message = prefix.hash()

        try:
            signature = ring_signature.sign(
                version,
                message,
                [m.input_ring() for m in input_materials],
                [secret for _, secret in outputs_and_secrets],
                self._fee,
                rng,
            )
        except RingSignatureError as e:
            logger.warning(f"Ring signature failed: {e}")
            raise RingSignatureFailed(str(e)) from e

        logger.debug(
            f"Built tx with {len(prefix.inputs)} inputs, {len(prefix.outputs)} outputs, "
            f"fee={self._fee.value}, tombstone={self._tombstone_block}"
        )
        return Tx(prefix=prefix, signature=signature)

    def _check_not_consumed(self) -> None:
        if self._consumed:
            raise BuilderConsumed("This builder was already used to build a transaction")
