"""
Structural and signature checks a validating node applies to a transaction.

Each check raises TransactionValidationError with a description of what is
wrong. validate_transaction runs all checks that need no ledger state.
"""

from __future__ import annotations

import logging

from confidential_tx.block_version import BlockVersion
from confidential_tx.constants import MASKED_TOKEN_ID_LEN, MAX_INPUTS, MAX_OUTPUTS, MAX_TOMBSTONE_BLOCKS
from confidential_tx.core.tx import Tx, TxOut, TxPrefix
from confidential_tx.crypto import ring_signature
from confidential_tx.crypto.curve import InvalidCurvePoint, decode_point
from confidential_tx.errors import RingSignatureError, TransactionValidationError

logger = logging.getLogger("confidential_tx.validation")


def _is_sorted_strictly(keys: list[str]) -> bool:
    return all(a < b for a, b in zip(keys, keys[1:]))


def validate_number_of_inputs(prefix: TxPrefix, maximum: int = MAX_INPUTS) -> None:
    n = len(prefix.inputs)
    if n == 0:
        raise TransactionValidationError("Transaction has no inputs")
    if n > maximum:
        raise TransactionValidationError(f"Too many inputs: {n} > {maximum}")


def validate_number_of_outputs(prefix: TxPrefix, maximum: int = MAX_OUTPUTS) -> None:
    n = len(prefix.outputs)
    if n == 0:
        raise TransactionValidationError("Transaction has no outputs")
    if n > maximum:
        raise TransactionValidationError(f"Too many outputs: {n} > {maximum}")


def validate_ring_sizes(prefix: TxPrefix) -> None:
    sizes = {len(tx_in.ring) for tx_in in prefix.inputs}
    if len(sizes) > 1 or 0 in sizes:
        raise TransactionValidationError(f"Inconsistent or empty ring sizes: {sorted(sizes)}")


def validate_ring_elements_are_sorted(prefix: TxPrefix) -> None:
    """Every ring is strictly ascending by public key (no duplicates)."""
    for i, tx_in in enumerate(prefix.inputs):
        if not _is_sorted_strictly([o.public_key for o in tx_in.ring]):
            raise TransactionValidationError(f"Ring of input {i} is not sorted")


def validate_inputs_are_sorted(prefix: TxPrefix) -> None:
    keys = [tx_in.ring[0].public_key for tx_in in prefix.inputs if tx_in.ring]
    if keys != sorted(keys):
        raise TransactionValidationError("Inputs are not sorted by first ring member")


def validate_outputs_are_sorted(prefix: TxPrefix) -> None:
    if not _is_sorted_strictly([o.public_key for o in prefix.outputs]):
        raise TransactionValidationError("Outputs are not sorted by public key")


def validate_tx_out(block_version: BlockVersion, tx_out: TxOut) -> None:
    """
    Check an output's shape against the block version.

    Encrypted memos must be present exactly when the version supports them,
    and masked token ids must be 8 bytes exactly when the version supports
    them (empty otherwise).
    """
    block_version = BlockVersion(block_version)
    if block_version.e_memo_feature_is_supported():
        if tx_out.e_memo is None:
            raise TransactionValidationError("Memo missing at a block version that requires it")
    elif tx_out.e_memo is not None:
        raise TransactionValidationError("Memo present at a block version without memos")

    masked_len = len(tx_out.masked_amount.masked_token_id) // 2
    if block_version.masked_token_id_feature_is_supported():
        if masked_len != MASKED_TOKEN_ID_LEN:
            raise TransactionValidationError(
                f"Masked token id must be {MASKED_TOKEN_ID_LEN} bytes, got {masked_len}"
            )
    elif masked_len != 0:
        raise TransactionValidationError("Masked token id present at a block version without it")

    for name in ("public_key", "target_key"):
        try:
            decode_point(getattr(tx_out, name))
        except InvalidCurvePoint as e:
            raise TransactionValidationError(f"Invalid {name}: {e}") from e
    try:
        decode_point(tx_out.masked_amount.commitment)
    except InvalidCurvePoint as e:
        raise TransactionValidationError(f"Invalid commitment: {e}") from e


def validate_key_images_are_unique(tx: Tx) -> None:
    images = [k.hex for k in tx.key_images()]
    if len(set(images)) != len(images):
        raise TransactionValidationError("Duplicate key image")


def validate_tombstone(current_block_index: int, tombstone_block: int) -> None:
    if tombstone_block <= current_block_index:
        raise TransactionValidationError(
            f"Tombstone block {tombstone_block} has passed (current {current_block_index})"
        )
    if tombstone_block > current_block_index + MAX_TOMBSTONE_BLOCKS:
        raise TransactionValidationError(
            f"Tombstone block {tombstone_block} exceeds limit of {MAX_TOMBSTONE_BLOCKS} blocks ahead"
        )


def validate_input_rules(prefix: TxPrefix) -> None:
    """Every input's required outputs are present and its tombstone limit is met."""
    for i, tx_in in enumerate(prefix.inputs):
        rules = tx_in.input_rules
        if rules is None:
            continue
        for required in rules.required_outputs:
            if required not in prefix.outputs:
                raise TransactionValidationError(
                    f"Input {i} required output {required.public_key} is missing"
                )
        if rules.max_tombstone_block and prefix.tombstone_block > rules.max_tombstone_block:
            raise TransactionValidationError(
                f"Input {i} allows tombstone block at most {rules.max_tombstone_block}, "
                f"got {prefix.tombstone_block}"
            )


def validate_signature(block_version: BlockVersion, tx: Tx) -> None:
    try:
        ring_signature.verify(BlockVersion(block_version), tx.prefix.hash(), tx.prefix, tx.signature)
    except RingSignatureError as e:
        raise TransactionValidationError(f"Invalid signature: {e}") from e


def validate_transaction(block_version: BlockVersion, tx: Tx) -> None:
    """Run every check that does not need the ledger."""
    prefix = tx.prefix
    validate_number_of_inputs(prefix)
    validate_number_of_outputs(prefix)
    validate_ring_sizes(prefix)
    validate_ring_elements_are_sorted(prefix)
    validate_inputs_are_sorted(prefix)
    validate_outputs_are_sorted(prefix)
    for tx_out in prefix.outputs:
        validate_tx_out(block_version, tx_out)
    validate_input_rules(prefix)
    validate_key_images_are_unique(tx)
    validate_signature(block_version, tx)
    logger.debug(f"Transaction with {len(prefix.inputs)} inputs passed validation")
