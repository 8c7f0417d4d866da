"""
Unit tests for confidential_tx.core.builder.TransactionBuilder.

Every built transaction is run through validate_transaction, which checks
ordering, output shape and the signatures. Rings are kept small for speed.
"""

import random

import pytest

from confidential_tx.account_keys import (
    CHANGE_SUBADDRESS_INDEX,
    DEFAULT_SUBADDRESS_INDEX,
    AccountKey,
    ReservedDestination,
    burn_address,
    burn_address_view_private,
)
from confidential_tx.block_version import BlockVersion
from confidential_tx.constants import MILLIMOB_TO_PICOMOB, MINIMUM_FEE
from confidential_tx.core.amount import Amount
from confidential_tx.core.builder import TransactionBuilder, TxOutputsOrdering
from confidential_tx.core.memo import MemoPayload
from confidential_tx.core.tx import subaddress_matches_tx_out
from confidential_tx.core.validation import validate_outputs_are_sorted, validate_transaction
from confidential_tx.errors import (
    AmountError,
    BlockVersionTooNew,
    BlockVersionTooOld,
    BuilderConsumed,
    FeatureNotSupportedAtBlockVersion,
    FeeAfterChange,
    FogPubkeyError,
    InvalidRecipient,
    InvalidRingSize,
    MissingMembershipProofs,
    MissingOutput,
    MixedTokenIds,
    MixedTransactionsNotAllowed,
    MultipleOutputs,
    NoInputs,
    RingSignatureFailed,
    TransactionValidationError,
)
from confidential_tx.fog.resolver import FullyValidatedFogPubkey, MockFogResolver
from confidential_tx.memo import (
    BurnRedemptionMemo,
    BurnRedemptionMemoBuilder,
    DestinationMemo,
    RTHMemoBuilder,
    SenderMemoCredential,
    decode_memo,
)
from confidential_tx.crypto.curve import base_mul, encode_point, random_scalar
from confidential_tx.test_utils import get_input_credentials, get_transaction

RING = 3
INPUT_VALUE = 1000 * MILLIMOB_TO_PICOMOB
FOG_URL = "fog://fog.example.com"


def _fee(token_id: int = 0) -> Amount:
    return Amount(value=MINIMUM_FEE, token_id=token_id)


def _creds(version, account, rng, value: int = INPUT_VALUE, token_id: int = 0, ring_size: int = RING):
    return get_input_credentials(
        BlockVersion(version),
        Amount(value=value, token_id=token_id),
        account,
        MockFogResolver(),
        rng,
        ring_size=ring_size,
    )


def _fog_resolver(seed: int, expiry: int) -> MockFogResolver:
    fog_pub = encode_point(base_mul(random_scalar(random.Random(seed))))
    return MockFogResolver({FOG_URL: FullyValidatedFogPubkey(pubkey=fog_pub, pubkey_expiry=expiry)})


class _ReverseOrdering(TxOutputsOrdering):
    def cmp(self, a: str, b: str) -> int:
        return (a < b) - (a > b)


# ==============================================================================
# Basic spends
# ==============================================================================


class TestSimpleSpend:
    """One input, one output, at every supported version."""

    @pytest.mark.parametrize("version", [0, 1, 2, 3])
    def test_builds_valid_transaction(self, version):
        """A one-in one-out spend validates at this version."""
        rng = random.Random(100 + version)
        sender, recipient = AccountKey.random(rng), AccountKey.random(rng)
        tx = get_transaction(BlockVersion(version), 0, 1, 1, sender, recipient, MockFogResolver(), rng, RING)
        validate_transaction(BlockVersion(version), tx)

    def test_recipient_opens_output(self):
        """The recipient reopens the amount and owns the output."""
        rng = random.Random(1)
        sender, recipient = AccountKey.random(rng), AccountKey.random(rng)
        tx = get_transaction(BlockVersion.MAX, 0, 1, 1, sender, recipient, MockFogResolver(), rng, RING)
        output = tx.prefix.outputs[0]
        amount, _ = output.view_key_match(recipient.view_private_key)
        assert amount == Amount(value=INPUT_VALUE - MINIMUM_FEE, token_id=0)
        assert subaddress_matches_tx_out(recipient, 0, output)

    def test_non_owner_cannot_open_output(self):
        """The sender's view key does not open the recipient's output."""
        rng = random.Random(2)
        sender, recipient = AccountKey.random(rng), AccountKey.random(rng)
        tx = get_transaction(BlockVersion.MAX, 0, 1, 1, sender, recipient, MockFogResolver(), rng, RING)
        output = tx.prefix.outputs[0]
        with pytest.raises(AmountError):
            output.view_key_match(sender.view_private_key)
        assert not subaddress_matches_tx_out(sender, 0, output)

    def test_fee_recorded_in_prefix(self):
        """The prefix carries the builder's fee."""
        rng = random.Random(3)
        sender, recipient = AccountKey.random(rng), AccountKey.random(rng)
        tx = get_transaction(BlockVersion.MAX, 0, 1, 1, sender, recipient, MockFogResolver(), rng, RING)
        assert tx.prefix.fee == _fee()

    def test_non_mob_token(self):
        """A spend entirely in another token validates."""
        rng = random.Random(4)
        sender, recipient = AccountKey.random(rng), AccountKey.random(rng)
        tx = get_transaction(BlockVersion(2), 5, 1, 1, sender, recipient, MockFogResolver(), rng, RING)
        validate_transaction(BlockVersion(2), tx)
        amount, _ = tx.prefix.outputs[0].view_key_match(recipient.view_private_key)
        assert amount.token_id == 5

    def test_confirmation_number(self):
        """Only the recipient's view key validates the confirmation number."""
        rng = random.Random(5)
        sender, recipient = AccountKey.random(rng), AccountKey.random(rng)
        builder = TransactionBuilder(BlockVersion.MAX, _fee(), MockFogResolver())
        builder.add_input(_creds(BlockVersion.MAX, sender, rng))
        tx_out, confirmation = builder.add_output(
            Amount(value=INPUT_VALUE - MINIMUM_FEE), recipient.default_subaddress(), rng
        )
        assert confirmation.validate(tx_out.public_key, recipient.view_private_key)
        assert not confirmation.validate(tx_out.public_key, sender.view_private_key)

    def test_value_not_conserved(self):
        """Outputs exceeding inputs minus fee fail at signing."""
        rng = random.Random(6)
        sender, recipient = AccountKey.random(rng), AccountKey.random(rng)
        builder = TransactionBuilder(BlockVersion.MAX, _fee(), MockFogResolver())
        builder.add_input(_creds(BlockVersion.MAX, sender, rng))
        builder.add_output(Amount(value=INPUT_VALUE - MINIMUM_FEE + 1), recipient.default_subaddress(), rng)
        with pytest.raises(RingSignatureFailed, match="not conserved"):
            builder.build(rng)


# ==============================================================================
# Ordering
# ==============================================================================


class TestOrdering:

    def test_inputs_outputs_and_rings_sorted(self):
        """Outputs, inputs and ring members come out in canonical order."""
        rng = random.Random(10)
        sender, recipient = AccountKey.random(rng), AccountKey.random(rng)
        tx = get_transaction(BlockVersion.MAX, 0, 3, 4, sender, recipient, MockFogResolver(), rng, RING)
        keys = [o.public_key for o in tx.prefix.outputs]
        assert keys == sorted(keys)
        firsts = [tx_in.ring[0].public_key for tx_in in tx.prefix.inputs]
        assert firsts == sorted(firsts)
        for tx_in in tx.prefix.inputs:
            ring_keys = [o.public_key for o in tx_in.ring]
            assert ring_keys == sorted(ring_keys)
        validate_transaction(BlockVersion.MAX, tx)

    def test_custom_sorter_is_applied(self):
        """build_with_sorter uses the given output ordering."""
        rng = random.Random(11)
        sender, recipient = AccountKey.random(rng), AccountKey.random(rng)
        builder = TransactionBuilder(BlockVersion.MAX, _fee(), MockFogResolver())
        builder.add_input(_creds(BlockVersion.MAX, sender, rng))
        spendable = INPUT_VALUE - MINIMUM_FEE
        for value in (spendable // 3, spendable // 3, spendable - 2 * (spendable // 3)):
            builder.add_output(Amount(value=value), recipient.default_subaddress(), rng)
        tx = builder.build_with_sorter(rng, _ReverseOrdering())
        keys = [o.public_key for o in tx.prefix.outputs]
        assert keys == sorted(keys, reverse=True)
        with pytest.raises(TransactionValidationError, match="not sorted"):
            validate_outputs_are_sorted(tx.prefix)


# ==============================================================================
# Fee & tombstone
# ==============================================================================


class TestFeeAndTombstone:

    def test_fee_accessors(self):
        """set_fee changes the value and keeps the token id."""
        builder = TransactionBuilder(BlockVersion.MAX, Amount(value=7, token_id=2), MockFogResolver())
        assert builder.fee == 7
        assert builder.fee_token_id == 2
        builder.set_fee(9)
        assert builder.fee == 9
        assert builder.fee_token_id == 2

    def test_fog_expiry_limits_tombstone(self):
        """A fog pubkey expiry caps the tombstone from then on."""
        rng = random.Random(20)
        recipient = AccountKey.random_with_fog(rng, FOG_URL)
        builder = TransactionBuilder(BlockVersion.MAX, _fee(), _fog_resolver(21, 1000))
        builder.add_output(Amount(value=10), recipient.default_subaddress(), rng)
        assert builder.tombstone_block == 1000
        assert builder.set_tombstone_block(2000) == 1000
        assert builder.set_tombstone_block(500) == 500
        assert builder.tombstone_block == 500

    def test_change_fog_hint_uses_primary_address(self):
        """Change outputs resolve fog through the primary address."""
        rng = random.Random(22)
        sender = AccountKey.random_with_fog(rng, FOG_URL)
        builder = TransactionBuilder(BlockVersion.MAX, _fee(), _fog_resolver(23, 700))
        builder.add_change_output(Amount(value=10), ReservedDestination.from_account(sender), rng)
        assert builder.tombstone_block == 700

    def test_unresolvable_fog_recipient(self):
        """A fog recipient the resolver does not know fails add_output."""
        rng = random.Random(24)
        recipient = AccountKey.random_with_fog(rng, FOG_URL)
        builder = TransactionBuilder(BlockVersion.MAX, _fee(), MockFogResolver())
        with pytest.raises(FogPubkeyError):
            builder.add_output(Amount(value=10), recipient.default_subaddress(), rng)

    def test_tombstone_lands_in_prefix(self):
        """set_tombstone_block reaches the built prefix."""
        rng = random.Random(25)
        sender, recipient = AccountKey.random(rng), AccountKey.random(rng)
        builder = TransactionBuilder(BlockVersion.MAX, _fee(), MockFogResolver())
        builder.add_input(_creds(BlockVersion.MAX, sender, rng))
        builder.add_output(Amount(value=INPUT_VALUE - MINIMUM_FEE), recipient.default_subaddress(), rng)
        builder.set_tombstone_block(1234)
        assert builder.build(rng).prefix.tombstone_block == 1234


# ==============================================================================
# Block version gates
# ==============================================================================


class TestBlockVersionGates:

    def test_no_memos_before_version_one(self):
        """Version 0 outputs carry no memo and no masked token id."""
        rng = random.Random(30)
        sender, recipient = AccountKey.random(rng), AccountKey.random(rng)
        tx = get_transaction(BlockVersion(0), 0, 1, 1, sender, recipient, MockFogResolver(), rng, RING)
        assert all(o.e_memo is None for o in tx.prefix.outputs)
        assert all(o.masked_amount.masked_token_id == "" for o in tx.prefix.outputs)

    def test_memos_from_version_one(self):
        """From version 1 every output carries an encrypted memo."""
        rng = random.Random(31)
        sender, recipient = AccountKey.random(rng), AccountKey.random(rng)
        tx = get_transaction(BlockVersion(1), 0, 1, 1, sender, recipient, MockFogResolver(), rng, RING)
        output = tx.prefix.outputs[0]
        assert output.e_memo is not None
        assert output.decrypt_memo(output.shared_secret(recipient.view_private_key)) == MemoPayload.unused()

    def test_token_id_before_masked_token_ids(self):
        """Non-zero token ids need masked token ids."""
        rng = random.Random(32)
        recipient = AccountKey.random(rng)
        builder = TransactionBuilder(BlockVersion(1), _fee(1), MockFogResolver())
        with pytest.raises(FeatureNotSupportedAtBlockVersion):
            builder.add_output(Amount(value=10, token_id=1), recipient.default_subaddress(), rng)

    def test_fee_token_before_masked_token_ids(self):
        """A non-zero fee token is refused at version 0."""
        builder = TransactionBuilder(BlockVersion(0), _fee(1), MockFogResolver())
        with pytest.raises(FeatureNotSupportedAtBlockVersion):
            builder.build(random.Random(33))

    def test_mixed_output_before_mixed_transactions(self):
        """Before version 3 outputs must match the fee token."""
        rng = random.Random(34)
        recipient = AccountKey.random(rng)
        builder = TransactionBuilder(BlockVersion(2), _fee(0), MockFogResolver())
        with pytest.raises(MixedTransactionsNotAllowed):
            builder.add_output(Amount(value=10, token_id=1), recipient.default_subaddress(), rng)

    def test_mixed_input_before_mixed_transactions(self):
        """Before version 3 inputs must match the fee token."""
        rng = random.Random(35)
        sender, recipient = AccountKey.random(rng), AccountKey.random(rng)
        builder = TransactionBuilder(BlockVersion(2), _fee(0), MockFogResolver())
        builder.add_input(_creds(2, sender, rng, token_id=1))
        builder.add_output(Amount(value=10), recipient.default_subaddress(), rng)
        with pytest.raises(MixedTransactionsNotAllowed) as exc_info:
            builder.build(rng)
        assert exc_info.value.expected_token_id == 0
        assert exc_info.value.found_token_id == 1

    def test_version_too_new(self):
        """Versions past MAX are refused at build."""
        builder = TransactionBuilder(BlockVersion(4), _fee(), MockFogResolver())
        with pytest.raises(BlockVersionTooNew):
            builder.build(random.Random(36))

    def test_version_too_old(self):
        """Negative versions are refused at build."""
        builder = TransactionBuilder(BlockVersion(-1), _fee(), MockFogResolver())
        with pytest.raises(BlockVersionTooOld):
            builder.build(random.Random(37))


# ==============================================================================
# Mixed transactions
# ==============================================================================


class TestMixedTransaction:

    def test_two_tokens_balance_separately(self):
        """Each token balances on its own in a mixed transaction."""
        rng = random.Random(40)
        sender, recipient = AccountKey.random(rng), AccountKey.random(rng)
        builder = TransactionBuilder(BlockVersion.MAX, _fee(0), MockFogResolver())
        builder.add_input(_creds(BlockVersion.MAX, sender, rng, token_id=0))
        builder.add_input(_creds(BlockVersion.MAX, sender, rng, value=500, token_id=1))
        builder.add_output(Amount(value=INPUT_VALUE - MINIMUM_FEE, token_id=0), recipient.default_subaddress(), rng)
        builder.add_output(Amount(value=500, token_id=1), recipient.default_subaddress(), rng)
        tx = builder.build(rng)
        validate_transaction(BlockVersion.MAX, tx)
        token_ids = sorted(o.view_key_match(recipient.view_private_key)[0].token_id for o in tx.prefix.outputs)
        assert token_ids == [0, 1]

    def test_mixed_with_change(self):
        """Token 1 passes through whole while token 0 pays the fee and returns change to the sender."""
        rng = random.Random(42)
        sender, recipient = AccountKey.random(rng), AccountKey.random(rng)
        other_value = 700
        change = 300 * MILLIMOB_TO_PICOMOB
        payment = INPUT_VALUE - change - MINIMUM_FEE

        builder = TransactionBuilder(BlockVersion.MAX, _fee(0), MockFogResolver())
        builder.add_input(_creds(BlockVersion.MAX, sender, rng, token_id=0))
        builder.add_input(_creds(BlockVersion.MAX, sender, rng, value=other_value, token_id=1))
        builder.add_output(Amount(value=other_value, token_id=1), recipient.default_subaddress(), rng)
        builder.add_output(Amount(value=payment, token_id=0), recipient.default_subaddress(), rng)
        change_out, _ = builder.add_change_output(
            Amount(value=change, token_id=0), ReservedDestination.from_account(sender), rng
        )
        tx = builder.build(rng)
        validate_transaction(BlockVersion.MAX, tx)
        assert len(tx.prefix.outputs) == 3

        received = [
            o.view_key_match(recipient.view_private_key)[0]
            for o in tx.prefix.outputs
            if subaddress_matches_tx_out(recipient, DEFAULT_SUBADDRESS_INDEX, o)
        ]
        assert sorted((a.token_id, a.value) for a in received) == [(0, payment), (1, other_value)]

        assert change_out in tx.prefix.outputs
        assert subaddress_matches_tx_out(sender, CHANGE_SUBADDRESS_INDEX, change_out)
        assert not subaddress_matches_tx_out(sender, DEFAULT_SUBADDRESS_INDEX, change_out)
        change_amount, _ = change_out.view_key_match(sender.view_private_key)
        assert change_amount == Amount(value=change, token_id=0)

    def test_value_cannot_move_between_tokens(self):
        """Token 1 value cannot pay for token 0 outputs."""
        rng = random.Random(41)
        sender, recipient = AccountKey.random(rng), AccountKey.random(rng)
        builder = TransactionBuilder(BlockVersion.MAX, _fee(0), MockFogResolver())
        builder.add_input(_creds(BlockVersion.MAX, sender, rng, token_id=0))
        builder.add_input(_creds(BlockVersion.MAX, sender, rng, value=500, token_id=1))
        builder.add_output(Amount(value=INPUT_VALUE - MINIMUM_FEE + 500, token_id=0), recipient.default_subaddress(), rng)
        with pytest.raises(RingSignatureFailed):
            builder.build(rng)


# ==============================================================================
# Memos through the builder
# ==============================================================================


class TestMemosThroughBuilder:
    """Memo builders wired into a full build."""

    def test_rth_memos(self):
        """Recipient gets a valid sender memo; change gets the destination memo."""
        rng = random.Random(50)
        sender, recipient = AccountKey.random(rng), AccountKey.random(rng)
        mb = RTHMemoBuilder()
        mb.set_sender_credential(SenderMemoCredential.from_account(sender))
        mb.enable_destination_memo()
        builder = TransactionBuilder(BlockVersion.MAX, _fee(), MockFogResolver(), mb)
        builder.add_input(_creds(BlockVersion.MAX, sender, rng))
        payment = 100 * MILLIMOB_TO_PICOMOB
        change = INPUT_VALUE - payment - MINIMUM_FEE
        paid, _ = builder.add_output(Amount(value=payment), recipient.default_subaddress(), rng)
        change_out, _ = builder.add_change_output(Amount(value=change), ReservedDestination.from_account(sender), rng)
        tx = builder.build(rng)
        validate_transaction(BlockVersion.MAX, tx)

        sender_memo = decode_memo(paid.decrypt_memo(paid.shared_secret(recipient.view_private_key)))
        assert sender_memo.validate(
            sender.default_subaddress(), recipient.default_subaddress_view_private(), paid.public_key
        )

        destination = decode_memo(change_out.decrypt_memo(change_out.shared_secret(sender.view_private_key)))
        assert isinstance(destination, DestinationMemo)
        assert destination.total_outlay == payment + MINIMUM_FEE
        assert destination.fee == MINIMUM_FEE
        assert destination.num_recipients == 1
        assert destination.address_hash == recipient.default_subaddress().short_address_hash()

    def test_rth_mixed_outlay_refused(self):
        """RTH refuses outlay in two tokens."""
        rng = random.Random(51)
        sender, recipient = AccountKey.random(rng), AccountKey.random(rng)
        mb = RTHMemoBuilder()
        mb.enable_destination_memo()
        builder = TransactionBuilder(BlockVersion.MAX, _fee(), MockFogResolver(), mb)
        builder.add_output(Amount(value=10, token_id=0), recipient.default_subaddress(), rng)
        with pytest.raises(MixedTokenIds):
            builder.add_output(Amount(value=10, token_id=1), recipient.default_subaddress(), rng)

    def test_rth_fee_change_after_change_output(self):
        """A refused fee change leaves the old fee in place."""
        rng = random.Random(52)
        sender, recipient = AccountKey.random(rng), AccountKey.random(rng)
        mb = RTHMemoBuilder()
        mb.enable_destination_memo()
        builder = TransactionBuilder(BlockVersion.MAX, _fee(), MockFogResolver(), mb)
        builder.add_output(Amount(value=10), recipient.default_subaddress(), rng)
        builder.add_change_output(Amount(value=10), ReservedDestination.from_account(sender), rng)
        with pytest.raises(FeeAfterChange):
            builder.set_fee(MINIMUM_FEE * 2)
        assert builder.fee == MINIMUM_FEE

    def test_burn_redemption(self):
        """The burn output carries the redemption data and change records the burn."""
        rng = random.Random(53)
        sender = AccountKey.random(rng)
        data = bytes(range(64))
        mb = BurnRedemptionMemoBuilder(data)
        mb.enable_destination_memo()
        builder = TransactionBuilder(BlockVersion.MAX, _fee(), MockFogResolver(), mb)
        builder.add_input(_creds(BlockVersion.MAX, sender, rng))
        burn = 200 * MILLIMOB_TO_PICOMOB
        burned, _ = builder.add_output(Amount(value=burn), burn_address(), rng)
        change_out, _ = builder.add_change_output(
            Amount(value=INPUT_VALUE - burn - MINIMUM_FEE), ReservedDestination.from_account(sender), rng
        )
        tx = builder.build(rng)
        validate_transaction(BlockVersion.MAX, tx)

        ss = burned.shared_secret(burn_address_view_private())
        amount, _ = burned.view_key_match(burn_address_view_private())
        assert amount.value == burn
        memo = decode_memo(burned.decrypt_memo(ss))
        assert isinstance(memo, BurnRedemptionMemo)
        assert memo.memo_data == data

        destination = decode_memo(change_out.decrypt_memo(change_out.shared_secret(sender.view_private_key)))
        assert destination.total_outlay == burn + MINIMUM_FEE
        assert destination.address_hash == burn_address().short_address_hash()

    def test_burn_to_other_recipient(self):
        """Burn memos refuse ordinary recipients."""
        rng = random.Random(54)
        recipient = AccountKey.random(rng)
        builder = TransactionBuilder(BlockVersion.MAX, _fee(), MockFogResolver(), BurnRedemptionMemoBuilder(bytes(64)))
        with pytest.raises(InvalidRecipient):
            builder.add_output(Amount(value=10), recipient.default_subaddress(), rng)

    def test_second_burn_output(self):
        """Only one burn output is allowed."""
        rng = random.Random(55)
        builder = TransactionBuilder(BlockVersion.MAX, _fee(), MockFogResolver(), BurnRedemptionMemoBuilder(bytes(64)))
        builder.add_output(Amount(value=10), burn_address(), rng)
        with pytest.raises(MultipleOutputs):
            builder.add_output(Amount(value=10), burn_address(), rng)

    def test_burn_change_first(self):
        """Change before the burn output is refused."""
        rng = random.Random(56)
        sender = AccountKey.random(rng)
        mb = BurnRedemptionMemoBuilder(bytes(64))
        mb.enable_destination_memo()
        builder = TransactionBuilder(BlockVersion.MAX, _fee(), MockFogResolver(), mb)
        with pytest.raises(MissingOutput):
            builder.add_change_output(Amount(value=10), ReservedDestination.from_account(sender), rng)

    def test_memo_callback_runs_before_memos_are_supported(self):
        """Memo rules apply even when the version drops the memo itself."""
        rng = random.Random(57)
        recipient = AccountKey.random(rng)
        builder = TransactionBuilder(BlockVersion(0), _fee(), MockFogResolver(), BurnRedemptionMemoBuilder(bytes(64)))
        with pytest.raises(InvalidRecipient):
            builder.add_output(Amount(value=10), recipient.default_subaddress(), rng)


# ==============================================================================
# Build failures
# ==============================================================================


class TestBuildFailures:

    def test_no_inputs(self):
        """A transaction needs inputs."""
        rng = random.Random(60)
        recipient = AccountKey.random(rng)
        builder = TransactionBuilder(BlockVersion.MAX, _fee(), MockFogResolver())
        builder.add_output(Amount(value=10), recipient.default_subaddress(), rng)
        with pytest.raises(NoInputs):
            builder.build(rng)

    def test_inconsistent_ring_sizes(self):
        """All rings must be the same size."""
        rng = random.Random(61)
        sender = AccountKey.random(rng)
        builder = TransactionBuilder(BlockVersion.MAX, _fee(), MockFogResolver())
        builder.add_input(_creds(BlockVersion.MAX, sender, rng, ring_size=3))
        builder.add_input(_creds(BlockVersion.MAX, sender, rng, ring_size=4))
        with pytest.raises(InvalidRingSize):
            builder.build(rng)

    def test_missing_membership_proofs(self):
        """Each ring member needs a membership proof."""
        rng = random.Random(62)
        sender = AccountKey.random(rng)
        creds = _creds(BlockVersion.MAX, sender, rng)
        creds.membership_proofs = creds.membership_proofs[:-1]
        builder = TransactionBuilder(BlockVersion.MAX, _fee(), MockFogResolver())
        builder.add_input(creds)
        with pytest.raises(MissingMembershipProofs) as exc_info:
            builder.build(rng)
        assert exc_info.value.num_ring_elements == RING
        assert exc_info.value.num_proofs == RING - 1

    def test_builder_is_single_use(self):
        """A built builder refuses further use."""
        rng = random.Random(63)
        sender, recipient = AccountKey.random(rng), AccountKey.random(rng)
        builder = TransactionBuilder(BlockVersion.MAX, _fee(), MockFogResolver())
        builder.add_input(_creds(BlockVersion.MAX, sender, rng))
        builder.add_output(Amount(value=INPUT_VALUE - MINIMUM_FEE), recipient.default_subaddress(), rng)
        builder.build(rng)
        with pytest.raises(BuilderConsumed):
            builder.build(rng)
        with pytest.raises(BuilderConsumed):
            builder.add_output(Amount(value=1), recipient.default_subaddress(), rng)

    def test_failed_build_also_consumes(self):
        """A failed build consumes the builder too."""
        builder = TransactionBuilder(BlockVersion.MAX, _fee(), MockFogResolver())
        with pytest.raises(NoInputs):
            builder.build(random.Random(64))
        with pytest.raises(BuilderConsumed):
            builder.build(random.Random(65))
