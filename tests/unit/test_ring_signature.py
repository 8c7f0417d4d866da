"""
Unit tests for confidential_tx.crypto.ring_signature — MLSAG signing and the
transaction-wide balance check.

Rings are kept small so the suite stays fast.
"""

import random

import pytest

from confidential_tx.account_keys import AccountKey
from confidential_tx.block_version import BlockVersion
from confidential_tx.constants import MINIMUM_FEE
from confidential_tx.core.amount import Amount
from confidential_tx.core.input_materials import SignableInput
from confidential_tx.crypto.commitment import generators
from confidential_tx.crypto.curve import encode_point, random_scalar
from confidential_tx.crypto.ring_signature import (
    KeyImage,
    OutputSecret,
    ReducedTxOut,
    RingMLSAG,
    check_balance,
    extended_message,
    sign,
)
from confidential_tx.errors import RingSignatureError
from confidential_tx.fog.resolver import MockFogResolver
from confidential_tx.test_utils import get_input_credentials

RING = 3
VALUE = 10 * MINIMUM_FEE
MESSAGE = b"\x42" * 32


def _credentials(seed: int, value: int = VALUE, token_id: int = 0):
    rng = random.Random(seed)
    account = AccountKey.random(rng)
    creds = get_input_credentials(
        BlockVersion.MAX,
        Amount(value=value, token_id=token_id),
        account,
        MockFogResolver(),
        rng,
        ring_size=RING,
    )
    return creds, rng


def _sign_ring(creds, rng, message: bytes = MESSAGE):
    members = [ReducedTxOut.from_tx_out(o) for o in creds.ring]
    pseudo_blinding = random_scalar(rng)
    mlsag = RingMLSAG.sign(
        message,
        members,
        creds.real_index,
        creds.onetime_private_key,
        creds.amount.value,
        creds.blinding,
        pseudo_blinding,
        creds.amount.token_id,
        rng,
    )
    pseudo = encode_point(generators(creds.amount.token_id).commit(creds.amount.value, pseudo_blinding))
    return mlsag, members, pseudo


# ==============================================================================
# RingMLSAG
# ==============================================================================


class TestRingMLSAG:
    """Tests for a single ring signature."""

    def test_sign_and_verify(self):
        """A fresh signature verifies against its ring and pseudo output."""
        creds, rng = _credentials(1)
        mlsag, members, pseudo = _sign_ring(creds, rng)
        mlsag.verify(MESSAGE, members, pseudo)

    def test_response_count(self):
        """Two responses per ring member."""
        creds, rng = _credentials(2)
        mlsag, _, _ = _sign_ring(creds, rng)
        assert len(mlsag.responses) == 2 * RING

    def test_key_image_is_deterministic(self):
        """The key image depends only on the spent output's key."""
        creds, rng = _credentials(3)
        mlsag, _, _ = _sign_ring(creds, rng)
        real = creds.ring[creds.real_index]
        assert mlsag.key_image == KeyImage.from_private(creds.onetime_private_key, real.target_key)

    def test_two_signatures_share_key_image(self):
        """Signing the same output twice links the signatures."""
        creds, rng = _credentials(4)
        first, _, _ = _sign_ring(creds, rng, b"\x01" * 32)
        second, _, _ = _sign_ring(creds, rng, b"\x02" * 32)
        assert first.key_image == second.key_image

    def test_wrong_message_fails(self):
        """The signature is bound to its message."""
        creds, rng = _credentials(5)
        mlsag, members, pseudo = _sign_ring(creds, rng)
        with pytest.raises(RingSignatureError):
            mlsag.verify(b"\x43" * 32, members, pseudo)

    def test_wrong_pseudo_output_fails(self):
        """The signature is bound to its pseudo output."""
        creds, rng = _credentials(6)
        mlsag, members, _ = _sign_ring(creds, rng)
        other = encode_point(generators(0).commit(creds.amount.value, random_scalar(rng)))
        with pytest.raises(RingSignatureError):
            mlsag.verify(MESSAGE, members, other)

    def test_tampered_response_fails(self):
        """Changing one response breaks the ring."""
        creds, rng = _credentials(7)
        mlsag, members, pseudo = _sign_ring(creds, rng)
        responses = list(mlsag.responses)
        responses[0] = (responses[0] + 1)
        tampered = mlsag.model_copy(update={"responses": responses})
        with pytest.raises(RingSignatureError):
            tampered.verify(MESSAGE, members, pseudo)

    def test_wrong_ring_length_fails(self):
        """Verifying against a shorter ring fails."""
        creds, rng = _credentials(8)
        mlsag, members, pseudo = _sign_ring(creds, rng)
        with pytest.raises(RingSignatureError, match="responses"):
            mlsag.verify(MESSAGE, members[:-1], pseudo)

    def test_wrong_onetime_key_refused(self):
        """The signer must own the real input's target key."""
        creds, rng = _credentials(9)
        members = [ReducedTxOut.from_tx_out(o) for o in creds.ring]
        with pytest.raises(RingSignatureError, match="Onetime private key"):
            RingMLSAG.sign(
                MESSAGE, members, creds.real_index, creds.onetime_private_key + 1,
                creds.amount.value, creds.blinding, 5, 0, rng,
            )

    def test_wrong_value_refused(self):
        """The signer must open the real input's commitment."""
        creds, rng = _credentials(10)
        members = [ReducedTxOut.from_tx_out(o) for o in creds.ring]
        with pytest.raises(RingSignatureError, match="Amount secrets"):
            RingMLSAG.sign(
                MESSAGE, members, creds.real_index, creds.onetime_private_key,
                creds.amount.value + 1, creds.blinding, 5, 0, rng,
            )

    def test_empty_ring_refused(self):
        """There is no signature over an empty ring."""
        with pytest.raises(RingSignatureError, match="empty"):
            RingMLSAG.sign(MESSAGE, [], 0, 1, 1, 1, 1, 0, random.Random(11))

    def test_index_out_of_range_refused(self):
        """The real index must point into the ring."""
        creds, rng = _credentials(12)
        members = [ReducedTxOut.from_tx_out(o) for o in creds.ring]
        with pytest.raises(RingSignatureError, match="out of range"):
            RingMLSAG.sign(MESSAGE, members, RING, 1, 1, 1, 1, 0, rng)


# ==============================================================================
# sign() / check_balance()
# ==============================================================================


class TestSign:
    """Tests for signing every input together."""

    def _output(self, rng, value: int, token_id: int = 0) -> OutputSecret:
        return OutputSecret(amount=Amount(value=value, token_id=token_id), blinding=random_scalar(rng))

    def test_balanced_signs(self):
        """A balanced transaction gets one MLSAG and one pseudo output per input."""
        creds, rng = _credentials(20)
        outputs = [self._output(rng, VALUE - MINIMUM_FEE)]
        signature = sign(
            BlockVersion.MAX, MESSAGE, [SignableInput(creds).input_ring()], outputs,
            Amount(value=MINIMUM_FEE, token_id=0), rng,
        )
        assert len(signature.ring_signatures) == 1
        assert len(signature.pseudo_output_commitments) == 1

    def test_signatures_cover_extended_message(self):
        """Each MLSAG signs the message extended with the pseudo outputs."""
        creds, rng = _credentials(21)
        outputs = [self._output(rng, VALUE - MINIMUM_FEE)]
        signature = sign(
            BlockVersion.MAX, MESSAGE, [SignableInput(creds).input_ring()], outputs,
            Amount(value=MINIMUM_FEE, token_id=0), rng,
        )
        members = [ReducedTxOut.from_tx_out(o) for o in creds.ring]
        ext = extended_message(MESSAGE, signature.pseudo_output_commitments)
        signature.ring_signatures[0].verify(ext, members, signature.pseudo_output_commitments[0])

    def test_pseudo_outputs_balance_outputs(self):
        """Pseudo outputs minus outputs equals the fee commitment."""
        creds_a, rng = _credentials(22)
        creds_b, _ = _credentials(23)
        outputs = [self._output(rng, VALUE), self._output(rng, VALUE - MINIMUM_FEE)]
        signature = sign(
            BlockVersion.MAX,
            MESSAGE,
            [SignableInput(creds_a).input_ring(), SignableInput(creds_b).input_ring()],
            outputs,
            Amount(value=MINIMUM_FEE, token_id=0),
            rng,
        )
        output_commitments = [
            encode_point(generators(0).commit(s.amount.value, s.blinding)) for s in outputs
        ]
        check_balance(signature.pseudo_output_commitments, output_commitments, MINIMUM_FEE, 0)

    def test_unbalanced_refused(self):
        """Outputs that do not add up are refused."""
        creds, rng = _credentials(24)
        outputs = [self._output(rng, VALUE - MINIMUM_FEE + 1)]
        with pytest.raises(RingSignatureError, match="not conserved"):
            sign(
                BlockVersion.MAX, MESSAGE, [SignableInput(creds).input_ring()], outputs,
                Amount(value=MINIMUM_FEE, token_id=0), rng,
            )

    def test_fee_in_wrong_token_refused(self):
        """A fee in a token no input holds does not balance."""
        creds, rng = _credentials(25)
        outputs = [self._output(rng, VALUE - MINIMUM_FEE)]
        with pytest.raises(RingSignatureError, match="not conserved"):
            sign(
                BlockVersion.MAX, MESSAGE, [SignableInput(creds).input_ring()], outputs,
                Amount(value=MINIMUM_FEE, token_id=1), rng,
            )

    def test_no_rings_refused(self):
        """Signing needs at least one input."""
        with pytest.raises(RingSignatureError):
            sign(BlockVersion.MAX, MESSAGE, [], [], Amount(value=0, token_id=0), random.Random(26))
