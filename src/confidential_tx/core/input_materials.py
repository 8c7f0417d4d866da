"""
Input materials: the two kinds of input a transaction builder accepts.

    SignableInput   credentials the builder signs itself
    PresignedInput  a signed contingent input, already signed by its owner

Both expose the same view (amount, sort_key, ring_size, tx_in, input_ring)
so the builder can validate, sort and sign them uniformly.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from confidential_tx.core.amount import Amount
from confidential_tx.core.input_credentials import InputCredentials
from confidential_tx.core.tx import TxIn
from confidential_tx.crypto.ring_signature import (
    InputSecret,
    OutputSecret,
    PresignedInputRing,
    ReducedTxOut,
    SignableInputRing,
)


@dataclass
class SignableInput:
    credentials: InputCredentials

    def amount(self) -> Amount:
        return self.credentials.amount

    def sort_key(self) -> str:
        return self.credentials.ring[0].public_key

    def ring_size(self) -> int:
        return len(self.credentials.ring)

    def num_proofs(self) -> int:
        return len(self.credentials.membership_proofs)

    def tx_in(self) -> TxIn:
        return TxIn(ring=self.credentials.ring, proofs=self.credentials.membership_proofs)

    def input_ring(self) -> SignableInputRing:
        creds = self.credentials
        return SignableInputRing(
            members=[ReducedTxOut.from_tx_out(o) for o in creds.ring],
            real_input_index=creds.real_index,
            input_secret=InputSecret(
                onetime_private_key=creds.onetime_private_key,
                amount=creds.amount,
                blinding=creds.blinding,
            ),
        )


@dataclass
class PresignedInput:
    sci: object  # SignedContingentInput

    def amount(self) -> Amount:
        return self.sci.pseudo_output_amount.amount

    def sort_key(self) -> str:
        return self.sci.tx_in.ring[0].public_key

    def ring_size(self) -> int:
        return len(self.sci.tx_in.ring)

    def num_proofs(self) -> int:
        return len(self.sci.tx_in.proofs)

    def tx_in(self) -> TxIn:
        return self.sci.tx_in

    def input_ring(self) -> PresignedInputRing:
        pseudo = self.sci.pseudo_output_amount
        return PresignedInputRing(
            mlsag=self.sci.mlsag,
            pseudo_output_secret=OutputSecret(amount=pseudo.amount, blinding=pseudo.blinding),
        )


InputMaterials = Union[SignableInput, PresignedInput]
