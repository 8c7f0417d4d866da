"""
InputCredentials: everything needed to sign for one spent output.
"""

from __future__ import annotations

from confidential_tx.core.tx import TxOut, TxOutMembershipProof


class InputCredentials:
    """
    A ring containing one owned output, with the keys to spend it.

    The ring is sorted by public key on construction (membership proofs are
    permuted alongside when there is one per member), and real_index is
    updated to follow the owned output. Ring and proof counts are not
    checked here; the transaction builder checks them at build time.

    Raises:
        ValueError: If real_index is outside the ring.
        AmountError: If the view key does not open the owned output.
    """

    def __init__(
        self,
        ring: list[TxOut],
        membership_proofs: list[TxOutMembershipProof],
        real_index: int,
        onetime_private_key: int,
        view_private_key: int,
    ) -> None:
        if not 0 <= real_index < len(ring):
            raise ValueError(f"real_index {real_index} out of range for ring of {len(ring)}")

        order = sorted(range(len(ring)), key=lambda i: ring[i].public_key)
        self.ring = [ring[i] for i in order]
        if len(membership_proofs) == len(ring):
            self.membership_proofs = [membership_proofs[i] for i in order]
        else:
            self.membership_proofs = list(membership_proofs)
        self.real_index = order.index(real_index)
        self.onetime_private_key = onetime_private_key
        self.view_private_key = view_private_key

        self.amount, self.blinding = self.ring[self.real_index].view_key_match(view_private_key)

    def __repr__(self) -> str:
        return (
            f"InputCredentials(ring_size={len(self.ring)}, "
            f"real_index={self.real_index}, amount={self.amount!r})"
        )
