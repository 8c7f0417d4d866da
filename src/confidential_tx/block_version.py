"""
Block versions and the protocol features each one enables.

Every feature is introduced at a fixed version and never revoked, so each
gate is a pure comparison against the version ordinal.
"""

from __future__ import annotations


class BlockVersion(int):
    """A protocol version a transaction is built against."""

    MAX: "BlockVersion"
    ZERO: "BlockVersion"

    def __repr__(self) -> str:
        return f"BlockVersion({int(self)})"

    def is_supported(self) -> bool:
        return 0 <= self <= BlockVersion.MAX

    def e_memo_feature_is_supported(self) -> bool:
        """Encrypted memos on every output."""
        return self >= 1

    def masked_token_id_feature_is_supported(self) -> bool:
        """Outputs may carry a non-zero, masked token id."""
        return self >= 2

    def mixed_transactions_are_supported(self) -> bool:
        """One transaction may move more than one token id."""
        return self >= 3

    def signed_input_rules_are_supported(self) -> bool:
        """Signed contingent inputs with input rules."""
        return self >= 3


BlockVersion.ZERO = BlockVersion(0)
BlockVersion.MAX = BlockVersion(3)
