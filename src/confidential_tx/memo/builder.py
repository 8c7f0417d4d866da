"""
Memo policies.

A MemoBuilder is told about the fee and asked for a memo for every output and
for the change output, in the order the transaction builder sees them. It may
keep state across those calls and refuse an operation by raising a
NewMemoError.

    EmptyMemoBuilder           every memo is UNUSED
    RTHMemoBuilder             recoverable transaction history: authenticated
                               sender memos on outputs, a destination memo on
                               change
    BurnRedemptionMemoBuilder  one output to the burn address carrying
                               redemption data, optional destination memo on
                               change
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from confidential_tx.account_keys import PublicAddress, ReservedDestination, burn_address
from confidential_tx.constants import MINIMUM_FEE, MOB_TOKEN_ID, U64_MAX
from confidential_tx.core.amount import Amount
from confidential_tx.core.memo import MemoContext, MemoPayload
from confidential_tx.errors import (
    BadCredential,
    FeeAfterChange,
    InvalidRecipient,
    LimitsExceeded,
    MissingOutput,
    MixedTokenIds,
    MultipleChangeOutputs,
    MultipleOutputs,
    OutputsAfterChange,
)
from confidential_tx.memo.memos import (
    MAX_RECIPIENTS_IN_DESTINATION_MEMO,
    AuthenticatedSenderMemo,
    BurnRedemptionMemo,
    DestinationMemo,
    SenderMemoCredential,
)

logger = logging.getLogger("confidential_tx.memo")


class MemoBuilder(ABC):
    """The capability set the transaction builder calls into."""

    @abstractmethod
    def set_fee(self, fee: Amount) -> None:
        """Called at construction and on every fee change."""

    @abstractmethod
    def make_memo_for_output(
        self,
        amount: Amount,
        recipient: PublicAddress,
        memo_context: MemoContext,
    ) -> MemoPayload:
        ...

    @abstractmethod
    def make_memo_for_change_output(
        self,
        amount: Amount,
        change_destination: ReservedDestination,
        memo_context: MemoContext,
    ) -> MemoPayload:
        ...


class EmptyMemoBuilder(MemoBuilder):
    """Writes UNUSED memos and accepts everything."""

    def set_fee(self, fee: Amount) -> None:
        pass

    def make_memo_for_output(self, amount, recipient, memo_context) -> MemoPayload:
        return MemoPayload.unused()

    def make_memo_for_change_output(self, amount, change_destination, memo_context) -> MemoPayload:
        return MemoPayload.unused()


class RTHMemoBuilder(MemoBuilder):
    """
    Recoverable transaction history.

    With a sender credential, every recipient output gets an authenticated
    sender memo (optionally with a payment request id), so the recipient can
    tell who paid them. With destination memos enabled, the change output
    records who was paid, how many recipients there were, the fee and the
    total outlay, so the sender can reconstruct history from the chain.

    Usage:
        mb = RTHMemoBuilder()
        mb.set_sender_credential(SenderMemoCredential.from_account(sender))
        mb.enable_destination_memo()
    """

    def __init__(self) -> None:
        self.sender_cred: SenderMemoCredential | None = None
        self.payment_request_id: int | None = None
        self.destination_memo_enabled = False
        self.last_recipient = None
        self.total_outlay = 0
        self.outlay_token_id: int | None = None
        self.num_recipients = 0
        self.fee = Amount(value=MINIMUM_FEE, token_id=MOB_TOKEN_ID)
        self.wrote_destination_memo = False

    def set_sender_credential(self, credential: SenderMemoCredential) -> None:
        """
        Raises:
            BadCredential: If the spend key does not belong to the address.
        """
        if not credential.matches_address():
            raise BadCredential("Sender credential spend key does not match its address")
        self.sender_cred = credential

    def set_payment_request_id(self, payment_request_id: int) -> None:
        self.payment_request_id = payment_request_id

    def enable_destination_memo(self) -> None:
        self.destination_memo_enabled = True

    def disable_destination_memo(self) -> None:
        self.destination_memo_enabled = False

    def set_fee(self, fee: Amount) -> None:
        if self.wrote_destination_memo:
            raise FeeAfterChange("Fee cannot change after the destination memo was written")
        self.fee = fee

    def make_memo_for_output(
        self,
        amount: Amount,
        recipient: PublicAddress,
        memo_context: MemoContext,
    ) -> MemoPayload:
        if self.wrote_destination_memo:
            raise OutputsAfterChange("Outputs cannot be added after the change output")
        if (
            self.destination_memo_enabled
            and self.outlay_token_id is not None
            and self.outlay_token_id != amount.token_id
        ):
            raise MixedTokenIds(
                f"Outlay token id {self.outlay_token_id} does not match {amount.token_id}"
            )
        if self.total_outlay + amount.value > U64_MAX:
            raise LimitsExceeded("total_outlay overflows u64")
        if self.num_recipients + 1 > MAX_RECIPIENTS_IN_DESTINATION_MEMO:
            raise LimitsExceeded("num_recipients does not fit in one byte")
        # State changes only once every check has passed
        if self.destination_memo_enabled and self.outlay_token_id is None:
            self.outlay_token_id = amount.token_id
        self.total_outlay += amount.value
        self.num_recipients += 1
        self.last_recipient = recipient.short_address_hash()

        if self.sender_cred is None:
            return MemoPayload.unused()
        memo = AuthenticatedSenderMemo.new(
            self.sender_cred,
            recipient.view_public_key,
            memo_context.tx_public_key,
            self.payment_request_id,
        )
        return memo.to_payload()

    def make_memo_for_change_output(
        self,
        amount: Amount,
        change_destination: ReservedDestination,
        memo_context: MemoContext,
    ) -> MemoPayload:
        if not self.destination_memo_enabled:
            return MemoPayload.unused()
        if self.wrote_destination_memo:
            raise MultipleChangeOutputs("Only one change output may carry a destination memo")
        if self.last_recipient is None:
            raise MissingOutput("A destination memo needs a recipient output first")
        if amount.token_id != self.fee.token_id:
            raise MixedTokenIds(
                f"Change token id {amount.token_id} does not match fee token id {self.fee.token_id}"
            )
        if self.outlay_token_id != self.fee.token_id:
            raise MixedTokenIds(
                f"Outlay token id {self.outlay_token_id} does not match fee token id {self.fee.token_id}"
            )

        memo = DestinationMemo.new(
            self.last_recipient,
            self.num_recipients,
            self.fee.value,
            self.total_outlay + self.fee.value,
        )
        self.wrote_destination_memo = True
        logger.debug(
            f"Destination memo: {self.num_recipients} recipients, total outlay {memo.total_outlay}"
        )
        return memo.to_payload()


class BurnRedemptionMemoBuilder(MemoBuilder):
    """
    Burns one amount to the burn address with 64 bytes of redemption data.

    Usage:
        mb = BurnRedemptionMemoBuilder(redemption_data)
        mb.enable_destination_memo()
    """

    def __init__(self, memo_data: bytes) -> None:
        self.memo = BurnRedemptionMemo(memo_data=memo_data)
        self.destination_memo_enabled = False
        self.burn_amount: Amount | None = None
        self.fee = Amount(value=MINIMUM_FEE, token_id=MOB_TOKEN_ID)
        self.wrote_destination_memo = False

    def enable_destination_memo(self) -> None:
        self.destination_memo_enabled = True

    def disable_destination_memo(self) -> None:
        self.destination_memo_enabled = False

    def set_fee(self, fee: Amount) -> None:
        if self.wrote_destination_memo:
            raise FeeAfterChange("Fee cannot change after the destination memo was written")
        self.fee = fee

    def make_memo_for_output(
        self,
        amount: Amount,
        recipient: PublicAddress,
        memo_context: MemoContext,
    ) -> MemoPayload:
        if recipient != burn_address():
            raise InvalidRecipient("Burn redemption outputs must go to the burn address")
        if self.burn_amount is not None:
            raise MultipleOutputs("Only one burn output is allowed")
        self.burn_amount = amount
        return self.memo.to_payload()

    def make_memo_for_change_output(
        self,
        amount: Amount,
        change_destination: ReservedDestination,
        memo_context: MemoContext,
    ) -> MemoPayload:
        if not self.destination_memo_enabled:
            return MemoPayload.unused()
        if self.wrote_destination_memo:
            raise MultipleChangeOutputs("Only one change output may carry a destination memo")
        if self.burn_amount is None:
            raise MissingOutput("A destination memo needs the burn output first")
        if self.burn_amount.token_id != amount.token_id or self.fee.token_id != amount.token_id:
            raise MixedTokenIds(
                f"Burn token id {self.burn_amount.token_id}, fee token id "
                f"{self.fee.token_id} and change token id {amount.token_id} differ"
            )
        total_outlay = self.burn_amount.value + self.fee.value
        if total_outlay > U64_MAX:
            raise LimitsExceeded("total_outlay overflows u64")

        memo = DestinationMemo.new(
            burn_address().short_address_hash(),
            1,
            self.fee.value,
            total_outlay,
        )
        self.wrote_destination_memo = True
        logger.debug(f"Burn destination memo: total outlay {total_outlay}")
        return memo.to_payload()
