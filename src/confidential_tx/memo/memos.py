"""
Typed memo contents and their 64-byte layouts.

    AuthenticatedSenderMemo                  0x0100
        [0:16]  sender short address hash
        [48:64] HMAC over the memo, keyed by the sender/recipient ECDH secret

    AuthenticatedSenderWithPaymentRequestIdMemo  0x0101
        as above, plus [16:24] payment request id (u64 big-endian)

    DestinationMemo                          0x0200   (written to change)
        [0:16]  short address hash of the last recipient
        [16]    number of recipients
        [17:24] fee (u56 big-endian)
        [24:32] total outlay, fee included (u64 big-endian)

    BurnRedemptionMemo                       0x0001
        [0:64]  opaque redemption data

The sender HMAC key is d_0·C_i (sender default spend key times recipient
subaddress view public key), which the recipient recomputes as c_i·D_0.
"""

from __future__ import annotations

import hashlib
import hmac
from dataclasses import dataclass

from confidential_tx.account_keys import PublicAddress, ShortAddressHash
from confidential_tx.constants import MEMO_DATA_LEN, SHORT_ADDRESS_HASH_LEN, U64_MAX
from confidential_tx.core.memo import MemoPayload, MemoType
from confidential_tx.crypto.curve import decode_point, point_to_bytes, public_from_private
from confidential_tx.errors import LimitsExceeded

SENDER_MEMO_HMAC_DOMAIN_TAG = b"ctx_authenticated_sender_memo"
HMAC_OFFSET = 48
HMAC_LEN = 16

MAX_FEE_IN_DESTINATION_MEMO = 2**56 - 1
MAX_RECIPIENTS_IN_DESTINATION_MEMO = 255


def _sender_hmac(shared_secret: bytes, tx_out_public_key: str, memo_type: int, data: bytes) -> bytes:
    mac = hmac.new(shared_secret, digestmod=hashlib.sha512)
    mac.update(SENDER_MEMO_HMAC_DOMAIN_TAG)
    mac.update(bytes.fromhex(tx_out_public_key))
    mac.update(memo_type.to_bytes(2, "big"))
    mac.update(data[:HMAC_OFFSET])
    return mac.digest()[:HMAC_LEN]


# ==============================================================================
# Sender credential
# ==============================================================================


@dataclass(frozen=True)
class SenderMemoCredential:
    """The address a sender proves it sent from, and the key proving it."""
    address: PublicAddress
    subaddress_spend_private_key: int

    @classmethod
    def from_account(cls, account) -> SenderMemoCredential:
        return cls(
            address=account.default_subaddress(),
            subaddress_spend_private_key=account.default_subaddress_spend_private(),
        )

    def matches_address(self) -> bool:
        return public_from_private(self.subaddress_spend_private_key) == self.address.spend_public_key


# ==============================================================================
# Authenticated sender memos
# ==============================================================================


@dataclass(frozen=True)
class AuthenticatedSenderMemo:
    address_hash: ShortAddressHash
    hmac_value: bytes
    payment_request_id: int | None = None

    @property
    def memo_type(self) -> int:
        if self.payment_request_id is None:
            return MemoType.AUTHENTICATED_SENDER
        return MemoType.AUTHENTICATED_SENDER_WITH_PAYMENT_REQUEST_ID

    @staticmethod
    def _data_without_hmac(address_hash: ShortAddressHash, payment_request_id: int | None) -> bytes:
        data = bytearray(MEMO_DATA_LEN)
        data[:SHORT_ADDRESS_HASH_LEN] = address_hash.hash
        if payment_request_id is not None:
            data[16:24] = payment_request_id.to_bytes(8, "big")
        return bytes(data)

    @classmethod
    def new(
        cls,
        credential: SenderMemoCredential,
        receiving_subaddress_view_public_key: str,
        tx_out_public_key: str,
        payment_request_id: int | None = None,
    ) -> AuthenticatedSenderMemo:
        address_hash = credential.address.short_address_hash()
        shared = point_to_bytes(
            credential.subaddress_spend_private_key * decode_point(receiving_subaddress_view_public_key)
        )
        memo_type = (
            MemoType.AUTHENTICATED_SENDER
            if payment_request_id is None
            else MemoType.AUTHENTICATED_SENDER_WITH_PAYMENT_REQUEST_ID
        )
        data = cls._data_without_hmac(address_hash, payment_request_id)
        return cls(
            address_hash=address_hash,
            hmac_value=_sender_hmac(shared, tx_out_public_key, memo_type, data),
            payment_request_id=payment_request_id,
        )

    def validate(
        self,
        sender_address: PublicAddress,
        receiving_subaddress_view_private_key: int,
        tx_out_public_key: str,
    ) -> bool:
        """True if the memo was written by the owner of sender_address."""
        if sender_address.short_address_hash() != self.address_hash:
            return False
        shared = point_to_bytes(
            receiving_subaddress_view_private_key * decode_point(sender_address.spend_public_key)
        )
        data = self._data_without_hmac(self.address_hash, self.payment_request_id)
        expected = _sender_hmac(shared, tx_out_public_key, self.memo_type, data)
        return hmac.compare_digest(expected, self.hmac_value)

    def to_payload(self) -> MemoPayload:
        data = bytearray(self._data_without_hmac(self.address_hash, self.payment_request_id))
        data[HMAC_OFFSET:HMAC_OFFSET + HMAC_LEN] = self.hmac_value
        return MemoPayload.new(self.memo_type, bytes(data))

    @classmethod
    def from_payload(cls, payload: MemoPayload) -> AuthenticatedSenderMemo:
        payment_request_id = None
        if payload.type_code == MemoType.AUTHENTICATED_SENDER_WITH_PAYMENT_REQUEST_ID:
            payment_request_id = int.from_bytes(payload.data[16:24], "big")
        return cls(
            address_hash=ShortAddressHash(hash=payload.data[:SHORT_ADDRESS_HASH_LEN]),
            hmac_value=payload.data[HMAC_OFFSET:HMAC_OFFSET + HMAC_LEN],
            payment_request_id=payment_request_id,
        )


# ==============================================================================
# Destination memo
# ==============================================================================


@dataclass(frozen=True)
class DestinationMemo:
    address_hash: ShortAddressHash
    num_recipients: int
    fee: int
    total_outlay: int

    @classmethod
    def new(
        cls,
        address_hash: ShortAddressHash,
        num_recipients: int,
        fee: int,
        total_outlay: int,
    ) -> DestinationMemo:
        """
        Raises:
            LimitsExceeded: If a value does not fit its field.
        """
        if not 0 <= num_recipients <= MAX_RECIPIENTS_IN_DESTINATION_MEMO:
            raise LimitsExceeded(f"num_recipients {num_recipients} does not fit in one byte")
        if not 0 <= fee <= MAX_FEE_IN_DESTINATION_MEMO:
            raise LimitsExceeded(f"fee {fee} does not fit in 56 bits")
        if not 0 <= total_outlay <= U64_MAX:
            raise LimitsExceeded(f"total_outlay {total_outlay} does not fit in 64 bits")
        return cls(address_hash, num_recipients, fee, total_outlay)

    def to_payload(self) -> MemoPayload:
        data = bytearray(MEMO_DATA_LEN)
        data[:SHORT_ADDRESS_HASH_LEN] = self.address_hash.hash
        data[16] = self.num_recipients
        data[17:24] = self.fee.to_bytes(7, "big")
        data[24:32] = self.total_outlay.to_bytes(8, "big")
        return MemoPayload.new(MemoType.DESTINATION, bytes(data))

    @classmethod
    def from_payload(cls, payload: MemoPayload) -> DestinationMemo:
        data = payload.data
        return cls(
            address_hash=ShortAddressHash(hash=data[:SHORT_ADDRESS_HASH_LEN]),
            num_recipients=data[16],
            fee=int.from_bytes(data[17:24], "big"),
            total_outlay=int.from_bytes(data[24:32], "big"),
        )


# ==============================================================================
# Burn redemption memo
# ==============================================================================


@dataclass(frozen=True)
class BurnRedemptionMemo:
    """Opaque data telling a bridge where burned funds should be redeemed."""
    memo_data: bytes

    def __post_init__(self) -> None:
        if len(self.memo_data) != MEMO_DATA_LEN:
            raise ValueError(f"memo_data must be {MEMO_DATA_LEN} bytes, got {len(self.memo_data)}")

    def to_payload(self) -> MemoPayload:
        return MemoPayload.new(MemoType.BURN_REDEMPTION, self.memo_data)

    @classmethod
    def from_payload(cls, payload: MemoPayload) -> BurnRedemptionMemo:
        return cls(memo_data=payload.data)


def decode_memo(payload: MemoPayload):
    """
    Decode a payload into its typed memo.

    Returns:
        The typed memo, or None for UNUSED.

    Raises:
        ValueError: If the memo type is not registered.
    """
    code = payload.type_code
    if code == MemoType.UNUSED:
        return None
    if code in (MemoType.AUTHENTICATED_SENDER, MemoType.AUTHENTICATED_SENDER_WITH_PAYMENT_REQUEST_ID):
        return AuthenticatedSenderMemo.from_payload(payload)
    if code == MemoType.DESTINATION:
        return DestinationMemo.from_payload(payload)
    if code == MemoType.BURN_REDEMPTION:
        return BurnRedemptionMemo.from_payload(payload)
    raise ValueError(f"Unknown memo type 0x{code:04x}")
