"""
Memo payloads and their encrypted form on a TxOut.

A memo is a 2-byte type followed by 64 bytes of type-specific data. It is
encrypted with AES-256-CTR under a key derived from the output's shared
secret, so the recipient (and the sender) can read it and nobody else can.
The ciphertext keeps the 66-byte plaintext length.
"""

from __future__ import annotations

from enum import IntEnum

from pydantic import BaseModel, ConfigDict, field_validator

from confidential_tx.constants import ENCRYPTED_MEMO_LEN, MEMO_DATA_LEN, MEMO_TYPE_BYTES_LEN
from confidential_tx.crypto.cipher import aes_ctr

MEMO_CIPHER_INFO = b"ctx_memo_aes_ctr"


class MemoType(IntEnum):
    """Registered memo type codes."""
    UNUSED = 0x0000
    BURN_REDEMPTION = 0x0001
    AUTHENTICATED_SENDER = 0x0100
    AUTHENTICATED_SENDER_WITH_PAYMENT_REQUEST_ID = 0x0101
    DESTINATION = 0x0200


class MemoPayload(BaseModel):
    """A plaintext memo: type bytes plus fixed-length data."""
    model_config = ConfigDict(frozen=True)

    memo_type: bytes
    data: bytes

    @field_validator("memo_type")
    @classmethod
    def _check_type_len(cls, v: bytes) -> bytes:
        if len(v) != MEMO_TYPE_BYTES_LEN:
            raise ValueError(f"memo_type must be {MEMO_TYPE_BYTES_LEN} bytes, got {len(v)}")
        return v

    @field_validator("data")
    @classmethod
    def _check_data_len(cls, v: bytes) -> bytes:
        if len(v) != MEMO_DATA_LEN:
            raise ValueError(f"memo data must be {MEMO_DATA_LEN} bytes, got {len(v)}")
        return v

    @classmethod
    def new(cls, memo_type: int, data: bytes) -> MemoPayload:
        return cls(memo_type=memo_type.to_bytes(MEMO_TYPE_BYTES_LEN, "big"), data=data)

    @classmethod
    def unused(cls) -> MemoPayload:
        return cls.new(MemoType.UNUSED, bytes(MEMO_DATA_LEN))

    @property
    def type_code(self) -> int:
        return int.from_bytes(self.memo_type, "big")

    def to_bytes(self) -> bytes:
        return self.memo_type + self.data

    @classmethod
    def from_bytes(cls, raw: bytes) -> MemoPayload:
        if len(raw) != ENCRYPTED_MEMO_LEN:
            raise ValueError(f"memo must be {ENCRYPTED_MEMO_LEN} bytes, got {len(raw)}")
        return cls(memo_type=raw[:MEMO_TYPE_BYTES_LEN], data=raw[MEMO_TYPE_BYTES_LEN:])

    def encrypt(self, shared_secret: str) -> EncryptedMemo:
        ciphertext = aes_ctr(bytes.fromhex(shared_secret), MEMO_CIPHER_INFO, self.to_bytes())
        return EncryptedMemo(hex=ciphertext.hex())


class EncryptedMemo(BaseModel):
    """66 bytes of ciphertext, hex encoded."""
    model_config = ConfigDict(frozen=True)

    hex: str

    def decrypt(self, shared_secret: str) -> MemoPayload:
        raw = bytes.fromhex(self.hex)
        if len(raw) != ENCRYPTED_MEMO_LEN:
            raise ValueError(f"encrypted memo must be {ENCRYPTED_MEMO_LEN} bytes, got {len(raw)}")
        return MemoPayload.from_bytes(aes_ctr(bytes.fromhex(shared_secret), MEMO_CIPHER_INFO, raw))


class MemoContext(BaseModel):
    """What a memo builder is told about the output it is writing a memo for."""
    model_config = ConfigDict(frozen=True)

    tx_public_key: str
