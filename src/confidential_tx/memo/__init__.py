"""Memo policies and memo contents."""
from confidential_tx.memo.builder import (
    BurnRedemptionMemoBuilder,
    EmptyMemoBuilder,
    MemoBuilder,
    RTHMemoBuilder,
)
from confidential_tx.memo.memos import (
    AuthenticatedSenderMemo,
    BurnRedemptionMemo,
    DestinationMemo,
    SenderMemoCredential,
    decode_memo,
)

__all__ = [
    "AuthenticatedSenderMemo",
    "BurnRedemptionMemo",
    "BurnRedemptionMemoBuilder",
    "DestinationMemo",
    "EmptyMemoBuilder",
    "MemoBuilder",
    "RTHMemoBuilder",
    "SenderMemoCredential",
    "decode_memo",
]
