"""
Account keys, subaddresses and public addresses.

An account is a (view, spend) private key pair (a, b). Subaddress i has

    m_i = Hs(a || i)
    d_i = b + m_i          (subaddress spend private key)
    c_i = a·d_i            (subaddress view private key)
    D_i = d_i·G,  C_i = c_i·G

Index 0 is the default subaddress and index 1 receives change.
"""

from __future__ import annotations

import hashlib
from functools import cached_property

from pydantic import BaseModel, ConfigDict

from confidential_tx.constants import SHORT_ADDRESS_HASH_LEN
from confidential_tx.crypto.curve import (
    SECP256K1_N,
    base_mul,
    decode_point,
    encode_point,
    hash_to_curve,
    hash_to_scalar,
    random_scalar,
    scalar_to_bytes,
)

DEFAULT_SUBADDRESS_INDEX = 0
CHANGE_SUBADDRESS_INDEX = 1
INVALID_SUBADDRESS_INDEX = 2**64 - 1

SUBADDRESS_DOMAIN_TAG = b"ctx_subaddress"
BURN_ADDRESS_VIEW_DOMAIN_TAG = b"ctx_burn_address_view_private"
BURN_ADDRESS_SPEND_DOMAIN_TAG = b"ctx_burn_address_spend_public"
SHORT_ADDRESS_HASH_DOMAIN_TAG = b"ctx_short_address_hash"


class PublicAddress(BaseModel):
    """A subaddress as published to senders."""
    model_config = ConfigDict(frozen=True)

    view_public_key: str   # C_i, compressed hex
    spend_public_key: str  # D_i, compressed hex
    fog_report_url: str = ""
    fog_report_id: str = ""
    fog_authority_sig: str = ""

    def canonical_bytes(self) -> bytes:
        parts = [
            bytes.fromhex(self.view_public_key),
            bytes.fromhex(self.spend_public_key),
            self.fog_report_url.encode("utf-8"),
            self.fog_report_id.encode("utf-8"),
            bytes.fromhex(self.fog_authority_sig),
        ]
        return b"".join(len(p).to_bytes(4, "big") + p for p in parts)

    def short_address_hash(self) -> ShortAddressHash:
        return ShortAddressHash.from_public_address(self)


class ShortAddressHash(BaseModel):
    """16-byte digest of a public address, used inside memos."""
    model_config = ConfigDict(frozen=True)

    hash: bytes

    @classmethod
    def from_public_address(cls, address: PublicAddress) -> ShortAddressHash:
        hasher = hashlib.blake2b(digest_size=32)
        hasher.update(SHORT_ADDRESS_HASH_DOMAIN_TAG)
        hasher.update(address.canonical_bytes())
        return cls(hash=hasher.digest()[:SHORT_ADDRESS_HASH_LEN])


class AccountKey:
    """
    Private keys for one account, plus its fog settings.

    Usage:
        account = AccountKey.random(rng)
        addr = account.default_subaddress()
        change = account.change_subaddress()
    """

    def __init__(
        self,
        view_private_key: int,
        spend_private_key: int,
        fog_report_url: str = "",
        fog_report_id: str = "",
        fog_authority_sig: str = "",
    ) -> None:
        self.view_private_key = view_private_key % SECP256K1_N
        self.spend_private_key = spend_private_key % SECP256K1_N
        self.fog_report_url = fog_report_url
        self.fog_report_id = fog_report_id
        self.fog_authority_sig = fog_authority_sig

    @classmethod
    def random(cls, rng) -> AccountKey:
        return cls(random_scalar(rng), random_scalar(rng))

    @classmethod
    def random_with_fog(cls, rng, fog_report_url: str, fog_report_id: str = "") -> AccountKey:
        return cls(
            random_scalar(rng),
            random_scalar(rng),
            fog_report_url=fog_report_url,
            fog_report_id=fog_report_id,
            fog_authority_sig="00",
        )

    def __repr__(self) -> str:
        return f"AccountKey(fog_report_url={self.fog_report_url!r})"

    # --- subaddress keys ------------------------------------------------

    def subaddress_spend_private(self, index: int) -> int:
        """d_i = b + Hs(a || i)"""
        m = hash_to_scalar(
            SUBADDRESS_DOMAIN_TAG,
            scalar_to_bytes(self.view_private_key),
            index.to_bytes(8, "big"),
        )
        return (self.spend_private_key + m) % SECP256K1_N

    def subaddress_view_private(self, index: int) -> int:
        """c_i = a·d_i"""
        return (self.view_private_key * self.subaddress_spend_private(index)) % SECP256K1_N

    def subaddress(self, index: int) -> PublicAddress:
        return PublicAddress(
            view_public_key=encode_point(base_mul(self.subaddress_view_private(index))),
            spend_public_key=encode_point(base_mul(self.subaddress_spend_private(index))),
            fog_report_url=self.fog_report_url,
            fog_report_id=self.fog_report_id,
            fog_authority_sig=self.fog_authority_sig,
        )

    def default_subaddress(self) -> PublicAddress:
        return self.subaddress(DEFAULT_SUBADDRESS_INDEX)

    def change_subaddress(self) -> PublicAddress:
        return self.subaddress(CHANGE_SUBADDRESS_INDEX)

    def default_subaddress_spend_private(self) -> int:
        return self.subaddress_spend_private(DEFAULT_SUBADDRESS_INDEX)

    def default_subaddress_view_private(self) -> int:
        return self.subaddress_view_private(DEFAULT_SUBADDRESS_INDEX)

    def change_subaddress_view_private(self) -> int:
        return self.subaddress_view_private(CHANGE_SUBADDRESS_INDEX)


class ReservedDestination:
    """Where a sender's change goes, plus the address used for its fog hint."""

    def __init__(
        self,
        primary_address: PublicAddress,
        change_subaddress: PublicAddress,
        change_subaddress_index: int = CHANGE_SUBADDRESS_INDEX,
    ) -> None:
        self.primary_address = primary_address
        self.change_subaddress = change_subaddress
        self.change_subaddress_index = change_subaddress_index

    @classmethod
    def from_subaddress_index(cls, account: AccountKey, index: int) -> ReservedDestination:
        return cls(
            primary_address=account.default_subaddress(),
            change_subaddress=account.subaddress(index),
            change_subaddress_index=index,
        )

    @classmethod
    def from_account(cls, account: AccountKey) -> ReservedDestination:
        return cls.from_subaddress_index(account, CHANGE_SUBADDRESS_INDEX)


# ==============================================================================
# Burn address
# ==============================================================================


class _BurnAddress:
    @cached_property
    def view_private(self) -> int:
        return hash_to_scalar(BURN_ADDRESS_VIEW_DOMAIN_TAG)

    @cached_property
    def address(self) -> PublicAddress:
        # Spend key is a hash-to-curve point, so nobody knows its discrete log
        spend_public = hash_to_curve(BURN_ADDRESS_SPEND_DOMAIN_TAG, b"")
        view_public = encode_point(self.view_private * decode_point(spend_public))
        return PublicAddress(view_public_key=view_public, spend_public_key=spend_public)


_BURN = _BurnAddress()


def burn_address_view_private() -> int:
    """The publicly known view private key of the burn address."""
    return _BURN.view_private


def burn_address() -> PublicAddress:
    """
    The canonical burn address. Anyone can view outputs sent to it (its view
    key is public) but nobody can spend them.
    """
    return _BURN.address
