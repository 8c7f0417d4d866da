"""
Fog hint encryption.

A fog hint tells a remote scanning service which account an output belongs
to, without telling anybody else. The plaintext is the recipient's view
public key; it is encrypted to the fog service's public key with an
ephemeral Diffie-Hellman exchange and AES-256-GCM:

    K  = k·G                      (ephemeral key, sent in the clear)
    S  = k·F                      (F = fog pubkey; service computes f·K)
    key, nonce = HKDF-SHA256(S)
    sealed = AES-GCM(key, nonce, plaintext)   (33-byte ciphertext || 16-byte tag)

    data = K (33) || sealed (49)

Recipients without fog get a fake hint of the same length, so observers
cannot tell which outputs carry a real hint.
"""

from __future__ import annotations

import logging

from pydantic import BaseModel, ConfigDict

from confidential_tx.constants import ENCRYPTED_FOG_HINT_LEN, U64_MAX
from confidential_tx.crypto.cipher import DecryptionError, aes_gcm_open, aes_gcm_seal
from confidential_tx.crypto.curve import (
    COMPRESSED_POINT_LEN,
    InvalidCurvePoint,
    base_mul,
    decode_point,
    encode_point,
    point_to_bytes,
    random_bytes,
    random_scalar,
)
from confidential_tx.errors import FogHintError, FogPubkeyError

logger = logging.getLogger("confidential_tx.fog")

FOG_HINT_CIPHER_INFO = b"ctx_fog_hint_aes_gcm"


class EncryptedFogHint(BaseModel):
    """82 bytes of hint ciphertext, hex encoded."""
    model_config = ConfigDict(frozen=True)

    hex: str

    @classmethod
    def fake_onetime_hint(cls, rng) -> EncryptedFogHint:
        """A hint that is indistinguishable from a real one but decrypts for nobody."""
        ephemeral = point_to_bytes(base_mul(random_scalar(rng)))
        filler = random_bytes(rng, ENCRYPTED_FOG_HINT_LEN - COMPRESSED_POINT_LEN)
        return cls(hex=(ephemeral + filler).hex())


class FogHint(BaseModel):
    """Plaintext fog hint: the recipient's view public key."""
    model_config = ConfigDict(frozen=True)

    view_pubkey: str

    @classmethod
    def from_address(cls, address) -> FogHint:
        return cls(view_pubkey=address.view_public_key)

    def encrypt(self, fog_pubkey: str, rng) -> EncryptedFogHint:
        k = random_scalar(rng)
        ephemeral = point_to_bytes(base_mul(k))
        shared = point_to_bytes(k * decode_point(fog_pubkey))
        sealed = aes_gcm_seal(shared, FOG_HINT_CIPHER_INFO, bytes.fromhex(self.view_pubkey))
        return EncryptedFogHint(hex=(ephemeral + sealed).hex())

    @classmethod
    def decrypt(cls, fog_private_key: int, hint: EncryptedFogHint) -> FogHint:
        """
        Recover the plaintext hint with the fog service's private key.

        Raises:
            FogHintError: If the hint is malformed or was not encrypted to this key.
        """
        data = bytes.fromhex(hint.hex)
        if len(data) != ENCRYPTED_FOG_HINT_LEN:
            raise FogHintError(f"Expected {ENCRYPTED_FOG_HINT_LEN} bytes, got {len(data)}")
        ephemeral, sealed = data[:COMPRESSED_POINT_LEN], data[COMPRESSED_POINT_LEN:]
        try:
            K = decode_point(ephemeral.hex())
        except InvalidCurvePoint as e:
            raise FogHintError(f"Bad ephemeral key: {e}") from e

        shared = point_to_bytes(fog_private_key * K)
        try:
            plaintext = aes_gcm_open(shared, FOG_HINT_CIPHER_INFO, sealed)
        except DecryptionError as e:
            raise FogHintError("Fog hint authentication failed") from e
        try:
            view_pubkey = encode_point(decode_point(plaintext.hex()))
        except InvalidCurvePoint as e:
            raise FogHintError(f"Decrypted hint is not a public key: {e}") from e
        return cls(view_pubkey=view_pubkey)


def create_fog_hint(address, fog_resolver, rng) -> tuple[EncryptedFogHint, int]:
    """
    Build the encrypted fog hint for an output.

    Args:
        address: the PublicAddress whose fog settings apply.
        fog_resolver: a FogPubkeyResolver, consulted only when the address has fog.
        rng: random source.

    Returns:
        (hint, pubkey_expiry). Addresses without a fog report url yield a fake
        hint and U64_MAX, imposing no tombstone limit.

    Raises:
        FogPubkeyError: If the address has fog but its pubkey cannot be resolved.
    """
    if not address.fog_report_url:
        return EncryptedFogHint.fake_onetime_hint(rng), U64_MAX

    try:
        validated = fog_resolver.get_fog_pubkey(address)
    except FogPubkeyError as e:
        logger.warning(f"Fog pubkey resolution failed for {address.fog_report_url}: {e}")
        raise

    hint = FogHint.from_address(address).encrypt(validated.pubkey, rng)
    return hint, validated.pubkey_expiry
