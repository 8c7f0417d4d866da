"""
Symmetric encryption keyed by Diffie-Hellman shared secrets.

Memos use AES-256-CTR and fog hints use AES-256-GCM, both from the
`cryptography` package. Keys and nonces are expanded from the shared secret
with HKDF-SHA256 under a per-purpose info string, so a given shared secret
never drives two different ciphers with the same key.
"""

from __future__ import annotations

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

AES_KEY_LEN = 32
CTR_NONCE_LEN = 16
GCM_NONCE_LEN = 12
GCM_TAG_LEN = 16


class DecryptionError(ValueError):
    """Raised when authenticated ciphertext fails its tag check."""
    pass


def derive_key_material(shared_secret: bytes, info: bytes, length: int) -> bytes:
    """HKDF-SHA256 expansion of a shared secret, bound to `info`."""
    hkdf = HKDF(algorithm=hashes.SHA256(), length=length, salt=None, info=info)
    return hkdf.derive(shared_secret)


def aes_ctr(shared_secret: bytes, info: bytes, data: bytes) -> bytes:
    """
    AES-256-CTR under a key and counter block derived from `shared_secret`.

    CTR is its own inverse, so the same call encrypts and decrypts. The
    output has exactly the length of `data`.
    """
    material = derive_key_material(shared_secret, info, AES_KEY_LEN + CTR_NONCE_LEN)
    cipher = Cipher(algorithms.AES(material[:AES_KEY_LEN]), modes.CTR(material[AES_KEY_LEN:]))
    encryptor = cipher.encryptor()
    return encryptor.update(data) + encryptor.finalize()


def aes_gcm_seal(shared_secret: bytes, info: bytes, plaintext: bytes) -> bytes:
    """
    AES-256-GCM encryption; returns ciphertext || tag (16 bytes longer).

    The nonce is derived alongside the key. Every shared secret comes from a
    fresh ephemeral key, so a (key, nonce) pair is never reused.
    """
    material = derive_key_material(shared_secret, info, AES_KEY_LEN + GCM_NONCE_LEN)
    aesgcm = AESGCM(material[:AES_KEY_LEN])
    return aesgcm.encrypt(material[AES_KEY_LEN:], plaintext, None)


def aes_gcm_open(shared_secret: bytes, info: bytes, sealed: bytes) -> bytes:
    """
    Inverse of aes_gcm_seal.

    Raises:
        DecryptionError: If the tag does not verify under this shared secret.
    """
    material = derive_key_material(shared_secret, info, AES_KEY_LEN + GCM_NONCE_LEN)
    aesgcm = AESGCM(material[:AES_KEY_LEN])
    try:
        return aesgcm.decrypt(material[AES_KEY_LEN:], sealed, None)
    except InvalidTag as e:
        raise DecryptionError("Authentication tag mismatch") from e
