from __future__ import annotations

import hashlib
import secrets
from typing import Tuple

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt


ALGORITHM = "aes-256-gcm"
KEY_SIZE = 32
IV_SIZE = 16
SALT_SIZE = 32
TAG_SIZE = 16

# scrypt defaults (~32 MiB with r=8)
SCRYPT_N = 2**15
SCRYPT_R = 8
SCRYPT_P = 1


def random_iv() -> bytes:
    return secrets.token_bytes(IV_SIZE)


def random_salt() -> bytes:
    return secrets.token_bytes(SALT_SIZE)


def scrypt_key(password: str, salt: bytes, *, n: int = SCRYPT_N, r: int = SCRYPT_R, p: int = SCRYPT_P) -> bytes:
    kdf = Scrypt(salt=salt, length=KEY_SIZE, n=n, r=r, p=p)
    return kdf.derive(password.encode("utf-8"))


def legacy_sha256_key(password: str, salt: bytes) -> bytes:
    """
    Key derivation used by archives that carry no `kdf` block: one SHA-256 pass
    over the password followed by the hex-encoded salt. Read path only.
    """
    return hashlib.sha256((password + salt.hex()).encode("utf-8")).digest()


def aesgcm_encrypt(key: bytes, iv: bytes, plaintext: bytes) -> Tuple[bytes, bytes]:
    """Returns (ciphertext, auth_tag)."""
    out = AESGCM(key).encrypt(iv, plaintext, None)
    return out[:-TAG_SIZE], out[-TAG_SIZE:]


def aesgcm_decrypt(key: bytes, iv: bytes, ciphertext: bytes, auth_tag: bytes) -> bytes:
    """
    Raises cryptography's InvalidTag on authentication failure and ValueError
    on malformed sizes.
    """
    if len(auth_tag) != TAG_SIZE:
        raise ValueError(f"auth tag must be {TAG_SIZE} bytes")
    return AESGCM(key).decrypt(iv, ciphertext + auth_tag, None)


__all__ = [
    "ALGORITHM",
    "IV_SIZE",
    "InvalidTag",
    "KEY_SIZE",
    "SALT_SIZE",
    "SCRYPT_N",
    "SCRYPT_P",
    "SCRYPT_R",
    "TAG_SIZE",
    "aesgcm_decrypt",
    "aesgcm_encrypt",
    "legacy_sha256_key",
    "random_iv",
    "random_salt",
    "scrypt_key",
]
