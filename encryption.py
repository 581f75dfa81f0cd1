from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from passlib.context import CryptContext
import os
import base64
import binascii
from typing import Optional, Tuple

from errors import AuthenticationError
import security

NONCE_SIZE = 12
TAG_SIZE = 16
KEY_BITS = 256


class CryptoBox:
    """Authenticated encryption of file bytes plus password hashing.

    Ciphertext layout is ``nonce || AES-256-GCM(plaintext) || tag``. Every call
    to :meth:`encrypt` draws a fresh key and a fresh nonce, so a nonce is never
    reused under the same key.
    """

    def __init__(self, password_context: Optional[CryptContext] = None):
        self._pwd_context = password_context or security.pwd_context

    def encrypt(self, plaintext: bytes) -> Tuple[bytes, bytes]:
        """AES-256-GCM encryption. Returns (nonce || ciphertext, key)."""
        key = AESGCM.generate_key(bit_length=KEY_BITS)
        nonce = os.urandom(NONCE_SIZE)
        encrypted = AESGCM(key).encrypt(nonce, plaintext, None)
        return nonce + encrypted, key

    def decrypt(self, ciphertext: bytes, key: bytes) -> bytes:
        """Decrypt and return plaintext, or raise AuthenticationError. Nothing partial is returned."""
        if len(ciphertext) < NONCE_SIZE + TAG_SIZE:
            raise AuthenticationError(detail="ciphertext shorter than nonce and tag")
        nonce = ciphertext[:NONCE_SIZE]
        body = ciphertext[NONCE_SIZE:]
        try:
            return AESGCM(key).decrypt(nonce, body, None)
        except InvalidTag:
            raise AuthenticationError(detail="authentication tag mismatch")
        except (ValueError, TypeError) as e:
            # wrong key length or type
            raise AuthenticationError(detail=f"invalid key: {e}")

    def hash_password(self, password: str) -> str:
        return security.hash_password(password, self._pwd_context)

    def verify_password(self, hashed: str, password: str) -> bool:
        return security.verify_password(hashed, password, self._pwd_context)


def encode_key(key: bytes) -> str:
    """Key handle as sent over the wire."""
    return base64.b64encode(key).decode("utf-8")


def decode_key(key_b64: str) -> bytes:
    try:
        return base64.b64decode(key_b64, validate=True)
    except (binascii.Error, ValueError):
        raise AuthenticationError(detail="key handle is not valid base64")


_box = CryptoBox()


def encrypt_file_data(data: bytes) -> Tuple[bytes, bytes]:
    """Returns (ciphertext, key)"""
    return _box.encrypt(data)


def decrypt_file_data(ciphertext: bytes, key: bytes) -> bytes:
    return _box.decrypt(ciphertext, key)
