"""Authenticated encryption for stored secrets (API keys).

AES-256-CBC with a fresh random IV per call, authenticated by
HMAC-SHA256 over ``iv || ciphertext`` (encrypt-then-MAC). The MAC is
verified in constant time before any decryption is attempted.

Blob format: base64(iv[16] || mac[32] || ciphertext)

encrypt/decrypt never raise for bad input: they return None and the
caller treats that as "secret unavailable".
"""

import base64
import binascii
import hashlib
import hmac
import os

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from ai_core.config.settings import Settings
from ai_core.logging.audit import get_audit_logger
from ai_core.providers.errors import CipherConfigurationError

IV_LENGTH = 16
MAC_LENGTH = 32
KEY_LENGTH = 32  # AES-256
BLOCK_BITS = algorithms.AES.block_size
FALLBACK_SALT = "ai-core-salt"


class AuthenticatedCipher:
    """Symmetric encrypt/decrypt of small secrets with tamper detection."""

    def __init__(self, key: bytes):
        if not key:
            raise CipherConfigurationError("Encryption key is required and cannot be empty")
        if len(key) != KEY_LENGTH:
            raise CipherConfigurationError(f"Encryption key must be {KEY_LENGTH} bytes")
        self._key = key
        self._logger = get_audit_logger()

    @classmethod
    def from_settings(cls, settings: Settings) -> "AuthenticatedCipher":
        return cls(resolve_key(settings))

    def encrypt(self, plaintext: str) -> str | None:
        if not plaintext:
            return None

        try:
            data = plaintext.encode("utf-8")
        except UnicodeEncodeError:
            self._logger.error("Encryption failed: plaintext is not encodable")
            return None

        iv = os.urandom(IV_LENGTH)
        padder = padding.PKCS7(BLOCK_BITS).padder()
        padded = padder.update(data) + padder.finalize()

        encryptor = Cipher(algorithms.AES(self._key), modes.CBC(iv)).encryptor()
        ciphertext = encryptor.update(padded) + encryptor.finalize()

        mac = self._mac(iv + ciphertext)
        return base64.b64encode(iv + mac + ciphertext).decode("ascii")

    def decrypt(self, blob: str) -> str | None:
        if not blob:
            return None

        try:
            raw = base64.b64decode(blob, validate=True)
        except (binascii.Error, ValueError):
            self._logger.warning("Decryption failed: blob is not valid base64")
            return None
        # Reject non-canonical encodings (altered padding bits decode to the same bytes)
        if base64.b64encode(raw).decode("ascii") != blob:
            self._logger.warning("Decryption failed: blob is not valid base64")
            return None

        iv = raw[:IV_LENGTH]
        mac = raw[IV_LENGTH:IV_LENGTH + MAC_LENGTH]
        ciphertext = raw[IV_LENGTH + MAC_LENGTH:]
        if not ciphertext or len(ciphertext) % (BLOCK_BITS // 8):
            self._logger.warning("Decryption failed: blob is truncated")
            return None

        if not hmac.compare_digest(mac, self._mac(iv + ciphertext)):
            self._logger.warning("Decryption failed: HMAC verification failed")
            return None

        decryptor = Cipher(algorithms.AES(self._key), modes.CBC(iv)).decryptor()
        padded = decryptor.update(ciphertext) + decryptor.finalize()
        try:
            unpadder = padding.PKCS7(BLOCK_BITS).unpadder()
            data = unpadder.update(padded) + unpadder.finalize()
            return data.decode("utf-8")
        except (ValueError, UnicodeDecodeError):
            # Only reachable with a valid MAC under the same key, i.e. a bug upstream
            self._logger.error("Decryption failed: invalid padding or encoding")
            return None

    def _mac(self, data: bytes) -> bytes:
        return hmac.new(self._key, data, hashlib.sha256).digest()

    @staticmethod
    def is_available() -> bool:
        """True if the AES-CBC backend can be used on this platform."""
        try:
            Cipher(algorithms.AES(bytes(KEY_LENGTH)), modes.CBC(bytes(IV_LENGTH))).encryptor()
        except Exception:
            return False
        return True


def resolve_key(settings: Settings) -> bytes:
    """Resolve the 32-byte key: explicit key, then host secrets, then site URL."""
    if settings.encryption_key:
        return hashlib.sha256(settings.encryption_key.encode("utf-8")).digest()

    if settings.auth_key and settings.secure_auth_key:
        return hashlib.sha256(
            (settings.auth_key + settings.secure_auth_key).encode("utf-8")
        ).digest()

    get_audit_logger().warning(
        "Encryption key derived from site URL; set ENCRYPTION_KEY in production",
        extra={"audit_data": {"key_source": "site_url"}},
    )
    return hashlib.sha256((settings.site_url + FALLBACK_SALT).encode("utf-8")).digest()
