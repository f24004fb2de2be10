"""
Credential Encryption - AES-256-GCM for stored Jira API tokens

Ciphertext Format (hex):
    nonce (12 bytes, 24 hex chars) + ciphertext + GCM tag (16 bytes)

Key Resolution (ENCRYPTION_KEY, 64 hex chars = 32 bytes):
    - set and valid      -> used
    - set, wrong length  -> EncryptionConfigError (any environment)
    - missing, production -> EncryptionConfigError at startup
    - missing, development -> ephemeral random key with a loud warning;
      tokens stored with it are unreadable after a restart

Generate a key:
    python -c "import secrets; print(secrets.token_hex(32))"
"""

import logging
import os
import re
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from workforce.config import Settings, get_settings

logger = logging.getLogger(__name__)

KEY_BYTES = 32
NONCE_BYTES = 12
TAG_BYTES = 16

# Shortest possible ciphertext: nonce + tag for an empty plaintext
MIN_CIPHERTEXT_HEX = (NONCE_BYTES + TAG_BYTES) * 2

_HEX_RE = re.compile(r"^[0-9a-f]+$", re.IGNORECASE)


class EncryptionConfigError(RuntimeError):
    """ENCRYPTION_KEY is missing in production or malformed."""


class DecryptionError(ValueError):
    """Ciphertext is corrupted or was produced with a different key."""


def load_encryption_key(settings: Settings) -> bytes:
    """
    Resolve the AES key from settings.

    Raises:
        EncryptionConfigError: Missing key in production or wrong key length
    """
    key = settings.encryption_key

    if not key:
        if settings.is_production:
            raise EncryptionConfigError(
                "ENCRYPTION_KEY is required in production. Without a persistent key, "
                "stored Jira API tokens become unreadable on restart. Generate one with: "
                "python -c \"import secrets; print(secrets.token_hex(32))\""
            )
        logger.warning(
            "ENCRYPTION_KEY not set - using a temporary key! Stored Jira API tokens "
            "will be unreadable after restart. Set ENCRYPTION_KEY to 64 hex characters."
        )
        return os.urandom(KEY_BYTES)

    try:
        key_bytes = bytes.fromhex(key)
    except ValueError as e:
        raise EncryptionConfigError("ENCRYPTION_KEY must be hex encoded") from e

    if len(key_bytes) != KEY_BYTES:
        raise EncryptionConfigError(
            f"ENCRYPTION_KEY must be exactly {KEY_BYTES} bytes ({KEY_BYTES * 2} hex characters). "
            f"Current length: {len(key_bytes)} bytes"
        )
    return key_bytes


class TokenCipher:
    """AES-256-GCM cipher producing hex strings."""

    def __init__(self, key: bytes):
        if len(key) != KEY_BYTES:
            raise EncryptionConfigError(f"Encryption key must be {KEY_BYTES} bytes")
        self._aead = AESGCM(key)

    def encrypt(self, plaintext: str) -> str:
        nonce = os.urandom(NONCE_BYTES)
        sealed = self._aead.encrypt(nonce, plaintext.encode("utf-8"), None)
        return nonce.hex() + sealed.hex()

    def decrypt(self, ciphertext: str) -> str:
        try:
            raw = bytes.fromhex(ciphertext)
        except ValueError as e:
            raise DecryptionError("Failed to decrypt data - data is not hex encoded") from e
        if len(raw) < NONCE_BYTES + TAG_BYTES:
            raise DecryptionError("Failed to decrypt data - ciphertext too short")

        nonce, sealed = raw[:NONCE_BYTES], raw[NONCE_BYTES:]
        try:
            return self._aead.decrypt(nonce, sealed, None).decode("utf-8")
        except InvalidTag as e:
            raise DecryptionError("Failed to decrypt data - data may be corrupted") from e


_cipher: Optional[TokenCipher] = None


def get_cipher() -> TokenCipher:
    """Process-wide cipher built from settings on first use."""
    global _cipher
    if _cipher is None:
        _cipher = TokenCipher(load_encryption_key(get_settings()))
    return _cipher


def validate_encryption_config(settings: Optional[Settings] = None) -> None:
    """
    Fail fast at startup when the key configuration is unusable.

    Raises:
        EncryptionConfigError: See load_encryption_key
    """
    global _cipher
    _cipher = TokenCipher(load_encryption_key(settings or get_settings()))


def encrypt(plaintext: str) -> str:
    return get_cipher().encrypt(plaintext)


def decrypt(ciphertext: str) -> str:
    return get_cipher().decrypt(ciphertext)


def is_encrypted(data: str) -> bool:
    """Heuristic: long enough for nonce + tag and pure hex."""
    return bool(data) and len(data) >= MIN_CIPHERTEXT_HEX and bool(_HEX_RE.match(data))


def safe_encrypt(data: Optional[str]) -> str:
    """Encrypt unless empty or already encrypted."""
    if not data:
        return ""
    if is_encrypted(data):
        return data
    return encrypt(data)


def safe_decrypt(data: Optional[str]) -> str:
    """Decrypt if encrypted, pass plaintext through."""
    if not data:
        return ""
    if not is_encrypted(data):
        return data
    return decrypt(data)
