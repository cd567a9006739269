"""
Secret Vault

AES-256-GCM envelope encryption for device-control tokens.

Blob layout (base64 encoded): nonce (12 bytes) || auth tag (16 bytes) || ciphertext.
The key is 32 random bytes stored hex-encoded in a dedicated file. It is not
derived from a password; file permissions are its only protection.
"""

import base64
import binascii
import logging
import os
import secrets
from pathlib import Path
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .errors import IntegrityError, VaultKeyError
from ..config import settings

logger = logging.getLogger(__name__)

KEY_SIZE = 32
NONCE_SIZE = 12
TAG_SIZE = 16


def generate_key() -> bytes:
    return secrets.token_bytes(KEY_SIZE)


def encrypt(plaintext: str, key: bytes) -> str:
    """Encrypt a token with a fresh random nonce."""
    nonce = os.urandom(NONCE_SIZE)
    # AESGCM appends the tag to the ciphertext
    sealed = AESGCM(key).encrypt(nonce, plaintext.encode("utf-8"), None)
    ciphertext, tag = sealed[:-TAG_SIZE], sealed[-TAG_SIZE:]
    return base64.b64encode(nonce + tag + ciphertext).decode("ascii")


def decrypt(blob: str, key: bytes) -> str:
    """
    Decrypt a blob produced by encrypt().

    Raises:
        IntegrityError: blob is malformed, was tampered with, or the key is wrong
    """
    try:
        raw = base64.b64decode(blob.encode("ascii"), validate=True)
    except (binascii.Error, ValueError, AttributeError) as e:
        raise IntegrityError(f"Malformed vault blob: {e}") from e

    if len(raw) < NONCE_SIZE + TAG_SIZE:
        raise IntegrityError("Vault blob too short")

    nonce = raw[:NONCE_SIZE]
    tag = raw[NONCE_SIZE:NONCE_SIZE + TAG_SIZE]
    ciphertext = raw[NONCE_SIZE + TAG_SIZE:]

    try:
        plaintext = AESGCM(key).decrypt(nonce, ciphertext + tag, None)
    except InvalidTag as e:
        raise IntegrityError("Vault blob failed authentication") from e

    return plaintext.decode("utf-8")


def load_or_create_key(path: Path) -> bytes:
    """Load the hex-encoded key file, creating it on first run."""
    path = Path(path)

    if path.exists():
        text = path.read_text(encoding="utf-8").strip()
        try:
            key = bytes.fromhex(text)
        except ValueError as e:
            raise VaultKeyError(f"Vault key file {path} is not hex encoded") from e
        if len(key) != KEY_SIZE:
            raise VaultKeyError(
                f"Vault key file {path} holds {len(key)} bytes, expected {KEY_SIZE}"
            )
        return key

    logger.info(f"Creating new vault key: {path}")
    path.parent.mkdir(parents=True, exist_ok=True)
    key = generate_key()
    path.write_text(key.hex(), encoding="utf-8")
    try:
        os.chmod(path, 0o600)
    except OSError as e:
        logger.warning(f"Could not restrict permissions on {path}: {e}")
    return key


class SecretVault:
    """Holds the process key and encrypts/decrypts tokens with it"""

    def __init__(self, key: bytes):
        if len(key) != KEY_SIZE:
            raise VaultKeyError(f"Vault key must be {KEY_SIZE} bytes")
        self._key = key

    @classmethod
    def from_file(cls, path: Path) -> "SecretVault":
        return cls(load_or_create_key(path))

    def encrypt(self, plaintext: str) -> str:
        return encrypt(plaintext, self._key)

    def decrypt(self, blob: str) -> str:
        return decrypt(blob, self._key)


# =============================================================================
# Global Vault Instance
# =============================================================================

_vault_instance: Optional[SecretVault] = None


def get_vault() -> SecretVault:
    """Get the process-wide vault, loading or creating its key on first use"""
    global _vault_instance
    if _vault_instance is None:
        _vault_instance = SecretVault.from_file(settings.vault_key_path)
    return _vault_instance
