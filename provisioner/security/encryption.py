"""
Field encryption for the setup configuration document.

Key hierarchy:
- Master key: derived once per process from AUTH_SECRET via scrypt with a
  fixed salt, never persisted
- Field key: derived per encryption from the master key and a random salt
  via HKDF-SHA256

Fields are sealed with AES-256-GCM and serialized as
``encrypted:`` + base64(salt || nonce || tag || ciphertext).
"""

import base64
import binascii
import secrets
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt


# Constants
ENCRYPTED_PREFIX = "encrypted:"

KEY_SIZE = 32  # 256 bits
NONCE_SIZE = 12  # 96 bits for GCM
TAG_SIZE = 16  # GCM authentication tag
SALT_SIZE = 32  # per-field salt

SCRYPT_N = 2 ** 14
SCRYPT_R = 8
SCRYPT_P = 1

# Fixed salt for master key derivation; the secret itself stays in the environment
MASTER_KEY_SALT = b"provisioner-config-salt-v1"
FIELD_KEY_INFO = b"provisioner-config-field-v1"


class EncryptionError(Exception):
    """Base exception for encryption errors."""
    pass


class DecryptionError(EncryptionError):
    """Exception raised when a token cannot be decrypted or fails authentication."""
    pass


class MissingSecretError(EncryptionError):
    """Exception raised when the long-term secret is not configured."""
    pass


def derive_master_key(secret: str) -> bytes:
    """
    Derive the 256-bit master key from the long-term secret.

    Args:
        secret: Operator-supplied secret (AUTH_SECRET)

    Returns:
        32-byte master key

    Raises:
        MissingSecretError: If the secret is empty
    """
    if not secret:
        raise MissingSecretError(
            "AUTH_SECRET environment variable is required for config encryption"
        )

    kdf = Scrypt(
        salt=MASTER_KEY_SALT,
        length=KEY_SIZE,
        n=SCRYPT_N,
        r=SCRYPT_R,
        p=SCRYPT_P,
    )
    return kdf.derive(secret.encode("utf-8"))


def _derive_field_key(master_key: bytes, salt: bytes) -> bytes:
    """Derive a per-field key so every token is bound to its own salt."""
    hkdf = HKDF(
        algorithm=hashes.SHA256(),
        length=KEY_SIZE,
        salt=salt,
        info=FIELD_KEY_INFO,
    )
    return hkdf.derive(master_key)


def is_encrypted(value: str) -> bool:
    """Check whether a value carries the encrypted-token prefix."""
    return isinstance(value, str) and value.startswith(ENCRYPTED_PREFIX)


class SecretCipher:
    """
    Encrypts and decrypts individual string fields.

    The master key is derived at construction and held only in memory.
    """

    def __init__(self, secret: str):
        self._key = derive_master_key(secret)

    def encrypt(self, plaintext: str) -> str:
        """
        Encrypt a field.

        Args:
            plaintext: String to encrypt

        Returns:
            Prefixed, base64-encoded token

        Raises:
            EncryptionError: If encryption fails
        """
        try:
            salt = secrets.token_bytes(SALT_SIZE)
            nonce = secrets.token_bytes(NONCE_SIZE)

            aesgcm = AESGCM(_derive_field_key(self._key, salt))
            sealed = aesgcm.encrypt(nonce, plaintext.encode("utf-8"), None)

            # AESGCM appends the tag; the token stores it ahead of the ciphertext
            ciphertext, tag = sealed[:-TAG_SIZE], sealed[-TAG_SIZE:]
            combined = salt + nonce + tag + ciphertext

            return ENCRYPTED_PREFIX + base64.b64encode(combined).decode("ascii")

        except Exception as e:
            raise EncryptionError(f"Encryption failed: {e}")

    def decrypt(self, token: str) -> str:
        """
        Decrypt a field.

        Values without the prefix are returned unchanged so documents written
        before encryption was introduced still load.

        Args:
            token: Prefixed token (or legacy plaintext)

        Returns:
            Decrypted plaintext

        Raises:
            DecryptionError: If the token is malformed or was tampered with
        """
        if not is_encrypted(token):
            return token

        try:
            combined = base64.b64decode(token[len(ENCRYPTED_PREFIX):], validate=True)
        except (binascii.Error, ValueError) as e:
            raise DecryptionError(f"Decryption failed: invalid encoding ({e})")

        if len(combined) < SALT_SIZE + NONCE_SIZE + TAG_SIZE:
            raise DecryptionError("Decryption failed: token too short")

        salt = combined[:SALT_SIZE]
        nonce = combined[SALT_SIZE:SALT_SIZE + NONCE_SIZE]
        tag = combined[SALT_SIZE + NONCE_SIZE:SALT_SIZE + NONCE_SIZE + TAG_SIZE]
        ciphertext = combined[SALT_SIZE + NONCE_SIZE + TAG_SIZE:]

        try:
            aesgcm = AESGCM(_derive_field_key(self._key, salt))
            plaintext = aesgcm.decrypt(nonce, ciphertext + tag, None)
            return plaintext.decode("utf-8")
        except InvalidTag:
            raise DecryptionError(
                "Decryption failed: authentication tag mismatch - data may have been tampered with"
            )
        except UnicodeDecodeError as e:
            raise DecryptionError(f"Decryption failed: {e}")


# Process-wide cipher, keyed by AUTH_SECRET at first use
_cipher: Optional[SecretCipher] = None


def get_cipher() -> SecretCipher:
    """
    Get the process-wide cipher, deriving the key on first use.

    Raises:
        MissingSecretError: If AUTH_SECRET is not configured
    """
    global _cipher
    if _cipher is None:
        from provisioner.config.settings import get_settings
        _cipher = SecretCipher(get_settings().auth_secret)
    return _cipher


def reset_cipher() -> None:
    """Discard the process-wide cipher (e.g. after rotating the secret)."""
    global _cipher
    _cipher = None
