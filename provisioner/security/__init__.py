from provisioner.security.encryption import (
    SecretCipher,
    EncryptionError,
    DecryptionError,
    MissingSecretError,
    get_cipher,
    reset_cipher,
)

__all__ = [
    "SecretCipher",
    "EncryptionError",
    "DecryptionError",
    "MissingSecretError",
    "get_cipher",
    "reset_cipher",
]
